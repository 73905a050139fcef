from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

import crud
from dependencies import get_db, get_state
from models import Assignment, AssignmentIn
from state import AppState

router = APIRouter()


@router.get("/assignments", response_model=list[Assignment])
def list_assignments_api(
    status: Optional[str] = None,
    device_id: Optional[str] = None,
    personnel_id: Optional[str] = None,
    db: Session = Depends(get_db),
):
    if status not in ("active", "returned"):
        status = None
    return crud.list_assignments(db, status=status, device_id=device_id, personnel_id=personnel_id)


@router.post("/assignments", response_model=Assignment, status_code=201)
def assign_device_api(
    body: AssignmentIn,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    return store.assign_device(db, body.device_id, body.personnel_id, body.notes)


@router.get("/assignments/{assignment_id}", response_model=Assignment)
def get_assignment_api(assignment_id: str, db: Session = Depends(get_db)):
    a = crud.get_assignment(db, assignment_id)
    if not a:
        raise HTTPException(status_code=404, detail="assignment not found")
    return a


@router.post("/assignments/{assignment_id}/return", response_model=Assignment)
def return_device_api(
    assignment_id: str,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    return store.return_device(db, assignment_id)
