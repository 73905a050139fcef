from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

import crud
from dependencies import get_db, get_state, query_confirmation
from errors import ConfirmationRequired
from filter_helpers import blank_to_none
from models import Assignment, Device, Personnel, PersonnelIn, PersonnelUpdate
from state import AppState

router = APIRouter()


@router.get("/personnel", response_model=list[Personnel])
def list_personnel_api(
    q: Optional[str] = None,
    department: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return crud.list_personnel(db, q=q, department=blank_to_none(department))


@router.post("/personnel", response_model=Personnel, status_code=201)
def create_personnel_api(
    body: PersonnelIn,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    return store.add_personnel(db, body)


@router.get("/personnel/{personnel_id}", response_model=Personnel)
def get_personnel_api(personnel_id: str, db: Session = Depends(get_db)):
    person = crud.get_personnel(db, personnel_id)
    if not person:
        raise HTTPException(status_code=404, detail="personnel not found")
    return person


@router.get("/personnel/{personnel_id}/devices", response_model=list[Device])
def personnel_devices_api(personnel_id: str, store: AppState = Depends(get_state)):
    person = store.cached("personnel", personnel_id)
    if not person:
        raise HTTPException(status_code=404, detail="personnel not found")
    held = set(person.assigned_devices)
    return [d for d in store.devices if d.id in held]


@router.get("/personnel/{personnel_id}/history", response_model=list[Assignment])
def personnel_history_api(personnel_id: str, db: Session = Depends(get_db)):
    if not crud.get_personnel(db, personnel_id):
        raise HTTPException(status_code=404, detail="personnel not found")
    return crud.list_assignments(db, personnel_id=personnel_id)


@router.patch("/personnel/{personnel_id}", response_model=Personnel)
def update_personnel_api(
    personnel_id: str,
    body: PersonnelUpdate,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    return store.update_personnel(db, personnel_id, body)


@router.delete("/personnel/{personnel_id}", status_code=204)
def delete_personnel_api(
    personnel_id: str,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
    confirm: Callable[[str], bool] = Depends(query_confirmation),
):
    if not store.delete_personnel(db, personnel_id, confirm):
        raise ConfirmationRequired("pass confirm=true to delete this personnel")
    return None
