from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

import crud
from dependencies import get_db, get_state, query_confirmation
from errors import ConfirmationRequired
from filter_helpers import (
    blank_to_none,
    normalize_limit,
    normalize_offset,
    normalize_order,
    normalize_sort,
    normalize_status,
)
from models import Assignment, Device, DeviceIn, DevicesMeta, DeviceUpdate
from state import AppState

router = APIRouter()


@router.get("/devices", response_model=list[Device])
def list_devices_api(
    q: Optional[str] = None,
    category: Optional[str] = None,
    status: Optional[str] = None,
    sort: str = "created_at",
    order: str = "desc",
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    return crud.list_devices_filtered(
        db,
        q=q,
        status=normalize_status(status),
        category=blank_to_none(category),
        sort=normalize_sort(sort),
        order=normalize_order(order),
        limit=normalize_limit(limit),
        offset=normalize_offset(offset),
    )


@router.get("/devices/meta", response_model=DevicesMeta)
def devices_meta_api(
    q: Optional[str] = None,
    category: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    meta = crud.devices_meta(
        db,
        q=q,
        status=normalize_status(status),
        category=blank_to_none(category),
        limit=limit,
        offset=offset,
    )
    return DevicesMeta(**meta)


@router.post("/devices", response_model=Device, status_code=201)
def create_device_api(
    body: DeviceIn,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    return store.add_device(db, body)


@router.get("/devices/{device_id}", response_model=Device)
def get_device_api(device_id: str, db: Session = Depends(get_db)):
    device = crud.get_device(db, device_id)
    if not device:
        raise HTTPException(status_code=404, detail="device not found")
    return device


@router.get("/devices/{device_id}/assignment", response_model=Optional[Assignment])
def active_assignment_api(device_id: str, db: Session = Depends(get_db)):
    if not crud.get_device(db, device_id):
        raise HTTPException(status_code=404, detail="device not found")
    return crud.get_active_assignment(db, device_id)


@router.patch("/devices/{device_id}", response_model=Device)
def update_device_api(
    device_id: str,
    body: DeviceUpdate,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    if not crud.get_device(db, device_id):
        raise HTTPException(status_code=404, detail="device not found")
    return store.update_device(db, device_id, body)


@router.delete("/devices/{device_id}", status_code=204)
def delete_device_api(
    device_id: str,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
    confirm: Callable[[str], bool] = Depends(query_confirmation),
):
    if not store.delete_device(db, device_id, confirm):
        raise ConfirmationRequired("pass confirm=true to delete this device")
    return None
