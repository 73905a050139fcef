from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

import inventory_crud
from dependencies import get_db, get_state, query_confirmation
from errors import ConfirmationRequired
from filter_helpers import blank_to_none
from models import (
    AuditRecord,
    DefectReport,
    InventoryItem,
    InventoryItemIn,
    InventoryItemUpdate,
    MaintenanceRecord,
    MaintenanceRecordIn,
    MaintenanceRecordUpdate,
    StockAlert,
    StockThreshold,
)
from state import AppState

router = APIRouter(prefix="/inventory")


# ---------- items ----------
@router.get("/items", response_model=list[InventoryItem])
def list_items_api(
    status: Optional[str] = None,
    category: Optional[str] = None,
    department: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return inventory_crud.list_inventory_items(
        db,
        status=blank_to_none(status),
        category=blank_to_none(category),
        department=blank_to_none(department),
    )


@router.post("/items", response_model=InventoryItem, status_code=201)
def create_item_api(
    body: InventoryItemIn,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    return store.run(db, "add inventory item", inventory_crud.create_inventory_item, body)


@router.get("/items/{item_id}", response_model=InventoryItem)
def get_item_api(item_id: str, db: Session = Depends(get_db)):
    item = inventory_crud.get_inventory_item(db, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="inventory item not found")
    return item


@router.patch("/items/{item_id}", response_model=InventoryItem)
def update_item_api(
    item_id: str,
    body: InventoryItemUpdate,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    updated = store.run(db, "update inventory item", inventory_crud.update_inventory_item, item_id, body)
    if not updated:
        raise HTTPException(status_code=404, detail="inventory item not found")
    return updated


@router.delete("/items/{item_id}", status_code=204)
def delete_item_api(
    item_id: str,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
    confirm: Callable[[str], bool] = Depends(query_confirmation),
):
    if not store.delete_inventory_item(db, item_id, confirm):
        raise ConfirmationRequired("pass confirm=true to delete this item")
    return None


@router.post("/items/{item_id}/defective", response_model=MaintenanceRecord, status_code=201)
def mark_defective_api(
    item_id: str,
    body: DefectReport,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    return store.run(db, "mark defective", inventory_crud.mark_as_defective, item_id, body.reason)


@router.post("/items/{item_id}/repaired", response_model=InventoryItem)
def mark_repaired_api(
    item_id: str,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    return store.run(db, "mark repaired", inventory_crud.mark_as_repaired, item_id)


@router.get("/items/{item_id}/audit", response_model=list[AuditRecord])
def item_audit_api(item_id: str, db: Session = Depends(get_db)):
    return inventory_crud.list_audit_records(db, item_id=item_id)


# ---------- maintenance ----------
@router.get("/maintenance", response_model=list[MaintenanceRecord])
def list_maintenance_api(item_id: Optional[str] = None, db: Session = Depends(get_db)):
    return inventory_crud.list_maintenance_records(db, item_id=blank_to_none(item_id))


@router.post("/maintenance", response_model=MaintenanceRecord, status_code=201)
def create_maintenance_api(
    body: MaintenanceRecordIn,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    return store.run(db, "add maintenance record", inventory_crud.create_maintenance_record, body)


@router.patch("/maintenance/{record_id}", response_model=MaintenanceRecord)
def update_maintenance_api(
    record_id: str,
    body: MaintenanceRecordUpdate,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    updated = store.run(db, "update maintenance record", inventory_crud.update_maintenance_record, record_id, body)
    if not updated:
        raise HTTPException(status_code=404, detail="maintenance record not found")
    return updated


# ---------- audit ----------
@router.get("/audit", response_model=list[AuditRecord])
def list_audit_api(db: Session = Depends(get_db)):
    return inventory_crud.list_audit_records(db)


# ---------- alerts ----------
@router.get("/alerts", response_model=list[StockAlert])
def list_alerts_api(include_acknowledged: bool = False, store: AppState = Depends(get_state)):
    return store.alerts(include_acknowledged=include_acknowledged)


@router.post("/alerts/{alert_id}/acknowledge", status_code=204)
def acknowledge_alert_api(alert_id: str, store: AppState = Depends(get_state)):
    store.acknowledge_alert(alert_id)
    return None


@router.get("/thresholds", response_model=list[StockThreshold])
def list_thresholds_api(store: AppState = Depends(get_state)):
    return store.thresholds


@router.put("/thresholds", response_model=list[StockThreshold])
def set_threshold_api(body: StockThreshold, store: AppState = Depends(get_state)):
    store.set_threshold(body)
    return store.thresholds
