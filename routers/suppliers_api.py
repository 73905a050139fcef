from typing import Callable, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

import inventory_crud
from dependencies import get_db, get_state, query_confirmation
from errors import ConfirmationRequired
from models import AutoOrderRule, AutoOrderRuleIn, PurchaseOrder, Supplier, SupplierIn, SupplierUpdate
from state import AppState

router = APIRouter()


# ---------- suppliers ----------
@router.get("/suppliers", response_model=list[Supplier])
def list_suppliers_api(db: Session = Depends(get_db)):
    return inventory_crud.list_suppliers(db)


@router.post("/suppliers", response_model=Supplier, status_code=201)
def create_supplier_api(
    body: SupplierIn,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    if inventory_crud.supplier_name_exists(db, body.name):
        raise HTTPException(status_code=409, detail="supplier already exists")
    return store.run(db, "add supplier", inventory_crud.create_supplier, body)


@router.get("/suppliers/{supplier_id}", response_model=Supplier)
def get_supplier_api(supplier_id: str, db: Session = Depends(get_db)):
    s = inventory_crud.get_supplier(db, supplier_id)
    if not s:
        raise HTTPException(status_code=404, detail="supplier not found")
    return s


@router.patch("/suppliers/{supplier_id}", response_model=Supplier)
def update_supplier_api(
    supplier_id: str,
    body: SupplierUpdate,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    if body.name and inventory_crud.supplier_name_exists(db, body.name, exclude_supplier_id=supplier_id):
        raise HTTPException(status_code=409, detail="supplier already exists")
    updated = store.run(db, "update supplier", inventory_crud.update_supplier, supplier_id, body)
    if not updated:
        raise HTTPException(status_code=404, detail="supplier not found")
    return updated


@router.delete("/suppliers/{supplier_id}", status_code=204)
def delete_supplier_api(
    supplier_id: str,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
    confirm: Callable[[str], bool] = Depends(query_confirmation),
):
    if not store.delete_supplier(db, supplier_id, confirm):
        raise ConfirmationRequired("pass confirm=true to delete this supplier")
    return None


# ---------- auto order ----------
@router.get("/auto-orders/rules", response_model=list[AutoOrderRule])
def list_rules_api(db: Session = Depends(get_db)):
    return inventory_crud.list_auto_order_rules(db)


@router.post("/auto-orders/rules", response_model=AutoOrderRule, status_code=201)
def create_rule_api(
    body: AutoOrderRuleIn,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    return store.run(db, "add auto order rule", inventory_crud.create_auto_order_rule, body)


@router.post("/auto-orders/rules/{rule_id}/toggle", response_model=AutoOrderRule)
def toggle_rule_api(
    rule_id: str,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    rule = store.run(db, "toggle auto order rule", inventory_crud.toggle_auto_order_rule, rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="rule not found")
    return rule


@router.delete("/auto-orders/rules/{rule_id}", status_code=204)
def delete_rule_api(
    rule_id: str,
    confirm: bool = False,
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    if not confirm:
        raise ConfirmationRequired("pass confirm=true to delete this rule")
    if not store.run(db, "delete auto order rule", inventory_crud.delete_auto_order_rule, rule_id):
        raise HTTPException(status_code=404, detail="rule not found")
    return None


@router.post("/auto-orders/check", response_model=list[PurchaseOrder])
def check_triggers_api(db: Session = Depends(get_db), store: AppState = Depends(get_state)):
    return store.run(db, "check auto orders", inventory_crud.check_auto_order_triggers)


@router.get("/auto-orders/orders", response_model=list[PurchaseOrder])
def list_orders_api(status: Optional[str] = None, db: Session = Depends(get_db)):
    if status not in ("pending", "approved", "ordered", "received"):
        status = None
    return inventory_crud.list_purchase_orders(db, status=status)


@router.post("/auto-orders/orders/{order_id}/{action}", response_model=Optional[PurchaseOrder])
def advance_order_api(
    order_id: str,
    action: Literal["approve", "ordered", "received", "reject"],
    db: Session = Depends(get_db),
    store: AppState = Depends(get_state),
):
    if action == "reject":
        if not store.run(db, "reject order", inventory_crud.reject_purchase_order, order_id):
            raise HTTPException(status_code=404, detail="order not found")
        return None

    new_status = "approved" if action == "approve" else action
    return store.run(db, "advance order", inventory_crud.advance_purchase_order, order_id, new_status)
