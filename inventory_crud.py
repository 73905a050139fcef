from __future__ import annotations

import logging
from typing import Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import config
from alerts import category_stock
from crud import persist, utcnow
from errors import InvalidStateError, NotFoundError
from models import (
    AuditRecord,
    AutoOrderRule,
    AutoOrderRuleIn,
    InventoryItem,
    InventoryItemIn,
    InventoryItemUpdate,
    MaintenanceRecord,
    MaintenanceRecordIn,
    MaintenanceRecordUpdate,
    PurchaseOrder,
    Supplier,
    SupplierIn,
    SupplierUpdate,
)
from orm import (
    AuditRecordORM,
    AutoOrderRuleORM,
    InventoryItemORM,
    MaintenanceRecordORM,
    PurchaseOrderORM,
    SupplierORM,
)

logger = logging.getLogger("app.inventory")

ORDER_TRANSITIONS = {
    "approved": "pending",
    "ordered": "approved",
    "received": "ordered",
}


# ---------- Audit ----------
def _write_audit(
    db: Session,
    *,
    item_id: str,
    action: str,
    old_values: Optional[dict] = None,
    new_values: Optional[dict] = None,
    reason: Optional[str] = None,
    commit: bool,
) -> None:
    """Append an audit row. When committing on its own, a failure is logged and does not undo the item write."""
    db.add(
        AuditRecordORM(
            id=str(uuid4()),
            inventory_item_id=item_id,
            action=action,
            old_values=old_values,
            new_values=new_values,
            changed_by=config.AUDIT_USER,
            change_reason=reason,
            created_at=utcnow(),
        )
    )
    if not commit:
        db.flush()
        return
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.warning("audit write failed item_id=%s action=%s", item_id, action, exc_info=True)


def list_audit_records(db: Session, *, item_id: str | None = None) -> list[AuditRecord]:
    stmt = select(AuditRecordORM)
    if item_id:
        stmt = stmt.where(AuditRecordORM.inventory_item_id == item_id)
    rows = db.execute(stmt.order_by(AuditRecordORM.created_at.desc())).scalars().all()
    return [AuditRecord.model_validate(r) for r in rows]


# ---------- Inventory items ----------
def get_inventory_item(db: Session, item_id: str) -> Optional[InventoryItem]:
    row = db.get(InventoryItemORM, item_id)
    return InventoryItem.model_validate(row) if row else None


def list_inventory_items(
    db: Session,
    *,
    status: str | None = None,
    category: str | None = None,
    department: str | None = None,
) -> list[InventoryItem]:
    stmt = select(InventoryItemORM)
    if status:
        stmt = stmt.where(InventoryItemORM.current_status == status)
    if category:
        stmt = stmt.where(InventoryItemORM.category == category)
    if department:
        stmt = stmt.where(InventoryItemORM.location_department == department)
    rows = db.execute(stmt.order_by(InventoryItemORM.created_at.desc())).scalars().all()
    return [InventoryItem.model_validate(r) for r in rows]


def create_inventory_item(db: Session, body: InventoryItemIn, *, commit: bool = True) -> InventoryItem:
    now = utcnow()
    item = InventoryItemORM(id=str(uuid4()), created_at=now, updated_at=now, **body.model_dump())
    db.add(item)
    persist(db, commit=commit)
    created = InventoryItem.model_validate(item)

    _write_audit(
        db,
        item_id=item.id,
        action="CREATE",
        new_values=body.model_dump(mode="json", by_alias=True),
        reason="Yeni envanter öğesi eklendi",
        commit=commit,
    )
    return created


def update_inventory_item(
    db: Session,
    item_id: str,
    body: InventoryItemUpdate,
    *,
    reason: str = "Envanter öğesi güncellendi",
    commit: bool = True,
) -> Optional[InventoryItem]:
    item = db.get(InventoryItemORM, item_id)
    if not item:
        return None

    old_values = InventoryItem.model_validate(item).model_dump(mode="json", by_alias=True)
    data = body.model_dump(exclude_unset=True)
    for k, v in data.items():
        setattr(item, k, v)
    item.updated_at = utcnow()

    persist(db, commit=commit)
    updated = InventoryItem.model_validate(item)

    _write_audit(
        db,
        item_id=item_id,
        action="UPDATE",
        old_values=old_values,
        new_values=body.model_dump(mode="json", by_alias=True, exclude_unset=True),
        reason=reason,
        commit=commit,
    )
    return updated


def delete_inventory_item(db: Session, item_id: str, *, commit: bool = True) -> bool:
    item = db.get(InventoryItemORM, item_id)
    if not item:
        return False

    old_values = InventoryItem.model_validate(item).model_dump(mode="json", by_alias=True)
    db.delete(item)
    persist(db, commit=commit)
    _write_audit(
        db,
        item_id=item_id,
        action="DELETE",
        old_values=old_values,
        reason="Envanter öğesi silindi",
        commit=commit,
    )
    return True


# ---------- Maintenance ----------
def list_maintenance_records(db: Session, *, item_id: str | None = None) -> list[MaintenanceRecord]:
    stmt = select(MaintenanceRecordORM)
    if item_id:
        stmt = stmt.where(MaintenanceRecordORM.inventory_item_id == item_id)
    rows = db.execute(stmt.order_by(MaintenanceRecordORM.created_at.desc())).scalars().all()
    return [MaintenanceRecord.model_validate(r) for r in rows]


def create_maintenance_record(db: Session, body: MaintenanceRecordIn, *, commit: bool = True) -> MaintenanceRecord:
    if not db.get(InventoryItemORM, body.inventory_item_id):
        raise NotFoundError("inventory item not found")

    rec = MaintenanceRecordORM(id=str(uuid4()), created_at=utcnow(), **body.model_dump())
    db.add(rec)
    persist(db, commit=commit)
    return MaintenanceRecord.model_validate(rec)


def update_maintenance_record(
    db: Session, record_id: str, body: MaintenanceRecordUpdate, *, commit: bool = True
) -> Optional[MaintenanceRecord]:
    rec = db.get(MaintenanceRecordORM, record_id)
    if not rec:
        return None

    for k, v in body.model_dump(exclude_unset=True).items():
        setattr(rec, k, v)

    persist(db, commit=commit)
    return MaintenanceRecord.model_validate(rec)


def mark_as_defective(db: Session, item_id: str, reason: str, *, commit: bool = True) -> MaintenanceRecord:
    item = update_inventory_item(
        db,
        item_id,
        InventoryItemUpdate(current_status="defective"),
        reason=f"Arızalı: {reason}",
        commit=False,
    )
    if not item:
        raise NotFoundError("inventory item not found")

    rec = create_maintenance_record(
        db,
        MaintenanceRecordIn(
            inventory_item_id=item_id,
            maintenance_type="repair",
            description=f"Arızalı olarak işaretlendi: {reason}",
            start_date=utcnow(),
            status="scheduled",
        ),
        commit=False,
    )
    persist(db, commit=commit)
    logger.info("marked defective item_id=%s", item_id)
    return rec


def mark_as_repaired(db: Session, item_id: str, *, commit: bool = True) -> InventoryItem:
    item = update_inventory_item(
        db,
        item_id,
        InventoryItemUpdate(current_status="in_stock"),
        reason="Onarıldı",
        commit=False,
    )
    if not item:
        raise NotFoundError("inventory item not found")

    open_rec = db.execute(
        select(MaintenanceRecordORM)
        .where(
            MaintenanceRecordORM.inventory_item_id == item_id,
            MaintenanceRecordORM.status == "in_progress",
        )
        .order_by(MaintenanceRecordORM.start_date.desc())
        .limit(1)
    ).scalars().first()
    if open_rec:
        open_rec.status = "completed"
        open_rec.completion_date = utcnow()

    persist(db, commit=commit)
    logger.info("marked repaired item_id=%s", item_id)
    return item


# ---------- Suppliers ----------
def list_suppliers(db: Session) -> list[Supplier]:
    rows = db.execute(select(SupplierORM).order_by(SupplierORM.name.asc())).scalars().all()
    return [Supplier.model_validate(r) for r in rows]


def get_supplier(db: Session, supplier_id: str) -> Optional[Supplier]:
    row = db.get(SupplierORM, supplier_id)
    return Supplier.model_validate(row) if row else None


def supplier_name_exists(db: Session, name: str, exclude_supplier_id: Optional[str] = None) -> bool:
    stmt = select(SupplierORM).where(SupplierORM.name == name)
    if exclude_supplier_id:
        stmt = stmt.where(SupplierORM.id != exclude_supplier_id)
    return db.execute(stmt).first() is not None


def create_supplier(db: Session, body: SupplierIn, *, commit: bool = True) -> Supplier:
    s = SupplierORM(id=str(uuid4()), created_at=utcnow(), **body.model_dump())
    db.add(s)
    persist(db, commit=commit)
    return Supplier.model_validate(s)


def update_supplier(db: Session, supplier_id: str, body: SupplierUpdate, *, commit: bool = True) -> Optional[Supplier]:
    s = db.get(SupplierORM, supplier_id)
    if not s:
        return None
    for k, v in body.model_dump(exclude_unset=True).items():
        setattr(s, k, v)
    persist(db, commit=commit)
    return Supplier.model_validate(s)


def delete_supplier(db: Session, supplier_id: str, *, commit: bool = True) -> bool:
    s = db.get(SupplierORM, supplier_id)
    if not s:
        return False
    db.delete(s)
    persist(db, commit=commit)
    return True


# ---------- Auto order ----------
def list_auto_order_rules(db: Session) -> list[AutoOrderRule]:
    rows = db.execute(select(AutoOrderRuleORM).order_by(AutoOrderRuleORM.created_at.asc())).scalars().all()
    return [AutoOrderRule.model_validate(r) for r in rows]


def create_auto_order_rule(db: Session, body: AutoOrderRuleIn, *, commit: bool = True) -> AutoOrderRule:
    category = body.category.strip()
    supplier = body.supplier.strip()
    if not category or not supplier:
        raise InvalidStateError("category and supplier are required")

    rule = AutoOrderRuleORM(
        id=str(uuid4()),
        category=category,
        supplier=supplier,
        min_threshold=body.min_threshold,
        order_quantity=body.order_quantity,
        is_active=True,
        created_at=utcnow(),
    )
    db.add(rule)
    persist(db, commit=commit)
    return AutoOrderRule.model_validate(rule)


def toggle_auto_order_rule(db: Session, rule_id: str, *, commit: bool = True) -> Optional[AutoOrderRule]:
    rule = db.get(AutoOrderRuleORM, rule_id)
    if not rule:
        return None
    rule.is_active = not rule.is_active
    persist(db, commit=commit)
    return AutoOrderRule.model_validate(rule)


def delete_auto_order_rule(db: Session, rule_id: str, *, commit: bool = True) -> bool:
    rule = db.get(AutoOrderRuleORM, rule_id)
    if not rule:
        return False
    db.delete(rule)
    persist(db, commit=commit)
    return True


def list_purchase_orders(db: Session, *, status: str | None = None) -> list[PurchaseOrder]:
    stmt = select(PurchaseOrderORM)
    if status:
        stmt = stmt.where(PurchaseOrderORM.status == status)
    rows = db.execute(stmt.order_by(PurchaseOrderORM.created_at.desc())).scalars().all()
    return [PurchaseOrder.model_validate(r) for r in rows]


def check_auto_order_triggers(db: Session, *, commit: bool = True) -> list[PurchaseOrder]:
    """Open a pending order for every active rule whose category stock is at or below its threshold.

    A rule that already has a pending order is left alone.
    """
    items = list_inventory_items(db)
    stock = category_stock(items)

    rules = db.execute(select(AutoOrderRuleORM).where(AutoOrderRuleORM.is_active.is_(True))).scalars().all()
    pending_rule_ids = set(
        db.execute(select(PurchaseOrderORM.rule_id).where(PurchaseOrderORM.status == "pending")).scalars().all()
    )

    now = utcnow()
    created: list[PurchaseOrderORM] = []
    for rule in rules:
        current = stock.get(rule.category, 0)
        if current > rule.min_threshold or rule.id in pending_rule_ids:
            continue
        order = PurchaseOrderORM(
            id=str(uuid4()),
            rule_id=rule.id,
            category=rule.category,
            supplier=rule.supplier,
            quantity=rule.order_quantity,
            estimated_cost=rule.order_quantity * config.ORDER_UNIT_PRICE,
            status="pending",
            notes=f"Otomatik sipariş - Mevcut stok: {current}, Minimum: {rule.min_threshold}",
            created_at=now,
        )
        db.add(order)
        rule.last_order_date = now
        created.append(order)

    persist(db, commit=commit)
    if created:
        logger.info("auto order opened count=%s", len(created))
    return [PurchaseOrder.model_validate(o) for o in created]


def advance_purchase_order(db: Session, order_id: str, new_status: str, *, commit: bool = True) -> PurchaseOrder:
    order = db.get(PurchaseOrderORM, order_id)
    if not order:
        raise NotFoundError("order not found")

    expected = ORDER_TRANSITIONS.get(new_status)
    if expected is None or order.status != expected:
        raise InvalidStateError(f"cannot move order from '{order.status}' to '{new_status}'")

    order.status = new_status
    if new_status == "received":
        supplier = db.execute(select(SupplierORM).where(SupplierORM.name == order.supplier)).scalars().first()
        if supplier:
            supplier.total_orders += 1
            supplier.total_value += order.estimated_cost
            supplier.last_order_date = utcnow()

    persist(db, commit=commit)
    return PurchaseOrder.model_validate(order)


def reject_purchase_order(db: Session, order_id: str, *, commit: bool = True) -> bool:
    order = db.get(PurchaseOrderORM, order_id)
    if not order:
        return False
    if order.status != "pending":
        raise InvalidStateError("only pending orders can be rejected")
    db.delete(order)
    persist(db, commit=commit)
    return True
