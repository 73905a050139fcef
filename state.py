"""Application state: cached collections plus the operations that change them.

``AppState`` is created once per process and handed to the views. It loads
every collection on start and afterwards applies committed row changes from
the change feed one row at a time, so a write never costs a full re-fetch. Writes made outside this process
never reach the feed; ``sync`` compares the cache with the store and
reloads when they differ.

Store errors are rolled back, logged, and re-raised as ``RemoteFailure``.
Deletes ask the caller-supplied ``confirm`` callable first.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import crud
import inventory_crud
import orm
from alerts import DEFAULT_THRESHOLDS, generate_alerts
from errors import InvalidStateError, NotFoundError, RemoteFailure
from models import (
    Assignment,
    AuditRecord,
    Device,
    DeviceIn,
    DeviceUpdate,
    InventoryItem,
    MaintenanceRecord,
    Personnel,
    PersonnelIn,
    PersonnelUpdate,
    StockAlert,
    StockThreshold,
)
from realtime import ChangeEvent, ChangeFeed

logger = logging.getLogger("app.state")

Confirm = Callable[[str], bool]
T = TypeVar("T")

TABLE_MODELS: dict[str, type[BaseModel]] = {
    "devices": Device,
    "personnel": Personnel,
    "assignments": Assignment,
    "inventory_items": InventoryItem,
    "inventory_maintenance": MaintenanceRecord,
    "inventory_audit": AuditRecord,
}

TABLE_ORMS = {
    "devices": orm.DeviceORM,
    "personnel": orm.PersonnelORM,
    "assignments": orm.AssignmentORM,
    "inventory_items": orm.InventoryItemORM,
    "inventory_maintenance": orm.MaintenanceRecordORM,
    "inventory_audit": orm.AuditRecordORM,
}

# columns whose latest value moves on every write to the table
STAMP_COLUMNS: dict[str, tuple[str, ...]] = {
    "devices": ("updated_at",),
    "personnel": ("updated_at",),
    "assignments": ("assigned_date", "returned_date"),
    "inventory_items": ("updated_at",),
    "inventory_maintenance": ("created_at", "completion_date"),
    "inventory_audit": ("created_at",),
}


def store_stamps(db: Session) -> dict[str, tuple]:
    """Row count plus the latest stamp columns of every cached table."""
    stamps = {}
    for table, columns in STAMP_COLUMNS.items():
        model = TABLE_ORMS[table]
        row = db.execute(
            select(func.count(), *(func.max(getattr(model, c)) for c in columns)).select_from(model)
        ).one()
        stamps[table] = tuple(row)
    return stamps


def always_confirm(_message: str) -> bool:
    return True


class AppState:
    def __init__(self, feed: Optional[ChangeFeed] = None):
        self._lock = threading.RLock()
        self._tables: dict[str, dict[str, BaseModel]] = {name: {} for name in TABLE_MODELS}
        self.thresholds: list[StockThreshold] = list(DEFAULT_THRESHOLDS)
        self.acknowledged_alerts: set[str] = set()
        self._unsubscribers: list[Callable[[], None]] = []
        self.loaded = False
        if feed is not None:
            self.attach(feed)

    # ---- change feed ----
    def attach(self, feed: ChangeFeed) -> None:
        for table in TABLE_MODELS:
            self._unsubscribers.append(feed.subscribe(table, self.apply))

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    def apply(self, change: ChangeEvent) -> None:
        """Merge one committed row change into the cache."""
        model = TABLE_MODELS.get(change.table)
        if model is None:
            return
        with self._lock:
            rows = self._tables[change.table]
            if change.type == "DELETE":
                rows.pop(change.id, None)
            else:
                rows[change.id] = model.model_validate(change.row)
        logger.debug("merged table=%s type=%s id=%s", change.table, change.type, change.id)

    def refresh(self, db: Session) -> None:
        """Full reload of every collection."""
        loaded = {
            "devices": crud.list_devices(db),
            "personnel": crud.list_personnel(db),
            "assignments": crud.list_assignments(db),
            "inventory_items": inventory_crud.list_inventory_items(db),
            "inventory_maintenance": inventory_crud.list_maintenance_records(db),
            "inventory_audit": inventory_crud.list_audit_records(db),
        }
        with self._lock:
            for table, rows in loaded.items():
                self._tables[table] = {r.id: r for r in rows}
            self.loaded = True
        logger.info(
            "state loaded devices=%s personnel=%s assignments=%s items=%s",
            len(loaded["devices"]),
            len(loaded["personnel"]),
            len(loaded["assignments"]),
            len(loaded["inventory_items"]),
        )

    # ---- reconciliation ----
    def _cache_stamps(self) -> dict[str, tuple]:
        stamps = {}
        with self._lock:
            for table, columns in STAMP_COLUMNS.items():
                rows = list(self._tables[table].values())
                latest = (
                    max((getattr(r, c) for r in rows if getattr(r, c) is not None), default=None)
                    for c in columns
                )
                stamps[table] = (len(rows), *latest)
        return stamps

    def sync(self, db: Session) -> bool:
        """Reload when the store holds writes the change feed never delivered.

        The feed only sees sessions of this process. Writes from the CLI,
        another worker or plain SQL show up as a different row count or
        latest timestamp for some table. Returns True when a reload ran.
        """
        with self._remote(db, "check state"):
            stored = store_stamps(db)
            if self.loaded and stored == self._cache_stamps():
                return False
            logger.info("state behind the store; reloading")
            self.refresh(db)
        return True

    # ---- cached reads ----
    def _rows(self, table: str) -> list:
        with self._lock:
            return list(self._tables[table].values())

    @property
    def devices(self) -> list[Device]:
        return sorted(self._rows("devices"), key=lambda d: d.created_at, reverse=True)

    @property
    def personnel(self) -> list[Personnel]:
        return sorted(self._rows("personnel"), key=lambda p: p.created_at, reverse=True)

    @property
    def assignments(self) -> list[Assignment]:
        return sorted(self._rows("assignments"), key=lambda a: a.assigned_date, reverse=True)

    @property
    def inventory_items(self) -> list[InventoryItem]:
        return sorted(self._rows("inventory_items"), key=lambda i: i.created_at, reverse=True)

    @property
    def maintenance_records(self) -> list[MaintenanceRecord]:
        return sorted(self._rows("inventory_maintenance"), key=lambda r: r.created_at, reverse=True)

    @property
    def audit_records(self) -> list[AuditRecord]:
        return sorted(self._rows("inventory_audit"), key=lambda r: r.created_at, reverse=True)

    def cached(self, table: str, row_id: str):
        with self._lock:
            return self._tables[table].get(row_id)

    # ---- alerts ----
    def alerts(self, *, include_acknowledged: bool = False) -> list[StockAlert]:
        result = generate_alerts(self.inventory_items, self.thresholds)
        for alert in result:
            alert.acknowledged = alert.id in self.acknowledged_alerts
        if include_acknowledged:
            return result
        return [a for a in result if not a.acknowledged]

    def acknowledge_alert(self, alert_id: str) -> None:
        self.acknowledged_alerts.add(alert_id)

    def set_threshold(self, threshold: StockThreshold) -> None:
        with self._lock:
            self.thresholds = [t for t in self.thresholds if t.category != threshold.category]
            self.thresholds.append(threshold)

    # ---- writes ----
    @contextmanager
    def _remote(self, db: Session, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("store call failed action=%s", action)
            raise RemoteFailure(f"{action} failed; please try again") from e
        except Exception:
            db.rollback()
            raise

    def add_device(self, db: Session, body: DeviceIn) -> Device:
        if crud.serial_number_exists(db, body.serial_number):
            raise InvalidStateError("serial number already exists")
        with self._remote(db, "add device"):
            return crud.create_device(db, body)

    def update_device(self, db: Session, device_id: str, body: DeviceUpdate) -> Device:
        if body.serial_number and crud.serial_number_exists(db, body.serial_number, exclude_device_id=device_id):
            raise InvalidStateError("serial number already exists")
        with self._remote(db, "update device"):
            updated = crud.update_device(db, device_id, body)
        if not updated:
            raise NotFoundError("device not found")
        return updated

    def delete_device(self, db: Session, device_id: str, confirm: Confirm) -> bool:
        """Returns False when the user declines."""
        if not crud.get_device(db, device_id):
            raise NotFoundError("device not found")
        if not confirm("Bu cihazı silmek istediğinizden emin misiniz?"):
            logger.info("delete declined device_id=%s", device_id)
            return False
        with self._remote(db, "delete device"):
            return crud.delete_device(db, device_id)

    def add_personnel(self, db: Session, body: PersonnelIn) -> Personnel:
        with self._remote(db, "add personnel"):
            return crud.create_personnel(db, body)

    def update_personnel(self, db: Session, personnel_id: str, body: PersonnelUpdate) -> Personnel:
        with self._remote(db, "update personnel"):
            updated = crud.update_personnel(db, personnel_id, body)
        if not updated:
            raise NotFoundError("personnel not found")
        return updated

    def delete_personnel(self, db: Session, personnel_id: str, confirm: Confirm) -> bool:
        if not crud.get_personnel(db, personnel_id):
            raise NotFoundError("personnel not found")
        if not confirm("Bu personeli silmek istediğinizden emin misiniz?"):
            logger.info("delete declined personnel_id=%s", personnel_id)
            return False
        with self._remote(db, "delete personnel"):
            return crud.delete_personnel(db, personnel_id)

    def assign_device(self, db: Session, device_id: str, personnel_id: str, notes: Optional[str] = None) -> Assignment:
        with self._remote(db, "assign device"):
            return crud.assign_device(db, device_id, personnel_id, notes)

    def return_device(self, db: Session, assignment_id: str) -> Assignment:
        with self._remote(db, "return device"):
            return crud.return_device(db, assignment_id)

    def run(self, db: Session, action: str, fn: Callable[..., T], *args, **kwargs) -> T:
        """Run any store call with the same rollback/logging policy."""
        with self._remote(db, action):
            return fn(db, *args, **kwargs)

    def delete_inventory_item(self, db: Session, item_id: str, confirm: Confirm) -> bool:
        if not inventory_crud.get_inventory_item(db, item_id):
            raise NotFoundError("inventory item not found")
        if not confirm("Bu envanter öğesini silmek istediğinizden emin misiniz?"):
            logger.info("delete declined item_id=%s", item_id)
            return False
        with self._remote(db, "delete inventory item"):
            return inventory_crud.delete_inventory_item(db, item_id)

    def delete_supplier(self, db: Session, supplier_id: str, confirm: Confirm) -> bool:
        if not inventory_crud.get_supplier(db, supplier_id):
            raise NotFoundError("supplier not found")
        if not confirm("Bu tedarikçiyi silmek istediğinizden emin misiniz?"):
            logger.info("delete declined supplier_id=%s", supplier_id)
            return False
        with self._remote(db, "delete supplier"):
            return inventory_crud.delete_supplier(db, supplier_id)
