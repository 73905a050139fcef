from __future__ import annotations

import logging
from datetime import datetime, timezone

from typing import Optional
from uuid import uuid4

from sqlalchemy import select, func, or_, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from errors import InvalidStateError, NotFoundError
from filter_helpers import normalize_limit, normalize_offset
from models import (
    Assignment,
    Device,
    DeviceIn,
    DeviceUpdate,
    Personnel,
    PersonnelIn,
    PersonnelUpdate,
)
from orm import AssignmentORM, DeviceORM, PersonnelORM

logger = logging.getLogger("app.crud")

ALLOWED_SORTS = {
    "serial_number": DeviceORM.serial_number,
    "brand": DeviceORM.brand,
    "category": DeviceORM.category,
    "status": DeviceORM.status,
    "created_at": DeviceORM.created_at,
    "updated_at": DeviceORM.updated_at,
}

def utcnow() -> datetime:
    # naive UTC; SQLite drops the offset and cached rows must compare with loaded ones
    return datetime.now(timezone.utc).replace(tzinfo=None)

def persist(db: Session, *, commit: bool) -> None:
    if commit:
        db.commit()
    else:
        db.flush()

def _device_to_schema(d: DeviceORM) -> Device:
    return Device.model_validate(d)

def _personnel_to_schema(p: PersonnelORM) -> Personnel:
    return Personnel.model_validate(p)

def _assignment_to_schema(a: AssignmentORM) -> Assignment:
    return Assignment.model_validate(a)


# ---------- Device ----------
def serial_number_exists(db: Session, serial_number: str, exclude_device_id: Optional[str] = None) -> bool:
    stmt = select(DeviceORM).where(DeviceORM.serial_number == serial_number)
    if exclude_device_id:
        stmt = stmt.where(DeviceORM.id != exclude_device_id)
    return db.execute(stmt).first() is not None


def get_device(db: Session, device_id: str) -> Optional[Device]:
    row = db.get(DeviceORM, device_id)
    return _device_to_schema(row) if row else None


def list_devices(db: Session) -> list[Device]:
    rows = db.execute(select(DeviceORM).order_by(DeviceORM.created_at.desc())).scalars().all()
    return [_device_to_schema(d) for d in rows]


def create_device(db: Session, body: DeviceIn, *, commit: bool = True) -> Device:
    if body.status == "assigned":
        raise InvalidStateError("devices become assigned only through an assignment")

    now = utcnow()
    d = DeviceORM(
        id=str(uuid4()),
        brand=body.brand,
        category=body.category,
        serial_number=body.serial_number,
        status=body.status,
        assigned_to=None,
        assigned_date=None,
        specifications=body.specifications.model_dump(exclude_none=True),
        maintenance_date=body.maintenance_date,
        created_at=now,
        updated_at=now,
    )
    db.add(d)
    persist(db, commit=commit)
    if commit:
        db.refresh(d)
    return _device_to_schema(d)


def update_device(db: Session, device_id: str, body: DeviceUpdate, *, commit: bool = True) -> Optional[Device]:
    d = db.get(DeviceORM, device_id)
    if not d:
        return None

    data = body.model_dump(exclude_unset=True)
    new_status = data.get("status")
    if new_status is not None and new_status != d.status:
        if new_status == "assigned" or d.status == "assigned":
            raise InvalidStateError("use assign/return to move a device into or out of 'assigned'")

    if "specifications" in data:
        specs = body.specifications.model_dump(exclude_none=True) if body.specifications else {}
        d.specifications = specs
        data.pop("specifications")

    for k, v in data.items():
        setattr(d, k, v)

    d.updated_at = utcnow()

    persist(db, commit=commit)
    if commit:
        db.refresh(d)
    return _device_to_schema(d)


def delete_device(db: Session, device_id: str, *, commit: bool = True) -> bool:
    d = db.get(DeviceORM, device_id)
    if not d:
        return False
    if d.status == "assigned":
        raise InvalidStateError("device is assigned; return it before deleting")

    db.delete(d)
    persist(db, commit=commit)
    return True


def build_devices_query(q: str | None, status: str | None, category: str | None):
    stmt = select(DeviceORM)

    if q:
        like = f"%{q}%"
        stmt = stmt.where(
            or_(
                DeviceORM.brand.ilike(like),
                DeviceORM.serial_number.ilike(like),
                DeviceORM.category.ilike(like),
                DeviceORM.assigned_to.ilike(like),
            )
        )
    if status:
        stmt = stmt.where(DeviceORM.status == status)

    if category:
        stmt = stmt.where(DeviceORM.category == category)

    return stmt


def devices_meta(
    db: Session,
    *,
    q: str | None,
    status: str | None,
    category: str | None,
    limit: int,
    offset: int,
) -> dict:
    limit = normalize_limit(limit)
    offset = normalize_offset(offset)

    total = count_devices_filtered(db, q=q, status=status, category=category)
    total_pages = max(1, (total + limit - 1) // limit)

    return {
        "total": total,
        "limit": limit,
        "offset": offset,
        "total_pages": total_pages,
    }

def count_devices_filtered(db: Session, *, q: str | None, status: str | None, category: str | None) -> int:
    stmt = build_devices_query(q, status, category)
    count_stmt = select(func.count()).select_from(stmt.subquery())
    return int(db.execute(count_stmt).scalar_one())

def list_devices_filtered(
    db: Session,
    *,
    q: str | None,
    status: str | None,
    category: str | None,
    sort: str,
    order: str,
    limit: int,
    offset: int,
) -> list[Device]:
    stmt = build_devices_query(q, status, category)

    col = ALLOWED_SORTS.get(sort, DeviceORM.created_at)
    desc = (order or "").lower() == "desc"
    stmt = stmt.order_by(col.desc() if desc else col.asc())

    stmt = stmt.limit(limit).offset(offset)
    rows = db.execute(stmt).scalars().all()
    return [_device_to_schema(d) for d in rows]


# ---------- Personnel ----------
def get_personnel(db: Session, personnel_id: str) -> Optional[Personnel]:
    row = db.get(PersonnelORM, personnel_id)
    return _personnel_to_schema(row) if row else None


def list_personnel(db: Session, *, q: str | None = None, department: str | None = None) -> list[Personnel]:
    stmt = select(PersonnelORM)
    if q:
        like = f"%{q}%"
        stmt = stmt.where(
            or_(
                PersonnelORM.name.ilike(like),
                PersonnelORM.email.ilike(like),
                PersonnelORM.title.ilike(like),
            )
        )
    if department:
        stmt = stmt.where(PersonnelORM.department == department)
    rows = db.execute(stmt.order_by(PersonnelORM.created_at.desc())).scalars().all()
    return [_personnel_to_schema(p) for p in rows]


def find_personnel_by_name(db: Session, name: str) -> Optional[Personnel]:
    """Case-insensitive exact name match.

    Compared with ``str.casefold`` in Python; SQLite's ``lower()`` only folds
    ASCII and would miss names such as "Şule" or "İbrahim".
    """
    key = (name or "").strip().casefold()
    if not key:
        return None
    rows = db.execute(select(PersonnelORM).order_by(PersonnelORM.created_at.asc())).scalars()
    for row in rows:
        if row.name.strip().casefold() == key:
            return _personnel_to_schema(row)
    return None


def create_personnel(db: Session, body: PersonnelIn, *, commit: bool = True) -> Personnel:
    now = utcnow()
    p = PersonnelORM(
        id=str(uuid4()),
        name=body.name.strip(),
        department=body.department,
        title=body.title,
        email=body.email,
        phone=body.phone,
        assigned_devices=[],
        assignment_history=[],
        created_at=now,
        updated_at=now,
    )
    db.add(p)
    persist(db, commit=commit)
    if commit:
        db.refresh(p)
    return _personnel_to_schema(p)


def update_personnel(
    db: Session,
    personnel_id: str,
    body: PersonnelUpdate,
    *,
    cascade_devices: bool = True,
    commit: bool = True,
) -> Optional[Personnel]:
    p = db.get(PersonnelORM, personnel_id)
    if not p:
        return None

    old_name = p.name
    now = utcnow()
    data = body.model_dump(exclude_unset=True)
    for k, v in data.items():
        if v is not None:
            setattr(p, k, v)
    p.updated_at = now

    # devices carry the holder's name; keep it in step with a rename
    if cascade_devices and p.name != old_name and p.assigned_devices:
        held = db.execute(
            select(DeviceORM).where(DeviceORM.id.in_(p.assigned_devices))
        ).scalars().all()
        for d in held:
            d.assigned_to = p.name
            d.updated_at = now

    persist(db, commit=commit)
    if commit:
        db.refresh(p)
    return _personnel_to_schema(p)


def delete_personnel(db: Session, personnel_id: str, *, commit: bool = True) -> bool:
    p = db.get(PersonnelORM, personnel_id)
    if not p:
        return False
    if p.assigned_devices:
        raise InvalidStateError("personnel still holds devices; return them before deleting")

    db.delete(p)
    persist(db, commit=commit)
    return True


# ---------- Assignment ----------
def get_assignment(db: Session, assignment_id: str) -> Optional[Assignment]:
    row = db.get(AssignmentORM, assignment_id)
    return _assignment_to_schema(row) if row else None


def list_assignments(
    db: Session,
    *,
    status: str | None = None,
    device_id: str | None = None,
    personnel_id: str | None = None,
) -> list[Assignment]:
    stmt = select(AssignmentORM)
    if status:
        stmt = stmt.where(AssignmentORM.status == status)
    if device_id:
        stmt = stmt.where(AssignmentORM.device_id == device_id)
    if personnel_id:
        stmt = stmt.where(AssignmentORM.personnel_id == personnel_id)
    rows = db.execute(stmt.order_by(AssignmentORM.assigned_date.desc())).scalars().all()
    return [_assignment_to_schema(a) for a in rows]


def get_active_assignment(db: Session, device_id: str) -> Optional[Assignment]:
    stmt = (
        select(AssignmentORM)
        .where(AssignmentORM.device_id == device_id, AssignmentORM.status == "active")
        .order_by(AssignmentORM.assigned_date.desc())
        .limit(1)
    )
    row = db.execute(stmt).scalars().first()
    return _assignment_to_schema(row) if row else None


def _sync_holdings(db: Session, personnel_id: str) -> Optional[PersonnelORM]:
    """Rebuild a person's held devices and assignment history from the assignment rows.

    Runs inside the caller's transaction after its own writes are flushed. The
    personnel row is re-read (FOR UPDATE where the database supports it), so a
    concurrent assign or return for the same person is never overwritten by a
    stale copy of the lists.
    """
    db.flush()
    p = db.execute(
        select(PersonnelORM)
        .where(PersonnelORM.id == personnel_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if p is None:
        return None

    rows = db.execute(
        select(AssignmentORM.id, AssignmentORM.device_id, AssignmentORM.status)
        .where(AssignmentORM.personnel_id == personnel_id)
        .order_by(AssignmentORM.assigned_date.asc(), AssignmentORM.id.asc())
    ).all()
    held: list[str] = []
    for r in rows:
        if r.status == "active" and r.device_id not in held:
            held.append(r.device_id)
    p.assigned_devices = held
    p.assignment_history = [r.id for r in rows]
    return p


def assign_device(
    db: Session,
    device_id: str,
    personnel_id: str,
    notes: Optional[str] = None,
    *,
    commit: bool = True,
) -> Assignment:
    """Check a device out to a staff member.

    The assignment row, the device row and the personnel row are written in
    one transaction. The device moves to ``assigned`` through a conditional
    UPDATE, so two callers racing for the same device cannot both win.
    """
    d = db.get(DeviceORM, device_id)
    p = db.get(PersonnelORM, personnel_id)
    if not d or not p:
        raise NotFoundError("device or personnel not found")
    if d.status != "available":
        raise InvalidStateError("device not assignable")

    now = utcnow()
    result = db.execute(
        update(DeviceORM)
        .where(DeviceORM.id == device_id, DeviceORM.status == "available")
        .values(status="assigned")
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidStateError("device not assignable")

    d = db.execute(
        select(DeviceORM)
        .where(DeviceORM.id == device_id)
        .execution_options(populate_existing=True)
    ).scalar_one()

    a = AssignmentORM(
        id=str(uuid4()),
        device_id=device_id,
        personnel_id=personnel_id,
        assigned_date=now,
        returned_date=None,
        status="active",
        notes=notes or None,
    )
    db.add(a)

    d.assigned_to = p.name
    d.assigned_date = now
    d.updated_at = now

    p = _sync_holdings(db, personnel_id)
    p.updated_at = now

    persist(db, commit=commit)
    logger.info("assigned device_id=%s personnel_id=%s assignment_id=%s", device_id, personnel_id, a.id)
    return _assignment_to_schema(a)


def return_device(db: Session, assignment_id: str, *, commit: bool = True) -> Assignment:
    a = db.get(AssignmentORM, assignment_id)
    if not a:
        raise NotFoundError("assignment not found")
    if a.status != "active":
        raise InvalidStateError("assignment already returned")

    now = utcnow()
    result = db.execute(
        update(AssignmentORM)
        .where(AssignmentORM.id == assignment_id, AssignmentORM.status == "active")
        .values(status="returned", returned_date=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidStateError("assignment already returned")

    a = db.execute(
        select(AssignmentORM)
        .where(AssignmentORM.id == assignment_id)
        .execution_options(populate_existing=True)
    ).scalar_one()
    # the status flip above skips the unit of work; flag it so the change feed sees it
    flag_modified(a, "status")

    d = db.get(DeviceORM, a.device_id)
    if d:
        d.status = "available"
        d.assigned_to = None
        d.assigned_date = None
        d.updated_at = now
    else:
        logger.warning("return: device_id=%s missing for assignment_id=%s", a.device_id, assignment_id)

    p = _sync_holdings(db, a.personnel_id)
    if p:
        p.updated_at = now
    else:
        logger.warning("return: personnel_id=%s missing for assignment_id=%s", a.personnel_id, assignment_id)

    persist(db, commit=commit)
    logger.info("returned assignment_id=%s device_id=%s", assignment_id, a.device_id)
    return _assignment_to_schema(a)


# ---------- Import ----------
def bulk_import_devices(db: Session, rows: list[dict[str, str]]) -> dict:
    """
    rows: [{"brand": "...", "category": "...", "serial_number": "...", "status": "available",
            "ram": "...", "processor": "...", "generation": "...",
            "assigned_to": "...", "department": "...", "notes": "..."}]

    Rows marked ``assigned`` are created as available and then checked out
    to the named person, who is created when missing and a department is given.
    """
    created = 0
    skipped = 0
    assigned = 0
    errors: list[str] = []

    try:
        # line 1 is the header
        for idx, r in enumerate(rows, start=2):
            brand = (r.get("brand") or "").strip()
            category = (r.get("category") or "").strip()
            serial_number = (r.get("serial_number") or "").strip()
            status = (r.get("status") or "available").strip() or "available"
            assigned_to = (r.get("assigned_to") or "").strip()
            department = (r.get("department") or "").strip()
            notes = (r.get("notes") or "").strip() or None

            row_errors = []
            if not brand:
                row_errors.append("brand is empty")
            if not category:
                row_errors.append("category is empty")
            if not serial_number:
                row_errors.append("serial_number is empty")
            if status == "assigned" and not assigned_to:
                row_errors.append("assigned rows need a person name")
            if row_errors:
                errors.append(f"row {idx}: {', '.join(row_errors)}")
                continue

            if serial_number_exists(db, serial_number):
                skipped += 1
                continue

            body = DeviceIn(
                brand=brand,
                category=category,
                serial_number=serial_number,
                status="available" if status == "assigned" else status,  # type: ignore[arg-type]
                specifications={
                    "ram": (r.get("ram") or "").strip() or None,
                    "processor": (r.get("processor") or "").strip() or None,
                    "generation": (r.get("generation") or "").strip() or None,
                },
            )
            device = create_device(db, body, commit=False)
            created += 1

            if status != "assigned":
                continue

            person = find_personnel_by_name(db, assigned_to)
            if not person and department:
                person = create_personnel(
                    db,
                    PersonnelIn(
                        name=assigned_to,
                        department=department,
                        title="Çalışan",
                        email=f"{'.'.join(assigned_to.lower().split())}@otel.com",
                        phone="+90-555-0000",
                    ),
                    commit=False,
                )
            if not person:
                errors.append(f"row {idx}: personnel '{assigned_to}' not found and no department given")
                continue

            assign_device(db, device.id, person.id, notes, commit=False)
            assigned += 1
        db.commit()
    except Exception:
        db.rollback()
        raise

    return {"created": created, "skipped": skipped, "assigned": assigned, "errors": errors}
