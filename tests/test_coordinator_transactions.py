import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

import crud
import orm
from errors import InvalidStateError, RemoteFailure
from models import DeviceIn, PersonnelIn


def _setup(db_session):
    device = crud.create_device(db_session, DeviceIn(brand="Dell", category="Laptop", serial_number="DL001"))
    p1 = crud.create_personnel(db_session, PersonnelIn(name="Ahmet Yılmaz", department="CRM"))
    p2 = crud.create_personnel(db_session, PersonnelIn(name="Ayşe Demir", department="İK"))
    return device, p1, p2


def test_stale_session_cannot_assign(app_module, db_session):
    device, p1, p2 = _setup(db_session)

    stale = app_module.SessionLocal()
    try:
        # load the device while it is still available
        assert stale.get(orm.DeviceORM, device.id).status == "available"

        crud.assign_device(db_session, device.id, p1.id)

        with pytest.raises(InvalidStateError):
            crud.assign_device(stale, device.id, p2.id)
        stale.rollback()
    finally:
        stale.close()

    db_session.expire_all()
    rows = db_session.execute(select(orm.AssignmentORM).where(orm.AssignmentORM.device_id == device.id)).scalars().all()
    assert len(rows) == 1
    assert rows[0].personnel_id == p1.id


def test_failure_in_personnel_write_rolls_back_everything(db_session, store, monkeypatch):
    device, p1, _ = _setup(db_session)

    def boom(*args, **kwargs):
        raise OperationalError("UPDATE personnel", {}, Exception("disk I/O error"))

    monkeypatch.setattr(crud, "_sync_holdings", boom)

    with pytest.raises(RemoteFailure):
        store.assign_device(db_session, device.id, p1.id)

    db_session.expire_all()
    assert db_session.execute(select(orm.AssignmentORM)).scalars().all() == []
    d = db_session.get(orm.DeviceORM, device.id)
    assert d.status == "available"
    assert d.assigned_to is None
    assert store.cached("devices", device.id).status == "available"
    assert store.assignments == []


def test_non_store_error_is_rolled_back_and_propagated(db_session, store, monkeypatch):
    device, p1, _ = _setup(db_session)

    def boom(*args, **kwargs):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(crud, "_sync_holdings", boom)

    with pytest.raises(RuntimeError):
        store.assign_device(db_session, device.id, p1.id)

    db_session.expire_all()
    assert db_session.execute(select(orm.AssignmentORM)).scalars().all() == []
    assert db_session.get(orm.DeviceORM, device.id).status == "available"


def test_assign_commit_false_rollback_discards_all_writes(db_session):
    device, p1, _ = _setup(db_session)

    crud.assign_device(db_session, device.id, p1.id, commit=False)
    db_session.rollback()
    db_session.expire_all()

    assert crud.get_device(db_session, device.id).status == "available"
    assert crud.get_personnel(db_session, p1.id).assigned_devices == []
    assert crud.list_assignments(db_session) == []


def test_return_commit_false_rollback_keeps_assignment_active(db_session):
    device, p1, _ = _setup(db_session)
    a = crud.assign_device(db_session, device.id, p1.id)

    crud.return_device(db_session, a.id, commit=False)
    db_session.rollback()
    db_session.expire_all()

    loaded = crud.get_assignment(db_session, a.id)
    assert loaded.status == "active"
    assert loaded.returned_date is None
    assert crud.get_device(db_session, device.id).status == "assigned"
    assert crud.get_personnel(db_session, p1.id).assigned_devices == [device.id]


def test_create_device_commit_false_requires_manual_commit(db_session):
    created = crud.create_device(
        db_session, DeviceIn(brand="HP", category="Yazıcı", serial_number="HP001"), commit=False
    )
    db_session.commit()
    db_session.expire_all()

    loaded = crud.get_device(db_session, created.id)
    assert loaded is not None
    assert loaded.serial_number == "HP001"


def test_create_device_as_assigned_is_rejected(db_session):
    with pytest.raises(InvalidStateError):
        crud.create_device(
            db_session, DeviceIn(brand="HP", category="Yazıcı", serial_number="HP002", status="assigned")
        )


def _holdings_match_active_assignments(db_session, personnel_id):
    db_session.expire_all()
    p = db_session.get(orm.PersonnelORM, personnel_id)
    active = db_session.execute(
        select(orm.AssignmentORM.device_id).where(
            orm.AssignmentORM.personnel_id == personnel_id, orm.AssignmentORM.status == "active"
        )
    ).scalars().all()
    history = db_session.execute(
        select(orm.AssignmentORM.id).where(orm.AssignmentORM.personnel_id == personnel_id)
    ).scalars().all()
    return set(p.assigned_devices) == set(active) and set(p.assignment_history) == set(history)


def test_stale_personnel_copy_keeps_other_assignment(app_module, db_session):
    d1, person, _ = _setup(db_session)
    d2 = crud.create_device(db_session, DeviceIn(brand="HP", category="Laptop", serial_number="HP001"))

    other = app_module.SessionLocal()
    try:
        # the second session sees the person before the first assignment lands
        assert other.get(orm.PersonnelORM, person.id).assigned_devices == []

        crud.assign_device(db_session, d2.id, person.id)
        crud.assign_device(other, d1.id, person.id)
    finally:
        other.close()

    assert _holdings_match_active_assignments(db_session, person.id)
    assert set(crud.get_personnel(db_session, person.id).assigned_devices) == {d1.id, d2.id}


def test_stale_personnel_copy_during_return(app_module, db_session):
    d1, person, _ = _setup(db_session)
    d2 = crud.create_device(db_session, DeviceIn(brand="HP", category="Laptop", serial_number="HP001"))
    first = crud.assign_device(db_session, d1.id, person.id)

    other = app_module.SessionLocal()
    try:
        assert other.get(orm.PersonnelORM, person.id).assigned_devices == [d1.id]

        crud.assign_device(db_session, d2.id, person.id)
        crud.return_device(other, first.id)
    finally:
        other.close()

    assert _holdings_match_active_assignments(db_session, person.id)
    assert crud.get_personnel(db_session, person.id).assigned_devices == [d2.id]
