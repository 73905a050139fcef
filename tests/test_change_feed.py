from datetime import datetime

import crud
import realtime
from models import DeviceIn, DeviceUpdate, PersonnelIn
from state import AppState


def test_events_published_on_commit_only(app_module, db_session):
    seen = []
    unsubscribe = realtime.feed.subscribe("devices", seen.append)
    try:
        crud.create_device(
            db_session, DeviceIn(brand="Dell", category="Laptop", serial_number="DL001"), commit=False
        )
        assert seen == []
        db_session.rollback()
        assert seen == []

        created = crud.create_device(db_session, DeviceIn(brand="Dell", category="Laptop", serial_number="DL002"))
        assert [(e.type, e.id) for e in seen] == [("INSERT", created.id)]
        assert seen[0].row["serial_number"] == "DL002"
    finally:
        unsubscribe()


def test_update_and_delete_events(app_module, db_session):
    created = crud.create_device(db_session, DeviceIn(brand="Dell", category="Laptop", serial_number="DL001"))
    seen = []
    unsubscribe = realtime.feed.subscribe("devices", seen.append)
    try:
        crud.update_device(db_session, created.id, DeviceUpdate(status="maintenance"))
        crud.delete_device(db_session, created.id)
    finally:
        unsubscribe()

    assert [e.type for e in seen] == ["UPDATE", "DELETE"]
    assert seen[0].row["status"] == "maintenance"


def test_unsubscribed_listener_is_not_called(app_module, db_session):
    seen = []
    unsubscribe = realtime.feed.subscribe("personnel", seen.append)
    unsubscribe()
    crud.create_personnel(db_session, PersonnelIn(name="Ahmet Yılmaz", department="CRM"))
    assert seen == []


def test_failing_listener_does_not_block_others(app_module, db_session):
    seen = []

    def broken(_change):
        raise ValueError("listener bug")

    u1 = realtime.feed.subscribe("personnel", broken)
    u2 = realtime.feed.subscribe("personnel", seen.append)
    try:
        crud.create_personnel(db_session, PersonnelIn(name="Ahmet Yılmaz", department="CRM"))
    finally:
        u1()
        u2()
    assert len(seen) == 1


def test_state_merges_assignment_writes_without_reload(app_module, db_session, store, monkeypatch):
    device = crud.create_device(db_session, DeviceIn(brand="Dell", category="Laptop", serial_number="DL001"))
    person = crud.create_personnel(db_session, PersonnelIn(name="Ahmet Yılmaz", department="CRM"))

    def no_reload(_db):
        raise AssertionError("full reload is not expected")

    monkeypatch.setattr(store, "refresh", no_reload)

    a = crud.assign_device(db_session, device.id, person.id)
    assert store.cached("devices", device.id).status == "assigned"
    assert store.cached("devices", device.id).assigned_to == "Ahmet Yılmaz"
    assert store.cached("personnel", person.id).assigned_devices == [device.id]
    assert store.cached("assignments", a.id).status == "active"

    crud.return_device(db_session, a.id)
    assert store.cached("assignments", a.id).status == "returned"
    assert store.cached("assignments", a.id).returned_date is not None
    assert store.cached("devices", device.id).status == "available"
    assert store.cached("personnel", person.id).assigned_devices == []


def test_fresh_state_refresh_loads_everything(app_module, db_session):
    crud.create_device(db_session, DeviceIn(brand="Dell", category="Laptop", serial_number="DL001"))
    crud.create_personnel(db_session, PersonnelIn(name="Ahmet Yılmaz", department="CRM"))

    fresh = AppState()
    assert fresh.loaded is False
    fresh.refresh(db_session)
    assert fresh.loaded is True
    assert [d.serial_number for d in fresh.devices] == ["DL001"]
    assert [p.name for p in fresh.personnel] == ["Ahmet Yılmaz"]


def test_apply_handles_unknown_table_and_delete(app_module):
    fresh = AppState()
    now = datetime(2024, 1, 1)
    row = {
        "id": "d1",
        "brand": "Dell",
        "category": "Laptop",
        "serial_number": "DL001",
        "status": "available",
        "specifications": {},
        "created_at": now,
        "updated_at": now,
    }
    fresh.apply(realtime.ChangeEvent("devices", "INSERT", "d1", row))
    fresh.apply(realtime.ChangeEvent("suppliers", "INSERT", "s1", {}))
    assert fresh.cached("devices", "d1").brand == "Dell"

    fresh.apply(realtime.ChangeEvent("devices", "DELETE", "d1"))
    assert fresh.devices == []


def test_detached_state_stops_merging(app_module, db_session):
    fresh = AppState(realtime.feed)
    fresh.detach()
    crud.create_personnel(db_session, PersonnelIn(name="Ahmet Yılmaz", department="CRM"))
    assert fresh.personnel == []
