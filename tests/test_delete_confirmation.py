import pytest

from errors import InvalidStateError, NotFoundError
from models import DeviceIn, PersonnelIn


def _device(client, serial="DL001"):
    r = client.post("/devices", json={"brand": "Dell", "category": "Laptop", "serialNumber": serial})
    assert r.status_code == 201, r.text
    return r.json()


def test_api_delete_without_confirm_is_428_and_keeps_device(client):
    d = _device(client)
    r = client.delete(f"/devices/{d['id']}")
    assert r.status_code == 428
    assert client.get(f"/devices/{d['id']}").status_code == 200


def test_api_delete_with_confirm(client):
    d = _device(client)
    r = client.delete(f"/devices/{d['id']}?confirm=true")
    assert r.status_code == 204
    assert client.get(f"/devices/{d['id']}").status_code == 404


def test_api_delete_unknown_device_is_404(client):
    r = client.delete("/devices/missing?confirm=true")
    assert r.status_code == 404


def test_delete_assigned_device_is_rejected(client):
    d = _device(client)
    p = client.post("/personnel", json={"name": "Ahmet Yılmaz", "department": "CRM"}).json()
    client.post("/assignments", json={"deviceId": d["id"], "personnelId": p["id"]})

    r = client.delete(f"/devices/{d['id']}?confirm=true")
    assert r.status_code == 409
    r = client.delete(f"/personnel/{p['id']}?confirm=true")
    assert r.status_code == 409


def test_store_declined_confirmation_leaves_cache_unchanged(store, db_session):
    device = store.add_device(db_session, DeviceIn(brand="Dell", category="Laptop", serial_number="DL001"))
    before = [d.id for d in store.devices]
    prompts = []

    def decline(message):
        prompts.append(message)
        return False

    assert store.delete_device(db_session, device.id, decline) is False
    assert prompts
    assert [d.id for d in store.devices] == before


def test_store_confirmed_delete_removes_from_cache(store, db_session):
    person = store.add_personnel(db_session, PersonnelIn(name="Ayşe Demir", department="İK"))
    assert store.cached("personnel", person.id) is not None

    assert store.delete_personnel(db_session, person.id, lambda _m: True) is True
    assert store.cached("personnel", person.id) is None


def test_store_delete_unknown_raises_before_prompt(store, db_session):
    def never(_message):
        raise AssertionError("prompt should not be shown")

    with pytest.raises(NotFoundError):
        store.delete_device(db_session, "missing", never)


def test_store_duplicate_serial(store, db_session):
    store.add_device(db_session, DeviceIn(brand="Dell", category="Laptop", serial_number="DL001"))
    with pytest.raises(InvalidStateError):
        store.add_device(db_session, DeviceIn(brand="HP", category="Laptop", serial_number="DL001"))


def test_ui_delete_requires_checkbox(client):
    d = _device(client)
    r = client.post(f"/ui/devices/{d['id']}/delete", data={}, follow_redirects=False)
    assert r.status_code == 303
    assert "error=" in r.headers["location"]
    assert client.get(f"/devices/{d['id']}").status_code == 200

    r = client.post(f"/ui/devices/{d['id']}/delete", data={"confirm": "on"}, follow_redirects=False)
    assert r.status_code == 303
    assert client.get(f"/devices/{d['id']}").status_code == 404
