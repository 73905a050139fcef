from datetime import date, timedelta

from sqlalchemy.exc import OperationalError

import inventory_crud
from models import InventoryItemIn


def _item(client, serial, category="Laptop", status="in_stock", **extra):
    body = {
        "itemName": f"{category} {serial}",
        "serialNumber": serial,
        "category": category,
        "locationDepartment": "Ön Büro",
        "currentStatus": status,
        **extra,
    }
    r = client.post("/inventory/items", json=body)
    assert r.status_code == 201, r.text
    return r.json()


def test_create_and_update_write_audit_rows(client):
    item = _item(client, "LP-1", purchasePrice=25000)

    r = client.patch(f"/inventory/items/{item['id']}", json={"locationDepartment": "İK"})
    assert r.status_code == 200, r.text
    assert r.json()["locationDepartment"] == "İK"

    audit = client.get(f"/inventory/items/{item['id']}/audit").json()
    actions = sorted(a["action"] for a in audit)
    assert actions == ["CREATE", "UPDATE"]
    update = next(a for a in audit if a["action"] == "UPDATE")
    assert update["oldValues"]["locationDepartment"] == "Ön Büro"
    assert update["newValues"] == {"locationDepartment": "İK"}
    assert update["changedBy"] == "Sistem Yöneticisi"


def test_audit_failure_does_not_fail_item_write(db_session, monkeypatch):
    real_commit = db_session.commit
    calls = {"n": 0}

    def flaky_commit():
        calls["n"] += 1
        # first commit stores the item, second one is the audit row
        if calls["n"] == 2:
            raise OperationalError("INSERT INTO inventory_audit", {}, Exception("locked"))
        return real_commit()

    monkeypatch.setattr(db_session, "commit", flaky_commit)
    created = inventory_crud.create_inventory_item(
        db_session,
        InventoryItemIn(item_name="Monitör A", serial_number="MN-1", category="Monitör"),
    )
    monkeypatch.undo()

    assert inventory_crud.get_inventory_item(db_session, created.id) is not None
    assert inventory_crud.list_audit_records(db_session, item_id=created.id) == []


def test_delete_item_requires_confirm_and_is_audited(client):
    item = _item(client, "LP-1")
    assert client.delete(f"/inventory/items/{item['id']}").status_code == 428
    assert client.delete(f"/inventory/items/{item['id']}?confirm=true").status_code == 204
    assert client.get(f"/inventory/items/{item['id']}").status_code == 404

    actions = [a["action"] for a in client.get("/inventory/audit").json()]
    assert "DELETE" in actions


def test_defective_then_repaired_completes_open_record(client):
    item = _item(client, "LP-1")

    r = client.post(f"/inventory/items/{item['id']}/defective", json={"reason": "Ekran kırık"})
    assert r.status_code == 201, r.text
    record = r.json()
    assert record["status"] == "scheduled"
    assert record["maintenanceType"] == "repair"
    assert record["description"] == "Arızalı olarak işaretlendi: Ekran kırık"
    assert client.get(f"/inventory/items/{item['id']}").json()["currentStatus"] == "defective"

    r = client.patch(f"/inventory/maintenance/{record['id']}", json={"status": "in_progress"})
    assert r.status_code == 200

    r = client.post(f"/inventory/items/{item['id']}/repaired")
    assert r.status_code == 200, r.text
    assert r.json()["currentStatus"] == "in_stock"

    records = client.get(f"/inventory/maintenance?item_id={item['id']}").json()
    assert records[0]["status"] == "completed"
    assert records[0]["completionDate"] is not None


def test_repaired_without_in_progress_record_leaves_scheduled(client):
    item = _item(client, "LP-1")
    client.post(f"/inventory/items/{item['id']}/defective", json={"reason": "Fan"})
    client.post(f"/inventory/items/{item['id']}/repaired")

    records = client.get(f"/inventory/maintenance?item_id={item['id']}").json()
    assert [r["status"] for r in records] == ["scheduled"]


def test_defective_unknown_item_is_404(client):
    r = client.post("/inventory/items/missing/defective", json={"reason": "x"})
    assert r.status_code == 404


def test_maintenance_for_unknown_item_is_404(client):
    body = {
        "inventoryItemId": "missing",
        "maintenanceType": "inspection",
        "description": "Kontrol",
        "startDate": "2024-01-01T09:00:00",
    }
    assert client.post("/inventory/maintenance", json=body).status_code == 404


def test_low_stock_alerts_and_acknowledge(client):
    for i in range(2):
        _item(client, f"LP-{i}")
    _item(client, "LP-X", status="defective")

    alerts = client.get("/inventory/alerts").json()
    by_id = {a["id"]: a for a in alerts}
    laptop = by_id["low-stock-Laptop"]
    # 2 in stock, minimum 5: below min but not below half
    assert laptop["severity"] == "medium"
    assert by_id["low-stock-Masaüstü"]["severity"] == "high"

    r = client.post("/inventory/alerts/low-stock-Laptop/acknowledge")
    assert r.status_code == 204
    active_ids = {a["id"] for a in client.get("/inventory/alerts").json()}
    assert "low-stock-Laptop" not in active_ids
    all_ids = {a["id"] for a in client.get("/inventory/alerts?include_acknowledged=true").json()}
    assert "low-stock-Laptop" in all_ids


def test_threshold_override_changes_alerts(client):
    _item(client, "YZ-1", category="Yazıcı")
    client.put("/inventory/thresholds", json={"category": "Yazıcı", "minQuantity": 1, "warningDays": 90})

    ids = {a["id"] for a in client.get("/inventory/alerts").json()}
    assert "low-stock-Yazıcı" not in ids
    thresholds = {t["category"]: t["minQuantity"] for t in client.get("/inventory/thresholds").json()}
    assert thresholds["Yazıcı"] == 1


def test_warranty_alert_window(client):
    soon = (date.today() + timedelta(days=5)).isoformat()
    later = (date.today() + timedelta(days=200)).isoformat()
    expired = (date.today() - timedelta(days=1)).isoformat()
    a = _item(client, "LP-1", warrantyEndDate=soon)
    _item(client, "LP-2", warrantyEndDate=later)
    _item(client, "LP-3", warrantyEndDate=expired)

    warranty = [x for x in client.get("/inventory/alerts").json() if x["alertType"] == "warranty_expiring"]
    assert [w["itemId"] for w in warranty] == [a["id"]]
    assert warranty[0]["severity"] == "high"


def test_inventory_report(client):
    _item(client, "LP-1", purchasePrice=20000, warrantyEndDate=(date.today() + timedelta(days=10)).isoformat())
    _item(client, "MN-1", category="Monitör", purchasePrice=5000)

    report = client.get("/reports/inventory").json()
    assert report["costAnalysis"]["totalValue"] == 25000
    assert report["costAnalysis"]["averageValue"] == 12500
    assert report["warrantyAnalysis"] == {"expiring": 1, "expired": 0, "valid": 0}
    categories = {c["category"]: c["count"] for c in report["categoryDistribution"]}
    assert categories == {"Laptop": 1, "Monitör": 1}


def test_patch_rejects_null_for_required_fields(client):
    item = _item(client, "LP-1", purchasePrice=1000)

    assert client.patch(f"/inventory/items/{item['id']}", json={"category": None}).status_code == 422
    r = client.patch(f"/inventory/items/{item['id']}", json={"purchasePrice": None})
    assert r.status_code == 200
    assert r.json()["purchasePrice"] is None

    record = client.post(f"/inventory/items/{item['id']}/defective", json={"reason": "Fan"}).json()
    assert client.patch(f"/inventory/maintenance/{record['id']}", json={"description": None}).status_code == 422
