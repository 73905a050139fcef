def _create_device(client, serial, brand="Dell", category="Laptop", **extra):
    body = {"brand": brand, "category": category, "serialNumber": serial, **extra}
    r = client.post("/devices", json=body)
    assert r.status_code == 201, r.text
    return r.json()


def _create_personnel(client, name, department="CRM"):
    r = client.post("/personnel", json={"name": name, "department": department})
    assert r.status_code == 201, r.text
    return r.json()


def _assign(client, device_id, personnel_id, notes=None):
    return client.post("/assignments", json={"deviceId": device_id, "personnelId": personnel_id, "notes": notes})


def _check_invariants(client):
    devices = client.get("/devices?limit=500").json()
    personnel = client.get("/personnel").json()
    assignments = client.get("/assignments").json()

    active = [a for a in assignments if a["status"] == "active"]
    for d in devices:
        holders = [a for a in active if a["deviceId"] == d["id"]]
        if d["status"] == "assigned":
            assert len(holders) == 1
            assert d["assignedTo"]
        else:
            assert holders == []
            assert d["assignedTo"] is None

    for p in personnel:
        expected = {a["deviceId"] for a in active if a["personnelId"] == p["id"]}
        assert set(p["assignedDevices"]) == expected


def test_assign_scenario(client):
    d = _create_device(client, "DL001")
    p = _create_personnel(client, "Ahmet Yılmaz")

    r = _assign(client, d["id"], p["id"])
    assert r.status_code == 201, r.text
    assignment = r.json()
    assert assignment["status"] == "active"
    assert assignment["returnedDate"] is None

    device = client.get(f"/devices/{d['id']}").json()
    assert device["status"] == "assigned"
    assert device["assignedTo"] == "Ahmet Yılmaz"
    assert device["assignedDate"] is not None

    person = client.get(f"/personnel/{p['id']}").json()
    assert person["assignedDevices"] == [d["id"]]
    assert person["assignmentHistory"] == [assignment["id"]]

    active = client.get("/assignments?status=active").json()
    assert [a["id"] for a in active] == [assignment["id"]]
    _check_invariants(client)


def test_second_assign_fails_and_leaves_state(client):
    d = _create_device(client, "DL001")
    p1 = _create_personnel(client, "Ahmet Yılmaz")
    p2 = _create_personnel(client, "Ayşe Demir", department="İK")
    assert _assign(client, d["id"], p1["id"]).status_code == 201

    r = _assign(client, d["id"], p2["id"])
    assert r.status_code == 409
    assert r.json()["detail"] == "device not assignable"

    assert len(client.get("/assignments").json()) == 1
    assert client.get(f"/devices/{d['id']}").json()["assignedTo"] == "Ahmet Yılmaz"
    assert client.get(f"/personnel/{p2['id']}").json()["assignedDevices"] == []
    _check_invariants(client)


def test_assign_non_available_device_creates_no_assignment(client):
    d = _create_device(client, "HP001", brand="HP", status="maintenance")
    p = _create_personnel(client, "Mehmet Kaya")

    r = _assign(client, d["id"], p["id"])
    assert r.status_code == 409
    assert client.get("/assignments").json() == []


def test_assign_unknown_ids_is_not_found(client):
    d = _create_device(client, "DL001")
    r = _assign(client, d["id"], "missing")
    assert r.status_code == 404
    r = _assign(client, "missing", "missing")
    assert r.status_code == 404


def test_return_scenario(client):
    d = _create_device(client, "DL001")
    p = _create_personnel(client, "Ahmet Yılmaz")
    assignment = _assign(client, d["id"], p["id"]).json()

    r = client.post(f"/assignments/{assignment['id']}/return")
    assert r.status_code == 200, r.text
    returned = r.json()
    assert returned["status"] == "returned"
    assert returned["returnedDate"] is not None

    device = client.get(f"/devices/{d['id']}").json()
    assert device["status"] == "available"
    assert device["assignedTo"] is None
    assert device["assignedDate"] is None

    person = client.get(f"/personnel/{p['id']}").json()
    assert person["assignedDevices"] == []
    assert person["assignmentHistory"] == [assignment["id"]]
    _check_invariants(client)


def test_double_return_is_rejected_and_date_is_stable(client):
    d = _create_device(client, "DL001")
    p = _create_personnel(client, "Ahmet Yılmaz")
    assignment = _assign(client, d["id"], p["id"]).json()

    first = client.post(f"/assignments/{assignment['id']}/return").json()
    r = client.post(f"/assignments/{assignment['id']}/return")
    assert r.status_code == 409

    again = client.get(f"/assignments/{assignment['id']}").json()
    assert again["returnedDate"] == first["returnedDate"]


def test_return_unknown_assignment_is_not_found(client):
    r = client.post("/assignments/missing/return")
    assert r.status_code == 404


def test_reassign_after_return_keeps_history(client):
    d = _create_device(client, "DL001")
    p1 = _create_personnel(client, "Ahmet Yılmaz")
    p2 = _create_personnel(client, "Ayşe Demir")

    a1 = _assign(client, d["id"], p1["id"]).json()
    client.post(f"/assignments/{a1['id']}/return")
    a2 = _assign(client, d["id"], p2["id"])
    assert a2.status_code == 201

    device = client.get(f"/devices/{d['id']}").json()
    assert device["assignedTo"] == "Ayşe Demir"
    history = client.get(f"/personnel/{p1['id']}/history").json()
    assert [a["id"] for a in history] == [a1["id"]]
    _check_invariants(client)


def test_direct_update_cannot_enter_or_leave_assigned(client):
    d = _create_device(client, "DL001")
    r = client.patch(f"/devices/{d['id']}", json={"status": "assigned"})
    assert r.status_code == 409

    p = _create_personnel(client, "Ahmet Yılmaz")
    _assign(client, d["id"], p["id"])
    r = client.patch(f"/devices/{d['id']}", json={"status": "retired"})
    assert r.status_code == 409
    _check_invariants(client)


def test_free_status_transitions(client):
    d = _create_device(client, "DL001")
    for status in ("maintenance", "available", "retired"):
        r = client.patch(f"/devices/{d['id']}", json={"status": status})
        assert r.status_code == 200, r.text
        assert r.json()["status"] == status


def test_duplicate_serial_is_rejected(client):
    _create_device(client, "DL001")
    r = client.post("/devices", json={"brand": "Dell", "category": "Laptop", "serialNumber": "DL001"})
    assert r.status_code == 409


def test_rename_cascades_to_assigned_device(client):
    d = _create_device(client, "DL001")
    p = _create_personnel(client, "Ahmet Yılmaz")
    _assign(client, d["id"], p["id"])

    r = client.patch(f"/personnel/{p['id']}", json={"name": "Ahmet Yılmaz Kaya"})
    assert r.status_code == 200, r.text

    device = client.get(f"/devices/{d['id']}").json()
    assert device["assignedTo"] == "Ahmet Yılmaz Kaya"
    _check_invariants(client)
