import pytest

SCANNING = {"check-point-scanning": {"read": True, "write": True}}


@pytest.fixture()
def users(services, checkpoints):
    services.users.create({"username": "sysadmin", "display_name": "System Admin",
                           "password": "admin123", "role": "System Admin"})
    services.users.create({
        "username": "supervisor", "display_name": "Line Supervisor", "password": "super123",
        "role": "Admin", "assigned_checkpoints": ["CP-002", "CP-003"], "permissions": SCANNING,
    })
    services.users.create({
        "username": "cutter", "display_name": "Cutting Operator", "password": "cut123",
        "role": "User", "assigned_checkpoints": ["CP-001"], "permissions": SCANNING,
    })


def login(client, username, password):
    return client.post("/api/login", json={"username": username, "password": password})


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200 and r.json["ok"] is True


def test_requires_login(client, users):
    r = client.get("/api/work-orders")
    assert r.status_code == 401
    assert r.json["success"] is False and r.json["code"] == "authentication_required"


def test_bad_login(client, users):
    r = login(client, "cutter", "nope")
    assert r.status_code == 401
    assert r.json["error"] == "Invalid username, password, or factory selection."


def test_user_scan_flow(client, users, assigned):
    r = login(client, "cutter", "cut123")
    assert r.status_code == 200
    assert r.json["checkpoint_id"] == "CP-001"
    assert r.json["needs_checkpoint_selection"] is False

    code = assigned[0].id
    r = client.post("/api/scan/find", json={"code": code.lower()})
    assert r.status_code == 200
    assert r.json["qr_code"]["id"] == code
    assert r.json["work_order"]["work_order_no"] == "WO-00125"

    r = client.post("/api/scan/confirm", json={"qr_code_id": code})
    assert r.status_code == 200
    assert r.json["record"]["check_point_name"] == "Cutting Table"
    assert r.json["record"]["recorded_by"] == "Cutting Operator"
    assert client.get(f"/api/qrcodes/{code}").json["status"] == "Cutting Table"


def test_scan_errors(client, users, assigned, services):
    login(client, "cutter", "cut123")
    r = client.post("/api/scan/find", json={"code": "BNDL-0-NOPE00"})
    assert r.status_code == 404 and r.json["code"] == "bundle_not_found"

    blank = services.qr_codes.unassigned()[0].id
    r = client.post("/api/scan/confirm", json={"qr_code_id": blank})
    assert r.status_code == 409 and r.json["code"] == "bundle_unassigned"

    r = client.post("/api/scan/find", json={})
    assert r.status_code == 400


def test_user_cannot_edit_master_data(client, users):
    login(client, "cutter", "cut123")
    assert client.get("/api/checkpoints").status_code == 200
    r = client.post("/api/checkpoints", json={"name": "Dyeing", "type": "Finishing"})
    assert r.status_code == 403 and r.json["code"] == "permission_denied"


def test_admin_must_choose_checkpoint(client, users, assigned):
    r = login(client, "supervisor", "super123")
    assert r.json["checkpoint_id"] is None
    assert r.json["needs_checkpoint_selection"] is True
    assert [cp["id"] for cp in r.json["offered_checkpoints"]] == ["CP-002", "CP-003"]

    r = client.post("/api/scan/confirm", json={"qr_code_id": assigned[0].id})
    assert r.status_code == 409 and r.json["code"] == "checkpoint_selection_required"

    r = client.post("/api/session/checkpoint", json={"checkpoint_id": "CP-001"})
    assert r.status_code == 400 and r.json["code"] == "invalid_checkpoint"

    r = client.post("/api/session/checkpoint", json={"checkpoint_id": "CP-003"})
    assert r.json["checkpoint_id"] == "CP-003"
    assert r.json["needs_checkpoint_selection"] is False

    r = client.post("/api/scan/confirm", json={"qr_code_id": assigned[0].id})
    assert r.status_code == 200
    assert r.json["record"]["check_point_name"] == "QC Station 1"


def test_logout(client, users):
    login(client, "cutter", "cut123")
    assert client.get("/api/session").status_code == 200
    client.post("/api/logout")
    assert client.get("/api/session").status_code == 401


def test_system_admin_generates_and_exports(client, users):
    login(client, "sysadmin", "admin123")
    r = client.post("/api/qrcodes/generate", json={"count": 0})
    assert r.status_code == 400 and r.json["code"] == "invalid_quantity"

    r = client.post("/api/qrcodes/generate", json={"count": 3})
    assert r.status_code == 201
    ids = [c["id"] for c in r.json["codes"]]
    assert len(ids) == 3

    r = client.get(f"/api/qrcodes/{ids[0]}/image")
    assert r.status_code == 200 and r.mimetype == "image/png"

    r = client.get("/api/qrcodes/export", query_string={"ids": ",".join(ids), "copies": 2})
    assert r.status_code == 200
    assert r.data[:2] == b"PK"

    r = client.get("/api/qrcodes/export", query_string={"ids": ids[0], "copies": 101})
    assert r.status_code == 400


def test_work_order_assignment_over_http(client, users, work_order_payload):
    login(client, "sysadmin", "admin123")
    r = client.post("/api/work-orders", json=work_order_payload(sizes=[{"size": "S", "quantity": 30}]))
    assert r.status_code == 201

    r = client.post("/api/work-orders/WO-00125/assign")
    assert r.status_code == 409 and r.json["code"] == "insufficient_codes"

    client.post("/api/qrcodes/generate", json={"count": 3})
    r = client.post("/api/work-orders/WO-00125/assign")
    assert r.status_code == 200
    assert [(c["size"], c["bundle_no"], c["bundle_qty"]) for c in r.json["assigned"]] == [("S", 1, 20), ("S", 2, 10)]

    r = client.get("/api/work-orders/WO-00125")
    assert len(r.json["qr_codes"]) == 2
    assert len(client.get("/api/qrcodes", query_string={"status": "Unassigned"}).json) == 3


def test_qc_history_and_dashboard(client, users, assigned):
    login(client, "sysadmin", "admin123")
    client.post("/api/master-data/qc-failure-reasons", json={"reason": "Broken Stitch", "category": "Sewing Defect"})
    code = assigned[0].id

    r = client.post("/api/qc/find", json={"code": code})
    assert r.status_code == 409 and r.json["code"] == "bundle_not_eligible_for_qc"

    r = client.post("/api/scan/confirm", json={"qr_code_id": code, "checkpoint_id": "CP-002"})
    assert r.status_code == 200

    r = client.post("/api/qc/find", json={"code": code})
    assert r.status_code == 200
    assert len(r.json["items"]) == 20
    assert r.json["failure_reasons"] == ["Broken Stitch"]

    items = [{"is_passed": True}] * 19 + [{"is_failed": True, "failure_reason": "Broken Stitch"}]
    r = client.post("/api/qc/submit", json={"qr_code_id": code, "items": items})
    assert r.status_code == 200
    assert r.json["summary"]["failed"] == 1

    r = client.get("/api/history", query_string={"qr_code_id": code})
    assert [row["check_point_name"] for row in r.json["rows"]] == ["Sewing Line 1 Input"]

    stats = client.get("/api/dashboard-stats").json
    assert stats["totalCodes"] == 10
    assert stats["passesToday"] == 1
    assert stats["bundleStatus"] == {"Unassigned": 4, "Sewing Line 1 Input": 1}


def test_system_admin_scans_at_default_station(client, users, assigned):
    r = login(client, "sysadmin", "admin123")
    assert r.json["checkpoint_id"] is None
    assert r.json["needs_checkpoint_selection"] is False

    r = client.post("/api/scan/confirm", json={"qr_code_id": assigned[0].id})
    assert r.status_code == 200
    assert r.json["record"]["check_point_name"] == "Cutting Table"
    assert client.get("/api/session").json["checkpoint_id"] == "CP-001"


def test_map_keeps_one_code_per_bundle(client, users, assigned, services):
    login(client, "sysadmin", "admin123")
    blank = services.qr_codes.unassigned()[0].id

    r = client.post("/api/work-orders/WO-00125/map", json={"code": blank, "size": "M", "bundle_no": 1})
    assert r.status_code == 409 and r.json["code"] == "bundle_slot_taken"

    r = client.post("/api/work-orders/WO-00125/map", json={"code": assigned[0].id, "size": "M", "bundle_no": 2})
    assert r.status_code == 409 and r.json["code"] == "code_already_assigned"

    r = client.post("/api/work-orders/WO-00125/map", json={"code": assigned[0].id, "size": "M", "bundle_no": 1})
    assert r.status_code == 200 and r.json["bundle_key"] == "M-1"

    codes = client.get("/api/work-orders/WO-00125").json["qr_codes"]
    assert sorted((c["size"], c["bundle_no"]) for c in codes) == [("M", n) for n in range(1, 6)]


def test_assign_rejects_repeated_ids(client, users, assigned, services, work_order_payload):
    login(client, "sysadmin", "admin123")
    client.post("/api/work-orders", json=work_order_payload(no="WO-00200", sizes=[{"size": "S", "quantity": 30}]))
    blank = services.qr_codes.unassigned()[0].id

    r = client.post("/api/work-orders/WO-00200/assign", json={"ids": [blank, blank]})
    assert r.status_code == 400 and r.json["code"] == "validation_error"
    assert client.get(f"/api/qrcodes/{blank}").json["work_order_id"] is None


def test_history_paging_with_zero_per_page(client, users, assigned):
    login(client, "sysadmin", "admin123")
    for code in assigned[:3]:
        client.post("/api/scan/confirm", json={"qr_code_id": code.id, "checkpoint_id": "CP-002"})

    query = {"per": 0, "sort": "id", "direction": "ascending"}
    first = client.get("/api/history", query_string={**query, "page": 1}).json["rows"]
    second = client.get("/api/history", query_string={**query, "page": 2}).json["rows"]
    assert [row["qr_code_id"] for row in first] == [assigned[0].id]
    assert [row["qr_code_id"] for row in second] == [assigned[1].id]
