"""
API endpoint tests for all routes.
Uses in-memory SQLite + dependency-overridden FastAPI test client.
"""
import pytest

from hotelops.exceptions import InternalError
from hotelops.services import linkage

WO = "/api/working-orders"

NEW_WO = {
    "roomNumber": 101,
    "stay_from": "2025-03-01",
    "stay_to": "2025-03-05",
    "summary": "AC not cooling",
    "severity": "HIGH",
}


async def _create_wo(client, **overrides):
    r = await client.post(f"{WO}/", json={**NEW_WO, **overrides})
    assert r.status_code == 201, r.text
    return r.json()


# ===================== HEALTH / ROOT =====================


async def test_root(client):
    r = await client.get("/")
    assert r.status_code == 200
    assert r.json()["status"] == "running"


async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


# ===================== AUTH =====================


async def test_login_success(unauth_client, seed_data):
    r = await unauth_client.post(
        "/api/auth/login",
        data={"username": "laura@hotel.test", "password": "laurapass"},
    )
    assert r.status_code == 200
    assert "access_token" in r.json()


async def test_login_wrong_password(unauth_client, seed_data):
    r = await unauth_client.post(
        "/api/auth/login",
        data={"username": "laura@hotel.test", "password": "wrong"},
    )
    assert r.status_code == 401
    assert r.json()["error"] == "unauthorized"


async def test_get_me(client):
    r = await client.get("/api/auth/me")
    assert r.status_code == 200
    assert r.json()["correo"] == "admin@hotel.test"
    assert r.json()["role"] == "admin"


async def test_protected_route_no_token(unauth_client, seed_data):
    r = await unauth_client.get(f"{WO}/")
    assert r.status_code == 401


async def test_bad_token(unauth_client, seed_data):
    r = await unauth_client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


async def test_deactivated_supervisor_rejected(client, supervisor_client):
    r = await client.delete("/api/supervisors/7")
    assert r.status_code == 200

    r = await supervisor_client.get("/api/auth/me")
    assert r.status_code == 401


# ===================== SUPERVISORS / ROOMS =====================


async def test_list_supervisors(client):
    r = await client.get("/api/supervisors/", params={"q": "laura"})
    assert r.status_code == 200
    assert [s["id"] for s in r.json()] == [7]


async def test_create_supervisor_admin_only(client, seed_data):
    payload = {"nombre": "Pedro Ruiz", "correo": "Pedro@Hotel.test", "kind": "PROYECTO", "password": "x1"}
    r = await client.post("/api/supervisors/", json=payload)
    assert r.status_code == 201
    assert r.json()["correo"] == "pedro@hotel.test"

    r = await client.post("/api/supervisors/", json=payload)
    assert r.status_code == 409


async def test_supervisor_cannot_manage_directory(supervisor_client):
    r = await supervisor_client.post("/api/supervisors/", json={"nombre": "X", "correo": "x@hotel.test"})
    assert r.status_code == 403
    assert r.json()["error"] == "forbidden"

    r = await supervisor_client.post("/api/rooms/", json={"number": 301})
    assert r.status_code == 403


@pytest.mark.parametrize("changes", [{"nombre": ""}, {"nombre": "   "}, {"correo": " "}])
async def test_update_supervisor_rejects_blank_fields(client, changes):
    r = await client.put("/api/supervisors/7", json=changes)
    assert r.status_code == 422
    assert r.json()["error"] == "validation_error"

    r = await client.get("/api/supervisors/", params={"q": "laura"})
    assert r.json()[0]["nombre"] == "Laura Méndez"
    assert r.json()[0]["correo"] == "laura@hotel.test"


async def test_rooms(client):
    r = await client.get("/api/rooms/", params={"tower": 1})
    assert [room["number"] for room in r.json()] == [101, 102]

    r = await client.post("/api/rooms/", json={"number": 301, "tower": 3, "floor": 3})
    assert r.status_code == 201

    r = await client.post("/api/rooms/", json={"number": 301})
    assert r.status_code == 409


# ===================== WORKING ORDERS =====================


async def test_create_and_get_working_order(client, seed_data):
    created = await _create_wo(client, images=["https://img.test/a.jpg"], initial_comment="guest is upset")

    r = await client.get(f"{WO}/{created['id']}")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "OPEN"
    assert data["severity"] == "HIGH"
    assert data["source"] == "MANUAL"
    assert data["room_number"] == 101
    assert data["created_by"] == seed_data["admin_id"]
    assert [i["url"] for i in data["images"]] == ["https://img.test/a.jpg"]
    assert data["comments"][0]["author_nombre"] == "Admin"
    assert [log["status"] for log in data["status_logs"]] == ["OPEN"]


async def test_create_with_assignee(client):
    created = await _create_wo(client, assigned_to=7)
    r = await client.get(f"{WO}/{created['id']}")
    assert r.json()["status"] == "ASSIGNED"
    assert r.json()["assigned_nombre"] == "Laura Méndez"


async def test_create_validation_errors(client, seed_data):
    r = await client.post(f"{WO}/", json={**NEW_WO, "summary": "  "})
    assert r.status_code == 422
    assert r.json()["error"] == "validation_error"

    r = await client.post(f"{WO}/", json={**NEW_WO, "severity": "URGENT"})
    assert r.status_code == 422

    r = await client.post(f"{WO}/", json={**NEW_WO, "roomNumber": 999})
    assert r.status_code == 422

    payload = {k: v for k, v in NEW_WO.items() if k != "stay_to"}
    r = await client.post(f"{WO}/", json=payload)
    assert r.status_code == 422
    assert "details" in r.json()


async def test_create_and_convert(client):
    created = await _create_wo(client, convertToNote=True, noteSupervisorId=7, initial_comment="check filters")
    assert created["note_id"]

    r = await client.get(f"{WO}/{created['id']}")
    data = r.json()
    assert data["status"] == "ASSIGNED"
    assert data["note_id"] == created["note_id"]
    assert data["assigned_to"] == 7
    assert [c["body"] for c in data["comments"]] == ["check filters"]
    assert [log["status"] for log in data["status_logs"]] == ["OPEN", "ASSIGNED"]

    r = await client.get(f"/api/notes/{created['note_id']}")
    assert r.json()["estado"] == 0
    assert r.json()["titulo"] == "WO Hab. 101 - AC not cooling"


async def test_create_and_convert_bad_supervisor_leaves_no_order(client, seed_data):
    r = await client.post(f"{WO}/", json={**NEW_WO, "convertToNote": True, "noteSupervisorId": 999})
    assert r.status_code == 422
    assert r.json()["error"] == "validation_error"

    r = await client.get(f"{WO}/")
    assert r.json()["total"] == 0


async def test_get_unknown_working_order(client, seed_data):
    r = await client.get(f"{WO}/does-not-exist")
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"


async def test_list_working_orders(client):
    await _create_wo(client)
    await _create_wo(client, roomNumber=205, summary="Leaking shower", assigned_to=7)

    r = await client.get(f"{WO}/", params={"withSummary": "true"})
    assert r.status_code == 200
    data = r.json()
    assert data["total"] == 2
    assert data["summary"]["open_cnt"] == 1
    assert data["summary"]["assigned_cnt"] == 1

    r = await client.get(f"{WO}/", params={"status": "ASSIGNED"})
    assert [wo["room_number"] for wo in r.json()["data"]] == [205]

    r = await client.get(f"{WO}/", params={"roomNumber": 101, "pageSize": 1})
    assert r.json()["pageSize"] == 1
    assert len(r.json()["data"]) == 1

    r = await client.get(f"{WO}/", params={"status": "CLOSED"})
    assert r.status_code == 422


async def test_categories(client):
    r = await client.get(f"{WO}/categories")
    assert r.status_code == 200
    assert "Aire acondicionado / HVAC de habitación" in r.json()


async def test_heatmap(client):
    await _create_wo(client)
    await _create_wo(client)
    await _create_wo(client, roomNumber=205)

    r = await client.get(f"{WO}/analytics/heatmap", params={"by": "floor"})
    assert r.status_code == 200
    assert r.json() == {"by": "floor", "data": [{"floor": 1, "total": 2}, {"floor": 2, "total": 1}]}

    r = await client.get(f"{WO}/analytics/heatmap", params={"by": "wing"})
    assert r.status_code == 422


async def test_patch_working_order(client):
    created = await _create_wo(client)
    wo_url = f"{WO}/{created['id']}"

    r = await client.patch(wo_url, json={"assigned_to": 7, "status_note": "check filters"})
    assert r.status_code == 200
    assert r.json() == {"ok": True}

    r = await client.patch(wo_url, json={"status": "IN_PROGRESS", "detail": "compressor noise"})
    assert r.status_code == 200

    logs = (await client.get(f"{wo_url}/status-logs")).json()
    assert [log["status"] for log in logs] == ["OPEN", "ASSIGNED", "IN_PROGRESS"]
    assert logs[1]["note"] == "check filters"
    assert logs[1]["performed_nombre"] == "Admin"


async def test_patch_invalid_transition(client):
    created = await _create_wo(client)
    r = await client.patch(f"{WO}/{created['id']}", json={"status": "IN_PROGRESS"})
    assert r.status_code == 409
    assert r.json()["error"] == "invalid_transition"


async def test_patch_assigned_needs_assignee(client):
    created = await _create_wo(client)
    wo_url = f"{WO}/{created['id']}"

    r = await client.patch(wo_url, json={"status": "ASSIGNED"})
    assert r.status_code == 422
    assert (await client.get(wo_url)).json()["status"] == "OPEN"

    await client.patch(wo_url, json={"assigned_to": 7})
    r = await client.patch(wo_url, json={"assigned_to": None})
    assert r.status_code == 422
    data = (await client.get(wo_url)).json()
    assert data["status"] == "ASSIGNED"
    assert data["assigned_to"] == 7


async def test_patch_unknown_id(client, seed_data):
    r = await client.patch(f"{WO}/missing", json={"summary": "x"})
    assert r.status_code == 404


async def test_resolve_and_dismiss(client):
    a = await _create_wo(client)
    b = await _create_wo(client)

    r = await client.post(f"{WO}/{a['id']}/resolve", json={"note": "reset breaker"})
    assert r.status_code == 200
    detail = (await client.get(f"{WO}/{a['id']}")).json()
    assert detail["status"] == "RESOLVED"
    assert detail["resolved_at"] is not None

    r = await client.post(f"{WO}/{b['id']}/dismiss")
    assert r.status_code == 200
    detail = (await client.get(f"{WO}/{b['id']}")).json()
    assert detail["status"] == "DISMISSED"
    assert detail["note_id"] is None
    assert detail["status_logs"][-1]["status"] == "DISMISSED"

    r = await client.post(f"{WO}/{b['id']}/resolve")
    assert r.status_code == 409


async def test_delete_working_order(client):
    created = await _create_wo(client)
    r = await client.delete(f"{WO}/{created['id']}")
    assert r.status_code == 204

    r = await client.get(f"{WO}/{created['id']}")
    assert r.status_code == 404


async def test_comments_and_images(client):
    created = await _create_wo(client)
    wo_url = f"{WO}/{created['id']}"

    for body in ("first", "second", "third"):
        r = await client.post(f"{wo_url}/comments", json={"body": body})
        assert r.status_code == 201

    r = await client.get(f"{wo_url}/comments", params={"limit": 2})
    page = r.json()
    assert [c["body"] for c in page["data"]] == ["third", "second"]

    r = await client.get(f"{wo_url}/comments", params={"limit": 2, "cursor": page["nextCursor"]})
    assert [c["body"] for c in r.json()["data"]] == ["first"]
    assert r.json()["nextCursor"] is None

    r = await client.post(f"{wo_url}/comments", json={"body": ""})
    assert r.status_code == 422

    r = await client.post(f"{wo_url}/images", json={"url": "https://img.test/c.jpg"})
    assert r.status_code == 201


# ===================== LINKAGE =====================


async def test_convert_to_note_route(client):
    created = await _create_wo(client)
    wo_url = f"{WO}/{created['id']}"

    r = await client.get(f"{wo_url}/linked-note")
    assert r.json() == {"note": None}

    r = await client.post(f"{wo_url}/convert-to-note", json={"supervisorId": 7, "fecha": "2025-03-02"})
    assert r.status_code == 200
    note_id = r.json()["note_id"]

    r = await client.get(f"{wo_url}/linked-note")
    note = r.json()["note"]
    assert note["id"] == note_id
    assert note["fecha"] == "2025-03-02"
    assert note["supervisor_nombre"] == "Laura Méndez"

    r = await client.post(f"{wo_url}/convert-to-note", json={"supervisorId": 7})
    assert r.status_code == 409
    assert r.json()["error"] == "conflict"


async def test_round_trip_via_note_state(client):
    created = await _create_wo(client, convertToNote=True, noteSupervisorId=7)
    note_url = f"/api/notes/{created['note_id']}/state"

    for estado in (0, 1, 2):
        r = await client.patch(note_url, json={"estado": estado})
        assert r.status_code == 200
        assert r.json()["estado"] == estado

    detail = (await client.get(f"{WO}/{created['id']}")).json()
    assert detail["status"] == "RESOLVED"
    assert detail["resolved_at"] is not None
    assert [log["status"] for log in detail["status_logs"]] == ["OPEN", "ASSIGNED", "IN_PROGRESS", "RESOLVED"]


async def test_note_state_reports_sync(client):
    created = await _create_wo(client, convertToNote=True, noteSupervisorId=7)
    r = await client.patch(f"/api/notes/{created['note_id']}/state", json={"estado": 1})
    assert r.json()["working_order_synced"] is True

    r = await client.patch(f"/api/notes/{created['note_id']}/state", json={"estado": 1})
    assert r.json()["working_order_synced"] is False


async def test_note_state_survives_sync_failure(client, monkeypatch):
    created = await _create_wo(client, convertToNote=True, noteSupervisorId=7)

    async def broken_sync(*args, **kwargs):
        raise InternalError("connection reset")

    monkeypatch.setattr(linkage, "sync_note_status", broken_sync)
    r = await client.patch(f"/api/notes/{created['note_id']}/state", json={"estado": 2})
    assert r.status_code == 200
    assert r.json()["working_order_synced"] is False

    note = (await client.get(f"/api/notes/{created['note_id']}")).json()
    assert note["estado"] == 2
    detail = (await client.get(f"{WO}/{created['id']}")).json()
    assert detail["status"] == "ASSIGNED"


async def test_dismissed_ignores_note_state(client):
    created = await _create_wo(client, convertToNote=True, noteSupervisorId=7)
    await client.post(f"{WO}/{created['id']}/dismiss")

    r = await client.patch(f"/api/notes/{created['note_id']}/state", json={"estado": 2})
    assert r.status_code == 200
    assert r.json()["working_order_synced"] is False

    detail = (await client.get(f"{WO}/{created['id']}")).json()
    assert detail["status"] == "DISMISSED"


async def test_note_webhook(client):
    created = await _create_wo(client, convertToNote=True, noteSupervisorId=7)
    hook = f"{WO}/{created['id']}/note-webhook/status"

    r = await client.post(hook, json={"note_estado": 1, "performed_by": 7, "comment": "on it"})
    assert r.json() == {"ok": True, "changed": True}

    r = await client.post(hook, json={"note_estado": 1})
    assert r.json() == {"ok": True, "changed": False}

    r = await client.post(hook, json={"note_estado": 9})
    assert r.status_code == 422


async def test_note_webhook_without_link(client):
    created = await _create_wo(client)
    r = await client.post(f"{WO}/{created['id']}/note-webhook/status", json={"note_estado": 2})
    assert r.status_code == 404


# ===================== NOTES =====================


async def test_notes_crud(client, seed_data):
    r = await client.post("/api/notes/", json={
        "supervisorId": 7, "titulo": "Revisar alberca", "fecha": "2025-03-01", "cristal": True,
    })
    assert r.status_code == 201
    note_id = r.json()["id"]

    r = await client.get("/api/notes/", params={"supervisorId": 7})
    assert [n["id"] for n in r.json()] == [note_id]
    assert r.json()[0]["supervisor_correo"] == "laura@hotel.test"

    r = await client.put(f"/api/notes/{note_id}", json={"actividades": "medir cloro"})
    assert r.status_code == 200

    r = await client.post(f"/api/notes/{note_id}/comments", json={"body": "listo @laura"})
    assert r.status_code == 201
    assert r.json()["mentions"] == ["laura"]

    r = await client.post(f"/api/notes/{note_id}/images", json={"url": "https://img.test/p.jpg"})
    assert r.status_code == 201

    detail = (await client.get(f"/api/notes/{note_id}")).json()
    assert detail["actividades"] == "medir cloro"
    assert detail["cristal"] is True
    assert detail["comments"][0]["author_id"] == seed_data["admin_id"]
    assert len(detail["images"]) == 1

    r = await client.get("/api/notes/", params={"estado": 3})
    assert r.status_code == 422


async def test_delete_note_admin_only(client, supervisor_client):
    created = await _create_wo(client, convertToNote=True, noteSupervisorId=7)
    note_url = f"/api/notes/{created['note_id']}"

    r = await supervisor_client.delete(note_url)
    assert r.status_code == 403


async def test_delete_note_unlinks(client):
    created = await _create_wo(client, convertToNote=True, noteSupervisorId=7)

    r = await client.delete(f"/api/notes/{created['note_id']}")
    assert r.status_code == 204

    detail = (await client.get(f"{WO}/{created['id']}")).json()
    assert detail["note_id"] is None
    assert (await client.get(f"{WO}/{created['id']}/linked-note")).json() == {"note": None}
