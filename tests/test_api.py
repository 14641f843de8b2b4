import base64
import io
import struct
import zlib

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from careportal.api import deps
from careportal.main import create_app
from careportal.upstream import client as upstream_client
from careportal.upstream.errors import UpstreamError

TOKEN = "a" * 40


def _assignment(status: str = "CONFIRMED", **overrides) -> dict:
    payload = {
        "id": "a-1",
        "employeeId": "emp-1",
        "customerId": "c-1",
        "startAt": "2024-05-06T08:00:00.000Z",
        "endAt": "2024-05-06T10:00:00.000Z",
        "status": status,
        "kilometers": 12,
    }
    payload.update(overrides)
    return payload


def _cookie_pair(response) -> str:
    return response.headers["set-cookie"].split(";", 1)[0]


def _strokes() -> dict:
    return {"strokes": [[[10, 10], [60, 40], [120, 20]]], "width": 300, "height": 100, "devicePixelRatio": 2}


@pytest.fixture
def upstream(monkeypatch: pytest.MonkeyPatch, fake_upstream):
    monkeypatch.setattr(deps, "UpstreamClient", lambda context=None: fake_upstream)
    fake_upstream.on("GET", "/users/me", {"id": "emp-1", "role": "EMPLOYEE", "email": "e@example.com"})
    return fake_upstream


@pytest.fixture
def admin(upstream):
    upstream.on("GET", "/users/me", {"id": "adm-1", "role": "ADMIN"})
    return upstream


@pytest.fixture
def api_client(upstream) -> TestClient:
    return TestClient(create_app(), headers={"Cookie": f"be_access={TOKEN}"})


def test_health() -> None:
    response = TestClient(create_app()).get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_health_upstream(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(upstream_client, "check_health", lambda: False)

    response = TestClient(create_app()).get("/api/health/upstream")

    assert response.json() == {"service": "upstream", "healthy": False}


def test_missing_cookie_is_unauthorized(upstream) -> None:
    response = TestClient(create_app()).get("/api/me/assignments")

    assert response.status_code == 401
    assert upstream.calls == []


def test_login_requires_credentials(upstream) -> None:
    response = TestClient(create_app()).post("/api/auth/login", json={"email": "e@example.com"})

    assert response.status_code == 400
    assert response.json()["message"] == "E-Mail und Passwort sind erforderlich"
    assert upstream.calls == []


def test_login_sets_session_cookie(upstream) -> None:
    upstream.on("POST", "/auth/login", {"accessToken": TOKEN})

    response = TestClient(create_app()).post("/api/auth/login", json={"email": "e@example.com", "password": "pw"})

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    cookie = response.headers["set-cookie"].lower()
    assert cookie.startswith(f"be_access={TOKEN}")
    assert "httponly" in cookie
    assert "secure" in cookie
    assert "samesite=lax" in cookie
    assert "max-age=900" in cookie
    assert "path=/" in cookie


def test_login_rejects_short_token(upstream) -> None:
    upstream.on("POST", "/auth/login", {"accessToken": "short"})

    response = TestClient(create_app()).post("/api/auth/login", json={"email": "e@example.com", "password": "pw"})

    assert response.status_code == 500
    assert "set-cookie" not in response.headers


def test_login_relays_upstream_rejection(upstream) -> None:
    upstream.on("POST", "/auth/login", UpstreamError(401, "Invalid credentials"))

    response = TestClient(create_app()).post("/api/auth/login", json={"email": "e@example.com", "password": "x"})

    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"


def test_users_me_adds_admin_flag(api_client: TestClient, admin) -> None:
    response = api_client.get("/api/users/me")

    assert response.json()["isAdmin"] is True
    assert admin.calls_to("GET", "/users/me")


def test_assignment_view_for_employee(api_client: TestClient, upstream) -> None:
    upstream.on("GET", "/me/assignments/a-1", _assignment("ASSIGNED"))

    body = api_client.get("/api/assignments/a-1/view").json()

    assert body["lifecycle"]["ackAllowed"] is True
    assert body["lifecycle"]["label"] == "Zugewiesen"
    assert body["editor"]["mode"] == "NEEDS_CONFIRMATION"
    assert body["dayLock"]["isLocked"] is False
    assert body["summary"]["plannedMinutes"] == 120


def test_assignment_view_for_admin(api_client: TestClient, admin) -> None:
    admin.on("GET", "/assignments/a-1", _assignment("CONFIRMED"))

    body = api_client.get("/api/assignments/a-1/view").json()

    assert body["editor"]["mode"] == "ADMIN_READ_ONLY"
    assert body["dayLock"]["correctionsHref"] == "/admin/corrections?employeeId=emp-1&date=2024-05-06&aid=a-1"


def test_ack_rejects_unknown_action(api_client: TestClient, upstream) -> None:
    response = api_client.post("/api/me/assignments/a-1/ack", json={"action": "LATER"})

    assert response.status_code == 400
    assert upstream.calls_to("POST") == []


def test_ack_confirm_returns_reloaded_view(api_client: TestClient, upstream) -> None:
    state = {"status": "ASSIGNED"}
    upstream.on("GET", "/me/assignments/a-1", lambda body, params: _assignment(state["status"]))

    def ack(body, params):
        state["status"] = "CONFIRMED"
        return {}

    upstream.on("POST", "/me/assignments/a-1/ack", ack)

    response = api_client.post("/api/me/assignments/a-1/ack", json={"action": "confirm"})

    assert response.status_code == 200
    assert response.json()["lifecycle"]["status"] == "CONFIRMED"
    assert response.json()["lifecycle"]["canAddTimeEntry"] is True


def test_mark_done_conflicts_for_assigned(api_client: TestClient, upstream) -> None:
    upstream.on("GET", "/me/assignments/a-1", _assignment("ASSIGNED"))

    response = api_client.post("/api/me/assignments/a-1/done")

    assert response.status_code == 409
    assert upstream.calls_to("POST") == []


def test_empty_signature_is_rejected_without_upload(api_client: TestClient, upstream) -> None:
    upstream.on("GET", "/me/assignments/a-1", _assignment("CONFIRMED"))

    for payload in ({"strokes": [], "width": 300, "height": 100}, {}):
        response = api_client.post("/api/me/assignments/a-1/signatures", json=payload)
        assert response.status_code == 400
        assert response.json()["message"] == "Bitte unterschreiben (nicht leer)."

    assert upstream.calls_to("POST") == []


def test_signature_before_confirmation_conflicts(api_client: TestClient, upstream) -> None:
    upstream.on("GET", "/me/assignments/a-1", _assignment("ASSIGNED"))

    response = api_client.post("/api/me/assignments/a-1/signatures", json=_strokes())

    assert response.status_code == 409
    assert upstream.calls_to("POST") == []


def test_signature_strokes_are_uploaded_as_png(api_client: TestClient, upstream) -> None:
    upstream.on("GET", "/me/assignments/a-1", _assignment("DONE"))

    response = api_client.post("/api/me/assignments/a-1/signatures", json=_strokes())

    assert response.status_code == 200
    sent = upstream.calls_to("POST", "/me/assignments/a-1/signatures")[0][2]
    assert sent["signatureData"].startswith("data:image/png;base64,")


def test_km_patch_discovers_lock(api_client: TestClient, upstream) -> None:
    upstream.on("GET", "/me/assignments/a-1", _assignment("CONFIRMED"))
    upstream.on("PATCH", "/me/assignments/a-1", UpstreamError(403, "LOCKED_AFTER_SIGNATURE"))

    response = api_client.patch("/api/me/assignments/a-1", json={"kilometers": 20})

    assert response.status_code == 403
    body = response.json()
    assert body["code"] == "LOCKED_AFTER_SIGNATURE"
    assert body["locked"] is True
    assert body["view"]["dayLock"]["isKmLockedBySignature"] is True
    assert body["view"]["editor"]["mode"] == "LOCKED"
    assert body["view"]["summary"]["kilometers"] == 12


def test_km_entry_lock_sentinel_is_relayed(api_client: TestClient, upstream) -> None:
    upstream.on("POST", "/me/km-entries", UpstreamError(403, "LOCKED_AFTER_SIGNATURE"))

    response = api_client.post("/api/me/km-entries", json={"date": "2024-05-06", "km": 14})

    assert response.status_code == 403
    assert response.json()["code"] == "LOCKED_AFTER_SIGNATURE"
    assert response.json()["locked"] is True


def test_km_entry_validation(api_client: TestClient, upstream) -> None:
    response = api_client.post("/api/me/km-entries", json={"date": "2024-05-06", "km": -1})

    assert response.status_code == 400
    assert response.json()["message"] == "Ungültige Kilometerzahl"
    assert upstream.calls_to("POST") == []


def test_time_entry_from_range(api_client: TestClient, upstream) -> None:
    response = api_client.post(
        "/api/me/time-entries",
        json={
            "assignmentId": "a-1",
            "date": "2024-05-06",
            "startAt": "2024-05-06T08:00:00Z",
            "endAt": "2024-05-06T09:30:00Z",
        },
    )

    assert response.status_code == 201
    assert upstream.calls_to("POST", "/me/time-entries")[0][2] == {
        "assignmentId": "a-1",
        "date": "2024-05-06",
        "minutes": 90,
    }


def test_time_entry_requires_assignment(api_client: TestClient, upstream) -> None:
    for assignment_id in (None, "  "):
        response = api_client.post(
            "/api/me/time-entries",
            json={"assignmentId": assignment_id, "date": "2024-05-06", "minutes": 30},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Einsatz fehlt."

    assert upstream.calls_to("POST") == []


def test_time_entry_rejects_inverted_range(api_client: TestClient, upstream) -> None:
    response = api_client.post(
        "/api/me/time-entries",
        json={"assignmentId": "a-1", "date": "2024-05-06", "startAt": "2024-05-06T09:00:00Z", "endAt": "2024-05-06T08:00:00Z"},
    )

    assert response.status_code == 400
    assert upstream.calls_to("POST") == []


def test_time_entry_delete(api_client: TestClient, upstream) -> None:
    missing = api_client.delete("/api/me/time-entries")
    assert missing.status_code == 400
    assert missing.json()["message"] == "Missing id"

    assert api_client.delete("/api/me/time-entries", params={"id": "t-1"}).status_code == 200
    assert upstream.calls_to("DELETE", "/me/time-entries/t-1")


def test_corrections_require_admin(api_client: TestClient, upstream) -> None:
    response = api_client.get("/api/admin/corrections/day", params={"employeeId": "emp-1", "date": "2024-05-06"})

    assert response.status_code == 403
    assert response.json()["message"] == "Keine Berechtigung"
    assert upstream.calls_to("GET", "/admin/corrections/day") == []


def test_corrections_day_for_admin(api_client: TestClient, admin) -> None:
    admin.on(
        "GET",
        "/admin/corrections/day",
        {
            "employeeId": "emp-1",
            "date": "2024-05-06",
            "lockedAfterSignature": True,
            "assignments": [{"id": "a-1", "startAt": "2024-05-06T08:00:00Z", "endAt": "2024-05-06T16:00:00Z"}],
            "timeEntries": [{"id": "t-1", "minutes": 450}],
            "timeAdjustments": [{"id": "adj-1", "deltaMinutes": 15, "reason": "Fahrt"}],
        },
    )
    admin.on("GET", "/admin/assignments", [{"id": "a-1", "kilometers": 30, "kmFinal": 28}])

    body = api_client.get("/api/admin/corrections/day", params={"employeeId": "emp-1", "date": "2024-05-06"}).json()

    assert body["isLocked"] is True
    assert body["summary"]["plannedMinutes"] == 480
    assert body["summary"]["finalMinutes"] == 465
    assert body["assignments"][0]["kmFinal"] == 28


def test_corrections_day_requires_selection(api_client: TestClient, admin) -> None:
    response = api_client.get("/api/admin/corrections/day", params={"employeeId": "emp-1"})

    assert response.status_code == 400
    assert response.json()["message"] == "Mitarbeiter und Datum wählen"


def test_time_adjustment_needs_reason(api_client: TestClient, admin) -> None:
    admin.on("GET", "/admin/corrections/day", {"employeeId": "emp-1", "date": "2024-05-06", "assignments": [{"id": "a-1"}]})

    response = api_client.post(
        "/api/admin/time-adjustments",
        json={"userId": "emp-1", "date": "2024-05-06", "deltaMinutes": 15, "reason": "   "},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Begründung erforderlich"
    assert admin.calls_to("POST") == []


def test_time_adjustment_returns_refetched_day(api_client: TestClient, admin) -> None:
    admin.on("GET", "/admin/corrections/day", {"employeeId": "emp-1", "date": "2024-05-06", "assignments": [{"id": "a-1"}]})

    response = api_client.post(
        "/api/admin/time-adjustments",
        json={"userId": "emp-1", "date": "2024-05-06", "deltaMinutes": "-10", "reason": "Pause"},
    )

    assert response.status_code == 201
    assert admin.calls_to("POST", "/admin/time-adjustments")[0][2]["assignmentId"] == "a-1"
    assert admin.calls_to("POST", "/admin/time-adjustments")[0][2]["deltaMinutes"] == -10
    assert len(admin.calls_to("GET", "/admin/corrections/day")) == 2
    assert "summary" in response.json()


def test_emergency_contacts_missing_is_empty(api_client: TestClient, upstream) -> None:
    upstream.on("GET", "/me/customers/c-1/emergency-contacts", UpstreamError(404, "Not Found"))

    response = api_client.get("/api/customers/c-1/emergency-contacts")

    assert response.status_code == 200
    assert response.json() == []


def test_admin_assignment_requires_end_after_start(api_client: TestClient, admin) -> None:
    response = api_client.post(
        "/api/admin/assignments",
        json={"customerId": "c-1", "startAt": "2024-05-06T10:00:00Z", "endAt": "2024-05-06T09:00:00Z"},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Endzeit muss nach der Startzeit liegen."
    assert admin.calls_to("POST") == []


def test_admin_routes_reject_employees(api_client: TestClient, upstream) -> None:
    response = api_client.post("/api/admin/assignments", json={"customerId": "c-1"})

    assert response.status_code == 403


def test_admin_employees_are_normalised(api_client: TestClient, admin) -> None:
    admin.on("GET", "/admin/users", {"items": [{"id": "emp-1", "role": "EMPLOYEE"}]})

    response = api_client.get("/api/admin/employees")

    assert response.json() == [{"id": "emp-1", "role": "EMPLOYEE"}]
    assert admin.calls_to("GET", "/admin/users")[0][3] == {"role": "EMPLOYEE"}


def test_lock_from_km_patch_holds_on_next_view(api_client: TestClient, upstream) -> None:
    upstream.on("GET", "/me/assignments/a-1", _assignment("CONFIRMED"))
    upstream.on("PATCH", "/me/assignments/a-1", UpstreamError(403, "LOCKED_AFTER_SIGNATURE"))

    rejected = api_client.patch("/api/me/assignments/a-1", json={"kilometers": 20})
    assert rejected.status_code == 403
    lock_cookie = _cookie_pair(rejected)
    assert lock_cookie.startswith("be_day_locks=")

    fresh = api_client.get("/api/assignments/a-1/view")
    assert fresh.json()["editor"]["mode"] == "EDITABLE"

    remembered = api_client.get(
        "/api/assignments/a-1/view", headers={"Cookie": f"be_access={TOKEN}; {lock_cookie}"}
    )
    view = remembered.json()
    assert view["editor"]["mode"] == "LOCKED"
    assert view["editor"]["readOnly"] is True
    assert view["dayLock"]["isKmLockedBySignature"] is True


def test_lock_from_time_entry_holds_on_next_view(api_client: TestClient, upstream) -> None:
    upstream.on("GET", "/me/assignments/a-1", _assignment("CONFIRMED"))
    upstream.on("POST", "/me/time-entries", UpstreamError(403, "LOCKED_AFTER_SIGNATURE"))

    rejected = api_client.post(
        "/api/me/time-entries", json={"assignmentId": "a-1", "date": "2024-05-06", "minutes": 30}
    )
    assert rejected.status_code == 403
    assert rejected.json()["locked"] is True

    view = api_client.get(
        "/api/assignments/a-1/view", headers={"Cookie": f"be_access={TOKEN}; {_cookie_pair(rejected)}"}
    ).json()
    assert view["dayLock"]["isTimeLockedBySignature"] is True
    assert view["editor"]["mode"] == "LOCKED"


def test_logout_clears_lock_cookie(api_client: TestClient, upstream) -> None:
    response = api_client.post("/api/auth/logout")

    cleared = response.headers.get_list("set-cookie")
    assert any(header.startswith("be_access=") for header in cleared)
    assert any(header.startswith("be_day_locks=") for header in cleared)


def test_planner_list_follows_role(api_client: TestClient, upstream) -> None:
    upstream.on("GET", "/me/assignments", [{"id": "a-1"}])
    assert api_client.get("/api/assignments").json() == [{"id": "a-1"}]
    assert upstream.calls_to("GET", "/assignments") == []

    upstream.on("GET", "/users/me", {"id": "adm-1", "role": "ADMIN"})
    upstream.on("GET", "/assignments", [{"id": "a-1"}, {"id": "a-2"}])
    assert len(api_client.get("/api/assignments").json()) == 2


def test_customer_stats_for_admin(api_client: TestClient, admin) -> None:
    admin.on(
        "GET",
        "/assignments",
        {
            "items": [
                {
                    "id": "a-1",
                    "startAt": "2024-05-06T08:00:00Z",
                    "endAt": "2024-05-06T10:00:00Z",
                    "status": "DONE",
                    "kilometers": 7,
                }
            ],
            "nextCursor": None,
        },
    )

    response = api_client.get("/api/admin/customers/c-1/stats")

    assert response.status_code == 200
    body = response.json()
    assert body["plannedHours"] == 2.0
    assert body["doneKilometers"] == 7
    assert body["doneAssignments"] == 1
    assert admin.calls_to("GET", "/assignments")[0][3] == {"customerId": "c-1", "limit": 200}


def test_customer_stats_require_admin(api_client: TestClient, upstream) -> None:
    response = api_client.get("/api/admin/customers/c-1/stats")

    assert response.status_code == 403
    assert response.json() == {"message": "Keine Berechtigung"}


def test_local_errors_use_message_shape(api_client: TestClient, upstream) -> None:
    missing = api_client.get("/api/does-not-exist")
    assert missing.status_code == 404
    assert missing.json() == {"message": "Not Found"}

    invalid = api_client.post("/api/me/assignments/a-1/ack", json={})
    assert invalid.status_code == 422
    assert invalid.json()["message"] == "Ungültige Anfrage"
    assert "detail" not in invalid.json()


def test_oversized_signature_geometry_is_rejected(api_client: TestClient, upstream) -> None:
    upstream.on("GET", "/me/assignments/a-1", _assignment("CONFIRMED"))

    response = api_client.post(
        "/api/me/assignments/a-1/signatures",
        json={"strokes": [[[1, 1], [2, 2]]], "width": 1e6, "height": 1e6, "devicePixelRatio": 50},
    )

    assert response.status_code == 422
    assert upstream.calls == []


def test_signature_declaring_huge_image_is_rejected(api_client: TestClient, upstream) -> None:
    upstream.on("GET", "/me/assignments/a-1", _assignment("CONFIRMED"))
    buffer = io.BytesIO()
    Image.new("RGBA", (1, 1)).save(buffer, format="PNG")
    raw = bytearray(buffer.getvalue())
    raw[16:24] = struct.pack(">II", 20000, 20000)
    raw[29:33] = struct.pack(">I", zlib.crc32(bytes(raw[12:29])))

    response = api_client.post(
        "/api/me/assignments/a-1/signatures",
        json={"signatureData": "data:image/png;base64," + base64.b64encode(bytes(raw)).decode()},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Unterschrift ist zu groß."
    assert upstream.calls_to("POST") == []
