"""
API tests: route protection, token issuance and the CRUD collaborators.
Run with: pytest tests/test_api.py -v
"""

import time
from dataclasses import replace

import jwt
import pytest
from fastapi.testclient import TestClient

from intern_portal.api.server import create_app
from intern_portal.db import connect
from intern_portal.holidays.crud import upsert_holiday


# ============================================================================
# Gate on protected routes
# ============================================================================

@pytest.mark.parametrize(
    "method,path",
    [
        ("get", "/api/bookings"),
        ("post", "/api/bookings"),
        ("get", "/api/bookings/some-id"),
        ("put", "/api/bookings/some-id"),
        ("delete", "/api/bookings/some-id"),
    ],
)
def test_bookings_require_token(client, method, path):
    r = getattr(client, method)(path)
    assert r.status_code == 401
    assert r.json() == {"message": "No token provided"}


def test_header_without_token_is_no_token(client):
    r = client.get("/api/bookings", headers={"Authorization": "Bearer"})
    assert r.status_code == 401
    assert r.json() == {"message": "No token provided"}


def test_wrongly_signed_token_is_invalid(client, make_token):
    token = make_token("abc", secret="not-the-server-secret-0123456789abcdef")
    r = client.get("/api/bookings", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json() == {"message": "Invalid token"}


def test_expired_token_is_invalid(client, cfg):
    now = int(time.time())
    token = jwt.encode({"id": "abc", "iat": now - 120, "exp": now - 60}, cfg.JWT_SECRET, algorithm="HS256")
    r = client.get("/api/bookings", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json() == {"message": "Invalid token"}


def test_gate_runs_before_body_validation(client):
    r = client.post("/api/bookings", json={"nonsense": True})
    assert r.status_code == 401
    assert r.json() == {"message": "No token provided"}


def test_gate_runs_before_body_parsing(client):
    r = client.post("/api/bookings", content=b"{not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 401
    assert r.json() == {"message": "No token provided"}

    r = client.put("/api/bookings/some-id", content=b"{not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 401
    assert r.json() == {"message": "No token provided"}


def test_malformed_body_after_gate_is_message_json(client, make_token):
    headers = {"Authorization": f"Bearer {make_token()}", "Content-Type": "application/json"}
    r = client.post("/api/bookings", content=b"{not json", headers=headers)
    assert r.status_code == 422
    assert r.json() == {"message": "Invalid request"}


def test_missing_fields_are_named_in_message(client, make_token):
    headers = {"Authorization": f"Bearer {make_token()}"}
    r = client.post("/api/bookings", json={"nonsense": True}, headers=headers)
    assert r.status_code == 422
    assert r.json() == {"message": "Invalid request: date, resource"}


def test_invalid_query_parameter_is_message_json(client):
    r = client.get("/api/holidays", params={"year": 0})
    assert r.status_code == 422
    assert r.json() == {"message": "Invalid request: year"}


def test_handler_sees_identity_from_token(client, make_token):
    token = make_token("intern-xyz")
    headers = {"Authorization": f"Bearer {token}"}
    # Same token twice: no single-use consumption.
    for _ in range(2):
        r = client.get("/api/bookings", headers=headers)
        assert r.status_code == 200
        assert r.json() == []


def test_public_routes_bypass_gate(client):
    assert client.get("/health").status_code == 200
    assert client.get("/api/interns").status_code == 200
    assert client.get("/api/holidays").status_code == 200


# ============================================================================
# Auth (issuance)
# ============================================================================

def test_register_returns_token_for_new_intern(client, cfg, registered):
    intern, token = registered
    assert intern["email"] == "ada@example.com"
    assert "password_hash" not in intern
    payload = jwt.decode(token, cfg.JWT_SECRET, algorithms=["HS256"])
    assert payload["id"] == intern["intern_id"]


def test_register_duplicate_email(client, registered):
    r = client.post(
        "/api/auth/register",
        json={"name": "Other", "email": "ADA@example.com", "password": "another-pass"},
    )
    assert r.status_code == 409
    assert r.json() == {"message": "Email already registered"}


def test_register_short_password(client):
    r = client.post("/api/auth/register", json={"name": "Bob", "email": "bob@example.com", "password": "x"})
    assert r.status_code == 400
    assert "Password" in r.json()["message"]


def test_login_round_trip(client, registered):
    intern, _ = registered
    r = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "correct-horse"})
    assert r.status_code == 200
    body = r.json()
    assert body["intern"]["intern_id"] == intern["intern_id"]

    r = client.get("/api/bookings", headers={"Authorization": f"Bearer {body['token']}"})
    assert r.status_code == 200


def test_login_bad_password(client, registered):
    r = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "wrong-password"})
    assert r.status_code == 401
    assert r.json() == {"message": "Invalid credentials"}


# ============================================================================
# Interns
# ============================================================================

def test_interns_listing_and_lookup(client, registered):
    intern, _ = registered
    r = client.get("/api/interns")
    assert r.status_code == 200
    assert [i["intern_id"] for i in r.json()] == [intern["intern_id"]]
    assert "password_hash" not in r.json()[0]

    r = client.get(f"/api/interns/{intern['intern_id']}")
    assert r.status_code == 200
    assert r.json()["name"] == "Ada Lovelace"

    r = client.get("/api/interns/missing")
    assert r.status_code == 404
    assert r.json() == {"message": "Intern not found"}


# ============================================================================
# Bookings
# ============================================================================

def test_booking_lifecycle(client, auth_headers, registered):
    intern, _ = registered
    r = client.post(
        "/api/bookings",
        json={"resource": "Meeting room A", "date": "2026-11-02", "start_time": "10:00", "end_time": "11:00"},
        headers=auth_headers,
    )
    assert r.status_code == 201
    booking = r.json()
    assert booking["intern_id"] == intern["intern_id"]
    assert booking["booking_date"] == "2026-11-02"

    booking_id = booking["booking_id"]
    r = client.get(f"/api/bookings/{booking_id}", headers=auth_headers)
    assert r.status_code == 200

    r = client.put(f"/api/bookings/{booking_id}", json={"notes": "bring laptop"}, headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["notes"] == "bring laptop"
    assert r.json()["resource"] == "Meeting room A"

    r = client.get("/api/bookings", headers=auth_headers)
    assert [b["booking_id"] for b in r.json()] == [booking_id]

    r = client.delete(f"/api/bookings/{booking_id}", headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == {"message": "Booking deleted"}

    r = client.get(f"/api/bookings/{booking_id}", headers=auth_headers)
    assert r.status_code == 404


def test_booking_invalid_date(client, auth_headers):
    r = client.post("/api/bookings", json={"resource": "Desk 4", "date": "tomorrow"}, headers=auth_headers)
    assert r.status_code == 400
    assert r.json() == {"message": "Date must be formatted YYYY-MM-DD"}


def test_bookings_are_scoped_to_caller(client, auth_headers, make_token):
    r = client.post("/api/bookings", json={"resource": "Desk 4", "date": "2026-11-03"}, headers=auth_headers)
    booking_id = r.json()["booking_id"]

    other = {"Authorization": f"Bearer {make_token('someone-else')}"}
    assert client.get("/api/bookings", headers=other).json() == []
    assert client.get(f"/api/bookings/{booking_id}", headers=other).status_code == 404
    assert client.delete(f"/api/bookings/{booking_id}", headers=other).status_code == 404
    assert client.get(f"/api/bookings/{booking_id}", headers=auth_headers).status_code == 200


# ============================================================================
# Holidays
# ============================================================================

def test_holidays_by_year(client, cfg):
    with connect(cfg.DB_DSN) as conn:
        upsert_holiday(conn, holiday_date="2026-12-25", name="Christmas Day")
        upsert_holiday(conn, holiday_date="2026-01-26", name="Republic Day", country="IN")
        upsert_holiday(conn, holiday_date="2027-01-01", name="New Year's Day")

    r = client.get("/api/holidays", params={"year": 2026})
    assert r.status_code == 200
    assert [h["name"] for h in r.json()] == ["Republic Day", "Christmas Day"]

    r = client.get("/api/holidays")
    assert len(r.json()) == 3


def test_booking_with_token_for_unknown_intern(client, make_token):
    headers = {"Authorization": f"Bearer {make_token('deleted-intern')}"}
    r = client.post("/api/bookings", json={"resource": "Desk 4", "date": "2026-11-03"}, headers=headers)
    assert r.status_code == 404
    assert r.json() == {"message": "Intern not found"}


def test_requests_are_logged(cfg, capsys):
    with TestClient(create_app(replace(cfg, LOG_REQUESTS=True))) as c:
        c.get("/api/holidays", params={"year": 2026})

    assert "Request URL: /api/holidays?year=2026" in capsys.readouterr().out


def test_app_without_gate_fails_closed(cfg):
    app = create_app(cfg)
    app.state.gate = None
    with TestClient(app) as c:
        r = c.get("/api/bookings")
    assert r.status_code == 500
    assert r.json() == {"message": "Server configuration missing"}


def test_not_found_is_message_json(client, auth_headers):
    r = client.get("/api/bookings/does-not-exist", headers=auth_headers)
    assert r.status_code == 404
    assert r.json() == {"message": "Booking not found"}
