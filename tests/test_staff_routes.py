"""HTTP layer: status codes, permissions and error bodies."""

import pytest
from fastapi.testclient import TestClient

from app import app
from core.dependencies import set_staff_manager

SETUP = {
    "owner": {"name": "Owner", "email": "owner@looped.dev", "password": "owner password"},
    "settings": {"site_name": "Looped"},
}


@pytest.fixture
def client(manager):
    set_staff_manager(manager)
    with TestClient(app) as test_client:
        yield test_client
    set_staff_manager(None)


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def owner_token(client):
    assert client.post("/api/setup", json=SETUP).status_code == 201
    response = client.post(
        "/api/staff/login",
        json={"email": "owner@looped.dev", "password": "owner password"},
    )
    assert response.status_code == 200
    return response.json()["token"]


def _invite_and_accept(client, owner_token, last_code, email="alice@x.com", role="editor"):
    response = client.post(
        "/api/staff/invite", json={"email": email, "role": role}, headers=_auth(owner_token)
    )
    assert response.status_code == 201
    response = client.post(
        "/api/staff/accept-invite",
        json={"email": email, "code": last_code(), "password": "pw", "confirm_password": "pw"},
    )
    assert response.status_code == 200
    return response.json()


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_setup_then_settings(client, owner_token):
    assert client.get("/api/settings").json()["site_name"] == "Looped"

    response = client.post("/api/setup", json=SETUP)
    assert response.status_code == 409
    assert response.json()["error"] == "SetupAlreadyCompletedError"


def test_settings_before_setup_not_found(client):
    assert client.get("/api/settings").status_code == 404


def test_update_settings_as_owner(client, owner_token):
    response = client.put(
        "/api/settings", json={"site_name": "Renamed"}, headers=_auth(owner_token)
    )
    assert response.status_code == 200
    assert client.get("/api/settings").json()["site_name"] == "Renamed"


def test_me_hides_secrets(client, owner_token):
    body = client.get("/api/staff/me", headers=_auth(owner_token)).json()
    assert body["email"] == "owner@looped.dev"
    assert "password_hash" not in body
    assert "invite_code" not in body


def test_invalid_token_is_unauthorized(client):
    response = client.get("/api/staff/me", headers=_auth("garbage"))
    assert response.status_code == 401
    assert response.json()["error"] == "InvalidCredentialsError"


def test_invite_flow_over_http(client, owner_token, last_code):
    staff = _invite_and_accept(client, owner_token, last_code)
    assert staff["status"] == "active"
    assert staff["email_verified"] is True

    login = client.post("/api/staff/login", json={"email": "alice@x.com", "password": "pw"})
    assert login.status_code == 200


def test_accept_invite_error_codes(client, owner_token, last_code, clock):
    client.post(
        "/api/staff/invite",
        json={"email": "alice@x.com", "role": "author"},
        headers=_auth(owner_token),
    )
    body = {"email": "alice@x.com", "code": "wrong", "password": "pw", "confirm_password": "pw"}

    assert client.post("/api/staff/accept-invite", json=body).status_code == 400

    mismatch = {**body, "code": last_code(), "confirm_password": "other"}
    response = client.post("/api/staff/accept-invite", json=mismatch)
    assert response.status_code == 400
    assert response.json()["error"] == "PasswordMismatchError"

    clock.advance(hours=25)
    expired = {**body, "code": last_code()}
    assert client.post("/api/staff/accept-invite", json=expired).status_code == 410


def test_duplicate_invite_conflicts(client, owner_token):
    response = client.post(
        "/api/staff/invite",
        json={"email": "owner@looped.dev", "role": "editor"},
        headers=_auth(owner_token),
    )
    assert response.status_code == 409


def test_non_admin_cannot_invite(client, owner_token, last_code):
    _invite_and_accept(client, owner_token, last_code)
    token = client.post(
        "/api/staff/login", json={"email": "alice@x.com", "password": "pw"}
    ).json()["token"]

    response = client.post(
        "/api/staff/invite", json={"email": "bob@x.com", "role": "author"}, headers=_auth(token)
    )
    assert response.status_code == 403


def test_staff_can_rename_self_but_not_promote(client, owner_token, last_code):
    alice = _invite_and_accept(client, owner_token, last_code)
    token = client.post(
        "/api/staff/login", json={"email": "alice@x.com", "password": "pw"}
    ).json()["token"]

    renamed = client.patch(
        f"/api/staff/{alice['staff_id']}", json={"name": "Alice"}, headers=_auth(token)
    )
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Alice"

    promoted = client.patch(
        f"/api/staff/{alice['staff_id']}", json={"role": "owner"}, headers=_auth(token)
    )
    assert promoted.status_code == 403


def test_delete_staff(client, owner_token, last_code):
    alice = _invite_and_accept(client, owner_token, last_code)

    response = client.delete(f"/api/staff/{alice['staff_id']}", headers=_auth(owner_token))
    assert response.status_code == 200
    assert response.json()["status"] == "deleted"

    again = client.delete(f"/api/staff/{alice['staff_id']}", headers=_auth(owner_token))
    assert again.status_code == 404


def test_logout_always_succeeds(client, owner_token):
    for _ in range(2):
        response = client.post("/api/staff/logout", headers=_auth(owner_token))
        assert response.status_code == 200
        assert response.json()["success"] is True
    assert client.get("/api/staff/me", headers=_auth(owner_token)).status_code == 401


def test_forgot_password_same_response(client, owner_token):
    known = client.post("/api/staff/forgot-password", json={"email": "owner@looped.dev"})
    unknown = client.post("/api/staff/forgot-password", json={"email": "nobody@looped.dev"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()


def test_reset_password_over_http(client, owner_token, last_code):
    client.post("/api/staff/forgot-password", json={"email": "owner@looped.dev"})
    response = client.post(
        "/api/staff/reset-password",
        json={"email": "owner@looped.dev", "token": last_code("token"), "new_password": "fresh"},
    )
    assert response.status_code == 200
    assert client.get("/api/staff/me", headers=_auth(owner_token)).status_code == 401


def test_notification_failure_reports_kept_record(client, owner_token, email_provider):
    email_provider.fail_with = "smtp down"
    response = client.post(
        "/api/staff/invite",
        json={"email": "alice@x.com", "role": "editor"},
        headers=_auth(owner_token),
    )
    assert response.status_code == 502
    body = response.json()
    assert body["error"] == "NotificationFailedError"
    assert body["staff_id"]
    assert "smtp down" not in body["detail"]


def _admin_token(client, owner_token, last_code):
    admin = _invite_and_accept(client, owner_token, last_code, "admin@x.com", "administrator")
    token = client.post(
        "/api/staff/login", json={"email": "admin@x.com", "password": "pw"}
    ).json()["token"]
    return admin, token


def test_administrator_cannot_become_owner(client, owner_token, last_code):
    admin, token = _admin_token(client, owner_token, last_code)

    response = client.patch(
        f"/api/staff/{admin['staff_id']}", json={"role": "owner"}, headers=_auth(token)
    )
    assert response.status_code == 400
    assert client.get("/api/staff/me", headers=_auth(token)).json()["role"] == "administrator"


def test_administrator_cannot_touch_owner(client, owner_token, last_code):
    _, token = _admin_token(client, owner_token, last_code)
    owner_id = client.get("/api/staff/me", headers=_auth(owner_token)).json()["staff_id"]

    renamed = client.patch(f"/api/staff/{owner_id}", json={"name": "X"}, headers=_auth(token))
    assert renamed.status_code == 403
    assert renamed.json()["error"] == "PermissionDeniedError"

    deleted = client.delete(f"/api/staff/{owner_id}", headers=_auth(token))
    assert deleted.status_code == 403
    assert client.get("/api/staff/me", headers=_auth(owner_token)).status_code == 200
