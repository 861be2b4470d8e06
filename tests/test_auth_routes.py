from datetime import datetime, timedelta

import pytz
from fastapi.testclient import TestClient

from app import create_app

PASSWORD = "correct horse battery"


def test_register_sets_session_cookie(client):
    resp = client.post(
        "/api/auth/register",
        json={"name": "Ada", "email": "a@x.com", "password": PASSWORD},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["email"] == "a@x.com"
    assert isinstance(body["user_id"], int)

    cookie = resp.headers["set-cookie"].lower()
    assert cookie.startswith("auth_token=")
    assert "httponly" in cookie
    assert "secure" in cookie
    assert "samesite=strict" in cookie
    assert "max-age=604800" in cookie


def test_register_then_login(register, client):
    _, user_id = register("Ada", "a@x.com")

    resp = client.post("/api/auth/login", json={"email": "a@x.com", "password": PASSWORD})

    assert resp.status_code == 200
    assert resp.json() == {"user_id": user_id, "email": "a@x.com"}
    assert client.get("/api/user").json() == {"user_id": user_id}


def test_duplicate_email_is_a_conflict(register, client):
    register("Ada", "a@x.com")

    resp = client.post(
        "/api/auth/register",
        json={"name": "Other", "email": "a@x.com", "password": PASSWORD},
    )

    assert resp.status_code == 409
    assert resp.json()["error"] == "conflict"


def test_wrong_password_is_rejected(register, client):
    register("Ada", "a@x.com")

    resp = client.post("/api/auth/login", json={"email": "a@x.com", "password": "nope"})

    assert resp.status_code == 401
    assert resp.json()["error"] == "invalid_credential"


def test_unknown_email_is_rejected(client):
    resp = client.post("/api/auth/login", json={"email": "ghost@x.com", "password": PASSWORD})

    assert resp.status_code == 401


def test_protected_route_requires_cookie(client):
    resp = client.get("/api/user/profile")

    assert resp.status_code == 401
    assert resp.json() == {"detail": "Authentication required", "error": "invalid_credential"}


def test_expired_cookie_is_rejected(app, register, client_factory):
    _, user_id = register("Ada", "a@x.com")
    store = app.state.credential_store
    expired = store.issue(user_id, now=datetime.now(pytz.utc) - timedelta(days=8))

    client = client_factory()
    client.cookies.set("auth_token", expired)
    resp = client.get("/api/user/profile")

    assert resp.status_code == 401
    assert resp.json()["error"] == "invalid_credential"


def test_logout_clears_cookie_but_token_stays_valid(register, client_factory):
    client, user_id = register("Ada", "a@x.com")
    token = client.cookies.get("auth_token")

    resp = client.post("/api/auth/logout")
    assert resp.status_code == 200
    assert client.get("/api/user/profile").status_code == 401

    # No server-side revocation: the old token still proves identity
    replay = client_factory()
    replay.cookies.set("auth_token", token)
    assert replay.get("/api/user/profile").json()["id"] == user_id


def test_profile_and_edit(register):
    client, user_id = register("Ada", "a@x.com")

    assert client.get("/api/user/profile").json() == {
        "id": user_id,
        "name": "Ada",
        "email": "a@x.com",
    }

    resp = client.post("/api/user/profile/edit", json={"name": "Ada Lovelace"})
    assert resp.status_code == 200
    assert resp.json()["name"] == "Ada Lovelace"
    assert client.get("/api/user/profile").json()["name"] == "Ada Lovelace"


def test_empty_profile_name_is_rejected(register):
    client, _ = register("Ada", "a@x.com")

    resp = client.post("/api/user/profile/edit", json={"name": "   "})

    assert resp.status_code == 400
    assert resp.json()["error"] == "validation_error"


def test_token_for_deleted_user_is_not_found(app, client_factory):
    token = app.state.credential_store.issue(424242)
    client = client_factory()
    client.cookies.set("auth_token", token)

    resp = client.get("/api/user")

    assert resp.status_code == 404


def test_health_and_root(client):
    assert client.get("/api/health").json() == {"status": "ok"}
    assert client.get("/").json()["name"] == "Sun Class API"


def test_custom_cookie_name_is_used_for_reading_and_writing(settings):
    app = create_app(settings.model_copy(update={"auth_cookie_name": "sid"}))
    try:
        with TestClient(app, base_url="https://testserver") as client:
            resp = client.post(
                "/api/auth/register",
                json={"name": "Ada", "email": "a@x.com", "password": PASSWORD},
            )
            assert resp.status_code == 200
            assert resp.headers["set-cookie"].startswith("sid=")

            resp = client.get("/api/user/profile")
            assert resp.status_code == 200
            assert resp.json()["name"] == "Ada"

            client.post("/api/auth/logout")
            assert client.get("/api/user/profile").status_code == 401
    finally:
        app.state.engine.dispose()
