from datetime import timedelta

from hackhub.core.security import create_access_token
from hackhub.models.user import User, UserRole
from conftest import auth_header, login


def test_register_login_and_me(client):
    r = client.post(
        "/auth/register",
        json={"name": "Dana", "email": "Dana@Example.com", "password": "supersecret", "role": "judge"},
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["success"] is True
    assert body["data"]["email"] == "dana@example.com"
    assert body["data"]["role"] == "judge"
    assert "password" not in body["data"]
    assert "hashed_password" not in body["data"]

    token = login(client, "dana@example.com", "supersecret")
    r = client.get("/auth/me", headers=auth_header(token))
    assert r.status_code == 200
    assert r.json()["data"]["name"] == "Dana"


def test_duplicate_email_is_conflict(client):
    r = client.post(
        "/auth/register",
        json={"name": "Alice Again", "email": "alice@example.com", "password": "supersecret"},
    )
    assert r.status_code == 409
    assert r.json()["message"] == "Email already exists"


def test_register_validation_envelope(client):
    r = client.post("/auth/register", json={"name": "X", "email": "nope", "password": "short"})
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    assert {e["field"] for e in body["errors"]} >= {"name", "email", "password"}


def test_wrong_password(client):
    r = client.post("/auth/login", json={"email": "alice@example.com", "password": "wrong-password"})
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid email or password"


def test_missing_token(client):
    r = client.get("/auth/me")
    assert r.status_code == 401
    assert r.json()["message"] == "Access token required"


def test_garbage_token(client):
    r = client.get("/auth/me", headers=auth_header("not-a-jwt"))
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid token"


def test_expired_token(client, seed_data):
    token = create_access_token({"sub": str(seed_data["alice"])}, expires_delta=timedelta(seconds=-5))
    r = client.get("/auth/me", headers=auth_header(token))
    assert r.status_code == 401
    assert r.json()["message"] == "Token expired"


def test_token_for_deleted_user(client, seed_data, db_session):
    token = create_access_token({"sub": str(seed_data["carol"])})
    db_session.query(User).filter(User.id == seed_data["carol"]).delete()
    db_session.commit()

    r = client.get("/auth/me", headers=auth_header(token))
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid token - user not found"


def test_role_is_read_from_database_each_request(client, headers, seed_data, db_session):
    h = headers("carol")
    assert client.post("/events", json={}, headers=h).status_code == 403

    user = db_session.get(User, seed_data["carol"])
    user.role = UserRole.ORGANIZER
    db_session.commit()

    # same token, new role: the request now reaches body validation
    assert client.post("/events", json={}, headers=h).status_code == 400


def test_users_endpoints(client, headers, seed_data):
    r = client.get("/users/search?q=ali", headers=headers("bob"))
    assert r.status_code == 200
    assert [u["email"] for u in r.json()["data"]] == ["alice@example.com"]

    r = client.get(f"/users/{seed_data['alice']}", headers=headers("bob"))
    assert r.json()["data"]["name"] == "Alice"

    r = client.get("/users/9999", headers=headers("bob"))
    assert r.status_code == 404

    r = client.patch(f"/users/{seed_data['alice']}", json={"name": "Mallory"}, headers=headers("bob"))
    assert r.status_code == 403

    r = client.patch(f"/users/{seed_data['bob']}", json={"email": "alice@example.com"}, headers=headers("bob"))
    assert r.status_code == 409

    r = client.patch(f"/users/{seed_data['bob']}", json={"name": "Robert"}, headers=headers("bob"))
    assert r.status_code == 200
    assert r.json()["data"]["name"] == "Robert"

    r = client.get("/users?limit=2", headers=headers("bob"))
    assert r.json()["pagination"]["total_items"] == 6
    assert len(r.json()["data"]) == 2
