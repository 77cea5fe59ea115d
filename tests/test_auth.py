from datetime import timedelta

from jose import jwt

from auth import create_access_token, hash_password, verify_password
from config import settings


def test_register_sets_cookie_and_me_works(client):
    resp = client.post("/api/auth/register", json={"name": "Anita", "email": "Anita@Example.com ", "password": "pw12345"})
    assert resp.status_code == 201
    user = resp.json()["user"]
    assert user["email"] == "anita@example.com"
    assert settings.COOKIE_NAME in resp.cookies

    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "anita@example.com"
    assert me.json()["user"]["is_admin"] is False


def test_password_is_stored_hashed(client, db):
    client.post("/api/auth/register", json={"name": "Anita", "email": "anita@example.com", "password": "pw12345"})
    stored = db["user"].find_one({"email": "anita@example.com"})
    assert stored["password"] != "pw12345"
    assert verify_password("pw12345", stored["password"])


def test_register_duplicate_email_fails(make_client):
    make_client("Ravi", "ravi@example.com")
    other = make_client()
    resp = other.post("/api/auth/register", json={"name": "Ravi 2", "email": "RAVI@example.com", "password": "x"})
    assert resp.status_code == 409


def test_register_requires_all_fields(client):
    resp = client.post("/api/auth/register", json={"email": "a@example.com", "password": "x"})
    assert resp.status_code == 400


def test_login_wrong_password_fails(make_client):
    make_client("Ravi", "ravi@example.com", password="right-password")
    anon = make_client()
    resp = anon.post("/api/auth/login", json={"email": "ravi@example.com", "password": "wrong-password"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid credentials"
    assert anon.get("/api/auth/me").status_code == 401


def test_login_unknown_email_fails(client):
    resp = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "x"})
    assert resp.status_code == 400


def test_login_success(make_client):
    make_client("Ravi", "ravi@example.com", password="right-password")
    anon = make_client()
    resp = anon.post("/api/auth/login", json={"email": "Ravi@example.com", "password": "right-password"})
    assert resp.status_code == 200
    assert anon.get("/api/auth/me").json()["user"]["name"] == "Ravi"


def test_me_requires_cookie(client):
    resp = client.get("/api/auth/me")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Not authenticated"


def test_expired_token_rejected(make_client, db):
    make_client("Anita", "anita@example.com")
    user = db["user"].find_one({"email": "anita@example.com"})
    anon = make_client()
    anon.cookies.set(settings.COOKIE_NAME, create_access_token(user, expires_delta=timedelta(seconds=-10)))
    resp = anon.get("/api/auth/me")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid or expired token"


def test_token_carries_user_identity(make_client, db):
    client = make_client("Anita", "anita@example.com")
    user = db["user"].find_one({"email": "anita@example.com"})
    claims = jwt.decode(client.cookies.get(settings.COOKIE_NAME), settings.JWT_SECRET, algorithms=[settings.ALGORITHM])
    assert claims["sub"] == claims["id"] == str(user["_id"])
    assert claims["email"] == "anita@example.com"
    assert claims["name"] == "Anita"


def test_tampered_token_rejected(client):
    client.cookies.set(settings.COOKIE_NAME, "not-a-jwt")
    assert client.get("/api/auth/me").status_code == 401


def test_logout_clears_cookie(customer):
    assert customer.get("/api/auth/me").status_code == 200
    resp = customer.post("/api/auth/logout")
    assert resp.status_code == 200
    assert customer.get("/api/auth/me").status_code == 401


def test_admin_email_gets_admin_role(admin, db):
    assert admin.get("/api/auth/me").json()["user"]["is_admin"] is True
    assert db["user"].find_one({"email": "admin@example.com"})["role"] == "admin"


def test_verify_password_handles_garbage_hash():
    assert verify_password("x", "") is False
    assert verify_password("x", "not-a-bcrypt-hash") is False
    assert verify_password("x", hash_password("x")) is True


def test_logger_follows_configured_level():
    import logging

    from logger import logger

    assert logger.level == logging.getLevelName(settings.LOG_LEVEL.upper())
    assert logging.getLogger("pymongo").level == logging.WARNING
