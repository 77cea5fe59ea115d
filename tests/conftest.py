import json
import uuid

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import settings
from database import create_document, ensure_indexes, get_db
from main import app

ADMIN_EMAIL = "admin@example.com"

ADDRESS = {
    "label": "Home",
    "name": "Ravi Kumar",
    "line1": "12 Market Road",
    "city": "Guntur",
    "state": "Andhra Pradesh",
    "pincode": "522001",
    "phone": "9876543210",
}


def _png_bytes(tag: str = "") -> bytes:
    # Not a decodable PNG, only the signature matters to the API
    return b"\x89PNG\r\n\x1a\n" + (tag or uuid.uuid4().hex).encode()


@pytest.fixture
def db():
    # One throwaway database per test
    database = mongomock.MongoClient().get_database(f"test_{uuid.uuid4().hex[:8]}")
    ensure_indexes(database)
    return database


@pytest.fixture
def make_client(db, monkeypatch):
    """Factory for independent clients (separate cookie jars) sharing the test database."""
    monkeypatch.setattr(settings, "ADMIN_EMAILS", ADMIN_EMAIL)
    app.dependency_overrides[get_db] = lambda: db

    def _make(name: str = None, email: str = None, password: str = "secret123") -> TestClient:
        client = TestClient(app)
        if email:
            resp = client.post("/api/auth/register", json={"name": name or email.split("@")[0], "email": email, "password": password})
            assert resp.status_code == 201, resp.text
        return client

    yield _make
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def customer(make_client):
    return make_client("Ravi Kumar", "ravi@example.com")


@pytest.fixture
def admin(make_client):
    return make_client("Store Admin", ADMIN_EMAIL)


@pytest.fixture
def add_livestock(db):
    def _add(name="Tellicherry Goat", price=12500, status="Available", **extra):
        data = {
            "name": name,
            "type": extra.pop("type", "Goat"),
            "breed": extra.pop("breed", "Tellicherry"),
            "age": extra.pop("age", "8 months"),
            "weight": extra.pop("weight", "28 kg"),
            "price": price,
            "images": extra.pop("images", []),
            "tags": extra.pop("tags", []),
            "status": status,
        }
        return create_document(db, "livestock", data)
    return _add


def _place_order(client, livestock_ids, proof: bytes = None, address=None):
    data = {
        "items": json.dumps([{"_id": i} for i in livestock_ids]),
        "address": json.dumps(address or ADDRESS),
    }
    files = {"paymentProof": ("proof.png", proof, "image/png")} if proof is not None else None
    return client.post("/api/orders", data=data, files=files)


@pytest.fixture
def png_bytes():
    return _png_bytes


@pytest.fixture
def place_order():
    return _place_order


@pytest.fixture
def address():
    return dict(ADDRESS)
