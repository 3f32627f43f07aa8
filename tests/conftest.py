# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# Sets safe environment defaults before the application is imported, then
# builds an isolated app (temporary SQLite file and upload directory) per test.
# =============================================================================

import os
import tempfile

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# app.main builds a module-level app from the environment on import

os.environ.setdefault("NODE_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="artmarket-uploads-"))
os.environ.setdefault("STORAGE_BACKEND", "local")

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.main import create_app

TEST_SECRET_KEY = "test-secret-key-with-at-least-32-characters"
DEFAULT_PASSWORD = "supersecret1"

ARTWORK_PAYLOAD = {
    "title": "Sunset Over Water",
    "description": "A calm evening scene painted in oils.",
    "price": 250,
    "category": "Landscape",
    "medium": "Canvas",
    "size": "Medium",
    "style": "Impressionism",
    "technique": "Oil Painting",
    "imageUrl": "https://images.example.com/sunset.jpg",
}

# Smallest valid PNG header; storage never decodes the image
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def make_settings(tmp_path, **overrides) -> Settings:
    values = {
        "_env_file": None,
        "node_env": "test",
        "database_url": f"sqlite:///{tmp_path / 'test.db'}",
        "upload_dir": str(tmp_path / "uploads"),
        "storage_backend": "local",
        "secret_key": TEST_SECRET_KEY,
        "bcrypt_rounds": 4,
        "api_rate_limit_max": 1000,
        "auth_rate_limit_max": 1000,
        "upload_rate_limit_max": 1000,
    }
    values.update(overrides)
    return Settings(**values)


# =============================================================================
# Helpers
# =============================================================================


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register_user(
    client: TestClient,
    name: str = "Alice Artist",
    email: str = "alice@example.com",
    password: str = DEFAULT_PASSWORD,
    role: str = "seller",
) -> dict:
    resp = client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": password, "role": role},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["user"]


def login(client: TestClient, email: str, password: str = DEFAULT_PASSWORD) -> str:
    resp = client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["token"]


def create_artwork(client: TestClient, headers: dict, **overrides) -> dict:
    payload = {**ARTWORK_PAYLOAD, **overrides}
    resp = client.post("/api/artworks/create", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["artwork"]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    # Context manager so the lifespan creates the tables
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def seller(client):
    user = register_user(client, name="Alice Artist", email="alice@example.com")
    token = login(client, "alice@example.com")
    return {"user": user, "token": token, "headers": auth_headers(token)}


@pytest.fixture
def other_seller(client):
    user = register_user(client, name="Carol Painter", email="carol@example.com")
    token = login(client, "carol@example.com")
    return {"user": user, "token": token, "headers": auth_headers(token)}


@pytest.fixture
def buyer(client):
    user = register_user(client, name="Bob Buyer", email="bob@example.com", role="buyer")
    token = login(client, "bob@example.com")
    return {"user": user, "token": token, "headers": auth_headers(token)}


@pytest.fixture
def artwork(client, seller):
    return create_artwork(client, seller["headers"])
