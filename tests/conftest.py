"""
Shared test fixtures.

Each test gets its own in-memory mongomock database wired into the app
through the ``get_db`` dependency override.
"""

from datetime import datetime

import mongomock
import pytest
from fastapi.testclient import TestClient

from auth import create_access_token, hash_password
from database import get_db
from main import app

TEST_PASSWORD = "secret123"
# PBKDF2 at full iteration count is slow; hash once per session.
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def db():
    return mongomock.MongoClient().skillswap_test


@pytest.fixture
def client(db):
    """Test client whose routes talk to the mongomock database."""
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Insert a user document and return its id string."""
    counter = {"n": 0}

    def _make(name="Alice", email=None, **fields):
        counter["n"] += 1
        now = datetime(2026, 1, 1)
        doc = {
            "name": name,
            "email": email or f"user{counter['n']}@example.com",
            "password_hash": TEST_PASSWORD_HASH,
            "profile_photo": "",
            "trust_score": 50,
            "is_active": True,
            "bio": "",
            "location": "",
            "skills": [],
            "connections": [],
            "offerings": [],
            "needs": [],
            "created_at": now,
            "updated_at": now,
        }
        doc.update(fields)
        return str(db.user.insert_one(doc).inserted_id)

    return _make
