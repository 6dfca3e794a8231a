import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ["DATABASE_URL"] = ""
os.environ["DATABASE_NAME"] = ""

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from auth import CallerIdentity, create_access_token, hash_password
from main import app
from schemas import User


@pytest.fixture
def db(monkeypatch):
    mock_db = mongomock.MongoClient()["food_ordering_test"]
    monkeypatch.setattr(database, "db", mock_db)
    return mock_db


@pytest.fixture
def client(db):
    with TestClient(app) as c:
        yield c


def make_user(email, password="secret", is_admin=False, is_blocked=False, name=None, address="1 Main St"):
    user = User(
        name=name or email.split("@")[0].title(),
        email=email,
        password_hash=hash_password(password),
        address=address,
        is_admin=is_admin,
        is_blocked=is_blocked,
    )
    user_id = database.create_document("user", user)
    return database.get_document_by_id("user", user_id)


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def user(db):
    return make_user("alice@example.com")


@pytest.fixture
def other_user(db):
    return make_user("bob@example.com")


@pytest.fixture
def admin(db):
    return make_user("admin@example.com", is_admin=True)


@pytest.fixture
def caller(user):
    return CallerIdentity.from_user(user)


@pytest.fixture
def other_caller(other_user):
    return CallerIdentity.from_user(other_user)


@pytest.fixture
def admin_caller(admin):
    return CallerIdentity.from_user(admin)
