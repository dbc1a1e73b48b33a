"""Shared pytest fixtures: an in-memory MongoDB and an API client bound to it."""

from __future__ import annotations

import itertools

import mongomock
import pytest
from fastapi.testclient import TestClient

from app.core.auth import create_access_token, hash_password
from app.db import mongodb
from app.services.user_service import UserService

PASSWORD = "correct-horse-battery"
_emails = itertools.count(1)


@pytest.fixture
def db():
    mongodb.set_mongo_client(mongomock.MongoClient())
    database = mongodb.get_mongo_db()
    mongodb.init_mongo_indexes(database)
    try:
        yield database
    finally:
        mongodb.set_mongo_client(None)


@pytest.fixture(scope="session")
def password_hash() -> str:
    return hash_password(PASSWORD)


@pytest.fixture
def make_user(db, password_hash):
    def _make(role: str = "candidate", plan: str | None = None, email: str | None = None) -> dict:
        users = UserService(db)
        user = users.create_user(email or f"user{next(_emails)}@example.com", password_hash, role)
        if plan:
            users.collection.update_one({"_id": user["_id"]}, {"$set": {"plan": plan}})
            user["plan"] = plan
        return user

    return _make


def auth_headers(user: dict) -> dict:
    token = create_access_token({"sub": str(user["_id"]), "role": user["role"]})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db):
    from app.main import app

    with TestClient(app) as test_client:
        yield test_client
