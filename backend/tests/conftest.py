# backend/tests/conftest.py
from __future__ import annotations

import os

# must be set before propledger.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_MODE"] = "dev"
os.environ["APP_ENV"] = "local"

import pytest
from fastapi.testclient import TestClient

from propledger import models  # noqa: F401
from propledger.db import Base, SessionLocal, engine
from propledger.main import create_app


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture
def client():
    return TestClient(create_app())


@pytest.fixture
def owner_headers() -> dict[str, str]:
    return {"X-User-Email": "owner@demo.local"}


@pytest.fixture
def other_headers() -> dict[str, str]:
    return {"X-User-Email": "someone-else@demo.local"}
