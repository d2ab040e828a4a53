# backend/tests/conftest.py
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

import simple_posts_backend.db as db
from simple_posts_backend.main import app


# ----------------------------
# Database: in-memory SQLite shared by every request of one test
# ----------------------------

@pytest.fixture()
def engine(monkeypatch):
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    monkeypatch.setattr(db, "ENGINE", engine)

    yield engine

    engine.dispose()


@pytest.fixture()
def client(engine):
    with TestClient(app) as client:
        yield client
