# tests/conftest.py

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import get_store
from main import create_app

from .fakes import FakeTaskStore


@pytest.fixture()
def settings() -> Settings:
    return Settings(database_url="mongodb://localhost:27017", database_name="task-manager-test")


@pytest.fixture()
def store() -> FakeTaskStore:
    return FakeTaskStore()


@pytest.fixture()
def app(settings: Settings, store: FakeTaskStore):
    """
    App wired to the in-memory store.

    The client is not entered as a context manager, so the lifespan
    (which would open a real Mongo client) never runs.
    """
    app = create_app(settings)
    app.dependency_overrides[get_store] = lambda: store
    return app


@pytest.fixture()
def client(app) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)
