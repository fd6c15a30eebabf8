"""
API fixtures: the application wired to the per-test database and dispatcher.
"""

from __future__ import annotations

from typing import Generator

import pytest
from fastapi.testclient import TestClient

from reservation_engine.dependencies import get_db_engine, get_dispatcher
from reservation_engine.main import app


@pytest.fixture
def client(db_engine, dispatcher, resources) -> Generator[TestClient, None, None]:
    """TestClient whose routes use the test database and mocked collaborators."""
    app.dependency_overrides[get_db_engine] = lambda: db_engine
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def owner_headers() -> dict[str, str]:
    return {"X-Requester-Id": "owner-1"}
