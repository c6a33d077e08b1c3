"""
API client wired to the per-test in-memory database.
"""

from __future__ import annotations

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from sync_stays.dependencies import get_db_engine
from sync_stays.main import app


@pytest.fixture
def client(engine: Engine) -> Generator[TestClient, None, None]:
    """TestClient whose requests use the test engine."""
    app.dependency_overrides[get_db_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()
