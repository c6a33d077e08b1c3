"""
Integration tests for feed sync triggers and diagnostics.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from sync_stays.network.client import FeedFetchError, FetchResult
from sync_stays.services.feed_sync import sync_feed


@pytest.mark.integration
@patch("sync_stays.routes.feeds.sync_feed")
def test_trigger_feed_sync_schedules_background_task(
    mock_sync: MagicMock, client: TestClient, engine: Engine, seed: Any
) -> None:
    """Test that POST /feeds/{id}/sync returns 202 and runs the sync."""
    feed_id = seed.feed(seed.property())

    response = client.post(f"/feeds/{feed_id}/sync", params={"dry_run": "true"})

    assert response.status_code == 202
    assert "dry_run=True" in response.json()["message"]
    mock_sync.assert_called_once_with(engine, feed_id, dry_run=True)


@pytest.mark.integration
@patch("sync_stays.routes.feeds.sync_feed")
def test_trigger_feed_sync_unknown_feed(mock_sync: MagicMock, client: TestClient) -> None:
    """Test that an unknown feed is a 404 and nothing is scheduled."""
    response = client.post("/feeds/404/sync")

    assert response.status_code == 404
    mock_sync.assert_not_called()


@pytest.mark.integration
@patch("sync_stays.routes.feeds.sync_all_feeds")
def test_trigger_all_feeds_sync(mock_sync_all: MagicMock, client: TestClient, engine: Engine) -> None:
    """Test that POST /feeds/sync schedules every feed of a workspace."""
    response = client.post("/feeds/sync", params={"workspace_id": 1, "dry_run": "false"})

    assert response.status_code == 202
    mock_sync_all.assert_called_once_with(engine, dry_run=False, workspace_id=1)


@pytest.mark.integration
@patch("sync_stays.services.feed_sync.fetch_feed")
def test_feed_diagnostics_after_failed_fetch(
    mock_fetch: MagicMock, client: TestClient, engine: Engine, seed: Any
) -> None:
    """Test that a rejected fetch is visible through the diagnostics endpoint."""
    feed_id = seed.feed(seed.property())
    mock_fetch.side_effect = FeedFetchError(
        "HTTP 403",
        result=FetchResult(403, "text/html", "https://example.com/blocked", "<html>Denied</html>"),
    )
    sync_feed(engine, feed_id)

    response = client.get(f"/feeds/{feed_id}/diagnostics")

    assert response.status_code == 200
    data = response.json()
    assert data["feed_id"] == feed_id
    assert data["last_sync_status"] == "error"
    assert data["last_http_status"] == 403
    assert data["last_final_url"] == "https://example.com/blocked"
    assert "Denied" in data["last_response_snippet"]


@pytest.mark.integration
def test_feed_diagnostics_unknown_feed(client: TestClient) -> None:
    """Test that diagnostics of an unknown feed is a 404."""
    assert client.get("/feeds/404/diagnostics").status_code == 404
