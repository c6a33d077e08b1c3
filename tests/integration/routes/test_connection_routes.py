"""
Integration tests for the enrichment and reprocess triggers.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine


@pytest.mark.integration
@patch("sync_stays.routes.connections.enrich_connection")
def test_trigger_enrichment(
    mock_enrich: MagicMock, client: TestClient, engine: Engine, seed: Any
) -> None:
    """Test that POST /connections/{id}/enrich returns 202 and runs the pass."""
    connection_id = seed.connection()

    response = client.post(f"/connections/{connection_id}/enrich", params={"dry_run": "false"})

    assert response.status_code == 202
    mock_enrich.assert_called_once_with(engine, connection_id, dry_run=False)


@pytest.mark.integration
@patch("sync_stays.routes.connections.reprocess_connection")
def test_trigger_reprocess(
    mock_reprocess: MagicMock, client: TestClient, engine: Engine, seed: Any
) -> None:
    """Test that POST /connections/{id}/reprocess returns 202 and runs the reprocess."""
    connection_id = seed.connection()

    response = client.post(f"/connections/{connection_id}/reprocess", params={"dry_run": "true"})

    assert response.status_code == 202
    mock_reprocess.assert_called_once_with(engine, connection_id, dry_run=True)


@pytest.mark.integration
@patch("sync_stays.routes.connections.enrich_connection")
def test_unknown_connection_is_404(mock_enrich: MagicMock, client: TestClient) -> None:
    """Test that an unknown connection is rejected before scheduling."""
    response = client.post("/connections/404/enrich")

    assert response.status_code == 404
    mock_enrich.assert_not_called()


@pytest.mark.integration
@patch("sync_stays.routes.connections.reprocess_connection")
def test_unlinked_connection_is_400(
    mock_reprocess: MagicMock, client: TestClient, seed: Any
) -> None:
    """Test that a connection without a workspace cannot be processed."""
    connection_id = seed.connection(workspace_id=None)

    response = client.post(f"/connections/{connection_id}/reprocess")

    assert response.status_code == 400
    mock_reprocess.assert_not_called()


@pytest.mark.integration
@patch("sync_stays.routes.connections.sync_connection")
@patch("sync_stays.routes.connections.gmail_source_for")
def test_trigger_scan_uses_stored_credentials(
    mock_source_for: MagicMock,
    mock_sync: MagicMock,
    client: TestClient,
    engine: Engine,
    seed: Any,
) -> None:
    """Test that POST /connections/{id}/scan builds the mailbox source and runs the sync."""
    connection_id = seed.connection()

    response = client.post(f"/connections/{connection_id}/scan", params={"dry_run": "false"})

    assert response.status_code == 202
    assert mock_source_for.call_args.args[0].id == connection_id
    mock_sync.assert_called_once_with(
        engine, connection_id, mock_source_for.return_value, dry_run=False
    )


@pytest.mark.integration
@patch("sync_stays.routes.connections.sync_connection")
@patch("sync_stays.routes.connections.gmail_source_for", return_value=None)
def test_scan_without_stored_credentials_is_409(
    mock_source_for: MagicMock, mock_sync: MagicMock, client: TestClient, seed: Any
) -> None:
    """Test that a connection with no stored token cannot be scanned."""
    connection_id = seed.connection()

    response = client.post(f"/connections/{connection_id}/scan")

    assert response.status_code == 409
    mock_sync.assert_not_called()


@pytest.mark.integration
@patch("sync_stays.routes.connections.sync_connection")
def test_scan_unknown_connection_is_404(mock_sync: MagicMock, client: TestClient) -> None:
    """Test that an unknown connection is rejected before building a source."""
    response = client.post("/connections/404/scan")

    assert response.status_code == 404
    mock_sync.assert_not_called()
