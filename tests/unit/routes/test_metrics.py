"""
Unit tests for metrics endpoint.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from sync_stays.main import app
from sync_stays.metrics import (
    bookings_written,
    enrichment_matches,
    feed_latency,
    feed_requests,
    feed_syncs_total,
    mailbox_requests,
)


@pytest.fixture
def client() -> TestClient:
    """FastAPI test client."""
    return TestClient(app)


@pytest.mark.unit
def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    """Test that /metrics endpoint returns Prometheus text format."""
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "text/plain" in response.headers["content-type"]


@pytest.mark.unit
def test_metrics_endpoint_contains_custom_metrics(client: TestClient) -> None:
    """Test that /metrics endpoint includes the sync metrics."""
    feed_syncs_total.labels(source_type="airbnb", status="success").inc()
    feed_requests.labels(status_code="200").inc()
    feed_latency.observe(0.45)
    bookings_written.labels(operation="insert").inc(3)
    mailbox_requests.labels(operation="get_message", status="success").inc()
    enrichment_matches.labels(reason="confirmation_code").inc()

    content = client.get("/metrics").text

    assert "stays_feed_syncs_total" in content
    assert "stays_feed_requests_total" in content
    assert "stays_feed_latency_seconds" in content
    assert "stays_bookings_written_total" in content
    assert "stays_mailbox_requests_total" in content
    assert "stays_enrichment_matches_total" in content


@pytest.mark.unit
def test_metrics_endpoint_includes_help_and_type_metadata(client: TestClient) -> None:
    """Test that metrics include Prometheus HELP and TYPE metadata."""
    content = client.get("/metrics").text

    assert "# HELP" in content
    assert "# TYPE" in content
