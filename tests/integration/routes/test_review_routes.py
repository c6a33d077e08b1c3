"""
Integration tests for the review queue endpoints.
"""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from sync_stays.services.enrichment import MISSING_FROM_CALENDAR, enrich_connection

TODAY = date(2026, 3, 1)


@pytest.fixture
def queued(engine: Engine, seed: Any) -> dict[str, int]:
    """One pending item for a confirmation whose stay is not on any calendar yet."""
    property_id = seed.property()
    connection_id = seed.connection(property_ids=(property_id,))
    seed.fact(
        connection_id,
        date(2026, 5, 1),
        date(2026, 5, 4),
        guest_name="Nora Weber",
        guest_count=2,
        code="B16389402",
    )
    enrich_connection(engine, connection_id, today=TODAY)
    return {"property_id": property_id}


@pytest.mark.integration
def test_list_pending_items(client: TestClient, queued: dict[str, int]) -> None:
    """Test that the workspace queue lists the pending item."""
    response = client.get("/review-items", params={"workspace_id": 1})

    assert response.status_code == 200
    [item] = response.json()
    assert item["item_type"] == MISSING_FROM_CALENDAR
    assert item["status"] == "pending"
    assert item["extracted_data"]["guest_name"] == "Nora Weber"
    assert client.get("/review-items", params={"workspace_id": 2}).json() == []


@pytest.mark.integration
def test_resolve_item_onto_booking(client: TestClient, seed: Any, queued: dict[str, int]) -> None:
    """Test resolving a pending item once the stay appears on the calendar."""
    booking_id = seed.booking(queued["property_id"], date(2026, 5, 1), date(2026, 5, 4))
    [item] = client.get("/review-items", params={"workspace_id": 1}).json()

    response = client.post(
        f"/review-items/{item['id']}/resolve", json={"property_id": queued["property_id"]}
    )

    assert response.status_code == 200
    assert response.json()["resolved_booking_id"] == booking_id
    assert seed.get_booking(booking_id).guest_name == "Nora Weber"


@pytest.mark.integration
def test_resolve_requires_property(client: TestClient, queued: dict[str, int]) -> None:
    """Test that resolving without a property is a 400."""
    [item] = client.get("/review-items", params={"workspace_id": 1}).json()

    response = client.post(f"/review-items/{item['id']}/resolve", json={"action": "resolve"})

    assert response.status_code == 400


@pytest.mark.integration
def test_resolve_without_matching_booking_is_404(
    client: TestClient, queued: dict[str, int]
) -> None:
    """Test that no booking on the item's dates is reported as not found."""
    [item] = client.get("/review-items", params={"workspace_id": 1}).json()

    response = client.post(
        f"/review-items/{item['id']}/resolve", json={"property_id": queued["property_id"]}
    )

    assert response.status_code == 404


@pytest.mark.integration
def test_dismiss_item(client: TestClient, queued: dict[str, int]) -> None:
    """Test that a dismissed item leaves the queue."""
    [item] = client.get("/review-items", params={"workspace_id": 1}).json()

    response = client.post(f"/review-items/{item['id']}/resolve", json={"action": "dismiss"})

    assert response.status_code == 200
    assert response.json()["status"] == "rejected"
    assert client.get("/review-items", params={"workspace_id": 1}).json() == []
    assert client.post("/review-items/404/resolve", json={"action": "dismiss"}).status_code == 404
