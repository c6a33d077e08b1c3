"""
Integration tests for the manual resolution endpoints.
"""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest
from fastapi.testclient import TestClient


@pytest.mark.integration
def test_put_resolution_stores_override(client: TestClient, seed: Any) -> None:
    """Test that PUT records the override and returns the booking."""
    property_id = seed.property()
    connection_id = seed.connection(property_ids=(property_id,))
    booking_id = seed.booking(property_id, date(2026, 3, 12), date(2026, 3, 15))

    response = client.put(
        f"/bookings/{booking_id}/resolution",
        json={"guest_name": "Liz Servin", "guest_count": 3, "connection_id": connection_id},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["manual_guest_name"] == "Liz Servin"
    assert data["manual_guest_count"] == 3
    assert data["manually_resolved_at"] is not None
    assert seed.get_booking(booking_id).manual_connection_id == connection_id


@pytest.mark.integration
def test_put_resolution_validates_payload(client: TestClient, seed: Any) -> None:
    """Test that an out-of-range guest count is rejected before any write."""
    booking_id = seed.booking(seed.property(), date(2026, 3, 12), date(2026, 3, 15))

    response = client.put(f"/bookings/{booking_id}/resolution", json={"guest_count": 0})

    assert response.status_code == 422


@pytest.mark.integration
def test_put_resolution_rejects_foreign_connection(client: TestClient, seed: Any) -> None:
    """Test that a connection of another workspace is a 400."""
    booking_id = seed.booking(seed.property(), date(2026, 3, 12), date(2026, 3, 15))
    foreign = seed.connection(workspace_id=2)

    response = client.put(
        f"/bookings/{booking_id}/resolution", json={"guest_name": "Liz", "connection_id": foreign}
    )

    assert response.status_code == 400


@pytest.mark.integration
def test_delete_resolution_clears_override(client: TestClient, seed: Any) -> None:
    """Test that DELETE restores automatic precedence."""
    booking_id = seed.booking(seed.property(), date(2026, 3, 12), date(2026, 3, 15))
    client.put(f"/bookings/{booking_id}/resolution", json={"guest_name": "Liz Servin"})

    response = client.delete(f"/bookings/{booking_id}/resolution")

    assert response.status_code == 200
    assert response.json()["manually_resolved_at"] is None


@pytest.mark.integration
def test_resolution_endpoints_return_404_for_unknown_booking(client: TestClient) -> None:
    """Test that both endpoints report a missing booking."""
    assert client.put("/bookings/404/resolution", json={"guest_name": "x"}).status_code == 404
    assert client.delete("/bookings/404/resolution").status_code == 404
