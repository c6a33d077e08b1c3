"""
Integration tests for the booking, fact and message writers.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

import pytest
from sqlalchemy.engine import Engine

from sync_stays.db.writers._upsert import changed_columns
from sync_stays.db.writers.bookings import deactivate_bookings, update_booking
from sync_stays.db.writers.facts import insert_fact, insert_review_item, sync_fact_dates
from sync_stays.db.writers.messages import insert_message
from sync_stays.models.facts import EnrichmentReviewItem, ReservationFact
from sync_stays.normalizers.messages import MessageDetail


def _fact_values(connection_id: int, message_id: str = "m1") -> dict[str, Any]:
    return {
        "workspace_id": 1,
        "connection_id": connection_id,
        "source_message_id": message_id,
        "guest_name": "Nora Weber",
        "check_in": date(2026, 3, 12),
        "check_out": date(2026, 3, 15),
        "confidence": 0.9,
    }


@pytest.mark.integration
def test_insert_message_skips_duplicates(engine: Engine, seed: Any) -> None:
    """Test that a message is stored once per connection."""
    connection_id = seed.connection()
    other = seed.connection(workspace_id=2)
    detail = MessageDetail("m1", "Hi", "", "Hello", None)

    with engine.begin() as conn:
        first = insert_message(conn, connection_id, detail)
        again = insert_message(conn, connection_id, detail)
        elsewhere = insert_message(conn, other, detail)

    assert first is not None
    assert again is None
    assert elsewhere is not None


@pytest.mark.integration
def test_insert_fact_is_idempotent_per_message(engine: Engine, seed: Any) -> None:
    """Test that a second fact for the same source message is not inserted."""
    connection_id = seed.connection()

    with engine.begin() as conn:
        first = insert_fact(conn, _fact_values(connection_id))
        second = insert_fact(conn, _fact_values(connection_id))

    assert first is not None
    assert second is None
    assert len(seed.rows(ReservationFact.__table__)) == 1


@pytest.mark.integration
def test_sync_fact_dates_only_writes_on_change(engine: Engine, seed: Any) -> None:
    """Test that fact dates are overwritten from the booking only when they differ."""
    connection_id = seed.connection()
    with engine.begin() as conn:
        insert_fact(conn, _fact_values(connection_id))
    [fact] = seed.rows(ReservationFact.__table__)

    with engine.begin() as conn:
        unchanged = sync_fact_dates(conn, fact, date(2026, 3, 12), date(2026, 3, 15))
        changed = sync_fact_dates(conn, fact, date(2026, 3, 12), date(2026, 3, 16))

    assert (unchanged, changed) == (False, True)
    [fact] = seed.rows(ReservationFact.__table__)
    assert fact.check_out == date(2026, 3, 16)


@pytest.mark.integration
def test_insert_review_item_is_idempotent(engine: Engine, seed: Any) -> None:
    """Test that one source message yields at most one review item."""
    connection_id = seed.connection()
    values = {
        "workspace_id": 1,
        "connection_id": connection_id,
        "source_message_id": "m1",
        "item_type": "missing_from_calendar",
        "extracted_data": {"guest_name": "Nora Weber"},
        "status": "pending",
    }

    with engine.begin() as conn:
        first = insert_review_item(conn, values)
        second = insert_review_item(conn, values)

    assert first is not None
    assert second is None
    assert len(seed.rows(EnrichmentReviewItem.__table__)) == 1


@pytest.mark.integration
def test_booking_update_and_deactivation(engine: Engine, seed: Any) -> None:
    """Test that only changed columns are written and deactivation is soft."""
    booking_id = seed.booking(seed.property(), date(2026, 3, 12), date(2026, 3, 15))
    stored = seed.get_booking(booking_id)

    changes = changed_columns(
        stored,
        {
            "check_in": datetime(2026, 3, 12, 12, 0, tzinfo=timezone.utc),
            "guest_name": "Reserved",
            "summary": "Not available",
        },
    )
    with engine.begin() as conn:
        update_booking(conn, booking_id, changes)
        count = deactivate_bookings(conn, [booking_id])

    assert changes == {"summary": "Not available"}
    assert count == 1
    booking = seed.get_booking(booking_id)
    assert booking.summary == "Not available"
    assert booking.is_active is False
