"""
Integration tests for the batch enrichment pass.
"""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest
from sqlalchemy.engine import Engine

from sync_stays.models.facts import EnrichmentLog, EnrichmentReviewItem, ReservationFact
from sync_stays.pollers.mailbox import MailboxConfigurationError
from sync_stays.services.enrichment import (
    AMBIGUOUS_DATE_MATCH,
    MISSING_FROM_CALENDAR,
    enrich_connection,
)

TODAY = date(2026, 3, 1)


def _fact_row(seed: Any, fact_id: int) -> Any:
    return next(f for f in seed.rows(ReservationFact.__table__) if f.id == fact_id)


@pytest.mark.integration
def test_unique_date_match_enriches_booking_and_syncs_fact_dates(
    engine: Engine, seed: Any
) -> None:
    """Test the single-candidate path: identity written, fact dates taken from the booking."""
    property_id = seed.property()
    connection_id = seed.connection(property_ids=(property_id,))
    booking_id = seed.booking(property_id, date(2026, 3, 12), date(2026, 3, 15))
    fact_id = seed.fact(
        connection_id,
        date(2026, 3, 12),
        date(2026, 3, 14),
        guest_name="Nora Weber",
        guest_count=2,
        code="B16389402",
    )

    summary = enrich_connection(engine, connection_id, today=TODAY)

    assert (summary.matched, summary.names_updated, summary.dates_synced) == (1, 1, 1)
    booking = seed.get_booking(booking_id)
    assert booking.guest_name == "Nora Weber"
    assert (booking.guest_first_name, booking.guest_last_initial) == ("Nora", "W")
    assert booking.guest_count == 2
    assert booking.reservation_code == "B16389402"
    assert booking.enriched_fact_id == fact_id
    assert booking.match_reason == "unique_date"
    assert booking.property_id == property_id
    assert _fact_row(seed, fact_id).check_out == date(2026, 3, 15)


@pytest.mark.integration
def test_cross_property_date_collision_is_never_guessed(engine: Engine, seed: Any) -> None:
    """Test that a check-in shared by two properties blocks the match and queues review."""
    property_a = seed.property(name="A")
    property_b = seed.property(name="B")
    connection_id = seed.connection(property_ids=(property_a, property_b))
    booking_a = seed.booking(property_a, date(2026, 4, 4), date(2026, 4, 6))
    booking_b = seed.booking(property_b, date(2026, 4, 4), date(2026, 4, 7))
    fact_id = seed.fact(connection_id, date(2026, 4, 4), date(2026, 4, 6), guest_name="Nora Weber")

    summary = enrich_connection(engine, connection_id, today=TODAY)

    assert (summary.matched, summary.ambiguous) == (0, 1)
    assert seed.get_booking(booking_a).guest_name == "Reserved"
    assert seed.get_booking(booking_b).guest_name == "Reserved"
    [entry] = seed.rows(EnrichmentLog.__table__)
    assert entry.status == "ambiguous"
    assert entry.fact_id == fact_id
    assert entry.details["property_ids"] == [property_a, property_b]
    [item] = seed.rows(EnrichmentReviewItem.__table__)
    assert item.item_type == AMBIGUOUS_DATE_MATCH
    assert item.status == "pending"


@pytest.mark.integration
def test_confirmation_code_resolves_date_collision(engine: Engine, seed: Any) -> None:
    """Test that a code in one booking's payload wins over the date collision."""
    property_a = seed.property(name="A")
    property_b = seed.property(name="B")
    connection_id = seed.connection(property_ids=(property_a, property_b))
    seed.booking(property_a, date(2026, 4, 4), date(2026, 4, 6))
    booking_b = seed.booking(
        property_b,
        date(2026, 4, 4),
        date(2026, 4, 6),
        raw_payload={"description": "Reservation HMABCD1234"},
    )
    seed.fact(
        connection_id, date(2026, 4, 4), date(2026, 4, 6), guest_name="Liz Servin", code="HMABCD1234"
    )

    enrich_connection(engine, connection_id, today=TODAY)

    booking = seed.get_booking(booking_b)
    assert booking.guest_name == "Liz Servin"
    assert booking.match_reason == "confirmation_code"


@pytest.mark.integration
def test_real_name_is_not_overwritten(engine: Engine, seed: Any) -> None:
    """Test the name gate: a booking that already has a real name keeps it."""
    property_id = seed.property()
    connection_id = seed.connection(property_ids=(property_id,))
    booking_id = seed.booking(
        property_id, date(2026, 3, 12), date(2026, 3, 15), guest_name="Liz Servin"
    )
    seed.fact(connection_id, date(2026, 3, 12), date(2026, 3, 15), guest_name="Nora Weber")

    summary = enrich_connection(engine, connection_id, today=TODAY)

    assert (summary.matched, summary.names_updated) == (1, 0)
    booking = seed.get_booking(booking_id)
    assert booking.guest_name == "Liz Servin"
    assert booking.enriched_fact_id is None


@pytest.mark.integration
def test_same_property_duplicates_enrich_lowest_id(engine: Engine, seed: Any) -> None:
    """Test that duplicate bookings on one property resolve to the oldest row."""
    property_id = seed.property()
    feed_a = seed.feed(property_id, name="Airbnb")
    feed_b = seed.feed(property_id, name="Vrbo", source_type="vrbo")
    connection_id = seed.connection(property_ids=(property_id,))
    first = seed.booking(property_id, date(2026, 3, 12), date(2026, 3, 15), feed_id=feed_a)
    second = seed.booking(property_id, date(2026, 3, 12), date(2026, 3, 15), feed_id=feed_b)
    seed.fact(connection_id, date(2026, 3, 12), date(2026, 3, 15), guest_name="Nora Weber")

    summary = enrich_connection(engine, connection_id, today=TODAY)

    assert summary.duplicates == 1
    assert seed.get_booking(first).guest_name == "Nora Weber"
    assert seed.get_booking(second).guest_name == "Reserved"
    statuses = sorted(e.status for e in seed.rows(EnrichmentLog.__table__))
    assert statuses == ["matched", "same_property_duplicate"]


@pytest.mark.integration
def test_unmatched_confirmation_queues_one_review_item(engine: Engine, seed: Any) -> None:
    """Test that a confident fact with no booking is queued for review exactly once."""
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

    first = enrich_connection(engine, connection_id, today=TODAY)
    second = enrich_connection(engine, connection_id, today=TODAY)

    assert (first.unmatched, first.review_items_created) == (1, 1)
    assert second.review_items_created == 0
    [item] = seed.rows(EnrichmentReviewItem.__table__)
    assert item.item_type == MISSING_FROM_CALENDAR
    assert item.extracted_data["guest_name"] == "Nora Weber"
    assert item.extracted_data["check_in"] == "2026-05-01"


@pytest.mark.integration
def test_bookings_outside_candidate_window_are_ignored(engine: Engine, seed: Any) -> None:
    """Test that bookings far in the past are not enrichment candidates."""
    property_id = seed.property()
    connection_id = seed.connection(property_ids=(property_id,))
    booking_id = seed.booking(property_id, date(2025, 6, 1), date(2025, 6, 4))
    seed.fact(connection_id, date(2025, 6, 1), date(2025, 6, 4), guest_name="Nora Weber")

    summary = enrich_connection(engine, connection_id, today=TODAY)

    assert summary.matched == 0
    assert seed.get_booking(booking_id).guest_name == "Reserved"


@pytest.mark.integration
def test_dry_run_leaves_bookings_untouched(engine: Engine, seed: Any) -> None:
    """Test that dry-run reports matches without writing."""
    property_id = seed.property()
    connection_id = seed.connection(property_ids=(property_id,))
    booking_id = seed.booking(property_id, date(2026, 3, 12), date(2026, 3, 15))
    seed.fact(connection_id, date(2026, 3, 12), date(2026, 3, 15), guest_name="Nora Weber")

    summary = enrich_connection(engine, connection_id, dry_run=True, today=TODAY)

    assert summary.names_updated == 1
    assert seed.get_booking(booking_id).guest_name == "Reserved"
    assert seed.rows(EnrichmentLog.__table__) == []


@pytest.mark.integration
def test_connection_without_workspace_is_rejected(engine: Engine, seed: Any) -> None:
    """Test that a connection not linked to a workspace is never processed."""
    connection_id = seed.connection(workspace_id=None)

    with pytest.raises(MailboxConfigurationError) as exc_info:
        enrich_connection(engine, connection_id, today=TODAY)

    assert exc_info.value.code == "WORKSPACE_NOT_LINKED"


@pytest.mark.integration
def test_unknown_connection_raises(engine: Engine) -> None:
    """Test that enriching a missing connection raises ValueError."""
    with pytest.raises(ValueError):
        enrich_connection(engine, 404, today=TODAY)
