"""
Integration tests for message storage, fact extraction and reprocessing.
"""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest
from sqlalchemy.engine import Engine

from sync_stays.db.readers.connections import get_connection
from sync_stays.db.writers.messages import insert_message
from sync_stays.models.facts import ReservationFact
from sync_stays.models.mailbox import MailboxMessage
from sync_stays.normalizers.messages import MessageDetail
from sync_stays.pollers.mailbox import MailboxConfigurationError
from sync_stays.services.fact_store import reprocess_connection, store_messages

TODAY = date(2026, 3, 1)

LODGIFY_SUBJECT = "New Confirmed Booking: Nora Weber (#B16389402)"
LODGIFY_BODY = """
BOOKING (#B16389402)
Guest: Nora Weber
Arrival: Thursday, March 12, 2026
Departure: Sunday, March 15, 2026
{count} Guests
"""


def _message(message_id: str, subject: str = LODGIFY_SUBJECT, count: int = 2) -> MessageDetail:
    return MessageDetail(
        message_id=message_id,
        subject=subject,
        snippet="",
        body_text=LODGIFY_BODY.format(count=count),
        body_html=None,
    )


def _connection(engine: Engine, connection_id: int) -> Any:
    with engine.connect() as conn:
        return get_connection(conn, connection_id)


def _messages_by_id(seed: Any) -> dict[str, Any]:
    return {m.provider_message_id: m for m in seed.rows(MailboxMessage.__table__)}


@pytest.mark.integration
def test_store_messages_creates_facts_and_records_outcomes(engine: Engine, seed: Any) -> None:
    """Test that every message is stored raw with its classification outcome."""
    connection_id = seed.connection(property_ids=(seed.property(),))
    details = [
        _message("m1"),
        _message("m2", subject="Re: New Confirmed Booking: Nora Weber (#B16389402)"),
        _message("m3", subject="New Confirmed Booking: Liz Servin (#B16389403)", count=45),
        _message("m1"),
    ]

    stats = store_messages(engine, _connection(engine, connection_id), details, today=TODAY)

    assert (stats.scanned, stats.stored, stats.duplicates) == (4, 3, 1)
    assert stats.facts_created == 1
    assert stats.rejected == {"not_a_confirmation": 1, "invalid_guest_count": 1}

    [fact] = seed.rows(ReservationFact.__table__)
    assert fact.source_message_id == "m1"
    assert fact.guest_name == "Nora Weber"
    assert (fact.check_in, fact.check_out) == (date(2026, 3, 12), date(2026, 3, 15))
    assert fact.guest_count == 2
    assert fact.confirmation_code == "B16389402"
    assert fact.raw_extraction["classification"]["is_candidate"] is True

    stored = _messages_by_id(seed)
    assert stored["m1"].message_type == "reservation_confirmation"
    assert stored["m1"].parse_error is None
    assert stored["m2"].message_type == "guest_message"
    assert stored["m3"].parse_error == "invalid_guest_count"


@pytest.mark.integration
def test_store_messages_requires_workspace(engine: Engine, seed: Any) -> None:
    """Test that an unlinked connection stores nothing."""
    connection_id = seed.connection(workspace_id=None)

    with pytest.raises(MailboxConfigurationError):
        store_messages(engine, _connection(engine, connection_id), [_message("m1")])

    assert seed.rows(MailboxMessage.__table__) == []


@pytest.mark.integration
def test_reprocess_creates_missing_facts_and_enriches(engine: Engine, seed: Any) -> None:
    """Test that reprocessing extracts from stored messages and runs enrichment."""
    property_id = seed.property()
    connection_id = seed.connection(property_ids=(property_id,))
    booking_id = seed.booking(property_id, date(2026, 3, 12), date(2026, 3, 15))
    with engine.begin() as conn:
        insert_message(conn, connection_id, _message("m1"))

    summary = reprocess_connection(engine, connection_id, today=TODAY)

    assert summary.stats.facts_created == 1
    assert summary.enrichment is not None
    assert summary.enrichment.names_updated == 1
    assert seed.get_booking(booking_id).guest_name == "Nora Weber"


@pytest.mark.integration
def test_reprocess_fills_gaps_without_overwriting_dates(engine: Engine, seed: Any) -> None:
    """Test that re-extraction fills null fields but keeps dates already on the fact."""
    connection_id = seed.connection(property_ids=(seed.property(),))
    with engine.begin() as conn:
        insert_message(conn, connection_id, _message("m1", count=3))
    fact_id = seed.fact(
        connection_id,
        date(2026, 3, 11),
        date(2026, 3, 15),
        guest_name="Nora Weber",
        confidence=0.5,
        message_id="m1",
    )

    summary = reprocess_connection(engine, connection_id, today=TODAY)

    assert summary.stats.facts_updated == 1
    fact = next(f for f in seed.rows(ReservationFact.__table__) if f.id == fact_id)
    assert fact.guest_count == 3
    assert fact.confirmation_code == "B16389402"
    assert fact.check_in == date(2026, 3, 11)
    assert fact.confidence == 0.9


@pytest.mark.integration
def test_reprocess_dry_run_writes_nothing(engine: Engine, seed: Any) -> None:
    """Test that a dry-run reprocess classifies but stores no facts."""
    connection_id = seed.connection(property_ids=(seed.property(),))
    with engine.begin() as conn:
        insert_message(conn, connection_id, _message("m1"))

    summary = reprocess_connection(engine, connection_id, dry_run=True, today=TODAY)

    assert summary.stats.candidates == 1
    assert seed.rows(ReservationFact.__table__) == []
    assert _messages_by_id(seed)["m1"].processed_at is None
