"""
Integration tests for the scheduled refresh orchestrator.
"""

from __future__ import annotations

import base64
from datetime import date
from typing import Any, Optional
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.engine import Engine

from sync_stays.models.bookings import Booking
from sync_stays.models.facts import ReservationFact
from sync_stays.models.mailbox import MailboxSyncLog
from sync_stays.network.client import FetchResult
from sync_stays.pollers.mailbox import MailboxConfigurationError
from sync_stays.services.sync import refresh_all, sync_connection

TODAY = date(2026, 3, 1)

CALENDAR = (
    "BEGIN:VCALENDAR\r\nVERSION:2.0\r\nPRODID:-//Test//EN\r\n"
    "BEGIN:VEVENT\r\nUID:airbnb-1\r\n"
    "DTSTART;VALUE=DATE:20260312\r\nDTEND;VALUE=DATE:20260315\r\n"
    "SUMMARY:Reserved\r\nEND:VEVENT\r\nEND:VCALENDAR\r\n"
)

CONFIRMATION = """
BOOKING (#B16389402)
Guest: Nora Weber
Arrival: Thursday, March 12, 2026
Departure: Sunday, March 15, 2026
2 Guests
"""


class ConfirmationMailbox:
    """Mailbox holding one Lodgify confirmation."""

    def list_labels(self) -> list[dict[str, Any]]:
        return [{"id": "Label_1", "name": "Reservations"}]

    def list_message_ids(
        self, label_id: str, page_token: Optional[str] = None, page_size: int = 100
    ) -> tuple[list[str], Optional[str]]:
        return ["m1"], None

    def get_message(self, message_id: str) -> dict[str, Any]:
        return {
            "id": message_id,
            "payload": {
                "mimeType": "text/plain",
                "headers": [
                    {"name": "Subject", "value": "New Confirmed Booking: Nora Weber (#B16389402)"}
                ],
                "body": {"data": base64.urlsafe_b64encode(CONFIRMATION.encode()).decode()},
            },
        }


@pytest.fixture(autouse=True)
def pinned_clock() -> Any:
    """Run feeds one at a time with a fixed reference day."""
    with patch("sync_stays.services.feed_sync.utc_today", return_value=TODAY), patch(
        "sync_stays.services.enrichment.utc_today", return_value=TODAY
    ), patch("sync_stays.services.feed_sync.FEED_SYNC_CONCURRENCY", 1):
        yield


@pytest.mark.integration
@patch("sync_stays.services.feed_sync.fetch_feed")
def test_refresh_enriches_workspaces_whose_bookings_changed(
    mock_fetch: MagicMock, engine: Engine, seed: Any
) -> None:
    """Test feeds first, then the mailbox pipeline for the changed workspace only."""
    property_id = seed.property()
    seed.feed(property_id)
    connection_id = seed.connection(property_ids=(property_id,))
    idle_connection = seed.connection(workspace_id=2)
    mock_fetch.return_value = FetchResult(200, "text/calendar", "https://example.com", CALENDAR)

    summary = refresh_all(engine, source_factory=lambda connection: ConfirmationMailbox())

    assert summary.bookings_changed == 1
    assert [c.connection_id for c in summary.connections] == [connection_id]
    assert idle_connection not in [c.connection_id for c in summary.connections]
    [result] = summary.connections
    assert result.success is True
    assert result.stats is not None and result.stats.facts_created == 1
    [fact] = seed.rows(ReservationFact.__table__)
    assert fact.guest_name == "Nora Weber"
    [booking] = seed.rows(Booking.__table__)
    assert booking.guest_name == "Nora Weber"
    assert booking.enriched_fact_id == fact.id
    [log] = seed.rows(MailboxSyncLog.__table__)
    assert log.success is True
    assert log.facts_created == 1


@pytest.mark.integration
@patch("sync_stays.services.feed_sync.fetch_feed")
def test_refresh_skips_mailboxes_when_nothing_changed(
    mock_fetch: MagicMock, engine: Engine, seed: Any
) -> None:
    """Test that an unchanged feed cycle does not touch any connection."""
    property_id = seed.property()
    seed.feed(property_id)
    seed.connection(property_ids=(property_id,))
    mock_fetch.return_value = FetchResult(200, "text/calendar", "https://example.com", CALENDAR)
    refresh_all(engine)

    summary = refresh_all(engine)

    assert summary.bookings_changed == 0
    assert summary.connections == []


@pytest.mark.integration
@patch("sync_stays.services.feed_sync.fetch_feed")
def test_connection_without_credentials_enriches_from_stored_facts(
    mock_fetch: MagicMock, engine: Engine, seed: Any
) -> None:
    """Test that a factory returning no source still runs enrichment for the connection."""
    property_id = seed.property()
    seed.feed(property_id)
    connection_id = seed.connection(property_ids=(property_id,))
    seed.fact(connection_id, date(2026, 3, 12), date(2026, 3, 15), guest_name="Nora Weber")
    mock_fetch.return_value = FetchResult(200, "text/calendar", "https://example.com", CALENDAR)

    summary = refresh_all(engine, source_factory=lambda connection: None)

    [result] = summary.connections
    assert result.success is True
    assert result.emails_scanned == 0
    [booking] = seed.rows(Booking.__table__)
    assert booking.guest_name == "Nora Weber"


@pytest.mark.integration
def test_connection_failure_is_logged_and_raised(engine: Engine, seed: Any) -> None:
    """Test that a configuration error still writes a failed sync log row."""
    connection_id = seed.connection(label=None)

    with pytest.raises(MailboxConfigurationError):
        sync_connection(engine, connection_id, source=ConfirmationMailbox(), today=TODAY)

    [log] = seed.rows(MailboxSyncLog.__table__)
    assert log.success is False
    assert "reservation label" in log.error_message
