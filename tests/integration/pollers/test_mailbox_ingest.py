"""
Integration tests for mailbox label ingestion.
"""

from __future__ import annotations

import base64
from typing import Any, Optional

import pytest
from sqlalchemy.engine import Engine

from sync_stays.db.writers.messages import insert_message
from sync_stays.models.mailbox import MailboxConnection
from sync_stays.normalizers.messages import MessageDetail
from sync_stays.pollers.mailbox import (
    LABEL_COLLISION,
    LABEL_NOT_CONFIGURED,
    LABEL_NOT_FOUND,
    MailboxConfigurationError,
    ingest_label,
)


class FakeMailbox:
    """Single-label mailbox returning one page of messages."""

    def __init__(self, message_ids: list[str], label: str = "Reservations") -> None:
        self.message_ids = message_ids
        self.label = label
        self.fetched: list[str] = []

    def list_labels(self) -> list[dict[str, Any]]:
        return [{"id": "Label_1", "name": self.label}]

    def list_message_ids(
        self, label_id: str, page_token: Optional[str] = None, page_size: int = 100
    ) -> tuple[list[str], Optional[str]]:
        return list(self.message_ids), None

    def get_message(self, message_id: str) -> dict[str, Any]:
        self.fetched.append(message_id)
        data = base64.urlsafe_b64encode(b"Hello").decode("ascii")
        return {
            "id": message_id,
            "payload": {
                "mimeType": "text/plain",
                "headers": [{"name": "Subject", "value": "Hi"}],
                "body": {"data": data},
            },
        }


def _connection_row(seed: Any, connection_id: int) -> Any:
    return next(c for c in seed.rows(MailboxConnection.__table__) if c.id == connection_id)


@pytest.mark.integration
def test_ingest_fetches_only_unseen_messages(engine: Engine, seed: Any) -> None:
    """Test that messages already stored are listed but not fetched again."""
    connection_id = seed.connection()
    with engine.begin() as conn:
        insert_message(conn, connection_id, MessageDetail("m1", "Hi", "", "Hello", None))
    source = FakeMailbox(["m1", "m2", "m3"])

    result = ingest_label(engine, connection_id, source)

    assert (result.listed, result.known) == (3, 1)
    assert sorted(source.fetched) == ["m2", "m3"]
    assert sorted(d.message_id for d in result.details) == ["m2", "m3"]
    row = _connection_row(seed, connection_id)
    assert row.last_scan_status == "success"
    assert row.last_message_count == 3


@pytest.mark.integration
def test_label_shared_by_two_connections_is_fatal(engine: Engine, seed: Any) -> None:
    """Test that two connections of a workspace scanning one label are rejected."""
    connection_id = seed.connection(label="Reservations")
    seed.connection(label="reservations", name="Second inbox")
    source = FakeMailbox(["m1"])

    with pytest.raises(MailboxConfigurationError) as exc_info:
        ingest_label(engine, connection_id, source)

    assert exc_info.value.code == LABEL_COLLISION
    assert source.fetched == []
    row = _connection_row(seed, connection_id)
    assert row.last_scan_status == "error"
    assert row.last_error_code == LABEL_COLLISION


@pytest.mark.integration
def test_same_label_in_other_workspace_is_allowed(engine: Engine, seed: Any) -> None:
    """Test that the label collision check is scoped to one workspace."""
    connection_id = seed.connection(label="Reservations")
    seed.connection(workspace_id=2, label="Reservations")

    result = ingest_label(engine, connection_id, FakeMailbox(["m1"]))

    assert result.listed == 1


@pytest.mark.integration
def test_missing_label_configuration_is_fatal(engine: Engine, seed: Any) -> None:
    """Test that a connection without a reservation label is never scanned."""
    connection_id = seed.connection(label=None)

    with pytest.raises(MailboxConfigurationError) as exc_info:
        ingest_label(engine, connection_id, FakeMailbox([]))

    assert exc_info.value.code == LABEL_NOT_CONFIGURED


@pytest.mark.integration
def test_label_absent_from_mailbox_is_recorded(engine: Engine, seed: Any) -> None:
    """Test that a configured label missing from the mailbox is a recorded error."""
    connection_id = seed.connection(label="Bookings")

    result = ingest_label(engine, connection_id, FakeMailbox(["m1"], label="Reservations"))

    assert result.error_code == LABEL_NOT_FOUND
    assert result.details == []
    assert _connection_row(seed, connection_id).last_error_code == LABEL_NOT_FOUND
