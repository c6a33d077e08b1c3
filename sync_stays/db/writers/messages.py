from typing import Any, Optional

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.engine import Connection

from sync_stays.models.mailbox import MailboxConnection, MailboxMessage, MailboxSyncLog
from sync_stays.normalizers.messages import MessageDetail
from sync_stays.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

messages = MailboxMessage.__table__
connections = MailboxConnection.__table__


def insert_message(conn: Connection, connection_id: int, detail: MessageDetail) -> Optional[int]:
    """
    Store a raw mailbox message.

    A message already stored for the connection is treated as processed.

    Args:
        conn: Active connection (within transaction)
        connection_id: Mailbox connection id
        detail: Normalized message

    Returns:
        Optional[int]: New row id, or None for a duplicate
    """
    existing = conn.execute(
        select(messages.c.id).where(
            messages.c.connection_id == connection_id,
            messages.c.provider_message_id == detail.message_id,
        )
    ).fetchone()
    if existing is not None:
        logger.debug("message_already_stored", message_id=detail.message_id)
        return None

    result = conn.execute(
        insert(messages).values(
            connection_id=connection_id,
            provider_message_id=detail.message_id,
            subject=detail.subject,
            snippet=detail.snippet,
            body_text=detail.body_text,
            body_html=detail.body_html,
            received_at=detail.received_at,
            created_at=utc_now(),
        )
    )
    return int(result.inserted_primary_key[0])


def record_message_outcome(
    conn: Connection,
    message_row_id: int,
    message_type: str,
    classification: dict[str, Any],
    parse_error: Optional[str],
) -> None:
    """Store classification and the parse/validation outcome on a message row."""
    conn.execute(
        update(messages)
        .where(messages.c.id == message_row_id)
        .values(
            message_type=message_type,
            classification=classification,
            parse_error=parse_error,
            processed_at=utc_now(),
        )
    )


def update_connection_scan(
    conn: Connection,
    connection_id: int,
    status: str,
    message_count: Optional[int] = None,
    error_code: Optional[str] = None,
    error: Optional[str] = None,
) -> None:
    """Persist mailbox scan diagnostics on the connection, success or failure."""
    conn.execute(
        update(connections)
        .where(connections.c.id == connection_id)
        .values(
            last_scan_at=utc_now(),
            last_scan_status=status,
            last_message_count=message_count,
            last_error_code=error_code,
            last_error=error,
        )
    )


def insert_mailbox_sync_log(conn: Connection, connection_id: int, **values: Any) -> None:
    """Append a mailbox processing run summary."""
    conn.execute(
        insert(MailboxSyncLog.__table__).values(
            connection_id=connection_id, created_at=utc_now(), **values
        )
    )
