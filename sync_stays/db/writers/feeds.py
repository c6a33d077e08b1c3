from typing import Any, Optional

import structlog
from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from sync_stays.models.feeds import CalendarFeed, FeedSyncLog
from sync_stays.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

DIAGNOSTIC_COLUMNS = {
    "last_sync_status",
    "last_error",
    "last_http_status",
    "last_content_type",
    "last_final_url",
    "last_response_snippet",
    "last_event_count",
    "last_booking_count",
}


def update_feed_diagnostics(conn: Connection, feed_id: int, **diagnostics: Any) -> None:
    """
    Persist diagnostics of a sync attempt on the feed row.

    Args:
        conn: Active connection (within transaction)
        feed_id: Calendar feed id
        **diagnostics: Any of DIAGNOSTIC_COLUMNS
    """
    unknown = set(diagnostics) - DIAGNOSTIC_COLUMNS
    if unknown:
        raise ValueError(f"Unknown feed diagnostic columns: {sorted(unknown)}")
    now = utc_now()
    conn.execute(
        update(CalendarFeed.__table__)
        .where(CalendarFeed.__table__.c.id == feed_id)
        .values(**diagnostics, last_synced_at=now, updated_at=now)
    )


def insert_feed_sync_log(
    conn: Connection,
    feed_id: int,
    property_id: int,
    status: str,
    events_seen: int,
    inserted: int,
    updated: int,
    deactivated: int,
    duration_ms: Optional[int] = None,
) -> None:
    """Append a sync-log entry for a cycle that changed bookings."""
    conn.execute(
        insert(FeedSyncLog.__table__).values(
            feed_id=feed_id,
            property_id=property_id,
            status=status,
            events_seen=events_seen,
            bookings_inserted=inserted,
            bookings_updated=updated,
            bookings_deactivated=deactivated,
            duration_ms=duration_ms,
            created_at=utc_now(),
        )
    )
