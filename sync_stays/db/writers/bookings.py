from typing import Any, Optional, Sequence

import structlog
from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from sync_stays.metrics import bookings_written
from sync_stays.models.bookings import Booking
from sync_stays.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

bookings = Booking.__table__


def insert_booking(conn: Connection, values: dict[str, Any]) -> int:
    """
    Insert a booking row.

    Args:
        conn: Active connection (within transaction)
        values: Column values

    Returns:
        int: New booking id
    """
    now = utc_now()
    row = {"is_active": True, "last_synced_at": now, "created_at": now, "updated_at": now, **values}
    result = conn.execute(insert(bookings).values(**row))
    bookings_written.labels(operation="insert").inc()
    return int(result.inserted_primary_key[0])


def update_booking(conn: Connection, booking_id: int, changes: dict[str, Any]) -> None:
    """
    Apply changed columns to a booking, stamping last_synced_at/updated_at.

    Callers pass only columns that differ; an empty dict is a no-op.
    """
    if not changes:
        return
    now = utc_now()
    conn.execute(
        update(bookings)
        .where(bookings.c.id == booking_id)
        .values(**changes, last_synced_at=now, updated_at=now)
    )
    bookings_written.labels(operation="update").inc()


def deactivate_bookings(conn: Connection, booking_ids: Sequence[int]) -> int:
    """
    Soft-deactivate bookings no longer reported by their feed.

    Returns:
        int: Number of rows deactivated
    """
    if not booking_ids:
        return 0
    conn.execute(
        update(bookings)
        .where(bookings.c.id.in_(list(booking_ids)))
        .values(is_active=False, updated_at=utc_now())
    )
    bookings_written.labels(operation="deactivate").inc(len(booking_ids))
    return len(booking_ids)


def apply_enrichment(conn: Connection, booking_id: int, values: dict[str, Any]) -> None:
    """
    Write guest identity and provenance from a matched fact.

    Never touches property_id, dates or the manual override columns.
    """
    forbidden = {"property_id", "check_in", "check_out"} | {
        c for c in values if c.startswith("manual")
    }
    illegal = forbidden.intersection(values)
    if illegal:
        raise ValueError(f"Enrichment may not write {sorted(illegal)}")
    conn.execute(
        update(bookings).where(bookings.c.id == booking_id).values(**values, updated_at=utc_now())
    )


def set_manual_resolution(
    conn: Connection,
    booking_id: int,
    guest_name: Optional[str],
    guest_count: Optional[int],
    connection_id: Optional[int],
    notes: Optional[str],
) -> None:
    """Record a human override on a booking; resolved-at is set to now."""
    now = utc_now()
    conn.execute(
        update(bookings)
        .where(bookings.c.id == booking_id)
        .values(
            manual_guest_name=guest_name,
            manual_guest_count=guest_count,
            manual_connection_id=connection_id,
            manual_notes=notes,
            manually_resolved_at=now,
            updated_at=now,
        )
    )
    logger.info("manual_resolution_set", booking_id=booking_id, connection_id=connection_id)


def clear_manual_resolution(conn: Connection, booking_id: int) -> None:
    """Remove a human override, restoring automatic precedence."""
    conn.execute(
        update(bookings)
        .where(bookings.c.id == booking_id)
        .values(
            manual_guest_name=None,
            manual_guest_count=None,
            manual_connection_id=None,
            manual_notes=None,
            manually_resolved_at=None,
            updated_at=utc_now(),
        )
    )
    logger.info("manual_resolution_cleared", booking_id=booking_id)
