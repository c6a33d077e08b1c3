from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.engine import Connection

from sync_stays.models.bookings import Booking

bookings = Booking.__table__


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def get_booking(conn: Connection, booking_id: int) -> Optional[Any]:
    """Fetch a booking row by id, or None."""
    return conn.execute(select(bookings).where(bookings.c.id == booking_id)).fetchone()


def find_active_by_uid(
    conn: Connection, property_id: int, feed_id: int, external_uid: str
) -> Optional[Any]:
    """
    Fetch the active booking for (property, feed, canonical UID).

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        property_id (int): Property id.
        feed_id (int): Source feed id.
        external_uid (str): Canonical event UID.

    Returns:
        Optional[Row]: The booking, or None.
    """
    stmt = select(bookings).where(
        bookings.c.property_id == property_id,
        bookings.c.source_feed_id == feed_id,
        bookings.c.external_uid == external_uid,
        bookings.c.is_active.is_(True),
    )
    return conn.execute(stmt).fetchone()


def find_active_in_day_window(
    conn: Connection, property_id: int, feed_id: int, check_in_day: date, check_out_day: date
) -> list[Any]:
    """
    Fetch active bookings of a feed whose check-in and check-out fall on the given days.

    Matching on the calendar day rather than the timestamp tolerates feeds that
    shift event times between exports. Rows are ordered most recently synced first.
    """
    in_start, in_end = _day_bounds(check_in_day)
    out_start, out_end = _day_bounds(check_out_day)
    stmt = (
        select(bookings)
        .where(
            bookings.c.property_id == property_id,
            bookings.c.source_feed_id == feed_id,
            bookings.c.is_active.is_(True),
            bookings.c.check_in >= in_start,
            bookings.c.check_in < in_end,
            bookings.c.check_out >= out_start,
            bookings.c.check_out < out_end,
        )
        .order_by(bookings.c.last_synced_at.desc(), bookings.c.id.desc())
    )
    return list(conn.execute(stmt).fetchall())


def find_inactive_by_uid(
    conn: Connection, property_id: int, feed_id: int, external_uid: str
) -> Optional[Any]:
    """Most recently updated deactivated booking for a UID, used to revive a returning event."""
    stmt = (
        select(bookings)
        .where(
            bookings.c.property_id == property_id,
            bookings.c.source_feed_id == feed_id,
            bookings.c.external_uid == external_uid,
            bookings.c.is_active.is_(False),
        )
        .order_by(bookings.c.updated_at.desc(), bookings.c.id.desc())
        .limit(1)
    )
    return conn.execute(stmt).fetchone()


def list_active_for_feed(conn: Connection, feed_id: int) -> list[Any]:
    """All active bookings sourced from a feed."""
    stmt = select(bookings).where(
        bookings.c.source_feed_id == feed_id, bookings.c.is_active.is_(True)
    )
    return list(conn.execute(stmt).fetchall())


def get_enrichment_candidates(
    conn: Connection, property_ids: Sequence[int], window_start: date, window_end: date
) -> list[Any]:
    """Active bookings on the given properties with check-in inside [window_start, window_end]."""
    if not property_ids:
        return []
    start, _ = _day_bounds(window_start)
    _, end = _day_bounds(window_end)
    stmt = (
        select(bookings)
        .where(
            bookings.c.property_id.in_(list(property_ids)),
            bookings.c.is_active.is_(True),
            bookings.c.check_in >= start,
            bookings.c.check_in < end,
        )
        .order_by(bookings.c.check_in, bookings.c.id)
    )
    return list(conn.execute(stmt).fetchall())


def list_overlapping(
    conn: Connection, property_ids: Sequence[int], start: datetime, end: datetime
) -> list[Any]:
    """Active bookings on the given properties overlapping [start, end)."""
    if not property_ids:
        return []
    stmt = (
        select(bookings)
        .where(
            bookings.c.property_id.in_(list(property_ids)),
            bookings.c.is_active.is_(True),
            bookings.c.check_in < end,
            bookings.c.check_out > start,
        )
        .order_by(bookings.c.property_id, bookings.c.check_in, bookings.c.id)
    )
    return list(conn.execute(stmt).fetchall())


def find_on_exact_days(
    conn: Connection, property_id: int, check_in_day: date, check_out_day: date
) -> list[Any]:
    """Active bookings on a property starting and ending on exactly these days."""
    in_start, in_end = _day_bounds(check_in_day)
    out_start, out_end = _day_bounds(check_out_day)
    stmt = (
        select(bookings)
        .where(
            bookings.c.property_id == property_id,
            bookings.c.is_active.is_(True),
            bookings.c.check_in >= in_start,
            bookings.c.check_in < in_end,
            bookings.c.check_out >= out_start,
            bookings.c.check_out < out_end,
        )
        .order_by(bookings.c.id)
    )
    return list(conn.execute(stmt).fetchall())
