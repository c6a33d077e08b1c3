from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Connection

from sync_stays.models.bookings import Booking
from sync_stays.models.feeds import CalendarFeed
from sync_stays.models.properties import Property

feeds = CalendarFeed.__table__
properties = Property.__table__


def get_feed(conn: Connection, feed_id: int) -> Optional[Any]:
    """
    Fetch a feed row together with its property's workspace id.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        feed_id (int): Calendar feed id.

    Returns:
        Optional[Row]: Feed columns plus `workspace_id`, or None if not found.
    """
    stmt = (
        select(feeds, properties.c.workspace_id)
        .join(properties, properties.c.id == feeds.c.property_id)
        .where(feeds.c.id == feed_id)
    )
    return conn.execute(stmt).fetchone()


def get_active_feed_ids(conn: Connection, workspace_id: Optional[int] = None) -> list[int]:
    """Return ids of active feeds, optionally for one workspace, ordered by id."""
    stmt = select(feeds.c.id).where(feeds.c.is_active.is_(True)).order_by(feeds.c.id)
    if workspace_id is not None:
        stmt = stmt.join(properties, properties.c.id == feeds.c.property_id).where(
            properties.c.workspace_id == workspace_id
        )
    return list(conn.execute(stmt).scalars().all())


def count_active_bookings(conn: Connection, feed_id: int) -> int:
    """Number of active bookings sourced from a feed."""
    stmt = (
        select(func.count())
        .select_from(Booking.__table__)
        .where(Booking.source_feed_id == feed_id, Booking.is_active.is_(True))
    )
    return int(conn.execute(stmt).scalar_one())


def get_feed_names(conn: Connection, property_ids: list[int]) -> dict[int, str]:
    """Map feed id -> source label for the given properties."""
    if not property_ids:
        return {}
    stmt = select(feeds.c.id, feeds.c.name).where(feeds.c.property_id.in_(property_ids))
    return {row.id: row.name for row in conn.execute(stmt)}
