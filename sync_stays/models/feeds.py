# models/feeds.py

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, true
from sqlalchemy.sql import func

from sync_stays.config import SCHEMA
from sync_stays.models.base import Base


class CalendarFeed(Base):
    """
    ORM model for an inbound iCal subscription attached to one property.

    Besides the subscription itself (URL, label, source type) the row carries
    the diagnostics of the most recent sync attempt. Those columns are written
    only by the feed sync engine, on success and on failure alike, so an
    operator can see why a feed produced nothing.
    """

    __tablename__ = "calendar_feeds"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_id = Column(
        Integer,
        ForeignKey(f"{SCHEMA}.properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    url = Column(Text, nullable=False)
    name = Column(String(128), nullable=False)  # Source label shown as platform, e.g. "Airbnb"
    source_type = Column(String(32), nullable=False, default="other", server_default="other")
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())

    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    last_sync_status = Column(String(16), nullable=True)  # success / error
    last_error = Column(Text, nullable=True)
    last_http_status = Column(Integer, nullable=True)
    last_content_type = Column(String(255), nullable=True)
    last_final_url = Column(Text, nullable=True)
    last_response_snippet = Column(Text, nullable=True)
    last_event_count = Column(Integer, nullable=True)
    last_booking_count = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class FeedSyncLog(Base):
    """
    ORM model for a feed sync cycle that changed at least one booking.

    Cycles that change nothing do not produce a row.
    """

    __tablename__ = "feed_sync_logs"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    feed_id = Column(
        Integer,
        ForeignKey(f"{SCHEMA}.calendar_feeds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    property_id = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False)
    events_seen = Column(Integer, nullable=False, default=0)
    bookings_inserted = Column(Integer, nullable=False, default=0)
    bookings_updated = Column(Integer, nullable=False, default=0)
    bookings_deactivated = Column(Integer, nullable=False, default=0)
    duration_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
