# models/bookings.py

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
    true,
)
from sqlalchemy.sql import func

from sync_stays.config import SCHEMA
from sync_stays.models.base import Base, JSONType


class Booking(Base):
    """
    ORM model for an authoritative occupancy record sourced from a calendar feed.

    Occupancy fields (property, dates, UID, active flag) are owned by feed sync.
    Guest identity may be upgraded by enrichment from a reservation fact, which
    records its provenance in enriched_fact_id/match_reason. The manual_* columns
    hold a human override that wins over both. raw_payload keeps the feed event
    as received, for diagnostics only.
    """

    __tablename__ = "bookings"
    __table_args__ = (
        Index(
            "uq_bookings_active_feed_uid",
            "property_id",
            "source_feed_id",
            "external_uid",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
        Index("ix_bookings_property_dates", "property_id", "check_in", "check_out"),
        {"schema": SCHEMA},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    workspace_id = Column(Integer, nullable=False, index=True)
    property_id = Column(
        Integer, ForeignKey(f"{SCHEMA}.properties.id", ondelete="CASCADE"), nullable=False
    )
    source_feed_id = Column(
        Integer,
        ForeignKey(f"{SCHEMA}.calendar_feeds.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    source_type = Column(String(32), nullable=True)
    external_uid = Column(String(512), nullable=False)  # Canonical UID
    check_in = Column(DateTime(timezone=True), nullable=False)
    check_out = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(16), nullable=False, default="confirmed", server_default="confirmed")
    platform = Column(String(128), nullable=True)
    summary = Column(Text, nullable=True)

    guest_name = Column(String(255), nullable=True)
    guest_first_name = Column(String(128), nullable=True)
    guest_last_initial = Column(String(8), nullable=True)
    guest_count = Column(Integer, nullable=True)
    reservation_code = Column(String(32), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())

    # Enrichment provenance
    enriched_fact_id = Column(
        Integer,
        ForeignKey(f"{SCHEMA}.reservation_facts.id", ondelete="SET NULL"),
        nullable=True,
    )
    match_reason = Column(String(32), nullable=True)

    # Manual resolution overlay
    manual_connection_id = Column(
        Integer,
        ForeignKey(f"{SCHEMA}.mailbox_connections.id", ondelete="SET NULL"),
        nullable=True,
    )
    manual_guest_name = Column(String(255), nullable=True)
    manual_guest_count = Column(Integer, nullable=True)
    manual_notes = Column(Text, nullable=True)
    manually_resolved_at = Column(DateTime(timezone=True), nullable=True)

    raw_payload = Column(JSONType, nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
