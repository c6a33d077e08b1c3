# models/facts.py

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from sync_stays.config import SCHEMA
from sync_stays.models.base import Base, JSONType


class ReservationFact(Base):
    """
    ORM model for a guest-identity claim extracted from a confirmation message.

    Dates are advisory: once the fact is matched to a booking, its dates are
    re-synced from the booking. Guest name and count stay NULL when the message
    did not state them.
    """

    __tablename__ = "reservation_facts"
    __table_args__ = (
        UniqueConstraint(
            "connection_id", "source_message_id", name="uq_reservation_facts_connection_msg"
        ),
        {"schema": SCHEMA},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    connection_id = Column(
        Integer,
        ForeignKey(f"{SCHEMA}.mailbox_connections.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    workspace_id = Column(Integer, nullable=False, index=True)
    source_message_id = Column(String(128), nullable=False)
    check_in = Column(Date, nullable=True, index=True)
    check_out = Column(Date, nullable=True)
    guest_name = Column(String(255), nullable=True)
    guest_count = Column(Integer, nullable=True)
    confirmation_code = Column(String(32), nullable=True, index=True)
    confidence = Column(Float, nullable=False)
    raw_extraction = Column(JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class EnrichmentReviewItem(Base):
    """
    ORM model for a confident fact that no calendar booking backs.

    Queued for a human to confirm or dismiss. Unique per
    (workspace, connection, source message) so repeated runs never duplicate it.
    """

    __tablename__ = "enrichment_review_items"
    __table_args__ = (
        UniqueConstraint(
            "workspace_id",
            "connection_id",
            "source_message_id",
            name="uq_review_items_workspace_connection_msg",
        ),
        {"schema": SCHEMA},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    workspace_id = Column(Integer, nullable=False, index=True)
    connection_id = Column(
        Integer,
        ForeignKey(f"{SCHEMA}.mailbox_connections.id", ondelete="CASCADE"),
        nullable=False,
    )
    source_message_id = Column(String(128), nullable=False)
    fact_id = Column(
        Integer,
        ForeignKey(f"{SCHEMA}.reservation_facts.id", ondelete="SET NULL"),
        nullable=True,
    )
    item_type = Column(
        String(64),
        nullable=False,
        default="booking_missing_from_calendar",
        server_default="booking_missing_from_calendar",
    )
    extracted_data = Column(JSONType, nullable=False)
    confidence = Column(Float, nullable=True)
    status = Column(String(16), nullable=False, default="pending", server_default="pending")
    resolved_booking_id = Column(Integer, nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class EnrichmentLog(Base):
    """Audit row for enrichment decisions worth surfacing, ambiguity blocks above all."""

    __tablename__ = "enrichment_logs"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    workspace_id = Column(Integer, nullable=True, index=True)
    connection_id = Column(Integer, nullable=True)
    fact_id = Column(Integer, nullable=True)
    booking_id = Column(Integer, nullable=True)
    status = Column(String(32), nullable=False)
    reason = Column(Text, nullable=True)
    details = Column(JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
