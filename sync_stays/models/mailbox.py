# models/mailbox.py

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    true,
)
from sqlalchemy.sql import func

from sync_stays.config import SCHEMA
from sync_stays.models.base import Base, JSONType


class MailboxConnection(Base):
    """
    ORM model for a connected mailbox whose labeled messages yield reservation facts.

    OAuth credentials are managed by an external collaborator; this row holds
    the workspace linkage, the label to scan, the display color used on the
    calendar, and the diagnostics of the last scan.
    """

    __tablename__ = "mailbox_connections"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    workspace_id = Column(Integer, nullable=True, index=True)
    name = Column(String(255), nullable=False)
    email_address = Column(String(255), nullable=True)
    reservation_label = Column(String(255), nullable=True)
    color = Column(String(16), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())

    last_scan_at = Column(DateTime(timezone=True), nullable=True)
    last_scan_status = Column(String(16), nullable=True)
    last_error_code = Column(String(64), nullable=True)
    last_error = Column(Text, nullable=True)
    last_message_count = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class ConnectionProperty(Base):
    """Link between a mailbox connection and a property it reports on."""

    __tablename__ = "connection_properties"
    __table_args__ = {"schema": SCHEMA}

    connection_id = Column(
        Integer,
        ForeignKey(f"{SCHEMA}.mailbox_connections.id", ondelete="CASCADE"),
        primary_key=True,
    )
    property_id = Column(
        Integer,
        ForeignKey(f"{SCHEMA}.properties.id", ondelete="CASCADE"),
        primary_key=True,
    )


class MailboxMessage(Base):
    """
    ORM model for a raw message fetched from a mailbox label.

    Every fetched message is stored, including ones that were classified as
    non-reservations or failed extraction; parse_error carries the reason code
    so the message can be reprocessed after extractor changes.
    """

    __tablename__ = "mailbox_messages"
    __table_args__ = (
        UniqueConstraint(
            "connection_id", "provider_message_id", name="uq_mailbox_messages_connection_msg"
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
    provider_message_id = Column(String(128), nullable=False)
    subject = Column(Text, nullable=True)
    snippet = Column(Text, nullable=True)
    body_text = Column(Text, nullable=True)
    body_html = Column(Text, nullable=True)
    received_at = Column(DateTime(timezone=True), nullable=True)
    message_type = Column(String(32), nullable=True)
    classification = Column(JSONType, nullable=True)
    parse_error = Column(String(64), nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class MailboxSyncLog(Base):
    """One row per mailbox processing run for a connection, successful or not."""

    __tablename__ = "mailbox_sync_logs"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    connection_id = Column(
        Integer,
        ForeignKey(f"{SCHEMA}.mailbox_connections.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    success = Column(Boolean, nullable=False)
    error_message = Column(Text, nullable=True)
    emails_scanned = Column(Integer, nullable=False, default=0)
    facts_created = Column(Integer, nullable=False, default=0)
    bookings_enriched = Column(Integer, nullable=False, default=0)
    review_items_created = Column(Integer, nullable=False, default=0)
    duration_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
