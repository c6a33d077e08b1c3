"""Initial stays schema

Revision ID: 3a1f0c7b9d20
Revises:
Create Date: 2026-05-02 10:12:31.418207

"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op  # type: ignore[attr-defined]
from sync_stays.config import SCHEMA

# revision identifiers, used by Alembic.
revision = "3a1f0c7b9d20"
down_revision = None
branch_labels = None
depends_on = None

JSONB = postgresql.JSONB(astext_type=sa.Text())


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    ]


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "properties",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("workspace_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("cleaning_pre_days", sa.Integer(), server_default="0", nullable=False),
        sa.Column("cleaning_post_days", sa.Integer(), server_default="0", nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        schema=SCHEMA,
    )
    op.create_index("ix_properties_workspace_id", "properties", ["workspace_id"], schema=SCHEMA)

    op.create_table(
        "mailbox_connections",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("workspace_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email_address", sa.String(length=255), nullable=True),
        sa.Column("reservation_label", sa.String(length=255), nullable=True),
        sa.Column("color", sa.String(length=16), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("last_scan_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_scan_status", sa.String(length=16), nullable=True),
        sa.Column("last_error_code", sa.String(length=64), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("last_message_count", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_mailbox_connections_workspace_id", "mailbox_connections", ["workspace_id"], schema=SCHEMA
    )

    op.create_table(
        "calendar_feeds",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("source_type", sa.String(length=32), server_default="other", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_sync_status", sa.String(length=16), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("last_http_status", sa.Integer(), nullable=True),
        sa.Column("last_content_type", sa.String(length=255), nullable=True),
        sa.Column("last_final_url", sa.Text(), nullable=True),
        sa.Column("last_response_snippet", sa.Text(), nullable=True),
        sa.Column("last_event_count", sa.Integer(), nullable=True),
        sa.Column("last_booking_count", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["property_id"], [f"{SCHEMA}.properties.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_calendar_feeds_property_id", "calendar_feeds", ["property_id"], schema=SCHEMA
    )

    op.create_table(
        "connection_properties",
        sa.Column("connection_id", sa.Integer(), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["connection_id"], [f"{SCHEMA}.mailbox_connections.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["property_id"], [f"{SCHEMA}.properties.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("connection_id", "property_id"),
        schema=SCHEMA,
    )

    op.create_table(
        "workspace_members",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("workspace_id", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("can_view_calendar", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("can_view_guest_name", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("can_view_guest_count", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column(
            "can_view_booking_notes", sa.Boolean(), server_default=sa.true(), nullable=False
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id", "workspace_id", name="uq_workspace_members_user_workspace"
        ),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_workspace_members_user_id", "workspace_members", ["user_id"], schema=SCHEMA
    )

    op.create_table(
        "member_properties",
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("workspace_id", sa.Integer(), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("user_id", "workspace_id", "property_id"),
        schema=SCHEMA,
    )

    op.create_table(
        "mailbox_messages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("connection_id", sa.Integer(), nullable=False),
        sa.Column("provider_message_id", sa.String(length=128), nullable=False),
        sa.Column("subject", sa.Text(), nullable=True),
        sa.Column("snippet", sa.Text(), nullable=True),
        sa.Column("body_text", sa.Text(), nullable=True),
        sa.Column("body_html", sa.Text(), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("message_type", sa.String(length=32), nullable=True),
        sa.Column("classification", JSONB, nullable=True),
        sa.Column("parse_error", sa.String(length=64), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(
            ["connection_id"], [f"{SCHEMA}.mailbox_connections.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "connection_id", "provider_message_id", name="uq_mailbox_messages_connection_msg"
        ),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_mailbox_messages_connection_id", "mailbox_messages", ["connection_id"], schema=SCHEMA
    )

    op.create_table(
        "reservation_facts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("connection_id", sa.Integer(), nullable=False),
        sa.Column("workspace_id", sa.Integer(), nullable=False),
        sa.Column("source_message_id", sa.String(length=128), nullable=False),
        sa.Column("check_in", sa.Date(), nullable=True),
        sa.Column("check_out", sa.Date(), nullable=True),
        sa.Column("guest_name", sa.String(length=255), nullable=True),
        sa.Column("guest_count", sa.Integer(), nullable=True),
        sa.Column("confirmation_code", sa.String(length=32), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("raw_extraction", JSONB, nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["connection_id"], [f"{SCHEMA}.mailbox_connections.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "connection_id", "source_message_id", name="uq_reservation_facts_connection_msg"
        ),
        schema=SCHEMA,
    )
    for column in ("connection_id", "workspace_id", "check_in", "confirmation_code"):
        op.create_index(
            f"ix_reservation_facts_{column}", "reservation_facts", [column], schema=SCHEMA
        )

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("workspace_id", sa.Integer(), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("source_feed_id", sa.Integer(), nullable=True),
        sa.Column("source_type", sa.String(length=32), nullable=True),
        sa.Column("external_uid", sa.String(length=512), nullable=False),
        sa.Column("check_in", sa.DateTime(timezone=True), nullable=False),
        sa.Column("check_out", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=16), server_default="confirmed", nullable=False),
        sa.Column("platform", sa.String(length=128), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("guest_name", sa.String(length=255), nullable=True),
        sa.Column("guest_first_name", sa.String(length=128), nullable=True),
        sa.Column("guest_last_initial", sa.String(length=8), nullable=True),
        sa.Column("guest_count", sa.Integer(), nullable=True),
        sa.Column("reservation_code", sa.String(length=32), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("enriched_fact_id", sa.Integer(), nullable=True),
        sa.Column("match_reason", sa.String(length=32), nullable=True),
        sa.Column("manual_connection_id", sa.Integer(), nullable=True),
        sa.Column("manual_guest_name", sa.String(length=255), nullable=True),
        sa.Column("manual_guest_count", sa.Integer(), nullable=True),
        sa.Column("manual_notes", sa.Text(), nullable=True),
        sa.Column("manually_resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("raw_payload", JSONB, nullable=True),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["property_id"], [f"{SCHEMA}.properties.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["source_feed_id"], [f"{SCHEMA}.calendar_feeds.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(
            ["enriched_fact_id"], [f"{SCHEMA}.reservation_facts.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(
            ["manual_connection_id"], [f"{SCHEMA}.mailbox_connections.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
        schema=SCHEMA,
    )
    op.create_index("ix_bookings_workspace_id", "bookings", ["workspace_id"], schema=SCHEMA)
    op.create_index("ix_bookings_source_feed_id", "bookings", ["source_feed_id"], schema=SCHEMA)
    op.create_index(
        "ix_bookings_property_dates",
        "bookings",
        ["property_id", "check_in", "check_out"],
        schema=SCHEMA,
    )
    op.create_index(
        "uq_bookings_active_feed_uid",
        "bookings",
        ["property_id", "source_feed_id", "external_uid"],
        unique=True,
        schema=SCHEMA,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "feed_sync_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("feed_id", sa.Integer(), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("events_seen", sa.Integer(), nullable=False),
        sa.Column("bookings_inserted", sa.Integer(), nullable=False),
        sa.Column("bookings_updated", sa.Integer(), nullable=False),
        sa.Column("bookings_deactivated", sa.Integer(), nullable=False),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["feed_id"], [f"{SCHEMA}.calendar_feeds.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        schema=SCHEMA,
    )
    op.create_index("ix_feed_sync_logs_feed_id", "feed_sync_logs", ["feed_id"], schema=SCHEMA)

    op.create_table(
        "mailbox_sync_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("connection_id", sa.Integer(), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("emails_scanned", sa.Integer(), nullable=False),
        sa.Column("facts_created", sa.Integer(), nullable=False),
        sa.Column("bookings_enriched", sa.Integer(), nullable=False),
        sa.Column("review_items_created", sa.Integer(), nullable=False),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(
            ["connection_id"], [f"{SCHEMA}.mailbox_connections.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_mailbox_sync_logs_connection_id", "mailbox_sync_logs", ["connection_id"], schema=SCHEMA
    )

    op.create_table(
        "enrichment_review_items",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("workspace_id", sa.Integer(), nullable=False),
        sa.Column("connection_id", sa.Integer(), nullable=False),
        sa.Column("source_message_id", sa.String(length=128), nullable=False),
        sa.Column("fact_id", sa.Integer(), nullable=True),
        sa.Column(
            "item_type",
            sa.String(length=64),
            server_default="booking_missing_from_calendar",
            nullable=False,
        ),
        sa.Column("extracted_data", JSONB, nullable=False),
        sa.Column("confidence", sa.Float(), nullable=True),
        sa.Column("status", sa.String(length=16), server_default="pending", nullable=False),
        sa.Column("resolved_booking_id", sa.Integer(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(
            ["connection_id"], [f"{SCHEMA}.mailbox_connections.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["fact_id"], [f"{SCHEMA}.reservation_facts.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "workspace_id",
            "connection_id",
            "source_message_id",
            name="uq_review_items_workspace_connection_msg",
        ),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_enrichment_review_items_workspace_id",
        "enrichment_review_items",
        ["workspace_id"],
        schema=SCHEMA,
    )

    op.create_table(
        "enrichment_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("workspace_id", sa.Integer(), nullable=True),
        sa.Column("connection_id", sa.Integer(), nullable=True),
        sa.Column("fact_id", sa.Integer(), nullable=True),
        sa.Column("booking_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("details", JSONB, nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_enrichment_logs_workspace_id", "enrichment_logs", ["workspace_id"], schema=SCHEMA
    )


def downgrade() -> None:
    """Downgrade schema."""
    for table in (
        "enrichment_logs",
        "enrichment_review_items",
        "mailbox_sync_logs",
        "feed_sync_logs",
        "bookings",
        "reservation_facts",
        "mailbox_messages",
        "member_properties",
        "workspace_members",
        "connection_properties",
        "calendar_feeds",
        "mailbox_connections",
        "properties",
    ):
        op.drop_table(table, schema=SCHEMA)
