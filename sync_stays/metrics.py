"""
Prometheus metrics for feed syncs, mailbox ingestion, enrichment, and database writes.

This module defines all Prometheus metrics used throughout the application.
Metrics are exposed via the /metrics endpoint for scraping by Prometheus.

Metric Types:
    - Counter: Cumulative metrics that only increase (e.g., total feed fetches)
    - Histogram: Observations bucketed by value (e.g., feed fetch latency)
    - Gauge: Point-in-time value that can go up or down (e.g., active feeds)

Example:
    >>> from sync_stays.metrics import feed_sync_duration, feed_syncs_total
    >>> with feed_sync_duration.time():
    ...     result = sync_feed(engine, feed_id=12)
    >>> feed_syncs_total.labels(status="success").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# Feed Sync Metrics
# =============================================================================

feed_syncs_total = Counter(
    "stays_feed_syncs_total",
    "Total number of calendar feed sync cycles (success and failure)",
    ["source_type", "status"],
)
"""
Counter for feed sync cycles.

Labels:
    source_type: Feed source type (airbnb, lodgify, vrbo, other)
    status: success or failure
"""

feed_sync_duration = Histogram(
    "stays_feed_sync_duration_seconds",
    "Duration of a single feed sync cycle in seconds",
    ["source_type"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, float("inf")),
)
"""
Histogram for feed sync duration, fetch to finalize.

Buckets: 0.5s, 1s, 2.5s, 5s, 10s, 30s, 60s, +Inf
"""

feed_requests = Counter(
    "stays_feed_requests_total",
    "Total calendar feed HTTP requests made",
    ["status_code"],
)
"""
Counter for feed HTTP requests.

Labels:
    status_code: HTTP status code, or "timeout" / "error" when no response arrived
"""

feed_latency = Histogram(
    "stays_feed_latency_seconds",
    "Calendar feed request latency in seconds",
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)
"""Histogram for feed request latency."""

bookings_written = Counter(
    "stays_bookings_written_total",
    "Booking rows written by feed sync",
    ["operation"],
)
"""
Counter for booking writes. No-op syncs do not increment it.

Labels:
    operation: insert, update, deactivate
"""

active_feeds = Gauge(
    "stays_active_feeds",
    "Number of active calendar feeds seen by the last sync-all run",
)
"""Gauge for active feeds."""

# =============================================================================
# Mailbox Metrics
# =============================================================================

mailbox_requests = Counter(
    "stays_mailbox_requests_total",
    "Total mailbox provider API calls",
    ["operation", "status"],
)
"""
Counter for mailbox provider calls.

Labels:
    operation: list_labels, list_messages, get_message
    status: success, retry, failure
"""

messages_ingested = Counter(
    "stays_messages_ingested_total",
    "Messages fetched from the mailbox and stored",
)
"""Counter for newly stored raw messages."""

messages_classified = Counter(
    "stays_messages_classified_total",
    "Messages classified by type",
    ["message_type"],
)
"""
Counter for classification outcomes.

Labels:
    message_type: reservation_confirmation, booking_inquiry, guest_message, ...
"""

# =============================================================================
# Fact & Enrichment Metrics
# =============================================================================

facts_stored = Counter(
    "stays_facts_stored_total",
    "Reservation facts persisted",
)
"""Counter for persisted reservation facts."""

facts_rejected = Counter(
    "stays_facts_rejected_total",
    "Reservation facts rejected by extraction or validation",
    ["reason"],
)
"""
Counter for rejected facts.

Labels:
    reason: no_reservation_data, invalid_guest_count, invalid_guest_name,
        invalid_dates, invalid_confirmation_code
"""

enrichment_matches = Counter(
    "stays_enrichment_matches_total",
    "Bookings matched to a reservation fact",
    ["reason"],
)
"""
Counter for enrichment matches.

Labels:
    reason: confirmation_code, unique_date, same_property_date, exact_dates
"""

enrichment_ambiguous = Counter(
    "stays_enrichment_ambiguous_total",
    "Date matches blocked because they spanned more than one property",
)
"""Counter for ambiguity blocks."""

review_items_created = Counter(
    "stays_review_items_created_total",
    "Enrichment review items created",
)
"""Counter for review items created."""
