"""
Batch enrichment pass: attach guest identity from stored facts to bookings.

Runs per mailbox connection after new facts are stored, and again on
reprocessing. Feed sync applies the same policy one event at a time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Optional, Sequence

import structlog
from sqlalchemy.engine import Connection, Engine

from sync_stays.config import ENRICHMENT_FUTURE_DAYS, ENRICHMENT_PAST_DAYS
from sync_stays.db.readers.bookings import get_enrichment_candidates
from sync_stays.db.readers.connections import get_connection, get_linked_property_ids
from sync_stays.db.readers.facts import get_facts_for_connection
from sync_stays.db.writers.bookings import apply_enrichment
from sync_stays.db.writers.facts import (
    insert_enrichment_log,
    insert_review_item,
    sync_fact_dates,
)
from sync_stays.enrichment.matcher import (
    MatchOutcome,
    match_fact_to_bookings,
    should_update_guest_name,
)
from sync_stays.metrics import enrichment_ambiguous, enrichment_matches
from sync_stays.parsers.names import split_guest_name
from sync_stays.pollers.mailbox import WORKSPACE_NOT_LINKED, MailboxConfigurationError
from sync_stays.utils.datetime import to_day, utc_today

logger = structlog.get_logger(__name__)

MISSING_FROM_CALENDAR = "booking_missing_from_calendar"
AMBIGUOUS_DATE_MATCH = "ambiguous_date_match"


@dataclass
class EnrichmentSummary:
    connection_id: int
    facts_considered: int = 0
    matched: int = 0
    names_updated: int = 0
    dates_synced: int = 0
    ambiguous: int = 0
    duplicates: int = 0
    unmatched: int = 0
    review_items_created: int = 0


def review_snapshot(fact: Any) -> dict[str, Any]:
    """Fact fields copied onto a review item."""
    return {
        "guest_name": fact.guest_name,
        "guest_count": fact.guest_count,
        "check_in": fact.check_in.isoformat() if fact.check_in else None,
        "check_out": fact.check_out.isoformat() if fact.check_out else None,
        "confirmation_code": fact.confirmation_code,
    }


def _queue_review(
    conn: Connection, connection: Any, fact: Any, item_type: str, summary: EnrichmentSummary
) -> None:
    item_id = insert_review_item(
        conn,
        {
            "workspace_id": connection.workspace_id,
            "connection_id": connection.id,
            "source_message_id": fact.source_message_id,
            "fact_id": fact.id,
            "item_type": item_type,
            "extracted_data": review_snapshot(fact),
            "confidence": fact.confidence,
        },
    )
    if item_id is not None:
        summary.review_items_created += 1
        logger.info("review_item_created", item_id=item_id, fact_id=fact.id, item_type=item_type)


def _record_ambiguity(
    conn: Connection, connection: Any, fact: Any, outcome: MatchOutcome, dry_run: bool
) -> None:
    enrichment_ambiguous.inc()
    logger.warning(
        "enrichment_ambiguous",
        connection_id=connection.id,
        fact_id=fact.id,
        check_in=str(fact.check_in),
        property_ids=outcome.ambiguous_property_ids,
    )
    if dry_run:
        return
    insert_enrichment_log(
        conn,
        status="ambiguous",
        reason="Check-in date matches bookings on more than one property",
        workspace_id=connection.workspace_id,
        connection_id=connection.id,
        fact_id=fact.id,
        details={
            "check_in": str(fact.check_in),
            "property_ids": outcome.ambiguous_property_ids,
        },
    )


def enrich_facts(
    conn: Connection,
    connection: Any,
    facts: Sequence[Any],
    property_ids: Sequence[int],
    today: Optional[date] = None,
    dry_run: bool = False,
) -> EnrichmentSummary:
    """
    Match each fact to a booking of the connection's properties and enrich it.

    For every match the fact's dates are re-synced from the booking. The guest
    name (with count and code) is written only through the name-update gate.
    Unmatched confident facts become review items; multi-property date hits
    are logged and queued for review, never guessed.

    Args:
        conn (Connection): An active SQLAlchemy connection (within transaction).
        connection: Mailbox connection row (must have a workspace).
        facts: Fact rows of the connection.
        property_ids: Properties linked to the connection.
        today (Optional[date]): Reference day of the candidate window.
        dry_run (bool): If True, compute the summary but skip writes.

    Returns:
        EnrichmentSummary: Counters for the pass.
    """
    today = today or utc_today()
    candidates = get_enrichment_candidates(
        conn,
        property_ids,
        today - timedelta(days=ENRICHMENT_PAST_DAYS),
        today + timedelta(days=ENRICHMENT_FUTURE_DAYS),
    )
    summary = EnrichmentSummary(connection_id=connection.id, facts_considered=len(facts))
    # Names written earlier in this pass; candidate rows are not re-read
    current_names: dict[int, Optional[str]] = {}

    for fact in facts:
        outcome = match_fact_to_bookings(fact, candidates)

        if outcome.ambiguous:
            summary.ambiguous += 1
            _record_ambiguity(conn, connection, fact, outcome, dry_run)
            if fact.guest_name and fact.check_in and not dry_run:
                _queue_review(conn, connection, fact, AMBIGUOUS_DATE_MATCH, summary)
            continue

        if not outcome.matched:
            summary.unmatched += 1
            if fact.confirmation_code and fact.guest_name and fact.check_in and not dry_run:
                _queue_review(conn, connection, fact, MISSING_FROM_CALENDAR, summary)
            continue

        booking = outcome.booking
        summary.matched += 1

        if outcome.duplicate_booking_ids:
            summary.duplicates += 1
            logger.warning(
                "same_property_duplicate_bookings",
                fact_id=fact.id,
                chosen=booking.id,
                duplicates=outcome.duplicate_booking_ids,
            )
            if not dry_run:
                insert_enrichment_log(
                    conn,
                    status="same_property_duplicate",
                    reason="Several bookings on one property share the fact's check-in",
                    workspace_id=connection.workspace_id,
                    connection_id=connection.id,
                    fact_id=fact.id,
                    booking_id=booking.id,
                    details={"duplicate_booking_ids": outcome.duplicate_booking_ids},
                )

        if not dry_run and sync_fact_dates(
            conn, fact, to_day(booking.check_in), to_day(booking.check_out)
        ):
            summary.dates_synced += 1

        current_name = current_names.get(booking.id, booking.guest_name)
        if not should_update_guest_name(current_name, fact.guest_name):
            continue

        first, last_initial = split_guest_name(fact.guest_name)
        values = {
            "guest_name": fact.guest_name,
            "guest_first_name": first,
            "guest_last_initial": last_initial,
            "enriched_fact_id": fact.id,
            "match_reason": outcome.reason.value,
        }
        if fact.guest_count is not None:
            values["guest_count"] = fact.guest_count
        if fact.confirmation_code:
            values["reservation_code"] = fact.confirmation_code

        current_names[booking.id] = fact.guest_name
        summary.names_updated += 1
        enrichment_matches.labels(reason=outcome.reason.value).inc()
        logger.info(
            "booking_enriched",
            booking_id=booking.id,
            fact_id=fact.id,
            reason=outcome.reason.value,
        )
        if not dry_run:
            apply_enrichment(conn, booking.id, values)
            insert_enrichment_log(
                conn,
                status="matched",
                reason=outcome.reason.value,
                workspace_id=connection.workspace_id,
                connection_id=connection.id,
                fact_id=fact.id,
                booking_id=booking.id,
            )

    return summary


def enrich_connection(
    engine: Engine, connection_id: int, dry_run: bool = False, today: Optional[date] = None
) -> EnrichmentSummary:
    """
    Run the batch enrichment pass over every matchable fact of a connection.

    Raises:
        ValueError: If the connection does not exist.
        MailboxConfigurationError: If the connection has no workspace.
    """
    with engine.begin() as conn:
        connection = get_connection(conn, connection_id)
        if connection is None:
            raise ValueError(f"Mailbox connection {connection_id} not found")
        if connection.workspace_id is None:
            raise MailboxConfigurationError(
                f"Connection {connection_id} is not linked to a workspace", WORKSPACE_NOT_LINKED
            )

        property_ids = get_linked_property_ids(conn, connection_id)
        if not property_ids:
            logger.warning("connection_has_no_properties", connection_id=connection_id)
            return EnrichmentSummary(connection_id=connection_id)

        facts = get_facts_for_connection(conn, connection_id)
        summary = enrich_facts(conn, connection, facts, property_ids, today=today, dry_run=dry_run)

    logger.info(
        "enrichment_pass_completed",
        connection_id=connection_id,
        facts=summary.facts_considered,
        matched=summary.matched,
        names_updated=summary.names_updated,
        ambiguous=summary.ambiguous,
        review_items=summary.review_items_created,
    )
    return summary
