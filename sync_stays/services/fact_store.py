"""
Turn mailbox messages into stored reservation facts.

Every message is stored raw first. Classification, extraction and validation
outcomes are recorded on the message row, so a failure never loses the
message and reprocessing can retry it after parser changes.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Optional

import structlog
from sqlalchemy.engine import Connection, Engine

from sync_stays.db.readers.connections import get_connection, list_stored_messages
from sync_stays.db.readers.facts import get_fact_by_message
from sync_stays.db.writers.facts import insert_fact, update_fact
from sync_stays.db.writers.messages import insert_message, record_message_outcome
from sync_stays.metrics import facts_rejected, messages_classified, messages_ingested
from sync_stays.normalizers.messages import MessageDetail
from sync_stays.parsers.classifier import Classification, classify_message
from sync_stays.parsers.extractor import ExtractedFact, extract
from sync_stays.parsers.validation import RejectionReason, validate_fact
from sync_stays.pollers.mailbox import WORKSPACE_NOT_LINKED, MailboxConfigurationError
from sync_stays.services.enrichment import EnrichmentSummary, enrich_connection

logger = structlog.get_logger(__name__)

FACT_FIELDS = ("check_in", "check_out", "guest_name", "guest_count", "confirmation_code")


@dataclass
class ParseOutcome:
    """Classification and extraction result for one message."""

    classification: Classification
    fact: Optional[ExtractedFact] = None
    rejection: Optional[RejectionReason] = None


@dataclass
class StoreStats:
    scanned: int = 0
    stored: int = 0
    duplicates: int = 0
    candidates: int = 0
    facts_created: int = 0
    facts_updated: int = 0
    rejected: dict[str, int] = field(default_factory=dict)


def parse_message(detail: MessageDetail, today: Optional[date] = None) -> ParseOutcome:
    """
    Classify a message and, for confirmations, extract and validate a fact.

    Never raises for unparseable content; the outcome carries the rejection reason.
    """
    text = detail.text_for_parsing
    classification = classify_message(detail.subject, text)
    messages_classified.labels(message_type=classification.message_type.value).inc()

    if not classification.is_candidate:
        return ParseOutcome(classification, rejection=RejectionReason.NOT_A_CONFIRMATION)

    fact = extract(text, detail.subject, is_preclassified_candidate=True, today=today)
    if fact is None:
        return ParseOutcome(classification, rejection=RejectionReason.NO_RESERVATION_DATA)

    rejection = validate_fact(fact)
    if rejection is not None:
        return ParseOutcome(classification, fact=fact, rejection=rejection)
    return ParseOutcome(classification, fact=fact)


def fact_values(connection: Any, source_message_id: str, outcome: ParseOutcome) -> dict[str, Any]:
    """Column values for a reservation fact row."""
    fact = outcome.fact
    return {
        "connection_id": connection.id,
        "workspace_id": connection.workspace_id,
        "source_message_id": source_message_id,
        "check_in": fact.check_in,
        "check_out": fact.check_out,
        "guest_name": fact.guest_name,
        "guest_count": fact.guest_count,
        "confirmation_code": fact.confirmation_code,
        "confidence": fact.confidence,
        "raw_extraction": {**fact.raw, "classification": outcome.classification.to_dict()},
    }


def improved_values(existing: Any, fact: ExtractedFact) -> dict[str, Any]:
    """
    Fields a re-extraction may refresh on a stored fact.

    Null never overwrites a value. Dates are only filled in when missing, as a
    matched fact's dates have been re-synced from its booking.
    """
    changes: dict[str, Any] = {}
    for name in FACT_FIELDS:
        new = getattr(fact, name)
        old = getattr(existing, name)
        if new is None or new == old:
            continue
        if name in ("check_in", "check_out") and old is not None:
            continue
        changes[name] = new
    if fact.confidence > (existing.confidence or 0):
        changes["confidence"] = fact.confidence
    return changes


def _reject(stats: StoreStats, reason: RejectionReason) -> None:
    if reason is not RejectionReason.NOT_A_CONFIRMATION:
        facts_rejected.labels(reason=reason.value).inc()
    stats.rejected[reason.value] = stats.rejected.get(reason.value, 0) + 1


def store_message(
    conn: Connection,
    connection: Any,
    detail: MessageDetail,
    stats: StoreStats,
    today: Optional[date] = None,
) -> Optional[int]:
    """
    Store one message and the fact it yields.

    Returns:
        Optional[int]: New fact id, or None
    """
    stats.scanned += 1
    row_id = insert_message(conn, connection.id, detail)
    if row_id is None:
        stats.duplicates += 1
        return None
    stats.stored += 1
    messages_ingested.inc()

    outcome = parse_message(detail, today=today)
    if outcome.classification.is_candidate:
        stats.candidates += 1

    record_message_outcome(
        conn,
        row_id,
        outcome.classification.message_type.value,
        outcome.classification.to_dict(),
        outcome.rejection.value if outcome.rejection else None,
    )

    if outcome.rejection is not None:
        _reject(stats, outcome.rejection)
        logger.debug(
            "message_not_stored_as_fact",
            message_id=detail.message_id,
            reason=outcome.rejection.value,
        )
        return None

    fact_id = insert_fact(conn, fact_values(connection, detail.message_id, outcome))
    if fact_id is not None:
        stats.facts_created += 1
    return fact_id


def store_messages(
    engine: Engine,
    connection: Any,
    details: Iterable[MessageDetail],
    today: Optional[date] = None,
) -> StoreStats:
    """
    Store fetched messages and extract facts, one transaction per message.

    Args:
        engine (Engine): SQLAlchemy engine.
        connection: Mailbox connection row.
        details: Normalized messages.
        today (Optional[date]): Reference day for dates written without a year.

    Returns:
        StoreStats: Counters for the batch.
    """
    if connection.workspace_id is None:
        raise MailboxConfigurationError(
            f"Connection {connection.id} is not linked to a workspace", WORKSPACE_NOT_LINKED
        )

    stats = StoreStats()
    for detail in details:
        with engine.begin() as conn:
            store_message(conn, connection, detail, stats, today=today)

    logger.info(
        "messages_stored",
        connection_id=connection.id,
        scanned=stats.scanned,
        stored=stats.stored,
        duplicates=stats.duplicates,
        facts_created=stats.facts_created,
        rejected=stats.rejected,
    )
    return stats


def detail_from_row(row: Any) -> MessageDetail:
    """Rebuild a MessageDetail from a stored message row."""
    return MessageDetail(
        message_id=row.provider_message_id,
        subject=row.subject or "",
        snippet=row.snippet or "",
        body_text=row.body_text,
        body_html=row.body_html,
        received_at=row.received_at,
    )


@dataclass
class ReprocessSummary:
    connection_id: int
    stats: StoreStats
    enrichment: Optional[EnrichmentSummary] = None


def reprocess_connection(
    engine: Engine, connection_id: int, dry_run: bool = False, today: Optional[date] = None
) -> ReprocessSummary:
    """
    Re-run classification and extraction over every stored message of a connection.

    Creates facts that are missing, refreshes existing ones with improved
    values, then runs the batch enrichment pass.

    Raises:
        ValueError: If the connection does not exist.
        MailboxConfigurationError: If the connection has no workspace.
    """
    with engine.connect() as conn:
        connection = get_connection(conn, connection_id)
        if connection is None:
            raise ValueError(f"Mailbox connection {connection_id} not found")
        rows = list_stored_messages(conn, connection_id)

    if connection.workspace_id is None:
        raise MailboxConfigurationError(
            f"Connection {connection_id} is not linked to a workspace", WORKSPACE_NOT_LINKED
        )

    logger.info("reprocess_started", connection_id=connection_id, messages=len(rows))
    stats = StoreStats()
    types: Counter[str] = Counter()

    for row in rows:
        stats.scanned += 1
        outcome = parse_message(detail_from_row(row), today=today)
        types[outcome.classification.message_type.value] += 1
        if outcome.classification.is_candidate:
            stats.candidates += 1
        if dry_run:
            continue

        with engine.begin() as conn:
            record_message_outcome(
                conn,
                row.id,
                outcome.classification.message_type.value,
                outcome.classification.to_dict(),
                outcome.rejection.value if outcome.rejection else None,
            )
            if outcome.rejection is not None:
                _reject(stats, outcome.rejection)
                continue

            existing = get_fact_by_message(conn, connection_id, row.provider_message_id)
            if existing is None:
                if insert_fact(conn, fact_values(connection, row.provider_message_id, outcome)):
                    stats.facts_created += 1
                continue

            changes = improved_values(existing, outcome.fact)
            if changes:
                update_fact(conn, existing.id, changes)
                stats.facts_updated += 1

    logger.info(
        "reprocess_completed",
        connection_id=connection_id,
        message_types=dict(types),
        facts_created=stats.facts_created,
        facts_updated=stats.facts_updated,
    )

    enrichment = enrich_connection(engine, connection_id, dry_run=dry_run, today=today)
    return ReprocessSummary(connection_id=connection_id, stats=stats, enrichment=enrichment)
