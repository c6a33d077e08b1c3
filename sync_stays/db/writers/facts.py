import json
from datetime import date
from typing import Any, Optional

import structlog
from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from sync_stays.config import DEBUG
from sync_stays.db.readers.facts import get_fact_by_message, review_item_exists
from sync_stays.metrics import facts_stored, review_items_created
from sync_stays.models.facts import EnrichmentLog, EnrichmentReviewItem, ReservationFact
from sync_stays.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

facts = ReservationFact.__table__
review_items = EnrichmentReviewItem.__table__


def insert_fact(conn: Connection, values: dict[str, Any]) -> Optional[int]:
    """
    Insert a reservation fact unless one already exists for the source message.

    Args:
        conn: Active connection (within transaction)
        values: Column values; must include connection_id and source_message_id

    Returns:
        Optional[int]: New fact id, or None if the message was already processed
    """
    existing = get_fact_by_message(conn, values["connection_id"], values["source_message_id"])
    if existing is not None:
        logger.debug(
            "fact_already_stored",
            connection_id=values["connection_id"],
            source_message_id=values["source_message_id"],
        )
        return None

    now = utc_now()
    result = conn.execute(insert(facts).values(**values, created_at=now, updated_at=now))
    facts_stored.inc()

    if DEBUG:
        logger.debug("Stored fact:\n%s", json.dumps(values, indent=2, default=str))

    return int(result.inserted_primary_key[0])


def update_fact(conn: Connection, fact_id: int, values: dict[str, Any]) -> None:
    """Update columns of a fact (reprocessing refresh)."""
    if not values:
        return
    conn.execute(
        update(facts).where(facts.c.id == fact_id).values(**values, updated_at=utc_now())
    )


def sync_fact_dates(
    conn: Connection, fact: Any, check_in: date, check_out: date
) -> bool:
    """
    Overwrite a fact's advisory dates with the matched booking's dates.

    Returns:
        bool: True if the dates changed
    """
    if fact.check_in == check_in and fact.check_out == check_out:
        return False
    conn.execute(
        update(facts)
        .where(facts.c.id == fact.id)
        .values(check_in=check_in, check_out=check_out, updated_at=utc_now())
    )
    logger.info(
        "fact_dates_synced",
        fact_id=fact.id,
        check_in=check_in.isoformat(),
        check_out=check_out.isoformat(),
    )
    return True


def insert_review_item(conn: Connection, values: dict[str, Any]) -> Optional[int]:
    """
    Create an enrichment review item unless one exists for the same source message.

    Returns:
        Optional[int]: New item id, or None if it already existed
    """
    if review_item_exists(
        conn, values["workspace_id"], values["connection_id"], values["source_message_id"]
    ):
        return None
    result = conn.execute(insert(review_items).values(**values, created_at=utc_now()))
    review_items_created.inc()
    return int(result.inserted_primary_key[0])


def update_review_item(
    conn: Connection, item_id: int, status: str, resolved_booking_id: Optional[int] = None
) -> None:
    """Move a review item to resolved/rejected."""
    conn.execute(
        update(review_items)
        .where(review_items.c.id == item_id)
        .values(status=status, resolved_booking_id=resolved_booking_id, resolved_at=utc_now())
    )


def insert_enrichment_log(
    conn: Connection,
    status: str,
    reason: str,
    workspace_id: Optional[int] = None,
    connection_id: Optional[int] = None,
    fact_id: Optional[int] = None,
    booking_id: Optional[int] = None,
    details: Optional[dict[str, Any]] = None,
) -> None:
    """Append an enrichment audit row (ambiguity blocks, same-property duplicates)."""
    conn.execute(
        insert(EnrichmentLog.__table__).values(
            workspace_id=workspace_id,
            connection_id=connection_id,
            fact_id=fact_id,
            booking_id=booking_id,
            status=status,
            reason=reason,
            details=details,
            created_at=utc_now(),
        )
    )
