from datetime import date
from typing import Any, Optional, Sequence

from sqlalchemy import or_, select
from sqlalchemy.engine import Connection

from sync_stays.models.facts import EnrichmentReviewItem, ReservationFact
from sync_stays.models.mailbox import ConnectionProperty

facts = ReservationFact.__table__
review_items = EnrichmentReviewItem.__table__
links = ConnectionProperty.__table__


def get_fact(conn: Connection, fact_id: int) -> Optional[Any]:
    """Fetch a reservation fact by id, or None."""
    return conn.execute(select(facts).where(facts.c.id == fact_id)).fetchone()


def get_fact_by_message(conn: Connection, connection_id: int, source_message_id: str) -> Optional[Any]:
    """Fetch the fact extracted from a given mailbox message, or None."""
    stmt = select(facts).where(
        facts.c.connection_id == connection_id,
        facts.c.source_message_id == source_message_id,
    )
    return conn.execute(stmt).fetchone()


def get_facts_for_property(conn: Connection, property_id: int, since: date) -> list[Any]:
    """
    Facts from every connection linked to a property, still relevant at `since`.

    A fact is relevant when its check-out is on or after `since`, or when it has
    no check-out but carries a confirmation code.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        property_id (int): Property whose feeds are being synced.
        since (date): Lookback cut-off.

    Returns:
        list[Row]: Fact rows ordered by id.
    """
    connection_ids = select(links.c.connection_id).where(links.c.property_id == property_id)
    stmt = (
        select(facts)
        .where(
            facts.c.connection_id.in_(connection_ids),
            or_(
                facts.c.check_out >= since,
                (facts.c.check_out.is_(None) & facts.c.confirmation_code.is_not(None)),
            ),
        )
        .order_by(facts.c.id)
    )
    return list(conn.execute(stmt).fetchall())


def get_facts_for_connection(conn: Connection, connection_id: int) -> list[Any]:
    """Facts of a connection that can be matched (have a check-in or a code)."""
    stmt = (
        select(facts)
        .where(
            facts.c.connection_id == connection_id,
            or_(facts.c.check_in.is_not(None), facts.c.confirmation_code.is_not(None)),
        )
        .order_by(facts.c.id)
    )
    return list(conn.execute(stmt).fetchall())


def get_facts_by_ids(conn: Connection, fact_ids: Sequence[int]) -> dict[int, Any]:
    """Map fact id -> row for the given ids."""
    if not fact_ids:
        return {}
    stmt = select(facts).where(facts.c.id.in_(list(fact_ids)))
    return {row.id: row for row in conn.execute(stmt)}


def get_facts_in_range(
    conn: Connection, connection_ids: Sequence[int], start: date, end: date
) -> list[Any]:
    """Facts of the given connections whose check-in falls in [start, end]."""
    if not connection_ids:
        return []
    stmt = (
        select(facts)
        .where(
            facts.c.connection_id.in_(list(connection_ids)),
            facts.c.check_in >= start,
            facts.c.check_in <= end,
        )
        .order_by(facts.c.id)
    )
    return list(conn.execute(stmt).fetchall())


def review_item_exists(
    conn: Connection, workspace_id: int, connection_id: int, source_message_id: str
) -> bool:
    """Check whether a review item already exists for a message."""
    stmt = select(review_items.c.id).where(
        review_items.c.workspace_id == workspace_id,
        review_items.c.connection_id == connection_id,
        review_items.c.source_message_id == source_message_id,
    )
    return conn.execute(stmt).fetchone() is not None


def get_review_item(conn: Connection, item_id: int) -> Optional[Any]:
    """Fetch a review item by id, or None."""
    return conn.execute(select(review_items).where(review_items.c.id == item_id)).fetchone()


def list_review_items(conn: Connection, workspace_id: int, status: str = "pending") -> list[Any]:
    """Review items of a workspace in a given status, newest first."""
    stmt = (
        select(review_items)
        .where(review_items.c.workspace_id == workspace_id, review_items.c.status == status)
        .order_by(review_items.c.created_at.desc(), review_items.c.id.desc())
    )
    return list(conn.execute(stmt).fetchall())
