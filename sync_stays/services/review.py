"""Human review queue for facts no booking could be matched to."""

from datetime import date
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine

from sync_stays.db.readers.bookings import find_on_exact_days
from sync_stays.db.readers.facts import get_review_item, list_review_items
from sync_stays.db.readers.members import get_properties
from sync_stays.db.writers.bookings import apply_enrichment
from sync_stays.db.writers.facts import insert_enrichment_log, update_review_item
from sync_stays.enrichment.provenance import MatchReason
from sync_stays.parsers.names import is_masked_guest_name, split_guest_name
from sync_stays.utils.datetime import ensure_date

logger = structlog.get_logger(__name__)

PENDING = "pending"
RESOLVED = "resolved"
REJECTED = "rejected"


class ReviewItemNotFoundError(LookupError):
    """The review item does not exist."""


class NoMatchingBookingError(LookupError):
    """No unenriched booking exists on the review item's exact dates."""


def list_pending(engine: Engine, workspace_id: int) -> list[Any]:
    """Pending review items of a workspace, newest first."""
    with engine.connect() as conn:
        return list_review_items(conn, workspace_id, status=PENDING)


def dismiss_item(engine: Engine, item_id: int) -> Any:
    """
    Mark a review item rejected.

    Raises:
        ReviewItemNotFoundError: If the item does not exist.
    """
    with engine.begin() as conn:
        item = get_review_item(conn, item_id)
        if item is None:
            raise ReviewItemNotFoundError(f"Review item {item_id} not found")
        if item.status == PENDING:
            update_review_item(conn, item_id, status=REJECTED)
            logger.info("review_item_dismissed", item_id=item_id)
        return get_review_item(conn, item_id)


def resolve_item(
    engine: Engine,
    item_id: int,
    property_id: int,
    guest_name: Optional[str] = None,
    guest_count: Optional[int] = None,
    check_in: Optional[date] = None,
    check_out: Optional[date] = None,
) -> Any:
    """
    Apply a review item to the unenriched booking on its exact dates for a chosen property.

    Values passed here override the item's extracted snapshot. An item that is
    already resolved is returned unchanged.

    Args:
        engine (Engine): SQLAlchemy engine.
        item_id (int): Review item id.
        property_id (int): Property the reviewer assigns the stay to.
        guest_name, guest_count, check_in, check_out: Optional overrides.

    Returns:
        Row: The updated review item.

    Raises:
        ReviewItemNotFoundError: If the item does not exist.
        ValueError: If the property is not in the item's workspace or dates are missing.
        NoMatchingBookingError: If no unenriched booking sits on those dates.
    """
    with engine.begin() as conn:
        item = get_review_item(conn, item_id)
        if item is None:
            raise ReviewItemNotFoundError(f"Review item {item_id} not found")
        if item.status == RESOLVED:
            return item

        if property_id not in {p.id for p in get_properties(conn, [item.workspace_id])}:
            raise ValueError(f"Property {property_id} is not in workspace {item.workspace_id}")

        snapshot = item.extracted_data or {}
        name = guest_name or snapshot.get("guest_name")
        count = guest_count if guest_count is not None else snapshot.get("guest_count")
        start = check_in or ensure_date(snapshot.get("check_in"))
        end = check_out or ensure_date(snapshot.get("check_out"))
        if start is None or end is None:
            raise ValueError(f"Review item {item_id} has no complete date range")

        candidates = [
            b
            for b in find_on_exact_days(conn, property_id, start, end)
            if b.enriched_fact_id is None and is_masked_guest_name(b.guest_name)
        ]
        if not candidates:
            raise NoMatchingBookingError(
                f"No unenriched booking on property {property_id} from {start} to {end}"
            )
        booking = candidates[0]

        first, last_initial = split_guest_name(name)
        values = {
            "guest_name": name,
            "guest_first_name": first,
            "guest_last_initial": last_initial,
            "guest_count": count,
            "enriched_fact_id": item.fact_id,
            "match_reason": MatchReason.REVIEW_RESOLVED.value if item.fact_id else None,
        }
        if snapshot.get("confirmation_code"):
            values["reservation_code"] = snapshot["confirmation_code"]
        apply_enrichment(conn, booking.id, values)
        update_review_item(conn, item_id, status=RESOLVED, resolved_booking_id=booking.id)
        insert_enrichment_log(
            conn,
            status="matched",
            reason=MatchReason.REVIEW_RESOLVED.value,
            workspace_id=item.workspace_id,
            connection_id=item.connection_id,
            fact_id=item.fact_id,
            booking_id=booking.id,
            details={"review_item_id": item_id},
        )
        logger.info(
            "review_item_resolved",
            item_id=item_id,
            booking_id=booking.id,
            property_id=property_id,
        )
        return get_review_item(conn, item_id)
