"""
Query-time calendar reconciliation.

Given the bookings a caller may see, produce the calendar items the UI renders:

1. drop provider "Not Available" / "Closed Period" blocks fully covered by real stays
2. drop provider buffer blocks that duplicate the property's cleaning policy
3. classify holds (no enrichment, no manual resolution, placeholder-like name)
4. synthesize one cleaning item per pre/post policy day
5. drop holds made redundant by the cleaning policy
6. mask guest fields the caller may not see

Stages 1-5 are pure functions over CalendarItem lists; masking runs last so
no suppression decision ever reads masked data. Lookup tables (connection
colors, feed names, facts) are built per request and passed in.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Iterable, Optional, Sequence

import structlog
from sqlalchemy.engine import Engine

from sync_stays.config import FACT_LOOKBACK_DAYS
from sync_stays.db.readers.bookings import list_overlapping
from sync_stays.db.readers.connections import get_connection_colors, get_connections_by_property
from sync_stays.db.readers.facts import get_facts_by_ids, get_facts_in_range
from sync_stays.db.readers.feeds import get_feed_names
from sync_stays.db.readers.members import (
    get_calendar_memberships,
    get_properties,
    get_property_restrictions,
)
from sync_stays.enrichment.provenance import (
    FactMatched,
    ManuallyResolved,
    MatchReason,
    Provenance,
    Unenriched,
    provenance_of,
)
from sync_stays.parsers.names import is_hold_label
from sync_stays.utils.datetime import as_utc, ensure_date, iter_days, to_day

logger = structlog.get_logger(__name__)

# Providers that export their own availability blocks and turnover buffers
BLOCK_EXPORTING_SOURCES = frozenset({"lodgify"})
GENERIC_BLOCK_LABELS = frozenset({"not available", "closed period"})

DEFAULT_GUEST_COUNT = 1


@dataclass(frozen=True)
class CleaningPolicy:
    pre_days: int = 0
    post_days: int = 0

    @property
    def active(self) -> bool:
        return self.pre_days > 0 or self.post_days > 0


@dataclass(frozen=True)
class ViewPermissions:
    can_view_guest_name: bool = True
    can_view_guest_count: bool = True
    can_view_booking_notes: bool = True


@dataclass
class DisplayContext:
    """Request-scoped lookup tables used to decide what each booking displays."""

    connection_colors: dict[int, Optional[str]] = field(default_factory=dict)
    feed_names: dict[int, str] = field(default_factory=dict)
    fact_connections: dict[int, int] = field(default_factory=dict)
    facts_by_property: dict[int, list[Any]] = field(default_factory=dict)


@dataclass
class CalendarItem:
    """A booking or synthesized cleaning day as served to the calendar."""

    id: str
    type: str
    property_id: int
    workspace_id: Optional[int]
    check_in: datetime
    check_out: datetime
    all_day: bool = False
    booking_id: Optional[int] = None
    source_feed_id: Optional[int] = None
    source_type: Optional[str] = None
    platform: Optional[str] = None
    status: Optional[str] = None
    summary: Optional[str] = None
    guest_name: Optional[str] = None
    guest_first_name: Optional[str] = None
    guest_last_initial: Optional[str] = None
    guest_count: Optional[int] = None
    reservation_code: Optional[str] = None
    manual_guest_name: Optional[str] = None
    manual_guest_count: Optional[int] = None
    manual_notes: Optional[str] = None
    provenance: Provenance = field(default_factory=Unenriched)
    is_hold: bool = False
    display_name: Optional[str] = None
    display_guest_count: Optional[int] = None
    display_source: Optional[str] = None
    connection_id: Optional[int] = None
    connection_color: Optional[str] = None

    @property
    def start_day(self) -> date:
        return to_day(self.check_in)

    @property
    def end_day(self) -> date:
        return to_day(self.check_out)

    def days(self) -> list[date]:
        return list(iter_days(self.start_day, self.end_day))

    @property
    def from_block_exporting_source(self) -> bool:
        return (self.source_type or "").lower() in BLOCK_EXPORTING_SOURCES

    def to_dict(self) -> dict[str, Any]:
        data = {
            k: v
            for k, v in self.__dict__.items()
            if k not in ("provenance", "check_in", "check_out")
        }
        data["check_in"] = self.check_in.isoformat()
        data["check_out"] = self.check_out.isoformat()
        data["enriched"] = isinstance(self.provenance, FactMatched)
        data["manually_resolved"] = isinstance(self.provenance, ManuallyResolved)
        data["match_reason"] = (
            self.provenance.reason.value if isinstance(self.provenance, FactMatched) else None
        )
        return data


@dataclass
class CalendarView:
    items: list[CalendarItem]
    property_policies: dict[int, CleaningPolicy]


def item_from_booking(booking: Any) -> CalendarItem:
    """Build a calendar item from a booking row."""
    return CalendarItem(
        id=str(booking.id),
        type="booking",
        property_id=booking.property_id,
        workspace_id=booking.workspace_id,
        check_in=as_utc(booking.check_in),
        check_out=as_utc(booking.check_out),
        booking_id=booking.id,
        source_feed_id=booking.source_feed_id,
        source_type=booking.source_type,
        platform=booking.platform,
        status=booking.status,
        summary=booking.summary,
        guest_name=booking.guest_name,
        guest_first_name=booking.guest_first_name,
        guest_last_initial=booking.guest_last_initial,
        guest_count=booking.guest_count,
        reservation_code=booking.reservation_code,
        manual_guest_name=booking.manual_guest_name,
        manual_guest_count=booking.manual_guest_count,
        manual_notes=booking.manual_notes,
        provenance=provenance_of(booking),
    )


def _by_property(items: Iterable[CalendarItem]) -> dict[int, list[CalendarItem]]:
    grouped: dict[int, list[CalendarItem]] = {}
    for item in items:
        grouped.setdefault(item.property_id, []).append(item)
    return grouped


def is_hold(item: CalendarItem) -> bool:
    """A booking without enrichment or manual resolution whose name is a placeholder."""
    if not isinstance(item.provenance, Unenriched):
        return False
    return is_hold_label(item.guest_name)


def is_generic_block(item: CalendarItem) -> bool:
    if not item.from_block_exporting_source:
        return False
    labels = {(item.guest_name or "").strip().lower(), (item.summary or "").strip().lower()}
    return bool(labels & GENERIC_BLOCK_LABELS)


def suppress_generic_blocks(items: list[CalendarItem]) -> list[CalendarItem]:
    """Stage 1: drop generic provider blocks whose every day a real booking covers."""
    kept: list[CalendarItem] = []
    for property_items in _by_property(items).values():
        real = [i for i in property_items if not is_generic_block(i)]
        kept.extend(real)
        covered = {day for i in real for day in i.days()}
        for block in property_items:
            if not is_generic_block(block):
                continue
            days = block.days()
            if days and all(day in covered for day in days):
                logger.debug("generic_block_suppressed", booking_id=block.booking_id)
                continue
            kept.append(block)
    return kept


def is_policy_buffer(block: CalendarItem, real: Sequence[CalendarItem], policy: CleaningPolicy) -> bool:
    """
    True if `block` is exactly a pre- or post-stay buffer of one of the real bookings.

    Example:
        A 1-day block 2026-05-09 -> 2026-05-10 with pre_days=1 is a buffer of a
        booking checking in on 2026-05-10.
    """
    duration = (block.end_day - block.start_day).days
    for booking in real:
        if booking.booking_id == block.booking_id:
            continue
        if (
            policy.pre_days > 0
            and duration == policy.pre_days
            and block.start_day == booking.start_day - timedelta(days=policy.pre_days)
            and block.end_day == booking.start_day
        ):
            return True
        if (
            policy.post_days > 0
            and duration == policy.post_days
            and block.start_day == booking.end_day
            and block.end_day == booking.end_day + timedelta(days=policy.post_days)
        ):
            return True
    return False


def suppress_policy_buffers(
    items: list[CalendarItem], policies: dict[int, CleaningPolicy]
) -> list[CalendarItem]:
    """Stage 2: drop provider buffer blocks the cleaning policy will synthesize instead."""
    kept: list[CalendarItem] = []
    for property_id, property_items in _by_property(items).items():
        policy = policies.get(property_id)
        if policy is None or not policy.active:
            kept.extend(property_items)
            continue
        real = [i for i in property_items if not is_hold(i)]
        for item in property_items:
            if (
                item.from_block_exporting_source
                and not isinstance(item.provenance, FactMatched)
                and is_policy_buffer(item, real, policy)
            ):
                logger.debug("policy_buffer_suppressed", booking_id=item.booking_id)
                continue
            kept.append(item)
    return kept


def classify_holds(items: list[CalendarItem]) -> list[CalendarItem]:
    """Stage 3: flag holds."""
    for item in items:
        item.is_hold = is_hold(item)
    return items


def synthesize_cleaning(
    items: list[CalendarItem], policies: dict[int, CleaningPolicy]
) -> list[CalendarItem]:
    """
    Stage 4: one cleaning item per policy day around each non-hold booking.

    Pre days are check-in minus 1..pre; post days are check-out plus 0..post-1.
    Days occupied by another non-hold booking are skipped, and each
    (property, day) is emitted once.
    """
    booked: dict[int, set[date]] = {}
    for item in items:
        if not item.is_hold:
            booked.setdefault(item.property_id, set()).update(item.days())

    cleaning: list[CalendarItem] = []
    seen: set[tuple[int, date]] = set()
    for item in items:
        policy = policies.get(item.property_id)
        if item.is_hold or policy is None or not policy.active:
            continue
        days = [item.start_day - timedelta(days=i) for i in range(policy.pre_days, 0, -1)]
        days += [item.end_day + timedelta(days=i) for i in range(policy.post_days)]
        for day in days:
            key = (item.property_id, day)
            if day in booked.get(item.property_id, set()) or key in seen:
                continue
            seen.add(key)
            start = datetime.combine(day, time(0), tzinfo=timezone.utc)
            cleaning.append(
                CalendarItem(
                    id=f"cleaning:{item.property_id}|{day.isoformat()}",
                    type="cleaning",
                    property_id=item.property_id,
                    workspace_id=item.workspace_id,
                    check_in=start,
                    check_out=start + timedelta(days=1),
                    all_day=True,
                )
            )
    return cleaning


def suppress_residual_holds(
    items: list[CalendarItem],
    cleaning: list[CalendarItem],
    policies: dict[int, CleaningPolicy],
) -> list[CalendarItem]:
    """
    Stage 5: drop holds on policy-enabled properties or fully covered by cleaning days.

    Blocks from providers that export buffers were handled in stage 2 and are kept.
    """
    cleaning_days = {(c.property_id, c.start_day) for c in cleaning}
    kept: list[CalendarItem] = []
    for item in items:
        if not item.is_hold or item.from_block_exporting_source:
            kept.append(item)
            continue
        policy = policies.get(item.property_id)
        if policy is not None and policy.active:
            continue
        days = item.days()
        if days and all((item.property_id, day) in cleaning_days for day in days):
            continue
        kept.append(item)
    return kept


def _date_window_fact(item: CalendarItem, context: DisplayContext) -> Optional[Any]:
    """
    A fact on one of the property's connections with exactly the booking's dates.

    Facts from connections with a display color are preferred; more than one
    candidate in the preferred group is ambiguous and yields None.
    """
    candidates = [
        f
        for f in context.facts_by_property.get(item.property_id, [])
        if f.guest_name
        and ensure_date(f.check_in) == item.start_day
        and ensure_date(f.check_out) == item.end_day
    ]
    colored = [f for f in candidates if context.connection_colors.get(f.connection_id)]
    preferred = colored or candidates
    return preferred[0] if len(preferred) == 1 else None


def apply_display(item: CalendarItem, context: DisplayContext) -> CalendarItem:
    """
    Fill display fields by precedence: manual resolution, code match, date-window match, feed.

    The guest-count fallback of 1 is applied here and nowhere else.
    """
    provenance = item.provenance
    name = item.guest_name
    count = item.guest_count
    connection_id: Optional[int] = None

    if isinstance(provenance, ManuallyResolved):
        source = "manual"
        name = provenance.guest_name or name
        count = provenance.guest_count if provenance.guest_count is not None else count
        connection_id = provenance.connection_id
    elif isinstance(provenance, FactMatched):
        source = (
            "confirmation_code"
            if provenance.reason is MatchReason.CONFIRMATION_CODE
            else "date_window"
        )
        connection_id = context.fact_connections.get(provenance.fact_id)
    else:
        fact = None if item.is_hold else _date_window_fact(item, context)
        if fact is not None:
            source = "date_window"
            name = fact.guest_name
            count = fact.guest_count if fact.guest_count is not None else count
            connection_id = fact.connection_id
        else:
            source = "feed"
            if not name and item.source_feed_id is not None:
                name = context.feed_names.get(item.source_feed_id)

    item.display_name = name
    item.display_guest_count = None if item.is_hold else (count or DEFAULT_GUEST_COUNT)
    item.display_source = source
    item.connection_id = connection_id
    item.connection_color = (
        context.connection_colors.get(connection_id) if connection_id is not None else None
    )
    return item


def mask_item(item: CalendarItem, permissions: Optional[ViewPermissions]) -> CalendarItem:
    """Stage 6: null the guest fields a caller is not entitled to see."""
    if item.type != "booking":
        return item
    permissions = permissions or ViewPermissions()
    masked = replace(item)
    if not permissions.can_view_guest_name:
        masked.guest_name = None
        masked.guest_first_name = None
        masked.guest_last_initial = None
        masked.manual_guest_name = None
        masked.reservation_code = None
        masked.summary = None
        masked.display_name = None
    if not permissions.can_view_guest_count:
        masked.guest_count = None
        masked.manual_guest_count = None
        masked.display_guest_count = None
    if not permissions.can_view_booking_notes:
        masked.manual_notes = None
    return masked


def reconcile(
    bookings: Iterable[Any],
    policies: dict[int, CleaningPolicy],
    permissions: dict[int, ViewPermissions],
    context: Optional[DisplayContext] = None,
) -> CalendarView:
    """
    Run the reconciliation stages over bookings already filtered to the caller's access.

    Args:
        bookings: Booking rows (or objects with booking attributes)
        policies: Property id -> cleaning policy
        permissions: Workspace id -> caller's view permissions
        context: Request-scoped display lookup tables

    Returns:
        CalendarView: Booking items followed by cleaning items, plus the policies used
    """
    context = context or DisplayContext()
    items = [item_from_booking(b) for b in bookings]
    items = suppress_generic_blocks(items)
    items = suppress_policy_buffers(items, policies)
    items = classify_holds(items)
    cleaning = synthesize_cleaning(items, policies)
    items = suppress_residual_holds(items, cleaning, policies)

    items.sort(key=lambda i: (i.property_id, i.check_in, i.booking_id or 0))
    displayed = [apply_display(item, context) for item in items]
    masked = [mask_item(item, permissions.get(item.workspace_id)) for item in displayed]
    return CalendarView(items=masked + cleaning, property_policies=policies)


def load_calendar(engine: Engine, user_id: str, start: datetime, end: datetime) -> CalendarView:
    """
    Load and reconcile the calendar a user may see for [start, end).

    Args:
        engine (Engine): SQLAlchemy engine.
        user_id (str): Caller identity from the authentication layer.
        start (datetime): Range start (inclusive).
        end (datetime): Range end (exclusive).

    Returns:
        CalendarView: Empty when the user has no calendar-enabled membership.
    """
    with engine.connect() as conn:
        memberships = get_calendar_memberships(conn, user_id)
        if not memberships:
            logger.info("calendar_no_memberships", user_id=user_id)
            return CalendarView(items=[], property_policies={})

        workspace_ids = [m.workspace_id for m in memberships]
        permissions = {
            m.workspace_id: ViewPermissions(
                can_view_guest_name=m.can_view_guest_name,
                can_view_guest_count=m.can_view_guest_count,
                can_view_booking_notes=m.can_view_booking_notes,
            )
            for m in memberships
        }
        restrictions = get_property_restrictions(conn, user_id)
        properties = [
            p
            for p in get_properties(conn, workspace_ids)
            if p.workspace_id not in restrictions or p.id in restrictions[p.workspace_id]
        ]
        property_ids = [p.id for p in properties]
        policies = {
            p.id: CleaningPolicy(p.cleaning_pre_days or 0, p.cleaning_post_days or 0)
            for p in properties
        }

        bookings = list_overlapping(conn, property_ids, start, end)

        connections_by_property = get_connections_by_property(conn, property_ids)
        connection_ids = sorted({c for ids in connections_by_property.values() for c in ids})
        window_facts = get_facts_in_range(
            conn, connection_ids, to_day(start) - timedelta(days=FACT_LOOKBACK_DAYS), to_day(end)
        )
        linked_facts = get_facts_by_ids(
            conn, [b.enriched_fact_id for b in bookings if b.enriched_fact_id is not None]
        )
        context = DisplayContext(
            connection_colors=get_connection_colors(conn, workspace_ids),
            feed_names=get_feed_names(conn, property_ids),
            fact_connections={fid: f.connection_id for fid, f in linked_facts.items()},
            facts_by_property={
                pid: [f for f in window_facts if f.connection_id in set(ids)]
                for pid, ids in connections_by_property.items()
            },
        )

    view = reconcile(bookings, policies, permissions, context)
    logger.info(
        "calendar_reconciled",
        user_id=user_id,
        bookings=len(bookings),
        items=len(view.items),
    )
    return view
