"""
Calendar feed sync engine.

One cycle per feed: fetch -> parse -> (per event: resolve identity -> enrich ->
upsert) -> deactivate missing UIDs -> finalize diagnostics. Events are handled
sequentially inside one transaction so each day-window lookup sees the writes
of earlier events in the same document.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Optional

import requests
import structlog
from sqlalchemy.engine import Connection, Engine

from sync_stays.config import FACT_LOOKBACK_DAYS, FEED_SYNC_CONCURRENCY
from sync_stays.db.readers.bookings import (
    find_active_by_uid,
    find_active_in_day_window,
    find_inactive_by_uid,
    list_active_for_feed,
)
from sync_stays.db.readers.facts import get_facts_for_property
from sync_stays.db.readers.feeds import count_active_bookings, get_active_feed_ids, get_feed
from sync_stays.db.writers._upsert import changed_columns
from sync_stays.db.writers.bookings import deactivate_bookings, insert_booking, update_booking
from sync_stays.db.writers.facts import insert_enrichment_log, sync_fact_dates
from sync_stays.db.writers.feeds import insert_feed_sync_log, update_feed_diagnostics
from sync_stays.enrichment.matcher import EventMatch, match_event_to_facts
from sync_stays.enrichment.provenance import (
    FactMatched,
    MatchReason,
    Provenance,
    Unenriched,
    provenance_columns,
)
from sync_stays.metrics import (
    active_feeds,
    enrichment_ambiguous,
    enrichment_matches,
    feed_sync_duration,
    feed_syncs_total,
)
from sync_stays.network.client import FeedFetchError, FetchResult, fetch_feed
from sync_stays.normalizers.ical import FeedEvent, InvalidCalendarError, parse_calendar
from sync_stays.parsers.names import (
    event_label,
    is_hold_label,
    is_masked_guest_name,
    split_guest_name,
)
from sync_stays.utils.datetime import utc_today

logger = structlog.get_logger(__name__)

FEED_ERRORS = (FeedFetchError, InvalidCalendarError, requests.RequestException)


@dataclass
class FeedSyncResult:
    """Outcome counters of one feed sync cycle."""

    feed_id: int
    success: bool = False
    events_seen: int = 0
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    deactivated: int = 0
    enriched: int = 0
    ambiguous: int = 0
    error: Optional[str] = None
    workspace_id: Optional[int] = None

    @property
    def changed(self) -> int:
        return self.inserted + self.updated + self.deactivated


@dataclass
class GuestLabel:
    """Guest identity computed for one event, with where it came from."""

    guest_name: Optional[str]
    guest_count: Optional[int] = None
    reservation_code: Optional[str] = None
    provenance: Provenance = field(default_factory=Unenriched)

    @property
    def enriched(self) -> bool:
        return isinstance(self.provenance, FactMatched)

    def columns(self) -> dict[str, Any]:
        first, last_initial = (
            split_guest_name(self.guest_name)
            if not (is_masked_guest_name(self.guest_name) or is_hold_label(self.guest_name))
            else (None, None)
        )
        return {
            "guest_name": self.guest_name,
            "guest_first_name": first,
            "guest_last_initial": last_initial,
            "guest_count": self.guest_count,
            "reservation_code": self.reservation_code,
            **provenance_columns(self.provenance),
        }


def label_from_match(event: FeedEvent, match: EventMatch) -> GuestLabel:
    """
    Guest label for an event given its fact match.

    A single matching fact with a name supplies name, count and code; anything
    else leaves the feed's own summary, with reserved-style summaries mapped to
    "Reserved".
    """
    fact = match.fact
    if fact is not None and fact.guest_name and match.reason is not None:
        return GuestLabel(
            guest_name=fact.guest_name,
            guest_count=fact.guest_count,
            reservation_code=fact.confirmation_code,
            provenance=FactMatched(fact_id=fact.id, reason=match.reason),
        )
    return GuestLabel(guest_name=event_label(event.summary))


def label_from_booking(booking: Any) -> GuestLabel:
    """Guest label currently stored on a booking (manual overlay excluded)."""
    provenance: Provenance = Unenriched()
    if booking.enriched_fact_id is not None:
        provenance = FactMatched(
            fact_id=booking.enriched_fact_id,
            reason=MatchReason(booking.match_reason or MatchReason.UNIQUE_DATE.value),
        )
    return GuestLabel(
        guest_name=booking.guest_name,
        guest_count=booking.guest_count,
        reservation_code=booking.reservation_code,
        provenance=provenance,
    )


def guard_name_regression(label: GuestLabel, existing: Optional[Any]) -> GuestLabel:
    """
    Keep a stored real guest name when this sync would replace it with a generic label.

    An unenriched label never replaces a name that came from a fact. It replaces
    another feed-provided name only when it is itself a real name.

    Args:
        label: Label computed from this cycle's event
        existing: Stored booking for the same event, if any

    Returns:
        GuestLabel: `label`, or the stored identity when the new label would regress it
    """
    if existing is None or label.enriched:
        return label
    if is_masked_guest_name(existing.guest_name):
        return label
    if (
        existing.enriched_fact_id is not None
        or is_masked_guest_name(label.guest_name)
        or is_hold_label(label.guest_name)
    ):
        logger.info(
            "name_regression_prevented",
            booking_id=existing.id,
            kept=existing.guest_name,
            rejected=label.guest_name,
        )
        return label_from_booking(existing)
    return label


def booking_values(feed: Any, event: FeedEvent, label: GuestLabel) -> dict[str, Any]:
    """Column values for the booking representing `event`."""
    return {
        "workspace_id": feed.workspace_id,
        "property_id": feed.property_id,
        "source_feed_id": feed.id,
        "source_type": feed.source_type,
        "external_uid": event.canonical_uid,
        "check_in": event.start,
        "check_out": event.end,
        "status": "confirmed",
        "platform": feed.name,
        "summary": event.summary,
        "is_active": True,
        "raw_payload": event.raw_payload(),
        **label.columns(),
    }


def find_existing_booking(
    conn: Connection, feed: Any, event: FeedEvent, claimed_uids: set[str]
) -> Optional[Any]:
    """
    Locate the stored booking an event updates.

    Same canonical UID first; otherwise an active booking of the same feed on
    the same check-in/check-out days (UIDs can change between exports). Rows
    already claimed by an earlier event in this cycle are skipped. Several
    day-window rows resolve to the most recently synced one.
    """
    by_uid = find_active_by_uid(conn, feed.property_id, feed.id, event.canonical_uid)
    if by_uid is not None:
        return by_uid

    window = [
        b
        for b in find_active_in_day_window(
            conn, feed.property_id, feed.id, event.start_day, event.end_day
        )
        if b.external_uid not in claimed_uids
    ]
    if len(window) > 1:
        logger.warning(
            "multiple_bookings_in_day_window",
            feed_id=feed.id,
            property_id=feed.property_id,
            booking_ids=[b.id for b in window],
            chosen=window[0].id,
        )
    return window[0] if window else None


def _log_ambiguity(conn: Connection, feed: Any, event: FeedEvent, match: EventMatch) -> None:
    enrichment_ambiguous.inc()
    logger.warning(
        "event_enrichment_ambiguous",
        feed_id=feed.id,
        uid=event.canonical_uid,
        fact_ids=match.candidate_fact_ids,
    )
    insert_enrichment_log(
        conn,
        status="ambiguous",
        reason="Several reservation facts match this feed event",
        workspace_id=feed.workspace_id,
        details={
            "feed_id": feed.id,
            "property_id": feed.property_id,
            "external_uid": event.canonical_uid,
            "check_in": event.start_day.isoformat(),
            "check_out": event.end_day.isoformat(),
            "fact_ids": match.candidate_fact_ids,
        },
    )


def upsert_event(
    conn: Connection,
    feed: Any,
    event: FeedEvent,
    facts: list[Any],
    claimed_uids: set[str],
    result: FeedSyncResult,
    dry_run: bool = False,
) -> None:
    """Resolve, enrich and upsert the booking for one feed event."""
    match = match_event_to_facts(
        event.start_day, event.end_day, f"{event.summary}\n{event.description}", facts
    )
    existing = find_existing_booking(conn, feed, event, claimed_uids)
    label = guard_name_regression(label_from_match(event, match), existing)
    values = booking_values(feed, event, label)

    if existing is None:
        revived = find_inactive_by_uid(conn, feed.property_id, feed.id, event.canonical_uid)
        if revived is not None:
            existing = revived
            label = guard_name_regression(label, revived)
            values = booking_values(feed, event, label)

    if existing is None:
        outcome = "inserted"
        if not dry_run:
            insert_booking(conn, values)
    else:
        changes = changed_columns(existing, values)
        outcome = "updated" if changes else "unchanged"
        if changes and not dry_run:
            update_booking(conn, existing.id, changes)

    setattr(result, outcome, getattr(result, outcome) + 1)

    if label.enriched and match.fact is not None:
        result.enriched += 1
        if outcome != "unchanged":
            enrichment_matches.labels(reason=match.reason.value if match.reason else "unknown").inc()
        if not dry_run:
            sync_fact_dates(conn, match.fact, event.start_day, event.end_day)
    if match.ambiguous:
        result.ambiguous += 1
        if outcome != "unchanged" and not dry_run:
            _log_ambiguity(conn, feed, event, match)


def unique_events(feed: Any, events: list[FeedEvent]) -> list[FeedEvent]:
    """
    Drop events that repeat an earlier event's canonical UID.

    Each canonical UID maps to one booking; the first occurrence in document
    order wins so repeated syncs of the same document converge.
    """
    seen: set[str] = set()
    unique: list[FeedEvent] = []
    for event in events:
        if event.canonical_uid in seen:
            logger.warning(
                "duplicate_event_uid_skipped",
                feed_id=feed.id,
                uid=event.canonical_uid,
                check_in=event.start_day.isoformat(),
                check_out=event.end_day.isoformat(),
            )
            continue
        seen.add(event.canonical_uid)
        unique.append(event)
    return unique


def apply_events(
    conn: Connection,
    feed: Any,
    events: list[FeedEvent],
    facts: list[Any],
    result: FeedSyncResult,
    dry_run: bool = False,
) -> None:
    """Upsert every event in order, then deactivate bookings whose UID vanished."""
    claimed_uids: set[str] = set()
    for event in unique_events(feed, events):
        upsert_event(conn, feed, event, facts, claimed_uids, result, dry_run=dry_run)
        claimed_uids.add(event.canonical_uid)

    missing = [b.id for b in list_active_for_feed(conn, feed.id) if b.external_uid not in claimed_uids]
    if missing:
        logger.info("bookings_no_longer_in_feed", feed_id=feed.id, booking_ids=missing)
        if not dry_run:
            deactivate_bookings(conn, missing)
        result.deactivated = len(missing)


def _finalize(
    engine: Engine,
    feed: Any,
    fetch: Optional[FetchResult],
    result: FeedSyncResult,
    duration_ms: int,
) -> None:
    with engine.begin() as conn:
        update_feed_diagnostics(
            conn,
            feed.id,
            last_sync_status="success" if result.success else "error",
            last_error=result.error,
            last_http_status=fetch.status_code if fetch else None,
            last_content_type=fetch.content_type if fetch else None,
            last_final_url=fetch.final_url if fetch else None,
            last_response_snippet=fetch.snippet if fetch else None,
            last_event_count=result.events_seen,
            last_booking_count=count_active_bookings(conn, feed.id),
        )
        if result.success and result.changed:
            insert_feed_sync_log(
                conn,
                feed_id=feed.id,
                property_id=feed.property_id,
                status="success",
                events_seen=result.events_seen,
                inserted=result.inserted,
                updated=result.updated,
                deactivated=result.deactivated,
                duration_ms=duration_ms,
            )


def sync_feed(engine: Engine, feed_id: int, dry_run: bool = False) -> FeedSyncResult:
    """
    Run one sync cycle for a calendar feed.

    Feed errors (timeout, non-2xx, not a calendar) end the cycle: they are
    recorded in the feed diagnostics and returned as a failed result. Any other
    error is recorded the same way and re-raised.

    Args:
        engine (Engine): SQLAlchemy engine.
        feed_id (int): Calendar feed id.
        dry_run (bool): If True, compute the outcome but skip all writes.

    Returns:
        FeedSyncResult: Counters for the cycle.

    Raises:
        ValueError: If the feed does not exist.
    """
    with engine.connect() as conn:
        feed = get_feed(conn, feed_id)
    if feed is None:
        raise ValueError(f"Calendar feed {feed_id} not found")

    log = logger.bind(feed_id=feed_id, property_id=feed.property_id)
    log.info("feed_sync_started", source_type=feed.source_type, dry_run=dry_run)

    result = FeedSyncResult(feed_id=feed_id, workspace_id=feed.workspace_id)
    fetch: Optional[FetchResult] = None
    unexpected: Optional[Exception] = None
    started = time.time()

    with feed_sync_duration.labels(source_type=feed.source_type).time():
        try:
            fetch = fetch_feed(feed.url)
            events = parse_calendar(fetch.text, feed.source_type)
            result.events_seen = len(events)
            with engine.begin() as conn:
                since = utc_today() - timedelta(days=FACT_LOOKBACK_DAYS)
                facts = get_facts_for_property(conn, feed.property_id, since)
                apply_events(conn, feed, events, facts, result, dry_run=dry_run)
            result.success = True
        except FEED_ERRORS as e:
            if isinstance(e, FeedFetchError):
                fetch = e.result
            result.error = str(e)
            log.warning("feed_sync_failed", error=str(e), error_type=type(e).__name__)
        except Exception as e:
            result.error = str(e)
            unexpected = e
            log.exception("feed_sync_crashed", error=str(e))

    feed_syncs_total.labels(
        source_type=feed.source_type, status="success" if result.success else "failure"
    ).inc()
    duration_ms = int((time.time() - started) * 1000)

    if dry_run:
        log.info(f"[DRY RUN] Would write {result.changed} booking changes")
    else:
        _finalize(engine, feed, fetch, result, duration_ms)

    if unexpected is not None:
        raise unexpected

    log.info(
        "feed_sync_completed",
        success=result.success,
        events=result.events_seen,
        inserted=result.inserted,
        updated=result.updated,
        unchanged=result.unchanged,
        deactivated=result.deactivated,
        enriched=result.enriched,
        duration_ms=duration_ms,
    )
    return result


def sync_all_feeds(
    engine: Engine, dry_run: bool = False, workspace_id: Optional[int] = None
) -> list[FeedSyncResult]:
    """
    Sync every active feed, in parallel; one feed's failure never stops the others.

    Args:
        engine (Engine): SQLAlchemy engine.
        dry_run (bool): If True, skip writes.
        workspace_id (Optional[int]): Restrict to one workspace.

    Returns:
        list[FeedSyncResult]: One result per feed, ordered by feed id.
    """
    with engine.connect() as conn:
        feed_ids = get_active_feed_ids(conn, workspace_id)

    active_feeds.set(len(feed_ids))
    logger.info("sync_all_feeds_started", count=len(feed_ids))

    results: list[FeedSyncResult] = []
    with ThreadPoolExecutor(max_workers=FEED_SYNC_CONCURRENCY) as pool:
        futures = {
            pool.submit(sync_feed, engine, feed_id, dry_run): feed_id for feed_id in feed_ids
        }
        for future in as_completed(futures):
            feed_id = futures[future]
            try:
                results.append(future.result())
            except Exception as e:
                logger.exception("feed_sync_failed", feed_id=feed_id, error=str(e))
                results.append(FeedSyncResult(feed_id=feed_id, error=str(e)))

    results.sort(key=lambda r: r.feed_id)
    logger.info(
        "sync_all_feeds_completed",
        total_feeds=len(results),
        failed=sum(1 for r in results if not r.success),
        changed=sum(r.changed for r in results),
    )
    return results
