"""
Shared fact-to-booking matching policy.

Used by feed sync (one incoming event against the stored facts) and by the
batch enrichment pass (one stored fact against candidate bookings). Both follow
the same order: a unique confirmation-code hit wins outright, then dates, and
a date collision across properties is never guessed.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional, Sequence

from sync_stays.enrichment.provenance import MatchReason
from sync_stays.parsers.names import is_masked_guest_name
from sync_stays.utils.datetime import ensure_date

MIN_CODE_LENGTH = 6


def usable_code(code: Optional[str]) -> Optional[str]:
    """Return the code when it is long enough to match on, else None."""
    if code and len(code.strip()) >= MIN_CODE_LENGTH:
        return code.strip()
    return None


def booking_contains_code(booking: Any, code: str) -> bool:
    """True if the booking's stored code equals `code` or its raw payload mentions it."""
    if getattr(booking, "reservation_code", None) == code:
        return True
    raw = getattr(booking, "raw_payload", None)
    if not raw:
        return False
    return code in json.dumps(raw, default=str)


@dataclass
class MatchOutcome:
    """Result of matching one fact against candidate bookings."""

    booking: Optional[Any] = None
    reason: Optional[MatchReason] = None
    ambiguous_property_ids: list[int] = field(default_factory=list)
    duplicate_booking_ids: list[int] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.booking is not None

    @property
    def ambiguous(self) -> bool:
        return bool(self.ambiguous_property_ids)


def match_fact_to_bookings(fact: Any, candidates: Sequence[Any]) -> MatchOutcome:
    """
    Pick the booking a fact describes, or none.

    1. A confirmation code (>= 6 chars) found in exactly one candidate wins.
    2. Otherwise candidates whose check-in date equals the fact's check-in:
       none -> no match; one -> match; several on more than one property ->
       ambiguous, no match; several on one property -> the lowest booking id,
       with the others reported as duplicates.

    Args:
        fact: Object with confirmation_code and check_in (date)
        candidates: Bookings already restricted to the connection's properties

    Returns:
        MatchOutcome
    """
    code = usable_code(getattr(fact, "confirmation_code", None))
    if code:
        code_hits = [b for b in candidates if booking_contains_code(b, code)]
        if len(code_hits) == 1:
            return MatchOutcome(booking=code_hits[0], reason=MatchReason.CONFIRMATION_CODE)

    check_in = ensure_date(getattr(fact, "check_in", None))
    if check_in is None:
        return MatchOutcome()

    date_hits = sorted(
        (b for b in candidates if ensure_date(b.check_in) == check_in),
        key=lambda b: b.id,
    )
    if not date_hits:
        return MatchOutcome()
    if len(date_hits) == 1:
        return MatchOutcome(booking=date_hits[0], reason=MatchReason.UNIQUE_DATE)

    property_ids = sorted({b.property_id for b in date_hits})
    if len(property_ids) > 1:
        return MatchOutcome(ambiguous_property_ids=property_ids)
    return MatchOutcome(
        booking=date_hits[0],
        reason=MatchReason.SAME_PROPERTY_DATE,
        duplicate_booking_ids=[b.id for b in date_hits[1:]],
    )


@dataclass
class EventMatch:
    """Result of matching one feed event against stored facts."""

    fact: Optional[Any] = None
    reason: Optional[MatchReason] = None
    candidate_fact_ids: list[int] = field(default_factory=list)

    @property
    def ambiguous(self) -> bool:
        return self.fact is None and len(self.candidate_fact_ids) > 1


def match_event_to_facts(
    start_day: date, end_day: date, event_text: str, facts: Sequence[Any]
) -> EventMatch:
    """
    Find the single fact describing a feed event.

    A fact matches when its code appears in the event text or its
    (check-in, check-out) equals the event's dates. A unique code hit is
    preferred over date-only hits; otherwise exactly one matching fact is
    required.

    Args:
        start_day: Event start date (UTC)
        end_day: Event end date (UTC)
        event_text: Event summary and description
        facts: Candidate facts for the feed's property

    Returns:
        EventMatch
    """
    code_hits = []
    date_hits = []
    for fact in facts:
        code = usable_code(getattr(fact, "confirmation_code", None))
        if code and code in event_text:
            code_hits.append(fact)
        elif (
            ensure_date(getattr(fact, "check_in", None)) == start_day
            and ensure_date(getattr(fact, "check_out", None)) == end_day
        ):
            date_hits.append(fact)

    if len(code_hits) == 1:
        return EventMatch(fact=code_hits[0], reason=MatchReason.CONFIRMATION_CODE)

    hits = code_hits + date_hits
    if len(hits) == 1:
        return EventMatch(fact=hits[0], reason=MatchReason.EXACT_DATES)
    return EventMatch(candidate_fact_ids=[f.id for f in hits])


def should_update_guest_name(current_name: Optional[str], fact_name: Optional[str]) -> bool:
    """
    Name-update gate: only replace an empty or placeholder name, and only with a real one.

    Example:
        >>> should_update_guest_name("Reserved", "Nora Weber")
        True
        >>> should_update_guest_name("Nora Weber", "Someone Else")
        False
    """
    if not fact_name or is_masked_guest_name(fact_name):
        return False
    return is_masked_guest_name(current_name)
