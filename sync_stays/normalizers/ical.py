"""
Calendar document parsing and event normalization.

Turns an iCal document into FeedEvent records with canonical UIDs and UTC
timestamps. Only VEVENT start/end/summary/description/UID are consumed.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

import structlog
from icalendar import Calendar

from sync_stays.config import DEBUG
from sync_stays.utils.datetime import noon_utc, to_day

logger = structlog.get_logger(__name__)


class InvalidCalendarError(ValueError):
    """Raised when a feed body is not a calendar document."""


# Providers that prefix UIDs with a per-export value; stripping it keeps the
# same stay recognizable across re-exports.
UID_PREFIX_PATTERNS: dict[str, re.Pattern[str]] = {
    "lodgify": re.compile(r"^\d{8}(?:T\d{4,6}Z?)?[-_]"),
}


@dataclass(frozen=True)
class FeedEvent:
    """A normalized VEVENT. start/end are aware UTC datetimes."""

    uid: str
    canonical_uid: str
    start: datetime
    end: datetime
    summary: str
    description: str
    all_day: bool

    @property
    def start_day(self) -> date:
        return to_day(self.start)

    @property
    def end_day(self) -> date:
        return to_day(self.end)

    def raw_payload(self) -> dict[str, Any]:
        """
        Event as stored on the booking for diagnostics.

        Volatile properties such as DTSTAMP are left out so an unchanged feed
        produces an identical payload on every sync.
        """
        return {
            "uid": self.uid,
            "summary": self.summary,
            "description": self.description,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "all_day": self.all_day,
        }


def canonical_uid(uid: str, source_type: Optional[str]) -> str:
    """
    Strip the provider-specific UID prefix for a source type.

    Example:
        >>> canonical_uid("20260301T120000-B16389402@lodgify.com", "lodgify")
        'B16389402@lodgify.com'
    """
    cleaned = uid.strip()
    pattern = UID_PREFIX_PATTERNS.get((source_type or "").lower())
    if pattern is not None:
        cleaned = pattern.sub("", cleaned)
    return cleaned


def _to_utc(value: date | datetime) -> tuple[datetime, bool]:
    """Return (aware UTC datetime, all_day). Date-only values are pinned to noon UTC."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc), False
        return value.astimezone(timezone.utc), False
    return noon_utc(value), True


def _text(component: Any, key: str) -> str:
    value = component.get(key)
    return str(value).strip() if value is not None else ""


def _fallback_uid(start: datetime, end: datetime, summary: str) -> str:
    digest = hashlib.sha1(f"{start.isoformat()}|{end.isoformat()}|{summary}".encode()).hexdigest()
    return f"generated-{digest[:16]}"


def parse_calendar(text: str, source_type: Optional[str] = None) -> list[FeedEvent]:
    """
    Parse a calendar document into normalized events.

    Args:
        text: Raw response body
        source_type: Feed source type, selects the UID prefix rule

    Returns:
        list[FeedEvent]: Events in document order

    Raises:
        InvalidCalendarError: If the body has no calendar structure or cannot be parsed
    """
    if "BEGIN:VCALENDAR" not in (text or ""):
        raise InvalidCalendarError("Response body is not a calendar (no BEGIN:VCALENDAR)")

    try:
        calendar = Calendar.from_ical(text)
    except ValueError as e:
        raise InvalidCalendarError(f"Calendar could not be parsed: {e}") from e

    events: list[FeedEvent] = []
    for component in calendar.walk("VEVENT"):
        dtstart = component.get("DTSTART")
        if dtstart is None:
            logger.warning("event_skipped_no_start", uid=_text(component, "UID"))
            continue
        start, all_day = _to_utc(dtstart.dt)

        dtend = component.get("DTEND")
        duration = component.get("DURATION")
        if dtend is not None:
            end, _ = _to_utc(dtend.dt)
        elif duration is not None:
            end = start + duration.dt
        elif all_day:
            end = start + timedelta(days=1)
        else:
            logger.warning("event_skipped_no_end", uid=_text(component, "UID"))
            continue

        summary = _text(component, "SUMMARY") or "Blocked"
        uid = _text(component, "UID") or _fallback_uid(start, end, summary)
        events.append(
            FeedEvent(
                uid=uid,
                canonical_uid=canonical_uid(uid, source_type),
                start=start,
                end=end,
                summary=summary,
                description=_text(component, "DESCRIPTION"),
                all_day=all_day,
            )
        )

    if DEBUG and events:
        logger.debug("Sample feed event:\n%s", json.dumps(events[0].raw_payload(), indent=2))

    return events
