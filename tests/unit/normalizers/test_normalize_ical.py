"""
Unit tests for calendar document parsing.
"""

from datetime import datetime, timezone

import pytest

from sync_stays.normalizers.ical import InvalidCalendarError, canonical_uid, parse_calendar

FEED = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Test//EN
BEGIN:VEVENT
UID:20260301T120000-B16389402@lodgify.com
DTSTAMP:20260301T120000Z
DTSTART;VALUE=DATE:20260312
DTEND;VALUE=DATE:20260315
SUMMARY:Reserved
END:VEVENT
BEGIN:VEVENT
UID:owner-block-1
DTSTART:20260320T150000Z
DTEND:20260322T100000Z
SUMMARY:Owner stay
DESCRIPTION:Family visit
END:VEVENT
END:VCALENDAR
"""


@pytest.mark.unit
def test_all_day_events_are_pinned_to_noon_utc() -> None:
    """Test that date-only DTSTART/DTEND become 12:00 UTC timestamps."""
    events = parse_calendar(FEED, "lodgify")

    first = events[0]
    assert first.all_day is True
    assert first.start == datetime(2026, 3, 12, 12, 0, tzinfo=timezone.utc)
    assert first.end == datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
    assert first.summary == "Reserved"


@pytest.mark.unit
def test_timed_events_keep_their_utc_time() -> None:
    """Test that timed events are converted, not pinned."""
    events = parse_calendar(FEED, "lodgify")

    second = events[1]
    assert second.all_day is False
    assert second.start == datetime(2026, 3, 20, 15, 0, tzinfo=timezone.utc)
    assert second.description == "Family visit"


@pytest.mark.unit
def test_lodgify_uid_prefix_is_stripped() -> None:
    """Test that the per-export timestamp prefix is removed from Lodgify UIDs."""
    events = parse_calendar(FEED, "lodgify")

    assert events[0].uid == "20260301T120000-B16389402@lodgify.com"
    assert events[0].canonical_uid == "B16389402@lodgify.com"
    assert events[1].canonical_uid == "owner-block-1"


@pytest.mark.unit
def test_canonical_uid_leaves_other_sources_untouched() -> None:
    """Test that only source types with a prefix rule are rewritten."""
    uid = "20260301T120000-abc@airbnb.com"

    assert canonical_uid(uid, "airbnb") == uid
    assert canonical_uid(f"  {uid} ", None) == uid


@pytest.mark.unit
def test_raw_payload_omits_dtstamp() -> None:
    """Test that the stored payload is stable across syncs."""
    payload = parse_calendar(FEED, "lodgify")[0].raw_payload()

    assert set(payload) == {"uid", "summary", "description", "start", "end", "all_day"}


@pytest.mark.unit
def test_html_body_is_rejected() -> None:
    """Test that a login page or error page is not treated as an empty calendar."""
    with pytest.raises(InvalidCalendarError):
        parse_calendar("<html><body>Sign in</body></html>")


@pytest.mark.unit
def test_empty_calendar_has_no_events() -> None:
    """Test that a valid calendar without events parses to an empty list."""
    text = "BEGIN:VCALENDAR\nVERSION:2.0\nPRODID:-//Test//EN\nEND:VCALENDAR\n"

    assert parse_calendar(text, "airbnb") == []
