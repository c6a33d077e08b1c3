"""
Reservation fact extraction from confirmation message text.

Each field is extracted by an ordered list of independent strategies; the first
strategy that yields a usable value wins and later strategies never overwrite it.
Extraction is pure: no I/O, and "today" is injectable for the year default.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Optional

from dateutil import parser as date_parser

from sync_stays.parsers.names import FORBIDDEN_GUEST_NAMES
from sync_stays.utils.datetime import utc_today

EXTRACTOR_VERSION = "v2"

HIGH_CONFIDENCE = 0.9
LOW_CONFIDENCE = 0.5

_MONTHS = {
    "jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"
}

WEEKDAY = r"(?:(?:Mon|Tue|Wed|Thu|Fri|Sat|Sun)[a-z]*\.?,?\s+)?"
DATE_TOKEN = (
    r"(\d{4}-\d{2}-\d{2}"
    r"|[A-Za-z]{3,9}\.?\s+\d{1,2}(?:st|nd|rd|th)?(?:,?\s+\d{4})?"
    r"|\d{1,2}[ \t]+[A-Za-z]{3,9}\.?(?:,?\s+\d{4})?)"
)
_DATE_TOKEN_RE = re.compile(DATE_TOKEN)
_ORDINAL = re.compile(r"(\d)(st|nd|rd|th)\b", re.IGNORECASE)

CONFIRMATION_SUBJECT = re.compile(
    r"Reservation confirmed|Booking confirmed|Confirmed Booking|Instant Booking"
    r"|new reservation|Reservation from",
    re.IGNORECASE,
)


@dataclass
class ExtractedFact:
    """A candidate reservation fact; every field except confidence may be missing."""

    check_in: Optional[date]
    check_out: Optional[date]
    guest_name: Optional[str]
    guest_count: Optional[int]
    confirmation_code: Optional[str]
    confidence: float
    raw: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "check_in": self.check_in.isoformat() if self.check_in else None,
            "check_out": self.check_out.isoformat() if self.check_out else None,
            "guest_name": self.guest_name,
            "guest_count": self.guest_count,
            "confirmation_code": self.confirmation_code,
            "confidence": self.confidence,
        }


# =============================================================================
# Guest name
# =============================================================================

_TRAILING_PHRASES = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\s+arrives\b.*$",
        r"\s+check-?\s?in\b.*$",
        r"\s+checking\b.*$",
        r"\s+for\s+\d+.*$",
        r"\s+\d+\s*nights?\b.*$",
        r"\s*[-–—]\s*$",
    )
)
_LEADING_PHRASES = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^(?:new\s+)?(?:confirmed\s+)?booking\s*[-:]\s*",
        r"^reservation\s*[-:]\s*",
    )
)
_FOUR_DIGITS = re.compile(r"\d{4}")


def clean_guest_name(raw: Optional[str]) -> Optional[str]:
    """
    Clean a raw guest-name capture, or return None if nothing usable remains.

    Example:
        >>> clean_guest_name("Liz Servin arrives Jan 25")
        'Liz Servin'
        >>> clean_guest_name("Reserved") is None
        True
    """
    if not raw:
        return None
    name = " ".join(raw.split())
    for pattern in _TRAILING_PHRASES:
        name = pattern.sub("", name)
    for pattern in _LEADING_PHRASES:
        name = pattern.sub("", name)
    name = name.strip(" -–—:,;")

    if name.lower() in FORBIDDEN_GUEST_NAMES:
        return None
    if len(name) < 2:
        return None
    if name[0].isdigit() or _FOUR_DIGITS.search(name):
        return None
    return name


@dataclass(frozen=True)
class PatternStrategy:
    """Regex strategy: first capture group of `pattern` searched in subject or body."""

    name: str
    pattern: re.Pattern[str]
    source: str  # "subject" or "body"

    def __call__(self, subject: str, body: str) -> Optional[str]:
        match = self.pattern.search(subject if self.source == "subject" else body)
        return match.group(1) if match else None


_NAME_CHARS = r"([A-Za-zÀ-ÿ][A-Za-zÀ-ÿ'. -]{0,60})"

# A subject name ends at a spaced dash, a bracket, a comma, "#", "arrives" or a date.
_SUBJECT_NAME_END = (
    r"(?=\s+[-–—]\s|\s*[(,#]|\s+arrives\b|\s+[A-Za-z]{3,9}\.?\s+\d|\s+\d|\s*$)"
)

NAME_STRATEGIES: tuple[PatternStrategy, ...] = (
    PatternStrategy(
        "subject_booking_label",
        re.compile(r"(?:Booking|received):\s+([^(,#\n]+?)" + _SUBJECT_NAME_END, re.IGNORECASE),
        "subject",
    ),
    PatternStrategy(
        "subject_confirmed_dash",
        re.compile(
            r"(?:Reservation|Booking)\s+(?:confirmed|from)\s*[-–—:]\s*"
            r"([A-Za-zÀ-ÿ][^\n(,#]*?)" + _SUBJECT_NAME_END,
            re.IGNORECASE,
        ),
        "subject",
    ),
    PatternStrategy(
        "body_guest_label",
        re.compile(r"Guest(?:\s+name)?:[ \t]*" + _NAME_CHARS, re.IGNORECASE),
        "body",
    ),
    PatternStrategy(
        "body_booked_by", re.compile(r"Booked by:[ \t]*" + _NAME_CHARS, re.IGNORECASE), "body"
    ),
    PatternStrategy(
        "body_name_label",
        re.compile(r"(?:^|\n)Name:[ \t]*" + _NAME_CHARS, re.IGNORECASE),
        "body",
    ),
)


def extract_guest_name(subject: str, body: str) -> tuple[Optional[str], Optional[str]]:
    """Return (clean guest name, strategy name); (None, None) when nothing clean is found."""
    for strategy in NAME_STRATEGIES:
        name = clean_guest_name(strategy(subject, body))
        if name:
            return name, strategy.name
    return None, None


# =============================================================================
# Dates
# =============================================================================


def parse_date_token(token: Optional[str], today: date) -> Optional[date]:
    """
    Parse a date token such as "Mar 12", "Sunday, March 12, 2026" or "2026-03-12".

    A missing year defaults to today's year. Tokens whose word is not a month
    ("Sun 25", "12 Nights") are rejected.
    """
    if not token:
        return None
    token = _ORDINAL.sub(r"\1", token.strip())
    words = re.findall(r"[A-Za-z]+", token)
    if words and words[0][:3].lower() not in _MONTHS:
        return None
    try:
        parsed = date_parser.parse(token, default=datetime(today.year, 1, 1))
    except (ValueError, OverflowError):
        return None
    return parsed.date()


DateHit = tuple[Optional[date], Optional[date]]
DateStrategy = Callable[[str, str, date], DateHit]

_ARRIVAL = re.compile(r"Arrival:?\s+" + WEEKDAY + DATE_TOKEN, re.IGNORECASE)
_DEPARTURE = re.compile(r"Departure:?\s+" + WEEKDAY + DATE_TOKEN, re.IGNORECASE)
_NIGHTS = re.compile(r"(\d+)\s+Nights?\b", re.IGNORECASE)
_PAIRED = re.compile(
    r"Check-?\s?in:?\s+" + WEEKDAY + DATE_TOKEN
    + r".{0,120}?Check-?\s?out:?\s+" + WEEKDAY + DATE_TOKEN,
    re.IGNORECASE | re.DOTALL,
)
_ARRIVES = re.compile(r"arrives\s+" + WEEKDAY + DATE_TOKEN, re.IGNORECASE)
_COLUMNS = re.compile(
    r"Check-?\s?in\s+Check-?\s?out\s+" + WEEKDAY + DATE_TOKEN + r"\s+" + WEEKDAY + DATE_TOKEN,
    re.IGNORECASE,
)
_CHECK_IN_ANCHORS = re.compile(r"check-?\s?in|arrival", re.IGNORECASE)
_CHECK_OUT_ANCHORS = re.compile(r"check-?\s?out|departure", re.IGNORECASE)
ANCHOR_WINDOW = 200


def _group(match: Optional[re.Match[str]], today: date, index: int = 1) -> Optional[date]:
    return parse_date_token(match.group(index), today) if match else None


def arrival_departure_labels(subject: str, body: str, today: date) -> DateHit:
    text = f"{subject}\n{body}"
    check_in = _group(_ARRIVAL.search(text), today)
    check_out = _group(_DEPARTURE.search(text), today)
    if check_in and not check_out:
        nights = _NIGHTS.search(text)
        check_out = check_in + timedelta(days=int(nights.group(1)) if nights else 1)
    return check_in, check_out


def paired_check_in_out(subject: str, body: str, today: date) -> DateHit:
    match = _PAIRED.search(body)
    if not match:
        return None, None
    return _group(match, today, 1), _group(match, today, 2)


def column_headers(subject: str, body: str, today: date) -> DateHit:
    # "Check-in  Checkout" header row followed by the two dates on the next line
    match = _COLUMNS.search(body)
    if not match:
        return None, None
    return _group(match, today, 1), _group(match, today, 2)


def subject_arrives(subject: str, body: str, today: date) -> DateHit:
    return _group(_ARRIVES.search(subject), today), None


def _scan_after_anchor(anchors: re.Pattern[str], text: str, today: date) -> Optional[date]:
    for anchor in anchors.finditer(text):
        chunk = text[anchor.end() : anchor.end() + ANCHOR_WINDOW]
        for token in _DATE_TOKEN_RE.finditer(chunk):
            parsed = parse_date_token(token.group(1), today)
            if parsed:
                return parsed
    return None


def anchor_scan(subject: str, body: str, today: date) -> DateHit:
    return (
        _scan_after_anchor(_CHECK_IN_ANCHORS, body, today),
        _scan_after_anchor(_CHECK_OUT_ANCHORS, body, today),
    )


DATE_STRATEGIES: tuple[DateStrategy, ...] = (
    arrival_departure_labels,
    paired_check_in_out,
    column_headers,
    subject_arrives,
    anchor_scan,
)


def extract_dates(subject: str, body: str, today: date) -> tuple[DateHit, list[str]]:
    """Run date strategies in priority order; a date once set is never overwritten."""
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    used: list[str] = []
    for strategy in DATE_STRATEGIES:
        found_in, found_out = strategy(subject, body, today)
        if check_in is None and found_in is not None:
            check_in = found_in
            used.append(f"check_in:{strategy.__name__}")
        if check_out is None and found_out is not None:
            check_out = found_out
            used.append(f"check_out:{strategy.__name__}")
        if check_in and check_out:
            break

    # "Dec 30" -> "Jan 2" without years crosses into the next year
    if check_in and check_out and check_out < check_in and check_out.month < check_in.month:
        check_out = check_out.replace(year=check_out.year + 1)
    return (check_in, check_out), used


# =============================================================================
# Guest count & confirmation code
# =============================================================================

GUEST_COUNT_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"(?:Total\s+)?Guests?:\s*(\d+)",
        r"(\d+)\s+Guests?(?:\s|$|,|\.)",
        r"Party\s+size:\s*(\d+)",
        r"Number\s+of\s+guests?:\s*(\d+)",
        r"Adults?:\s*(\d+)",
        r"Travell?ers?:\s*(\d+)",
        r"(\d+)\s+adults?\b",
        r"Occupancy:\s*(\d+)",
    )
)


def extract_guest_count(subject: str, body: str) -> Optional[int]:
    """First numeric guest-count phrase, or None when the message does not state one."""
    text = f"{subject}\n{body}"
    for pattern in GUEST_COUNT_PATTERNS:
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    return None


_SUBJECT_CODE = re.compile(r"#\s?([A-Z0-9]{6,20})\b")
_BODY_CODE = re.compile(
    r"(?i:confirmation\s+code|reservation\s+id|booking\s+id|booking\s+\(?#)"
    r"[\s:#()]{0,5}([A-Z0-9]{6,20})\b"
)


def extract_confirmation_code(subject: str, body: str) -> Optional[str]:
    """Subject "#CODE" wins over a body "confirmation code ... CODE" phrase."""
    for pattern, text in ((_SUBJECT_CODE, subject), (_BODY_CODE, body)):
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


# =============================================================================
# Entry point
# =============================================================================

_HORIZONTAL_SPACE = re.compile(r"[ \t\r\f\v\xa0]+")


def prepare_text(text: Optional[str]) -> str:
    """Collapse horizontal whitespace but keep line breaks, which delimit labels."""
    lines = (_HORIZONTAL_SPACE.sub(" ", line).strip() for line in (text or "").split("\n"))
    return "\n".join(line for line in lines if line)


def extract(
    body: Optional[str],
    subject: Optional[str],
    is_preclassified_candidate: bool = False,
    today: Optional[date] = None,
) -> Optional[ExtractedFact]:
    """
    Extract a reservation fact from a message.

    Args:
        body: Plain-text body
        subject: Subject line
        is_preclassified_candidate: True when the classifier already accepted the
            message; otherwise the subject must look like a confirmation
        today: Reference date for year defaults (defaults to UTC today)

    Returns:
        ExtractedFact, or None when the message is not a confirmation or carries
        neither a check-in date nor a confirmation code
    """
    subject_text = " ".join((subject or "").split())
    body_text = prepare_text(body)
    today = today or utc_today()

    if not is_preclassified_candidate and not CONFIRMATION_SUBJECT.search(subject_text):
        return None

    guest_name, name_strategy = extract_guest_name(subject_text, body_text)
    (check_in, check_out), date_strategies = extract_dates(subject_text, body_text, today)
    code = extract_confirmation_code(subject_text, body_text)

    if check_in is None and code is None:
        return None

    return ExtractedFact(
        check_in=check_in,
        check_out=check_out,
        guest_name=guest_name,
        guest_count=extract_guest_count(subject_text, body_text),
        confirmation_code=code,
        confidence=HIGH_CONFIDENCE if check_in and guest_name else LOW_CONFIDENCE,
        raw={
            "extractor_version": EXTRACTOR_VERSION,
            "name_strategy": name_strategy,
            "date_strategies": date_strategies,
            "subject": subject_text,
            "body_excerpt": body_text[:500],
        },
    )
