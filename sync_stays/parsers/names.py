"""
Guest-name heuristics shared by extraction, feed sync, enrichment and reconciliation.

Feeds anonymize guests in provider-specific ways ("Reserved", "Airbnb (Not available)",
"HMABCD1234"), so deciding whether a stored name is a real person is a cross-cutting
rule. Keep every variant of that rule here.
"""

from __future__ import annotations

import re
from typing import Optional

# Exact (lower-cased) names an extractor must never return as a guest name
FORBIDDEN_GUEST_NAMES = frozenset(
    {
        "guest",
        "reserved",
        "unknown",
        "empty",
        "not available",
        "blocked",
        "n/a",
        "na",
        "airbnb",
        "vrbo",
        "lodgify",
    }
)

# Exact (lower-cased) placeholder labels seen on stored bookings
MASKED_NAME_LABELS = frozenset(
    {"guest", "reserved", "blocked", "not available", "closed period", "unknown"}
)
_PLATFORM_LABEL = re.compile(r"(airbnb|vrbo|lodgify|booking\.com|expedia|\bvia\s)", re.IGNORECASE)
_REFERENCE_CODE = re.compile(r"^[A-Z0-9_-]{6,20}$")
_HAS_DIGIT = re.compile(r"\d")

# Feed summaries that stand for "someone booked this" without identity
RESERVED_SUMMARY = re.compile(r"reserved|blocking", re.IGNORECASE)
RESERVED_LABEL = "Reserved"

HOLD_KEYWORDS = (
    "cleaning",
    "maintenance",
    "hold",
    "blocked",
    "unavailable",
    "reservation",
    "reserved",
)
HOLD_EXACT_NAMES = frozenset({"guest", "not available", "closed period", "airbnb (not available)"})


def is_masked_guest_name(name: Optional[str]) -> bool:
    """
    Return True when a name is empty or a placeholder rather than a real guest.

    Covers the exact placeholder labels, anything mentioning a platform name,
    bare reference codes (uppercase alphanumerics containing a digit) and
    star-masked names like "J*** D***".

    Args:
        name: Stored or computed guest label

    Returns:
        bool: True if the name carries no guest identity
    """
    if not name or not name.strip():
        return True
    cleaned = name.strip()
    if cleaned.lower() in MASKED_NAME_LABELS:
        return True
    if _PLATFORM_LABEL.search(cleaned):
        return True
    if _REFERENCE_CODE.match(cleaned) and _HAS_DIGIT.search(cleaned):
        return True
    if cleaned.count("*") >= 5:
        return True
    return False


def is_hold_label(name: Optional[str]) -> bool:
    """Return True when a booking label looks like an owner hold or maintenance block."""
    if not name or not name.strip():
        return True
    lowered = name.strip().lower()
    if any(keyword in lowered for keyword in HOLD_KEYWORDS):
        return True
    return lowered in HOLD_EXACT_NAMES


def split_guest_name(name: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """
    Split a full name into first name and last initial.

    Example:
        >>> split_guest_name("Nora Weber")
        ('Nora', 'W')
    """
    if not name or not name.strip():
        return None, None
    parts = name.split()
    first = parts[0]
    last_initial = parts[-1][0].upper() if len(parts) > 1 else None
    return first, last_initial


def display_label(name: Optional[str]) -> Optional[str]:
    """Return the short "First L." label used on the calendar grid."""
    first, last_initial = split_guest_name(name)
    if first is None:
        return None
    return f"{first} {last_initial}." if last_initial else first


def event_label(summary: Optional[str]) -> str:
    """Label for an unenriched feed event, with reserved-style summaries normalized."""
    if summary and RESERVED_SUMMARY.search(summary):
        return RESERVED_LABEL
    return (summary or "").strip() or "Blocked"
