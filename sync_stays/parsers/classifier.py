"""
Deterministic message classifier.

Decides whether a mailbox message is a reservation confirmation before any
extraction runs. Blocklist rules are checked first so replies, inquiries,
cancellations and platform notices never reach the extractor even when they
quote booking details. Anything not positively confirmed is non-candidate.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

CLASSIFIER_VERSION = "v1"


class MessageType(str, Enum):
    RESERVATION_CONFIRMATION = "reservation_confirmation"
    BOOKING_INQUIRY = "booking_inquiry"
    GUEST_MESSAGE = "guest_message"
    CANCELLATION_REQUEST = "cancellation_request"
    REVIEW_REQUEST = "review_request"
    REVIEW_POSTED = "review_posted"
    PLATFORM_SYSTEM = "platform_system"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class BlocklistRule:
    message_type: MessageType
    patterns: tuple[re.Pattern[str], ...]
    description: str


@dataclass(frozen=True)
class ConfirmationRule:
    platform: str
    subject_patterns: tuple[re.Pattern[str], ...]
    body_patterns: tuple[re.Pattern[str], ...]
    required_body_patterns: tuple[re.Pattern[str], ...]
    description: str


@dataclass(frozen=True)
class Classification:
    message_type: MessageType
    is_candidate: bool
    reasons: list[str] = field(default_factory=list)
    version: str = CLASSIFIER_VERSION

    def to_dict(self) -> dict[str, object]:
        return {
            "message_type": self.message_type.value,
            "is_candidate": self.is_candidate,
            "reasons": list(self.reasons),
            "version": self.version,
        }


def _compile(*patterns: str, flags: int = re.IGNORECASE) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, flags) for p in patterns)


BLOCKLIST_RULES: tuple[BlocklistRule, ...] = (
    BlocklistRule(
        MessageType.BOOKING_INQUIRY,
        _compile(
            r"\bInquiry\b",
            r"Respond to .{0,30} inquiry",
            r"Respond to this Inquiry",
            r"Pre-approval request",
        ),
        "Booking inquiry, not a confirmed reservation",
    ),
    BlocklistRule(
        MessageType.GUEST_MESSAGE,
        _compile(
            r"^Re:",
            r"has replied to your message",
            r"sent you a message",
        ),
        "Conversation reply",
    ),
    BlocklistRule(
        MessageType.CANCELLATION_REQUEST,
        _compile(
            r"cancellation request",
            r"cancel a booking",
            r"approve the cancellation",
            r"cancellation has been confirmed",
            r"reservation has been cancell?ed",
            r"booking was cancell?ed",
        ),
        "Cancellation notice",
    ),
    BlocklistRule(
        MessageType.REVIEW_REQUEST,
        _compile(
            r"Write a review",
            r"waiting for your review",
            r"Leave a review",
            r"Review your guest",
            r"guests? (is|are) waiting for your review",
        ),
        "Review request",
    ),
    BlocklistRule(
        MessageType.REVIEW_POSTED,
        _compile(
            r"left a \d-star review",
            r"posted their review",
            r"wrote you a review",
            r"new review for",
        ),
        "Review posted",
    ),
    BlocklistRule(
        MessageType.PLATFORM_SYSTEM,
        _compile(
            r"reimbursement",
            r"security deposit (expiry|reminder)",
            r"payout (processed|has been sent)",
            r"tax document",
            r"\b1099\b",
            r"account verification",
            r"verify your (identity|account)",
            r"update your (payment|payout)",
        ),
        "Platform/system notice",
    ),
)

CONFIRMATION_RULES: tuple[ConfirmationRule, ...] = (
    ConfirmationRule(
        platform="Airbnb",
        subject_patterns=_compile(r"Reservation confirmed"),
        body_patterns=_compile(r"New booking confirmed", r"booking is confirmed"),
        required_body_patterns=_compile(r"(Check-in|Check in|Checkin)"),
        description="Airbnb reservation confirmation",
    ),
    ConfirmationRule(
        platform="Lodgify",
        subject_patterns=_compile(r"New Confirmed Booking", r"Confirmed Booking"),
        body_patterns=_compile(r"BOOKING \(#", r"Booking Id:", r"Booking #"),
        required_body_patterns=_compile(
            r"(Arrival|Check-in|Checkin)", r"(Departure|Check-out|Checkout)"
        ),
        description="Lodgify confirmed booking",
    ),
    ConfirmationRule(
        platform="VRBO",
        subject_patterns=_compile(r"Instant Booking", r"Booking confirmed"),
        body_patterns=_compile(r"Your booking is confirmed", r"booking has been confirmed"),
        required_body_patterns=_compile(r"Reservation ID", r"(Dates|Check-in|Arrival)"),
        description="VRBO booking confirmation",
    ),
    ConfirmationRule(
        platform="Direct",
        subject_patterns=_compile(
            r"You have a new reservation", r"Reservation from", r"Booking confirmed"
        ),
        body_patterns=_compile(r"Reservation Confirmation", r"Booking Confirmation"),
        required_body_patterns=_compile(r"(Check-in|Arrival)", r"(Check-out|Departure)"),
        description="Direct booking confirmation",
    ),
)

_WHITESPACE = re.compile(r"\s+")


def normalize_body(body: str | None) -> str:
    """Collapse all whitespace runs to single spaces."""
    return _WHITESPACE.sub(" ", body or "").strip()


def _subject_only(pattern: re.Pattern[str]) -> bool:
    return pattern.pattern.startswith("^")


def classify_message(subject: str | None, body: str | None) -> Classification:
    """
    Classify a message as a reservation confirmation or one of the known non-candidates.

    Blocklist rules run first, in order; a pattern anchored with "^" is tested
    against the subject only, every other pattern against subject and body.
    Confirmation rules then need a subject or body pattern hit and every
    required body pattern present.

    Args:
        subject: Message subject line
        body: Plain-text body (whitespace is normalized here)

    Returns:
        Classification: Type, candidate flag and human-readable reasons
    """
    subject = (subject or "").strip()
    normalized = normalize_body(body)
    combined = f"{subject}\n{normalized}"

    for rule in BLOCKLIST_RULES:
        for pattern in rule.patterns:
            haystack = subject if _subject_only(pattern) else combined
            if pattern.search(haystack):
                return Classification(
                    message_type=rule.message_type,
                    is_candidate=False,
                    reasons=[f"Blocked: {rule.description} [{pattern.pattern}]"],
                )

    for confirmation in CONFIRMATION_RULES:
        reasons: list[str] = []
        subject_hit = next(
            (p for p in confirmation.subject_patterns if p.search(subject)), None
        )
        body_hit = next((p for p in confirmation.body_patterns if p.search(normalized)), None)
        if subject_hit is None and body_hit is None:
            continue
        if not all(p.search(normalized) for p in confirmation.required_body_patterns):
            continue

        if subject_hit is not None:
            reasons.append(f"Subject match: {confirmation.platform} [{subject_hit.pattern}]")
        if body_hit is not None:
            reasons.append(f"Body match: {confirmation.platform} [{body_hit.pattern}]")
        reasons.append(f"Confirmed: {confirmation.description}")
        return Classification(
            message_type=MessageType.RESERVATION_CONFIRMATION,
            is_candidate=True,
            reasons=reasons,
        )

    return Classification(
        message_type=MessageType.UNKNOWN,
        is_candidate=False,
        reasons=["No blocklist or confirmation patterns matched"],
    )
