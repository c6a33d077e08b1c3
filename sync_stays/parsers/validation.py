"""Validation of extracted facts before they are persisted."""

from __future__ import annotations

import re
from enum import Enum
from typing import Optional

from sync_stays.parsers.extractor import ExtractedFact
from sync_stays.parsers.names import FORBIDDEN_GUEST_NAMES, is_masked_guest_name

MIN_GUEST_COUNT = 1
MAX_GUEST_COUNT = 30

_BILLING_KEYWORDS = re.compile(r"\b(service|fee|tax|airbnb|admin|payout|cleaning)\b", re.IGNORECASE)
_CONFIRMATION_CODE = re.compile(r"^[A-Z0-9]{8,15}$")


class RejectionReason(str, Enum):
    NOT_A_CONFIRMATION = "not_a_confirmation"
    NO_RESERVATION_DATA = "no_reservation_data"
    INVALID_GUEST_COUNT = "invalid_guest_count"
    INVALID_GUEST_NAME = "invalid_guest_name"
    INVALID_DATES = "invalid_dates"
    INVALID_CONFIRMATION_CODE = "invalid_confirmation_code"


def validate_fact(fact: ExtractedFact) -> Optional[RejectionReason]:
    """
    Check an extracted fact against the storage rules.

    Args:
        fact: Output of the extractor

    Returns:
        The first rejection reason found, or None if the fact may be stored
    """
    if fact.guest_count is not None and not (
        MIN_GUEST_COUNT <= fact.guest_count <= MAX_GUEST_COUNT
    ):
        return RejectionReason.INVALID_GUEST_COUNT

    if fact.guest_name is not None and (
        fact.guest_name.lower() in FORBIDDEN_GUEST_NAMES
        or is_masked_guest_name(fact.guest_name)
        or _BILLING_KEYWORDS.search(fact.guest_name)
    ):
        return RejectionReason.INVALID_GUEST_NAME

    if fact.check_in and fact.check_out and fact.check_in >= fact.check_out:
        return RejectionReason.INVALID_DATES

    if fact.confirmation_code is not None and not _CONFIRMATION_CODE.match(
        fact.confirmation_code
    ):
        return RejectionReason.INVALID_CONFIRMATION_CODE

    return None
