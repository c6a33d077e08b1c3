"""
Enrichment provenance of a booking.

A booking's guest identity comes from exactly one place: the feed itself, a
matched reservation fact, or a human resolution. The stored columns
(enriched_fact_id, match_reason, manual_*) are read back into one of these
variants instead of being inspected ad hoc.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union


class MatchReason(str, Enum):
    CONFIRMATION_CODE = "confirmation_code"
    UNIQUE_DATE = "unique_date"
    SAME_PROPERTY_DATE = "same_property_date"
    EXACT_DATES = "exact_dates"
    REVIEW_RESOLVED = "review_resolved"


@dataclass(frozen=True)
class Unenriched:
    pass


@dataclass(frozen=True)
class FactMatched:
    fact_id: int
    reason: MatchReason


@dataclass(frozen=True)
class ManuallyResolved:
    resolved_at: datetime
    connection_id: Optional[int] = None
    guest_name: Optional[str] = None
    guest_count: Optional[int] = None
    notes: Optional[str] = None


Provenance = Union[Unenriched, FactMatched, ManuallyResolved]


def provenance_of(booking: Any) -> Provenance:
    """
    Read the provenance variant from a booking row (or any object with booking columns).

    Manual resolution wins over a fact match, which wins over nothing.
    """
    resolved_at = getattr(booking, "manually_resolved_at", None)
    if resolved_at is not None:
        return ManuallyResolved(
            resolved_at=resolved_at,
            connection_id=getattr(booking, "manual_connection_id", None),
            guest_name=getattr(booking, "manual_guest_name", None),
            guest_count=getattr(booking, "manual_guest_count", None),
            notes=getattr(booking, "manual_notes", None),
        )
    fact_id = getattr(booking, "enriched_fact_id", None)
    if fact_id is not None:
        reason = getattr(booking, "match_reason", None) or MatchReason.UNIQUE_DATE.value
        return FactMatched(fact_id=fact_id, reason=MatchReason(reason))
    return Unenriched()


def provenance_columns(provenance: Provenance) -> dict[str, Any]:
    """Column values for the fact-match part of a provenance (manual columns are separate)."""
    if isinstance(provenance, FactMatched):
        return {"enriched_fact_id": provenance.fact_id, "match_reason": provenance.reason.value}
    return {"enriched_fact_id": None, "match_reason": None}
