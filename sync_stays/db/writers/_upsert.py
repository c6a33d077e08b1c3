"""
Field-level change detection for read-then-conditional-write upserts.

Feed sync looks a booking up by day window before deciding to insert or update,
which an ON CONFLICT clause cannot express. This module provides the
"IS DISTINCT FROM" half of the pattern in Python: compute the columns whose
values really differ, and write nothing when that set is empty.

Known race: two processes syncing the same feed can both miss the lookup and
insert. The partial unique index on (property_id, source_feed_id, external_uid)
for active rows turns the second insert into an IntegrityError instead of a
duplicate booking.
"""

from datetime import datetime
from typing import Any, Mapping

from sync_stays.utils.datetime import as_utc


def _normalize(value: Any) -> Any:
    if isinstance(value, datetime):
        return as_utc(value)
    return value


def changed_columns(existing: Any, values: Mapping[str, Any]) -> dict[str, Any]:
    """
    Return the subset of `values` that differs from the stored row.

    Comparison is NULL-safe and timezone-insensitive for datetimes (some
    backends drop tzinfo on round-trip); JSON payloads compare by value.

    Args:
        existing: Stored row (SQLAlchemy Row or mapping)
        values: Candidate column values

    Returns:
        dict: Columns to update; empty when the write would be a no-op

    Example:
        >>> changed_columns(row, {"guest_name": "Nora Weber", "guest_count": 2})
        {'guest_count': 2}
    """
    current = existing._mapping if hasattr(existing, "_mapping") else existing
    changes: dict[str, Any] = {}
    for column, value in values.items():
        if _normalize(current.get(column)) != _normalize(value):
            changes[column] = value
    return changes
