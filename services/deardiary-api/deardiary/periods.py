from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Any


class CacheState(str, Enum):
    ABSENT = "absent"
    VALID = "valid"
    STALE = "stale"


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_date(value: datetime) -> date:
    return to_utc(value).date()


def month_key(value: datetime) -> tuple[int, int]:
    value = to_utc(value)
    return value.year, value.month


def day_range_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    """Return ``[start, end + 1 day)`` as UTC timestamps."""
    lower = datetime.combine(start, time.min, tzinfo=timezone.utc)
    upper = datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return lower, upper


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    """Return the first and last microsecond of a calendar month in UTC."""
    lower = datetime(year, month, 1, tzinfo=timezone.utc)
    if month == 12:
        upper = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        upper = datetime(year, month + 1, 1, tzinfo=timezone.utc)
    return lower, upper - timedelta(microseconds=1)


def latest_created_at(entries: list[dict[str, Any]]) -> datetime | None:
    if not entries:
        return None
    return max(to_utc(entry["created_at"]) for entry in entries)


def cache_state(
    cached: dict[str, Any] | None,
    entry_count: int,
    last_entry_at: datetime | None,
) -> CacheState:
    """Classify a cached analysis row against the entries it was built from.

    A row is valid only when it has not been invalidated, it folded in exactly
    ``entry_count`` entries and it has seen the newest of them.
    """
    if cached is None:
        return CacheState.ABSENT
    if cached.get("invalidated_at") is not None:
        return CacheState.STALE
    if cached.get("entry_count") != entry_count:
        return CacheState.STALE
    cached_last = cached.get("last_entry_at")
    if last_entry_at is not None:
        if cached_last is None or to_utc(cached_last) < last_entry_at:
            return CacheState.STALE
    return CacheState.VALID
