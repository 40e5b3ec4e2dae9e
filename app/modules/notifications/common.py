"""Shared helpers and state for the notifications domain."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Optional, Sequence, TypeVar
from zoneinfo import ZoneInfo

from cachetools import TTLCache

from app.core.config import settings

logger = logging.getLogger("app.notifications")

# Recipient language lookups are hit once per recipient per event.
language_cache: TTLCache = TTLCache(maxsize=1000, ttl=300)

T = TypeVar("T")


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return an aware UTC datetime; SQLite hands back naive values for tz columns."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def studio_local(value: datetime) -> datetime:
    """Convert a stored timestamp to the studio wall clock for display."""
    return as_utc(value).astimezone(ZoneInfo(settings.studio_timezone))


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive slices of at most ``size`` items, preserving order."""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def unique_in_order(values: Iterable[T]) -> List[T]:
    seen = set()
    ordered: List[T] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


__all__ = [
    "as_utc",
    "chunked",
    "language_cache",
    "logger",
    "studio_local",
    "unique_in_order",
]
