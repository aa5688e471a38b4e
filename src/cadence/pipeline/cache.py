"""
Analysis Cache

Key → (value, expiry) store shared by the focus predictor and the domino
analyzer. Injectable so tests and tenants get isolated instances.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Optional, Protocol

from cadence.utils.logging import get_logger

logger = get_logger(__name__)


def day_key(namespace: str, entity_id: str, day: date, owner: Optional[str] = None) -> str:
    """Cache key for an entity on a calendar day, scoped to owner when given."""
    if owner is not None:
        return f"{namespace}:{entity_id}:{owner}:{day.isoformat()}"
    return f"{namespace}:{entity_id}:{day.isoformat()}"


class AnalysisCache(Protocol):
    """What the analyzers need from a cache."""

    def get(self, key: str) -> Any | None:
        ...

    def set(self, key: str, value: Any, expires_at: datetime) -> None:
        ...

    def invalidate(self, prefix: str | None = None) -> int:
        ...


@dataclass
class _Entry:
    value: Any
    expires_at: datetime


class MemoryCache:
    """
    In-process cache with per-entry expiry.

    Unlocked: concurrent computations for the same key may both write,
    and the later write wins. Results are identical for a key within a day.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._entries: dict[str, _Entry] = {}
        self._clock = clock

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            self._entries.pop(key, None)
            return None
        return entry.value

    def set(self, key: str, value: Any, expires_at: datetime) -> None:
        self._entries[key] = _Entry(value=value, expires_at=expires_at)

    def invalidate(self, prefix: str | None = None) -> int:
        """Drop every entry, or every entry whose key starts with prefix."""
        if prefix is None:
            count = len(self._entries)
            self._entries.clear()
        else:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
            count = len(doomed)
        logger.debug("cache_invalidated", prefix=prefix, entries=count)
        return count

    def __len__(self) -> int:
        return len(self._entries)


def end_of_day(moment: datetime) -> datetime:
    """Midnight following moment."""
    start = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return start + timedelta(days=1)


def expiry_within_day(moment: datetime, ttl: Optional[timedelta] = None) -> datetime:
    """Earlier of moment + ttl and the end of moment's day."""
    eod = end_of_day(moment)
    if ttl is None:
        return eod
    return min(moment + ttl, eod)
