from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import RLock
from typing import TYPE_CHECKING, Callable, Dict, Optional

if TYPE_CHECKING:
    from services.forecast import AggregatedForecast

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    forecast: "AggregatedForecast"
    stored_at: datetime


class ForecastCache:
    """Thread-safe TTL cache holding the latest aggregated forecast per region.

    Entries are never swept; an entry whose age has reached the TTL reads as
    absent and is replaced by the next ``put`` for the same region.
    """

    def __init__(self, ttl: timedelta | float = timedelta(minutes=10), clock: Clock = utc_now) -> None:
        if not isinstance(ttl, timedelta):
            ttl = timedelta(seconds=float(ttl))
        if ttl < timedelta(0):
            raise ValueError("ttl must not be negative")
        self._ttl = ttl
        self._clock = clock
        self._lock = RLock()
        self._entries: Dict[str, CacheEntry] = {}

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def clock(self) -> Clock:
        return self._clock

    def get(self, key: str, now: Optional[datetime] = None) -> Optional[CacheEntry]:
        current = now if now is not None else self._clock()
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return None
        if current - entry.stored_at >= self._ttl:
            return None
        return entry

    def put(self, key: str, forecast: "AggregatedForecast", now: Optional[datetime] = None) -> CacheEntry:
        entry = CacheEntry(forecast=forecast, stored_at=now if now is not None else self._clock())
        with self._lock:
            self._entries[key] = entry
        return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
