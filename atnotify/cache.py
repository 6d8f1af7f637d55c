"""Timed memoization for remote lookups.

Each resolver owns one :class:`TimedCache`. Entries expire lazily: validity is
checked on every read and there is no background sweep. Failure placeholders
returned by a fetcher are cached exactly like successful values, so a failed
lookup is not retried until its entry expires.

Usage
-----
>>> import asyncio
>>> import datetime as dt
>>> cache: TimedCache[str, int] = TimedCache(dt.timedelta(minutes=5))
>>> async def fetch() -> int:
...     return 42
>>> asyncio.run(cache.get("answer", fetch))
42

"""

from __future__ import annotations

import collections
import dataclasses
import time
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

type Clock = cabc.Callable[[], float]


@dataclasses.dataclass(frozen=True, slots=True)
class CacheEntry[V]:
    """Stored value with the clock reading and TTL it was stored under."""

    value: V
    stored_at: float
    ttl_s: float

    def is_valid(self, now: float) -> bool:
        """Return True while ``now - stored_at < ttl``."""
        return now - self.stored_at < self.ttl_s


class TimedCache[K, V]:
    """Key/value store with per-entry expiry.

    Parameters
    ----------
    default_ttl
        Lifetime applied when :meth:`get` receives no ``ttl`` override.
    clock
        Monotonic clock returning seconds. Tests inject a fake clock.
    max_entries
        Optional capacity. When set, the least recently used entry is evicted
        once the cache is full. ``None`` keeps every entry for the life of the
        process.

    """

    def __init__(
        self,
        default_ttl: dt.timedelta,
        *,
        clock: Clock = time.monotonic,
        max_entries: int | None = None,
    ) -> None:
        """Create an empty cache."""
        if max_entries is not None and max_entries < 1:
            msg = f"max_entries must be positive, got: {max_entries}"
            raise ValueError(msg)
        self._default_ttl_s = default_ttl.total_seconds()
        self._clock = clock
        self._max_entries = max_entries
        self._entries: collections.OrderedDict[K, CacheEntry[V]] = (
            collections.OrderedDict()
        )

    @property
    def default_ttl_s(self) -> float:
        """Return the default entry lifetime in seconds."""
        return self._default_ttl_s

    def __len__(self) -> int:
        """Return the number of stored entries, expired ones included."""
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        """Return True when ``key`` has a valid entry."""
        entry = self._entries.get(typ.cast("K", key))
        return entry is not None and entry.is_valid(self._clock())

    def peek(self, key: K) -> V | None:
        """Return the valid value for ``key`` without fetching, else ``None``."""
        entry = self._entries.get(key)
        if entry is None or not entry.is_valid(self._clock()):
            return None
        return entry.value

    def invalidate(self, key: K) -> None:
        """Drop any entry stored for ``key``."""
        self._entries.pop(key, None)

    async def get(
        self,
        key: K,
        fetcher: cabc.Callable[[], cabc.Awaitable[V]],
        *,
        ttl: dt.timedelta | None = None,
    ) -> V:
        """Return the cached value for ``key`` or fetch and store a new one.

        ``fetcher`` must contain its own failures and return a placeholder;
        anything it raises propagates and nothing is stored.
        """
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None and entry.is_valid(now):
            self._entries.move_to_end(key)
            return entry.value

        value = await fetcher()
        ttl_s = self._default_ttl_s if ttl is None else ttl.total_seconds()
        self._store(key, CacheEntry(value=value, stored_at=now, ttl_s=ttl_s))
        return value

    def _store(self, key: K, entry: CacheEntry[V]) -> None:
        self._entries[key] = entry
        self._entries.move_to_end(key)
        if self._max_entries is None:
            return
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)
