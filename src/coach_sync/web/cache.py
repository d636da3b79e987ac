"""Short-lived cache for range summaries.

Entries expire after a TTL. Concurrent callers asking for the same key
while it is being computed share one computation. Failures are not cached.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class TTLCache:
    """In-process TTL cache with in-flight de-duplication."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, asyncio.Future] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self.clock():
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: Any) -> None:
        if self.ttl_seconds <= 0:
            return
        self._entries[key] = CacheEntry(value=value, expires_at=self.clock() + self.ttl_seconds)

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every entry whose key starts with prefix."""
        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()

    async def get_or_compute(self, key: str, compute: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value, joining or starting the computation on a miss.

        Waiters whose shared computation was cancelled start their own.
        """
        while True:
            cached = self.get(key)
            if cached is not None:
                return cached

            pending = self._in_flight.get(key)
            if pending is None:
                break
            try:
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                if not pending.cancelled():
                    raise

        future = asyncio.get_running_loop().create_future()
        self._in_flight[key] = future
        try:
            value = await compute()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an unshared failure does not warn on GC
            future.exception()
            raise
        finally:
            self._in_flight.pop(key, None)

        self.set(key, value)
        future.set_result(value)
        return value
