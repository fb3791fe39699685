import time
from typing import Any, Callable, Optional, Protocol

from cachetools import TLRUCache


class CacheBackend(Protocol):
    """Key/value cache with per-entry TTL, as used for stats snapshots.

    Counters live outside the TTL store and never expire; readers stamp the
    snapshots they write with a counter value so that an invalidation racing
    a slow rebuild is not undone by the late write.
    """

    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any, ttl: int) -> None: ...

    async def delete(self, *keys: str) -> None: ...

    async def counter(self, key: str) -> int: ...

    async def incr(self, key: str) -> int: ...


def _expires_at(key, entry, now):
    return now + entry[1]


class InMemoryCache:
    """Process-local cache. Entries are stored as ``(value, ttl)`` pairs so that
    TLRUCache can expire each one on its own schedule."""

    def __init__(self, maxsize: int = 256, timer: Callable[[], float] = time.monotonic):
        self._entries = TLRUCache(maxsize=maxsize, ttu=_expires_at, timer=timer)
        self._counters: dict[str, int] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        return None if entry is None else entry[0]

    async def set(self, key: str, value: Any, ttl: int) -> None:
        if ttl <= 0:
            self._entries.pop(key, None)
            return
        self._entries[key] = (value, ttl)

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._entries.pop(key, None)

    async def counter(self, key: str) -> int:
        return self._counters.get(key, 0)

    async def incr(self, key: str) -> int:
        self._counters[key] = self._counters.get(key, 0) + 1
        return self._counters[key]

    async def clear(self) -> None:
        self._entries.clear()
