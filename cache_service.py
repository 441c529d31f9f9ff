"""
TTL Cache
Small read-through cache keyed by string, owned by whichever component
creates it (the application keeps one on app.state).
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

log = logging.getLogger(__name__)


class TTLCache:
    """Read-through cache: get_or_load(key, loader) with a fixed TTL."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        # Per-key load lock, kept only while some caller holds or waits on it
        self._locks: Dict[str, asyncio.Lock] = {}
        self._pending: Dict[str, int] = {}
        # Bumped by invalidate during a load; a stale load is then not stored
        self._generations: Dict[str, int] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = (self._clock() + self.ttl_seconds, value)

    async def get_or_load(self, key: str, loader: Callable[[], Awaitable[Any]]) -> Any:
        cached = self.get(key)
        if cached is not None:
            self.hits += 1
            return cached

        # One loader per key at a time
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._pending[key] = self._pending.get(key, 0) + 1
        try:
            async with lock:
                cached = self.get(key)
                if cached is not None:
                    self.hits += 1
                    return cached
                self.misses += 1
                generation = self._generations.get(key, 0)
                value = await loader()
                if self._generations.get(key, 0) == generation:
                    self.set(key, value)
                    log.debug(f"Cache filled: {key}")
                else:
                    log.debug(f"Cache fill skipped, {key} invalidated during load")
                return value
        finally:
            self._pending[key] -= 1
            if not self._pending[key]:
                del self._pending[key]
                del self._locks[key]
                self._generations.pop(key, None)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)
        if key in self._pending:
            self._generations[key] = self._generations.get(key, 0) + 1

    def clear(self) -> None:
        self._entries.clear()
        for key in self._pending:
            self._generations[key] = self._generations.get(key, 0) + 1

    def __len__(self) -> int:
        return len(self._entries)
