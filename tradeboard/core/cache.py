"""
TTL cache for computed leaderboard pages.

Ranking a company is a full aggregation over its closed trades, so pages
are kept for a few seconds and dropped whenever a trade changes.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any

from tradeboard.config import get_settings


@dataclass
class CacheEntry:
    value: Any
    expires_at: float

    @property
    def is_expired(self) -> bool:
        return time.monotonic() >= self.expires_at


class InMemoryCache:
    """
    Process-local async cache.

    A ttl of zero or less disables storage, so `set` becomes a no-op.
    """

    def __init__(self, default_ttl: int = 60):
        self.default_ttl = default_ttl
        self._entries: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Any | None:
        """Cached value, or None when missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired:
            async with self._lock:
                self._entries.pop(key, None)
            return None
        return entry.value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            return
        async with self._lock:
            self._entries[key] = CacheEntry(value, time.monotonic() + ttl)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    @property
    def size(self) -> int:
        return len(self._entries)


leaderboard_cache = InMemoryCache(default_ttl=get_settings().leaderboard_cache_ttl_seconds)


def make_cache_key(prefix: str, **params: Any) -> str:
    """Key independent of keyword order, e.g. "leaderboard:page=1:range=7d"."""
    return ":".join([prefix, *(f"{k}={v}" for k, v in sorted(params.items()))])


async def get_cache_stats() -> dict[str, Any]:
    """Cache sizes for the health endpoint."""
    return {
        "leaderboard_cache": {
            "size": leaderboard_cache.size,
            "default_ttl": leaderboard_cache.default_ttl,
        },
    }
