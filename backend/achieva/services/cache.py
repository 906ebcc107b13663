"""In-process TTL cache for profiles and goals.

Thread-safe; entries expire after a fixed TTL and the oldest entries are
evicted once the cache grows past its size limit.
"""
from __future__ import annotations

import threading
import time
from typing import Any, Dict, Iterable, Optional, Tuple

from loguru import logger

from ..settings import settings


class TTLCache:
    """Keyed store of (value, cached_at) pairs."""

    def __init__(self, name: str, ttl_seconds: float, max_size: int = 0) -> None:
        self.name = name
        self._ttl_seconds = ttl_seconds
        self._max_size = max_size
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            value, cached_at = entry
            if time.monotonic() - cached_at > self._ttl_seconds:
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return value

    def get_many(self, keys: Iterable[str]) -> Tuple[Dict[str, Any], list[str]]:
        """Split keys into cached values and ids that still need a lookup."""
        found: Dict[str, Any] = {}
        missing: list[str] = []
        for key in keys:
            value = self.get(key)
            if value is None:
                missing.append(key)
            else:
                found[key] = value
        return found, missing

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (value, time.monotonic())
            self._enforce_size_limit()

    def set_many(self, items: Dict[str, Any]) -> None:
        now = time.monotonic()
        with self._lock:
            for key, value in items.items():
                self._entries[key] = (value, now)
            self._enforce_size_limit()

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear_expired(self) -> int:
        now = time.monotonic()
        with self._lock:
            expired = [k for k, (_v, ts) in self._entries.items() if now - ts > self._ttl_seconds]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _enforce_size_limit(self) -> None:
        # caller holds the lock
        if self._max_size <= 0 or len(self._entries) <= self._max_size:
            return
        overflow = len(self._entries) - self._max_size
        oldest = sorted(self._entries.items(), key=lambda kv: kv[1][1])[:overflow]
        for key, _entry in oldest:
            del self._entries[key]
        logger.debug("{} cache evicted {} entries", self.name, overflow)


PROFILE_CACHE = TTLCache("profile", settings.PROFILE_CACHE_TTL, settings.PROFILE_CACHE_MAX)
GOAL_CACHE = TTLCache("goal", settings.GOAL_CACHE_TTL, settings.GOAL_CACHE_MAX)


def clear_all() -> None:
    PROFILE_CACHE.clear()
    GOAL_CACHE.clear()


__all__ = ['TTLCache', 'PROFILE_CACHE', 'GOAL_CACHE', 'clear_all']
