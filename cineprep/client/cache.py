"""
Client-side caches over a string key/value store.

Entries are JSON documents `{"data": ..., "timestamp": <epoch seconds>}`,
the same layout the web client keeps in localStorage.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

HISTORY_CACHE_KEY = "cineprep_history_cache"
HISTORY_CACHE_TTL = 300
LORE_CACHE_PREFIX = "cineprep_lore_"
LORE_CACHE_TTL = 7 * 24 * 60 * 60


class StoreQuotaExceeded(Exception):
    """The store has no room left for the value."""


class MemoryStore:
    """In-process key/value store. `max_bytes` bounds the total stored size."""

    def __init__(self, max_bytes: Optional[int] = None):
        self.max_bytes = max_bytes
        self._items: Dict[str, str] = {}

    def _size_with(self, key: str, value: str) -> int:
        return sum(len(v) for k, v in self._items.items() if k != key) + len(value)

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.max_bytes is not None and self._size_with(key, value) > self.max_bytes:
            raise StoreQuotaExceeded(f"Storing {key} exceeds {self.max_bytes} bytes")
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._items)


class HistoryCache:
    """Caches the analysis history response for HISTORY_CACHE_TTL seconds."""

    def __init__(self, store=None, ttl: float = HISTORY_CACHE_TTL, clock: Callable[[], float] = time.time):
        self.store = store if store is not None else MemoryStore()
        self.ttl = ttl
        self.clock = clock

    def load(self) -> Optional[Any]:
        raw = self.store.get_item(HISTORY_CACHE_KEY)
        if raw is None:
            return None
        try:
            entry = json.loads(raw)
            if self.clock() - entry["timestamp"] < self.ttl:
                return entry["data"]
        except (ValueError, KeyError, TypeError):
            logger.warning("Discarding unreadable history cache entry")
        self.store.remove_item(HISTORY_CACHE_KEY)
        return None

    def save(self, data: Any) -> None:
        try:
            self.store.set_item(HISTORY_CACHE_KEY, json.dumps({"data": data, "timestamp": self.clock()}))
        except StoreQuotaExceeded as e:
            logger.warning(f"History cache not saved: {e}")
            self.invalidate()

    def invalidate(self) -> None:
        self.store.remove_item(HISTORY_CACHE_KEY)

    def get_or_fetch(self, fetch: Callable[[], Any]) -> Any:
        """Cached history when fresh, otherwise `fetch()` and cache its result."""
        data = self.load()
        if data is not None:
            return data
        data = fetch()
        self.save(data)
        return data


class LoreCache:
    """Per-movie lore analyses kept for LORE_CACHE_TTL seconds."""

    def __init__(self, store=None, ttl: float = LORE_CACHE_TTL, clock: Callable[[], float] = time.time):
        self.store = store if store is not None else MemoryStore()
        self.ttl = ttl
        self.clock = clock

    @staticmethod
    def key(movie_id: int) -> str:
        return f"{LORE_CACHE_PREFIX}{movie_id}"

    def get(self, movie_id: int) -> Optional[Dict[str, Any]]:
        raw = self.store.get_item(self.key(movie_id))
        if raw is None:
            return None
        try:
            entry = json.loads(raw)
            if self.clock() - entry["timestamp"] <= self.ttl:
                return entry["data"]
        except (ValueError, KeyError, TypeError):
            pass
        self.store.remove_item(self.key(movie_id))
        return None

    def save(self, movie_id: int, analysis: Dict[str, Any]) -> bool:
        """Store `analysis`; on a full store, drop expired entries and retry once."""
        try:
            self._write(movie_id, analysis)
            return True
        except StoreQuotaExceeded:
            logger.warning("Lore cache full, clearing expired entries")
            self.clear_expired()
        try:
            self._write(movie_id, analysis)
            return True
        except StoreQuotaExceeded as e:
            logger.error(f"Could not cache lore for movie {movie_id} after cleanup: {e}")
            return False

    def _write(self, movie_id: int, analysis: Dict[str, Any]) -> None:
        self.store.set_item(self.key(movie_id), json.dumps({"data": analysis, "timestamp": self.clock()}))

    def clear_expired(self) -> int:
        """Remove expired or unreadable lore entries and return how many were removed."""
        removed = 0
        now = self.clock()
        for key in self.store.keys():
            if not key.startswith(LORE_CACHE_PREFIX):
                continue
            try:
                expired = now - json.loads(self.store.get_item(key))["timestamp"] > self.ttl
            except (ValueError, KeyError, TypeError):
                expired = True
            if expired:
                self.store.remove_item(key)
                removed += 1
        logger.info(f"Removed {removed} old lore cache entries")
        return removed
