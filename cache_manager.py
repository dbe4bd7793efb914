"""
In-memory TTL cache used for cover lookups.
Entries expire after their TTL and the cache is bounded in size.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class CacheManager:
    """Thread-safe in-memory cache with per-entry TTL and a size bound."""

    def __init__(self, max_entries: int = 1000, default_ttl: int = 300,
                 clock: Callable[[], float] = time.monotonic):
        self.max_entries = max_entries
        self.default_ttl = default_ttl
        self._clock = clock
        self.memory_cache: Dict[str, Tuple[Any, float]] = {}
        self.memory_cache_lock = threading.RLock()
        self.cache_stats = {
            'hits': 0,
            'misses': 0,
            'evictions': 0,
        }

    def get(self, key: str) -> Optional[Any]:
        """Get a value from the cache, or None if missing or expired."""
        with self.memory_cache_lock:
            cache_entry = self.memory_cache.get(key)
            if cache_entry:
                value, expires_at = cache_entry
                if self._clock() < expires_at:
                    self.cache_stats['hits'] += 1
                    return value
                # Expired, drop it
                del self.memory_cache[key]
            self.cache_stats['misses'] += 1
        return None

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store a value with a TTL."""
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        with self.memory_cache_lock:
            self.memory_cache[key] = (value, self._clock() + ttl)

            if len(self.memory_cache) > self.max_entries:
                # Drop the 10% of entries closest to expiry
                sorted_items = sorted(
                    self.memory_cache.items(),
                    key=lambda x: x[1][1]
                )
                overflow = max(1, self.max_entries // 10)
                for k, _ in sorted_items[:overflow]:
                    self.memory_cache.pop(k, None)
                self.cache_stats['evictions'] += overflow
                logger.debug("Cover cache full, evicted %d entries", overflow)

    def get_stats(self) -> Dict[str, Any]:
        """Return cache statistics."""
        with self.memory_cache_lock:
            stats = self.cache_stats.copy()
            stats['size'] = len(self.memory_cache)
        stats['max_entries'] = self.max_entries

        if stats['hits'] + stats['misses'] > 0:
            stats['hit_ratio'] = stats['hits'] / (stats['hits'] + stats['misses'])
        else:
            stats['hit_ratio'] = 0.0

        return stats
