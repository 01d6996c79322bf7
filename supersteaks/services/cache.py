"""In-memory caching service with TTL support."""

from typing import Any, Optional
from cachetools import TTLCache
import threading

from .. import config


class CacheService:
    """Thread-safe in-memory cache for read-mostly tournament data."""

    def __init__(self, ttl_seconds: Optional[int] = None) -> None:
        """Initialize cache stores with the configured TTL."""
        ttl = ttl_seconds if ttl_seconds is not None else config.TOURNAMENT_CACHE_TTL_SECONDS

        # Tournament listings and single tournament records
        self._tournaments_cache: TTLCache = TTLCache(maxsize=500, ttl=ttl)

        # Lock for thread safety
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[Any]:
        """Get a value from the cache.

        Args:
            key: The cache key

        Returns:
            Cached value or None if not found/expired
        """
        with self._lock:
            return self._tournaments_cache.get(key)

    def set(self, key: str, value: Any) -> None:
        """Set a value in the cache."""
        with self._lock:
            self._tournaments_cache[key] = value

    def delete(self, key: str) -> bool:
        """Delete a value from the cache.

        Returns:
            True if key was deleted, False if not found
        """
        with self._lock:
            if key in self._tournaments_cache:
                del self._tournaments_cache[key]
                return True
            return False

    def clear(self) -> None:
        """Drop every cached entry."""
        with self._lock:
            self._tournaments_cache.clear()

    def stats(self) -> dict[str, int]:
        """Get cache statistics."""
        with self._lock:
            return {
                "size": len(self._tournaments_cache),
                "maxsize": int(self._tournaments_cache.maxsize),
            }
