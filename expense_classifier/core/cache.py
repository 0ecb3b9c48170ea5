"""
TTL cache for derived merchant statistics

Statistics are recomputed from history in the background and may lag the
newest confirmed transactions by up to one TTL. The cache is passed in by
the caller, never held at module level, so tests control the clock and
users stay isolated by key.
"""
import logging
import threading
import time
from typing import Any, Callable, Dict, Mapping, Optional, TypeVar

from .merchant_normalizer import normalize_merchant_key
from .models import MerchantStatistics

logger = logging.getLogger(__name__)

T = TypeVar('T')

_MISSING = object()


class TTLCache:
    """
    Thread-safe cache with per-entry expiry

    Usage:
        cache = TTLCache(ttl_seconds=300)
        cache.set('user-1:merchant_statistics', stats)
        stats = cache.get('user-1:merchant_statistics')

    ``get_or_set`` computes a missing value under a lock for that key only,
    so a slow load for one user never blocks lookups for another.
    """

    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self._lock = threading.RLock()
        self._key_locks: Dict[str, threading.Lock] = {}
        self._data: Dict[str, Any] = {}
        self._expires_at: Dict[str, float] = {}
        self._ttl = ttl_seconds
        self._clock = clock

    def get(self, key: str, default: Any = None) -> Any:
        """Value for key, or default if missing or expired"""
        with self._lock:
            if key not in self._data:
                return default

            if self._clock() >= self._expires_at[key]:
                del self._data[key]
                del self._expires_at[key]
                return default

            return self._data[key]

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        """Store a value; ttl_seconds overrides the cache default for this entry"""
        ttl = self._ttl if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._data[key] = value
            self._expires_at[key] = self._clock() + ttl

    def invalidate(self, key: str) -> bool:
        """Drop one key. Returns True if it was cached."""
        with self._lock:
            if key in self._data:
                del self._data[key]
                del self._expires_at[key]
                return True
            return False

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every key starting with prefix (e.g. all entries for one user)"""
        with self._lock:
            keys = [k for k in self._data if k.startswith(prefix)]
            for key in keys:
                del self._data[key]
                del self._expires_at[key]
            return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._expires_at.clear()

    def _key_lock(self, key: str) -> threading.Lock:
        with self._lock:
            return self._key_locks.setdefault(key, threading.Lock())

    def get_or_set(self, key: str, factory: Callable[[], T]) -> T:
        """
        Cached value, or compute, cache and return it

        Concurrent misses on the same key call the factory once; the
        others wait for its result. A factory error is not cached.

        Args:
            key: Cache key
            factory: Callable producing the value on a miss

        Returns:
            Cached or freshly computed value
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value

        with self._key_lock(key):
            value = self.get(key, _MISSING)
            if value is _MISSING:
                value = factory()
                self.set(key, value)
            return value


class StatisticsSupplier:
    """Source of merchant statistics for the statistics strategy"""

    def get(self, merchant_name: str) -> Optional[MerchantStatistics]:
        raise NotImplementedError


class StaticStatisticsSupplier(StatisticsSupplier):
    """Fixed statistics keyed by merchant (tests, CLI with a stats file)"""

    def __init__(self, statistics: Mapping[str, MerchantStatistics]):
        self._statistics = {normalize_merchant_key(k): v for k, v in statistics.items()}

    def get(self, merchant_name: str) -> Optional[MerchantStatistics]:
        return self._statistics.get(normalize_merchant_key(merchant_name))


class CachedStatisticsSupplier(StatisticsSupplier):
    """
    Statistics loaded in bulk per user and cached for the TTL

    A loader failure is logged and treated as "no statistics" for
    ``retry_after_seconds``; the statistics strategy abstains meanwhile and
    the database is not asked again on every transaction.
    """

    def __init__(self,
                 loader: Callable[[], Mapping[str, MerchantStatistics]],
                 cache: TTLCache,
                 user_id: str,
                 retry_after_seconds: float = 30.0):
        self.loader = loader
        self.cache = cache
        self.user_id = user_id
        self.retry_after_seconds = retry_after_seconds

    @property
    def cache_key(self) -> str:
        return f"{self.user_id}:merchant_statistics"

    def _load(self) -> Dict[str, MerchantStatistics]:
        loaded = self.loader()
        return {normalize_merchant_key(k): v for k, v in loaded.items()}

    def snapshot(self) -> Dict[str, MerchantStatistics]:
        try:
            return self.cache.get_or_set(self.cache_key, self._load)
        except Exception as e:
            logger.warning("Merchant statistics unavailable for %s, retrying in %ss: %s",
                           self.user_id, self.retry_after_seconds, e)
            self.cache.set(self.cache_key, {}, self.retry_after_seconds)
            return {}

    def get(self, merchant_name: str) -> Optional[MerchantStatistics]:
        return self.snapshot().get(normalize_merchant_key(merchant_name))

    def invalidate(self) -> None:
        self.cache.invalidate(self.cache_key)
