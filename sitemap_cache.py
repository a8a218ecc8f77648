"""Caching of rendered sitemap documents.

The cache is a side channel: every read or write failure is treated as a
cache miss so a build never fails because the cache is unavailable.
Concurrent renders of the same sitemap are allowed, the last write wins.
"""

import logging
import threading
import time
from typing import Callable, Dict, Optional, Protocol

from sitemap_models import CacheRecord


logger = logging.getLogger(__name__)


class CacheStorage(Protocol):
    """Key/value storage contract used by SitemapCache."""

    def get(self, key: str) -> Optional[CacheRecord]:
        ...

    def set(self, key: str, record: CacheRecord, ttl: float) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryCacheStorage:
    """Thread-safe in-process CacheStorage."""

    def __init__(self) -> None:
        self._records: Dict[str, CacheRecord] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[CacheRecord]:
        with self._lock:
            return self._records.get(key)

    def set(self, key: str, record: CacheRecord, ttl: float) -> None:
        with self._lock:
            self._records[key] = record

    def remove(self, key: str) -> None:
        with self._lock:
            self._records.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class SitemapCache:
    """Cache of rendered sitemaps keyed by configuration version and name.

    Attributes:
        storage: Backend implementing the CacheStorage contract.
        ttl: Lifetime of a record in seconds. 0 or less disables caching.
        version: Configuration version token, part of every key.
        clock: Returns the current POSIX time in seconds.
    """

    def __init__(
        self,
        storage: CacheStorage,
        ttl: float,
        version: str,
        clock: Callable[[], float] = time.time
    ) -> None:
        self.storage = storage
        self.ttl = ttl
        self.version = version
        self.clock = clock

    @property
    def enabled(self) -> bool:
        return self.ttl > 0

    def key(self, sitemap_name: str) -> str:
        return f'sitemap-builder/{self.version}/sitemaps/{sitemap_name}'

    def get(self, sitemap_name: str) -> Optional[str]:
        """Return the cached document, or None on a miss, expiry or failure."""
        if not self.enabled:
            return None
        key = self.key(sitemap_name)
        try:
            record = self.storage.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}, rendering instead: {e}")
            return None
        if record is None:
            return None
        if record.expires_at > self.clock():
            logger.debug(f"Cache hit for {key}")
            return record.value
        try:
            self.storage.remove(key)
        except Exception as e:
            logger.warning(f"Failed to remove expired cache record {key}: {e}")
        return None

    def set(self, sitemap_name: str, value: str) -> None:
        if not self.enabled:
            return
        key = self.key(sitemap_name)
        record = CacheRecord(value=value, expires_at=self.clock() + self.ttl)
        try:
            self.storage.set(key, record, self.ttl)
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    def get_or_render(self, sitemap_name: str, render: Callable[[], str]) -> str:
        """Return the cached document for a sitemap, rendering it on a miss."""
        cached = self.get(sitemap_name)
        if cached is not None:
            return cached
        value = render()
        self.set(sitemap_name, value)
        return value
