import logging
import math
import threading
import time
from typing import Callable, Dict, Optional

from .models import CacheEntry, CacheKey, CacheStats, TranslationResult

logger = logging.getLogger(__name__)

EVICTION_FRACTION = 0.2

class TranslationCache:
    """Bounded translation store with recency-based batch eviction.

    When an insert finds the cache full, the least recently accessed fifth of
    the entries is dropped in one pass instead of popping a single item.
    """

    def __init__(self, capacity: int = 2000, clock: Callable[[], float] = time.monotonic):
        if capacity < 1:
            raise ValueError("cache capacity must be at least 1")
        self.capacity = capacity
        self._clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._lock = threading.Lock()

    @property
    def eviction_batch(self) -> int:
        return max(1, math.floor(self.capacity * EVICTION_FRACTION))

    def get(self, key: CacheKey) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug(f"Cache miss for: {key[0][:30]}...")
                return None
            entry.access_count += 1
            entry.last_accessed_at = self._clock()
            logger.debug(f"Cache hit for: {key[0][:30]}... (hits={entry.access_count})")
            return entry

    def put(self, key: CacheKey, result: TranslationResult):
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.capacity:
                self._evict_locked()
            self._entries[key] = CacheEntry(
                result=result,
                access_count=1,
                last_accessed_at=self._clock(),
            )
            logger.debug("Translation cache stored key (size=%d/%d)", len(self._entries), self.capacity)

    def _evict_locked(self):
        # sorted() is stable, so equal timestamps evict in insertion order
        oldest = sorted(self._entries.items(), key=lambda item: item[1].last_accessed_at)
        evicted = oldest[:self.eviction_batch]
        for key, _ in evicted:
            del self._entries[key]
        logger.debug("Translation cache evicted %d item(s); max=%d", len(evicted), self.capacity)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(size=len(self._entries), capacity=self.capacity)

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def __contains__(self, key):
        with self._lock:
            return key in self._entries
