import logging
import time
from typing import Callable, Dict, List, Optional

from cvewatch.core.model import CacheEntry, VulnerabilityRecord

CACHE_TTL = 5 * 60
MAX_CACHE_SIZE = 500
EVICTION_RATIO = 0.1


class TtlCache:
    """
    Keyword results cache. Entries expire after `ttl` seconds; when full, the
    oldest ~10% by insertion order are dropped (not a strict LRU).
    """

    def __init__(
        self,
        ttl: float = CACHE_TTL,
        max_entries: int = MAX_CACHE_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.max_entries = max_entries
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[List[VulnerabilityRecord]]:
        entry = self._entries.get(key)
        if entry and self.clock() - entry.timestamp < self.ttl:
            return list(entry.data)
        return None

    def set(self, key: str, data: List[VulnerabilityRecord]) -> None:
        if key not in self._entries and len(self._entries) >= self.max_entries:
            self._evict()

        # The entry is complete before it becomes visible
        self._entries[key] = CacheEntry(key=key, data=tuple(data), timestamp=self.clock())

    def clear(self) -> None:
        self._entries.clear()

    def _evict(self) -> None:
        count = max(1, int(self.max_entries * EVICTION_RATIO))
        for key in list(self._entries)[:count]:
            del self._entries[key]
        logging.debug(f"Cache full, evicted {count} entries.")
