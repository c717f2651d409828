"""In-memory cache of resolved artwork URLs shared by concurrent requests."""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

from .models import CacheEntry

logger = logging.getLogger("scrobble_collage")

MAX_CACHE_SIZE = 10_000


class ImageUrlCache:
    """Counted map from item identifier to :class:`CacheEntry`.

    Size control is deliberately crude: once more than ``max_size`` stores
    have happened, the whole map is discarded on the next store.
    """

    def __init__(self, max_size: int = MAX_CACHE_SIZE) -> None:
        self.max_size = max_size
        self._entries: Dict[str, CacheEntry] = {}
        self._store_count = 0
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def set(self, key: str, entry: CacheEntry) -> None:
        with self._lock:
            if self._store_count > self.max_size:
                logger.info("Image URL cache exceeded %d stores; clearing", self.max_size)
                self._entries = {}
                self._store_count = 0
            self._entries[key] = entry
            self._store_count += 1

    @property
    def store_count(self) -> int:
        return self._store_count

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
