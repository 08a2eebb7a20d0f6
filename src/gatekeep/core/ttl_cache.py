#!/usr/bin/env python3
"""
TTL Cache Module
Per-checker cache of remote availability outcomes.
"""

import time
import logging
from typing import Callable, Dict, Optional

from gatekeep.config import DEFAULT_CACHE_TTL
from gatekeep.core.models import CacheEntry, Outcome

logger = logging.getLogger(__name__)


class TTLCache:
    """Key -> outcome cache with a fixed time-to-live.

    Entries are never evicted; stale ones are ignored at read time and replaced
    on the next successful check. Key spaces are small (one field per screen).
    """

    def __init__(self, ttl: float = DEFAULT_CACHE_TTL, clock: Callable[[], float] = time.time):
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def set(self, key: str, outcome: Outcome) -> CacheEntry:
        entry = CacheEntry(key=key, outcome=outcome, timestamp=self.clock())
        self._entries[key] = entry
        logger.debug(f"Cached {outcome} for {key!r}")
        return entry

    def is_valid(self, entry: CacheEntry, now: Optional[float] = None) -> bool:
        if now is None:
            now = self.clock()
        return now - entry.timestamp < self.ttl

    def lookup(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for key only while it is still fresh."""
        entry = self.get(key)
        if entry is not None and self.is_valid(entry):
            return entry
        return None

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
