"""
TTL-based in-memory cache

Backs the derived, eventually-refreshed points total. The ledger itself is
always authoritative; entries here expire after their TTL and are dropped
on every award for the user.
"""
import logging
import time
from typing import Any, Dict, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)


class TTLCache:
    """Small key/value cache with per-entry expiry"""

    def __init__(self, ttl: float, clock=time.monotonic):
        self.ttl = ttl
        self._clock = clock
        # {key: (value, expiry_timestamp)}
        self._entries: Dict[Hashable, Tuple[Any, float]] = {}
        self.stats = {"hits": 0, "misses": 0, "invalidations": 0}

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            self.stats["misses"] += 1
            return None

        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            self.stats["misses"] += 1
            logger.debug(f"Cache EXPIRED: {key}")
            return None

        self.stats["hits"] += 1
        return value

    def set(self, key: Hashable, value: Any) -> None:
        if self.ttl <= 0:
            return
        self._entries[key] = (value, self._clock() + self.ttl)

    def invalidate(self, key: Hashable) -> None:
        if self._entries.pop(key, None) is not None:
            self.stats["invalidations"] += 1

    def clear(self) -> None:
        self._entries.clear()
