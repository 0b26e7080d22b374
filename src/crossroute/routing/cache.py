"""TTL cache for quote verification results.

Entries are derived data: a lost or duplicated write only costs an extra
RPC call, so there is no locking. A cached None is a remembered
"no liquidity" answer and is distinct from a miss.
"""

import itertools
import logging
import time
from typing import Callable, Hashable

logger = logging.getLogger(__name__)

MISSING = object()


class VerificationCache:
    """Process-wide map of verification results with a fixed TTL."""

    def __init__(
        self,
        ttl_seconds: float = 30.0,
        max_entries: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the cache.

        Args:
            ttl_seconds: Lifetime of an entry
            max_entries: Size cap; writes past it drop expired, then oldest, entries
            clock: Monotonic time source (injectable for tests)
        """
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, object]] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(chain_id: int, dex_id: str, path: list[str], amount_in: int) -> tuple:
        return (chain_id, dex_id, tuple(token.lower() for token in path), amount_in)

    def get(self, key: Hashable, default=MISSING):
        """Return the cached value, or default when missing or expired."""
        entry = self._entries.get(key)
        if entry is not None:
            expires_at, value = entry
            if self._clock() < expires_at:
                self.hits += 1
                return value
            self._entries.pop(key, None)
        self.misses += 1
        return default

    def contains(self, key: Hashable) -> bool:
        return self.get(key) is not MISSING

    def set(self, key: Hashable, value: object) -> None:
        # re-inserting keeps the map in expiry order
        self._entries.pop(key, None)
        self._entries[key] = (self._clock() + self.ttl_seconds, value)
        if len(self._entries) > self.max_entries:
            self.evict_expired()
            self._drop_oldest(len(self._entries) - self.max_entries)

    def evict_expired(self) -> int:
        """Drop expired entries, returning how many were removed.

        Every entry shares one TTL, so the map's insertion order is its expiry
        order and the walk stops at the first live entry.
        """
        now = self._clock()
        expired = 0
        while self._entries:
            key = next(iter(self._entries))
            if self._entries[key][0] > now:
                break
            del self._entries[key]
            expired += 1
        if expired:
            logger.debug(f"Evicted {expired} expired verification entries")
        return expired

    def _drop_oldest(self, count: int) -> None:
        if count <= 0:
            return
        for key in list(itertools.islice(self._entries, count)):
            del self._entries[key]
        logger.debug(f"Dropped {count} oldest verification entries over the size cap")

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

