"""
Memoization of parsed items over the content store.

Entries never expire unless a TTL is configured. An expired entry behaves
exactly like a miss: the engine re-fetches and re-parses it from the
content store.
"""

import logging
import threading
import time
from typing import Callable, Optional

from .types import Item

logger = logging.getLogger(__name__)


class ItemCache:
    """
    Thread-safe id -> Item cache with optional TTL eviction.

    Has its own lock so that a miss populated during a shared read of the
    engine does not race another reader doing the same.
    """

    def __init__(
        self,
        ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            ttl: Seconds before an entry expires (None or 0 = never)
            clock: Monotonic time source, injectable for tests
        """
        self._ttl = ttl or None
        self._clock = clock
        self._entries: dict[str, tuple[Item, float]] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> Optional[float]:
        return self._ttl

    def _expired(self, stored_at: float) -> bool:
        return self._ttl is not None and self._clock() - stored_at >= self._ttl

    def get(self, id: str) -> Optional[Item]:
        """Return the cached item, or None on a miss or expiry."""
        with self._lock:
            entry = self._entries.get(id)
            if entry is None:
                return None
            item, stored_at = entry
            if self._expired(stored_at):
                del self._entries[id]
                logger.debug("Cache entry expired: %s", id)
                return None
            return item

    def put(self, id: str, item: Item) -> None:
        with self._lock:
            self._entries[id] = (item, self._clock())

    def discard(self, id: str) -> None:
        with self._lock:
            self._entries.pop(id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def ids(self) -> list[str]:
        """Ids of live entries."""
        with self._lock:
            return [id for id, (_, ts) in self._entries.items() if not self._expired(ts)]

    def values(self) -> list[Item]:
        """Live cached items."""
        with self._lock:
            return [item for item, ts in self._entries.values() if not self._expired(ts)]

    def __contains__(self, id: object) -> bool:
        return isinstance(id, str) and self.get(id) is not None

    def __len__(self) -> int:
        return len(self.ids())
