"""Client-side caches.

Learn: Two caches with deliberately different invalidation rules:

- QueryCache holds whole lists (my prayers, the public feed, a prayer's
  comments) keyed by a tuple. Anything that changes shared state, locally
  or via a /ws event, invalidates the affected keys and the next reader
  refetches the authoritative list.
- RecordCache holds single records fetched by id for the paging view. It
  is never invalidated during a session: paging back and forth must be
  instant, and a slightly stale detail view is acceptable.
"""

from typing import Any, Awaitable, Callable, Hashable, Optional

import structlog

logger = structlog.get_logger()

# Well-known list keys
MY_PRAYERS = ("my-prayers",)
PUBLIC_PRAYERS = ("public-prayers",)


def comments_key(prayer_id: str) -> tuple:
    return ("comments", str(prayer_id))


class QueryCache:
    """Keyed list cache with explicit invalidation."""

    def __init__(self) -> None:
        self._data: dict[Hashable, Any] = {}
        self._stale: set[Hashable] = set()

    def get(self, key: Hashable) -> Optional[Any]:
        if key in self._stale:
            return None
        return self._data.get(key)

    def set(self, key: Hashable, value: Any) -> None:
        self._data[key] = value
        self._stale.discard(key)

    def invalidate(self, *keys: Hashable) -> None:
        for key in keys:
            if key in self._data:
                self._stale.add(key)
        logger.debug("cache.invalidated", keys=[str(k) for k in keys])

    def is_stale(self, key: Hashable) -> bool:
        return key in self._stale

    async def fetch(self, key: Hashable, loader: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value, or load, store and return a fresh one."""
        value = self.get(key)
        if value is None:
            value = await loader()
            self.set(key, value)
        return value


class RecordCache:
    """id → last successfully fetched record body. No eviction."""

    def __init__(self) -> None:
        self._records: dict[str, dict] = {}
        self.network_fetches = 0

    def __contains__(self, record_id: object) -> bool:
        return str(record_id) in self._records

    def __len__(self) -> int:
        return len(self._records)

    def get(self, record_id: Any) -> Optional[dict]:
        return self._records.get(str(record_id))

    def put(self, record_id: Any, record: dict) -> None:
        self._records[str(record_id)] = record

    async def fetch(
        self, record_id: Any, loader: Callable[[Any], Awaitable[dict]]
    ) -> dict:
        """Cache hit short-circuits the network; a miss calls loader once."""
        cached = self.get(record_id)
        if cached is not None:
            return cached
        self.network_fetches += 1
        record = await loader(record_id)
        self.put(record_id, record)
        return record
