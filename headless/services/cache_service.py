from __future__ import annotations

from typing import Any, Dict, Optional

from .persistent_cache import PersistentCache
from .ttl_cache import CacheEntry, TTLCache


class CacheService:
    """Both cache tiers behind one get/set/clear interface.

    Built once in ``create_app`` and shared by every fetcher and route; it is
    only emptied by the revalidation endpoint.
    """

    def __init__(self, store: TTLCache, persistent: Optional[PersistentCache] = None):
        self.store = store
        self.persistent = persistent

    def get(self, key: str) -> Any:
        value = self.store.get(key)
        if value is not None:
            return value
        if self.persistent is None:
            return None
        entry = self.persistent.get_entry(key)
        if entry is None:
            return None
        # keep the expiry the value was stored with
        self.store.set(key, entry.value, entry.expires_at - self.store.now())
        return entry.value

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        return self.store.get_entry(key)

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        self.store.set(key, value, ttl)
        if self.persistent is not None:
            self.persistent.set(key, value, ttl)

    def delete(self, key: str) -> None:
        self.store.delete(key)
        if self.persistent is not None:
            self.persistent.delete(key)

    def clear(self) -> None:
        self.store.clear()
        if self.persistent is not None:
            self.persistent.clear()

    def stats(self) -> Dict[str, Any]:
        return {
            "memory": self.store.stats(),
            "persistent": self.persistent.stats() if self.persistent is not None else None,
        }
