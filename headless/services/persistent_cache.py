"""MongoDB mirror of cached content, kept across restarts.

Best effort only: a corrupt document, an expired one or a database error is
reported as a miss, never raised.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, Optional

from pymongo.errors import PyMongoError

from .ttl_cache import CacheEntry, TTLPolicy, fingerprint

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 5 * 1024 * 1024


class PersistentCache:
    def __init__(
        self,
        collection,
        max_bytes: int = DEFAULT_MAX_BYTES,
        policy: Optional[TTLPolicy] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.collection = collection
        self.max_bytes = max_bytes
        self.policy = policy or TTLPolicy()
        self._clock = clock

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        """The stored entry with its original expiry, or None on any kind of miss."""
        try:
            doc = self.collection.find_one({"_id": key})
        except PyMongoError as e:
            logger.warning("[Persistent Cache] read failed for %s: %s", key, e)
            return None
        if not doc:
            return None
        try:
            expires_at = float(doc["expires_at"])
            created_at = float(doc.get("created_at") or 0)
            value = json.loads(doc["value"])
        except (KeyError, TypeError, ValueError):
            logger.info("[Persistent Cache] dropping unreadable entry %s", key)
            self._discard(key)
            return None
        entry = CacheEntry(value=value, created_at=created_at, expires_at=expires_at, fingerprint=fingerprint(value))
        if not entry.is_valid(self._clock()):
            self._discard(key)
            return None
        return entry

    def get(self, key: str) -> Any:
        entry = self.get_entry(key)
        return entry.value if entry is not None else None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        """Store ``value``; returns False when it was not kept."""
        try:
            raw = json.dumps(value, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return False
        size = len(raw.encode("utf-8"))
        if size > self.max_bytes:
            return False
        if ttl is None:
            ttl = self.policy.ttl_for(key)
        now = self._clock()
        try:
            self.collection.delete_one({"_id": key})
            self._make_room(size)
            self.collection.replace_one(
                {"_id": key},
                {"_id": key, "value": raw, "size": size, "created_at": now, "expires_at": now + ttl},
                upsert=True,
            )
        except PyMongoError as e:
            logger.warning("[Persistent Cache] write failed for %s: %s", key, e)
            return False
        return True

    def _make_room(self, incoming: int) -> None:
        docs = list(self.collection.find({}, {"size": 1, "created_at": 1}).sort("created_at", 1))
        used = sum(int(d.get("size") or 0) for d in docs)
        for d in docs:
            if used + incoming <= self.max_bytes:
                break
            self.collection.delete_one({"_id": d["_id"]})
            used -= int(d.get("size") or 0)

    def _discard(self, key: str) -> None:
        try:
            self.collection.delete_one({"_id": key})
        except PyMongoError as e:
            logger.debug("[Persistent Cache] could not drop %s: %s", key, e)

    def delete(self, key: str) -> None:
        self._discard(key)

    def clear(self) -> None:
        try:
            self.collection.delete_many({})
        except PyMongoError as e:
            logger.warning("[Persistent Cache] clear failed: %s", e)

    def stats(self) -> Dict[str, Any]:
        try:
            docs = list(self.collection.find({}, {"size": 1}))
        except PyMongoError:
            return {"size": None, "bytes": None, "max_bytes": self.max_bytes}
        return {
            "size": len(docs),
            "bytes": sum(int(d.get("size") or 0) for d in docs),
            "max_bytes": self.max_bytes,
        }
