"""In-process TTL cache for content API responses.

Entries expire lazily on read. When the store is full the oldest *inserted*
entry is evicted, regardless of how recently it was read.
"""
from __future__ import annotations

import hashlib
import json
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple
from urllib.parse import urlencode

MINUTE = 60
HOUR = 60 * MINUTE

DEFAULT_TTL = MINUTE

# Namespace prefix -> seconds. Longest matching prefix wins.
DEFAULT_TTL_RULES: Dict[str, int] = {
    "posts_": 2 * HOUR,
    "categories_": 6 * HOUR,
    "tags_": 6 * HOUR,
    "popular_": HOUR,
    "featured_": HOUR,
    "homepage_": 4 * HOUR,
    "search_": 15 * MINUTE,
    "pages_": 6 * HOUR,
}


def normalize_params(params: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Stringify query parameters and drop empty ones."""
    out: Dict[str, str] = {}
    for k, v in (params or {}).items():
        if v is None or v == "":
            continue
        if isinstance(v, bool):
            v = "true" if v else "false"
        elif isinstance(v, (list, tuple)):
            v = ",".join(str(x) for x in v)
        out[k] = str(v)
    return out


def make_cache_key(namespace: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Build the cache key for a logical request.

    Parameters are sorted and empty values dropped, so ``{"page": 1, "search": ""}``
    and ``{"search": None, "page": "1"}`` map to the same key.
    """
    return f"{namespace}_{urlencode(sorted(normalize_params(params).items()))}"


def fingerprint(value: Any) -> str:
    raw = json.dumps(value, sort_keys=True, default=str, ensure_ascii=False)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]


class TTLPolicy:
    def __init__(self, rules: Optional[Mapping[str, int]] = None, default: float = DEFAULT_TTL):
        rules = DEFAULT_TTL_RULES if rules is None else rules
        # longest prefix first so the first match is the most specific one
        self._rules: Tuple[Tuple[str, float], ...] = tuple(
            sorted(rules.items(), key=lambda kv: len(kv[0]), reverse=True)
        )
        self.default = default

    def ttl_for(self, key: str) -> float:
        for prefix, ttl in self._rules:
            if key.startswith(prefix):
                return ttl
        return self.default

    def prefixes(self) -> Iterable[str]:
        return [p for p, _ in self._rules]


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    created_at: float
    expires_at: float
    fingerprint: str

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


class TTLCache:
    def __init__(
        self,
        max_entries: int = 1000,
        policy: Optional[TTLPolicy] = None,
        clock: Callable[[], float] = time.time,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.policy = policy or TTLPolicy()
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def now(self) -> float:
        return self._clock()

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> CacheEntry:
        if ttl is None:
            ttl = self.policy.ttl_for(key)
        now = self._clock()
        entry = CacheEntry(value=value, created_at=now, expires_at=now + ttl, fingerprint=fingerprint(value))
        with self._lock:
            # re-setting a key counts as a fresh insertion
            self._entries.pop(key, None)
            while len(self._entries) >= self.max_entries:
                self._entries.popitem(last=False)
            self._entries[key] = entry
        return entry

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if not entry.is_valid(self._clock()):
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return entry

    def get(self, key: str) -> Any:
        entry = self.get_entry(key)
        return entry.value if entry is not None else None

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def keys(self):
        with self._lock:
            return list(self._entries.keys())

    def stats(self) -> Dict[str, Any]:
        total = self.hits + self.misses
        return {
            "size": len(self._entries),
            "max_size": self.max_entries,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hits / total, 3) if total else 0.0,
        }
