"""Cached JSON GETs against a flaky upstream, with retries and origin failover.

Lookup order: in-process TTL store, persistent tier, primary origin (up to
``max_attempts`` tries), then the fallback origin (same number of tries) when
one is configured and differs from the primary.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

import requests

from ..errors import ContentApiError, HttpError, NetworkError, NotFoundError, RequestTimeoutError
from .cache_service import CacheService
from .ttl_cache import make_cache_key, normalize_params

logger = logging.getLogger(__name__)

TIMEOUT = 10  # seconds
MAX_ATTEMPTS = 4
BACKOFF = 0.5
MAX_BACKOFF = 8.0
HEADERS = {
    "Accept": "application/json",
    "User-Agent": "IndexOf-Headless/1.0",
}
# The request itself is wrong or the resource is absent; asking again won't help.
NO_RETRY_STATUSES = frozenset({400, 404})

SUCCESS = "success"
HTTP_ERROR = "http_error"
NETWORK_ERROR = "network_error"
TIMED_OUT = "timeout"


@dataclass(frozen=True)
class FetchOutcome:
    kind: str
    data: Any = None
    status: Optional[int] = None
    cause: Optional[BaseException] = None
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.kind == SUCCESS

    @classmethod
    def success(cls, data: Any, headers: Optional[Mapping[str, str]] = None) -> "FetchOutcome":
        return cls(SUCCESS, data=data, headers=headers or {})

    @classmethod
    def http_error(cls, status: int) -> "FetchOutcome":
        return cls(HTTP_ERROR, status=status)

    @classmethod
    def network_error(cls, cause: BaseException) -> "FetchOutcome":
        return cls(NETWORK_ERROR, cause=cause)

    @classmethod
    def timeout(cls, cause: Optional[BaseException] = None) -> "FetchOutcome":
        return cls(TIMED_OUT, cause=cause)


def join_url(origin: str, resource: str) -> str:
    resource = (resource or "").strip("/")
    origin = origin.rstrip("/")
    return f"{origin}/{resource}" if resource else origin


class ResilientFetcher:
    def __init__(
        self,
        cache: CacheService,
        primary_origin: str,
        fallback_origin: Optional[str] = None,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = TIMEOUT,
        max_attempts: int = MAX_ATTEMPTS,
        backoff: float = BACKOFF,
        max_backoff: float = MAX_BACKOFF,
        headers: Optional[Mapping[str, str]] = None,
        sleep: Callable[[float], None] = time.sleep,
        label: str = "WordPress API",
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.cache = cache
        self.primary_origin = primary_origin.rstrip("/")
        self.fallback_origin = fallback_origin.rstrip("/") if fallback_origin else None
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.max_backoff = max_backoff
        self.headers = dict(headers or HEADERS)
        self._sleep = sleep
        self.label = label

    def origins(self) -> List[str]:
        origins = [self.primary_origin]
        if self.fallback_origin and self.fallback_origin != self.primary_origin:
            origins.append(self.fallback_origin)
        return origins

    def cache_key(self, resource: str, params: Optional[Mapping[str, Any]] = None, namespace: Optional[str] = None) -> str:
        if namespace is None:
            namespace = resource.strip("/").replace("/", "_") or "root"
        return make_cache_key(namespace, params)

    def get_json(
        self,
        resource: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        namespace: Optional[str] = None,
        ttl: Optional[float] = None,
        use_cache: bool = True,
    ) -> Any:
        key = self.cache_key(resource, params, namespace)
        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("[%s] cache hit %s", self.label, key)
                return cached

        data = self.fetch(resource, params)
        if use_cache:
            self.cache.set(key, data, ttl)
        return data

    def get_page(
        self,
        resource: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        namespace: Optional[str] = None,
        ttl: Optional[float] = None,
    ) -> Dict[str, Any]:
        """One page of a collection: ``{"items", "total", "total_pages"}``.

        The totals come from the ``X-WP-Total`` / ``X-WP-TotalPages`` headers
        and are None when the upstream does not send them.
        """
        key = self.cache_key(resource, params, namespace)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        outcome = self.fetch_outcome(resource, params)
        page = {
            "items": outcome.data,
            "total": header_int(outcome.headers, "X-WP-Total"),
            "total_pages": header_int(outcome.headers, "X-WP-TotalPages"),
        }
        self.cache.set(key, page, ttl)
        return page

    def fetch(self, resource: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return self.fetch_outcome(resource, params).data

    def fetch_outcome(self, resource: str, params: Optional[Mapping[str, Any]] = None) -> FetchOutcome:
        """Run the attempt sequence on each origin; raises ContentApiError when all fail."""
        query = normalize_params(params)
        attempts = 0
        last: Optional[FetchOutcome] = None
        url = join_url(self.primary_origin, resource)
        for origin in self.origins():
            url = join_url(origin, resource)
            if origin != self.primary_origin:
                logger.info("[%s] trying fallback origin %s", self.label, origin)
            for attempt in range(self.max_attempts):
                outcome = self.attempt(url, query)
                attempts += 1
                if outcome.ok:
                    return outcome
                last = outcome
                if outcome.kind == HTTP_ERROR and outcome.status in NO_RETRY_STATUSES:
                    raise self._error(outcome, url, attempts)
                if attempt < self.max_attempts - 1:
                    delay = min(self.backoff * (2 ** attempt), self.max_backoff)
                    logger.info(
                        "[%s] %s for %s, retrying in %.1fs (attempt %d/%d)",
                        self.label, describe(outcome), url, delay, attempt + 1, self.max_attempts,
                    )
                    self._sleep(delay)
            logger.warning("[%s] %d attempts failed on %s", self.label, self.max_attempts, origin)
        raise self._error(last, url, attempts)

    def attempt(self, url: str, params: Optional[Mapping[str, str]] = None) -> FetchOutcome:
        try:
            r = self.session.get(url, params=params, headers=self.headers, timeout=self.timeout)
        except requests.Timeout as e:
            return FetchOutcome.timeout(e)
        except requests.RequestException as e:
            return FetchOutcome.network_error(e)
        if not 200 <= r.status_code < 300:
            return FetchOutcome.http_error(r.status_code)
        try:
            return FetchOutcome.success(r.json(), r.headers)
        except ValueError as e:
            # HTML error pages served with 200 land here
            return FetchOutcome.network_error(e)

    def _error(self, outcome: Optional[FetchOutcome], url: str, attempts: int) -> ContentApiError:
        if outcome is None:
            return ContentApiError(f"No attempt was made for {url}", attempts=attempts)
        if outcome.kind == HTTP_ERROR:
            if outcome.status == 404:
                return NotFoundError(f"Not found: {url}", outcome.status, attempts)
            return HttpError(f"{self.label} error for {url}", outcome.status, attempts)
        if outcome.kind == TIMED_OUT:
            return RequestTimeoutError(f"{self.label} timed out after {attempts} attempts: {url}", attempts=attempts)
        return NetworkError(f"{self.label} unreachable after {attempts} attempts: {url} ({outcome.cause})", attempts=attempts)


def header_int(headers: Mapping[str, str], name: str) -> Optional[int]:
    try:
        return int(headers.get(name))
    except (TypeError, ValueError):
        return None


def describe(outcome: FetchOutcome) -> str:
    if outcome.kind == HTTP_ERROR:
        return f"HTTP {outcome.status}"
    if outcome.kind == TIMED_OUT:
        return "timeout"
    return f"network error ({outcome.cause})"
