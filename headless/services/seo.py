from __future__ import annotations

# Rank Math head fragments: fetched through the shared cache, parsed by
# metadata.extract_seo_metadata. Failures are logged and reported as "no data".

import logging
from typing import Any, Dict, Optional, Tuple

import requests
from flask import current_app

from metadata import SEOMetadata, extract_seo_metadata, normalize_url

from ..errors import ContentApiError
from ..utils.urls import DomainMapping
from .cache_service import CacheService
from .fetcher import ResilientFetcher
from .ttl_cache import HOUR

logger = logging.getLogger(__name__)

TIMEOUT = 5
PROXY_TIMEOUT = 10
CACHE_TTL = HOUR
HEADERS = {
    "Accept": "application/json",
    "User-Agent": "IndexOf-Headless/1.0",
}
PROXY_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "IndexOf-Headless-Proxy/1.0",
    "Cache-Control": "no-cache",
}


class RankMathClient:
    def __init__(
        self,
        cache: CacheService,
        api_url: str,
        enabled: bool,
        domains: DomainMapping,
        site_url: str = "",
        *,
        session: Optional[requests.Session] = None,
        timeout: float = TIMEOUT,
        proxy_timeout: float = PROXY_TIMEOUT,
    ):
        self.api_url = (api_url or "").rstrip("/")
        self.enabled = enabled
        self.domains = domains
        self.site_url = site_url
        self.proxy_timeout = proxy_timeout
        self.fetcher = ResilientFetcher(
            cache,
            self.api_url or "http://localhost",
            session=session,
            timeout=timeout,
            max_attempts=1,
            headers=HEADERS,
            label="RankMath",
        )

    @property
    def cache(self) -> CacheService:
        return self.fetcher.cache

    @property
    def session(self) -> requests.Session:
        return self.fetcher.session

    def is_enabled(self) -> bool:
        return bool(self.enabled and self.api_url)

    def get_seo_head(self, url: str) -> Optional[str]:
        """Raw head fragment for ``url``, or None when disabled, missing or failing."""
        if not self.is_enabled():
            logger.debug("[RankMath] API is disabled or not configured")
            return None
        full_url, err = normalize_url(url, self.site_url)
        if err:
            logger.warning("[RankMath] %s: %r", err, url)
            return None

        params = {"url": full_url}
        key = self.fetcher.cache_key("", params, namespace="rankmath")
        cached = self.cache.get(key)
        if cached is not None:
            return cached.get("head")

        try:
            data = self.fetcher.fetch("", params)
        except ContentApiError as e:
            logger.error("[RankMath] API error for %s: %s", full_url, e)
            return None
        if not isinstance(data, dict) or not data.get("success") or not data.get("head"):
            logger.warning("[RankMath] API returned no head for %s", full_url)
            return None
        self.cache.set(key, {"success": True, "head": data["head"]}, CACHE_TTL)
        return data["head"]

    def get_seo_metadata(self, url: str) -> SEOMetadata:
        return extract_seo_metadata(self.get_seo_head(url), self.domains)

    def proxy(self, frontend_url: Optional[str]) -> Tuple[Dict[str, Any], int]:
        """Forward a frontend URL to the SEO API; returns ``(payload, status)``."""
        if not self.is_enabled():
            return {"success": False, "error": "RankMath API not configured"}, 400
        if not frontend_url:
            return {"success": False, "error": "URL parameter is required"}, 400

        backend_url = self.domains.to_backend(frontend_url)
        logger.info("[RankMath Proxy] %s -> %s", frontend_url, backend_url)
        try:
            r = self.session.get(
                self.api_url,
                params={"url": backend_url},
                headers=PROXY_HEADERS,
                timeout=self.proxy_timeout,
            )
        except requests.Timeout:
            return {"success": False, "error": "Request timeout"}, 408
        except requests.RequestException as e:
            return {"success": False, "error": str(e)}, 500

        if not 200 <= r.status_code < 300:
            logger.error("[RankMath Proxy] HTTP error %s for %s", r.status_code, backend_url)
            return {"success": False, "error": f"HTTP error! status: {r.status_code}"}, r.status_code
        try:
            data = r.json()
        except ValueError:
            return {"success": False, "error": "Invalid JSON from RankMath API"}, 500
        if isinstance(data, dict) and isinstance(data.get("head"), str):
            data["head"] = self.domains.rewrite_text(data["head"])
        return data, 200

    def test_connection(self) -> bool:
        if not self.is_enabled():
            return False
        return self.get_seo_head(self.site_url or "/") is not None


def get_or_fetch(url: str) -> Dict[str, Any]:
    """SEO metadata for ``url`` as a plain dict; empty when nothing usable came back."""
    client: RankMathClient = current_app.extensions["seo"]
    meta = client.get_seo_metadata(url)
    return {} if meta.is_empty else meta.to_dict()
