"""WordPress REST API operations used by the pages.

Every call goes through the shared ResilientFetcher. Page handlers never see
upstream errors: a missing item is ``None``, a failed list is ``[]``.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from ..errors import ContentApiError, HttpError, NotFoundError
from .fetcher import ResilientFetcher
from .ttl_cache import make_cache_key

logger = logging.getLogger(__name__)

POST_FIELDS = "id,title,slug,content,excerpt,date,modified,featured_media,link,_links,_embedded"
PAGE_FIELDS = "id,title,slug,content,excerpt,date,modified,link,_links,_embedded"
SITEMAP_PAGE_SIZE = 100
SITEMAP_MAX_PAGES = 20


def empty_page() -> Dict[str, Any]:
    return {"items": [], "total": 0, "total_pages": 0}


class WordPressClient:
    def __init__(self, fetcher: ResilientFetcher):
        self.fetcher = fetcher

    @property
    def cache(self):
        return self.fetcher.cache

    def _call(self, method: Callable[..., Any], resource: str, params: Dict[str, Any], namespace: Optional[str]) -> Any:
        try:
            return method(resource, params, namespace=namespace)
        except HttpError as e:
            # WordPress answers 400 for a page number past the end
            if e.status_code == 400:
                logger.info("[WordPress API] 400 for %s %s, treating as empty", resource, params)
            else:
                logger.error("[WordPress API] %s", e)
        except ContentApiError as e:
            logger.error("[WordPress API] %s", e)
        return None

    def _list(self, resource: str, params: Dict[str, Any], namespace: Optional[str] = None) -> List[Dict[str, Any]]:
        data = self._call(self.fetcher.get_json, resource, params, namespace)
        return data if isinstance(data, list) else []

    def _page(self, resource: str, params: Dict[str, Any], namespace: Optional[str] = None) -> Dict[str, Any]:
        page = self._call(self.fetcher.get_page, resource, params, namespace)
        if not isinstance(page, dict) or not isinstance(page.get("items"), list):
            return empty_page()
        return page

    def _first(self, resource: str, params: Dict[str, Any], namespace: Optional[str] = None) -> Optional[Dict[str, Any]]:
        items = self._list(resource, params, namespace)
        return items[0] if items else None

    def get_posts_page(
        self,
        page: int = 1,
        per_page: int = 10,
        category_id: Optional[int] = None,
        tag_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Posts of one listing page with the upstream ``total``/``total_pages`` (None when not sent)."""
        params = {
            "page": page,
            "per_page": per_page,
            "_embed": True,
            "_fields": POST_FIELDS,
            "orderby": "date",
            "order": "desc",
            "status": "publish",
            "categories": category_id,
            "tags": tag_id,
            "search": search,
        }
        return self._page("posts", params, namespace="search" if search else "posts")

    def get_posts(
        self,
        page: int = 1,
        per_page: int = 10,
        category_id: Optional[int] = None,
        tag_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        return self.get_posts_page(page, per_page, category_id, tag_id, search)["items"]

    def search_posts_page(self, query: str, page: int = 1, per_page: int = 10) -> Dict[str, Any]:
        query = (query or "").strip()
        if not query:
            return empty_page()
        return self.get_posts_page(page=page, per_page=per_page, search=query)

    def search_posts(self, query: str, page: int = 1, per_page: int = 10) -> List[Dict[str, Any]]:
        return self.search_posts_page(query, page, per_page)["items"]

    def get_posts_by_category(self, category_id: int, page: int = 1, per_page: int = 10) -> List[Dict[str, Any]]:
        return self.get_posts(page=page, per_page=per_page, category_id=category_id)

    def get_posts_by_tag(self, tag_id: int, page: int = 1, per_page: int = 10) -> List[Dict[str, Any]]:
        return self.get_posts(page=page, per_page=per_page, tag_id=tag_id)

    def get_post_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        if not slug:
            return None
        return self._first("posts", {"slug": slug, "_embed": True})

    def get_post_by_id(self, post_id: int) -> Optional[Dict[str, Any]]:
        try:
            return self.fetcher.get_json(f"posts/{int(post_id)}", {"_embed": True})
        except NotFoundError:
            return None
        except ContentApiError as e:
            logger.error("[WordPress API] %s", e)
            return None

    def get_popular_posts(self, limit: int = 6) -> List[Dict[str, Any]]:
        # No popularity field upstream; the newest posts stand in, cached under popular_.
        params = {"page": 1, "per_page": limit, "_embed": True, "_fields": POST_FIELDS, "orderby": "date", "order": "desc"}
        return self._list("posts", params, namespace="popular_posts")

    def get_pages(self) -> List[Dict[str, Any]]:
        params = {"per_page": SITEMAP_PAGE_SIZE, "_embed": True, "_fields": PAGE_FIELDS, "status": "publish"}
        return self._list("pages", params)

    def get_page_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        if not slug:
            return None
        return self._first("pages", {"slug": slug, "_embed": True})

    def get_categories(self) -> List[Dict[str, Any]]:
        return self._list("categories", {"per_page": 100, "hide_empty": True, "orderby": "count", "order": "desc"})

    def get_category_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        return self._first("categories", {"slug": slug}) if slug else None

    def get_tags(self) -> List[Dict[str, Any]]:
        return self._list("tags", {"per_page": 100, "hide_empty": True, "orderby": "count", "order": "desc"})

    def get_tag_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        return self._first("tags", {"slug": slug}) if slug else None

    def get_homepage_data(self) -> Dict[str, List[Dict[str, Any]]]:
        key = make_cache_key("homepage_data")
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        data = {
            "posts": self.get_posts(1, 6),
            "categories": self.get_categories(),
            "tags": self.get_tags(),
            "popular_posts": self.get_popular_posts(6),
        }
        # a degraded (empty) homepage is not worth keeping for hours
        if data["posts"]:
            self.cache.set(key, data)
        return data

    def get_sitemap_posts(self) -> List[Dict[str, Any]]:
        posts: List[Dict[str, Any]] = []
        for page in range(1, SITEMAP_MAX_PAGES + 1):
            result = self.get_posts_page(page=page, per_page=SITEMAP_PAGE_SIZE)
            posts.extend(result["items"])
            total_pages = result.get("total_pages")
            if len(result["items"]) < SITEMAP_PAGE_SIZE or (total_pages is not None and page >= total_pages):
                break
        return posts

    def get_all_post_slugs(self) -> List[str]:
        return [p["slug"] for p in self.get_sitemap_posts() if p.get("slug")]

    def check_api_health(self) -> Dict[str, Any]:
        origins = self.fetcher.origins()
        result: Dict[str, Any] = {"primary": False, "fallback": False, "message": ""}
        messages = []
        for name, origin in zip(("primary", "fallback"), origins):
            outcome = self.fetcher.attempt(f"{origin}/posts", {"per_page": "1"})
            result[name] = outcome.ok
            if outcome.ok:
                messages.append(f"{name.title()} API: OK.")
            elif outcome.status is not None:
                messages.append(f"{name.title()} API: HTTP {outcome.status}.")
            else:
                messages.append(f"{name.title()} API: {outcome.kind}.")
        if len(origins) == 1:
            result["fallback"] = result["primary"]
            messages.append("Fallback API: Same as primary.")
        result["message"] = " ".join(messages)
        return result
