import re
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

_ws_re = re.compile(r"\s+")


def rendered(obj: Optional[Dict[str, Any]], field: str) -> str:
    """WordPress wraps text fields as {"rendered": "..."}; accept plain strings too."""
    if not obj:
        return ""
    value = obj.get(field)
    if isinstance(value, dict):
        return value.get("rendered") or ""
    return value or ""


def to_plain_text(html: str, limit: Optional[int] = None) -> str:
    if not html:
        return ""
    text = BeautifulSoup(html, "html.parser").get_text(" ")
    text = _ws_re.sub(" ", text).strip()
    if limit and len(text) > limit:
        text = text[:limit].rsplit(" ", 1)[0].rstrip(" ,.;:") + "…"
    return text


def content_images(html: str) -> List[Dict[str, str]]:
    """``[{"url", "title"}]`` for every <img> with a src, in document order, without duplicates."""
    if not html:
        return []
    images: List[Dict[str, str]] = []
    seen = set()
    for img in BeautifulSoup(html, "html.parser").find_all("img"):
        src = (img.get("src") or "").strip()
        if not src or src in seen:
            continue
        seen.add(src)
        images.append({"url": src, "title": (img.get("alt") or "").strip()})
    return images


def featured_media(post: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    media = ((post or {}).get("_embedded") or {}).get("wp:featuredmedia") or []
    first = media[0] if media else None
    return first if isinstance(first, dict) and first.get("source_url") else None


def post_terms(post: Dict[str, Any], taxonomy: str) -> List[Dict[str, Any]]:
    """Embedded terms of one taxonomy ("category" or "post_tag")."""
    groups = ((post or {}).get("_embedded") or {}).get("wp:term") or []
    for group in groups:
        if group and isinstance(group, list) and group[0].get("taxonomy") == taxonomy:
            return group
    return []


def post_author(post: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    authors = ((post or {}).get("_embedded") or {}).get("author") or []
    return authors[0] if authors and isinstance(authors[0], dict) else None
