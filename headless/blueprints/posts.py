from flask import Blueprint, abort, current_app, make_response, render_template, request

from metadata import tokenize, TITLE_MIN_LEN
from ..services.content import post_view
from ..services.seo import get_or_fetch
from ..services.ttl_cache import fingerprint

bp = Blueprint("posts", __name__)

RESERVED = {"api", "static", "blog", "search", "category", "tag"}


def pick(a, b):
    """First of a/b that is a non-blank string or a non-empty value."""
    a_ok = bool((a or "").strip()) if isinstance(a, str) else bool(a)
    b_ok = bool((b or "").strip()) if isinstance(b, str) else bool(b)
    return a if a_ok else (b if b_ok else None)


def fallback_meta(post, site_name, site_url):
    """Metadata built from the post itself, used wherever Rank Math has nothing."""
    title = f"{post['title']} - {site_name}" if site_name else post["title"]
    url = f"{site_url}/{post['slug']}" if site_url else post["link"]
    keywords = [t["name"] for t in post["tags"] if t.get("name")] or tokenize(post["title"], TITLE_MIN_LEN)[:5]
    return {
        "title": title,
        "description": post["excerpt"],
        "keywords": keywords,
        "canonical_url": url,
        "image": post["image"],
        "open_graph": {"title": post["title"], "description": post["excerpt"], "image": post["image"], "type": "article", "url": url},
        "twitter": {"title": post["title"], "description": post["excerpt"], "image": post["image"], "card": "summary_large_image"},
        "structured_data": [{
            "@context": "https://schema.org",
            "@type": "BlogPosting",
            "headline": post["title"],
            "description": post["excerpt"],
            "image": post["image"],
            "datePublished": post["date"],
            "dateModified": post["modified"],
            "author": {"@type": "Person", "name": post["author_name"]} if post["author_name"] else None,
            "mainEntityOfPage": url,
        }],
    }


def merge_meta(seo, local):
    merged = {k: pick(seo.get(k), local.get(k)) for k in ("title", "description", "keywords", "canonical_url", "image", "structured_data")}
    merged["robots"] = seo.get("robots") or "index, follow"
    for group in ("open_graph", "twitter"):
        a, b = seo.get(group) or {}, local.get(group) or {}
        merged[group] = {k: pick(a.get(k), b.get(k)) for k in set(a) | set(b)}
    if isinstance(merged["keywords"], list):
        merged["keywords"] = ", ".join(merged["keywords"])
    return merged


@bp.get("/<slug>")
def post_detail(slug):
    if slug in RESERVED:
        abort(404)
    wp = current_app.extensions["wordpress"]
    # WordPress pages share the top-level URL space with posts
    raw = wp.get_post_by_slug(slug) or wp.get_page_by_slug(slug)
    if not raw:
        abort(404)
    post = post_view(raw, current_app.extensions["domains"])

    cfg = current_app.config
    site_url = (cfg.get("SITE_URL") or "").rstrip("/")
    # Rank Math knows the post by its backend permalink
    seo = {}
    if raw.get("link"):
        seo = get_or_fetch(raw["link"])
    meta = merge_meta(seo, fallback_meta(post, cfg.get("SITE_NAME", ""), site_url))

    resp = make_response(render_template("post_detail.html", post=post, meta=meta))
    resp.set_etag(fingerprint(raw))
    return resp.make_conditional(request)
