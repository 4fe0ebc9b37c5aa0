from datetime import datetime, timezone
from xml.sax.saxutils import escape

from flask import Blueprint, current_app, Response

from ..utils.text import content_images, featured_media, rendered, to_plain_text

bp = Blueprint("sitemaps", __name__)

XML_HEADERS = {"Cache-Control": "public, max-age=3600, s-maxage=3600"}


def _base_url() -> str:
    return (current_app.config.get("SITE_URL") or "").rstrip("/")


def _lastmod(value) -> str:
    if not value:
        return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S+00:00")
    try:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return str(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def post_images(post):
    """Featured image first, then every distinct <img> of the body."""
    images = []
    title = to_plain_text(rendered(post, "title"))
    media = featured_media(post)
    if media:
        images.append({"url": media["source_url"], "title": to_plain_text(rendered(media, "title")) or title})
    for img in content_images(rendered(post, "content")):
        if all(i["url"] != img["url"] for i in images):
            images.append({"url": img["url"], "title": img["title"] or title})
    return images


def _urlset(entries, with_images=False):
    ns = 'xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"'
    if with_images:
        ns += ' xmlns:image="http://www.google.com/schemas/sitemap-image/1.1"'
    lines = ['<?xml version="1.0" encoding="UTF-8"?>', f"<urlset {ns}>"]
    for e in entries:
        lines.append("  <url>")
        lines.append(f"    <loc>{escape(e['loc'])}</loc>")
        lines.append(f"    <lastmod>{escape(e['lastmod'])}</lastmod>")
        lines.append(f"    <changefreq>{e['changefreq']}</changefreq>")
        lines.append(f"    <priority>{e['priority']}</priority>")
        for img in e.get("images", []):
            lines.append("    <image:image>")
            lines.append(f"      <image:loc>{escape(img['url'])}</image:loc>")
            if img.get("title"):
                lines.append(f"      <image:title>{escape(img['title'])}</image:title>")
            lines.append("    </image:image>")
        lines.append("  </url>")
    lines.append("</urlset>")
    return Response("\n".join(lines), mimetype="application/xml", headers=XML_HEADERS)


@bp.get("/post-sitemap.xml")
def post_sitemap():
    base = _base_url()
    entries = [
        {
            "loc": f"{base}/{p['slug']}",
            "lastmod": _lastmod(p.get("modified") or p.get("date")),
            "changefreq": "weekly",
            "priority": "0.8",
            "images": post_images(p),
        }
        for p in current_app.extensions["wordpress"].get_sitemap_posts()
        if p.get("slug")
    ]
    return _urlset(entries, with_images=True)


# Routes this app serves itself, listed ahead of the CMS pages
STATIC_PAGES = [("", "1.0"), ("blog", "0.8"), ("search", "0.5")]


@bp.get("/page-sitemap.xml")
def page_sitemap():
    base = _base_url()
    now = _lastmod(None)
    entries = [
        {"loc": f"{base}/{path}" if path else base, "lastmod": now, "changefreq": "weekly", "priority": priority}
        for path, priority in STATIC_PAGES
    ]
    entries += [
        {
            "loc": f"{base}/{p['slug']}",
            "lastmod": _lastmod(p.get("modified") or p.get("date")),
            "changefreq": "weekly",
            "priority": "0.8",
            "images": post_images(p),
        }
        for p in current_app.extensions["wordpress"].get_pages()
        if p.get("slug")
    ]
    return _urlset(entries, with_images=True)


def _taxonomy_sitemap(terms, prefix):
    base = _base_url()
    now = _lastmod(None)
    entries = [
        {"loc": f"{base}/{prefix}/{t['slug']}", "lastmod": now, "changefreq": "weekly", "priority": "0.6"}
        for t in terms
        if t.get("slug") and (t.get("count") or 0) > 0
    ]
    return _urlset(entries)


@bp.get("/category-sitemap.xml")
def category_sitemap():
    return _taxonomy_sitemap(current_app.extensions["wordpress"].get_categories(), "category")


@bp.get("/tag-sitemap.xml")
def tag_sitemap():
    return _taxonomy_sitemap(current_app.extensions["wordpress"].get_tags(), "tag")


@bp.get("/robots.txt")
def robots():
    body = f"""User-agent: *
Allow: /

# WordPress content
Allow: /blog
Allow: /category/
Allow: /tag/

# Sitemaps
Sitemap: {_base_url()}/post-sitemap.xml
Sitemap: {_base_url()}/page-sitemap.xml
Sitemap: {_base_url()}/category-sitemap.xml
Sitemap: {_base_url()}/tag-sitemap.xml

# Disallow admin areas and API
Disallow: /api/
Disallow: /admin
Disallow: /wp-admin

User-agent: Googlebot
Allow: /
"""
    return Response(body, mimetype="text/plain", headers={"Cache-Control": "public, max-age=86400, s-maxage=86400"})
