import bleach

from ..utils.text import featured_media, post_author, post_terms, rendered, to_plain_text

ALLOWED_TAGS = [
    'p','br','strong','em','b','i','u','ul','ol','li','blockquote','code','pre','h1','h2','h3','h4','h5','h6','hr',
    'table','thead','tbody','tr','th','td','span','div','del','ins','sup','sub','a','img','figure','figcaption',
]
ALLOWED_ATTRS = {
    'a': ['href','title','rel','target'],
    'img': ['src','alt','title','width','height','loading','srcset','sizes'],
    'span': ['class'], 'div': ['class'], 'pre': ['class'], 'code': ['class'], 'figure': ['class'],
}
ALLOWED_PROTOCOLS = ['http','https','mailto']


def sanitize_html(html_src: str) -> str:
    if not html_src:
        return ""
    return bleach.clean(html_src, tags=ALLOWED_TAGS, attributes=ALLOWED_ATTRS, protocols=ALLOWED_PROTOCOLS, strip=True)


def post_view(post, domains=None):
    """Flatten a WordPress post into what the templates need."""
    link = post.get("link") or ""
    media = featured_media(post)
    author = post_author(post)
    return {
        "id": post.get("id"),
        "slug": post.get("slug", ""),
        "title": to_plain_text(rendered(post, "title")),
        "excerpt": to_plain_text(rendered(post, "excerpt"), limit=200),
        "content_html": sanitize_html(rendered(post, "content")),
        "date": post.get("date"),
        "modified": post.get("modified"),
        "link": domains.to_frontend(link) if domains is not None else link,
        "image": media.get("source_url") if media else None,
        "image_alt": (media.get("alt_text") if media else None) or None,
        "author_name": author.get("name") if author else None,
        "categories": [{"name": t.get("name"), "slug": t.get("slug")} for t in post_terms(post, "category")],
        "tags": [{"name": t.get("name"), "slug": t.get("slug")} for t in post_terms(post, "post_tag")],
    }
