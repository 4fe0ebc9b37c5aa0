from flask import Blueprint, abort, current_app, render_template, request

from ..services.content import post_view

bp = Blueprint("home", __name__)


def _wp():
    return current_app.extensions["wordpress"]


def _page_arg() -> int:
    try:
        return max(1, int(request.args.get("page", 1)))
    except (TypeError, ValueError):
        return 1


def has_next(page, per_page, result):
    """Another page exists; trusts the upstream page count when it was sent."""
    total_pages = result.get("total_pages")
    if total_pages is not None:
        return page < total_pages
    return len(result["items"]) == per_page


def _views(posts):
    domains = current_app.extensions["domains"]
    return [post_view(p, domains) for p in posts]


@bp.get("/")
def root():
    data = _wp().get_homepage_data()
    return render_template(
        "home.html",
        posts=_views(data.get("posts", [])),
        popular_posts=_views(data.get("popular_posts", [])),
        categories=data.get("categories", []),
        tags=data.get("tags", []),
    )


@bp.get("/blog")
def blog():
    page = _page_arg()
    per_page = current_app.config.get("POSTS_PER_PAGE", 10)
    result = _wp().get_posts_page(page=page, per_page=per_page)
    return render_template(
        "post_list.html",
        heading="Blog",
        posts=_views(result["items"]),
        page=page,
        has_next=has_next(page, per_page, result),
        base_path="/blog",
    )


@bp.get("/search")
def search():
    q = (request.args.get("q") or "").strip()
    page = _page_arg()
    per_page = current_app.config.get("POSTS_PER_PAGE", 10)
    result = _wp().search_posts_page(q, page=page, per_page=per_page)
    return render_template(
        "post_list.html",
        heading=f'Search: "{q}"' if q else "Search",
        query=q,
        posts=_views(result["items"]),
        page=page,
        has_next=has_next(page, per_page, result),
        base_path="/search",
    )


@bp.get("/category/<slug>")
def category(slug):
    wp = _wp()
    term = wp.get_category_by_slug(slug)
    if not term:
        abort(404)
    page = _page_arg()
    per_page = current_app.config.get("POSTS_PER_PAGE", 10)
    result = wp.get_posts_page(page=page, per_page=per_page, category_id=term["id"])
    return render_template(
        "post_list.html",
        heading=term.get("name", slug),
        description=term.get("description"),
        posts=_views(result["items"]),
        page=page,
        has_next=has_next(page, per_page, result),
        base_path=f"/category/{slug}",
    )


@bp.get("/tag/<slug>")
def tag(slug):
    wp = _wp()
    term = wp.get_tag_by_slug(slug)
    if not term:
        abort(404)
    page = _page_arg()
    per_page = current_app.config.get("POSTS_PER_PAGE", 10)
    result = wp.get_posts_page(page=page, per_page=per_page, tag_id=term["id"])
    return render_template(
        "post_list.html",
        heading=f"#{term.get('name', slug)}",
        description=term.get("description"),
        posts=_views(result["items"]),
        page=page,
        has_next=has_next(page, per_page, result),
        base_path=f"/tag/{slug}",
    )
