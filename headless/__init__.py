import os
import re

import requests
from flask import Flask, request

from .errors import ConfigurationError
from .extensions.mongo import init_mongo
from .services.cache_service import CacheService
from .services.fetcher import ResilientFetcher
from .services.persistent_cache import PersistentCache
from .services.seo import RankMathClient
from .services.ttl_cache import TTLCache, TTLPolicy
from .services.wordpress import WordPressClient
from .utils.urls import DomainMapping
from .blueprints.api import bp as api_bp
from .blueprints.home import bp as home_bp
from .blueprints.posts import bp as posts_bp
from .blueprints.sitemaps import bp as sitemaps_bp

_wp_json_re = re.compile(r"/wp-json(/.*)?$")


def backend_url_from(config) -> str:
    explicit = config.get("WORDPRESS_BACKEND_URL")
    if explicit:
        return explicit.rstrip("/")
    return _wp_json_re.sub("", (config.get("WORDPRESS_API_URL") or "").rstrip("/"))


def create_app(config_object="config.Config", *, http_session=None, persistent_collection=None) -> Flask:
    # templates/static are located at project root (../templates, ../static)
    base_dir = os.path.dirname(__file__)
    templates_dir = os.path.abspath(os.path.join(base_dir, "..", "templates"))
    static_dir = os.path.abspath(os.path.join(base_dir, "..", "static"))
    app = Flask(__name__, template_folder=templates_dir, static_folder=static_dir)
    app.config.from_object(config_object)

    api_url = (app.config.get("WORDPRESS_API_URL") or "").strip()
    if not api_url:
        raise ConfigurationError(
            "WORDPRESS_API_URL is not set. Add it to .env, e.g. "
            "WORDPRESS_API_URL=https://backend.example.com/wp-json/wp/v2"
        )

    domains = DomainMapping.from_config(
        backend_url_from(app.config),
        app.config.get("FRONTEND_DOMAIN") or app.config.get("SITE_URL"),
        backend_aliases=app.config.get("WORDPRESS_BACKEND_ALIASES") or (),
        frontend_aliases=[a for a in (app.config.get("SITE_URL"), *(app.config.get("FRONTEND_ALIASES") or ())) if a],
    )

    # Caches: built once here and shared; only /api/revalidate-cache empties them
    policy = TTLPolicy()
    collection = persistent_collection if persistent_collection is not None else init_mongo(app)
    persistent = None
    if collection is not None:
        persistent = PersistentCache(collection, max_bytes=app.config.get("PERSISTENT_CACHE_MAX_BYTES", 5 * 1024 * 1024), policy=policy)
    cache = CacheService(TTLCache(app.config.get("CACHE_MAX_ENTRIES", 1000), policy), persistent)

    session = http_session or requests.Session()
    fetcher = ResilientFetcher(
        cache,
        api_url,
        app.config.get("WORDPRESS_FALLBACK_API_URL") or None,
        session=session,
        timeout=app.config.get("FETCH_TIMEOUT", 10),
        max_attempts=app.config.get("FETCH_MAX_ATTEMPTS", 4),
        backoff=app.config.get("FETCH_BACKOFF", 0.5),
    )
    seo = RankMathClient(
        cache,
        app.config.get("RANKMATH_API_URL", ""),
        bool(app.config.get("RANKMATH_API_ENABLED")),
        domains,
        app.config.get("SITE_URL", ""),
        session=session,
    )

    app.extensions["cache"] = cache
    app.extensions["domains"] = domains
    app.extensions["wordpress"] = WordPressClient(fetcher)
    app.extensions["seo"] = seo

    # Blueprints
    app.register_blueprint(home_bp)
    app.register_blueprint(api_bp)
    app.register_blueprint(sitemaps_bp)
    # catch-all /<slug> route, registered last
    app.register_blueprint(posts_bp)

    @app.context_processor
    def inject_site():
        return {
            "site": {
                "name": app.config.get("SITE_NAME", ""),
                "url": (app.config.get("SITE_URL") or "").rstrip("/"),
                "description": app.config.get("SITE_DESCRIPTION", ""),
            }
        }

    # Let shared caches keep rendered pages briefly; API routes set their own headers
    @app.after_request
    def add_cache_headers(resp):
        p = request.path or ""
        if p.startswith("/static/") or "Cache-Control" in resp.headers:
            return resp
        if resp.status_code == 200 and resp.mimetype == "text/html":
            resp.headers["Cache-Control"] = "public, max-age=300, s-maxage=3600, stale-while-revalidate=86400"
        return resp

    return app
