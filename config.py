import os


def _flag(name, default="false"):
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _list(name):
    return [x.strip() for x in os.getenv(name, "").split(",") if x.strip()]


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")

    # WordPress REST API (e.g. https://backend.example.com/wp-json/wp/v2)
    WORDPRESS_API_URL = os.getenv("WORDPRESS_API_URL", "")
    WORDPRESS_FALLBACK_API_URL = os.getenv("WORDPRESS_FALLBACK_API_URL", "")
    # Backend site root used in canonical/og:url links; derived from the API URL when unset
    WORDPRESS_BACKEND_URL = os.getenv("WORDPRESS_BACKEND_URL", "")
    WORDPRESS_BACKEND_ALIASES = _list("WORDPRESS_BACKEND_ALIASES")

    # Public site
    SITE_URL = os.getenv("SITE_URL", "http://localhost:5050")
    FRONTEND_DOMAIN = os.getenv("FRONTEND_DOMAIN", "")
    FRONTEND_ALIASES = _list("FRONTEND_ALIASES")
    SITE_NAME = os.getenv("SITE_NAME", "IndexOf")
    SITE_DESCRIPTION = os.getenv("SITE_DESCRIPTION", "")

    # Rank Math headless SEO API
    RANKMATH_API_ENABLED = _flag("RANKMATH_API_ENABLED")
    RANKMATH_API_URL = os.getenv("RANKMATH_API_URL", "")

    # Shared secret for /api/revalidate-cache
    CRON_SECRET = os.getenv("CRON_SECRET", "")

    # Persistent cache tier; empty disables it
    MONGO_URI = os.getenv("MONGO_URI", "")
    PERSISTENT_CACHE_COLLECTION = os.getenv("PERSISTENT_CACHE_COLLECTION", "content_cache")
    PERSISTENT_CACHE_MAX_BYTES = int(os.getenv("PERSISTENT_CACHE_MAX_BYTES", 5 * 1024 * 1024))

    CACHE_MAX_ENTRIES = int(os.getenv("CACHE_MAX_ENTRIES", 1000))

    # Upstream requests
    FETCH_TIMEOUT = float(os.getenv("FETCH_TIMEOUT", 10))
    FETCH_MAX_ATTEMPTS = int(os.getenv("FETCH_MAX_ATTEMPTS", 4))
    FETCH_BACKOFF = float(os.getenv("FETCH_BACKOFF", 0.5))

    POSTS_PER_PAGE = int(os.getenv("POSTS_PER_PAGE", 10))
