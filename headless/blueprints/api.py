import hmac
import logging
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request

from ..signals import content_revalidated

logger = logging.getLogger(__name__)

bp = Blueprint("api", __name__, url_prefix="/api")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

REVALIDATE_PATHS = ["/", "/blog", "/services", "/search", "/tags"]
REVALIDATE_TAGS = ["wordpress-posts", "wordpress-categories", "wordpress-tags", "homepage-data"]


def _now():
    return datetime.now(timezone.utc).isoformat()


@bp.route("/rankmath", methods=["GET", "OPTIONS"])
def rankmath_proxy():
    if request.method == "OPTIONS":
        resp = current_app.response_class(status=200)
        resp.headers.update(CORS_HEADERS)
        return resp
    payload, status = current_app.extensions["seo"].proxy(request.args.get("url"))
    resp = jsonify(payload)
    resp.status_code = status
    resp.headers.update(CORS_HEADERS)
    if status == 200:
        resp.headers["Cache-Control"] = "public, max-age=3600, s-maxage=3600"
    else:
        resp.headers["Cache-Control"] = "no-store"
    return resp


def _authorized() -> bool:
    secret = current_app.config.get("CRON_SECRET") or ""
    if not secret:
        return False
    header = request.headers.get("Authorization", "")
    return hmac.compare_digest(header.encode(), f"Bearer {secret}".encode())


@bp.route("/revalidate-cache", methods=["GET", "POST"])
def revalidate_cache():
    if not _authorized():
        return jsonify({"error": "Unauthorized"}), 401
    try:
        logger.info("[Cache Revalidation] Starting cache revalidation process...")
        current_app.extensions["cache"].clear()
        content_revalidated.send(current_app._get_current_object(), paths=REVALIDATE_PATHS, tags=REVALIDATE_TAGS)
        logger.info("[Cache Revalidation] Revalidated paths=%s tags=%s", REVALIDATE_PATHS, REVALIDATE_TAGS)
    except Exception as e:
        logger.exception("[Cache Revalidation] Error during cache revalidation")
        resp = jsonify({"error": "Cache revalidation failed", "message": str(e), "timestamp": _now()})
        resp.status_code = 500
        resp.headers["Cache-Control"] = "no-store"
        return resp
    resp = jsonify({
        "success": True,
        "message": "Cache revalidated successfully",
        "timestamp": _now(),
        "revalidatedPaths": REVALIDATE_PATHS,
        "revalidatedTags": REVALIDATE_TAGS,
    })
    resp.headers["Cache-Control"] = "no-store"
    return resp


@bp.get("/health")
def health():
    api = current_app.extensions["wordpress"].check_api_health()
    seo = current_app.extensions["seo"]
    resp = jsonify({
        "ok": api["primary"] or api["fallback"],
        "api": api,
        "rankmath": {"enabled": seo.is_enabled()},
        "cache": current_app.extensions["cache"].stats(),
        "timestamp": _now(),
    })
    resp.headers["Cache-Control"] = "no-store"
    return resp
