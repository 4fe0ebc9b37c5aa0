import os
import sys
import time

from dotenv import load_dotenv

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from headless import create_app  # noqa: E402
from headless.errors import ConfigurationError  # noqa: E402


def warm(wp, blog_pages=3, per_page=10):
    """Fetch the content every page render needs first; returns (label, item count) pairs."""
    done = []
    data = wp.get_homepage_data()
    done.append(("homepage", len(data.get("posts", []))))
    for page in range(1, blog_pages + 1):
        posts = wp.get_posts(page=page, per_page=per_page)
        done.append((f"blog page {page}", len(posts)))
        if len(posts) < per_page:
            break
    done.append(("categories", len(wp.get_categories())))
    done.append(("tags", len(wp.get_tags())))
    done.append(("popular", len(wp.get_popular_posts())))
    done.append(("pages", len(wp.get_pages())))
    return done


def main():
    load_dotenv()
    try:
        app = create_app("config.Config")
    except ConfigurationError as e:
        print(f"[err] {e}")
        return 1

    pages = int(os.getenv("WARM_BLOG_PAGES", "3"))
    started = time.time()
    with app.app_context():
        wp = app.extensions["wordpress"]
        health = wp.check_api_health()
        print(f"- {health['message']}")
        if not (health["primary"] or health["fallback"]):
            print("[err] content API unreachable, nothing warmed")
            return 1
        results = warm(wp, pages, app.config.get("POSTS_PER_PAGE", 10))

    for label, count in results:
        print(f"+ {label}: {count} items")
    stats = app.extensions["cache"].stats()
    print(f"Done in {time.time() - started:.1f}s. Cache entries: {stats['memory']['size']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
