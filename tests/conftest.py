from unittest.mock import MagicMock

import mongomock
import pytest

from config import Config
from headless import create_app
from headless.services.cache_service import CacheService
from headless.services.fetcher import ResilientFetcher
from headless.services.ttl_cache import TTLCache

PRIMARY = "https://cms.example.com/wp-json/wp/v2"
FALLBACK = "https://mirror.example.com/wp-json/wp/v2"
RANKMATH_URL = "https://cms.example.com/wp-json/rankmath/v1/getHead"


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    WORDPRESS_API_URL = PRIMARY
    WORDPRESS_FALLBACK_API_URL = ""
    WORDPRESS_BACKEND_URL = ""
    WORDPRESS_BACKEND_ALIASES = []
    SITE_URL = "https://www.example.com"
    FRONTEND_DOMAIN = ""
    FRONTEND_ALIASES = []
    SITE_NAME = "IndexOf"
    SITE_DESCRIPTION = "Tutorial server dan WordPress"
    RANKMATH_API_ENABLED = True
    RANKMATH_API_URL = RANKMATH_URL
    CRON_SECRET = "s3cret"
    MONGO_URI = ""
    FETCH_MAX_ATTEMPTS = 2
    FETCH_BACKOFF = 0


class FakeClock:
    def __init__(self, start=1_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeResponse:
    def __init__(self, status_code=200, payload=None, invalid_json=False, headers=None):
        self.status_code = status_code
        self._payload = payload
        self._invalid_json = invalid_json
        self.headers = headers or {}

    def json(self):
        if self._invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def cache(clock):
    return CacheService(TTLCache(100, clock=clock))


@pytest.fixture
def make_fetcher(cache, session, sleeps):
    def _make(fallback=None, max_attempts=4):
        return ResilientFetcher(
            cache, PRIMARY, fallback, session=session, max_attempts=max_attempts, sleep=sleeps.append
        )
    return _make


@pytest.fixture
def mongo_collection():
    return mongomock.MongoClient().headless.content_cache


@pytest.fixture
def make_app(session, mongo_collection):
    def _make(**overrides):
        config = type("Config", (TestConfig,), overrides)
        return create_app(config, http_session=session, persistent_collection=mongo_collection)
    return _make


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()
