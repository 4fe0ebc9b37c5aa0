import pytest
import requests

from conftest import FALLBACK, PRIMARY, FakeResponse
from headless.errors import HttpError, NetworkError, NotFoundError, RequestTimeoutError
from headless.services.persistent_cache import PersistentCache
from headless.services.fetcher import ResilientFetcher, header_int, join_url


def urls_called(session):
    return [c.args[0] for c in session.get.call_args_list]


class TestCaching:
    def test_success_is_cached_and_second_call_skips_network(self, make_fetcher, session):
        session.get.return_value = FakeResponse(200, [{"id": 1}])
        f = make_fetcher()
        assert f.get_json("posts", {"page": 1}) == [{"id": 1}]
        assert f.get_json("posts", {"page": "1"}) == [{"id": 1}]
        assert session.get.call_count == 1

    def test_empty_params_are_not_sent(self, make_fetcher, session):
        session.get.return_value = FakeResponse(200, [])
        make_fetcher().get_json("posts", {"page": 2, "search": "", "tags": None})
        assert session.get.call_args.kwargs["params"] == {"page": "2"}

    def test_cache_key_does_not_depend_on_origin(self, make_fetcher):
        f = make_fetcher(fallback=FALLBACK)
        assert f.cache_key("posts", {"page": 1}) == "posts_page=1"
        assert f.cache_key("posts/5") == "posts_5_"
        assert f.cache_key("posts", {"search": "vps"}, namespace="search") == "search_search=vps"

    def test_persistent_hit_skips_network(self, make_fetcher, cache, session, mongo_collection, clock):
        cache.persistent = PersistentCache(mongo_collection, clock=clock)
        cache.persistent.set("tags_", [{"id": 9}])
        assert make_fetcher().get_json("tags") == [{"id": 9}]
        session.get.assert_not_called()

    def test_failures_are_not_cached(self, make_fetcher, session, cache):
        session.get.return_value = FakeResponse(500)
        f = make_fetcher(max_attempts=1)
        with pytest.raises(HttpError):
            f.get_json("posts")
        assert cache.get(f.cache_key("posts")) is None

    def test_use_cache_false_always_fetches(self, make_fetcher, session):
        session.get.return_value = FakeResponse(200, {"ok": True})
        f = make_fetcher()
        f.get_json("settings", use_cache=False)
        f.get_json("settings", use_cache=False)
        assert session.get.call_count == 2


class TestRetries:
    def test_transient_failures_are_retried_with_backoff(self, make_fetcher, session, sleeps):
        session.get.side_effect = [FakeResponse(502), requests.Timeout("slow"), FakeResponse(200, ["ok"])]
        assert make_fetcher().get_json("posts") == ["ok"]
        assert session.get.call_count == 3
        assert sleeps == [0.5, 1.0]

    def test_exhausted_primary_without_fallback_raises(self, make_fetcher, session, sleeps):
        session.get.return_value = FakeResponse(503)
        with pytest.raises(HttpError) as exc:
            make_fetcher().get_json("posts")
        assert exc.value.status_code == 503
        assert exc.value.attempts == 4
        assert session.get.call_count == 4
        assert len(sleeps) == 3

    def test_timeouts_count_toward_attempts(self, make_fetcher, session):
        session.get.side_effect = requests.Timeout("slow")
        with pytest.raises(RequestTimeoutError) as exc:
            make_fetcher(max_attempts=2).get_json("posts")
        assert exc.value.attempts == 2

    def test_connection_errors_raise_network_error(self, make_fetcher, session):
        session.get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(NetworkError):
            make_fetcher(max_attempts=2).get_json("posts")

    def test_invalid_json_is_retried(self, make_fetcher, session):
        session.get.side_effect = [FakeResponse(200, invalid_json=True), FakeResponse(200, [1])]
        assert make_fetcher().get_json("posts") == [1]
        assert session.get.call_count == 2

    def test_404_is_not_retried_or_failed_over(self, make_fetcher, session, sleeps):
        session.get.return_value = FakeResponse(404)
        with pytest.raises(NotFoundError) as exc:
            make_fetcher(fallback=FALLBACK).get_json("posts/99")
        assert exc.value.status_code == 404
        assert session.get.call_count == 1
        assert sleeps == []

    def test_400_is_not_retried(self, make_fetcher, session):
        session.get.return_value = FakeResponse(400)
        with pytest.raises(HttpError) as exc:
            make_fetcher(fallback=FALLBACK).get_json("posts", {"page": 99})
        assert exc.value.status_code == 400
        assert session.get.call_count == 1

    def test_backoff_is_capped(self, cache, session, sleeps):
        session.get.return_value = FakeResponse(500)
        f = ResilientFetcher(cache, PRIMARY, session=session, max_attempts=6, backoff=1, max_backoff=4, sleep=sleeps.append)
        with pytest.raises(HttpError):
            f.fetch("posts")
        assert sleeps == [1, 2, 4, 4, 4]

    def test_rejects_zero_attempts(self, cache):
        with pytest.raises(ValueError):
            ResilientFetcher(cache, PRIMARY, max_attempts=0)


class TestFailover:
    def test_fallback_used_after_primary_exhausted(self, make_fetcher, session):
        session.get.side_effect = [FakeResponse(500)] * 4 + [FakeResponse(200, [{"id": 2}])]
        f = make_fetcher(fallback=FALLBACK)
        assert f.get_json("posts", {"page": 1}) == [{"id": 2}]
        called = urls_called(session)
        assert called[:4] == [join_url(PRIMARY, "posts")] * 4
        assert called[4] == join_url(FALLBACK, "posts")

    def test_fallback_result_cached_under_same_key(self, make_fetcher, session, cache):
        session.get.side_effect = [FakeResponse(500)] * 4 + [FakeResponse(200, ["from mirror"])]
        f = make_fetcher(fallback=FALLBACK)
        f.get_json("posts", {"page": 1})
        assert cache.get("posts_page=1") == ["from mirror"]
        assert f.get_json("posts", {"page": 1}) == ["from mirror"]
        assert session.get.call_count == 5

    def test_both_origins_exhausted(self, make_fetcher, session):
        session.get.return_value = FakeResponse(500)
        with pytest.raises(HttpError) as exc:
            make_fetcher(fallback=FALLBACK).get_json("posts")
        assert session.get.call_count == 8
        assert exc.value.attempts == 8

    def test_fallback_equal_to_primary_is_ignored(self, make_fetcher, session):
        session.get.return_value = FakeResponse(500)
        f = make_fetcher(fallback=PRIMARY + "/")
        assert f.origins() == [PRIMARY]
        with pytest.raises(HttpError):
            f.get_json("posts")
        assert session.get.call_count == 4


class TestPagedFetch:
    def test_page_carries_header_totals(self, make_fetcher, session):
        session.get.return_value = FakeResponse(200, [{"id": 1}], headers={"X-WP-Total": "12", "X-WP-TotalPages": "2"})
        page = make_fetcher().get_page("posts", {"page": 1})
        assert page == {"items": [{"id": 1}], "total": 12, "total_pages": 2}

    def test_page_is_cached_under_the_plain_key(self, make_fetcher, session, cache):
        session.get.return_value = FakeResponse(200, [], headers={"X-WP-TotalPages": "0"})
        f = make_fetcher()
        f.get_page("posts", {"page": 1})
        f.get_page("posts", {"page": 1})
        assert cache.get("posts_page=1")["total_pages"] == 0
        assert session.get.call_count == 1

    @pytest.mark.parametrize("headers, expected", [
        ({"X-WP-TotalPages": "7"}, 7),
        ({"X-WP-TotalPages": "seven"}, None),
        ({}, None),
    ])
    def test_header_int(self, headers, expected):
        assert header_int(headers, "X-WP-TotalPages") == expected
