"""
Tests for the fixed-window rate limiter and its middleware.
"""

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from alithos.api.rate_limit import (
    RateLimiters,
    RateLimitResult,
    RateLimitStore,
    get_client_id,
    user_key,
)
from alithos.api.server import create_app

NOW = 1_700_000_000_000
MINUTE = 60 * 1000


def make_request(path="/api/themes", headers=None, query=b"", client=("9.9.9.9", 1234)):
    scope = {
        "type": "http",
        "method": "GET",
        "scheme": "http",
        "server": ("testserver", 80),
        "root_path": "",
        "path": path,
        "query_string": query,
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


@pytest.fixture
def store():
    return RateLimitStore()


class TestStore:
    """Window counting."""

    def test_allows_up_to_limit(self, store):
        results = [store.hit("k", MINUTE, 3, NOW) for _ in range(3)]
        assert all(r.allowed for r in results)
        assert [r.remaining for r in results] == [2, 1, 0]

    def test_blocks_over_limit(self, store):
        for _ in range(3):
            store.hit("k", MINUTE, 3, NOW)
        blocked = store.hit("k", MINUTE, 3, NOW + 1500)
        assert not blocked.allowed
        assert blocked.remaining == 0
        assert blocked.retry_after == 59

    def test_blocked_requests_do_not_extend_window(self, store):
        store.hit("k", MINUTE, 1, NOW)
        store.hit("k", MINUTE, 1, NOW + 10)
        assert store.hit("k", MINUTE, 1, NOW + MINUTE + 1).allowed

    def test_keys_are_independent(self, store):
        store.hit("a", MINUTE, 1, NOW)
        assert store.hit("b", MINUTE, 1, NOW).allowed

    def test_cleanup_drops_expired(self, store):
        store.hit("k", MINUTE, 5, NOW)
        store.cleanup(NOW + MINUTE + 1, force=True)
        assert len(store) == 0

    def test_cleanup_is_throttled(self, store):
        store.hit("k", MINUTE, 5, NOW)
        store.hit("j", 10, 5, NOW)
        store.cleanup(NOW + 20)
        assert len(store) == 2

    def test_headers(self):
        result = RateLimitResult(False, 10, 0, NOW + MINUTE, retry_after=30)
        assert result.headers() == {
            "X-RateLimit-Limit": "10",
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": "2023-11-14T22:14:20.000Z",
            "Retry-After": "30",
        }


class TestSelection:
    """Limiter presets and client keys."""

    @pytest.fixture
    def limiters(self, store):
        return RateLimiters(store, clock=lambda: NOW)

    @pytest.mark.parametrize("method,path,preset", [
        ("POST", "/api/themes", "write"),
        ("DELETE", "/api/alerts/1", "write"),
        ("GET", "/api/alerts", "authenticated"),
        ("GET", "/api/workspaces", "authenticated"),
        ("GET", "/api/polymarket/markets", "public"),
        ("GET", "/api/adjacent-news/news", "public"),
        ("GET", "/api/themes", "read"),
    ])
    def test_select(self, limiters, method, path, preset):
        assert limiters.select(method, path) is getattr(limiters, preset)

    def test_preset_limits(self, limiters):
        assert limiters.strict.max_requests == 10
        assert limiters.standard.max_requests == 60
        assert limiters.moderate.max_requests == 100
        assert limiters.generous.max_requests == 200
        assert limiters.authenticated.max_requests == 120

    def test_client_id_prefers_forwarded_for(self):
        request = make_request(headers={"X-Forwarded-For": "1.2.3.4, 5.6.7.8", "X-Real-IP": "2.2.2.2"})
        assert get_client_id(request) == "1.2.3.4"

    def test_client_id_fallbacks(self):
        assert get_client_id(make_request(headers={"X-Real-IP": "2.2.2.2"})) == "2.2.2.2"
        assert get_client_id(make_request()) == "9.9.9.9"
        assert get_client_id(make_request(client=None)) == "unknown"

    def test_user_key(self):
        assert user_key(make_request(query=b"userId=u1")) == "user:u1"
        assert user_key(make_request(headers={"X-User-Id": "u2"})) == "user:u2"
        assert user_key(make_request()) == "user:anonymous"

    def test_limits_are_per_path(self, limiters):
        limiter = limiters.custom(MINUTE, 1)
        assert limiter.check(make_request("/api/a")).allowed
        assert limiter.check(make_request("/api/b")).allowed
        assert not limiter.check(make_request("/api/a")).allowed


class TestMiddleware:
    """Limits applied to API requests."""

    @pytest.fixture
    def limited_client(self, config):
        config.rate_limit.enabled = True
        return TestClient(create_app(config))

    def test_headers_on_allowed_response(self, limited_client):
        response = limited_client.get("/api/health")
        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == "60"
        assert response.headers["X-RateLimit-Remaining"] == "59"

    def test_write_limit(self, limited_client):
        for _ in range(10):
            assert limited_client.post("/api/calculators/odds", json={"probability": 0.5}).status_code == 200

        response = limited_client.post("/api/calculators/odds", json={"probability": 0.5})
        assert response.status_code == 429
        body = response.json()
        assert body["error"] == "Too many requests"
        assert body["retryAfter"] == int(response.headers["Retry-After"])
        assert body["message"].startswith("Rate limit exceeded.")

    def test_disabled_by_config(self, client):
        response = client.get("/api/health")
        assert "X-RateLimit-Limit" not in response.headers
