"""
Tests for rate limiting (middleware + sliding-window backends)
"""
from unittest.mock import MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from core import redis_client as redis_client_module
from core.config import settings
from core.rate_limit import MemorySlidingWindow, RATE_LIMIT_MESSAGE, RedisSlidingWindow


@pytest.fixture
def small_quota(monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_MAX_REQUESTS", 3)
    monkeypatch.setattr(settings, "RATE_LIMIT_WINDOW_SECONDS", 60)


class TestRateLimitMiddleware:
    def test_quota_exceeded_is_429(self, client, small_quota):
        for _ in range(3):
            assert client.get("/health").status_code == 200

        response = client.get("/health")

        assert response.status_code == 429
        assert response.json() == {"error": RATE_LIMIT_MESSAGE}
        assert response.headers["RateLimit-Limit"] == "3"
        assert response.headers["RateLimit-Remaining"] == "0"
        assert 1 <= int(response.headers["Retry-After"]) <= 60

    def test_limit_applies_across_routes(self, client, small_quota, auth_headers, openai_client):
        for _ in range(3):
            client.get("/health")

        ingest = client.post("/ingest", json={"accuracy": 72}, headers=auth_headers)
        query = client.post("/query", json={"message": "hi"}, headers=auth_headers)

        assert ingest.status_code == 429
        assert query.status_code == 429
        openai_client.vector_stores.file_batches.upload_and_poll.assert_not_called()
        openai_client.responses.create.assert_not_called()

    def test_rejected_before_auth(self, client, small_quota, identity_verifier):
        for _ in range(3):
            client.get("/health")

        response = client.post("/query", json={"message": "hi"})

        assert response.status_code == 429
        assert identity_verifier.calls == []

    def test_allowed_responses_carry_headers(self, client, small_quota):
        response = client.get("/health")
        assert response.headers["RateLimit-Limit"] == "3"
        assert response.headers["RateLimit-Remaining"] == "2"

    def test_disabled_limiter_passes_everything(self, client, small_quota, monkeypatch):
        monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", False)
        for _ in range(5):
            assert client.get("/health").status_code == 200


class TestMemorySlidingWindow:
    def test_window_slides(self):
        window = MemorySlidingWindow()

        assert window.hit("ip:a", limit=2, window=10, now=0.0).allowed
        assert window.hit("ip:a", limit=2, window=10, now=5.0).allowed
        blocked = window.hit("ip:a", limit=2, window=10, now=9.0)
        assert not blocked.allowed
        assert blocked.reset_after == 1

        # The first hit has left the window; the one at t=5 is still in it
        assert window.hit("ip:a", limit=2, window=10, now=10.5).allowed
        assert not window.hit("ip:a", limit=2, window=10, now=11.0).allowed

    def test_rejected_hits_do_not_consume_quota(self):
        window = MemorySlidingWindow()
        window.hit("ip:a", limit=1, window=10, now=0.0)
        for t in (1.0, 2.0, 3.0):
            assert not window.hit("ip:a", limit=1, window=10, now=t).allowed

        assert window.hit("ip:a", limit=1, window=10, now=10.1).allowed

    def test_keys_are_independent(self):
        window = MemorySlidingWindow()
        assert window.hit("ip:a", limit=1, window=10, now=0.0).allowed
        assert not window.hit("ip:a", limit=1, window=10, now=1.0).allowed
        assert window.hit("ip:b", limit=1, window=10, now=1.0).allowed

    def test_remaining_counts_down(self):
        window = MemorySlidingWindow()
        remaining = [window.hit("ip:a", limit=3, window=10, now=float(t)).remaining for t in range(3)]
        assert remaining == [2, 1, 0]


class TestRedisSlidingWindow:
    def _redis(self, count, oldest_score=100.0):
        redis_client = MagicMock()
        pipe = redis_client.pipeline.return_value
        pipe.execute.return_value = [0, 1, count, True]
        redis_client.zrange.return_value = [("member", oldest_score)]
        return redis_client

    def test_allows_within_quota(self):
        redis_client = self._redis(count=2)
        backend = RedisSlidingWindow(client_factory=lambda: redis_client)

        decision = backend.hit("ip:a", limit=3, window=60, now=110.0)

        assert decision.allowed
        assert decision.remaining == 1
        assert decision.reset_after == 50
        redis_client.zrem.assert_not_called()

    def test_over_quota_is_rejected_and_not_counted(self):
        redis_client = self._redis(count=4)
        backend = RedisSlidingWindow(client_factory=lambda: redis_client)

        decision = backend.hit("ip:a", limit=3, window=60, now=110.0)

        assert not decision.allowed
        assert decision.remaining == 0
        redis_client.zrem.assert_called_once()

    def test_unreachable_redis_fails_open(self):
        backend = RedisSlidingWindow(client_factory=lambda: None)
        assert backend.hit("ip:a", limit=3, window=60).allowed

    def test_redis_errors_fail_open(self):
        redis_client = MagicMock()
        redis_client.pipeline.return_value.execute.side_effect = RuntimeError("connection reset")
        backend = RedisSlidingWindow(client_factory=lambda: redis_client)

        assert backend.hit("ip:a", limit=3, window=60).allowed


class TestRedisClient:
    @pytest.fixture(autouse=True)
    def _fresh_client(self):
        redis_client_module.reset_redis_client()
        yield
        redis_client_module.reset_redis_client()

    def test_failed_connection_is_not_retried_immediately(self):
        unreachable = MagicMock()
        unreachable.ping.side_effect = RedisConnectionError("connection refused")

        with patch.object(redis_client_module.redis, "from_url", return_value=unreachable) as from_url:
            assert redis_client_module.get_redis_client() is None
            assert redis_client_module.get_redis_client() is None

        from_url.assert_called_once()

    def test_retries_after_backoff(self):
        unreachable = MagicMock()
        unreachable.ping.side_effect = RedisConnectionError("connection refused")
        healthy = MagicMock()

        with patch.object(redis_client_module.redis, "from_url", side_effect=[unreachable, healthy]), \
                patch.object(redis_client_module, "time") as clock:
            clock.monotonic.side_effect = [100.0, 100.0 + redis_client_module.RETRY_AFTER_SECONDS]
            assert redis_client_module.get_redis_client() is None
            assert redis_client_module.get_redis_client() is healthy

    def test_connected_client_is_reused(self):
        healthy = MagicMock()

        with patch.object(redis_client_module.redis, "from_url", return_value=healthy) as from_url:
            assert redis_client_module.get_redis_client() is healthy
            assert redis_client_module.get_redis_client() is healthy

        from_url.assert_called_once()
