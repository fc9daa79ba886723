"""Tests for the fixed-window rate limiter and its FastAPI dependency."""

import pytest
from unittest.mock import AsyncMock, MagicMock

import redis.asyncio as redis
from starlette.requests import Request

from intake_core.config import RateLimitSettings
from intake_core.services.rate_limit_service import (
    PUBLIC,
    STRICT,
    InMemoryRateLimitBackend,
    RateLimiter,
    RateLimitPolicy,
    RateLimitService,
    RedisRateLimitBackend,
    get_client_identifier,
)


class FakeClock:
    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _request(headers=None, client=("10.0.0.1", 1234)) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "headers": raw, "client": client, "method": "GET", "path": "/"})


class TestRateLimiter:
    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def limiter(self, clock):
        return RateLimiter(RateLimitPolicy("test", max_requests=3, window_seconds=60), InMemoryRateLimitBackend(), clock)

    @pytest.mark.asyncio
    async def test_first_request_opens_window(self, limiter, clock):
        result = await limiter.check("1.2.3.4")
        assert result.allowed is True
        assert result.remaining == 2
        assert result.limit == 3
        assert result.reset_time == int(clock.now * 1000) + 60_000

    @pytest.mark.asyncio
    async def test_request_over_budget_is_denied(self, limiter):
        results = [await limiter.check("1.2.3.4") for _ in range(4)]
        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]

    @pytest.mark.asyncio
    async def test_window_resets_after_expiry(self, limiter, clock):
        for _ in range(4):
            await limiter.check("1.2.3.4")

        clock.advance(61)
        result = await limiter.check("1.2.3.4")
        assert result.allowed is True
        assert result.remaining == 2

    @pytest.mark.asyncio
    async def test_identifiers_are_independent(self, limiter):
        for _ in range(3):
            await limiter.check("a")
        assert (await limiter.check("a")).allowed is False
        assert (await limiter.check("b")).allowed is True

    @pytest.mark.asyncio
    async def test_retry_after_counts_remaining_window(self, limiter, clock):
        for _ in range(3):
            await limiter.check("a")
        clock.advance(20.5)
        denied = await limiter.check("a")
        assert denied.retry_after(limiter.now_ms()) == 40

    @pytest.mark.asyncio
    async def test_sweep_drops_only_expired_windows(self, clock):
        backend = InMemoryRateLimitBackend()
        limiter = RateLimiter(RateLimitPolicy("test", 3, 60), backend, clock)
        await limiter.check("old")
        clock.advance(30)
        await limiter.check("recent")
        clock.advance(31)

        removed = await backend.sweep(int(clock.now * 1000))
        assert removed == 1
        assert len(backend) == 1


class TestRateLimitService:
    def test_policies_from_settings(self):
        service = RateLimitService(RateLimitSettings(), backend=InMemoryRateLimitBackend())
        assert service.limiter(PUBLIC).policy.max_requests == 10
        assert service.limiter(STRICT).policy.window_seconds == 60

    def test_unknown_policy(self):
        service = RateLimitService(RateLimitSettings(), backend=InMemoryRateLimitBackend())
        with pytest.raises(ValueError, match="Unknown rate limit policy"):
            service.limiter("burst")

    def test_redis_backend_selected_by_config(self):
        service = RateLimitService(RateLimitSettings(backend="redis"))
        assert isinstance(service.backend, RedisRateLimitBackend)


class TestRedisBackend:
    @pytest.mark.asyncio
    async def test_first_hit_sets_expiry(self):
        pipe = MagicMock()
        pipe.execute = AsyncMock(return_value=[1, -1])
        client = MagicMock()
        client.pipeline.return_value = pipe
        client.pexpire = AsyncMock()

        backend = RedisRateLimitBackend(client=client)
        result = await backend.hit("public:1.2.3.4", RateLimitPolicy(PUBLIC, 10, 60), now_ms=5_000)

        client.pexpire.assert_awaited_once_with("ratelimit:public:1.2.3.4", 60_000)
        assert result.allowed is True
        assert result.remaining == 9
        assert result.reset_time == 65_000

    @pytest.mark.asyncio
    async def test_over_budget_denied(self):
        pipe = MagicMock()
        pipe.execute = AsyncMock(return_value=[11, 30_000])
        client = MagicMock()
        client.pipeline.return_value = pipe

        backend = RedisRateLimitBackend(client=client)
        result = await backend.hit("public:x", RateLimitPolicy(PUBLIC, 10, 60), now_ms=0)
        assert result.allowed is False
        assert result.remaining == 0
        assert result.reset_time == 30_000

    @pytest.mark.asyncio
    async def test_fails_open_when_redis_is_down(self):
        pipe = MagicMock()
        pipe.execute = AsyncMock(side_effect=redis.ConnectionError("down"))
        client = MagicMock()
        client.pipeline.return_value = pipe

        backend = RedisRateLimitBackend(client=client)
        result = await backend.hit("public:x", RateLimitPolicy(PUBLIC, 10, 60), now_ms=0)
        assert result.allowed is True


class TestClientIdentifier:
    def test_prefers_proxy_headers(self):
        request = _request({"x-forwarded-for": "203.0.113.7, 10.0.0.2"})
        assert get_client_identifier(request) == "203.0.113.7"

    def test_cloudflare_header_wins(self):
        request = _request({"cf-connecting-ip": "198.51.100.1", "x-real-ip": "198.51.100.2"})
        assert get_client_identifier(request) == "198.51.100.1"

    def test_falls_back_to_peer_then_unknown(self):
        assert get_client_identifier(_request()) == "10.0.0.1"
        assert get_client_identifier(_request(client=None)) == "unknown"


class TestRateLimitedEndpoint:
    """Public endpoints carry X-RateLimit-* headers and answer 429 with Retry-After."""

    @pytest.mark.asyncio
    async def test_headers_and_429(self, client, monkeypatch):
        from intake_core.services import rate_limit_service

        service = RateLimitService(
            RateLimitSettings(public_max_requests=2, public_window_seconds=60),
            backend=InMemoryRateLimitBackend(),
        )
        monkeypatch.setattr(rate_limit_service, "_rate_limit_service", service)
        body = {"event_type": "ping", "conversation_id": "abc"}
        headers = {"x-forwarded-for": "203.0.113.9"}

        first = await client.post("/api/v1/webhooks/tavus", json=body, headers=headers)
        second = await client.post("/api/v1/webhooks/tavus", json=body, headers=headers)
        third = await client.post("/api/v1/webhooks/tavus", json=body, headers=headers)

        assert first.status_code == 200
        assert first.headers["X-RateLimit-Limit"] == "2"
        assert first.headers["X-RateLimit-Remaining"] == "1"
        assert second.headers["X-RateLimit-Remaining"] == "0"

        assert third.status_code == 429
        assert third.headers["X-RateLimit-Remaining"] == "0"
        assert int(third.headers["Retry-After"]) > 0
        payload = third.json()
        assert payload["error"] == "Too many requests"
        assert payload["retryAfter"] == int(third.headers["Retry-After"])
