"""Fixed-window rate limiting for public endpoints.

Each identifier (the client IP) gets a counter and a window reset time. The
first request of a window sets the counter to one; once the counter reaches
the policy maximum, requests are denied until the window's reset time passes.

Two interchangeable backends implement the same `hit()` contract:

- `InMemoryRateLimitBackend`: per-process dictionary, swept periodically.
- `RedisRateLimitBackend`: shared counters (INCR + PEXPIRE) for deployments
  with more than one instance.
"""

import asyncio
import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import redis.asyncio as redis
from starlette.requests import Request

from intake_core.config import RateLimitSettings, get_settings

logger = logging.getLogger(__name__)

PUBLIC = "public"
AUTHENTICATED = "authenticated"
STRICT = "strict"


@dataclass(frozen=True)
class RateLimitPolicy:
    """Request budget for one class of endpoints."""

    name: str
    max_requests: int
    window_seconds: int

    @property
    def window_ms(self) -> int:
        return self.window_seconds * 1000


@dataclass
class RateLimitResult:
    """Outcome of one `check()`; reset_time is epoch milliseconds."""

    allowed: bool
    remaining: int
    reset_time: int
    limit: int

    def retry_after(self, now_ms: Optional[int] = None) -> int:
        """Seconds until the window resets (rounded up)."""
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        return max(0, math.ceil((self.reset_time - now_ms) / 1000))

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_time),
        }


@dataclass
class _Window:
    count: int
    reset_time: int


class RateLimitBackend(ABC):
    """Counter storage for the rate limiter."""

    @abstractmethod
    async def hit(self, key: str, policy: RateLimitPolicy, now_ms: int) -> RateLimitResult:
        """Record one request for `key` and report whether it is allowed."""

    async def sweep(self, now_ms: int) -> int:
        """Drop expired windows; returns how many were removed."""
        return 0

    async def reset(self) -> None:
        """Forget every counter."""

    async def close(self) -> None:
        pass


class InMemoryRateLimitBackend(RateLimitBackend):
    """Single-process counters. Not shared between instances."""

    def __init__(self) -> None:
        self._windows: Dict[str, _Window] = {}

    def __len__(self) -> int:
        return len(self._windows)

    async def hit(self, key: str, policy: RateLimitPolicy, now_ms: int) -> RateLimitResult:
        window = self._windows.get(key)

        if window is None or now_ms > window.reset_time:
            reset_time = now_ms + policy.window_ms
            self._windows[key] = _Window(count=1, reset_time=reset_time)
            return RateLimitResult(True, policy.max_requests - 1, reset_time, policy.max_requests)

        if window.count >= policy.max_requests:
            return RateLimitResult(False, 0, window.reset_time, policy.max_requests)

        window.count += 1
        return RateLimitResult(
            True, policy.max_requests - window.count, window.reset_time, policy.max_requests
        )

    async def sweep(self, now_ms: int) -> int:
        expired = [key for key, window in self._windows.items() if now_ms > window.reset_time]
        for key in expired:
            del self._windows[key]
        return len(expired)

    async def reset(self) -> None:
        self._windows.clear()


class RedisRateLimitBackend(RateLimitBackend):
    """Counters shared through Redis; keys expire with their window."""

    def __init__(self, client: Optional[redis.Redis] = None, key_prefix: str = "ratelimit"):
        self._client = client
        self._key_prefix = key_prefix

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            settings = get_settings()
            self._client = redis.from_url(
                settings.redis.url,
                password=settings.redis.password,
                decode_responses=settings.redis.decode_responses,
                socket_timeout=settings.redis.socket_timeout,
                socket_connect_timeout=settings.redis.socket_connect_timeout,
            )
        return self._client

    async def hit(self, key: str, policy: RateLimitPolicy, now_ms: int) -> RateLimitResult:
        redis_key = f"{self._key_prefix}:{key}"
        try:
            client = self._get_client()
            pipe = client.pipeline()
            pipe.incr(redis_key)
            pipe.pttl(redis_key)
            count, ttl = await pipe.execute()
            count = int(count)
            ttl = int(ttl)
            if count == 1 or ttl < 0:
                await client.pexpire(redis_key, policy.window_ms)
                ttl = policy.window_ms
        except redis.RedisError as e:
            # Fail open while Redis is unreachable
            logger.warning(f"Rate limit check failed for {key}: {e}; allowing request")
            return RateLimitResult(True, policy.max_requests, now_ms + policy.window_ms, policy.max_requests)

        reset_time = now_ms + ttl
        if count > policy.max_requests:
            return RateLimitResult(False, 0, reset_time, policy.max_requests)
        return RateLimitResult(True, policy.max_requests - count, reset_time, policy.max_requests)

    async def reset(self) -> None:
        client = self._get_client()
        async for key in client.scan_iter(match=f"{self._key_prefix}:*"):
            await client.delete(key)

    async def close(self) -> None:
        if self._client is not None:
            try:
                await self._client.aclose()
            except redis.RedisError as e:
                logger.warning(f"Error closing Redis connection: {e}")
            self._client = None


class RateLimiter:
    """Applies one policy to identifiers through a backend."""

    def __init__(
        self,
        policy: RateLimitPolicy,
        backend: RateLimitBackend,
        clock: Callable[[], float] = time.time,
    ):
        self.policy = policy
        self.backend = backend
        self._clock = clock

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def check(self, identifier: str) -> RateLimitResult:
        key = f"{self.policy.name}:{identifier}"
        return await self.backend.hit(key, self.policy, self.now_ms())


def get_client_identifier(request: Request) -> str:
    """Client IP from trusted proxy headers, falling back to the socket peer."""
    headers = request.headers
    forwarded_for = headers.get("x-forwarded-for")
    ip = (
        headers.get("cf-connecting-ip")
        or headers.get("x-real-ip")
        or (forwarded_for.split(",")[0] if forwarded_for else None)
        or (request.client.host if request.client else None)
        or "unknown"
    )
    return ip.strip() or "unknown"


def build_policies(config: RateLimitSettings) -> Dict[str, RateLimitPolicy]:
    return {
        PUBLIC: RateLimitPolicy(PUBLIC, config.public_max_requests, config.public_window_seconds),
        AUTHENTICATED: RateLimitPolicy(
            AUTHENTICATED, config.authenticated_max_requests, config.authenticated_window_seconds
        ),
        STRICT: RateLimitPolicy(STRICT, config.strict_max_requests, config.strict_window_seconds),
    }


class RateLimitService:
    """Owns the backend, one limiter per policy, and the sweep task."""

    def __init__(
        self,
        config: Optional[RateLimitSettings] = None,
        backend: Optional[RateLimitBackend] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or get_settings().rate_limit
        if backend is None:
            backend = RedisRateLimitBackend() if self.config.backend == "redis" else InMemoryRateLimitBackend()
        self.backend = backend
        self.enabled = self.config.enabled
        self._limiters = {
            name: RateLimiter(policy, backend, clock)
            for name, policy in build_policies(self.config).items()
        }
        self._clock = clock
        self._sweeper: Optional[asyncio.Task] = None

    def limiter(self, policy_name: str) -> RateLimiter:
        try:
            return self._limiters[policy_name]
        except KeyError:
            raise ValueError(f"Unknown rate limit policy: {policy_name}") from None

    async def check(self, policy_name: str, identifier: str) -> RateLimitResult:
        return await self.limiter(policy_name).check(identifier)

    async def sweep(self) -> int:
        removed = await self.backend.sweep(int(self._clock() * 1000))
        if removed:
            logger.debug(f"Rate limiter sweep removed {removed} expired windows")
        return removed

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.config.sweep_interval_seconds)
            try:
                await self.sweep()
            except Exception as e:
                logger.warning(f"Rate limiter sweep failed: {e}")

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_forever(), name="rate-limit-sweeper")
            logger.info(
                f"Rate limiter started: backend={type(self.backend).__name__}, "
                f"sweep every {self.config.sweep_interval_seconds}s"
            )

    async def stop(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        await self.backend.close()

    async def reset(self) -> None:
        await self.backend.reset()


_rate_limit_service: Optional[RateLimitService] = None


def get_rate_limit_service() -> RateLimitService:
    """Get global rate limit service instance."""
    global _rate_limit_service
    if _rate_limit_service is None:
        _rate_limit_service = RateLimitService()
    return _rate_limit_service
