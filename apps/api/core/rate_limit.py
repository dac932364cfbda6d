"""
Rate Limiting Middleware

Sliding-window log keyed by client address: at most
``RATE_LIMIT_MAX_REQUESTS`` requests in any ``RATE_LIMIT_WINDOW_SECONDS``
span, on every route. Rejected requests do not consume quota.

Two backends:
- memory: per-process, the default for a single relay process
- redis: shared across processes; fails open if Redis is unreachable
"""
import math
import threading
import time
import logging
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Optional
from fastapi import Request, status
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from core.config import settings
from core.exceptions import error_response
from core.redis_client import get_redis_client

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests, please try again later."


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: int  # seconds until a slot frees up


class MemorySlidingWindow:
    """In-process sliding-window log."""

    # Sweep idle keys once the table grows past this many clients
    SWEEP_THRESHOLD = 10_000

    def __init__(self):
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, limit: int, window: int, now: Optional[float] = None) -> RateLimitDecision:
        now = time.monotonic() if now is None else now
        cutoff = now - window

        with self._lock:
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()

            if len(hits) >= limit:
                reset_after = max(1, math.ceil(hits[0] + window - now))
                return RateLimitDecision(False, limit, 0, reset_after)

            hits.append(now)
            reset_after = max(1, math.ceil(hits[0] + window - now))
            decision = RateLimitDecision(True, limit, limit - len(hits), reset_after)

            if len(self._hits) > self.SWEEP_THRESHOLD:
                self._sweep(cutoff)

        return decision

    def _sweep(self, cutoff: float) -> None:
        idle = [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for k in idle:
            del self._hits[k]

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


class RedisSlidingWindow:
    """Sliding-window log stored in a Redis sorted set per client."""

    def __init__(self, client_factory=get_redis_client):
        self._client_factory = client_factory

    def hit(self, key: str, limit: int, window: int, now: Optional[float] = None) -> RateLimitDecision:
        redis_client = self._client_factory()

        if not redis_client:
            # If Redis unavailable, allow request (graceful degradation)
            logger.warning("Redis unavailable, skipping rate limit check")
            return RateLimitDecision(True, limit, limit, window)

        now = time.time() if now is None else now
        redis_key = f"rate_limit:{key}"
        member = f"{now:.6f}:{uuid.uuid4().hex[:8]}"

        try:
            pipe = redis_client.pipeline()
            pipe.zremrangebyscore(redis_key, 0, now - window)
            pipe.zadd(redis_key, {member: now})
            pipe.zcard(redis_key)
            pipe.expire(redis_key, window)
            _, _, count, _ = pipe.execute()

            oldest = redis_client.zrange(redis_key, 0, 0, withscores=True)
            oldest_score = oldest[0][1] if oldest else now
            reset_after = max(1, math.ceil(oldest_score + window - now))

            if count > limit:
                # Rejected requests do not consume quota
                redis_client.zrem(redis_key, member)
                return RateLimitDecision(False, limit, 0, reset_after)

            return RateLimitDecision(True, limit, limit - count, reset_after)

        except Exception as e:
            # On error, allow request (fail open)
            logger.error(f"Rate limit check error: {e}")
            return RateLimitDecision(True, limit, limit, window)


memory_backend = MemorySlidingWindow()


def get_rate_limit_backend():
    if settings.RATE_LIMIT_BACKEND == "redis":
        return RedisSlidingWindow()
    return memory_backend


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-address rate limiting applied uniformly to every route."""

    async def dispatch(self, request: Request, call_next):
        # Skip rate limiting if disabled
        if not settings.RATE_LIMIT_ENABLED:
            return await call_next(request)

        backend = get_rate_limit_backend()
        client_key = self._get_client_key(request)

        decision = await run_in_threadpool(
            backend.hit,
            client_key,
            settings.RATE_LIMIT_MAX_REQUESTS,
            settings.RATE_LIMIT_WINDOW_SECONDS,
        )
        headers = self._headers(decision)

        if not decision.allowed:
            logger.warning(
                f"Rate limit exceeded: {request.method} {request.url.path}",
                extra={"extra_fields": {"client": client_key, "path": request.url.path}},
            )
            headers["Retry-After"] = str(decision.reset_after)
            return error_response(
                status.HTTP_429_TOO_MANY_REQUESTS,
                RATE_LIMIT_MESSAGE,
                headers=headers,
            )

        # Add rate limit headers to response
        response = await call_next(request)
        response.headers.update(headers)
        return response

    @staticmethod
    def _get_client_key(request: Request) -> str:
        client_ip = request.client.host if request.client else "unknown"
        return f"ip:{client_ip}"

    @staticmethod
    def _headers(decision: RateLimitDecision) -> Dict[str, str]:
        return {
            "RateLimit-Limit": str(decision.limit),
            "RateLimit-Remaining": str(decision.remaining),
            "RateLimit-Reset": str(decision.reset_after),
        }
