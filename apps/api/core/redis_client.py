"""
Redis connection for the shared rate-limit backend.

Callers get ``None`` while Redis is unreachable. A failed connection attempt
is remembered for ``RETRY_AFTER_SECONDS`` so a Redis outage does not add a
connect timeout to every request.
"""
import logging
import time
from typing import Optional
import redis
from redis.exceptions import RedisError
from core.config import settings

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 30.0

_redis_client: Optional[redis.Redis] = None
_next_attempt_at = 0.0


def get_redis_client() -> Optional[redis.Redis]:
    """Shared Redis client, or None if Redis is unavailable."""
    global _redis_client, _next_attempt_at

    if _redis_client is not None:
        return _redis_client

    now = time.monotonic()
    if now < _next_attempt_at:
        return None

    client = redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
        health_check_interval=30,
    )
    try:
        client.ping()
    except RedisError as e:
        _next_attempt_at = now + RETRY_AFTER_SECONDS
        logger.warning(
            f"Redis unavailable: {e}. Rate limiting fails open for {RETRY_AFTER_SECONDS:g}s.",
            extra={"extra_fields": {"redis_url": settings.REDIS_URL.split("@")[-1]}},
        )
        return None

    _redis_client = client
    logger.info("Redis connection established")
    return _redis_client


def reset_redis_client() -> None:
    """Forget the cached client and any pending backoff."""
    global _redis_client, _next_attempt_at
    _redis_client = None
    _next_attempt_at = 0.0
