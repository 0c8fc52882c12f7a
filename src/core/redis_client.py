"""Shared Redis client factory used by the audit stream sink."""

import redis
from django.conf import settings

_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """Return a lazily created Redis client bound to ``settings.REDIS_URL``.

    Creating the client does not open a connection; connection errors and
    timeouts surface on the first command and are handled by the caller.
    """

    global _client
    if _client is None:
        _client = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        )
    return _client


__all__ = ["get_redis_client"]
