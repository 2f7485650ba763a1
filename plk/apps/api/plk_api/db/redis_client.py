"""Redis client for the Redis usage ledger."""

import os
from functools import lru_cache
from typing import Optional
from urllib.parse import urlparse

import redis

DEFAULT_REDIS_URL = "redis://localhost:6379/0"


def build_redis_client(redis_url: Optional[str] = None) -> redis.Redis:
    """
    Build a Redis client.

    REDIS_URL selects the server (redis:// or rediss://), falling back to a
    local instance. REDIS_PASSWORD applies only when the URL has no password.
    Counters are decoded to str; the ledger casts them to int.
    """
    url = redis_url or os.getenv("REDIS_URL", DEFAULT_REDIS_URL)
    password = os.getenv("REDIS_PASSWORD")

    kwargs = {
        "decode_responses": True,
        "socket_connect_timeout": 5,
        "socket_timeout": 5,
        "health_check_interval": 30,
    }
    if password and not urlparse(url).password:
        kwargs["password"] = password

    return redis.from_url(url, **kwargs)


@lru_cache(maxsize=1)
def get_redis() -> redis.Redis:
    """Process-wide Redis client (get_redis.cache_clear() resets it in tests)."""
    return build_redis_client()
