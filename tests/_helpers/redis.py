from __future__ import annotations

import os

import redis
from redis.exceptions import RedisError

from asynq_producer.config import get_settings


def _redis_url() -> str:
    return os.environ.get("ASYNQ_REDIS_URL") or str(get_settings().redis_url or "")


def redis_available() -> bool:
    url = _redis_url()
    if not url:
        return False
    try:
        return bool(redis.Redis.from_url(url, socket_timeout=2).ping())
    except (RedisError, OSError):
        return False


def redis_client(*, decode_responses: bool = True) -> redis.Redis | None:
    url = _redis_url()
    if not url:
        return None
    return redis.Redis.from_url(url, decode_responses=decode_responses)
