from __future__ import annotations

from typing import Any

import redis
import redis.asyncio as redis_async

from asynq_producer.config import ConfigError, get_settings

_clients: dict[str, Any] = {}
_async_clients: dict[str, Any] = {}
# Names whose sync client was built here (and is closed here).
_owned: set[str] = set()


def default_connection_name() -> str:
    return str(get_settings().redis_connection).strip()


def _client_kwargs() -> dict[str, Any]:
    s = get_settings()
    pw = s.redis_password.get_secret_value() if s.redis_password else None
    return {
        "host": str(s.redis_host),
        "port": int(s.redis_port),
        "db": int(s.redis_db),
        "password": pw or None,
        "socket_timeout": float(s.redis_socket_timeout),
    }


def _build(module: Any) -> Any:
    s = get_settings()
    url = str(s.redis_url or "").strip()
    if url:
        return module.Redis.from_url(url, socket_timeout=float(s.redis_socket_timeout))
    return module.Redis(**_client_kwargs())


def register_connection(name: str, client: Any) -> None:
    """Install a caller-owned sync client under `name` (replaces any cached one)."""
    _clients[str(name)] = client
    _owned.discard(str(name))


def register_async_connection(name: str, client: Any) -> None:
    _async_clients[str(name)] = client


def get_connection(name: str | None = None) -> redis.Redis:
    """
    Return the sync client registered under `name` (default: configured name).

    The configured name is built lazily from settings; any other name must have
    been registered first.
    """
    key = str(name or default_connection_name())
    client = _clients.get(key)
    if client is not None:
        return client
    if key != default_connection_name():
        raise ConfigError(f"unknown redis connection {key!r}")
    client = _build(redis)
    _clients[key] = client
    _owned.add(key)
    return client


def get_async_connection(name: str | None = None) -> redis_async.Redis:
    key = str(name or default_connection_name())
    client = _async_clients.get(key)
    if client is not None:
        return client
    if key != default_connection_name():
        raise ConfigError(f"unknown redis connection {key!r}")
    client = _build(redis_async)
    _async_clients[key] = client
    return client


def close_connections() -> None:
    """
    Forget all clients. Sync clients built from settings are closed; caller-registered
    ones and async ones (bound to their event loop) are left to their owners.
    """
    for name in list(_owned):
        client = _clients.get(name)
        if client is not None:
            client.close()
    _owned.clear()
    _clients.clear()
    _async_clients.clear()
