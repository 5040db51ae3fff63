from __future__ import annotations

import logging

import pytest

from asynq_producer.client import reset_default_client
from asynq_producer.config import get_settings
from asynq_producer.queue.connection import close_connections
from tests._helpers.fake_redis import FakeRedis, FakeStore

NOW = 1_700_000_000


def _reset_package_logger() -> None:
    base = logging.getLogger("asynq_producer")
    base.handlers.clear()
    base.setLevel(logging.NOTSET)
    base.propagate = True
    base._asynq_producer_handlers_configured = False


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "ASYNQ_DEFAULT_QUEUE",
        "ASYNQ_DEFAULT_RETRY",
        "ASYNQ_DEFAULT_TIMEOUT",
        "ASYNQ_DEFAULT_DEADLINE",
        "ASYNQ_ON_DUPLICATE",
        "ASYNQ_REDIS_CONNECTION",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    reset_default_client()
    close_connections()
    yield
    get_settings.cache_clear()
    reset_default_client()
    close_connections()
    _reset_package_logger()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore(clock=lambda: float(NOW))


@pytest.fixture
def fake_redis(store: FakeStore) -> FakeRedis:
    return FakeRedis(store)
