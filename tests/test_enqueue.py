from __future__ import annotations

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from asynq_producer.client import TaskClient, enqueue
from asynq_producer.config import get_settings
from asynq_producer.errors import EncodingError, EnqueueError, StoreCommandError, StoreUnavailableError
from asynq_producer.queue.connection import register_connection
from asynq_producer.tasks.message import parse_message
from asynq_producer.tasks.options import INT32_MAX, INT64_MAX
from tests._helpers.fake_redis import FakeRedis

NOW = 1_700_000_000


def _client(conn: FakeRedis, **kwargs) -> TaskClient:
    return TaskClient(conn, clock=lambda: float(NOW), **kwargs)


def test_immediate_task_is_pending_and_tail_of_list(fake_redis: FakeRedis) -> None:
    client = _client(fake_redis)
    task_id = client.enqueue("email:send", {"to": "a@b.com"}, "default", {})

    assert len(task_id) == 36
    rec = fake_redis.hgetall(f"asynq:default:t:{task_id}")
    assert rec["state"] == "pending"
    assert "score" not in rec
    assert fake_redis.lrange("asynq:default:pending", 0, -1)[-1] == task_id
    assert fake_redis.exists("asynq:default:scheduled") == 0

    msg = parse_message(rec["msg"])
    assert msg.id == task_id
    assert msg.type == "email:send"
    assert msg.queue == "default"
    assert msg.payload == b'{"to":"a@b.com"}'
    assert msg.retried == 0
    assert msg.retry == 3
    assert msg.timeout == 60
    assert msg.deadline == NOW + 60


def test_delayed_task_is_scheduled_with_process_at_score(fake_redis: FakeRedis) -> None:
    client = _client(fake_redis)
    res = client.submit("report:build", {}, "reports", {"delay": 300})

    assert res.state == "scheduled"
    assert res.process_at == NOW + 300
    rec = fake_redis.hgetall(f"asynq:reports:t:{res.task_id}")
    assert rec["state"] == "scheduled"
    assert rec["score"] == str(NOW + 300)
    assert fake_redis.zscore("asynq:reports:scheduled", res.task_id) == NOW + 300
    assert fake_redis.exists("asynq:reports:pending") == 0

    msg = parse_message(rec["msg"])
    assert msg.deadline >= res.process_at >= NOW
    assert msg.deadline == NOW + 300 + 60


def test_queue_defaults_to_default(fake_redis: FakeRedis) -> None:
    task_id = _client(fake_redis).enqueue("noop", {})
    assert fake_redis.lrange("asynq:default:pending", 0, -1) == [task_id]


def test_configured_default_queue(fake_redis: FakeRedis, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ASYNQ_DEFAULT_QUEUE", "critical")
    get_settings.cache_clear()
    task_id = _client(fake_redis).enqueue("noop", {})
    assert fake_redis.lrange("asynq:critical:pending", 0, -1) == [task_id]


def test_negative_delay_is_treated_as_immediate(fake_redis: FakeRedis) -> None:
    res = _client(fake_redis).submit("noop", {}, options={"delay": -30, "retry": -1})
    assert res.state == "pending"
    assert res.process_at == NOW
    msg = parse_message(fake_redis.hgetall(f"asynq:default:t:{res.task_id}")["msg"])
    assert msg.retry == 0


def test_all_writes_go_through_one_batch(fake_redis: FakeRedis) -> None:
    _client(fake_redis).enqueue("import:csv", {"file": "x"}, options={"uniqueKey": "import-x"})
    assert len(fake_redis.store.executed) == 1
    assert [name for name, _, _ in fake_redis.store.executed[0]] == ["set", "hset", "rpush"]


def test_unique_lock_is_set_with_deadline_ttl(fake_redis: FakeRedis) -> None:
    res = _client(fake_redis).submit(
        "import:csv", {"file": "x"}, options={"unique_key": "import-x", "delay": 100, "timeout": 50}
    )
    assert res.unique_lock_acquired is True
    lock = "asynq:default:unique:import-x"
    assert fake_redis.get(lock) == res.task_id
    # deadline - now = delay + deadline offset
    assert fake_redis.ttl(lock) == 150


def test_unique_lock_ttl_is_at_least_one_second(fake_redis: FakeRedis) -> None:
    res = _client(fake_redis).submit("noop", {}, options={"unique_key": "k", "deadline": 0})
    assert res.deadline == NOW
    assert fake_redis.ttl("asynq:default:unique:k") == 1


def test_oversized_options_still_enqueue(fake_redis: FakeRedis) -> None:
    res = _client(fake_redis).submit(
        "noop", {}, options={"retry": 2**31, "delay": 2**70, "deadline": 2**70, "unique_key": "k"}
    )
    assert res.state == "scheduled"
    assert res.process_at == INT64_MAX
    msg = parse_message(fake_redis.hgetall(f"asynq:default:t:{res.task_id}")["msg"])
    assert msg.retry == INT32_MAX
    assert msg.deadline == INT64_MAX
    assert 0 < fake_redis.ttl("asynq:default:unique:k") <= INT32_MAX


def test_no_lock_without_unique_key(fake_redis: FakeRedis) -> None:
    res = _client(fake_redis).submit("noop", {})
    assert res.unique_lock_acquired is None
    assert not fake_redis.store.strings


def test_second_unique_enqueue_keeps_original_lock_value(fake_redis: FakeRedis) -> None:
    client = _client(fake_redis)
    first = client.submit("import:csv", {"file": "x"}, options={"uniqueKey": "import-x"})
    second = client.submit("import:csv", {"file": "x"}, options={"uniqueKey": "import-x"})

    assert first.unique_lock_acquired is True
    assert second.unique_lock_acquired is False
    assert second.task_id != first.task_id
    assert fake_redis.get("asynq:default:unique:import-x") == first.task_id
    # allow policy: the batch still committed the second record
    assert fake_redis.hgetall(f"asynq:default:t:{second.task_id}")["state"] == "pending"
    assert fake_redis.lrange("asynq:default:pending", 0, -1) == [first.task_id, second.task_id]


def test_connection_errors_are_wrapped(fake_redis: FakeRedis) -> None:
    cause = RedisConnectionError("connection refused")
    fake_redis.fail_with = cause
    with pytest.raises(StoreUnavailableError) as ei:
        _client(fake_redis).enqueue("noop", {})
    assert isinstance(ei.value, EnqueueError)
    assert ei.value.__cause__ is cause
    assert not fake_redis.store.hashes


def test_command_errors_are_wrapped(fake_redis: FakeRedis) -> None:
    fake_redis.fail_with = ResponseError("EXECABORT")
    with pytest.raises(StoreCommandError) as ei:
        _client(fake_redis).enqueue("noop", {})
    assert isinstance(ei.value.__cause__, ResponseError)


def test_unencodable_payload_fails_before_touching_the_store(fake_redis: FakeRedis) -> None:
    with pytest.raises(EncodingError):
        _client(fake_redis).enqueue("noop", {"x": object()})
    assert not fake_redis.store.executed


@pytest.mark.parametrize("task_type", ["", "   "])
def test_empty_type_is_rejected(fake_redis: FakeRedis, task_type: str) -> None:
    with pytest.raises(ValueError):
        _client(fake_redis).enqueue(task_type, {})


def test_empty_queue_is_rejected(fake_redis: FakeRedis) -> None:
    with pytest.raises(ValueError):
        _client(fake_redis).enqueue("noop", {}, "")


def test_per_call_connection_overrides_client_connection(fake_redis: FakeRedis) -> None:
    other = FakeRedis()
    client = _client(fake_redis)
    task_id = client.enqueue("noop", {}, connection=other)
    assert other.lrange("asynq:default:pending", 0, -1) == [task_id]
    assert not fake_redis.store.executed


def test_module_level_enqueue_uses_registered_default_connection(fake_redis: FakeRedis) -> None:
    register_connection("asynq", fake_redis)
    task_id = enqueue("email:send", {"to": "a@b.com"})
    assert fake_redis.lrange("asynq:default:pending", 0, -1) == [task_id]


def test_named_connection(fake_redis: FakeRedis) -> None:
    register_connection("reports", fake_redis)
    task_id = TaskClient("reports").enqueue("report:build", {}, "reports")
    assert fake_redis.lrange("asynq:reports:pending", 0, -1) == [task_id]
