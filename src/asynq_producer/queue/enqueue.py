from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, WatchError
from redis.exceptions import TimeoutError as RedisTimeoutError

from asynq_producer.errors import (
    DuplicateTaskError,
    EnqueueError,
    StoreCommandError,
    StoreUnavailableError,
)
from asynq_producer.tasks.message import TaskMessage
from asynq_producer.tasks.options import DuplicatePolicy, TaskOptions
from asynq_producer.utils.log import logger

from . import keys
from .interfaces import AsyncBatchWritableConnection, BatchWritableConnection, EnqueueResult

STATE_PENDING = "pending"
STATE_SCHEDULED = "scheduled"

# WATCH retries when another producer touches the lock key mid-transaction.
_WATCH_ATTEMPTS = 3

# redis rejects expiries whose millisecond value overflows; 68 years is plenty.
_MAX_LOCK_TTL = 2**31 - 1


@dataclass(frozen=True, slots=True)
class EnqueuePlan:
    """Every key and value one enqueue writes, computed before touching the store."""

    task_id: str
    task_type: str
    queue: str
    state: str
    process_at: int
    deadline: int
    record_key: str
    index_key: str
    record: dict[str, Any]
    lock_key: str | None = None
    lock_ttl: int = 0
    unique_key: str = ""


def plan_enqueue(
    msg: TaskMessage,
    encoded: bytes,
    options: TaskOptions,
    *,
    process_at: int,
    now: int,
) -> EnqueuePlan:
    lock_key = None
    lock_ttl = 0
    if options.unique_key:
        lock_key = keys.unique_key(msg.queue, options.unique_key)
        # EX 0 is rejected by redis; deadline == now only happens with a zero deadline offset.
        lock_ttl = min(_MAX_LOCK_TTL, max(1, int(msg.deadline) - int(now)))

    if options.delay > 0:
        return EnqueuePlan(
            task_id=msg.id,
            task_type=msg.type,
            queue=msg.queue,
            state=STATE_SCHEDULED,
            process_at=int(process_at),
            deadline=int(msg.deadline),
            record_key=keys.task_key(msg.queue, msg.id),
            index_key=keys.scheduled_key(msg.queue),
            record={"msg": encoded, "state": STATE_SCHEDULED, "score": int(process_at)},
            lock_key=lock_key,
            lock_ttl=lock_ttl,
            unique_key=options.unique_key,
        )
    return EnqueuePlan(
        task_id=msg.id,
        task_type=msg.type,
        queue=msg.queue,
        state=STATE_PENDING,
        process_at=int(process_at),
        deadline=int(msg.deadline),
        record_key=keys.task_key(msg.queue, msg.id),
        index_key=keys.pending_key(msg.queue),
        record={"msg": encoded, "state": STATE_PENDING},
        lock_key=lock_key,
        lock_ttl=lock_ttl,
        unique_key=options.unique_key,
    )


def _stage(pipe: Any, plan: EnqueuePlan) -> None:
    if plan.lock_key:
        pipe.set(plan.lock_key, plan.task_id, nx=True, ex=plan.lock_ttl)
    pipe.hset(plan.record_key, mapping=plan.record)
    if plan.state == STATE_SCHEDULED:
        pipe.zadd(plan.index_key, {plan.task_id: plan.process_at})
    else:
        pipe.rpush(plan.index_key, plan.task_id)


def _as_str(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _wrap_store_error(ex: BaseException, plan: EnqueuePlan) -> EnqueueError:
    logger.warning(
        "task_enqueue_failed",
        task_id=plan.task_id,
        queue=plan.queue,
        task_type=plan.task_type,
        error=str(ex),
    )
    if isinstance(ex, (RedisConnectionError, RedisTimeoutError, OSError)):
        return StoreUnavailableError(f"Failed to enqueue task: {ex}")
    return StoreCommandError(f"Failed to enqueue task: {ex}")


def _result(plan: EnqueuePlan, *, lock_acquired: bool | None) -> EnqueueResult:
    if lock_acquired is False:
        # Batch still committed (allow policy); the lock keeps the earlier task id.
        logger.warning(
            "task_unique_lock_held",
            task_id=plan.task_id,
            queue=plan.queue,
            unique_key=plan.unique_key,
        )
    logger.info(
        "task_enqueued",
        task_id=plan.task_id,
        queue=plan.queue,
        task_type=plan.task_type,
        state=plan.state,
        process_at=plan.process_at,
    )
    return EnqueueResult(
        task_id=plan.task_id,
        queue=plan.queue,
        state=plan.state,
        process_at=plan.process_at,
        deadline=plan.deadline,
        unique_lock_acquired=lock_acquired,
    )


def _duplicate(plan: EnqueuePlan, existing: Any, policy: DuplicatePolicy) -> EnqueueResult:
    existing_id = _as_str(existing)
    logger.info(
        "task_duplicate_rejected",
        task_id=plan.task_id,
        existing_id=existing_id,
        queue=plan.queue,
        unique_key=plan.unique_key,
        policy=policy.value,
    )
    if policy is DuplicatePolicy.REJECT:
        raise DuplicateTaskError(queue=plan.queue, unique_key=plan.unique_key, existing_id=existing_id)
    return EnqueueResult(
        task_id=existing_id,
        queue=plan.queue,
        state=plan.state,
        process_at=plan.process_at,
        deadline=plan.deadline,
        unique_lock_acquired=False,
        duplicate_of=existing_id,
    )


def _lock_reply(plan: EnqueuePlan, replies: list[Any]) -> bool | None:
    if not plan.lock_key:
        return None
    return bool(replies[0])


def enqueue_message(
    conn: BatchWritableConnection,
    plan: EnqueuePlan,
    *,
    on_duplicate: DuplicatePolicy = DuplicatePolicy.ALLOW,
) -> EnqueueResult:
    """
    Write the record and its index entry in one MULTI/EXEC.

    With a unique key under the `allow` policy the lock is part of the same batch
    and its outcome is only reported. `reject` / `return_existing` WATCH the lock
    first and write nothing when it is held.
    """
    try:
        if plan.lock_key and on_duplicate is not DuplicatePolicy.ALLOW:
            return _enqueue_guarded(conn, plan, on_duplicate)
        with conn.pipeline(transaction=True) as pipe:
            _stage(pipe, plan)
            replies = pipe.execute()
    except (RedisError, OSError) as ex:
        raise _wrap_store_error(ex, plan) from ex
    return _result(plan, lock_acquired=_lock_reply(plan, replies))


def _enqueue_guarded(
    conn: BatchWritableConnection, plan: EnqueuePlan, policy: DuplicatePolicy
) -> EnqueueResult:
    assert plan.lock_key is not None
    with conn.pipeline(transaction=True) as pipe:
        for _ in range(_WATCH_ATTEMPTS):
            try:
                pipe.watch(plan.lock_key)
                existing = pipe.get(plan.lock_key)
                if existing is not None:
                    return _duplicate(plan, existing, policy)
                pipe.multi()
                _stage(pipe, plan)
                replies = pipe.execute()
                return _result(plan, lock_acquired=_lock_reply(plan, replies))
            except WatchError:
                pipe.reset()
                continue
    raise StoreCommandError(f"unique lock {plan.lock_key} kept changing; gave up")


async def async_enqueue_message(
    conn: AsyncBatchWritableConnection,
    plan: EnqueuePlan,
    *,
    on_duplicate: DuplicatePolicy = DuplicatePolicy.ALLOW,
) -> EnqueueResult:
    try:
        if plan.lock_key and on_duplicate is not DuplicatePolicy.ALLOW:
            return await _async_enqueue_guarded(conn, plan, on_duplicate)
        async with conn.pipeline(transaction=True) as pipe:
            _stage(pipe, plan)
            replies = await pipe.execute()
    except (RedisError, OSError) as ex:
        raise _wrap_store_error(ex, plan) from ex
    return _result(plan, lock_acquired=_lock_reply(plan, replies))


async def _async_enqueue_guarded(
    conn: AsyncBatchWritableConnection, plan: EnqueuePlan, policy: DuplicatePolicy
) -> EnqueueResult:
    assert plan.lock_key is not None
    async with conn.pipeline(transaction=True) as pipe:
        for _ in range(_WATCH_ATTEMPTS):
            try:
                await pipe.watch(plan.lock_key)
                existing = await pipe.get(plan.lock_key)
                if existing is not None:
                    return _duplicate(plan, existing, policy)
                pipe.multi()
                _stage(pipe, plan)
                replies = await pipe.execute()
                return _result(plan, lock_acquired=_lock_reply(plan, replies))
            except WatchError:
                await pipe.reset()
                continue
    raise StoreCommandError(f"unique lock {plan.lock_key} kept changing; gave up")
