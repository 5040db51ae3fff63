from __future__ import annotations

import time
from collections.abc import Mapping
from functools import lru_cache
from typing import Any, Callable

from asynq_producer.config import get_settings
from asynq_producer.queue.connection import get_async_connection, get_connection
from asynq_producer.queue.enqueue import (
    EnqueuePlan,
    async_enqueue_message,
    enqueue_message,
    plan_enqueue,
)
from asynq_producer.queue.interfaces import (
    AsyncBatchWritableConnection,
    BatchWritableConnection,
    EnqueueResult,
)
from asynq_producer.tasks.message import (
    build_message,
    encode_payload,
    new_task_id,
    serialize_message,
)
from asynq_producer.tasks.options import (
    INT64_MAX,
    DuplicatePolicy,
    EnqueueOptions,
    OptionDefaults,
    resolve_options,
)

OptionsArg = EnqueueOptions | Mapping[str, Any] | None


class _BaseClient:
    def __init__(
        self,
        *,
        defaults: OptionDefaults | None = None,
        default_queue: str | None = None,
        on_duplicate: DuplicatePolicy | str | None = None,
        clock: Callable[[], float] = time.time,
        id_factory: Callable[[], str] = new_task_id,
    ) -> None:
        # Settings are only read for what the caller left out.
        self.defaults = defaults if defaults is not None else OptionDefaults.from_settings()
        self.default_queue = str(default_queue or get_settings().default_queue)
        self.on_duplicate = DuplicatePolicy.parse(
            on_duplicate if on_duplicate is not None else get_settings().on_duplicate
        )
        self._clock = clock
        self._id_factory = id_factory

    def plan(
        self,
        type: str,
        payload: Any,
        queue: str | None = None,
        options: OptionsArg = None,
    ) -> EnqueuePlan:
        """Resolve options, build and serialize the message; no I/O."""
        if not isinstance(type, str) or not type.strip():
            raise ValueError("task type is required")
        queue = self.default_queue if queue is None else queue
        if not isinstance(queue, str) or not queue.strip():
            raise ValueError("queue name is required")

        now = int(self._clock())
        opts = resolve_options(options, self.defaults)
        process_at = min(INT64_MAX, now + opts.delay)

        msg = build_message(
            type=type,
            payload=encode_payload(payload),
            task_id=self._id_factory(),
            queue=queue,
            options=opts,
            process_at=process_at,
        )
        return plan_enqueue(msg, serialize_message(msg), opts, process_at=process_at, now=now)


class TaskClient(_BaseClient):
    """
    Synchronous producer.

    `connection` may be a redis client (anything with `pipeline(transaction=True)`),
    a registered connection name, or None for the configured default connection.
    """

    def __init__(
        self,
        connection: BatchWritableConnection | str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._conn = connection

    def _connection(self, connection: BatchWritableConnection | str | None) -> BatchWritableConnection:
        conn = connection if connection is not None else self._conn
        if conn is None or isinstance(conn, str):
            return get_connection(conn)
        return conn

    def submit(
        self,
        type: str,
        payload: Any,
        queue: str | None = None,
        options: OptionsArg = None,
        connection: BatchWritableConnection | str | None = None,
        *,
        on_duplicate: DuplicatePolicy | str | None = None,
    ) -> EnqueueResult:
        plan = self.plan(type, payload, queue, options)
        policy = self.on_duplicate if on_duplicate is None else DuplicatePolicy.parse(on_duplicate)
        return enqueue_message(self._connection(connection), plan, on_duplicate=policy)

    def enqueue(
        self,
        type: str,
        payload: Any,
        queue: str | None = None,
        options: OptionsArg = None,
        connection: BatchWritableConnection | str | None = None,
    ) -> str:
        return self.submit(type, payload, queue, options, connection).task_id


class AsyncTaskClient(_BaseClient):
    """Same contract as TaskClient over `redis.asyncio`."""

    def __init__(
        self,
        connection: AsyncBatchWritableConnection | str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._conn = connection

    def _connection(
        self, connection: AsyncBatchWritableConnection | str | None
    ) -> AsyncBatchWritableConnection:
        conn = connection if connection is not None else self._conn
        if conn is None or isinstance(conn, str):
            return get_async_connection(conn)
        return conn

    async def submit(
        self,
        type: str,
        payload: Any,
        queue: str | None = None,
        options: OptionsArg = None,
        connection: AsyncBatchWritableConnection | str | None = None,
        *,
        on_duplicate: DuplicatePolicy | str | None = None,
    ) -> EnqueueResult:
        plan = self.plan(type, payload, queue, options)
        policy = self.on_duplicate if on_duplicate is None else DuplicatePolicy.parse(on_duplicate)
        return await async_enqueue_message(self._connection(connection), plan, on_duplicate=policy)

    async def enqueue(
        self,
        type: str,
        payload: Any,
        queue: str | None = None,
        options: OptionsArg = None,
        connection: AsyncBatchWritableConnection | str | None = None,
    ) -> str:
        res = await self.submit(type, payload, queue, options, connection)
        return res.task_id


@lru_cache(maxsize=1)
def get_client() -> TaskClient:
    return TaskClient()


@lru_cache(maxsize=1)
def get_async_client() -> AsyncTaskClient:
    return AsyncTaskClient()


def reset_default_client() -> None:
    get_client.cache_clear()
    get_async_client.cache_clear()


def enqueue(
    type: str,
    payload: Any,
    queue: str | None = None,
    options: OptionsArg = None,
    connection: BatchWritableConnection | str | None = None,
) -> str:
    """Enqueue through the process-wide client; returns the new task id."""
    return get_client().enqueue(type, payload, queue, options, connection)
