from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class EnqueueResult:
    task_id: str
    queue: str
    state: str  # "pending" | "scheduled"
    process_at: int
    deadline: int
    # None when the task has no unique key.
    unique_lock_acquired: bool | None = None
    # Id holding the unique lock when a duplicate was detected.
    duplicate_of: str | None = None


class BatchWritableConnection(Protocol):
    """
    Anything that can open a MULTI/EXEC pipeline.

    `redis.Redis` satisfies this; so does a caller's own client wrapper.
    """

    def pipeline(self, transaction: bool = True, shard_hint: Any = None) -> Any: ...


class AsyncBatchWritableConnection(Protocol):
    """Async variant (`redis.asyncio.Redis`)."""

    def pipeline(self, transaction: bool = True, shard_hint: Any = None) -> Any: ...
