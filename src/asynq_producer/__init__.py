from __future__ import annotations

from .client import (
    AsyncTaskClient,
    TaskClient,
    enqueue,
    get_async_client,
    get_client,
    reset_default_client,
)
from .errors import (
    AsynqProducerError,
    DuplicateTaskError,
    EncodingError,
    EnqueueError,
    StoreCommandError,
    StoreUnavailableError,
)
from .queue.interfaces import EnqueueResult
from .tasks.message import TaskMessage, parse_message, serialize_message
from .tasks.options import DuplicatePolicy, EnqueueOptions, OptionDefaults, TaskOptions

__all__ = [
    "AsyncTaskClient",
    "AsynqProducerError",
    "DuplicatePolicy",
    "DuplicateTaskError",
    "EncodingError",
    "EnqueueError",
    "EnqueueOptions",
    "EnqueueResult",
    "OptionDefaults",
    "StoreCommandError",
    "StoreUnavailableError",
    "TaskClient",
    "TaskMessage",
    "TaskOptions",
    "enqueue",
    "get_async_client",
    "get_client",
    "parse_message",
    "reset_default_client",
    "serialize_message",
]
