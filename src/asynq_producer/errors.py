from __future__ import annotations


class AsynqProducerError(RuntimeError):
    pass


class EncodingError(AsynqProducerError):
    """Payload or task record cannot be encoded (or decoded)."""


class EnqueueError(AsynqProducerError):
    """
    Store failure while enqueuing.

    Every redis-level failure surfaces as this (or a subclass); the original
    exception is kept as `__cause__`.
    """


class StoreUnavailableError(EnqueueError):
    pass


class StoreCommandError(EnqueueError):
    pass


class DuplicateTaskError(AsynqProducerError):
    def __init__(self, *, queue: str, unique_key: str, existing_id: str) -> None:
        super().__init__(
            f"task with unique key {unique_key!r} already queued in {queue!r} (id={existing_id})"
        )
        self.queue = queue
        self.unique_key = unique_key
        self.existing_id = existing_id
