from __future__ import annotations

# Key layout shared with asynq consumers; must not change.
KEY_PREFIX = "asynq"


def task_key(queue: str, task_id: str) -> str:
    return f"{KEY_PREFIX}:{queue}:t:{task_id}"


def pending_key(queue: str) -> str:
    return f"{KEY_PREFIX}:{queue}:pending"


def scheduled_key(queue: str) -> str:
    return f"{KEY_PREFIX}:{queue}:scheduled"


def unique_key(queue: str, key: str) -> str:
    return f"{KEY_PREFIX}:{queue}:unique:{key}"
