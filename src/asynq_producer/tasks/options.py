from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any

from asynq_producer.config import get_settings
from asynq_producer.utils.log import logger

DEFAULT_RETRY = 3
DEFAULT_TIMEOUT = 60
DEFAULT_DEADLINE = 3600

# Ceilings of the protobuf fields the options end up in (retry is int32, the rest int64).
INT32_MAX = 2**31 - 1
INT64_MAX = 2**63 - 1

# Wire-level option names used by other asynq producers.
_ALIASES = {
    "uniqueKey": "unique_key",
    "groupKey": "group_key",
}


class DuplicatePolicy(str, Enum):
    """What enqueue does when the unique-key lock is already held."""

    ALLOW = "allow"
    REJECT = "reject"
    RETURN_EXISTING = "return_existing"

    @classmethod
    def parse(cls, raw: DuplicatePolicy | str | None) -> DuplicatePolicy:
        if isinstance(raw, cls):
            return raw
        v = str(raw or "").strip().lower().replace("-", "_")
        if not v:
            return cls.ALLOW
        return cls(v)


@dataclass(frozen=True, slots=True)
class OptionDefaults:
    """Process-wide option defaults; built once from settings and passed in explicitly."""

    retry: int = DEFAULT_RETRY
    timeout: int = DEFAULT_TIMEOUT
    deadline: int = DEFAULT_DEADLINE

    @classmethod
    def from_settings(cls) -> OptionDefaults:
        s = get_settings()
        return cls(
            retry=int(s.default_retry),
            timeout=int(s.default_timeout),
            deadline=int(s.default_deadline),
        )


@dataclass(frozen=True, slots=True)
class EnqueueOptions:
    """Sparse caller options; `None` means "use the default"."""

    delay: int | None = None
    retry: int | None = None
    timeout: int | None = None
    retention: int | None = None
    unique_key: str | None = None
    group_key: str | None = None
    deadline: int | None = None

    def as_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


@dataclass(frozen=True, slots=True)
class TaskOptions:
    """
    Fully resolved options.

    `deadline` is an offset in seconds from the scheduled start; it only becomes
    an absolute timestamp when the task message is built.
    """

    delay: int
    retry: int
    timeout: int
    retention: int
    unique_key: str
    group_key: str
    deadline: int


_KNOWN = {f.name for f in fields(EnqueueOptions)}


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def _non_negative(value: Any, ceiling: int = INT64_MAX) -> int:
    return min(ceiling, max(0, _as_int(value)))


def _normalize(options: EnqueueOptions | Mapping[str, Any] | None) -> dict[str, Any]:
    if options is None:
        return {}
    if isinstance(options, EnqueueOptions):
        return options.as_dict()
    out: dict[str, Any] = {}
    unknown: list[str] = []
    for k, v in options.items():
        name = _ALIASES.get(str(k), str(k))
        if name not in _KNOWN:
            unknown.append(str(k))
            continue
        if v is not None:
            out[name] = v
    if unknown:
        logger.debug("task_options_unknown", names=sorted(unknown))
    return out


def resolve_options(
    options: EnqueueOptions | Mapping[str, Any] | None,
    defaults: OptionDefaults,
) -> TaskOptions:
    """
    Merge caller options over defaults and normalize.

    Numbers are coerced to int and clamped into the range of their wire field
    (negative or oversized input is not an error). Keys are coerced to str. When no deadline is given it falls back to
    `timeout` (if positive), then to the default deadline.
    """
    merged: dict[str, Any] = {
        "delay": 0,
        "retry": defaults.retry,
        "timeout": defaults.timeout,
        "retention": 0,
        "unique_key": "",
        "group_key": "",
    }
    merged.update(_normalize(options))

    timeout = _non_negative(merged["timeout"])
    if merged.get("deadline") is not None:
        deadline = _non_negative(merged["deadline"])
    elif timeout > 0:
        deadline = timeout
    else:
        deadline = _non_negative(defaults.deadline)

    return TaskOptions(
        delay=_non_negative(merged["delay"]),
        retry=_non_negative(merged["retry"], INT32_MAX),
        timeout=timeout,
        retention=_non_negative(merged["retention"]),
        unique_key=str(merged["unique_key"]),
        group_key=str(merged["group_key"]),
        deadline=deadline,
    )
