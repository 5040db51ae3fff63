from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from pydantic import SecretStr

from .public_config import PublicConfig
from .secret_config import SecretConfig

DUPLICATE_POLICIES = ("allow", "reject", "return_existing")


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class Settings:
    """
    Merged settings view (dot-access).

    Precedence:
      - secrets override public when names overlap
    """

    public: PublicConfig
    secret: SecretConfig

    def __getattr__(self, name: str) -> Any:
        if hasattr(self.secret, name):
            return getattr(self.secret, name)
        return getattr(self.public, name)


def _secret_value(secret: SecretStr | None) -> str:
    try:
        return secret.get_secret_value() if secret else ""
    except Exception:
        return ""


def _validate_settings(s: Settings) -> None:
    """
    Hard-fail on values the redis client or the enqueue path cannot work with.

    Negative task defaults are not fatal: options are clamped at resolution time,
    so they only produce a warning here.
    """
    bad: list[str] = []
    port = int(s.public.redis_port)
    if port < 1 or port > 65535:
        bad.append("ASYNQ_REDIS_PORT")
    if int(s.public.redis_db) < 0:
        bad.append("ASYNQ_REDIS_DB")
    if not str(s.public.redis_connection or "").strip():
        bad.append("ASYNQ_REDIS_CONNECTION")
    if not str(s.public.default_queue or "").strip():
        bad.append("ASYNQ_DEFAULT_QUEUE")
    if str(s.public.on_duplicate or "").strip().lower() not in DUPLICATE_POLICIES:
        bad.append("ASYNQ_ON_DUPLICATE")
    if bad:
        raise ConfigError("Invalid asynq configuration: " + ", ".join(sorted(set(bad))))

    clamped = [
        name
        for name, value in (
            ("ASYNQ_DEFAULT_RETRY", s.public.default_retry),
            ("ASYNQ_DEFAULT_TIMEOUT", s.public.default_timeout),
            ("ASYNQ_DEFAULT_DEADLINE", s.public.default_deadline),
        )
        if int(value) < 0
    ]
    if clamped:
        logging.getLogger("asynq_producer").warning(
            "negative_task_defaults_clamped",
            extra={"settings": clamped},
        )


def get_safe_config_report() -> dict[str, Any]:
    """
    Deterministic, non-sensitive config report.

    - Public values are included (paths are stringified)
    - Secret values are NEVER included; only SET/UNSET markers
    """
    s = get_settings()

    pub = s.public.model_dump()
    pub_s: dict[str, Any] = {}
    for k, v in pub.items():
        # stringify Paths for stable JSON output
        pub_s[k] = str(v) if hasattr(v, "__fspath__") else v

    sec: dict[str, str] = {}
    for k in sorted(s.secret.model_fields.keys()):
        v = getattr(s.secret, k, None)
        if v is None:
            sec[k] = "UNSET"
        elif isinstance(v, SecretStr):
            sec[k] = "SET" if _secret_value(v) else "UNSET"
        else:
            sec[k] = "SET" if str(v).strip() else "UNSET"

    return {
        "public": pub_s,
        "secrets": sec,
    }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    public = PublicConfig()
    secret = SecretConfig()
    s = Settings(public=public, secret=secret)
    _validate_settings(s)
    return s
