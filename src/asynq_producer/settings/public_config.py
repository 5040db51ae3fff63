from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PublicConfig(BaseSettings):
    """
    Non-sensitive config with safe defaults.

    Loaded from (in order):
      - process env
      - optional `.env` file
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- redis connection ---
    # Name the default connection is registered under (see asynq_producer.queue.connection).
    redis_connection: str = Field(default="asynq", alias="ASYNQ_REDIS_CONNECTION")
    redis_host: str = Field(default="127.0.0.1", alias="ASYNQ_REDIS_HOST")
    redis_port: int = Field(default=6379, alias="ASYNQ_REDIS_PORT")
    redis_db: int = Field(default=0, alias="ASYNQ_REDIS_DB")
    redis_socket_timeout: float = Field(default=5.0, alias="ASYNQ_REDIS_SOCKET_TIMEOUT")

    # --- task defaults ---
    default_queue: str = Field(default="default", alias="ASYNQ_DEFAULT_QUEUE")
    default_retry: int = Field(default=3, alias="ASYNQ_DEFAULT_RETRY")
    default_timeout: int = Field(default=60, alias="ASYNQ_DEFAULT_TIMEOUT")  # seconds
    default_deadline: int = Field(default=3600, alias="ASYNQ_DEFAULT_DEADLINE")  # seconds
    # allow: write even when the unique lock is held (wire-compatible)
    # reject: raise DuplicateTaskError
    # return_existing: return the id holding the lock
    on_duplicate: str = Field(default="allow", alias="ASYNQ_ON_DUPLICATE")

    # --- logging ---
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    # Unset: stderr only (CLI). Set: also write rotating JSON logs to <dir>/asynq_producer.log
    log_dir: Path | None = Field(default=None, alias="ASYNQ_LOG_DIR")
    log_max_bytes: int = Field(default=5 * 1024 * 1024, alias="LOG_MAX_BYTES")
    log_backup_count: int = Field(default=3, alias="LOG_BACKUP_COUNT")
