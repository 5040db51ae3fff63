"""
Settings shim.

The canonical config lives in `asynq_producer/settings/`:
  - `public_config.py` (non-sensitive defaults)
  - `secret_config.py` (secrets loaded from env / `.env.secrets`)
  - `settings.py` merges and validates them (`get_settings()`)

Package code imports settings from here (`from asynq_producer.config import get_settings`).
"""

from __future__ import annotations

from asynq_producer.settings.settings import ConfigError as ConfigError
from asynq_producer.settings.settings import Settings as Settings
from asynq_producer.settings.settings import get_safe_config_report as get_safe_config_report
from asynq_producer.settings.settings import get_settings as get_settings
