from __future__ import annotations

import click

from asynq_producer.config import ConfigError
from asynq_producer.utils.log import configure_logging, set_log_level

from . import commands_admin, commands_tasks
from .commands_admin import config_report
from .commands_tasks import enqueue


@click.group(name="asynq-producer", help="asynq-producer CLI (enqueue + config)")
@click.option("--log-level", default=None, help="Override LOG_LEVEL for this invocation")
def cli(log_level: str | None) -> None:
    try:
        configure_logging()
    except ConfigError as ex:
        raise click.ClickException(str(ex)) from ex
    if log_level:
        set_log_level(log_level)


commands_tasks.add_commands(cli)
commands_admin.add_commands(cli)

__all__ = ["cli", "enqueue", "config_report"]
