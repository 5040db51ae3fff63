from __future__ import annotations

import json

import click

from asynq_producer.config import get_safe_config_report


@click.command(name="config")
def config_report() -> None:
    """
    Print the effective configuration (secrets shown only as SET/UNSET).
    """
    click.echo(json.dumps(get_safe_config_report(), indent=2, sort_keys=True))


def add_commands(cli_group) -> None:
    cli_group.add_command(config_report)


__all__ = ["add_commands", "config_report"]
