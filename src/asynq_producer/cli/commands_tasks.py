from __future__ import annotations

import json
from dataclasses import asdict

import click

from asynq_producer.client import TaskClient
from asynq_producer.errors import DuplicateTaskError, EncodingError, EnqueueError
from asynq_producer.tasks.options import DuplicatePolicy, EnqueueOptions


@click.command(name="enqueue")
@click.argument("task_type")
@click.argument("payload", default="{}")
@click.option("--queue", default=None, help="Destination queue (default: ASYNQ_DEFAULT_QUEUE)")
@click.option("--delay", type=int, default=None, help="Seconds before the task becomes runnable")
@click.option("--retry", type=int, default=None, help="Max retry attempts")
@click.option("--timeout", type=int, default=None, help="Seconds a single run may take")
@click.option("--retention", type=int, default=None, help="Seconds to keep the completed record")
@click.option("--deadline", type=int, default=None, help="Seconds after scheduled start to give up")
@click.option("--unique-key", default=None, help="Deduplication key")
@click.option("--group-key", default=None, help="Grouping key (consumer side)")
@click.option(
    "--on-duplicate",
    type=click.Choice([p.value for p in DuplicatePolicy], case_sensitive=False),
    default=None,
    help="Policy when the unique key is already locked (default: ASYNQ_ON_DUPLICATE)",
)
@click.option("--connection", default=None, help="Named redis connection")
def enqueue(
    task_type: str,
    payload: str,
    queue: str | None,
    delay: int | None,
    retry: int | None,
    timeout: int | None,
    retention: int | None,
    deadline: int | None,
    unique_key: str | None,
    group_key: str | None,
    on_duplicate: str | None,
    connection: str | None,
) -> None:
    """
    Enqueue TASK_TYPE with a JSON PAYLOAD and print the result as JSON.
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as ex:
        raise click.BadParameter(f"payload is not valid JSON: {ex}", param_hint="PAYLOAD") from ex

    opts = EnqueueOptions(
        delay=delay,
        retry=retry,
        timeout=timeout,
        retention=retention,
        deadline=deadline,
        unique_key=unique_key,
        group_key=group_key,
    )
    client = TaskClient(connection)
    try:
        res = client.submit(task_type, data, queue, opts, on_duplicate=on_duplicate)
    except ValueError as ex:
        raise click.UsageError(str(ex)) from ex
    except DuplicateTaskError as ex:
        click.echo(f"Duplicate: {ex}", err=True)
        raise SystemExit(3) from ex
    except EncodingError as ex:
        click.echo(f"Encoding failed: {ex}", err=True)
        raise SystemExit(1) from ex
    except EnqueueError as ex:
        click.echo(f"Enqueue failed: {ex}", err=True)
        raise SystemExit(2) from ex

    click.echo(json.dumps(asdict(res), sort_keys=True))


def add_commands(cli_group) -> None:
    cli_group.add_command(enqueue)


__all__ = ["add_commands", "enqueue"]
