"""reset command — re-arm branches whose failure budget is spent."""

from __future__ import annotations

from dataclasses import replace

import click
from rich.console import Console

from branchwatch_store.base import StoreError

console = Console()


@click.command("reset")
@click.argument("key", required=False)
@click.option("--all", "reset_all", is_flag=True, help="Reset every tracked branch.")
@click.pass_context
def reset_cmd(ctx, key: str | None, reset_all: bool):
    """Clear the failure budget of KEY (provider:name:branch).

    The last processed commit is kept, so the failing commit is retried on
    the next run instead of waiting for a new push.
    """
    from branchwatch_cli.context import load_runtime

    if not key and not reset_all:
        raise click.UsageError("Pass a repository key (provider:name:branch) or --all.")

    _, store = load_runtime(ctx)
    with store.lock():
        records = store.load()
        if reset_all:
            keys = [k for k, r in records.items() if r.failure_count or r.last_error]
        elif key in records:
            keys = [key]
        else:
            raise click.ClickException(f"No tracking record for {key!r}.")

        for k in keys:
            records[k] = replace(
                records[k],
                failure_count=0,
                last_error=None,
                last_failure_time=None,
                failing_commit_sha=None,
            )
        try:
            store.save(records)
        except StoreError as e:
            raise click.ClickException(str(e))

    console.print(f"[green]Reset {len(keys)} tracking record(s).[/green]")
