"""run command — one reconciliation pass over every configured branch."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from branchwatch_core.config import load_repositories
from branchwatch_core.engine import PassSummary, run_pass
from branchwatch_core.models import RunOptions
from branchwatch_store.models import MAX_FAILURES

console = Console()

_STATUS_STYLE = {
    "succeeded": "green",
    "failed": "red",
    "error": "red",
    "budget_exhausted": "yellow",
    "steady": "dim",
}


def _timeout(value) -> float | None:
    """Config timeouts: a positive number of seconds, or 0/null for no limit."""
    if not value:
        return None
    return float(value)


def _print_summary(summary: PassSummary) -> None:
    if not summary.results:
        console.print("[yellow]No repositories configured.[/yellow]")
        return

    table = Table(title="branchwatch pass", show_header=True, header_style="bold cyan")
    table.add_column("Repository")
    table.add_column("Commit", width=8)
    table.add_column("Result", width=18)
    table.add_column("Failures", justify="right", width=9)
    table.add_column("Detail", max_width=60)

    for r in summary.results:
        style = _STATUS_STYLE.get(r.status, "white")
        if r.error:
            detail = r.error
        elif r.failures:
            detail = "; ".join(r.failures)
        else:
            detail = r.commit.title if r.commit else ""
        table.add_row(
            r.key,
            r.commit.short_sha if r.commit else "",
            f"[{style}]{r.status}[/{style}]",
            f"{r.record.failure_count}/{MAX_FAILURES}",
            detail,
        )

    console.print(table)


@click.command("run")
@click.option(
    "--test",
    "--dry-run",
    "test_mode",
    is_flag=True,
    help="Detect changes and record them without executing any action.",
)
@click.option(
    "--force",
    "always_run_actions",
    is_flag=True,
    help="Run actions even when the branch has not moved since the last pass.",
)
@click.pass_context
def run_cmd(ctx, test_mode: bool, always_run_actions: bool):
    """Check every configured branch once and trigger actions for new commits.

    Meant to be invoked periodically (e.g. from cron). Per-repository
    failures are recorded in the state file and do not change the exit code.

    \b
    Environment variables:
      GITHUB_TOKEN         GitHub token (or use gh CLI / per-repository token)
      BITBUCKET_TOKEN      Bitbucket token (or per-repository token)
    """
    from branchwatch_cli.auth import resolve_token
    from branchwatch_cli.context import load_runtime

    config, store = load_runtime(ctx)
    options = RunOptions(
        debug=ctx.obj.get("verbose", False),
        test_mode=test_mode,
        always_run_actions=always_run_actions,
    )

    repositories = load_repositories(config)
    if test_mode:
        console.print("[yellow]Test mode: no action will be executed.[/yellow]")

    summary = run_pass(
        repositories,
        store,
        options,
        resolve_token=resolve_token,
        request_timeout=_timeout(config.get("requestTimeout")) or 30,
        action_timeout=_timeout(config.get("actionTimeout")),
    )
    _print_summary(summary)
