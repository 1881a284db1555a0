"""status command — display the persisted tracking state."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from branchwatch_store.models import MAX_FAILURES

console = Console()


@click.command("status")
@click.option("--failing", is_flag=True, help="Only show branches with recorded failures.")
@click.pass_context
def status_cmd(ctx, failing: bool):
    """Show the last processed commit and retry state of every tracked branch."""
    from branchwatch_cli.context import load_runtime

    _, store = load_runtime(ctx)
    records = store.load()
    if failing:
        records = {k: r for k, r in records.items() if r.failure_count > 0}

    if not records:
        console.print("[yellow]No tracking records found.[/yellow]")
        return

    table = Table(title="branchwatch state", show_header=True, header_style="bold cyan")
    table.add_column("Repository", style="bold")
    table.add_column("Commit", width=8)
    table.add_column("Failures", justify="right", width=9)
    table.add_column("Last Failure", width=20)
    table.add_column("Last Error", max_width=60)

    for key, r in sorted(records.items()):
        if r.budget_exhausted:
            style = "red"
        elif r.failure_count:
            style = "yellow"
        else:
            style = "green"
        table.add_row(
            key,
            (r.last_commit_sha or "-")[:7],
            f"[{style}]{r.failure_count}/{MAX_FAILURES}[/{style}]",
            (r.last_failure_time or "")[:19].replace("T", " "),
            r.last_error or "",
        )

    console.print(table)
