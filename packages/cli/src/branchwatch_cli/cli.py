"""CLI entry point for branchwatch.

Commands:
  run     — one reconciliation pass over every configured branch (run from cron)
  status  — show the persisted tracking state
  reset   — clear the failure budget of a branch so it is retried
"""

from __future__ import annotations

import importlib.metadata

import click

from branchwatch_cli.commands.reset import reset_cmd
from branchwatch_cli.commands.run import run_cmd
from branchwatch_cli.commands.status import status_cmd


@click.group()
@click.version_option(
    version=importlib.metadata.version("branchwatch"),
    prog_name="branchwatch",
)
@click.option(
    "--config",
    "config_path",
    default="branchwatch.json",
    show_default=True,
    help="Path to the configuration file.",
    envvar="BRANCHWATCH_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug output.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Watch remote branches and trigger actions when they move."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


main.add_command(run_cmd)
main.add_command(status_cmd)
main.add_command(reset_cmd)
