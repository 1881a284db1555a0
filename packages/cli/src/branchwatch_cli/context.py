"""Shared per-invocation setup for sub-commands.

The config file is only loaded once a sub-command actually runs, so that
`branchwatch <command> --help` works without a config file present.
"""

from __future__ import annotations

import click

from branchwatch_store.base import BaseStore


def _build_store(config: dict) -> BaseStore:
    """Instantiate the configured state store.

    Store selection:
      stateBackend: json   → JSONFileStore (default, stateFile or branchwatch-state.json)
      stateBackend: sqlite → SQLiteStore   (stateFile or branchwatch-state.db)

    This factory lives in the CLI so neither branchwatch_core nor
    branchwatch_store know about the config file format.
    """
    backend = config.get("stateBackend") or "json"

    if backend == "sqlite":
        from branchwatch_store.sqlite import SQLiteStore

        return SQLiteStore(db_path=config.get("stateFile") or "branchwatch-state.db")

    if backend != "json":
        raise click.ClickException(f"Unknown stateBackend {backend!r}. Choose 'json' or 'sqlite'.")

    from branchwatch_store.json_file import JSONFileStore

    return JSONFileStore(path=config.get("stateFile") or "branchwatch-state.json")


def load_runtime(ctx: click.Context) -> tuple[dict, BaseStore]:
    """Load the config, configure logging and open the store (once per invocation).

    A config file that cannot be loaded is fatal: it is reported and the
    process exits with a non-zero status.
    """
    from branchwatch_cli.logging_setup import configure_logging
    from branchwatch_core.config import load_config
    from branchwatch_core.exceptions import ConfigError

    obj = ctx.ensure_object(dict)
    if "store" in obj:
        return obj["config"], obj["store"]

    verbose = obj.get("verbose", False)
    try:
        config = load_config(obj.get("config_path", "branchwatch.json"))
    except ConfigError as e:
        configure_logging(verbose=verbose)
        raise click.ClickException(str(e))

    configure_logging(
        log_file=config.get("logFile"),
        verbose=verbose,
        max_bytes=int(config.get("logMaxBytes") or 1024 * 1024),
        backup_count=int(config.get("logBackupCount") or 5),
    )

    store = _build_store(config)
    obj["config"] = config
    obj["store"] = store
    ctx.call_on_close(store.close)
    return config, store
