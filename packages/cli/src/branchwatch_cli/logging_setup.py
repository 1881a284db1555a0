from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(
    log_file: str | None = None,
    verbose: bool = False,
    max_bytes: int = 1024 * 1024,
    backup_count: int = 5,
    console: Console | None = None,
) -> None:
    """Configure branchwatch logging.

    - Rich console output on stderr for whoever is watching (or cron mail).
    - A size-rotated log file keeping ``backup_count`` old files, for later
      inspection of unattended runs.

    Safe to call multiple times; it will not duplicate handlers.
    """
    level = logging.DEBUG if verbose else logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    if not any(isinstance(h, RichHandler) for h in root.handlers):
        console_handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=verbose,
            rich_tracebacks=True,
        )
        root.addHandler(console_handler)
    for handler in root.handlers:
        if isinstance(handler, RichHandler):
            handler.setLevel(level)

    if not log_file:
        return

    log_path = Path(log_file).expanduser()
    if any(
        isinstance(h, RotatingFileHandler) and getattr(h, "baseFilename", None) == str(log_path.resolve())
        for h in root.handlers
    ):
        return

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            filename=str(log_path),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        # A broken log file must not stop the pass.
        logging.getLogger(__name__).warning("Could not open log file %s: %s", log_path, e)
        return

    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(fmt=_FILE_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z"))
    root.addHandler(file_handler)
