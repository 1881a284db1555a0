"""Cross-process exclusive lock shared by the file-backed stores."""

from __future__ import annotations

import fcntl
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)


@contextmanager
def file_lock(lock_path: Path) -> Iterator[None]:
    """Hold flock(LOCK_EX) on ``lock_path`` for the duration of the block.

    Blocks until the lock is available, so overlapping invocations run one
    after the other. The lock file is created if needed and never removed.
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with open(lock_path, "a") as fd:
        logger.debug("Waiting for state lock %s", lock_path)
        fcntl.flock(fd, fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
