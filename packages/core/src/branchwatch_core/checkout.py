"""Keep an optional local working copy on the monitored branch.

Actions often build or deploy from a local checkout, so when a repository
declares ``localPath`` the checkout is brought up to date before any action
runs. A failure here counts as an action failure.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from branchwatch_core.exceptions import CheckoutError

logger = logging.getLogger(__name__)


def _git(args: list[str], cwd: Path | None, timeout: float | None) -> str:
    cmd = ["git", *args]
    logger.debug("Running %s (cwd=%s)", " ".join(cmd), cwd)
    try:
        result = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError as e:
        raise CheckoutError("git executable not found on PATH") from e
    except subprocess.TimeoutExpired as e:
        raise CheckoutError(f"`{' '.join(cmd)}` timed out after {timeout}s") from e
    if result.returncode != 0:
        detail = (result.stderr or result.stdout).strip()
        raise CheckoutError(f"`{' '.join(cmd)}` exited with {result.returncode}: {detail}")
    return result.stdout


def sync_local_checkout(path: str, remote_url: str, branch: str, timeout: float | None = 300) -> None:
    """Clone ``remote_url`` into ``path`` or fast-forward the existing clone to ``branch``."""
    target = Path(path).expanduser()

    if not target.exists() or not any(target.iterdir()):
        logger.info("Cloning %s (%s) into %s", remote_url, branch, target)
        target.parent.mkdir(parents=True, exist_ok=True)
        _git(["clone", "--branch", branch, remote_url, str(target)], cwd=None, timeout=timeout)
        return

    if not (target / ".git").exists():
        raise CheckoutError(f"{target} exists but is not a git checkout")

    logger.info("Updating checkout %s to origin/%s", target, branch)
    _git(["fetch", "origin"], cwd=target, timeout=timeout)
    _git(["checkout", branch], cwd=target, timeout=timeout)
    _git(["pull", "--ff-only", "origin", branch], cwd=target, timeout=timeout)
