"""API token resolution with environment and gh CLI fallbacks.

Resolution order per repository (stops at first success):
  1. `token` in the repository's config entry
  2. GITHUB_TOKEN / BITBUCKET_TOKEN environment variable, by provider
  3. `gh auth token` (GitHub only, works after `gh auth login`)
"""

from __future__ import annotations

import logging
import os
import subprocess

from branchwatch_core.models import Provider, RepositoryConfig

logger = logging.getLogger(__name__)

_ENV_VARS = {
    Provider.GITHUB.value: "GITHUB_TOKEN",
    Provider.BITBUCKET.value: "BITBUCKET_TOKEN",
}

_gh_token_cache: dict[str, str | None] = {}


def _gh_cli_token() -> str | None:
    if "token" in _gh_token_cache:
        return _gh_token_cache["token"]

    token = None
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            token = result.stdout.strip() or None
            if token:
                logger.debug("Resolved GitHub token via gh CLI session.")
    except (FileNotFoundError, subprocess.TimeoutExpired):
        # gh is not installed or timed out.
        pass

    _gh_token_cache["token"] = token
    return token


def resolve_token(repo: RepositoryConfig) -> str | None:
    """Return an API token for ``repo`` or None if no source is available.

    Never raises. The commit source decides whether a missing token is fatal
    (Bitbucket) or merely limits access (GitHub).
    """
    if repo.token:
        return repo.token

    env_var = _ENV_VARS.get(repo.provider)
    if env_var:
        token = os.environ.get(env_var)
        if token:
            return token

    if repo.provider == Provider.GITHUB.value:
        return _gh_cli_token()

    return None
