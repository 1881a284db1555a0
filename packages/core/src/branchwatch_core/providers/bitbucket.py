"""Bitbucket Cloud commit source.

PyGithub has no Bitbucket counterpart, so this talks to the 2.0 REST API
directly with requests. Bitbucket requires authentication for this endpoint,
so a missing token fails closed before any network call is made.
"""

from __future__ import annotations

import logging
from datetime import datetime

import requests

from branchwatch_core.exceptions import FetchError
from branchwatch_core.models import CommitInfo, RepositoryConfig

logger = logging.getLogger(__name__)

API_BASE = "https://api.bitbucket.org/2.0"

_STATUS_MESSAGES = {
    401: "authentication failed (check the token)",
    403: "access denied (token lacks repository read scope)",
    404: "repository or branch not found",
}


def _commits_url(repo: RepositoryConfig) -> str:
    return f"{API_BASE}/repositories/{repo.owner}/{repo.name}/commits/{repo.branch}"


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparsable Bitbucket commit date %r", value)
        return None


def _author_name(commit: dict) -> str:
    author = commit.get("author") or {}
    user = author.get("user") or {}
    return user.get("display_name") or author.get("raw") or "unknown"


def fetch_latest_commit(repo: RepositoryConfig, token: str | None, timeout: float = 30) -> CommitInfo:
    """Return the head commit of ``repo.branch`` on Bitbucket."""
    where = f"Bitbucket {repo.full_name}@{repo.branch}"
    if not token:
        raise FetchError(f"{where}: an API token is required (set 'token' or BITBUCKET_TOKEN)")

    try:
        resp = requests.get(
            _commits_url(repo),
            params={"pagelen": 1},
            headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
            timeout=timeout,
        )
    except requests.Timeout as e:
        raise FetchError(f"{where}: request timed out after {timeout}s") from e
    except requests.RequestException as e:
        raise FetchError(f"{where}: {type(e).__name__}: {e}") from e

    if resp.status_code != 200:
        reason = _STATUS_MESSAGES.get(resp.status_code, f"unexpected status {resp.status_code}")
        raise FetchError(f"{where}: {reason}", status=resp.status_code)

    try:
        values = resp.json().get("values") or []
    except ValueError as e:
        raise FetchError(f"{where}: response is not valid JSON") from e
    if not values:
        raise FetchError(f"{where}: no commits found on branch")

    commit = values[0]
    if not commit.get("hash"):
        raise FetchError(f"{where}: response has no commit hash")
    return CommitInfo(
        sha=commit["hash"],
        author=_author_name(commit),
        message=commit.get("message") or "",
        date=_parse_date(commit.get("date")),
    )
