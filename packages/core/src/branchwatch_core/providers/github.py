from __future__ import annotations

import logging

import requests
from github import Auth, Github, GithubException

from branchwatch_core.exceptions import FetchError
from branchwatch_core.models import CommitInfo, RepositoryConfig

logger = logging.getLogger(__name__)

_STATUS_MESSAGES = {
    401: "authentication failed (check the token)",
    403: "access denied or rate limit exceeded",
    404: "repository or branch not found",
}


def get_client(token: str | None, timeout: float) -> Github:
    if token:
        return Github(auth=Auth.Token(token), timeout=int(timeout))
    return Github(timeout=int(timeout))


def get_branch_head(client: Github, full_name: str, branch: str):
    return client.get_repo(full_name).get_branch(branch).commit


def fetch_latest_commit(repo: RepositoryConfig, token: str | None, timeout: float = 30) -> CommitInfo:
    """Return the head commit of ``repo.branch`` on GitHub.

    Works anonymously for public repositories when no token is available,
    at the cost of GitHub's much lower unauthenticated rate limit.
    """
    if not token:
        logger.debug("No GitHub token for %s; using anonymous access", repo.key)

    try:
        head = get_branch_head(get_client(token, timeout), repo.full_name, repo.branch)
        git_commit = head.commit
        author = git_commit.author
        return CommitInfo(
            sha=head.sha,
            author=(author.name if author else None) or "unknown",
            message=git_commit.message or "",
            date=author.date if author else None,
        )
    except GithubException as e:
        reason = _STATUS_MESSAGES.get(e.status, f"unexpected status {e.status}")
        raise FetchError(f"GitHub {repo.full_name}@{repo.branch}: {reason}", status=e.status) from e
    except requests.Timeout as e:
        raise FetchError(f"GitHub {repo.full_name}@{repo.branch}: request timed out after {timeout}s") from e
    except requests.RequestException as e:
        raise FetchError(f"GitHub {repo.full_name}@{repo.branch}: {type(e).__name__}: {e}") from e
