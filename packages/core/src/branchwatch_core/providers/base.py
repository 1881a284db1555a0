"""Uniform entry point over the provider-specific commit sources.

Each provider module exposes ``fetch_latest_commit(repo, token, timeout)``
and normalizes its API response into a CommitInfo. Any failure surfaces as a
FetchError; the engine treats all of them the same way.
"""

from __future__ import annotations

from branchwatch_core.exceptions import ConfigError
from branchwatch_core.models import CommitInfo, Provider, RepositoryConfig
from branchwatch_core.providers import bitbucket, github


def fetch_latest_commit(repo: RepositoryConfig, token: str | None, timeout: float = 30) -> CommitInfo:
    try:
        provider = Provider(repo.provider)
    except ValueError:
        raise ConfigError(f"Unknown provider {repo.provider!r} for {repo.key}. Choose 'github' or 'bitbucket'.")

    if provider is Provider.GITHUB:
        return github.fetch_latest_commit(repo, token, timeout)
    if provider is Provider.BITBUCKET:
        return bitbucket.fetch_latest_commit(repo, token, timeout)
    raise ConfigError(f"No commit source for provider {provider.value!r}")
