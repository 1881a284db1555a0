"""Core data models shared by the adapters, the action runner and the engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from branchwatch_core.exceptions import ConfigError


class Provider(str, Enum):
    GITHUB = "github"
    BITBUCKET = "bitbucket"


class ActionType(str, Enum):
    COMMAND = "command"
    SCRIPT = "script"
    WEBHOOK = "webhook"


@dataclass(frozen=True)
class ActionSpec:
    """One side effect to trigger when a branch moves.

    ``type`` keeps the raw string from the config file so that an unknown
    type only fails the action that declares it, not the whole repository.
    """

    type: str
    command: str

    @property
    def action_type(self) -> ActionType:
        try:
            return ActionType(self.type)
        except ValueError:
            raise ConfigError(f"Unknown action type {self.type!r}. Choose 'command', 'script' or 'webhook'.")


@dataclass(frozen=True)
class RepositoryConfig:
    """A monitored branch, as declared in the config file."""

    provider: str
    owner: str  # GitHub owner or Bitbucket workspace
    name: str
    branch: str
    token: str | None = None
    local_path: str | None = None
    notification_url: str | None = None
    actions: tuple[ActionSpec, ...] = field(default_factory=tuple)

    @property
    def key(self) -> str:
        return f"{self.provider}:{self.name}:{self.branch}"

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def remote_url(self) -> str:
        if self.provider == Provider.BITBUCKET.value:
            return f"https://bitbucket.org/{self.full_name}.git"
        return f"https://github.com/{self.full_name}.git"


@dataclass(frozen=True)
class CommitInfo:
    """The head commit of a branch, normalized across providers."""

    sha: str
    author: str
    message: str
    date: datetime | None = None

    @property
    def short_sha(self) -> str:
        return self.sha[:7]

    @property
    def title(self) -> str:
        return self.message.splitlines()[0] if self.message else ""


@dataclass(frozen=True)
class RunOptions:
    """Per-invocation switches threaded through the engine.

    ``debug`` attaches tracebacks to fetch and action error logs; the log
    level itself is set by the CLI.
    """

    debug: bool = False
    test_mode: bool = False
    always_run_actions: bool = False


@dataclass(frozen=True)
class NotificationRequest:
    url: str
    title: str
    message: str
    priority: str = "default"
    tags: tuple[str, ...] = ()
