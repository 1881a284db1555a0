"""Error taxonomy for branchwatch.

FetchError   — provider or network failure; the repository is skipped this
               round and no failure budget is consumed.
ActionError  — one configured action failed; drives the retry budget.
ConfigError  — unknown provider/action type or an unusable config file.
StoreError   — state could not be read or written (defined by the store layer).
"""

from __future__ import annotations

from branchwatch_store.base import StoreError

__all__ = ["BranchwatchError", "FetchError", "ActionError", "CheckoutError", "ConfigError", "StoreError"]


class BranchwatchError(Exception):
    """Base class for errors raised by branchwatch_core."""


class FetchError(BranchwatchError):
    """The latest commit could not be fetched from the provider."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class ActionError(BranchwatchError):
    """A configured action did not complete successfully."""


class CheckoutError(ActionError):
    """The local checkout could not be brought up to date."""


class ConfigError(BranchwatchError):
    """Configuration is missing, malformed, or names something unknown."""
