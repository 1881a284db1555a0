"""Abstract store interface.

Any storage backend for tracking state (JSON file, SQLite) implements this
interface. The engine and the CLI depend on BaseStore, not on a concrete
backend, so backends are swappable without touching either of them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from branchwatch_store.models import TrackingRecord


class StoreError(Exception):
    """The persisted state could not be read or written."""


class BaseStore(ABC):
    """Pluggable persistence layer for per-branch tracking records.

    Callers that read, modify and write state must do so inside lock() so
    that overlapping invocations (e.g. two cron runs) cannot lose updates.
    """

    @abstractmethod
    def load(self) -> dict[str, TrackingRecord]:
        """Return every tracking record keyed by repository key.

        Fails open: returns an empty mapping when there is no state yet or
        the state cannot be read. Never raises for a missing or corrupt store.
        """

    @abstractmethod
    def save(self, records: dict[str, TrackingRecord]) -> None:
        """Replace the persisted state with ``records``.

        Must never leave a half-written state behind.
        """

    @abstractmethod
    def lock(self) -> AbstractContextManager[None]:
        """Return a context manager holding an exclusive, cross-process lock."""

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Optional; subclasses that need cleanup should override this.
        Default is a no-op so callers can always call close() safely.
        """
