"""JSONFileStore — the default state backend, a single JSON document on disk.

File format: one JSON object mapping "provider:name:branch" to
  {"commitSha", "failureCount", "lastError", "lastFailureTime", "failingCommitSha"}
Older versions of the tool stored the bare commit sha string as the value;
those entries are migrated on load and written back in the new shape on the
next save.

Writes go to a temporary file in the same directory which is then renamed
over the target, so a crash mid-write leaves the previous state intact.
Cross-process exclusion uses flock() on a sidecar "<state>.lock" file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from contextlib import AbstractContextManager
from pathlib import Path

from branchwatch_store.base import BaseStore, StoreError
from branchwatch_store.locking import file_lock
from branchwatch_store.models import TrackingRecord, deserialize_records, serialize_record

logger = logging.getLogger(__name__)


class JSONFileStore(BaseStore):
    """Stores tracking records in a JSON file (default: branchwatch-state.json)."""

    def __init__(self, path: str = "branchwatch-state.json"):
        self._path = Path(path)
        self._lock_path = self._path.with_name(self._path.name + ".lock")

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, TrackingRecord]:
        try:
            data = self._read()
        except StoreError as e:
            # Self-healing: every repository is treated as first sight.
            logger.error("%s; starting from empty state", e)
            return {}
        return deserialize_records(data)

    def _read(self) -> dict:
        if not self._path.exists():
            logger.debug("State file %s does not exist yet", self._path)
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise StoreError(f"Could not read state file {self._path}: {e}") from e
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise StoreError(f"State file {self._path} is corrupt: {e}") from e
        if not isinstance(data, dict):
            raise StoreError(f"State file {self._path} does not contain a JSON object")
        return data

    def save(self, records: dict[str, TrackingRecord]) -> None:
        payload = {key: serialize_record(record) for key, record in sorted(records.items())}
        directory = self._path.parent
        directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self._path)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise StoreError(f"Could not write state file {self._path}: {e}") from e

    def lock(self) -> AbstractContextManager[None]:
        return file_lock(self._lock_path)
