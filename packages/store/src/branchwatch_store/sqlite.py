"""SQLiteStore — tracking state in a local SQLite database.

Useful when several tools want to query branchwatch state with SQL, or when
the state directory is shared and a single JSON document is inconvenient.

Schema:
  tracking — one row per repository key. Legacy rows written by older
             versions only carry commit_sha; the remaining columns default
             to an empty failure history.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import AbstractContextManager
from pathlib import Path

from branchwatch_store.base import BaseStore, StoreError
from branchwatch_store.locking import file_lock
from branchwatch_store.models import MAX_FAILURES, TrackingRecord

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS tracking (
    repo_key            TEXT PRIMARY KEY,
    commit_sha          TEXT,
    failure_count       INTEGER DEFAULT 0,
    last_error          TEXT,
    last_failure_time   TEXT,
    failing_commit_sha  TEXT
);
"""


class SQLiteStore(BaseStore):
    """Stores tracking records in a SQLite database file.

    Configure via the config file: `stateBackend: sqlite` and
    `stateFile: /path/to/branchwatch.db`.
    """

    def __init__(self, db_path: str = "branchwatch-state.db"):
        self._path = Path(db_path)
        self._lock_path = self._path.with_name(self._path.name + ".lock")
        self._conn: sqlite3.Connection | None = None

    def _connection(self) -> sqlite3.Connection:
        """Open the database and create the schema on first use."""
        if self._conn is None:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(str(self._path))
                conn.row_factory = sqlite3.Row
                conn.executescript(_SCHEMA)
                conn.commit()
            except (OSError, sqlite3.Error) as e:
                raise StoreError(f"Could not open state database {self._path}: {e}") from e
            self._conn = conn
        return self._conn

    def load(self) -> dict[str, TrackingRecord]:
        try:
            rows = self._connection().execute("SELECT * FROM tracking ORDER BY repo_key").fetchall()
        except sqlite3.Error as e:
            logger.error("Could not read state database %s: %s; starting from empty state", self._path, e)
            return {}
        except StoreError as e:
            logger.error("%s; starting from empty state", e)
            return {}
        return {row["repo_key"]: self._row_to_record(row) for row in rows}

    def save(self, records: dict[str, TrackingRecord]) -> None:
        conn = self._connection()
        try:
            with conn:
                conn.execute("DELETE FROM tracking")
                conn.executemany(
                    """
                    INSERT INTO tracking
                      (repo_key, commit_sha, failure_count, last_error, last_failure_time, failing_commit_sha)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            key,
                            r.last_commit_sha,
                            r.failure_count,
                            r.last_error,
                            r.last_failure_time,
                            r.failing_commit_sha,
                        )
                        for key, r in sorted(records.items())
                    ],
                )
        except sqlite3.Error as e:
            raise StoreError(f"Could not write state database {self._path}: {e}") from e

    def lock(self) -> AbstractContextManager[None]:
        return file_lock(self._lock_path)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> TrackingRecord:
        return TrackingRecord(
            last_commit_sha=row["commit_sha"] or None,
            failure_count=max(0, min(row["failure_count"] or 0, MAX_FAILURES)),
            last_error=row["last_error"],
            last_failure_time=row["last_failure_time"],
            failing_commit_sha=row["failing_commit_sha"] or None,
        )
