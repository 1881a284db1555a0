"""Tracking state data models.

Decoupled from branchwatch_core so the store layer can be used independently
and the engine never needs to know how records are laid out on disk.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

MAX_FAILURES = 3


@dataclass
class TrackingRecord:
    """What branchwatch remembers about one monitored branch between runs.

    last_commit_sha is the last commit whose actions completed successfully
    (None = never seen). failing_commit_sha is the candidate commit the
    current failure budget belongs to.
    """

    last_commit_sha: str | None = None
    failure_count: int = 0
    last_error: str | None = None
    last_failure_time: str | None = None  # ISO-8601 UTC timestamp
    failing_commit_sha: str | None = None

    @property
    def budget_exhausted(self) -> bool:
        return self.failure_count >= MAX_FAILURES


def serialize_record(record: TrackingRecord) -> dict:
    return {
        "commitSha": record.last_commit_sha,
        "failureCount": record.failure_count,
        "lastError": record.last_error,
        "lastFailureTime": record.last_failure_time,
        "failingCommitSha": record.failing_commit_sha,
    }


def deserialize_record(value) -> TrackingRecord:
    """Build a TrackingRecord from a persisted value.

    Accepts the legacy format where the value was the bare commit sha string
    and upgrades it to a record with an empty failure history.
    Raises ValueError for anything else that is not a JSON object.
    """
    if isinstance(value, str):
        return TrackingRecord(last_commit_sha=value or None)
    if not isinstance(value, dict):
        raise ValueError(f"unsupported tracking record: {value!r}")

    try:
        failure_count = int(value.get("failureCount") or 0)
    except (TypeError, ValueError):
        raise ValueError(f"invalid failureCount: {value.get('failureCount')!r}")

    return TrackingRecord(
        last_commit_sha=value.get("commitSha") or None,
        failure_count=max(0, min(failure_count, MAX_FAILURES)),
        last_error=value.get("lastError"),
        last_failure_time=value.get("lastFailureTime"),
        failing_commit_sha=value.get("failingCommitSha") or None,
    )


def deserialize_records(data: dict) -> dict[str, TrackingRecord]:
    """Deserialize a whole state mapping, dropping entries that cannot be read."""
    records: dict[str, TrackingRecord] = {}
    for key, value in data.items():
        try:
            records[key] = deserialize_record(value)
        except ValueError as e:
            logger.warning("Dropping unreadable state entry %s: %s", key, e)
    return records
