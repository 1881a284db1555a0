"""Reconciliation engine: one pass over every monitored branch.

For each repository the engine
    fetch head commit → decide() → [sync checkout] → run actions → apply_outcome()
and persists the updated tracking record. decide() and apply_outcome() are
pure functions over TrackingRecord so the retry policy can be tested without
any I/O; process_repository() and run_pass() wire in the collaborators.

Retry policy: every action failure against a candidate commit consumes one
unit of a budget of MAX_FAILURES. Once the budget is spent the repository is
skipped until the branch advances to a different commit, which gets a fresh
budget. Fetch errors never consume budget.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from branchwatch_core.actions import run_action
from branchwatch_core.checkout import sync_local_checkout
from branchwatch_core.exceptions import ActionError, ConfigError, FetchError
from branchwatch_core.models import CommitInfo, NotificationRequest, RepositoryConfig, RunOptions
from branchwatch_core.notifier import send
from branchwatch_core.providers.base import fetch_latest_commit
from branchwatch_store.base import StoreError
from branchwatch_store.models import MAX_FAILURES, TrackingRecord

if TYPE_CHECKING:
    from branchwatch_store.base import BaseStore

logger = logging.getLogger(__name__)

FIRST_SIGHT = "first_sight"
NEW_COMMIT = "new_commit"
RETRY = "retry"
FORCED = "forced"
BUDGET_EXHAUSTED = "budget_exhausted"
STEADY = "steady"


@dataclass(frozen=True)
class Decision:
    should_run: bool
    reason: str
    reset_budget: bool = False


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def decide(record: TrackingRecord, commit: CommitInfo, options: RunOptions) -> Decision:
    """Decide whether the actions for ``commit`` should run.

    | situation                                   | run?  | reason           |
    |---------------------------------------------|-------|------------------|
    | sha unchanged, no force                     | no    | steady           |
    | sha unchanged, always_run_actions           | yes   | forced           |
    | candidate is the failing commit, budget left| yes   | retry            |
    | candidate is the failing commit, budget gone| no    | budget_exhausted |
    |   ... with always_run_actions               | yes   | forced           |
    | never seen before                           | yes   | first_sight      |
    | any other new commit                        | yes   | new_commit       |

    A fresh candidate resets the failure fields (reset_budget=True).
    """
    is_new = record.last_commit_sha is None or record.last_commit_sha != commit.sha
    if not is_new:
        if options.always_run_actions:
            return Decision(True, FORCED)
        return Decision(False, STEADY)

    failing_sha = record.failing_commit_sha
    if failing_sha is None and record.failure_count > 0:
        # Failures recorded without a candidate sha are attributed to the
        # current head so the budget is never refilled by accident.
        failing_sha = commit.sha

    if failing_sha == commit.sha and record.failure_count > 0:
        if record.failure_count >= MAX_FAILURES:
            if options.always_run_actions:
                return Decision(True, FORCED)
            return Decision(False, BUDGET_EXHAUSTED)
        return Decision(True, RETRY)

    has_failure_state = (
        record.failure_count > 0
        or record.last_error is not None
        or record.last_failure_time is not None
        or record.failing_commit_sha is not None
    )
    reason = FIRST_SIGHT if record.last_commit_sha is None else NEW_COMMIT
    return Decision(True, reason, reset_budget=has_failure_state)


def _notification(repo: RepositoryConfig, title: str, message: str, priority: str, tags: tuple) -> list:
    if not repo.notification_url:
        return []
    return [NotificationRequest(repo.notification_url, title, message, priority, tags)]


def apply_outcome(
    record: TrackingRecord,
    repo: RepositoryConfig,
    commit: CommitInfo,
    failures: list[str],
    now: datetime,
    options: RunOptions,
    decision: Decision,
) -> tuple[TrackingRecord, list[NotificationRequest]]:
    """Fold the result of an action run into the tracking record.

    Success (including no actions configured and test mode) advances
    last_commit_sha and clears every failure field. Failure leaves
    last_commit_sha untouched and consumes one unit of the budget.

    A forced run that fails on the already recorded commit keeps its failure
    fields through later steady passes, so `status --failing` keeps showing
    it until the branch moves, a forced run succeeds or `reset` clears it.
    """
    where = f"{repo.name} ({repo.branch})"
    summary = f"{commit.short_sha} by {commit.author}: {commit.title}"

    if not failures:
        updated = TrackingRecord(last_commit_sha=commit.sha)
        if options.test_mode:
            detail = "Test mode: actions were not executed."
        elif repo.actions:
            detail = f"{len(repo.actions)} action(s) completed successfully."
        else:
            detail = "No actions configured; commit recorded."
        return updated, _notification(
            repo, f"{where} updated", f"{summary}\n{detail}", "default", ("white_check_mark", "branchwatch")
        )

    base_count = 0 if decision.reset_budget else record.failure_count
    count = min(base_count + 1, MAX_FAILURES)
    updated = replace(
        record,
        failure_count=count,
        last_error="; ".join(failures),
        last_failure_time=now.isoformat(),
        failing_commit_sha=commit.sha,
    )

    lines = [summary, f"Failed ({count}/{MAX_FAILURES}): {updated.last_error}"]
    priority, tags = "high", ("warning", "branchwatch")
    if count >= MAX_FAILURES:
        lines.append(f"Giving up on {commit.short_sha} until a new commit is pushed.")
        priority, tags = "urgent", ("rotating_light", "branchwatch")
    return updated, _notification(repo, f"{where} actions failed", "\n".join(lines), priority, tags)


@dataclass
class RepositoryResult:
    """Everything the pass needs to know about one processed repository."""

    key: str
    record: TrackingRecord
    notifications: list[NotificationRequest] = field(default_factory=list)
    commit: CommitInfo | None = None
    decision: Decision | None = None
    failures: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def status(self) -> str:
        if self.error is not None:
            return "error"
        if self.decision is None or not self.decision.should_run:
            return self.decision.reason if self.decision else "skipped"
        return "failed" if self.failures else "succeeded"

    @property
    def triggered(self) -> bool:
        return self.decision is not None and self.decision.should_run


def _log_decision(repo: RepositoryConfig, record: TrackingRecord, commit: CommitInfo, decision: Decision) -> None:
    if decision.reason == FIRST_SIGHT:
        logger.info("%s: first sight at %s, establishing baseline", repo.key, commit.short_sha)
    elif decision.reason == NEW_COMMIT:
        previous = (record.last_commit_sha or "")[:7]
        logger.info("%s: new commit %s → %s (%s)", repo.key, previous, commit.short_sha, commit.title)
    elif decision.reason == RETRY:
        logger.info(
            "%s: retrying %s after %d/%d failure(s)", repo.key, commit.short_sha, record.failure_count, MAX_FAILURES
        )
    elif decision.reason == FORCED:
        logger.info("%s: running actions for %s (forced)", repo.key, commit.short_sha)
    elif decision.reason == BUDGET_EXHAUSTED:
        logger.warning(
            "%s: %s failed %d/%d times, skipping until a new commit is pushed (last error: %s)",
            repo.key,
            commit.short_sha,
            record.failure_count,
            MAX_FAILURES,
            record.last_error,
        )
    else:
        logger.debug("%s: up to date at %s", repo.key, commit.short_sha)


def process_repository(
    repo: RepositoryConfig,
    record: TrackingRecord,
    now: datetime,
    options: RunOptions,
    *,
    token: str | None = None,
    fetch: Callable = fetch_latest_commit,
    run: Callable = run_action,
    sync: Callable = sync_local_checkout,
    request_timeout: float = 30,
    action_timeout: float | None = 600,
) -> RepositoryResult:
    """Reconcile one repository and return its updated record and notifications.

    Never raises for fetch, action or config problems: they are logged with
    the repository key and reflected in the result.
    """
    try:
        commit = fetch(repo, token, request_timeout)
    except (FetchError, ConfigError) as e:
        logger.error(
            "%s: could not fetch latest commit, skipping this round: %s", repo.key, e, exc_info=options.debug
        )
        return RepositoryResult(key=repo.key, record=record, error=str(e))

    decision = decide(record, commit, options)
    _log_decision(repo, record, commit, decision)

    if not decision.should_run:
        # Steady state already has last_commit_sha == commit.sha; an exhausted
        # budget keeps the last good sha until the branch moves.
        return RepositoryResult(key=repo.key, record=record, commit=commit, decision=decision)

    failures: list[str] = []
    if options.test_mode:
        logger.info("%s: [test mode] would run %d action(s) for %s", repo.key, len(repo.actions), commit.short_sha)
    elif repo.actions:
        failures = _run_actions(
            repo,
            commit,
            run=run,
            sync=sync,
            request_timeout=request_timeout,
            action_timeout=action_timeout,
            debug=options.debug,
        )

    updated, notifications = apply_outcome(record, repo, commit, failures, now, options, decision)
    if failures:
        logger.error("%s: %d/%d failure(s) for %s", repo.key, updated.failure_count, MAX_FAILURES, commit.short_sha)
    else:
        logger.info("%s: recorded %s", repo.key, commit.short_sha)
    return RepositoryResult(
        key=repo.key,
        record=updated,
        notifications=notifications,
        commit=commit,
        decision=decision,
        failures=failures,
    )


def _run_actions(
    repo: RepositoryConfig,
    commit: CommitInfo,
    *,
    run: Callable,
    sync: Callable,
    request_timeout: float,
    action_timeout: float | None,
    debug: bool = False,
) -> list[str]:
    """Sync the checkout, then run every action in order, collecting all failures.

    With ``debug`` the failure log lines carry the traceback.
    """
    if repo.local_path:
        try:
            sync(repo.local_path, repo.remote_url, repo.branch, action_timeout)
        except ActionError as e:
            # Actions would run against a stale tree.
            logger.error("%s: checkout sync failed, actions not run: %s", repo.key, e, exc_info=debug)
            return [f"checkout: {e}"]

    failures: list[str] = []
    for index, spec in enumerate(repo.actions, 1):
        label = f"action {index} ({spec.type})"
        try:
            run(spec, repo, commit, timeout=action_timeout, request_timeout=request_timeout)
        except (ActionError, ConfigError) as e:
            logger.error("%s: %s failed: %s", repo.key, label, e, exc_info=debug)
            failures.append(f"{label}: {e}")
        else:
            logger.debug("%s: %s succeeded", repo.key, label)
    return failures


@dataclass
class PassSummary:
    results: list[RepositoryResult] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def triggered(self) -> int:
        return sum(1 for r in self.results if r.triggered)


def _deliver(notifications: list[NotificationRequest], notifier: Callable) -> None:
    for request in notifications:
        try:
            notifier(request)
        except Exception as e:  # noqa: BLE001
            logger.warning("Notification %r could not be delivered: %s", request.title, e)


def run_pass(
    repositories: list[RepositoryConfig],
    store: BaseStore,
    options: RunOptions,
    *,
    resolve_token: Callable[[RepositoryConfig], str | None] | None = None,
    notifier: Callable[[NotificationRequest], None] = send,
    clock: Callable[[], datetime] = _utcnow,
    request_timeout: float = 30,
    action_timeout: float | None = 600,
    **collaborators,
) -> PassSummary:
    """Reconcile every repository once, persisting state after each one.

    The store lock is held for the whole pass so overlapping invocations
    cannot interleave their load-modify-save cycles. ``collaborators`` may
    override ``fetch``, ``run`` and ``sync`` (see process_repository).
    """
    summary = PassSummary()
    resolve_token = resolve_token or (lambda repo: repo.token)

    with store.lock():
        records = store.load()
        logger.debug("Loaded %d tracking record(s)", len(records))

        for repo in repositories:
            record = records.get(repo.key) or TrackingRecord()
            try:
                result = process_repository(
                    repo,
                    record,
                    clock(),
                    options,
                    token=resolve_token(repo),
                    request_timeout=request_timeout,
                    action_timeout=action_timeout,
                    **collaborators,
                )
            except Exception as e:  # noqa: BLE001
                # One broken repository must not block the others.
                logger.exception("%s: unexpected error", repo.key)
                summary.results.append(RepositoryResult(key=repo.key, record=record, error=str(e)))
                continue

            summary.results.append(result)
            if result.error is None:
                records[repo.key] = result.record
                try:
                    store.save(records)
                except StoreError as e:
                    logger.error("%s: could not persist state: %s", repo.key, e)

            _deliver(result.notifications, notifier)

    logger.info(
        "Pass complete: %d checked, %d triggered, %d succeeded, %d failed, %d error(s)",
        len(summary.results),
        summary.triggered,
        summary.count("succeeded"),
        summary.count("failed"),
        summary.count("error"),
    )
    return summary
