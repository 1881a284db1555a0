"""Action runner — the side effects triggered when a branch moves.

Three action types:
  command  — a shell command line, run through the host shell
  script   — an executable file invoked with the commit details as arguments
  webhook  — an HTTP POST of the commit details as JSON

Placeholders of the form ${VAR} are replaced from a fixed whitelist
(REPO_NAME, BRANCH, COMMIT_SHA, COMMIT_MESSAGE, COMMIT_AUTHOR). Nothing is
ever evaluated. Commands come from the operator's own config file and run
with the operator's privileges; that file is the trust boundary.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from pathlib import Path

import requests

from branchwatch_core.exceptions import ActionError, ConfigError
from branchwatch_core.models import ActionSpec, ActionType, CommitInfo, RepositoryConfig

logger = logging.getLogger(__name__)

CONTEXT_VARIABLES = ("REPO_NAME", "BRANCH", "COMMIT_SHA", "COMMIT_MESSAGE", "COMMIT_AUTHOR")

_PLACEHOLDER_RE = re.compile(r"\$\{(" + "|".join(CONTEXT_VARIABLES) + r")\}")

# Keep error messages readable in logs and in the state file.
_MAX_OUTPUT_CHARS = 500


def build_context(repo: RepositoryConfig, commit: CommitInfo) -> dict[str, str]:
    return {
        "REPO_NAME": repo.name,
        "BRANCH": repo.branch,
        "COMMIT_SHA": commit.sha,
        "COMMIT_MESSAGE": commit.message,
        "COMMIT_AUTHOR": commit.author,
    }


def substitute(template: str, context: dict[str, str]) -> str:
    """Replace whitelisted ${VAR} placeholders; unknown placeholders are left as-is."""
    return _PLACEHOLDER_RE.sub(lambda m: context.get(m.group(1), m.group(0)), template)


def webhook_payload(repo: RepositoryConfig, commit: CommitInfo) -> dict:
    return {
        "repo": repo.name,
        "branch": repo.branch,
        "commitSha": commit.sha,
        "commitMessage": commit.message,
        "commitAuthor": commit.author,
        "commitDate": commit.date.isoformat() if commit.date else None,
    }


def _tail(text: str | None) -> str:
    text = (text or "").strip()
    if len(text) > _MAX_OUTPUT_CHARS:
        return "..." + text[-_MAX_OUTPUT_CHARS:]
    return text


def _check_process(label: str, result: subprocess.CompletedProcess) -> None:
    if result.stdout:
        logger.debug("%s stdout:\n%s", label, result.stdout.rstrip())
    if result.returncode != 0:
        detail = _tail(result.stderr) or _tail(result.stdout)
        message = f"{label} exited with code {result.returncode}"
        raise ActionError(f"{message}: {detail}" if detail else message)


def run_command(command: str, context: dict[str, str], cwd: str | None, timeout: float | None) -> None:
    resolved = substitute(command, context)
    if not resolved.strip():
        raise ActionError("command action has an empty command")
    label = f"command `{resolved}`"
    logger.info("Running %s", label)
    try:
        result = subprocess.run(
            resolved,
            shell=True,
            cwd=cwd,
            env={**os.environ, **context},
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise ActionError(f"{label} timed out after {timeout}s") from e
    except OSError as e:
        raise ActionError(f"{label} could not be started: {e}") from e
    _check_process(label, result)


def run_script(script: str, context: dict[str, str], cwd: str | None, timeout: float | None) -> None:
    path = Path(substitute(script, context)).expanduser()
    if not path.is_file():
        raise ActionError(f"script {path} does not exist")
    label = f"script {path}"
    args = [str(path.resolve()), *(context[name] for name in CONTEXT_VARIABLES)]
    logger.info("Running %s", label)
    try:
        result = subprocess.run(
            args,
            cwd=cwd,
            env={**os.environ, **context},
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise ActionError(f"{label} timed out after {timeout}s") from e
    except OSError as e:
        raise ActionError(f"{label} could not be started: {e}") from e
    _check_process(label, result)


def run_webhook(url: str, repo: RepositoryConfig, commit: CommitInfo, timeout: float) -> None:
    target = substitute(url, build_context(repo, commit))
    logger.info("Posting webhook to %s", target)
    try:
        resp = requests.post(target, json=webhook_payload(repo, commit), timeout=timeout)
    except requests.RequestException as e:
        raise ActionError(f"webhook {target} failed: {type(e).__name__}: {e}") from e
    if not 200 <= resp.status_code < 300:
        raise ActionError(f"webhook {target} returned HTTP {resp.status_code}: {_tail(resp.text)}")


def run_action(
    spec: ActionSpec,
    repo: RepositoryConfig,
    commit: CommitInfo,
    timeout: float | None = 600,
    request_timeout: float = 30,
) -> None:
    """Execute one action for ``commit``; raise ActionError or ConfigError on failure.

    ``timeout`` bounds command and script actions (None = no limit);
    ``request_timeout`` bounds webhook calls.
    """
    action_type = spec.action_type
    context = build_context(repo, commit)

    if action_type is ActionType.COMMAND:
        run_command(spec.command, context, repo.local_path, timeout)
    elif action_type is ActionType.SCRIPT:
        run_script(spec.command, context, repo.local_path, timeout)
    elif action_type is ActionType.WEBHOOK:
        run_webhook(spec.command, repo, commit, request_timeout)
    else:
        raise ConfigError(f"No runner for action type {action_type.value!r}")
