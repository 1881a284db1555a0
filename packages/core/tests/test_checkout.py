"""Tests for local checkout synchronisation."""

import subprocess
from unittest.mock import MagicMock

import pytest

from branchwatch_core.checkout import sync_local_checkout
from branchwatch_core.exceptions import ActionError, CheckoutError

REMOTE = "https://github.com/acme/api.git"


def _ok(stdout=""):
    return MagicMock(returncode=0, stdout=stdout, stderr="")


def _git_calls(run):
    return [c.args[0][1:] for c in run.call_args_list]


def test_clones_missing_directory(tmp_path, mocker):
    run = mocker.patch("branchwatch_core.checkout.subprocess.run", return_value=_ok())
    target = tmp_path / "checkouts" / "api"

    sync_local_checkout(str(target), REMOTE, "main")

    assert _git_calls(run) == [["clone", "--branch", "main", REMOTE, str(target)]]
    assert target.parent.exists()


def test_clones_into_empty_directory(tmp_path, mocker):
    run = mocker.patch("branchwatch_core.checkout.subprocess.run", return_value=_ok())
    sync_local_checkout(str(tmp_path), REMOTE, "main")
    assert _git_calls(run)[0][0] == "clone"


def test_updates_existing_checkout(tmp_path, mocker):
    (tmp_path / ".git").mkdir()
    run = mocker.patch("branchwatch_core.checkout.subprocess.run", return_value=_ok())

    sync_local_checkout(str(tmp_path), REMOTE, "release")

    assert _git_calls(run) == [
        ["fetch", "origin"],
        ["checkout", "release"],
        ["pull", "--ff-only", "origin", "release"],
    ]
    assert all(c.kwargs["cwd"] == tmp_path for c in run.call_args_list)


def test_non_git_directory_rejected(tmp_path, mocker):
    (tmp_path / "README").write_text("hello")
    run = mocker.patch("branchwatch_core.checkout.subprocess.run")
    with pytest.raises(CheckoutError, match="not a git checkout"):
        sync_local_checkout(str(tmp_path), REMOTE, "main")
    run.assert_not_called()


def test_git_failure_raises_with_stderr(tmp_path, mocker):
    (tmp_path / ".git").mkdir()
    mocker.patch(
        "branchwatch_core.checkout.subprocess.run",
        return_value=MagicMock(returncode=1, stdout="", stderr="fatal: Not possible to fast-forward"),
    )
    with pytest.raises(CheckoutError, match="fast-forward"):
        sync_local_checkout(str(tmp_path), REMOTE, "main")


def test_git_missing(tmp_path, mocker):
    mocker.patch("branchwatch_core.checkout.subprocess.run", side_effect=FileNotFoundError("git"))
    with pytest.raises(CheckoutError, match="git executable not found"):
        sync_local_checkout(str(tmp_path / "new"), REMOTE, "main")


def test_timeout(tmp_path, mocker):
    mocker.patch(
        "branchwatch_core.checkout.subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="git", timeout=2)
    )
    with pytest.raises(CheckoutError, match="timed out"):
        sync_local_checkout(str(tmp_path / "new"), REMOTE, "main", timeout=2)


def test_checkout_error_is_an_action_error():
    assert issubclass(CheckoutError, ActionError)
