"""Tests for configuration loading."""

import json

import pytest

from branchwatch_core.config import load_config, load_repositories, parse_repository
from branchwatch_core.exceptions import ConfigError
from branchwatch_core.models import ActionSpec


def _write(tmp_path, data, name="branchwatch.json"):
    cfg = tmp_path / name
    cfg.write_text(json.dumps(data) if not isinstance(data, str) else data)
    return str(cfg)


def _github_entry(**overrides):
    entry = {
        "provider": "github",
        "owner": "acme",
        "name": "api",
        "branch": "main",
        "actions": [{"type": "command", "command": "make deploy"}],
    }
    entry.update(overrides)
    return entry


def test_missing_config_file_raises(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(config_path=str(tmp_path / "nonexistent.json"))


def test_unparsable_config_file_raises(tmp_path):
    with pytest.raises(ConfigError, match="parse"):
        load_config(config_path=_write(tmp_path, '{"repositories": [\n  {"name": '))


def test_non_object_config_raises(tmp_path):
    with pytest.raises(ConfigError):
        load_config(config_path=_write(tmp_path, "[1, 2]"))


def test_repositories_must_be_a_list(tmp_path):
    with pytest.raises(ConfigError, match="list"):
        load_config(config_path=_write(tmp_path, {"repositories": {"name": "api"}}))


def test_defaults_applied(tmp_path):
    config = load_config(config_path=_write(tmp_path, {"repositories": []}))
    assert config["stateFile"] == "branchwatch-state.json"
    assert config["stateBackend"] == "json"
    assert config["actionTimeout"] == 600
    assert config["requestTimeout"] == 30
    assert config["repositories"] == []


def test_empty_file_uses_defaults(tmp_path):
    config = load_config(config_path=_write(tmp_path, ""))
    assert config["repositories"] == []


def test_config_file_overrides_defaults(tmp_path):
    config = load_config(config_path=_write(tmp_path, {"stateFile": "/var/lib/bw/state.json", "actionTimeout": 0}))
    assert config["stateFile"] == "/var/lib/bw/state.json"
    assert config["actionTimeout"] == 0


def test_yaml_config_accepted(tmp_path):
    cfg = _write(
        tmp_path,
        "repositories:\n  - provider: github\n    owner: acme\n    name: api\n    branch: main\n",
        name="branchwatch.yml",
    )
    assert len(load_repositories(load_config(config_path=cfg))) == 1


def test_cli_overrides_config_file(tmp_path):
    config = load_config(config_path=_write(tmp_path, {"stateFile": "a.json"}), cli_overrides={"stateFile": "b.json"})
    assert config["stateFile"] == "b.json"


def test_none_cli_overrides_ignored(tmp_path):
    config = load_config(config_path=_write(tmp_path, {"stateFile": "a.json"}), cli_overrides={"stateFile": None})
    assert config["stateFile"] == "a.json"


def test_repositories_list_is_not_shared_reference(tmp_path):
    """Mutating one config's repositories must not affect the defaults."""
    config_a = load_config(config_path=_write(tmp_path, {}))
    config_a["repositories"].append({"name": "x"})
    config_b = load_config(config_path=_write(tmp_path, {}))
    assert config_b["repositories"] == []


class TestParseRepository:
    def test_github_entry(self):
        repo = parse_repository(_github_entry(token="t0k", localPath="/srv/api", notificationUrl="https://n/x"))
        assert repo.provider == "github"
        assert repo.owner == "acme"
        assert repo.key == "github:api:main"
        assert repo.token == "t0k"
        assert repo.local_path == "/srv/api"
        assert repo.notification_url == "https://n/x"
        assert repo.actions == (ActionSpec(type="command", command="make deploy"),)

    def test_bitbucket_workspace(self):
        repo = parse_repository({"provider": "bitbucket", "workspace": "team", "name": "web", "branch": "develop"})
        assert repo.owner == "team"
        assert repo.key == "bitbucket:web:develop"
        assert repo.remote_url == "https://bitbucket.org/team/web.git"

    def test_default_notification_url(self):
        repo = parse_repository(_github_entry(), default_notification_url="https://ntfy.sh/builds")
        assert repo.notification_url == "https://ntfy.sh/builds"

    def test_unknown_provider(self):
        with pytest.raises(ConfigError, match="gitlab"):
            parse_repository(_github_entry(provider="gitlab"))

    def test_missing_fields(self):
        with pytest.raises(ConfigError, match="branch"):
            parse_repository({"provider": "github", "owner": "acme", "name": "api"})

    def test_missing_owner(self):
        with pytest.raises(ConfigError, match="owner"):
            parse_repository({"provider": "github", "name": "api", "branch": "main"})

    def test_unknown_action_type_kept_for_dispatch(self):
        repo = parse_repository(_github_entry(actions=[{"type": "email", "command": "ops@example.com"}]))
        assert repo.actions[0].type == "email"
        with pytest.raises(ConfigError):
            repo.actions[0].action_type

    def test_actions_default_empty(self):
        entry = _github_entry()
        del entry["actions"]
        assert parse_repository(entry).actions == ()


class TestLoadRepositories:
    def test_broken_entries_skipped(self):
        config = {
            "repositories": [
                _github_entry(name="good"),
                _github_entry(provider="gitlab"),
                "not an object",
                _github_entry(name="also-good", branch="release"),
            ]
        }
        assert [r.key for r in load_repositories(config)] == ["github:good:main", "github:also-good:release"]

    def test_duplicate_keys_skipped(self):
        config = {"repositories": [_github_entry(), _github_entry(owner="someone-else")]}
        repos = load_repositories(config)
        assert len(repos) == 1
        assert repos[0].owner == "acme"

    def test_key_is_case_sensitive(self):
        config = {"repositories": [_github_entry(name="API"), _github_entry(name="api")]}
        assert len(load_repositories(config)) == 2
