import logging
from pathlib import Path
from typing import Optional

import yaml

from branchwatch_core.exceptions import ConfigError
from branchwatch_core.models import ActionSpec, Provider, RepositoryConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "branchwatch.json"

DEFAULT_CONFIG: dict = {
    "stateFile": "branchwatch-state.json",
    "stateBackend": "json",  # "json" | "sqlite"
    "logFile": "branchwatch.log",
    "logMaxBytes": 1024 * 1024,
    "logBackupCount": 5,
    "requestTimeout": 30,
    "actionTimeout": 600,  # seconds; 0 or null disables the limit
    "notificationUrl": None,  # default for repositories without their own
    "repositories": [],
}

_REQUIRED_FIELDS = ("provider", "name", "branch")


def load_config(config_path: str = DEFAULT_CONFIG_PATH, cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. The config file (JSON, or YAML since JSON documents parse as YAML)
      3. CLI argument overrides

    Unlike most settings files, the config file is mandatory: without it
    there is nothing to monitor, so a missing or unparsable file raises
    ConfigError.
    """
    config = {**DEFAULT_CONFIG, "repositories": []}

    path = Path(config_path)
    try:
        with open(path, encoding="utf-8") as f:
            file_config = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {config_path}")
    except OSError as e:
        raise ConfigError(f"Could not read config file {config_path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse config file {config_path}: {e}")

    if file_config is None:
        file_config = {}
    if not isinstance(file_config, dict):
        raise ConfigError(f"Config file {config_path} must contain an object at the top level.")
    if not isinstance(file_config.get("repositories", []), list):
        raise ConfigError(f"'repositories' in {config_path} must be a list.")
    config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    return config


def parse_repository(entry: dict, default_notification_url: str | None = None) -> RepositoryConfig:
    """Build a RepositoryConfig from one ``repositories`` entry.

    Raises ConfigError for unknown providers or missing fields. Action types
    are not validated here; an unknown type fails only that action when run.
    """
    if not isinstance(entry, dict):
        raise ConfigError(f"Repository entry must be an object, got {entry!r}")

    missing = [f for f in _REQUIRED_FIELDS if not entry.get(f)]
    owner = entry.get("owner") or entry.get("workspace")
    if not owner:
        missing.append("owner|workspace")
    if missing:
        raise ConfigError(f"Repository entry {entry.get('name', '?')!r} is missing: {', '.join(missing)}")

    provider = str(entry["provider"])
    if provider not in {p.value for p in Provider}:
        raise ConfigError(f"Unknown provider {provider!r} for {entry['name']}. Choose 'github' or 'bitbucket'.")

    raw_actions = entry.get("actions") or []
    if not isinstance(raw_actions, list):
        raise ConfigError(f"'actions' for {entry['name']} must be a list.")
    actions = []
    for raw in raw_actions:
        if not isinstance(raw, dict):
            raise ConfigError(f"Action for {entry['name']} must be an object, got {raw!r}")
        actions.append(ActionSpec(type=str(raw.get("type", "")), command=str(raw.get("command", ""))))

    return RepositoryConfig(
        provider=provider,
        owner=str(owner),
        name=str(entry["name"]),
        branch=str(entry["branch"]),
        token=entry.get("token") or None,
        local_path=entry.get("localPath") or None,
        notification_url=entry.get("notificationUrl") or default_notification_url,
        actions=tuple(actions),
    )


def load_repositories(config: dict) -> list[RepositoryConfig]:
    """Parse every configured repository, skipping (and logging) broken entries.

    One broken entry never prevents the others from being monitored. Entries
    whose key duplicates an earlier one are skipped too, since both would
    share a single tracking record.
    """
    repositories: list[RepositoryConfig] = []
    seen: set[str] = set()
    for index, entry in enumerate(config.get("repositories") or []):
        try:
            repo = parse_repository(entry, config.get("notificationUrl"))
        except ConfigError as e:
            logger.error("Skipping repository #%d: %s", index + 1, e)
            continue
        if repo.key in seen:
            logger.error("Skipping repository #%d: duplicate key %s", index + 1, repo.key)
            continue
        seen.add(repo.key)
        repositories.append(repo)
    return repositories
