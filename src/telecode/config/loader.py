"""Configuration loading and workspace hydration logic."""

import os
import shutil
import sys
import tomllib
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Optional

from telecode.daemon.backends import Backend
from telecode.daemon.errors import ConfigError, UnsupportedBackendError
from telecode.daemon.workspace import Workspace

CONFIG_FILENAME = "telecode.toml"
CONFIG_FILE_ENV = "TELECODE_CONFIG_FILE"


def _get_config_dir() -> Path:
    """Return the configuration directory path."""
    return Path.home() / ".config" / "telecode"


def _merge(base: Dict[str, Any], update: Dict[str, Any]) -> None:
    for key, value in update.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge(base[key], value)
        else:
            base[key] = value


def bundled_config_text() -> str:
    """Return the packaged default configuration."""
    return resources.files("telecode.data.config").joinpath(CONFIG_FILENAME).read_text(
        encoding="utf-8"
    )


def load_config(extra_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from TOML files, falling back to defaults."""
    config_dir = _get_config_dir()
    final_config: Dict[str, Any] = {
        "general": {},
        "daemon": {},
        "backends": {},
        "workspaces": [],
    }

    # 1. Bundled defaults, copied to the user directory on first run.
    resource_path = resources.files("telecode.data.config").joinpath(CONFIG_FILENAME)
    user_file_path = config_dir / CONFIG_FILENAME
    try:
        with resource_path.open("rb") as f:
            _merge(final_config, tomllib.load(f))
    except (OSError, tomllib.TOMLDecodeError) as e:
        print(f"Warning: Failed to load bundled config {CONFIG_FILENAME}: {e}")
    if not user_file_path.exists():
        try:
            config_dir.mkdir(parents=True, exist_ok=True)
            with resources.as_file(resource_path) as source_path:
                shutil.copy(source_path, user_file_path)
            print(f"Created default configuration {CONFIG_FILENAME} at {user_file_path}")
        except OSError as e:
            print(f"Warning: Failed to create default config {CONFIG_FILENAME}: {e}")

    # 2. User file, then an explicit override file.
    candidates = [user_file_path]
    override = extra_path or os.environ.get(CONFIG_FILE_ENV)
    if override:
        candidates.append(Path(override).expanduser())
    for path in candidates:
        if not path.exists():
            if path != user_file_path:
                print(f"Warning: Config file not found: {path}", file=sys.stderr)
            continue
        try:
            with open(path, "rb") as f:
                _merge(final_config, tomllib.load(f))
        except tomllib.TOMLDecodeError as e:
            print(f"Error: Invalid configuration file at {path}", file=sys.stderr)
            print(f"Details: {e}", file=sys.stderr)
            sys.exit(1)
        except OSError as e:
            print(f"Warning: Failed to load config from {path}: {e}")

    return final_config


def load_workspaces(config: Dict[str, Any]) -> list[Workspace]:
    """Build Workspace objects from [[workspaces]] entries."""
    raw_entries = config.get("workspaces", []) or []
    if not isinstance(raw_entries, list):
        raise ConfigError("'workspaces' must be an array of tables.")

    workspaces: list[Workspace] = []
    seen_names: set[str] = set()
    for index, entry in enumerate(raw_entries, start=1):
        if not isinstance(entry, dict):
            raise ConfigError(f"Workspace #{index} must be a table.")
        if entry.get("enabled") is False:
            continue
        name = str(entry.get("name", "") or "").strip() or f"workspace-{index}"
        if name in seen_names:
            raise ConfigError(f"Duplicate workspace name '{name}'.")
        seen_names.add(name)

        working_dir = str(entry.get("working_dir", "") or "").strip()
        if not working_dir:
            raise ConfigError(f"Workspace '{name}' has no working_dir.")

        token = str(entry.get("bot_token", "") or "").strip()
        token_env = str(entry.get("bot_token_env", "") or "").strip()
        if not token and token_env:
            token = os.environ.get(token_env, "").strip()
        if not token:
            raise ConfigError(
                f"Workspace '{name}' has no bot token.",
                hint="Set bot_token or bot_token_env.",
            )

        raw_backends = entry.get("allowed_backends") or list(Backend.names())
        if isinstance(raw_backends, str):
            raw_backends = [raw_backends]
        try:
            backends = tuple(dict.fromkeys(Backend.parse(item) for item in raw_backends))
        except UnsupportedBackendError as exc:
            raise ConfigError(f"Workspace '{name}': {exc.user_message}") from exc

        raw_chat_ids = entry.get("allowed_chat_ids") or []
        if isinstance(raw_chat_ids, (str, int)):
            raw_chat_ids = [raw_chat_ids]
        try:
            chat_ids = frozenset(int(item) for item in raw_chat_ids)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Workspace '{name}' has invalid allowed_chat_ids.") from exc

        workspaces.append(
            Workspace(
                name=name,
                working_dir=Path(working_dir).expanduser(),
                bot_token=token,
                allowed_backends=backends,
                allowed_chat_ids=chat_ids,
            )
        )
    return workspaces


def backend_executables(config: Dict[str, Any]) -> dict[str, str]:
    """Return configured executable overrides keyed by backend name."""
    executables: dict[str, str] = {}
    for name, section in (config.get("backends", {}) or {}).items():
        if not isinstance(section, dict):
            continue
        executable = str(section.get("executable", "") or "").strip()
        if executable:
            executables[str(name).strip().lower()] = executable
    return executables
