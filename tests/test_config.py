"""Configuration loading and workspace validation tests."""

from pathlib import Path

import pytest

from telecode.config.loader import (
    backend_executables,
    load_config,
    load_workspaces,
)
from telecode.daemon.backends import Backend
from telecode.daemon.errors import ConfigError


def test_load_config_creates_user_file_and_has_defaults():
    config = load_config()
    user_file = Path.home() / ".config" / "telecode" / "telecode.toml"
    assert user_file.exists()
    assert config["daemon"]["response_chunk_chars"] == 4000
    assert config["daemon"]["command_timeout_seconds"] == 0
    assert config["workspaces"] == []


def test_override_file_is_merged(tmp_path):
    override = tmp_path / "extra.toml"
    override.write_text(
        "[daemon]\ncommand_timeout_seconds = 600\n\n"
        "[backends.claude]\nexecutable = \"/opt/claude\"\n\n"
        "[[workspaces]]\nname = \"api\"\nworking_dir = \"/srv/api\"\nbot_token = \"1:x\"\n",
        encoding="utf-8",
    )
    config = load_config(str(override))
    assert config["daemon"]["command_timeout_seconds"] == 600
    assert config["daemon"]["response_chunk_chars"] == 4000
    assert backend_executables(config)["claude"] == "/opt/claude"
    assert [workspace.name for workspace in load_workspaces(config)] == ["api"]


def test_override_file_from_environment(tmp_path, monkeypatch):
    override = tmp_path / "env.toml"
    override.write_text("[daemon]\nresponse_chunk_chars = 1000\n", encoding="utf-8")
    monkeypatch.setenv("TELECODE_CONFIG_FILE", str(override))
    assert load_config()["daemon"]["response_chunk_chars"] == 1000


def test_load_workspaces_full_entry(monkeypatch):
    monkeypatch.setenv("API_BOT_TOKEN", "42:secret")
    workspaces = load_workspaces(
        {
            "workspaces": [
                {
                    "name": "api",
                    "working_dir": "~/code/api",
                    "bot_token_env": "API_BOT_TOKEN",
                    "allowed_backends": ["opencode", "claude", "opencode"],
                    "allowed_chat_ids": [1, "2"],
                },
                {"name": "off", "enabled": False},
            ]
        }
    )
    assert len(workspaces) == 1
    workspace = workspaces[0]
    assert workspace.bot_token == "42:secret"
    assert workspace.working_dir == Path.home() / "code" / "api"
    assert workspace.allowed_backends == (Backend.OPENCODE, Backend.CLAUDE)
    assert workspace.default_backend is Backend.OPENCODE
    assert workspace.allowed_chat_ids == frozenset({1, 2})
    assert workspace.is_member(2) and not workspace.is_member(3)


def test_workspace_without_chat_list_accepts_everyone():
    workspace = load_workspaces(
        {"workspaces": [{"name": "a", "working_dir": "/tmp", "bot_token": "1:x"}]}
    )[0]
    assert workspace.allowed_backends == (Backend.CLAUDE, Backend.OPENCODE)
    assert workspace.is_member(12345)


@pytest.mark.parametrize(
    "entry, message",
    [
        ({"name": "a", "bot_token": "1:x"}, "working_dir"),
        ({"name": "a", "working_dir": "/tmp"}, "bot token"),
        ({"name": "a", "working_dir": "/tmp", "bot_token": "1:x", "allowed_backends": ["vim"]}, "Unsupported CLI"),
        ({"name": "a", "working_dir": "/tmp", "bot_token": "1:x", "allowed_chat_ids": ["me"]}, "allowed_chat_ids"),
    ],
)
def test_invalid_workspace_entries(entry, message):
    with pytest.raises(ConfigError) as excinfo:
        load_workspaces({"workspaces": [entry]})
    assert message in excinfo.value.user_message


def test_duplicate_workspace_names():
    entry = {"name": "a", "working_dir": "/tmp", "bot_token": "1:x"}
    with pytest.raises(ConfigError):
        load_workspaces({"workspaces": [entry, dict(entry)]})


@pytest.mark.parametrize("value", ["123", 123])
def test_single_chat_id_is_not_split_into_digits(value):
    workspace = load_workspaces(
        {
            "workspaces": [
                {"name": "a", "working_dir": "/tmp", "bot_token": "1:x", "allowed_chat_ids": value}
            ]
        }
    )[0]
    assert workspace.allowed_chat_ids == frozenset({123})


def test_single_chat_id_string_must_be_numeric():
    entry = {"name": "a", "working_dir": "/tmp", "bot_token": "1:x", "allowed_chat_ids": "me"}
    with pytest.raises(ConfigError):
        load_workspaces({"workspaces": [entry]})
