"""CLI entry point tests."""

import tomllib

import pytest

from telecode.cli.main import generate_config, main, parse_args


def test_parse_args_defaults():
    args = parse_args([])
    assert args.config is None
    assert args.generate_config is None
    assert args.check_config is False
    assert args.verbose is False


def test_generate_config_flag_default_path():
    args = parse_args(["--generate-config"])
    assert args.generate_config == "telecode.toml"


def test_generate_config_writes_valid_toml(tmp_path):
    target = generate_config(str(tmp_path / "telecode.toml"))
    data = tomllib.loads(target.read_text(encoding="utf-8"))
    assert data["daemon"]["response_chunk_chars"] == 4000
    assert data["workspaces"][0]["bot_token_env"] == "TELECODE_BOT_TOKEN"
    assert data["workspaces"][0]["allowed_backends"] == ["claude", "opencode"]


def test_generate_config_refuses_to_overwrite(tmp_path):
    target = tmp_path / "telecode.toml"
    target.write_text("keep", encoding="utf-8")
    with pytest.raises(SystemExit):
        main(["--generate-config", str(target)])
    assert target.read_text(encoding="utf-8") == "keep"


def test_check_config_lists_workspaces(tmp_path, capsys, monkeypatch):
    monkeypatch.setattr("telecode.config.LOG_FILE", str(tmp_path / "logs" / "t.log"))
    config = tmp_path / "ws.toml"
    config.write_text(
        "[[workspaces]]\nname = \"api\"\nworking_dir = \"/srv/api\"\nbot_token = \"1:x\"\n",
        encoding="utf-8",
    )
    main(["--config", str(config), "--check-config"])
    out = capsys.readouterr().out
    assert "api" in out
    assert "/srv/api" in out


def test_invalid_workspace_config_exits(tmp_path, monkeypatch):
    monkeypatch.setattr("telecode.config.LOG_FILE", str(tmp_path / "t.log"))
    config = tmp_path / "bad.toml"
    config.write_text("[[workspaces]]\nname = \"api\"\n", encoding="utf-8")
    with pytest.raises(SystemExit):
        main(["--config", str(config), "--check-config"])
