"""Tests for CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from fastssh.cli import app
from fastssh.config import AppConfig
from fastssh.models import ServerRecord
from fastssh.storage import ConfigStore

ANSWERS = {"IP:": "203.0.113.10", "User:": "deploy", "SSH Port:": "22"}


def _store() -> ConfigStore:
    return ConfigStore(AppConfig.load())


@pytest.fixture
def cli_env(temp_config_dir: Path, remote, monkeypatch: pytest.MonkeyPatch):
    """Route CLI sessions to the fake remote and record prompts."""
    asked = []

    def ask_text(message, check=None, invalid="", default=""):
        asked.append(message)
        value = ANSWERS[message]
        if check is not None:
            check(value)
        return value

    def ask_secret(message, required=None):
        asked.append(message)
        return remote.password

    monkeypatch.setattr("fastssh.cli.RemoteSession", remote.session)
    monkeypatch.setattr("fastssh.prompts.ask_text", ask_text)
    monkeypatch.setattr("fastssh.prompts.ask_secret", ask_secret)
    monkeypatch.setattr("fastssh.prompts.ask_confirm", lambda message, default=False: False)
    return asked


@pytest.fixture
def saved_server(temp_config_dir: Path, remote, public_key_line: str) -> str:
    _store().add("web1", ServerRecord(host="203.0.113.10", user="deploy", key_path="~/.ssh/id_rsa"))
    remote.authorized_keys = [public_key_line]
    return "web1"


def test_cli_help(runner: CliRunner):
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "FastSSH" in result.stdout


def test_help_flag_alias(runner: CliRunner):
    result = runner.invoke(app, ["-h"])
    assert result.exit_code == 0
    assert "FastSSH" in result.stdout


@pytest.mark.parametrize(
    ("command", "alias"),
    [("list", "ls"), ("init", "i"), ("connect", "c"), ("remove", "rm"), ("diagnose", "d")],
)
def test_command_aliases_work(runner: CliRunner, command: str, alias: str):
    assert runner.invoke(app, [command, "--help"]).exit_code == 0
    assert runner.invoke(app, [alias, "--help"]).exit_code == 0


def test_commands_alphabetically_ordered(runner: CliRunner):
    result = runner.invoke(app, ["--help"])
    commands_section = result.stdout.split("Commands")[1]

    last_pos = 0
    for command in ["connect", "diagnose", "init", "list", "remove"]:
        pos = commands_section.find(command)
        assert pos > last_pos, f"Command '{command}' is not in alphabetical order"
        last_pos = pos


def test_list_empty(runner: CliRunner, temp_config_dir: Path):
    result = runner.invoke(app, ["list"])
    assert result.exit_code == 0
    assert "No servers saved" in result.stdout


def test_list_with_servers(runner: CliRunner, saved_server: str):
    result = runner.invoke(app, ["ls"])
    assert result.exit_code == 0
    assert "web1" in result.stdout
    assert "203.0.113.10" in result.stdout


def test_list_corrupt_store(runner: CliRunner, temp_config_dir: Path):
    (temp_config_dir / "servers.json").write_text("{broken", encoding="utf-8")

    result = runner.invoke(app, ["list"])
    assert result.exit_code == 1
    assert "corrupt" in result.stdout


def test_list_shows_invalid_record(runner: CliRunner, saved_server: str, temp_config_dir: Path):
    servers = temp_config_dir / "servers.json"
    data = json.loads(servers.read_text(encoding="utf-8"))
    data["bad"] = {"host": "198.51.100.7", "user": "deploy"}
    servers.write_text(json.dumps(data), encoding="utf-8")

    result = runner.invoke(app, ["list"])
    assert result.exit_code == 0
    assert "203.0.113.10" in result.stdout
    assert "invalid record" in result.stdout


def test_init_success(runner: CliRunner, cli_env, remote, installed_key: Path):
    result = runner.invoke(app, ["init", "web1"])

    assert result.exit_code == 0, result.stdout
    assert "Setup complete" in result.stdout
    assert _store().list() == ["web1"]
    assert len(remote.authorized_keys) == 1


def test_init_install_failure(runner: CliRunner, cli_env, remote, installed_key: Path):
    remote.failing_methods = {"literal", "base64"}

    result = runner.invoke(app, ["init", "web1"])

    assert result.exit_code == 1
    assert "Method 1" in result.stdout
    assert "Method 2" in result.stdout
    assert _store().list() == []


def test_init_verification_failure(runner: CliRunner, cli_env, remote, installed_key: Path):
    remote.reject_keys = True

    result = runner.invoke(app, ["init", "web1"])

    assert result.exit_code == 1
    assert "SSH key authentication failed" in result.stdout
    assert _store().list() == []


def test_init_existing_alias_declined(runner: CliRunner, cli_env, saved_server: str, installed_key: Path):
    result = runner.invoke(app, ["init", saved_server])

    assert result.exit_code == 0
    assert "Canceled" in result.stdout
    assert cli_env == []


def test_init_conflict_before_password(runner: CliRunner, cli_env, saved_server: str, installed_key: Path):
    result = runner.invoke(app, ["init", "web2"])

    assert result.exit_code == 1
    assert "already exists as 'web1'" in result.stdout
    assert not any("password" in message.lower() for message in cli_env)


def test_connect_unknown(runner: CliRunner, cli_env):
    result = runner.invoke(app, ["connect", "nope"])
    assert result.exit_code == 1
    assert "not found" in result.stdout


def test_connect_runs_relay(runner: CliRunner, cli_env, saved_server: str, installed_key: Path, monkeypatch):
    monkeypatch.setattr("fastssh.cli.interactive_shell", lambda session: 0)

    result = runner.invoke(app, ["c", saved_server])
    assert result.exit_code == 0
    assert "Connected" in result.stdout


def test_connect_missing_key(runner: CliRunner, cli_env, saved_server: str, temp_ssh_dir: Path):
    result = runner.invoke(app, ["connect", saved_server])
    assert result.exit_code == 1
    assert "scp" in result.stdout
    assert "How to fix" in result.stdout


def test_connect_refused(runner: CliRunner, cli_env, remote, saved_server: str, installed_key: Path):
    remote.connect_error = ConnectionRefusedError(111, "Connection refused")

    result = runner.invoke(app, ["connect", saved_server])
    assert result.exit_code == 1
    assert "not listening" in result.stdout


def test_remove_keep_remote(runner: CliRunner, cli_env, remote, saved_server: str, installed_key: Path):
    result = runner.invoke(app, ["rm", saved_server, "--keep-remote"])

    assert result.exit_code == 0
    assert _store().list() == []
    assert len(remote.authorized_keys) == 1


def test_remove_with_remote_key(runner, cli_env, remote, saved_server, installed_key, monkeypatch):
    monkeypatch.setattr("fastssh.prompts.ask_confirm", lambda message, default=False: True)

    result = runner.invoke(app, ["remove", saved_server])

    assert result.exit_code == 0
    assert "Public key removed" in result.stdout
    assert remote.authorized_keys == []
    assert _store().list() == []


def test_remove_unknown(runner: CliRunner, cli_env):
    result = runner.invoke(app, ["remove", "nope"])
    assert result.exit_code == 1


def test_diagnose(runner: CliRunner, temp_config_dir: Path, installed_key: Path):
    result = runner.invoke(app, ["diagnose"])
    assert result.exit_code == 0
    assert "Private key" in result.stdout


def test_diagnose_unknown_server(runner: CliRunner, temp_config_dir: Path, installed_key: Path):
    result = runner.invoke(app, ["diagnose", "nope"])
    assert result.exit_code == 1
    assert "not found" in result.stdout
