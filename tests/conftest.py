"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import base64
import shlex
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

import keyring
import paramiko
import pytest
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError
from typer.testing import CliRunner

from fastssh import keys
from fastssh.config import AppConfig
from fastssh.session import CommandResult
from fastssh.storage import ConfigStore

if TYPE_CHECKING:
    from collections.abc import Generator

AUTHORIZED_KEYS = "~/.ssh/authorized_keys"


class MemoryKeyring(KeyringBackend):
    """Keyring backend holding secrets in a dict."""

    priority = 1

    def __init__(self):
        super().__init__()
        self.secrets: dict[tuple[str, str], str] = {}

    def get_password(self, service, username):
        return self.secrets.get((service, username))

    def set_password(self, service, username, password):
        self.secrets[(service, username)] = password

    def delete_password(self, service, username):
        if (service, username) not in self.secrets:
            raise PasswordDeleteError("not found")
        del self.secrets[(service, username)]


class FakeRemote:
    """One remote account shared by every session opened against it."""

    def __init__(self, password: str = "s3cret"):
        self.password = password
        self.authorized_keys: list[str] = []
        self.failing_methods: set[str] = set()  # "literal", "base64"
        self.reject_keys = False
        self.connect_error: BaseException | None = None
        self.key_connect_errors: list[BaseException] = []
        self.commands: list[str] = []
        self.modes: dict[str, int] = {}
        self.sessions: list[FakeSession] = []

    def session(self, timeout: float = 20.0) -> FakeSession:
        session = FakeSession(self, timeout)
        self.sessions.append(session)
        return session

    def accepts(self, pkey: paramiko.PKey) -> bool:
        return any(line.split()[1] == pkey.get_base64() for line in self.authorized_keys if line.strip())

    def run(self, command: str) -> CommandResult:
        self.commands.append(command)
        tokens = shlex.split(command)
        if command.startswith("mkdir -p ~/.ssh"):
            self.modes["~/.ssh"] = 0o700
            return CommandResult(0, "", "")
        if command.startswith("chmod 600"):
            self.modes[AUTHORIZED_KEYS] = 0o600
            return CommandResult(0, "", "")
        if command.startswith("grep -qxF"):
            return CommandResult(0 if tokens[3] in self.authorized_keys else 1, "", "")
        if command.startswith("cp "):
            line = tokens[tokens.index("-vxF") + 2]
            self.authorized_keys = [k for k in self.authorized_keys if k != line]
            self.modes[AUTHORIZED_KEYS] = 0o600
            return CommandResult(0, "", "")
        if tokens[0] == "echo" and "base64" in tokens:
            if "base64" in self.failing_methods:
                return CommandResult(1, "", "base64: invalid input")
            decoded = base64.b64decode(tokens[1]).decode("utf-8")
            self.authorized_keys.extend(decoded.splitlines())
            return CommandResult(0, "", "")
        if tokens[0] == "echo":
            if "literal" in self.failing_methods:
                return CommandResult(2, "", "sh: 1: Syntax error: Unterminated quoted string")
            self.authorized_keys.append(tokens[1])
            return CommandResult(0, "", "")
        return CommandResult(127, "", f"sh: {tokens[0]}: not found")


class FakeSession:
    def __init__(self, remote: FakeRemote, timeout: float):
        self.remote = remote
        self.timeout = timeout
        self.auth: str | None = None
        self.closed = False

    def connect(self, host, user, port=22, password=None, pkey=None):
        remote = self.remote
        if remote.connect_error is not None:
            raise remote.connect_error
        if password is not None:
            if password != remote.password:
                raise paramiko.AuthenticationException("Authentication failed.")
            self.auth = "password"
            return
        if remote.key_connect_errors:
            raise remote.key_connect_errors.pop(0)
        if remote.reject_keys or pkey is None or not remote.accepts(pkey):
            raise paramiko.AuthenticationException("Authentication failed.")
        self.auth = "key"

    def exec_command(self, command):
        assert self.auth == "password", "commands only run on the bootstrap session"
        return self.remote.run(command)

    def invoke_shell(self, width=80, height=24):
        return "channel"

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


@pytest.fixture
def runner() -> CliRunner:
    """Provide Typer CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def memory_keyring() -> Generator[MemoryKeyring, None, None]:
    """Keep tests away from the real OS keyring."""
    previous = keyring.get_keyring()
    backend = MemoryKeyring()
    keyring.set_keyring(backend)
    yield backend
    keyring.set_keyring(previous)


@pytest.fixture
def temp_config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create temporary config directory and patch the default location."""
    config_dir = tmp_path / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setattr("fastssh.config.default_config_dir", lambda: config_dir)
    return config_dir


@pytest.fixture
def temp_ssh_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the home directory at tmp_path so ~/.ssh is isolated."""
    home = tmp_path / "home"
    ssh_dir = home / ".ssh"
    ssh_dir.mkdir(parents=True, exist_ok=True)
    ssh_dir.chmod(0o700)

    def mock_home() -> Path:
        return home

    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setattr(Path, "home", mock_home)
    return ssh_dir


@pytest.fixture
def app_config(temp_config_dir: Path) -> AppConfig:
    return AppConfig(config_dir=temp_config_dir, service_name="fastssh-test", retry_delay=0.0)


@pytest.fixture
def store(app_config: AppConfig) -> ConfigStore:
    return ConfigStore(app_config)


@pytest.fixture
def fast_keygen(monkeypatch: pytest.MonkeyPatch) -> None:
    """Smaller keys so generation tests stay quick."""
    monkeypatch.setattr("fastssh.keys.KEY_SIZE", 2048)


@pytest.fixture(scope="session")
def key_pair_files(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """A generated key pair shared across the session (private key path)."""
    path = tmp_path_factory.mktemp("keys") / "id_rsa"
    keys.generate_key_pair(path)
    return path


@pytest.fixture
def public_key_line(key_pair_files: Path) -> str:
    return key_pair_files.with_name("id_rsa.pub").read_text(encoding="utf-8").strip()


@pytest.fixture
def installed_key(temp_ssh_dir: Path, key_pair_files: Path) -> Path:
    """Copy the shared key pair into the isolated ~/.ssh."""
    target = temp_ssh_dir / "id_rsa"
    shutil.copyfile(key_pair_files, target)
    shutil.copyfile(key_pair_files.with_name("id_rsa.pub"), temp_ssh_dir / "id_rsa.pub")
    target.chmod(0o600)
    return target


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()
