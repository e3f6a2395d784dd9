from __future__ import annotations

import time
from collections.abc import Callable, Sequence

import paramiko
from rich.console import Console
from rich.markup import escape

from .errors import (
    BootstrapAuthError,
    ConflictError,
    FastSSHError,
    InstallError,
    ServerNotFoundError,
    StoreIOError,
    ValidationError,
    VerificationError,
)
from .failures import classify_error, describe
from .installer import INSTALL_METHODS, InstallMethod, install_public_key, remove_public_key
from .keys import DEFAULT_KEY_PATH, ensure_key_pair, load_private_key, read_public_key
from .models import ServerRecord
from .retry import retry_with_backoff
from .session import SSH_ERRORS, TRANSIENT_ERRORS, RemoteSession
from .storage import ConfigStore
from .validation import validate_alias, validate_host, validate_port, validate_username

console = Console()

BOOTSTRAP_HINTS = [
    "Incorrect password or username",
    "SSH access disabled on the server",
    "Firewall blocking SSH connection",
    "Wrong server IP address",
]

SessionFactory = Callable[..., RemoteSession]


def verification_hints(host: str, user: str, key_path: str) -> list[str]:
    target = f"{user}@{host}"
    return [
        f"Check PubkeyAuthentication on the server: ssh {target} 'grep PubkeyAuthentication /etc/ssh/sshd_config'",
        f"Verify your public key is on the server: ssh {target} 'cat ~/.ssh/authorized_keys'",
        f"Try a manual connection: ssh -i {key_path} {target}",
        f"Regenerate the RSA key if needed: ssh-keygen -t rsa -b 4096 -m pem -f {key_path}",
    ]


class Provisioner:
    """
    Sets up key-based login for an alias.

    `init` either leaves a verified, working record in the store or leaves the
    store untouched. The local key pair and the remote authorized_keys line
    may remain after a failure.
    """

    def __init__(
        self,
        store: ConfigStore,
        session_factory: SessionFactory = RemoteSession,
        methods: Sequence[InstallMethod] = INSTALL_METHODS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.config = store.config
        self.session_factory = session_factory
        self.methods = methods
        self._sleep = sleep

    def check_conflicts(self, alias: str, host: str, user: str, replace: bool = False) -> None:
        if self.store.has(alias) and not replace:
            raise ConflictError(
                f"Server '{alias}' already exists",
                hints=[f"Remove it first (fastssh remove {alias}) or confirm re-creation."],
            )
        owner = self.store.find_by_host_user(host, user)
        if owner is not None and owner != alias:
            raise ConflictError(
                f"This IP and user combination already exists as '{owner}'",
                hints=[f"Use a different IP or user, or remove '{owner}' first."],
            )

    def init(
        self,
        alias: str,
        host: str,
        user: str,
        port: int | str = 22,
        password: str | None = None,
        *,
        replace: bool = False,
    ) -> ServerRecord:
        alias = validate_alias(alias)
        host = validate_host(host)
        user = validate_username(user)
        port = validate_port(port)
        if not password:
            raise ValidationError("Password is required to set up SSH key on the server")
        self.check_conflicts(alias, host, user, replace=replace)

        key_path = DEFAULT_KEY_PATH
        ensure_key_pair(key_path)
        key_line = read_public_key(key_path)
        pkey = load_private_key(key_path)

        self._install_key(alias, host, user, port, password, key_line)
        self._verify_key_login(alias, host, user, port, key_path, pkey)

        record = ServerRecord(host=host, user=user, port=port, auth_type="key", key_path=key_path)
        if replace:
            self.store.remove(alias)
        self.store.add(alias, record)
        console.print(f"[green]Setup complete. Connect with: fastssh connect {alias}[/green]")
        return record

    def _open_password_session(self, alias: str, host: str, user: str, port: int, password: str) -> RemoteSession:
        session = self.session_factory(timeout=self.config.connect_timeout)
        console.print(f"[cyan]Connecting to {user}@{host}:{port} with password...[/cyan]")
        try:
            session.connect(host, user, port, password=password)
        except SSH_ERRORS as e:
            session.close()
            raise classify_error(
                e, BootstrapAuthError, alias=alias, hints=BOOTSTRAP_HINTS, context="Setup failed"
            ) from e
        return session

    def _install_key(self, alias: str, host: str, user: str, port: int, password: str, key_line: str) -> None:
        with self._open_password_session(alias, host, user, port, password) as session:
            try:
                install_public_key(session, key_line, self.methods)
            except SSH_ERRORS as e:
                raise InstallError(
                    "Failed to install public key on server",
                    attempts=[("session", describe(e))],
                    hints=[describe(e)],
                ) from e

    def _verify_key_login(
        self, alias: str, host: str, user: str, port: int, key_path: str, pkey: paramiko.PKey
    ) -> None:
        console.print("[cyan]Testing SSH key authentication...[/cyan]")

        def attempt() -> None:
            with self.session_factory(timeout=self.config.verify_timeout) as session:
                session.connect(host, user, port, pkey=pkey)

        try:
            retry_with_backoff(
                attempt,
                max_attempts=self.config.verify_attempts,
                initial_delay=self.config.retry_delay,
                retry_on=TRANSIENT_ERRORS,
                sleep=self._sleep,
            )
        except SSH_ERRORS as e:
            raise classify_error(
                e,
                VerificationError,
                alias=alias,
                hints=verification_hints(host, user, key_path),
                context="SSH key authentication failed",
            ) from e
        console.print("[green]SSH key authentication verified![/green]")

    def remove(self, alias: str, password: str | None = None) -> bool:
        """
        Forget `alias`. With a password, first try to delete its key line on the server.

        Returns True if the remote key line was removed.
        """
        if not self.store.has(alias):
            raise ServerNotFoundError(
                f"Server '{alias}' not found.",
                hints=["Use 'fastssh list' to see saved servers."],
            )
        try:
            record = self.store.get(alias)
        except StoreIOError as e:
            if e.code != "INVALID_RECORD":
                raise
            console.print(f"[yellow]{escape(e.message)}; skipping server cleanup.[/yellow]")
            record = None
        removed_remote = False
        if password and record is not None:
            removed_remote = self._remove_remote_key(alias, record, password)
        self.store.remove(alias)
        console.print(f"[green]Removed server: {alias}[/green]")
        return removed_remote

    def _remove_remote_key(self, alias: str, record: ServerRecord, password: str) -> bool:
        try:
            key_line = read_public_key(record.key_path)
            with self._open_password_session(alias, record.host, record.user, record.port, password) as session:
                result = remove_public_key(session, key_line)
        except FastSSHError as e:
            console.print(f"[yellow]Failed to remove public key from server: {escape(e.message)}[/yellow]")
            console.print("[dim]Continuing to remove from local config...[/dim]")
            return False
        except SSH_ERRORS as e:
            console.print(f"[yellow]Failed to remove public key from server: {escape(describe(e))}[/yellow]")
            console.print("[dim]Continuing to remove from local config...[/dim]")
            return False
        if not result.ok:
            console.print("[yellow]Could not verify key deletion on server.[/yellow]")
            return False
        console.print("[green]Public key removed from server.[/green]")
        return True
