from __future__ import annotations

import base64
import shlex
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from rich.console import Console
from rich.markup import escape

from .errors import InstallError
from .session import SSH_ERRORS, CommandResult, RemoteSession
from .validation import validate_public_key

console = Console()

AUTHORIZED_KEYS = "~/.ssh/authorized_keys"


def append_literal(session: RemoteSession, key_line: str) -> CommandResult:
    """Method 1: shell-quoted echo of the key line."""
    return session.exec_command(f"echo {shlex.quote(key_line)} >> {AUTHORIZED_KEYS}")


def append_base64(session: RemoteSession, key_line: str) -> CommandResult:
    """Method 2: ship the line base64-encoded and decode it remotely."""
    encoded = base64.b64encode(f"{key_line}\n".encode()).decode("ascii")
    return session.exec_command(f"echo '{encoded}' | base64 -d >> {AUTHORIZED_KEYS}")


InstallMethod = tuple[str, Callable[[RemoteSession, str], CommandResult]]

INSTALL_METHODS: tuple[InstallMethod, ...] = (
    ("direct append", append_literal),
    ("base64", append_base64),
)


@dataclass
class InstallResult:
    method: str
    already_present: bool = False


def _diagnostic(result: CommandResult) -> str:
    return (result.stderr or result.stdout).strip() or f"exit status {result.exit_code}"


def key_present(session: RemoteSession, key_line: str) -> bool:
    result = session.exec_command(f"grep -qxF -- {shlex.quote(key_line)} {AUTHORIZED_KEYS}")
    return result.exit_code == 0


def install_public_key(
    session: RemoteSession,
    key_line: str,
    methods: Sequence[InstallMethod] = INSTALL_METHODS,
) -> InstallResult:
    """
    Make sure `key_line` is in the remote authorized_keys exactly once.

    ~/.ssh is set to 700 and authorized_keys to 600. Methods are tried in
    order; if all fail, InstallError carries every method's diagnostic.
    """
    key_line = validate_public_key(key_line)
    console.print("[cyan]Adding public key to remote server...[/cyan]")

    mkdir = session.exec_command("mkdir -p ~/.ssh && chmod 700 ~/.ssh")
    if not mkdir.ok:
        console.print(f"[yellow]mkdir ~/.ssh: {escape(_diagnostic(mkdir))}[/yellow]")

    if key_present(session, key_line):
        session.exec_command(f"chmod 600 {AUTHORIZED_KEYS}")
        console.print("[green]Public key already present on server.[/green]")
        return InstallResult(method="existing", already_present=True)

    attempts: list[tuple[str, str]] = []
    for index, (name, method) in enumerate(methods, start=1):
        console.print(f"   Method {index}: {name}...")
        try:
            result = method(session, key_line)
        except SSH_ERRORS as e:
            attempts.append((name, str(e) or type(e).__name__))
            continue
        if result.ok:
            session.exec_command(f"chmod 600 {AUTHORIZED_KEYS}")
            console.print(f"[green]Public key installed ({name}).[/green]")
            return InstallResult(method=name)
        attempts.append((name, _diagnostic(result)))
        console.print(f"[yellow]   Method {index} failed.[/yellow]")

    raise InstallError(
        "Failed to install public key on server",
        attempts=attempts,
        hints=[f"Method {i} ({name}): {diag}" for i, (name, diag) in enumerate(attempts, start=1)],
    )


def remove_public_key(session: RemoteSession, key_line: str) -> CommandResult:
    """Delete every copy of `key_line`, keeping authorized_keys.bak beside it."""
    quoted = shlex.quote(key_line.strip())
    return session.exec_command(
        f"cp {AUTHORIZED_KEYS} {AUTHORIZED_KEYS}.bak"
        f" && {{ grep -vxF -- {quoted} {AUTHORIZED_KEYS}.bak > {AUTHORIZED_KEYS}; [ $? -le 1 ]; }}"
        f" && chmod 600 {AUTHORIZED_KEYS}"
    )
