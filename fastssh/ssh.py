from __future__ import annotations

import socket
import time
from collections.abc import Callable

from rich.console import Console

from .errors import ConnectClassifiedError, MissingKeyError, ServerNotFoundError
from .failures import classify_error
from .keys import expand_key_path, load_private_key
from .models import HydratedServerRecord, ServerRecord
from .relay import interactive_shell
from .session import SSH_ERRORS, RemoteSession
from .storage import ConfigStore

console = Console()


def missing_key_hints(alias: str, key_path: str) -> list[str]:
    return [
        "You're logging in from a different machine than the one used for setup,",
        "or the key file was deleted or moved.",
        "Option 1: copy the private key from the machine where you set it up:",
        f"    scp user@original-machine:{key_path} {key_path}",
        f"    chmod 600 {key_path}",
        "Option 2: re-run setup from this machine (generates a new key pair):",
        f"    fastssh init {alias}",
        "With option 2 the NEW public key must reach the server's authorized_keys before key login works.",
    ]


class Connector:
    """Resolves an alias to a key-authenticated session."""

    def __init__(self, store: ConfigStore, session_factory: Callable[..., RemoteSession] = RemoteSession):
        self.store = store
        self.config = store.config
        self.session_factory = session_factory

    def resolve(self, alias: str) -> HydratedServerRecord:
        record = self.store.get(alias)
        if record is None:
            raise ServerNotFoundError(
                f"Server '{alias}' not found.",
                hints=["Use 'fastssh list' to see saved servers, or 'fastssh init <name>' to add one."],
            )
        return record

    def check_private_key(self, alias: str, record: ServerRecord) -> None:
        """The private half never leaves the machine it was generated on."""
        path = expand_key_path(record.key_path)
        if not path.exists():
            raise MissingKeyError(
                f"SSH private key not found on this machine. Expected at: {path}",
                hints=missing_key_hints(alias, record.key_path),
            )

    def open_session(self, alias: str) -> RemoteSession:
        record = self.resolve(alias)
        self.check_private_key(alias, record)
        pkey = load_private_key(record.key_path, record.passphrase)

        console.print(f"[cyan]Connecting to {record.user}@{record.host}:{record.port}...[/cyan]")
        session = self.session_factory(timeout=self.config.connect_timeout)
        try:
            session.connect(record.host, record.user, record.port, pkey=pkey)
        except SSH_ERRORS as e:
            session.close()
            raise classify_error(
                e,
                ConnectClassifiedError,
                alias=alias,
                auth_type=record.auth_type,
                key_path=record.key_path,
                context="Connection failed",
            ) from e
        return session

    def connect(self, alias: str, relay: Callable[[RemoteSession], int] = interactive_shell) -> int:
        """Open a session and hand it to `relay`. Returns the relay's exit code."""
        session = self.open_session(alias)
        try:
            console.print("[green]Connected! Starting interactive session...[/green]\n")
            return relay(session)
        finally:
            session.close()


def check_server_availability(host: str, port: int, timeout: float = 3.0) -> tuple[bool, str, float]:
    """
    Check if server is reachable on SSH port.
    Returns (is_available, message, response_time_ms).
    """
    start_time = time.perf_counter()

    try:
        with socket.create_connection((host, port), timeout=timeout):
            pass
        elapsed = (time.perf_counter() - start_time) * 1000  # convert to ms
        return True, "reachable", elapsed
    except socket.gaierror:
        elapsed = (time.perf_counter() - start_time) * 1000
        return False, "DNS error", elapsed
    except TimeoutError:
        elapsed = (time.perf_counter() - start_time) * 1000
        return False, "timeout", elapsed
    except ConnectionRefusedError:
        elapsed = (time.perf_counter() - start_time) * 1000
        return False, "port closed", elapsed
    except OSError as e:
        elapsed = (time.perf_counter() - start_time) * 1000
        return False, f"error: {e}", elapsed
