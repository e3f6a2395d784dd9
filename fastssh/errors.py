from __future__ import annotations


class FastSSHError(Exception):
    """Base error. Carries a short cause line plus optional remediation hints."""

    def __init__(self, message: str, hints: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.hints = list(hints or [])


class ValidationError(FastSSHError, ValueError):
    """Bad host, port, username, alias or key syntax."""


class ConflictError(FastSSHError):
    """Duplicate alias or duplicate host+user pair."""


class ServerNotFoundError(FastSSHError):
    """Alias is not present in the config store."""


class KeyMaterialError(FastSSHError):
    """Local key pair could not be generated or read."""


class MissingKeyError(FastSSHError):
    """Private key file is absent on this machine."""


class StoreIOError(FastSSHError):
    """Filesystem or secret-store access failure."""

    def __init__(self, message: str, code: str = "IO_ERROR", hints: list[str] | None = None):
        super().__init__(message, hints)
        self.code = code


class InstallError(FastSSHError):
    """Every installer method failed. `attempts` holds (method, diagnostic) pairs."""

    def __init__(self, message: str, attempts: list[tuple[str, str]], hints: list[str] | None = None):
        super().__init__(message, hints)
        self.attempts = attempts


class SessionError(FastSSHError):
    """Remote session failure already classified into a FailureKind."""

    def __init__(self, message: str, kind, raw: str, hints: list[str] | None = None):
        super().__init__(message, hints)
        self.kind = kind
        self.raw = raw


class BootstrapAuthError(SessionError):
    """The one-time password session could not be opened."""


class VerificationError(SessionError):
    """Key was installed but key-based login still fails."""


class ConnectClassifiedError(SessionError):
    """Connecting by alias failed for one of the classified reasons."""
