"""Classify transport failures from their error text."""

from __future__ import annotations

from enum import Enum

from paramiko.ssh_exception import NoValidConnectionsError

from .errors import SessionError


class FailureKind(str, Enum):
    RESOLUTION = "resolution"
    REFUSED = "refused"
    TIMEOUT = "timeout"
    AUTH = "auth"
    OTHER = "other"


SUMMARIES = {
    FailureKind.RESOLUTION: "Cannot resolve hostname. Check network and host.",
    FailureKind.REFUSED: "Connection refused. SSH service not listening on port.",
    FailureKind.TIMEOUT: "Connection timed out. Network unreachable or filtered.",
    FailureKind.AUTH: "Authentication failed. Credential rejected.",
}

# Checked in order; the first matching kind wins.
_PATTERNS = (
    (
        FailureKind.RESOLUTION,
        (
            "enotfound",
            "getaddrinfo",
            "gaierror",
            "name or service not known",
            "nodename nor servname",
            "temporary failure in name resolution",
            "no address associated",
        ),
    ),
    (FailureKind.REFUSED, ("econnrefused", "connection refused")),
    (
        FailureKind.TIMEOUT,
        ("etimedout", "timed out", "timeout", "no route to host", "network is unreachable", "host is unreachable"),
    ),
    (FailureKind.AUTH, ("authentication", "permission denied")),
)


def classify(raw_message: str) -> FailureKind:
    text = (raw_message or "").lower()
    for kind, needles in _PATTERNS:
        if any(needle in text for needle in needles):
            return kind
    return FailureKind.OTHER


def describe(exc: BaseException) -> str:
    """Error text used for classification: exception type plus message."""
    message = str(exc).strip()
    if isinstance(exc, NoValidConnectionsError) and exc.errors:
        # paramiko folds refused and unreachable into one message; keep the socket errors.
        causes = sorted({str(err) for err in exc.errors.values()})
        message = f"{message} ({'; '.join(causes)})"
    name = type(exc).__name__
    return f"{name}: {message}" if message else name


def key_auth_hints(alias: str, key_path: str) -> list[str]:
    return [
        "Verify the private key on THIS machine matches the server's public key",
        "Ensure the server has PubkeyAuthentication enabled in sshd_config",
        "Check that your public key is in ~/.ssh/authorized_keys on the server",
        f"Show the key fingerprint: ssh-keygen -l -f {key_path}",
        f"Re-run setup: fastssh init {alias}",
    ]


def classify_error(
    exc: BaseException,
    error_cls: type[SessionError],
    *,
    alias: str,
    auth_type: str | None = None,
    key_path: str | None = None,
    hints: list[str] | None = None,
    context: str | None = None,
) -> SessionError:
    """Translate a raw transport exception into one of the SessionError subclasses."""
    raw = describe(exc)
    kind = classify(raw)
    message = SUMMARIES.get(kind, raw)
    if context:
        message = f"{context}: {message}"
    extra = list(hints or [])
    if kind is FailureKind.AUTH and auth_type == "key" and key_path:
        extra = key_auth_hints(alias, key_path) + extra
    return error_cls(message, kind=kind, raw=raw, hints=extra)
