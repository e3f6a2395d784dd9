"""Syntax checks for user-supplied values. No I/O."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.serialization import load_ssh_public_key

from .errors import ValidationError

if TYPE_CHECKING:
    from collections.abc import Callable

MAX_USERNAME_LENGTH = 32
MAX_ALIAS_LENGTH = 64

_NAME_RE = re.compile(r"^[A-Za-z0-9._-]+$")
_IPV4_RE = re.compile(r"^(\d{1,3}\.){3}\d{1,3}$")


def validate_alias(alias: str) -> str:
    if not alias or not isinstance(alias, str):
        raise ValidationError("Server name must be a non-empty string")
    if len(alias) > MAX_ALIAS_LENGTH:
        raise ValidationError(f"Server name is too long (max {MAX_ALIAS_LENGTH} characters)")
    if not _NAME_RE.match(alias):
        raise ValidationError("Server name may only contain letters, digits, '.', '_' and '-'")
    return alias


def validate_host(host: str) -> str:
    """Check a hostname or IPv4 address."""
    if not host or not isinstance(host, str):
        raise ValidationError("Hostname must be a non-empty string")
    if host.strip() != host:
        raise ValidationError("Hostname contains leading/trailing whitespace")
    if not _NAME_RE.match(host):
        raise ValidationError("Hostname contains invalid characters")
    if _IPV4_RE.match(host) and any(int(part) > 255 for part in host.split(".")):
        raise ValidationError("Invalid IP address: octets must be 0-255")
    return host


def validate_port(port: Any) -> int:
    """Return the port as int. Accepts numeric strings."""
    if isinstance(port, bool):
        raise ValidationError("Port must be a number")
    try:
        num = int(str(port).strip())
    except (TypeError, ValueError):
        raise ValidationError("Port must be a number") from None
    if num < 1 or num > 65535:
        raise ValidationError("Port must be between 1 and 65535")
    return num


def validate_username(user: str) -> str:
    if not user or not isinstance(user, str):
        raise ValidationError("Username must be a non-empty string")
    if any(ch.isspace() for ch in user):
        raise ValidationError("Username cannot contain spaces")
    if len(user) > MAX_USERNAME_LENGTH:
        raise ValidationError(f"Username is too long (max {MAX_USERNAME_LENGTH} characters)")
    return user


def validate_public_key(key_line: str) -> str:
    """Check a single OpenSSH public key line. Returns it stripped."""
    if not key_line or not isinstance(key_line, str):
        raise ValidationError("Public key must be a non-empty string")
    line = key_line.strip()
    if "\n" in line or "\r" in line:
        raise ValidationError("Public key must be a single line")
    try:
        load_ssh_public_key(line.encode("utf-8"))
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise ValidationError(f"Invalid public key: {e}") from None
    return line


def validate_private_key(content: str) -> str:
    if not content or not isinstance(content, str):
        raise ValidationError("Key content must be a non-empty string")
    if "BEGIN RSA PRIVATE KEY" not in content and "BEGIN OPENSSH PRIVATE KEY" not in content:
        raise ValidationError("Invalid SSH key format. Expected RSA or OpenSSH format")
    if "END" not in content:
        raise ValidationError("SSH key appears truncated (missing END marker)")
    return content


def is_valid(check: Callable[[Any], Any]) -> Callable[[Any], bool]:
    """Adapt a validator to a boolean prompt validator."""

    def _validate(value: Any) -> bool:
        try:
            check(value)
        except ValidationError:
            return False
        return True

    return _validate


def check_record_issues(fields: dict) -> list[str]:
    """List problems in a raw stored record (camelCase keys)."""
    issues = []
    if not fields.get("host"):
        issues.append("Missing host")
    if not fields.get("user"):
        issues.append("Missing username")
    if not fields.get("authType"):
        issues.append("Missing auth type")
    if fields.get("authType") == "key" and not fields.get("keyPath"):
        issues.append("SSH key path not configured")
    if " " in (fields.get("host") or ""):
        issues.append("Host contains spaces")
    if " " in (fields.get("user") or ""):
        issues.append("Username contains spaces")
    if fields.get("port") is not None:
        try:
            validate_port(fields["port"])
        except ValidationError as e:
            issues.append(f"Invalid port: {e.message}")
    return issues
