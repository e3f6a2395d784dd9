from __future__ import annotations

import os
import time
from pathlib import Path

import paramiko
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from rich.console import Console

from .errors import KeyMaterialError, ValidationError
from .validation import validate_private_key, validate_public_key

console = Console()

# One RSA key for every server
KEY_SIZE = 4096
DEFAULT_KEY_PATH = "~/.ssh/id_rsa"


def expand_key_path(key_path: str = DEFAULT_KEY_PATH) -> Path:
    """Expand a tilde-relative key path against the current home directory."""
    if key_path == "~" or key_path.startswith("~/"):
        return Path.home() / key_path[2:]
    return Path(key_path).expanduser()


def public_key_path(key_path: str = DEFAULT_KEY_PATH) -> Path:
    path = expand_key_path(key_path)
    return path.with_name(path.name + ".pub")


def ensure_key_pair(key_path: str = DEFAULT_KEY_PATH) -> bool:
    """Generate the key pair if the private key is missing. Returns True if generated."""
    path = expand_key_path(key_path)
    if path.exists():
        console.print(f"[cyan]Using existing SSH key: {key_path}[/cyan]")
        return False
    console.print(f"[cyan]SSH key not found. Generating RSA-{KEY_SIZE} key at {key_path}...[/cyan]")
    generate_key_pair(path)
    console.print("[green]SSH key generated.[/green]")
    return True


def generate_key_pair(path: Path) -> None:
    """Write an unencrypted PEM private key and its OpenSSH public key beside it."""
    try:
        path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=KEY_SIZE)
        private_bytes = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
        public_bytes = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.OpenSSH,
            format=serialization.PublicFormat.OpenSSH,
        )
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "wb") as fh:
            fh.write(private_bytes)
        comment = f"fastssh-{int(time.time() * 1000)}"
        pub_path = path.with_name(path.name + ".pub")
        pub_path.write_text(f"{public_bytes.decode('ascii')} {comment}\n", encoding="utf-8")
        pub_path.chmod(0o644)
    except (OSError, ValueError) as e:
        raise KeyMaterialError(f"Failed to generate SSH key at {path}: {e}") from e


def read_public_key(key_path: str = DEFAULT_KEY_PATH) -> str:
    """Return the public key line, deriving it from the private key if the .pub file is gone."""
    pub_path = public_key_path(key_path)
    try:
        if pub_path.exists():
            return validate_public_key(pub_path.read_text(encoding="utf-8"))
        private_bytes = expand_key_path(key_path).read_bytes()
        private_key = serialization.load_pem_private_key(private_bytes, password=None)
        line = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.OpenSSH,
            format=serialization.PublicFormat.OpenSSH,
        )
        return validate_public_key(line.decode("ascii"))
    except ValidationError as e:
        raise KeyMaterialError(f"Could not read public key {pub_path}: {e.message}") from e
    except (OSError, ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyMaterialError(f"Could not read public key {pub_path}: {e}") from e


def load_private_key(key_path: str = DEFAULT_KEY_PATH, passphrase: str | None = None) -> paramiko.PKey:
    path = expand_key_path(key_path)
    try:
        validate_private_key(path.read_text(encoding="utf-8"))
        return paramiko.RSAKey.from_private_key_file(str(path), password=passphrase or None)
    except paramiko.PasswordRequiredException as e:
        raise KeyMaterialError(
            f"Private key {key_path} is passphrase-protected and no passphrase is stored",
            hints=[f"Remove the passphrase: ssh-keygen -p -f {key_path}"],
        ) from e
    except ValidationError as e:
        raise KeyMaterialError(f"Failed to read private key {key_path}: {e.message}") from e
    except (OSError, ValueError, paramiko.SSHException) as e:
        raise KeyMaterialError(f"Failed to read private key {key_path}: {e}") from e
