from __future__ import annotations

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from .errors import StoreIOError


class SecretStore:
    """Passphrases in the OS keyring, keyed by (service, "<alias>:passphrase")."""

    def __init__(self, service_name: str):
        self.service_name = service_name

    @staticmethod
    def account(alias: str) -> str:
        return f"{alias}:passphrase"

    def get(self, alias: str) -> str | None:
        try:
            return keyring.get_password(self.service_name, self.account(alias))
        except KeyringError as e:
            raise StoreIOError(f"Secret store read failed for '{alias}': {e}", code="SECRET_STORE") from e

    def set(self, alias: str, passphrase: str) -> None:
        try:
            keyring.set_password(self.service_name, self.account(alias), passphrase)
        except KeyringError as e:
            raise StoreIOError(f"Secret store write failed for '{alias}': {e}", code="SECRET_STORE") from e

    def delete(self, alias: str) -> None:
        """Delete the entry. A missing entry is not an error."""
        try:
            keyring.delete_password(self.service_name, self.account(alias))
        except PasswordDeleteError:
            pass
        except KeyringError as e:
            raise StoreIOError(f"Secret store delete failed for '{alias}': {e}", code="SECRET_STORE") from e
