from __future__ import annotations

import contextlib
import errno
import json
import os
import shutil
import tempfile
from typing import Any

from pydantic import ValidationError as ModelValidationError
from rich.console import Console

from .config import AppConfig
from .errors import StoreIOError
from .models import HydratedServerRecord, ServerRecord
from .secret_store import SecretStore

console = Console()

_ERRNO_CODES = {
    errno.EACCES: "PERMISSION_DENIED",
    errno.EPERM: "PERMISSION_DENIED",
    errno.ENOSPC: "DISK_FULL",
    errno.EROFS: "READ_ONLY_FS",
    errno.EISDIR: "IS_DIRECTORY",
}


def _io_error(action: str, path, err: OSError) -> StoreIOError:
    code = _ERRNO_CODES.get(err.errno) or errno.errorcode.get(err.errno or 0, "IO_ERROR")
    return StoreIOError(f"Cannot {action} {path}: {err.strerror or err}", code=code)


class ConfigStore:
    """Alias -> ServerRecord mapping in servers.json, passphrases in the secret store."""

    def __init__(self, config: AppConfig, secrets: SecretStore | None = None):
        self.config = config
        self.secrets = secrets or SecretStore(config.service_name)

    def load_raw(self) -> dict[str, Any]:
        """Parse servers.json without validating individual records. A missing file is an empty store."""
        path = self.config.servers_file
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise _io_error("read", path, e) from e

        try:
            data = json.loads(text or "{}")
        except ValueError as e:
            raise StoreIOError(
                f"Config file is corrupt: {path} ({e})",
                code="INVALID_JSON",
                hints=[f"Restore the last good copy from {self.config.backup_file}, or fix the file by hand."],
            ) from e
        if not isinstance(data, dict):
            raise StoreIOError(f"Config file is corrupt: {path} (expected a JSON object)", code="INVALID_JSON")
        return data

    def parse_record(self, alias: str, fields: Any) -> ServerRecord:
        try:
            return ServerRecord.model_validate(fields)
        except ModelValidationError as e:
            raise StoreIOError(
                f"Invalid record '{alias}' in {self.config.servers_file}: {e.errors()[0]['msg']}",
                code="INVALID_RECORD",
                hints=[f"Inspect it with: fastssh diagnose {alias}"],
            ) from e

    def load(self) -> dict[str, ServerRecord]:
        """Load and validate every record."""
        return {alias: self.parse_record(alias, fields) for alias, fields in self.load_raw().items()}

    def save(self, records: dict[str, ServerRecord]) -> None:
        self._write({alias: record.to_json() for alias, record in records.items()})

    def _write(self, payload: dict[str, Any]) -> None:
        """Overwrite the file atomically, keeping the previous version as a backup."""
        cfg_dir, path = self.config.config_dir, self.config.servers_file
        try:
            cfg_dir.mkdir(parents=True, exist_ok=True)
            if path.exists():
                shutil.copy2(path, self.config.backup_file)
            fd, tmp_name = tempfile.mkstemp(prefix=".servers-", suffix=".json", dir=cfg_dir)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(json.dumps(payload, ensure_ascii=False, indent=2))
                os.replace(tmp_name, path)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise _io_error("write", path, e) from e

    def has(self, alias: str) -> bool:
        return alias in self.load_raw()

    def add(self, alias: str, record: ServerRecord, passphrase: str | None = None) -> None:
        """Persist a record. The passphrase goes to the secret store first, never to the file."""
        record = record.model_copy(update={"auth_type": "key"})
        if passphrase:
            self.secrets.set(alias, passphrase)
        # Other entries are written back as found, even ones that no longer validate.
        payload = self.load_raw()
        payload[alias] = record.to_json()
        self._write(payload)

    def get(self, alias: str) -> HydratedServerRecord | None:
        """Return the record with its passphrase. Only this alias has to be valid."""
        payload = self.load_raw()
        if alias not in payload:
            return None
        record = self.parse_record(alias, payload[alias])
        passphrase = self.secrets.get(alias) if record.auth_type == "key" else None
        return HydratedServerRecord(**record.model_dump(), passphrase=passphrase)

    def remove(self, alias: str) -> bool:
        """Remove a record and its secret. Returns True if the record existed."""
        payload = self.load_raw()
        existed = alias in payload
        if existed:
            del payload[alias]
            self._write(payload)
        try:
            self.secrets.delete(alias)
        except StoreIOError as e:
            console.print(f"[yellow]Could not delete stored passphrase: {e.message}[/yellow]")
        return existed

    def list(self) -> list[str]:
        return list(self.load_raw())

    def find_by_host_user(self, host: str, user: str) -> str | None:
        """Return the alias owning (host, user), or None."""
        for alias, fields in self.load_raw().items():
            if isinstance(fields, dict) and fields.get("host") == host and fields.get("user") == user:
                return alias
        return None
