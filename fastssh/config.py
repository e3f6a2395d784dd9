from __future__ import annotations

import json
from pathlib import Path

from platformdirs import user_config_dir
from pydantic import BaseModel, Field
from pydantic import ValidationError as ModelValidationError
from rich.console import Console

APP_NAME = "fastssh"
SERVICE_NAME = "fastssh"

console = Console()


def default_config_dir() -> Path:
    return Path(user_config_dir(APP_NAME, appauthor=False))


class AppConfig(BaseModel):
    """Paths, secret-store service name and network timings used by every component."""

    config_dir: Path = Field(default_factory=lambda: default_config_dir())
    service_name: str = SERVICE_NAME
    connect_timeout: float = 20.0
    verify_timeout: float = 15.0
    verify_attempts: int = 3
    retry_delay: float = 0.5

    @property
    def servers_file(self) -> Path:
        return self.config_dir / "servers.json"

    @property
    def backup_file(self) -> Path:
        return self.config_dir / "servers.json.bak"

    @property
    def settings_file(self) -> Path:
        return self.config_dir / "settings.json"

    @classmethod
    def load(cls, config_dir: Path | None = None) -> AppConfig:
        """Build config, applying overrides from settings.json when present."""
        base = cls() if config_dir is None else cls(config_dir=config_dir)
        overrides = load_settings(base.settings_file)
        overrides.pop("config_dir", None)
        if not overrides:
            return base
        try:
            return cls.model_validate({**base.model_dump(), **overrides})
        except ModelValidationError as e:
            console.print(f"[yellow]Ignoring invalid settings in {base.settings_file}: {e.error_count()} error(s)[/yellow]")
            return base


def load_settings(settings_file: Path) -> dict:
    """Load application settings."""
    if not settings_file.exists():
        return {}
    try:
        data = json.loads(settings_file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        console.print(f"[yellow]Could not read {settings_file}: {e}[/yellow]")
        return {}
    if not isinstance(data, dict):
        console.print(f"[yellow]Ignoring {settings_file}: expected a JSON object[/yellow]")
        return {}
    return data
