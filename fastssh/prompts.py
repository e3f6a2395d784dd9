"""Typed interactive prompts. Replaced wholesale in tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from InquirerPy import inquirer

from .validation import is_valid


def ask_text(message: str, check: Callable[[Any], Any] | None = None, invalid: str = "", default: str = "") -> str:
    return inquirer.text(
        message=message,
        default=default,
        validate=is_valid(check) if check else None,
        invalid_message=invalid or "Invalid input",
    ).execute()


def ask_secret(message: str, required: str | None = None) -> str:
    return inquirer.secret(
        message=message,
        validate=(lambda value: bool(value)) if required else None,
        invalid_message=required or "",
    ).execute()


def ask_confirm(message: str, default: bool = False) -> bool:
    return inquirer.confirm(message=message, default=default).execute()


def ask_select(message: str, choices: list[str]) -> str:
    return inquirer.select(
        message=message,
        choices=choices,
        cycle=True,
        vi_mode=False,
        instruction="↑↓ navigate",
    ).execute()
