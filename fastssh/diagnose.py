from __future__ import annotations

import stat
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .errors import StoreIOError
from .keys import DEFAULT_KEY_PATH, expand_key_path, public_key_path
from .models import ServerRecord
from .ssh import check_server_availability
from .storage import ConfigStore
from .validation import check_record_issues

console = Console()


@dataclass
class Check:
    label: str
    ok: bool
    detail: str


@dataclass
class DiagnosticReport:
    checks: list[Check] = field(default_factory=list)
    alias: str | None = None
    found: bool = False
    fields: dict = field(default_factory=dict)
    record: ServerRecord | None = None
    issues: list[str] = field(default_factory=list)
    saved_aliases: list[str] = field(default_factory=list)

    @property
    def server_found(self) -> bool:
        return self.alias is None or self.found


def file_mode(path: Path) -> str | None:
    """Permission bits as an octal string, or None if the path is missing."""
    if not path.exists():
        return None
    return format(stat.S_IMODE(path.stat().st_mode), "o")


def _mode_check(label: str, path: Path, expected: str) -> Check:
    mode = file_mode(path)
    if mode is None:
        return Check(label, False, f"NOT found: {path}")
    if mode != expected:
        return Check(label, False, f"{path} (mode {mode}, should be {expected})")
    return Check(label, True, f"{path} (mode {mode})")


def build_report(
    store: ConfigStore,
    alias: str | None = None,
    probe: Callable[[str, int], tuple[bool, str, float]] = check_server_availability,
) -> DiagnosticReport:
    key_path = expand_key_path(DEFAULT_KEY_PATH)
    pub_path = public_key_path(DEFAULT_KEY_PATH)
    report = DiagnosticReport(alias=alias)
    report.checks.append(_mode_check("Private key", key_path, "600"))
    report.checks.append(
        Check("Public key", pub_path.exists(), f"{'found' if pub_path.exists() else 'NOT found'}: {pub_path}")
    )
    report.checks.append(_mode_check("SSH directory", key_path.parent, "700"))

    if alias is None:
        return report

    saved = store.load_raw()
    if alias not in saved:
        report.saved_aliases = list(saved)
        return report

    report.found = True
    fields = saved[alias]
    if not isinstance(fields, dict):
        report.issues = ["Record is not a JSON object"]
        return report
    report.fields = fields
    report.issues = check_record_issues(fields)
    try:
        record = store.parse_record(alias, fields)
    except StoreIOError as e:
        report.issues.append(e.message)
        return report

    report.record = record
    is_available, message, response_time = probe(record.host, record.port)
    report.checks.append(
        Check("Reachability", is_available, f"{record.host}:{record.port} - {message} ({response_time:.0f}ms)")
    )
    return report


def print_report(report: DiagnosticReport) -> None:
    table = Table(title="FastSSH Diagnostic Report")
    table.add_column("Check", style="bold")
    table.add_column("Status", justify="center", no_wrap=True)
    table.add_column("Details")
    for check in report.checks:
        status = "[green]ok[/green]" if check.ok else "[red]problem[/red]"
        table.add_row(check.label, status, check.detail)
    console.print(table)

    if report.alias is None:
        return
    if not report.found:
        console.print(f"[red]Server '{report.alias}' not found.[/red]")
        if report.saved_aliases:
            console.print("Saved servers: " + ", ".join(sorted(report.saved_aliases)))
        else:
            console.print("No servers saved. Run 'fastssh init <name>' to add one.")
        return

    fields = report.record.to_json() if report.record is not None else report.fields
    console.print(f"\n[bold]Server: {report.alias}[/bold]")
    for label, key in (("Host", "host"), ("User", "user"), ("Port", "port")):
        console.print(f"  {label}: {escape(str(fields.get(key, '-')))}")
    console.print(f"  Auth: SSH key ({escape(str(fields.get('keyPath', 'not set')))})")
    for issue in report.issues:
        console.print(f"  [yellow]Issue: {escape(issue)}[/yellow]")
