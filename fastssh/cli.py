from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import prompts
from .config import AppConfig
from .diagnose import build_report, print_report
from .errors import FastSSHError, InstallError, StoreIOError
from .provision import Provisioner
from .relay import interactive_shell
from .session import RemoteSession
from .ssh import Connector
from .storage import ConfigStore
from .validation import validate_alias, validate_host, validate_port, validate_username


class OrderCommands(typer.core.TyperGroup):
    """Custom group to sort commands alphabetically in help."""

    def list_commands(self, ctx):
        return sorted(super().list_commands(ctx))


app = typer.Typer(
    help="FastSSH: register a server once with a password, then log in by name with an SSH key.",
    cls=OrderCommands,
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()


def _store() -> ConfigStore:
    return ConfigStore(AppConfig.load())


def _fail(error: FastSSHError) -> None:
    """Print cause and remediation, then exit non-zero."""
    console.print(f"[red]{escape(error.message)}[/red]")
    if isinstance(error, InstallError):
        console.print("[red]All install methods failed:[/red]")
    if error.hints:
        body = "\n".join(f"• {escape(hint)}" for hint in error.hints)
        console.print(Panel(body, title="How to fix", border_style="yellow"))
    raise typer.Exit(1)


def _cancelled() -> None:
    console.print("\n[dim]Cancelled.[/dim]")
    raise typer.Exit(0)


def _print_servers(store: ConfigStore) -> None:
    """Print servers table."""
    table = Table(title="Servers")
    table.add_column("Name", style="bold")
    table.add_column("Connection")
    table.add_column("Auth", justify="center", no_wrap=True)

    for name, fields in sorted(store.load_raw().items()):
        try:
            record = store.parse_record(name, fields)
        except StoreIOError:
            table.add_row(name, f"[red]invalid record[/red] (fastssh diagnose {escape(name)})", "-")
            continue
        table.add_row(name, f"{record.user}@{record.host}:{record.port}", record.auth_type)

    console.print(table)


@app.command("list", help="Show saved servers. Alias: ls")
@app.command("ls", hidden=True)
def list_servers() -> None:
    """Show saved servers."""
    try:
        store = _store()
        if not store.list():
            console.print("[yellow]No servers saved. Add one: fastssh init <name>[/yellow]")
            return
        _print_servers(store)
    except FastSSHError as e:
        _fail(e)


@app.command("init", help="Set up key login for a new server. Alias: i")
@app.command("i", hidden=True)
def init(name: str = typer.Argument(..., help="Short name for the server")):
    """Set up key login for a new server."""
    try:
        validate_alias(name)
        store = _store()
        provisioner = Provisioner(store, session_factory=RemoteSession)
        replace = False
        if store.has(name):
            replace = prompts.ask_confirm(f"Server '{name}' already exists. Remove and re-create it?")
            if not replace:
                console.print("[dim]Canceled.[/dim]")
                return

        host = prompts.ask_text("IP:", validate_host, "Enter a valid hostname or IPv4 address")
        user = prompts.ask_text("User:", validate_username, "Username must be 1-32 characters without spaces")
        port = prompts.ask_text("SSH Port:", validate_port, "Port must be between 1 and 65535", default="22")
        provisioner.check_conflicts(name, host, user, replace=replace)
        password = prompts.ask_secret(
            "Your password (one-time for setup):",
            required="Password is required to set up SSH key on the server",
        )
        provisioner.init(name, host, user, port, password, replace=replace)
    except (KeyboardInterrupt, typer.Abort):
        _cancelled()
    except FastSSHError as e:
        _fail(e)


@app.command("connect", help="Connect to a saved server. Alias: c")
@app.command("c", hidden=True)
def connect_cmd(name: str | None = typer.Argument(None, help="Server name (optional)")):
    """Connect to a saved server."""
    try:
        store = _store()
        if name is None:
            names = sorted(store.list())
            if not names:
                console.print("[yellow]No servers saved. Add one: fastssh init <name>[/yellow]")
                raise typer.Exit(1)
            name = prompts.ask_select("Select server to connect:", names)
        rc = Connector(store, session_factory=RemoteSession).connect(name, relay=interactive_shell)
    except KeyboardInterrupt:
        _cancelled()
    except FastSSHError as e:
        _fail(e)
    raise typer.Exit(rc)


@app.command("remove", help="Remove a saved server. Alias: rm")
@app.command("rm", hidden=True)
def remove(
    name: str = typer.Argument(..., help="Server name"),
    keep_remote: bool = typer.Option(False, "--keep-remote", help="Leave the public key on the server"),
):
    """Remove a saved server."""
    try:
        store = _store()
        provisioner = Provisioner(store, session_factory=RemoteSession)
        if not store.has(name):
            console.print(f"[red]Server '{name}' not found.[/red]")
            raise typer.Exit(1)
        password = None
        if not keep_remote and prompts.ask_confirm(
            "Delete public key from remote server before removing?", default=True
        ):
            password = prompts.ask_secret(
                "Password (to remove public key from server):",
                required="Password required to delete key from server",
            )
        provisioner.remove(name, password=password)
    except (KeyboardInterrupt, typer.Abort):
        _cancelled()
    except FastSSHError as e:
        _fail(e)


@app.command("diagnose", help="Check local keys and a saved server. Alias: d")
@app.command("d", hidden=True)
def diagnose(name: str | None = typer.Argument(None, help="Server name (optional)")):
    """Check local keys and a saved server."""
    try:
        report = build_report(_store(), name)
    except FastSSHError as e:
        _fail(e)
    print_report(report)
    if not report.server_found:
        raise typer.Exit(1)


def main():
    app()


if __name__ == "__main__":
    main()
