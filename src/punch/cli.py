"""Command-line interface for punch.

Built with Typer for commands and Rich for output.
"""

from datetime import datetime
from typing import Optional

import pydantic
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .app_logging import configure_logging
from .config import get_config
from .db import get_db
from .db.schemas import ClientCreate, Session
from .errors import ConfigError, PunchError, ValidationError
from .puncher import Puncher
from .remotes import new_source
from .sync import ResolutionMediator, SyncOrchestrator, SyncReport

# Create the main app
app = typer.Typer(
    name="punch",
    help="Track work sessions per client and sync them with a remote.",
    no_args_is_help=True,
)

# Create sub-apps for command groups
add_app = typer.Typer(help="Add a new resource.")
app.add_typer(add_app, name="add")

# Rich console for pretty output
console = Console()


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def parse_time_arg(value: Optional[str]) -> Optional[datetime]:
    """Parse HH:MM[:SS] (today) or a full ISO datetime."""
    if not value:
        return None
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            parsed = datetime.strptime(value, fmt).time()
            return datetime.combine(datetime.now().date(), parsed)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"invalid time {value!r}, expected HH:MM or ISO datetime")


def resolve_client_name(client: Optional[str]) -> str:
    """Use the given client, or the only client when there is just one."""
    if client:
        return client
    clients = get_db().get_all_clients()
    if len(clients) == 1:
        return clients[0].name
    print_error("Specify the client with --client")
    raise typer.Exit(1)


def format_duration(session: Session) -> str:
    duration = session.duration()
    if duration is None:
        return "-"
    hours, rest = divmod(int(duration.total_seconds()), 3600)
    return f"{hours}h {rest // 60:02d}m"


def format_sessions_table(sessions: list[Session], title: str = "Sessions") -> Table:
    """Create a rich table for displaying sessions."""
    clients = {c.name: c for c in get_db().get_all_clients()}

    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", max_width=8)
    table.add_column("Client", style="cyan")
    table.add_column("Start", style="green")
    table.add_column("End", style="green")
    table.add_column("Duration", justify="right")
    table.add_column("Earnings", justify="right", style="yellow")
    table.add_column("Note", max_width=30)

    for session in sorted(sessions, key=lambda s: s.start):
        client = clients.get(session.client)
        earnings = session.earnings(client.rate if client else None)
        table.add_row(
            session.id[:8],
            session.client,
            session.start.strftime("%Y-%m-%d %H:%M"),
            session.end.strftime("%Y-%m-%d %H:%M") if session.end else "[bold]open[/bold]",
            format_duration(session),
            f"{earnings:.2f} {client.currency}" if earnings is not None else "-",
            session.note or "",
        )

    return table


def run_sync(remote: Optional[str] = None, pull_only: bool = False) -> SyncReport:
    """Sync the local store with a configured remote."""
    config = get_config()
    db = get_db()
    name, remote_config = config.get_remote(remote)
    source = new_source(name, remote_config, db)
    orchestrator = SyncOrchestrator(
        db,
        source,
        mediator=ResolutionMediator(editor=config.editor),
        pull_only=pull_only,
    )
    return orchestrator.run()


def print_sync_report(report: SyncReport) -> None:
    console.print(f"  Pulled from {report.remote}: {report.pulled}")
    if report.conflicts:
        console.print(f"  Conflicts resolved: {report.conflicts}")
    console.print(f"  Committed locally: {report.committed}")
    if report.push_error is not None:
        print_warning(
            f"Local sessions are saved, but pushing to {report.remote} failed: "
            f"{report.push_error}. Run 'punch sync' again to retry."
        )
    elif report.pushed:
        console.print(f"  Pushed to {report.remote}: {report.pushed}")


def autosync(event: str) -> None:
    """Run a sync after start/end when configured to."""
    config = get_config()
    if not config.autosync_enabled(event):
        return
    console.print(f"[dim]Syncing with {config.default_remote}...[/dim]")
    try:
        print_sync_report(run_sync())
    except PunchError as e:
        print_warning(f"Automatic sync failed: {e}")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Track work sessions per client and sync them with a remote."""
    configure_logging(verbose=verbose)
    try:
        get_config()
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show the punch version."""
    console.print(f"punch {__version__}")


# ============================================================================
# Client Commands
# ============================================================================


@add_app.command("client")
def add_client(
    name: str = typer.Argument(..., help="Client name"),
    rate: int = typer.Argument(..., help="Hourly rate"),
    currency: Optional[str] = typer.Option(
        None, "--currency", help="Currency the client pays in (defaults to settings)"
    ),
) -> None:
    """Add a client with an hourly rate."""
    config = get_config()
    if rate <= 0:
        print_error(f"invalid rate {rate}")
        raise typer.Exit(1)

    try:
        client = get_db().create_client(
            ClientCreate(name=name, rate=rate, currency=currency or config.default_currency)
        )
    except (ValidationError, pydantic.ValidationError) as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Added {client.name} at {client.rate} {client.currency}/h")


@app.command("clients")
def list_clients() -> None:
    """List clients."""
    clients = get_db().get_all_clients()
    if not clients:
        console.print("[dim]No clients yet. Add one with 'punch add client'.[/dim]")
        return

    table = Table(title="Clients", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Rate", justify="right")
    table.add_column("Currency")
    for client in clients:
        table.add_row(client.name, str(client.rate), client.currency)
    console.print(table)


# ============================================================================
# Session Commands
# ============================================================================


@app.command()
def start(
    time: Optional[str] = typer.Argument(None, help="Start time (HH:MM or ISO datetime)"),
    client: Optional[str] = typer.Option(None, "--client", "-c", help="Client name"),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Comment or message"),
) -> None:
    """Start a new work session."""
    timestamp = parse_time_arg(time)
    client_name = resolve_client_name(client)

    try:
        session = Puncher(get_db()).start_session(client_name, timestamp, message)
    except PunchError as e:
        print_error(str(e))
        raise typer.Exit(1)

    console.print(f"Clocked in at {session.start.strftime('%H:%M:%S')}")
    autosync("start")


@app.command()
def end(
    time: Optional[str] = typer.Argument(None, help="End time (HH:MM or ISO datetime)"),
    client: Optional[str] = typer.Option(None, "--client", "-c", help="Client name"),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Comment or message"),
) -> None:
    """End the running work session."""
    timestamp = parse_time_arg(time)
    client_name = resolve_client_name(client)
    db = get_db()

    try:
        session = Puncher(db).end_session(client_name, timestamp, message)
    except PunchError as e:
        print_error(str(e))
        raise typer.Exit(1)

    billed = db.get_client(client_name)
    earnings = session.earnings(billed.rate if billed else None)
    summary = f"Clocked out at {session.end.strftime('%H:%M:%S')} after {format_duration(session)}"
    if earnings is not None:
        summary += f" ({earnings:.2f} {billed.currency})"
    console.print(summary)
    autosync("end")


@app.command("sessions")
def list_sessions(
    client: Optional[str] = typer.Option(None, "--client", "-c", help="Only this client"),
) -> None:
    """List work sessions with duration and earnings."""
    try:
        sessions = get_db().get_all_sessions(client)
    except PunchError as e:
        print_error(str(e))
        raise typer.Exit(1)

    if not sessions:
        console.print("[dim]No sessions yet.[/dim]")
        return
    console.print(format_sessions_table(sessions))


# ============================================================================
# Sync Commands
# ============================================================================


@app.command()
def sync(
    remote: Optional[str] = typer.Argument(None, help="Remote name (defaults to default_remote)"),
    pull_only: bool = typer.Option(False, "--pull-only", help="Only pull sessions from remote"),
) -> None:
    """Sync sessions with a remote."""
    try:
        report = run_sync(remote, pull_only=pull_only)
    except PunchError as e:
        print_error(str(e))
        raise typer.Exit(1)

    console.print(Panel(f"Sync with [bold]{report.remote}[/bold]", expand=False))
    print_sync_report(report)
    if report.success:
        console.print("\n[green]✓ Sync successful![/green]")


if __name__ == "__main__":
    app()
