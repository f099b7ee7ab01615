"""csm CLI — command-line interface."""

from __future__ import annotations

import json
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from csm import __version__

app = typer.Typer(
    name="csm",
    help="Claude Sessions Monitor — see what every Claude Code session is doing.",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool):
    if value:
        console.print(f"[bold cyan]csm[/bold cyan] v{__version__}")
        raise typer.Exit()


def setup_logging(verbose: bool) -> None:
    """Send library log records to stderr through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Log skipped projects and other diagnostics.",
    ),
):
    """Claude Sessions Monitor — know which session needs you."""
    setup_logging(verbose)


def _discover_or_exit(config):
    """Run discovery; a fatal error is one red line and exit code 1."""
    from csm.session.discovery import ProjectsDirError, discover

    try:
        return discover(config)
    except ProjectsDirError as e:
        err_console.print(f"[red]✗[/red] Error discovering sessions: {e}")
        raise typer.Exit(1)


# ── Session Commands ────────────────────────────────────────


@app.command("list")
def list_sessions(
    as_json: bool = typer.Option(False, "--json", help="Output as JSON."),
):
    """List sessions once and exit."""
    from csm.config import load_config
    from csm.render import build_session_table, render_json

    config = load_config()
    sessions = _discover_or_exit(config)

    if as_json:
        # plain echo: rich crops long lines when stdout is not a terminal
        typer.echo(render_json(sessions))
        return

    if not sessions:
        console.print("[dim]No active Claude sessions found.[/dim]")
        return

    console.print(build_session_table(sessions))


@app.command()
def watch(
    interval: Optional[float] = typer.Option(
        None,
        "--interval",
        "-i",
        help="Refresh interval in seconds.",
    ),
):
    """
    Live view of all sessions, refreshed on an interval.

    Usage:
        csm watch
        csm watch --interval 5
    """
    from rich.live import Live

    from csm.config import load_config
    from csm.render import build_live_view
    from csm.session.discovery import discover
    from csm.watcher import Watcher

    config = load_config()
    watcher = Watcher(
        interval=interval or config.watch.interval_seconds,
        discover_fn=lambda: discover(config),
    )

    # Live restores the cursor and screen on every exit path
    with Live(build_live_view([]), console=console, screen=True, auto_refresh=False) as live:
        try:
            watcher.watch(lambda sessions: live.update(build_live_view(sessions), refresh=True))
        except KeyboardInterrupt:
            watcher.stop()

    console.print("Goodbye!")


@app.command()
def history(
    days: Optional[int] = typer.Option(
        None,
        "--days",
        "-d",
        help="How many days back to look.",
    ),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON."),
):
    """Show past sessions grouped by day."""
    from csm.config import load_config
    from csm.render import build_history_view
    from csm.session.history import discover_history

    config = load_config()
    days = days or config.history.days
    sessions = discover_history(days, config.paths.projects_dir)

    if as_json:
        data = [s.model_dump(mode="json") for s in sessions]
        typer.echo(json.dumps(data, indent=2))
        return

    console.print(build_history_view(sessions, days))


@app.command()
def ghosts(
    kill: bool = typer.Option(
        False,
        "--kill",
        help="Send SIGTERM to every ghost process.",
    ),
):
    """List (or kill) running processes whose session has been quiet for over an hour."""
    from datetime import timedelta

    from csm.config import load_config
    from csm.render import build_ghost_table
    from csm.session.processes import find_ghosts, kill_ghosts

    config = load_config()
    sessions = _discover_or_exit(config)
    found = find_ghosts(
        sessions,
        threshold=timedelta(seconds=config.detection.ghost_threshold_seconds),
    )

    if not found:
        console.print("[green]✓[/green] No ghost processes found.")
        return

    if not kill:
        console.print(build_ghost_table(found, "Ghost Processes"))
        console.print("  Kill them with: [cyan]csm ghosts --kill[/cyan]")
        return

    killed = kill_ghosts(found)
    if killed:
        console.print(build_ghost_table(killed, "Terminated"))
    console.print(f"[green]✓[/green] Killed {len(killed)} of {len(found)} ghost process(es).")


# ── Server Commands ─────────────────────────────────────────


server_app = typer.Typer(help="Serve session status over HTTP.")
app.add_typer(server_app, name="server")


@server_app.command("start")
def server_start(
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Server port."),
    host: Optional[str] = typer.Option(None, "--host", help="Bind address."),
):
    """Start the read-only csm HTTP server."""
    import uvicorn

    from csm.config import load_config
    from csm.server.app import create_app

    config = load_config()
    port = port or config.server.port
    host = host or config.server.bind

    console.print("\n[bold cyan]⚡ csm Server[/bold cyan]")
    console.print(f"  [dim]Sessions: http://{host}:{port}/api/sessions[/dim]")
    console.print()

    uvicorn.run(create_app(config), host=host, port=port, log_level="warning")


# ── Config Commands ─────────────────────────────────────────


config_app = typer.Typer(help="Manage csm configuration.")
app.add_typer(config_app, name="config")


@config_app.command("init")
def config_init():
    """Create the default configuration file."""
    from csm.config import CONFIG_FILE, save_default_config

    if CONFIG_FILE.exists():
        console.print(f"[yellow]Config already exists:[/yellow] {CONFIG_FILE}")
    else:
        path = save_default_config()
        console.print(f"[green]✓[/green] Created config: {path}")


@config_app.command("show")
def config_show():
    """Show current configuration."""
    from csm.config import load_config

    config = load_config()
    console.print_json(data=config.model_dump(mode="json"))


if __name__ == "__main__":
    app()
