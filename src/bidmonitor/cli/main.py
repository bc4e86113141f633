"""
BidMonitor CLI - Main entry point.

Watches procurement pages for bid, tender and RFP links, and runs the
fetch relay that the monitor talks to.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.panel import Panel
from rich.traceback import install as install_rich_traceback

from bidmonitor import __app_name__, __version__
from bidmonitor.cli.runtime import build_loop, build_store, console, err_console, get_config, load_config
from bidmonitor.core.logging import setup_logging

# Load environment variables from .env (if present)
load_dotenv()

install_rich_traceback(show_locals=False, width=120)

app = typer.Typer(
    name=__app_name__,
    help="Procurement page monitor and fetch relay",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to app.yaml (default: configs/app.yaml)",
        envvar="BIDMONITOR_CONFIG",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Debug logging",
    ),
) -> None:
    """BidMonitor - Procurement opportunity monitor."""
    config = load_config(config_path)
    ctx.obj = {"config_path": config_path, "config": config}

    setup_logging(
        level="DEBUG" if verbose else config.logging.level,
        log_file=config.logging.file,
        json_format=config.logging.json_format,
        rich_console=config.logging.rich_console,
    )


# =============================================================================
# Import and register subcommand modules
# =============================================================================

from .commands import relay, results, sites, watch  # noqa: E402

app.add_typer(watch.app, name="watch", help="Test, check and monitor procurement pages")
app.add_typer(sites.app, name="sites", help="Manage saved websites")
app.add_typer(results.app, name="results", help="View and export detected opportunities")
app.add_typer(relay.app, name="relay", help="Run the fetch relay")


# =============================================================================
# Init Command
# =============================================================================


@app.command()
def init(
    ctx: typer.Context,
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing configuration",
    ),
) -> None:
    """Initialize BidMonitor storage and configuration.

    Creates the data and log directories, a default configs/app.yaml
    and the state database.
    """
    app_config_path = Path("configs/app.yaml")
    created_config = False
    if not app_config_path.exists() or force:
        _create_default_app_config(app_config_path)
        created_config = True
        ctx.obj = {"config_path": app_config_path, "config": load_config(app_config_path)}

    config = get_config(ctx)
    config.ensure_directories()

    loaded = build_store(config).load()
    if not loaded.ok:
        err_console.print(f"[yellow]Existing state could not be read:[/yellow] {loaded.error}")

    console.print()
    console.print(Panel.fit(
        "[bold green]OK - BidMonitor initialized successfully![/bold green]\n\n"
        + (
            "Created:\n  - [cyan]configs/app.yaml[/cyan] - Application configuration\n"
            if created_config
            else "Kept existing [cyan]configs/app.yaml[/cyan]\n"
        )
        + f"  - [cyan]{config.data_dir}/[/cyan] - State database\n\n"
        "Next steps:\n"
        "  1. Test a page: [yellow]bidmonitor watch test <url>[/yellow]\n"
        "  2. Start monitoring: [yellow]bidmonitor watch start <url>[/yellow]\n"
        "  3. Or run the relay: [yellow]bidmonitor relay serve[/yellow]",
        title="[bold]Initialization Complete[/bold]",
        border_style="green",
    ))


def _create_default_app_config(path: Path) -> None:
    """Create default app.yaml configuration."""
    default_config = """\
# BidMonitor Configuration

# development | production (BIDMONITOR_ENV overrides)
environment: development
data_dir: data

# Fetch relay (bidmonitor relay serve)
relay:
  host: 127.0.0.1
  port: 3000
  timeout_seconds: 30
  max_redirects: 5
  max_attempts: 1
  block_loopback: false
  allowed_origin: "*"

# Monitor loop
monitor:
  # Leave empty to fetch through the in-process relay
  relay_url: ${BIDMONITOR_RELAY_URL:-}
  interval_ms: 300000
  keywords: []
  result_cap: 100
  # Basic auth for password-protected pages (both or neither)
  username: ${BIDMONITOR_SITE_USERNAME:-}
  password: ${BIDMONITOR_SITE_PASSWORD:-}

# State storage
database:
  url: sqlite:///data/bidmonitor.db
  echo: false
  namespace: bidmonitor_state

# Logging settings
logging:
  level: INFO
  file: logs/bidmonitor.log
  json_format: true
  rich_console: true
"""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(default_config, encoding="utf-8")


# =============================================================================
# Status Command
# =============================================================================


@app.command()
def status(ctx: typer.Context) -> None:
    """Show saved websites, results and request statistics."""
    from rich.table import Table

    loop = build_loop(get_config(ctx), offline=True)
    stats = loop.state.stats

    table = Table(title="BidMonitor Status", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Websites", str(len(loop.websites)))
    table.add_row("Results", str(len(loop.results)))
    table.add_row("Total requests", str(stats.total_requests))
    table.add_row("Successful", f"[green]{stats.successful_requests}[/green]")
    table.add_row("Failed", f"[red]{stats.failed_requests}[/red]")
    table.add_row("Success rate", f"{stats.success_rate}%")
    table.add_row("Last check", stats.last_check or "Never")

    console.print(table)


# =============================================================================
# Reset Command
# =============================================================================


@app.command()
def reset(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete all saved websites, results and statistics."""
    if not yes and not typer.confirm(
        "This removes all websites, results and statistics. Continue?"
    ):
        raise typer.Abort()

    loop = build_loop(get_config(ctx), offline=True)
    if not loop.reset():
        err_console.print("[red]Failed to clear stored data[/red]")
        raise typer.Exit(1)
    console.print("[green]All data cleared[/green]")


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
