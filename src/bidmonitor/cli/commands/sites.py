"""
Saved website management commands.
"""

from __future__ import annotations

import typer
from rich.markup import escape
from rich.table import Table

from bidmonitor.cli.runtime import build_loop, console, err_console, get_config
from bidmonitor.core.monitor import InvalidTargetError

app = typer.Typer(
    help="Manage saved websites",
    no_args_is_help=True,
)


@app.command("add")
def add_site(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Website URL (http:// or https://)"),
) -> None:
    """Save a website to the monitored list."""
    loop = build_loop(get_config(ctx), offline=True)
    try:
        loop.add_website(url)
    except InvalidTargetError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)


@app.command("list")
def list_sites(ctx: typer.Context) -> None:
    """List saved websites."""
    loop = build_loop(get_config(ctx), offline=True)

    if not loop.websites:
        console.print("[dim]No saved websites yet.[/dim]")
        return

    table = Table(title=f"Websites ({len(loop.websites)})", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="cyan")
    table.add_column("URL", overflow="fold")
    table.add_column("Last Checked", justify="right")

    for website in loop.websites:
        table.add_row(
            website.id,
            website.name,
            escape(website.url),
            website.last_checked_at or "[dim]Never[/dim]",
        )

    console.print(table)


@app.command("remove")
def remove_site(
    ctx: typer.Context,
    website_id: str = typer.Argument(..., help="Website ID (see 'sites list')"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Remove a website from the list."""
    if not yes and not typer.confirm("Remove this website from your list?"):
        raise typer.Abort()

    loop = build_loop(get_config(ctx), offline=True)
    if not loop.remove_website(website_id):
        err_console.print(f"[red]Website not found:[/red] {website_id}")
        raise typer.Exit(1)
