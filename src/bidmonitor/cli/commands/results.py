"""
Result viewing and export commands.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from bidmonitor.cli.runtime import build_loop, console, get_config
from bidmonitor.core.logging import json_dumps
from bidmonitor.core.monitor import results_to_csv

app = typer.Typer(
    help="View and export detected opportunities",
    no_args_is_help=True,
)


@app.command("list")
def list_results(
    ctx: typer.Context,
    limit: int = typer.Option(
        20,
        "--limit",
        "-n",
        help="Maximum results to show",
    ),
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format (table, json, csv)",
    ),
) -> None:
    """List detected opportunities, newest first."""
    loop = build_loop(get_config(ctx), offline=True)
    results = loop.results[:limit]

    if not results:
        console.print("[dim]No results yet. Start monitoring a website to see opportunities.[/dim]")
        return

    if format == "json":
        console.print_json(json_dumps([r.to_dict() for r in results]))
        return

    if format == "csv":
        sys.stdout.write(results_to_csv(results))
        return

    table = Table(title=f"Results ({len(results)} of {len(loop.results)})", show_header=True, header_style="bold magenta")
    table.add_column("Title", max_width=50)
    table.add_column("Source", style="cyan")
    table.add_column("Date", justify="right")
    table.add_column("Type", justify="center")
    table.add_column("URL", overflow="fold")

    for item in results:
        table.add_row(
            escape((item.title[:47] + "...") if len(item.title) > 50 else item.title),
            item.source,
            item.date,
            item.type.value,
            escape(item.url),
        )

    console.print(table)
    if len(loop.results) > limit:
        console.print(f"[dim]Show all with --limit {len(loop.results)}[/dim]")


@app.command("export")
def export(
    ctx: typer.Context,
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Target file or directory (default: dated CSV in current directory)",
    ),
) -> None:
    """Export all results to CSV."""
    loop = build_loop(get_config(ctx), offline=True)
    written = loop.export_results(output)
    if written is None:
        console.print("[dim]Nothing to export.[/dim]")
        return
    console.print(f"[cyan]{escape(str(written))}[/cyan]")


@app.command("copy")
def copy(ctx: typer.Context) -> None:
    """Print results as a plain-text block for pasting."""
    loop = build_loop(get_config(ctx), offline=True)
    text = loop.copy_text()
    if text:
        sys.stdout.write(text)


@app.command("clear")
def clear(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete all saved results."""
    if not yes and not typer.confirm(
        "Are you sure you want to clear all results? This cannot be undone."
    ):
        raise typer.Abort()

    loop = build_loop(get_config(ctx), offline=True)
    loop.clear_results()
