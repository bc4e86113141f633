"""
Connection tests, single checks and the foreground monitor loop.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from bidmonitor.cli.runtime import build_loop, console, err_console, get_config
from bidmonitor.core.monitor import CheckReport, ConnectionTestReport, InvalidTargetError
from bidmonitor.core.monitor.state import hostname
from bidmonitor.core.relay import RelayError

app = typer.Typer(
    help="Test, check and monitor procurement pages",
    no_args_is_help=True,
)

RelayUrlOption = typer.Option(
    None,
    "--relay-url",
    "-r",
    help="Remote relay endpoint (default: in-process relay)",
)

UsernameOption = typer.Option(
    None,
    "--username",
    "-u",
    help="Site username for Basic auth",
)

PasswordOption = typer.Option(
    None,
    "--password",
    help="Site password for Basic auth",
)


def _render_test_report(report: ConnectionTestReport) -> None:
    result = report.result
    status_style = "green" if result.ok else "yellow"
    console.print(f"[green]Successfully connected to {escape(hostname(report.url))}[/green]")

    if report.preview:
        table = Table(title="Bidding links found", show_header=True, header_style="bold magenta")
        table.add_column("Title", max_width=60)
        table.add_column("URL", style="cyan", overflow="fold")
        for item in report.preview:
            table.add_row(escape(item.title), escape(item.url))
        console.print(table)

        remaining = report.total_found - len(report.preview)
        if remaining > 0:
            console.print(f"[dim]... and {remaining} more items found[/dim]")
        return

    console.print(Panel.fit(
        "Website is accessible. No specific bidding elements detected automatically.\n\n"
        f"Status: [{status_style}]{result.status} {escape(result.status_text)}[/{status_style}]\n"
        f"Size: {result.size / 1024:.2f} KB\n"
        f"Fetched: {result.timestamp}",
        title="[bold]Test Connection Successful[/bold]",
        border_style="green",
    ))


def _render_check_report(report: CheckReport) -> None:
    if not report.ok:
        return
    if report.new_items:
        table = Table(title=f"New opportunities ({len(report.new_items)})", show_header=True, header_style="bold magenta")
        table.add_column("Title", max_width=60)
        table.add_column("URL", style="cyan", overflow="fold")
        for item in report.new_items:
            table.add_row(escape(item.title), escape(item.url))
        console.print(table)
    else:
        console.print(f"[dim]{report.matched} matching link(s), nothing new.[/dim]")


@app.command("test")
def test_connection(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Page to fetch"),
    relay_url: Optional[str] = RelayUrlOption,
    username: Optional[str] = UsernameOption,
    password: Optional[str] = PasswordOption,
) -> None:
    """Fetch a page once and preview the bidding links on it.

    Nothing found during a test is saved.
    """
    config = get_config(ctx)

    async def _run() -> ConnectionTestReport:
        loop = build_loop(config, relay_url, username=username, password=password)
        try:
            return await loop.test_connection(url)
        finally:
            await loop.close()

    try:
        report = asyncio.run(_run())
    except InvalidTargetError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)
    except RelayError as e:
        err_console.print(f"[red]Connection failed:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    _render_test_report(report)


@app.command("check")
def check(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Page to check"),
    keyword: Optional[List[str]] = typer.Option(
        None,
        "--keyword",
        "-k",
        help="Only scan pages containing this keyword (repeatable)",
    ),
    relay_url: Optional[str] = RelayUrlOption,
    username: Optional[str] = UsernameOption,
    password: Optional[str] = PasswordOption,
) -> None:
    """Run a single monitoring check and save new opportunities."""
    config = get_config(ctx)
    keywords = keyword if keyword else config.monitor.keywords

    async def _run() -> CheckReport:
        loop = build_loop(config, relay_url, username=username, password=password)
        try:
            return await loop.check_for_updates(url, keywords)
        finally:
            await loop.close()

    try:
        report = asyncio.run(_run())
    except InvalidTargetError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)

    _render_check_report(report)
    if not report.ok:
        raise typer.Exit(1)


@app.command("start")
def start(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Page to monitor"),
    interval: Optional[int] = typer.Option(
        None,
        "--interval",
        "-i",
        min=0,
        help="Polling interval in milliseconds (0 = check once)",
    ),
    keyword: Optional[List[str]] = typer.Option(
        None,
        "--keyword",
        "-k",
        help="Only scan pages containing this keyword (repeatable)",
    ),
    relay_url: Optional[str] = RelayUrlOption,
    username: Optional[str] = UsernameOption,
    password: Optional[str] = PasswordOption,
) -> None:
    """Monitor a page in the foreground until interrupted (Ctrl+C)."""
    config = get_config(ctx)
    interval_ms = config.monitor.interval_ms if interval is None else interval
    keywords = keyword if keyword else config.monitor.keywords

    async def _run() -> None:
        loop = build_loop(config, relay_url, username=username, password=password)
        try:
            report = await loop.start_monitoring(url, interval_ms, keywords)
            _render_check_report(report)
            if interval_ms > 0:
                console.print(f"[dim]Checking every {interval_ms / 1000:g}s. Press Ctrl+C to stop.[/dim]")
                await loop.wait()
        finally:
            await loop.close()

    try:
        asyncio.run(_run())
    except InvalidTargetError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("[yellow]Monitoring stopped[/yellow]")
