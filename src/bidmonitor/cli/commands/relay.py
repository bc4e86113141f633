"""
Relay server command.
"""

from __future__ import annotations

from typing import Optional

import typer

from bidmonitor.cli.runtime import console, get_config

app = typer.Typer(
    help="Run the fetch relay",
    no_args_is_help=True,
)


@app.command("serve")
def serve(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from config)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default from config)"),
) -> None:
    """Serve POST /fetch for browser and remote clients."""
    import uvicorn

    from bidmonitor.api import create_app

    config = get_config(ctx)
    host = host or config.relay.host
    port = port or config.relay.port

    console.print(
        f"[bold cyan]BidMonitor relay[/bold cyan] on [green]http://{host}:{port}/fetch[/green] "
        f"([dim]{config.environment.value}[/dim])"
    )
    uvicorn.run(
        create_app(config),
        host=host,
        port=port,
        log_level=config.logging.level.lower(),
    )
