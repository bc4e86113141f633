"""
Shared wiring for CLI commands: config, store, relay client, monitor.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape

from bidmonitor.core.config import AppConfig, ConfigError, load_app_config
from bidmonitor.core.monitor import MonitorLoop
from bidmonitor.core.relay import HttpRelayClient, LocalRelayClient, ProxyRelay
from bidmonitor.core.relay.client import RelayClient
from bidmonitor.persistence import StateStore

console = Console()
err_console = Console(stderr=True)

NOTIFY_STYLES = {
    "success": "green",
    "error": "red",
    "warning": "yellow",
    "info": "cyan",
}


def console_notifier(message: str, level: str) -> None:
    """Print user-facing monitor messages."""
    style = NOTIFY_STYLES.get(level, "default")
    target = err_console if level == "error" else console
    target.print(f"[{style}]{escape(message)}[/{style}]", highlight=False)


def get_config(ctx: typer.Context) -> AppConfig:
    """Config loaded by the root callback (or defaults)."""
    obj: dict[str, Any] = ctx.obj or {}
    config = obj.get("config")
    if config is None:
        config = load_config(obj.get("config_path"))
        ctx.obj = {**obj, "config": config}
    return config


def load_config(path: Path | None) -> AppConfig:
    try:
        return load_app_config(path)
    except ConfigError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        if e.details:
            err_console.print(f"[dim]{escape(e.details)}[/dim]")
        raise typer.Exit(1) from e


def build_store(config: AppConfig) -> StateStore:
    return StateStore.from_url(
        config.database.url,
        namespace=config.database.namespace,
        result_cap=config.monitor.result_cap,
        echo=config.database.echo,
    )


def build_client(config: AppConfig, relay_url: str | None = None) -> RelayClient:
    """Remote relay when a URL is given/configured, in-process relay otherwise."""
    endpoint = relay_url or config.monitor.relay_url
    if endpoint:
        return HttpRelayClient(endpoint, timeout=config.relay.timeout_seconds + 15)
    return LocalRelayClient(
        ProxyRelay(config.relay, block_loopback=config.effective_block_loopback)
    )


def build_loop(
    config: AppConfig,
    relay_url: str | None = None,
    *,
    offline: bool = False,
    username: str | None = None,
    password: str | None = None,
) -> MonitorLoop:
    """Monitor wired to the configured store and relay.

    ``offline`` commands only touch stored state, so they never open a
    remote relay connection. ``username``/``password`` override the
    configured site credentials.
    """
    monitor = config.monitor
    if username or password:
        monitor = monitor.model_copy(update={
            "username": username or monitor.username,
            "password": password or monitor.password,
        })
    if offline:
        client: RelayClient = LocalRelayClient(ProxyRelay(config.relay))
    else:
        client = build_client(config, relay_url)
    return MonitorLoop(
        client,
        build_store(config),
        config=monitor,
        notifier=console_notifier,
    )
