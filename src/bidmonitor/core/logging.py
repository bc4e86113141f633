"""
Logging for BidMonitor.

Everything logs under the ``bidmonitor`` logger namespace. The terminal
gets a Rich handler, the log file gets one JSON object per line, and
monitor checks log through an adapter that stamps each record with the
monitored host and the session generation.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

import orjson

if TYPE_CHECKING:
    from rich.console import Console


ROOT_LOGGER = "bidmonitor"

# Record attributes copied into JSON lines when present
CONTEXT_FIELDS = ("target", "generation", "url", "code", "status")

LEVEL_STYLES = {
    logging.DEBUG: "dim",
    logging.INFO: "default",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "bold red",
}

PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def json_dumps(obj: Any) -> str:
    return orjson.dumps(obj, default=str).decode("utf-8")


# =============================================================================
# Formatters and Handlers
# =============================================================================


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with any context fields attached."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (name, getattr(record, name))
            for name in CONTEXT_FIELDS
            if hasattr(record, name)
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json_dumps(entry)


class RichConsoleHandler(logging.Handler):
    """Colour records by level; prefix monitor records with their host."""

    def __init__(self, console: "Console | None" = None, level: int = logging.INFO):
        super().__init__(level)
        if console is None:
            from rich.console import Console
            console = Console(stderr=True)
        self.console = console

    def emit(self, record: logging.LogRecord) -> None:
        from rich.markup import escape

        try:
            style = LEVEL_STYLES.get(record.levelno, "default")
            line = f"[{style}]{escape(self.format(record))}[/{style}]"

            target = getattr(record, "target", None)
            if target:
                line = f"[cyan]{escape(f'[{target}]')}[/cyan] {line}"

            self.console.print(line, markup=True, highlight=False)
            if record.exc_info:
                self.console.print_exception()
        except Exception:
            self.handleError(record)


def _console_handler(rich_console: bool) -> logging.Handler:
    if rich_console:
        handler: logging.Handler = RichConsoleHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    return handler


def _file_handler(log_file: Path | str, json_format: bool) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


# =============================================================================
# Setup
# =============================================================================


def setup_logging(
    level: str = "INFO",
    log_file: Path | str | None = None,
    json_format: bool = True,
    rich_console: bool = True,
) -> logging.Logger:
    """Configure the ``bidmonitor`` logger, replacing earlier handlers.

    Args:
        level: Console log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Also log to this file at DEBUG level
        json_format: JSON lines in the log file instead of plain text
        rich_console: Rich console output instead of a plain stream

    Returns:
        The configured ``bidmonitor`` logger
    """
    numeric_level = getattr(logging, level.upper())
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG if log_file else numeric_level)

    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    console = _console_handler(rich_console)
    console.setLevel(numeric_level)
    logger.addHandler(console)

    if log_file:
        logger.addHandler(_file_handler(log_file, json_format))

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Logger ``bidmonitor.<name>``, or the ``bidmonitor`` root."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


# =============================================================================
# Monitor Context
# =============================================================================


class ContextualLogger(logging.LoggerAdapter):
    """Adds ``target`` (monitored host) and ``generation`` to every record."""

    def __init__(
        self,
        logger: logging.Logger,
        target: str | None = None,
        generation: int | None = None,
    ):
        super().__init__(logger, {})
        self.target = target
        self.generation = generation

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context: dict[str, Any] = {}
        if self.target:
            context["target"] = self.target
        if self.generation is not None:
            context["generation"] = self.generation
        kwargs["extra"] = {**context, **kwargs.get("extra", {})}
        return msg, kwargs

    def with_context(
        self,
        target: str | None = None,
        generation: int | None = None,
    ) -> "ContextualLogger":
        """Copy of this adapter with some context replaced."""
        return ContextualLogger(
            self.logger,
            target=target or self.target,
            generation=self.generation if generation is None else generation,
        )


def get_contextual_logger(
    name: str | None = None,
    target: str | None = None,
    generation: int | None = None,
) -> ContextualLogger:
    return ContextualLogger(get_logger(name), target=target, generation=generation)
