"""
Load ``configs/app.yaml`` into an AppConfig.

The file is optional: without it every setting takes its default.
String values may reference the environment as ``${VAR}`` or
``${VAR:-fallback}``, and ``BIDMONITOR_ENV`` selects the environment
regardless of what the file says.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from bidmonitor.core.errors import BidMonitorError

from .models import AppConfig, Environment


DEFAULT_CONFIG_PATH = Path("configs/app.yaml")

ENV_OVERRIDE = "BIDMONITOR_ENV"

ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


class ConfigError(BidMonitorError):
    """The configuration file could not be read, parsed or validated."""

    def __init__(self, message: str, path: Path | None = None, details: str | None = None):
        self.path = path
        self.details = details
        super().__init__(message)


def _read_mapping(path: Path) -> dict[str, Any]:
    """Parse a YAML file whose top level must be a mapping.

    An empty file counts as an empty mapping.

    Raises:
        ConfigError: If the file is missing, unreadable or malformed
    """
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}", path=path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}", path=path, details=str(e)) from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"{path} is not valid YAML", path=path, details=str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top level of {path} must be a mapping", path=path)
    return data


def _substitute(text: str) -> str:
    return ENV_VAR_PATTERN.sub(
        lambda m: os.environ.get(m.group(1), m.group(2) or ""),
        text,
    )


def expand_env_vars(value: Any) -> Any:
    """Substitute ``${VAR}`` references in every string, at any depth."""
    if isinstance(value, str):
        return _substitute(value)
    if isinstance(value, dict):
        return {key: expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def load_app_config(
    path: Path | str | None = None,
    expand_env: bool = True,
) -> AppConfig:
    """Build the application configuration.

    Args:
        path: YAML file (default: configs/app.yaml); may be absent
        expand_env: Substitute ``${VAR}`` references

    Returns:
        Validated AppConfig instance

    Raises:
        ConfigError: If the file exists but is invalid
    """
    path = DEFAULT_CONFIG_PATH if path is None else Path(path)

    data = _read_mapping(path) if path.exists() else {}
    if expand_env:
        data = expand_env_vars(data)

    environment = os.environ.get(ENV_OVERRIDE)
    if environment:
        data["environment"] = environment.lower()

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid configuration in {path}",
            path=path,
            details=str(e),
        ) from e


__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "Environment",
    "expand_env_vars",
    "load_app_config",
]
