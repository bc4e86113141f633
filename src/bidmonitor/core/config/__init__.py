"""Configuration loading and validation."""

from .models import (
    # Enums
    Environment,
    # Config models
    AppConfig,
    RelayConfig,
    MonitorConfig,
    DatabaseConfig,
    LoggingConfig,
)
from .loader import ConfigError, load_app_config

__all__ = [
    # Enums
    "Environment",
    # Config models
    "AppConfig",
    "RelayConfig",
    "MonitorConfig",
    "DatabaseConfig",
    "LoggingConfig",
    # Loaders
    "ConfigError",
    "load_app_config",
]
