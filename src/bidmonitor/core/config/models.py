"""
Pydantic configuration models for BidMonitor.

These models provide type-safe configuration with validation for:
- Fetch relay settings
- Monitor loop defaults
- Database and logging
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


# =============================================================================
# Enums
# =============================================================================


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"


# =============================================================================
# Relay Configuration
# =============================================================================


class RelayConfig(BaseModel):
    """Fetch relay (proxy endpoint) settings."""

    host: str = Field(
        default="127.0.0.1",
        description="Interface the relay server binds to",
    )
    port: int = Field(
        default=3000,
        ge=1,
        le=65535,
        description="Port the relay server listens on",
    )
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Upstream request timeout in seconds",
    )
    max_redirects: int = Field(
        default=5,
        ge=0,
        le=20,
        description="Maximum redirects followed per request",
    )
    max_attempts: int = Field(
        default=1,
        ge=1,
        le=10,
        description="Attempts per request on transport errors (1 = no retry)",
    )
    block_loopback: bool = Field(
        default=False,
        description="Reject requests to loopback hosts",
    )
    allowed_origin: str = Field(
        default="*",
        description="Value of Access-Control-Allow-Origin",
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="Default User-Agent sent upstream",
    )
    default_headers: dict[str, str] = Field(
        default_factory=dict,
        description="Extra default headers (overridable by callers)",
    )


# =============================================================================
# Monitor Configuration
# =============================================================================


class MonitorConfig(BaseModel):
    """Monitor loop defaults."""

    relay_url: str | None = Field(
        default=None,
        description="Remote relay endpoint (None = in-process relay)",
    )
    interval_ms: int = Field(
        default=300_000,
        ge=0,
        description="Polling interval in milliseconds (0 = single check)",
    )
    keywords: list[str] = Field(
        default_factory=list,
        description="Page-level keyword filter (empty = scan every page)",
    )
    result_cap: int = Field(
        default=100,
        ge=1,
        le=10_000,
        description="Maximum persisted results",
    )
    test_preview_limit: int = Field(
        default=10,
        ge=1,
        description="Items shown by a connection test",
    )
    username: str | None = Field(
        default=None,
        description="Site username sent as Basic auth (with password)",
    )
    password: str | None = Field(
        default=None,
        repr=False,
        description="Site password sent as Basic auth (with username)",
    )

    @field_validator("username", "password")
    @classmethod
    def blank_is_none(cls, v: str | None) -> str | None:
        return v or None

    @field_validator("keywords")
    @classmethod
    def strip_keywords(cls, v: list[str]) -> list[str]:
        """Drop blank keywords."""
        return [k.strip() for k in v if k and k.strip()]

    @field_validator("relay_url")
    @classmethod
    def relay_url_is_http(cls, v: str | None) -> str | None:
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("relay_url must start with http:// or https://")
        return v or None


# =============================================================================
# Database Configuration
# =============================================================================


class DatabaseConfig(BaseModel):
    """State store settings."""

    url: str = Field(
        default="sqlite:///data/bidmonitor.db",
        description="SQLAlchemy database URL",
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL statements (debugging)",
    )
    namespace: str = Field(
        default="bidmonitor_state",
        min_length=1,
        max_length=100,
        description="Key of the persisted state record",
    )


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    file: Path | None = Field(
        default=Path("logs/bidmonitor.log"),
        description="Log file path",
    )
    json_format: bool = Field(
        default=True,
        description="Use JSON format for file logs",
    )
    rich_console: bool = Field(
        default=True,
        description="Use Rich for console output",
    )

    @field_validator("level")
    @classmethod
    def known_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Root application configuration.

    This is the main configuration object loaded from app.yaml.
    """

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment",
    )
    data_dir: Path = Field(
        default=Path("data"),
        description="Data storage directory",
    )

    relay: RelayConfig = Field(default_factory=RelayConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def effective_block_loopback(self) -> bool:
        """Loopback targets are always refused in production."""
        return self.relay.block_loopback or self.environment == Environment.PRODUCTION

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        if self.logging.file:
            self.logging.file.parent.mkdir(parents=True, exist_ok=True)
