"""Fetch relay: request forwarding and its clients."""

from .base import (
    FetchRequest,
    FetchResult,
    RelayCallError,
    RelayError,
    RelayFailure,
    RelayOutcome,
    RelayValidationError,
    basic_auth_header,
)
from .client import HttpRelayClient, LocalRelayClient, RelayClient
from .http_relay import ProxyRelay, classify_transport_error

__all__ = [
    # Envelopes
    "FetchRequest",
    "FetchResult",
    "RelayFailure",
    "RelayOutcome",
    # Errors
    "RelayError",
    "RelayValidationError",
    "RelayCallError",
    # Helpers
    "basic_auth_header",
    # Relay
    "ProxyRelay",
    "classify_transport_error",
    # Clients
    "RelayClient",
    "LocalRelayClient",
    "HttpRelayClient",
]
