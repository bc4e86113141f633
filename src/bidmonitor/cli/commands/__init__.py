"""CLI command modules."""

from . import relay, results, sites, watch

__all__ = [
    "relay",
    "results",
    "sites",
    "watch",
]
