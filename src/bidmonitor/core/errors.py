"""Exception root for BidMonitor."""

from __future__ import annotations


class BidMonitorError(Exception):
    """Base exception for all BidMonitor errors."""
    pass
