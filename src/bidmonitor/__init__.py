"""
BidMonitor - Procurement page monitor with a CORS-bypassing fetch relay.

A relay service that proxies page fetches for browser and terminal clients,
and a monitor that polls tender pages for new bidding links.
"""

__version__ = "1.0.0"
__app_name__ = "bidmonitor"
