"""
Relay clients used by the monitor.

Both clients expose ``fetch(url, method, headers)`` returning a
FetchResult and raise RelayCallError on any relay failure, so the
monitor never sees failure envelopes.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx

from bidmonitor.core.logging import get_logger

from .base import FetchRequest, FetchResult, RelayCallError, RelayFailure
from .http_relay import ProxyRelay


logger = get_logger("relay.client")


class RelayClient(Protocol):
    """What the monitor needs from a relay."""

    async def fetch(
        self,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
    ) -> FetchResult:
        ...

    async def close(self) -> None:
        ...


class LocalRelayClient:
    """Calls an in-process ProxyRelay directly."""

    def __init__(self, relay: ProxyRelay):
        self.relay = relay

    async def fetch(
        self,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
    ) -> FetchResult:
        outcome = await self.relay.fetch(
            FetchRequest(url=url, method=method, headers=dict(headers or {}))
        )
        if isinstance(outcome, RelayFailure):
            raise RelayCallError(
                outcome.error,
                url=url,
                status_code=outcome.status,
                code=outcome.code,
            )
        return outcome

    async def close(self) -> None:
        await self.relay.close()


class HttpRelayClient:
    """Posts fetch requests to a remote relay endpoint (``POST /fetch``)."""

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = 45.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            endpoint: Full relay URL, e.g. ``http://localhost:3000/fetch``
            timeout: Client-side timeout; above the relay's upstream timeout
            transport: Custom httpx transport (tests)
        """
        self.endpoint = endpoint
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            transport=transport,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )

    async def fetch(
        self,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
    ) -> FetchResult:
        payload = {"url": url, "method": method, "headers": dict(headers or {})}

        try:
            response = await self._client.post(self.endpoint, json=payload)
        except httpx.HTTPError as e:
            raise RelayCallError(
                f"Relay unreachable: {e}",
                url=url,
                cause=e,
            ) from e

        try:
            data: Any = response.json()
        except ValueError as e:
            raise RelayCallError(
                f"Relay returned invalid JSON (HTTP {response.status_code})",
                url=url,
                status_code=response.status_code,
                cause=e,
            ) from e

        if not isinstance(data, dict):
            raise RelayCallError(
                f"Relay returned an unexpected payload (HTTP {response.status_code})",
                url=url,
                status_code=response.status_code,
            )

        if not response.is_success or not data.get("success"):
            raise RelayCallError(
                data.get("error") or f"HTTP {response.status_code}",
                url=url,
                status_code=response.status_code,
                code=data.get("code"),
            )

        return FetchResult.from_envelope(data)

    async def close(self) -> None:
        await self._client.aclose()
