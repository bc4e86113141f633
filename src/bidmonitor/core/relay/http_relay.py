"""
Fetch relay implementation using httpx.

Forwards caller-specified requests upstream and returns a normalized
envelope:
- Default browser-like headers, overridable per request
- Bounded timeout and redirect count
- Any upstream status is a successful relay result
- Transport errors mapped to categorized HTTP statuses
"""

from __future__ import annotations

import errno
import socket
import time
from typing import Any, Iterator
from urllib.parse import urlparse

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from bidmonitor.core.config.models import RelayConfig
from bidmonitor.core.logging import get_logger

from .base import (
    FetchRequest,
    FetchResult,
    RelayFailure,
    RelayOutcome,
    RelayValidationError,
    is_textual_content_type,
)


logger = get_logger("relay")

LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1"}

# (code, status, message) per failure category
CONNECTION_REFUSED = ("ECONNREFUSED", 503, "Connection refused - the website may be down or blocking requests")
NAME_NOT_FOUND = ("ENOTFOUND", 404, "Domain not found - check the URL")
TIMED_OUT = ("ETIMEDOUT", 504, "Request timeout - the website took too long to respond")
NO_RESPONSE = ("ENORESPONSE", 502, "No response received from target server")

REFUSED_MARKERS = ("connection refused", "actively refused")
NAME_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
    "name resolution",
)


def _iter_causes(exc: BaseException) -> Iterator[BaseException]:
    """Walk an exception and its explicit/implicit causes."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def classify_transport_error(exc: BaseException) -> tuple[str, int, str]:
    """Map a transport exception to ``(code, status, message)``.

    Refused connections map to 503, name resolution failures to 404,
    timeouts to 504, other network errors (request sent, nothing back)
    to 502 and everything else to 500.
    """
    causes = list(_iter_causes(exc))

    if any(isinstance(c, (httpx.TimeoutException, TimeoutError, socket.timeout)) for c in causes):
        return TIMED_OUT

    for cause in causes:
        if isinstance(cause, ConnectionRefusedError):
            return CONNECTION_REFUSED
        if isinstance(cause, socket.gaierror):
            return NAME_NOT_FOUND
        if isinstance(cause, OSError) and cause.errno == errno.ETIMEDOUT:
            return TIMED_OUT

    text = " ".join(str(c).lower() for c in causes)
    if any(marker in text for marker in REFUSED_MARKERS):
        return CONNECTION_REFUSED
    if any(marker in text for marker in NAME_MARKERS):
        return NAME_NOT_FOUND

    if any(isinstance(c, (httpx.NetworkError, httpx.RemoteProtocolError)) for c in causes):
        return NO_RESPONSE

    for cause in causes:
        if isinstance(cause, OSError) and cause.errno in errno.errorcode:
            return errno.errorcode[cause.errno], 500, str(cause) or type(cause).__name__

    return "EUNKNOWN", 500, str(exc) or type(exc).__name__


class ProxyRelay:
    """Stateless fetch relay backed by a pooled httpx client.

    The only shared object is the connection pool, so concurrent calls
    are safe.
    """

    def __init__(
        self,
        config: RelayConfig | None = None,
        *,
        block_loopback: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the relay.

        Args:
            config: Relay settings (timeout, redirects, headers)
            block_loopback: Override ``config.block_loopback``
            transport: Custom httpx transport (tests use MockTransport)
        """
        self.config = config or RelayConfig()
        self.block_loopback = (
            self.config.block_loopback if block_loopback is None else block_loopback
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        self.default_headers = {
            "User-Agent": self.config.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
            **self.config.default_headers,
        }

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout_seconds),
                follow_redirects=True,
                max_redirects=self.config.max_redirects,
                transport=self._transport,
                limits=httpx.Limits(
                    max_connections=20,
                    max_keepalive_connections=10,
                ),
            )
        return self._client

    def validate(self, request: FetchRequest) -> None:
        """Reject requests that must never reach the network.

        Raises:
            RelayValidationError: On a bad URL or a blocked loopback target
        """
        url = request.url
        if not url or not isinstance(url, str) or not url.startswith("http"):
            raise RelayValidationError(
                "Valid URL is required (must start with http:// or https://)"
            )

        if self.block_loopback:
            host = (urlparse(url).hostname or "").lower()
            if host in LOOPBACK_HOSTS:
                raise RelayValidationError(
                    "Access to localhost is not allowed in production",
                    url=url,
                )

    def build_headers(self, request: FetchRequest) -> httpx.Headers:
        """Merge default headers with caller headers (caller wins)."""
        headers = httpx.Headers(self.default_headers)
        headers.update(request.headers)
        return headers

    async def fetch_payload(self, payload: Any) -> RelayOutcome:
        """Validate a raw JSON payload and relay it."""
        return await self.fetch(FetchRequest.from_payload(payload))

    async def fetch(self, request: FetchRequest) -> RelayOutcome:
        """Forward a request upstream.

        Args:
            request: Request to forward

        Returns:
            FetchResult for any upstream response, RelayFailure when the
            transport fails

        Raises:
            RelayValidationError: Before any network call, on invalid input
        """
        self.validate(request)

        client = await self._ensure_client()
        headers = self.build_headers(request)
        body_kwargs: dict[str, Any] = {}
        if isinstance(request.body, (dict, list)):
            body_kwargs["json"] = request.body
        elif isinstance(request.body, (str, bytes)):
            body_kwargs["content"] = request.body
        elif request.body is not None:
            body_kwargs["json"] = request.body

        start = time.perf_counter()
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.config.max_attempts),
                wait=wait_exponential(multiplier=1, min=1, max=10),
                retry=retry_if_exception_type(httpx.TransportError),
                reraise=True,
            ):
                with attempt:
                    response = await client.request(
                        request.method.upper(),
                        request.url,
                        headers=headers,
                        **body_kwargs,
                    )
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            return self._failure(request, e)

        elapsed_ms = (time.perf_counter() - start) * 1000
        content_type = response.headers.get("content-type", "")
        raw = response.content

        result = FetchResult(
            url=request.url,
            final_url=str(response.url),
            status=response.status_code,
            status_text=response.reason_phrase,
            content_type=content_type,
            content=response.text if is_textual_content_type(content_type) else raw,
            headers=dict(response.headers),
            size=len(raw),
            elapsed_ms=elapsed_ms,
        )
        logger.debug(
            "Relayed %s %s -> %s (%d bytes, %.0f ms)",
            request.method, request.url, result.status, result.size, elapsed_ms,
            extra={"url": request.url, "status": result.status},
        )
        return result

    def _failure(self, request: FetchRequest, exc: BaseException) -> RelayFailure:
        code, status, message = classify_transport_error(exc)
        logger.warning(
            "Proxy error for %s: %s (%s)", request.url, exc, code,
            extra={"url": request.url, "code": code},
        )
        return RelayFailure(error=message, code=code, status=status, url=request.url)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
