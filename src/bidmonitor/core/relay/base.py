"""
Relay base classes and data structures.

Defines the request/response envelopes exchanged with the fetch relay
and the relay error hierarchy.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

from bidmonitor.core.errors import BidMonitorError


TEXTUAL_CONTENT_MARKERS = ("text/", "json", "xml", "javascript", "ecmascript")


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and Z suffix."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def is_textual_content_type(content_type: str) -> bool:
    """Check whether a Content-Type carries text (empty counts as text)."""
    lowered = content_type.lower()
    return not lowered or any(marker in lowered for marker in TEXTUAL_CONTENT_MARKERS)


def basic_auth_header(username: str | None, password: str | None) -> dict[str, str]:
    """Basic ``Authorization`` header for site credentials.

    Empty unless both username and password are given.
    """
    if not (username and password):
        return {}
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return {"Authorization": f"Basic {token}"}


# =============================================================================
# Errors
# =============================================================================


class RelayError(BidMonitorError):
    """Base exception for relay errors."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.cause = cause


class RelayValidationError(RelayError):
    """Rejected request: bad or missing URL, malformed payload."""

    code = "EINVAL"

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message, url=url, status_code=400)


class RelayCallError(RelayError):
    """Relay endpoint answered with a failure envelope or non-2xx status."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        code: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, url=url, status_code=status_code, cause=cause)
        self.code = code


# =============================================================================
# Request
# =============================================================================


@dataclass
class FetchRequest:
    """A request the relay forwards upstream."""

    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None

    @classmethod
    def from_payload(cls, payload: Any) -> "FetchRequest":
        """Build a request from a relay JSON payload.

        Payload keys: ``url``, ``method``, ``headers``, ``data``.

        Raises:
            RelayValidationError: If the payload or its URL is invalid
        """
        if not isinstance(payload, Mapping):
            raise RelayValidationError("Request body must be a JSON object")

        url = payload.get("url")
        if not url or not isinstance(url, str) or not url.startswith("http"):
            raise RelayValidationError(
                "Valid URL is required (must start with http:// or https://)"
            )

        method = payload.get("method") or "GET"
        if not isinstance(method, str):
            raise RelayValidationError("method must be a string", url=url)

        headers = payload.get("headers") or {}
        if not isinstance(headers, Mapping):
            raise RelayValidationError("headers must be an object", url=url)

        return cls(
            url=url,
            method=method.upper(),
            headers={str(k): str(v) for k, v in headers.items()},
            body=payload.get("data"),
        )


# =============================================================================
# Results
# =============================================================================


@dataclass
class FetchResult:
    """Successful relay result. Any upstream status counts as success."""

    url: str
    status: int
    status_text: str
    content_type: str
    content: str | bytes
    headers: dict[str, str]
    size: int
    final_url: str | None = None  # After redirects
    elapsed_ms: float = 0.0
    timestamp: str = field(default_factory=utc_timestamp)

    success: bool = field(default=True, init=False)

    @property
    def page_url(self) -> str:
        """URL that relative links on the page resolve against."""
        return self.final_url or self.url

    @property
    def ok(self) -> bool:
        """Check if the upstream status was 2xx."""
        return 200 <= self.status < 300

    @property
    def is_html(self) -> bool:
        return "text/html" in self.content_type.lower()

    @property
    def text(self) -> str:
        """Content as text, decoding binary bodies with replacement."""
        if isinstance(self.content, bytes):
            return self.content.decode("utf-8", errors="replace")
        return self.content

    def to_envelope(self) -> dict[str, Any]:
        """JSON envelope returned by ``POST /fetch``."""
        return {
            "success": True,
            "url": self.url,
            "status": self.status,
            "statusText": self.status_text,
            "contentType": self.content_type,
            "content": self.text,
            "headers": self.headers,
            "timestamp": self.timestamp,
            "size": self.size,
            "finalUrl": self.page_url,
        }

    @classmethod
    def from_envelope(cls, envelope: Mapping[str, Any]) -> "FetchResult":
        """Rebuild a result from a relay success envelope."""
        content = envelope.get("content")
        if content is None:
            content = ""
        elif not isinstance(content, str):
            content = str(content)

        return cls(
            url=str(envelope.get("url", "")),
            status=int(envelope.get("status", 0)),
            status_text=str(envelope.get("statusText", "")),
            content_type=str(envelope.get("contentType", "")),
            content=content,
            headers=dict(envelope.get("headers") or {}),
            size=int(envelope.get("size") or len(content.encode("utf-8"))),
            final_url=envelope.get("finalUrl"),
            timestamp=str(envelope.get("timestamp") or utc_timestamp()),
        )


@dataclass
class RelayFailure:
    """Transport-level failure, categorized into an HTTP status."""

    error: str
    code: str
    status: int
    url: str | None = None
    timestamp: str = field(default_factory=utc_timestamp)

    success: bool = field(default=False, init=False)

    def to_envelope(self) -> dict[str, Any]:
        """JSON envelope returned by ``POST /fetch`` on failure."""
        return {
            "success": False,
            "error": self.error,
            "code": self.code,
            "timestamp": self.timestamp,
        }


RelayOutcome = FetchResult | RelayFailure
