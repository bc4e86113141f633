"""
Monitor state and pure update functions.

The persisted record (websites, results, stats) and the transient session
(phase, monitoring flag, generation) are immutable dataclasses. Every
update function returns a new object; the MonitorLoop holds the current
values.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping
from urllib.parse import urlparse
from uuid import uuid4


RESULT_CAP = 100


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def display_date() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def _require_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise TypeError(f"{what} must be an object, got {type(data).__name__}")
    return data


def hostname(url: str) -> str:
    return urlparse(url).hostname or ""


# =============================================================================
# Enums
# =============================================================================


class ResultType(str, Enum):
    """Where a result came from."""

    TEST = "test"
    MONITOR = "monitor"


class Phase(str, Enum):
    """What the monitor is doing right now."""

    IDLE = "idle"
    TESTING = "testing"
    CHECKING = "checking"


# =============================================================================
# Records
# =============================================================================


@dataclass(frozen=True)
class MonitoredWebsite:
    """A tracked procurement page."""

    id: str
    name: str
    url: str
    added_at: str
    last_checked_at: str | None = None

    @classmethod
    def create(cls, url: str) -> "MonitoredWebsite":
        return cls(
            id=f"website-{uuid4().hex[:12]}",
            name=hostname(url) or url,
            url=url,
            added_at=now_iso(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "added_at": self.added_at,
            "last_checked_at": self.last_checked_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MonitoredWebsite":
        data = _require_mapping(data, "website")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or hostname(str(data["url"]))),
            url=str(data["url"]),
            added_at=str(data.get("added_at") or now_iso()),
            last_checked_at=data.get("last_checked_at"),
        )


@dataclass(frozen=True)
class ResultItem:
    """A detected bidding opportunity."""

    id: str
    title: str
    url: str
    source: str
    description: str
    date: str
    type: ResultType = ResultType.MONITOR

    @property
    def key(self) -> tuple[str, str]:
        """Identity used for deduplication."""
        return (self.title, self.url)

    @classmethod
    def create(
        cls,
        title: str,
        url: str,
        source: str,
        description: str,
        type: ResultType = ResultType.MONITOR,
    ) -> "ResultItem":
        return cls(
            id=f"{type.value}-{uuid4().hex[:12]}",
            title=title,
            url=url,
            source=source,
            description=description,
            date=display_date(),
            type=type,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "source": self.source,
            "description": self.description,
            "date": self.date,
            "type": self.type.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResultItem":
        data = _require_mapping(data, "result")
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            url=str(data["url"]),
            source=str(data.get("source", "")),
            description=str(data.get("description", "")),
            date=str(data.get("date", "")),
            type=ResultType(data.get("type", ResultType.MONITOR.value)),
        )


@dataclass(frozen=True)
class Stats:
    """Request counters, reset only when storage is cleared."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    last_check: str | None = None

    @property
    def success_rate(self) -> int:
        """Rounded success percentage (100 before any request)."""
        if self.total_requests == 0:
            return 100
        return round(self.successful_requests / self.total_requests * 100)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "last_check": self.last_check,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Stats":
        data = _require_mapping(data, "stats")
        return cls(
            total_requests=int(data.get("total_requests", 0)),
            successful_requests=int(data.get("successful_requests", 0)),
            failed_requests=int(data.get("failed_requests", 0)),
            last_check=data.get("last_check"),
        )


@dataclass(frozen=True)
class MonitorState:
    """The single persisted record."""

    websites: tuple[MonitoredWebsite, ...] = ()
    results: tuple[ResultItem, ...] = ()
    stats: Stats = field(default_factory=Stats)

    def to_dict(self, result_cap: int = RESULT_CAP) -> dict[str, Any]:
        return {
            "websites": [w.to_dict() for w in self.websites],
            "results": [r.to_dict() for r in self.results[:result_cap]],
            "stats": self.stats.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MonitorState":
        """Rebuild state from its stored form.

        Raises:
            KeyError, TypeError, ValueError: On a malformed record
        """
        data = _require_mapping(data, "state")
        websites = _dedupe_websites(
            MonitoredWebsite.from_dict(w) for w in data.get("websites") or []
        )
        results = _dedupe_results(
            ResultItem.from_dict(r) for r in data.get("results") or []
        )
        return cls(
            websites=websites,
            results=results,
            stats=Stats.from_dict(data.get("stats") or {}),
        )


@dataclass(frozen=True)
class MonitorSession:
    """Transient monitoring session, never persisted.

    ``generation`` changes on every start/stop; a check whose captured
    generation no longer matches is stale and its response is dropped.
    """

    phase: Phase = Phase.IDLE
    monitoring: bool = False
    target_url: str | None = None
    interval_ms: int = 0
    keywords: tuple[str, ...] = ()
    generation: int = 0


def _dedupe_websites(websites: Iterable[MonitoredWebsite]) -> tuple[MonitoredWebsite, ...]:
    seen: set[str] = set()
    unique = []
    for website in websites:
        if website.url not in seen:
            seen.add(website.url)
            unique.append(website)
    return tuple(unique)


def _dedupe_results(results: Iterable[ResultItem]) -> tuple[ResultItem, ...]:
    seen: set[tuple[str, str]] = set()
    unique = []
    for item in results:
        if item.key not in seen:
            seen.add(item.key)
            unique.append(item)
    return tuple(unique)


# =============================================================================
# Website updates
# =============================================================================


def find_website(state: MonitorState, url: str) -> MonitoredWebsite | None:
    return next((w for w in state.websites if w.url == url), None)


def add_website(state: MonitorState, website: MonitoredWebsite) -> tuple[MonitorState, bool]:
    """Add a website unless its URL is already tracked.

    Returns:
        Tuple of (state, added)
    """
    if find_website(state, website.url) is not None:
        return state, False
    return replace(state, websites=(website, *state.websites)), True


def remove_website(state: MonitorState, website_id: str) -> tuple[MonitorState, bool]:
    """Remove a website by ID.

    Returns:
        Tuple of (state, removed)
    """
    remaining = tuple(w for w in state.websites if w.id != website_id)
    if len(remaining) == len(state.websites):
        return state, False
    return replace(state, websites=remaining), True


def mark_checked(state: MonitorState, url: str, when: str | None = None) -> MonitorState:
    """Stamp ``last_checked_at`` on the website tracking ``url``."""
    if find_website(state, url) is None:
        return state
    when = when or now_iso()
    websites = tuple(
        replace(w, last_checked_at=when) if w.url == url else w
        for w in state.websites
    )
    return replace(state, websites=websites)


# =============================================================================
# Result updates
# =============================================================================


def merge_results(
    state: MonitorState,
    candidates: Iterable[ResultItem],
    cap: int = RESULT_CAP,
) -> tuple[MonitorState, tuple[ResultItem, ...]]:
    """Prepend candidates whose (title, url) is not yet known.

    Each new item is prepended in turn, so the last new candidate ends up
    first. The list is trimmed to ``cap`` most recent items.

    Returns:
        Tuple of (state, newly added items in candidate order)
    """
    seen = {r.key for r in state.results}
    results = list(state.results)
    added: list[ResultItem] = []

    for item in candidates:
        if item.key in seen:
            continue
        seen.add(item.key)
        results.insert(0, item)
        added.append(item)

    if not added:
        return state, ()
    return replace(state, results=tuple(results[:cap])), tuple(added)


def clear_results(state: MonitorState) -> MonitorState:
    return replace(state, results=())


# =============================================================================
# Stats updates
# =============================================================================


def record_attempt(state: MonitorState) -> MonitorState:
    stats = replace(state.stats, total_requests=state.stats.total_requests + 1)
    return replace(state, stats=stats)


def record_success(state: MonitorState, when: str | None = None) -> MonitorState:
    stats = replace(
        state.stats,
        successful_requests=state.stats.successful_requests + 1,
        last_check=when or now_iso(),
    )
    return replace(state, stats=stats)


def record_failure(state: MonitorState) -> MonitorState:
    stats = replace(state.stats, failed_requests=state.stats.failed_requests + 1)
    return replace(state, stats=stats)


# =============================================================================
# Session updates
# =============================================================================


def begin_monitoring(
    session: MonitorSession,
    url: str,
    interval_ms: int,
    keywords: Iterable[str] = (),
) -> MonitorSession:
    return replace(
        session,
        monitoring=True,
        target_url=url,
        interval_ms=interval_ms,
        keywords=tuple(keywords),
        generation=session.generation + 1,
    )


def end_monitoring(session: MonitorSession) -> MonitorSession:
    """Turn monitoring off. Idempotent apart from the generation bump."""
    return replace(
        session,
        monitoring=False,
        phase=Phase.IDLE,
        generation=session.generation + 1,
    )


def enter_phase(session: MonitorSession, phase: Phase) -> MonitorSession:
    return replace(session, phase=phase)
