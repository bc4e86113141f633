"""
Monitor loop: timer-driven polling of a procurement page.

Coordinates:
- Relay calls and request statistics
- Keyword matching and result deduplication
- Persistence after every state change
- A repeating asyncio timer whose ticks may overlap

Every start/stop bumps the session generation. A check remembers the
generation it started under and drops its response if that generation
has been superseded by the time the relay answers.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Protocol, Sequence
from urllib.parse import urlparse

from bidmonitor.core.config.models import MonitorConfig
from bidmonitor.core.errors import BidMonitorError
from bidmonitor.core.logging import get_contextual_logger, get_logger
from bidmonitor.core.relay.base import FetchResult, RelayError, basic_auth_header
from bidmonitor.core.relay.client import RelayClient

from . import state as st
from .export import export_results, results_to_text
from .matching import scan_page
from .state import MonitorSession, MonitorState, MonitoredWebsite, Phase, ResultItem, ResultType


logger = get_logger("monitor")

Notifier = Callable[[str, str], None]
Sleeper = Callable[[float], Awaitable[Any]]


class InvalidTargetError(BidMonitorError):
    """Target URL rejected before any network call."""
    pass


class StateBackend(Protocol):
    """What the loop needs from persistence (see persistence.StateStore)."""

    def load(self) -> Any:
        ...

    def save(self, state: MonitorState) -> Any:
        ...

    def clear(self) -> Any:
        ...


def validate_target_url(url: str | None) -> str:
    """Return the trimmed URL or raise InvalidTargetError."""
    url = (url or "").strip()
    if not url:
        raise InvalidTargetError("Please enter a valid URL")

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidTargetError("Please enter a valid URL (include http:// or https://)")
    return url


def log_notifier(message: str, level: str) -> None:
    """Default notifier: route user-facing messages to the log."""
    if level == "error":
        logger.error(message)
    elif level == "warning":
        logger.warning(message)
    else:
        logger.info(message)


@dataclass
class CheckReport:
    """Outcome of one monitor check."""

    url: str
    ok: bool
    new_items: tuple[ResultItem, ...] = ()
    matched: int = 0
    status: int | None = None
    stale: bool = False
    error: str | None = None


@dataclass
class ConnectionTestReport:
    """Outcome of a connection test."""

    url: str
    result: FetchResult
    preview: list[ResultItem]
    total_found: int


class MonitorLoop:
    """Polls one target through the relay and records new opportunities."""

    def __init__(
        self,
        client: RelayClient,
        store: StateBackend,
        *,
        config: MonitorConfig | None = None,
        notifier: Notifier | None = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        """Initialize the loop and load persisted state.

        Args:
            client: Relay client used for every fetch
            store: Persistence for the state record
            config: Defaults for interval, keywords, caps and site credentials
            notifier: Receives user-facing messages ``(message, level)``
            sleep: Awaitable sleep used by the timer
        """
        self.client = client
        self.store = store
        self.config = config or MonitorConfig()
        self.notify = notifier or log_notifier
        self._sleep = sleep
        self.auth_headers = basic_auth_header(self.config.username, self.config.password)

        self._session = MonitorSession()
        self._timer: asyncio.Task[None] | None = None
        self._inflight: set[asyncio.Task[Any]] = set()

        loaded = store.load()
        if not loaded.ok:
            logger.warning("Starting with empty state: %s", loaded.error)
        self._state: MonitorState = loaded.state

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def session(self) -> MonitorSession:
        return self._session

    @property
    def is_monitoring(self) -> bool:
        return self._session.monitoring

    @property
    def websites(self) -> tuple[MonitoredWebsite, ...]:
        return self._state.websites

    @property
    def results(self) -> tuple[ResultItem, ...]:
        return self._state.results

    def _commit(self, new_state: MonitorState) -> None:
        """Adopt a new state and persist it."""
        self._state = new_state
        saved = self.store.save(new_state)
        if not saved.ok:
            logger.warning("State not persisted: %s", saved.error)

    # -------------------------------------------------------------------------
    # Relay access
    # -------------------------------------------------------------------------

    async def _fetch(self, url: str) -> FetchResult:
        """Fetch through the relay, counting the attempt and its outcome."""
        self._commit(st.record_attempt(self._state))
        try:
            result = await self.client.fetch(url, headers=dict(self.auth_headers))
        except RelayError:
            self._commit(st.record_failure(self._state))
            raise
        self._commit(st.record_success(self._state))
        return result

    async def test_connection(self, url: str) -> ConnectionTestReport:
        """Fetch a page once and preview what monitoring would find.

        Preview items are not persisted.

        Raises:
            InvalidTargetError: On a bad URL
            RelayError: When the relay call fails
        """
        url = validate_target_url(url)
        self._session = st.enter_phase(self._session, Phase.TESTING)
        try:
            result = await self._fetch(url)
        finally:
            if self._session.phase == Phase.TESTING:
                self._session = st.enter_phase(self._session, Phase.IDLE)

        items: list[ResultItem] = []
        if result.is_html:
            items = scan_page(result.text, result.page_url, (), ResultType.TEST)

        return ConnectionTestReport(
            url=url,
            result=result,
            preview=items[: self.config.test_preview_limit],
            total_found=len(items),
        )

    # -------------------------------------------------------------------------
    # Checks and the timer
    # -------------------------------------------------------------------------

    async def check_for_updates(
        self,
        url: str | None = None,
        keywords: Sequence[str] | None = None,
        *,
        generation: int | None = None,
    ) -> CheckReport:
        """Run one check; failures are reported, never raised.

        Raises:
            InvalidTargetError: On a bad URL (before any network call)
        """
        url = validate_target_url(url or self._session.target_url)
        keywords = tuple(self._session.keywords if keywords is None else keywords)
        if generation is None:
            generation = self._session.generation

        log = get_contextual_logger("monitor", target=st.hostname(url), generation=generation)
        if generation != self._session.generation:
            log.debug("Skipping check from superseded session")
            return CheckReport(url=url, ok=False, stale=True)

        self._session = st.enter_phase(self._session, Phase.CHECKING)

        try:
            result = await self._fetch(url)
        except RelayError as e:
            if generation != self._session.generation:
                log.info("Discarding failure from superseded check")
                return CheckReport(url=url, ok=False, stale=True, error=str(e))
            log.warning("Monitoring check failed: %s", e)
            self.notify(f"Check failed: {e}", "error")
            return CheckReport(url=url, ok=False, status=e.status_code, error=str(e))
        finally:
            if self._session.phase == Phase.CHECKING:
                self._session = st.enter_phase(self._session, Phase.IDLE)

        if generation != self._session.generation:
            log.info("Discarding response from superseded check")
            return CheckReport(url=url, ok=True, status=result.status, stale=True)

        new_state = st.mark_checked(self._state, url)
        candidates: list[ResultItem] = []
        if result.is_html:
            candidates = scan_page(result.text, result.page_url, keywords, ResultType.MONITOR)
        new_state, added = st.merge_results(new_state, candidates, cap=self.config.result_cap)
        self._commit(new_state)

        log.info(
            "Checked %s: %d matching link(s), %d new",
            url, len(candidates), len(added),
        )
        for item in added:
            self.notify(f"New opportunity found: {item.title}", "success")

        return CheckReport(
            url=url,
            ok=True,
            new_items=added,
            matched=len(candidates),
            status=result.status,
        )

    async def start_monitoring(
        self,
        url: str,
        interval_ms: int | None = None,
        keywords: Iterable[str] | None = None,
    ) -> CheckReport:
        """Track the URL, arm the timer (interval > 0) and check once now.

        Raises:
            InvalidTargetError: On a bad URL
        """
        url = validate_target_url(url)
        interval_ms = self.config.interval_ms if interval_ms is None else interval_ms
        keywords = tuple(self.config.keywords if keywords is None else keywords)

        if st.find_website(self._state, url) is None:
            self.add_website(url)
        self._cancel_timer()
        self._session = st.begin_monitoring(self._session, url, interval_ms, keywords)
        generation = self._session.generation

        if interval_ms > 0:
            self._timer = asyncio.create_task(
                self._run_timer(url, interval_ms, keywords, generation)
            )

        report = await self.check_for_updates(url, keywords, generation=generation)
        self.notify("Monitoring started!", "success")
        return report

    def stop_monitoring(self) -> None:
        """Disarm the timer and turn monitoring off. Safe to repeat.

        Checks already in flight still complete, but their responses are
        discarded.
        """
        was_monitoring = self._session.monitoring
        self._cancel_timer()
        self._session = st.end_monitoring(self._session)
        if was_monitoring:
            self.notify("Monitoring stopped", "success")

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _run_timer(
        self,
        url: str,
        interval_ms: int,
        keywords: tuple[str, ...],
        generation: int,
    ) -> None:
        """Spawn a check every interval; a slow check never delays the next tick."""
        while True:
            await self._sleep(interval_ms / 1000)
            if generation != self._session.generation:
                return
            task = asyncio.create_task(self._tick(url, keywords, generation))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    async def _tick(self, url: str, keywords: tuple[str, ...], generation: int) -> None:
        try:
            await self.check_for_updates(url, keywords, generation=generation)
        except Exception:
            logger.exception("Monitoring tick failed for %s", url)

    async def wait(self) -> None:
        """Block until the timer stops (e.g. on cancellation)."""
        timer = self._timer
        if timer is not None:
            await asyncio.wait({timer})

    async def close(self) -> None:
        """Stop monitoring, let in-flight checks finish, release the client."""
        self.stop_monitoring()
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        await self.client.close()

    # -------------------------------------------------------------------------
    # Websites and results
    # -------------------------------------------------------------------------

    def add_website(self, url: str) -> tuple[MonitoredWebsite, bool]:
        """Track a website; an already tracked URL is left as is.

        Returns:
            Tuple of (website, added)
        """
        url = validate_target_url(url)
        existing = st.find_website(self._state, url)
        if existing is not None:
            self.notify("Website already in your list", "info")
            return existing, False

        website = MonitoredWebsite.create(url)
        new_state, _ = st.add_website(self._state, website)
        self._commit(new_state)
        self.notify(f"Added {website.name} to your websites", "success")
        return website, True

    def remove_website(self, website_id: str) -> bool:
        new_state, removed = st.remove_website(self._state, website_id)
        if removed:
            self._commit(new_state)
            self.notify("Website removed", "success")
        return removed

    def clear_results(self) -> None:
        self._commit(st.clear_results(self._state))
        self.notify("All results cleared", "success")

    def export_results(self, path: Path | str | None = None) -> Path | None:
        """Export results to CSV; no file is written when there are none."""
        written = export_results(self._state.results, path)
        if written is not None:
            self.notify(f"Exported {len(self._state.results)} results to CSV", "success")
        return written

    def copy_text(self) -> str:
        return results_to_text(self._state.results)

    def reset(self) -> bool:
        """Clear websites, results and stats from storage."""
        cleared = self.store.clear()
        if not cleared.ok:
            logger.error("Failed to clear storage: %s", cleared.error)
            return False
        self._state = MonitorState()
        return True
