"""
Key-value persistence for the monitor state.

One versioned record per namespace. Load and save report success or
failure explicitly; storage problems are logged and never raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from bidmonitor.core.logging import get_logger
from bidmonitor.core.monitor.state import RESULT_CAP, MonitorState

from .db import create_db_engine, init_db, session_scope
from .models import StateRecord


logger = get_logger("persistence")

RECORD_VERSION = 1
DEFAULT_NAMESPACE = "bidmonitor_state"


@dataclass
class LoadResult:
    """Outcome of a load. ``state`` is empty whenever ``ok`` is False."""

    ok: bool
    state: MonitorState = field(default_factory=MonitorState)
    error: str | None = None
    found: bool = False


@dataclass
class SaveResult:
    """Outcome of a save or clear."""

    ok: bool
    error: str | None = None


class StateStore:
    """Persists MonitorState under a single namespaced record."""

    def __init__(
        self,
        engine: Engine,
        namespace: str = DEFAULT_NAMESPACE,
        result_cap: int = RESULT_CAP,
    ):
        self.engine = engine
        self.namespace = namespace
        self.result_cap = result_cap
        self._schema_ready = False

    @classmethod
    def from_url(
        cls,
        url: str,
        namespace: str = DEFAULT_NAMESPACE,
        result_cap: int = RESULT_CAP,
        echo: bool = False,
    ) -> "StateStore":
        return cls(create_db_engine(url, echo=echo), namespace=namespace, result_cap=result_cap)

    def _ensure_schema(self) -> None:
        if not self._schema_ready:
            init_db(self.engine)
            self._schema_ready = True

    def load(self) -> LoadResult:
        """Load the record; missing, corrupt or foreign-version records load empty."""
        try:
            self._ensure_schema()
            with session_scope(self.engine) as session:
                record = session.get(StateRecord, self.namespace)
                if record is None:
                    return LoadResult(ok=True)
                version = record.version
                payload = record.payload
        except (SQLAlchemyError, ValueError) as e:
            logger.error("Failed to load state: %s", e)
            return LoadResult(ok=False, error=str(e))

        if version != RECORD_VERSION:
            message = f"Unsupported state record version {version} (expected {RECORD_VERSION})"
            logger.warning(message)
            return LoadResult(ok=False, error=message, found=True)

        try:
            if not isinstance(payload, dict):
                raise TypeError("state payload is not an object")
            state = MonitorState.from_dict(payload)
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Stored state is corrupt: %s", e)
            return LoadResult(ok=False, error=f"Corrupt state record: {e}", found=True)

        return LoadResult(ok=True, state=state, found=True)

    def save(self, state: MonitorState) -> SaveResult:
        """Write the record, keeping only the most recent results."""
        payload = state.to_dict(result_cap=self.result_cap)
        try:
            self._ensure_schema()
            with session_scope(self.engine) as session:
                record = session.get(StateRecord, self.namespace)
                if record is None:
                    session.add(StateRecord(
                        namespace=self.namespace,
                        version=RECORD_VERSION,
                        payload=payload,
                    ))
                else:
                    record.version = RECORD_VERSION
                    record.payload = payload
        except SQLAlchemyError as e:
            logger.error("Failed to save state: %s", e)
            return SaveResult(ok=False, error=str(e))
        return SaveResult(ok=True)

    def clear(self) -> SaveResult:
        """Delete the record (websites, results and stats)."""
        try:
            self._ensure_schema()
            with session_scope(self.engine) as session:
                record = session.get(StateRecord, self.namespace)
                if record is not None:
                    session.delete(record)
        except SQLAlchemyError as e:
            logger.error("Failed to clear state: %s", e)
            return SaveResult(ok=False, error=str(e))
        return SaveResult(ok=True)
