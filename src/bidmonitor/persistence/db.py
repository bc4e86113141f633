"""
Database connection and session management.

Provides engine creation with SQLite tuning and session lifecycle
management for the state store.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator

import orjson
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from .models import Base


DEFAULT_DATABASE_URL = "sqlite:///data/bidmonitor.db"


def json_serializer(obj: Any) -> str:
    return orjson.dumps(obj).decode("utf-8")


# =============================================================================
# SQLite Configuration
# =============================================================================


def _configure_sqlite(engine: Engine) -> None:
    """Configure SQLite for better reliability.

    Enables:
    - WAL mode so readers don't block the writer
    - Synchronous mode for durability
    """
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()


def _is_memory_url(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


# =============================================================================
# Engine Creation
# =============================================================================


def create_db_engine(url: str = DEFAULT_DATABASE_URL, echo: bool = False) -> Engine:
    """Create a new database engine.

    Args:
        url: SQLAlchemy database URL
        echo: Whether to log SQL statements

    Returns:
        SQLAlchemy Engine instance
    """
    json_options = {
        "json_serializer": json_serializer,
        "json_deserializer": orjson.loads,
    }

    if _is_memory_url(url):
        # One shared connection, or every session would see a fresh database
        return create_engine(
            "sqlite://",
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            **json_options,
        )

    if url.startswith("sqlite:///"):
        db_path = url.replace("sqlite:///", "", 1)
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            **json_options,
        )
        _configure_sqlite(engine)
        return engine

    return create_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        **json_options,
    )


# =============================================================================
# Session Management
# =============================================================================


@contextmanager
def session_scope(engine: Engine) -> Generator[Session, None, None]:
    """Transactional session bound to ``engine``.

    Usage:
        with session_scope(engine) as session:
            session.get(...)

    Yields:
        SQLAlchemy Session instance
    """
    session = Session(bind=engine, autoflush=False, expire_on_commit=False)

    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# =============================================================================
# Database Initialization
# =============================================================================


def init_db(engine: Engine) -> None:
    """Create all tables if they don't exist."""
    Base.metadata.create_all(bind=engine)
