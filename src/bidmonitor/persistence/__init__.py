"""Database persistence layer."""

from .db import create_db_engine, init_db, session_scope
from .models import Base, StateRecord
from .store import RECORD_VERSION, LoadResult, SaveResult, StateStore

__all__ = [
    "create_db_engine",
    "init_db",
    "session_scope",
    "Base",
    "StateRecord",
    "RECORD_VERSION",
    "LoadResult",
    "SaveResult",
    "StateStore",
]
