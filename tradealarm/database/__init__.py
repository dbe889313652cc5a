"""Database module for the session ledger.

Provides SQLAlchemy models, engine construction, the abstract LedgerStore
interface and its SQLAlchemy-backed repository.
"""

from .models import Base, UserRecord, SessionLogRecord
from .connection import (
    build_connect_args,
    check_connection,
    create_db_engine,
    create_session_factory,
    init_db,
)
from .store import LedgerStore
from .repositories import SessionRepository

__all__ = [
    "Base",
    "UserRecord",
    "SessionLogRecord",
    "build_connect_args",
    "create_db_engine",
    "create_session_factory",
    "init_db",
    "check_connection",
    "LedgerStore",
    "SessionRepository",
]
