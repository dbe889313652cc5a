"""Database engine and session factory construction.

The engine is built from the configured DATABASE_URL. Every dialect gets a
connect timeout and PostgreSQL a statement timeout. SQLite URLs get
thread-safe connection arguments; in-memory SQLite shares one connection
so every session sees the same database.
"""

import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def build_connect_args(
    database_url: str,
    connect_timeout: int = 10,
    statement_timeout_ms: int = 5000,
) -> dict:
    """DBAPI connect arguments that bound every store call.

    Store calls run on the event loop, so each dialect gets a connect
    timeout, and PostgreSQL also gets a server-side statement timeout.

    Examples:
        >>> build_connect_args("sqlite:///tradealarm.db", connect_timeout=5)
        {'check_same_thread': False, 'timeout': 5}
        >>> build_connect_args("postgresql://db/alarm", 10, 5000)
        {'connect_timeout': 10, 'options': '-c statement_timeout=5000'}
    """
    if database_url.startswith("sqlite"):
        # sqlite3 `timeout` bounds the wait on a locked database file
        return {"check_same_thread": False, "timeout": connect_timeout}

    if database_url.startswith("postgresql"):
        return {
            "connect_timeout": connect_timeout,
            "options": f"-c statement_timeout={statement_timeout_ms}",
        }

    return {}


def create_db_engine(
    database_url: str,
    echo: bool = False,
    connect_timeout: int = 10,
    statement_timeout_ms: int = 5000,
) -> Engine:
    """Create SQLAlchemy engine for the given URL.

    Args:
        database_url: SQLAlchemy URL (sqlite:///file.db, postgresql://...)
        echo: Log every SQL statement (debugging only)
        connect_timeout: Seconds to wait for a connection (or a sqlite lock)
        statement_timeout_ms: PostgreSQL statement_timeout

    Returns:
        Configured engine

    Example:
        >>> engine = create_db_engine("sqlite://")
        >>> init_db(engine)
    """
    connect_args = build_connect_args(database_url, connect_timeout, statement_timeout_ms)

    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": connect_args}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **kwargs)

    # pool_pre_ping: Check connection health before using
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        pool_timeout=connect_timeout,
        connect_args=connect_args,
        echo=echo,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to engine; sessions do not expire on commit."""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


def init_db(engine: Engine):
    """Create the users and session_logs tables if they don't exist."""
    from .models import Base
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables initialized", extra={"url": engine.url.render_as_string(hide_password=True)})


def check_connection(engine: Engine) -> bool:
    """Test database connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
