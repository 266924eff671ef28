"""
Database session management for Courtside.

Provides the SQLAlchemy engine and session factory, configured from
config.py. The engine is created on first use so importing this module
does not need a database driver.

Usage:
    # As a context manager (recommended for scripts)
    from courtside.db import get_session

    with get_session() as session:
        tournament = session.get(Tournament, tournament_id)
        # Commits automatically on exit, rolls back on exception
"""

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from courtside.config import settings


def get_engine() -> Engine:
    """
    Create SQLAlchemy engine with connection pooling.

    The engine is configured with:
    - Connection pool sized from settings
    - SQL echo only when LOG_LEVEL=DEBUG
    - Pre-ping to verify connections before use (handles stale connections)
    """
    kwargs = {
        "pool_pre_ping": True,
        "echo": settings.log_level == "DEBUG",
    }
    if not settings.database_url.startswith("sqlite"):
        kwargs["pool_size"] = settings.db_pool_size
        kwargs["max_overflow"] = settings.db_max_overflow
    return create_engine(settings.database_url, **kwargs)


_engine: Optional[Engine] = None


def _get_engine() -> Engine:
    """Get or create the singleton engine instance."""
    global _engine
    if _engine is None:
        _engine = get_engine()
    return _engine


# Session factory; bound lazily in get_session()
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
)


def _new_session() -> Session:
    return SessionLocal(bind=_get_engine())


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Automatically commits on successful exit, rolls back on exception.

    Example:
        with get_session() as session:
            outcome = confirm_result(session, result_id, verifier_id=user_id)

    Raises:
        Any exception from the database operation (after rollback)
    """
    session = _new_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
