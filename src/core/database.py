"""Database connection and session management.

This module handles the database connection using SQLAlchemy. The engine and
session factory are created once per process and shared by every request.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DisconnectionError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config import DATA_DIR, DATABASE_URL, DB_TIMEOUT_SECONDS
from core.exceptions import UnavailableError
from models.base import Base
# Import models to ensure they are registered with Base.metadata
import models  # noqa: F401

logger = logging.getLogger(__name__)


def create_db_engine(url: str = DATABASE_URL) -> Engine:
    """Create an engine with a bounded wait on the store.

    Args:
        url: SQLAlchemy database URL.

    Returns:
        Configured Engine.
    """
    if url.startswith("sqlite"):
        if url in ("sqlite://", "sqlite:///:memory:"):
            # A single shared connection keeps the in-memory database alive
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        DATA_DIR.mkdir(parents=True, exist_ok=True)
        return create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": DB_TIMEOUT_SECONDS},
        )
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_timeout=DB_TIMEOUT_SECONDS,
        connect_args={"connect_timeout": int(DB_TIMEOUT_SECONDS)},
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """Build the session factory handed to repositories."""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create tables if they do not exist."""
    Base.metadata.create_all(bind=engine)


@contextmanager
def session_scope(session_factory: sessionmaker) -> Iterator[Session]:
    """Open a short-lived session and translate store outages.

    Raises:
        UnavailableError: If the store is unreachable, busy past the timeout,
            or the connection pool is exhausted.
    """
    db = session_factory()
    try:
        yield db
    except (OperationalError, DisconnectionError, PoolTimeoutError) as e:
        db.rollback()
        logger.warning("Database unavailable: %s", e)
        raise UnavailableError(f"Database unavailable: {e}") from e
    finally:
        db.close()
