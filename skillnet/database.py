"""Database engine and helpers.

This module configures the SQLModel/SQLAlchemy engine from the
`DATABASE_URL` setting (a local SQLite file by default) and provides
the session dependency used by the HTTP controllers.
"""

from functools import lru_cache

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

from .config import get_settings


def build_engine(url: str) -> Engine:
    """Create an engine for `url`.

    SQLite connections are shared with FastAPI's worker threads, so the
    same-thread check is disabled for them.
    """
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=False, connect_args=connect_args)


@lru_cache
def get_engine() -> Engine:
    """Return the process-wide engine, built lazily on first use."""
    return build_engine(get_settings().DATABASE_URL)


def create_db_and_tables(engine: Engine = None):
    """Create database tables using SQLModel metadata.

    Production deployments with existing data should rely on a proper
    migration tool instead.
    """
    # registers the table classes on SQLModel.metadata
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(engine or get_engine())


def get_session():
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session and ensures it is closed when the
    request scope finishes.
    """
    with Session(get_engine()) as session:
        yield session
