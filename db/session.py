"""
db/session.py

Lazily created engine and session factory for the database cache backend.

Nothing connects at import time; the first storage call builds the engine
from the resolved database URL.
"""

from __future__ import annotations

import os
import threading

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db.config import resolve_database_url

_lock = threading.Lock()
_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError:
        return default


def create_db_engine() -> Engine:
    database_url = resolve_database_url()
    if not database_url.startswith("postgresql"):
        raise RuntimeError("The database cache backend supports PostgreSQL URLs only.")

    return create_engine(
        database_url,
        echo=os.getenv("SQL_ECHO", "").strip().lower() in {"1", "true", "yes", "on"},
        pool_pre_ping=True,
        pool_recycle=_env_int("DB_POOL_RECYCLE", 1800),
        # Cache reads and writes are short single-row statements.
        pool_size=_env_int("DB_POOL_SIZE", 2),
        max_overflow=_env_int("DB_MAX_OVERFLOW", 4),
    )


def get_engine() -> Engine:
    """Return the shared engine, creating it on first call."""
    global _engine
    with _lock:
        if _engine is None:
            _engine = create_db_engine()
        return _engine


def SessionLocal() -> Session:
    """Open a new session bound to the shared engine."""
    global _session_factory
    engine = get_engine()
    with _lock:
        if _session_factory is None:
            _session_factory = sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False)
        factory = _session_factory
    return factory()


def dispose_engine() -> None:
    """
    Close pooled connections and forget the engine; the next call recreates it.
    """

    global _engine, _session_factory
    with _lock:
        if _engine is not None:
            _engine.dispose()
        _engine = None
        _session_factory = None
