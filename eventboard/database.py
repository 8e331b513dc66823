"""Engine and session plumbing for the EventBoard SQLite store."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import scoped_session, sessionmaker

from .config import settings


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


@event.listens_for(Engine, "connect")
def _register_sqlite_functions(dbapi_connection, _connection_record) -> None:
    # SQLite's builtin lower() only folds ASCII; search relies on full case folding.
    if isinstance(dbapi_connection, sqlite3.Connection):
        dbapi_connection.create_function(
            "lower", 1, _unicode_lower, deterministic=True
        )


def build_engine(database_path) -> Engine:
    return create_engine(
        f"sqlite:///{database_path}",
        connect_args={"check_same_thread": False},
    )


def make_session_factory(bind: Engine) -> scoped_session:
    return scoped_session(
        sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)
    )


engine = build_engine(settings.database_path)
SessionLocal = make_session_factory(engine)


@contextmanager
def get_session():
    """Yield a session that commits on success and rolls back on error."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
