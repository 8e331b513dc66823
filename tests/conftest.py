"""Shared pytest fixtures for EventBoard."""

from __future__ import annotations

import secrets
import sys
import uuid
from datetime import timedelta
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from eventboard import api, database, storage
from eventboard.crud import Identity
from eventboard.models import AuthSession, Base, User
from eventboard.utils import utcnow


@pytest.fixture(scope="session", autouse=True)
def configure_in_memory_db():
    """Reuse a single in-memory SQLite database for fast, isolated tests."""

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    session_factory = database.make_session_factory(engine)
    database.engine = engine
    database.SessionLocal = session_factory
    storage.engine = engine
    api.SessionLocal = session_factory
    Base.metadata.create_all(bind=engine)
    yield
    session_factory.remove()


@pytest.fixture(autouse=True)
def clean_database():
    """Reset all tables between tests to guarantee isolation."""

    Base.metadata.drop_all(bind=database.engine)
    Base.metadata.create_all(bind=database.engine)
    yield


@pytest.fixture()
def make_user():
    """Create a user plus a provider-issued session; return identity and headers."""

    def _make_user(
        name: str = "Ada Lovelace",
        *,
        email: str | None = None,
        expired: bool = False,
    ) -> tuple[Identity, dict[str, str]]:
        # A standalone session so the scoped session used by tests stays open.
        session = database.SessionLocal.session_factory()
        user = User(
            id=str(uuid.uuid4()),
            name=name,
            email=email or f"{uuid.uuid4().hex[:10]}@example.com",
        )
        token = secrets.token_urlsafe(24)
        lifetime = timedelta(hours=-1) if expired else timedelta(days=1)
        session.add(user)
        session.add(AuthSession(token=token, user=user, expires_at=utcnow() + lifetime))
        session.commit()
        identity = Identity(id=user.id, name=user.name, email=user.email)
        session.close()
        return identity, {"Authorization": f"Bearer {token}"}

    return _make_user
