from __future__ import annotations

import types

import pytest
from sqlalchemy import URL, create_engine, inspect, text
from sqlalchemy.engine import Engine

from eventboard import database, storage
from eventboard.models import Base

HEAD = "0002_invitations"


def _patch_db(monkeypatch: pytest.MonkeyPatch, engine: Engine, db_path) -> None:
    monkeypatch.setattr(storage, "engine", engine)
    monkeypatch.setattr(database, "engine", engine)
    fake_settings = types.SimpleNamespace(database_path=db_path)
    monkeypatch.setattr(storage, "settings", fake_settings)


def _get_version(engine: Engine) -> str | None:
    with engine.connect() as conn:
        return conn.execute(text("select version_num from alembic_version")).scalar()


def test_upgrade_database_stamps_existing_db(monkeypatch, tmp_path):
    db_path = tmp_path / "existing.sqlite"
    engine = create_engine(f"sqlite:///{db_path}", future=True)
    Base.metadata.create_all(bind=engine)  # existing schema without Alembic tracking
    _patch_db(monkeypatch, engine, db_path)

    actions = storage.upgrade_database(make_backup=False)

    assert "Stamped existing database to Alembic head" in actions
    assert _get_version(engine) == HEAD


def test_upgrade_database_creates_fresh_schema(monkeypatch, tmp_path):
    db_path = tmp_path / "fresh.sqlite"
    engine = create_engine(f"sqlite:///{db_path}", future=True)
    _patch_db(monkeypatch, engine, db_path)

    actions = storage.upgrade_database(make_backup=False)

    assert "Ran Alembic upgrade to head (fresh database)" in actions
    assert _get_version(engine) == HEAD
    inspector = inspect(engine)
    for table in ("users", "sessions", "events", "rsvps", "invitations"):
        assert inspector.has_table(table)
    rsvp_uniques = inspector.get_unique_constraints("rsvps")
    assert any(set(u["column_names"]) == {"event_id", "user_id"} for u in rsvp_uniques)


def test_upgrade_database_backs_up_existing_file(monkeypatch, tmp_path):
    db_path = tmp_path / "backup.sqlite"
    engine = create_engine(f"sqlite:///{db_path}", future=True)
    _patch_db(monkeypatch, engine, db_path)
    storage.upgrade_database(make_backup=False)

    actions = storage.upgrade_database(make_backup=True)

    assert (tmp_path / "backup.sqlite.bak").exists()
    assert "Applied Alembic migrations to head" in actions


def test_upgrade_database_handles_reserved_characters_in_path(monkeypatch, tmp_path):
    db_path = tmp_path / "events:2030%.sqlite"
    engine = create_engine(URL.create("sqlite", database=str(db_path)))
    _patch_db(monkeypatch, engine, db_path)

    actions = storage.upgrade_database(make_backup=False)

    assert "Ran Alembic upgrade to head (fresh database)" in actions
    assert _get_version(engine) == HEAD
    assert db_path.exists()


def test_alembic_url_escapes_interpolation_markers():
    engine = create_engine(URL.create("sqlite", database="/tmp/a%3Ab.sqlite"))
    rendered = storage.alembic_url(engine)
    assert "%%" in rendered
    assert "%" not in rendered.replace("%%", "")
