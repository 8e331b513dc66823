from __future__ import annotations

import pytest

from eventboard import config


@pytest.fixture()
def isolated_env(monkeypatch, tmp_path):
    for key in list(config.DEFAULTS) + ["CONFIG", "DB", "DATA_DIR"]:
        monkeypatch.delenv(f"EVENTBOARD_{key.upper()}", raising=False)
    monkeypatch.setenv("EVENTBOARD_BASE_DIR", str(tmp_path))
    return tmp_path


def test_defaults_apply_without_config(isolated_env):
    settings = config.load_settings()
    assert settings.events_per_page == 12
    assert settings.max_events_per_page == 100
    assert settings.database_path == isolated_env / "data" / "eventboard.db"
    assert settings.data_dir.is_dir()


def test_toml_then_environment_override(isolated_env, monkeypatch):
    config_path = isolated_env / "eventboard.toml"
    config_path.write_text(
        'events_per_page = 20\napp_host = "127.0.0.1"\ndatabase_path = "db/events.sqlite"\n'
    )
    settings = config.load_settings()
    assert settings.events_per_page == 20
    assert settings.app_host == "127.0.0.1"
    assert settings.database_path == isolated_env / "db" / "events.sqlite"

    monkeypatch.setenv("EVENTBOARD_EVENTS_PER_PAGE", "30")
    assert config.load_settings().events_per_page == 30


def test_page_size_bounds_are_validated(isolated_env, monkeypatch):
    monkeypatch.setenv("EVENTBOARD_EVENTS_PER_PAGE", "50")
    monkeypatch.setenv("EVENTBOARD_MAX_EVENTS_PER_PAGE", "10")
    with pytest.raises(ValueError):
        config.load_settings()


def test_update_config_file_ignores_unknown_keys(isolated_env, monkeypatch):
    target = isolated_env / "custom.toml"
    monkeypatch.setattr(config, "settings", config.load_settings())

    updated = config.update_config_file(
        {"events_per_page": "15", "not_a_setting": 1}, path=target
    )

    assert updated.events_per_page == 15
    contents = target.read_text()
    assert "events_per_page = 15" in contents
    assert "not_a_setting" not in contents
    assert config.settings_as_dict(updated)["events_per_page"] == 15
