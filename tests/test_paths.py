"""Tests for database path resolution."""

from activity_dashboards import paths


def test_env_override(monkeypatch, tmp_path):
    target = tmp_path / "custom.sqlite3"
    monkeypatch.setenv(paths.DB_PATH_ENV, str(target))
    assert paths.get_db_path() == target


def test_default_lives_in_data_dir(monkeypatch, tmp_path):
    monkeypatch.delenv(paths.DB_PATH_ENV, raising=False)
    monkeypatch.setattr(paths, "get_data_dir", lambda: tmp_path)
    assert paths.get_db_path() == tmp_path / "activities.sqlite3"
