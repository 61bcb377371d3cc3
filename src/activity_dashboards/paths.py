"""Helpers for locating the activity database."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import PlatformDirs


APP_NAME = "ActivityDashboards"
DB_PATH_ENV = "ACTIVITY_DASHBOARDS_DB"


def get_data_dir() -> Path:
    """Return the per-user directory holding the database."""
    dirs = PlatformDirs(appname=APP_NAME, appauthor=False)
    path = Path(dirs.user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_db_path() -> Path:
    """Database location; ``ACTIVITY_DASHBOARDS_DB`` overrides the default."""
    override = os.environ.get(DB_PATH_ENV)
    if override:
        return Path(override).expanduser()
    return get_data_dir() / "activities.sqlite3"
