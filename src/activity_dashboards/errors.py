"""Errors surfaced by dashboard generation."""

from __future__ import annotations


class GenerationError(Exception):
    """Whole-operation failure; no partial dashboard accompanies it."""


class DataSourceError(GenerationError):
    """An activity page or dashboard could not be read from storage."""


class GenerationTimeoutError(GenerationError):
    """The caller-level fetch deadline elapsed before pagination finished."""


class DashboardNotFoundError(GenerationError):
    def __init__(self, dashboard_id: str) -> None:
        super().__init__(f"No dashboard found for id={dashboard_id}")
        self.dashboard_id = dashboard_id
