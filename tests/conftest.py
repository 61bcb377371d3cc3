"""Shared fixtures for dashboard generation tests."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from activity_dashboards.models import ActivityRecord, MetricValue

T0 = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def make_activity(
    activity_id,
    start=T0,
    duration=timedelta(hours=1),
    *,
    end=None,
    tags=(),
    metrics=None,
    creator_id="u1",
):
    if end is None and start is not None and duration is not None:
        end = start + duration
    return ActivityRecord(
        id=activity_id,
        creator_id=creator_id,
        title=f"Activity {activity_id}",
        start_time=start,
        end_time=end,
        tags=frozenset(tags),
        metric_values=tuple(
            MetricValue(metric_id=key, value=Decimal(str(value)))
            for key, value in (metrics or {}).items()
        ),
    )


@pytest.fixture
def db_path(tmp_path):
    """Path to an empty SQLite database in a temp directory."""
    return tmp_path / "activities.sqlite3"
