"""Activity data sources and dashboard stores consumed by the engine."""

from __future__ import annotations

import logging
import sqlite3
from collections import defaultdict
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Mapping, Optional, Protocol

from .db import (
    database_connection,
    fetch_activity_metrics,
    fetch_activity_page,
    fetch_activity_tags,
    fetch_chart_tags,
    fetch_charts,
    fetch_dashboard,
    parse_timestamp,
)
from .errors import DataSourceError
from .models import (
    ActivityPage,
    ActivityQuery,
    ActivityRecord,
    AnalysisMetric,
    ChartConfig,
    DashboardDefinition,
    GroupBy,
    MetricValue,
)

logger = logging.getLogger(__name__)


class ActivityDataSource(Protocol):
    def find_activities(
        self, query: ActivityQuery, page_id: Optional[str] = None
    ) -> ActivityPage:
        """Return one page of accessible activities overlapping the window."""
        ...


class DashboardStore(Protocol):
    def get_dashboard(self, dashboard_id: str) -> Optional[DashboardDefinition]:
        ...


class InMemoryActivityDataSource:
    """Serve activities from a list, paging by ascending activity id."""

    def __init__(
        self,
        activities: Iterable[ActivityRecord],
        shares: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> None:
        self._activities = sorted(activities, key=lambda activity: activity.id)
        self._shares = {
            grantee: frozenset(tags) for grantee, tags in (shares or {}).items()
        }

    def find_activities(
        self, query: ActivityQuery, page_id: Optional[str] = None
    ) -> ActivityPage:
        matching = [
            activity
            for activity in self._activities
            if (page_id is None or activity.id > page_id)
            and self._is_accessible(activity, query.user_id)
            and _overlaps(activity, query)
        ]
        page = matching[: query.page_size]
        has_more = len(matching) > query.page_size
        return ActivityPage(
            activities=tuple(page),
            next_page_id=page[-1].id if has_more else None,
        )

    def _is_accessible(self, activity: ActivityRecord, user_id: str) -> bool:
        if activity.creator_id == user_id:
            return True
        return activity.has_any_tag(self._shares.get(user_id, frozenset()))


class InMemoryDashboardStore:
    def __init__(self, dashboards: Iterable[DashboardDefinition] = ()) -> None:
        self._dashboards = {dashboard.id: dashboard for dashboard in dashboards}

    def add(self, dashboard: DashboardDefinition) -> None:
        self._dashboards[dashboard.id] = dashboard

    def get_dashboard(self, dashboard_id: str) -> Optional[DashboardDefinition]:
        return self._dashboards.get(dashboard_id)


class SqliteActivityDataSource:
    """Activity pages read from the SQLite database."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    def find_activities(
        self, query: ActivityQuery, page_id: Optional[str] = None
    ) -> ActivityPage:
        try:
            with database_connection(self.db_path) as conn:
                rows = fetch_activity_page(
                    conn,
                    query.user_id,
                    limit=query.page_size + 1,
                    after_id=page_id,
                    range_start=query.time_range_start,
                    range_end=query.time_range_end,
                )
                page_rows = rows[: query.page_size]
                ids = [row["id"] for row in page_rows]
                tag_rows = fetch_activity_tags(conn, ids)
                metric_rows = fetch_activity_metrics(conn, ids)
        except sqlite3.Error as exc:
            logger.error("Failed to fetch activity page from %s: %s", self.db_path, exc)
            raise DataSourceError(f"Activity page fetch failed: {exc}") from exc

        tags: defaultdict[str, set[str]] = defaultdict(set)
        for row in tag_rows:
            tags[row["activity_id"]].add(row["tag_id"])
        metrics: defaultdict[str, list[MetricValue]] = defaultdict(list)
        for row in metric_rows:
            metrics[row["activity_id"]].append(
                MetricValue(metric_id=row["metric_id"], value=Decimal(row["value"]))
            )

        activities = tuple(
            ActivityRecord(
                id=row["id"],
                creator_id=row["creator_id"],
                title=row["title"],
                start_time=parse_timestamp(row["start_time"]),
                end_time=parse_timestamp(row["end_time"]),
                comment=row["comment"],
                tags=frozenset(tags[row["id"]]),
                metric_values=tuple(metrics[row["id"]]),
            )
            for row in page_rows
        )
        has_more = len(rows) > query.page_size
        return ActivityPage(
            activities=activities,
            next_page_id=ids[-1] if has_more else None,
        )


class SqliteDashboardStore:
    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    def get_dashboard(self, dashboard_id: str) -> Optional[DashboardDefinition]:
        try:
            with database_connection(self.db_path) as conn:
                row = fetch_dashboard(conn, dashboard_id)
                if row is None:
                    return None
                charts = tuple(
                    ChartConfig(
                        name=chart["name"],
                        group_by=GroupBy(chart["group_by"]),
                        analysis_metric=AnalysisMetric(chart["metric"]),
                        included_tags=frozenset(fetch_chart_tags(conn, chart["id"])),
                        metric_id=chart["metric_id"],
                    )
                    for chart in fetch_charts(conn, dashboard_id)
                )
        except sqlite3.Error as exc:
            raise DataSourceError(f"Dashboard fetch failed: {exc}") from exc
        return DashboardDefinition(id=row["id"], name=row["name"], charts=charts)


def _overlaps(activity: ActivityRecord, query: ActivityQuery) -> bool:
    if query.time_range_start is not None and activity.end_time is not None:
        if activity.end_time < query.time_range_start:
            return False
    if query.time_range_end is not None and activity.start_time is not None:
        if activity.start_time > query.time_range_end:
            return False
    return True
