"""SQLite database layer for activities and dashboards."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, Optional, Sequence

from .models import ActivityRecord, DashboardDefinition


DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    enable_foreign_keys(conn)
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


def enable_foreign_keys(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA foreign_keys = ON;")


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS activities (
            id TEXT PRIMARY KEY,
            creator_id TEXT NOT NULL,
            title TEXT,
            start_time TEXT,
            end_time TEXT,
            comment TEXT,
            deleted INTEGER NOT NULL DEFAULT 0
        );

        CREATE INDEX IF NOT EXISTS idx_activities_creator
            ON activities(creator_id);

        CREATE TABLE IF NOT EXISTS activity_tags (
            activity_id TEXT NOT NULL REFERENCES activities(id) ON DELETE CASCADE,
            tag_id TEXT NOT NULL,
            PRIMARY KEY (activity_id, tag_id)
        );

        CREATE TABLE IF NOT EXISTS activity_metrics (
            activity_id TEXT NOT NULL REFERENCES activities(id) ON DELETE CASCADE,
            metric_id TEXT NOT NULL,
            value TEXT NOT NULL,
            PRIMARY KEY (activity_id, metric_id)
        );

        CREATE TABLE IF NOT EXISTS tag_shares (
            tag_id TEXT NOT NULL,
            grantee_id TEXT NOT NULL,
            PRIMARY KEY (tag_id, grantee_id)
        );

        CREATE TABLE IF NOT EXISTS dashboards (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            creator_id TEXT NOT NULL,
            deleted INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS charts (
            id INTEGER PRIMARY KEY,
            dashboard_id TEXT NOT NULL REFERENCES dashboards(id) ON DELETE CASCADE,
            position INTEGER NOT NULL,
            name TEXT NOT NULL,
            group_by TEXT NOT NULL,
            metric TEXT NOT NULL,
            metric_id TEXT,
            deleted INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS chart_tags (
            chart_id INTEGER NOT NULL REFERENCES charts(id) ON DELETE CASCADE,
            tag_id TEXT NOT NULL,
            PRIMARY KEY (chart_id, tag_id)
        );
        """
    )


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime(DATETIME_FMT)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.strptime(value, DATETIME_FMT).replace(tzinfo=timezone.utc)


def insert_activities(
    conn: sqlite3.Connection, activities: Iterable[ActivityRecord]
) -> None:
    activities = list(activities)
    conn.executemany(
        """
        INSERT INTO activities (
            id,
            creator_id,
            title,
            start_time,
            end_time,
            comment
        ) VALUES (?, ?, ?, ?, ?, ?)
        """,
        [
            (
                activity.id,
                activity.creator_id,
                activity.title,
                format_timestamp(activity.start_time),
                format_timestamp(activity.end_time),
                activity.comment,
            )
            for activity in activities
        ],
    )
    conn.executemany(
        "INSERT INTO activity_tags (activity_id, tag_id) VALUES (?, ?)",
        [(activity.id, tag) for activity in activities for tag in activity.tags],
    )
    conn.executemany(
        "INSERT INTO activity_metrics (activity_id, metric_id, value) VALUES (?, ?, ?)",
        [
            (activity.id, metric.metric_id, str(metric.value))
            for activity in activities
            for metric in activity.metric_values
        ],
    )


def delete_activity(conn: sqlite3.Connection, activity_id: str) -> None:
    """Soft-delete an activity so generation no longer sees it."""
    cur = conn.execute(
        "UPDATE activities SET deleted = 1 WHERE id = ?", (activity_id,)
    )
    if cur.rowcount == 0:
        raise ValueError(f"No activity found for id={activity_id}")


def share_tag(conn: sqlite3.Connection, tag_id: str, grantee_id: str) -> None:
    conn.execute(
        "INSERT OR IGNORE INTO tag_shares (tag_id, grantee_id) VALUES (?, ?)",
        (tag_id, grantee_id),
    )


def insert_dashboard(
    conn: sqlite3.Connection, dashboard: DashboardDefinition, creator_id: str
) -> None:
    conn.execute(
        "INSERT INTO dashboards (id, name, creator_id) VALUES (?, ?, ?)",
        (dashboard.id, dashboard.name, creator_id),
    )
    for position, chart in enumerate(dashboard.charts):
        cur = conn.execute(
            """
            INSERT INTO charts (
                dashboard_id,
                position,
                name,
                group_by,
                metric,
                metric_id
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                dashboard.id,
                position,
                chart.name,
                chart.group_by.value,
                chart.analysis_metric.value,
                chart.metric_id,
            ),
        )
        conn.executemany(
            "INSERT INTO chart_tags (chart_id, tag_id) VALUES (?, ?)",
            [(cur.lastrowid, tag) for tag in sorted(chart.included_tags)],
        )


def fetch_activity_page(
    conn: sqlite3.Connection,
    user_id: str,
    *,
    limit: int,
    after_id: Optional[str] = None,
    range_start: Optional[datetime] = None,
    range_end: Optional[datetime] = None,
) -> list[sqlite3.Row]:
    """Return up to ``limit`` accessible activities overlapping the window.

    Rows are ordered by id; ``after_id`` continues from the previous page.
    """
    start_iso = format_timestamp(range_start)
    end_iso = format_timestamp(range_end)
    return list(
        conn.execute(
            """
            SELECT
                a.id,
                a.creator_id,
                a.title,
                a.start_time,
                a.end_time,
                a.comment
            FROM activities a
            WHERE a.deleted = 0
                AND (
                    a.creator_id = ?
                    OR EXISTS (
                        SELECT 1
                        FROM activity_tags t
                        JOIN tag_shares s ON s.tag_id = t.tag_id
                        WHERE t.activity_id = a.id AND s.grantee_id = ?
                    )
                )
                AND (? IS NULL OR a.end_time IS NULL OR a.end_time >= ?)
                AND (? IS NULL OR a.start_time IS NULL OR a.start_time <= ?)
                AND (? IS NULL OR a.id > ?)
            ORDER BY a.id
            LIMIT ?;
            """,
            (
                user_id,
                user_id,
                start_iso,
                start_iso,
                end_iso,
                end_iso,
                after_id,
                after_id,
                limit,
            ),
        )
    )


def fetch_activity_tags(
    conn: sqlite3.Connection, activity_ids: Sequence[str]
) -> list[sqlite3.Row]:
    if not activity_ids:
        return []
    placeholders = ", ".join("?" for _ in activity_ids)
    return list(
        conn.execute(
            f"SELECT activity_id, tag_id FROM activity_tags WHERE activity_id IN ({placeholders})",
            list(activity_ids),
        )
    )


def fetch_activity_metrics(
    conn: sqlite3.Connection, activity_ids: Sequence[str]
) -> list[sqlite3.Row]:
    if not activity_ids:
        return []
    placeholders = ", ".join("?" for _ in activity_ids)
    return list(
        conn.execute(
            f"""
            SELECT activity_id, metric_id, value
            FROM activity_metrics
            WHERE activity_id IN ({placeholders})
            ORDER BY metric_id
            """,
            list(activity_ids),
        )
    )


def fetch_dashboard(conn: sqlite3.Connection, dashboard_id: str) -> Optional[sqlite3.Row]:
    return conn.execute(
        "SELECT id, name, creator_id FROM dashboards WHERE id = ? AND deleted = 0",
        (dashboard_id,),
    ).fetchone()


def fetch_charts(conn: sqlite3.Connection, dashboard_id: str) -> list[sqlite3.Row]:
    """Fetch a dashboard's live charts in their stored order."""
    return list(
        conn.execute(
            """
            SELECT id, name, group_by, metric, metric_id
            FROM charts
            WHERE dashboard_id = ? AND deleted = 0
            ORDER BY position;
            """,
            (dashboard_id,),
        )
    )


def fetch_chart_tags(conn: sqlite3.Connection, chart_id: int) -> list[str]:
    return [
        row["tag_id"]
        for row in conn.execute(
            "SELECT tag_id FROM chart_tags WHERE chart_id = ? ORDER BY tag_id",
            (chart_id,),
        )
    ]
