"""Paginated retrieval of activities clipped to a generation window."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from typing import Callable, Iterable, Iterator, Optional

from .datasource import ActivityDataSource
from .errors import GenerationTimeoutError
from .models import ActivityPage, ActivityQuery, ActivityRecord, GenerationCriteria

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 500


class ActivityFinder:
    """Fetch every activity visible to a user within a time window."""

    def __init__(
        self,
        data_source: ActivityDataSource,
        page_size: int = DEFAULT_PAGE_SIZE,
        *,
        fetch_deadline: Optional[timedelta] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.data_source = data_source
        self.page_size = page_size
        self.fetch_deadline = fetch_deadline
        self._clock = clock

    def find(self, criteria: GenerationCriteria) -> list[ActivityRecord]:
        activities: list[ActivityRecord] = []
        for page in self.pages(criteria):
            activities.extend(clip_all(page.activities, criteria))
        if criteria.required_tags:
            activities = [
                activity
                for activity in activities
                if activity.has_any_tag(criteria.required_tags)
            ]
        logger.debug(
            "Found %d measurable activities for user=%s",
            len(activities),
            criteria.user_id,
        )
        return activities

    def pages(self, criteria: GenerationCriteria) -> Iterator[ActivityPage]:
        """Yield pages until the source stops returning a continuation token."""
        query = ActivityQuery(
            user_id=criteria.user_id,
            page_size=self.page_size,
            time_range_start=criteria.time_range_start,
            time_range_end=criteria.time_range_end,
        )
        started = self._clock()
        page_id: Optional[str] = None
        while True:
            self._check_deadline(started)
            page = self.data_source.find_activities(query, page_id)
            logger.debug(
                "Fetched page after=%s with %d activities", page_id, len(page.activities)
            )
            yield page
            if not page.next_page_id:
                return
            page_id = page.next_page_id

    def _check_deadline(self, started: float) -> None:
        if self.fetch_deadline is None:
            return
        elapsed = self._clock() - started
        if elapsed > self.fetch_deadline.total_seconds():
            raise GenerationTimeoutError(
                f"Activity fetch exceeded {self.fetch_deadline.total_seconds():.1f}s"
            )


def clip_all(
    activities: Iterable[ActivityRecord], criteria: GenerationCriteria
) -> list[ActivityRecord]:
    clipped = (
        clip_to_range(activity, criteria.time_range_start, criteria.time_range_end)
        for activity in activities
    )
    return [activity for activity in clipped if activity.is_measurable]


def clip_to_range(
    activity: ActivityRecord,
    range_start: Optional[datetime],
    range_end: Optional[datetime],
) -> ActivityRecord:
    """Restrict the activity interval to the window; absent bounds do not clip."""
    return activity.with_interval(
        _latest(range_start, activity.start_time),
        _earliest(range_end, activity.end_time),
    )


def _latest(*candidates: Optional[datetime]) -> Optional[datetime]:
    present = [value for value in candidates if value is not None]
    return max(present) if present else None


def _earliest(*candidates: Optional[datetime]) -> Optional[datetime]:
    present = [value for value in candidates if value is not None]
    return min(present) if present else None
