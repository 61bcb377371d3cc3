"""Domain models for activities, dashboards and generated charts."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional


class GroupBy(str, Enum):
    TAG = "TAG"
    SELF = "SELF"
    DAY = "DAY"


class AnalysisMetric(str, Enum):
    DURATION = "DURATION"
    METRIC_SUM = "METRIC_SUM"
    METRIC_AVERAGE = "METRIC_AVERAGE"


class BucketType(str, Enum):
    TAG = "tag"
    ACTIVITY = "activity"
    DAY = "day"


@dataclass(frozen=True, slots=True)
class MetricValue:
    metric_id: str
    value: Decimal


@dataclass(frozen=True, slots=True)
class ActivityRecord:
    """A logged time interval, possibly still open on either side."""

    id: str
    creator_id: str
    title: Optional[str]
    start_time: Optional[datetime]
    end_time: Optional[datetime]
    comment: Optional[str] = None
    tags: frozenset[str] = frozenset()
    metric_values: tuple[MetricValue, ...] = ()

    @property
    def is_measurable(self) -> bool:
        return self.start_time is not None and self.end_time is not None

    @property
    def duration(self) -> timedelta:
        if not self.is_measurable:
            raise ValueError(f"Activity {self.id} has an open time bound")
        return self.end_time - self.start_time  # type: ignore[operator]

    def with_interval(
        self, start_time: Optional[datetime], end_time: Optional[datetime]
    ) -> "ActivityRecord":
        return replace(self, start_time=start_time, end_time=end_time)

    def has_any_tag(self, tags: frozenset[str]) -> bool:
        return not self.tags.isdisjoint(tags)


@dataclass(frozen=True, slots=True)
class GenerationCriteria:
    """Immutable query for a single dashboard generation."""

    dashboard_id: str
    user_id: str
    time_range_start: Optional[datetime] = None
    time_range_end: Optional[datetime] = None
    required_tags: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class ChartConfig:
    name: str
    group_by: GroupBy
    analysis_metric: AnalysisMetric = AnalysisMetric.DURATION
    included_tags: frozenset[str] = frozenset()
    metric_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class DashboardDefinition:
    id: str
    name: str
    charts: tuple[ChartConfig, ...] = ()


@dataclass(frozen=True, slots=True)
class Bucket:
    """One aggregated group of a generated chart."""

    id: str
    bucket_type: BucketType
    value: Decimal
    percentage: Decimal
    range_start: Optional[datetime] = None
    range_end: Optional[datetime] = None
    buckets: tuple["Bucket", ...] = ()


@dataclass(frozen=True, slots=True)
class GeneratedChart:
    name: str
    buckets: tuple[Bucket, ...] = ()


@dataclass(frozen=True, slots=True)
class GenerationResult:
    name: str
    charts: tuple[GeneratedChart, ...] = ()


@dataclass(frozen=True, slots=True)
class ActivityQuery:
    """Access-scoped time window sent to an activity data source."""

    user_id: str
    page_size: int
    time_range_start: Optional[datetime] = None
    time_range_end: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class ActivityPage:
    activities: tuple[ActivityRecord, ...] = ()
    next_page_id: Optional[str] = None
