"""Chart generators: group clipped activities into bucket trees.

Each ``GroupBy`` strategy has one generator class. Generators share the
measure selected by the chart's ``AnalysisMetric``:

* ``DURATION`` sums elapsed time, truncated to whole seconds.
* ``METRIC_SUM`` and ``METRIC_AVERAGE`` aggregate the chart's metric, or every
  metric value of an activity when the chart names no metric.

Percentages of a sibling set are computed against the sum of the siblings'
measures, so a zero total gives every sibling 0.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from .finder import clip_to_range
from .models import (
    ActivityRecord,
    AnalysisMetric,
    Bucket,
    BucketType,
    ChartConfig,
    GeneratedChart,
    GroupBy,
)
from .percentage import PercentageCalculator

_ONE_SECOND = timedelta(seconds=1)
_ONE_DAY = timedelta(days=1)


class ChartGenerator(ABC):
    """Base class for the grouping strategies."""

    bucket_type: BucketType

    def __init__(
        self,
        chart: ChartConfig,
        percentage_calculator: PercentageCalculator,
        *,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
    ) -> None:
        self.chart = chart
        self.percentage_calculator = percentage_calculator
        self.range_start = range_start
        self.range_end = range_end

    def generate(self, activities: Sequence[ActivityRecord]) -> GeneratedChart:
        return GeneratedChart(name=self.chart.name, buckets=tuple(self.buckets(activities)))

    @abstractmethod
    def buckets(self, activities: Sequence[ActivityRecord]) -> list[Bucket]:
        raise NotImplementedError

    def relevant(self, activities: Iterable[ActivityRecord]) -> list[ActivityRecord]:
        """Activities carrying any included tag; all of them when none are included."""
        if not self.chart.included_tags:
            return list(activities)
        return [
            activity
            for activity in activities
            if activity.has_any_tag(self.chart.included_tags)
        ]

    def measure(self, activities: Sequence[ActivityRecord]) -> Decimal:
        metric = self.chart.analysis_metric
        if metric is AnalysisMetric.DURATION:
            return Decimal(total_seconds(activities))
        values = list(self._metric_values(activities))
        if not values:
            return Decimal(0)
        total = sum(values, Decimal(0))
        if metric is AnalysisMetric.METRIC_AVERAGE:
            return total / len(values)
        return total

    def _metric_values(self, activities: Iterable[ActivityRecord]) -> Iterable[Decimal]:
        metric_id = self.chart.metric_id
        for activity in activities:
            for metric_value in activity.metric_values:
                if metric_id is None or metric_value.metric_id == metric_id:
                    yield metric_value.value

    def _sibling_buckets(
        self, measured: list[tuple[str, Decimal]], bucket_type: BucketType
    ) -> list[Bucket]:
        total = sum((amount for _, amount in measured), Decimal(0))
        return [
            Bucket(
                id=bucket_id,
                bucket_type=bucket_type,
                value=amount,
                percentage=self.percentage_calculator.percentage(amount, total),
            )
            for bucket_id, amount in measured
        ]


class TagChartGenerator(ChartGenerator):
    """One bucket per configured tag, including tags nothing carries."""

    bucket_type = BucketType.TAG

    def buckets(self, activities: Sequence[ActivityRecord]) -> list[Bucket]:
        measured = [
            (tag, self.measure(activities_with_tag(tag, activities)))
            for tag in sorted(self.chart.included_tags)
        ]
        buckets = self._sibling_buckets(measured, self.bucket_type)
        if self.chart.analysis_metric is AnalysisMetric.DURATION:
            # Duration charts report the share itself as the value.
            return [
                Bucket(
                    id=bucket.id,
                    bucket_type=bucket.bucket_type,
                    value=bucket.percentage,
                    percentage=bucket.percentage,
                )
                for bucket in buckets
            ]
        return buckets


class SelfChartGenerator(ChartGenerator):
    """One bucket per activity."""

    bucket_type = BucketType.ACTIVITY

    def buckets(self, activities: Sequence[ActivityRecord]) -> list[Bucket]:
        ordered = sorted(
            self.relevant(activities),
            key=lambda activity: (activity.start_time, activity.id),
        )
        measured = [(activity.id, self.measure([activity])) for activity in ordered]
        return self._sibling_buckets(measured, self.bucket_type)


class DayChartGenerator(ChartGenerator):
    """One bucket per calendar day of the window, with tag sub-buckets."""

    bucket_type = BucketType.DAY

    def buckets(self, activities: Sequence[ActivityRecord]) -> list[Bucket]:
        candidates = self.relevant(activities)
        span = self._span(candidates)
        if span is None:
            return []

        by_day: defaultdict[datetime, list[ActivityRecord]] = defaultdict(list)
        for activity in candidates:
            for day_start in iter_days(activity.start_time, activity.end_time):  # type: ignore[arg-type]
                day_end = next_day(day_start)
                if _falls_on_day(activity, day_start, day_end):
                    by_day[day_start].append(clip_to_range(activity, day_start, day_end))

        days = [
            (day_start, next_day(day_start), by_day.get(day_start, []))
            for day_start in iter_days(*span)
        ]
        measured = [self.measure(day_activities) for _, _, day_activities in days]
        total = sum(measured, Decimal(0))
        tag_generator = TagChartGenerator(self.chart, self.percentage_calculator)
        buckets: list[Bucket] = []
        for (day_start, day_end, day_activities), amount in zip(days, measured):
            children = (
                tuple(tag_generator.buckets(day_activities))
                if self.chart.included_tags
                else ()
            )
            buckets.append(
                Bucket(
                    id=day_start.date().isoformat(),
                    bucket_type=self.bucket_type,
                    value=amount,
                    percentage=self.percentage_calculator.percentage(amount, total),
                    range_start=day_start,
                    range_end=day_end,
                    buckets=children,
                )
            )
        return buckets

    def _span(
        self, activities: Sequence[ActivityRecord]
    ) -> Optional[tuple[datetime, datetime]]:
        start = self.range_start
        end = self.range_end
        if start is None and activities:
            start = min(activity.start_time for activity in activities)  # type: ignore[type-var]
        if end is None and activities:
            end = max(activity.end_time for activity in activities)  # type: ignore[type-var]
        if start is None or end is None:
            return None
        return start, end


GENERATORS: dict[GroupBy, type[ChartGenerator]] = {
    GroupBy.TAG: TagChartGenerator,
    GroupBy.SELF: SelfChartGenerator,
    GroupBy.DAY: DayChartGenerator,
}


def generator_for(
    chart: ChartConfig,
    percentage_calculator: PercentageCalculator,
    *,
    range_start: Optional[datetime] = None,
    range_end: Optional[datetime] = None,
) -> ChartGenerator:
    try:
        generator_cls = GENERATORS[chart.group_by]
    except KeyError as exc:
        raise ValueError(f"Unsupported grouping: {chart.group_by}") from exc
    return generator_cls(
        chart,
        percentage_calculator,
        range_start=range_start,
        range_end=range_end,
    )


def activities_with_tag(
    tag: str, activities: Iterable[ActivityRecord]
) -> list[ActivityRecord]:
    return [activity for activity in activities if tag in activity.tags]


def total_seconds(activities: Iterable[ActivityRecord]) -> int:
    """Summed duration in whole seconds, sub-second remainder truncated."""
    total = sum((activity.duration for activity in activities), timedelta())
    return total // _ONE_SECOND


def iter_days(start: datetime, end: datetime) -> Iterable[datetime]:
    """Yield day starts from the day containing ``start`` up to ``end``.

    At least one day is yielded, even for an empty span.
    """
    day_start = _start_of_day(start)
    while True:
        yield day_start
        following = next_day(day_start)
        if following >= end or following.date() == day_start.date():
            return
        day_start = following


def next_day(day_start: datetime) -> datetime:
    """Start of the following day, clamped to the last representable instant."""
    try:
        return day_start + _ONE_DAY
    except OverflowError:
        return datetime.max.replace(tzinfo=day_start.tzinfo)


def _falls_on_day(activity: ActivityRecord, day_start: datetime, day_end: datetime) -> bool:
    start = activity.start_time
    end = activity.end_time
    if start >= day_end:  # type: ignore[operator]
        return False
    return end > day_start or start >= day_start  # type: ignore[operator]


def _start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)
