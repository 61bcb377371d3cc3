"""Tests for the chart generator variants."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from activity_dashboards import charts
from activity_dashboards.charts import (
    DayChartGenerator,
    SelfChartGenerator,
    TagChartGenerator,
    generator_for,
    iter_days,
    next_day,
    total_seconds,
)
from activity_dashboards.models import AnalysisMetric, BucketType, ChartConfig, GroupBy
from activity_dashboards.percentage import PercentageCalculator

from conftest import T0, make_activity, utc


@pytest.fixture
def calculator():
    return PercentageCalculator()


def tag_chart(*tags, metric=AnalysisMetric.DURATION, metric_id=None):
    return ChartConfig(
        name="By Project",
        group_by=GroupBy.TAG,
        analysis_metric=metric,
        included_tags=frozenset(tags),
        metric_id=metric_id,
    )


class TestTotalSeconds:
    def test_sums_durations(self):
        activities = [
            make_activity("a1", duration=timedelta(hours=1)),
            make_activity("a2", duration=timedelta(minutes=30)),
        ]
        assert total_seconds(activities) == 5400

    def test_truncates_sub_second_remainder(self):
        activities = [
            make_activity("a1", duration=timedelta(milliseconds=600)),
            make_activity("a2", duration=timedelta(milliseconds=600)),
        ]
        assert total_seconds(activities) == 1

    def test_empty(self):
        assert total_seconds([]) == 0


class TestTagChartGenerator:
    def test_duration_share_per_tag(self, calculator):
        activities = [
            make_activity("a1", duration=timedelta(seconds=3600), tags={"T1"}),
            make_activity("a2", duration=timedelta(seconds=1800), tags={"T2"}),
            make_activity("a3", duration=timedelta(seconds=1800), tags={"T1", "T2"}),
        ]
        chart = TagChartGenerator(tag_chart("T1", "T2"), calculator).generate(activities)

        assert chart.name == "By Project"
        by_id = {bucket.id: bucket for bucket in chart.buckets}
        assert by_id["T1"].percentage == Decimal("60.00")
        assert by_id["T2"].percentage == Decimal("40.00")
        for bucket in chart.buckets:
            assert bucket.value == bucket.percentage
            assert bucket.bucket_type is BucketType.TAG
            assert bucket.buckets == ()
            assert bucket.range_start is None and bucket.range_end is None

    def test_tag_without_activities_gets_zero_bucket(self, calculator):
        activities = [make_activity("a1", tags={"T1"})]
        chart = TagChartGenerator(tag_chart("T1", "T3"), calculator).generate(activities)
        by_id = {bucket.id: bucket for bucket in chart.buckets}
        assert by_id["T3"].value == 0
        assert by_id["T3"].percentage == 0
        assert by_id["T1"].percentage == 100

    def test_no_activities_gives_zero_buckets(self, calculator):
        chart = TagChartGenerator(tag_chart("T3"), calculator).generate([])
        assert len(chart.buckets) == 1
        assert chart.buckets[0].id == "T3"
        assert chart.buckets[0].percentage == 0

    def test_no_included_tags_gives_no_buckets(self, calculator):
        chart = TagChartGenerator(tag_chart(), calculator).generate([make_activity("a1")])
        assert chart.buckets == ()

    def test_sibling_percentages_sum_to_hundred(self, calculator):
        activities = [
            make_activity("a1", tags={"A"}),
            make_activity("a2", tags={"B"}),
            make_activity("a3", tags={"C"}),
        ]
        chart = TagChartGenerator(tag_chart("A", "B", "C"), calculator).generate(activities)
        total = sum(bucket.percentage for bucket in chart.buckets)
        assert abs(total - 100) <= Decimal("0.01") * len(chart.buckets)

    def test_each_tag_truncated_before_share(self, calculator):
        activities = [
            make_activity("a1", duration=timedelta(milliseconds=1600), tags={"T1"}),
            make_activity("a2", duration=timedelta(milliseconds=1600), tags={"T2"}),
        ]
        chart = TagChartGenerator(tag_chart("T1", "T2"), calculator).generate(activities)
        assert [bucket.percentage for bucket in chart.buckets] == [
            Decimal("50.00"),
            Decimal("50.00"),
        ]

    def test_buckets_are_ordered_by_tag(self, calculator):
        chart = TagChartGenerator(tag_chart("b", "c", "a"), calculator).generate([])
        assert [bucket.id for bucket in chart.buckets] == ["a", "b", "c"]

    def test_metric_sum_per_tag(self, calculator):
        activities = [
            make_activity("a1", tags={"T1"}, metrics={"km": 5}),
            make_activity("a2", tags={"T2"}, metrics={"km": 15}),
            make_activity("a3", tags={"T1"}, metrics={"km": 0, "kcal": 100}),
        ]
        config = tag_chart("T1", "T2", metric=AnalysisMetric.METRIC_SUM, metric_id="km")
        by_id = {
            bucket.id: bucket
            for bucket in TagChartGenerator(config, calculator).generate(activities).buckets
        }
        assert by_id["T1"].value == Decimal(5)
        assert by_id["T1"].percentage == Decimal("25.00")
        assert by_id["T2"].value == Decimal(15)
        assert by_id["T2"].percentage == Decimal("75.00")

    def test_metric_average_per_tag(self, calculator):
        activities = [
            make_activity("a1", tags={"T1"}, metrics={"km": 5}),
            make_activity("a3", tags={"T1"}, metrics={"km": 0}),
            make_activity("a4", tags={"T1"}),
        ]
        config = tag_chart("T1", metric=AnalysisMetric.METRIC_AVERAGE, metric_id="km")
        bucket = TagChartGenerator(config, calculator).generate(activities).buckets[0]
        assert bucket.value == Decimal("2.5")
        assert bucket.percentage == 100

    def test_metric_without_id_sums_all_values(self, calculator):
        activities = [make_activity("a1", tags={"T1"}, metrics={"km": 2, "kcal": 3})]
        config = tag_chart("T1", metric=AnalysisMetric.METRIC_SUM)
        bucket = TagChartGenerator(config, calculator).generate(activities).buckets[0]
        assert bucket.value == Decimal(5)


class TestSelfChartGenerator:
    def test_one_bucket_per_activity(self, calculator):
        activities = [
            make_activity("late", start=T0 + timedelta(hours=2), duration=timedelta(hours=1)),
            make_activity("early", start=T0, duration=timedelta(hours=2)),
        ]
        config = ChartConfig(name="Activities", group_by=GroupBy.SELF)
        chart = SelfChartGenerator(config, calculator).generate(activities)

        assert [bucket.id for bucket in chart.buckets] == ["early", "late"]
        assert chart.buckets[0].value == 7200
        assert chart.buckets[0].percentage == Decimal("66.67")
        assert chart.buckets[1].percentage == Decimal("33.33")
        assert all(bucket.bucket_type is BucketType.ACTIVITY for bucket in chart.buckets)

    def test_included_tags_narrow_activities(self, calculator):
        activities = [
            make_activity("a1", tags={"T1"}),
            make_activity("a2", tags={"T9"}),
        ]
        config = ChartConfig(
            name="Activities", group_by=GroupBy.SELF, included_tags=frozenset({"T1"})
        )
        chart = SelfChartGenerator(config, calculator).generate(activities)
        assert [bucket.id for bucket in chart.buckets] == ["a1"]
        assert chart.buckets[0].percentage == 100

    def test_no_activities(self, calculator):
        config = ChartConfig(name="Activities", group_by=GroupBy.SELF)
        assert SelfChartGenerator(config, calculator).generate([]).buckets == ()


class TestDayChartGenerator:
    def day_chart(self, *tags):
        return ChartConfig(
            name="Per day", group_by=GroupBy.DAY, included_tags=frozenset(tags)
        )

    def test_time_buckets_with_tag_children(self, calculator):
        activities = [
            make_activity("a1", start=utc(2024, 1, 1, 22), end=utc(2024, 1, 2, 2), tags={"T1"}),
            make_activity("a2", start=utc(2024, 1, 2, 10), end=utc(2024, 1, 2, 11), tags={"T2"}),
        ]
        generator = DayChartGenerator(
            self.day_chart("T1", "T2"),
            calculator,
            range_start=utc(2024, 1, 1),
            range_end=utc(2024, 1, 3),
        )
        first, second = generator.generate(activities).buckets

        assert first.id == "2024-01-01"
        assert first.bucket_type is BucketType.DAY
        assert (first.range_start, first.range_end) == (utc(2024, 1, 1), utc(2024, 1, 2))
        assert first.value == 7200
        assert first.percentage == Decimal("40.00")
        assert {child.id: child.percentage for child in first.buckets} == {
            "T1": Decimal("100.00"),
            "T2": Decimal("0.00"),
        }

        assert second.id == "2024-01-02"
        assert second.value == 10800
        assert second.percentage == Decimal("60.00")
        assert {child.id: child.percentage for child in second.buckets} == {
            "T1": Decimal("66.67"),
            "T2": Decimal("33.33"),
        }

    def test_empty_days_inside_window_are_emitted(self, calculator):
        generator = DayChartGenerator(
            self.day_chart(),
            calculator,
            range_start=utc(2024, 1, 1),
            range_end=utc(2024, 1, 4),
        )
        buckets = generator.generate([]).buckets
        assert [bucket.id for bucket in buckets] == ["2024-01-01", "2024-01-02", "2024-01-03"]
        assert all(bucket.value == 0 and bucket.percentage == 0 for bucket in buckets)
        assert all(bucket.buckets == () for bucket in buckets)

    def test_unbounded_window_uses_activity_span(self, calculator):
        activities = [
            make_activity("a1", start=utc(2024, 3, 5, 8), duration=timedelta(hours=1)),
            make_activity("a2", start=utc(2024, 3, 6, 8), duration=timedelta(hours=3)),
        ]
        buckets = DayChartGenerator(self.day_chart(), calculator).generate(activities).buckets
        assert [bucket.id for bucket in buckets] == ["2024-03-05", "2024-03-06"]
        assert [bucket.percentage for bucket in buckets] == [Decimal("25.00"), Decimal("75.00")]

    def test_unbounded_window_without_activities(self, calculator):
        assert DayChartGenerator(self.day_chart(), calculator).generate([]).buckets == ()


class TestGeneratorDispatch:
    @pytest.mark.parametrize(
        "group_by, expected",
        [
            (GroupBy.TAG, TagChartGenerator),
            (GroupBy.SELF, SelfChartGenerator),
            (GroupBy.DAY, DayChartGenerator),
        ],
    )
    def test_generator_selected_by_grouping(self, calculator, group_by, expected):
        config = ChartConfig(name="c", group_by=group_by)
        assert isinstance(generator_for(config, calculator), expected)


def test_iter_days_yields_at_least_one_day():
    assert list(iter_days(utc(2024, 1, 1), utc(2024, 1, 1))) == [utc(2024, 1, 1)]


def test_iter_days_partial_last_day():
    days = list(iter_days(utc(2024, 1, 1, 12), utc(2024, 1, 2, 6)))
    assert days == [utc(2024, 1, 1), utc(2024, 1, 2)]


class TestDayChartWideWindows:
    def day_chart(self):
        return ChartConfig(name="Per day", group_by=GroupBy.DAY, included_tags=frozenset({"T1"}))

    def test_century_window_visits_only_activity_days(self, calculator, monkeypatch):
        visited = []
        falls_on_day = charts._falls_on_day

        def recording(activity, day_start, day_end):
            visited.append(day_start)
            return falls_on_day(activity, day_start, day_end)

        monkeypatch.setattr(charts, "_falls_on_day", recording)
        activities = [
            make_activity(f"a{index:03d}", start=utc(2000, 1, 1, 8) + timedelta(days=index), tags={"T1"})
            for index in range(200)
        ]
        generator = DayChartGenerator(
            self.day_chart(),
            calculator,
            range_start=utc(1970, 1, 1),
            range_end=utc(2070, 1, 1),
        )

        buckets = generator.generate(activities).buckets

        assert len(buckets) == 36525
        assert len(visited) == 200
        busy = [bucket for bucket in buckets if bucket.value]
        assert len(busy) == 200
        assert all(bucket.value == 3600 for bucket in busy)
        assert sum(bucket.percentage for bucket in buckets) == 100

    def test_multi_day_activity_split_across_days(self, calculator):
        activity = make_activity("a1", start=utc(2024, 1, 1, 12), end=utc(2024, 1, 3, 12), tags={"T1"})
        buckets = DayChartGenerator(self.day_chart(), calculator).generate([activity]).buckets
        assert [bucket.value for bucket in buckets] == [43200, 86400, 43200]
        assert [bucket.percentage for bucket in buckets] == [
            Decimal("25.00"),
            Decimal("50.00"),
            Decimal("25.00"),
        ]

    def test_last_representable_day(self, calculator):
        activity = make_activity("a1", start=utc(9999, 12, 31, 1), duration=timedelta(hours=2), tags={"T1"})
        generator = DayChartGenerator(
            self.day_chart(),
            calculator,
            range_start=utc(9999, 12, 31),
            range_end=utc(9999, 12, 31, 12),
        )
        (bucket,) = generator.generate([activity]).buckets
        assert bucket.id == "9999-12-31"
        assert bucket.range_end == datetime.max.replace(tzinfo=timezone.utc)
        assert bucket.value == 7200
        assert bucket.buckets[0].percentage == 100


def test_next_day_clamps_at_max():
    assert next_day(utc(9999, 12, 31)) == datetime.max.replace(tzinfo=timezone.utc)
    assert next_day(utc(2024, 2, 28)) == utc(2024, 2, 29)


def test_iter_days_stops_on_last_representable_day():
    end = datetime.max.replace(tzinfo=timezone.utc)
    assert list(iter_days(utc(9999, 12, 30, 6), end)) == [utc(9999, 12, 30), utc(9999, 12, 31)]
