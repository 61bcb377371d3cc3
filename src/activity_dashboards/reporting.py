"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from .models import Bucket, GenerationResult


class DashboardPrinter:
    """Render generated dashboards in the console."""

    def print_result(self, result: GenerationResult) -> None:
        for line in render_result(result):
            print(line)


def render_result(result: GenerationResult) -> list[str]:
    lines = [f"Dashboard: {result.name}", "=" * 40]
    if not result.charts:
        lines.append("No charts configured.")
        return lines
    for chart in result.charts:
        lines.append("")
        lines.append(chart.name)
        lines.append("-" * 40)
        if not chart.buckets:
            lines.append("  (no data)")
            continue
        lines.extend(render_buckets(chart.buckets, depth=1))
    return lines


def render_buckets(buckets: Iterable[Bucket], depth: int = 0) -> list[str]:
    lines: list[str] = []
    indent = "  " * depth
    for bucket in buckets:
        label = bucket.id
        if bucket.range_start is not None and bucket.range_end is not None:
            label = (
                f"{bucket.id} [{bucket.range_start.strftime('%Y-%m-%d %H:%M')}"
                f" - {bucket.range_end.strftime('%Y-%m-%d %H:%M')})"
            )
        lines.append(
            f"{indent}{label:<40} {format_value(bucket.value):>12} {bucket.percentage:>7}%"
        )
        lines.extend(render_buckets(bucket.buckets, depth + 1))
    return lines


def format_value(value: Decimal) -> str:
    normalized = Decimal(value).normalize()
    if normalized == normalized.to_integral_value():
        return f"{normalized:.0f}"
    return f"{normalized:f}"
