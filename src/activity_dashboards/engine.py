"""Dashboard generation: run every configured chart over one activity fetch."""

from __future__ import annotations

import logging
from typing import Optional

from .charts import generator_for
from .config import GeneratorSettings
from .datasource import ActivityDataSource
from .finder import ActivityFinder
from .models import DashboardDefinition, GeneratedChart, GenerationCriteria, GenerationResult
from .percentage import PercentageCalculator

logger = logging.getLogger(__name__)


class DashboardGenerationEngine:
    """Turn a dashboard definition and criteria into a generated result.

    Activities are fetched and clipped once per call and shared read-only by
    all charts. Nothing is persisted and no state survives between calls.
    """

    def __init__(
        self,
        data_source: ActivityDataSource,
        settings: Optional[GeneratorSettings] = None,
    ) -> None:
        self.settings = settings or GeneratorSettings()
        self.finder = ActivityFinder(
            data_source,
            page_size=self.settings.page_size,
            fetch_deadline=self.settings.fetch_deadline,
        )

    def generate_dashboard(
        self, dashboard: DashboardDefinition, criteria: GenerationCriteria
    ) -> GenerationResult:
        if not dashboard.charts:
            logger.info("Dashboard %s has no charts; nothing to generate.", dashboard.id)
            return GenerationResult(name=dashboard.name, charts=())

        activities = self.finder.find(criteria)
        calculator = PercentageCalculator(
            places=self.settings.percentage_places,
            rounding=self.settings.rounding,
        )
        charts: list[GeneratedChart] = []
        for chart in dashboard.charts:
            generator = generator_for(
                chart,
                calculator,
                range_start=criteria.time_range_start,
                range_end=criteria.time_range_end,
            )
            charts.append(generator.generate(activities))
        logger.info(
            "Generated dashboard %s: %d charts from %d activities.",
            dashboard.id,
            len(charts),
            len(activities),
        )
        return GenerationResult(name=dashboard.name, charts=tuple(charts))
