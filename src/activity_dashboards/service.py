"""Application service that loads dashboards and invokes generation."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from .datasource import DashboardStore
from .engine import DashboardGenerationEngine
from .errors import DashboardNotFoundError
from .models import GenerationCriteria, GenerationResult

logger = logging.getLogger(__name__)


class DashboardGenerationService:
    def __init__(
        self, dashboard_store: DashboardStore, engine: DashboardGenerationEngine
    ) -> None:
        self.dashboard_store = dashboard_store
        self.engine = engine

    def generate(
        self,
        dashboard_id: str,
        user_id: str,
        *,
        time_range_start: Optional[datetime] = None,
        time_range_end: Optional[datetime] = None,
        required_tags: Iterable[str] = (),
    ) -> GenerationResult:
        if (
            time_range_start is not None
            and time_range_end is not None
            and time_range_end < time_range_start
        ):
            raise ValueError("time range end must not precede its start")

        criteria = GenerationCriteria(
            dashboard_id=dashboard_id,
            user_id=user_id,
            time_range_start=time_range_start,
            time_range_end=time_range_end,
            required_tags=frozenset(required_tags),
        )
        dashboard = self.dashboard_store.get_dashboard(dashboard_id)
        if dashboard is None:
            raise DashboardNotFoundError(dashboard_id)
        logger.debug("Generating dashboard %s for user=%s", dashboard_id, user_id)
        return self.engine.generate_dashboard(dashboard, criteria)
