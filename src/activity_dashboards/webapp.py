"""FastAPI application exposing dashboard generation over HTTP."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from . import __version__
from .config import GeneratorSettings
from .datasource import SqliteActivityDataSource, SqliteDashboardStore
from .engine import DashboardGenerationEngine
from .errors import DashboardNotFoundError, DataSourceError, GenerationTimeoutError
from .models import Bucket, GenerationResult
from .paths import get_db_path
from .service import DashboardGenerationService

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class BucketPayload(BaseModel):
    id: str
    rangeStart: Optional[int] = None
    rangeEnd: Optional[int] = None
    bucketType: str
    value: Decimal
    percentage: Decimal
    buckets: List["BucketPayload"] = []

    model_config = ConfigDict(extra="forbid")


class ChartPayload(BaseModel):
    name: str
    buckets: List[BucketPayload]

    model_config = ConfigDict(extra="forbid")


class DashboardDataPayload(BaseModel):
    name: str
    charts: List[ChartPayload]

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[GeneratorSettings] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_db_path = Path(db_path or get_db_path())
    resolved_settings = settings or GeneratorSettings()
    engine = DashboardGenerationEngine(
        SqliteActivityDataSource(resolved_db_path), resolved_settings
    )
    service = DashboardGenerationService(SqliteDashboardStore(resolved_db_path), engine)

    app = FastAPI(title="Activity Dashboards", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.generation_service = service

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        return {
            "database_path": str(request.app.state.db_path),
            "page_size": resolved_settings.page_size,
            "percentage_places": resolved_settings.percentage_places,
            "fetch_deadline_seconds": (
                resolved_settings.fetch_deadline.total_seconds()
                if resolved_settings.fetch_deadline
                else None
            ),
        }

    @app.get("/api/dashboards/{dashboard_id}/data", response_model=DashboardDataPayload)
    def dashboard_data(
        dashboard_id: str,
        request: Request,
        user_id: str = Header(..., alias="X-User-Id"),
        range_start: Optional[int] = Query(
            default=None,
            alias="rangeStart",
            description="Range start as epoch milliseconds (unbounded when omitted).",
        ),
        range_end: Optional[int] = Query(
            default=None,
            alias="rangeEnd",
            description="Range end as epoch milliseconds (unbounded when omitted).",
        ),
        required_tags: Optional[List[str]] = Query(
            default=None,
            alias="requiredTags",
            description="Only count activities carrying any of these tags.",
        ),
    ) -> DashboardDataPayload:
        generation_service: DashboardGenerationService = (
            request.app.state.generation_service
        )
        try:
            result = generation_service.generate(
                dashboard_id,
                user_id,
                time_range_start=_millis_to_datetime(range_start),
                time_range_end=_millis_to_datetime(range_end),
                required_tags=required_tags or (),
            )
        except DashboardNotFoundError as exc:
            raise HTTPException(status_code=404, detail="Dashboard not found") from exc
        except GenerationTimeoutError as exc:
            raise HTTPException(status_code=504, detail=str(exc)) from exc
        except DataSourceError as exc:
            logger.exception("Dashboard %s generation failed.", dashboard_id)
            raise HTTPException(status_code=502, detail="Activity source unavailable") from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _result_to_payload(result)

    return app


def _millis_to_datetime(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return _EPOCH + timedelta(milliseconds=value)
    except (OverflowError, ValueError) as exc:
        raise HTTPException(status_code=400, detail="Time range out of bounds") from exc


def _datetime_to_millis(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    return (value - _EPOCH) // timedelta(milliseconds=1)


def _result_to_payload(result: GenerationResult) -> DashboardDataPayload:
    return DashboardDataPayload(
        name=result.name,
        charts=[
            ChartPayload(
                name=chart.name,
                buckets=[_bucket_to_payload(bucket) for bucket in chart.buckets],
            )
            for chart in result.charts
        ],
    )


def _bucket_to_payload(bucket: Bucket) -> BucketPayload:
    return BucketPayload(
        id=bucket.id,
        rangeStart=_datetime_to_millis(bucket.range_start),
        rangeEnd=_datetime_to_millis(bucket.range_end),
        bucketType=bucket.bucket_type.value,
        value=bucket.value,
        percentage=bucket.percentage,
        buckets=[_bucket_to_payload(child) for child in bucket.buckets],
    )
