"""Configuration models and helpers for dashboard generation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from decimal import ROUND_HALF_UP
from typing import Optional


@dataclass(slots=True)
class GeneratorSettings:
    """Runtime configuration for the generation engine.

    ``percentage_places`` and ``rounding`` apply to every percentage computed
    during a run so sibling buckets stay comparable.
    """

    page_size: int = 500
    percentage_places: int = 2
    rounding: str = ROUND_HALF_UP
    fetch_deadline: Optional[timedelta] = None

    @classmethod
    def from_options(
        cls,
        page_size: int,
        percentage_places: int,
        deadline_seconds: float | None = None,
    ) -> "GeneratorSettings":
        if page_size < 1:
            raise ValueError("page_size must be positive")
        deadline = (
            timedelta(seconds=deadline_seconds) if deadline_seconds is not None else None
        )
        return cls(
            page_size=page_size,
            percentage_places=percentage_places,
            fetch_deadline=deadline,
        )
