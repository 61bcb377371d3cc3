"""Ratio to percentage conversion with decimal arithmetic."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

_HUNDRED = Decimal(100)


class PercentageCalculator:
    """Convert ``part / whole`` to a percentage rounded to fixed places.

    A zero ``whole`` yields zero rather than raising, so empty charts and
    empty sibling sets produce zero-valued buckets.
    """

    def __init__(self, places: int = 2, rounding: str = ROUND_HALF_UP) -> None:
        self.places = places
        self.rounding = rounding
        self._quantum = Decimal(1).scaleb(-places)

    def percentage(self, part: Decimal | int, whole: Decimal | int) -> Decimal:
        whole = Decimal(whole)
        if whole == 0:
            return Decimal(0).quantize(self._quantum)
        ratio = _HUNDRED * Decimal(part) / whole
        return ratio.quantize(self._quantum, rounding=self.rounding)
