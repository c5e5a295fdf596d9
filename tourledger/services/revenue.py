"""
Projected revenue model.

One formula is used everywhere a trip's projection is shown or summed:
each active trip projects the daily trip rate plus a flat per-trip
accessorial. Canceled trips project nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from tourledger.core.config import get_settings
from tourledger.models.trip import TripStage

CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value.quantize(CENTS, rounding=ROUND_HALF_UP)
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ProjectionTotals:
    tours: int
    loads: int
    tour_pay: Decimal
    accessorials: Decimal

    @property
    def total(self) -> Decimal:
        return self.tour_pay + self.accessorials


@dataclass(frozen=True)
class RevenueModel:
    dtr_rate: Decimal
    trip_accessorial_rate: Decimal

    @classmethod
    def from_settings(cls) -> "RevenueModel":
        settings = get_settings()
        return cls(
            dtr_rate=to_money(settings.dtr_rate),
            trip_accessorial_rate=to_money(settings.trip_accessorial_rate),
        )

    def trip_revenue(self, stage: TripStage) -> Decimal:
        if stage == TripStage.CANCELED:
            return Decimal("0.00")
        return self.dtr_rate + self.trip_accessorial_rate

    def project(self, trips: Iterable[tuple[TripStage, int]]) -> ProjectionTotals:
        """Sum projections over ``(stage, projected_loads)`` pairs."""
        tours = 0
        loads = 0
        for stage, projected_loads in trips:
            if stage == TripStage.CANCELED:
                continue
            tours += 1
            loads += projected_loads
        return ProjectionTotals(
            tours=tours,
            loads=loads,
            tour_pay=self.dtr_rate * tours,
            accessorials=self.trip_accessorial_rate * tours,
        )


def variance_percent(projected: Decimal, actual: Decimal) -> Optional[float]:
    if projected == 0:
        return None
    return float((actual - projected) / projected * 100)
