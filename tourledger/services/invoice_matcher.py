"""
Trip-invoice matching.

Groups carrier invoice line items by trip id, classifies each group into one
tour record, its completed loads and adjustments, and rolls the whole invoice
up into batch-level actuals. Pure: no session, no I/O.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from tourledger.schemas.invoice import (
    ADJUSTMENT_TYPES,
    ZERO,
    LoadCompletedItem,
    TourCompletedItem,
)

logger = logging.getLogger(__name__)

TRIP_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\-]*$")


@dataclass
class TripGroup:
    trip_id: str
    items: list = field(default_factory=list)
    tour: Optional[TourCompletedItem] = None
    loads: List[LoadCompletedItem] = field(default_factory=list)
    adjustments: list = field(default_factory=list)
    matched: bool = False

    @property
    def total_gross_pay(self) -> Decimal:
        return sum((item.gross_pay for item in self.items), ZERO)

    @property
    def total_fuel_surcharge(self) -> Decimal:
        return sum((item.accessorial_amount for item in self.items), ZERO)

    @property
    def total_distance(self) -> float:
        return sum(getattr(item, "distance_miles", 0) for item in self.items)

    @property
    def date_range_start(self) -> Optional[datetime]:
        starts = [item.start_date for item in self.items if item.start_date is not None]
        return min(starts) if starts else None

    @property
    def date_range_end(self) -> Optional[datetime]:
        ends = [item.end_date for item in self.items if item.end_date is not None]
        return max(ends) if ends else None

    @property
    def load_count(self) -> int:
        return len(self.loads)

    @property
    def reports_work(self) -> bool:
        return self.tour is not None and self.tour.reports_work


@dataclass
class MatchResult:
    groups: List[TripGroup] = field(default_factory=list)
    valid_items: list = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    actual_tours: int = 0
    actual_loads: int = 0
    actual_tour_pay: Decimal = ZERO
    actual_accessorials: Decimal = ZERO
    actual_adjustments: Decimal = ZERO

    @property
    def actual_total(self) -> Decimal:
        return self.actual_tour_pay + self.actual_accessorials + self.actual_adjustments

    @property
    def matched_groups(self) -> List[TripGroup]:
        return [group for group in self.groups if group.matched]

    @property
    def unmatched_groups(self) -> List[TripGroup]:
        return [group for group in self.groups if not group.matched]

    @property
    def unmatched_trip_ids(self) -> List[str]:
        return [group.trip_id for group in self.unmatched_groups]

    @property
    def matched_trip_ids(self) -> set:
        return {group.trip_id for group in self.matched_groups}


def normalize_trip_id(raw: Optional[str]) -> Optional[str]:
    """Stripped trip id, or None when it is blank or malformed."""
    if raw is None:
        return None
    trip_id = raw.strip()
    if not trip_id or not TRIP_ID_PATTERN.match(trip_id):
        return None
    return trip_id


def _load_sort_key(item: LoadCompletedItem):
    # Undated loads first, then by start date
    return (item.start_date is not None, item.start_date or datetime.min)


def match_line_items(line_items: Sequence, existing_trip_ids: Iterable[str]) -> MatchResult:
    existing = set(existing_trip_ids)
    result = MatchResult()
    groups: Dict[str, TripGroup] = {}

    for position, item in enumerate(line_items):
        trip_id = normalize_trip_id(item.trip_id)
        if trip_id is None:
            result.warnings.append(f"Line {position + 1}: invalid trip id {item.trip_id!r}, item skipped")
            continue
        if trip_id != item.trip_id:
            item = item.model_copy(update={"trip_id": trip_id})
        result.valid_items.append(item)

        group = groups.get(trip_id)
        if group is None:
            group = TripGroup(trip_id=trip_id, matched=trip_id in existing)
            groups[trip_id] = group
            result.groups.append(group)
        group.items.append(item)

        if isinstance(item, TourCompletedItem):
            if group.tour is None:
                group.tour = item
            else:
                result.warnings.append(
                    f"Trip {trip_id}: more than one tour item, extra tour treated as an adjustment"
                )
                group.adjustments.append(item)
        elif isinstance(item, LoadCompletedItem):
            group.loads.append(item)
        elif isinstance(item, ADJUSTMENT_TYPES):
            group.adjustments.append(item)

    for group in result.groups:
        group.loads.sort(key=_load_sort_key)
        if group.tour is not None:
            result.actual_tours += 1
            result.actual_tour_pay += group.tour.gross_pay
        result.actual_loads += group.load_count
        result.actual_accessorials += group.total_fuel_surcharge
        result.actual_adjustments += sum((item.gross_pay for item in group.adjustments), ZERO)

    logger.debug(
        f"[InvoiceMatcher] {len(result.valid_items)} items in {len(result.groups)} groups, "
        f"{len(result.matched_groups)} matched"
    )
    return result
