"""
Delivery stop de-duplication for a trip's loads.

The same delivery location can show up on several loads of one trip (a leg
that returns through a warehouse repeats the drop it came from). Only the
first load to claim a stop counts it:

1. Sort loads by delivery-stop count, descending (stable for ties)
2. Walk the sorted loads, claiming every delivery stop not yet seen
3. A load is visible iff it claimed at least one stop

Works on anything exposing ``is_bobtail`` and ``stop_names`` (ORM loads and
import candidates alike).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Sequence

from tourledger.core.config import get_settings


@dataclass(frozen=True)
class LoadClaim:
    load: Any
    claimed_stops: tuple[str, ...]

    @property
    def claimed_count(self) -> int:
        return len(self.claimed_stops)


@dataclass(frozen=True)
class DedupResult:
    visible: List[LoadClaim] = field(default_factory=list)
    delivery_count: int = 0

    @property
    def visible_loads(self) -> List[Any]:
        return [claim.load for claim in self.visible]


def _resolve_prefix(warehouse_prefix: Optional[str]) -> str:
    if warehouse_prefix is None:
        warehouse_prefix = get_settings().warehouse_prefix
    return (warehouse_prefix or "").strip().upper()


def stop_key(name: str) -> str:
    return name.strip().upper()


def is_delivery_stop(name: Optional[str], warehouse_prefix: Optional[str] = None) -> bool:
    if not name or not name.strip():
        return False
    prefix = _resolve_prefix(warehouse_prefix)
    if not prefix:
        return True
    return not stop_key(name).startswith(prefix)


def delivery_stops(load: Any, warehouse_prefix: Optional[str] = None) -> List[str]:
    """Delivery stop names of one load in slot order. Bobtail loads have none."""
    if load.is_bobtail:
        return []
    prefix = _resolve_prefix(warehouse_prefix)
    return [name.strip() for name in load.stop_names if is_delivery_stop(name, prefix)]


def delivery_count(load: Any, warehouse_prefix: Optional[str] = None) -> int:
    return len(delivery_stops(load, warehouse_prefix))


def dedupe_trip_loads(loads: Iterable[Any], warehouse_prefix: Optional[str] = None) -> DedupResult:
    prefix = _resolve_prefix(warehouse_prefix)
    stops_by_load = [(load, delivery_stops(load, prefix)) for load in loads]
    # sorted() is stable, so equal counts keep file order
    ordered = sorted(stops_by_load, key=lambda pair: len(pair[1]), reverse=True)

    claimed: set[str] = set()
    visible: List[LoadClaim] = []
    for load, stops in ordered:
        taken = []
        for name in stops:
            key = stop_key(name)
            if key in claimed:
                continue
            claimed.add(key)
            taken.append(name)
        if taken:
            visible.append(LoadClaim(load=load, claimed_stops=tuple(taken)))

    return DedupResult(visible=visible, delivery_count=len(claimed))


def distinct_delivery_stops(loads: Sequence[Any], warehouse_prefix: Optional[str] = None) -> set[str]:
    prefix = _resolve_prefix(warehouse_prefix)
    return {stop_key(name) for load in loads for name in delivery_stops(load, prefix)}
