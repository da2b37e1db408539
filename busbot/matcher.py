"""
Bus matching.

A vehicle matches a query when it has enough seats, offers the requested
service direction, visits both stops in travel order and departs within
``TIME_WINDOW_MINUTES`` of the requested time.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from .clock import parse_clock
from .models import Query, Service, Vehicle

TIME_WINDOW_MINUTES = 30


def _stop_index(route: Sequence[str], stop: str) -> Optional[int]:
    """First position of ``stop`` in ``route``, compared case-insensitively."""
    wanted = stop.lower()
    for idx, name in enumerate(route):
        if name.lower() == wanted:
            return idx
    return None


def _departs_near(times: Iterable[str], requested: int) -> bool:
    for t in times:
        minutes = parse_clock(t)
        if minutes is None:
            continue
        if abs(minutes - requested) <= TIME_WINDOW_MINUTES:
            return True
    return False


def is_match(query: Query, vehicle: Vehicle) -> bool:
    if vehicle.capacity < query.pax:
        return False
    if query.need_both and vehicle.service != Service.BOTH:
        return False

    idx_start = _stop_index(vehicle.route, query.start)
    idx_end = _stop_index(vehicle.route, query.end)
    if idx_start is None or idx_end is None:
        return False
    # no reverse traversal: the route order is the travel direction
    if not idx_start < idx_end:
        return False

    requested = parse_clock(query.time)
    if requested is None:
        return False
    return _departs_near(vehicle.times, requested)


def match(query: Query, roster: Iterable[Vehicle]) -> List[Vehicle]:
    """Return matching vehicles in roster order. Does not modify anything."""
    return [vehicle for vehicle in roster if is_match(query, vehicle)]


__all__ = ["TIME_WINDOW_MINUTES", "is_match", "match"]
