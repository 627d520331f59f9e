"""Single-vehicle route ordering: nearest-neighbour construction refined by 2-opt.

The route is an open path (no return to a depot). Instances are small, a few
dozen stops per vehicle, so both phases work directly on haversine distances
instead of a precomputed matrix.
"""

from __future__ import annotations

import logging
from typing import Sequence

from ...models.domain import Order
from ..geospatial import DEFAULT_ROAD_DETOUR_FACTOR, Locatable, distance_km, road_distance_km

DEFAULT_TWO_OPT_MAX_SCANS = 100
# Minimum gain (km) for a 2-opt reversal. Without it, floating-point ties can
# make the search flip the same segment back and forth forever.
DEFAULT_TWO_OPT_EPSILON_KM = 0.001

logger = logging.getLogger(__name__)


def _validate(road_detour_factor: float | None = None, max_scans: int | None = None, epsilon_km: float | None = None) -> None:
    if road_detour_factor is not None and road_detour_factor <= 0:
        raise ValueError("road_detour_factor must be > 0")
    if max_scans is not None and max_scans < 0:
        raise ValueError("max_scans must be >= 0")
    if epsilon_km is not None and epsilon_km < 0:
        raise ValueError("epsilon_km must be >= 0")


def route_distance(route: Sequence[Locatable], *, road_detour_factor: float = DEFAULT_ROAD_DETOUR_FACTOR) -> float:
    """Estimated road distance (km) along the route, rounded to one decimal."""

    _validate(road_detour_factor=road_detour_factor)
    total = sum(
        road_distance_km(route[idx], route[idx + 1], road_detour_factor) for idx in range(len(route) - 1)
    )
    return round(total, 1)


def nearest_neighbor_route(
    orders: Sequence[Order],
    *,
    road_detour_factor: float = DEFAULT_ROAD_DETOUR_FACTOR,
) -> list[Order]:
    """Greedy construction starting from the northernmost order."""

    _validate(road_detour_factor=road_detour_factor)
    if not orders:
        return []

    start = 0
    for idx, order in enumerate(orders):
        if order.latitude > orders[start].latitude:
            start = idx

    remaining = [idx for idx in range(len(orders)) if idx != start]
    route = [orders[start]]
    current = orders[start]
    while remaining:
        nearest_pos = 0
        nearest_dist = float("inf")
        for pos, idx in enumerate(remaining):
            dist = road_distance_km(current, orders[idx], road_detour_factor)
            if dist < nearest_dist:
                nearest_dist = dist
                nearest_pos = pos
        current = orders[remaining.pop(nearest_pos)]
        route.append(current)
    return route


def two_opt(
    route: Sequence[Order],
    *,
    max_scans: int = DEFAULT_TWO_OPT_MAX_SCANS,
    epsilon_km: float = DEFAULT_TWO_OPT_EPSILON_KM,
) -> list[Order]:
    """Improve an open route by reversing segments while that shortens it.

    Each scan tries every pair of edges (i, i+1) and (j, j+1); for the last
    position the second edge does not exist and the move reverses the tail.
    Improving moves are applied immediately. Returns a new list.
    """

    _validate(max_scans=max_scans, epsilon_km=epsilon_km)
    result = list(route)
    count = len(result)
    if count < 3:
        return result

    scans = 0
    improved = True
    while improved and scans < max_scans:
        improved = False
        scans += 1
        for i in range(count - 2):
            for j in range(i + 2, count):
                has_tail = j + 1 < count
                before = distance_km(result[i], result[i + 1])
                after = distance_km(result[i], result[j])
                if has_tail:
                    before += distance_km(result[j], result[j + 1])
                    after += distance_km(result[i + 1], result[j + 1])
                if after < before - epsilon_km:
                    result[i + 1 : j + 1] = result[i + 1 : j + 1][::-1]
                    improved = True

    if improved:
        logger.debug(f"2-opt stopped at the {max_scans} scan cap before converging ({count} stops)")
    return result


def optimize_route(
    orders: Sequence[Order],
    *,
    road_detour_factor: float = DEFAULT_ROAD_DETOUR_FACTOR,
    max_scans: int = DEFAULT_TWO_OPT_MAX_SCANS,
    epsilon_km: float = DEFAULT_TWO_OPT_EPSILON_KM,
) -> list[Order]:
    """Order one vehicle's stops into a short route. The input is never mutated."""

    _validate(road_detour_factor, max_scans, epsilon_km)
    if len(orders) <= 2:
        return list(orders)
    route = nearest_neighbor_route(orders, road_detour_factor=road_detour_factor)
    return two_opt(route, max_scans=max_scans, epsilon_km=epsilon_km)
