"""Placement of unloading detours along an ordered route."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from ...models.domain import Order, UnloadingPoint, UnloadingStop
from ..geospatial import distance_km

logger = logging.getLogger(__name__)


def select_unloading_point(
    current: Order,
    next_order: Optional[Order],
    points: Sequence[UnloadingPoint],
) -> Optional[UnloadingPoint]:
    """Pick the point with the smallest detour current -> point (-> next stop)."""

    best: Optional[UnloadingPoint] = None
    best_cost = float("inf")
    for point in points:
        cost = distance_km(current, point)
        if next_order is not None:
            cost += distance_km(point, next_order)
        if cost < best_cost:
            best_cost = cost
            best = point
    return best


def insert_unloading_stops(
    route: Sequence[Order],
    capacity: float,
    unloading_points: Sequence[UnloadingPoint],
    initial_load: float = 0.0,
) -> list[UnloadingStop]:
    """Walk the route with a running load and schedule an unloading detour
    whenever the vehicle is over capacity or would be after the next pickup.

    Positions are 1-based and refer to the order after which the detour
    happens. Without unloading points nothing is inserted and the overflow is
    left for the caller to report.
    """

    stops: list[UnloadingStop] = []
    load = initial_load
    last_index = len(route) - 1

    for idx, order in enumerate(route):
        if order.cargo_volume > capacity:
            logger.warning(
                f"Order {order.id} cargo volume {order.cargo_volume} exceeds vehicle capacity {capacity}"
            )
        load += order.cargo_volume
        if not unloading_points:
            continue

        next_order = route[idx + 1] if idx < last_index else None
        over_now = load > capacity
        over_next = next_order is not None and load + next_order.cargo_volume > capacity
        if not (over_now or over_next):
            continue

        point = select_unloading_point(order, next_order, unloading_points)
        if point is None:
            continue
        stops.append(
            UnloadingStop(
                after_position=idx + 1,
                unloading_point_id=point.id,
                unloading_point_name=point.name,
            )
        )
        load = 0.0

    return stops


def remaining_load(
    route: Sequence[Order],
    stops: Sequence[UnloadingStop],
    initial_load: float = 0.0,
) -> float:
    """Cargo still aboard after the last order, replaying the scheduled unloads."""

    unload_after = {stop.after_position for stop in stops}
    load = initial_load
    for position, order in enumerate(route, start=1):
        load += order.cargo_volume
        if position in unload_after:
            load = 0.0
    return load
