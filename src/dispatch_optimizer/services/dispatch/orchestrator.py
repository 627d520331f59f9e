"""Dispatch orchestration: clustering, per-vehicle routing and unloading stops."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from ...config import settings
from ...models.domain import (
    REASON_CLUSTER_FAILED,
    REASON_NO_CLUSTER,
    REASON_NO_COORDINATES,
    REASON_NO_VEHICLE,
    DispatchResult,
    DispatchStats,
    Order,
    PlannedStop,
    ReoptimizedRoute,
    UnassignedOrder,
    UnloadingPoint,
    Vehicle,
    VehiclePlan,
)
from ..clustering.capacity import CapacityClustering
from ..routing.tsp import optimize_route, route_distance
from ..routing.unloading import insert_unloading_stops, remaining_load

DEFAULT_SLOT_LABEL = "other"

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class OptimizerParameters:
    road_detour_factor: float = settings.road_detour_factor
    kmeans_max_rounds: int = settings.kmeans_max_rounds
    two_opt_max_scans: int = settings.two_opt_max_scans
    two_opt_epsilon_km: float = settings.two_opt_epsilon_km
    enforce_cluster_limits: bool = settings.enforce_cluster_limits


def _optimize(orders: Sequence[Order], params: OptimizerParameters) -> list[Order]:
    return optimize_route(
        orders,
        road_detour_factor=params.road_detour_factor,
        max_scans=params.two_opt_max_scans,
        epsilon_km=params.two_opt_epsilon_km,
    )


def _warn_unresolved_overflow(vehicle: Vehicle, total_load: float, unloading_points: Sequence[UnloadingPoint]) -> None:
    if not unloading_points and total_load > vehicle.capacity:
        logger.warning(
            f"Vehicle {vehicle.id} carries {total_load:.2f} over capacity {vehicle.capacity:.2f} "
            "and no unloading points are available"
        )


def _build_plan(
    vehicle: Vehicle,
    orders: Sequence[Order],
    unloading_points: Sequence[UnloadingPoint],
    params: OptimizerParameters,
) -> VehiclePlan:
    route = _optimize(orders, params)
    stops = insert_unloading_stops(route, vehicle.capacity, unloading_points)
    total_load = sum(order.cargo_volume for order in route)
    _warn_unresolved_overflow(vehicle, total_load, unloading_points)
    return VehiclePlan(
        vehicle_id=vehicle.id,
        vehicle_name=vehicle.name,
        vehicle_type=vehicle.vehicle_type,
        vehicle_capacity=vehicle.capacity,
        stops=[PlannedStop(order=order, sequence_position=idx) for idx, order in enumerate(route, start=1)],
        unloading_stops=stops,
        total_distance=route_distance(route, road_detour_factor=params.road_detour_factor),
        total_load=total_load,
        leg_count=len(stops) + 1,
    )


def propose_dispatch(
    orders: Sequence[Order],
    vehicles: Sequence[Vehicle],
    unloading_points: Sequence[UnloadingPoint],
    params: OptimizerParameters | None = None,
) -> DispatchResult:
    """Assign orders to vehicles, sequence each vehicle's stops and place
    unloading detours. Never raises for empty input; everything that could
    not be planned is listed with a reason."""

    params = params or OptimizerParameters()
    valid = [order for order in orders if order.has_coordinates]
    unassigned = [
        UnassignedOrder(order_id=order.id, reason=REASON_NO_COORDINATES)
        for order in orders
        if not order.has_coordinates
    ]

    if not valid or not vehicles:
        unassigned.extend(UnassignedOrder(order_id=order.id, reason=REASON_NO_VEHICLE) for order in valid)
        return DispatchResult(
            plans=[],
            unassigned=unassigned,
            stats=DispatchStats(total_orders=len(orders), assigned=0, unassigned=len(unassigned)),
        )

    clustering = CapacityClustering(
        max_rounds=params.kmeans_max_rounds,
        enforce_limits=params.enforce_cluster_limits,
    ).cluster(valid, vehicles)
    vehicles_by_id = {vehicle.id: vehicle for vehicle in vehicles}

    plans: list[VehiclePlan] = []
    failed_ids: set[str] = set()
    for idx, cluster in enumerate(clustering.clusters):
        if not cluster.orders:
            continue
        vehicle = vehicles_by_id.get(clustering.vehicle_for(idx) or "")
        if vehicle is None:
            failed_ids.update(order.id for order in cluster.orders)
            continue
        plans.append(_build_plan(vehicle, cluster.orders, unloading_points, params))

    assigned_ids = {order.id for plan in plans for order in plan.orders}
    dropped_ids = set(clustering.metadata.get("dropped_order_ids", []))
    for order in valid:
        if order.id in assigned_ids:
            continue
        if order.id in failed_ids:
            reason = REASON_CLUSTER_FAILED
        elif order.id in dropped_ids:
            reason = REASON_NO_VEHICLE
        else:
            reason = REASON_NO_CLUSTER
        unassigned.append(UnassignedOrder(order_id=order.id, reason=reason))

    stats = DispatchStats(
        total_orders=len(orders),
        assigned=len(assigned_ids),
        unassigned=len(unassigned),
        total_distance=round(sum(plan.total_distance for plan in plans), 1),
    )
    logger.info(
        f"Dispatch proposal: {stats.total_orders} orders, {stats.assigned} assigned, "
        f"{stats.unassigned} unassigned, {stats.total_distance} km across {len(plans)} vehicles"
    )
    return DispatchResult(plans=plans, unassigned=unassigned, stats=stats)


def group_by_time_slot(orders: Sequence[Order], slot_priority: Sequence[str]) -> list[list[Order]]:
    """Group orders by slot label, ordered by priority; unknown slots go last
    in order of first appearance."""

    groups: dict[str, list[Order]] = {}
    for order in orders:
        groups.setdefault(order.time_slot or DEFAULT_SLOT_LABEL, []).append(order)

    rank = {slot: idx for idx, slot in enumerate(slot_priority)}
    ordered = sorted(groups, key=lambda slot: rank.get(slot, len(rank)))
    return [groups[slot] for slot in ordered]


def reoptimize_route(
    orders: Sequence[Order],
    vehicle: Vehicle,
    unloading_points: Sequence[UnloadingPoint],
    *,
    initial_load: float | None = None,
    slot_priority: Sequence[str] | None = None,
    params: OptimizerParameters | None = None,
) -> ReoptimizedRoute:
    """Re-sequence one vehicle's assigned orders without touching assignment.

    ``initial_load`` defaults to the vehicle's carried-over load. With a slot
    priority list the orders are routed slot by slot in that order.
    """

    params = params or OptimizerParameters()
    start_load = vehicle.initial_load if initial_load is None else initial_load

    if slot_priority:
        route: list[Order] = []
        for group in group_by_time_slot(orders, slot_priority):
            route.extend(_optimize(group, params))
    else:
        route = _optimize(orders, params)

    stops = insert_unloading_stops(route, vehicle.capacity, unloading_points, start_load)
    total_load = sum(order.cargo_volume for order in route)
    _warn_unresolved_overflow(vehicle, start_load + total_load, unloading_points)
    return ReoptimizedRoute(
        vehicle_id=vehicle.id,
        orders=route,
        unloading_stops=stops,
        total_distance=route_distance(route, road_detour_factor=params.road_detour_factor),
        total_load=total_load,
        final_load=remaining_load(route, stops, start_load),
    )
