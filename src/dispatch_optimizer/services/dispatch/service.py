"""Request-level dispatch services behind the HTTP endpoints."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Mapping, Sequence

from ...config import settings
from ...data.unloading_points_repository import get_unloading_points
from ...models.domain import (
    DispatchResult,
    DispatchStats,
    Order,
    PlannedStop,
    UnloadingStop,
    Vehicle,
    VehiclePlan,
)
from ...persistence.repository import (
    get_dispatchable_orders,
    get_vehicle_orders,
    get_vehicles,
    update_order,
    update_vehicle,
)
from ...schemas.dispatch import (
    ApplyRequest,
    ApplyResponse,
    DispatchStatsModel,
    PlannedOrderModel,
    ProposeRequest,
    ProposeResponse,
    ReoptimizeRequest,
    ReoptimizeResponse,
    UnassignedOrderModel,
    UnloadingStopModel,
    VehiclePlanModel,
)
from ..routing.directions import estimate_route
from .orchestrator import DEFAULT_SLOT_LABEL, OptimizerParameters, propose_dispatch, reoptimize_route

WEEKDAY_LABELS = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")
MAX_ESTIMATE_WORKERS = 8

logger = logging.getLogger(__name__)


class VehicleNotFoundError(LookupError):
    """Raised when the requested vehicle is unknown or inactive."""


def weekday_label(date: str) -> str:
    try:
        parsed = datetime.strptime(date, "%Y-%m-%d")
    except ValueError as exc:
        raise ValueError(f"Invalid dispatch date '{date}', expected YYYY-MM-DD.") from exc
    return WEEKDAY_LABELS[parsed.weekday()]


def build_slot_groups(
    orders: Sequence[Order],
    vehicles: Sequence[Vehicle],
    slot_filters: Mapping[str, Sequence[str]],
) -> list[tuple[list[Order], list[Vehicle]]]:
    """Split a run by per-vehicle time slot restrictions.

    Restricted vehicles only receive orders in their slots; everything else
    goes to the unrestricted vehicles. Restrictions for vehicles that are not
    working are ignored, so their slots fall back to the unrestricted group.
    """

    active_ids = {vehicle.id for vehicle in vehicles}
    restricted_ids = {vehicle_id for vehicle_id, slots in slot_filters.items() if slots and vehicle_id in active_ids}

    slot_to_vehicles: dict[str, list[Vehicle]] = {}
    for vehicle in vehicles:
        if vehicle.id not in restricted_ids:
            continue
        for slot in slot_filters[vehicle.id]:
            slot_to_vehicles.setdefault(slot, []).append(vehicle)

    groups: list[tuple[list[Order], list[Vehicle]]] = []
    claimed: set[str] = set()
    for slot, slot_vehicles in slot_to_vehicles.items():
        slot_orders = [order for order in orders if (order.time_slot or DEFAULT_SLOT_LABEL) == slot]
        if not slot_orders:
            continue
        claimed.update(order.id for order in slot_orders)
        groups.append((slot_orders, slot_vehicles))

    remaining = [order for order in orders if order.id not in claimed]
    if remaining:
        unrestricted = [vehicle for vehicle in vehicles if vehicle.id not in restricted_ids]
        groups.append((remaining, unrestricted))
    return groups


def merge_results(results: Sequence[DispatchResult]) -> DispatchResult:
    """Combine several runs; a vehicle planned in more than one run gets its
    later stops appended after the earlier ones."""

    plans: list[VehiclePlan] = []
    by_vehicle: dict[str, VehiclePlan] = {}
    unassigned = []
    stats = DispatchStats()

    for result in results:
        for plan in result.plans:
            existing = by_vehicle.get(plan.vehicle_id)
            if existing is None:
                merged = VehiclePlan(
                    vehicle_id=plan.vehicle_id,
                    vehicle_name=plan.vehicle_name,
                    vehicle_type=plan.vehicle_type,
                    vehicle_capacity=plan.vehicle_capacity,
                    stops=list(plan.stops),
                    unloading_stops=list(plan.unloading_stops),
                    total_distance=plan.total_distance,
                    total_load=plan.total_load,
                    leg_count=plan.leg_count,
                )
                by_vehicle[plan.vehicle_id] = merged
                plans.append(merged)
                continue
            offset = len(existing.stops)
            existing.stops.extend(
                PlannedStop(order=stop.order, sequence_position=offset + stop.sequence_position)
                for stop in plan.stops
            )
            existing.unloading_stops.extend(
                UnloadingStop(
                    after_position=offset + stop.after_position,
                    unloading_point_id=stop.unloading_point_id,
                    unloading_point_name=stop.unloading_point_name,
                )
                for stop in plan.unloading_stops
            )
            existing.total_distance = round(existing.total_distance + plan.total_distance, 1)
            existing.total_load += plan.total_load
            existing.leg_count += plan.leg_count
        unassigned.extend(result.unassigned)
        stats.total_orders += result.stats.total_orders
        stats.assigned += result.stats.assigned
        stats.unassigned += result.stats.unassigned
        stats.total_distance += result.stats.total_distance

    stats.total_distance = round(stats.total_distance, 1)
    return DispatchResult(plans=plans, unassigned=unassigned, stats=stats)


def _attach_estimates(plans: Sequence[VehiclePlan]) -> None:
    if not settings.osrm_base_url or not plans:
        return

    def _estimate(plan: VehiclePlan):
        try:
            return estimate_route([(order.latitude, order.longitude) for order in plan.orders])
        except Exception as e:
            logger.warning(f"Route estimate failed for vehicle {plan.vehicle_id}: {e}")
            return None

    with ThreadPoolExecutor(max_workers=min(MAX_ESTIMATE_WORKERS, len(plans))) as executor:
        estimates = list(executor.map(_estimate, plans))

    for plan, estimate in zip(plans, estimates):
        if estimate is None:
            continue
        plan.estimated_duration_seconds = estimate.duration_seconds
        plan.estimated_distance_meters = estimate.distance_meters


def _stop_model(stop: UnloadingStop) -> UnloadingStopModel:
    return UnloadingStopModel(
        after_position=stop.after_position,
        unloading_point_id=stop.unloading_point_id,
        unloading_point_name=stop.unloading_point_name,
    )


def _plan_model(plan: VehiclePlan) -> VehiclePlanModel:
    return VehiclePlanModel(
        vehicle_id=plan.vehicle_id,
        vehicle_name=plan.vehicle_name,
        vehicle_type=plan.vehicle_type,
        vehicle_capacity=plan.vehicle_capacity,
        orders=[
            PlannedOrderModel(
                id=stop.order.id,
                sequence_position=stop.sequence_position,
                address=stop.order.address,
                customer_name=stop.order.customer_name,
                cargo_volume=stop.order.cargo_volume,
            )
            for stop in plan.stops
        ],
        unloading_stops=[_stop_model(stop) for stop in plan.unloading_stops],
        total_distance=plan.total_distance,
        total_load=plan.total_load,
        leg_count=plan.leg_count,
        estimated_duration_seconds=plan.estimated_duration_seconds,
        estimated_distance_meters=plan.estimated_distance_meters,
    )


def result_to_response(result: DispatchResult, message: str | None = None) -> ProposeResponse:
    return ProposeResponse(
        plan=[_plan_model(plan) for plan in result.plans],
        unassigned=[UnassignedOrderModel(id=item.order_id, reason=item.reason) for item in result.unassigned],
        stats=DispatchStatsModel(
            total_orders=result.stats.total_orders,
            assigned=result.stats.assigned,
            unassigned=result.stats.unassigned,
            total_distance=result.stats.total_distance,
        ),
        message=message,
    )


def propose_for_date(payload: ProposeRequest) -> ProposeResponse:
    """Build a dispatch proposal for the date. Nothing is persisted."""
    weekday = weekday_label(payload.date)
    orders = get_dispatchable_orders(payload.date)
    if not orders:
        return result_to_response(
            DispatchResult(plans=[], unassigned=[], stats=DispatchStats()),
            message="No unassigned orders for this date.",
        )

    vehicles = [vehicle for vehicle in get_vehicles(active_only=True) if vehicle.works_on(weekday)]
    unloading_points = list(get_unloading_points())
    params = OptimizerParameters()

    slot_filters = {vehicle_id: slots for vehicle_id, slots in (payload.vehicle_slot_filters or {}).items() if slots}
    if slot_filters:
        results = [
            propose_dispatch(group_orders, group_vehicles, unloading_points, params)
            for group_orders, group_vehicles in build_slot_groups(orders, vehicles, slot_filters)
        ]
        result = merge_results(results)
    else:
        result = propose_dispatch(orders, vehicles, unloading_points, params)

    _attach_estimates(result.plans)
    return result_to_response(result)


def apply_plan(payload: ApplyRequest) -> ApplyResponse:
    """Persist vehicle and sequence position per order. Vehicle names come
    from storage, never from the request."""
    vehicles = {vehicle.id: vehicle for vehicle in get_vehicles(active_only=False)}
    unknown = [item.vehicle_id for item in payload.plan if item.vehicle_id not in vehicles]
    if unknown:
        raise ValueError(f"Unknown vehicle ids: {', '.join(unknown)}")

    succeeded: list[str] = []
    failed: list[str] = []
    for item in payload.plan:
        vehicle = vehicles[item.vehicle_id]
        for order in item.orders:
            ok = update_order(
                order.id,
                {
                    "driver_id": vehicle.id,
                    "driver_name": vehicle.name,
                    "route_order": order.sequence_position,
                },
            )
            (succeeded if ok else failed).append(order.id)

    if failed:
        logger.warning(f"Dispatch apply: {len(failed)} of {len(succeeded) + len(failed)} orders not updated")
    return ApplyResponse(succeeded=succeeded, failed=failed)


def reoptimize_for_vehicle(payload: ReoptimizeRequest) -> ReoptimizeResponse:
    """Re-sequence one vehicle's day and persist positions, unloading stops
    and the load carried into the next run."""
    vehicle = next((item for item in get_vehicles(active_only=True) if item.id == payload.vehicle_id), None)
    if vehicle is None:
        raise VehicleNotFoundError(f"Vehicle '{payload.vehicle_id}' not found.")

    orders = get_vehicle_orders(payload.date, vehicle.id)
    if not orders:
        return ReoptimizeResponse(updated=0, message="No assigned orders for this vehicle.")

    result = reoptimize_route(
        orders,
        vehicle,
        list(get_unloading_points()),
        slot_priority=settings.time_slot_priority,
        params=OptimizerParameters(),
    )

    stop_after = {stop.after_position: stop.unloading_point_id for stop in result.unloading_stops}
    updated = 0
    for position, order in enumerate(result.orders, start=1):
        if update_order(order.id, {"route_order": position, "unloading_stop_after": stop_after.get(position)}):
            updated += 1
        else:
            logger.warning(f"Failed to persist route position {position} for order {order.id}")

    if not update_vehicle(vehicle.id, {"initial_load_cube": result.final_load}):
        logger.error(f"Failed to update carried-over load for vehicle {vehicle.id}")

    return ReoptimizeResponse(
        updated=updated,
        unloading_stops=[_stop_model(stop) for stop in result.unloading_stops],
        final_load=result.final_load,
        total_distance=result.total_distance,
    )
