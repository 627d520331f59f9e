"""Supabase table access for bookings and drivers."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from ..db.supabase import get_supabase_client
from ..models.domain import Order, Vehicle

DISPATCHABLE_STATUSES = ("quote_confirmed",)

logger = logging.getLogger(__name__)


def _as_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _parse_work_days(value: Any) -> tuple[str, ...]:
    if not value:
        return tuple()
    if isinstance(value, (list, tuple)):
        items: Iterable[Any] = value
    else:
        items = str(value).split(",")
    return tuple(str(item).strip().upper() for item in items if str(item).strip())


def order_from_row(row: dict) -> Order:
    return Order(
        id=str(row["id"]),
        latitude=_as_float(row.get("latitude")),
        longitude=_as_float(row.get("longitude")),
        cargo_volume=_as_float(row.get("total_loading_cube")),
        time_slot=row.get("time_slot") or "",
        address=row.get("address") or "",
        customer_name=row.get("customer_name") or "",
    )


def vehicle_from_row(row: dict) -> Vehicle:
    max_jobs = row.get("max_job_count")
    return Vehicle(
        id=str(row["id"]),
        name=row.get("name") or "",
        capacity=_as_float(row.get("vehicle_capacity")),
        vehicle_type=row.get("vehicle_type") or "",
        initial_load=_as_float(row.get("initial_load_cube")),
        max_jobs=int(max_jobs) if max_jobs else None,
        work_days=_parse_work_days(row.get("work_days")),
    )


def _select(table: str, filters: dict[str, Any]) -> list[dict]:
    supabase = get_supabase_client()
    if not supabase:
        logger.info(f"Supabase not configured - no rows loaded from '{table}'")
        return []
    try:
        query = supabase.table(table).select("*")
        for column, value in filters.items():
            query = query.eq(column, value)
        response = query.execute()
        return list(response.data or [])
    except Exception as e:
        logger.warning(f"Failed to load rows from '{table}': {e}")
        return []


def _update(table: str, row_id: str, fields: dict[str, Any], *, exclude_statuses: Iterable[str] = ()) -> bool:
    supabase = get_supabase_client()
    if not supabase:
        return False
    try:
        query = supabase.table(table).update(fields).eq("id", row_id)
        for status in exclude_statuses:
            query = query.neq("status", status)
        response = query.execute()
        return bool(response.data)
    except Exception as e:
        logger.error(f"Failed to update {table} row {row_id}: {e}")
        return False


def get_dispatchable_orders(date: str) -> list[Order]:
    """Unassigned orders for the date that are ready to be dispatched."""
    rows = _select("bookings", {"date": date})
    return [
        order_from_row(row)
        for row in rows
        if not row.get("driver_id") and row.get("status") in DISPATCHABLE_STATUSES
    ]


def get_vehicle_orders(date: str, vehicle_id: str) -> list[Order]:
    """Orders already assigned to the vehicle on the date, coordinates required."""
    rows = _select("bookings", {"date": date, "driver_id": vehicle_id})
    orders = [order_from_row(row) for row in rows]
    return [order for order in orders if order.has_coordinates]


def get_vehicles(active_only: bool = True) -> list[Vehicle]:
    rows = _select("drivers", {"active": True} if active_only else {})
    return [vehicle_from_row(row) for row in rows]


def update_order(order_id: str, fields: dict[str, Any]) -> bool:
    """Update a booking unless it has been cancelled or rejected meanwhile."""
    return _update("bookings", order_id, fields, exclude_statuses=("cancelled", "rejected"))


def update_vehicle(vehicle_id: str, fields: dict[str, Any]) -> bool:
    return _update("drivers", vehicle_id, fields)
