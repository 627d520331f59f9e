"""Dispatch request/response schemas."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class ProposeRequest(BaseModel):
    date: str = Field(..., pattern=DATE_PATTERN, description="Dispatch date (YYYY-MM-DD).")
    vehicle_slot_filters: Optional[Dict[str, List[str]]] = Field(
        default=None,
        description="Vehicle id -> time slots it may serve. Empty lists mean no restriction.",
    )


class PlannedOrderModel(BaseModel):
    id: str
    sequence_position: int
    address: str
    customer_name: str
    cargo_volume: float


class UnloadingStopModel(BaseModel):
    after_position: int
    unloading_point_id: str
    unloading_point_name: str


class VehiclePlanModel(BaseModel):
    vehicle_id: str
    vehicle_name: str
    vehicle_type: str
    vehicle_capacity: float
    orders: List[PlannedOrderModel]
    unloading_stops: List[UnloadingStopModel]
    total_distance: float
    total_load: float
    leg_count: int
    estimated_duration_seconds: Optional[float] = None
    estimated_distance_meters: Optional[float] = None


class UnassignedOrderModel(BaseModel):
    id: str
    reason: str


class DispatchStatsModel(BaseModel):
    total_orders: int
    assigned: int
    unassigned: int
    total_distance: float


class ProposeResponse(BaseModel):
    plan: List[VehiclePlanModel]
    unassigned: List[UnassignedOrderModel]
    stats: DispatchStatsModel
    message: Optional[str] = None


class ApplyOrderModel(BaseModel):
    id: str = Field(..., min_length=1)
    sequence_position: int = Field(..., ge=1)


class ApplyVehiclePlanModel(BaseModel):
    vehicle_id: str = Field(..., min_length=1)
    vehicle_name: Optional[str] = Field(
        default=None,
        description="Ignored; the name is looked up server-side.",
    )
    orders: List[ApplyOrderModel]


class ApplyRequest(BaseModel):
    plan: List[ApplyVehiclePlanModel]


class ApplyResponse(BaseModel):
    succeeded: List[str]
    failed: List[str]


class ReoptimizeRequest(BaseModel):
    date: str = Field(..., pattern=DATE_PATTERN)
    vehicle_id: str = Field(..., min_length=1)


class ReoptimizeResponse(BaseModel):
    updated: int
    unloading_stops: List[UnloadingStopModel] = Field(default_factory=list)
    final_load: float = 0.0
    total_distance: float = 0.0
    message: Optional[str] = None
