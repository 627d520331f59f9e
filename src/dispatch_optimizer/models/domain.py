"""Domain models for orders, vehicles, unloading points and dispatch plans."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

REASON_NO_COORDINATES = "no coordinates"
REASON_NO_CLUSTER = "no cluster assignment"
REASON_NO_VEHICLE = "no vehicle available"
REASON_CLUSTER_FAILED = "cluster assignment failed"


@dataclass(slots=True, frozen=True)
class Order:
    """A pickup job to be routed. Volumes share the unit of vehicle capacity."""

    id: str
    latitude: float
    longitude: float
    cargo_volume: float = 0.0
    time_slot: str = ""
    address: str = ""
    customer_name: str = ""

    @property
    def has_coordinates(self) -> bool:
        # 0/0 is the "unset" marker coming from storage
        return bool(self.latitude) and bool(self.longitude)


@dataclass(slots=True, frozen=True)
class Vehicle:
    """A routable vehicle and its operator."""

    id: str
    name: str
    capacity: float
    vehicle_type: str = ""
    initial_load: float = 0.0
    max_jobs: Optional[int] = None
    work_days: tuple[str, ...] = ()

    def works_on(self, weekday: str) -> bool:
        return not self.work_days or weekday in self.work_days


@dataclass(slots=True, frozen=True)
class UnloadingPoint:
    id: str
    latitude: float
    longitude: float
    name: str = ""


@dataclass(slots=True)
class Cluster:
    centroid_lat: float
    centroid_lng: float
    orders: List[Order] = field(default_factory=list)
    total_load: float = 0.0


@dataclass(slots=True, frozen=True)
class UnloadingStop:
    after_position: int
    unloading_point_id: str
    unloading_point_name: str


@dataclass(slots=True, frozen=True)
class PlannedStop:
    order: Order
    sequence_position: int


@dataclass(slots=True)
class VehiclePlan:
    vehicle_id: str
    vehicle_name: str
    vehicle_type: str
    vehicle_capacity: float
    stops: List[PlannedStop]
    unloading_stops: List[UnloadingStop]
    total_distance: float
    total_load: float
    leg_count: int
    estimated_duration_seconds: Optional[float] = None
    estimated_distance_meters: Optional[float] = None

    @property
    def orders(self) -> list[Order]:
        return [stop.order for stop in self.stops]


@dataclass(slots=True, frozen=True)
class UnassignedOrder:
    order_id: str
    reason: str


@dataclass(slots=True)
class DispatchStats:
    total_orders: int = 0
    assigned: int = 0
    unassigned: int = 0
    total_distance: float = 0.0


@dataclass(slots=True)
class DispatchResult:
    plans: List[VehiclePlan]
    unassigned: List[UnassignedOrder]
    stats: DispatchStats


@dataclass(slots=True)
class ReoptimizedRoute:
    """Outcome of re-sequencing one vehicle's already assigned orders."""

    vehicle_id: str
    orders: List[Order]
    unloading_stops: List[UnloadingStop]
    total_distance: float
    total_load: float
    final_load: float
