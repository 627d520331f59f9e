"""Capacity-aware geographic clustering of orders across a fleet."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from ...models.domain import Cluster, Order, Vehicle
from ..geospatial import haversine_km, haversine_km_array

DEFAULT_MAX_ROUNDS = 20
LIMIT_REPAIR_PASSES = 3

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ClusteringResult:
    clusters: list[Cluster]
    # cluster index -> vehicle id
    vehicle_assignment: dict[int, str]
    metadata: dict = field(default_factory=dict)

    def vehicle_for(self, cluster_index: int) -> str | None:
        return self.vehicle_assignment.get(cluster_index)


class CapacityClustering:
    """Split orders into one geographic group per vehicle and pair the groups
    with vehicles by rank: the largest-capacity vehicle receives the heaviest
    cluster.

    Seeding is deterministic farthest-point selection (K-Means++ in spirit):
    the first centroid is the order closest to the mean of all orders, every
    following centroid is the order farthest from the ones already chosen.
    The pairing is advisory. A cluster may still exceed its vehicle's
    capacity; unloading stops absorb that downstream unless
    ``enforce_limits`` is enabled.
    """

    def __init__(
        self,
        *,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        enforce_limits: bool = False,
    ) -> None:
        if max_rounds < 1:
            raise ValueError("max_rounds must be >= 1")
        self.max_rounds = max_rounds
        self.enforce_limits = enforce_limits

    def _seed_centroids(self, lats: np.ndarray, lons: np.ndarray, k: int) -> np.ndarray:
        mean_lat, mean_lon = float(lats.mean()), float(lons.mean())
        first = int(np.argmin(haversine_km_array(mean_lat, mean_lon, lats, lons)))
        chosen = [first]

        min_dist = haversine_km_array(float(lats[first]), float(lons[first]), lats, lons)
        for _ in range(1, k):
            candidate = int(np.argmax(min_dist))
            chosen.append(candidate)
            min_dist = np.minimum(
                min_dist,
                haversine_km_array(float(lats[candidate]), float(lons[candidate]), lats, lons),
            )
        return np.column_stack((lats[chosen], lons[chosen])).astype(float)

    @staticmethod
    def _assign(lats: np.ndarray, lons: np.ndarray, centroids: np.ndarray) -> np.ndarray:
        distances = np.vstack(
            [haversine_km_array(float(lat), float(lon), lats, lons) for lat, lon in centroids]
        )
        return np.argmin(distances, axis=0)

    @staticmethod
    def _update_centroids(
        lats: np.ndarray, lons: np.ndarray, labels: np.ndarray, centroids: np.ndarray
    ) -> np.ndarray:
        updated = centroids.copy()
        for label in range(len(centroids)):
            mask = labels == label
            if mask.any():
                updated[label] = (lats[mask].mean(), lons[mask].mean())
        return updated

    def cluster(self, orders: Sequence[Order], vehicles: Sequence[Vehicle]) -> ClusteringResult:
        k = min(len(vehicles), len(orders))
        if k == 0:
            return ClusteringResult(clusters=[], vehicle_assignment={}, metadata={"k": 0, "rounds": 0})

        lats = np.array([order.latitude for order in orders], dtype=float)
        lons = np.array([order.longitude for order in orders], dtype=float)

        centroids = self._seed_centroids(lats, lons, k)
        labels = np.full(len(orders), -1, dtype=int)
        converged = False
        rounds = 0
        for rounds in range(1, self.max_rounds + 1):
            new_labels = self._assign(lats, lons, centroids)
            if np.array_equal(labels, new_labels):
                converged = True
                break
            labels = new_labels
            centroids = self._update_centroids(lats, lons, labels, centroids)
        if not converged:
            logger.debug(f"K-Means stopped at the {self.max_rounds} round cap before converging")

        clusters = [
            Cluster(centroid_lat=float(lat), centroid_lng=float(lon)) for lat, lon in centroids
        ]
        for order, label in zip(orders, labels):
            cluster = clusters[int(label)]
            cluster.orders.append(order)
            cluster.total_load += order.cargo_volume

        vehicle_assignment = self._pair_with_vehicles(clusters, vehicles)

        metadata = {"k": k, "rounds": rounds, "converged": converged}
        if self.enforce_limits:
            vehicles_by_id = {vehicle.id: vehicle for vehicle in vehicles}
            dropped = _enforce_limits(clusters, vehicle_assignment, vehicles_by_id)
            metadata["dropped_order_ids"] = [order.id for order in dropped]

        return ClusteringResult(clusters=clusters, vehicle_assignment=vehicle_assignment, metadata=metadata)

    @staticmethod
    def _pair_with_vehicles(clusters: Sequence[Cluster], vehicles: Sequence[Vehicle]) -> dict[int, str]:
        ranked_vehicles = sorted(vehicles, key=lambda vehicle: vehicle.capacity, reverse=True)
        ranked_clusters = sorted(range(len(clusters)), key=lambda idx: clusters[idx].total_load, reverse=True)
        return {
            cluster_idx: ranked_vehicles[rank].id
            for rank, cluster_idx in enumerate(ranked_clusters)
            if rank < len(ranked_vehicles)
        }


def _distance_to_centroid(cluster: Cluster, order: Order) -> float:
    return haversine_km(cluster.centroid_lat, cluster.centroid_lng, order.latitude, order.longitude)


def _strip_farthest(cluster: Cluster, *, max_jobs: int | None, capacity: float | None) -> list[Order]:
    """Remove members farthest from the centroid until the cluster fits its limits."""

    by_distance = sorted(cluster.orders, key=lambda order: _distance_to_centroid(cluster, order), reverse=True)
    kept = list(cluster.orders)
    load = cluster.total_load
    stripped: list[Order] = []
    for order in by_distance:
        over_jobs = max_jobs is not None and len(kept) > max_jobs
        over_capacity = capacity is not None and load > capacity
        if not (over_jobs or over_capacity):
            break
        kept.remove(order)
        load -= order.cargo_volume
        stripped.append(order)
    cluster.orders = kept
    cluster.total_load = sum(order.cargo_volume for order in kept)
    return stripped


def _relocate(
    order: Order,
    source_idx: int,
    clusters: list[Cluster],
    vehicle_assignment: dict[int, str],
    vehicles_by_id: dict[str, Vehicle],
) -> bool:
    best_idx = -1
    best_dist = float("inf")
    for idx, vehicle_id in vehicle_assignment.items():
        if idx == source_idx:
            continue
        vehicle = vehicles_by_id[vehicle_id]
        target = clusters[idx]
        if vehicle.max_jobs is not None and len(target.orders) >= vehicle.max_jobs:
            continue
        if target.total_load + order.cargo_volume > vehicle.capacity:
            continue
        dist = _distance_to_centroid(target, order)
        if dist < best_dist:
            best_dist = dist
            best_idx = idx
    if best_idx < 0:
        return False
    clusters[best_idx].orders.append(order)
    clusters[best_idx].total_load += order.cargo_volume
    return True


def _enforce_limits(
    clusters: list[Cluster],
    vehicle_assignment: dict[int, str],
    vehicles_by_id: dict[str, Vehicle],
) -> list[Order]:
    """Move overflow out of clusters exceeding their vehicle's job count or
    capacity. Returns the orders no other cluster could take."""

    dropped: list[Order] = []
    for _ in range(LIMIT_REPAIR_PASSES):
        any_overflow = False
        for idx, vehicle_id in vehicle_assignment.items():
            vehicle = vehicles_by_id[vehicle_id]
            cluster = clusters[idx]
            over_jobs = vehicle.max_jobs is not None and len(cluster.orders) > vehicle.max_jobs
            if not over_jobs and cluster.total_load <= vehicle.capacity:
                continue
            any_overflow = True
            for order in _strip_farthest(cluster, max_jobs=vehicle.max_jobs, capacity=vehicle.capacity):
                if not _relocate(order, idx, clusters, vehicle_assignment, vehicles_by_id):
                    dropped.append(order)
        if not any_overflow:
            break
    return dropped
