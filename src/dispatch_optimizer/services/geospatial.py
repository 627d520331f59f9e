"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Protocol, Sequence

import numpy as np

EARTH_RADIUS_KM = 6371.0
DEFAULT_ROAD_DETOUR_FACTOR = 1.4


class Locatable(Protocol):
    latitude: float
    longitude: float


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # rounding can push near-antipodal pairs just past 1
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def haversine_km_array(lat: float, lon: float, lats: np.ndarray, lons: np.ndarray) -> np.ndarray:
    """Vectorised haversine from one coordinate to arrays of coordinates."""

    phi1 = np.radians(lat)
    phi2 = np.radians(lats)
    d_phi = phi2 - phi1
    d_lambda = np.radians(lons - lon)

    a = np.sin(d_phi / 2) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(d_lambda / 2) ** 2
    a = np.clip(a, 0.0, 1.0)
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_km(a: Locatable, b: Locatable) -> float:
    """Great-circle distance between two locatable objects."""

    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)


def road_distance_km(a: Locatable, b: Locatable, detour_factor: float = DEFAULT_ROAD_DETOUR_FACTOR) -> float:
    """Estimated travel distance: straight-line distance scaled by the road detour factor."""

    return distance_km(a, b) * detour_factor


def distance_matrix(points: Sequence[Locatable]) -> np.ndarray:
    """Build a symmetric pairwise great-circle distance matrix (km) with a zero diagonal."""

    count = len(points)
    matrix = np.zeros((count, count), dtype=float)
    for i in range(count):
        for j in range(i + 1, count):
            value = distance_km(points[i], points[j])
            matrix[i, j] = value
            matrix[j, i] = value
    return matrix


def centroid(points: Sequence[Locatable]) -> tuple[float, float]:
    """Arithmetic mean of latitudes and longitudes."""

    if not points:
        return (0.0, 0.0)
    coords = np.array([(point.latitude, point.longitude) for point in points], dtype=float)
    lat, lon = coords.mean(axis=0)
    return (float(lat), float(lon))
