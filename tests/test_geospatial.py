import math

import numpy as np

from src.dispatch_optimizer.models.domain import Order
from src.dispatch_optimizer.services.geospatial import (
    EARTH_RADIUS_KM,
    centroid,
    distance_km,
    distance_matrix,
    haversine_km,
    haversine_km_array,
    road_distance_km,
)


def _order(oid: str, lat: float, lon: float) -> Order:
    return Order(id=oid, latitude=lat, longitude=lon)


def test_haversine_one_degree_of_latitude():
    assert abs(haversine_km(0.0, 0.0, 1.0, 0.0) - 111.195) < 0.01


def test_distance_is_symmetric_and_zero_on_identity():
    a = _order("A", 37.5665, 126.9780)
    b = _order("B", 37.4979, 127.0276)

    assert distance_km(a, b) == distance_km(b, a)
    assert distance_km(a, a) == 0.0
    assert distance_km(a, b) > 0


def test_road_distance_applies_detour_factor():
    a = _order("A", 37.50, 127.00)
    b = _order("B", 37.55, 127.05)

    assert abs(road_distance_km(a, b) - distance_km(a, b) * 1.4) < 1e-9
    assert abs(road_distance_km(a, b, detour_factor=2.0) - distance_km(a, b) * 2.0) < 1e-9


def test_distance_matrix_is_symmetric_with_zero_diagonal():
    points = [_order("A", 37.50, 127.00), _order("B", 37.55, 127.05), _order("C", 37.45, 127.10)]

    matrix = distance_matrix(points)

    assert matrix.shape == (3, 3)
    assert np.allclose(matrix, matrix.T)
    assert np.all(np.diag(matrix) == 0)
    assert abs(matrix[0, 2] - distance_km(points[0], points[2])) < 1e-9


def test_centroid_of_points():
    points = [_order("A", 37.0, 127.0), _order("B", 38.0, 128.0)]

    assert centroid(points) == (37.5, 127.5)
    assert centroid([]) == (0.0, 0.0)


def test_near_antipodal_pair_is_half_circumference():
    a = _order("A", 82.0, 0.0)
    b = _order("B", -82.0, 179.9999999)
    half_circumference = math.pi * EARTH_RADIUS_KM

    assert abs(distance_km(a, b) - half_circumference) < 1.0
    distances = haversine_km_array(82.0, 0.0, np.array([-82.0, -82.0]), np.array([179.9999999, -179.9999999]))
    assert np.all(np.isfinite(distances))
    assert np.allclose(distances, half_circumference, atol=1.0)
