"""HTTP client for OSRM route estimates used to enrich dispatch plans."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional, Sequence

import httpx

from ...config import settings

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RouteEstimate:
    duration_seconds: float
    distance_meters: float


class DirectionsClient:
    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        max_waypoints: int | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or settings.osrm_base_url
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.base_url = self.base_url.rstrip("/")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout if timeout is not None else settings.osrm_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.osrm_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.osrm_backoff_seconds
        self.max_waypoints = max_waypoints if max_waypoints is not None else settings.osrm_max_waypoints
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 10.0)),
            transport=self._transport,
        )

    def _trim_waypoints(self, coordinates: Sequence[tuple[float, float]]) -> list[tuple[float, float]]:
        waypoints = list(coordinates[1:-1])
        if len(waypoints) > self.max_waypoints:
            logger.warning(
                f"{len(waypoints)} waypoints exceed the limit of {self.max_waypoints}; using the first {self.max_waypoints}"
            )
            waypoints = waypoints[: self.max_waypoints]
        return [coordinates[0], *waypoints, coordinates[-1]]

    def route(self, coordinates: Sequence[tuple[float, float]]) -> dict:
        """Call the OSRM route endpoint for (lat, lon) waypoints in visiting order."""
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required for OSRM route.")

        points = self._trim_waypoints(coordinates)
        coordinate_str = ";".join(f"{lon},{lat}" for lat, lon in points)
        params = {"overview": "false", "steps": "false"}
        url = f"{self.base_url}/route/v1/{self.profile}/{coordinate_str}"

        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=params)
                    response.raise_for_status()
                    data = response.json()
                    if data.get("code") != "Ok" or not data.get("routes"):
                        raise ValueError(f"OSRM route request failed: {data.get('message', data.get('code'))}")
                    return data
                except (httpx.HTTPError, ValueError):
                    attempt += 1
                    if attempt > self.max_retries:
                        raise
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM route request failed, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                    time.sleep(wait_time)
        finally:
            client.close()

    def estimate(self, coordinates: Sequence[tuple[float, float]]) -> RouteEstimate:
        data = self.route(coordinates)
        summary = data["routes"][0]
        return RouteEstimate(
            duration_seconds=float(summary["duration"]),
            distance_meters=float(summary["distance"]),
        )


def estimate_route(
    coordinates: Sequence[tuple[float, float]],
    client: DirectionsClient | None = None,
) -> Optional[RouteEstimate]:
    """Best-effort estimate; returns None instead of raising."""
    if len(coordinates) < 2:
        return None
    try:
        client = client or DirectionsClient()
    except ValueError:
        logger.debug("OSRM base URL not configured; skipping route estimate")
        return None
    try:
        return client.estimate(coordinates)
    except (httpx.HTTPError, httpx.InvalidURL, ValueError, KeyError, IndexError, TypeError) as exc:
        logger.warning(f"Route estimate unavailable: {exc}")
        return None


def check_health(base_url: str | None = None) -> bool:
    """Check OSRM service health with a minimal two-point route request."""
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    try:
        test_coords = "13.388860,52.517037;13.385983,52.496891"
        url = f"{base.rstrip('/')}/route/v1/{settings.osrm_profile}/{test_coords}"
        response = httpx.get(url, params={"overview": "false"}, timeout=5.0)
        response.raise_for_status()
        return response.json().get("code") == "Ok"
    except (httpx.HTTPError, ValueError):
        return False
