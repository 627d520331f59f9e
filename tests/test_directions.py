import httpx
import pytest

from src.dispatch_optimizer.services.routing import directions
from src.dispatch_optimizer.services.routing.directions import DirectionsClient, RouteEstimate, estimate_route


def _client(handler, **kwargs) -> DirectionsClient:
    kwargs.setdefault("max_retries", 0)
    kwargs.setdefault("backoff_seconds", 0.0)
    return DirectionsClient(base_url="http://osrm.test/", transport=httpx.MockTransport(handler), **kwargs)


def test_estimate_parses_first_route():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(200, json={"code": "Ok", "routes": [{"duration": 812.5, "distance": 5230.0}]})

    estimate = estimate_route([(37.50, 127.00), (37.51, 127.01)], client=_client(handler))

    assert estimate == RouteEstimate(duration_seconds=812.5, distance_meters=5230.0)
    # OSRM wants lon,lat pairs
    assert seen["url"].path == "/route/v1/driving/127.0,37.5;127.01,37.51"
    assert seen["url"].params["overview"] == "false"


def test_server_error_yields_none():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500, json={"message": "boom"})

    assert estimate_route([(37.50, 127.00), (37.51, 127.01)], client=_client(handler)) is None
    assert len(calls) == 1


def test_retries_then_succeeds():
    responses = iter(
        [
            httpx.Response(503),
            httpx.Response(200, json={"code": "Ok", "routes": [{"duration": 60, "distance": 900}]}),
        ]
    )

    def handler(request: httpx.Request) -> httpx.Response:
        return next(responses)

    estimate = estimate_route([(37.50, 127.00), (37.51, 127.01)], client=_client(handler, max_retries=1))

    assert estimate == RouteEstimate(duration_seconds=60.0, distance_meters=900.0)


def test_non_ok_code_yields_none():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": "NoRoute", "message": "Impossible route"})

    assert estimate_route([(37.50, 127.00), (37.51, 127.01)], client=_client(handler)) is None


def test_waypoints_are_trimmed_to_limit():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        return httpx.Response(200, json={"code": "Ok", "routes": [{"duration": 1, "distance": 1}]})

    coordinates = [(37.0 + idx * 0.01, 127.0) for idx in range(10)]
    estimate_route(coordinates, client=_client(handler, max_waypoints=3))

    points = seen["path"].split("/")[-1].split(";")
    assert len(points) == 5
    assert points[0] == "127.0,37.0"
    assert points[-1] == f"127.0,{coordinates[-1][0]}"


def test_single_point_yields_none():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    assert estimate_route([(37.50, 127.00)], client=_client(handler)) is None


def test_unconfigured_service_yields_none(monkeypatch):
    monkeypatch.setattr(directions.settings, "osrm_base_url", None)

    assert estimate_route([(37.50, 127.00), (37.51, 127.01)]) is None
    with pytest.raises(ValueError):
        DirectionsClient()


def test_invalid_base_url_yields_none():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = DirectionsClient(base_url="http://osrm.test:99999", transport=httpx.MockTransport(handler), max_retries=0)

    assert estimate_route([(37.50, 127.00), (37.51, 127.01)], client=client) is None
