import pytest
from fastapi.testclient import TestClient

from src.dispatch_optimizer.main import create_app
from src.dispatch_optimizer.models.domain import Order, Vehicle
from src.dispatch_optimizer.services.dispatch import service as dispatch_service


@pytest.fixture
def api_client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    orders = [
        Order(id="A", latitude=37.50, longitude=127.00, cargo_volume=1.0),
        Order(id="B", latitude=37.51, longitude=127.01, cargo_volume=1.0),
        Order(id="NOLOC", latitude=0.0, longitude=0.0, cargo_volume=1.0),
    ]
    vehicles = [Vehicle(id="V1", name="Kim", capacity=5.0, vehicle_type="1t")]

    monkeypatch.setattr(dispatch_service, "get_dispatchable_orders", lambda date: list(orders))
    monkeypatch.setattr(dispatch_service, "get_vehicle_orders", lambda date, vehicle_id: list(orders[:2]))
    monkeypatch.setattr(dispatch_service, "get_vehicles", lambda active_only=True: list(vehicles))
    monkeypatch.setattr(dispatch_service, "get_unloading_points", lambda: tuple())
    monkeypatch.setattr(dispatch_service, "update_order", lambda order_id, fields: True)
    monkeypatch.setattr(dispatch_service, "update_vehicle", lambda vehicle_id, fields: True)
    monkeypatch.setattr(dispatch_service.settings, "osrm_base_url", None)
    return TestClient(create_app())


def test_health(api_client: TestClient):
    response = api_client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_propose_returns_plan_and_unassigned(api_client: TestClient):
    response = api_client.post("/api/dispatch/propose", json={"date": "2026-10-19"})

    assert response.status_code == 200
    body = response.json()
    assert [plan["vehicle_id"] for plan in body["plan"]] == ["V1"]
    assert sorted(order["id"] for order in body["plan"][0]["orders"]) == ["A", "B"]
    assert body["unassigned"] == [{"id": "NOLOC", "reason": "no coordinates"}]
    assert body["stats"]["total_orders"] == 3
    assert body["stats"]["assigned"] == 2


def test_propose_rejects_malformed_date(api_client: TestClient):
    response = api_client.post("/api/dispatch/propose", json={"date": "19/10/2026"})
    assert response.status_code == 422


def test_propose_rejects_impossible_date(api_client: TestClient):
    response = api_client.post("/api/dispatch/propose", json={"date": "2026-02-30"})
    assert response.status_code == 400


def test_apply_unknown_vehicle(api_client: TestClient):
    response = api_client.put(
        "/api/dispatch/apply",
        json={"plan": [{"vehicle_id": "GHOST", "orders": [{"id": "A", "sequence_position": 1}]}]},
    )
    assert response.status_code == 400


def test_apply_succeeds(api_client: TestClient):
    response = api_client.put(
        "/api/dispatch/apply",
        json={"plan": [{"vehicle_id": "V1", "orders": [{"id": "A", "sequence_position": 1}]}]},
    )
    assert response.status_code == 200
    assert response.json() == {"succeeded": ["A"], "failed": []}


def test_apply_reports_total_failure(api_client: TestClient, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(dispatch_service, "update_order", lambda order_id, fields: False)

    response = api_client.put(
        "/api/dispatch/apply",
        json={"plan": [{"vehicle_id": "V1", "orders": [{"id": "A", "sequence_position": 1}]}]},
    )

    assert response.status_code == 500
    assert response.json()["detail"]["failed"] == ["A"]


def test_reoptimize_route(api_client: TestClient):
    response = api_client.post("/api/dispatch/reoptimize-route", json={"date": "2026-10-19", "vehicle_id": "V1"})

    assert response.status_code == 200
    body = response.json()
    assert body["updated"] == 2
    assert body["unloading_stops"] == []
    assert body["final_load"] == 2.0


def test_reoptimize_unknown_vehicle(api_client: TestClient):
    response = api_client.post("/api/dispatch/reoptimize-route", json={"date": "2026-10-19", "vehicle_id": "GHOST"})
    assert response.status_code == 404
