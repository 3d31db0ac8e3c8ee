from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.location_registry import LocationRegistry
from datastore.route_catalog import RouteCatalog

ROUTES = [
    {
        "id": "route_1",
        "from": "Perundurai",
        "to": "Erode",
        "device_ids": ["BUS_101"],
        "stops": [
            {"id": "stop_a", "name": "Perundurai", "lat": 11.1863, "lon": 77.6232},
            {"id": "stop_b", "name": "Erode BS", "lat": 11.2100, "lon": 77.6500},
        ],
    }
]


@pytest.fixture
def registry() -> LocationRegistry:
    return LocationRegistry()


@pytest.fixture
def api_client(registry: LocationRegistry) -> Iterator[TestClient]:
    app = create_app(registry=registry, catalog=RouteCatalog.from_payload(ROUTES))
    with TestClient(app) as client:
        yield client


def _post_bus(client: TestClient, **overrides) -> dict:
    payload = {"device_id": "BUS_101", "lat": 11.1950, "lon": 77.6350, "speed": 35}
    payload.update(overrides)
    response = client.post("/api/locations", json=payload)
    assert response.status_code == 200, response.text
    return response.json()


def test_update_and_fetch_location(api_client: TestClient) -> None:
    body = _post_bus(api_client, driver_name="Murugan", bus_number="101")

    assert body["success"] is True
    assert body["message"] == "Location updated successfully"
    assert body["data"]["device_id"] == "BUS_101"
    assert body["data"]["status"] == "active"

    response = api_client.get("/api/locations/BUS_101")

    assert response.status_code == 200
    record = response.json()
    assert record["lat"] == 11.195
    assert record["lon"] == 77.635
    assert record["speed"] == 35.0
    assert record["driver_name"] == "Murugan"
    assert record["bus_number"] == "101"
    assert isinstance(record["timestamp"], int)
    assert record["updated"]


def test_numeric_strings_are_accepted(api_client: TestClient) -> None:
    body = _post_bus(api_client, lat="11.2", lon="77.6", speed="12")

    assert body["data"]["lat"] == 11.2
    assert body["data"]["speed"] == 12.0


def test_update_missing_fields_returns_bad_request(api_client: TestClient, registry: LocationRegistry) -> None:
    response = api_client.post("/api/locations", json={"device_id": "BUS_101"})

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["missing_fields"] == ["lat", "lon"]
    assert "Missing required fields: lat, lon" in detail["error"]
    assert detail["example"]["device_id"] == "BUS_101"
    assert len(registry) == 0


def test_update_invalid_status_returns_bad_request(api_client: TestClient) -> None:
    response = api_client.post(
        "/api/locations",
        json={"device_id": "BUS_101", "lat": 1, "lon": 1, "status": "parked"},
    )

    assert response.status_code == 400
    assert "status" in response.json()["detail"]["invalid_fields"]


def test_get_missing_location_lists_available_buses(api_client: TestClient) -> None:
    _post_bus(api_client)

    response = api_client.get("/api/locations/BUS_404")

    assert response.status_code == 404
    detail = response.json()["detail"]
    assert "BUS_404" in detail["error"]
    assert detail["available_buses"] == ["BUS_101"]


def test_list_locations(api_client: TestClient) -> None:
    empty = api_client.get("/api/locations").json()
    assert empty == {"count": 0, "buses": [], "last_updated": None}

    _post_bus(api_client)
    _post_bus(api_client, device_id="BUS_102")
    second = api_client.get("/api/locations/BUS_102").json()

    body = api_client.get("/api/locations").json()

    assert body["count"] == 2
    assert sorted(bus["device_id"] for bus in body["buses"]) == ["BUS_101", "BUS_102"]
    assert body["last_updated"] == max(bus["timestamp"] for bus in body["buses"])
    assert body["last_updated"] >= second["timestamp"]


def test_health_reports_tracked_buses(api_client: TestClient) -> None:
    _post_bus(api_client)

    body = api_client.get("/health").json()

    assert body["status"] == "healthy"
    assert body["buses_tracked"] == 1
    assert body["uptime"] >= 0
    assert body["timestamp"]


def test_root_lists_endpoints(api_client: TestClient) -> None:
    body = api_client.get("/").json()

    assert "POST /api/locations" in body["endpoints"]


def test_route_search_and_lookup(api_client: TestClient) -> None:
    _post_bus(api_client)

    search = api_client.get("/api/routes", params={"from": "perundurai", "to": "erode"}).json()

    assert search["count"] == 1
    match = search["routes"][0]
    assert match["route"]["from"] == "Perundurai"
    assert match["route"]["to"] == "Erode"
    assert match["destination_stop"]["id"] == "stop_b"
    assert match["buses"][0]["eta_to_destination"] == 4
    assert match["buses"][0]["eta_label"] == "4m"

    route = api_client.get("/api/routes/route_1")
    assert route.status_code == 200
    assert [stop["id"] for stop in route.json()["stops"]] == ["stop_a", "stop_b"]

    assert api_client.get("/api/routes/route_9").status_code == 404


def test_tracking_reports_next_stop(api_client: TestClient) -> None:
    _post_bus(api_client)

    response = api_client.get("/api/buses/BUS_101/tracking", params={"route_id": "route_1"})

    assert response.status_code == 200
    body = response.json()
    assert [item["stop"]["id"] for item in body["stops"]] == ["stop_a", "stop_b"]
    assert body["next_stop"]["stop"]["id"] == "stop_a"
    assert body["next_stop"]["eta_minutes"] == 3
    assert body["next_stop"]["eta_label"] == "3m"


def test_tracking_stopped_bus_reports_state_not_zero(api_client: TestClient) -> None:
    _post_bus(api_client, speed=0)

    body = api_client.get("/api/buses/BUS_101/tracking", params={"route_id": "route_1"}).json()

    assert body["next_stop"] is None
    for item in body["stops"]:
        assert item["eta_minutes"] is None
        assert item["eta_state"] == "Stopped"
        assert item["eta_label"] == "Stopped"


def test_tracking_unknown_bus(api_client: TestClient) -> None:
    response = api_client.get("/api/buses/BUS_404/tracking", params={"route_id": "route_1"})

    assert response.status_code == 404
    assert response.json()["detail"]["available_buses"] == []


def test_route_with_malformed_stop_is_not_served(registry: LocationRegistry) -> None:
    bad_route = {
        "id": "route_2",
        "from": "Erode",
        "to": "Bhavani",
        "stops": [{"id": "stop_c", "name": "Bhavani", "lat": 11.44, "lon": 77.68, "scheduled_time": 910}],
    }
    app = create_app(registry=registry, catalog=RouteCatalog.from_payload(ROUTES + [bad_route]))

    with TestClient(app) as client:
        assert client.get("/api/routes/route_2").status_code == 404
        routes = client.get("/api/routes").json()["routes"]

    assert [match["route"]["id"] for match in routes] == ["route_1"]
