from __future__ import annotations

from typing import Any, Dict, List

import pytest
from typer.testing import CliRunner

from cli.app import app
from cli.client import UpstreamUnavailable

ROUTE = {
    "id": "route_1",
    "from": "Perundurai",
    "to": "Erode",
    "stops": [
        {"id": "stop_a", "name": "Perundurai", "lat": 11.1863, "lon": 77.6232},
        {"id": "stop_b", "name": "Erode BS", "lat": 11.2100, "lon": 77.6500},
    ],
}


def _location(**overrides: Any) -> Dict[str, Any]:
    payload = {
        "device_id": "BUS_101",
        "lat": 11.1950,
        "lon": 77.6350,
        "speed": 35.0,
        "driver_name": "Murugan",
        "bus_number": "101",
        "status": "active",
        "updated": "2024-05-01T08:00:00Z",
        "timestamp": 1714550400000,
    }
    payload.update(overrides)
    return payload


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.updates: List[Dict[str, Any]] = []
        self.location_responses: List[Any] = [_location()]
        self.location_calls = 0
        self.closed = False

    def update_location(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.updates.append(payload)
        return {"success": True, "message": "Location updated successfully", "data": _location()}

    def get_location(self, device_id: str) -> Dict[str, Any]:
        response = self.location_responses[min(self.location_calls, len(self.location_responses) - 1)]
        self.location_calls += 1
        if isinstance(response, Exception):
            raise response
        return response

    def list_locations(self) -> Dict[str, Any]:
        return {"count": 1, "buses": [_location()], "last_updated": 1714550400000}

    def get_route(self, route_id: str) -> Dict[str, Any]:
        return ROUTE

    def search_routes(self, origin: str = "", destination: str = "") -> Dict[str, Any]:
        return {
            "count": 1,
            "routes": [
                {
                    "route": ROUTE,
                    "destination_stop": ROUTE["stops"][1],
                    "buses": [{"location": _location(), "eta_to_destination": 4, "eta_label": "4m"}],
                }
            ],
        }

    def health(self) -> Dict[str, Any]:
        return {"status": "healthy", "uptime": 12, "buses_tracked": 1}

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def stub(monkeypatch) -> StubClient:
    client = StubClient(config=None)

    def factory(config):
        client.config = config
        return client

    monkeypatch.setattr("cli.app.ApiClient", factory)
    monkeypatch.setattr("cli.app.time.sleep", lambda _seconds: None)
    return client


def test_update_sends_only_supplied_fields(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["update", "BUS_101", "11.195", "77.635", "--speed", "35", "--status", "stopped"])

    assert result.exit_code == 0, result.stdout
    assert stub.updates == [
        {"device_id": "BUS_101", "lat": 11.195, "lon": 77.635, "speed": 35.0, "status": "stopped"}
    ]
    assert "Location updated successfully" in result.stdout
    assert stub.closed is True


def test_show_and_list(runner: CliRunner, stub: StubClient) -> None:
    shown = runner.invoke(app, ["show", "BUS_101"])
    listed = runner.invoke(app, ["list"])

    assert shown.exit_code == 0
    assert "device_id: BUS_101" in shown.stdout
    assert "driver_name: Murugan" in shown.stdout
    assert listed.exit_code == 0
    assert "Tracked buses: 1" in listed.stdout


def test_routes_and_health(runner: CliRunner, stub: StubClient) -> None:
    routes = runner.invoke(app, ["routes", "--from", "Perundurai", "--to", "Erode"])
    health = runner.invoke(app, ["health"])

    assert routes.exit_code == 0
    assert "route_1: Perundurai -> Erode" in routes.stdout
    assert "101 (Murugan): 4m" in routes.stdout
    assert "healthy: uptime 12s, 1 buses tracked" in health.stdout


def test_base_url_option_reaches_client(runner: CliRunner, stub: StubClient) -> None:
    runner.invoke(app, ["--base-url", "http://tracker:9000/", "health"])

    assert stub.config.base_url == "http://tracker:9000"


def test_track_prints_next_stop(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["track", "BUS_101", "--route", "route_1", "--count", "2", "--interval", "0"])

    assert result.exit_code == 0, result.stdout
    assert stub.location_calls == 2
    assert result.stdout.count("Next stop: Perundurai (1.61 km, 3m)") == 2
    assert "DEGRADED" not in result.stdout


def test_track_reports_failure_and_retries_next_tick(runner: CliRunner, stub: StubClient) -> None:
    stub.location_responses = [UpstreamUnavailable("connection refused"), _location(speed=0.0)]

    result = runner.invoke(app, ["track", "BUS_101", "-r", "route_1", "-n", "2"])

    assert result.exit_code == 0
    assert "Live feed unavailable: connection refused" in result.output
    assert "Next stop: unknown" in result.stdout
    assert "Stopped" in result.stdout
    assert "DEGRADED" not in result.stdout


def test_track_simulated_fallback_is_labelled(runner: CliRunner, stub: StubClient) -> None:
    stub.location_responses = [_location(), UpstreamUnavailable("timeout")]

    result = runner.invoke(
        app,
        ["track", "BUS_101", "-r", "route_1", "-n", "2", "--simulate-on-failure"],
    )

    assert result.exit_code == 0
    assert result.stdout.count("DEGRADED (simulated)") == 1
    assert "Live feed unavailable: timeout" in result.output


def test_unreachable_service_exits_with_error(runner: CliRunner, stub: StubClient) -> None:
    def unavailable() -> Dict[str, Any]:
        raise UpstreamUnavailable("Could not reach http://localhost:3000")

    stub.health = unavailable  # type: ignore[method-assign]

    result = runner.invoke(app, ["health"])

    assert result.exit_code == 1
    assert "Could not reach" in result.output
