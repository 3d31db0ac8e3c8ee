from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

import typer

from cli.client import ApiClient, UpstreamUnavailable
from cli.config import CLIConfig, load_config
from cli.render import render_location, render_locations, render_routes, render_tracking
from cli.simulation import simulate_step
from models.records import BusStatus, RouteStop
from services.estimator import estimate_stops, select_next_stop


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the bus tracking service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


@contextmanager
def _exit_on_unavailable() -> Iterator[None]:
    try:
        yield
    except UpstreamUnavailable as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc


def _route_stops(route: Dict[str, Any]) -> list[RouteStop]:
    return [
        RouteStop(
            id=str(stop["id"]),
            name=str(stop["name"]),
            lat=float(stop["lat"]),
            lon=float(stop["lon"]),
            scheduled_time=stop.get("scheduled_time"),
        )
        for stop in route.get("stops") or []
    ]


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Tracking API base URL (defaults to API_BASE_URL env or http://localhost:3000).",
    ),
    request_timeout: Optional[float] = typer.Option(
        None,
        "--request-timeout",
        help="Seconds to wait for each HTTP request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, request_timeout=request_timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("update")
def update_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Tracking device identifier."),
    lat: float = typer.Argument(..., help="Latitude in decimal degrees."),
    lon: float = typer.Argument(..., help="Longitude in decimal degrees."),
    speed: Optional[float] = typer.Option(None, "--speed", "-s", help="Speed in km/h."),
    driver_name: Optional[str] = typer.Option(None, "--driver", help="Driver name."),
    bus_number: Optional[str] = typer.Option(None, "--bus-number", help="Bus number shown to riders."),
    status: Optional[BusStatus] = typer.Option(None, "--status", case_sensitive=False),
) -> None:
    """Report a position for a device, as a tracker would."""
    state = _get_state(ctx)
    payload: Dict[str, Any] = {"device_id": device_id, "lat": lat, "lon": lon}
    optional = {
        "speed": speed,
        "driver_name": driver_name,
        "bus_number": bus_number,
        "status": status.value if status is not None else None,
    }
    payload.update({key: value for key, value in optional.items() if value is not None})

    with _exit_on_unavailable():
        response = state.client.update_location(payload)
    typer.secho(response.get("message", "Location updated."), fg=typer.colors.GREEN)
    render_location(response.get("data") or {})


@app.command("show")
def show_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Tracking device identifier."),
) -> None:
    """Show the latest position of one bus."""
    state = _get_state(ctx)
    with _exit_on_unavailable():
        payload = state.client.get_location(device_id)
    render_location(payload)


@app.command("list")
def list_command(ctx: typer.Context) -> None:
    """List every bus currently reporting."""
    state = _get_state(ctx)
    with _exit_on_unavailable():
        payload = state.client.list_locations()
    render_locations(payload)


@app.command("routes")
def routes_command(
    ctx: typer.Context,
    origin: str = typer.Option("", "--from", help="Where the trip starts."),
    destination: str = typer.Option("", "--to", help="Where the trip ends."),
) -> None:
    """Search routes and the live buses serving them."""
    state = _get_state(ctx)
    with _exit_on_unavailable():
        payload = state.client.search_routes(origin, destination)
    render_routes(payload)


@app.command("health")
def health_command(ctx: typer.Context) -> None:
    """Show service uptime and number of tracked buses."""
    state = _get_state(ctx)
    with _exit_on_unavailable():
        payload = state.client.health()
    typer.echo(
        f"{payload.get('status')}: uptime {payload.get('uptime')}s, "
        f"{payload.get('buses_tracked')} buses tracked"
    )


@app.command("track")
def track_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Tracking device identifier."),
    route_id: str = typer.Option(..., "--route", "-r", help="Route the bus is serving."),
    interval: Optional[float] = typer.Option(
        None,
        "--interval",
        min=0,
        help="Seconds between polls (defaults to CLI_POLL_INTERVAL or 3).",
    ),
    count: Optional[int] = typer.Option(
        None,
        "--count",
        "-n",
        min=1,
        help="Stop after this many polls; runs until interrupted when omitted.",
    ),
    simulate_on_failure: bool = typer.Option(
        False,
        "--simulate-on-failure/--no-simulate-on-failure",
        help="Show a labelled simulated position when the live feed is unreachable.",
    ),
) -> None:
    """Follow one bus and show distance and ETA to each stop."""
    state = _get_state(ctx)
    poll_interval = interval if interval is not None else state.config.poll_interval

    with _exit_on_unavailable():
        stops = _route_stops(state.client.get_route(route_id))

    last_location: Optional[Dict[str, Any]] = None
    polls = 0
    while count is None or polls < count:
        if polls:
            time.sleep(poll_interval)
        polls += 1

        try:
            location = state.client.get_location(device_id)
        except UpstreamUnavailable as exc:
            typer.secho(f"Live feed unavailable: {exc}", fg=typer.colors.RED, err=True)
            if not simulate_on_failure or last_location is None:
                continue
            location = simulate_step(last_location)

        last_location = location
        estimates = estimate_stops(
            float(location["lat"]),
            float(location["lon"]),
            float(location.get("speed") or 0.0),
            stops,
        )
        typer.echo()
        render_tracking(location, estimates, select_next_stop(estimates))
