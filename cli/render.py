from __future__ import annotations

from typing import Any, Dict, Iterable, Optional, Sequence

import typer

from services.estimator import StopEstimate

DEGRADED_BANNER = "DEGRADED (simulated): live feed unavailable, position below is NOT real telemetry"


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_location(payload: Dict[str, Any]) -> None:
    if payload.get("simulated"):
        typer.secho(DEGRADED_BANNER, fg=typer.colors.YELLOW, bold=True)
    echo_heading(f"Bus {payload.get('bus_number') or payload.get('device_id')}")
    echo_key_values(
        [
            ("device_id", payload.get("device_id")),
            ("driver_name", payload.get("driver_name")),
            ("status", payload.get("status")),
            ("position", f"{payload.get('lat')}, {payload.get('lon')}"),
            ("speed", f"{payload.get('speed')} km/h"),
            ("updated", payload.get("updated")),
        ]
    )


def render_locations(payload: Dict[str, Any]) -> None:
    buses = payload.get("buses") or []
    echo_heading(f"Tracked buses: {payload.get('count', len(buses))}")
    if not buses:
        typer.echo("No buses are reporting yet.")
        return
    for bus in buses:
        typer.echo(
            f"  - {bus.get('device_id')} ({bus.get('bus_number')}) "
            f"{bus.get('status')} at {bus.get('lat')}, {bus.get('lon')} "
            f"{bus.get('speed')} km/h, updated {bus.get('updated')}"
        )


def render_routes(payload: Dict[str, Any]) -> None:
    routes = payload.get("routes") or []
    echo_heading(f"Matching routes: {payload.get('count', len(routes))}")
    if not routes:
        typer.echo("No routes match the search.")
        return
    for match in routes:
        route = match.get("route") or {}
        typer.echo(f"{route.get('id')}: {route.get('from')} -> {route.get('to')}")
        buses = match.get("buses") or []
        if not buses:
            typer.echo("  no live buses on this route")
        for bus in buses:
            location = bus.get("location") or {}
            typer.echo(
                f"  - {location.get('bus_number')} ({location.get('driver_name')}): "
                f"{bus.get('eta_label') or 'no ETA'}"
            )


def render_tracking(
    location: Dict[str, Any],
    estimates: Sequence[StopEstimate],
    next_stop: Optional[StopEstimate],
) -> None:
    render_location(location)
    typer.echo()
    if next_stop is not None:
        typer.secho(
            f"Next stop: {next_stop.stop.name} "
            f"({next_stop.distance_km:.2f} km, {next_stop.label})",
            fg=typer.colors.GREEN,
        )
    else:
        typer.echo("Next stop: unknown")
    for estimate in estimates:
        typer.echo(f"  - {estimate.stop.name}: {estimate.distance_km:.2f} km, {estimate.label}")
