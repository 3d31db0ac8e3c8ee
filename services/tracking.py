"""Joins live registry state with static routes for search and tracking."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from datastore.location_registry import LocationRegistry
from datastore.route_catalog import RouteCatalog, find_destination_stop
from models.records import LocationRecord, Route, RouteStop
from services.estimator import (
    Eta,
    StopEstimate,
    distance_km,
    estimate_minutes,
    estimate_stops,
    select_next_stop,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BusOnRoute:
    location: LocationRecord
    distance_to_destination_km: Optional[float]
    eta_to_destination: Optional[Eta]


@dataclass(frozen=True, slots=True)
class RouteMatch:
    route: Route
    destination_stop: Optional[RouteStop]
    buses: list[BusOnRoute]


@dataclass(frozen=True, slots=True)
class TrackingSnapshot:
    location: LocationRecord
    route: Route
    stops: list[StopEstimate]
    next_stop: Optional[StopEstimate]


def build_snapshot(location: LocationRecord, route: Route) -> TrackingSnapshot:
    estimates = estimate_stops(location.lat, location.lon, location.speed, route.stops)
    return TrackingSnapshot(
        location=location,
        route=route,
        stops=estimates,
        next_stop=select_next_stop(estimates),
    )


class TrackingService:
    """Read-only view over the registry and route catalog."""

    def __init__(self, registry: LocationRegistry, catalog: RouteCatalog) -> None:
        self.registry = registry
        self.catalog = catalog

    def search_routes(self, origin: str = "", destination: str = "") -> list[RouteMatch]:
        matches = []
        for route in self.catalog.search(origin, destination):
            stop = find_destination_stop(route, destination)
            buses = [
                self._bus_on_route(location, stop)
                for location in self._live_buses(route)
            ]
            matches.append(RouteMatch(route=route, destination_stop=stop, buses=buses))

        logger.info(
            "Route search",
            extra={
                "reason": f"from={origin!r} to={destination!r}",
                "bus_count": sum(len(match.buses) for match in matches),
            },
        )
        return matches

    def track(self, device_id: str, route_id: str) -> TrackingSnapshot:
        route = self.catalog.get(route_id)
        location = self.registry.get(device_id)
        return build_snapshot(location, route)

    def _live_buses(self, route: Route) -> list[LocationRecord]:
        live = {record.device_id: record for record in self.registry.list_all()}
        return [live[device_id] for device_id in route.device_ids if device_id in live]

    @staticmethod
    def _bus_on_route(location: LocationRecord, stop: Optional[RouteStop]) -> BusOnRoute:
        if stop is None:
            return BusOnRoute(location=location, distance_to_destination_km=None, eta_to_destination=None)
        distance = distance_km(location.lat, location.lon, stop.lat, stop.lon)
        return BusOnRoute(
            location=location,
            distance_to_destination_km=distance,
            eta_to_destination=estimate_minutes(distance, location.speed),
        )
