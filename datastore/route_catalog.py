from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from models.errors import RouteNotFoundError
from models.records import Route, RouteStop
from settings import get_settings

logger = logging.getLogger(__name__)


class RouteCatalog:
    """Read-only collection of routes and their ordered stops."""

    def __init__(self, routes: Iterable[Route] = ()) -> None:
        self._routes: Dict[str, Route] = {route.id: route for route in routes}

    @classmethod
    def from_file(cls, path: Path) -> "RouteCatalog":
        if not path.exists():
            logger.info("Route catalog file not found, starting empty", extra={"reason": str(path)})
            return cls()

        try:
            data = json.loads(path.read_text(encoding="utf-8") or "[]")
        except (OSError, ValueError) as exc:
            logger.warning("Could not read route catalog", extra={"reason": str(exc)})
            return cls()

        return cls.from_payload(data)

    @classmethod
    def from_payload(cls, data: Any) -> "RouteCatalog":
        entries = data.get("routes", []) if isinstance(data, Mapping) else data
        if not isinstance(entries, list):
            logger.warning(
                "Route catalog must hold a list of routes",
                extra={"reason": type(entries).__name__},
            )
            return cls()

        routes: list[Route] = []
        for entry in entries:
            try:
                routes.append(_parse_route(entry))
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed route entry",
                    extra={"route_id": _entry_id(entry), "reason": repr(exc)},
                )
        return cls(routes)

    def get(self, route_id: str) -> Route:
        route = self._routes.get(route_id)
        if route is None:
            raise RouteNotFoundError(route_id)
        return route

    def list_routes(self) -> list[Route]:
        return list(self._routes.values())

    def search(self, origin: str = "", destination: str = "") -> list[Route]:
        """Routes whose endpoints loosely match the requested trip.

        A route matches when either endpoint contains the query text or the
        query text contains the endpoint, ignoring case.
        """

        wanted_from = origin.strip().lower()
        wanted_to = destination.strip().lower()
        if not wanted_from and not wanted_to:
            return self.list_routes()

        matches = []
        for route in self._routes.values():
            route_from = route.origin.lower()
            route_to = route.destination.lower()
            if (
                (wanted_from and (wanted_from in route_from or route_from in wanted_from))
                or (wanted_to and (wanted_to in route_to or route_to in wanted_to))
            ):
                matches.append(route)
        return matches

    def __len__(self) -> int:
        return len(self._routes)


def find_destination_stop(route: Route, destination: str) -> Optional[RouteStop]:
    """First stop whose name contains ``destination``; the terminus when blank."""

    wanted = destination.strip().lower()
    if not wanted:
        return route.stops[-1] if route.stops else None
    for stop in route.stops:
        if wanted in stop.name.lower():
            return stop
    return None


def _entry_id(entry: Any) -> Optional[str]:
    if isinstance(entry, Mapping):
        value = entry.get("id")
        return str(value) if value is not None else None
    return None


class CatalogStop(BaseModel):
    """One stop as stored in the catalog file."""

    id: str
    name: str
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    scheduled_time: Optional[str] = None


class CatalogRoute(BaseModel):
    """One route entry as stored in the catalog file."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    origin: str = Field(..., alias="from")
    destination: str = Field(..., alias="to")
    distance: Optional[float] = Field(default=None, ge=0)
    stops: List[CatalogStop] = Field(default_factory=list)
    device_ids: List[str] = Field(default_factory=list)


def _parse_route(entry: Any) -> Route:
    payload = CatalogRoute.model_validate(entry)
    return Route(
        id=payload.id,
        origin=payload.origin,
        destination=payload.destination,
        stops=tuple(
            RouteStop(
                id=stop.id,
                name=stop.name,
                lat=stop.lat,
                lon=stop.lon,
                scheduled_time=stop.scheduled_time,
            )
            for stop in payload.stops
        ),
        distance_km=payload.distance,
        device_ids=tuple(payload.device_ids),
    )


def build_default_catalog(path: Optional[str] = None) -> RouteCatalog:
    catalog_path = get_settings().route_catalog_path if path is None else path
    if not catalog_path:
        return RouteCatalog()
    return RouteCatalog.from_file(Path(catalog_path))
