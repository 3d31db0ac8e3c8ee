"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from models.records import BusStatus, LocationRecord, Route, RouteStop
from services.estimator import Eta, EtaCategory, StopEstimate, format_duration
from services.tracking import BusOnRoute, RouteMatch, TrackingSnapshot


class LocationResponse(BaseModel):
    """Latest known state of one bus."""

    device_id: str
    lat: float
    lon: float
    speed: float
    driver_name: str
    bus_number: str
    status: BusStatus
    updated: datetime
    timestamp: int = Field(..., description="``updated`` as epoch milliseconds.")

    @classmethod
    def from_record(cls, record: LocationRecord) -> "LocationResponse":
        return cls(
            device_id=record.device_id,
            lat=record.lat,
            lon=record.lon,
            speed=record.speed,
            driver_name=record.driver_name,
            bus_number=record.bus_number,
            status=record.status,
            updated=record.updated,
            timestamp=record.timestamp,
        )


class LocationUpdateResponse(BaseModel):
    success: bool = True
    message: str = "Location updated successfully"
    data: LocationResponse


class LocationListResponse(BaseModel):
    count: int = Field(..., ge=0)
    buses: List[LocationResponse] = Field(default_factory=list)
    last_updated: Optional[int] = Field(
        default=None, description="Most recent ``timestamp`` across all buses."
    )


class HealthResponse(BaseModel):
    status: str = "healthy"
    timestamp: datetime
    uptime: int = Field(..., ge=0, description="Seconds since the service started.")
    buses_tracked: int = Field(..., ge=0)


class StopSchema(BaseModel):
    id: str
    name: str
    lat: float
    lon: float
    scheduled_time: Optional[str] = None

    @classmethod
    def from_stop(cls, stop: RouteStop) -> "StopSchema":
        return cls(
            id=stop.id,
            name=stop.name,
            lat=stop.lat,
            lon=stop.lon,
            scheduled_time=stop.scheduled_time,
        )


class RouteSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    origin: str = Field(..., alias="from")
    destination: str = Field(..., alias="to")
    distance_km: Optional[float] = None
    stops: List[StopSchema] = Field(default_factory=list)
    device_ids: List[str] = Field(default_factory=list)

    @classmethod
    def from_route(cls, route: Route) -> "RouteSchema":
        return cls(
            id=route.id,
            origin=route.origin,
            destination=route.destination,
            distance_km=route.distance_km,
            stops=[StopSchema.from_stop(stop) for stop in route.stops],
            device_ids=list(route.device_ids),
        )


def _eta_fields(eta: Optional[Eta]) -> Dict[str, Optional[Union[int, str]]]:
    """Split an ETA into a numeric part and a qualitative part."""

    if eta is None:
        return {"eta_minutes": None, "eta_state": None, "eta_label": None}
    if isinstance(eta, EtaCategory):
        return {"eta_minutes": None, "eta_state": eta.value, "eta_label": format_duration(eta)}
    return {"eta_minutes": eta, "eta_state": None, "eta_label": format_duration(eta)}


class StopEstimateSchema(BaseModel):
    stop: StopSchema
    distance_km: float
    eta_minutes: Optional[int] = None
    eta_state: Optional[str] = Field(
        default=None, description="Set instead of eta_minutes when the bus is stopped or very slow."
    )
    eta_label: str

    @classmethod
    def from_estimate(cls, estimate: StopEstimate) -> "StopEstimateSchema":
        return cls(
            stop=StopSchema.from_stop(estimate.stop),
            distance_km=estimate.distance_km,
            **_eta_fields(estimate.eta),
        )


class TrackingResponse(BaseModel):
    device_id: str
    route_id: str
    location: LocationResponse
    stops: List[StopEstimateSchema] = Field(default_factory=list)
    next_stop: Optional[StopEstimateSchema] = None

    @classmethod
    def from_snapshot(cls, snapshot: TrackingSnapshot) -> "TrackingResponse":
        return cls(
            device_id=snapshot.location.device_id,
            route_id=snapshot.route.id,
            location=LocationResponse.from_record(snapshot.location),
            stops=[StopEstimateSchema.from_estimate(estimate) for estimate in snapshot.stops],
            next_stop=(
                StopEstimateSchema.from_estimate(snapshot.next_stop)
                if snapshot.next_stop is not None
                else None
            ),
        )


class BusOnRouteSchema(BaseModel):
    location: LocationResponse
    distance_to_destination_km: Optional[float] = None
    eta_to_destination: Optional[int] = None
    eta_state: Optional[str] = None
    eta_label: Optional[str] = None

    @classmethod
    def from_bus(cls, bus: BusOnRoute) -> "BusOnRouteSchema":
        fields = _eta_fields(bus.eta_to_destination)
        return cls(
            location=LocationResponse.from_record(bus.location),
            distance_to_destination_km=bus.distance_to_destination_km,
            eta_to_destination=fields["eta_minutes"],
            eta_state=fields["eta_state"],
            eta_label=fields["eta_label"],
        )


class RouteMatchSchema(BaseModel):
    route: RouteSchema
    destination_stop: Optional[StopSchema] = None
    buses: List[BusOnRouteSchema] = Field(default_factory=list)

    @classmethod
    def from_match(cls, match: RouteMatch) -> "RouteMatchSchema":
        return cls(
            route=RouteSchema.from_route(match.route),
            destination_stop=(
                StopSchema.from_stop(match.destination_stop)
                if match.destination_stop is not None
                else None
            ),
            buses=[BusOnRouteSchema.from_bus(bus) for bus in match.buses],
        )


class RouteSearchResponse(BaseModel):
    count: int = Field(..., ge=0)
    routes: List[RouteMatchSchema] = Field(default_factory=list)
