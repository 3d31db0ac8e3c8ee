"""HTTP route definitions for the service."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status

from app.schemas import (
    HealthResponse,
    LocationListResponse,
    LocationResponse,
    LocationUpdateResponse,
    RouteMatchSchema,
    RouteSchema,
    RouteSearchResponse,
    TrackingResponse,
)
from datastore.location_registry import LocationRegistry
from models.errors import DeviceNotFoundError, LocationValidationError, RouteNotFoundError
from services.tracking import TrackingService

router = APIRouter()

EXAMPLE_UPDATE: Dict[str, Any] = {
    "device_id": "BUS_101",
    "lat": 11.3580,
    "lon": 77.7120,
    "speed": 35,
}


def get_registry(request: Request) -> LocationRegistry:
    return request.app.state.registry


def get_tracking(request: Request) -> TrackingService:
    return request.app.state.tracking


@router.post(
    "/api/locations",
    response_model=LocationUpdateResponse,
    summary="Record the latest position reported by a tracking device.",
)
def update_location(
    payload: Dict[str, Any] = Body(..., examples=[EXAMPLE_UPDATE]),
    registry: LocationRegistry = Depends(get_registry),
) -> LocationUpdateResponse:
    try:
        record = registry.upsert(payload)
    except LocationValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": str(exc),
                "missing_fields": exc.missing_fields,
                "invalid_fields": exc.invalid_fields,
                "example": EXAMPLE_UPDATE,
            },
        ) from exc
    return LocationUpdateResponse(data=LocationResponse.from_record(record))


@router.get(
    "/api/locations/{device_id}",
    response_model=LocationResponse,
    summary="Fetch the latest position of one bus.",
)
def get_location(
    device_id: str,
    registry: LocationRegistry = Depends(get_registry),
) -> LocationResponse:
    try:
        record = registry.get(device_id)
    except DeviceNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": str(exc), "available_buses": exc.known_ids},
        ) from exc
    return LocationResponse.from_record(record)


@router.get(
    "/api/locations",
    response_model=LocationListResponse,
    summary="List the latest position of every tracked bus.",
)
def list_locations(
    registry: LocationRegistry = Depends(get_registry),
) -> LocationListResponse:
    buses = [LocationResponse.from_record(record) for record in registry.list_all()]
    latest = registry.last_updated()
    last_updated = int(latest.timestamp() * 1000) if latest is not None else None
    return LocationListResponse(count=len(buses), buses=buses, last_updated=last_updated)


@router.get(
    "/api/routes",
    response_model=RouteSearchResponse,
    summary="Search routes by origin and destination with live buses on each.",
)
def search_routes(
    origin: str = Query("", alias="from"),
    destination: str = Query("", alias="to"),
    tracking: TrackingService = Depends(get_tracking),
) -> RouteSearchResponse:
    matches = tracking.search_routes(origin, destination)
    return RouteSearchResponse(
        count=len(matches),
        routes=[RouteMatchSchema.from_match(match) for match in matches],
    )


@router.get(
    "/api/routes/{route_id}",
    response_model=RouteSchema,
    summary="Fetch a route and its ordered stops.",
)
def get_route(
    route_id: str,
    tracking: TrackingService = Depends(get_tracking),
) -> RouteSchema:
    try:
        route = tracking.catalog.get(route_id)
    except RouteNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    return RouteSchema.from_route(route)


@router.get(
    "/api/buses/{device_id}/tracking",
    response_model=TrackingResponse,
    summary="Distance and ETA from a bus to every stop on its route.",
)
def track_bus(
    device_id: str,
    route_id: str = Query(..., description="Route whose stops the bus is serving."),
    tracking: TrackingService = Depends(get_tracking),
) -> TrackingResponse:
    try:
        snapshot = tracking.track(device_id, route_id)
    except DeviceNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": str(exc), "available_buses": exc.known_ids},
        ) from exc
    except RouteNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    return TrackingResponse.from_snapshot(snapshot)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
def healthcheck(
    request: Request,
    registry: LocationRegistry = Depends(get_registry),
) -> HealthResponse:
    uptime = time.monotonic() - request.app.state.started_at
    return HealthResponse(
        timestamp=datetime.now(timezone.utc),
        uptime=int(uptime),
        buses_tracked=len(registry),
    )


@router.get(
    "/",
    summary="Service banner listing the available endpoints.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, Any]:
    return {
        "message": "Bus Tracking System API",
        "endpoints": {
            "POST /api/locations": "Update bus location (tracking devices)",
            "GET /api/locations/{device_id}": "Get specific bus location",
            "GET /api/locations": "Get all bus locations",
            "GET /api/routes?from=&to=": "Search routes with live buses",
            "GET /api/buses/{device_id}/tracking?route_id=": "Per-stop ETAs for a bus",
            "GET /health": "Service health",
        },
    }
