"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


DEFAULT_DRIVER_NAME = "Unknown Driver"


class BusStatus(str, Enum):
    """Operational state reported by a tracking device."""

    active = "active"
    stopped = "stopped"
    offline = "offline"


@dataclass(frozen=True, slots=True)
class LocationRecord:
    """Last known state of a bus; replaced as a whole on every update."""

    device_id: str
    lat: float
    lon: float
    speed: float
    driver_name: str
    bus_number: str
    status: BusStatus
    updated: datetime

    @property
    def timestamp(self) -> int:
        """``updated`` as epoch milliseconds."""
        return int(self.updated.timestamp() * 1000)


@dataclass(frozen=True, slots=True)
class RouteStop:
    id: str
    name: str
    lat: float
    lon: float
    scheduled_time: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Route:
    id: str
    origin: str
    destination: str
    stops: Tuple[RouteStop, ...] = ()
    distance_km: Optional[float] = None
    device_ids: Tuple[str, ...] = field(default_factory=tuple)
