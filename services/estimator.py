"""Distance and arrival-time estimates from coordinates and speed."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence, Union

from models.records import RouteStop

EARTH_RADIUS_KM = 6371.0
ARRIVING_LABEL = "Arriving"


class EtaCategory(str, Enum):
    """Qualitative ETA used when speed is too low for a meaningful number."""

    stopped = "Stopped"
    very_slow = "Very Slow"

    @property
    def label(self) -> str:
        return self.value


Eta = Union[int, EtaCategory]


def _round_half_up(value: float, digits: int = 0) -> float:
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points, rounded to 2 decimals."""

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = (
        math.sin(dphi / 2.0) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2.0) ** 2
    )
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return _round_half_up(EARTH_RADIUS_KM * c, 2)


def estimate_minutes(distance: float, speed_kmh: float) -> Eta:
    if speed_kmh == 0:
        return EtaCategory.stopped
    if speed_kmh < 1:
        return EtaCategory.very_slow
    return int(_round_half_up(distance / speed_kmh * 60.0))


def format_duration(eta: Union[Eta, float]) -> str:
    """Render an ETA as ``Arriving``, ``45m``, ``1h`` or ``1h 30m``."""

    if isinstance(eta, EtaCategory):
        return eta.label
    if eta < 1:
        return ARRIVING_LABEL

    minutes_total = int(_round_half_up(eta))
    if minutes_total < 60:
        return f"{minutes_total}m"

    hours, minutes = divmod(minutes_total, 60)
    if minutes == 0:
        return f"{hours}h"
    return f"{hours}h {minutes}m"


def is_numeric_eta(eta: Eta) -> bool:
    return not isinstance(eta, EtaCategory)


@dataclass(frozen=True, slots=True)
class StopEstimate:
    stop: RouteStop
    distance_km: float
    eta: Eta

    @property
    def label(self) -> str:
        return format_duration(self.eta)


def estimate_stops(
    lat: float, lon: float, speed_kmh: float, stops: Iterable[RouteStop]
) -> list[StopEstimate]:
    """Per-stop distance and ETA from one position, nearest first.

    ``sorted`` is stable, so stops at equal distance keep their route order.
    """

    estimates = []
    for stop in stops:
        distance = distance_km(lat, lon, stop.lat, stop.lon)
        estimates.append(
            StopEstimate(stop=stop, distance_km=distance, eta=estimate_minutes(distance, speed_kmh))
        )
    return sorted(estimates, key=lambda estimate: estimate.distance_km)


def select_next_stop(estimates: Sequence[StopEstimate]) -> Optional[StopEstimate]:
    """Nearest stop with a strictly positive numeric ETA."""

    candidates = [
        estimate
        for estimate in estimates
        if is_numeric_eta(estimate.eta) and estimate.eta > 0
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda estimate: estimate.distance_km)
