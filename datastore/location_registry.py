from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Any, Callable, Dict, Mapping, Optional

from models.errors import DeviceNotFoundError, LocationValidationError
from models.records import DEFAULT_DRIVER_NAME, BusStatus, LocationRecord
from settings import get_settings

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LocationRegistry:
    """In-memory latest-state store keyed by device id.

    Every successful ``upsert`` swaps in a new frozen ``LocationRecord``
    while holding the lock, so concurrent readers only ever observe whole
    records.  When ``stale_after`` is set, records that have not been
    refreshed within that window are reported as ``offline`` on read; the
    stored record itself is left untouched.
    """

    def __init__(
        self,
        stale_after: Optional[timedelta] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._records: Dict[str, LocationRecord] = {}
        self._lock = Lock()
        self.stale_after = stale_after
        self._clock = clock or _utcnow

    def upsert(self, update: Mapping[str, Any]) -> LocationRecord:
        try:
            record = _build_record(update, updated=self._clock())
        except LocationValidationError as exc:
            logger.warning(
                "Rejected location update",
                extra={
                    "device_id": update.get("device_id") or None,
                    "missing_fields": exc.missing_fields or None,
                    "invalid_fields": sorted(exc.invalid_fields) or None,
                },
            )
            raise

        with self._lock:
            self._records[record.device_id] = record

        logger.info(
            "Location updated",
            extra={
                "device_id": record.device_id,
                "lat": record.lat,
                "lon": record.lon,
                "speed": record.speed,
                "status": record.status,
            },
        )
        return record

    def get(self, device_id: str) -> LocationRecord:
        with self._lock:
            record = self._records.get(device_id)
            known_ids = list(self._records) if record is None else []

        if record is None:
            logger.info("Unknown device requested", extra={"device_id": device_id})
            raise DeviceNotFoundError(device_id, known_ids)
        return self._view(record, self._clock())

    def list_all(self) -> list[LocationRecord]:
        """Return a snapshot of every current record."""

        with self._lock:
            records = list(self._records.values())
        now = self._clock()
        return [self._view(record, now) for record in records]

    def last_updated(self) -> Optional[datetime]:
        with self._lock:
            if not self._records:
                return None
            return max(record.updated for record in self._records.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _view(self, record: LocationRecord, now: datetime) -> LocationRecord:
        if self.stale_after is None or record.status is BusStatus.offline:
            return record
        if now - record.updated <= self.stale_after:
            return record
        return replace(record, status=BusStatus.offline)


def _build_record(update: Mapping[str, Any], updated: datetime) -> LocationRecord:
    missing: list[str] = []
    invalid: Dict[str, str] = {}

    device_id = update.get("device_id")
    if device_id is None or (isinstance(device_id, str) and not device_id.strip()):
        missing.append("device_id")
    elif not isinstance(device_id, str):
        invalid["device_id"] = "must be a string"

    coordinates: Dict[str, float] = {}
    for name, limit in (("lat", 90.0), ("lon", 180.0)):
        raw = update.get(name)
        if raw is None:
            missing.append(name)
            continue
        value, reason = _coerce_float(raw)
        if reason is None and not -limit <= value <= limit:
            reason = f"must be between {-limit:g} and {limit:g}"
        if reason is not None:
            invalid[name] = reason
        else:
            coordinates[name] = value

    speed = 0.0
    raw_speed = update.get("speed")
    if raw_speed is not None and raw_speed != "":
        speed, reason = _coerce_float(raw_speed)
        if reason is None and speed < 0:
            reason = "must not be negative"
        if reason is not None:
            invalid["speed"] = reason

    driver_name = _optional_text(update, "driver_name", invalid)
    bus_number = _optional_text(update, "bus_number", invalid)
    status = _parse_status(update.get("status"), invalid)

    if missing or invalid:
        raise LocationValidationError(missing_fields=missing, invalid_fields=invalid)

    return LocationRecord(
        device_id=device_id,
        lat=coordinates["lat"],
        lon=coordinates["lon"],
        speed=speed,
        driver_name=driver_name or DEFAULT_DRIVER_NAME,
        bus_number=bus_number or device_id,
        status=status,
        updated=updated,
    )


def _coerce_float(raw: Any) -> tuple[float, Optional[str]]:
    if isinstance(raw, bool):
        return 0.0, "must be a number"
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return 0.0, "must be a number"
    else:
        return 0.0, "must be a number"
    if not math.isfinite(value):
        return 0.0, "must be a finite number"
    return value, None


def _optional_text(update: Mapping[str, Any], name: str, invalid: Dict[str, str]) -> str:
    raw = update.get(name)
    if raw is None:
        return ""
    if isinstance(raw, bool) or not isinstance(raw, (str, int)):
        invalid[name] = "must be a string"
        return ""
    return str(raw).strip()


def _parse_status(raw: Any, invalid: Dict[str, str]) -> BusStatus:
    if raw is None or raw == "":
        return BusStatus.active
    if isinstance(raw, BusStatus):
        return raw
    if isinstance(raw, str):
        try:
            return BusStatus(raw.strip().lower())
        except ValueError:
            pass
    choices = ", ".join(status.value for status in BusStatus)
    invalid["status"] = f"must be one of: {choices}"
    return BusStatus.active


def build_default_registry() -> LocationRegistry:
    settings = get_settings()
    stale_after = (
        timedelta(seconds=settings.stale_after_seconds)
        if settings.stale_after_seconds
        else None
    )
    return LocationRegistry(stale_after=stale_after)
