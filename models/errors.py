"""Typed failures raised by the registry and the route catalog."""

from __future__ import annotations

from typing import Dict, Iterable, Sequence


class LocationValidationError(ValueError):
    """A location update was rejected; nothing was written."""

    def __init__(
        self,
        missing_fields: Sequence[str] = (),
        invalid_fields: Dict[str, str] | None = None,
    ) -> None:
        self.missing_fields = list(missing_fields)
        self.invalid_fields = dict(invalid_fields or {})
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        parts: list[str] = []
        if self.missing_fields:
            parts.append(f"Missing required fields: {', '.join(self.missing_fields)}")
        if self.invalid_fields:
            details = ", ".join(
                f"{name} ({reason})" for name, reason in self.invalid_fields.items()
            )
            parts.append(f"Invalid fields: {details}")
        return "; ".join(parts) or "Invalid location update"


class DeviceNotFoundError(KeyError):
    def __init__(self, device_id: str, known_ids: Iterable[str] = ()) -> None:
        self.device_id = device_id
        self.known_ids = list(known_ids)
        super().__init__(device_id)

    def __str__(self) -> str:
        return f"Bus with device_id {self.device_id!r} not found"


class RouteNotFoundError(KeyError):
    def __init__(self, route_id: str) -> None:
        self.route_id = route_id
        super().__init__(route_id)

    def __str__(self) -> str:
        return f"Route {self.route_id!r} not found"
