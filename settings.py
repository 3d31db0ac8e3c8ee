from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_ROUTE_CATALOG_ENV = "ROUTE_CATALOG_PATH"
_STALE_AFTER_ENV = "LOCATION_STALE_AFTER_SECONDS"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    route_catalog_path: Optional[str]
    stale_after_seconds: Optional[float]
    log_level: str


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_stale_after(default: Optional[float]) -> Optional[float]:
    value = os.getenv(_STALE_AFTER_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        route_catalog_path=_read_optional_env(_ROUTE_CATALOG_ENV, None),
        stale_after_seconds=_read_stale_after(None),
        log_level=_read_log_level("INFO"),
    )
