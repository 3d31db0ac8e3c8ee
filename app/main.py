from __future__ import annotations
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from app.api import router
from datastore.location_registry import LocationRegistry, build_default_registry
from datastore.route_catalog import RouteCatalog, build_default_catalog
from logging_config import configure_logging
from services.tracking import TrackingService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info(
        "Bus tracker started",
        extra={"bus_count": len(app.state.registry), "reason": f"routes={len(app.state.catalog)}"},
    )
    try:
        yield
    finally:
        logger.info("Bus tracker stopping", extra={"bus_count": len(app.state.registry)})


def create_app(
    registry: Optional[LocationRegistry] = None,
    catalog: Optional[RouteCatalog] = None,
) -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Bus Tracker",
        description="Latest-position registry for bus tracking devices with stop ETAs.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.registry = registry if registry is not None else build_default_registry()
    app.state.catalog = catalog if catalog is not None else build_default_catalog()
    app.state.tracking = TrackingService(app.state.registry, app.state.catalog)
    app.state.started_at = time.monotonic()
    app.include_router(router)
    return app

app = create_app()
