"""
app.py - FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the registry and services, registers routers, and owns the
lifecycle of the background sweeper.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from roombook.controllers.room_controller import health_router
from roombook.controllers.room_controller import router as room_router
from roombook.repository.room_registry import RoomRegistry
from roombook.services.aging_service import PriorityAgingEngine, aging_config_from_settings
from roombook.services.booking_service import RoomBookingService
from roombook.services.conflict_service import ConflictDetector
from roombook.services.promotion_service import PromotionScheduler
from roombook.services.sweeper_service import LifecycleSweeper
from roombook.utils.config import Settings, get_settings
from roombook.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    All services are instantiated here and exposed via app.state; there are
    no module-level singletons besides the ``app`` object below.
    """
    settings = settings or get_settings()

    # --- Registry (the only shared mutable state) ---
    registry = RoomRegistry()

    # --- Core services ---
    conflict_detector = ConflictDetector()
    aging_engine = PriorityAgingEngine(aging_config_from_settings(settings))
    promotion_scheduler = PromotionScheduler(
        registry=registry,
        aging_engine=aging_engine,
        conflict_detector=conflict_detector,
    )
    booking_service = RoomBookingService(
        registry=registry,
        promotion_scheduler=promotion_scheduler,
        conflict_detector=conflict_detector,
        settings=settings,
    )
    sweeper = LifecycleSweeper(
        registry=registry,
        promotion_scheduler=promotion_scheduler,
        settings=settings,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Seed rooms and run the sweeper for the lifetime of the server."""
        _startup(app)
        yield
        _shutdown(app)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(room_router)
    app.include_router(health_router)

    # --- Inject services into app.state for dependency resolution ---
    app.state.settings = settings
    app.state.registry = registry
    app.state.promotion_scheduler = promotion_scheduler
    app.state.booking_service = booking_service
    app.state.sweeper = sweeper

    # Rooms are available even when the lifespan is not run (e.g. bare TestClient).
    registry.seed_default_rooms()

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence.

    Order matters:
      1. Rooms must exist before the sweeper takes its first room lock.
      2. The sweeper starts last so requests and sweeps see the same seed.
    """
    registry: RoomRegistry = app.state.registry
    settings: Settings = app.state.settings
    sweeper: LifecycleSweeper = app.state.sweeper

    logger.info("Startup: seeding rooms")
    registry.seed_default_rooms()

    if settings.sweeper_enabled:
        logger.info("Startup: starting lifecycle sweeper")
        sweeper.start()
    else:
        logger.info("Startup: lifecycle sweeper disabled by configuration")

    logger.info("Startup complete, system ready")


def _shutdown(app: FastAPI) -> None:
    sweeper: LifecycleSweeper = app.state.sweeper
    if sweeper.is_running:
        sweeper.stop()
    logger.info("Shutdown complete")


# Module-level app object for uvicorn
app = create_app()
