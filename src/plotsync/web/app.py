"""FastAPI application serving plot state to the map UI.

Wires the plot source, connectivity gate, session, refresh coordinator and
reservation coordinator together, and owns the auto-refresh lifecycle.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from plotsync import __version__
from plotsync.core.config import Settings
from plotsync.core.errors import TransportError
from plotsync.geometry.validator import GeometryValidator
from plotsync.orders.coordinator import OrderTransactionCoordinator
from plotsync.render.models import ViewState
from plotsync.render.reconciler import RenderStateReconciler
from plotsync.source.base import PlotSource, create_source
from plotsync.sync.connectivity import ConnectivityMonitor
from plotsync.sync.refresh import AutoRefresher, RefreshCoordinator
from plotsync.sync.session import PlotSession
from plotsync.web.plots_router import router as plots_router

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
    version: str = __version__


def create_app(
    settings: Settings | None = None,
    source: PlotSource | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Uses the factory pattern so tests can create isolated app instances
    with a fake plot source.

    Args:
        settings: Application settings. Defaults to Settings().
        source: Optional pre-built plot source. Defaults to the provider
            named in ``settings.source``.

    Returns:
        A configured FastAPI instance.
    """
    if settings is None:
        settings = Settings()

    logging.getLogger("plotsync").setLevel(settings.log_level.upper())

    if source is None:
        source = create_source(settings.source)

    validator = GeometryValidator(settings.region)
    session = PlotSession(
        validator=validator,
        reconciler=RenderStateReconciler(settings.render),
        view=ViewState(zoom=settings.render.default_zoom),
    )
    monitor = ConnectivityMonitor(source.probe_health, settings.connectivity)
    refresh_coordinator = RefreshCoordinator(source, session, monitor, validator=validator)
    order_coordinator = OrderTransactionCoordinator(source, session)
    auto_refresher = AutoRefresher(refresh_coordinator, settings.refresh.interval_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            await refresh_coordinator.refresh()
        except TransportError as exc:
            logger.error("Initial plot load failed: %s", exc)
        if settings.refresh.enabled:
            auto_refresher.start()
        try:
            yield
        finally:
            await auto_refresher.stop()
            await source.close()

    app = FastAPI(
        title="Plot Sync",
        description="Land plot map state and reservations",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS for development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.plot_source = source
    app.state.plot_session = session
    app.state.connectivity_monitor = monitor
    app.state.refresh_coordinator = refresh_coordinator
    app.state.order_coordinator = order_coordinator
    app.state.auto_refresher = auto_refresher

    app.include_router(plots_router)

    @app.get("/health")
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", service="plotsync")

    return app
