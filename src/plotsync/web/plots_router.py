"""FastAPI router exposing plot state to the UI layer."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from plotsync.core.errors import (
    ApplicantValidationError,
    BusinessRuleError,
    NoPlotsAvailableError,
    PlotNotFoundError,
    PlotSyncError,
    TransportError,
)
from plotsync.core.types import ConnectionStatus, OrderStatus, PlotStatus
from plotsync.plots.models import Applicant, SearchFilters
from plotsync.sync.refresh import RefreshOutcome

router = APIRouter()


class ViewUpdate(BaseModel):
    """Partial view update; explicit ``null`` clears hover or selection."""

    zoom: float | None = None
    hovered_id: str | None = None
    selected_id: str | None = None


class ConnectivityResponse(BaseModel):
    status: ConnectionStatus
    last_sync: datetime | None = None
    last_error: str | None = None


def _http_error(exc: PlotSyncError) -> HTTPException:
    """Keep "cannot reach source", "no data" and "rejected" distinguishable."""
    if isinstance(exc, ApplicantValidationError):
        return HTTPException(status_code=422, detail={"message": exc.user_message, "errors": exc.errors})
    if isinstance(exc, PlotNotFoundError):
        return HTTPException(status_code=404, detail=exc.detail)
    if isinstance(exc, BusinessRuleError):
        return HTTPException(status_code=409, detail=exc.detail)
    if isinstance(exc, NoPlotsAvailableError):
        return HTTPException(status_code=404, detail=exc.user_message)
    if isinstance(exc, TransportError):
        return HTTPException(status_code=503, detail=f"{exc.user_message} ({exc})")
    return HTTPException(status_code=500, detail=exc.user_message)


@router.get("/api/connectivity")
async def connectivity(request: Request) -> ConnectivityResponse:
    session = request.app.state.plot_session
    return ConnectivityResponse(
        status=request.app.state.connectivity_monitor.status,
        last_sync=session.last_sync,
        last_error=session.last_error,
    )


@router.get("/api/plots")
async def list_plots(request: Request, renderable_only: bool = False) -> dict[str, Any]:
    """Current plot set.

    An empty set is reported as "cannot reach source" when the last sync
    failed and as "no data available" otherwise.
    """
    session = request.app.state.plot_session
    plots = session.renderable_plots if renderable_only else session.plots
    if not plots:
        if session.last_error:
            raise HTTPException(status_code=503, detail=session.last_error)
        raise _http_error(NoPlotsAvailableError())
    return {
        "plots": [p.model_dump(mode="json") for p in plots],
        "last_sync": session.last_sync.isoformat() if session.last_sync else None,
    }


@router.get("/api/plots/stats")
async def plot_stats(request: Request) -> dict[str, Any]:
    return request.app.state.plot_session.stats().model_dump()


@router.get("/api/plots/search")
async def search_plots(
    request: Request,
    district: str | None = None,
    ward: str | None = None,
    village: str | None = None,
    status: PlotStatus | None = None,
    min_area: float | None = None,
    max_area: float | None = None,
    bbox: str | None = None,
) -> list[dict[str, Any]]:
    """Remote search; zero matches is an empty list, an unreachable source is 503."""
    filters = SearchFilters(
        district=district,
        ward=ward,
        village=village,
        status=status,
        min_area=min_area,
        max_area=max_area,
        bbox=bbox,
    )
    try:
        plots = await request.app.state.refresh_coordinator.search(filters)
    except PlotSyncError as exc:
        raise _http_error(exc) from exc
    return [p.model_dump(mode="json") for p in plots]


@router.get("/api/plots/{plot_id}")
async def get_plot(plot_id: str, request: Request) -> dict[str, Any]:
    """Plot from the session, falling back to the source for plots not loaded yet."""
    plot = request.app.state.plot_session.get(plot_id)
    if plot is None:
        try:
            plot = await request.app.state.refresh_coordinator.fetch_plot(plot_id)
        except PlotSyncError as exc:
            raise _http_error(exc) from exc
    if plot is None:
        raise HTTPException(status_code=404, detail=f"Plot {plot_id!r} not found")
    return plot.model_dump(mode="json")


@router.post("/api/plots/{plot_id}/reserve")
async def reserve_plot(plot_id: str, applicant: Applicant, request: Request) -> dict[str, Any]:
    coordinator = request.app.state.order_coordinator
    try:
        order = await coordinator.reserve(plot_id, applicant)
    except PlotSyncError as exc:
        raise _http_error(exc) from exc
    return order.model_dump(mode="json")


@router.get("/api/orders")
async def list_orders(
    request: Request,
    status: OrderStatus | None = None,
    plot_id: str | None = None,
    limit: int | None = Query(default=None, ge=1),
    offset: int | None = Query(default=None, ge=0),
) -> dict[str, Any]:
    """Filtered order listing served by the source."""
    try:
        orders, total = await request.app.state.refresh_coordinator.fetch_orders(
            status=status.value if status else None,
            plot_id=plot_id,
            limit=limit,
            offset=offset,
        )
    except PlotSyncError as exc:
        raise _http_error(exc) from exc
    return {"orders": [o.model_dump(mode="json") for o in orders], "total": total}


@router.get("/api/orders/session")
async def session_orders(request: Request) -> list[dict[str, Any]]:
    """Orders committed by reservations in this session."""
    return [o.model_dump(mode="json") for o in request.app.state.order_coordinator.list_orders()]


@router.get("/api/render")
async def render(request: Request) -> dict[str, Any]:
    return request.app.state.plot_session.render.model_dump(mode="json")


@router.put("/api/view")
async def update_view(body: ViewUpdate, request: Request) -> dict[str, Any]:
    session = request.app.state.plot_session
    changes = {name: getattr(body, name) for name in body.model_fields_set}
    if changes.get("zoom", 0) is None:
        del changes["zoom"]
    result = session.set_view(session.view.model_copy(update=changes))
    return result.model_dump(mode="json")


@router.post("/api/refresh")
async def refresh(request: Request) -> dict[str, Any]:
    try:
        result = await request.app.state.refresh_coordinator.refresh()
    except PlotSyncError as exc:
        raise _http_error(exc) from exc
    if result.outcome == RefreshOutcome.EMPTY:
        raise _http_error(NoPlotsAvailableError())
    return {
        "outcome": result.outcome.value,
        "sequence": result.sequence,
        "plot_count": result.plot_count,
        "dropped_records": result.dropped_records,
    }
