"""Session-owned plot set, view state and render output.

The session is the single owner of plot state. The renderer only ever
reads the ``RenderSet`` produced here; writes come from a refresh (via
``load``) or from a reservation (via ``set_status``).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from plotsync.core.types import PlotStatus
from plotsync.geometry.centroid import geometry_centroid
from plotsync.geometry.validator import GeometryValidator
from plotsync.plots.models import Plot, PlotStats, SearchFilters
from plotsync.render.models import RenderSet, ViewState
from plotsync.render.reconciler import RenderStateReconciler

logger = logging.getLogger(__name__)

RenderListener = Callable[[RenderSet], None]


class PlotSession:
    """Holds the raw and renderable plot sets for one application session."""

    def __init__(
        self,
        validator: GeometryValidator | None = None,
        reconciler: RenderStateReconciler | None = None,
        view: ViewState | None = None,
    ) -> None:
        self._validator = validator or GeometryValidator()
        self._reconciler = reconciler or RenderStateReconciler()
        self._plots: dict[str, Plot] = {}
        self._renderable: set[str] = set()
        self._held: set[str] = set()
        self._remote_status: dict[str, PlotStatus] = {}
        self._dropped_records = 0
        self._view = view or ViewState()
        self._render: RenderSet | None = None
        self._listeners: list[RenderListener] = []
        self.last_sync: datetime | None = None
        self.last_error: str | None = None

    # -- plot set -------------------------------------------------------------

    def load(self, plots: list[Plot], dropped_records: int = 0) -> RenderSet:
        """Replace the plot set with a fresh, already-normalized batch.

        Plots held by an in-flight reservation keep their optimistic
        ``pending`` status so a refresh cannot clobber it. The status the
        source reported is remembered and becomes the rollback target.
        """
        incoming: dict[str, Plot] = {}
        for plot in plots:
            if plot.id in self._held:
                self._remote_status[plot.id] = plot.status
            if plot.id in self._held and plot.status != PlotStatus.PENDING:
                plot = plot.model_copy(update={"status": PlotStatus.PENDING})
            incoming[plot.id] = plot

        valid, invalid = self._validator.partition(incoming.values())
        self._plots = incoming
        self._renderable = {p.id for p in valid}
        self._dropped_records = dropped_records
        self.last_sync = datetime.now(timezone.utc)
        self.last_error = None
        logger.info(
            "Loaded %d plots (%d renderable, %d invalid geometry, %d dropped records)",
            len(incoming), len(valid), len(invalid), dropped_records,
        )
        return self.reconcile()

    def get(self, plot_id: str) -> Plot | None:
        return self._plots.get(plot_id)

    @property
    def plots(self) -> list[Plot]:
        return list(self._plots.values())

    @property
    def renderable_plots(self) -> list[Plot]:
        return [p for p in self._plots.values() if p.id in self._renderable]

    @property
    def invalid_plots(self) -> list[Plot]:
        return [p for p in self._plots.values() if p.id not in self._renderable]

    def set_status(self, plot_id: str, status: PlotStatus, *, touch: bool = True) -> Plot:
        """Copy-on-write status change. Does not reconcile."""
        plot = self._plots.get(plot_id)
        if plot is None:
            raise KeyError(plot_id)
        update: dict[str, object] = {"status": status}
        if touch:
            update["updated_at"] = max(plot.updated_at, datetime.now(timezone.utc))
        updated = plot.model_copy(update=update)
        self._plots[plot_id] = updated
        return updated

    # -- reservation holds ----------------------------------------------------

    def hold(self, plot_id: str) -> None:
        self._held.add(plot_id)

    def release(self, plot_id: str) -> None:
        self._held.discard(plot_id)
        self._remote_status.pop(plot_id, None)

    def is_held(self, plot_id: str) -> bool:
        return plot_id in self._held

    def remote_status(self, plot_id: str) -> PlotStatus | None:
        """Status a refresh reported for a held plot, if one landed during the hold."""
        return self._remote_status.get(plot_id)

    # -- view state -----------------------------------------------------------

    @property
    def view(self) -> ViewState:
        return self._view

    def set_view(self, view: ViewState) -> RenderSet:
        self._view = view
        return self.reconcile()

    def set_hover(self, plot_id: str | None) -> RenderSet:
        return self.set_view(self._view.with_hover(plot_id))

    def set_selection(self, plot_id: str | None) -> RenderSet:
        return self.set_view(self._view.with_selection(plot_id))

    def set_zoom(self, zoom: float) -> RenderSet:
        return self.set_view(self._view.with_zoom(zoom))

    # -- rendering ------------------------------------------------------------

    def subscribe(self, listener: RenderListener) -> Callable[[], None]:
        """Register a renderer callback; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def reconcile(self) -> RenderSet:
        self._render = self._reconciler.reconcile(self.renderable_plots, self._view)
        for listener in list(self._listeners):
            listener(self._render)
        return self._render

    @property
    def render(self) -> RenderSet:
        if self._render is None:
            return self.reconcile()
        return self._render

    # -- derived views ----------------------------------------------------------

    def stats(self) -> PlotStats:
        plots = self.plots
        return PlotStats(
            total=len(plots),
            available=sum(1 for p in plots if p.status == PlotStatus.AVAILABLE),
            taken=sum(1 for p in plots if p.status == PlotStatus.TAKEN),
            pending=sum(1 for p in plots if p.status == PlotStatus.PENDING),
            total_area_hectares=round(sum(p.area_hectares for p in plots), 2),
            districts=len({p.district for p in plots}),
            wards=len({p.ward for p in plots}),
            villages=len({p.village for p in plots}),
            renderable=len(self._renderable),
            invalid_geometry=len(plots) - len(self._renderable),
            dropped_records=self._dropped_records,
        )

    def search(self, filters: SearchFilters) -> list[Plot]:
        """Filter the renderable set locally."""
        return [
            p for p in self.renderable_plots
            if filters.matches(p, geometry_centroid(p.geometry))
        ]
