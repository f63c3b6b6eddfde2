"""Maps the renderable plot set and view state onto render instructions."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from plotsync.core.config import RenderConfig
from plotsync.core.types import PlotStatus
from plotsync.geometry.centroid import geometry_centroid
from plotsync.plots.models import Plot
from plotsync.render.models import Label, PlotStyle, RenderInstruction, RenderSet, ViewState

logger = logging.getLogger(__name__)

STROKE_COLOR = "#ffffff"
HIGHLIGHT_COLOR = "#3B82F6"
BASE_WEIGHT = 2
HOVER_WEIGHT = 4

STATUS_STYLES: dict[str, PlotStyle] = {
    PlotStatus.AVAILABLE: PlotStyle(fill_color="#10B981"),
    PlotStatus.TAKEN: PlotStyle(fill_color="#EF4444", fill_opacity=0.6, hover_fill_opacity=0.8),
    PlotStatus.PENDING: PlotStyle(fill_color="#F59E0B", dash_array="8,4"),
}
NEUTRAL_STYLE = PlotStyle(fill_color="#6B7280")

_CODE_SEPARATORS = re.compile(r"[_/]")


def style_for(status: str, *, hovered: bool = False, selected: bool = False) -> dict[str, object]:
    """Style attributes for a single plot. Unknown statuses render neutral gray."""
    style = STATUS_STYLES.get(status, NEUTRAL_STYLE)
    return {
        "fill_color": HIGHLIGHT_COLOR if selected else style.fill_color,
        "stroke_color": HIGHLIGHT_COLOR if selected else STROKE_COLOR,
        "weight": HOVER_WEIGHT if hovered else BASE_WEIGHT,
        "dash_array": style.dash_array,
        "opacity": 1.0,
        "fill_opacity": style.hover_fill_opacity if hovered else style.fill_opacity,
    }


def label_text(plot: Plot, index: int) -> str:
    """Short plot number: ``plot_numb`` attribute, else the tail of the plot code."""
    number = plot.attribute("plot_numb")
    if number is not None:
        return str(number).strip()
    tail = _CODE_SEPARATORS.split(plot.plot_code)[-1].strip()
    return tail or str(index + 1)


class RenderStateReconciler:
    """Deterministic reconciliation of plots and view state.

    Instructions are recomputed on every pass. Labels are the expensive
    part, so they are cached and only rebuilt when the plot set changes or
    the zoom crosses ``label_min_zoom``.
    """

    def __init__(self, config: RenderConfig | None = None) -> None:
        self._config = config or RenderConfig()
        self._label_source: tuple[Plot, ...] | None = None
        self._label_visible: bool | None = None
        self._labels: list[Label] = []
        self.label_passes = 0

    def labels_visible(self, zoom: float) -> bool:
        return zoom >= self._config.label_min_zoom

    def reconcile(self, plots: Sequence[Plot], view: ViewState) -> RenderSet:
        ordered = sorted(plots, key=lambda p: p.id)
        instructions = {
            plot.id: RenderInstruction(
                plot_id=plot.id,
                status=plot.status,
                hovered=plot.id == view.hovered_id,
                selected=plot.id == view.selected_id,
                **style_for(
                    plot.status,
                    hovered=plot.id == view.hovered_id,
                    selected=plot.id == view.selected_id,
                ),
            )
            for plot in ordered
        }
        visible = self.labels_visible(view.zoom)
        return RenderSet(
            zoom=view.zoom,
            labels_visible=visible,
            instructions=instructions,
            labels=self._labels_for(tuple(ordered), visible),
        )

    def _labels_for(self, ordered: tuple[Plot, ...], visible: bool) -> list[Label]:
        if visible == self._label_visible and self._same_plots(ordered):
            return list(self._labels)

        self.label_passes += 1
        labels: list[Label] = []
        if visible:
            for index, plot in enumerate(ordered):
                labels.append(
                    Label(
                        plot_id=plot.id,
                        text=label_text(plot, index),
                        position=geometry_centroid(plot.geometry),
                        status=plot.status,
                    )
                )
            logger.debug("Built %d plot labels", len(labels))

        self._label_source = ordered
        self._label_visible = visible
        self._labels = labels
        return list(labels)

    def _same_plots(self, ordered: tuple[Plot, ...]) -> bool:
        source = self._label_source
        if source is None or len(source) != len(ordered):
            return False
        return all(a is b for a, b in zip(source, ordered))
