"""Render instruction models consumed by the map renderer."""

from __future__ import annotations

from pydantic import BaseModel, Field

from plotsync.core.types import PlotStatus


class ViewState(BaseModel):
    """Current map view: zoom plus at most one hovered and one selected plot."""

    model_config = {"frozen": True}

    zoom: float = 6
    hovered_id: str | None = None
    selected_id: str | None = None

    def with_hover(self, plot_id: str | None) -> ViewState:
        """Hover a new plot; the previous hover target is cleared implicitly."""
        return self.model_copy(update={"hovered_id": plot_id})

    def with_selection(self, plot_id: str | None) -> ViewState:
        return self.model_copy(update={"selected_id": plot_id})

    def with_zoom(self, zoom: float) -> ViewState:
        return self.model_copy(update={"zoom": zoom})


class PlotStyle(BaseModel):
    """Base style for one plot status."""

    model_config = {"frozen": True}

    fill_color: str
    fill_opacity: float = 0.7
    hover_fill_opacity: float = 0.9
    dash_array: str | None = None


class RenderInstruction(BaseModel):
    """How to draw one renderable plot."""

    plot_id: str
    status: PlotStatus
    fill_color: str
    stroke_color: str
    weight: int
    dash_array: str | None = None
    opacity: float = 1.0
    fill_opacity: float
    hovered: bool = False
    selected: bool = False


class Label(BaseModel):
    """Plot number drawn at the plot's centroid."""

    plot_id: str
    text: str
    position: tuple[float, float]
    status: PlotStatus


class RenderSet(BaseModel):
    """Full output of one reconciliation pass."""

    zoom: float
    labels_visible: bool
    instructions: dict[str, RenderInstruction] = Field(default_factory=dict)
    labels: list[Label] = Field(default_factory=list)
