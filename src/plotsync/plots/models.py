"""Plot and order data models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from plotsync.core.types import OrderStatus, PlotStatus
from plotsync.plots import attributes as attrs


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Plot(BaseModel):
    """A land parcel as held by the session.

    Plots are frozen; state changes produce a new instance via
    ``model_copy(update=...)``. ``geometry`` keeps the GeoJSON layout as
    received so that invalid plots can still be inspected.
    """

    model_config = {"frozen": True}

    id: str
    plot_code: str
    status: PlotStatus = PlotStatus.PENDING
    area_hectares: float = 0.0
    district: str = "Unknown"
    ward: str = "Unknown"
    village: str = "Unknown"
    geometry: dict[str, Any] = Field(default_factory=dict)
    attributes: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @property
    def is_orderable(self) -> bool:
        return self.status == PlotStatus.AVAILABLE

    def attribute(self, *names: str, default: Any = None) -> Any:
        """Look up an auxiliary attribute regardless of key casing."""
        return attrs.lookup(self.attributes, *names, default=default)


class Applicant(BaseModel):
    """Person reserving a plot."""

    first_name: str = ""
    last_name: str = ""
    customer_phone: str = ""
    customer_email: str = ""
    customer_id_number: str | None = None
    intended_use: str | None = None


class Order(BaseModel):
    """A reservation of exactly one plot."""

    id: str
    plot_id: str
    plot_code: str = ""
    first_name: str = ""
    last_name: str = ""
    customer_phone: str = ""
    customer_email: str = ""
    customer_id_number: str | None = None
    intended_use: str | None = None
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class PlotStats(BaseModel):
    """Aggregate statistics over the session's plot set."""

    total: int = 0
    available: int = 0
    taken: int = 0
    pending: int = 0
    total_area_hectares: float = 0.0
    districts: int = 0
    wards: int = 0
    villages: int = 0
    renderable: int = 0
    invalid_geometry: int = 0
    dropped_records: int = 0

    @property
    def available_percent(self) -> int:
        if self.total == 0:
            return 0
        return round(self.available / self.total * 100)


class SearchFilters(BaseModel):
    """Filters accepted by plot search."""

    district: str | None = None
    ward: str | None = None
    village: str | None = None
    status: PlotStatus | None = None
    min_area: float | None = None
    max_area: float | None = None
    bbox: str | None = None

    def to_params(self) -> dict[str, str]:
        """Query parameters for the remote search endpoint, skipping blanks."""
        params: dict[str, str] = {}
        for key, value in self.model_dump(mode="json").items():
            if value is None or value == "":
                continue
            params[key] = str(value)
        return params

    def parsed_bbox(self) -> tuple[float, float, float, float] | None:
        """Parse ``min_lon,min_lat,max_lon,max_lat``; ``None`` if absent."""
        if not self.bbox:
            return None
        parts = [p.strip() for p in self.bbox.split(",")]
        if len(parts) != 4:
            raise ValueError(f"bbox must have 4 comma-separated numbers, got {self.bbox!r}")
        min_lon, min_lat, max_lon, max_lat = (float(p) for p in parts)
        return min_lon, min_lat, max_lon, max_lat

    def matches(self, plot: Plot, position: tuple[float, float] | None = None) -> bool:
        """Apply the filters to a single plot.

        *position* is the plot's representative point, only consulted
        for the ``bbox`` filter.
        """
        if self.district and self.district.lower() not in plot.district.lower():
            return False
        if self.ward and self.ward.lower() not in plot.ward.lower():
            return False
        if self.village and self.village.lower() not in plot.village.lower():
            return False
        if self.status is not None and plot.status != self.status:
            return False
        if self.min_area is not None and plot.area_hectares < self.min_area:
            return False
        if self.max_area is not None and plot.area_hectares > self.max_area:
            return False
        box = self.parsed_bbox()
        if box is not None and position is not None:
            lon, lat = position
            if not (box[0] <= lon <= box[2] and box[1] <= lat <= box[3]):
                return False
        return True
