"""In-memory plot source with fixture plots for development/testing."""

from __future__ import annotations

import asyncio
import copy
import logging
from datetime import datetime, timezone
from typing import Any

from plotsync.core.config import SourceConfig
from plotsync.core.errors import OrderRejectedError
from plotsync.geometry.centroid import geometry_centroid
from plotsync.plots.models import Applicant, Plot, SearchFilters
from plotsync.plots.normalizer import PlotDataNormalizer
from plotsync.source.base import RawRecord

logger = logging.getLogger(__name__)


def _square(lon: float, lat: float, size: float) -> dict[str, Any]:
    return {
        "type": "Polygon",
        "coordinates": [[
            [lon, lat],
            [lon + size, lat],
            [lon + size, lat - size],
            [lon, lat - size],
            [lon, lat],
        ]],
    }


_FIXTURE_PLOTS: list[RawRecord] = [
    {
        "id": "plot-001",
        "plot_code": "DSM/KINONDONI/001",
        "status": "available",
        "area_hectares": 2.5,
        "district": "Kinondoni",
        "ward": "Msasani",
        "village": "Msasani Bonde la Mpunga",
        "geometry": _square(39.2083, -6.7833, 0.001),
        "attributes": {"Land_use": "residential", "soil_type": "sandy", "elevation": 45},
        "created_at": "2024-01-15T10:00:00Z",
        "updated_at": "2024-01-15T10:00:00Z",
    },
    {
        "id": "plot-002",
        "plot_code": "DSM/KINONDONI/002",
        "status": "taken",
        "area_hectares": 1.8,
        "district": "Kinondoni",
        "ward": "Msasani",
        "village": "Msasani Bonde la Mpunga",
        "geometry": _square(39.2093, -6.7833, 0.001),
        "attributes": {"land_use": "residential", "soil_type": "clay", "elevation": 42},
        "created_at": "2024-01-15T10:00:00Z",
        "updated_at": "2024-01-20T14:30:00Z",
    },
    {
        "id": "plot-003",
        "plot_code": "DSM/KINONDONI/003",
        "status": "pending",
        "area_hectares": 3.2,
        "district": "Kinondoni",
        "ward": "Msasani",
        "village": "Msasani Bonde la Mpunga",
        "geometry": _square(39.2103, -6.7833, 0.001),
        "attributes": {"land_use": "agricultural", "soil_type": "loam", "elevation": 48},
        "created_at": "2024-01-15T10:00:00Z",
        "updated_at": "2024-01-22T09:15:00Z",
    },
    {
        "id": "plot-004",
        "plot_code": "DSM/TEMEKE/001",
        "status": "available",
        "area_hectares": 4.1,
        "district": "Temeke",
        "ward": "Kigamboni",
        "village": "Kigamboni Mjimwema",
        "geometry": _square(39.2200, -6.8200, 0.002),
        "attributes": {"Block_numb": "B12", "land_use": "commercial", "elevation": 35},
        "created_at": "2024-01-16T11:00:00Z",
        "updated_at": "2024-01-16T11:00:00Z",
    },
    {
        "id": "plot-005",
        "plot_code": "DSM/ILALA/001",
        "status": "available",
        "area_hectares": 1.5,
        "district": "Ilala",
        "ward": "Upanga",
        "village": "Upanga Magharibi",
        "geometry": _square(39.2800, -6.8100, 0.0015),
        "attributes": {"Plot_Numb": "17", "land_use": "residential", "elevation": 52},
        "created_at": "2024-01-17T09:30:00Z",
        "updated_at": "2024-01-17T09:30:00Z",
    },
]


class MockPlotSource:
    """Mock plot source backed by fixture records.

    Orders flip the stored plot to ``pending`` the way the real API does.
    """

    def __init__(
        self,
        config: SourceConfig | None = None,
        records: list[RawRecord] | None = None,
        delay_seconds: float = 0.0,
    ) -> None:
        self.config = config or SourceConfig()
        self._records: dict[str, RawRecord] = {}
        self._orders: list[RawRecord] = []
        self._order_counter = 1
        self._delay = delay_seconds
        self.healthy = True
        for record in copy.deepcopy(records if records is not None else _FIXTURE_PLOTS):
            self._records[str(record["id"])] = record

    async def fetch_all_plots(self) -> list[RawRecord]:
        await self._simulate_latency()
        logger.debug("Returning %d mock plots", len(self._records))
        return copy.deepcopy(list(self._records.values()))

    async def fetch_plot_by_id(self, plot_id: str) -> RawRecord | None:
        await self._simulate_latency()
        record = self._records.get(plot_id)
        return copy.deepcopy(record) if record is not None else None

    async def search_plots(self, filters: SearchFilters) -> list[RawRecord]:
        await self._simulate_latency()
        normalizer = PlotDataNormalizer()
        results: list[RawRecord] = []
        for record in self._records.values():
            plot: Plot | None = normalizer.normalize_one(record)
            if plot is None:
                continue
            if filters.matches(plot, geometry_centroid(plot.geometry)):
                results.append(copy.deepcopy(record))
        return results

    async def submit_order(self, plot_id: str, applicant: Applicant) -> RawRecord:
        await self._simulate_latency()
        record = self._records.get(plot_id)
        if record is None:
            raise OrderRejectedError("Plot not found", status_code=404)
        if record.get("status") != "available":
            raise OrderRejectedError(
                f"Plot is not available for ordering. Current status: {record.get('status')}",
                status_code=409,
            )

        now = datetime.now(timezone.utc).isoformat()
        order: RawRecord = {
            "id": f"order-{self._order_counter}",
            "plot_id": plot_id,
            "plot_code": record["plot_code"],
            **applicant.model_dump(),
            "status": "pending",
            "created_at": now,
            "updated_at": now,
        }
        self._order_counter += 1
        self._orders.append(order)
        record["status"] = "pending"
        record["updated_at"] = now
        logger.info("Mock order %s created for plot %s", order["id"], plot_id)
        return dict(order)

    async def fetch_orders(
        self,
        *,
        status: str | None = None,
        plot_id: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> RawRecord:
        await self._simulate_latency()
        orders = [
            o for o in self._orders
            if (status is None or o["status"] == status)
            and (plot_id is None or o["plot_id"] == plot_id)
        ]
        total = len(orders)
        start = offset or 0
        end = start + limit if limit is not None else None
        return {"orders": [dict(o) for o in orders[start:end]], "total": total}

    async def probe_health(self) -> bool:
        return self.healthy

    async def close(self) -> None:
        return None

    async def _simulate_latency(self) -> None:
        if self._delay > 0:
            await asyncio.sleep(self._delay)
