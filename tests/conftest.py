"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from plotsync.core.errors import SourceUnavailableError
from plotsync.plots.models import Applicant, SearchFilters
from plotsync.plots.normalizer import PlotDataNormalizer


def square(lon: float = 39.2083, lat: float = -6.7833, size: float = 0.001) -> dict[str, Any]:
    """Closed square Polygon inside the default operating region."""
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


def raw_plot(plot_id: str = "plot-001", **overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": plot_id,
        "plot_code": f"DSM/KINONDONI/{plot_id[-3:]}",
        "status": "available",
        "area_hectares": 2.5,
        "district": "Kinondoni",
        "ward": "Msasani",
        "village": "Msasani Bonde la Mpunga",
        "geometry": square(),
        "attributes": {},
        "created_at": "2024-01-15T10:00:00Z",
        "updated_at": "2024-01-15T10:00:00Z",
    }
    record.update(overrides)
    return record


def make_plot(plot_id: str = "plot-001", **overrides: Any):
    plot = PlotDataNormalizer().normalize_one(raw_plot(plot_id, **overrides))
    assert plot is not None
    return plot


def applicant(**overrides: Any) -> Applicant:
    data = {
        "first_name": "Asha",
        "last_name": "Mwakyusa",
        "customer_phone": "+255 712 345 678",
        "customer_email": "asha@example.com",
    }
    data.update(overrides)
    return Applicant(**data)


class FakePlotSource:
    """Scriptable plot source.

    ``responses`` is consumed one entry per ``fetch_all_plots`` call: a list
    of records is returned, an exception is raised. ``gates`` lets a test
    hold a specific call open until it sets the matching event.
    """

    def __init__(self, records: list[dict[str, Any]] | None = None) -> None:
        self.records = records if records is not None else [raw_plot()]
        self.responses: list[Any] = []
        self.gates: dict[int, asyncio.Event] = {}
        self.fetch_calls = 0
        self.order_calls: list[str] = []
        self.order_gate: asyncio.Event | None = None
        self.order_error: Exception | None = None
        self.orders_response: Any = {"orders": [], "total": 0}
        self.orders_queries: list[dict[str, Any]] = []
        self.healthy = True
        self.probe_calls = 0
        self.closed = False

    async def fetch_all_plots(self) -> list[dict[str, Any]]:
        self.fetch_calls += 1
        call = self.fetch_calls
        response: Any = self.responses.pop(0) if self.responses else self.records
        gate = self.gates.get(call)
        if gate is not None:
            await gate.wait()
        if isinstance(response, Exception):
            raise response
        return [dict(r) for r in response]

    async def fetch_plot_by_id(self, plot_id: str) -> dict[str, Any] | None:
        for record in self.records:
            if record["id"] == plot_id:
                return dict(record)
        return None

    async def search_plots(self, filters: SearchFilters) -> list[dict[str, Any]]:
        if not self.healthy:
            raise SourceUnavailableError("down")
        return [dict(r) for r in self.records if not filters.district or filters.district.lower() in r["district"].lower()]

    async def submit_order(self, plot_id: str, applicant: Applicant) -> dict[str, Any]:
        self.order_calls.append(plot_id)
        if self.order_gate is not None:
            await self.order_gate.wait()
        if self.order_error is not None:
            raise self.order_error
        return {"id": f"order-{len(self.order_calls)}", "plot_id": plot_id, "status": "pending"}

    async def fetch_orders(self, **kwargs: Any) -> Any:
        self.orders_queries.append(kwargs)
        return self.orders_response

    async def probe_health(self) -> bool:
        self.probe_calls += 1
        return self.healthy

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_source() -> FakePlotSource:
    return FakePlotSource()
