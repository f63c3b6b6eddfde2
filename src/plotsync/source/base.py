"""Inbound boundary: the remote plot source."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from plotsync.core.config import SourceConfig
from plotsync.plots.models import Applicant, SearchFilters

RawRecord = dict[str, Any]


@runtime_checkable
class PlotSource(Protocol):
    """Protocol for remote plot sources.

    Transport problems raise ``TransportError`` subclasses; a refused order
    raises ``OrderRejectedError``. Records are returned unvalidated.
    """

    async def fetch_all_plots(self) -> list[RawRecord]: ...

    async def fetch_plot_by_id(self, plot_id: str) -> RawRecord | None: ...

    async def search_plots(self, filters: SearchFilters) -> list[RawRecord]: ...

    async def submit_order(self, plot_id: str, applicant: Applicant) -> RawRecord: ...

    async def fetch_orders(
        self,
        *,
        status: str | None = None,
        plot_id: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> RawRecord: ...

    async def probe_health(self) -> bool: ...

    async def close(self) -> None: ...


def create_source(config: SourceConfig) -> PlotSource:
    """Factory: select a plot source implementation from ``config.provider``."""
    from plotsync.source.http import HttpPlotSource
    from plotsync.source.mock import MockPlotSource

    providers: dict[str, Any] = {
        "http": HttpPlotSource,
        "mock": MockPlotSource,
    }
    provider = config.provider.lower()
    if provider not in providers:
        available = ", ".join(sorted(providers))
        raise ValueError(
            f"Unknown plot source provider {config.provider!r}. "
            f"Available: {available}"
        )
    return providers[provider](config)
