"""Sequenced plot refresh and the cancellable auto-refresh timer."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from enum import StrEnum

from plotsync.core.errors import InvalidResponseError, TransportError
from plotsync.geometry.validator import GeometryValidator
from plotsync.plots.models import Order, Plot, SearchFilters
from plotsync.plots.normalizer import PlotDataNormalizer, normalize_order
from plotsync.source.base import PlotSource
from plotsync.sync.connectivity import ConnectivityMonitor
from plotsync.sync.session import PlotSession

logger = logging.getLogger(__name__)


class RefreshOutcome(StrEnum):
    APPLIED = "applied"
    EMPTY = "empty"
    STALE = "stale"


@dataclass
class RefreshResult:
    outcome: RefreshOutcome
    sequence: int
    plot_count: int = 0
    dropped_records: int = 0


class RefreshCoordinator:
    """Fetches plots through the connectivity gate and applies them in order.

    Every refresh gets a monotonically increasing sequence number. A
    response is applied only if its sequence is newer than the last applied
    one, so a slow, superseded request can never overwrite newer state.
    """

    def __init__(
        self,
        source: PlotSource,
        session: PlotSession,
        monitor: ConnectivityMonitor,
        normalizer: PlotDataNormalizer | None = None,
        validator: GeometryValidator | None = None,
    ) -> None:
        self._source = source
        self._session = session
        self._monitor = monitor
        self._normalizer = normalizer or PlotDataNormalizer()
        self._validator = validator or GeometryValidator()
        self._issued = 0
        self._applied = 0

    @property
    def last_applied_sequence(self) -> int:
        return self._applied

    async def refresh(self) -> RefreshResult:
        self._issued += 1
        sequence = self._issued
        logger.info("Refresh #%d: loading plots", sequence)

        try:
            records = await self._monitor.run_with_retry(
                self._source.fetch_all_plots, description="load plots"
            )
        except TransportError as exc:
            if sequence > self._applied:
                self._session.last_error = str(exc)
            raise

        if sequence <= self._applied:
            logger.info(
                "Discarding stale refresh #%d (last applied #%d)", sequence, self._applied
            )
            return RefreshResult(RefreshOutcome.STALE, sequence)

        report = self._normalizer.normalize(records)
        self._applied = sequence
        self._session.load(report.plots, dropped_records=report.dropped_count)

        if not report.plots:
            logger.warning("Refresh #%d: source returned no usable plots", sequence)
            return RefreshResult(RefreshOutcome.EMPTY, sequence, 0, report.dropped_count)
        return RefreshResult(
            RefreshOutcome.APPLIED, sequence, len(report.plots), report.dropped_count
        )

    async def search(self, filters: SearchFilters) -> list[Plot]:
        """Remote search returning the geometrically valid subset.

        An unreachable source raises ``TransportError``; zero matches is an
        empty list.
        """
        records = await self._monitor.run_with_retry(
            lambda: self._source.search_plots(filters), description="search plots"
        )
        report = self._normalizer.normalize(records)
        valid, _invalid = self._validator.partition(report.plots)
        logger.info("Found %d plots matching search criteria", len(valid))
        return valid

    async def fetch_plot(self, plot_id: str) -> Plot | None:
        """Fetch a single plot from the source without touching the session."""
        record = await self._monitor.run_with_retry(
            lambda: self._source.fetch_plot_by_id(plot_id), description=f"fetch plot {plot_id}"
        )
        if record is None:
            return None
        return self._normalizer.normalize_one(record)

    async def fetch_orders(
        self,
        *,
        status: str | None = None,
        plot_id: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> tuple[list[Order], int]:
        """Filtered order listing from the source, as (page, total)."""
        data = await self._monitor.run_with_retry(
            lambda: self._source.fetch_orders(
                status=status, plot_id=plot_id, limit=limit, offset=offset
            ),
            description="fetch orders",
        )
        raw_orders = data.get("orders") if isinstance(data, dict) else None
        if not isinstance(raw_orders, list):
            raise InvalidResponseError("Expected an orders array in response")
        orders = [normalize_order(raw) for raw in raw_orders]
        total = data.get("total")
        if not isinstance(total, int) or isinstance(total, bool):
            total = len(orders)
        logger.info("Fetched %d of %d orders", len(orders), total)
        return orders, total


class AutoRefresher:
    """Owner-held handle for the periodic refresh task.

    ``stop()`` cancels the task and waits for it, so no timer keeps firing
    after teardown.
    """

    def __init__(self, coordinator: RefreshCoordinator, interval_seconds: float) -> None:
        self._coordinator = coordinator
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="plotsync-auto-refresh")
        logger.info("Auto-refresh started (every %.0fs)", self._interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Auto-refresh stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            logger.debug("Auto-refreshing plot data")
            try:
                await self._coordinator.refresh()
            except TransportError as exc:
                logger.warning("Auto-refresh failed: %s", exc)
            except Exception:
                logger.exception("Auto-refresh raised unexpectedly")
