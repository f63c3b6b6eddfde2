"""Tests for optimistic plot reservation."""

from __future__ import annotations

import asyncio

import pytest

from plotsync.core.config import ConnectivityConfig
from plotsync.core.errors import (
    ApplicantValidationError,
    OrderRejectedError,
    PlotNotAvailableError,
    PlotNotFoundError,
    ReservationInFlightError,
    SourceUnavailableError,
)
from plotsync.core.types import OrderStatus, PlotStatus
from plotsync.orders.coordinator import (
    OrderTransactionCoordinator,
    ReservationTransaction,
    TransactionState,
)
from plotsync.orders.validation import applicant_errors, validate_email
from plotsync.sync.connectivity import ConnectivityMonitor
from plotsync.sync.refresh import RefreshCoordinator
from plotsync.sync.session import PlotSession
from tests.conftest import applicant, make_plot, raw_plot


@pytest.fixture
def session() -> PlotSession:
    session = PlotSession()
    session.load([
        make_plot("plot-001", status="available"),
        make_plot("plot-002", status="taken"),
    ])
    return session


@pytest.fixture
def coordinator(fake_source, session) -> OrderTransactionCoordinator:
    return OrderTransactionCoordinator(fake_source, session)


class TestApplicantValidation:
    def test_valid_applicant(self):
        assert applicant_errors(applicant()) == {}

    def test_collects_every_error(self):
        errors = applicant_errors(applicant(first_name=" ", customer_phone="", customer_email="nope"))
        assert set(errors) == {"first_name", "customer_phone", "customer_email"}

    @pytest.mark.parametrize("email", ["a@b.co", "a@b.c", "first.last+tag@mail.example.org"])
    def test_valid_emails(self, email):
        assert validate_email(email) is None

    @pytest.mark.parametrize("email", ["plain", "a@b", "@example.com", "a b@example.com", "a@@b.com"])
    def test_invalid_emails(self, email):
        assert validate_email(email) is not None


class TestReserve:
    @pytest.mark.asyncio
    async def test_commit_leaves_plot_pending(self, coordinator, session, fake_source):
        order = await coordinator.reserve("plot-001", applicant())

        assert order.id == "order-1"
        assert order.plot_code == "DSM/KINONDONI/001"
        assert order.status == OrderStatus.PENDING
        assert order.customer_email == "asha@example.com"
        assert session.get("plot-001").status == PlotStatus.PENDING
        assert fake_source.order_calls == ["plot-001"]
        assert coordinator.list_orders() == [order]
        assert coordinator.transactions[0].state == TransactionState.COMMITTED
        assert not session.is_held("plot-001")

    @pytest.mark.asyncio
    async def test_optimistic_state_visible_while_in_flight(self, coordinator, session, fake_source):
        fake_source.order_gate = asyncio.Event()
        task = asyncio.create_task(coordinator.reserve("plot-001", applicant()))
        while not fake_source.order_calls:
            await asyncio.sleep(0)

        assert session.get("plot-001").status == PlotStatus.PENDING
        assert session.render.instructions["plot-001"].status == PlotStatus.PENDING
        assert coordinator.is_in_flight("plot-001")

        fake_source.order_gate.set()
        await task
        assert not coordinator.is_in_flight("plot-001")

    @pytest.mark.asyncio
    async def test_failure_rolls_back(self, coordinator, session, fake_source):
        fake_source.order_error = SourceUnavailableError("HTTP error! status: 500", status_code=500)

        with pytest.raises(SourceUnavailableError):
            await coordinator.reserve("plot-001", applicant())

        restored = session.get("plot-001")
        assert restored.status == PlotStatus.AVAILABLE
        assert session.render.instructions["plot-001"].status == PlotStatus.AVAILABLE
        txn = coordinator.transactions[0]
        assert txn.state == TransactionState.ROLLED_BACK
        assert "500" in txn.error
        assert coordinator.list_orders() == []

    @pytest.mark.asyncio
    async def test_remote_rejection_is_surfaced_verbatim(self, coordinator, session, fake_source):
        fake_source.order_error = OrderRejectedError("Plot is not available for ordering", status_code=409)

        with pytest.raises(OrderRejectedError, match="not available"):
            await coordinator.reserve("plot-001", applicant())
        assert session.get("plot-001").status == PlotStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_single_flight_per_plot(self, coordinator, fake_source):
        fake_source.order_gate = asyncio.Event()
        first = asyncio.create_task(coordinator.reserve("plot-001", applicant()))
        while not fake_source.order_calls:
            await asyncio.sleep(0)

        with pytest.raises((ReservationInFlightError, PlotNotAvailableError)):
            await coordinator.reserve("plot-001", applicant())

        fake_source.order_gate.set()
        await first
        assert fake_source.order_calls == ["plot-001"]

    @pytest.mark.asyncio
    async def test_concurrent_duplicates_submit_once(self, coordinator, fake_source):
        fake_source.order_gate = asyncio.Event()
        tasks = [asyncio.create_task(coordinator.reserve("plot-001", applicant())) for _ in range(3)]
        while not fake_source.order_calls:
            await asyncio.sleep(0)
        fake_source.order_gate.set()

        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert fake_source.order_calls == ["plot-001"]
        assert sum(1 for r in results if not isinstance(r, Exception)) == 1

    @pytest.mark.asyncio
    async def test_taken_plot_rejected_before_mutation(self, coordinator, session, fake_source):
        before = session.get("plot-002")

        with pytest.raises(PlotNotAvailableError, match="taken"):
            await coordinator.reserve("plot-002", applicant())

        assert fake_source.order_calls == []
        assert session.get("plot-002") is before
        assert coordinator.transactions == []

    @pytest.mark.asyncio
    async def test_unknown_plot(self, coordinator):
        with pytest.raises(PlotNotFoundError):
            await coordinator.reserve("plot-999", applicant())

    @pytest.mark.asyncio
    async def test_invalid_applicant_fails_fast(self, coordinator, session, fake_source):
        with pytest.raises(ApplicantValidationError) as exc_info:
            await coordinator.reserve("plot-001", applicant(customer_email="not-an-email"))

        assert "customer_email" in exc_info.value.errors
        assert fake_source.order_calls == []
        assert session.get("plot-001").status == PlotStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_on_change_called_for_apply_and_rollback(self, fake_source, session):
        changes = []
        coordinator = OrderTransactionCoordinator(fake_source, session, on_change=lambda: changes.append(1))
        fake_source.order_error = SourceUnavailableError("down")

        with pytest.raises(SourceUnavailableError):
            await coordinator.reserve("plot-001", applicant())
        assert len(changes) == 2

    @pytest.mark.asyncio
    async def test_cancellation_rolls_back(self, coordinator, session, fake_source):
        fake_source.order_gate = asyncio.Event()
        task = asyncio.create_task(coordinator.reserve("plot-001", applicant()))
        while not fake_source.order_calls:
            await asyncio.sleep(0)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert session.get("plot-001").status == PlotStatus.AVAILABLE
        assert not coordinator.is_in_flight("plot-001")
        assert coordinator.transactions[0].state == TransactionState.ROLLED_BACK


class TestReserveDuringRefresh:
    @pytest.fixture
    def refresher(self, fake_source, session) -> RefreshCoordinator:
        monitor = ConnectivityMonitor(
            fake_source.probe_health,
            ConnectivityConfig(max_retries=0, retry_backoff_seconds=0),
        )
        return RefreshCoordinator(fake_source, session, monitor)

    async def _start_reservation(self, coordinator, fake_source) -> asyncio.Task:
        fake_source.order_gate = asyncio.Event()
        task = asyncio.create_task(coordinator.reserve("plot-001", applicant()))
        while not fake_source.order_calls:
            await asyncio.sleep(0)
        return task

    @pytest.mark.asyncio
    async def test_rollback_keeps_newer_refreshed_status(self, coordinator, refresher, session, fake_source):
        task = await self._start_reservation(coordinator, fake_source)

        fake_source.records = [raw_plot("plot-001", status="taken"), raw_plot("plot-002", status="taken")]
        await refresher.refresh()
        assert session.get("plot-001").status == PlotStatus.PENDING

        fake_source.order_error = OrderRejectedError("Plot is not available for ordering", status_code=409)
        fake_source.order_gate.set()
        with pytest.raises(OrderRejectedError):
            await task

        assert session.get("plot-001").status == PlotStatus.TAKEN
        assert session.render.instructions["plot-001"].status == PlotStatus.TAKEN
        assert session.remote_status("plot-001") is None

    @pytest.mark.asyncio
    async def test_rollback_without_refresh_uses_snapshot(self, coordinator, refresher, session, fake_source):
        task = await self._start_reservation(coordinator, fake_source)

        fake_source.order_error = SourceUnavailableError("down")
        fake_source.order_gate.set()
        with pytest.raises(SourceUnavailableError):
            await task

        assert session.get("plot-001").status == PlotStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_commit_after_refresh_stays_pending(self, coordinator, refresher, session, fake_source):
        task = await self._start_reservation(coordinator, fake_source)

        fake_source.records = [raw_plot("plot-001", status="available")]
        await refresher.refresh()
        fake_source.order_gate.set()
        await task

        assert session.get("plot-001").status == PlotStatus.PENDING


class TestTransactionStateMachine:
    def test_legal_path(self):
        txn = ReservationTransaction(plot_id="plot-001", snapshot=make_plot())
        txn.advance(TransactionState.OPTIMISTICALLY_APPLIED)
        txn.advance(TransactionState.COMMITTED)
        assert txn.state == TransactionState.COMMITTED

    @pytest.mark.parametrize(
        "path",
        [
            [TransactionState.COMMITTED],
            [TransactionState.ROLLED_BACK],
            [TransactionState.OPTIMISTICALLY_APPLIED, TransactionState.COMMITTED, TransactionState.ROLLED_BACK],
            [TransactionState.OPTIMISTICALLY_APPLIED, TransactionState.ROLLED_BACK, TransactionState.COMMITTED],
        ],
    )
    def test_illegal_transitions(self, path):
        txn = ReservationTransaction(plot_id="plot-001", snapshot=make_plot())
        with pytest.raises(RuntimeError):
            for state in path:
                txn.advance(state)
