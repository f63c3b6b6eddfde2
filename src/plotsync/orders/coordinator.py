"""Optimistic plot reservation with rollback and per-plot single-flight."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from enum import StrEnum
from typing import Callable

from pydantic import BaseModel, Field

from plotsync.core.errors import (
    PlotNotAvailableError,
    PlotNotFoundError,
    ReservationInFlightError,
)
from plotsync.core.types import PlotStatus
from plotsync.orders.validation import validate_applicant
from plotsync.plots.models import Applicant, Order, Plot
from plotsync.plots.normalizer import normalize_order
from plotsync.source.base import PlotSource, RawRecord
from plotsync.sync.session import PlotSession

logger = logging.getLogger(__name__)


class TransactionState(StrEnum):
    IDLE = "idle"
    OPTIMISTICALLY_APPLIED = "optimistically_applied"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


_TRANSITIONS: dict[TransactionState, set[TransactionState]] = {
    TransactionState.IDLE: {TransactionState.OPTIMISTICALLY_APPLIED},
    TransactionState.OPTIMISTICALLY_APPLIED: {
        TransactionState.COMMITTED,
        TransactionState.ROLLED_BACK,
    },
    TransactionState.COMMITTED: set(),
    TransactionState.ROLLED_BACK: set(),
}


class ReservationTransaction(BaseModel):
    """One reservation attempt and the snapshot needed to undo it."""

    transaction_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    plot_id: str
    snapshot: Plot
    state: TransactionState = TransactionState.IDLE
    order: Order | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def advance(self, state: TransactionState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal reservation transition {self.state.value} -> {state.value}"
            )
        self.state = state
        self.updated_at = datetime.now(timezone.utc)


def _order_from_response(raw: RawRecord, plot: Plot, applicant: Applicant) -> Order:
    defaults = {**applicant.model_dump(), "plot_id": plot.id, "plot_code": plot.plot_code}
    return normalize_order(raw, defaults)


class OrderTransactionCoordinator:
    """Executes reservations against the session's plot set.

    Protocol per reservation:

    1. pre-checks (single-flight, plot exists and is available, applicant
       fields), all before any mutation or network call;
    2. optimistic ``pending`` status plus reconciliation;
    3. remote submission;
    4. commit, or rollback to the pre-transaction snapshot status with the
       original exception re-raised.
    """

    def __init__(
        self,
        source: PlotSource,
        session: PlotSession,
        on_change: Callable[[], object] | None = None,
    ) -> None:
        self._source = source
        self._session = session
        self._on_change = on_change or session.reconcile
        self._in_flight: dict[str, ReservationTransaction] = {}
        self._orders: list[Order] = []
        self.transactions: list[ReservationTransaction] = []

    def is_in_flight(self, plot_id: str) -> bool:
        return plot_id in self._in_flight

    def list_orders(self) -> list[Order]:
        return list(self._orders)

    async def reserve(self, plot_id: str, applicant: Applicant) -> Order:
        if plot_id in self._in_flight:
            raise ReservationInFlightError(plot_id)
        plot = self._session.get(plot_id)
        if plot is None:
            raise PlotNotFoundError(plot_id)
        if not plot.is_orderable:
            raise PlotNotAvailableError(plot_id, plot.status.value)
        validate_applicant(applicant)

        txn = ReservationTransaction(plot_id=plot_id, snapshot=plot)
        self._in_flight[plot_id] = txn
        self.transactions.append(txn)
        try:
            self._apply_optimistic(txn)
            try:
                raw = await self._source.submit_order(plot_id, applicant)
                order = _order_from_response(raw, plot, applicant)
            except Exception as exc:
                self._rollback(txn, str(exc))
                raise
            self._commit(txn, order)
            return order
        finally:
            if txn.state == TransactionState.OPTIMISTICALLY_APPLIED:
                self._rollback(txn, "reservation interrupted")
            self._in_flight.pop(plot_id, None)
            self._session.release(plot_id)

    def _apply_optimistic(self, txn: ReservationTransaction) -> None:
        self._session.hold(txn.plot_id)
        self._session.set_status(txn.plot_id, PlotStatus.PENDING)
        txn.advance(TransactionState.OPTIMISTICALLY_APPLIED)
        logger.info("Plot %s optimistically marked pending", txn.plot_id)
        self._on_change()

    def _commit(self, txn: ReservationTransaction, order: Order) -> None:
        txn.order = order
        txn.advance(TransactionState.COMMITTED)
        self._orders.append(order)
        logger.info("Order %s committed for plot %s", order.id, txn.plot_id)

    def _rollback(self, txn: ReservationTransaction, reason: str) -> None:
        if self._session.get(txn.plot_id) is not None:
            # A refresh that landed during the hold is newer than the snapshot.
            status = self._session.remote_status(txn.plot_id) or txn.snapshot.status
            self._session.set_status(txn.plot_id, status, touch=False)
        txn.error = reason
        txn.advance(TransactionState.ROLLED_BACK)
        logger.warning("Reservation of plot %s rolled back: %s", txn.plot_id, reason)
        self._on_change()
