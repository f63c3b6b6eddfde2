"""Plot reservations with optimistic updates and rollback."""

from plotsync.orders.coordinator import (
    OrderTransactionCoordinator,
    ReservationTransaction,
    TransactionState,
)

__all__ = [
    "OrderTransactionCoordinator",
    "ReservationTransaction",
    "TransactionState",
]
