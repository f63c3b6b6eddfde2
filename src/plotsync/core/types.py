"""Core type definitions shared across all plotsync modules."""

from __future__ import annotations

from enum import StrEnum


class PlotStatus(StrEnum):
    """Reservation status of a plot."""

    AVAILABLE = "available"
    PENDING = "pending"
    TAKEN = "taken"


class OrderStatus(StrEnum):
    """Status of a reservation order."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class ConnectionStatus(StrEnum):
    """Connectivity to the remote plot source as shown to the UI."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    CHECKING = "checking"
