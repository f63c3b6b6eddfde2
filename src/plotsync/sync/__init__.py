"""Synchronization with the remote plot source.

Provides the connectivity gate, the session-owned plot set and the
sequenced refresh cycle.
"""

from plotsync.sync.connectivity import ConnectivityMonitor
from plotsync.sync.refresh import AutoRefresher, RefreshCoordinator, RefreshOutcome, RefreshResult
from plotsync.sync.session import PlotSession

__all__ = [
    "AutoRefresher",
    "ConnectivityMonitor",
    "PlotSession",
    "RefreshCoordinator",
    "RefreshOutcome",
    "RefreshResult",
]
