"""Health gating and retry policy for talks with the remote plot source."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, TypeVar

from plotsync.core.config import ConnectivityConfig
from plotsync.core.errors import RefreshFailedError, SourceUnavailableError, TransportError
from plotsync.core.types import ConnectionStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConnectivityMonitor:
    """Caches remote-source health and gates data fetches.

    While the cached answer is younger than the TTL it is returned without
    probing, healthy or not. A failed probe is therefore remembered until
    the TTL boundary, which keeps a down source from being probed on every
    request.
    """

    def __init__(
        self,
        probe: Callable[[], Awaitable[bool]],
        config: ConnectivityConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._probe = probe
        self._config = config or ConnectivityConfig()
        self._clock = clock
        self._healthy = False
        self._last_check: float | None = None
        self._status = ConnectionStatus.CHECKING
        self._lock = asyncio.Lock()
        self.probe_count = 0

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def healthy(self) -> bool:
        return self._healthy

    @property
    def max_retries(self) -> int:
        return self._config.max_retries

    def _cache_fresh(self) -> bool:
        if self._last_check is None:
            return False
        return self._clock() - self._last_check < self._config.health_ttl_seconds

    async def should_fetch(self) -> bool:
        """Return whether a data fetch should be attempted now."""
        if self._cache_fresh():
            return self._healthy

        async with self._lock:
            # Another caller may have probed while we waited.
            if self._cache_fresh():
                return self._healthy
            self._status = ConnectionStatus.CHECKING
            self.probe_count += 1
            try:
                healthy = bool(await self._probe())
            except Exception as exc:
                logger.error("Health probe raised: %s", exc)
                healthy = False
            self._store(healthy)
            if not healthy:
                logger.warning("Plot source health check failed; suppressing probes for %.0fs",
                               self._config.health_ttl_seconds)
            return healthy

    def record_result(self, ok: bool) -> None:
        """Feed back the outcome of a real data request.

        Success refreshes the cache. Failure marks the source unhealthy and
        expires the cache so the next gate re-probes.
        """
        if ok:
            self._store(True)
        else:
            self._healthy = False
            self._last_check = None
            self._status = ConnectionStatus.DISCONNECTED

    def invalidate(self) -> None:
        """Forget the cached health so the next gate probes."""
        self._last_check = None

    def backoff_for(self, attempt: int) -> float:
        """Linear backoff: ``attempt * retry_backoff_seconds`` (attempt is 1-based)."""
        return attempt * self._config.retry_backoff_seconds

    async def run_with_retry(self, operation: Callable[[], Awaitable[T]], description: str = "fetch") -> T:
        """Run a gated fetch, retrying transport failures with linear backoff.

        Raises ``RefreshFailedError`` chained to the last transport error once
        the retries are exhausted. Any other exception propagates untouched.
        """
        attempts = self.max_retries + 1
        last_exc: TransportError | None = None

        for attempt in range(attempts):
            if await self.should_fetch():
                try:
                    result = await operation()
                except TransportError as exc:
                    self.record_result(False)
                    last_exc = exc
                else:
                    self.record_result(True)
                    return result
            else:
                last_exc = SourceUnavailableError(
                    "API server is not responding. Please check your connection and try again."
                )

            if attempt < attempts - 1:
                delay = self.backoff_for(attempt + 1)
                logger.warning(
                    "%s failed: %s, retrying in %.1fs (%d/%d)",
                    description, last_exc, delay, attempt + 1, self.max_retries,
                )
                await asyncio.sleep(delay)

        logger.error("%s failed after %d attempts: %s", description, attempts, last_exc)
        raise RefreshFailedError(
            f"Failed to {description} after {attempts} attempts: {last_exc}",
            attempts=attempts,
        ) from last_exc

    def _store(self, healthy: bool) -> None:
        self._healthy = healthy
        self._last_check = self._clock()
        self._status = ConnectionStatus.CONNECTED if healthy else ConnectionStatus.DISCONNECTED
