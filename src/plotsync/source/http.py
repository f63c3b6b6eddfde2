"""HTTP plot source talking to the land plot API over httpx."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from plotsync.core.config import SourceConfig
from plotsync.core.errors import InvalidResponseError, OrderRejectedError, SourceUnavailableError
from plotsync.plots.models import Applicant, SearchFilters
from plotsync.source.base import RawRecord

logger = logging.getLogger(__name__)

_STATUS_MESSAGES = {
    404: "API endpoint not found. Please check if the backend server is running.",
    500: "Internal server error. Please try again later.",
    503: "Service temporarily unavailable. Please try again in a moment.",
}


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:500] or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message")
        if detail:
            return str(detail)
    return str(body)[:500]


def _features(data: Any) -> list[RawRecord]:
    if not isinstance(data, dict):
        raise InvalidResponseError(
            f"Expected JSON object but received {type(data).__name__}"
        )
    if data.get("type") != "FeatureCollection":
        raise InvalidResponseError(
            f"Expected GeoJSON FeatureCollection but received type: {data.get('type') or 'unknown'}"
        )
    features = data.get("features")
    if not isinstance(features, list):
        raise InvalidResponseError(
            f"Invalid features array in response, got {type(features).__name__}"
        )
    return features


class HttpPlotSource:
    """Plot source backed by the REST API.

    Endpoints: ``GET /api/plots``, ``GET /api/plots/{id}``,
    ``GET /api/plots/search``, ``POST /api/plots/{id}/order``,
    ``GET /api/orders`` and ``GET /health``.
    """

    def __init__(self, config: SourceConfig, client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self._http = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout_seconds),
            headers={"Content-Type": "application/json", "Cache-Control": "no-cache"},
        )

    # -- public API ----------------------------------------------------------

    async def fetch_all_plots(self) -> list[RawRecord]:
        resp = await self._request("GET", "/api/plots")
        self._raise_for_status(resp)
        features = _features(self._json(resp))
        logger.info("Fetched %d plot features", len(features))
        return features

    async def fetch_plot_by_id(self, plot_id: str) -> RawRecord | None:
        resp = await self._request("GET", f"/api/plots/{plot_id}")
        if resp.status_code == 404:
            return None
        self._raise_for_status(resp)
        data = self._json(resp)
        if not isinstance(data, dict):
            raise InvalidResponseError(f"Expected a GeoJSON Feature for plot {plot_id!r}")
        return data

    async def search_plots(self, filters: SearchFilters) -> list[RawRecord]:
        resp = await self._request("GET", "/api/plots/search", params=filters.to_params())
        self._raise_for_status(resp)
        return _features(self._json(resp))

    async def submit_order(self, plot_id: str, applicant: Applicant) -> RawRecord:
        resp = await self._request(
            "POST",
            f"/api/plots/{plot_id}/order",
            json=applicant.model_dump(exclude_none=True),
        )
        if 400 <= resp.status_code < 500:
            raise OrderRejectedError(_error_detail(resp), status_code=resp.status_code)
        self._raise_for_status(resp)
        data = self._json(resp)
        if not isinstance(data, dict):
            raise InvalidResponseError("Expected an order object in response")
        logger.info("Order %s created for plot %s", data.get("id"), plot_id)
        return data

    async def fetch_orders(
        self,
        *,
        status: str | None = None,
        plot_id: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> RawRecord:
        params = {
            key: str(value)
            for key, value in {
                "status": status,
                "plot_id": plot_id,
                "limit": limit,
                "offset": offset,
            }.items()
            if value not in (None, "")
        }
        resp = await self._request("GET", "/api/orders", params=params)
        self._raise_for_status(resp)
        data = self._json(resp)
        if not isinstance(data, dict):
            raise InvalidResponseError("Expected an orders object in response")
        return data

    async def probe_health(self) -> bool:
        try:
            resp = await self._http.get(
                "/health", timeout=httpx.Timeout(self.config.health_timeout_seconds)
            )
        except httpx.HTTPError as exc:
            logger.error("Health check error: %s", exc)
            return False
        if resp.status_code != 200:
            logger.warning("API health check failed: %d", resp.status_code)
            return False
        return True

    async def close(self) -> None:
        await self._http.aclose()

    # -- internals -----------------------------------------------------------

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        logger.debug("Making API request: %s %s", method, url)
        try:
            return await self._http.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise SourceUnavailableError(
                "Request timed out. The server may be slow or unavailable."
            ) from exc
        except httpx.TransportError as exc:
            raise SourceUnavailableError(
                "Unable to connect to the server. Please check your connection and try again."
            ) from exc

    def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return
        detail = _error_detail(resp)
        logger.error("API responded with %d for %s: %s", resp.status_code, resp.url, detail)
        message = _STATUS_MESSAGES.get(resp.status_code)
        if message is None:
            prefix = "Client error" if resp.status_code < 500 else "Server error"
            message = f"{prefix}: {detail}"
        raise SourceUnavailableError(message, status_code=resp.status_code)

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise InvalidResponseError("Response body is not valid JSON") from exc
