"""Normalization of untrusted plot and order records into canonical entities."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import ValidationError

from plotsync.core.errors import InvalidResponseError, RecordValidationError
from plotsync.core.types import OrderStatus, PlotStatus
from plotsync.plots import attributes as attrs
from plotsync.plots.models import Order, Plot

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"

_LOCATION_FIELDS = ("district", "ward", "village")


@dataclass
class NormalizationReport:
    """Result of normalizing a batch: usable plots plus dropped-record diagnostics."""

    plots: list[Plot] = field(default_factory=list)
    dropped: list[RecordValidationError] = field(default_factory=list)

    @property
    def dropped_count(self) -> int:
        return len(self.dropped)


def normalize_status(value: Any) -> PlotStatus:
    """Map a raw status onto PlotStatus; anything unrecognized becomes pending."""
    if isinstance(value, str):
        try:
            return PlotStatus(value.strip().lower())
        except ValueError:
            pass
    return PlotStatus.PENDING


def coerce_area(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        area = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(area) or area < 0:
        return 0.0
    return area


def coerce_text(value: Any) -> str:
    if value is None:
        return UNKNOWN
    text = str(value).strip()
    return text or UNKNOWN


def parse_timestamp(value: Any, default: datetime) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return default
    else:
        return default
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_order(raw: Any, defaults: Mapping[str, Any] | None = None) -> Order:
    """Build an Order from a source response, filling gaps from *defaults*.

    Unknown order statuses become ``pending``. A record that still does not
    form an Order raises ``InvalidResponseError``.
    """
    if not isinstance(raw, Mapping):
        raise InvalidResponseError(f"Expected an order object, got {type(raw).__name__}")
    data: dict[str, Any] = {**(defaults or {}), **raw}
    if data.get("status") not in {s.value for s in OrderStatus}:
        data["status"] = OrderStatus.PENDING
    try:
        return Order.model_validate(data)
    except ValidationError as exc:
        raise InvalidResponseError(f"Malformed order in response: {exc}") from exc


def _identity(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def _flatten(record: Mapping[str, Any]) -> dict[str, Any]:
    """Accept flat records and GeoJSON Features alike."""
    props = record.get("properties")
    if isinstance(props, Mapping):
        flat = dict(props)
        if "geometry" in record:
            flat["geometry"] = record["geometry"]
        return flat
    return dict(record)


def _has_coordinates(geometry: Any) -> bool:
    if not isinstance(geometry, Mapping):
        return False
    coords = geometry.get("coordinates")
    return isinstance(coords, (list, tuple)) and len(coords) > 0


class PlotDataNormalizer:
    """Turns raw external records into canonical Plot entities.

    Records missing ``id``, ``plot_code`` or geometry coordinates are
    dropped and logged; a partially invalid batch still yields a usable
    plot set.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def normalize(self, records: Iterable[Any]) -> NormalizationReport:
        report = NormalizationReport()
        for index, record in enumerate(records):
            try:
                plot = self._normalize_record(record, index)
            except RecordValidationError as exc:
                logger.warning("Dropping record %d: %s", index, exc)
                report.dropped.append(exc)
                continue
            except Exception as exc:
                logger.exception("Unexpected error normalizing record %d", index)
                report.dropped.append(RecordValidationError(str(exc), index=index))
                continue
            report.plots.append(plot)

        if report.dropped:
            logger.warning(
                "Normalized %d plots from %d records (%d dropped)",
                len(report.plots), len(report.plots) + report.dropped_count, report.dropped_count,
            )
        else:
            logger.info("Normalized %d plots", len(report.plots))
        return report

    def normalize_one(self, record: Any) -> Plot | None:
        """Normalize a single record, returning ``None`` if it must be dropped."""
        try:
            return self._normalize_record(record, None)
        except RecordValidationError as exc:
            logger.warning("Dropping record: %s", exc)
            return None

    def _normalize_record(self, record: Any, index: int | None) -> Plot:
        if not isinstance(record, Mapping):
            raise RecordValidationError(
                f"expected a mapping, got {type(record).__name__}", index=index
            )
        flat = _flatten(record)

        plot_id = _identity(flat.get("id"))
        plot_code = _identity(flat.get("plot_code"))
        if plot_id is None or plot_code is None:
            raise RecordValidationError(
                "missing required properties (id or plot_code)",
                index=index,
                record_id=plot_id,
            )

        geometry = flat.get("geometry")
        if not _has_coordinates(geometry):
            raise RecordValidationError("missing geometry coordinates", index=index, record_id=plot_id)

        now = self._clock()
        created_at = parse_timestamp(flat.get("created_at"), now)
        updated_at = parse_timestamp(flat.get("updated_at"), now)
        if updated_at < created_at:
            updated_at = created_at

        return Plot(
            id=plot_id,
            plot_code=plot_code,
            status=normalize_status(flat.get("status")),
            area_hectares=coerce_area(flat.get("area_hectares")),
            **{name: coerce_text(flat.get(name)) for name in _LOCATION_FIELDS},
            geometry=dict(geometry),
            attributes=attrs.canonicalize(flat.get("attributes")),
            created_at=created_at,
            updated_at=updated_at,
        )
