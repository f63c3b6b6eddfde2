"""Structural and operating-region validation of plot geometry."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from plotsync.core.config import RegionConfig
from plotsync.plots.models import Plot

logger = logging.getLogger(__name__)

SUPPORTED_TYPES = ("Polygon", "MultiPolygon")
MIN_RING_LENGTH = 4


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _is_finite_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def iter_rings(geometry: Mapping[str, Any]) -> Iterable[Any]:
    """Yield every ring of a Polygon or MultiPolygon, without validating them."""
    coords = geometry.get("coordinates") or []
    if geometry.get("type") == "MultiPolygon":
        for polygon in coords:
            if _is_sequence(polygon):
                yield from polygon
    else:
        yield from coords


def coordinate_extent(plots: Iterable[Plot]) -> tuple[float, float, float, float] | None:
    """(min_lon, min_lat, max_lon, max_lat) over the outer rings of *plots*."""
    lons: list[float] = []
    lats: list[float] = []
    for plot in plots:
        coords = plot.geometry.get("coordinates")
        if not _is_sequence(coords):
            continue
        if plot.geometry.get("type") == "MultiPolygon":
            outer = [part[0] for part in coords if _is_sequence(part) and part]
        else:
            outer = list(coords[:1])
        for ring in outer:
            if not _is_sequence(ring):
                continue
            for position in ring:
                if _is_sequence(position) and len(position) == 2 and all(map(_is_finite_number, position)):
                    lons.append(position[0])
                    lats.append(position[1])
    if not lons:
        return None
    return min(lons), min(lats), max(lons), max(lats)


class GeometryValidator:
    """Accepts or rejects a geometry, short-circuiting on the first failed rule.

    Rules, in order:

    1. ``type`` is Polygon or MultiPolygon with non-empty coordinates;
    2. every ring has at least four positions;
    3. every position is two finite numbers;
    4. every position lies inside the operating region.
    """

    def __init__(self, region: RegionConfig | None = None) -> None:
        self._region = region or RegionConfig()

    @property
    def region(self) -> RegionConfig:
        return self._region

    def validate(self, geometry: Any) -> bool:
        return self.explain(geometry) is None

    def explain(self, geometry: Any) -> str | None:
        """Return the reason *geometry* is invalid, or ``None`` if it is valid."""
        if not isinstance(geometry, Mapping):
            return "geometry is missing"
        gtype = geometry.get("type")
        if gtype not in SUPPORTED_TYPES:
            return f"unsupported geometry type: {gtype!r}"
        coords = geometry.get("coordinates")
        if not _is_sequence(coords) or len(coords) == 0:
            return "coordinates are missing or empty"
        if gtype == "MultiPolygon":
            for polygon in coords:
                if not _is_sequence(polygon) or len(polygon) == 0:
                    return "MultiPolygon contains an empty polygon"

        rings = list(iter_rings(geometry))
        for ring in rings:
            if not _is_sequence(ring) or len(ring) < MIN_RING_LENGTH:
                return f"ring has fewer than {MIN_RING_LENGTH} positions"

        for ring in rings:
            for position in ring:
                if not _is_sequence(position) or len(position) != 2:
                    return "position is not a (longitude, latitude) pair"
                if not (_is_finite_number(position[0]) and _is_finite_number(position[1])):
                    return "position contains a non-finite value"

        for ring in rings:
            for lon, lat in ring:
                if not self._region.contains(lon, lat):
                    return f"position ({lon}, {lat}) is outside {self._region.name}"
        return None

    def partition(self, plots: Iterable[Plot]) -> tuple[list[Plot], list[Plot]]:
        """Split plots into (renderable, invalid). Never fatal for the batch."""
        valid: list[Plot] = []
        invalid: list[Plot] = []
        for plot in plots:
            reason = self.explain(plot.geometry)
            if reason is None:
                valid.append(plot)
            else:
                logger.debug("Plot %s has invalid geometry: %s", plot.plot_code, reason)
                invalid.append(plot)
        if invalid:
            logger.warning("Filtered out %d plots with invalid geometry", len(invalid))
        return valid, invalid
