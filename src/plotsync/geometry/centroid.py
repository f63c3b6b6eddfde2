"""Representative point for label placement."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

logger = logging.getLogger(__name__)

ORIGIN: tuple[float, float] = (0.0, 0.0)
AREA_EPSILON = 1e-10


def centroid(ring: Sequence[Sequence[float]]) -> tuple[float, float]:
    """Area-weighted (shoelace) centroid of a closed ring.

    Falls back to the vertex average for a degenerate ring and to
    ``ORIGIN`` when the input cannot be computed at all.
    """
    try:
        points = [(float(p[0]), float(p[1])) for p in ring]
        if not points:
            return ORIGIN

        area = 0.0
        cx = 0.0
        cy = 0.0
        for (x0, y0), (x1, y1) in zip(points, points[1:]):
            cross = x0 * y1 - x1 * y0
            area += cross
            cx += (x0 + x1) * cross
            cy += (y0 + y1) * cross

        if abs(area) < AREA_EPSILON:
            n = len(points)
            return (sum(x for x, _ in points) / n, sum(y for _, y in points) / n)

        area *= 0.5
        return (cx / (6 * area), cy / (6 * area))
    except (TypeError, ValueError, IndexError, ZeroDivisionError) as exc:
        logger.debug("Centroid calculation failed: %s", exc)
        return ORIGIN


def outer_ring(geometry: Mapping[str, Any]) -> Sequence[Any]:
    """First ring of a Polygon, or first ring of the first part of a MultiPolygon."""
    try:
        coords = geometry["coordinates"]
        if geometry.get("type") == "MultiPolygon":
            return coords[0][0]
        return coords[0]
    except (KeyError, IndexError, TypeError, AttributeError):
        return []


def geometry_centroid(geometry: Mapping[str, Any]) -> tuple[float, float]:
    return centroid(outer_ring(geometry))
