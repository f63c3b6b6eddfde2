#!/usr/bin/env python3
"""CLI script to diagnose plot data coming from the configured source.

Loads every plot, reports dropped records and invalid geometry, and checks
that the data's coordinate extent falls inside the operating region.

Usage:
    python scripts/diagnose_plots.py --provider http --base-url http://localhost:8000
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Ensure the project source is importable when running the script directly.
_project_root = Path(__file__).resolve().parent.parent
_src = _project_root / "src"
if str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from plotsync.core.config import Settings  # noqa: E402
from plotsync.core.errors import TransportError  # noqa: E402
from plotsync.geometry.validator import GeometryValidator, coordinate_extent  # noqa: E402
from plotsync.source.base import create_source  # noqa: E402
from plotsync.sync.connectivity import ConnectivityMonitor  # noqa: E402
from plotsync.sync.refresh import RefreshCoordinator  # noqa: E402
from plotsync.sync.session import PlotSession  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Diagnose plot data from the plot source.")
    parser.add_argument("--provider", type=str, default=None, help="Plot source provider (mock or http).")
    parser.add_argument("--base-url", type=str, default=None, help="Base URL of the plot API.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args()


async def main() -> int:
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    settings = Settings()
    if args.provider:
        settings.source.provider = args.provider
    if args.base_url:
        settings.source.base_url = args.base_url

    source = create_source(settings.source)
    validator = GeometryValidator(settings.region)
    session = PlotSession(validator=validator)
    monitor = ConnectivityMonitor(source.probe_health, settings.connectivity)
    coordinator = RefreshCoordinator(source, session, monitor, validator=validator)

    try:
        print(f"Loading plots from {settings.source.provider} source ...")
        result = await coordinator.refresh()
    except TransportError as exc:
        print(f"ERROR: cannot reach plot source: {exc}")
        return 1
    finally:
        await source.close()

    stats = session.stats()
    print(f"Outcome: {result.outcome.value}")
    print(f"Plots: {stats.total} ({stats.available} available, {stats.taken} taken, {stats.pending} pending)")
    print(f"Total area: {stats.total_area_hectares} ha")
    print(f"Districts/wards/villages: {stats.districts}/{stats.wards}/{stats.villages}")
    print(f"Dropped records: {stats.dropped_records}")
    print(f"Invalid geometry: {stats.invalid_geometry}")
    for plot in session.invalid_plots:
        print(f"  - {plot.plot_code}: {validator.explain(plot.geometry)}")

    region = settings.region
    extent = coordinate_extent(session.plots)
    if extent is None:
        print("No coordinates to check.")
        return 0
    print("Coordinate extent: lon %.4f..%.4f, lat %.4f..%.4f" % (extent[0], extent[2], extent[1], extent[3]))
    inside = (
        region.contains(extent[0], extent[1]) and region.contains(extent[2], extent[3])
    )
    if not inside:
        print(
            f"WARNING: plot coordinates extend outside {region.name} "
            f"(lon {region.min_lon}..{region.max_lon}, lat {region.min_lat}..{region.max_lat})"
        )
        return 2
    print(f"All plot coordinates inside {region.name}.")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
