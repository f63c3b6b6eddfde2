"""Tests for the session-owned plot set and view state."""

from __future__ import annotations

import pytest

from plotsync.core.types import PlotStatus
from plotsync.plots.models import SearchFilters
from plotsync.sync.session import PlotSession
from tests.conftest import make_plot, square


@pytest.fixture
def session() -> PlotSession:
    session = PlotSession()
    session.load(
        [
            make_plot("plot-001", status="available", area_hectares=2.5),
            make_plot("plot-002", status="taken", area_hectares=1.25, ward="Oyster Bay"),
            make_plot("plot-003", status="pending", district="Ilala", geometry=square(lon=39.28)),
            make_plot("plot-004", status="available", geometry=square(lon=12.0)),
        ],
        dropped_records=2,
    )
    return session


class TestPlotSet:
    def test_invalid_geometry_kept_but_not_rendered(self, session):
        assert len(session.plots) == 4
        assert [p.id for p in session.invalid_plots] == ["plot-004"]
        assert "plot-004" not in session.render.instructions

    def test_stats(self, session):
        stats = session.stats()
        assert stats.total == 4
        assert (stats.available, stats.taken, stats.pending) == (2, 1, 1)
        assert stats.total_area_hectares == 8.75
        assert stats.districts == 2
        assert stats.wards == 2
        assert stats.renderable == 3
        assert stats.invalid_geometry == 1
        assert stats.dropped_records == 2
        assert stats.available_percent == 50

    def test_set_status_is_copy_on_write(self, session):
        before = session.get("plot-001")
        after = session.set_status("plot-001", PlotStatus.TAKEN)
        assert before.status == PlotStatus.AVAILABLE
        assert after.status == PlotStatus.TAKEN
        assert after.updated_at >= before.updated_at
        assert session.get("plot-001") is after

    def test_set_status_unknown_plot(self, session):
        with pytest.raises(KeyError):
            session.set_status("plot-999", PlotStatus.TAKEN)

    def test_reload_replaces_set(self, session):
        session.last_error = "old failure"
        session.load([make_plot("plot-010")])
        assert [p.id for p in session.plots] == ["plot-010"]
        assert session.last_error is None
        assert session.stats().dropped_records == 0


class TestSearch:
    def test_local_search_over_renderable(self, session):
        found = session.search(SearchFilters(status=PlotStatus.AVAILABLE))
        assert [p.id for p in found] == ["plot-001"]

    def test_location_substring(self, session):
        assert [p.id for p in session.search(SearchFilters(ward="oyster"))] == ["plot-002"]
        assert [p.id for p in session.search(SearchFilters(district="ila"))] == ["plot-003"]

    def test_bbox(self, session):
        found = session.search(SearchFilters(bbox="39.27,-6.80,39.29,-6.78"))
        assert [p.id for p in found] == ["plot-003"]

    def test_malformed_bbox(self, session):
        with pytest.raises(ValueError):
            session.search(SearchFilters(bbox="1,2,3"))


class TestViewAndListeners:
    def test_hover_and_selection(self, session):
        session.set_hover("plot-001")
        render = session.set_selection("plot-002")
        assert render.instructions["plot-001"].hovered
        assert render.instructions["plot-002"].selected
        session.set_hover(None)
        assert not session.render.instructions["plot-001"].hovered

    def test_zoom_controls_labels(self, session):
        assert not session.set_zoom(8).labels_visible
        render = session.set_zoom(13)
        assert render.labels_visible
        assert len(render.labels) == 3

    def test_subscribe_and_unsubscribe(self, session):
        seen = []
        unsubscribe = session.subscribe(seen.append)
        session.set_zoom(10)
        unsubscribe()
        session.set_zoom(11)
        assert len(seen) == 1
        assert seen[0].zoom == 10
