"""
Tests for planning helpers and the location collaborator.
"""
import pytest

from fieldtour import geometry
from fieldtour.config import config
from fieldtour.exceptions import OptimizationDegraded
from fieldtour.models import Coordinates, OptimizationResult, Site, VisitStatus
from fieldtour.services.location import (
    LocationFix,
    LocationUnavailable,
    StaticLocationProvider,
    resolve_position,
)
from fieldtour.services.planning import stop_from_site, stops_from_sites, summarize


@pytest.fixture
def fallback():
    return Coordinates(lat=1.0, lon=2.0)


class TestStopsFromSites:

    def test_stop_is_snapshot_of_site(self, unit_square, fallback):
        site = Site(id=7, address="7 Rue Tarik", site_type="Commercial",
                    geom=geometry.polygon_to_standard_format(unit_square))

        stop = stop_from_site(site, fallback)

        assert stop.site_id == 7
        assert stop.address == "7 Rue Tarik"
        assert stop.site_type == "Commercial"
        assert stop.position == Coordinates(lat=0.5, lon=0.5)
        assert stop.status is VisitStatus.PENDING
        assert stop.id is None

    def test_legacy_point_site(self, fallback):
        site = Site(id=1, address="a", geom="33.5,-7.6")
        assert stop_from_site(site, fallback).position == Coordinates(lat=33.5, lon=-7.6)

    def test_unreadable_geometry_uses_fallback(self, fallback, caplog):
        site = Site(id=2, address="b", geom="not a polygon")

        with caplog.at_level("WARNING", logger="fieldtour.services.planning"):
            stop = stop_from_site(site, fallback)

        assert stop.position == fallback
        assert "Site 2" in caplog.text

    def test_default_fallback_is_configured_position(self):
        stops = stops_from_sites([Site(id=3, address="c", geom="")])
        assert stops[0].position == config.fallback_position()

    def test_preserves_site_order(self, fallback):
        sites = [Site(id=i, address=str(i), geom=f"{i},{i}") for i in (5, 2, 9)]
        assert [s.site_id for s in stops_from_sites(sites, fallback)] == [5, 2, 9]


class TestSummarize:

    def test_summary_of_ordered_stops(self, three_pending_stops):
        result = OptimizationResult(stops=three_pending_stops)

        summary = summarize(result, average_speed_kmh=36)

        assert summary.stop_count == 3
        # 0.018 degrees of latitude
        assert summary.total_distance_meters == pytest.approx(2001.5, rel=1e-3)
        # 36 km/h is 10 m/s
        assert summary.estimated_duration_seconds == pytest.approx(summary.total_distance_meters / 10)
        assert summary.strategy == "nearest_neighbor"
        assert not summary.degraded
        assert summary.distance_formatted == "2.0 km"

    def test_degraded_flag(self, three_pending_stops):
        result = OptimizationResult(stops=three_pending_stops, degraded=OptimizationDegraded("timeout"))
        assert summarize(result).degraded

    def test_empty_plan(self):
        summary = summarize(OptimizationResult())
        assert summary.stop_count == 0
        assert summary.total_distance_meters == 0
        assert summary.duration_formatted == "0 min"


class TestResolvePosition:

    @pytest.mark.asyncio
    async def test_provider_position(self, fallback):
        here = Coordinates(lat=33.6, lon=-7.5)
        assert await resolve_position(StaticLocationProvider(here), fallback) == here

    @pytest.mark.asyncio
    async def test_unavailable_provider_falls_back(self, fallback):
        assert await resolve_position(StaticLocationProvider(None), fallback) == fallback

    @pytest.mark.asyncio
    async def test_no_provider_falls_back(self, fallback):
        assert await resolve_position(None, fallback) == fallback

    @pytest.mark.asyncio
    async def test_default_fallback(self):
        assert await resolve_position(None) == config.fallback_position()

    @pytest.mark.asyncio
    async def test_static_provider_fix(self):
        provider = StaticLocationProvider(Coordinates(lat=0, lon=0), accuracy_meters=8.0)
        fix = await provider.current_location()
        assert fix == LocationFix(Coordinates(lat=0, lon=0), 8.0)

    @pytest.mark.asyncio
    async def test_static_provider_without_position_raises(self):
        with pytest.raises(LocationUnavailable):
            await StaticLocationProvider(None).current_location()
