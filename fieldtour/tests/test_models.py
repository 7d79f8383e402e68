"""
Tests for domain models and display helpers.
"""
import json
from datetime import datetime

import pytest

from fieldtour import geometry
from fieldtour.db.schemas import SiteResponse
from fieldtour.exceptions import RoutingUnavailable
from fieldtour.models import (
    Bounds,
    Coordinates,
    RouteOutcome,
    RouteSegment,
    Site,
    Tour,
    TravelMode,
    TripOutcome,
    VisitStatus,
    format_distance,
    format_duration,
    instruction_text,
)
from fieldtour.tests.conftest import make_stop


class TestCoordinates:

    def test_position_is_lon_lat(self):
        point = Coordinates.from_position([-7.5898, 33.5731])
        assert point.lat == 33.5731
        assert point.as_position() == [-7.5898, 33.5731]
        assert point.osrm_param() == "-7.5898,33.5731"

    def test_out_of_range_values_are_kept(self):
        assert Coordinates(lat=120.0, lon=400.0).lat == 120.0

    def test_hashable(self):
        assert len({Coordinates(lat=1, lon=2), Coordinates(lat=1, lon=2)}) == 1

    def test_bounds_helpers(self):
        box = Bounds(min_lat=0, max_lat=2, min_lon=0, max_lon=4)
        assert box.center == Coordinates(lat=1, lon=2)
        assert box.contains(Coordinates(lat=2, lon=4))
        assert not box.contains(Coordinates(lat=2.1, lon=0))


class TestVisitStatus:

    def test_string_tags(self):
        assert [s.value for s in VisitStatus] == ["pending", "visited", "toReview", "skipped"]
        assert VisitStatus("toReview") is VisitStatus.TO_REVIEW

    def test_only_pending_is_open(self):
        assert not VisitStatus.PENDING.is_terminal
        assert all(s.is_terminal for s in VisitStatus if s is not VisitStatus.PENDING)
        assert VisitStatus.TO_REVIEW.label == "To review"


class TestTourAggregates:
    """Test suite for derived tour quantities."""

    def _tour(self, *statuses):
        stops = [make_stop(k, 0, 0, order_index=k).model_copy(update={"status": status})
                 for k, status in enumerate(statuses)]
        return Tour(name="t", stops=stops)

    def test_empty_tour(self):
        tour = Tour(name="t")
        assert tour.progress == 0.0
        assert not tour.is_completed
        assert tour.next_stop is None

    def test_counts_and_progress(self):
        tour = self._tour(VisitStatus.VISITED, VisitStatus.TO_REVIEW, VisitStatus.PENDING, VisitStatus.VISITED)
        assert (tour.visited_count, tour.to_review_count, tour.remaining_count, tour.skipped_count) == (2, 1, 1, 0)
        assert tour.progress == 50.0
        assert tour.next_stop.site_id == 2

    def test_next_stop_is_lowest_pending_index(self):
        tour = Tour(name="t", stops=[make_stop(1, 0, 0, order_index=5), make_stop(2, 0, 0, order_index=3)])
        assert tour.next_stop.site_id == 2

    def test_completed_when_nothing_pending(self):
        tour = self._tour(VisitStatus.SKIPPED, VisitStatus.TO_REVIEW)
        assert tour.is_completed
        assert tour.next_stop is None
        assert tour.progress == 0.0

    def test_serialization_includes_derived_fields(self):
        data = self._tour(VisitStatus.VISITED).model_dump()
        assert data["visited_count"] == 1
        assert data["is_completed"] is True


class TestSite:

    def test_centroid_from_polygon(self, unit_square):
        site = Site(id=1, address="a", geom=geometry.polygon_to_geojson(unit_square))
        assert site.centroid() == Coordinates(lat=0.5, lon=0.5)
        assert len(site.points()) == 4

    def test_response_serializes_dict_geometry_as_geojson(self, unit_square):
        encoded = geometry.polygon_to_standard_format(unit_square)
        site = Site(id=2, address="b", geom=encoded)

        response = SiteResponse.from_site(site, site.centroid(), geometry.area(site.points()))

        assert json.loads(response.geom) == encoded
        assert geometry.standard_format_to_points(response.geom) == unit_square


class TestFormatting:

    @pytest.mark.parametrize("meters,expected", [(0, "0 m"), (850.4, "850 m"), (1000, "1.0 km"), (1234, "1.2 km")])
    def test_format_distance(self, meters, expected):
        assert format_distance(meters) == expected

    @pytest.mark.parametrize("seconds,expected", [(0, "0 min"), (1500, "25 min"), (3900, "1h 5min"), (7200, "2h 0min")])
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected

    @pytest.mark.parametrize("args,expected", [
        (("turn", "left", "Rue Tarik"), "Turn left onto Rue Tarik"),
        (("turn", "slight right", None), "Turn slightly right"),
        (("fork", "right", ""), "Keep right at the fork"),
        (("roundabout", None, "Place Mohammed V"), "At the roundabout onto Place Mohammed V"),
        (("arrive", None, "Rue Tarik"), "You have arrived"),
    ])
    def test_instruction_text(self, args, expected):
        assert instruction_text(*args) == expected

    def test_travel_mode_profiles(self):
        assert [m.osrm_profile for m in TravelMode] == ["driving", "foot", "bike"]


class TestOutcomes:

    def _segment(self):
        a, b = Coordinates(lat=0, lon=0), Coordinates(lat=0, lon=1)
        return RouteSegment(start=a, end=b, distance_meters=1500, duration_seconds=1500)

    def test_estimated_arrival(self):
        assert self._segment().estimated_arrival(datetime(2026, 3, 2, 23, 50)) == "00:15"

    def test_route_outcome(self):
        segment = self._segment()
        assert RouteOutcome(segment=segment).unwrap() is segment
        assert not RouteOutcome().ok
        with pytest.raises(RoutingUnavailable, match="offline"):
            RouteOutcome(error=RoutingUnavailable("offline")).unwrap()

    def test_trip_outcome(self):
        assert TripOutcome(order=[0]).ok
        assert not TripOutcome(error=RoutingUnavailable("x")).ok
