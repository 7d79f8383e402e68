"""
Pytest configuration and shared fixtures for fieldtour tests.
"""
import asyncio
from datetime import datetime, timedelta
from typing import List, Optional

import pytest

from fieldtour.db import SqlSiteRepository, SqlTourRepository, create_session_factory, init_engine
from fieldtour.exceptions import RoutingUnavailable
from fieldtour.models import Coordinates, RouteOutcome, RouteSegment, TourStop, TravelMode, TripOutcome
from fieldtour.services.tour_service import TourService


def pts(*pairs) -> List[Coordinates]:
    """Coordinates from (lat, lon) pairs."""
    return [Coordinates(lat=lat, lon=lon) for lat, lon in pairs]


def make_stop(site_id: int, lat: float, lon: float, order_index: int = 0, address: str = None) -> TourStop:
    return TourStop(
        site_id=site_id,
        address=address or f"{site_id} Rue des Tests",
        site_type="Residential",
        position=Coordinates(lat=lat, lon=lon),
        order_index=order_index,
    )


class StepClock:
    """Deterministic clock advancing one minute per call."""

    def __init__(self, start: datetime = datetime(2026, 3, 2, 8, 0)):
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(minutes=1)
        return value


class FakeRoutingService:
    """Stand-in for OSRMService with scripted answers."""

    def __init__(self):
        self.route_calls = []
        self.trip_calls = []
        self.fail_routes = False
        self.route_delay = 0.0
        self.delays: List[float] = []
        self.trip_outcome: Optional[TripOutcome] = None

    async def get_route(self, start, end, mode=TravelMode.DRIVING) -> RouteOutcome:
        self.route_calls.append((start, end, mode))
        delay = self.delays.pop(0) if self.delays else self.route_delay
        if delay:
            await asyncio.sleep(delay)
        if self.fail_routes:
            return RouteOutcome(error=RoutingUnavailable("Routing timed out after 10.0s"))
        return RouteOutcome(segment=RouteSegment(
            start=start,
            end=end,
            polyline=[start, end],
            distance_meters=1200.0,
            duration_seconds=180.0,
            travel_mode=mode,
        ))

    async def optimize_trip(self, start, positions) -> TripOutcome:
        self.trip_calls.append((start, list(positions)))
        if self.trip_outcome is None:
            return TripOutcome(error=RoutingUnavailable("Routing timed out after 15.0s"))
        return self.trip_outcome

    async def health_check(self):
        return {'status': 'unavailable' if self.fail_routes else 'healthy'}

    async def close(self):
        self.closed = True


# ============================================================
# GEOMETRY FIXTURES
# ============================================================

@pytest.fixture
def unit_square() -> List[Coordinates]:
    return pts((0, 0), (0, 1), (1, 1), (1, 0))


@pytest.fixture
def bowtie() -> List[Coordinates]:
    return pts((0, 0), (1, 1), (1, 0), (0, 1))


@pytest.fixture
def building_footprint() -> List[Coordinates]:
    """Small footprint in Casablanca (~20m x 20m)."""
    return pts(
        (33.57300, -7.58990),
        (33.57300, -7.58970),
        (33.57318, -7.58970),
        (33.57318, -7.58990),
    )


# ============================================================
# STOP FIXTURES
# ============================================================

@pytest.fixture
def start_position() -> Coordinates:
    return Coordinates(lat=33.5700, lon=-7.6000)


@pytest.fixture
def stops_on_a_line() -> List[TourStop]:
    """Three stops due north of start_position, listed out of distance order."""
    return [
        make_stop(3, 33.5900, -7.6000),
        make_stop(1, 33.5720, -7.6000),
        make_stop(2, 33.5800, -7.6000),
    ]


@pytest.fixture
def three_pending_stops() -> List[TourStop]:
    return [
        make_stop(10, 33.5720, -7.6000, order_index=0),
        make_stop(11, 33.5800, -7.6000, order_index=1),
        make_stop(12, 33.5900, -7.6000, order_index=2),
    ]


# ============================================================
# PERSISTENCE FIXTURES
# ============================================================

@pytest.fixture
def session_factory():
    engine = init_engine("sqlite://", echo=False)
    factory = create_session_factory(engine)
    yield factory
    engine.dispose()


@pytest.fixture
def tour_repository(session_factory) -> SqlTourRepository:
    return SqlTourRepository(session_factory)


@pytest.fixture
def site_repository(session_factory) -> SqlSiteRepository:
    return SqlSiteRepository(session_factory)


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def tour_service(tour_repository, clock) -> TourService:
    return TourService(tour_repository, clock=clock)


@pytest.fixture
def routing() -> FakeRoutingService:
    return FakeRoutingService()


# ============================================================
# TEST CONFIGURATION
# ============================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: marks tests that wire several layers together")
    config.addinivalue_line("markers", "geometry: marks geometry kernel tests")
