"""
OSRM routing collaborator.

Two call shapes are consumed: point-to-point routes with turn-by-turn steps,
and trip optimization over a waypoint set. Every call is bounded by a
timeout and returns an outcome object instead of raising.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

import httpx

from fieldtour.config.osrm import osrm_config
from fieldtour.exceptions import RoutingUnavailable
from fieldtour.models import (
    Coordinates,
    NavigationStep,
    RouteOutcome,
    RouteSegment,
    TravelMode,
    TripOutcome,
)
from fieldtour.type_defs import CacheKey, StatsDict

logger = logging.getLogger(__name__)


class RouteCache:
    """In-memory TTL cache for route segments."""

    def __init__(self, ttl_seconds: int = None, max_size: int = None):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else osrm_config.CACHE_TTL_SECONDS
        self.max_size = max_size or osrm_config.CACHE_MAX_SIZE
        self._cache: Dict[CacheKey, Dict[str, Any]] = {}

    @staticmethod
    def _get_key(start: Coordinates, end: Coordinates, mode: TravelMode) -> CacheKey:
        return (
            f"{round(start.lat, 5)},{round(start.lon, 5)}|"
            f"{round(end.lat, 5)},{round(end.lon, 5)}|{mode.value}"
        )

    def get(self, start: Coordinates, end: Coordinates, mode: TravelMode) -> Optional[RouteSegment]:
        if not osrm_config.CACHE_ENABLED:
            return None
        key = self._get_key(start, end, mode)
        entry = self._cache.get(key)
        if entry is None:
            return None
        if time.time() - entry["timestamp"] > self.ttl_seconds:
            del self._cache[key]
            return None
        return entry["segment"]

    def set(self, start: Coordinates, end: Coordinates, mode: TravelMode, segment: RouteSegment) -> None:
        if not osrm_config.CACHE_ENABLED:
            return
        if len(self._cache) >= self.max_size:
            oldest = min(self._cache, key=lambda k: self._cache[k]["timestamp"])
            del self._cache[oldest]
        self._cache[self._get_key(start, end, mode)] = {
            "segment": segment,
            "timestamp": time.time(),
        }

    def clear(self) -> None:
        self._cache.clear()

    @property
    def size(self) -> int:
        return len(self._cache)


def _rescale_duration(distance_meters: float, duration_seconds: float, mode: TravelMode) -> float:
    """Driving keeps the service duration; other modes use a nominal speed."""
    if mode is TravelMode.CYCLING:
        return distance_meters / (osrm_config.CYCLING_SPEED_KMH * 1000 / 3600)
    if mode is TravelMode.WALKING:
        return distance_meters / (osrm_config.WALKING_SPEED_KMH * 1000 / 3600)
    return duration_seconds


def parse_route_response(
    data: Dict[str, Any],
    start: Coordinates,
    end: Coordinates,
    mode: TravelMode = TravelMode.DRIVING,
) -> RouteSegment:
    """Build a RouteSegment from an OSRM ``route`` answer.

    Raises RoutingUnavailable when the payload is not a usable route.
    """
    if data.get("code") != "Ok" or not data.get("routes"):
        raise RoutingUnavailable(f"OSRM route answered {data.get('code')!r}")

    try:
        route = data["routes"][0]
        polyline = [Coordinates.from_position(p) for p in route["geometry"]["coordinates"]]
        steps: List[NavigationStep] = []
        legs = route.get("legs") or []
        if legs:
            steps = [NavigationStep.from_osrm(step) for step in legs[0].get("steps") or []]
        distance = float(route["distance"])
        duration = float(route["duration"])
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise RoutingUnavailable(f"Malformed OSRM route: {e}") from e

    return RouteSegment(
        start=start,
        end=end,
        polyline=polyline,
        distance_meters=distance,
        duration_seconds=_rescale_duration(distance, duration, mode),
        instructions=steps,
        travel_mode=mode,
    )


def parse_trip_response(data: Dict[str, Any], stop_count: int) -> List[int]:
    """Extract the visit order (indices into the stop list) from a ``trip`` answer.

    Waypoint 0 is the start position. ``waypoint_index`` is the position of
    each input coordinate in the optimized trip.
    """
    if data.get("code") != "Ok" or data.get("waypoints") is None:
        raise RoutingUnavailable(f"OSRM trip answered {data.get('code')!r}")

    waypoints = data["waypoints"]
    if len(waypoints) != stop_count + 1:
        raise RoutingUnavailable(
            f"OSRM trip returned {len(waypoints)} waypoints for {stop_count + 1} inputs"
        )

    try:
        positions = [int(w["waypoint_index"]) for w in waypoints]
    except (KeyError, TypeError, ValueError) as e:
        raise RoutingUnavailable(f"Malformed OSRM waypoints: {e}") from e

    if sorted(positions) != list(range(stop_count + 1)):
        raise RoutingUnavailable("OSRM trip order is not a permutation of the inputs")

    # input i + 1 is stop i
    by_position = sorted(range(stop_count), key=lambda i: positions[i + 1])
    return by_position


class OSRMService:
    """Routing calls against an OSRM server."""

    def __init__(self, client: httpx.AsyncClient = None, cache: RouteCache = None, timeout: float = None):
        self.cache = cache or RouteCache()
        self.timeout = timeout or osrm_config.TIMEOUT_SECONDS
        self._http_client: Optional[httpx.AsyncClient] = client
        self._owns_client = client is None
        self._stats: StatsDict = {'requests': 0, 'cache_hits': 0, 'errors': 0, 'timeouts': 0}

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5)
            )
            self._owns_client = True
        return self._http_client

    async def _get_json(self, url: str, params: Dict[str, str], timeout: float) -> Dict[str, Any]:
        """GET ``url`` within ``timeout`` seconds; any failure becomes RoutingUnavailable."""
        self._stats['requests'] += 1
        client = await self._get_client()
        try:
            response = await asyncio.wait_for(client.get(url, params=params), timeout=timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            self._stats['timeouts'] += 1
            logger.warning(f"[OSRM] Timeout after {timeout}s: {url}")
            raise RoutingUnavailable(f"Routing timed out after {timeout}s") from e
        except httpx.HTTPError as e:
            self._stats['errors'] += 1
            logger.warning(f"[OSRM] HTTP error: {e}")
            raise RoutingUnavailable(f"Routing request failed: {e}") from e

        if response.status_code != 200:
            self._stats['errors'] += 1
            logger.warning(f"[OSRM] HTTP {response.status_code} for {url}")
            raise RoutingUnavailable(f"Routing service answered HTTP {response.status_code}",
                                     status_code=response.status_code)
        try:
            return response.json()
        except ValueError as e:
            self._stats['errors'] += 1
            raise RoutingUnavailable("Routing service returned invalid JSON") from e

    async def get_route(
        self,
        start: Coordinates,
        end: Coordinates,
        mode: TravelMode = TravelMode.DRIVING,
    ) -> RouteOutcome:
        """Route from ``start`` to ``end`` with geometry and steps."""
        cached = self.cache.get(start, end, mode)
        if cached is not None:
            self._stats['cache_hits'] += 1
            logger.debug(f"[OSRM Cache] Hit {start.as_tuple()} -> {end.as_tuple()}")
            return RouteOutcome(segment=cached, from_cache=True)

        url = f"{osrm_config.get_route_url()}/{start.osrm_param()};{end.osrm_param()}"
        params = {"overview": "full", "geometries": "geojson", "steps": "true"}
        try:
            data = await self._get_json(url, params, osrm_config.ROUTE_TIMEOUT_SECONDS)
            segment = parse_route_response(data, start, end, mode)
        except RoutingUnavailable as e:
            return RouteOutcome(error=e)

        self.cache.set(start, end, mode, segment)
        return RouteOutcome(segment=segment)

    async def get_multi_point_route(
        self,
        waypoints: Sequence[Coordinates],
        mode: TravelMode = TravelMode.DRIVING,
    ) -> List[RouteSegment]:
        """Segments between consecutive waypoints; failed legs are left out."""
        segments = []
        for k in range(len(waypoints) - 1):
            outcome = await self.get_route(waypoints[k], waypoints[k + 1], mode)
            if outcome.ok:
                segments.append(outcome.segment)
            else:
                logger.info(f"[OSRM] Leg {k} skipped: {outcome.error}")
        return segments

    async def optimize_trip(self, start: Coordinates, positions: Sequence[Coordinates]) -> TripOutcome:
        """Ask the trip service for a visit order starting at ``start``."""
        coords = ";".join(p.osrm_param() for p in [start, *positions])
        url = f"{osrm_config.get_trip_url()}/{coords}"
        params = {"source": "first", "roundtrip": "false"}
        try:
            data = await self._get_json(url, params, self.timeout)
            order = parse_trip_response(data, len(positions))
        except RoutingUnavailable as e:
            return TripOutcome(error=e)
        return TripOutcome(order=order)

    async def health_check(self) -> Dict[str, Any]:
        """Check that the routing server answers a short route."""
        started = time.time()
        test_start = Coordinates(lat=33.5731, lon=-7.5898)
        test_end = Coordinates(lat=33.5750, lon=-7.5850)
        url = f"{osrm_config.get_route_url()}/{test_start.osrm_param()};{test_end.osrm_param()}"
        try:
            await self._get_json(url, {"overview": "false"}, osrm_config.ROUTE_TIMEOUT_SECONDS)
        except RoutingUnavailable as e:
            return {
                'status': 'unavailable',
                'response_time_ms': None,
                'cache_size': self.cache.size,
                'base_url': osrm_config.BASE_URL,
                'error': str(e),
            }
        return {
            'status': 'healthy',
            'response_time_ms': (time.time() - started) * 1000,
            'cache_size': self.cache.size,
            'base_url': osrm_config.BASE_URL,
            'error': None,
        }

    def get_stats(self) -> StatsDict:
        return self._stats.copy()

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("[OSRM] Cache cleared")

    async def close(self) -> None:
        if self._owns_client and self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()
