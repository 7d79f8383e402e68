"""
Navigation session.

Holds the active tour, the device position and the route to the next
pending stop. Every stop transition re-targets navigation, so the session
listens to the tour service and requests a fresh route after each one.

Concurrency model: single event loop, no locking. Overlapping refreshes are
resolved last-write-wins with a request generation counter; responses to
older requests are discarded. ``close()`` cancels whatever is in flight.
"""

import asyncio
import logging
from typing import Optional, Sequence, Set

from fieldtour.config import config
from fieldtour.distance import haversine_distance
from fieldtour.exceptions import RoutingUnavailable
from fieldtour.models import Coordinates, RouteOutcome, RouteSegment, Tour, TourStop, TravelMode
from fieldtour.services.location import LocationProvider, resolve_position
from fieldtour.services.osrm_service import OSRMService
from fieldtour.services.tour_service import TourService, TransitionEvent

logger = logging.getLogger(__name__)


class NavigationSession:
    """Route guidance through one tour on one device."""

    def __init__(
        self,
        tour_service: TourService,
        osrm_service: OSRMService,
        tour: Tour,
        position: Optional[Coordinates] = None,
        travel_mode: TravelMode = TravelMode.DRIVING,
        location_provider: Optional[LocationProvider] = None,
        fallback_position: Optional[Coordinates] = None,
    ):
        self.tour_service = tour_service
        self.osrm_service = osrm_service
        self.tour = tour
        self.position = position
        self.travel_mode = travel_mode
        self.location_provider = location_provider
        self.fallback_position = fallback_position or config.fallback_position()

        self.route: Optional[RouteSegment] = None
        self.last_error: Optional[RoutingUnavailable] = None
        self.route_stale = False

        self._generation = 0
        self._closed = False
        self._tasks: Set[asyncio.Future] = set()
        self._pending_refresh: Optional[asyncio.Task] = None

        self.tour_service.add_listener(self._on_transition)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def is_active(self) -> bool:
        return not self._closed

    async def start(self) -> RouteOutcome:
        """Mark the tour started, locate the device and route to the first stop."""
        self.tour = self.tour_service.start(self.tour.id)
        if self.position is None:
            await self.refresh_location()
        return await self.refresh_route()

    async def close(self) -> None:
        """Tear down: stop listening and cancel in-flight routing calls."""
        if self._closed:
            return
        self._closed = True
        self.tour_service.remove_listener(self._on_transition)
        pending = [t for t in self._tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()
        logger.info(f"[Navigation] Session for tour {self.tour.id} closed")

    async def __aenter__(self) -> "NavigationSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # =========================================================================
    # Position
    # =========================================================================

    def refresh_position(self, position: Coordinates) -> None:
        """Update the device position. The route is not recomputed."""
        self.position = position

    async def refresh_location(self) -> Coordinates:
        """Ask the location collaborator for a fix; falls back when it fails."""
        self.position = await resolve_position(self.location_provider, self.fallback_position)
        return self.position

    @property
    def current_position(self) -> Coordinates:
        return self.position or self.fallback_position

    # =========================================================================
    # Route
    # =========================================================================

    @property
    def next_stop(self) -> Optional[TourStop]:
        return self.tour.next_stop

    def distance_to_next_stop(self) -> Optional[float]:
        """Straight-line meters to the next stop."""
        stop = self.next_stop
        if stop is None:
            return None
        return haversine_distance(self.current_position, stop.position)

    def _track(self, future: asyncio.Future) -> None:
        self._tasks.add(future)
        future.add_done_callback(self._tasks.discard)

    async def refresh_route(self) -> RouteOutcome:
        """Route from the current position to the next pending stop.

        With no pending stop the active route is cleared. On failure the
        previous route stays in place and the error is returned.
        """
        if self._closed:
            return RouteOutcome(error=RoutingUnavailable("Navigation session closed"))

        self._generation += 1
        generation = self._generation
        self.route_stale = False

        target = self.next_stop
        if target is None:
            self.route = None
            self.last_error = None
            return RouteOutcome()

        request = asyncio.ensure_future(
            self.osrm_service.get_route(self.current_position, target.position, self.travel_mode)
        )
        self._track(request)
        try:
            outcome = await request
        except asyncio.CancelledError:
            if self._closed:
                return RouteOutcome(error=RoutingUnavailable("Navigation session closed"))
            raise

        if self._closed or generation != self._generation:
            logger.debug(f"[Navigation] Discarding superseded route response #{generation}")
            outcome.superseded = True
            return outcome

        if outcome.ok:
            self.route = outcome.segment
            self.last_error = None
        else:
            self.last_error = outcome.error
            logger.warning(f"[Navigation] Keeping previous route: {outcome.error}")
        return outcome

    # =========================================================================
    # Stop transitions
    # =========================================================================

    def _on_transition(self, event: TransitionEvent) -> None:
        if self._closed or event.tour.id != self.tour.id:
            return
        self.tour = event.tour
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # outside the event loop; the next refresh_route() picks it up
            self.route_stale = True
            return
        task = loop.create_task(self.refresh_route())
        self._track(task)
        self._pending_refresh = task

    async def _await_refresh(self) -> RouteOutcome:
        task, self._pending_refresh = self._pending_refresh, None
        if task is None:
            return await self.refresh_route()
        return await task

    async def mark_visited(self, site_id: int) -> RouteOutcome:
        self.tour_service.mark_visited(self.tour.id, site_id)
        return await self._await_refresh()

    async def mark_to_review(self, site_id: int, notes: Optional[str] = None) -> RouteOutcome:
        self.tour_service.mark_to_review(self.tour.id, site_id, notes)
        return await self._await_refresh()

    async def skip(self, site_id: int) -> RouteOutcome:
        self.tour_service.skip(self.tour.id, site_id)
        return await self._await_refresh()

    async def reorder(self, site_ids: Sequence[int]) -> RouteOutcome:
        """Reorder pending stops; the route is refreshed if the target changed."""
        previous = self.next_stop
        self.tour = self.tour_service.reorder(self.tour.id, site_ids)
        current = self.next_stop
        if previous is not None and current is not None and previous.site_id == current.site_id:
            return RouteOutcome(segment=self.route)
        return await self.refresh_route()
