"""
Tour state machine.

Owns the lifecycle of a tour and its stops: creation, per-stop status
transitions (pending -> visited | toReview | skipped), ordering, start and
completion. Every mutation is persisted through the injected repository
before the in-memory tour returned to the caller reflects it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from fieldtour.db.repository import TourRepository
from fieldtour.exceptions import (
    InvalidReorder,
    InvalidStopTransition,
    StopNotFound,
    TourNotFound,
)
from fieldtour.models import Tour, TourStop, VisitStatus

logger = logging.getLogger(__name__)


@dataclass
class TransitionEvent:
    """A stop left ``pending``. ``tour`` already includes the change."""
    tour: Tour
    stop: TourStop
    previous_status: VisitStatus

    @property
    def completed_tour(self) -> bool:
        return self.tour.is_completed


TransitionListener = Callable[[TransitionEvent], None]


def renumber(stops: Sequence[TourStop]) -> List[TourStop]:
    """Contiguous order indices 0..n-1 keeping the current relative order."""
    ordered = sorted(stops, key=lambda s: s.order_index)
    return [s if s.order_index == k else s.model_copy(update={"order_index": k})
            for k, s in enumerate(ordered)]


class TourService:
    """Tour lifecycle operations."""

    def __init__(self, repository: TourRepository, clock: Callable[[], datetime] = datetime.utcnow):
        self.repository = repository
        self._clock = clock
        self._listeners: List[TransitionListener] = []

    # =========================================================================
    # Listeners
    # =========================================================================

    def add_listener(self, listener: TransitionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: TransitionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event: TransitionEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    # =========================================================================
    # Tours
    # =========================================================================

    def create_tour(self, name: str, stops: Sequence[TourStop] = ()) -> Tour:
        site_ids = [s.site_id for s in stops]
        if len(set(site_ids)) != len(site_ids):
            raise InvalidReorder("A tour cannot contain the same site twice")
        tour = self.repository.create_tour(name, renumber(stops), self._clock())
        logger.info(f"[Tour] Created '{name}' ({tour.id}) with {len(tour.stops)} stops")
        return tour

    def get_tour(self, tour_id: int) -> Tour:
        tour = self.repository.get_tour(tour_id)
        if tour is None:
            raise TourNotFound(tour_id)
        return tour

    def list_tours(self) -> List[Tour]:
        return self.repository.list_tours()

    def delete_tour(self, tour_id: int) -> None:
        if not self.repository.delete_tour(tour_id):
            raise TourNotFound(tour_id)
        logger.info(f"[Tour] Deleted {tour_id}")

    def start(self, tour_id: int, restart: bool = False) -> Tour:
        """Stamp the start time.

        A second call keeps the first timestamp (resume) unless ``restart``.
        """
        tour = self.get_tour(tour_id)
        if tour.started_at is not None and not restart:
            logger.info(f"[Tour] {tour_id} already started at {tour.started_at.isoformat()}; resuming")
            return tour
        now = self._clock()
        self.repository.set_started(tour_id, now)
        return tour.model_copy(update={"started_at": now})

    def complete(self, tour_id: int) -> Tour:
        tour = self.get_tour(tour_id)
        return self._complete(tour)

    def _complete(self, tour: Tour) -> Tour:
        now = self._clock()
        self.repository.set_completed(tour.id, now)
        logger.info(f"[Tour] {tour.id} completed ({tour.visited_count}/{len(tour.stops)} visited)")
        return tour.model_copy(update={"completed_at": now})

    # =========================================================================
    # Planning edits
    # =========================================================================

    def add_stops(self, tour_id: int, stops: Sequence[TourStop]) -> Tour:
        """Append stops after the current last one. Sites already in the tour are ignored."""
        tour = self.get_tour(tour_id)
        known = {s.site_id for s in tour.stops}
        next_index = max((s.order_index for s in tour.stops), default=-1) + 1

        appended = []
        for stop in stops:
            if stop.site_id in known:
                logger.info(f"[Tour] Site {stop.site_id} already in tour {tour_id}")
                continue
            known.add(stop.site_id)
            appended.append(stop.model_copy(update={
                "order_index": next_index + len(appended),
                "status": VisitStatus.PENDING,
            }))

        if appended:
            self.repository.add_stops(tour_id, appended)
        return self.get_tour(tour_id)

    def remove_stop(self, tour_id: int, site_id: int) -> Tour:
        tour = self.get_tour(tour_id)
        if tour.find_stop(site_id) is None:
            raise StopNotFound(tour_id, site_id)
        self.repository.remove_stop(tour_id, site_id)
        remaining = renumber([s for s in tour.stops if s.site_id != site_id])
        self.repository.update_stop_order(tour_id, [s.site_id for s in remaining])
        return tour.model_copy(update={"stops": remaining})

    def reorder(self, tour_id: int, site_ids: Sequence[int]) -> Tour:
        """Listed stops take indices 0..k-1; unlisted ones follow in their prior order."""
        tour = self.get_tour(tour_id)
        if len(set(site_ids)) != len(site_ids):
            raise InvalidReorder("Duplicate site in new order")
        by_site = {s.site_id: s for s in tour.stops}
        unknown = [i for i in site_ids if i not in by_site]
        if unknown:
            raise InvalidReorder(f"Sites not in tour {tour_id}: {unknown}")

        listed = set(site_ids)
        rest = [s.site_id for s in tour.ordered_stops() if s.site_id not in listed]
        sequence = list(site_ids) + rest

        self.repository.update_stop_order(tour_id, sequence)
        stops = [by_site[site_id].model_copy(update={"order_index": k})
                 for k, site_id in enumerate(sequence)]
        return tour.model_copy(update={"stops": stops})

    # =========================================================================
    # Status transitions
    # =========================================================================

    def mark_visited(self, tour_id: int, site_id: int) -> Tour:
        return self._transition(tour_id, site_id, VisitStatus.VISITED)

    def mark_to_review(self, tour_id: int, site_id: int, notes: Optional[str] = None) -> Tour:
        return self._transition(tour_id, site_id, VisitStatus.TO_REVIEW, notes=notes)

    def skip(self, tour_id: int, site_id: int) -> Tour:
        return self._transition(tour_id, site_id, VisitStatus.SKIPPED)

    def _transition(self, tour_id: int, site_id: int, status: VisitStatus, notes: Optional[str] = None) -> Tour:
        tour = self.get_tour(tour_id)
        stop = tour.find_stop(site_id)
        if stop is None:
            raise StopNotFound(tour_id, site_id)
        if stop.status.is_terminal:
            raise InvalidStopTransition(
                f"Stop for site {site_id} is already {stop.status.value}; cannot mark {status.value}"
            )

        now = self._clock()
        update = {"status": status}
        if status is VisitStatus.VISITED:
            update["visited_at"] = now
        if notes is not None:
            update["notes"] = notes
        updated_stop = stop.model_copy(update=update)
        tour = tour.model_copy(update={
            "stops": [updated_stop if s.site_id == site_id else s for s in tour.stops]
        })

        # completion is stamped together with the last status change
        completed_at = now if tour.is_completed and tour.completed_at is None else None
        if not self.repository.update_stop_status(
            tour_id, site_id, status, update.get("visited_at"), notes, completed_at
        ):
            raise StopNotFound(tour_id, site_id)

        logger.info(f"[Tour] {tour_id}: site {site_id} -> {status.value} "
                    f"({tour.remaining_count} remaining)")
        if completed_at is not None:
            tour = tour.model_copy(update={"completed_at": completed_at})
            logger.info(f"[Tour] {tour_id} completed ({tour.visited_count}/{len(tour.stops)} visited)")

        self._notify(TransitionEvent(tour=tour, stop=updated_stop, previous_status=stop.status))
        return tour
