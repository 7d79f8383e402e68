"""
Tour optimizer.

Orders a set of stops starting from a given position. The trip service is
preferred when routing is enabled; any failure falls back to the local
nearest-neighbor heuristic so that optimization always yields a usable order.
"""

import logging
from typing import List, Optional, Sequence

from fieldtour.distance import haversine_distance
from fieldtour.exceptions import OptimizationDegraded
from fieldtour.models import Coordinates, OptimizationResult, TourStop
from fieldtour.services.osrm_service import OSRMService

logger = logging.getLogger(__name__)

STRATEGY_LOCAL = "nearest_neighbor"
STRATEGY_OSRM = "osrm_trip"


def _with_order(stops: Sequence[TourStop]) -> List[TourStop]:
    return [stop.model_copy(update={"order_index": k}) for k, stop in enumerate(stops)]


def nearest_neighbor_order(start: Coordinates, stops: Sequence[TourStop]) -> List[TourStop]:
    """Greedy TSP approximation, O(n^2).

    Ties go to the stop met first in the input list.
    """
    if len(stops) <= 1:
        return _with_order(stops)

    remaining = list(stops)
    ordered = []
    current = start
    while remaining:
        best_index = 0
        best_distance = haversine_distance(current, remaining[0].position)
        for k in range(1, len(remaining)):
            d = haversine_distance(current, remaining[k].position)
            if d < best_distance:
                best_index, best_distance = k, d
        nearest = remaining.pop(best_index)
        ordered.append(nearest)
        current = nearest.position

    return _with_order(ordered)


class TourOptimizer:
    """Produces visit orders; never fails."""

    def __init__(self, osrm_service: Optional[OSRMService] = None, use_routing: bool = True):
        self.osrm_service = osrm_service
        self.use_routing = use_routing and osrm_service is not None

    def optimize_local(self, start: Coordinates, stops: Sequence[TourStop]) -> OptimizationResult:
        return OptimizationResult(stops=nearest_neighbor_order(start, stops), strategy=STRATEGY_LOCAL)

    async def optimize(self, start: Coordinates, stops: Sequence[TourStop]) -> OptimizationResult:
        """Same stops, fresh contiguous order indices, statuses untouched."""
        if not stops:
            return OptimizationResult(stops=[], strategy=STRATEGY_LOCAL)
        if len(stops) == 1:
            return OptimizationResult(stops=_with_order(stops), strategy=STRATEGY_LOCAL)
        if not self.use_routing:
            return self.optimize_local(start, stops)

        outcome = await self.osrm_service.optimize_trip(start, [s.position for s in stops])
        if outcome.ok:
            logger.info(f"[Optimizer] Trip service ordered {len(stops)} stops")
            return OptimizationResult(
                stops=_with_order([stops[k] for k in outcome.order]),
                strategy=STRATEGY_OSRM,
            )

        logger.warning(f"[Optimizer] Falling back to nearest neighbor: {outcome.error}")
        result = self.optimize_local(start, stops)
        result.degraded = OptimizationDegraded(str(outcome.error))
        return result
