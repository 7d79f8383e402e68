"""
Planning helpers: turn selected sites into stops and summarize a plan.
"""

import logging
from typing import Iterable, List, Optional

from fieldtour import geometry
from fieldtour.config import config
from fieldtour.distance import estimate_duration, total_distance
from fieldtour.exceptions import InvalidGeometry
from fieldtour.models import Coordinates, OptimizationResult, PlanSummary, Site, TourStop

logger = logging.getLogger(__name__)


def stop_from_site(site: Site, fallback: Coordinates) -> TourStop:
    """Snapshot a site into a pending stop positioned at its centroid."""
    try:
        position = geometry.centroid(geometry.standard_format_to_points(site.geom))
    except InvalidGeometry as e:
        logger.warning(f"[Planning] Site {site.id} has unreadable geometry ({e}); using fallback position")
        position = fallback

    return TourStop(
        site_id=site.id,
        address=site.address,
        site_type=site.site_type,
        position=position,
    )


def stops_from_sites(sites: Iterable[Site], fallback: Optional[Coordinates] = None) -> List[TourStop]:
    fallback = fallback or config.fallback_position()
    return [stop_from_site(site, fallback) for site in sites]


def summarize(result: OptimizationResult, average_speed_kmh: float = None) -> PlanSummary:
    """Distance and duration estimate for an optimized stop list."""
    speed = average_speed_kmh or config.PLANNING_SPEED_KMH
    return PlanSummary(
        stop_count=len(result.stops),
        total_distance_meters=total_distance(result.stops),
        estimated_duration_seconds=estimate_duration(result.stops, speed),
        strategy=result.strategy,
        degraded=result.is_degraded,
    )
