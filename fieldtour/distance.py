"""
Route distance estimator.

Great-circle distances between coordinates and planning estimates over an
ordered stop list. Estimates only; real figures come from the routing service.
"""

import math
from typing import Sequence, Union

from fieldtour.models.geo import Coordinates
from fieldtour.models.tour import TourStop

EARTH_RADIUS_M = 6371000.0
DEFAULT_SPEED_KMH = 30.0

Waypoint = Union[Coordinates, TourStop]


def _position(item: Waypoint) -> Coordinates:
    return item.position if isinstance(item, TourStop) else item


def haversine_distance(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance in meters."""
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    dlat = math.radians(b.lat - a.lat)
    dlon = math.radians(b.lon - a.lon)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # rounding can push h past 1 for near-antipodal points
    h = min(1.0, max(0.0, h))
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_M * c


def total_distance(ordered: Sequence[Waypoint]) -> float:
    """Sum of consecutive leg distances in meters; 0 for fewer than 2 items."""
    if len(ordered) < 2:
        return 0.0
    total = 0.0
    for k in range(len(ordered) - 1):
        total += haversine_distance(_position(ordered[k]), _position(ordered[k + 1]))
    return total


def estimate_duration(ordered: Sequence[Waypoint], average_speed_kmh: float = DEFAULT_SPEED_KMH) -> float:
    """Travel time in seconds at a constant average speed."""
    speed_ms = average_speed_kmh * 1000 / 3600
    return total_distance(ordered) / speed_ms
