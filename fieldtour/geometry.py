"""
Geometry kernel: pure functions over coordinate lists.

Polygons are open rings of ``Coordinates`` (no closing duplicate). The
persisted form is a GeoJSON Polygon with a single, explicitly closed ring in
``[lon, lat]`` order; a legacy ``"lat,lng"`` string is accepted on read and
decodes to a one-point degenerate polygon.
"""

import json
import logging
import math
from typing import Iterable, List, Optional, Sequence

from fieldtour.exceptions import InvalidGeometry
from fieldtour.models.geo import Bounds, Coordinates
from fieldtour.type_defs import EncodedGeometry, EncodedPolygon

logger = logging.getLogger(__name__)

METERS_PER_DEGREE = 111000.0


# =============================================================================
# Encoding
# =============================================================================

def polygon_to_standard_format(points: Sequence[Coordinates]) -> EncodedPolygon:
    """Encode an open or closed ring as a GeoJSON Polygon geometry."""
    if len(points) < 3:
        raise InvalidGeometry(f"A polygon needs at least 3 points, got {len(points)}")

    ring = [p.as_position() for p in points]
    if ring[0] != ring[-1]:
        ring.append(list(ring[0]))

    return {"type": "Polygon", "coordinates": [ring]}


def polygon_to_geojson(points: Sequence[Coordinates]) -> str:
    """Same as ``polygon_to_standard_format`` serialized to a JSON string."""
    return json.dumps(polygon_to_standard_format(points))


def _parse_legacy_point(text: str) -> Optional[List[Coordinates]]:
    parts = text.split(",")
    if len(parts) != 2:
        return None
    try:
        return [Coordinates(lat=float(parts[0]), lon=float(parts[1]))]
    except ValueError:
        return None


def standard_format_to_points(encoded: EncodedGeometry) -> List[Coordinates]:
    """Decode a GeoJSON Polygon (dict or JSON string) into an open ring."""
    if isinstance(encoded, str):
        text = encoded.strip()
        if "{" not in text:
            points = _parse_legacy_point(text)
            if points is None:
                raise InvalidGeometry(f"Unparsable geometry: {encoded!r}")
            return points
        try:
            encoded = json.loads(text)
        except json.JSONDecodeError as e:
            raise InvalidGeometry(f"Invalid GeoJSON: {e}") from e

    if not isinstance(encoded, dict) or encoded.get("type") != "Polygon":
        kind = encoded.get("type") if isinstance(encoded, dict) else type(encoded).__name__
        raise InvalidGeometry(f"Unsupported geometry type: {kind}")

    try:
        ring = encoded["coordinates"][0]
        points = [Coordinates.from_position(position) for position in ring]
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise InvalidGeometry(f"Malformed Polygon coordinates: {e}") from e

    if not points:
        raise InvalidGeometry("Polygon ring is empty")

    if len(points) > 1 and points[0] == points[-1]:
        points.pop()

    return points


# =============================================================================
# Measures
# =============================================================================

def centroid(points: Sequence[Coordinates]) -> Coordinates:
    """Arithmetic mean of the vertices (not area weighted)."""
    if not points:
        raise InvalidGeometry("Cannot compute the centroid of an empty point list")
    if len(points) == 1:
        return points[0]

    n = len(points)
    return Coordinates(
        lat=sum(p.lat for p in points) / n,
        lon=sum(p.lon for p in points) / n,
    )


def area(points: Sequence[Coordinates]) -> float:
    """Approximate footprint area in square meters.

    Shoelace formula on an equirectangular projection centred on the mean
    latitude. Equal to the flat 111 km/degree formula at the equator; the
    error stays well under 1% for footprints a few kilometres across.
    """
    if len(points) < 3:
        return 0.0

    mean_lat = sum(p.lat for p in points) / len(points)
    lon_scale = math.cos(math.radians(mean_lat))

    twice_area = 0.0
    j = len(points) - 1
    for i in range(len(points)):
        twice_area += (points[j].lon + points[i].lon) * (points[j].lat - points[i].lat)
        j = i

    return abs(twice_area) / 2 * METERS_PER_DEGREE * METERS_PER_DEGREE * lon_scale


def bounds(points: Sequence[Coordinates]) -> Bounds:
    if not points:
        raise InvalidGeometry("Cannot compute the bounds of an empty point list")
    lats = [p.lat for p in points]
    lons = [p.lon for p in points]
    return Bounds(min_lat=min(lats), max_lat=max(lats), min_lon=min(lons), max_lon=max(lons))


# =============================================================================
# Predicates
# =============================================================================

def is_valid_polygon(points: Sequence[Coordinates]) -> bool:
    """At least 3 points. Self-intersection is not checked."""
    return len(points) >= 3


def _direction(p1: Coordinates, p2: Coordinates, p3: Coordinates) -> float:
    return (p3.lon - p1.lon) * (p2.lat - p1.lat) - (p2.lon - p1.lon) * (p3.lat - p1.lat)


def segments_intersect(p1: Coordinates, p2: Coordinates, p3: Coordinates, p4: Coordinates) -> bool:
    """Proper crossing of segments p1-p2 and p3-p4; touching does not count."""
    d1 = _direction(p3, p4, p1)
    d2 = _direction(p3, p4, p2)
    d3 = _direction(p1, p2, p3)
    d4 = _direction(p1, p2, p4)
    return ((d1 > 0 > d2) or (d1 < 0 < d2)) and ((d3 > 0 > d4) or (d3 < 0 < d4))


def is_self_intersecting(points: Sequence[Coordinates]) -> bool:
    """True if two non-adjacent edges of the closed ring cross."""
    n = len(points)
    if n < 4:
        return False

    for i in range(n):
        for j in range(i + 2, n):
            # first and last edges share the closing vertex
            if i == 0 and j == n - 1:
                continue
            if segments_intersect(points[i], points[(i + 1) % n], points[j], points[(j + 1) % n]):
                return True
    return False


def is_point_in_polygon(point: Coordinates, polygon: Sequence[Coordinates]) -> bool:
    """Even-odd ray casting. Fewer than 3 vertices never contain anything."""
    if len(polygon) < 3:
        return False

    inside = False
    j = len(polygon) - 1
    for i in range(len(polygon)):
        pi, pj = polygon[i], polygon[j]
        if (pi.lat > point.lat) != (pj.lat > point.lat):
            crossing_lon = (pj.lon - pi.lon) * (point.lat - pi.lat) / (pj.lat - pi.lat) + pi.lon
            if point.lon < crossing_lon:
                inside = not inside
        j = i
    return inside


# =============================================================================
# Encoded-geometry conveniences
# =============================================================================

def centroid_from_encoded(encoded: EncodedGeometry) -> Coordinates:
    return centroid(standard_format_to_points(encoded))


def is_point_in_encoded(point: Coordinates, encoded: EncodedGeometry) -> bool:
    """Hit test against a stored footprint; unreadable footprints never match."""
    try:
        polygon = standard_format_to_points(encoded)
    except InvalidGeometry:
        return False
    return is_point_in_polygon(point, polygon)


def combined_bounds(encoded_list: Iterable[EncodedGeometry]) -> Optional[Bounds]:
    """Bounds covering every readable footprint, or None if none is readable."""
    result = None
    for encoded in encoded_list:
        try:
            box = bounds(standard_format_to_points(encoded))
        except InvalidGeometry as e:
            logger.debug(f"[Geometry] Skipping unreadable footprint: {e}")
            continue
        result = box if result is None else result.union(box)
    return result
