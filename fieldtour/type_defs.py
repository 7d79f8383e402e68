"""
Type definitions for fieldtour.

This module contains type aliases used across the package.
"""

from typing import Any, Dict, List, Tuple, Union

# =============================================================================
# Geometry
# =============================================================================

# (lat, lon) in degrees, WGS84
LatLon = Tuple[float, float]

# GeoJSON Polygon geometry object: {"type": "Polygon", "coordinates": [[[lon, lat], ...]]}
EncodedPolygon = Dict[str, Any]

# Anything accepted on read: GeoJSON dict, GeoJSON string or legacy "lat,lng"
EncodedGeometry = Union[EncodedPolygon, str]

# GeoJSON position, [lon, lat]
Position = List[float]

# =============================================================================
# Routing
# =============================================================================

# Route cache key format: "lat1,lon1|lat2,lon2|profile"
CacheKey = str

# Stats dictionary
StatsDict = Dict[str, int]
