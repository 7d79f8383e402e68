"""
Geographic value types.
"""

from typing import Sequence

from pydantic import BaseModel, ConfigDict, Field

from fieldtour.type_defs import LatLon, Position


class Coordinates(BaseModel):
    """WGS84 coordinate in decimal degrees.

    Ranges are intentionally not validated; out-of-range values propagate.
    """

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., description="Latitude in decimal degrees")
    lon: float = Field(..., description="Longitude in decimal degrees")

    @classmethod
    def from_pair(cls, pair: Sequence[float]) -> "Coordinates":
        """Build from a ``(lat, lon)`` pair."""
        return cls(lat=float(pair[0]), lon=float(pair[1]))

    @classmethod
    def from_position(cls, position: Sequence[float]) -> "Coordinates":
        """Build from a GeoJSON ``[lon, lat]`` position."""
        return cls(lat=float(position[1]), lon=float(position[0]))

    def as_tuple(self) -> LatLon:
        return (self.lat, self.lon)

    def as_position(self) -> Position:
        return [self.lon, self.lat]

    def osrm_param(self) -> str:
        """``lon,lat`` as used in OSRM URL paths."""
        return f"{self.lon},{self.lat}"


class Bounds(BaseModel):
    """Axis-aligned bounding box."""

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    @property
    def center(self) -> Coordinates:
        return Coordinates(
            lat=(self.min_lat + self.max_lat) / 2,
            lon=(self.min_lon + self.max_lon) / 2,
        )

    def union(self, other: "Bounds") -> "Bounds":
        return Bounds(
            min_lat=min(self.min_lat, other.min_lat),
            max_lat=max(self.max_lat, other.max_lat),
            min_lon=min(self.min_lon, other.min_lon),
            max_lon=max(self.max_lon, other.max_lon),
        )

    def contains(self, point: Coordinates) -> bool:
        return (
            self.min_lat <= point.lat <= self.max_lat
            and self.min_lon <= point.lon <= self.max_lon
        )

    def as_dict(self) -> dict:
        """Legacy camelCase mapping (minLat, maxLat, minLng, maxLng)."""
        return {
            "minLat": self.min_lat,
            "maxLat": self.max_lat,
            "minLng": self.min_lon,
            "maxLng": self.max_lon,
        }
