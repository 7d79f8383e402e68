"""
Routing models: travel modes, route segments and call outcomes.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from fieldtour.exceptions import OptimizationDegraded, RoutingUnavailable
from fieldtour.models.geo import Coordinates
from fieldtour.models.tour import TourStop


class TravelMode(str, Enum):
    DRIVING = "driving"
    WALKING = "walking"
    CYCLING = "cycling"

    @property
    def osrm_profile(self) -> str:
        return {"driving": "driving", "walking": "foot", "cycling": "bike"}[self.value]


_TURN_TEXT = {
    "left": "Turn left",
    "right": "Turn right",
    "sharp left": "Turn sharp left",
    "sharp right": "Turn sharp right",
    "slight left": "Turn slightly left",
    "slight right": "Turn slightly right",
    "straight": "Go straight",
    "uturn": "Make a U-turn",
}

_ACTION_TEXT = {
    "depart": "Depart",
    "arrive": "You have arrived",
    "continue": "Continue",
    "merge": "Merge",
    "roundabout": "At the roundabout",
    "rotary": "At the roundabout",
    "end of road": "At the end of the road",
    "new name": "Continue",
}


def instruction_text(maneuver_type: str, modifier: Optional[str], road_name: Optional[str]) -> str:
    """Human readable text for an OSRM maneuver."""
    if maneuver_type == "turn":
        action = _TURN_TEXT.get(modifier or "", "Turn")
    elif maneuver_type == "fork":
        action = "Keep left at the fork" if modifier == "left" else "Keep right at the fork"
    else:
        action = _ACTION_TEXT.get(maneuver_type, "Continue")

    if road_name and maneuver_type != "arrive":
        return f"{action} onto {road_name}"
    return action


def format_distance(meters: float) -> str:
    """'850 m' below one kilometre, '1.2 km' above."""
    if meters >= 1000:
        return f"{meters / 1000:.1f} km"
    return f"{int(meters)} m"


def format_duration(seconds: float) -> str:
    """'25 min' below one hour, '1h 5min' above."""
    minutes = int(round(seconds / 60))
    if minutes >= 60:
        return f"{minutes // 60}h {minutes % 60}min"
    return f"{minutes} min"


class NavigationStep(BaseModel):
    """One turn-by-turn instruction."""

    type: str
    modifier: Optional[str] = None
    road_name: Optional[str] = None
    distance_meters: float = 0.0
    duration_seconds: float = 0.0
    text: str

    @classmethod
    def from_osrm(cls, step: Dict[str, Any]) -> "NavigationStep":
        maneuver = step.get("maneuver") or {}
        name = step.get("name") or ""
        maneuver_type = maneuver.get("type") or "continue"
        modifier = maneuver.get("modifier")
        return cls(
            type=maneuver_type,
            modifier=modifier,
            road_name=name or None,
            distance_meters=float(step.get("distance") or 0),
            duration_seconds=float(step.get("duration") or 0),
            text=instruction_text(maneuver_type, modifier, name),
        )

    @property
    def distance_formatted(self) -> str:
        return format_distance(self.distance_meters)


class RouteSegment(BaseModel):
    """A point-to-point route. Recomputed on demand, never persisted."""

    start: Coordinates
    end: Coordinates
    polyline: List[Coordinates] = Field(default_factory=list)
    distance_meters: float
    duration_seconds: float
    instructions: List[NavigationStep] = Field(default_factory=list)
    travel_mode: TravelMode = TravelMode.DRIVING

    @property
    def distance_formatted(self) -> str:
        return format_distance(self.distance_meters)

    @property
    def duration_formatted(self) -> str:
        return format_duration(self.duration_seconds)

    def estimated_arrival(self, now: datetime = None) -> str:
        """Arrival clock time (HH:MM) when leaving at ``now``."""
        now = now or datetime.now()
        arrival = now + timedelta(seconds=round(self.duration_seconds))
        return arrival.strftime("%H:%M")


# =============================================================================
# Call outcomes
# =============================================================================

@dataclass
class RouteOutcome:
    """Result of a point-to-point routing call: a segment or an error.

    Neither set means there was nothing to route to. ``superseded`` marks a
    response that arrived after a newer request and was not applied.
    """
    segment: Optional[RouteSegment] = None
    error: Optional[RoutingUnavailable] = None
    from_cache: bool = False
    superseded: bool = False

    @property
    def ok(self) -> bool:
        return self.segment is not None and self.error is None

    def unwrap(self) -> RouteSegment:
        if not self.ok:
            raise self.error or RoutingUnavailable("No route")
        return self.segment


@dataclass
class TripOutcome:
    """Result of a trip optimization call.

    ``order`` lists indices into the submitted stop list in visit order.
    """
    order: Optional[List[int]] = None
    error: Optional[RoutingUnavailable] = None

    @property
    def ok(self) -> bool:
        return self.order is not None and self.error is None


@dataclass
class OptimizationResult:
    """Ordered stops plus the strategy that produced them."""
    stops: List[TourStop] = field(default_factory=list)
    strategy: str = "nearest_neighbor"
    degraded: Optional[OptimizationDegraded] = None

    @property
    def is_degraded(self) -> bool:
        return self.degraded is not None


class PlanSummary(BaseModel):
    """Planning estimate shown before a tour is created."""

    stop_count: int
    total_distance_meters: float
    estimated_duration_seconds: float
    strategy: str
    degraded: bool = False

    @property
    def distance_formatted(self) -> str:
        return format_distance(self.total_distance_meters)

    @property
    def duration_formatted(self) -> str:
        return format_duration(self.estimated_duration_seconds)
