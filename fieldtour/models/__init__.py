"""
Domain models for fieldtour.
"""

from fieldtour.models.geo import Bounds, Coordinates
from fieldtour.models.tour import Site, Tour, TourStop, VisitStatus
from fieldtour.models.routing import (
    NavigationStep,
    OptimizationResult,
    PlanSummary,
    RouteOutcome,
    RouteSegment,
    TravelMode,
    TripOutcome,
    format_distance,
    format_duration,
    instruction_text,
)

__all__ = [
    'Bounds', 'Coordinates',
    'Site', 'Tour', 'TourStop', 'VisitStatus',
    'NavigationStep', 'OptimizationResult', 'PlanSummary', 'RouteOutcome',
    'RouteSegment', 'TravelMode', 'TripOutcome',
    'format_distance', 'format_duration', 'instruction_text',
]
