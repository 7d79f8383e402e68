"""
Pydantic schemas for the HTTP layer.

These schemas are used for:
- Request validation (input data)
- Response serialization (output data)

Note: These are separate from the domain models in ``fieldtour.models``.
"""

import json
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from fieldtour.models import Coordinates, PlanSummary, Site, Tour, TourStop, TravelMode


# =============================================================================
# Site Schemas
# =============================================================================

class SiteCreate(BaseModel):
    """Create a site from a drawn footprint (>= 3 points) or a single point."""
    address: str
    site_type: str = ""
    contact: str = ""
    points: List[Coordinates] = Field(..., min_length=1)


class SiteResponse(BaseModel):
    id: int
    address: str
    site_type: str
    contact: str
    geom: str
    centroid: Optional[Coordinates] = None
    area_m2: float = 0.0

    @classmethod
    def from_site(cls, site: Site, centroid: Optional[Coordinates], area_m2: float) -> "SiteResponse":
        return cls(
            id=site.id,
            address=site.address,
            site_type=site.site_type,
            contact=site.contact,
            geom=site.geom if isinstance(site.geom, str) else json.dumps(site.geom),
            centroid=centroid,
            area_m2=area_m2,
        )


# =============================================================================
# Planning Schemas
# =============================================================================

class PlanRequest(BaseModel):
    site_ids: List[int] = Field(default_factory=list)
    start: Optional[Coordinates] = Field(None, description="Device position; fallback used when absent")


class PlanResponse(BaseModel):
    start: Coordinates
    stops: List[TourStop]
    summary: PlanSummary
    missing_site_ids: List[int] = Field(default_factory=list)


# =============================================================================
# Tour Schemas
# =============================================================================

class TourCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    stops: List[TourStop] = Field(default_factory=list)
    start: bool = Field(True, description="Stamp the start time right away")


class TourResponse(BaseModel):
    id: int
    name: str
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    stops: List[TourStop]
    visited_count: int
    to_review_count: int
    skipped_count: int
    remaining_count: int
    progress: float
    is_completed: bool
    next_stop: Optional[TourStop] = None

    @classmethod
    def from_tour(cls, tour: Tour) -> "TourResponse":
        return cls(
            id=tour.id,
            name=tour.name,
            created_at=tour.created_at,
            started_at=tour.started_at,
            completed_at=tour.completed_at,
            stops=tour.ordered_stops(),
            visited_count=tour.visited_count,
            to_review_count=tour.to_review_count,
            skipped_count=tour.skipped_count,
            remaining_count=tour.remaining_count,
            progress=tour.progress,
            is_completed=tour.is_completed,
            next_stop=tour.next_stop,
        )


class TourSummary(BaseModel):
    """Lightweight tour schema for lists"""
    id: int
    name: str
    created_at: datetime
    stops_count: int
    progress: float
    is_completed: bool


class ReviewRequest(BaseModel):
    notes: Optional[str] = None


class ReorderRequest(BaseModel):
    site_ids: List[int]


# =============================================================================
# Routing Schemas
# =============================================================================

class RouteRequest(BaseModel):
    start: Coordinates
    end: Coordinates
    mode: TravelMode = TravelMode.DRIVING
