"""
Tour domain models: sites, stops and tours.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field

from fieldtour.models.geo import Coordinates


class VisitStatus(str, Enum):
    """Visit status of a stop.

    Stored by its string tag, never by position.
    """
    PENDING = "pending"
    VISITED = "visited"
    TO_REVIEW = "toReview"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self is not VisitStatus.PENDING

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    VisitStatus.PENDING: "To visit",
    VisitStatus.VISITED: "Visited",
    VisitStatus.TO_REVIEW: "To review",
    VisitStatus.SKIPPED: "Skipped",
}


class Site(BaseModel):
    """A surveyed location with its footprint.

    Owned by the site store; tours only read its derived geometry.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    address: str
    site_type: str = ""
    contact: str = ""
    geom: Union[Dict[str, Any], str] = Field(..., description="GeoJSON Polygon or legacy 'lat,lng'")

    def points(self) -> List[Coordinates]:
        from fieldtour import geometry
        return geometry.standard_format_to_points(self.geom)

    def centroid(self) -> Coordinates:
        from fieldtour import geometry
        return geometry.centroid(self.points())


class TourStop(BaseModel):
    """A tour-scoped visit of one site.

    ``address``, ``site_type`` and ``position`` are frozen at optimization
    time; later edits or deletion of the site do not reach the stop.
    """

    id: Optional[int] = None
    site_id: int
    address: str
    site_type: str = ""
    position: Coordinates
    status: VisitStatus = VisitStatus.PENDING
    visited_at: Optional[datetime] = None
    notes: Optional[str] = None
    order_index: int = 0

    @property
    def is_pending(self) -> bool:
        return self.status is VisitStatus.PENDING


class Tour(BaseModel):
    """An ordered, stateful sequence of stops."""

    id: Optional[int] = None
    name: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    stops: List[TourStop] = Field(default_factory=list)

    def _count(self, status: VisitStatus) -> int:
        return sum(1 for s in self.stops if s.status is status)

    @computed_field
    @property
    def visited_count(self) -> int:
        return self._count(VisitStatus.VISITED)

    @computed_field
    @property
    def to_review_count(self) -> int:
        return self._count(VisitStatus.TO_REVIEW)

    @computed_field
    @property
    def skipped_count(self) -> int:
        return self._count(VisitStatus.SKIPPED)

    @computed_field
    @property
    def remaining_count(self) -> int:
        return self._count(VisitStatus.PENDING)

    @computed_field
    @property
    def progress(self) -> float:
        """Visited share of all stops, in percent."""
        if not self.stops:
            return 0.0
        return self.visited_count / len(self.stops) * 100

    @computed_field
    @property
    def is_completed(self) -> bool:
        return bool(self.stops) and self.remaining_count == 0

    @property
    def is_started(self) -> bool:
        return self.started_at is not None

    @property
    def next_stop(self) -> Optional[TourStop]:
        """Pending stop with the lowest order index, or None."""
        pending = [s for s in self.stops if s.status is VisitStatus.PENDING]
        if not pending:
            return None
        return min(pending, key=lambda s: s.order_index)

    def ordered_stops(self) -> List[TourStop]:
        return sorted(self.stops, key=lambda s: s.order_index)

    def find_stop(self, site_id: int) -> Optional[TourStop]:
        for stop in self.stops:
            if stop.site_id == site_id:
                return stop
        return None
