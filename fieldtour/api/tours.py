"""
Tours API - endpoints for planning, running and reviewing visit tours.

This module provides REST API endpoints for:
- Site creation and lookup (POST /api/sites, GET /api/sites)
- Tour planning (POST /api/tours/plan)
- Tour CRUD and lifecycle (create, list, get, delete, start, complete)
- Stop transitions and reordering
- Point-to-point routing and routing health
"""

import logging
from contextlib import contextmanager
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, Request, status

from fieldtour import geometry
from fieldtour.db import schemas
from fieldtour.db.repository import SqlSiteRepository
from fieldtour.exceptions import (
    InvalidGeometry,
    InvalidReorder,
    InvalidStopTransition,
    PersistenceFailure,
    StopNotFound,
    TourNotFound,
)
from fieldtour.services.location import resolve_position
from fieldtour.services.osrm_service import OSRMService
from fieldtour.services.planning import stops_from_sites, summarize
from fieldtour.services.tour_optimizer import TourOptimizer
from fieldtour.services.tour_service import TourService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["tours"])


@contextmanager
def _http_errors():
    """Map domain errors to HTTP status codes."""
    try:
        yield
    except (TourNotFound, StopNotFound) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (InvalidStopTransition, InvalidReorder) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except InvalidGeometry as e:
        raise HTTPException(status_code=422, detail=str(e))
    except PersistenceFailure as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


def _tour_service(request: Request) -> TourService:
    return request.app.state.tour_service


def _site_repository(request: Request) -> SqlSiteRepository:
    return request.app.state.site_repository


def _optimizer(request: Request) -> TourOptimizer:
    return request.app.state.tour_optimizer


def _osrm(request: Request) -> OSRMService:
    return request.app.state.osrm_service


# =============================================================================
# Sites
# =============================================================================

@router.post("/sites", response_model=schemas.SiteResponse, status_code=status.HTTP_201_CREATED)
def create_site(body: schemas.SiteCreate, request: Request):
    with _http_errors():
        if len(body.points) == 1:
            point = body.points[0]
            geom = f"{point.lat},{point.lon}"
        else:
            geom = geometry.polygon_to_geojson(body.points)
        site = _site_repository(request).create_site(body.address, geom, body.site_type, body.contact)
        points = site.points()
        return schemas.SiteResponse.from_site(site, geometry.centroid(points), geometry.area(points))


@router.get("/sites", response_model=List[schemas.SiteResponse])
def get_sites(request: Request, ids: List[int] = Query(...)):
    with _http_errors():
        responses = []
        for site in _site_repository(request).get_sites(ids):
            try:
                points = site.points()
                centroid, area = geometry.centroid(points), geometry.area(points)
            except InvalidGeometry:
                centroid, area = None, 0.0
            responses.append(schemas.SiteResponse.from_site(site, centroid, area))
        return responses


# =============================================================================
# Planning
# =============================================================================

@router.post("/tours/plan", response_model=schemas.PlanResponse)
async def plan_tour(body: schemas.PlanRequest, request: Request):
    """Order the selected sites from the start position."""
    if not body.site_ids:
        raise HTTPException(status_code=400, detail="Select at least one site")

    with _http_errors():
        sites = _site_repository(request).get_sites(body.site_ids)
    found = {s.id for s in sites}
    missing = [i for i in body.site_ids if i not in found]

    start = body.start or await resolve_position(getattr(request.app.state, "location_provider", None))
    result = await _optimizer(request).optimize(start, stops_from_sites(sites))
    return schemas.PlanResponse(
        start=start,
        stops=result.stops,
        summary=summarize(result),
        missing_site_ids=missing,
    )


# =============================================================================
# Tours
# =============================================================================

@router.post("/tours", response_model=schemas.TourResponse, status_code=status.HTTP_201_CREATED)
def create_tour(body: schemas.TourCreateRequest, request: Request):
    service = _tour_service(request)
    with _http_errors():
        tour = service.create_tour(body.name, body.stops)
        if body.start:
            tour = service.start(tour.id)
        return schemas.TourResponse.from_tour(tour)


@router.get("/tours", response_model=List[schemas.TourSummary])
def list_tours(request: Request):
    with _http_errors():
        tours = _tour_service(request).list_tours()
    return [
        schemas.TourSummary(
            id=t.id,
            name=t.name,
            created_at=t.created_at,
            stops_count=len(t.stops),
            progress=t.progress,
            is_completed=t.is_completed,
        )
        for t in tours
    ]


@router.get("/tours/{tour_id}", response_model=schemas.TourResponse)
def get_tour(tour_id: int, request: Request):
    with _http_errors():
        return schemas.TourResponse.from_tour(_tour_service(request).get_tour(tour_id))


@router.delete("/tours/{tour_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tour(tour_id: int, request: Request):
    with _http_errors():
        _tour_service(request).delete_tour(tour_id)


@router.post("/tours/{tour_id}/start", response_model=schemas.TourResponse)
def start_tour(tour_id: int, request: Request, restart: bool = False):
    with _http_errors():
        return schemas.TourResponse.from_tour(_tour_service(request).start(tour_id, restart=restart))


@router.post("/tours/{tour_id}/complete", response_model=schemas.TourResponse)
def complete_tour(tour_id: int, request: Request):
    with _http_errors():
        return schemas.TourResponse.from_tour(_tour_service(request).complete(tour_id))


@router.put("/tours/{tour_id}/order", response_model=schemas.TourResponse)
def reorder_tour(tour_id: int, body: schemas.ReorderRequest, request: Request):
    with _http_errors():
        return schemas.TourResponse.from_tour(_tour_service(request).reorder(tour_id, body.site_ids))


@router.post("/tours/{tour_id}/stops/{site_id}/visited", response_model=schemas.TourResponse)
def mark_visited(tour_id: int, site_id: int, request: Request):
    with _http_errors():
        return schemas.TourResponse.from_tour(_tour_service(request).mark_visited(tour_id, site_id))


@router.post("/tours/{tour_id}/stops/{site_id}/review", response_model=schemas.TourResponse)
def mark_to_review(tour_id: int, site_id: int, request: Request, body: Optional[schemas.ReviewRequest] = None):
    notes = body.notes if body else None
    with _http_errors():
        return schemas.TourResponse.from_tour(_tour_service(request).mark_to_review(tour_id, site_id, notes))


@router.post("/tours/{tour_id}/stops/{site_id}/skip", response_model=schemas.TourResponse)
def skip_stop(tour_id: int, site_id: int, request: Request):
    with _http_errors():
        return schemas.TourResponse.from_tour(_tour_service(request).skip(tour_id, site_id))


@router.delete("/tours/{tour_id}/stops/{site_id}", response_model=schemas.TourResponse)
def remove_stop(tour_id: int, site_id: int, request: Request):
    with _http_errors():
        return schemas.TourResponse.from_tour(_tour_service(request).remove_stop(tour_id, site_id))


# =============================================================================
# Routing
# =============================================================================

@router.post("/routes")
async def get_route(body: schemas.RouteRequest, request: Request):
    outcome = await _osrm(request).get_route(body.start, body.end, body.mode)
    if not outcome.ok:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(outcome.error))
    segment = outcome.segment
    return {
        "route": segment.model_dump(mode="json"),
        "distance": segment.distance_formatted,
        "duration": segment.duration_formatted,
        "from_cache": outcome.from_cache,
    }


@router.get("/routing/health")
async def routing_health(request: Request):
    return await _osrm(request).health_check()
