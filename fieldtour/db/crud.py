"""
CRUD operations for the fieldtour database.

Provides functions to create, read, update and delete:
- Sites
- Tours with their stops
- Stop status and order updates (by tour id + site id filter)
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import desc
from sqlalchemy.orm import Session, selectinload

from fieldtour.db import models
from fieldtour.models import TourStop, VisitStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Site CRUD
# =============================================================================

def create_site(db: Session, address: str, geom: str, site_type: str = "", contact: str = "") -> models.SiteModel:
    db_site = models.SiteModel(address=address, geom=geom, site_type=site_type, contact=contact)
    db.add(db_site)
    db.commit()
    db.refresh(db_site)
    logger.info(f"Created site {db_site.id}")
    return db_site


def get_site(db: Session, site_id: int) -> Optional[models.SiteModel]:
    return db.get(models.SiteModel, site_id)


def get_sites(db: Session, site_ids: Sequence[int]) -> List[models.SiteModel]:
    """Sites in the order of ``site_ids``; unknown ids are left out."""
    rows = db.query(models.SiteModel).filter(models.SiteModel.id.in_(list(site_ids))).all()
    by_id = {row.id: row for row in rows}
    return [by_id[i] for i in site_ids if i in by_id]


def list_sites(db: Session, skip: int = 0, limit: int = 100) -> List[models.SiteModel]:
    return db.query(models.SiteModel).order_by(models.SiteModel.id).offset(skip).limit(limit).all()


def delete_site(db: Session, site_id: int) -> bool:
    db_site = get_site(db, site_id)
    if db_site is None:
        return False
    db.delete(db_site)
    db.commit()
    return True


# =============================================================================
# Tour CRUD
# =============================================================================

def _stop_model(stop: TourStop) -> models.TourStopModel:
    return models.TourStopModel(
        site_id=stop.site_id,
        address=stop.address,
        site_type=stop.site_type,
        lat=stop.position.lat,
        lon=stop.position.lon,
        status=stop.status.value,
        visited_at=stop.visited_at,
        notes=stop.notes,
        order_index=stop.order_index,
    )


def create_tour(
    db: Session,
    name: str,
    stops: Iterable[TourStop] = (),
    created_at: datetime = None,
) -> models.TourModel:
    """Create a tour with its initial stops in one transaction."""
    db_tour = models.TourModel(name=name, created_at=created_at or datetime.utcnow())
    for stop in stops:
        db_tour.stops.append(_stop_model(stop))

    db.add(db_tour)
    db.commit()
    db.refresh(db_tour)

    logger.info(f"Created tour {db_tour.id} with {len(db_tour.stops)} stops")
    return db_tour


def get_tour(db: Session, tour_id: int) -> Optional[models.TourModel]:
    return db.query(models.TourModel).options(
        selectinload(models.TourModel.stops)
    ).filter(models.TourModel.id == tour_id).first()


def list_tours(db: Session, skip: int = 0, limit: int = 100) -> List[models.TourModel]:
    """Tours, newest first."""
    return db.query(models.TourModel).options(
        selectinload(models.TourModel.stops)
    ).order_by(desc(models.TourModel.created_at), desc(models.TourModel.id)).offset(skip).limit(limit).all()


def delete_tour(db: Session, tour_id: int) -> bool:
    """Delete a tour; its stops go with it."""
    db_tour = get_tour(db, tour_id)
    if db_tour is None:
        return False
    db.delete(db_tour)
    db.commit()
    logger.info(f"Deleted tour {tour_id}")
    return True


def set_tour_started(db: Session, tour_id: int, started_at: datetime) -> int:
    rows = db.query(models.TourModel).filter(models.TourModel.id == tour_id).update(
        {models.TourModel.started_at: started_at}
    )
    db.commit()
    return rows


def set_tour_completed(db: Session, tour_id: int, completed_at: datetime) -> int:
    rows = db.query(models.TourModel).filter(models.TourModel.id == tour_id).update(
        {models.TourModel.completed_at: completed_at}
    )
    db.commit()
    return rows


# =============================================================================
# Tour stop CRUD
# =============================================================================

def add_tour_stops(db: Session, tour_id: int, stops: Iterable[TourStop]) -> List[models.TourStopModel]:
    created = []
    for stop in stops:
        db_stop = _stop_model(stop)
        db_stop.tour_id = tour_id
        db.add(db_stop)
        created.append(db_stop)
    db.commit()
    logger.info(f"Added {len(created)} stops to tour {tour_id}")
    return created


def update_tour_stop_status(
    db: Session,
    tour_id: int,
    site_id: int,
    status: VisitStatus,
    visited_at: datetime = None,
    notes: str = None,
    completed_at: datetime = None,
) -> int:
    """Update-by-filter on (tour_id, site_id). Returns the number of rows touched.

    ``completed_at`` stamps the tour in the same transaction.
    """
    values = {models.TourStopModel.status: status.value}
    if visited_at is not None:
        values[models.TourStopModel.visited_at] = visited_at
    if notes is not None:
        values[models.TourStopModel.notes] = notes

    rows = db.query(models.TourStopModel).filter(
        models.TourStopModel.tour_id == tour_id,
        models.TourStopModel.site_id == site_id,
    ).update(values)
    if rows and completed_at is not None:
        db.query(models.TourModel).filter(models.TourModel.id == tour_id).update(
            {models.TourModel.completed_at: completed_at}
        )
    db.commit()
    return rows


def update_tour_stops_order(db: Session, tour_id: int, site_ids: Sequence[int]) -> None:
    """Assign order_index = position in ``site_ids``."""
    for index, site_id in enumerate(site_ids):
        db.query(models.TourStopModel).filter(
            models.TourStopModel.tour_id == tour_id,
            models.TourStopModel.site_id == site_id,
        ).update({models.TourStopModel.order_index: index})
    db.commit()


def remove_tour_stop(db: Session, tour_id: int, site_id: int) -> int:
    rows = db.query(models.TourStopModel).filter(
        models.TourStopModel.tour_id == tour_id,
        models.TourStopModel.site_id == site_id,
    ).delete()
    db.commit()
    return rows
