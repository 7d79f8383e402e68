"""
Persistence collaborator for the tour state machine.

``TourRepository`` is the contract; ``SqlTourRepository`` implements it on
top of ``crud`` with an injected session factory. Storage errors surface as
PersistenceFailure and mean the mutation did not happen.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional, Protocol, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from fieldtour.db import crud, models
from fieldtour.exceptions import PersistenceFailure
from fieldtour.models import Coordinates, Site, Tour, TourStop, VisitStatus

logger = logging.getLogger(__name__)


def stop_from_model(db_stop: models.TourStopModel) -> TourStop:
    return TourStop(
        id=db_stop.id,
        site_id=db_stop.site_id,
        address=db_stop.address,
        site_type=db_stop.site_type,
        position=Coordinates(lat=db_stop.lat, lon=db_stop.lon),
        status=VisitStatus(db_stop.status),
        visited_at=db_stop.visited_at,
        notes=db_stop.notes,
        order_index=db_stop.order_index,
    )


def tour_from_model(db_tour: models.TourModel) -> Tour:
    return Tour(
        id=db_tour.id,
        name=db_tour.name,
        created_at=db_tour.created_at,
        started_at=db_tour.started_at,
        completed_at=db_tour.completed_at,
        stops=[stop_from_model(s) for s in db_tour.stops],
    )


def site_from_model(db_site: models.SiteModel) -> Site:
    return Site(
        id=db_site.id,
        address=db_site.address,
        site_type=db_site.site_type,
        contact=db_site.contact,
        geom=db_site.geom,
    )


class TourRepository(Protocol):
    def create_tour(self, name: str, stops: Sequence[TourStop] = (), created_at: datetime = None) -> Tour: ...
    def get_tour(self, tour_id: int) -> Optional[Tour]: ...
    def list_tours(self) -> List[Tour]: ...
    def delete_tour(self, tour_id: int) -> bool: ...
    def add_stops(self, tour_id: int, stops: Sequence[TourStop]) -> None: ...
    def remove_stop(self, tour_id: int, site_id: int) -> bool: ...
    def update_stop_status(self, tour_id: int, site_id: int, status: VisitStatus,
                           visited_at: datetime = None, notes: str = None,
                           completed_at: datetime = None) -> bool: ...
    def update_stop_order(self, tour_id: int, site_ids: Sequence[int]) -> None: ...
    def set_started(self, tour_id: int, started_at: datetime) -> bool: ...
    def set_completed(self, tour_id: int, completed_at: datetime) -> bool: ...


class SqlTourRepository:
    """TourRepository backed by SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[Persistence] {action} failed: {e}")
            raise PersistenceFailure(f"{action} failed: {e}") from e
        finally:
            db.close()

    # --- tours ---

    def create_tour(self, name: str, stops: Sequence[TourStop] = (), created_at: datetime = None) -> Tour:
        with self._session("create tour") as db:
            return tour_from_model(crud.create_tour(db, name, stops, created_at))

    def get_tour(self, tour_id: int) -> Optional[Tour]:
        with self._session("read tour") as db:
            db_tour = crud.get_tour(db, tour_id)
            return tour_from_model(db_tour) if db_tour is not None else None

    def list_tours(self) -> List[Tour]:
        with self._session("list tours") as db:
            return [tour_from_model(t) for t in crud.list_tours(db)]

    def delete_tour(self, tour_id: int) -> bool:
        with self._session("delete tour") as db:
            return crud.delete_tour(db, tour_id)

    def set_started(self, tour_id: int, started_at: datetime) -> bool:
        with self._session("start tour") as db:
            return crud.set_tour_started(db, tour_id, started_at) > 0

    def set_completed(self, tour_id: int, completed_at: datetime) -> bool:
        with self._session("complete tour") as db:
            return crud.set_tour_completed(db, tour_id, completed_at) > 0

    # --- stops ---

    def add_stops(self, tour_id: int, stops: Sequence[TourStop]) -> None:
        with self._session("add stops") as db:
            crud.add_tour_stops(db, tour_id, stops)

    def remove_stop(self, tour_id: int, site_id: int) -> bool:
        with self._session("remove stop") as db:
            return crud.remove_tour_stop(db, tour_id, site_id) > 0

    def update_stop_status(self, tour_id: int, site_id: int, status: VisitStatus,
                           visited_at: datetime = None, notes: str = None,
                           completed_at: datetime = None) -> bool:
        """Stop status change, plus the tour completion stamp when given, in one commit."""
        with self._session("update stop status") as db:
            return crud.update_tour_stop_status(
                db, tour_id, site_id, status, visited_at, notes, completed_at
            ) > 0

    def update_stop_order(self, tour_id: int, site_ids: Sequence[int]) -> None:
        with self._session("reorder stops") as db:
            crud.update_tour_stops_order(db, tour_id, site_ids)


class SqlSiteRepository:
    """Read access to sites for planning (plus creation for seeding)."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def create_site(self, address: str, geom: str, site_type: str = "", contact: str = "") -> Site:
        db = self._session_factory()
        try:
            return site_from_model(crud.create_site(db, address, geom, site_type, contact))
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure(f"create site failed: {e}") from e
        finally:
            db.close()

    def get_sites(self, site_ids: Sequence[int]) -> List[Site]:
        db = self._session_factory()
        try:
            return [site_from_model(s) for s in crud.get_sites(db, site_ids)]
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"read sites failed: {e}") from e
        finally:
            db.close()
