"""
Database module for fieldtour.

SQLAlchemy persistence for sites, tours and tour stops.
"""

from .database import (
    create_session_factory,
    create_tables,
    drop_tables,
    init_engine,
    is_database_available,
)
from .models import Base, SiteModel, TourModel, TourStopModel
from .repository import SqlSiteRepository, SqlTourRepository, TourRepository
from . import crud

__all__ = [
    "create_session_factory",
    "create_tables",
    "drop_tables",
    "init_engine",
    "is_database_available",
    "Base",
    "SiteModel",
    "TourModel",
    "TourStopModel",
    "SqlSiteRepository",
    "SqlTourRepository",
    "TourRepository",
    "crud",
]
