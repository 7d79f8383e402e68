"""
SQLAlchemy models for fieldtour.

Tables:
- sites: surveyed locations with their footprint
- tours / tour_stops: planned tours and their stops (cascade on delete)
"""

from datetime import datetime

from sqlalchemy import (
    Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class SiteModel(Base):
    """Surveyed site"""
    __tablename__ = "sites"

    id = Column(Integer, primary_key=True, autoincrement=True)
    address = Column(String, nullable=False)
    contact = Column(String, nullable=False, default="")
    site_type = Column(String, nullable=False, default="")
    geom = Column(Text, nullable=False)  # GeoJSON Polygon or legacy "lat,lng"
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<SiteModel(id={self.id}, address='{self.address}')>"


class TourModel(Base):
    """Visit tour"""
    __tablename__ = "tours"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    stops = relationship(
        "TourStopModel",
        back_populates="tour",
        cascade="all, delete-orphan",
        order_by="TourStopModel.order_index",
    )

    def __repr__(self):
        return f"<TourModel(id={self.id}, name='{self.name}')>"


class TourStopModel(Base):
    """Stop of a tour. Address, type and position are a snapshot of the site."""
    __tablename__ = "tour_stops"
    __table_args__ = (
        UniqueConstraint("tour_id", "site_id", name="uq_tour_stop_site"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tour_id = Column(Integer, ForeignKey("tours.id", ondelete="CASCADE"), nullable=False, index=True)
    site_id = Column(Integer, nullable=False)
    address = Column(String, nullable=False)
    site_type = Column(String, nullable=False, default="")
    lat = Column(Float, nullable=False)
    lon = Column(Float, nullable=False)
    status = Column(String, nullable=False, default="pending")  # pending|visited|toReview|skipped
    visited_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    order_index = Column(Integer, nullable=False, default=0)

    tour = relationship("TourModel", back_populates="stops")

    def __repr__(self):
        return f"<TourStopModel(site_id={self.site_id}, order={self.order_index}, status='{self.status}')>"
