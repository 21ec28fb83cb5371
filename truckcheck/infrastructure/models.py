"""
SQLAlchemy ORM models (PostgreSQL).

Tables
------
* ``users``            -- account holders and their subscription status
* ``calculations``     -- calculation history (pro, kept 90 days)
* ``recent_searches``  -- quick re-run list (pro)
* ``depots``           -- saved base locations (pro)

Locations are stored as JSON ``{"placeName", "lat", "lng"}`` objects.
``recent_searches.destination`` is the legacy single-destination column;
new rows fill ``stops`` instead and both shapes are normalised on read.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)

from .database import Base
from truckcheck.domain.enums import SubscriptionStatus


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    subscription_status = Column(
        String(20), default=SubscriptionStatus.FREE.value, nullable=False
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class CalculationModel(Base):
    __tablename__ = "calculations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    base_location = Column(JSON, nullable=False)
    stops = Column(JSON, nullable=False)
    distance = Column(Float, nullable=False)
    driving_distance = Column(Float, nullable=True)
    max_distance_from_base = Column(Float, nullable=True)
    logbook_required = Column(Boolean, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_calculations_user_created", "user_id", "created_at"),
    )


class RecentSearchModel(Base):
    __tablename__ = "recent_searches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    base_location = Column(JSON, nullable=False)
    stops = Column(JSON, nullable=True)
    destination = Column(JSON, nullable=True)  # legacy single-stop rows
    distance = Column(Float, nullable=False)
    logbook_required = Column(Boolean, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_recent_searches_user_created", "user_id", "created_at"),
    )


class DepotModel(Base):
    __tablename__ = "depots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    address = Column(String(500), nullable=False)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("idx_depots_user", "user_id"),)
