"""
SQLAlchemy ORM models.

Purpose:
- Define Bus, Depot, RouteStop, Passenger, Ticket and Journey tables
- Use SQLAlchemy async-compatible models
- Support migrations via Alembic

Notes:
- journeys.notifications is a JSON array of notification entries, written in
  the same UPDATE as the location so a location and the entries it changed
  are never persisted apart
- journeys.version is an optimistic-concurrency counter on top of the
  SELECT ... FOR UPDATE taken by the journey service
"""

from sqlalchemy import Column, Integer, String, Float, Date, DateTime, JSON, Index
from core.db import Base
from datetime import datetime, timezone


def utcnow():
    return datetime.now(timezone.utc)


class Bus(Base):
    """
    A registered bus.

    Columns:
    - bus_id: unique identifier typed by conductors (matched case-insensitively)
    - bus_number: registration plate shown to passengers
    - mobile_no: conductor phone; accepted in place of bus_id
    """
    __tablename__ = "buses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bus_id = Column(String(50), unique=True, index=True, nullable=False)
    bus_number = Column(String(50), nullable=False)
    route_name = Column(String(255), nullable=False)
    conductor_name = Column(String(255), nullable=False)
    mobile_no = Column(String(20), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Depot(Base):
    """A bus depot; route stops name the depot they belong to."""
    __tablename__ = "depots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    depot_id = Column(String(32), unique=True, index=True, nullable=False)
    name = Column(String(255), unique=True, index=True, nullable=False)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class RouteStop(Base):
    """A named stop on a depot's routes; ticket drop-offs are matched by name."""
    __tablename__ = "route_stops"

    id = Column(Integer, primary_key=True, autoincrement=True)
    stop_id = Column(String(32), unique=True, index=True, nullable=False)
    name = Column(String(255), index=True, nullable=False)
    depot_name = Column(String(255), index=True, nullable=False)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Passenger(Base):
    __tablename__ = "passengers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    passenger_id = Column(String(32), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ticket_id = Column(String(32), unique=True, index=True, nullable=False)
    passenger_id = Column(String(32), index=True, nullable=False)
    pnr = Column(String(50), nullable=False)
    ticket_no = Column(String(50), nullable=False)
    pickup = Column(String(255), nullable=False)
    dropoff = Column(String(255), nullable=False)
    travel_date = Column(Date, index=True, nullable=False)
    start_time = Column(String(20), nullable=True)
    end_time = Column(String(20), nullable=True)
    bus_id = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Journey(Base):
    """
    One trip of one bus.

    Columns:
    - status: active | completed (at most one active row per bus)
    - direction: forward | return
    - lat/lng: last reported position
    - notifications: [{passenger_id, dropoff_location, dropoff_coords, last_notified, reached}, ...]
    """
    __tablename__ = "journeys"

    id = Column(Integer, primary_key=True, autoincrement=True)
    journey_id = Column(String(32), unique=True, nullable=False)
    bus_id = Column(String(50), nullable=False)
    status = Column(String(20), default="active", nullable=False)
    direction = Column(String(20), default="forward", nullable=False)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    last_updated = Column(DateTime(timezone=True), default=utcnow)
    start_time = Column(DateTime(timezone=True), default=utcnow)
    end_time = Column(DateTime(timezone=True), nullable=True)
    notifications = Column(JSON, nullable=False, default=list)
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("ix_journeys_bus_status", "bus_id", "status"),
    )
    __mapper_args__ = {"version_id_col": version}
