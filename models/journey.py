# models/journey.py
"""
Domain models shared by the in-memory and DB-backed journey services.

These are what the API returns; the ORM rows in models.db_models are
converted to and from them at the service boundary.
"""
import math
import uuid
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from core.errors import InvalidInput

JourneyStatus = Literal["active", "completed"]
Direction = Literal["forward", "return"]


def new_id() -> str:
    return uuid.uuid4().hex


class Coordinates(BaseModel):
    lat: float
    lng: float

    @classmethod
    def parse(cls, lat, lng) -> "Coordinates":
        """Validate raw lat/lng values, raising InvalidInput before anything is touched."""
        for name, value, limit in (("lat", lat, 90.0), ("lng", lng, 180.0)):
            if value is None:
                raise InvalidInput(f"{name} is required")
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidInput(f"{name} must be a number")
            if not math.isfinite(value):
                raise InvalidInput(f"{name} must be a finite number")
            if abs(value) > limit:
                raise InvalidInput(f"{name} must be within [-{limit:g}, {limit:g}]")
        return cls(lat=float(lat), lng=float(lng))


class NotificationEntry(BaseModel):
    """One passenger's pending drop-off alert. `last_notified=None` means never notified."""
    passenger_id: str
    dropoff_location: str
    dropoff_coords: Coordinates
    last_notified: Optional[datetime] = None
    reached: bool = False


class Journey(BaseModel):
    journey_id: str = Field(default_factory=new_id)
    bus_id: str
    status: JourneyStatus = "active"
    direction: Direction = "forward"
    current_location: Coordinates
    last_updated: datetime
    start_time: datetime
    end_time: Optional[datetime] = None
    notifications: List[NotificationEntry] = Field(default_factory=list)


class Bus(BaseModel):
    bus_id: str
    bus_number: str
    route_name: str
    conductor_name: str
    mobile_no: str


class Depot(BaseModel):
    depot_id: str = Field(default_factory=new_id)
    name: str
    location: Coordinates


class RouteStop(BaseModel):
    stop_id: str = Field(default_factory=new_id)
    name: str
    depot_name: str
    location: Coordinates


class Passenger(BaseModel):
    passenger_id: str = Field(default_factory=new_id)
    name: str
    email: str
    phone: str


class Ticket(BaseModel):
    ticket_id: str = Field(default_factory=new_id)
    passenger_id: str
    pnr: str
    ticket_no: str
    pickup: str
    dropoff: str
    travel_date: date
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    bus_id: Optional[str] = None


class EmailJob(BaseModel):
    """A rendered email waiting for delivery (locally or through RabbitMQ)."""
    kind: Literal["arrived", "en_route"]
    passenger_id: str
    to: str
    subject: str
    text: str
    html: Optional[str] = None
    attempt: int = 1


class LocationUpdateResult(BaseModel):
    journey: Journey
    jobs: List[EmailJob] = Field(default_factory=list)
