from datetime import date
from typing import Optional, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Conductor apps send busId, older clients bus_id
BUS_IDENTIFIER = AliasChoices("busIdentifier", "busId", "bus_id")
EMAIL_PATTERN = r"^[\w.+-]+@[\w-]+(\.[\w-]+)*\.\w{2,}$"


class RequestModel(BaseModel):
    """Accept both snake_case and camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


class CoordinatesIn(BaseModel):
    lat: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    lng: float = Field(..., ge=-180, le=180, allow_inf_nan=False)


class LocationUpdate(RequestModel):
    bus_identifier: str = Field(..., min_length=1, validation_alias=BUS_IDENTIFIER)
    lat: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    lng: float = Field(..., ge=-180, le=180, allow_inf_nan=False)


class JourneyStart(LocationUpdate):
    direction: Optional[Literal["forward", "return"]] = None


class JourneyStop(RequestModel):
    bus_identifier: str = Field(..., min_length=1, validation_alias=BUS_IDENTIFIER)


class BusCreate(RequestModel):
    bus_id: str = Field(..., min_length=1)
    bus_number: str = Field(..., min_length=1)
    route_name: str = Field(..., min_length=1)
    conductor_name: str = Field(..., min_length=1)
    mobile_no: str = Field(..., min_length=1)


class RouteStopCreate(RequestModel):
    name: str = Field(..., min_length=1)
    depot_name: str = Field(..., min_length=1, validation_alias=AliasChoices("depotName", "depoName", "depot_name"))
    location: CoordinatesIn


class PassengerCreate(RequestModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., pattern=EMAIL_PATTERN)
    phone: str = Field(..., min_length=5)


class TicketCreate(RequestModel):
    passenger_id: str = Field(..., min_length=1)
    pnr: str = Field(..., min_length=1)
    ticket_no: str = Field(..., min_length=1)
    pickup: str = Field(..., min_length=1)
    dropoff: str = Field(..., min_length=1)
    travel_date: date
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    bus_id: Optional[str] = None


class DepotCreate(RequestModel):
    name: str = Field(..., min_length=1)
    location: CoordinatesIn
