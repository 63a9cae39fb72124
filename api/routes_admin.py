from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_journey_service
from core.errors import NotFound
from core.response import ok
from models.journey import Coordinates
from models.schemas import BusCreate, DepotCreate, RouteStopCreate
from tools.geocoder import search_places

router = APIRouter()


@router.post("/buses", status_code=201)
async def create_bus(payload: BusCreate, journeys=Depends(get_journey_service)):
    """
    Register a bus.

    Request JSON:
    {"busId": "KL-11-1234", "busNumber": "KL 11 AB 1234", "routeName": "Kozhikode - Kannur",
     "conductorName": "Ravi", "mobileNo": "9876543210"}

    409 when the bus id is already registered (case-insensitive).
    """
    bus = await journeys.add_bus(**payload.model_dump())
    return ok(bus.model_dump())


@router.get("/buses")
async def list_buses(journeys=Depends(get_journey_service)):
    buses = await journeys.list_buses()
    return ok([b.model_dump() for b in buses])


@router.put("/buses/{identifier}")
async def update_bus(identifier: str, payload: BusCreate, journeys=Depends(get_journey_service)):
    """Replace a bus's details. The bus id may be changed to one not already in use."""
    bus = await journeys.update_bus(identifier, **payload.model_dump())
    return ok(bus.model_dump())


@router.delete("/buses/{identifier}")
async def delete_bus(identifier: str, journeys=Depends(get_journey_service)):
    await journeys.delete_bus(identifier)
    return ok({"message": "Bus deleted successfully"})


@router.post("/depots", status_code=201)
async def create_depot(payload: DepotCreate, journeys=Depends(get_journey_service)):
    location = Coordinates(lat=payload.location.lat, lng=payload.location.lng)
    depot = await journeys.add_depot(payload.name, location)
    return ok(depot.model_dump())


@router.get("/depots")
async def list_depots(journeys=Depends(get_journey_service)):
    depots = await journeys.list_depots()
    return ok([d.model_dump() for d in depots])


@router.put("/depots/{depot_id}")
async def update_depot(depot_id: str, payload: DepotCreate, journeys=Depends(get_journey_service)):
    location = Coordinates(lat=payload.location.lat, lng=payload.location.lng)
    depot = await journeys.update_depot(depot_id, payload.name, location)
    return ok(depot.model_dump())


@router.delete("/depots/{depot_id}")
async def delete_depot(depot_id: str, journeys=Depends(get_journey_service)):
    await journeys.delete_depot(depot_id)
    return ok({"message": "Depot deleted successfully"})


@router.post("/route-stops", status_code=201)
async def create_route_stop(payload: RouteStopCreate, journeys=Depends(get_journey_service)):
    """Register a stop. Ticket drop-offs are matched to stops by name."""
    location = Coordinates(lat=payload.location.lat, lng=payload.location.lng)
    stop = await journeys.add_route_stop(payload.name, payload.depot_name, location)
    return ok(stop.model_dump())


@router.get("/route-stops")
async def list_route_stops(depot: Optional[str] = None, journeys=Depends(get_journey_service)):
    stops = await journeys.list_route_stops(depot)
    return ok([s.model_dump() for s in stops])


@router.put("/route-stops/{stop_id}")
async def update_route_stop(stop_id: str, payload: RouteStopCreate, journeys=Depends(get_journey_service)):
    """Active journeys keep the drop-off coordinates they were started with."""
    location = Coordinates(lat=payload.location.lat, lng=payload.location.lng)
    stop = await journeys.update_route_stop(stop_id, payload.name, payload.depot_name, location)
    return ok(stop.model_dump())


@router.delete("/route-stops/{stop_id}")
async def delete_route_stop(stop_id: str, journeys=Depends(get_journey_service)):
    await journeys.delete_route_stop(stop_id)
    return ok({"message": "Route stop deleted successfully"})


@router.get("/journeys")
async def active_journeys(journeys=Depends(get_journey_service)):
    """All active journeys, most recently updated first."""
    active = await journeys.list_active_journeys()
    active.sort(key=lambda j: j.last_updated, reverse=True)
    return ok([j.model_dump(mode="json") for j in active])


@router.get("/geocode/search")
async def geocode_search(q: str = Query(..., min_length=1)):
    """Server-side Nominatim search for the stop picker."""
    return ok(await search_places(q))


bus_router = APIRouter()


@bus_router.get("/bus/{identifier}")
async def check_bus(identifier: str, journeys=Depends(get_journey_service)):
    """Look a bus up by id or conductor mobile number."""
    bus = await journeys.resolve_bus(identifier)
    if bus is None:
        raise NotFound("Bus not registered")
    return ok(bus.model_dump())
