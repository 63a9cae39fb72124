# api/routes_passenger.py
from fastapi import APIRouter, Depends

from api.deps import get_journey_service
from core.errors import NotFound
from core.response import ok
from models.schemas import PassengerCreate, TicketCreate

router = APIRouter()


@router.post("/register", status_code=201)
async def register(payload: PassengerCreate, journeys=Depends(get_journey_service)):
    passenger = await journeys.add_passenger(payload.name, payload.email, payload.phone)
    return ok(passenger.model_dump())


@router.post("/tickets", status_code=201)
async def save_ticket(payload: TicketCreate, journeys=Depends(get_journey_service)):
    """
    Save a ticket. Tickets travelling today are picked up by the next
    journey-start of a matching bus.
    """
    fields = payload.model_dump()
    passenger_id = fields.pop("passenger_id")
    ticket = await journeys.add_ticket(passenger_id, **fields)
    return ok(ticket.model_dump(mode="json"))


@router.get("/{passenger_id}/tickets")
async def list_tickets(passenger_id: str, journeys=Depends(get_journey_service)):
    if await journeys.get_passenger(passenger_id) is None:
        raise NotFound(f"Passenger {passenger_id} not found")
    tickets = await journeys.list_tickets(passenger_id)
    return ok([t.model_dump(mode="json") for t in tickets])


@router.get("/{passenger_id}")
async def profile(passenger_id: str, journeys=Depends(get_journey_service)):
    """Passenger profile with ticket history, newest travel date first."""
    passenger = await journeys.get_passenger(passenger_id)
    if passenger is None:
        raise NotFound("Passenger not found")
    tickets = await journeys.list_tickets(passenger_id)
    return ok({
        "passenger": passenger.model_dump(),
        "tickets": [t.model_dump(mode="json") for t in tickets],
    })
