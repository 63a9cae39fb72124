# api/routes_journey.py
import logging

from fastapi import APIRouter, Depends

from api.deps import get_journey_service
from core.errors import NotFound
from core.response import ok
from models.schemas import JourneyStart, JourneyStop, LocationUpdate
from services.notification_service import notification_service
from tools.geocoder import reverse_geocode

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/location-update")
async def location_update(payload: LocationUpdate, journeys=Depends(get_journey_service)):
    """
    Conductor posts the bus's GPS position.

    Request JSON:
    {"busIdentifier": "KL-11-1234", "lat": 11.2588, "lng": 75.7804}

    Moves the active journey, evaluates passenger notifications and returns
    the updated journey. Emails are handed to the notification service and
    sent after the response; a slow mail server never delays the conductor.

    Errors: 404 journey_not_found (journey not started), 400 invalid_input.
    """
    result = await journeys.update_location(payload.bus_identifier, payload.lat, payload.lng)
    if result.jobs:
        queued = await notification_service.dispatch(result.jobs)
        logger.info("Bus %s: %d notification(s) queued", result.journey.bus_id, queued)
    return ok({"journey": result.journey.model_dump(mode="json")})


@router.post("/journey-start", status_code=201)
async def journey_start(payload: JourneyStart, journeys=Depends(get_journey_service)):
    """
    Start a trip: completes any active journey of the same bus and attaches a
    notification entry for every same-day ticket ending at a registered stop.
    """
    journey = await journeys.start_journey(payload.bus_identifier, payload.lat, payload.lng, payload.direction)
    return ok({
        "journey": journey.model_dump(mode="json"),
        "notifications_created": len(journey.notifications),
    })


@router.post("/journey-stop")
async def journey_stop(payload: JourneyStop, journeys=Depends(get_journey_service)):
    stopped = await journeys.stop_journey(payload.bus_identifier)
    return ok({"message": "Journey stopped", "stopped": stopped})


@router.get("/journey/{identifier}/location")
async def journey_location(identifier: str, journeys=Depends(get_journey_service)):
    """Passenger tracking view: live position, bus details and a readable address."""
    bus = await journeys.resolve_bus(identifier)
    journey = await journeys.get_active_journey(identifier)
    if journey is None:
        details = f"Bus {bus.bus_number} is registered but not active." if bus else "Bus not found."
        raise NotFound("No active journey found", details=details)
    address = await reverse_geocode(journey.current_location.lat, journey.current_location.lng)
    return ok({
        "journey": journey.model_dump(mode="json"),
        "bus": bus.model_dump() if bus else None,
        "address": address,
    })
