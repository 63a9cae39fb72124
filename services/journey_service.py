# services/journey_service.py
"""
Journey store (in-memory) plus the rules shared with JourneyDBService.

The in-memory service backs the API when USE_DB is off (local dev, tests).
It keeps the same async interface as services.journey_db_service so routes
do not care which one they got.
"""
import logging
from datetime import date, datetime, timezone
from typing import Callable, Iterable, List, Optional
from zoneinfo import ZoneInfo

from config.settings import settings
from core.errors import Conflict, InvalidInput, JourneyNotFound, NotFound
from core.locks import bus_locks
from models.journey import (
    Bus,
    Coordinates,
    Depot,
    EmailJob,
    Journey,
    LocationUpdateResult,
    NotificationEntry,
    Passenger,
    RouteStop,
    Ticket,
)
from services.notification_evaluator import NotificationEvent, evaluate_notifications
from services.notification_service import build_job

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clean_identifier(identifier: Optional[str]) -> str:
    ident = (identifier or "").strip()
    if not ident:
        raise InvalidInput("busIdentifier is required")
    return ident


def service_date(now: Optional[datetime] = None) -> date:
    """Today's date where the buses run; tickets are matched against it."""
    zone = ZoneInfo(settings.SERVICE_TIMEZONE)
    return (now or utcnow()).astimezone(zone).date()


def normalize_name(name: str) -> str:
    return " ".join(name.split()).lower()


def seed_notifications(
    tickets: Iterable[Ticket], stops: Iterable[RouteStop], bus_id: str, today: date
) -> List[NotificationEntry]:
    """
    One entry per same-day ticket whose drop-off is a registered stop.

    Tickets that name a bus only count for that bus; tickets without one
    count for any bus running today.
    """
    stops_by_name = {}
    for stop in stops:
        stops_by_name.setdefault(normalize_name(stop.name), stop)

    entries = []
    for ticket in tickets:
        if ticket.travel_date != today:
            continue
        if ticket.bus_id and ticket.bus_id.strip().lower() != bus_id.lower():
            continue
        stop = stops_by_name.get(normalize_name(ticket.dropoff))
        if stop is None:
            logger.debug("Ticket %s drop-off %r is not a registered stop", ticket.ticket_id, ticket.dropoff)
            continue
        entries.append(NotificationEntry(
            passenger_id=ticket.passenger_id,
            dropoff_location=stop.name,
            dropoff_coords=stop.location,
        ))
    return entries


def apply_location_update(journey: Journey, location: Coordinates, now: datetime) -> List[NotificationEvent]:
    """Move the journey and evaluate its notification entries in place."""
    journey.current_location = location
    journey.last_updated = now
    return evaluate_notifications(location, journey.notifications, now)


def jobs_for_events(
    events: Iterable[NotificationEvent],
    find_passenger: Callable[[str], Optional[Passenger]],
    bus_number: str,
) -> List[EmailJob]:
    jobs = []
    for event in events:
        passenger = find_passenger(event.passenger_id)
        if passenger is None or not passenger.email:
            logger.warning("No email for passenger %s; %s notification dropped", event.passenger_id, event.kind)
            continue
        jobs.append(build_job(event, passenger.email, bus_number))
    return jobs


class JourneyService:
    def __init__(self):
        self.buses: dict[str, Bus] = {}  # lower-cased bus_id -> Bus
        self.depots: dict[str, Depot] = {}
        self.route_stops: dict[str, RouteStop] = {}
        self.passengers: dict[str, Passenger] = {}
        self.tickets: dict[str, Ticket] = {}
        self.journeys: dict[str, Journey] = {}

    # ------------- BUS -------------
    async def resolve_bus(self, identifier: str) -> Optional[Bus]:
        """Match a bus id (case-insensitive) or the conductor's mobile number."""
        ident = identifier.strip()
        bus = self.buses.get(ident.lower())
        if bus is None:
            bus = next((b for b in self.buses.values() if b.mobile_no == ident), None)
        return bus.model_copy() if bus else None

    async def canonical_bus_id(self, identifier: str) -> str:
        ident = clean_identifier(identifier)
        bus = await self.resolve_bus(ident)
        return bus.bus_id if bus else ident

    async def add_bus(self, bus_id: str, bus_number: str, route_name: str, conductor_name: str, mobile_no: str) -> Bus:
        key = bus_id.strip().lower()
        if key in self.buses:
            raise Conflict(f"Bus ID {bus_id} already exists")
        bus = Bus(bus_id=bus_id.strip(), bus_number=bus_number, route_name=route_name,
                  conductor_name=conductor_name, mobile_no=mobile_no)
        self.buses[key] = bus
        logger.info("Registered bus %s (%s)", bus.bus_id, bus.bus_number)
        return bus.model_copy()

    async def list_buses(self) -> List[Bus]:
        return [b.model_copy() for b in self.buses.values()]

    async def update_bus(self, identifier: str, bus_id: str, bus_number: str, route_name: str,
                         conductor_name: str, mobile_no: str) -> Bus:
        """Replace a bus's details; the bus id itself may change if the new one is free."""
        current = await self.resolve_bus(identifier)
        if current is None:
            raise NotFound("Bus not found")
        new_key = bus_id.strip().lower()
        if new_key != current.bus_id.lower() and new_key in self.buses:
            raise Conflict(f"Bus ID {bus_id} already exists")
        del self.buses[current.bus_id.lower()]
        bus = Bus(bus_id=bus_id.strip(), bus_number=bus_number, route_name=route_name,
                  conductor_name=conductor_name, mobile_no=mobile_no)
        self.buses[new_key] = bus
        logger.info("Updated bus %s -> %s", current.bus_id, bus.bus_id)
        return bus.model_copy()

    async def delete_bus(self, identifier: str) -> None:
        bus = await self.resolve_bus(identifier)
        if bus is None:
            raise NotFound("Bus not found")
        del self.buses[bus.bus_id.lower()]
        logger.info("Deleted bus %s", bus.bus_id)

    # ------------- DEPOTS -------------
    def _depot_name_taken(self, name: str, exclude: Optional[str] = None) -> bool:
        key = name.strip().lower()
        return any(d.name.strip().lower() == key for d in self.depots.values() if d.depot_id != exclude)

    async def add_depot(self, name: str, location: Coordinates) -> Depot:
        if self._depot_name_taken(name):
            raise Conflict(f"Depot {name} already exists")
        depot = Depot(name=name, location=location)
        self.depots[depot.depot_id] = depot
        return depot.model_copy()

    async def list_depots(self) -> List[Depot]:
        return sorted((d.model_copy() for d in self.depots.values()), key=lambda d: d.name)

    async def update_depot(self, depot_id: str, name: str, location: Coordinates) -> Depot:
        if depot_id not in self.depots:
            raise NotFound("Depot not found")
        if self._depot_name_taken(name, exclude=depot_id):
            raise Conflict(f"Depot {name} already exists")
        depot = Depot(depot_id=depot_id, name=name, location=location)
        self.depots[depot_id] = depot
        return depot.model_copy()

    async def delete_depot(self, depot_id: str) -> None:
        if self.depots.pop(depot_id, None) is None:
            raise NotFound("Depot not found")

    # ------------- ROUTE STOPS -------------
    async def add_route_stop(self, name: str, depot_name: str, location: Coordinates) -> RouteStop:
        stop = RouteStop(name=name, depot_name=depot_name, location=location)
        self.route_stops[stop.stop_id] = stop
        return stop.model_copy()

    async def list_route_stops(self, depot: Optional[str] = None) -> List[RouteStop]:
        stops = [s for s in self.route_stops.values() if depot is None or s.depot_name == depot]
        return sorted((s.model_copy() for s in stops), key=lambda s: s.name)

    async def update_route_stop(self, stop_id: str, name: str, depot_name: str, location: Coordinates) -> RouteStop:
        """Journeys already running keep the coordinates they were seeded with."""
        if stop_id not in self.route_stops:
            raise NotFound("Route stop not found")
        stop = RouteStop(stop_id=stop_id, name=name, depot_name=depot_name, location=location)
        self.route_stops[stop_id] = stop
        return stop.model_copy()

    async def delete_route_stop(self, stop_id: str) -> None:
        if self.route_stops.pop(stop_id, None) is None:
            raise NotFound("Route stop not found")

    # ------------- PASSENGERS / TICKETS -------------
    async def add_passenger(self, name: str, email: str, phone: str) -> Passenger:
        if any(p.email.lower() == email.lower() for p in self.passengers.values()):
            raise Conflict("A passenger with this email already exists")
        passenger = Passenger(name=name, email=email, phone=phone)
        self.passengers[passenger.passenger_id] = passenger
        return passenger.model_copy()

    async def get_passenger(self, passenger_id: str) -> Optional[Passenger]:
        passenger = self.passengers.get(passenger_id)
        return passenger.model_copy() if passenger else None

    async def add_ticket(self, passenger_id: str, **fields) -> Ticket:
        if passenger_id not in self.passengers:
            raise NotFound(f"Passenger {passenger_id} not found")
        ticket = Ticket(passenger_id=passenger_id, **fields)
        self.tickets[ticket.ticket_id] = ticket
        return ticket.model_copy()

    async def list_tickets(self, passenger_id: str) -> List[Ticket]:
        tickets = [t for t in self.tickets.values() if t.passenger_id == passenger_id]
        return sorted((t.model_copy() for t in tickets), key=lambda t: t.travel_date, reverse=True)

    # ------------- JOURNEYS -------------
    def _active(self, bus_id: str) -> List[Journey]:
        key = bus_id.lower()
        return [j for j in self.journeys.values() if j.status == "active" and j.bus_id.lower() == key]

    async def start_journey(self, identifier: str, lat, lng, direction: Optional[str] = None,
                            now: Optional[datetime] = None) -> Journey:
        location = Coordinates.parse(lat, lng)
        bus_id = await self.canonical_bus_id(identifier)
        now = now or utcnow()
        async with bus_locks.hold(bus_id):
            for previous in self._active(bus_id):
                previous.status = "completed"
                previous.end_time = now
                logger.info("Completed stale journey %s for bus %s", previous.journey_id, bus_id)
            entries = seed_notifications(self.tickets.values(), self.route_stops.values(), bus_id, service_date(now))
            journey = Journey(
                bus_id=bus_id,
                direction=direction or "forward",
                current_location=location,
                last_updated=now,
                start_time=now,
                notifications=entries,
            )
            self.journeys[journey.journey_id] = journey
        logger.info("Journey %s started for bus %s with %d notification(s)", journey.journey_id, bus_id, len(entries))
        return journey.model_copy(deep=True)

    async def update_location(self, identifier: str, lat, lng, now: Optional[datetime] = None) -> LocationUpdateResult:
        location = Coordinates.parse(lat, lng)
        ident = clean_identifier(identifier)
        bus = await self.resolve_bus(ident)
        bus_id = bus.bus_id if bus else ident
        now = now or utcnow()
        async with bus_locks.hold(bus_id):
            active = sorted(self._active(bus_id), key=lambda j: j.last_updated, reverse=True)
            if not active:
                raise JourneyNotFound(ident)
            # Evaluate on a copy and swap it in, so a failure leaves the stored journey untouched
            journey = active[0].model_copy(deep=True)
            events = apply_location_update(journey, location, now)
            self.journeys[journey.journey_id] = journey
        jobs = jobs_for_events(events, self.passengers.get, bus.bus_number if bus else bus_id)
        return LocationUpdateResult(journey=journey.model_copy(deep=True), jobs=jobs)

    async def stop_journey(self, identifier: str, now: Optional[datetime] = None) -> int:
        bus_id = await self.canonical_bus_id(identifier)
        now = now or utcnow()
        async with bus_locks.hold(bus_id):
            active = self._active(bus_id)
            for journey in active:
                journey.status = "completed"
                journey.end_time = now
        logger.info("Stopped %d journey(s) for bus %s", len(active), bus_id)
        return len(active)

    async def get_active_journey(self, identifier: str) -> Optional[Journey]:
        bus_id = await self.canonical_bus_id(identifier)
        active = sorted(self._active(bus_id), key=lambda j: j.last_updated, reverse=True)
        return active[0].model_copy(deep=True) if active else None

    async def list_active_journeys(self) -> List[Journey]:
        return [j.model_copy(deep=True) for j in self.journeys.values() if j.status == "active"]

    def reset(self):
        self.buses.clear()
        self.depots.clear()
        self.route_stops.clear()
        self.passengers.clear()
        self.tickets.clear()
        self.journeys.clear()

# singleton
journey_service = JourneyService()
