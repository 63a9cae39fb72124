"""
Journey service with a SQL backend.

Purpose:
- Same interface as services.journey_service.JourneyService, backed by
  async SQLAlchemy
- Location updates are read-evaluate-write under the per-bus lock AND a
  SELECT ... FOR UPDATE on the journey row, persisted as one UPDATE

Key methods:
- start_journey(identifier, lat, lng, direction): complete old trips, seed notifications
- update_location(identifier, lat, lng): move bus, evaluate notifications
- stop_journey(identifier): complete active trips
- registry helpers for buses, depots, stops, passengers and tickets

Every public method runs in its own `session.begin()` block, so one session
can serve several calls within a request.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from core.errors import Conflict, JourneyNotFound, NotFound
from core.locks import bus_locks
from models import db_models as orm
from models.journey import (
    Bus,
    Coordinates,
    Depot,
    Journey,
    LocationUpdateResult,
    NotificationEntry,
    Passenger,
    RouteStop,
    Ticket,
)
from services.journey_service import (
    apply_location_update,
    clean_identifier,
    jobs_for_events,
    seed_notifications,
    service_date,
    utcnow,
)

logger = logging.getLogger(__name__)


class JourneyDBService:
    """DB-backed journey service using async SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------- BUS -------------
    async def _resolve_bus(self, ident: str) -> Optional[Bus]:
        row = await self._bus_row(ident)
        return self._bus_to_model(row) if row else None

    async def resolve_bus(self, identifier: str) -> Optional[Bus]:
        async with self.session.begin():
            return await self._resolve_bus(identifier.strip())

    async def canonical_bus_id(self, identifier: str) -> str:
        ident = clean_identifier(identifier)
        bus = await self.resolve_bus(ident)
        return bus.bus_id if bus else ident

    async def add_bus(self, bus_id: str, bus_number: str, route_name: str, conductor_name: str, mobile_no: str) -> Bus:
        bus_id = bus_id.strip()
        try:
            async with self.session.begin():
                existing = await self.session.execute(
                    select(orm.Bus.id).where(func.lower(orm.Bus.bus_id) == bus_id.lower())
                )
                if existing.first():
                    raise Conflict(f"Bus ID {bus_id} already exists")
                row = orm.Bus(bus_id=bus_id, bus_number=bus_number, route_name=route_name,
                              conductor_name=conductor_name, mobile_no=mobile_no)
                self.session.add(row)
        except IntegrityError:
            raise Conflict(f"Bus ID {bus_id} already exists")
        logger.info("Registered bus %s (%s)", bus_id, bus_number)
        return self._bus_to_model(row)

    async def list_buses(self) -> List[Bus]:
        async with self.session.begin():
            result = await self.session.execute(select(orm.Bus).order_by(orm.Bus.created_at.desc()))
            return [self._bus_to_model(b) for b in result.scalars().all()]

    async def _bus_row(self, ident: str) -> Optional[orm.Bus]:
        result = await self.session.execute(
            select(orm.Bus).where(or_(func.lower(orm.Bus.bus_id) == ident.lower(), orm.Bus.mobile_no == ident)).limit(1)
        )
        return result.scalar_one_or_none()

    async def update_bus(self, identifier: str, bus_id: str, bus_number: str, route_name: str,
                         conductor_name: str, mobile_no: str) -> Bus:
        bus_id = bus_id.strip()
        try:
            async with self.session.begin():
                row = await self._bus_row(identifier.strip())
                if row is None:
                    raise NotFound("Bus not found")
                if bus_id.lower() != row.bus_id.lower():
                    taken = await self.session.execute(
                        select(orm.Bus.id).where(func.lower(orm.Bus.bus_id) == bus_id.lower())
                    )
                    if taken.first():
                        raise Conflict(f"Bus ID {bus_id} already exists")
                previous = row.bus_id
                row.bus_id = bus_id
                row.bus_number = bus_number
                row.route_name = route_name
                row.conductor_name = conductor_name
                row.mobile_no = mobile_no
        except IntegrityError:
            raise Conflict(f"Bus ID {bus_id} already exists")
        logger.info("Updated bus %s -> %s", previous, bus_id)
        return self._bus_to_model(row)

    async def delete_bus(self, identifier: str) -> None:
        async with self.session.begin():
            row = await self._bus_row(identifier.strip())
            if row is None:
                raise NotFound("Bus not found")
            bus_id = row.bus_id
            await self.session.delete(row)
        logger.info("Deleted bus %s", bus_id)

    # ------------- DEPOTS -------------
    async def _depot_row(self, depot_id: str) -> Optional[orm.Depot]:
        result = await self.session.execute(select(orm.Depot).where(orm.Depot.depot_id == depot_id))
        return result.scalar_one_or_none()

    async def _depot_name_taken(self, name: str, exclude: Optional[str] = None) -> bool:
        stmt = select(orm.Depot.id).where(func.lower(orm.Depot.name) == name.strip().lower())
        if exclude:
            stmt = stmt.where(orm.Depot.depot_id != exclude)
        return (await self.session.execute(stmt)).first() is not None

    async def add_depot(self, name: str, location: Coordinates) -> Depot:
        depot = Depot(name=name, location=location)
        try:
            async with self.session.begin():
                if await self._depot_name_taken(name):
                    raise Conflict(f"Depot {name} already exists")
                self.session.add(orm.Depot(depot_id=depot.depot_id, name=name, lat=location.lat, lng=location.lng))
        except IntegrityError:
            raise Conflict(f"Depot {name} already exists")
        return depot

    async def list_depots(self) -> List[Depot]:
        async with self.session.begin():
            result = await self.session.execute(select(orm.Depot).order_by(orm.Depot.name))
            return [self._depot_to_model(d) for d in result.scalars().all()]

    async def update_depot(self, depot_id: str, name: str, location: Coordinates) -> Depot:
        try:
            async with self.session.begin():
                row = await self._depot_row(depot_id)
                if row is None:
                    raise NotFound("Depot not found")
                if await self._depot_name_taken(name, exclude=depot_id):
                    raise Conflict(f"Depot {name} already exists")
                row.name = name
                row.lat = location.lat
                row.lng = location.lng
        except IntegrityError:
            raise Conflict(f"Depot {name} already exists")
        return self._depot_to_model(row)

    async def delete_depot(self, depot_id: str) -> None:
        async with self.session.begin():
            row = await self._depot_row(depot_id)
            if row is None:
                raise NotFound("Depot not found")
            await self.session.delete(row)

    # ------------- ROUTE STOPS -------------
    async def _stop_row(self, stop_id: str) -> Optional[orm.RouteStop]:
        result = await self.session.execute(select(orm.RouteStop).where(orm.RouteStop.stop_id == stop_id))
        return result.scalar_one_or_none()

    async def update_route_stop(self, stop_id: str, name: str, depot_name: str, location: Coordinates) -> RouteStop:
        async with self.session.begin():
            row = await self._stop_row(stop_id)
            if row is None:
                raise NotFound("Route stop not found")
            row.name = name
            row.depot_name = depot_name
            row.lat = location.lat
            row.lng = location.lng
        return self._stop_to_model(row)

    async def delete_route_stop(self, stop_id: str) -> None:
        async with self.session.begin():
            row = await self._stop_row(stop_id)
            if row is None:
                raise NotFound("Route stop not found")
            await self.session.delete(row)

    async def _route_stops(self, depot: Optional[str] = None) -> List[RouteStop]:
        stmt = select(orm.RouteStop).order_by(orm.RouteStop.name)
        if depot:
            stmt = stmt.where(orm.RouteStop.depot_name == depot)
        result = await self.session.execute(stmt)
        return [self._stop_to_model(s) for s in result.scalars().all()]

    async def add_route_stop(self, name: str, depot_name: str, location: Coordinates) -> RouteStop:
        stop = RouteStop(name=name, depot_name=depot_name, location=location)
        async with self.session.begin():
            self.session.add(orm.RouteStop(stop_id=stop.stop_id, name=name, depot_name=depot_name,
                                           lat=location.lat, lng=location.lng))
        return stop

    async def list_route_stops(self, depot: Optional[str] = None) -> List[RouteStop]:
        async with self.session.begin():
            return await self._route_stops(depot)

    # ------------- PASSENGERS / TICKETS -------------
    async def _passenger(self, passenger_id: str) -> Optional[Passenger]:
        result = await self.session.execute(select(orm.Passenger).where(orm.Passenger.passenger_id == passenger_id))
        row = result.scalar_one_or_none()
        return self._passenger_to_model(row) if row else None

    async def add_passenger(self, name: str, email: str, phone: str) -> Passenger:
        passenger = Passenger(name=name, email=email, phone=phone)
        try:
            async with self.session.begin():
                existing = await self.session.execute(
                    select(orm.Passenger.id).where(func.lower(orm.Passenger.email) == email.lower())
                )
                if existing.first():
                    raise Conflict("A passenger with this email already exists")
                self.session.add(orm.Passenger(passenger_id=passenger.passenger_id, name=name, email=email, phone=phone))
        except IntegrityError:
            raise Conflict("A passenger with this email already exists")
        return passenger

    async def get_passenger(self, passenger_id: str) -> Optional[Passenger]:
        async with self.session.begin():
            return await self._passenger(passenger_id)

    async def add_ticket(self, passenger_id: str, **fields) -> Ticket:
        ticket = Ticket(passenger_id=passenger_id, **fields)
        async with self.session.begin():
            if await self._passenger(passenger_id) is None:
                raise NotFound(f"Passenger {passenger_id} not found")
            self.session.add(orm.Ticket(**ticket.model_dump()))
        return ticket

    async def list_tickets(self, passenger_id: str) -> List[Ticket]:
        async with self.session.begin():
            result = await self.session.execute(
                select(orm.Ticket).where(orm.Ticket.passenger_id == passenger_id).order_by(orm.Ticket.travel_date.desc())
            )
            return [self._ticket_to_model(t) for t in result.scalars().all()]

    # ------------- JOURNEYS -------------
    def _active_stmt(self, bus_id: str):
        return (
            select(orm.Journey)
            .where(func.lower(orm.Journey.bus_id) == bus_id.lower())
            .where(orm.Journey.status == "active")
            .order_by(orm.Journey.last_updated.desc())
        )

    async def start_journey(self, identifier: str, lat, lng, direction: Optional[str] = None,
                            now: Optional[datetime] = None) -> Journey:
        location = Coordinates.parse(lat, lng)
        bus_id = await self.canonical_bus_id(identifier)
        now = now or utcnow()
        async with bus_locks.hold(bus_id):
            async with self.session.begin():
                result = await self.session.execute(self._active_stmt(bus_id).with_for_update())
                for previous in result.scalars().all():
                    previous.status = "completed"
                    previous.end_time = now
                    logger.info("Completed stale journey %s for bus %s", previous.journey_id, bus_id)

                today = service_date(now)
                tickets = await self.session.execute(select(orm.Ticket).where(orm.Ticket.travel_date == today))
                entries = seed_notifications(
                    [self._ticket_to_model(t) for t in tickets.scalars().all()],
                    await self._route_stops(),
                    bus_id,
                    today,
                )
                journey = Journey(
                    bus_id=bus_id,
                    direction=direction or "forward",
                    current_location=location,
                    last_updated=now,
                    start_time=now,
                    notifications=entries,
                )
                self.session.add(orm.Journey(
                    journey_id=journey.journey_id,
                    bus_id=bus_id,
                    status="active",
                    direction=journey.direction,
                    lat=location.lat,
                    lng=location.lng,
                    last_updated=now,
                    start_time=now,
                    notifications=self._dump_entries(entries),
                ))
        logger.info("Journey %s started for bus %s with %d notification(s)", journey.journey_id, bus_id, len(entries))
        return journey

    async def update_location(self, identifier: str, lat, lng, now: Optional[datetime] = None) -> LocationUpdateResult:
        location = Coordinates.parse(lat, lng)
        ident = clean_identifier(identifier)
        bus = await self.resolve_bus(ident)
        bus_id = bus.bus_id if bus else ident
        now = now or utcnow()
        journey: Optional[Journey] = None
        async with bus_locks.hold(bus_id):
            try:
                async with self.session.begin():
                    result = await self.session.execute(self._active_stmt(bus_id).limit(1).with_for_update())
                    row = result.scalar_one_or_none()
                    if row is None:
                        raise JourneyNotFound(ident)
                    journey = self._journey_to_model(row)
                    events = apply_location_update(journey, location, now)

                    row.lat = location.lat
                    row.lng = location.lng
                    row.last_updated = now
                    # Reassign a new list: JSON columns only track replacement
                    row.notifications = self._dump_entries(journey.notifications)

                    passengers = {}
                    for event in events:
                        if event.passenger_id not in passengers:
                            passengers[event.passenger_id] = await self._passenger(event.passenger_id)
            except JourneyNotFound:
                raise
            except Exception:
                logger.exception(
                    "Failed to persist location update for bus %s; evaluated notifications were: %s",
                    bus_id, self._dump_entries(journey.notifications) if journey else None,
                )
                raise
        jobs = jobs_for_events(events, passengers.get, bus.bus_number if bus else bus_id)
        return LocationUpdateResult(journey=journey, jobs=jobs)

    async def stop_journey(self, identifier: str, now: Optional[datetime] = None) -> int:
        bus_id = await self.canonical_bus_id(identifier)
        now = now or utcnow()
        async with bus_locks.hold(bus_id):
            async with self.session.begin():
                result = await self.session.execute(self._active_stmt(bus_id).with_for_update())
                rows = result.scalars().all()
                for row in rows:
                    row.status = "completed"
                    row.end_time = now
        logger.info("Stopped %d journey(s) for bus %s", len(rows), bus_id)
        return len(rows)

    async def get_active_journey(self, identifier: str) -> Optional[Journey]:
        bus_id = await self.canonical_bus_id(identifier)
        async with self.session.begin():
            result = await self.session.execute(self._active_stmt(bus_id).limit(1))
            row = result.scalar_one_or_none()
            return self._journey_to_model(row) if row else None

    async def list_active_journeys(self) -> List[Journey]:
        async with self.session.begin():
            result = await self.session.execute(
                select(orm.Journey).where(orm.Journey.status == "active").order_by(orm.Journey.last_updated.desc())
            )
            return [self._journey_to_model(j) for j in result.scalars().all()]

    # ------------- CONVERSION -------------
    @staticmethod
    def _dump_entries(entries: List[NotificationEntry]) -> list:
        return [e.model_dump(mode="json") for e in entries]

    @staticmethod
    def _journey_to_model(row: orm.Journey) -> Journey:
        """Convert Journey ORM row to the domain model."""
        return Journey(
            journey_id=row.journey_id,
            bus_id=row.bus_id,
            status=row.status,
            direction=row.direction,
            current_location=Coordinates(lat=row.lat, lng=row.lng),
            last_updated=row.last_updated,
            start_time=row.start_time,
            end_time=row.end_time,
            notifications=[NotificationEntry.model_validate(e) for e in (row.notifications or [])],
        )

    @staticmethod
    def _bus_to_model(row: orm.Bus) -> Bus:
        return Bus(bus_id=row.bus_id, bus_number=row.bus_number, route_name=row.route_name,
                   conductor_name=row.conductor_name, mobile_no=row.mobile_no)

    @staticmethod
    def _depot_to_model(row: orm.Depot) -> Depot:
        return Depot(depot_id=row.depot_id, name=row.name, location=Coordinates(lat=row.lat, lng=row.lng))

    @staticmethod
    def _stop_to_model(row: orm.RouteStop) -> RouteStop:
        return RouteStop(stop_id=row.stop_id, name=row.name, depot_name=row.depot_name,
                         location=Coordinates(lat=row.lat, lng=row.lng))

    @staticmethod
    def _passenger_to_model(row: orm.Passenger) -> Passenger:
        return Passenger(passenger_id=row.passenger_id, name=row.name, email=row.email, phone=row.phone)

    @staticmethod
    def _ticket_to_model(row: orm.Ticket) -> Ticket:
        return Ticket(
            ticket_id=row.ticket_id, passenger_id=row.passenger_id, pnr=row.pnr, ticket_no=row.ticket_no,
            pickup=row.pickup, dropoff=row.dropoff, travel_date=row.travel_date,
            start_time=row.start_time, end_time=row.end_time, bus_id=row.bus_id,
        )
