# services/notification_evaluator.py
"""
Decide which passengers to notify on a location update.

Evaluation only happens when a conductor posts a location; there is no
timer. A journey that stops reporting stops notifying.

Per entry (in list order):
- reached -> skipped, forever
- within ARRIVAL_RADIUS_KM of the drop-off -> "arrived", entry marked reached
- otherwise, UPDATE_INTERVAL_MINUTES or more since the last message -> "en_route"
- otherwise nothing
"""
import logging
from datetime import datetime
from typing import Callable, Iterable, List, Literal, Optional

from pydantic import BaseModel

from models.journey import Coordinates, NotificationEntry
from tools.eta_calculator import estimate_eta_minutes, great_circle_distance_km

logger = logging.getLogger(__name__)

ARRIVAL_RADIUS_KM = 0.5
UPDATE_INTERVAL_MINUTES = 15


class NotificationEvent(BaseModel):
    kind: Literal["arrived", "en_route"]
    passenger_id: str
    dropoff_location: str
    distance_km: float
    eta_minutes: Optional[int] = None
    location: Coordinates


def minutes_since(then: Optional[datetime], now: datetime) -> float:
    if then is None:
        return float("inf")
    return (now - then).total_seconds() / 60.0


def evaluate_entry(current: Coordinates, entry: NotificationEntry, now: datetime) -> Optional[NotificationEvent]:
    """Apply the arrival and periodic rules to one entry, mutating it in place."""
    if entry.reached:
        return None

    distance_km = great_circle_distance_km(
        current.lat, current.lng, entry.dropoff_coords.lat, entry.dropoff_coords.lng
    )

    if distance_km < ARRIVAL_RADIUS_KM:
        entry.reached = True
        entry.last_notified = now
        return NotificationEvent(
            kind="arrived",
            passenger_id=entry.passenger_id,
            dropoff_location=entry.dropoff_location,
            distance_km=distance_km,
            location=current,
        )

    # An out-of-order update can make this negative; that just means "not yet".
    if minutes_since(entry.last_notified, now) >= UPDATE_INTERVAL_MINUTES:
        entry.last_notified = now
        return NotificationEvent(
            kind="en_route",
            passenger_id=entry.passenger_id,
            dropoff_location=entry.dropoff_location,
            distance_km=distance_km,
            eta_minutes=estimate_eta_minutes(distance_km),
            location=current,
        )
    return None


def evaluate_notifications(
    current: Coordinates,
    entries: Iterable[NotificationEntry],
    now: datetime,
    notify: Optional[Callable[[NotificationEvent], object]] = None,
) -> List[NotificationEvent]:
    """
    Evaluate every entry and return the events that fired.

    `notify` is called once per event as it fires. A failing callback is
    logged and does not stop the remaining entries; the entry's new state
    stands either way.

    The journey services leave `notify` unset: they persist first and then
    turn the returned events into email jobs, each delivered by its own task
    or queue message (services.notification_service), so one failed mail
    cannot affect another passenger or the saved journey.
    """
    events: List[NotificationEvent] = []
    for entry in entries:
        event = evaluate_entry(current, entry, now)
        if event is None:
            continue
        events.append(event)
        if notify is None:
            continue
        try:
            notify(event)
        except Exception:
            logger.exception(
                "Notifier failed for passenger=%s (%s); continuing", event.passenger_id, event.kind
            )
    return events
