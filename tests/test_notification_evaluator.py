import math
from datetime import datetime, timedelta, timezone

import pytest

from models.journey import Coordinates, NotificationEntry
from services.notification_evaluator import (
    ARRIVAL_RADIUS_KM,
    UPDATE_INTERVAL_MINUTES,
    evaluate_notifications,
)
from tools.eta_calculator import EARTH_RADIUS_KM

NOW = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)
DROPOFF = Coordinates(lat=11.25, lng=75.78)
NEARBY = Coordinates(lat=11.252, lng=75.781)  # ~250 m from DROPOFF


def km_north_of(point: Coordinates, km: float) -> Coordinates:
    return Coordinates(lat=point.lat + math.degrees(km / EARTH_RADIUS_KM), lng=point.lng)


def entry(passenger_id="p1", last_notified=None, reached=False, coords=DROPOFF):
    return NotificationEntry(
        passenger_id=passenger_id,
        dropoff_location="Kozhikode KSRTC",
        dropoff_coords=coords,
        last_notified=last_notified,
        reached=reached,
    )


def test_policy_constants():
    assert ARRIVAL_RADIUS_KM == 0.5
    assert UPDATE_INTERVAL_MINUTES == 15


def test_arrival_within_500m_fires_once():
    e = entry(last_notified=NOW - timedelta(minutes=1))
    events = evaluate_notifications(NEARBY, [e], NOW)

    assert [ev.kind for ev in events] == ["arrived"]
    assert e.reached is True
    assert e.last_notified == NOW

    later = NOW + timedelta(minutes=30)
    assert evaluate_notifications(NEARBY, [e], later) == []
    assert e.last_notified == NOW


def test_arrival_takes_precedence_over_periodic_update():
    e = entry(last_notified=NOW - timedelta(hours=2))
    events = evaluate_notifications(NEARBY, [e], NOW)
    assert len(events) == 1
    assert events[0].kind == "arrived"
    assert events[0].eta_minutes is None


def test_en_route_after_fifteen_minutes():
    e = entry(last_notified=NOW - timedelta(minutes=20))
    current = km_north_of(DROPOFF, 5)
    events = evaluate_notifications(current, [e], NOW)

    assert len(events) == 1
    event = events[0]
    assert event.kind == "en_route"
    assert event.distance_km == pytest.approx(5.0, abs=1e-6)
    assert event.eta_minutes == 10
    assert event.location == current
    assert e.last_notified == NOW
    assert e.reached is False


def test_exactly_fifteen_minutes_is_due():
    e = entry(last_notified=NOW - timedelta(minutes=15))
    events = evaluate_notifications(km_north_of(DROPOFF, 5), [e], NOW)
    assert [ev.kind for ev in events] == ["en_route"]


def test_no_update_within_interval():
    last = NOW - timedelta(minutes=5)
    e = entry(last_notified=last)
    events = evaluate_notifications(km_north_of(DROPOFF, 5), [e], NOW)
    assert events == []
    assert e.last_notified == last


def test_never_notified_entry_gets_immediate_update():
    e = entry(last_notified=None)
    events = evaluate_notifications(km_north_of(DROPOFF, 3), [e], NOW)
    assert [ev.kind for ev in events] == ["en_route"]
    assert e.last_notified == NOW


def test_reached_entry_is_never_reevaluated():
    last = NOW - timedelta(days=1)
    e = entry(last_notified=last, reached=True)
    assert evaluate_notifications(NEARBY, [e], NOW) == []
    assert evaluate_notifications(km_north_of(DROPOFF, 40), [e], NOW) == []
    assert e.last_notified == last
    assert e.reached is True


def test_out_of_order_update_does_not_raise():
    # Stored timestamp is in the "future" relative to this update
    future = NOW + timedelta(minutes=10)
    e = entry(last_notified=future)
    assert evaluate_notifications(km_north_of(DROPOFF, 5), [e], NOW) == []
    assert e.last_notified == future


def test_notifier_failure_does_not_stop_other_entries():
    a = entry("a", last_notified=None)
    b = entry("b", last_notified=None)
    seen = []

    def notify(event):
        seen.append(event.passenger_id)
        if event.passenger_id == "a":
            raise RuntimeError("smtp down")

    events = evaluate_notifications(km_north_of(DROPOFF, 5), [a, b], NOW, notify=notify)

    assert seen == ["a", "b"]
    assert [ev.passenger_id for ev in events] == ["a", "b"]
    # the failed entry keeps its new state: notify-once over retry storms
    assert a.last_notified == NOW
    assert b.last_notified == NOW


def test_entries_are_independent():
    first = entry("first", last_notified=NOW - timedelta(minutes=3))
    second = entry("second", last_notified=NOW - timedelta(minutes=3))
    done = entry("done", reached=True)
    due = entry("due", last_notified=NOW - timedelta(minutes=16), coords=km_north_of(DROPOFF, 10))

    events = evaluate_notifications(NEARBY, [first, second, done, due], NOW)
    kinds = {ev.passenger_id: ev.kind for ev in events}
    # "first" and "second" share DROPOFF, so both arrive; "due" is 10 km off
    assert kinds == {"first": "arrived", "second": "arrived", "due": "en_route"}
