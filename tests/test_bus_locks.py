import asyncio

import pytest

from core.locks import bus_locks, lock_key
from models.journey import Coordinates
from services.journey_service import journey_service, service_date


def test_lock_key_ignores_case_and_padding():
    assert lock_key(" KL-11-1234 ") == lock_key("kl-11-1234")


async def critical_section(bus_id, trace, name):
    async with bus_locks.hold(bus_id):
        trace.append(f"{name}:in")
        await asyncio.sleep(0.01)
        trace.append(f"{name}:out")


@pytest.mark.asyncio
async def test_same_bus_updates_do_not_interleave():
    trace = []
    await asyncio.gather(
        critical_section("KL-11-1234", trace, "a"),
        critical_section("kl-11-1234", trace, "b"),
    )
    assert trace == ["a:in", "a:out", "b:in", "b:out"]


@pytest.mark.asyncio
async def test_different_buses_run_concurrently():
    trace = []
    await asyncio.gather(
        critical_section("KL-11-1234", trace, "a"),
        critical_section("KL-13-0001", trace, "b"),
    )
    assert trace[:2] == ["a:in", "b:in"]


@pytest.mark.asyncio
async def test_concurrent_arrivals_notify_once():
    stop = await journey_service.add_route_stop("Feroke", "Kozhikode", Coordinates(lat=11.18, lng=75.84))
    passenger = await journey_service.add_passenger("Asha", "asha@example.com", "9000000001")
    await journey_service.add_ticket(passenger.passenger_id, pnr="P", ticket_no="T", pickup="Kannur",
                                     dropoff=stop.name, travel_date=service_date())
    await journey_service.start_journey("KL-11-1234", 11.5, 75.7)

    results = await asyncio.gather(*[
        journey_service.update_location("KL-11-1234", 11.181, 75.841) for _ in range(10)
    ])
    arrivals = [job for r in results for job in r.jobs if job.kind == "arrived"]
    assert len(arrivals) == 1


@pytest.mark.asyncio
async def test_lock_entries_are_dropped_after_use():
    trace = []
    await asyncio.gather(*[critical_section("KL-11-1234", trace, str(i)) for i in range(5)])
    assert len(trace) == 10
    assert len(bus_locks) == 0


@pytest.mark.asyncio
async def test_lock_entry_survives_while_someone_waits():
    release = asyncio.Event()

    async def holder():
        async with bus_locks.hold("KL-11-1234"):
            await release.wait()

    first = asyncio.create_task(holder())
    second = asyncio.create_task(holder())
    await asyncio.sleep(0.01)
    assert len(bus_locks) == 1
    release.set()
    await asyncio.gather(first, second)
    assert len(bus_locks) == 0


@pytest.mark.asyncio
async def test_unknown_buses_leave_no_locks_behind(client):
    for i in range(50):
        resp = await client.post("/location-update", json={"busIdentifier": f"ghost-{i}", "lat": 11.2, "lng": 75.8})
        assert resp.status_code == 404
    assert len(bus_locks) == 0
