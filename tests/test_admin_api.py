import pytest

from services.journey_service import journey_service, service_date

BUS = {"busId": "KL-11-1234", "busNumber": "KL 11 AB 1234", "routeName": "Kozhikode - Kannur",
       "conductorName": "Ravi", "mobileNo": "9876543210"}


@pytest.mark.asyncio
async def test_depot_registry(client):
    resp = await client.post("/admin/depots", json={"name": "Kozhikode", "location": {"lat": 11.25, "lng": 75.78}})
    assert resp.status_code == 201
    depot_id = resp.json()["data"]["depot_id"]
    await client.post("/admin/depots", json={"name": "Kannur", "location": {"lat": 11.87, "lng": 75.37}})

    resp = await client.post("/admin/depots", json={"name": " kozhikode ", "location": {"lat": 0, "lng": 0}})
    assert resp.status_code == 409

    resp = await client.get("/admin/depots")
    assert [d["name"] for d in resp.json()["data"]] == ["Kannur", "Kozhikode"]

    resp = await client.put(f"/admin/depots/{depot_id}", json={"name": "Kozhikode Central", "location": {"lat": 11.26, "lng": 75.79}})
    assert resp.status_code == 200
    assert resp.json()["data"] == {"depot_id": depot_id, "name": "Kozhikode Central", "location": {"lat": 11.26, "lng": 75.79}}

    resp = await client.put(f"/admin/depots/{depot_id}", json={"name": "Kannur", "location": {"lat": 11.26, "lng": 75.79}})
    assert resp.status_code == 409

    resp = await client.put(f"/admin/depots/{depot_id}", json={"name": "Bad", "location": {"lat": 95, "lng": 75.79}})
    assert resp.status_code == 400

    assert (await client.delete(f"/admin/depots/{depot_id}")).status_code == 200
    assert (await client.delete(f"/admin/depots/{depot_id}")).status_code == 404
    assert (await client.put("/admin/depots/missing", json={"name": "X", "location": {"lat": 1, "lng": 1}})).status_code == 404
    resp = await client.get("/admin/depots")
    assert [d["name"] for d in resp.json()["data"]] == ["Kannur"]


@pytest.mark.asyncio
async def test_update_and_delete_bus(client):
    await client.post("/admin/buses", json=BUS)
    await client.post("/admin/buses", json={**BUS, "busId": "KL-13-0001", "mobileNo": "9000000000"})

    resp = await client.put("/admin/buses/9876543210", json={**BUS, "busNumber": "KL 11 ZZ 9999", "conductorName": "Meera"})
    assert resp.status_code == 200
    assert resp.json()["data"]["conductor_name"] == "Meera"
    assert (await client.get("/bus/kl-11-1234")).json()["data"]["bus_number"] == "KL 11 ZZ 9999"

    resp = await client.put("/admin/buses/KL-11-1234", json={**BUS, "busId": "kl-13-0001"})
    assert resp.status_code == 409

    resp = await client.put("/admin/buses/KL-11-1234", json={**BUS, "busId": "KL-11-5678"})
    assert resp.status_code == 200
    assert (await client.get("/bus/KL-11-1234")).status_code == 404
    assert (await client.get("/bus/KL-11-5678")).status_code == 200

    resp = await client.put("/admin/buses/KL-00", json=BUS)
    assert resp.status_code == 404
    assert resp.json()["error"]["message"] == "Bus not found"

    resp = await client.delete("/admin/buses/KL-11-5678")
    assert resp.json()["data"]["message"] == "Bus deleted successfully"
    assert (await client.delete("/admin/buses/KL-11-5678")).status_code == 404
    assert [b["bus_id"] for b in (await client.get("/admin/buses")).json()["data"]] == ["KL-13-0001"]


@pytest.mark.asyncio
async def test_update_and_delete_route_stop(client):
    resp = await client.post("/admin/route-stops", json={"name": "Feroke", "depotName": "Kozhikode", "location": {"lat": 11.18, "lng": 75.84}})
    stop_id = resp.json()["data"]["stop_id"]

    resp = await client.put(f"/admin/route-stops/{stop_id}", json={"name": "Feroke Bus Stand", "depoName": "Kozhikode", "location": {"lat": 11.181, "lng": 75.842}})
    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "Feroke Bus Stand"
    stops = (await client.get("/admin/route-stops")).json()["data"]
    assert stops == [resp.json()["data"]]

    resp = await client.put("/admin/route-stops/missing", json={"name": "X", "depotName": "Y", "location": {"lat": 1, "lng": 1}})
    assert resp.status_code == 404
    assert resp.json()["error"]["message"] == "Route stop not found"

    assert (await client.delete(f"/admin/route-stops/{stop_id}")).status_code == 200
    assert (await client.delete(f"/admin/route-stops/{stop_id}")).status_code == 404
    assert (await client.get("/admin/route-stops")).json()["data"] == []


@pytest.mark.asyncio
async def test_deleted_stop_is_not_seeded(client):
    resp = await client.post("/admin/route-stops", json={"name": "Feroke", "depotName": "Kozhikode", "location": {"lat": 11.18, "lng": 75.84}})
    stop_id = resp.json()["data"]["stop_id"]
    passenger = (await client.post("/passenger/register", json={"name": "Asha", "email": "asha@example.com", "phone": "9000000001"})).json()["data"]
    await client.post("/passenger/tickets", json={
        "passengerId": passenger["passenger_id"], "pnr": "P", "ticketNo": "T", "pickup": "Kannur",
        "dropoff": "Feroke", "travelDate": service_date().isoformat(),
    })
    await client.delete(f"/admin/route-stops/{stop_id}")

    resp = await client.post("/journey-start", json={"busIdentifier": "KL-11-1234", "lat": 11.5, "lng": 75.7})
    assert resp.json()["data"]["notifications_created"] == 0


@pytest.mark.asyncio
async def test_passenger_profile(client):
    passenger = (await client.post("/passenger/register", json={"name": "Asha", "email": "asha@example.com", "phone": "9000000001"})).json()["data"]
    pid = passenger["passenger_id"]
    for travel_date in ("2026-01-05", "2026-02-10"):
        await client.post("/passenger/tickets", json={
            "passengerId": pid, "pnr": "P", "ticketNo": travel_date, "pickup": "Kannur",
            "dropoff": "Feroke", "travelDate": travel_date,
        })

    resp = await client.get(f"/passenger/{pid}")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["passenger"]["email"] == "asha@example.com"
    assert [t["travel_date"] for t in data["tickets"]] == ["2026-02-10", "2026-01-05"]

    resp = await client.get("/passenger/nobody")
    assert resp.status_code == 404
    assert resp.json()["error"]["message"] == "Passenger not found"
    assert journey_service.passengers.keys() == {pid}
