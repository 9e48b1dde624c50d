"""
Integration tests for the HTTP surface.

Covers ledger CRUD, sync and analytics endpoints through the ASGI app.
"""

import pytest

from chargepal.app.core.dependencies import get_sync_config
from chargepal.app.main import app
from chargepal.app.schemas.remote import RemoteTable
from chargepal.app.schemas.sync import SyncConfig
from chargepal.app.services.sync_lock import SyncLock
from chargepal.tests.factories import make_record_row, make_vehicle_row

# Note: Client, DB, Redis and remote store setup are in conftest.py


@pytest.fixture
async def vehicle(client):
    response = await client.post("/v1/vehicles", json={
        "name": "Model 3",
        "battery_capacity": 60,
        "license_plate": "AB-123",
        "initial_odometer": 900,
    })
    assert response.status_code == 201
    return response.json()


def _record_json(vehicle_id, **kwargs):
    payload = {
        "vehicle_id": vehicle_id,
        "odometer": 1000,
        "start_time": "2024-03-01T08:00:00Z",
        "end_time": "2024-03-01T09:15:00Z",
        "start_soc": 20,
        "end_soc": 80,
        "price_per_kwh": 1.5,
        "energy_charged": 40,
        "type": "Fast",
    }
    payload.update(kwargs)
    return payload


@pytest.mark.asyncio
async def test_health_and_root(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["redis"] == "up"
    assert "X-Correlation-ID" in response.headers

    response = await client.get("/")
    assert response.json()["docs"] == "/docs"


@pytest.mark.asyncio
async def test_create_and_list_vehicles(client, vehicle):
    assert vehicle["license_plate"] == "AB-123"
    assert vehicle["updated_at"] > 0

    response = await client.get("/v1/vehicles")
    assert [v["id"] for v in response.json()] == [vehicle["id"]]


@pytest.mark.asyncio
async def test_duplicate_plate_is_rejected(client, vehicle):
    response = await client.post("/v1/vehicles", json={
        "name": "Second", "battery_capacity": 40, "license_plate": "AB-123",
    })

    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_VEHICLE_PLATE_001"


@pytest.mark.asyncio
async def test_update_vehicle_recomputes_records(client, vehicle):
    await client.post("/v1/records", json=_record_json(vehicle["id"]))

    response = await client.put(f"/v1/vehicles/{vehicle['id']}", json={
        "name": "Model 3 LR", "battery_capacity": 80, "license_plate": "AB-123",
    })
    assert response.status_code == 200
    assert response.json()["id"] == vehicle["id"]

    [record] = (await client.get("/v1/records")).json()
    assert record["theoretical_energy"] == 48.0


@pytest.mark.asyncio
async def test_update_missing_vehicle(client):
    response = await client.put("/v1/vehicles/missing", json={"name": "X", "battery_capacity": 10})

    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_create_record_derives_fields(client, vehicle):
    response = await client.post("/v1/records", json=_record_json(vehicle["id"]))

    assert response.status_code == 201
    record = response.json()
    assert record["total_cost"] == 60.0
    assert record["duration_minutes"] == 75
    assert record["theoretical_energy"] == 36.0
    assert record["efficiency_loss_pct"] == 10.0
    assert record["distance_driven"] == 0


@pytest.mark.asyncio
async def test_record_for_unknown_vehicle(client):
    response = await client.post("/v1/records", json=_record_json("missing"))

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_record_validation_error(client, vehicle):
    response = await client.post("/v1/records", json=_record_json(vehicle["id"], start_soc=80, end_soc=50))

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_records_listed_newest_first_and_filtered(client, vehicle):
    await client.post("/v1/records", json=_record_json(vehicle["id"]))
    await client.post("/v1/records", json=_record_json(
        vehicle["id"], odometer=1300, start_soc=30, start_time="2024-03-05T08:00:00Z", end_time=None,
    ))

    records = (await client.get("/v1/records")).json()
    assert [r["odometer"] for r in records] == [1300, 1000]
    assert records[0]["energy_consumption"] == 10.0

    response = await client.get("/v1/records", params={"vehicle_id": "other"})
    assert response.json() == []


@pytest.mark.asyncio
async def test_update_and_delete_record(client, vehicle):
    created = (await client.post("/v1/records", json=_record_json(vehicle["id"]))).json()

    response = await client.put(f"/v1/records/{created['id']}", json=_record_json(vehicle["id"], energy_charged=36))
    assert response.status_code == 200
    assert response.json()["created_at"] == created["created_at"]
    assert response.json()["efficiency_loss_pct"] == 0.0

    response = await client.delete(f"/v1/records/{created['id']}")
    assert response.status_code == 204

    response = await client.get(f"/v1/records/{created['id']}")
    assert response.status_code == 404

    state = (await client.get("/v1/state")).json()
    assert state["deleted_record_ids"] == [created["id"]]


@pytest.mark.asyncio
async def test_delete_vehicle_keeps_records(client, vehicle):
    await client.post("/v1/records", json=_record_json(vehicle["id"]))

    response = await client.delete(f"/v1/vehicles/{vehicle['id']}")
    assert response.status_code == 204

    state = (await client.get("/v1/state")).json()
    assert state["vehicles"] == []
    assert state["deleted_vehicle_ids"] == [vehicle["id"]]
    assert len(state["records"]) == 1


@pytest.mark.asyncio
async def test_reset_state(client, vehicle):
    response = await client.delete("/v1/state")
    assert response.status_code == 204

    assert (await client.get("/v1/vehicles")).json() == []


@pytest.mark.asyncio
async def test_sync_pushes_and_merges(client, vehicle, remote_store):
    created = (await client.post("/v1/records", json=_record_json(vehicle["id"]))).json()
    remote_store.seed(RemoteTable.VEHICLES, make_vehicle_row("ZZ-999", name="From phone", updated_at=10))
    remote_store.seed(RemoteTable.CHARGING_RECORDS, make_record_row("phone-1", license_plate="ZZ-999"))

    response = await client.post("/v1/sync")

    assert response.status_code == 200
    body = response.json()
    assert body["pushed_vehicles"] == 1
    assert body["pushed_records"] == 1
    assert body["vehicles_count"] == 2
    assert body["records_count"] == 2
    assert created["id"] in remote_store.tables[RemoteTable.CHARGING_RECORDS]

    state = (await client.get("/v1/state")).json()
    assert state["last_sync"] == body["synced_at"]
    by_plate = {v["license_plate"]: v for v in state["vehicles"]}
    assert by_plate["AB-123"]["id"] == vehicle["id"]


@pytest.mark.asyncio
async def test_sync_clears_deletion_queue(client, vehicle, remote_store):
    created = (await client.post("/v1/records", json=_record_json(vehicle["id"]))).json()
    await client.post("/v1/sync")
    await client.delete(f"/v1/records/{created['id']}")

    response = await client.post("/v1/sync")

    assert response.json()["deleted_records"] == 1
    assert remote_store.tables[RemoteTable.CHARGING_RECORDS] == {}
    assert (await client.get("/v1/state")).json()["deleted_record_ids"] == []


@pytest.mark.asyncio
async def test_sync_conflicts_while_locked(client, vehicle, mock_redis, remote_store):
    lock = SyncLock(mock_redis)
    assert await lock.acquire()

    response = await client.post("/v1/sync")
    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_SYNC_BUSY"
    assert remote_store.calls == []

    # Ledger writes share the lock
    response = await client.post("/v1/records", json=_record_json(vehicle["id"]))
    assert response.status_code == 409

    await lock.release()
    assert (await client.post("/v1/sync")).status_code == 200


@pytest.mark.asyncio
async def test_sync_without_plate_reports_vehicles(client, remote_store):
    await client.post("/v1/vehicles", json={"name": "Kona", "battery_capacity": 64})

    response = await client.post("/v1/sync")

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_SYNC_IDENTITY"
    assert response.json()["details"]["vehicles"] == ["Kona"]
    assert remote_store.calls == []


@pytest.mark.asyncio
async def test_sync_not_configured(client, vehicle, remote_store):
    async def unconfigured():
        return SyncConfig()

    app.dependency_overrides[get_sync_config] = unconfigured

    response = await client.post("/v1/sync")

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_SYNC_CONFIG"
    assert remote_store.calls == []


@pytest.mark.asyncio
async def test_sync_remote_failure_keeps_state(client, vehicle, remote_store):
    created = (await client.post("/v1/records", json=_record_json(vehicle["id"]))).json()
    await client.delete(f"/v1/records/{created['id']}")
    remote_store.fail_on = ("upsert", RemoteTable.VEHICLES)

    response = await client.post("/v1/sync")

    assert response.status_code == 502
    assert response.json()["details"]["step"] == "push vehicles"
    state = (await client.get("/v1/state")).json()
    assert state["deleted_record_ids"] == [created["id"]]
    assert state["last_sync"] is None


@pytest.mark.asyncio
async def test_setup_sql(client):
    response = await client.get("/v1/sync/setup-sql")

    assert response.status_code == 200
    assert "create table if not exists charging_records" in response.text


@pytest.mark.asyncio
async def test_analytics_endpoints(client, vehicle):
    await client.post("/v1/records", json=_record_json(vehicle["id"]))
    await client.post("/v1/records", json=_record_json(
        vehicle["id"], odometer=1300, start_soc=30, start_time="2024-03-05T08:00:00Z", end_time=None, type="Slow",
    ))

    overview = (await client.get("/v1/analytics/overview")).json()
    assert overview["overview"]["total_distance_km"] == 1200
    assert overview["overview"]["charging_count"] == 2
    assert {b["type"]: b["count"] for b in overview["by_type"]} == {"Fast": 1, "Slow": 1}

    monthly = (await client.get("/v1/analytics/monthly", params={"year": 2024})).json()
    assert len(monthly) == 12
    assert monthly[2]["energy_kwh"] == 80


@pytest.mark.asyncio
async def test_energy_estimate(client, vehicle):
    params = {"vehicle_id": vehicle["id"], "start_soc": 20, "end_soc": 80}

    estimate = (await client.get("/v1/analytics/estimate", params=params)).json()
    assert estimate["theoretical_energy"] == 36.0
    assert estimate["average_loss_pct"] == 5.0
    assert estimate["estimated_energy"] == 37.8
    assert estimate["last_odometer"] is None

    await client.post("/v1/records", json=_record_json(vehicle["id"]))
    estimate = (await client.get("/v1/analytics/estimate", params=params)).json()
    assert estimate["average_loss_pct"] == 10.0
    assert estimate["estimated_energy"] == 39.6
    assert estimate["last_odometer"] == 1000
    assert estimate["last_end_soc"] == 80


@pytest.mark.asyncio
async def test_energy_estimate_unknown_vehicle(client):
    response = await client.get(
        "/v1/analytics/estimate", params={"vehicle_id": "missing", "start_soc": 20, "end_soc": 80}
    )
    assert response.status_code == 404
