"""
Supabase remote store tests.

Requests are served by ``httpx.MockTransport``; no network access.
"""

import json

import httpx
import pytest

from chargepal.app.core.reliability import CircuitBreaker
from chargepal.app.models.ledger_enums import ChargingType
from chargepal.app.schemas.remote import (
    ChargingRecordRow,
    RecordVersionRow,
    RemoteTable,
    VehicleRow,
    VehicleVersionRow,
    row_columns,
)
from chargepal.app.services.remote_store import RemoteStoreError
from chargepal.app.services import supabase_store
from chargepal.app.services.supabase_store import SupabaseStore
from chargepal.tests.factories import make_record_row, make_vehicle_row


def _store(handler, breaker=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SupabaseStore("https://demo.supabase.co/", "secret", client=client, breaker=breaker)


async def test_upsert_sends_camel_case_rows_with_merge_header():
    seen = {}

    def handler(request: httpx.Request):
        seen["request"] = request
        return httpx.Response(201)

    store = _store(handler)
    await store.upsert(RemoteTable.CHARGING_RECORDS, [make_record_row("r1")], "id")

    request = seen["request"]
    assert request.method == "POST"
    assert request.url.path == "/rest/v1/charging_records"
    assert request.url.params["on_conflict"] == "id"
    assert request.headers["apikey"] == "secret"
    assert request.headers["authorization"] == "Bearer secret"
    assert "resolution=merge-duplicates" in request.headers["prefer"]

    [payload] = json.loads(request.content)
    assert payload["id"] == "r1"
    assert payload["licensePlate"] == "AB-123"
    assert payload["startSoC"] == 20.0
    assert payload["endSoC"] == 80.0
    assert payload["pricePerKwh"] == 0.3
    assert payload["startTime"].startswith("2024-03-01T08:00:00")


async def test_empty_writes_make_no_requests():
    def handler(request):
        raise AssertionError("unexpected request")

    store = _store(handler)
    await store.upsert(RemoteTable.VEHICLES, [], "licensePlate")
    await store.delete(RemoteTable.CHARGING_RECORDS, [])


async def test_delete_uses_in_filter():
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(204)

    await _store(handler).delete(RemoteTable.CHARGING_RECORDS, ["a", "b"])

    assert seen["request"].method == "DELETE"
    assert seen["request"].url.params["id"] == 'in.("a","b")'


async def test_select_all_parses_rows():
    def handler(request):
        assert request.url.params["select"] == "*"
        return httpx.Response(200, json=[
            {"licensePlate": "AB-123", "name": "Model 3", "batteryCapacity": 60, "updatedAt": 10, "extra": "x"},
        ])

    rows = await _store(handler).select_all(RemoteTable.VEHICLES)

    assert rows == [VehicleRow(license_plate="AB-123", name="Model 3", battery_capacity=60, updated_at=10)]


async def test_select_all_tolerates_empty_strings():
    def handler(request):
        return httpx.Response(200, json=[{
            "id": "r1",
            "licensePlate": "AB-123",
            "startTime": "2024-03-01T08:00:00Z",
            "endTime": "",
            "location": " ",
            "type": "Fast",
        }])

    [row] = await _store(handler).select_all(RemoteTable.CHARGING_RECORDS)

    assert isinstance(row, ChargingRecordRow)
    assert row.end_time is None
    assert row.location is None
    assert row.start_soc is None


async def test_select_all_accepts_null_type_and_start_time():
    def handler(request):
        return httpx.Response(200, json=[{
            "id": "r1",
            "licensePlate": "AB-123",
            "startTime": None,
            "type": None,
            "createdAt": 1_709_280_000_000,
        }])

    [row] = await _store(handler).select_all(RemoteTable.CHARGING_RECORDS)

    assert row.start_time is None
    assert row.type == ChargingType.SLOW
    assert row.created_at == 1_709_280_000_000


async def test_select_columns_requests_only_row_columns():
    seen = {}

    def handler(request):
        seen["select"] = request.url.params["select"]
        return httpx.Response(200, json=[{"id": "r1", "updatedAt": 5}])

    rows = await _store(handler).select_columns(RemoteTable.CHARGING_RECORDS, RecordVersionRow)

    assert seen["select"] == "id,updatedAt"
    assert rows == [RecordVersionRow(id="r1", updated_at=5)]
    assert row_columns(VehicleVersionRow) == ["licensePlate", "updatedAt"]


async def test_select_reads_every_page(monkeypatch):
    monkeypatch.setattr(supabase_store, "PAGE_SIZE", 2)
    offsets = []
    rows = [{"id": f"r{n}", "updatedAt": n} for n in range(5)]

    def handler(request):
        offset = int(request.url.params["offset"])
        offsets.append(offset)
        return httpx.Response(200, json=rows[offset:offset + 2])

    result = await _store(handler).select_columns(RemoteTable.CHARGING_RECORDS, RecordVersionRow)

    assert offsets == [0, 2, 4]
    assert [r.id for r in result] == ["r0", "r1", "r2", "r3", "r4"]


async def test_http_error_carries_status_and_message():
    def handler(request):
        return httpx.Response(401, json={"message": "Invalid API key"})

    with pytest.raises(RemoteStoreError, match="401 Invalid API key"):
        await _store(handler).select_all(RemoteTable.VEHICLES)


async def test_transport_error_is_wrapped():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RemoteStoreError, match="connection refused"):
        await _store(handler).select_all(RemoteTable.VEHICLES)


@pytest.mark.parametrize("response", [
    httpx.Response(200, text="<html>maintenance</html>"),
    httpx.Response(200, json={"rows": []}),
    httpx.Response(200, json=[{"name": "no plate"}]),
])
async def test_malformed_payload_is_rejected(response):
    with pytest.raises(RemoteStoreError):
        await _store(lambda request: response).select_all(RemoteTable.VEHICLES)


async def test_open_circuit_stops_requests():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503, text="down")

    store = _store(handler, breaker=CircuitBreaker("test", failure_threshold=2, reset_timeout=60))
    for _ in range(2):
        with pytest.raises(RemoteStoreError, match="503"):
            await store.ping()

    with pytest.raises(RemoteStoreError, match="open"):
        await store.ping()
    assert len(calls) == 2


async def test_context_manager_closes_owned_client(mocker):
    store = SupabaseStore("https://demo.supabase.co", "secret")
    close = mocker.patch.object(store.client, "aclose", mocker.AsyncMock())

    async with store:
        pass

    close.assert_awaited_once()


async def test_injected_client_is_left_open():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, json=[])))

    async with SupabaseStore("https://demo.supabase.co", "secret", client=client) as store:
        await store.ping()

    assert not client.is_closed
    await client.aclose()
