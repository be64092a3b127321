"""Tests for the PostgREST repositories."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest
import respx

from tourbook.conductor.state_machine import effective_state
from tourbook.config import StoreConfig
from tourbook.errors import SlotTakenError, StoreUnavailableError
from tourbook.repositories.rest import (
    RestBlockedPeriodRepository,
    RestConductorSessionRepository,
    RestReservationRepository,
    StoreClient,
)
from tourbook.schemas.conductor_schema import ConductorSession, ConductorState
from tourbook.schemas.reservation_schema import Reservation, ReservationStatus
from tourbook.scheduling.blocks import BlockedPeriodStore
from tourbook.scheduling.conflict_resolver import ConflictResolver

BASE = "https://store.test/rest/v1"


def make_client() -> StoreClient:
    return StoreClient.from_config(StoreConfig(url="https://store.test/", api_key="anon", timeout_sec=2.0))


RESERVATION_ROW = {
    "id": 7,
    "reservation_date": "2025-08-20",
    "reservation_time": "10:00:00",
    "tour_type": "furnas",
    "number_of_people": 3,
    "status": "confirmed",
    "customer_name": "Ana",
    "customer_email": "ana@example.com",
    "created_at": "2025-08-01T09:00:00+00:00",
}


class TestStoreClient:
    def test_requires_url(self):
        with pytest.raises(ValueError, match="STORE_URL"):
            StoreClient.from_config(StoreConfig(url="", api_key=""))

    @pytest.mark.asyncio
    @respx.mock
    async def test_sends_auth_headers(self):
        route = respx.get(f"{BASE}/reservations").respond(200, json=[])
        client = make_client()
        await client.call("GET", "reservations")
        request = route.calls[0].request
        assert request.headers["apikey"] == "anon"
        assert request.headers["Authorization"] == "Bearer anon"
        await client.aclose()

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_is_store_unavailable(self):
        respx.get(f"{BASE}/reservations").mock(side_effect=httpx.ReadTimeout("slow"))
        client = make_client()
        with pytest.raises(StoreUnavailableError, match="store_timeout"):
            await client.call("GET", "reservations")
        await client.aclose()

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error_is_store_unavailable(self):
        respx.get(f"{BASE}/reservations").mock(side_effect=httpx.ConnectError("refused"))
        client = make_client()
        with pytest.raises(StoreUnavailableError, match="store_connection_failed"):
            await client.call("GET", "reservations")
        await client.aclose()

    @pytest.mark.asyncio
    @respx.mock
    async def test_server_error_is_store_unavailable(self):
        respx.get(f"{BASE}/reservations").respond(503)
        client = make_client()
        with pytest.raises(StoreUnavailableError, match="store_error_503"):
            await client.call("GET", "reservations")
        await client.aclose()

    @pytest.mark.asyncio
    @respx.mock
    async def test_conflict_is_slot_taken(self):
        respx.post(f"{BASE}/reservations").respond(409, json={"code": "23505"})
        client = make_client()
        with pytest.raises(SlotTakenError):
            await client.call("POST", "reservations", json={})
        await client.aclose()

    @pytest.mark.asyncio
    @respx.mock
    async def test_empty_body(self):
        respx.delete(f"{BASE}/reservations").respond(204)
        client = make_client()
        assert await client.call("DELETE", "reservations") == []
        await client.aclose()


class TestRestReservationRepository:
    @pytest.mark.asyncio
    @respx.mock
    async def test_list_non_cancelled_by_date(self):
        route = respx.get(f"{BASE}/reservations").respond(200, json=[RESERVATION_ROW])
        repo = RestReservationRepository(make_client())

        rows = await repo.list_non_cancelled_by_date("2025-08-20")

        params = route.calls[0].request.url.params
        assert params["reservation_date"] == "eq.2025-08-20"
        assert params["status"] == "neq.cancelled"
        assert rows[0].id == "7"
        assert rows[0].time == "10:00"
        assert rows[0].party_size == 3
        assert rows[0].status == ReservationStatus.CONFIRMED
        await repo.client.aclose()

    @pytest.mark.asyncio
    @respx.mock
    async def test_insert_returns_representation(self):
        route = respx.post(f"{BASE}/reservations").respond(201, json=[RESERVATION_ROW])
        repo = RestReservationRepository(make_client())

        created = await repo.insert(Reservation(
            date="2025-08-20", time="10:00", tour_type="furnas", party_size=3,
        ))

        request = route.calls[0].request
        assert request.headers["Prefer"] == "return=representation"
        assert b'"reservation_time":"10:00"' in request.content.replace(b" ", b"")
        assert created.id == "7"
        await repo.client.aclose()

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_missing(self):
        respx.get(f"{BASE}/reservations").respond(200, json=[])
        repo = RestReservationRepository(make_client())
        assert await repo.get("99") is None
        await repo.client.aclose()

    @pytest.mark.asyncio
    @respx.mock
    async def test_update_status(self):
        route = respx.patch(f"{BASE}/reservations").respond(204)
        repo = RestReservationRepository(make_client())
        await repo.update_status("7", ReservationStatus.CANCELLED)
        assert route.calls[0].request.url.params["id"] == "eq.7"
        await repo.client.aclose()

    @pytest.mark.asyncio
    @respx.mock
    async def test_resolver_fails_closed_on_outage(self):
        respx.get(f"{BASE}/reservations").respond(500)
        repo = RestReservationRepository(make_client())
        check = await ConflictResolver(repo).check_availability("2025-08-20", "10:00")
        assert check.is_available is False
        await repo.client.aclose()


class TestRestBlockedPeriodRepository:
    @pytest.mark.asyncio
    @respx.mock
    async def test_delete_whole_day_uses_null_start(self):
        route = respx.delete(f"{BASE}/blocked_periods").respond(204)
        repo = RestBlockedPeriodRepository(make_client())
        await repo.delete_where("2025-08-20")
        params = route.calls[0].request.url.params
        assert params["date"] == "eq.2025-08-20"
        assert params["start_time"] == "is.null"
        await repo.client.aclose()

    @pytest.mark.asyncio
    @respx.mock
    async def test_delete_hour(self):
        route = respx.delete(f"{BASE}/blocked_periods").respond(204)
        repo = RestBlockedPeriodRepository(make_client())
        await repo.delete_where("2025-08-20", "10:30")
        assert route.calls[0].request.url.params["start_time"] == "eq.10:30"
        await repo.client.aclose()

    @pytest.mark.asyncio
    @respx.mock
    async def test_delete_ids(self):
        route = respx.delete(f"{BASE}/blocked_periods").respond(204)
        repo = RestBlockedPeriodRepository(make_client())
        await repo.delete_ids(["1", "2"])
        await repo.delete_ids([])
        assert len(route.calls) == 1
        assert route.calls[0].request.url.params["id"] == "in.(1,2)"
        await repo.client.aclose()

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_all_maps_rows(self):
        respx.get(f"{BASE}/blocked_periods").respond(200, json=[
            {"id": 1, "date": "2025-08-20", "start_time": None, "end_time": None, "reason": "Storm"},
            {"id": 2, "date": "2025-08-20", "start_time": "10:30:00", "end_time": "10:30:00"},
        ])
        repo = RestBlockedPeriodRepository(make_client())
        blocks = await repo.list_all()
        assert blocks[0].is_whole_day
        assert blocks[1].start_time == "10:30"
        await repo.client.aclose()

    @pytest.mark.asyncio
    @respx.mock
    async def test_unique_violation_on_create_is_idempotent(self):
        existing = {"id": 5, "date": "2025-08-20", "start_time": None, "end_time": None}
        respx.get(f"{BASE}/blocked_periods").mock(side_effect=[
            httpx.Response(200, json=[]),
            httpx.Response(200, json=[existing]),
        ])
        respx.post(f"{BASE}/blocked_periods").respond(409)
        repo = RestBlockedPeriodRepository(make_client())
        store = BlockedPeriodStore(repo, RestReservationRepository(repo.client))

        block = await store.create("2025-08-20")

        assert block.id == "5"
        await repo.client.aclose()


class TestRestConductorSessionRepository:
    @pytest.mark.asyncio
    @respx.mock
    async def test_upsert_merges_and_notifies(self):
        route = respx.post(f"{BASE}/active_conductors").respond(201)
        repo = RestConductorSessionRepository(make_client())
        seen = []
        unsubscribe = repo.subscribe(seen.append)

        await repo.upsert(ConductorSession(conductor_id="driver-1", is_active=True))
        unsubscribe()
        await repo.upsert(ConductorSession(conductor_id="driver-1"))

        request = route.calls[0].request
        assert request.url.params["on_conflict"] == "conductor_id"
        assert request.headers["Prefer"] == "resolution=merge-duplicates"
        assert len(seen) == 1
        await repo.client.aclose()

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_maps_row(self):
        respx.get(f"{BASE}/active_conductors").respond(200, json=[{
            "conductor_id": "driver-1",
            "name": "Rui",
            "is_active": True,
            "is_available": False,
            "occupied_until": "2025-08-20T11:00:00+00:00",
            "updated_at": "2025-08-20T10:00:00+00:00",
        }])
        repo = RestConductorSessionRepository(make_client())
        session = await repo.get("driver-1")
        assert session.is_available is False
        assert session.occupied_until == datetime(2025, 8, 20, 11, 0, tzinfo=timezone.utc)
        await repo.client.aclose()

    @pytest.mark.asyncio
    @respx.mock
    async def test_row_without_offset_read_as_utc(self):
        respx.get(f"{BASE}/active_conductors").respond(200, json=[{
            "conductor_id": "driver-1",
            "is_active": True,
            "is_available": False,
            "occupied_until": "2025-08-20T11:00:00",
            "updated_at": "2025-08-20T10:00:00",
        }])
        repo = RestConductorSessionRepository(make_client())
        session = await repo.get("driver-1")

        assert session.occupied_until == datetime(2025, 8, 20, 11, 0, tzinfo=timezone.utc)
        assert session.updated_at.tzinfo is not None
        now = datetime(2025, 8, 20, 10, 30, tzinfo=timezone.utc)
        assert effective_state(session, now) == ConductorState.BUSY
        assert effective_state(session, now + timedelta(hours=1)) == ConductorState.AVAILABLE
        await repo.client.aclose()

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_active_filters(self):
        route = respx.get(f"{BASE}/active_conductors").respond(200, json=[])
        repo = RestConductorSessionRepository(make_client())
        assert await repo.list_active() == []
        assert route.calls[0].request.url.params["is_active"] == "eq.true"
        await repo.client.aclose()
