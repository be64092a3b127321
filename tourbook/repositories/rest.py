"""HTTP repositories for a PostgREST (Supabase) backend.

All three repositories share one ``StoreClient`` wrapping an injected
``httpx.AsyncClient``; there is no module-level client.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from tourbook.config import StoreConfig
from tourbook.errors import SlotTakenError, StoreUnavailableError
from tourbook.repositories.base import SessionListener, Unsubscribe, notify
from tourbook.schemas.block_schema import BlockedPeriod
from tourbook.schemas.conductor_schema import ConductorSession
from tourbook.schemas.reservation_schema import Reservation, ReservationStatus

logger = logging.getLogger(__name__)

RESERVATIONS_TABLE = "reservations"
BLOCKED_PERIODS_TABLE = "blocked_periods"
CONDUCTORS_TABLE = "active_conductors"


class StoreClient:
    """Thin PostgREST client translating transport failures into store errors."""

    def __init__(self, http: httpx.AsyncClient) -> None:
        self.http = http

    @classmethod
    def from_config(cls, config: StoreConfig) -> StoreClient:
        if not config.url:
            raise ValueError("STORE_URL must be set to use the HTTP repositories")
        http = httpx.AsyncClient(
            base_url=config.url.rstrip("/") + "/rest/v1",
            headers={
                "apikey": config.api_key,
                "Authorization": f"Bearer {config.api_key}",
            },
            timeout=httpx.Timeout(config.timeout_sec),
        )
        return cls(http)

    async def aclose(self) -> None:
        await self.http.aclose()

    async def call(
        self,
        method: str,
        table: str,
        *,
        params: Optional[dict[str, str]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> list[dict]:
        headers = {"Prefer": prefer} if prefer else None
        path = f"/{table}"
        try:
            response = await self.http.request(
                method, path, params=params, json=json, headers=headers
            )
        except httpx.TimeoutException as exc:
            raise StoreUnavailableError(f"store_timeout: {method} {path} timed out") from exc
        except httpx.HTTPError as exc:
            raise StoreUnavailableError(f"store_connection_failed: {exc}") from exc

        if response.status_code == 409:
            raise SlotTakenError(f"store_conflict: {method} {path}")
        if response.status_code >= 400:
            logger.warning(
                "Store request failed: %s %s -> %s", method, path, response.status_code
            )
            raise StoreUnavailableError(f"store_error_{response.status_code}")

        if not response.content:
            return []
        data = response.json()
        return data if isinstance(data, list) else [data]


def _reservation_from_row(row: dict) -> Reservation:
    return Reservation(
        id=str(row["id"]) if row.get("id") is not None else None,
        date=row["reservation_date"],
        time=row["reservation_time"],
        tour_type=row.get("tour_type") or "",
        party_size=row.get("number_of_people") or 1,
        status=row.get("status") or ReservationStatus.PENDING,
        customer_name=row.get("customer_name"),
        customer_email=row.get("customer_email"),
        customer_phone=row.get("customer_phone"),
        manual_payment=row.get("manual_payment"),
        created_at=row.get("created_at"),
    )


def _reservation_to_row(reservation: Reservation) -> dict:
    row = {
        "reservation_date": reservation.date,
        "reservation_time": reservation.time,
        "tour_type": reservation.tour_type,
        "number_of_people": reservation.party_size,
        "status": reservation.status.value,
        "customer_name": reservation.customer_name,
        "customer_email": reservation.customer_email,
        "customer_phone": reservation.customer_phone,
        "manual_payment": reservation.manual_payment,
    }
    if reservation.id:
        row["id"] = reservation.id
    return row


class RestReservationRepository:
    def __init__(self, client: StoreClient) -> None:
        self.client = client

    async def list_non_cancelled_by_date(self, date: str) -> list[Reservation]:
        rows = await self.client.call("GET", RESERVATIONS_TABLE, params={
            "select": "*",
            "reservation_date": f"eq.{date}",
            "status": "neq.cancelled",
        })
        return [_reservation_from_row(row) for row in rows]

    async def insert(self, reservation: Reservation) -> Reservation:
        rows = await self.client.call(
            "POST", RESERVATIONS_TABLE,
            json=_reservation_to_row(reservation),
            prefer="return=representation",
        )
        return _reservation_from_row(rows[0]) if rows else reservation

    async def update_status(self, reservation_id: str, status: ReservationStatus) -> None:
        await self.client.call(
            "PATCH", RESERVATIONS_TABLE,
            params={"id": f"eq.{reservation_id}"},
            json={"status": status.value},
        )

    async def get(self, reservation_id: str) -> Optional[Reservation]:
        rows = await self.client.call("GET", RESERVATIONS_TABLE, params={
            "select": "*",
            "id": f"eq.{reservation_id}",
        })
        return _reservation_from_row(rows[0]) if rows else None

    async def find_duplicates(self, date: str, time: str, email: str) -> list[Reservation]:
        rows = await self.client.call("GET", RESERVATIONS_TABLE, params={
            "select": "*",
            "reservation_date": f"eq.{date}",
            "reservation_time": f"eq.{time}",
            "customer_email": f"eq.{email.strip().lower()}",
            "status": "neq.cancelled",
        })
        return [_reservation_from_row(row) for row in rows]

    async def purge(self, reservation_id: str) -> None:
        await self.client.call(
            "DELETE", RESERVATIONS_TABLE, params={"id": f"eq.{reservation_id}"}
        )


def _block_from_row(row: dict) -> BlockedPeriod:
    data = {
        "id": str(row["id"]) if row.get("id") is not None else None,
        "date": row["date"],
        "start_time": row.get("start_time"),
        "end_time": row.get("end_time"),
        "reason": row.get("reason"),
        "created_by": row.get("created_by"),
    }
    if row.get("created_at"):
        data["created_at"] = row["created_at"]
    return BlockedPeriod(**data)


class RestBlockedPeriodRepository:
    def __init__(self, client: StoreClient) -> None:
        self.client = client

    async def list_all(self) -> list[BlockedPeriod]:
        rows = await self.client.call(
            "GET", BLOCKED_PERIODS_TABLE, params={"select": "*", "order": "date.asc"}
        )
        return [_block_from_row(row) for row in rows]

    async def insert(self, block: BlockedPeriod) -> BlockedPeriod:
        rows = await self.client.call(
            "POST", BLOCKED_PERIODS_TABLE,
            json={
                "date": block.date,
                "start_time": block.start_time,
                "end_time": block.end_time,
                "reason": block.reason,
                "created_by": block.created_by,
                "created_at": block.created_at.isoformat(),
            },
            prefer="return=representation",
        )
        return _block_from_row(rows[0]) if rows else block

    async def delete_where(self, date: str, start_time: Optional[str] = None) -> None:
        params = {"date": f"eq.{date}"}
        params["start_time"] = f"eq.{start_time}" if start_time else "is.null"
        await self.client.call("DELETE", BLOCKED_PERIODS_TABLE, params=params)

    async def delete_ids(self, ids: list[str]) -> None:
        if not ids:
            return
        await self.client.call(
            "DELETE", BLOCKED_PERIODS_TABLE, params={"id": f"in.({','.join(ids)})"}
        )


def _session_from_row(row: dict) -> ConductorSession:
    data = {
        "conductor_id": str(row["conductor_id"]),
        "name": row.get("name"),
        "is_active": bool(row.get("is_active")),
        "is_available": row.get("is_available", True) is not False,
        "occupied_until": row.get("occupied_until"),
        "latitude": row.get("current_latitude"),
        "longitude": row.get("current_longitude"),
    }
    if row.get("updated_at"):
        data["updated_at"] = row["updated_at"]
    return ConductorSession(**data)


class RestConductorSessionRepository:
    """Conductor sessions over PostgREST.

    PostgREST has no change feed, so ``subscribe`` only relays upserts
    made through this repository; changes from other clients reach the
    UI through the status feed's poll timer.
    """

    def __init__(self, client: StoreClient) -> None:
        self.client = client
        self._listeners: list[SessionListener] = []

    async def get(self, conductor_id: str) -> Optional[ConductorSession]:
        rows = await self.client.call("GET", CONDUCTORS_TABLE, params={
            "select": "*",
            "conductor_id": f"eq.{conductor_id}",
        })
        return _session_from_row(rows[0]) if rows else None

    async def upsert(self, session: ConductorSession) -> None:
        await self.client.call(
            "POST", CONDUCTORS_TABLE,
            params={"on_conflict": "conductor_id"},
            json={
                "conductor_id": session.conductor_id,
                "name": session.name,
                "is_active": session.is_active,
                "is_available": session.is_available,
                "occupied_until": (
                    session.occupied_until.isoformat() if session.occupied_until else None
                ),
                "updated_at": session.updated_at.isoformat(),
            },
            prefer="resolution=merge-duplicates",
        )
        for listener in list(self._listeners):
            await notify(listener, session)

    async def list_active(self) -> list[ConductorSession]:
        rows = await self.client.call("GET", CONDUCTORS_TABLE, params={
            "select": "*",
            "is_active": "eq.true",
        })
        return [_session_from_row(row) for row in rows]

    def subscribe(self, on_change: SessionListener) -> Unsubscribe:
        self._listeners.append(on_change)

        def unsubscribe() -> None:
            if on_change in self._listeners:
                self._listeners.remove(on_change)

        return unsubscribe
