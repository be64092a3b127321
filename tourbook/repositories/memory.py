"""
In-memory repositories.

Used by the console demo and the test-suite. They mimic the remote store
closely enough to exercise the engine: no uniqueness constraint on
blocked periods (so duplicates can be reproduced), copies on every read,
and an ``unavailable`` switch that makes every call raise
``StoreUnavailableError``.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from tourbook.errors import StoreUnavailableError
from tourbook.repositories.base import SessionListener, Unsubscribe, notify
from tourbook.schemas.block_schema import BlockedPeriod
from tourbook.schemas.conductor_schema import ConductorSession
from tourbook.schemas.reservation_schema import Reservation, ReservationStatus

logger = logging.getLogger(__name__)


class _InMemoryStore:
    """Shared failure switch and call log."""

    def __init__(self) -> None:
        self.unavailable = False
        self.calls: list[str] = []

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if self.unavailable:
            raise StoreUnavailableError(f"store_unavailable: {operation}")


class InMemoryReservationRepository(_InMemoryStore):
    def __init__(self, reservations: Optional[list[Reservation]] = None) -> None:
        super().__init__()
        self._rows: dict[str, Reservation] = {}
        for reservation in reservations or []:
            self._store(reservation)

    def _store(self, reservation: Reservation) -> Reservation:
        row = reservation.model_copy(update={
            "id": reservation.id or f"RES-{uuid.uuid4().hex[:8]}",
            "created_at": reservation.created_at or datetime.now(timezone.utc),
        })
        self._rows[row.id] = row
        return row.model_copy()

    async def list_non_cancelled_by_date(self, date: str) -> list[Reservation]:
        self._enter("list_non_cancelled_by_date")
        return [
            r.model_copy() for r in self._rows.values()
            if r.date == date and r.status != ReservationStatus.CANCELLED
        ]

    async def insert(self, reservation: Reservation) -> Reservation:
        self._enter("insert")
        row = self._store(reservation)
        logger.debug("Reservation stored: %s on %s at %s", row.id, row.date, row.time)
        return row

    async def update_status(self, reservation_id: str, status: ReservationStatus) -> None:
        self._enter("update_status")
        if reservation_id in self._rows:
            self._rows[reservation_id] = self._rows[reservation_id].model_copy(
                update={"status": status}
            )

    async def get(self, reservation_id: str) -> Optional[Reservation]:
        self._enter("get")
        row = self._rows.get(reservation_id)
        return row.model_copy() if row else None

    async def find_duplicates(self, date: str, time: str, email: str) -> list[Reservation]:
        self._enter("find_duplicates")
        email = email.strip().lower()
        return [
            r.model_copy() for r in self._rows.values()
            if r.date == date and r.time == time and r.customer_email == email
            and r.status != ReservationStatus.CANCELLED
        ]

    async def purge(self, reservation_id: str) -> None:
        self._enter("purge")
        self._rows.pop(reservation_id, None)

    def all(self) -> list[Reservation]:
        return [r.model_copy() for r in self._rows.values()]

    def reset(self) -> None:
        """Clear all rows. Used by test fixtures for isolation."""
        self._rows.clear()
        self.calls.clear()
        self.unavailable = False


class InMemoryBlockedPeriodRepository(_InMemoryStore):
    def __init__(self, blocks: Optional[list[BlockedPeriod]] = None) -> None:
        super().__init__()
        self._rows: list[BlockedPeriod] = []
        for block in blocks or []:
            self._store(block)

    def _store(self, block: BlockedPeriod) -> BlockedPeriod:
        row = block.model_copy(update={"id": block.id or f"BLK-{uuid.uuid4().hex[:8]}"})
        self._rows.append(row)
        return row.model_copy()

    async def list_all(self) -> list[BlockedPeriod]:
        self._enter("list_all")
        return [b.model_copy() for b in self._rows]

    async def insert(self, block: BlockedPeriod) -> BlockedPeriod:
        self._enter("insert")
        return self._store(block)

    async def delete_where(self, date: str, start_time: Optional[str] = None) -> None:
        self._enter("delete_where")
        self._rows = [
            b for b in self._rows
            if not (b.date == date and b.start_time == start_time)
        ]

    async def delete_ids(self, ids: list[str]) -> None:
        self._enter("delete_ids")
        doomed = set(ids)
        self._rows = [b for b in self._rows if b.id not in doomed]

    def reset(self) -> None:
        self._rows.clear()
        self.calls.clear()
        self.unavailable = False


class InMemoryConductorSessionRepository(_InMemoryStore):
    """Session store that pushes every upsert to its subscribers."""

    def __init__(self, sessions: Optional[list[ConductorSession]] = None) -> None:
        super().__init__()
        self._rows: dict[str, ConductorSession] = {
            s.conductor_id: s.model_copy() for s in sessions or []
        }
        self._listeners: list[SessionListener] = []

    async def get(self, conductor_id: str) -> Optional[ConductorSession]:
        self._enter("get")
        row = self._rows.get(conductor_id)
        return row.model_copy() if row else None

    async def upsert(self, session: ConductorSession) -> None:
        self._enter("upsert")
        self._rows[session.conductor_id] = session.model_copy()
        for listener in list(self._listeners):
            await notify(listener, session.model_copy())

    async def list_active(self) -> list[ConductorSession]:
        self._enter("list_active")
        return [s.model_copy() for s in self._rows.values() if s.is_active]

    def subscribe(self, on_change: SessionListener) -> Unsubscribe:
        self._listeners.append(on_change)

        def unsubscribe() -> None:
            if on_change in self._listeners:
                self._listeners.remove(on_change)

        return unsubscribe

    def reset(self) -> None:
        self._rows.clear()
        self._listeners.clear()
        self.calls.clear()
        self.unavailable = False
