"""
Repository interfaces the engine requires from its host.

Every method is a coroutine against a remote store. Implementations
raise ``StoreUnavailableError`` on any backend failure and never retry.
"""

from typing import Any, Awaitable, Callable, Optional, Protocol, Union

from tourbook.schemas.block_schema import BlockedPeriod
from tourbook.schemas.conductor_schema import ConductorSession
from tourbook.schemas.reservation_schema import Reservation, ReservationStatus

SessionListener = Callable[[ConductorSession], Union[None, Awaitable[None]]]
Unsubscribe = Callable[[], None]


class ReservationRepository(Protocol):
    async def list_non_cancelled_by_date(self, date: str) -> list[Reservation]: ...

    async def insert(self, reservation: Reservation) -> Reservation:
        """Persist a reservation; may raise ``SlotTakenError`` on a unique constraint."""
        ...

    async def update_status(self, reservation_id: str, status: ReservationStatus) -> None: ...

    async def get(self, reservation_id: str) -> Optional[Reservation]: ...

    async def find_duplicates(self, date: str, time: str, email: str) -> list[Reservation]:
        """Non-cancelled reservations with the same date, time and customer email."""
        ...

    async def purge(self, reservation_id: str) -> None: ...


class BlockedPeriodRepository(Protocol):
    async def list_all(self) -> list[BlockedPeriod]: ...

    async def insert(self, block: BlockedPeriod) -> BlockedPeriod: ...

    async def delete_where(self, date: str, start_time: Optional[str] = None) -> None:
        """Delete the whole-day blocks of ``date``, or only its ``start_time`` blocks."""
        ...

    async def delete_ids(self, ids: list[str]) -> None: ...


class ConductorSessionRepository(Protocol):
    async def get(self, conductor_id: str) -> Optional[ConductorSession]: ...

    async def upsert(self, session: ConductorSession) -> None: ...

    async def list_active(self) -> list[ConductorSession]: ...

    def subscribe(self, on_change: SessionListener) -> Unsubscribe: ...


async def notify(listener: SessionListener, session: ConductorSession) -> Any:
    """Call a listener that may be a plain function or a coroutine function."""
    result = listener(session)
    if result is not None and hasattr(result, "__await__"):
        return await result
    return result
