"""
Conductor availability state machine.

The vehicle is ``offline`` (no active session), ``available``, or
``busy`` until a given time. Every status change goes through an
explicit transition table. A busy window whose ``occupied_until`` has
passed is read as available; nothing rewrites the stored flag.

Only one conductor session is the live one shown to passengers. Making a
conductor active first deactivates every other active session; the most
recent call wins, there is no lock.

Usage:
    tracker = ConductorAvailabilityTracker(session_repo)
    await tracker.set_active("conductor-1")
    await tracker.set_busy_for("conductor-1", 60)
    status = await tracker.get_status("conductor-1")
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from tourbook.config import settings
from tourbook.errors import InvalidTransitionError, StoreUnavailableError
from tourbook.repositories.base import ConductorSessionRepository
from tourbook.schemas.conductor_schema import ConductorSession, ConductorState, ConductorStatus

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

WRITE_FAILED_MESSAGE = "Status update failed; showing the last confirmed status."


class StatusTrigger(str, Enum):
    """Admin actions that change a conductor's state."""
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    MARK_BUSY = "mark_busy"
    MARK_AVAILABLE = "mark_available"


@dataclass
class Transition:
    """A single valid state transition."""
    from_state: ConductorState
    to_state: ConductorState
    trigger: StatusTrigger


TRANSITIONS: list[Transition] = [
    # --- Session switching ---
    Transition(ConductorState.OFFLINE, ConductorState.AVAILABLE, StatusTrigger.ACTIVATE),
    Transition(ConductorState.AVAILABLE, ConductorState.AVAILABLE, StatusTrigger.ACTIVATE),
    Transition(ConductorState.BUSY, ConductorState.BUSY, StatusTrigger.ACTIVATE),
    Transition(ConductorState.AVAILABLE, ConductorState.OFFLINE, StatusTrigger.DEACTIVATE),
    Transition(ConductorState.BUSY, ConductorState.OFFLINE, StatusTrigger.DEACTIVATE),
    Transition(ConductorState.OFFLINE, ConductorState.OFFLINE, StatusTrigger.DEACTIVATE),

    # --- Availability ---
    Transition(ConductorState.AVAILABLE, ConductorState.BUSY, StatusTrigger.MARK_BUSY),
    Transition(ConductorState.BUSY, ConductorState.BUSY, StatusTrigger.MARK_BUSY),
    Transition(ConductorState.BUSY, ConductorState.AVAILABLE, StatusTrigger.MARK_AVAILABLE),
    Transition(ConductorState.AVAILABLE, ConductorState.AVAILABLE, StatusTrigger.MARK_AVAILABLE),
]


def valid_triggers(state: ConductorState) -> list[StatusTrigger]:
    """Return all triggers valid from ``state``."""
    return [t.trigger for t in TRANSITIONS if t.from_state == state]


def next_state(state: ConductorState, trigger: StatusTrigger) -> ConductorState:
    """
    Resolve a transition.

    Raises:
        InvalidTransitionError: If no valid transition exists.
    """
    for t in TRANSITIONS:
        if t.from_state == state and t.trigger == trigger:
            return t.to_state
    valid = [t.value for t in valid_triggers(state)]
    raise InvalidTransitionError(
        f"No valid transition from '{state.value}' "
        f"with trigger '{trigger.value}'. Valid triggers: {valid}"
    )


def effective_state(session: Optional[ConductorSession], now: datetime) -> ConductorState:
    """State a reader should show for a stored session at ``now``.

    A busy flag with an ``occupied_until`` that is not in the future is
    read as available. A busy flag without a deadline stays busy.
    """
    if session is None or not session.is_active:
        return ConductorState.OFFLINE
    if session.is_available:
        return ConductorState.AVAILABLE
    if session.occupied_until is not None and session.occupied_until <= now:
        return ConductorState.AVAILABLE
    return ConductorState.BUSY


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConductorAvailabilityTracker:
    """
    Reads and writes the single vehicle's operational state.

    Keeps two local caches: the last session the store confirmed, and
    writes that failed. Both are best-effort and only used when the store
    is unreachable; any successful read replaces them.
    """

    def __init__(
        self,
        sessions: ConductorSessionRepository,
        clock: Optional[Clock] = None,
    ) -> None:
        self.sessions = sessions
        self._clock = clock or _utcnow
        self._confirmed: dict[str, ConductorSession] = {}
        self._pending: dict[str, ConductorSession] = {}

    def now(self) -> datetime:
        return self._clock()

    def status_of(
        self,
        session: Optional[ConductorSession],
        conductor_id: Optional[str] = None,
        *,
        confirmed: bool = True,
        stale: bool = False,
        message: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ConductorStatus:
        """Build the caller-facing status for a stored session."""
        state = effective_state(session, now or self.now())
        occupied_until = session.occupied_until if session and state == ConductorState.BUSY else None
        if message is None:
            if state == ConductorState.OFFLINE:
                message = "Offline"
            elif state == ConductorState.AVAILABLE:
                message = "Available now"
            elif occupied_until is not None:
                message = f"Busy, available again at {occupied_until.astimezone():%H:%M}"
            else:
                message = "Busy"
        return ConductorStatus(
            conductor_id=session.conductor_id if session else conductor_id,
            state=state,
            is_active=bool(session and session.is_active),
            occupied_until=occupied_until,
            updated_at=session.updated_at if session else None,
            confirmed=confirmed,
            stale=stale,
            message=message,
        )

    def _remember(self, session: ConductorSession) -> None:
        self._confirmed[session.conductor_id] = session
        self._pending.pop(session.conductor_id, None)

    async def _current(self, conductor_id: str) -> Optional[ConductorSession]:
        """
        Stored session, or the last confirmed one when the store is down.

        Raises:
            StoreUnavailableError: If the store is down and nothing is cached.
        """
        try:
            session = await self.sessions.get(conductor_id)
        except StoreUnavailableError as exc:
            cached = self._confirmed.get(conductor_id)
            if cached is None:
                raise
            logger.warning("Could not read conductor %s, using cached session: %s", conductor_id, exc)
            return cached
        if session is not None:
            self._remember(session)
        return session

    def _fallback(
        self,
        conductor_id: str,
        previous: Optional[ConductorSession],
        attempted: Optional[ConductorSession],
        exc: StoreUnavailableError,
    ) -> ConductorStatus:
        logger.warning("Status write for %s failed, keeping previous state: %s", conductor_id, exc)
        if attempted is not None:
            self._pending[conductor_id] = attempted
        return self.status_of(
            previous or self._confirmed.get(conductor_id),
            conductor_id,
            confirmed=False,
            stale=True,
            message=WRITE_FAILED_MESSAGE,
        )

    async def _write(
        self,
        previous: Optional[ConductorSession],
        updated: ConductorSession,
    ) -> ConductorStatus:
        try:
            await self.sessions.upsert(updated)
        except StoreUnavailableError as exc:
            return self._fallback(updated.conductor_id, previous, updated, exc)
        self._remember(updated)
        return self.status_of(updated)

    async def get_status(self, conductor_id: str, now: Optional[datetime] = None) -> ConductorStatus:
        """
        Effective status of one conductor.

        When the store cannot be read, the last locally known session
        (a failed write, else the last confirmed read) is returned marked
        ``stale``.

        Raises:
            StoreUnavailableError: If the store is down and nothing is cached.
        """
        try:
            session = await self.sessions.get(conductor_id)
        except StoreUnavailableError:
            cached = self._pending.get(conductor_id) or self._confirmed.get(conductor_id)
            if cached is None:
                raise
            return self.status_of(
                cached, confirmed=conductor_id not in self._pending, stale=True, now=now
            )
        if session is None:
            return self.status_of(None, conductor_id, message="No session for this conductor")
        self._remember(session)
        return self.status_of(session, now=now)

    async def get_live_conductor(self) -> ConductorStatus:
        """
        Status of the active session passengers should see.

        Returns an ``offline`` status when no session is active. If more
        than one is active (a lost deactivation), the most recently updated
        one is used.

        Raises:
            StoreUnavailableError: If the store is down and nothing is cached.
        """
        try:
            active = await self.sessions.list_active()
        except StoreUnavailableError:
            cached = [s for s in self._confirmed.values() if s.is_active]
            if not cached:
                raise
            live = max(cached, key=lambda s: s.updated_at)
            return self.status_of(live, stale=True)

        if not active:
            return self.status_of(None, message="No active conductor")
        if len(active) > 1:
            logger.warning("%d active conductor sessions, using the latest", len(active))
        live = max(active, key=lambda s: s.updated_at)
        self._remember(live)
        return self.status_of(live)

    async def set_busy(self, conductor_id: str, occupied_until: datetime) -> ConductorStatus:
        """
        Mark the conductor busy until ``occupied_until``.

        Raises:
            ValueError: If ``occupied_until`` is naive or not in the future.
            InvalidTransitionError: If the conductor is not active.
            StoreUnavailableError: If the store is down and nothing is cached.
        """
        now = self.now()
        if occupied_until.tzinfo is None:
            raise ValueError("occupied_until must be timezone-aware")
        if occupied_until <= now:
            raise ValueError(f"occupied_until must be in the future, got {occupied_until.isoformat()}")

        previous = await self._current(conductor_id)
        next_state(effective_state(previous, now), StatusTrigger.MARK_BUSY)
        updated = previous.model_copy(update={
            "is_available": False,
            "occupied_until": occupied_until,
            "updated_at": now,
        })
        logger.info("Conductor %s busy until %s", conductor_id, occupied_until.isoformat())
        return await self._write(previous, updated)

    async def set_busy_for(self, conductor_id: str, minutes: Optional[int] = None) -> ConductorStatus:
        """Mark the conductor busy for the next ``minutes`` minutes."""
        limits = settings.conductor
        if minutes is None:
            minutes = limits.default_busy_minutes
        if not 1 <= minutes <= limits.max_busy_minutes:
            raise ValueError(
                f"Busy minutes must be between 1 and {limits.max_busy_minutes}, got {minutes}"
            )
        return await self.set_busy(conductor_id, self.now() + timedelta(minutes=minutes))

    async def set_available(self, conductor_id: str) -> ConductorStatus:
        """
        Mark the conductor available again and clear the busy window.

        Raises:
            InvalidTransitionError: If the conductor is not active.
            StoreUnavailableError: If the store is down and nothing is cached.
        """
        now = self.now()
        previous = await self._current(conductor_id)
        next_state(effective_state(previous, now), StatusTrigger.MARK_AVAILABLE)
        updated = previous.model_copy(update={
            "is_available": True,
            "occupied_until": None,
            "updated_at": now,
        })
        logger.info("Conductor %s available", conductor_id)
        return await self._write(previous, updated)

    async def set_active(self, conductor_id: str, name: Optional[str] = None) -> ConductorStatus:
        """Make ``conductor_id`` the live session, deactivating any other first."""
        now = self.now()
        previous = await self._current(conductor_id)

        try:
            for other in await self.sessions.list_active():
                if other.conductor_id == conductor_id:
                    continue
                retired = other.model_copy(update={"is_active": False, "updated_at": now})
                await self.sessions.upsert(retired)
                self._remember(retired)
                logger.info("Conductor %s deactivated in favour of %s", other.conductor_id, conductor_id)
        except StoreUnavailableError as exc:
            return self._fallback(conductor_id, previous, None, exc)

        state = effective_state(previous, now)
        next_state(state, StatusTrigger.ACTIVATE)
        base = previous or ConductorSession(conductor_id=conductor_id)
        changes = {"is_active": True, "updated_at": now, "name": name or base.name}
        if state == ConductorState.OFFLINE:
            changes.update(is_available=True, occupied_until=None)
        logger.info("Conductor %s is now live", conductor_id)
        return await self._write(previous, base.model_copy(update=changes))

    async def set_inactive(self, conductor_id: str) -> ConductorStatus:
        """Stop surfacing ``conductor_id`` to passengers."""
        now = self.now()
        previous = await self._current(conductor_id)
        if previous is None:
            return self.status_of(None, conductor_id, message="No session for this conductor")
        next_state(effective_state(previous, now), StatusTrigger.DEACTIVATE)
        updated = previous.model_copy(update={"is_active": False, "updated_at": now})
        logger.info("Conductor %s deactivated", conductor_id)
        return await self._write(previous, updated)

    async def update_active_conductors(self, conductor_ids: list[str]) -> ConductorStatus:
        """
        Replace the set of live conductors.

        The single-vehicle setup keeps one live session, so the last id
        given wins. An empty list takes every session offline.
        """
        if not conductor_ids:
            try:
                active = await self.sessions.list_active()
            except StoreUnavailableError as exc:
                logger.warning("Could not list active conductors: %s", exc)
                return self.status_of(None, confirmed=False, stale=True, message=WRITE_FAILED_MESSAGE)
            for session in active:
                await self.set_inactive(session.conductor_id)
            return self.status_of(None, message="No active conductor")
        if len(conductor_ids) > 1:
            logger.warning("Only one live conductor is supported, using %s", conductor_ids[-1])
        return await self.set_active(conductor_ids[-1])
