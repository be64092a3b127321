"""Shared test fixtures and helpers."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from tourbook.conductor.state_machine import ConductorAvailabilityTracker
from tourbook.repositories.memory import (
    InMemoryBlockedPeriodRepository,
    InMemoryConductorSessionRepository,
    InMemoryReservationRepository,
)
from tourbook.schemas.block_schema import BlockedPeriod
from tourbook.schemas.conductor_schema import ConductorSession
from tourbook.schemas.reservation_schema import Reservation, ReservationStatus
from tourbook.scheduling.blocks import BlockedPeriodStore
from tourbook.scheduling.booking import BookingDesk
from tourbook.scheduling.catalog import TimeSlotCatalog
from tourbook.scheduling.conflict_resolver import ConflictResolver
from tourbook.scheduling.projector import DayAvailabilityProjector

DAY = "2025-08-20"
NOW = datetime(2025, 8, 20, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock for the conductor tracker."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def reservation_repo():
    return InMemoryReservationRepository()


@pytest.fixture
def block_repo():
    return InMemoryBlockedPeriodRepository()


@pytest.fixture
def session_repo():
    return InMemoryConductorSessionRepository()


@pytest.fixture
def catalog():
    return TimeSlotCatalog(
        ["09:00", "10:30", "12:00", "14:00", "15:30", "17:00", "18:30"],
        opening_time="08:00",
        closing_time="20:00",
    )


@pytest.fixture
def resolver(reservation_repo, block_repo, catalog):
    return ConflictResolver(reservation_repo, block_repo, catalog)


@pytest.fixture
def block_store(block_repo, reservation_repo, catalog):
    return BlockedPeriodStore(block_repo, reservation_repo, catalog)


@pytest.fixture
def projector(reservation_repo, block_repo, catalog):
    return DayAvailabilityProjector(catalog, reservations=reservation_repo, blocks=block_repo)


@pytest.fixture
def desk(reservation_repo, resolver):
    return BookingDesk(reservation_repo, resolver)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker(session_repo, clock):
    return ConductorAvailabilityTracker(session_repo, clock=clock)


def make_reservation(
    time: str,
    tour_type: str = "panoramic",
    date: str = DAY,
    status: ReservationStatus = ReservationStatus.PENDING,
    email: Optional[str] = None,
    party_size: int = 2,
    reservation_id: Optional[str] = None,
) -> Reservation:
    """Helper to create a Reservation with sensible defaults."""
    return Reservation(
        id=reservation_id,
        date=date,
        time=time,
        tour_type=tour_type,
        party_size=party_size,
        status=status,
        customer_name="Test Customer",
        customer_email=email,
    )


def make_block(
    date: str = DAY,
    start_time: Optional[str] = None,
    reason: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> BlockedPeriod:
    """Helper to create a whole-day block, or an hour block when start_time is set."""
    data = {"date": date, "start_time": start_time, "end_time": start_time, "reason": reason}
    if created_at is not None:
        data["created_at"] = created_at
    return BlockedPeriod(**data)


def make_session(
    conductor_id: str = "driver-1",
    is_active: bool = True,
    is_available: bool = True,
    occupied_until: Optional[datetime] = None,
    updated_at: datetime = NOW,
) -> ConductorSession:
    return ConductorSession(
        conductor_id=conductor_id,
        is_active=is_active,
        is_available=is_available,
        occupied_until=occupied_until,
        updated_at=updated_at,
    )
