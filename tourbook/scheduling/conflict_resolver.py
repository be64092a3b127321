"""
Availability check and alternative-time search for the single vehicle.

The vehicle has a capacity of exactly one tour at a time, whatever the
party size. A request is granted only if its interval overlaps no
existing non-cancelled reservation and its date/time is not blocked by
the operator. On conflict the resolver suggests the nearest start time
that fits before the next committed interval or before closing.

Usage:
    resolver = ConflictResolver(reservation_repo, block_repo)
    check = await resolver.check_availability("2025-08-20", "10:00", 2, "panoramic")
    if not check.is_available:
        print(check.message, check.alternative_times)
"""

from typing import Iterable, Optional

from tourbook.errors import ErrorKind, StoreUnavailableError
from tourbook.logging_context import get_request_logger
from tourbook.repositories.base import BlockedPeriodRepository, ReservationRepository
from tourbook.schemas.availability_schema import AvailabilityCheck
from tourbook.schemas.block_schema import BlockedPeriod
from tourbook.schemas.reservation_schema import Reservation
from tourbook.scheduling.catalog import TimeSlotCatalog, duration_minutes
from tourbook.scheduling.intervals import Interval, sort_intervals
from tourbook.utils import minutes_to_time, normalize_time, time_to_minutes

logger = get_request_logger(__name__)

MAX_CAPACITY = 1

AVAILABLE_MESSAGE = "Time slot available!"
CONFLICT_MESSAGE = "This time slot is already reserved by another customer."
DAY_BLOCKED_MESSAGE = "This day is unavailable for bookings."
TIME_BLOCKED_MESSAGE = "This time slot is unavailable for bookings."
STORE_ERROR_MESSAGE = "Could not verify availability. Please try again."


def occupied_intervals(reservations: Iterable[Reservation]) -> list[Interval]:
    """Sorted intervals held by the non-cancelled reservations."""
    return sort_intervals(r.interval for r in reservations if r.is_active)


def hour_block_intervals(blocks: Iterable[BlockedPeriod]) -> list[Interval]:
    """Hour blocks held as a default-length booking starting at the block time."""
    return sort_intervals(
        Interval.from_start(b.start_time, duration_minutes(None))
        for b in blocks
        if not b.is_whole_day
    )


def find_next_available_time(
    requested_time: str,
    duration: int,
    occupied: Iterable[Interval],
    closing_time: str,
) -> Optional[str]:
    """
    Earliest start at or after ``requested_time`` where ``duration`` fits.

    Walks the occupied intervals in start order looking for the first gap:
    before the first interval, between two consecutive intervals, or after
    the last one as long as the tour still ends by closing time.

    Returns:
        The suggested ``HH:MM`` start, or None when nothing fits today.
    """
    candidate = time_to_minutes(requested_time)
    closing = time_to_minutes(closing_time)

    for interval in sort_intervals(occupied):
        if interval.end <= candidate:
            continue
        if candidate + duration <= interval.start:
            return minutes_to_time(candidate)
        candidate = max(candidate, interval.end)

    if candidate + duration <= closing:
        return minutes_to_time(candidate)
    return None


class ConflictResolver:
    """Decides whether a requested slot can be granted on a one-unit resource."""

    def __init__(
        self,
        reservations: ReservationRepository,
        blocks: Optional[BlockedPeriodRepository] = None,
        catalog: Optional[TimeSlotCatalog] = None,
    ) -> None:
        self.reservations = reservations
        self.blocks = blocks
        self.catalog = catalog or TimeSlotCatalog()

    async def _blocks_for(self, date: str) -> list[BlockedPeriod]:
        if self.blocks is None:
            return []
        return [b for b in await self.blocks.list_all() if b.date == date]

    async def check_availability(
        self,
        date: str,
        time: str,
        party_size: int = 1,
        tour_type: Optional[str] = None,
    ) -> AvailabilityCheck:
        """
        Check whether ``tour_type`` can start at ``time`` on ``date``.

        ``party_size`` is informational; capacity is one tour per interval.
        Fails closed: if the store cannot be read the slot is reported as
        unavailable with an explanatory message.
        """
        time = normalize_time(time)
        duration = duration_minutes(tour_type)
        requested = Interval.from_start(time, duration)

        try:
            existing = await self.reservations.list_non_cancelled_by_date(date)
            day_blocks = await self._blocks_for(date)
        except StoreUnavailableError as exc:
            logger.error("Availability check failed for %s %s: %s", date, time, exc)
            return AvailabilityCheck(
                is_available=False,
                max_capacity=MAX_CAPACITY,
                message=STORE_ERROR_MESSAGE,
                error=ErrorKind.STORE_UNAVAILABLE,
            )

        occupied = occupied_intervals(existing)
        conflicts = [iv for iv in occupied if iv.overlaps(requested)]

        if any(b.is_whole_day for b in day_blocks):
            logger.info("Request %s %s rejected: day blocked", date, time)
            return AvailabilityCheck(
                is_available=False,
                conflicting_count=len(conflicts),
                max_capacity=MAX_CAPACITY,
                message=DAY_BLOCKED_MESSAGE,
                error=ErrorKind.SLOT_CONFLICT,
            )

        blocked = hour_block_intervals(day_blocks)
        time_blocked = any(iv.overlaps(requested) for iv in blocked)

        if not conflicts and not time_blocked:
            return AvailabilityCheck(
                is_available=True,
                conflicting_count=0,
                max_capacity=MAX_CAPACITY,
                message=AVAILABLE_MESSAGE,
            )

        suggestion = find_next_available_time(
            time, duration, occupied + blocked, self.catalog.closing_time
        )
        logger.info(
            "Request %s %s (%s) rejected: %d conflict(s), suggesting %s",
            date, time, tour_type, len(conflicts), suggestion,
        )
        return AvailabilityCheck(
            is_available=False,
            conflicting_count=len(conflicts),
            max_capacity=MAX_CAPACITY,
            alternative_times=[suggestion] if suggestion else [],
            message=CONFLICT_MESSAGE if conflicts else TIME_BLOCKED_MESSAGE,
            error=ErrorKind.SLOT_CONFLICT,
        )

    async def generate_alternative_times(
        self,
        date: str,
        party_size: int = 1,
        tour_type: Optional[str] = None,
    ) -> list[str]:
        """Every catalog slot on ``date`` where ``tour_type`` fits.

        Raises:
            StoreUnavailableError: If the reservations or blocks cannot be read.
        """
        duration = duration_minutes(tour_type)
        existing = await self.reservations.list_non_cancelled_by_date(date)
        day_blocks = await self._blocks_for(date)

        if any(b.is_whole_day for b in day_blocks):
            return []

        occupied = occupied_intervals(existing) + hour_block_intervals(day_blocks)
        alternatives = []
        for slot in self.catalog:
            candidate = Interval.from_start(slot, duration)
            if candidate.end > self.catalog.closing_minutes:
                continue
            if not any(candidate.overlaps(iv) for iv in occupied):
                alternatives.append(slot)
        return alternatives
