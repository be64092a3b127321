"""Per-slot day status grid for calendar rendering."""

import logging
from collections import Counter
from typing import Iterable, Optional

from tourbook.repositories.base import BlockedPeriodRepository, ReservationRepository
from tourbook.schemas.availability_schema import SlotStatus, TimeSlot
from tourbook.schemas.block_schema import BlockedPeriod
from tourbook.schemas.reservation_schema import Reservation
from tourbook.scheduling.blocks import DEFAULT_DAY_REASON, DEFAULT_TIME_REASON
from tourbook.scheduling.catalog import TimeSlotCatalog, duration_minutes
from tourbook.scheduling.intervals import Interval

logger = logging.getLogger(__name__)


class DayAvailabilityProjector:
    """
    Projects reservations and blocks onto the slot grid of one day.

    Precedence is whole-day block, then hour block, then occupied, then
    available. A slot spans ``[slot, slot + slot_minutes)`` and is
    occupied when any non-cancelled reservation's interval overlaps it.
    """

    def __init__(
        self,
        catalog: Optional[TimeSlotCatalog] = None,
        slot_minutes: Optional[int] = None,
        reservations: Optional[ReservationRepository] = None,
        blocks: Optional[BlockedPeriodRepository] = None,
    ) -> None:
        self.catalog = catalog or TimeSlotCatalog()
        self.slot_minutes = slot_minutes or duration_minutes(None)
        self.reservations = reservations
        self.blocks = blocks

    def project_day(
        self,
        date: str,
        reservations: Iterable[Reservation],
        blocked_periods: Iterable[BlockedPeriod],
    ) -> list[TimeSlot]:
        day_blocks = [b for b in blocked_periods if b.date == date]
        day_block = next((b for b in day_blocks if b.is_whole_day), None)
        hour_blocks = {b.start_time: b for b in day_blocks if not b.is_whole_day}
        active = sorted(
            (r for r in reservations if r.date == date and r.is_active),
            key=lambda r: r.time,
        )

        grid: list[TimeSlot] = []
        for slot in self.catalog:
            if day_block is not None:
                grid.append(TimeSlot(
                    time=slot,
                    status=SlotStatus.BLOCKED,
                    blocked_by=day_block.created_by,
                    reason=day_block.reason or DEFAULT_DAY_REASON,
                ))
                continue

            hour_block = hour_blocks.get(slot)
            if hour_block is not None:
                grid.append(TimeSlot(
                    time=slot,
                    status=SlotStatus.BLOCKED,
                    blocked_by=hour_block.created_by,
                    reason=hour_block.reason or DEFAULT_TIME_REASON,
                ))
                continue

            window = Interval.from_start(slot, self.slot_minutes)
            holder = next((r for r in active if r.interval.overlaps(window)), None)
            if holder is not None:
                grid.append(TimeSlot(
                    time=slot,
                    status=SlotStatus.OCCUPIED,
                    reservation_id=holder.id,
                ))
            else:
                grid.append(TimeSlot(time=slot, status=SlotStatus.AVAILABLE))
        return grid

    async def project_date(self, date: str) -> list[TimeSlot]:
        """Load the day's reservations and blocks from the repositories and project them.

        Raises:
            StoreUnavailableError: If either repository cannot be read.
        """
        if self.reservations is None or self.blocks is None:
            raise RuntimeError("project_date needs reservation and block repositories")
        reservations = await self.reservations.list_non_cancelled_by_date(date)
        blocks = await self.blocks.list_all()
        grid = self.project_day(date, reservations, blocks)
        logger.debug("Projected %s: %s", date, self.summarize(grid))
        return grid

    @staticmethod
    def summarize(slots: Iterable[TimeSlot]) -> dict[str, int]:
        """Count slots per status, with every status present."""
        counts = Counter(slot.status for slot in slots)
        return {status.value: counts.get(status, 0) for status in SlotStatus}
