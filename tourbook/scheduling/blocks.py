"""
Administrator blocked periods: whole-day and single-hour blocks.

At most one block may exist per ``(date, start_time)`` key. The store
does not guarantee this, so creation checks for an equivalent block
first and ``clean_duplicates`` purges the silent duplicates that retried
requests or two admins acting at once can still leave behind.

Unblocking never reopens committed time: a day with a confirmed
reservation, or an hour with a confirmed reservation starting at it,
cannot be unblocked until that reservation is cancelled.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional

from tourbook.errors import ErrorKind, SlotTakenError
from tourbook.repositories.base import BlockedPeriodRepository, ReservationRepository
from tourbook.schemas.block_schema import BlockedPeriod, BlockKind, BlockResult
from tourbook.schemas.reservation_schema import ReservationStatus
from tourbook.scheduling.catalog import TimeSlotCatalog
from tourbook.utils import DATE_FORMAT, normalize_date, normalize_time

logger = logging.getLogger(__name__)

DEFAULT_DAY_REASON = "Day blocked"
DEFAULT_TIME_REASON = "Blocked by the administrator"


def filter_blocks(
    blocks: list[BlockedPeriod],
    kind: Optional[BlockKind] = None,
    date: Optional[str] = None,
) -> list[BlockedPeriod]:
    """Filter blocks by kind (day / hour) and/or date, as the admin list does."""
    if kind is not None:
        blocks = [b for b in blocks if b.kind == kind]
    if date is not None:
        blocks = [b for b in blocks if b.date == date]
    return blocks


class BlockedPeriodStore:
    """Create, delete, list and de-duplicate administrator blocks."""

    def __init__(
        self,
        blocks: BlockedPeriodRepository,
        reservations: ReservationRepository,
        catalog: Optional[TimeSlotCatalog] = None,
    ) -> None:
        self.blocks = blocks
        self.reservations = reservations
        self.catalog = catalog or TimeSlotCatalog()

    async def list_all(self) -> list[BlockedPeriod]:
        return await self.blocks.list_all()

    async def blocks_for_date(self, date: str) -> list[BlockedPeriod]:
        return filter_blocks(await self.blocks.list_all(), date=date)

    async def _find(self, date: str, start_time: Optional[str]) -> Optional[BlockedPeriod]:
        for block in await self.blocks.list_all():
            if block.key == (date, start_time):
                return block
        return None

    async def create(
        self,
        date: str,
        reason: Optional[str] = None,
        start_time: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> BlockedPeriod:
        """
        Block a whole day, or a single slot when ``start_time`` is given.

        Idempotent: if an equivalent block already exists it is returned
        and nothing is inserted.
        """
        date = normalize_date(date)
        start_time = normalize_time(start_time) if start_time is not None else None

        existing = await self._find(date, start_time)
        if existing is not None:
            logger.info("Block %s %s already exists, keeping %s", date, start_time, existing.id)
            return existing

        block = BlockedPeriod(
            date=date,
            start_time=start_time,
            end_time=start_time,
            reason=reason,
            created_by=created_by,
        )
        try:
            created = await self.blocks.insert(block)
        except SlotTakenError:
            # A unique index in the store caught a concurrent duplicate.
            existing = await self._find(date, start_time)
            if existing is None:
                raise
            return existing
        logger.info("Blocked %s %s (%s)", date, start_time or "whole day", reason or "-")
        return created

    async def delete_by_date(self, date: str, start_time: Optional[str] = None) -> BlockResult:
        """
        Unblock a whole day, or only the ``start_time`` hour block.

        The two never cross-delete. Rejected without touching the store
        when a confirmed reservation is attached to the day or hour.
        """
        date = normalize_date(date)
        start_time = normalize_time(start_time) if start_time is not None else None

        reservations = await self.reservations.list_non_cancelled_by_date(date)
        confirmed = [r for r in reservations if r.status == ReservationStatus.CONFIRMED]
        if start_time is not None:
            confirmed = [r for r in confirmed if r.time == start_time]

        if confirmed:
            if start_time is None:
                message = (
                    f"Cannot unblock {date}: it has {len(confirmed)} confirmed "
                    "reservation(s). Cancel them first."
                )
            else:
                message = (
                    f"Cannot unblock {start_time} on {date}: a confirmed reservation "
                    "exists at that time. Cancel it first."
                )
            logger.warning(message)
            return BlockResult(
                success=False,
                message=message,
                error=ErrorKind.BLOCKED_BY_RESERVATION,
            )

        matching = filter_blocks(await self.blocks.list_all(), date=date)
        matching = [b for b in matching if b.start_time == start_time]
        await self.blocks.delete_where(date, start_time)
        label = f"{start_time} on {date}" if start_time else date
        logger.info("Unblocked %s (%d block(s) removed)", label, len(matching))
        return BlockResult(
            success=True,
            message=f"{label} unblocked.",
            removed=len(matching),
        )

    async def clean_duplicates(self) -> int:
        """
        Keep one block per ``(date, start_time)`` and delete the rest.

        The most recently created block of each group survives.

        Returns:
            Number of blocks removed.
        """
        groups: dict[tuple[str, Optional[str]], list[BlockedPeriod]] = defaultdict(list)
        for block in await self.blocks.list_all():
            groups[block.key].append(block)

        doomed: list[str] = []
        for key, members in groups.items():
            if len(members) < 2:
                continue
            members.sort(key=lambda b: b.created_at, reverse=True)
            doomed.extend(b.id for b in members[1:] if b.id)
            logger.debug("Duplicate blocks for %s: keeping %s", key, members[0].id)

        if doomed:
            await self.blocks.delete_ids(doomed)
        logger.info("Duplicate block cleanup removed %d block(s)", len(doomed))
        return len(doomed)

    async def block_time_range(
        self,
        date: str,
        start_time: str,
        end_time: str,
        reason: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> BlockResult:
        """Block every catalog slot from ``start_time`` to ``end_time`` inclusive."""
        if start_time not in self.catalog or end_time not in self.catalog:
            return BlockResult(
                success=False,
                message=f"Times {start_time}-{end_time} are not bookable slots.",
                error=ErrorKind.INVALID_RANGE,
            )
        slots = self.catalog.slots_between(start_time, end_time)
        if not slots:
            return BlockResult(
                success=False,
                message="Start time must not be after end time.",
                error=ErrorKind.INVALID_RANGE,
            )

        created = [
            await self.create(date, reason, start_time=slot, created_by=created_by)
            for slot in slots
        ]
        return BlockResult(
            success=True,
            message=f"{len(created)} slot(s) blocked on {date}.",
            blocks=created,
        )

    async def block_day_range(
        self,
        start_date: str,
        end_date: str,
        reason: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> BlockResult:
        """Block every day from ``start_date`` to ``end_date`` inclusive."""
        try:
            first = datetime.strptime(start_date.strip(), DATE_FORMAT).date()
            last = datetime.strptime(end_date.strip(), DATE_FORMAT).date()
        except ValueError:
            return BlockResult(
                success=False,
                message=f"Invalid dates {start_date!r} - {end_date!r}.",
                error=ErrorKind.INVALID_RANGE,
            )
        if first > last:
            return BlockResult(
                success=False,
                message="Start date must not be after end date.",
                error=ErrorKind.INVALID_RANGE,
            )

        created = []
        day = first
        while day <= last:
            created.append(await self.create(day.strftime(DATE_FORMAT), reason, created_by=created_by))
            day += timedelta(days=1)
        return BlockResult(
            success=True,
            message=f"{len(created)} day(s) blocked.",
            blocks=created,
        )

    async def is_day_blocked(self, date: str) -> bool:
        return any(b.is_whole_day for b in await self.blocks_for_date(date))

    async def is_time_blocked(self, date: str, time: str) -> bool:
        time = normalize_time(time)
        return any(b.start_time == time for b in await self.blocks_for_date(date))

    async def day_block_reason(self, date: str) -> Optional[str]:
        """Reason shown for a blocked day, or None when the day is open."""
        for block in await self.blocks_for_date(date):
            if block.is_whole_day:
                return block.reason or DEFAULT_DAY_REASON
        return None
