"""
Reservation submission and status management.

Submission is read-then-write: the resolver checks the interval, then an
identical (date, time, email) reservation is looked up right before the
insert so double-clicked or retried submissions are rejected. Two
different customers racing for the same interval can still both pass
the check; a store with a unique date+time index turns the loser's
insert into a ``SlotTakenError``, reported as a slot conflict.
"""

from typing import Optional

from tourbook.errors import ErrorKind, SlotTakenError, StoreUnavailableError
from tourbook.logging_context import get_request_logger
from tourbook.repositories.base import ReservationRepository
from tourbook.schemas.availability_schema import BookingResult
from tourbook.schemas.reservation_schema import Reservation, ReservationStatus
from tourbook.scheduling.conflict_resolver import (
    CONFLICT_MESSAGE,
    STORE_ERROR_MESSAGE,
    ConflictResolver,
)

logger = get_request_logger(__name__)


class BookingDesk:
    """Creates reservations behind the availability check and updates their status."""

    def __init__(self, reservations: ReservationRepository, resolver: ConflictResolver) -> None:
        self.reservations = reservations
        self.resolver = resolver

    async def _find_duplicate(self, reservation: Reservation) -> Optional[Reservation]:
        if not reservation.customer_email:
            return None
        duplicates = await self.reservations.find_duplicates(
            reservation.date, reservation.time, reservation.customer_email
        )
        return duplicates[0] if duplicates else None

    def _duplicate_result(self, reservation: Reservation, duplicate: Reservation) -> BookingResult:
        logger.info(
            "Duplicate submission for %s %s by %s",
            reservation.date, reservation.time, reservation.customer_email,
        )
        return BookingResult(
            success=False,
            message="This reservation has already been submitted.",
            reservation=duplicate,
            error=ErrorKind.DUPLICATE_SUBMISSION,
        )

    async def submit(self, reservation: Reservation) -> BookingResult:
        """Create a reservation if its interval is free.

        A resubmission of an existing reservation is reported as a
        duplicate rather than as a conflict with itself.
        """
        check = await self.resolver.check_availability(
            reservation.date,
            reservation.time,
            reservation.party_size,
            reservation.tour_type,
        )

        try:
            if not check.is_available:
                if check.error == ErrorKind.SLOT_CONFLICT:
                    duplicate = await self._find_duplicate(reservation)
                    if duplicate is not None:
                        return self._duplicate_result(reservation, duplicate)
                return BookingResult(
                    success=False,
                    message=check.message,
                    alternative_times=check.alternative_times,
                    error=check.error,
                )

            duplicate = await self._find_duplicate(reservation)
            if duplicate is not None:
                return self._duplicate_result(reservation, duplicate)
            created = await self.reservations.insert(reservation)
        except SlotTakenError:
            logger.info("Insert lost the race for %s %s", reservation.date, reservation.time)
            return BookingResult(
                success=False,
                message=CONFLICT_MESSAGE,
                error=ErrorKind.SLOT_CONFLICT,
            )
        except StoreUnavailableError as exc:
            logger.error("Reservation insert failed: %s", exc)
            return BookingResult(
                success=False,
                message=STORE_ERROR_MESSAGE,
                error=ErrorKind.STORE_UNAVAILABLE,
            )

        logger.info(
            "Reservation created: %s for %s on %s at %s",
            created.id, created.tour_type, created.date, created.time,
        )
        return BookingResult(
            success=True,
            message=f"Reservation received for {created.date} at {created.time}.",
            reservation=created,
        )

    async def update_status(self, reservation_id: str, status: ReservationStatus) -> BookingResult:
        """Move a reservation to a new status (admin action).

        Raises:
            StoreUnavailableError: If the store cannot be reached.
        """
        existing = await self.reservations.get(reservation_id)
        if existing is None:
            return BookingResult(
                success=False,
                message=f"Reservation {reservation_id} not found.",
                error=ErrorKind.NOT_FOUND,
            )
        await self.reservations.update_status(reservation_id, status)
        logger.info("Reservation %s: %s -> %s", reservation_id, existing.status.value, status.value)
        return BookingResult(
            success=True,
            message=f"Reservation {reservation_id} is now {status.value}.",
            reservation=existing.model_copy(update={"status": status}),
        )

    async def confirm(self, reservation_id: str) -> BookingResult:
        return await self.update_status(reservation_id, ReservationStatus.CONFIRMED)

    async def cancel(self, reservation_id: str) -> BookingResult:
        return await self.update_status(reservation_id, ReservationStatus.CANCELLED)

    async def complete(self, reservation_id: str) -> BookingResult:
        return await self.update_status(reservation_id, ReservationStatus.COMPLETED)

    async def purge(self, reservation_id: str) -> BookingResult:
        """Physically delete a reservation. Admin only."""
        existing: Optional[Reservation] = await self.reservations.get(reservation_id)
        if existing is None:
            return BookingResult(
                success=False,
                message=f"Reservation {reservation_id} not found.",
                error=ErrorKind.NOT_FOUND,
            )
        await self.reservations.purge(reservation_id)
        logger.warning("Reservation %s purged", reservation_id)
        return BookingResult(
            success=True,
            message=f"Reservation {reservation_id} deleted.",
            reservation=existing,
        )
