"""
Error taxonomy for the booking engine.

Only store failures and illegal conductor transitions are raised as
exceptions. Every other kind is carried back to the caller inside a
structured result (``AvailabilityCheck``, ``BlockResult``,
``BookingResult``) tagged with an ``ErrorKind``.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories surfaced to UI callers."""

    STORE_UNAVAILABLE = "store_unavailable"
    SLOT_CONFLICT = "slot_conflict"
    DUPLICATE_BLOCK = "duplicate_block"
    BLOCKED_BY_RESERVATION = "blocked_by_reservation"
    INVALID_RANGE = "invalid_range"
    DUPLICATE_SUBMISSION = "duplicate_submission"
    NOT_FOUND = "not_found"


class TourbookError(Exception):
    """Base exception for all booking engine errors."""


class StoreUnavailableError(TourbookError):
    """Raised by repositories when the backing store cannot be reached.

    Covers network failures, timeouts and unexpected backend errors.
    The engine never retries; retry policy belongs to the host.
    """


class SlotTakenError(TourbookError):
    """Raised by a repository whose insert hit a unique date+time constraint."""


class InvalidTransitionError(TourbookError):
    """Raised when a conductor status transition is not valid from the current state."""
