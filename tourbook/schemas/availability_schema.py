"""Availability, slot grid and booking result models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from tourbook.errors import ErrorKind
from tourbook.schemas.reservation_schema import Reservation


class SlotStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    BLOCKED = "blocked"


class TimeSlot(BaseModel):
    """Derived status of one catalog slot on a given day. Never stored."""
    time: str
    status: SlotStatus
    blocked_by: Optional[str] = None
    reservation_id: Optional[str] = None
    reason: Optional[str] = None


class AvailabilityCheck(BaseModel):
    """Result of checking a requested slot."""
    is_available: bool
    conflicting_count: int = 0
    max_capacity: int = 1
    alternative_times: list[str] = Field(default_factory=list)
    message: str = ""
    error: Optional[ErrorKind] = None


class BookingResult(BaseModel):
    """Result of submitting or updating a reservation."""
    success: bool
    message: str
    reservation: Optional[Reservation] = None
    alternative_times: list[str] = Field(default_factory=list)
    error: Optional[ErrorKind] = None
