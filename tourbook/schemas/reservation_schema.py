"""Reservation data models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from tourbook.scheduling.catalog import duration_minutes, is_known_tour
from tourbook.scheduling.intervals import Interval
from tourbook.utils import normalize_date, normalize_email, normalize_time


class ReservationStatus(str, Enum):
    """Lifecycle status of a reservation."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Reservation(BaseModel):
    """A tour booking occupying ``[time, time + duration(tour_type))`` on ``date``."""
    id: Optional[str] = None
    date: str
    time: str
    tour_type: str
    party_size: int = Field(default=1, ge=1)
    status: ReservationStatus = ReservationStatus.PENDING
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    manual_payment: Optional[bool] = None
    created_at: Optional[datetime] = None

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        return normalize_date(value)

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        return normalize_time(value)

    @field_validator("customer_email")
    @classmethod
    def _check_email(cls, value: Optional[str]) -> Optional[str]:
        return normalize_email(value) if value else value

    @classmethod
    def create(cls, **data) -> "Reservation":
        """Build a new reservation, rejecting tour types missing from the catalog.

        Records read back from the store skip this check and fall back to
        the default duration instead.
        """
        tour_type = data.get("tour_type")
        if not is_known_tour(tour_type):
            raise ValueError(f"Unknown tour type: {tour_type!r}")
        return cls(**data)

    @property
    def duration(self) -> int:
        return duration_minutes(self.tour_type)

    @property
    def interval(self) -> Interval:
        return Interval.from_start(self.time, self.duration)

    @property
    def is_active(self) -> bool:
        """Whether the reservation still holds its slot."""
        return self.status != ReservationStatus.CANCELLED
