"""Administrator blocked-period models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from tourbook.errors import ErrorKind
from tourbook.utils import normalize_date, normalize_time


class BlockKind(str, Enum):
    DAY = "day"
    HOUR = "hour"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BlockedPeriod(BaseModel):
    """An admin-imposed unavailability window.

    A block without ``start_time`` covers the whole day. Hour blocks
    store ``end_time == start_time``, one block per catalog slot.
    """
    id: Optional[str] = None
    date: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        return normalize_date(value)

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_time(cls, value: Optional[str]) -> Optional[str]:
        return normalize_time(value) if value else None

    @property
    def is_whole_day(self) -> bool:
        return self.start_time is None

    @property
    def kind(self) -> BlockKind:
        return BlockKind.DAY if self.is_whole_day else BlockKind.HOUR

    @property
    def key(self) -> tuple[str, Optional[str]]:
        """Uniqueness key: at most one block per (date, start_time)."""
        return (self.date, self.start_time)


class BlockResult(BaseModel):
    """Outcome of a block mutation."""
    success: bool
    message: str
    blocks: list[BlockedPeriod] = Field(default_factory=list)
    removed: int = 0
    error: Optional[ErrorKind] = None
