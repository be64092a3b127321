"""Conductor session and status models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ConductorState(str, Enum):
    """Operational state of the single vehicle as seen by passengers."""
    AVAILABLE = "available"
    BUSY = "busy"
    OFFLINE = "offline"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConductorSession(BaseModel):
    """Stored per-conductor session row.

    ``is_available`` is the stored flag; a busy flag whose
    ``occupied_until`` has passed is read as available.
    """
    conductor_id: str
    name: Optional[str] = None
    is_active: bool = False
    is_available: bool = True
    occupied_until: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=_utcnow)
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @field_validator("occupied_until", "updated_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Rows written without an offset are UTC.
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class ConductorStatus(BaseModel):
    """Effective conductor status handed to callers.

    ``confirmed`` is False when the value comes from the local cache
    after a failed write; ``stale`` marks a cached value that the next
    successful read will replace.
    """
    conductor_id: Optional[str] = None
    state: ConductorState
    is_active: bool = False
    occupied_until: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    confirmed: bool = True
    stale: bool = False
    message: str = ""

    @property
    def is_available(self) -> bool:
        return self.state == ConductorState.AVAILABLE
