"""Tour catalog (durations, prices) and the bookable time slot grid."""

import logging
from typing import Iterable, Iterator, Optional

from tourbook.config import settings
from tourbook.utils import minutes_to_time, normalize_time, time_to_minutes

logger = logging.getLogger(__name__)

TOUR_CATALOG: dict[str, dict] = {
    "panoramic": {
        "name": "Panoramic tour of the village",
        "duration": 45,
        "price": 10,
        "capacity": 6,
    },
    "furnas": {
        "name": "Milfontes to Furnas Beach",
        "duration": 60,
        "price": 14,
        "capacity": 6,
    },
    "bridge": {
        "name": "Bridge crossing",
        "duration": 45,
        "price": 10,
        "capacity": 6,
    },
    "sunset": {
        "name": "Romantic sunset",
        "duration": 90,
        "price": 25,
        "capacity": 6,
    },
    "night": {
        "name": "Night tour",
        "duration": 35,
        "price": 8,
        "capacity": 6,
    },
    "fishermen": {
        "name": "Fishermen's route",
        "duration": 45,
        "price": 10,
        "capacity": 6,
    },
}


def duration_minutes(tour_type: Optional[str]) -> int:
    """Service duration for a tour type.

    Unknown or missing tour types fall back to the configured default so
    a bad record degrades to a typical tour length instead of failing.
    """
    if tour_type and tour_type in TOUR_CATALOG:
        return TOUR_CATALOG[tour_type]["duration"]
    if tour_type:
        logger.debug("Unknown tour type %r, using default duration", tour_type)
    return settings.schedule.default_tour_duration


def is_known_tour(tour_type: Optional[str]) -> bool:
    return bool(tour_type) and tour_type in TOUR_CATALOG


def get_tour_details(tour_type: str) -> Optional[dict]:
    """Get full details for a specific tour type."""
    info = TOUR_CATALOG.get(tour_type.lower().strip())
    if info is None:
        return None
    return {"id": tour_type.lower().strip(), **info}


def get_all_tours() -> list[dict]:
    """Return all tours with basic info."""
    return [
        {"id": tid, "name": info["name"], "duration": info["duration"], "price": info["price"]}
        for tid, info in TOUR_CATALOG.items()
    ]


class TimeSlotCatalog:
    """
    Ordered sequence of bookable start times for a service day.

    Built either from an explicit list (the fixed grid the calendar shows)
    or generated every ``interval`` minutes from opening until closing.
    """

    def __init__(
        self,
        slots: Optional[Iterable[str]] = None,
        opening_time: Optional[str] = None,
        closing_time: Optional[str] = None,
    ) -> None:
        schedule = settings.schedule
        raw = schedule.time_slots if slots is None else slots
        self._slots: list[str] = sorted({normalize_time(s) for s in raw})
        self.opening_time = normalize_time(opening_time or schedule.opening_time)
        self.closing_time = normalize_time(closing_time or schedule.closing_time)

    @classmethod
    def generated(
        cls,
        opening_time: Optional[str] = None,
        closing_time: Optional[str] = None,
        interval_minutes: Optional[int] = None,
    ) -> "TimeSlotCatalog":
        """Build a grid of slots every ``interval_minutes`` from opening to closing."""
        schedule = settings.schedule
        opening = opening_time or schedule.opening_time
        closing = closing_time or schedule.closing_time
        step = interval_minutes or schedule.slot_interval_minutes
        if step < 1:
            raise ValueError(f"interval_minutes must be >= 1, got {step}")

        start, end = time_to_minutes(opening), time_to_minutes(closing)
        slots = [minutes_to_time(m) for m in range(start, end, step)]
        return cls(slots, opening_time=opening, closing_time=closing)

    @property
    def slots(self) -> list[str]:
        return list(self._slots)

    @property
    def opening_minutes(self) -> int:
        return time_to_minutes(self.opening_time)

    @property
    def closing_minutes(self) -> int:
        return time_to_minutes(self.closing_time)

    def index(self, time: str) -> int:
        """Position of a slot in the grid, or -1 when it is not a catalog slot."""
        try:
            return self._slots.index(normalize_time(time))
        except ValueError:
            return -1

    def slots_between(self, start_time: str, end_time: str) -> list[str]:
        """Catalog slots from ``start_time`` to ``end_time`` inclusive.

        Returns an empty list when either end is off the grid or the
        range runs backwards.
        """
        start, end = self.index(start_time), self.index(end_time)
        if start == -1 or end == -1 or start > end:
            return []
        return self._slots[start:end + 1]

    def __iter__(self) -> Iterator[str]:
        return iter(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, time: object) -> bool:
        return isinstance(time, str) and self.index(time) != -1

    def __repr__(self) -> str:
        return f"TimeSlotCatalog({self._slots!r})"


def default_catalog() -> TimeSlotCatalog:
    """Catalog built from the configured fixed grid."""
    return TimeSlotCatalog()
