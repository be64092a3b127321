"""
Half-open interval arithmetic over minutes since midnight.

Every booking occupies ``[start, start + duration)``. Two intervals that
merely touch (one ends exactly when the other starts) do not overlap,
which is what allows back-to-back tours.
"""

from dataclasses import dataclass
from typing import Iterable, Union

from tourbook.utils import minutes_to_time, time_to_minutes

TimeLike = Union[int, str]


def _as_minutes(value: TimeLike) -> int:
    if isinstance(value, str):
        return time_to_minutes(value)
    return value


def overlaps(start_a: TimeLike, end_a: TimeLike, start_b: TimeLike, end_b: TimeLike) -> bool:
    """True if ``[start_a, end_a)`` and ``[start_b, end_b)`` share an instant."""
    return _as_minutes(start_a) < _as_minutes(end_b) and _as_minutes(start_b) < _as_minutes(end_a)


@dataclass(frozen=True, order=True)
class Interval:
    """A half-open occupied window, ordered by start then end."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Interval end {self.end} is before start {self.start}")

    @classmethod
    def from_start(cls, start: TimeLike, minutes: int) -> "Interval":
        begin = _as_minutes(start)
        return cls(begin, begin + minutes)

    @property
    def duration(self) -> int:
        return self.end - self.start

    @property
    def start_time(self) -> str:
        return minutes_to_time(self.start)

    @property
    def end_time(self) -> str:
        return minutes_to_time(self.end)

    def overlaps(self, other: "Interval") -> bool:
        return overlaps(self.start, self.end, other.start, other.end)


def sort_intervals(intervals: Iterable[Interval]) -> list[Interval]:
    return sorted(intervals)
