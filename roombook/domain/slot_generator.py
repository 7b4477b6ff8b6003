"""
Candidate start times within the business day.

Pure domain logic: no I/O, no shared state between calls.
"""

from dataclasses import dataclass
from datetime import date, time
from enum import Enum
from typing import Iterator

import pendulum
from pendulum import DateTime

from .models import CandidateSlot, TimeInterval


class SlotGrid(Enum):
    """
    Granularity of the availability view.

    Each member is ``(step_minutes, window_minutes)``: how far apart two
    candidates are and how long a span each candidate is checked for.
    """
    HALF_HOUR = (30, 30)
    HOURLY = (60, 60)

    @property
    def step_minutes(self) -> int:
        return self.value[0]

    @property
    def window_minutes(self) -> int:
        return self.value[1]

    @classmethod
    def from_name(cls, name: str) -> "SlotGrid":
        """Look up a grid by its lower-case config name, e.g. ``half_hour``."""
        try:
            return cls[name.strip().upper()]
        except KeyError:
            valid = ", ".join(member.name.lower() for member in cls)
            raise ValueError(f"Unknown slot grid '{name}', expected one of: {valid}") from None


@dataclass(frozen=True)
class BusinessHours:
    """
    Bookable window of every day. Same hours apply to all weekdays.
    """
    open_time: time = time(8, 0)
    close_time: time = time(18, 0)
    timezone: str = "UTC"

    def __post_init__(self):
        if self.open_time >= self.close_time:
            raise ValueError(
                f"Opening time {self.open_time} must be before closing time {self.close_time}"
            )

    def window_for_day(self, day: date) -> TimeInterval:
        """Return the business-hours interval for a calendar date."""
        return TimeInterval(
            start=self._at(day, self.open_time),
            end=self._at(day, self.close_time),
        )

    def _at(self, day: date, moment: time) -> DateTime:
        return pendulum.datetime(
            day.year, day.month, day.day,
            moment.hour, moment.minute,
            tz=self.timezone,
        )


class SlotSequence:
    """
    Finite, restartable sequence of candidate slots for one day.

    Slots are produced lazily on every iteration; nothing is cached.
    """

    def __init__(self, window: TimeInterval, grid: SlotGrid):
        self.window = window
        self.grid = grid

    def __iter__(self) -> Iterator[CandidateSlot]:
        current = self.window.start
        while current < self.window.end:
            yield CandidateSlot(start=current)
            current = current.add(minutes=self.grid.step_minutes)

    def __len__(self) -> int:
        total = self.window.duration_minutes()
        step = self.grid.step_minutes
        return (total + step - 1) // step

    def __repr__(self) -> str:
        return f"SlotSequence({self.window}, grid={self.grid.name})"


class SlotGenerator:
    """
    Produces the ordered candidate start times for a calendar date.

    With the default business hours (08:00-18:00) the half-hour grid
    yields 20 candidates (08:00 ... 17:30) and the hourly grid 10
    (08:00 ... 17:00).
    """

    def __init__(self, business_hours: BusinessHours | None = None):
        self.business_hours = business_hours or BusinessHours()

    def generate_slots(self, day: date, grid: SlotGrid = SlotGrid.HALF_HOUR) -> SlotSequence:
        """
        Args:
            day: Calendar date; a time component, if any, is ignored
            grid: Candidate spacing

        Returns:
            SlotSequence whose slots are all marked available pending
            resolution against bookings
        """
        return SlotSequence(self.business_hours.window_for_day(day), grid)
