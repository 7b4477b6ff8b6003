"""
Domain models for rooms, booking intervals and availability results.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from pendulum import DateTime

from .exceptions import InvalidIntervalError


# Offerable meeting lengths, ascending.
DURATION_CATALOG: Tuple[Tuple[int, str], ...] = (
    (30, "30 minutes"),
    (45, "45 minutes"),
    (60, "1 hour"),
    (90, "1.5 hours"),
    (120, "2 hours"),
    (150, "2.5 hours"),
    (180, "3 hours"),
    (240, "4 hours"),
    (300, "5 hours"),
    (360, "6 hours"),
    (420, "7 hours"),
    (480, "8 hours"),
)


def overlaps(candidate: "TimeInterval", booking: "TimeInterval") -> bool:
    """
    Half-open overlap test for ``[start, end)`` intervals.

    Intervals that merely touch (one ends exactly when the other starts)
    do not overlap.
    """
    return not (candidate.end <= booking.start or candidate.start >= booking.end)


@dataclass(frozen=True)
class TimeInterval:
    """
    Represents an immutable half-open time interval ``[start, end)``.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidIntervalError(
                f"Start time {self.start} must be before end time {self.end}"
            )

    @classmethod
    def from_duration(cls, start: DateTime, minutes: int) -> "TimeInterval":
        """Build the interval that starts at ``start`` and lasts ``minutes``."""
        return cls(start=start, end=start.add(minutes=minutes))

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeInterval") -> bool:
        """Check if this interval overlaps with another."""
        return overlaps(self, other)

    def contains(self, instant: DateTime) -> bool:
        """Check whether an instant lies inside the interval (end excluded)."""
        return self.start <= instant < self.end

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class ConfirmedBooking:
    """
    Read-only projection of a persisted, non-cancelled reservation.
    """
    room_id: str
    interval: TimeInterval
    booking_id: Optional[str] = None
    user_id: Optional[str] = None
    title: str = ""

    def describe(self) -> str:
        """Short human readable form used in conflict messages."""
        label = f" ({self.title})" if self.title else ""
        return f"{self.interval}{label}"


@dataclass(frozen=True)
class CandidateSlot:
    """
    A potential start time. ``available`` defaults to True until the slot
    has been resolved against the room's bookings.
    """
    start: DateTime
    available: bool = True


@dataclass(frozen=True)
class DurationOption:
    """A catalog duration evaluated against one proposed start time."""
    duration_minutes: int
    label: str
    available: bool

    def end_time(self, start: DateTime) -> DateTime:
        """Return when a meeting of this length starting at ``start`` ends."""
        return start.add(minutes=self.duration_minutes)


@dataclass(frozen=True)
class Room:
    """Meeting room as listed by the room store."""
    id: str
    name: str
    capacity: int = 0
    location: str = ""
    amenities: Tuple[str, ...] = ()
    is_active: bool = True


@dataclass(frozen=True)
class RoomStatus:
    """Occupancy of a room at a given instant."""
    available: bool
    current_booking: Optional[ConfirmedBooking] = None
    next_booking: Optional[ConfirmedBooking] = None


@dataclass
class BookingRequest:
    """
    Everything needed to persist a new booking.

    Titles are stripped and must not be empty. Attendee addresses are
    trimmed, lower-cased and de-duplicated while keeping their order.
    """
    room_id: str
    user_id: str
    interval: TimeInterval
    title: str
    description: Optional[str] = None
    attendees: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.title = self.title.strip()
        if not self.title:
            raise ValueError("Booking title must not be empty")

        if self.description is not None:
            self.description = self.description.strip() or None

        normalized: List[str] = []
        for attendee in self.attendees:
            email = attendee.strip().lower()
            if email and email not in normalized:
                normalized.append(email)
        self.attendees = normalized
