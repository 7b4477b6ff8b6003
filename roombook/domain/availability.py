"""
Availability resolution against a room's confirmed bookings.

Every check in this module goes through the single half-open
``overlaps`` predicate, so slot annotation, duration enumeration and the
pre-submission re-check always agree on boundaries.
"""

from dataclasses import replace
from typing import Iterable, List

from pendulum import DateTime

from .models import (
    DURATION_CATALOG,
    CandidateSlot,
    ConfirmedBooking,
    DurationOption,
    RoomStatus,
    TimeInterval,
    overlaps,
)
from .slot_generator import SlotGrid


class AvailabilityResolver:
    """
    Decides which slots, durations and intervals are free.

    The resolver holds no state: bookings are always passed in, so a
    result can never be computed from a stale cached set.
    """

    def annotate(
        self,
        slots: Iterable[CandidateSlot],
        bookings: Iterable[ConfirmedBooking],
        grid: SlotGrid = SlotGrid.HALF_HOUR,
    ) -> List[CandidateSlot]:
        """
        Mark each slot available iff no booking overlaps
        ``[slot.start, slot.start + grid window)``. Order is preserved.
        """
        booking_list = list(bookings)
        return [
            replace(
                slot,
                available=self.is_interval_free(
                    TimeInterval.from_duration(slot.start, grid.window_minutes),
                    booking_list,
                ),
            )
            for slot in slots
        ]

    def available_durations(
        self,
        start_time: DateTime,
        bookings: Iterable[ConfirmedBooking],
        max_duration_hours: int = 8,
    ) -> List[DurationOption]:
        """
        Evaluate every catalog duration up to ``max_duration_hours`` from
        ``start_time``, shortest first.

        If ``start_time`` itself falls inside a booking, every option is
        unavailable.
        """
        if max_duration_hours < 1:
            raise ValueError(
                f"max_duration_hours must be at least 1, got {max_duration_hours}"
            )

        booking_list = list(bookings)
        limit = max_duration_hours * 60

        return [
            DurationOption(
                duration_minutes=minutes,
                label=label,
                available=self.is_interval_free(
                    TimeInterval.from_duration(start_time, minutes),
                    booking_list,
                ),
            )
            for minutes, label in DURATION_CATALOG
            if minutes <= limit
        ]

    def conflicting_bookings(
        self,
        interval: TimeInterval,
        bookings: Iterable[ConfirmedBooking],
    ) -> List[ConfirmedBooking]:
        """Return the bookings overlapping ``interval``, earliest first."""
        conflicts = [
            booking for booking in bookings
            if overlaps(interval, booking.interval)
        ]
        return sorted(conflicts, key=lambda b: b.interval.start)

    def is_interval_free(
        self,
        interval: TimeInterval,
        bookings: Iterable[ConfirmedBooking],
    ) -> bool:
        """Exact check for one proposed interval. Re-run before persisting."""
        return not any(overlaps(interval, booking.interval) for booking in bookings)

    def room_status(
        self,
        bookings: Iterable[ConfirmedBooking],
        now: DateTime,
    ) -> RoomStatus:
        """
        Describe whether the room is free at ``now`` and what comes next.
        """
        ordered = sorted(bookings, key=lambda b: b.interval.start)

        current = next((b for b in ordered if b.interval.contains(now)), None)
        upcoming = next((b for b in ordered if b.interval.start > now), None)

        return RoomStatus(
            available=current is None,
            current_booking=current,
            next_booking=upcoming,
        )
