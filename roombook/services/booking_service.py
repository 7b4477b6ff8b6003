"""
Application services for checking room availability and booking rooms.

The service fetches bookings through a room store adapter and delegates
every decision to the pure domain objects (``SlotGenerator``,
``AvailabilityResolver``, ``BookingFlow``). The store dependency is a
simple protocol so tests can plug in a stub.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Protocol

from pendulum import DateTime

from ..domain.availability import AvailabilityResolver
from ..domain.booking_flow import BookingFlow, FlowState
from ..domain.exceptions import ConflictDetectedError, IllegalTransitionError, RoomBookingError
from ..domain.models import (
    BookingRequest,
    CandidateSlot,
    ConfirmedBooking,
    DurationOption,
    Room,
    RoomStatus,
    TimeInterval,
)
from ..domain.slot_generator import SlotGenerator, SlotGrid

logger = logging.getLogger(__name__)


class RoomStoreProtocol(Protocol):
    """Protocol describing the room store behaviour needed by the service."""

    async def list_rooms(self) -> List[Room]:
        """Return the active rooms."""

    async def fetch_confirmed_bookings(self, room_id: str, day: date) -> List[ConfirmedBooking]:
        """Return confirmed bookings of ``room_id`` intersecting the calendar day."""

    async def persist_booking(self, request: BookingRequest) -> ConfirmedBooking:
        """Store a booking. May raise ConflictDetectedError."""

    async def cancel_booking(self, booking_id: str) -> None:
        """Mark a booking as cancelled."""


class RoomBookingService:
    """
    Orchestrates booking retrieval, availability resolution and persistence.

    Every call takes the room and user explicitly and fetches bookings anew,
    nothing is cached between calls.
    """

    def __init__(
        self,
        store: RoomStoreProtocol,
        slot_generator: SlotGenerator,
        resolver: AvailabilityResolver | None = None,
        max_duration_hours: int = 8,
    ) -> None:
        self._store = store
        self._slot_generator = slot_generator
        self._resolver = resolver or AvailabilityResolver()
        self._max_duration_hours = max_duration_hours

    @property
    def timezone(self) -> str:
        return self._slot_generator.business_hours.timezone

    async def list_rooms(self) -> List[Room]:
        return await self._store.list_rooms()

    async def room_availability(
        self,
        *,
        room_id: str,
        day: date,
        grid: SlotGrid = SlotGrid.HALF_HOUR,
    ) -> List[CandidateSlot]:
        """Return the day's candidate slots resolved against current bookings."""
        bookings = await self._store.fetch_confirmed_bookings(room_id, day)
        logger.debug("Room %s has %d confirmed bookings on %s", room_id, len(bookings), day)

        slots = self._slot_generator.generate_slots(day, grid)
        return self._resolver.annotate(slots, bookings, grid)

    async def duration_options(
        self,
        *,
        room_id: str,
        start: DateTime,
        max_duration_hours: Optional[int] = None,
    ) -> List[DurationOption]:
        """Return the catalog durations bookable from ``start``."""
        hours = self._max_duration_hours if max_duration_hours is None else max_duration_hours
        if hours < 1:
            raise ValueError("max_duration_hours must be at least 1")
        horizon = TimeInterval.from_duration(start, hours * 60)
        bookings = await self.fetch_bookings_for_interval(room_id, horizon)

        return self._resolver.available_durations(start, bookings, max_duration_hours=hours)

    async def book(self, request: BookingRequest) -> ConfirmedBooking:
        """
        Re-check the requested interval against freshly fetched bookings
        and persist it.

        Raises:
            ConflictDetectedError: If the interval is taken, either by the
                local re-check or by the store itself
        """
        fresh = await self.fetch_bookings_for_interval(request.room_id, request.interval)
        conflicts = self._resolver.conflicting_bookings(request.interval, fresh)

        if conflicts:
            logger.warning(
                "Rejected booking of room %s for %s: %d conflict(s)",
                request.room_id, request.interval, len(conflicts),
            )
            details = ", ".join(c.describe() for c in conflicts)
            raise ConflictDetectedError(
                f"{request.interval} is no longer available (booked: {details})",
                conflicts,
            )

        booking = await self._store.persist_booking(request)
        logger.info(
            "Booked room %s for user %s: %s",
            request.room_id, request.user_id, booking.interval,
        )
        return booking

    async def submit_flow(
        self,
        flow: BookingFlow,
        *,
        user_id: str,
        title: str,
        description: Optional[str] = None,
        attendees: Iterable[str] = (),
    ) -> ConfirmedBooking:
        """
        Drive a confirmed flow through its pre-submission re-check and
        persist the booking.

        On conflict the flow is back at ChoosingStart. Any other failure
        leaves it at ConfirmingInterval so the same interval can be
        submitted again.
        """
        if flow.state is not FlowState.CONFIRMING_INTERVAL:
            raise IllegalTransitionError(
                f"Booking flow is in {flow.state.value}, nothing to submit"
            )

        request = BookingRequest(
            room_id=flow.room_id,
            user_id=user_id,
            interval=flow.interval,
            title=title,
            description=description,
            attendees=list(attendees),
        )

        fresh = await self.fetch_bookings_for_interval(flow.room_id, flow.interval)
        flow.submit(fresh)

        try:
            booking = await self._store.persist_booking(request)
        except ConflictDetectedError:
            flow.reset()
            raise
        except RoomBookingError:
            flow.abandon_submission()
            raise

        logger.info("Booked room %s for user %s: %s", flow.room_id, user_id, booking.interval)
        return booking

    async def room_status(self, *, room_id: str, now: DateTime) -> RoomStatus:
        """Return whether the room is occupied at ``now`` and its next booking."""
        bookings = await self._store.fetch_confirmed_bookings(
            room_id, now.in_timezone(self.timezone).date()
        )
        return self._resolver.room_status(bookings, now)

    async def cancel_booking(self, booking_id: str) -> None:
        await self._store.cancel_booking(booking_id)
        logger.info("Cancelled booking %s", booking_id)

    async def fetch_bookings_for_interval(
        self,
        room_id: str,
        interval: TimeInterval,
    ) -> List[ConfirmedBooking]:
        """
        Fetch the confirmed bookings of every calendar day the interval
        touches, without duplicates for bookings spanning midnight.
        """
        collected: Dict[object, ConfirmedBooking] = {}

        for day in self._days_covered(interval):
            for booking in await self._store.fetch_confirmed_bookings(room_id, day):
                key = booking.booking_id or booking
                collected.setdefault(key, booking)

        return sorted(collected.values(), key=lambda b: b.interval.start)

    def _days_covered(self, interval: TimeInterval) -> List[date]:
        start = interval.start.in_timezone(self.timezone)
        # The end is exclusive, an interval ending at midnight stays on its day.
        last = interval.end.in_timezone(self.timezone).subtract(microseconds=1)

        days: List[date] = []
        current = start.start_of("day")
        while current <= last:
            days.append(current.date())
            current = current.add(days=1)
        return days
