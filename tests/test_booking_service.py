"""
Tests for the RoomBookingService orchestration layer.
"""

import asyncio
from datetime import date
from typing import List, Tuple

import pendulum
import pytest

from roombook.adapters.memory_store import InMemoryRoomStore
from roombook.domain.booking_flow import BookingFlow, FlowState
from roombook.domain.exceptions import (
    ConflictDetectedError,
    IllegalTransitionError,
    StoreUnavailableError,
)
from roombook.domain.models import BookingRequest, ConfirmedBooking, Room, TimeInterval
from roombook.domain.slot_generator import SlotGenerator, SlotGrid
from roombook.services.booking_service import RoomBookingService


def _at(clock: str, day: str = "2024-11-25") -> pendulum.DateTime:
    return pendulum.parse(f"{day} {clock}", tz="UTC")


def _booking(start: str, end: str, booking_id: str, end_day: str = "2024-11-25") -> ConfirmedBooking:
    return ConfirmedBooking(
        room_id="r1",
        interval=TimeInterval(start=_at(start), end=_at(end, end_day)),
        booking_id=booking_id,
        user_id="u0",
        title="Existing",
    )


class RecordingStore(InMemoryRoomStore):
    """In-memory store that remembers which days were fetched."""

    def __init__(self, bookings: List[ConfirmedBooking] = ()):
        super().__init__(rooms=[Room(id="r1", name="Atlas")], bookings=list(bookings))
        self.fetches: List[Tuple[str, date]] = []

    async def fetch_confirmed_bookings(self, room_id, day):
        self.fetches.append((room_id, day))
        return await super().fetch_confirmed_bookings(room_id, day)


class UnavailableStore(RecordingStore):
    async def fetch_confirmed_bookings(self, room_id, day):
        raise StoreUnavailableError("connection refused")


class FailingPersistStore(RecordingStore):
    """Reads work, writes fail until ``failing`` is cleared."""

    failing = True

    async def persist_booking(self, request):
        if self.failing:
            raise StoreUnavailableError("write timed out")
        return await super().persist_booking(request)


def _build_service(store) -> RoomBookingService:
    return RoomBookingService(store=store, slot_generator=SlotGenerator())


def _request(start: str, minutes: int) -> BookingRequest:
    return BookingRequest(
        room_id="r1",
        user_id="u1",
        interval=TimeInterval.from_duration(_at(start), minutes),
        title="Planning",
        attendees=["Ana@example.com"],
    )


def test_room_availability_resolves_slots_against_bookings():
    store = RecordingStore([_booking("10:00", "11:00", "b1")])
    service = _build_service(store)

    slots = asyncio.run(service.room_availability(room_id="r1", day=date(2024, 11, 25)))

    assert len(slots) == 20
    busy = [slot.start.format("HH:mm") for slot in slots if not slot.available]
    assert busy == ["10:00", "10:30"]
    assert store.fetches == [("r1", date(2024, 11, 25))]


def test_room_availability_hourly():
    store = RecordingStore([_booking("10:30", "11:00", "b1")])
    service = _build_service(store)

    slots = asyncio.run(
        service.room_availability(room_id="r1", day=date(2024, 11, 25), grid=SlotGrid.HOURLY)
    )

    assert len(slots) == 10
    assert [s.start.hour for s in slots if not s.available] == [10]


def test_duration_options_scenario():
    store = RecordingStore([_booking("14:00", "15:30", "b1")])
    service = _build_service(store)

    options = asyncio.run(service.duration_options(room_id="r1", start=_at("13:00")))

    available = [o.duration_minutes for o in options if o.available]
    assert available == [30, 45, 60]


def test_duration_options_look_past_midnight():
    """Long meetings starting late in the day are checked against tomorrow too."""
    early_tomorrow = ConfirmedBooking(
        room_id="r1",
        interval=TimeInterval(start=_at("00:00", "2024-11-26"), end=_at("01:00", "2024-11-26")),
        booking_id="early",
    )
    store = RecordingStore([early_tomorrow])
    service = _build_service(store)

    options = asyncio.run(service.duration_options(room_id="r1", start=_at("17:30")))

    by_minutes = {o.duration_minutes: o.available for o in options}
    assert by_minutes[360] is True   # ends 23:30
    assert by_minutes[420] is False  # ends 00:30 next day
    assert ("r1", date(2024, 11, 26)) in store.fetches


def test_book_persists_free_interval():
    store = RecordingStore([_booking("10:00", "11:00", "b1")])
    service = _build_service(store)

    booking = asyncio.run(service.book(_request("11:00", 60)))

    assert booking.booking_id
    assert booking.user_id == "u1"
    assert booking.interval == TimeInterval(start=_at("11:00"), end=_at("12:00"))

    bookings = asyncio.run(store.fetch_confirmed_bookings("r1", date(2024, 11, 25)))
    assert len(bookings) == 2


def test_book_rechecks_with_fresh_bookings():
    """A booking committed after availability was shown is caught before persisting."""
    store = RecordingStore()
    service = _build_service(store)

    options = asyncio.run(service.duration_options(room_id="r1", start=_at("09:00")))
    assert all(o.available for o in options)

    asyncio.run(store.persist_booking(_request("09:30", 30)))

    with pytest.raises(ConflictDetectedError) as exc_info:
        asyncio.run(service.book(_request("09:00", 60)))

    assert len(exc_info.value.conflicts) == 1
    assert "no longer available" in str(exc_info.value)


def test_book_spanning_midnight_fetches_both_days():
    overnight = _booking("23:00", "01:00", "night", end_day="2024-11-26")
    store = RecordingStore([overnight])
    service = _build_service(store)

    fresh = asyncio.run(
        service.fetch_bookings_for_interval(
            "r1", TimeInterval(start=_at("22:00"), end=_at("02:00", "2024-11-26"))
        )
    )

    assert fresh == [overnight]
    assert store.fetches == [("r1", date(2024, 11, 25)), ("r1", date(2024, 11, 26))]


def test_interval_ending_at_midnight_stays_on_its_day():
    store = RecordingStore()
    service = _build_service(store)

    asyncio.run(
        service.fetch_bookings_for_interval(
            "r1", TimeInterval(start=_at("22:00"), end=_at("00:00", "2024-11-26"))
        )
    )

    assert store.fetches == [("r1", date(2024, 11, 25))]


def test_submit_flow_persists_booking():
    store = RecordingStore([_booking("14:00", "15:30", "b1")])
    service = _build_service(store)

    flow = BookingFlow("r1")
    flow.choose_start(_at("13:00"), [_booking("14:00", "15:30", "b1")])
    flow.choose_duration(60)

    booking = asyncio.run(
        service.submit_flow(flow, user_id="u1", title="Retro", attendees=["a@example.com"])
    )

    assert flow.state is FlowState.SUBMITTING_BOOKING
    assert booking.title == "Retro"
    assert booking.interval.end == _at("14:00")


def test_submit_flow_conflict_returns_to_start():
    store = RecordingStore()
    service = _build_service(store)

    flow = BookingFlow("r1")
    flow.choose_start(_at("09:00"), [])
    flow.choose_duration(60)

    # Someone else books the room in the meantime.
    asyncio.run(store.persist_booking(_request("09:30", 30)))

    with pytest.raises(ConflictDetectedError):
        asyncio.run(service.submit_flow(flow, user_id="u1", title="Sync"))

    assert flow.state is FlowState.CHOOSING_START


def test_submit_flow_store_failure_allows_retry():
    store = FailingPersistStore()
    service = _build_service(store)

    flow = BookingFlow("r1")
    flow.choose_start(_at("09:00"), [])
    flow.choose_duration(60)

    with pytest.raises(StoreUnavailableError):
        asyncio.run(service.submit_flow(flow, user_id="u1", title="Sync"))

    assert flow.state is FlowState.CONFIRMING_INTERVAL
    assert flow.interval == TimeInterval(start=_at("09:00"), end=_at("10:00"))

    store.failing = False
    booking = asyncio.run(service.submit_flow(flow, user_id="u1", title="Sync"))

    assert booking.interval == flow.interval
    assert flow.state is FlowState.SUBMITTING_BOOKING


def test_submit_flow_blank_title_keeps_flow_confirming():
    store = RecordingStore()
    service = _build_service(store)

    flow = BookingFlow("r1")
    flow.choose_start(_at("09:00"), [])
    flow.choose_duration(60)

    with pytest.raises(ValueError, match="title"):
        asyncio.run(service.submit_flow(flow, user_id="u1", title="   "))

    assert flow.state is FlowState.CONFIRMING_INTERVAL
    assert asyncio.run(store.fetch_confirmed_bookings("r1", date(2024, 11, 25))) == []


def test_duration_options_reject_zero_hours():
    service = _build_service(RecordingStore())

    with pytest.raises(ValueError, match="max_duration_hours"):
        asyncio.run(
            service.duration_options(room_id="r1", start=_at("09:00"), max_duration_hours=0)
        )


def test_submit_flow_requires_confirmed_interval():
    service = _build_service(RecordingStore())

    with pytest.raises(IllegalTransitionError):
        asyncio.run(service.submit_flow(BookingFlow("r1"), user_id="u1", title="Sync"))


def test_store_errors_propagate():
    service = _build_service(UnavailableStore())

    with pytest.raises(StoreUnavailableError):
        asyncio.run(service.room_availability(room_id="r1", day=date(2024, 11, 25)))


def test_room_status_and_cancel():
    store = RecordingStore([_booking("10:00", "11:00", "b1"), _booking("13:00", "14:00", "b2")])
    service = _build_service(store)

    status = asyncio.run(service.room_status(room_id="r1", now=_at("10:15")))
    assert not status.available
    assert status.current_booking.booking_id == "b1"
    assert status.next_booking.booking_id == "b2"

    asyncio.run(service.cancel_booking("b1"))

    status = asyncio.run(service.room_status(room_id="r1", now=_at("10:15")))
    assert status.available
