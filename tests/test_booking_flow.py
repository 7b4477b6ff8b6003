"""
Tests for the booking flow state machine.
"""

import pendulum
import pytest

from roombook.domain.booking_flow import BookingFlow, FlowState
from roombook.domain.exceptions import ConflictDetectedError, IllegalTransitionError
from roombook.domain.models import ConfirmedBooking, TimeInterval


def _at(clock: str) -> pendulum.DateTime:
    return pendulum.parse(f"2024-11-25 {clock}", tz="UTC")


def _booking(start: str, end: str, booking_id: str = "b1") -> ConfirmedBooking:
    return ConfirmedBooking(
        room_id="r1",
        interval=TimeInterval(start=_at(start), end=_at(end)),
        booking_id=booking_id,
    )


class TestBookingFlow:
    """Tests for BookingFlow transitions."""

    def test_happy_path(self):
        flow = BookingFlow("r1")
        assert flow.state is FlowState.CHOOSING_START

        options = flow.choose_start(_at("13:00"), [_booking("14:00", "15:30")])
        assert flow.state is FlowState.CHOOSING_DURATION
        assert len(options) == 12

        interval = flow.choose_duration(60)
        assert flow.state is FlowState.CONFIRMING_INTERVAL
        assert interval == TimeInterval(start=_at("13:00"), end=_at("14:00"))

        submitted = flow.submit([_booking("14:00", "15:30")])
        assert flow.state is FlowState.SUBMITTING_BOOKING
        assert submitted == interval

    def test_unavailable_duration_cannot_be_chosen(self):
        flow = BookingFlow("r1")
        flow.choose_start(_at("13:00"), [_booking("14:00", "15:30")])

        with pytest.raises(IllegalTransitionError, match="not available"):
            flow.choose_duration(90)

        assert flow.state is FlowState.CHOOSING_DURATION
        assert flow.interval is None

    def test_unknown_duration_cannot_be_chosen(self):
        flow = BookingFlow("r1", max_duration_hours=2)
        flow.choose_start(_at("09:00"), [])

        with pytest.raises(IllegalTransitionError, match="not an offered duration"):
            flow.choose_duration(180)

    def test_duration_before_start_is_illegal(self):
        with pytest.raises(IllegalTransitionError, match="choosing_start"):
            BookingFlow("r1").choose_duration(30)

    def test_submit_before_confirming_is_illegal(self):
        flow = BookingFlow("r1")
        flow.choose_start(_at("09:00"), [])

        with pytest.raises(IllegalTransitionError):
            flow.submit([])

    def test_conflict_on_submit_returns_to_start(self):
        """A booking committed after the options were shown wins."""
        flow = BookingFlow("r1")
        flow.choose_start(_at("09:00"), [])
        flow.choose_duration(60)

        concurrent = _booking("09:30", "10:00", "b9")
        with pytest.raises(ConflictDetectedError) as exc_info:
            flow.submit([concurrent])

        assert exc_info.value.conflicts == [concurrent]
        assert "no longer available" in str(exc_info.value)
        assert flow.state is FlowState.CHOOSING_START
        assert flow.start is None
        assert flow.interval is None

    def test_adjacent_fresh_booking_does_not_conflict(self):
        flow = BookingFlow("r1")
        flow.choose_start(_at("09:00"), [])
        flow.choose_duration(60)

        flow.submit([_booking("10:00", "10:30")])

        assert flow.state is FlowState.SUBMITTING_BOOKING

    def test_restart_from_duration_screen(self):
        flow = BookingFlow("r1")
        flow.choose_start(_at("09:00"), [])

        flow.choose_start(_at("11:00"), [_booking("11:00", "12:00")])

        assert flow.start == _at("11:00")
        assert not any(o.available for o in flow.options)

    def test_choose_start_after_submit_is_illegal(self):
        flow = BookingFlow("r1")
        flow.choose_start(_at("09:00"), [])
        flow.choose_duration(30)
        flow.submit([])

        with pytest.raises(IllegalTransitionError):
            flow.choose_start(_at("10:00"), [])

    def test_abandoned_submission_can_be_resubmitted(self):
        flow = BookingFlow("r1")
        flow.choose_start(_at("09:00"), [])
        interval = flow.choose_duration(30)
        flow.submit([])

        flow.abandon_submission()

        assert flow.state is FlowState.CONFIRMING_INTERVAL
        assert flow.submit([]) == interval

    def test_abandon_without_submission_is_illegal(self):
        with pytest.raises(IllegalTransitionError):
            BookingFlow("r1").abandon_submission()

    def test_go_back(self):
        flow = BookingFlow("r1")
        flow.choose_start(_at("09:00"), [])
        flow.choose_duration(30)

        assert flow.go_back() is FlowState.CHOOSING_DURATION
        assert flow.interval is None
        assert flow.go_back() is FlowState.CHOOSING_START

        with pytest.raises(IllegalTransitionError):
            flow.go_back()
