"""
State machine for one booking attempt.

ChoosingStart -> ChoosingDuration -> ConfirmingInterval -> SubmittingBooking

The flow never fetches anything itself. Callers hand in the bookings to
evaluate against, and ``submit`` must receive a freshly fetched set.
"""

from enum import Enum
from typing import Iterable, List, Optional

from pendulum import DateTime

from .availability import AvailabilityResolver
from .exceptions import ConflictDetectedError, IllegalTransitionError
from .models import ConfirmedBooking, DurationOption, TimeInterval


class FlowState(Enum):
    CHOOSING_START = "choosing_start"
    CHOOSING_DURATION = "choosing_duration"
    CONFIRMING_INTERVAL = "confirming_interval"
    SUBMITTING_BOOKING = "submitting_booking"


class BookingFlow:
    """
    Tracks the user's choices for a single room and enforces the order
    in which they may be made.
    """

    def __init__(
        self,
        room_id: str,
        resolver: AvailabilityResolver | None = None,
        max_duration_hours: int = 8,
    ):
        self.room_id = room_id
        self.resolver = resolver or AvailabilityResolver()
        self.max_duration_hours = max_duration_hours

        self.state = FlowState.CHOOSING_START
        self.start: Optional[DateTime] = None
        self.options: List[DurationOption] = []
        self.interval: Optional[TimeInterval] = None

    def choose_start(
        self,
        start: DateTime,
        bookings: Iterable[ConfirmedBooking],
    ) -> List[DurationOption]:
        """Pick a start time and get the duration options it allows."""
        self._require(FlowState.CHOOSING_START, FlowState.CHOOSING_DURATION)

        self.start = start
        self.interval = None
        self.options = self.resolver.available_durations(
            start, bookings, max_duration_hours=self.max_duration_hours
        )
        self.state = FlowState.CHOOSING_DURATION
        return self.options

    def choose_duration(self, duration_minutes: int) -> TimeInterval:
        """
        Pick one of the offered durations. Only options that were marked
        available when they were offered can be chosen.
        """
        self._require(FlowState.CHOOSING_DURATION)

        option = next(
            (o for o in self.options if o.duration_minutes == duration_minutes),
            None,
        )
        if option is None:
            raise IllegalTransitionError(
                f"{duration_minutes} minutes is not an offered duration"
            )
        if not option.available:
            raise IllegalTransitionError(
                f"{option.label} from {self.start.format('HH:mm')} is not available"
            )

        self.interval = TimeInterval.from_duration(self.start, duration_minutes)
        self.state = FlowState.CONFIRMING_INTERVAL
        return self.interval

    def go_back(self) -> FlowState:
        """Step back one screen."""
        if self.state is FlowState.CONFIRMING_INTERVAL:
            self.interval = None
            self.state = FlowState.CHOOSING_DURATION
        elif self.state is FlowState.CHOOSING_DURATION:
            self.reset()
        else:
            raise IllegalTransitionError(f"Cannot go back from {self.state.value}")
        return self.state

    def submit(self, fresh_bookings: Iterable[ConfirmedBooking]) -> TimeInterval:
        """
        Re-validate the chosen interval against freshly fetched bookings.

        Raises:
            ConflictDetectedError: The slot was taken in the meantime. The
                flow is back at ChoosingStart.
        """
        self._require(FlowState.CONFIRMING_INTERVAL)

        conflicts = self.resolver.conflicting_bookings(self.interval, fresh_bookings)
        if conflicts:
            interval = self.interval
            self.reset()
            raise ConflictDetectedError(
                f"{interval} is no longer available, please choose again",
                conflicts,
            )

        self.state = FlowState.SUBMITTING_BOOKING
        return self.interval

    def abandon_submission(self) -> None:
        """Return to ConfirmingInterval after a submission that stored nothing."""
        self._require(FlowState.SUBMITTING_BOOKING)
        self.state = FlowState.CONFIRMING_INTERVAL

    def reset(self) -> None:
        self.state = FlowState.CHOOSING_START
        self.start = None
        self.options = []
        self.interval = None

    def _require(self, *allowed: FlowState) -> None:
        if self.state not in allowed:
            expected = " or ".join(state.value for state in allowed)
            raise IllegalTransitionError(
                f"Booking flow is in {self.state.value}, expected {expected}"
            )
