"""
Domain-specific exception hierarchy for the room booking application.
"""

from typing import Sequence


class RoomBookingError(Exception):
    """Base class for all application-level errors."""


class InvalidIntervalError(RoomBookingError, ValueError):
    """Raised when an interval does not start strictly before it ends."""


class ConflictDetectedError(RoomBookingError):
    """Raised when a proposed interval collides with a confirmed booking."""

    def __init__(self, message: str, conflicts: Sequence = ()):
        super().__init__(message)
        self.conflicts = list(conflicts)


class StoreUnavailableError(RoomBookingError):
    """Raised when the room store cannot be reached or answers with an error."""


class UnknownRoomError(RoomBookingError):
    """Raised when a room id is not known to the store."""


class IllegalTransitionError(RoomBookingError):
    """Raised when the booking flow is driven out of order."""


class UnknownBookingError(RoomBookingError):
    """Raised when a booking id is not known to the store."""
