"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import AvailabilityResolver
from .booking_flow import BookingFlow, FlowState
from .models import (
    DURATION_CATALOG,
    BookingRequest,
    CandidateSlot,
    ConfirmedBooking,
    DurationOption,
    Room,
    RoomStatus,
    TimeInterval,
    overlaps,
)
from .slot_generator import BusinessHours, SlotGenerator, SlotGrid, SlotSequence

__all__ = [
    "DURATION_CATALOG",
    "AvailabilityResolver",
    "BookingFlow",
    "BookingRequest",
    "BusinessHours",
    "CandidateSlot",
    "ConfirmedBooking",
    "DurationOption",
    "FlowState",
    "Room",
    "RoomStatus",
    "SlotGenerator",
    "SlotGrid",
    "SlotSequence",
    "TimeInterval",
    "overlaps",
]
