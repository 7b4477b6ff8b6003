"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_service import RoomBookingService, RoomStoreProtocol

__all__ = ["RoomBookingService", "RoomStoreProtocol"]
