"""
In-memory room store for demos and tests, optionally backed by a JSON file.
"""

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import pendulum

from ..domain.exceptions import ConflictDetectedError, UnknownBookingError, UnknownRoomError
from ..domain.models import BookingRequest, ConfirmedBooking, Room, TimeInterval, overlaps

logger = logging.getLogger(__name__)


@dataclass
class _StoredBooking:
    booking: ConfirmedBooking
    status: str = "confirmed"
    description: Optional[str] = None
    attendees: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "id": self.booking.booking_id,
            "room_id": self.booking.room_id,
            "user_id": self.booking.user_id,
            "title": self.booking.title,
            "start_time": self.booking.interval.start.to_iso8601_string(),
            "end_time": self.booking.interval.end.to_iso8601_string(),
            "status": self.status,
        }
        if self.description is not None:
            entry["description"] = self.description
        if self.attendees:
            entry["attendees"] = list(self.attendees)
        return entry


class InMemoryRoomStore:
    """
    Room store that keeps rooms and bookings in process memory.

    Writes are serialised with a lock and overlapping confirmed bookings
    for the same room are refused, standing in for the exclusion
    constraint a real database would enforce. A store loaded with
    ``from_json`` writes every booking change back to its file.

    File format::

        {
            "rooms": [{"id": "r1", "name": "Atlas", "capacity": 8, ...}],
            "bookings": [
                {"id": "b1", "room_id": "r1", "user_id": "u1", "title": "...",
                 "start_time": "2024-11-25T10:00:00+00:00",
                 "end_time": "2024-11-25T11:00:00+00:00",
                 "status": "confirmed"}
            ]
        }
    """

    def __init__(
        self,
        rooms: Optional[List[Room]] = None,
        bookings: Optional[List[ConfirmedBooking]] = None,
        timezone: str = "UTC",
        data_file: Optional[Path] = None,
    ):
        self.timezone = timezone
        self.data_file = data_file
        self._rooms: Dict[str, Room] = {room.id: room for room in rooms or []}
        self._bookings: Dict[str, _StoredBooking] = {}
        self._room_entries: List[Dict[str, Any]] = []
        self._invalid_entries: List[Any] = []
        self._lock = asyncio.Lock()

        for booking in bookings or []:
            self._add(booking)

    @classmethod
    def from_json(cls, data_file: Path, timezone: str = "UTC") -> "InMemoryRoomStore":
        """Load rooms and bookings from a JSON data file."""
        if not data_file.exists():
            raise FileNotFoundError(f"Room data file not found: {data_file}")

        with open(data_file, "r", encoding="utf-8") as f:
            data = json.load(f)

        room_entries = data.get("rooms", [])
        store = cls(
            rooms=[_parse_room(entry) for entry in room_entries],
            timezone=timezone,
            data_file=data_file,
        )
        store._room_entries = room_entries

        for entry in data.get("bookings", []):
            try:
                booking = ConfirmedBooking(
                    room_id=str(entry["room_id"]),
                    interval=TimeInterval(
                        start=pendulum.parse(entry["start_time"], tz=timezone),
                        end=pendulum.parse(entry["end_time"], tz=timezone),
                    ),
                    booking_id=str(entry["id"]) if entry.get("id") else None,
                    user_id=entry.get("user_id"),
                    title=entry.get("title", ""),
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping invalid booking entry %r: %s", entry.get("id"), e)
                # Written back unchanged on save.
                store._invalid_entries.append(entry)
                continue

            store._add(
                booking,
                status=entry.get("status", "confirmed"),
                description=entry.get("description"),
                attendees=entry.get("attendees") or [],
            )

        return store

    async def list_rooms(self) -> List[Room]:
        rooms = [room for room in self._rooms.values() if room.is_active]
        return sorted(rooms, key=lambda r: r.name)

    async def fetch_confirmed_bookings(self, room_id: str, day: date) -> List[ConfirmedBooking]:
        self._require_room(room_id)

        midnight = pendulum.datetime(day.year, day.month, day.day, tz=self.timezone)
        day_window = TimeInterval(start=midnight, end=midnight.add(days=1))

        bookings = [
            stored.booking for stored in self._bookings.values()
            if stored.status == "confirmed"
            and stored.booking.room_id == room_id
            and overlaps(stored.booking.interval, day_window)
        ]
        return sorted(bookings, key=lambda b: b.interval.start)

    async def persist_booking(self, request: BookingRequest) -> ConfirmedBooking:
        async with self._lock:
            self._require_room(request.room_id)

            conflicts = [
                stored.booking for stored in self._bookings.values()
                if stored.status == "confirmed"
                and stored.booking.room_id == request.room_id
                and overlaps(request.interval, stored.booking.interval)
            ]
            if conflicts:
                raise ConflictDetectedError(
                    f"Room {request.room_id} is already booked during {request.interval}",
                    conflicts,
                )

            booking = ConfirmedBooking(
                room_id=request.room_id,
                interval=request.interval,
                booking_id=uuid.uuid4().hex,
                user_id=request.user_id,
                title=request.title,
            )
            self._add(booking, description=request.description, attendees=request.attendees)
            self._save()
            return booking

    async def cancel_booking(self, booking_id: str) -> None:
        async with self._lock:
            stored = self._bookings.get(booking_id)
            if stored is None:
                raise UnknownBookingError(f"Unknown booking: {booking_id}")
            stored.status = "cancelled"
            self._save()

    def _add(self, booking: ConfirmedBooking, status: str = "confirmed", **extra: Any) -> None:
        if booking.booking_id is None:
            booking = replace(booking, booking_id=uuid.uuid4().hex)
        self._bookings[booking.booking_id] = _StoredBooking(booking=booking, status=status, **extra)

    def _require_room(self, room_id: str) -> None:
        if self._rooms and room_id not in self._rooms:
            raise UnknownRoomError(f"Unknown room: {room_id}")

    def _save(self) -> None:
        if self.data_file is None:
            return

        data = {
            "rooms": self._room_entries,
            "bookings": [stored.to_dict() for stored in self._bookings.values()]
            + self._invalid_entries,
        }

        tmp_file = self.data_file.with_name(self.data_file.name + ".tmp")
        with open(tmp_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        tmp_file.replace(self.data_file)
        logger.debug("Wrote %d bookings to %s", len(self._bookings), self.data_file)


def _parse_room(entry: Dict[str, Any]) -> Room:
    return Room(
        id=str(entry["id"]),
        name=entry.get("name", str(entry["id"])),
        capacity=int(entry.get("capacity", 0)),
        location=entry.get("location", ""),
        amenities=tuple(entry.get("amenities") or ()),
        is_active=bool(entry.get("is_active", True)),
    )
