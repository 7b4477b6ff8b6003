"""
Room store client for a hosted PostgREST-style datastore.
"""

import asyncio
import logging
from datetime import date
from typing import Any, Dict, List

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import ConflictDetectedError, StoreUnavailableError, UnknownBookingError
from ..domain.models import BookingRequest, ConfirmedBooking, Room, TimeInterval

logger = logging.getLogger(__name__)


class RestRoomStore:
    """
    Client for the ``meeting_rooms`` and ``bookings`` tables.

    The blocking HTTP calls are exposed as plain methods and wrapped in
    ``asyncio.to_thread`` for the async store protocol.
    """

    ROOMS_TABLE = "meeting_rooms"
    BOOKINGS_TABLE = "bookings"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timezone: str = "UTC",
        timeout: float = 30,
    ):
        """
        Args:
            base_url: REST root, e.g. ``https://project.example.co/rest/v1``
            api_key: Key sent as ``apikey`` and bearer token
            timezone: Zone that calendar days are anchored in
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timezone = timezone
        self.timeout = timeout
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    async def list_rooms(self) -> List[Room]:
        return await asyncio.to_thread(self.get_rooms)

    async def fetch_confirmed_bookings(self, room_id: str, day: date) -> List[ConfirmedBooking]:
        return await asyncio.to_thread(self.get_room_bookings, room_id, day)

    async def persist_booking(self, request: BookingRequest) -> ConfirmedBooking:
        return await asyncio.to_thread(self.create_booking, request)

    async def cancel_booking(self, booking_id: str) -> None:
        await asyncio.to_thread(self.mark_cancelled, booking_id)

    def get_rooms(self) -> List[Room]:
        """Fetch active rooms ordered by name."""
        rows = self._request(
            "GET",
            self.ROOMS_TABLE,
            params=[("select", "*"), ("is_active", "eq.true"), ("order", "name")],
        )
        return [
            Room(
                id=str(row["id"]),
                name=row["name"],
                capacity=int(row.get("capacity") or 0),
                location=row.get("location") or "",
                amenities=tuple(row.get("amenities") or ()),
                is_active=bool(row.get("is_active", True)),
            )
            for row in rows
        ]

    def get_room_bookings(self, room_id: str, day: date) -> List[ConfirmedBooking]:
        """
        Fetch confirmed bookings whose interval intersects the calendar day
        (local midnight to next midnight).
        """
        midnight = pendulum.datetime(day.year, day.month, day.day, tz=self.timezone)
        next_midnight = midnight.add(days=1)

        rows = self._request(
            "GET",
            self.BOOKINGS_TABLE,
            params=[
                ("select", "*"),
                ("room_id", f"eq.{room_id}"),
                ("status", "eq.confirmed"),
                ("start_time", f"lt.{next_midnight.to_iso8601_string()}"),
                ("end_time", f"gt.{midnight.to_iso8601_string()}"),
                ("order", "start_time"),
            ],
        )

        bookings: List[ConfirmedBooking] = []
        for row in rows:
            try:
                bookings.append(self._parse_booking(row))
            except (KeyError, ValueError) as e:
                logger.warning("Could not parse booking %r: %s", row.get("id"), e)
        logger.debug("Fetched %d bookings for room %s on %s", len(bookings), room_id, day)
        return bookings

    def create_booking(self, request: BookingRequest) -> ConfirmedBooking:
        """
        Insert a booking. The table is expected to carry an exclusion
        constraint on (room_id, time range) for confirmed rows, which
        surfaces here as HTTP 409.
        """
        payload: Dict[str, Any] = {
            "room_id": request.room_id,
            "user_id": request.user_id,
            "title": request.title,
            "start_time": request.interval.start.to_iso8601_string(),
            "end_time": request.interval.end.to_iso8601_string(),
            "attendees": request.attendees,
        }
        if request.description:
            payload["description"] = request.description

        rows = self._request(
            "POST",
            self.BOOKINGS_TABLE,
            json=[payload],
            headers={"Prefer": "return=representation"},
        )
        if not rows:
            raise StoreUnavailableError("Room store returned no row for the new booking")
        return self._parse_booking(rows[0])

    def mark_cancelled(self, booking_id: str) -> None:
        rows = self._request(
            "PATCH",
            self.BOOKINGS_TABLE,
            params=[("id", f"eq.{booking_id}")],
            json={"status": "cancelled"},
            headers={"Prefer": "return=representation"},
        )
        if not rows:
            raise UnknownBookingError(f"Unknown booking: {booking_id}")

    def _request(self, method: str, table: str, headers: Dict[str, str] | None = None, **kwargs) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/{table}"

        try:
            response = requests.request(
                method,
                url,
                headers={**self.headers, **(headers or {})},
                timeout=self.timeout,
                **kwargs,
            )
        except requests.exceptions.RequestException as e:
            raise StoreUnavailableError(f"Room store request failed: {e}") from e

        if response.status_code == 409:
            raise ConflictDetectedError(
                f"Room store rejected the booking as overlapping: {response.text}"
            )
        if response.status_code >= 400:
            raise StoreUnavailableError(
                f"Room store answered {response.status_code} for {method} {table}: {response.text}"
            )

        if not response.content:
            return []
        return response.json()

    def _parse_booking(self, row: Dict[str, Any]) -> ConfirmedBooking:
        return ConfirmedBooking(
            room_id=str(row["room_id"]),
            interval=TimeInterval(
                start=self._parse_datetime(row["start_time"]),
                end=self._parse_datetime(row["end_time"]),
            ),
            booking_id=str(row["id"]) if row.get("id") is not None else None,
            user_id=row.get("user_id"),
            title=row.get("title") or "",
        )

    def _parse_datetime(self, value: str) -> DateTime:
        dt = pendulum.parse(value)

        if isinstance(dt, DateTime):
            return dt.in_timezone(self.timezone)

        raise ValueError(f"Could not parse datetime: {value}")
