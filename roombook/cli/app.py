"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, List, Optional

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.table import Table

from ..adapters.memory_store import InMemoryRoomStore
from ..adapters.rest_store import RestRoomStore
from ..config import AppConfig, get_default_config_path
from ..domain.booking_flow import BookingFlow
from ..domain.exceptions import ConflictDetectedError, RoomBookingError
from ..domain.models import TimeInterval
from ..domain.slot_generator import SlotGenerator, SlotGrid
from ..services.booking_service import RoomBookingService

app = typer.Typer(
    name="roombook",
    help="Check meeting room availability and book rooms",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
DateOption = Annotated[
    Optional[str],
    typer.Option("--date", help="Calendar date (YYYY-MM-DD). Defaults to today."),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """Meeting room booking."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    return AppConfig.load_from_yaml(config_path)


def _build_service(config: AppConfig) -> RoomBookingService:
    """Wire the configured room store into the booking service."""
    if config.store.backend == "rest":
        store = RestRoomStore(
            base_url=config.store.url,
            api_key=config.store.api_key,
            timezone=config.timezone,
            timeout=config.store.timeout_seconds,
        )
    elif config.store.data_file is not None:
        store = InMemoryRoomStore.from_json(config.store.data_file, timezone=config.timezone)
    else:
        store = InMemoryRoomStore(timezone=config.timezone)

    return RoomBookingService(
        store=store,
        slot_generator=SlotGenerator(business_hours=config.get_business_hours()),
        max_duration_hours=config.defaults.max_duration_hours,
    )


def _require_writable_store(config: AppConfig) -> None:
    if config.store.backend == "memory" and config.store.data_file is None:
        raise ValueError("The memory backend needs store.data_file to save bookings")


def _parse_day(value: Optional[str], tz: str) -> DateTime:
    if not value:
        return pendulum.now(tz).start_of("day")
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).start_of("day")
    except ValueError as e:
        raise typer.BadParameter(f"Invalid date '{value}', expected YYYY-MM-DD") from e


def _parse_start(day: DateTime, value: str) -> DateTime:
    try:
        moment = pendulum.from_format(value, "HH:mm")
    except ValueError as e:
        raise typer.BadParameter(f"Invalid start time '{value}', expected HH:mm") from e
    return day.set(hour=moment.hour, minute=moment.minute, second=0, microsecond=0)


def _fail(message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {message}")
    raise typer.Exit(1)


@app.command()
def rooms(config_file: ConfigOption = None):
    """
    List all active rooms.
    """
    try:
        config = _load_config(config_file)
        service = _build_service(config)
        room_list = asyncio.run(service.list_rooms())
    except (FileNotFoundError, ValueError, RoomBookingError) as e:
        _fail(str(e))

    if not room_list:
        console.print("[yellow]No rooms configured.[/yellow]")
        return

    table = Table(title="Meeting rooms", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold yellow")
    table.add_column("Capacity", justify="right")
    table.add_column("Location")
    table.add_column("Amenities", style="dim")

    for room in room_list:
        table.add_row(
            room.id,
            room.name,
            str(room.capacity),
            room.location,
            ", ".join(a.replace("_", " ") for a in room.amenities),
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def availability(
    room_id: Annotated[str, typer.Argument(help="Room ID")],
    date: DateOption = None,
    grid: Annotated[
        Optional[str],
        typer.Option("--grid", "-g", help="Slot grid: half_hour or hourly. Defaults to the configured grid."),
    ] = None,
    config_file: ConfigOption = None,
):
    """
    Show which start times of a day are free.
    """
    try:
        config = _load_config(config_file)
        service = _build_service(config)
        day = _parse_day(date, config.timezone)
        slot_grid = SlotGrid.from_name(grid) if grid else config.defaults.get_grid()

        slots = asyncio.run(service.room_availability(room_id=room_id, day=day.date(), grid=slot_grid))
    except (FileNotFoundError, ValueError, RoomBookingError) as e:
        _fail(str(e))

    console.print(f"\n[bold cyan]Room {room_id}[/bold cyan] - {day.format('dddd, MMMM D, YYYY')}\n")
    for slot in slots:
        if slot.available:
            console.print(f"  [green]{slot.start.format('HH:mm')}[/green]  free")
        else:
            console.print(f"  [dim]{slot.start.format('HH:mm')}  booked[/dim]")

    free = sum(1 for slot in slots if slot.available)
    console.print(f"\n{free} of {len(slots)} start times available.\n")


@app.command()
def durations(
    room_id: Annotated[str, typer.Argument(help="Room ID")],
    start: Annotated[str, typer.Option("--start", "-s", help="Start time (HH:mm)")],
    date: DateOption = None,
    config_file: ConfigOption = None,
):
    """
    Show the meeting lengths that fit from a start time.
    """
    try:
        config = _load_config(config_file)
        service = _build_service(config)
        start_time = _parse_start(_parse_day(date, config.timezone), start)

        options = asyncio.run(service.duration_options(room_id=room_id, start=start_time))
    except (FileNotFoundError, ValueError, RoomBookingError) as e:
        _fail(str(e))

    table = Table(
        title=f"Starting at {start_time.format('YYYY-MM-DD HH:mm')}",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Duration", style="bold")
    table.add_column("Until")
    table.add_column("Status")

    for option in options:
        table.add_row(
            option.label,
            option.end_time(start_time).format("HH:mm"),
            "[green]available[/green]" if option.available else "[red]conflicts[/red]",
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def book(
    room_id: Annotated[str, typer.Argument(help="Room ID")],
    start: Annotated[str, typer.Option("--start", "-s", help="Start time (HH:mm)")],
    duration: Annotated[int, typer.Option("--duration", "-d", help="Duration in minutes")],
    user: Annotated[str, typer.Option("--user", "-u", help="Booking user ID")],
    title: Annotated[str, typer.Option("--title", "-t", help="Meeting title")],
    description: Annotated[Optional[str], typer.Option("--description", help="Meeting description")] = None,
    attendee: Annotated[Optional[List[str]], typer.Option("--attendee", "-a", help="Attendee e-mail, repeatable")] = None,
    date: DateOption = None,
    config_file: ConfigOption = None,
):
    """
    Book a room for a start time and duration.

    Examples:

        roombook book r1 --start 13:00 --duration 60 --user u1 --title "Sprint review"

        roombook book r1 -s 09:30 -d 30 -u u1 -t Standup -a ana@example.com --date 2024-11-25
    """
    try:
        config = _load_config(config_file)
        _require_writable_store(config)
        service = _build_service(config)
        start_time = _parse_start(_parse_day(date, config.timezone), start)

        booking = asyncio.run(
            _run_booking_flow(
                service,
                room_id=room_id,
                start=start_time,
                duration=duration,
                max_duration_hours=config.defaults.max_duration_hours,
                user_id=user,
                title=title,
                description=description,
                attendees=attendee or [],
            )
        )
    except ConflictDetectedError as e:
        console.print(f"[bold red]Time no longer available:[/bold red] {e}")
        console.print("Please choose another start time.")
        raise typer.Exit(1)
    except (FileNotFoundError, ValueError, RoomBookingError) as e:
        _fail(str(e))

    console.print(
        f"\n[bold green]✓ Booked[/bold green] room {booking.room_id}: {booking.interval}"
        f" [dim](booking {booking.booking_id})[/dim]\n"
    )


async def _run_booking_flow(
    service: RoomBookingService,
    *,
    room_id: str,
    start: DateTime,
    duration: int,
    max_duration_hours: int,
    user_id: str,
    title: str,
    description: Optional[str],
    attendees: List[str],
):
    flow = BookingFlow(room_id, max_duration_hours=max_duration_hours)

    horizon = TimeInterval.from_duration(start, max_duration_hours * 60)
    bookings = await service.fetch_bookings_for_interval(room_id, horizon)

    flow.choose_start(start, bookings)
    flow.choose_duration(duration)

    return await service.submit_flow(
        flow,
        user_id=user_id,
        title=title,
        description=description,
        attendees=attendees,
    )


@app.command()
def status(
    room_id: Annotated[str, typer.Argument(help="Room ID")],
    config_file: ConfigOption = None,
):
    """
    Show whether a room is occupied right now and its next booking.
    """
    try:
        config = _load_config(config_file)
        service = _build_service(config)
        room_status = asyncio.run(service.room_status(room_id=room_id, now=pendulum.now(config.timezone)))
    except (FileNotFoundError, ValueError, RoomBookingError) as e:
        _fail(str(e))

    console.print()
    if room_status.available:
        console.print(f"[bold green]Room {room_id} is free[/bold green]")
    else:
        current = room_status.current_booking
        console.print(f"[bold red]Room {room_id} is in use[/bold red]: {current.describe()}")

    if room_status.next_booking:
        console.print(f"Next booking: {room_status.next_booking.describe()}")
    else:
        console.print("[dim]No further bookings today.[/dim]")
    console.print()


@app.command()
def cancel(
    booking_id: Annotated[str, typer.Argument(help="Booking ID")],
    config_file: ConfigOption = None,
):
    """
    Cancel a booking.
    """
    try:
        config = _load_config(config_file)
        _require_writable_store(config)
        service = _build_service(config)
        asyncio.run(service.cancel_booking(booking_id))
    except (FileNotFoundError, ValueError, RoomBookingError) as e:
        _fail(str(e))

    console.print(f"\n[green]✓ Booking {booking_id} cancelled.[/green]\n")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]roombook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
