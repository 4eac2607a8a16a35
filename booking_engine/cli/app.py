"""
Main CLI application using Typer.
"""

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, time
from pathlib import Path
from typing import Iterator, List, Optional, Annotated

import pendulum
import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..adapters.memory_store import ConfigResourceStore
from ..adapters.sql_store import SqlBookingStore
from ..config import AppConfig, get_default_config_path
from ..domain.conflict_detector import ConflictDetector
from ..domain.exceptions import BookingEngineError, ConflictError
from ..domain.models import WEEKDAY_NAMES, Booking
from ..domain.slot_calculator import SlotCalculator
from ..services.availability import AvailabilityReport, AvailabilityService
from ..services.booking_coordinator import BookingCoordinator

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="booking-engine",
    help="Check availability and manage bookings of physical spaces",
    add_completion=False
)

console = Console()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class _Services:
    config: AppConfig
    resources: ConfigResourceStore
    bookings: SqlBookingStore
    availability: AvailabilityService
    coordinator: BookingCoordinator


def build_services(config: AppConfig) -> _Services:
    """Wire stores, domain logic and services from a loaded configuration."""
    resources = ConfigResourceStore.from_config(config)
    bookings = SqlBookingStore.from_url(config.database_url)
    calculator = SlotCalculator(ConflictDetector(config.timezone))
    availability = AvailabilityService(
        resources,
        bookings,
        calculator,
        default_granularity_minutes=config.defaults.slot_granularity_minutes,
        consecutive_granularity_minutes=config.defaults.consecutive_granularity_minutes,
    )
    coordinator = BookingCoordinator(
        resources,
        bookings,
        availability,
        reprice_tolerance_hours=config.defaults.reprice_tolerance_hours,
    )
    return _Services(config, resources, bookings, availability, coordinator)


def _configure_logging(level_name: str, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, level_name, logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("booking_engine").setLevel(level)


def _load(ctx: typer.Context) -> _Services:
    state = ctx.ensure_object(dict)
    config_path = state.get("config_file") or get_default_config_path()
    config = AppConfig.load_from_yaml(config_path)
    _configure_logging(config.log_level, state.get("verbose", False))
    logger.debug("Loaded configuration from %s", config_path)
    return build_services(config)


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Print known failures as ``kind: message`` and exit with status 1."""
    try:
        yield
    except ConflictError as e:
        console.print(f"[bold red]{e.kind}:[/bold red] {escape(e.message)}")
        for conflict in e.conflicts:
            console.print(
                f"  booking {conflict.conflicting_booking_id} "
                f"({conflict.interval.format_clock()}) {conflict.reason}"
            )
        raise typer.Exit(1)
    except BookingEngineError as e:
        console.print(f"[bold red]{e.kind}:[/bold red] {escape(e.message)}")
        raise typer.Exit(1)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)


def _parse_date(value: str) -> date:
    try:
        parsed = pendulum.from_format(value, "YYYY-MM-DD")
        return date(parsed.year, parsed.month, parsed.day)
    except ValueError:
        raise typer.BadParameter(f"Expected a date as YYYY-MM-DD, got '{value}'")


def _parse_time(value: str) -> time:
    try:
        parsed = pendulum.from_format(value, "HH:mm")
        return time(parsed.hour, parsed.minute)
    except ValueError:
        raise typer.BadParameter(f"Expected a time as HH:mm, got '{value}'")


def _print_booking(booking: Booking, title: str) -> None:
    console.print(Panel.fit(
        f"[bold]Booking:[/bold] {booking.booking_id}\n"
        f"[bold]Resource:[/bold] {booking.resource_id}\n"
        f"[bold]Date:[/bold] {booking.date.isoformat()} "
        f"{booking.start_time:%H:%M}-{booking.end_time:%H:%M}\n"
        f"[bold]Status:[/bold] {booking.status.value}\n"
        f"[bold]Price:[/bold] {booking.total_price} "
        f"({booking.duration_hours:g}h, billed per {booking.duration_type.value})",
        title=title
    ))


def _print_report(report: AvailabilityReport) -> None:
    status = "[green]available[/green]" if report.available else "[red]not available[/red]"
    console.print(f"\n[bold cyan]{report.resource_id}[/bold cyan] on {report.date.isoformat()}: {status}")
    if report.reason:
        console.print(f"   {escape(report.reason)}")

    if report.slots:
        table = Table(
            title=f"Slots ({report.granularity_minutes} min)",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Start", style="bold yellow")
        table.add_column("End")
        table.add_column("Status")
        for slot in report.slots:
            table.add_row(
                slot.start.format("HH:mm"),
                slot.end.format("HH:mm"),
                "[green]free[/green]" if slot.available else "[red]booked[/red]",
            )
        console.print()
        console.print(table)

    if report.free_blocks:
        console.print("\n[bold]Free blocks:[/bold]")
        for block in report.free_blocks:
            console.print(f"  {block.time_range.format_clock()} ({block.duration_minutes} min)")

    if report.consecutive_slots is not None:
        console.print(f"\n[bold]Blocks of at least {report.min_duration_minutes} min:[/bold]")
        if not report.consecutive_slots:
            console.print("  [yellow]none[/yellow]")
        for block in report.consecutive_slots:
            console.print(f"  {block.time_range.format_clock()} ({block.duration_minutes} min)")

    for conflict in report.conflicts:
        console.print(
            f"  [red]✗[/red] booking {conflict.conflicting_booking_id} "
            f"({conflict.interval.format_clock()}) {conflict.reason}"
        )

    stats = report.statistics
    console.print(
        f"\n   {stats['available_slots']}/{stats['total_slots']} slot(s) free, "
        f"occupancy {stats['occupancy_rate']}%\n"
    )


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """
    Booking availability and conflict resolution engine.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["verbose"] = verbose


@app.command()
def resources(ctx: typer.Context):
    """
    List all configured resources.
    """
    with _handle_errors():
        services = _load(ctx)
        items = services.resources.list_resources()

        if not items:
            console.print("[yellow]No resources defined in the config file.[/yellow]")
            return

        table = Table(
            title="Configured resources",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("ID", style="bold yellow")
        table.add_column("Name")
        table.add_column("Capacity", justify="right")
        table.add_column("Per hour", justify="right")
        table.add_column("Per day", justify="right")
        table.add_column("Open", style="dim")

        for resource in items:
            open_days = [
                f"{WEEKDAY_NAMES[weekday][:3]} {s.open_time:%H:%M}-{s.close_time:%H:%M}"
                for weekday, s in sorted(resource.operating_hours.schedules.items())
                if not s.closed
            ]
            table.add_row(
                resource.resource_id,
                resource.name if resource.available else f"{resource.name} [red](unavailable)[/red]",
                str(resource.capacity),
                str(resource.rates.price_per_hour),
                str(resource.rates.price_per_day),
                ", ".join(open_days) or "closed",
            )

        console.print()
        console.print(table)
        console.print()


@app.command()
def availability(
    ctx: typer.Context,
    resource_id: Annotated[str, typer.Argument(help="Resource ID")],
    day: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    granularity: Annotated[Optional[int], typer.Option("--granularity", "-g", help="Slot length in minutes (15, 30, 60, 120)")] = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Check a specific interval: start (HH:mm)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="Check a specific interval: end (HH:mm)")] = None,
    min_duration: Annotated[Optional[int], typer.Option("--min-duration", "-d", help="Only list free blocks of at least this many minutes")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the report as JSON")] = False,
):
    """
    Show slots and free blocks of a resource on a date.

    Examples:

        booking-engine availability room-a 2025-06-02

        booking-engine availability room-a 2025-06-02 --start 10:00 --end 12:00

        booking-engine availability room-a 2025-06-02 -g 30 --min-duration 90
    """
    target = _parse_date(day)
    start_time = _parse_time(start) if start else None
    end_time = _parse_time(end) if end else None

    with _handle_errors():
        services = _load(ctx)
        report = services.availability.get_availability(
            resource_id,
            target,
            granularity,
            start_time=start_time,
            end_time=end_time,
            min_duration_minutes=min_duration,
        )

        if as_json:
            console.print_json(json.dumps(report.to_dict()))
        else:
            _print_report(report)


@app.command()
def book(
    ctx: typer.Context,
    resource_id: Annotated[str, typer.Argument(help="Resource ID")],
    day: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    start: Annotated[str, typer.Argument(help="Start time (HH:mm)")],
    end: Annotated[str, typer.Argument(help="End time (HH:mm)")],
    user: Annotated[str, typer.Option("--user", "-u", help="Requesting user ID")],
    guests: Annotated[int, typer.Option("--guests", help="Number of guests")] = 1,
    notes: Annotated[Optional[str], typer.Option("--notes", help="Free-text notes")] = None,
):
    """
    Create a booking. New bookings are pending until confirmed.
    """
    target = _parse_date(day)
    start_time = _parse_time(start)
    end_time = _parse_time(end)

    with _handle_errors():
        services = _load(ctx)
        booking = services.coordinator.create_booking(
            resource_id,
            user,
            target,
            start_time,
            end_time,
            guests=guests,
            notes=notes,
        )
        _print_booking(booking, "✓ Booking created")


@app.command()
def confirm(
    ctx: typer.Context,
    booking_id: Annotated[str, typer.Argument(help="Booking ID")],
):
    """
    Confirm a pending booking.
    """
    with _handle_errors():
        services = _load(ctx)
        booking = services.coordinator.confirm_booking(booking_id)
        _print_booking(booking, "✓ Booking confirmed")


@app.command()
def modify(
    ctx: typer.Context,
    booking_id: Annotated[str, typer.Argument(help="Booking ID")],
    day: Annotated[str, typer.Argument(help="New date (YYYY-MM-DD)")],
    start: Annotated[str, typer.Argument(help="New start time (HH:mm)")],
    end: Annotated[str, typer.Argument(help="New end time (HH:mm)")],
    user: Annotated[str, typer.Option("--user", "-u", help="Requesting user ID")],
):
    """
    Move a confirmed booking to a new date and time window.
    """
    target = _parse_date(day)
    start_time = _parse_time(start)
    end_time = _parse_time(end)

    with _handle_errors():
        services = _load(ctx)
        booking = services.coordinator.modify_booking(booking_id, user, target, start_time, end_time)
        _print_booking(booking, "✓ Booking modified")


@app.command()
def cancel(
    ctx: typer.Context,
    booking_id: Annotated[str, typer.Argument(help="Booking ID")],
    user: Annotated[str, typer.Option("--user", "-u", help="Requesting user ID")],
):
    """
    Cancel a booking. Not possible on the day of the booking.
    """
    with _handle_errors():
        services = _load(ctx)
        booking = services.coordinator.cancel_booking(booking_id, user)
        _print_booking(booking, "✓ Booking cancelled")


@app.command()
def occupancy(
    ctx: typer.Context,
    start: Annotated[str, typer.Argument(help="First date (YYYY-MM-DD)")],
    end: Annotated[str, typer.Argument(help="Last date (YYYY-MM-DD)")],
    resource: Annotated[Optional[List[str]], typer.Option("--resource", "-r", help="Limit to these resource IDs")] = None,
):
    """
    Show hourly occupancy and revenue per resource and day.
    """
    start_date = _parse_date(start)
    end_date = _parse_date(end)

    with _handle_errors():
        services = _load(ctx)
        stats = services.availability.occupancy_report(start_date, end_date, resource or None)

        table = Table(
            title=f"Occupancy {start_date.isoformat()} - {end_date.isoformat()}",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Resource", style="bold yellow")
        table.add_column("Date")
        table.add_column("Occupied", justify="right")
        table.add_column("Rate", justify="right")
        table.add_column("Revenue", justify="right")

        for row in stats:
            table.add_row(
                row.resource_name,
                row.date.isoformat(),
                f"{row.occupied_slots}/{row.total_slots}",
                f"{row.occupancy_rate}%",
                str(row.revenue),
            )

        console.print()
        console.print(table)
        console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]booking-engine[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
