"""
Main CLI application using Typer.
"""

import logging
from contextlib import contextmanager
from datetime import time
from pathlib import Path
from typing import Dict, List, Optional, Annotated

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..bootstrap import Services, build_services, sync_resources
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import BookingError, SlotUnavailable, StorageFault
from ..domain.models import DayAvailability, Reservation, Slot, Weekday
from ..services.booking import call_with_retry

app = typer.Typer(
    name="courtbook",
    help="Publish weekly availability, generate slots and take reservations",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """
    courtbook command line interface.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@contextmanager
def _handle_errors():
    """Map domain errors to user-facing messages and a non-zero exit code."""
    try:
        yield
    except SlotUnavailable as e:
        console.print(f"[yellow]⚠ {e}.[/yellow] Please pick another slot.")
        raise typer.Exit(1)
    except StorageFault as e:
        console.print(f"[bold red]Storage unavailable:[/bold red] {e}\nPlease try again.")
        raise typer.Exit(1)
    except (BookingError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _load(config_file: Optional[Path]) -> Services:
    config_path = config_file or get_default_config_path()
    config = AppConfig.load_from_yaml(config_path)
    return build_services(config)


def _parse_time(value: str) -> time:
    try:
        return pendulum.from_format(value, "HH:mm").time()
    except ValueError as e:
        raise ValueError(f"Invalid time '{value}', expected HH:MM") from e


def _local(services: Services, resource_id: str, moment) -> pendulum.DateTime:
    return moment.in_timezone(services.availability.resource(resource_id).timezone)


@app.command()
def init_db(config_file: ConfigOption = None):
    """
    Create the database tables and register the configured resources.
    """
    with _handle_errors():
        services = _load(config_file)
        services.database.create_schema()
        count = sync_resources(services)
        console.print(f"\n[green]✓ Database ready, {count} resource(s) registered.[/green]\n")


@app.command("sync-resources")
def sync_resources_command(config_file: ConfigOption = None):
    """
    Re-register the configured resources and publish their weekly hours.
    """
    with _handle_errors():
        services = _load(config_file)
        count = sync_resources(services)
        console.print(f"\n[green]✓ {count} resource(s) synced.[/green]\n")


@app.command()
def hours(
    resource: Annotated[str, typer.Argument(help="Resource id or name")],
    config_file: ConfigOption = None,
):
    """
    Show the weekly opening hours of a resource.
    """
    with _handle_errors():
        services = _load(config_file)
        resource_id = services.config.resolve_resource(resource).id
        template = services.availability.template_for(resource_id)

        table = Table(
            title=f"Opening hours – {resource_id}",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Weekday", style="bold yellow")
        table.add_column("Hours")

        for weekday in Weekday:
            day = template.for_weekday(weekday)
            if day.enabled:
                table.add_row(weekday.label, f"{day.open:%H:%M} – {day.close:%H:%M}")
            else:
                table.add_row(weekday.label, "[dim]closed[/dim]")

        console.print()
        console.print(table)
        console.print()


@app.command()
def set_hours(
    resource: Annotated[str, typer.Argument(help="Resource id or name")],
    weekday: Annotated[str, typer.Argument(help="Weekday, e.g. monday or mon")],
    open_at: Annotated[Optional[str], typer.Option("--open", help="Opening time (HH:MM)")] = None,
    close_at: Annotated[Optional[str], typer.Option("--close", help="Closing time (HH:MM)")] = None,
    closed: Annotated[bool, typer.Option("--closed", help="Close the resource on this weekday.")] = False,
    config_file: ConfigOption = None,
):
    """
    Change the opening hours of one weekday.

    Examples:

        courtbook set-hours court-1 saturday --open 09:00 --close 14:00

        courtbook set-hours court-1 sunday --closed
    """
    if closed and (open_at or close_at):
        raise typer.BadParameter("--closed cannot be combined with --open or --close")

    with _handle_errors():
        services = _load(config_file)
        resource_id = services.config.resolve_resource(resource).id
        day_of_week = Weekday.parse(weekday)
        current = services.availability.template_for(resource_id).for_weekday(day_of_week)

        if closed:
            day = DayAvailability(enabled=False, open=current.open, close=current.close)
        else:
            day = DayAvailability(
                enabled=True,
                open=_parse_time(open_at) if open_at else current.open,
                close=_parse_time(close_at) if close_at else current.close,
            )

        services.availability.set_day(resource_id, day_of_week, day)
        state = "closed" if closed else f"{day.open:%H:%M} – {day.close:%H:%M}"
        console.print(f"\n[green]✓ {day_of_week.label}: {state}[/green]\n")


@app.command()
def generate(
    resource: Annotated[str, typer.Argument(help="Resource id or name")],
    days: Annotated[Optional[int], typer.Option("--days", "-d", help="Horizon in days")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", help="Slot duration in minutes")] = None,
    config_file: ConfigOption = None,
):
    """
    Generate free slots from the weekly hours. Safe to run repeatedly.
    """
    with _handle_errors():
        services = _load(config_file)
        defaults = services.config.defaults
        resource_id = services.config.resolve_resource(resource).id

        result = services.availability.generate_slots(
            resource_id,
            horizon_days=days if days is not None else defaults.horizon_days,
            slot_duration_minutes=duration if duration is not None else defaults.slot_duration_minutes,
        )

        console.print(
            f"\n[green]✓ {result.inserted} slot(s) created[/green], "
            f"{result.skipped} already existed or overlapped.\n"
        )


@app.command()
def slots(
    resource: Annotated[str, typer.Argument(help="Resource id or name")],
    days: Annotated[int, typer.Option("--days", "-d", help="How many days ahead to show")] = 30,
    config_file: ConfigOption = None,
):
    """
    List free slots, grouped by day.
    """
    with _handle_errors():
        services = _load(config_file)
        resource_id = services.config.resolve_resource(resource).id
        timezone = services.availability.resource(resource_id).timezone
        free = services.availability.free_slots(resource_id, days=days)

        console.print()
        if not free:
            console.print(
                "[yellow]⚠ No free slots found.[/yellow]\n"
                "Try a longer period or generate slots first."
            )
            console.print()
            return

        by_day: Dict[str, List[Slot]] = {}
        for slot in free:
            day = slot.start.in_timezone(timezone).format("dddd, DD.MM.YYYY")
            by_day.setdefault(day, []).append(slot)

        console.print(f"[bold green]✓ {len(free)} free slot(s):[/bold green]\n")
        for day, day_slots in by_day.items():
            console.print(f"[bold]{day}[/bold]")
            for slot in day_slots:
                console.print(f"  [dim]#{slot.id}[/dim]  {slot.format_display(timezone)}")
        console.print()


@app.command()
def reserve(
    resource: Annotated[str, typer.Argument(help="Resource id or name")],
    slot_id: Annotated[int, typer.Argument(help="Slot id as shown by 'slots'")],
    customer: Annotated[str, typer.Option("--customer", help="Customer account id")],
    payment_accepted: Annotated[
        bool,
        typer.Option("--payment-accepted/--payment-declined", help="Result of the payment step."),
    ] = True,
    config_file: ConfigOption = None,
):
    """
    Reserve a free slot for a customer.
    """
    with _handle_errors():
        if not payment_accepted:
            console.print("[bold red]Payment was declined, no reservation made.[/bold red]")
            raise typer.Exit(1)

        services = _load(config_file)
        resource_id = services.config.resolve_resource(resource).id

        reservation = call_with_retry(
            lambda: services.booking.reserve(customer, resource_id, slot_id)
        )

        starts = _local(services, resource_id, reservation.reserved_at)
        console.print(
            f"\n[green]✓ Reservation #{reservation.id} confirmed[/green] "
            f"for {starts.format('dddd, DD.MM.YYYY HH:mm')}\n"
        )


@app.command()
def cancel(
    reservation_id: Annotated[int, typer.Argument(help="Reservation id")],
    actor: Annotated[str, typer.Option("--actor", help="Account canceling (customer or owner)")],
    strict: Annotated[bool, typer.Option("--strict", help="Fail if already canceled.")] = False,
    config_file: ConfigOption = None,
):
    """
    Cancel a reservation and free its slot.
    """
    with _handle_errors():
        services = _load(config_file)
        reservation = call_with_retry(
            lambda: services.booking.cancel(reservation_id, actor, strict=strict)
        )
        console.print(f"\n[green]✓ Reservation #{reservation.id} is {reservation.status.value}.[/green]\n")


@app.command()
def reservations(
    customer: Annotated[Optional[str], typer.Option("--customer", help="List a customer's reservations")] = None,
    resource: Annotated[Optional[str], typer.Option("--resource", help="List reservations of a resource")] = None,
    active_only: Annotated[bool, typer.Option("--active-only", help="Hide canceled reservations.")] = False,
    config_file: ConfigOption = None,
):
    """
    List reservations, newest first.
    """
    with _handle_errors():
        if bool(customer) == bool(resource):
            console.print("[red]Error: pass exactly one of --customer or --resource.[/red]")
            raise typer.Exit(1)

        services = _load(config_file)
        include_canceled = not active_only

        if customer:
            found = services.reservations.list_by_customer(customer, include_canceled=include_canceled)
        else:
            resource_id = services.config.resolve_resource(resource).id
            found = services.reservations.list_by_resource(resource_id, include_canceled=include_canceled)

        if not found:
            console.print("\n[yellow]No reservations found.[/yellow]\n")
            return

        console.print()
        console.print(_reservation_table(services, found))
        console.print()


def _reservation_table(services: Services, found: List[Reservation]) -> Table:
    table = Table(title="Reservations", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim")
    table.add_column("Resource", style="bold yellow")
    table.add_column("Starts")
    table.add_column("Customer")
    table.add_column("Status")

    for reservation in found:
        resource_config = services.config.find_resource(reservation.resource_id)
        name = resource_config.display_name() if resource_config else reservation.resource_id
        timezone = (
            services.config.resource_timezone(resource_config)
            if resource_config else services.config.timezone
        )
        status = (
            "[green]active[/green]" if reservation.is_active else "[dim]canceled[/dim]"
        )
        table.add_row(
            str(reservation.id),
            name,
            reservation.reserved_at.in_timezone(timezone).format("ddd DD.MM.YYYY HH:mm"),
            reservation.customer_id,
            status,
        )
    return table


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]courtbook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
