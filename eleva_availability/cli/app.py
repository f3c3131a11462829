"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.config_store import ConfigScheduleStore
from ..adapters.graph_authenticator import GraphAuthenticator
from ..adapters.graph_client import GraphCalendarClient
from ..adapters.mock_calendar_client import MockCalendarClient
from ..config import AppConfig, ExpertConfig, get_default_config_path
from ..domain.exceptions import AvailabilityError
from ..domain.models import EventSpec
from ..services.availability_service import AvailabilityService

app = typer.Typer(
    name="eleva-availability",
    help="Compute bookable consultation times for experts",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
MockOption = Annotated[
    bool,
    typer.Option("--mock", help="Use the bundled mock calendar and skip authentication."),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    return AppConfig.load_from_yaml(config_path)


def _build_service(config: AppConfig, expert: ExpertConfig, mock: bool) -> AvailabilityService:
    if mock:
        timezone = expert.schedule.timezone if expert.schedule else "UTC"
        calendar_client = MockCalendarClient(config=config, timezone=timezone)
    else:
        authenticator = GraphAuthenticator(
            client_id=config.client_id,
            tenant_id=config.tenant_id,
            authority_url=config.get_authority_url()
        )
        calendar_client = GraphCalendarClient(access_token=authenticator.get_access_token())

    return AvailabilityService(
        store=ConfigScheduleStore(config),
        calendar_client=calendar_client,
        step_minutes=config.defaults.step_minutes,
        months_ahead=config.defaults.months_ahead,
    )


def _display_timezone(expert: ExpertConfig) -> str:
    return expert.schedule.timezone if expert.schedule else "UTC"


@app.command()
def slots(
    expert_id: Annotated[str, typer.Argument(help="Expert id, name or email.")],
    config_file: ConfigOption = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Event duration in minutes")] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum number of times to show")] = 20,
    mock: MockOption = False,
):
    """
    List bookable start times over the booking horizon.

    Examples:

        eleva-availability slots ana --mock
        eleva-availability slots ana.ferreira@example.com --duration 30 --limit 50
    """
    try:
        config = _load_config(config_file)
        expert = config.resolve_expert(expert_id)
        event = EventSpec(owner_id=expert.id, duration_in_minutes=duration or config.duration_for(expert))

        if mock:
            console.print("[yellow]⚠  Mock mode: using bundled calendar data[/yellow]\n")

        service = _build_service(config, expert, mock)
        times = asyncio.run(service.list_available_times(event))

        if not times:
            console.print(
                f"[yellow]⚠ No bookable times for {expert.name}.[/yellow]\n"
                "Check the expert's schedule, blocked dates and calendar."
            )
            return

        tz = _display_timezone(expert)
        table = Table(
            title=f"{expert.name} - {event.duration_in_minutes} min ({tz})",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Day", style="bold yellow")
        table.add_column("Date")
        table.add_column("Time", style="green")

        for start in times[:limit]:
            local = start.in_timezone(tz)
            end = local.add(minutes=event.duration_in_minutes)
            table.add_row(local.format("dddd"), local.format("YYYY-MM-DD"), f"{local.format('HH:mm')} - {end.format('HH:mm')}")

        console.print()
        console.print(table)
        console.print(f"\n[bold green]✓ {len(times)} bookable time(s) found[/bold green]; showing {min(limit, len(times))}.\n")

    except (FileNotFoundError, ValueError, AvailabilityError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def check(
    expert_id: Annotated[str, typer.Argument(help="Expert id, name or email.")],
    start: Annotated[str, typer.Argument(help="Start time, ISO 8601 (e.g. 2024-03-04T14:00:00Z)")],
    config_file: ConfigOption = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Event duration in minutes")] = None,
    mock: MockOption = False,
):
    """
    Re-validate a single booking start time against fresh calendar data.
    """
    try:
        config = _load_config(config_file)
        expert = config.resolve_expert(expert_id)
        event = EventSpec(owner_id=expert.id, duration_in_minutes=duration or config.duration_for(expert))

        start_time = pendulum.parse(start, tz="UTC")
        if not isinstance(start_time, pendulum.DateTime):
            raise ValueError(f"Not a date and time: {start}")

        service = _build_service(config, expert, mock)
        is_valid = asyncio.run(service.validate_booking_time(event, start_time))

        local = start_time.in_timezone(_display_timezone(expert))
        if is_valid:
            console.print(f"[bold green]✓ Bookable:[/bold green] {local.format('dddd YYYY-MM-DD HH:mm zz')}")
        else:
            console.print(f"[bold red]✗ Not bookable:[/bold red] {local.format('dddd YYYY-MM-DD HH:mm zz')}")
            raise typer.Exit(2)

    except (FileNotFoundError, ValueError, AvailabilityError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def schedule(
    expert_id: Annotated[str, typer.Argument(help="Expert id, name or email.")],
    config_file: ConfigOption = None,
):
    """
    Show an expert's weekly availability, settings and blocked dates.
    """
    try:
        config = _load_config(config_file)
        expert = config.resolve_expert(expert_id)

        if expert.schedule is None:
            console.print(f"[yellow]{expert.name} has not configured availability.[/yellow]")
            return

        table = Table(
            title=f"{expert.name} ({expert.schedule.timezone})",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Day", style="bold yellow")
        table.add_column("From")
        table.add_column("To")

        windows = sorted(
            expert.schedule.availabilities,
            key=lambda w: (w.day_of_week.index, w.start_time)
        )
        for window in windows:
            table.add_row(window.day_of_week.value.capitalize(), window.start_time, window.end_time)

        settings = config.settings_for(expert)
        console.print()
        console.print(table)
        console.print(
            f"\nMinimum notice: {settings.minimum_notice_minutes} min | "
            f"Buffers: {settings.before_event_buffer} min before, {settings.after_event_buffer} min after"
        )
        for blocked in expert.to_blocked_dates():
            reason = f" ({blocked.reason})" if blocked.reason else ""
            console.print(f"[dim]Blocked: {blocked.date.isoformat()}{reason}[/dim]")
        console.print()

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def list_experts(
    config_file: ConfigOption = None,
):
    """
    List all configured experts.
    """
    try:
        config = _load_config(config_file)

        if not config.experts:
            console.print("[yellow]No experts defined in the config file.[/yellow]")
            return

        table = Table(
            title="Configured experts",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Id", style="bold yellow")
        table.add_column("Name")
        table.add_column("E-Mail", style="dim")
        table.add_column("Timezone")

        for expert in config.experts:
            table.add_row(
                expert.id,
                expert.name,
                expert.email,
                expert.schedule.timezone if expert.schedule else "-"
            )

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def test_auth(
    config_file: ConfigOption = None,
    force: Annotated[bool, typer.Option("--force", help="Force re-authentication")] = False,
):
    """
    Test Microsoft Graph authentication.
    """
    try:
        config = _load_config(config_file)

        console.print("\n[bold]Testing Microsoft Graph authentication...[/bold]\n")

        authenticator = GraphAuthenticator(
            client_id=config.client_id,
            tenant_id=config.tenant_id,
            authority_url=config.get_authority_url()
        )
        client = GraphCalendarClient(access_token=authenticator.get_access_token(force_refresh=force))
        user_info = client.test_connection()

        console.print(Panel.fit(
            f"[bold green]✓ Authentication successful![/bold green]\n\n"
            f"[bold]User:[/bold] {user_info.get('displayName', 'N/A')}\n"
            f"[bold]E-Mail:[/bold] {user_info.get('mail') or user_info.get('userPrincipalName', 'N/A')}",
            title="✓ Connection test"
        ))
        console.print()

    except (FileNotFoundError, ValueError, AvailabilityError) as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}\n")
        raise typer.Exit(1)


@app.command()
def clear_cache(
    config_file: ConfigOption = None,
):
    """
    Clear the authentication token cache.
    """
    try:
        config = _load_config(config_file)

        authenticator = GraphAuthenticator(
            client_id=config.client_id,
            tenant_id=config.tenant_id
        )
        authenticator.clear_cache()
        console.print("\n[green]✓ Token cache cleared.[/green]")
        console.print("You will need to re-authenticate on the next run.\n")

    except (FileNotFoundError, ValueError, AvailabilityError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]eleva-availability[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
