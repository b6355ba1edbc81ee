"""
Main CLI application using Typer.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..adapters.memory_repository import InMemoryRepository
from ..config import AppConfig, get_default_config_path
from ..domain.after_hours import AfterHoursResolver
from ..domain.compliance_actions import ComplianceActionResolver, ComplianceContext, ComplianceOutcome
from ..domain.exceptions import SlotGuardError
from ..domain.slot_generator import AvailabilitySlotGenerator
from ..domain.timezone_resolver import COMMON_TIMEZONES, TimezoneResolver, is_valid_timezone
from ..logging_config import setup_logging
from ..services.availability_service import AvailabilityService
from ..services.cache import TTLCache
from ..services.rules_store import RulesStore

app = typer.Typer(
    name="slotguard",
    help="Check business-hours compliance and list bookable slots for a tenant",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
DataOption = Annotated[
    Optional[Path],
    typer.Option("--data", help="YAML fixture with tenants, availability and rules"),
]
TimezoneOption = Annotated[
    Optional[str],
    typer.Option("--timezone", "-t", help="Tenant timezone override (IANA name)"),
]
AtOption = Annotated[
    Optional[str],
    typer.Option("--at", help="Instant to check (ISO 8601). Defaults to now"),
]


@dataclass
class Runtime:
    """Engine components wired against the fixture repository."""
    config: AppConfig
    repository: InMemoryRepository
    timezones: TimezoneResolver
    rules: RulesStore
    compliance: ComplianceActionResolver
    availability: AvailabilityService

    @property
    def after_hours(self) -> AfterHoursResolver:
        return self.compliance.after_hours

    def tenant_timezone(self, tenant_id: str, override: Optional[str]) -> Optional[str]:
        return _checked_timezone(override) or self.repository.tenant_timezone(tenant_id)

    def instant(self, at: Optional[str]) -> DateTime:
        if not at:
            return self.timezones.now()
        return self.timezones.parse_in_timezone(at, self.config.timezone)

    def format_instant(self, instant: DateTime, zone: str) -> str:
        local = self.timezones.localize(instant, zone)
        return f"{local.format('dddd, YYYY-MM-DD HH:mm')} {zone} ({instant.to_iso8601_string()})"


def _checked_timezone(zone: Optional[str]) -> Optional[str]:
    """Reject a --timezone value the zone database does not know."""
    if zone and not is_valid_timezone(zone):
        raise SlotGuardError(f"Unknown timezone: {zone}")
    return zone


def _load_runtime(config_file: Optional[Path], data_file: Optional[Path]) -> Runtime:
    config_path = config_file or get_default_config_path()
    if config_file is not None or config_path.exists():
        config = AppConfig.load_from_yaml(config_path)
    else:
        config = AppConfig()

    setup_logging(config.log_level)

    data_path = data_file or config.data_file
    if data_path is None:
        raise SlotGuardError("No data file given. Use --data or set data_file in the config.")
    repository = InMemoryRepository.from_yaml(data_path)

    timezones = TimezoneResolver()
    business_hours = config.defaults.business_hours()
    after_hours = AfterHoursResolver(
        timezones,
        fallback_timezone=config.business_hours_timezone,
        default_business_hours=business_hours,
    )

    return Runtime(
        config=config,
        repository=repository,
        timezones=timezones,
        rules=RulesStore(
            repository,
            cache=TTLCache(config.rules_cache_ttl_seconds),
            default_business_hours=business_hours,
            default_detection_window_hours=config.defaults.resubmission_detection_window_hours,
            default_reschedule_delay_hours=config.defaults.resubmission_reschedule_delay_hours,
        ),
        compliance=ComplianceActionResolver(after_hours),
        availability=AvailabilityService(
            repository,
            repository,
            repository,
            repository,
            generator=AvailabilitySlotGenerator(timezones),
            fallback_timezone=config.schedule_timezone,
            default_duration_minutes=config.default_slot_duration_minutes,
        ),
    )


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")
    raise typer.Exit(1)


def _print_outcome(runtime: Runtime, title: str, outcome: ComplianceOutcome, zone: str) -> None:
    lines = [f"[bold]Outcome:[/bold] {outcome.kind.value}"]
    if outcome.reason:
        lines.append(f"[bold]Reason:[/bold] {outcome.reason}")
    if outcome.at is not None:
        lines.append(f"[bold]Reschedule at:[/bold] {runtime.format_instant(outcome.at, zone)}")
    if outcome.event_type_id:
        lines.append(f"[bold]Default event type:[/bold] {outcome.event_type_id}")

    style = "green" if outcome.should_execute else "yellow"
    console.print(Panel.fit("\n".join(lines), title=title, border_style=style))


@app.command()
def rules(
    tenant: Annotated[str, typer.Argument(help="Tenant id")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Show a tenant's effective execution rules.
    """
    try:
        runtime = _load_runtime(config_file, data_file)
        execution_rules = runtime.rules.get(tenant)
    except (FileNotFoundError, SlotGuardError, ValueError) as e:
        _fail(e)

    table = Table(title=f"Execution rules for {tenant}", show_header=True, header_style="bold cyan")
    table.add_column("Field", style="bold yellow")
    table.add_column("Value")

    for field, value in execution_rules.to_dict().items():
        table.add_row(field, "-" if value is None else str(value))

    console.print()
    console.print(table)
    console.print()


@app.command()
def check_hours(
    tenant: Annotated[str, typer.Argument(help="Tenant id")],
    at: AtOption = None,
    timezone: TimezoneOption = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Check whether an instant falls outside the tenant's business hours.
    """
    try:
        runtime = _load_runtime(config_file, data_file)
        execution_rules = runtime.rules.get(tenant)
        tenant_tz = runtime.tenant_timezone(tenant, timezone)
        instant = runtime.instant(at)

        after_hours = runtime.after_hours.is_after_hours(instant, execution_rules, tenant_tz)
        outcome = runtime.compliance.resolve_after_hours(
            execution_rules, ComplianceContext(candidate=instant, tenant_timezone=tenant_tz)
        )
        zone = runtime.after_hours.effective_timezone(execution_rules.after_hours_business_hours, tenant_tz)
    except (FileNotFoundError, SlotGuardError, ValueError) as e:
        _fail(e)

    verdict = "[yellow]after hours[/yellow]" if after_hours else "[green]within business hours[/green]"
    console.print(f"\n{runtime.format_instant(instant, zone)}: {verdict}\n")
    _print_outcome(runtime, "After-hours handling", outcome, zone)


@app.command()
def next_time(
    tenant: Annotated[str, typer.Argument(help="Tenant id")],
    timezone: TimezoneOption = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Show the next compliant send time for the tenant's after-hours action.
    """
    try:
        runtime = _load_runtime(config_file, data_file)
        execution_rules = runtime.rules.get(tenant)
        tenant_tz = runtime.tenant_timezone(tenant, timezone)
        now = runtime.timezones.now()
        target = runtime.after_hours.next_available_instant(now, execution_rules, tenant_tz)
        zone = runtime.after_hours.effective_timezone(execution_rules.after_hours_business_hours, tenant_tz)
    except (FileNotFoundError, SlotGuardError, ValueError) as e:
        _fail(e)

    console.print(f"\n[bold]Action:[/bold] {execution_rules.after_hours_action.value}")
    console.print(f"[bold]Next time:[/bold] {runtime.format_instant(target, zone)}\n")


@app.command()
def tcpa(
    tenant: Annotated[str, typer.Argument(help="Tenant id")],
    at: AtOption = None,
    timezone: TimezoneOption = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Show how a TCPA calling-window violation would be handled.
    """
    try:
        runtime = _load_runtime(config_file, data_file)
        execution_rules = runtime.rules.get(tenant)
        tenant_tz = runtime.tenant_timezone(tenant, timezone)
        outcome = runtime.compliance.resolve_tcpa_violation(
            execution_rules,
            ComplianceContext(candidate=runtime.instant(at), tenant_timezone=tenant_tz),
        )
        zone = runtime.after_hours.effective_timezone(execution_rules.after_hours_business_hours, tenant_tz)
    except (FileNotFoundError, SlotGuardError, ValueError) as e:
        _fail(e)

    _print_outcome(runtime, "TCPA violation handling", outcome, zone)


@app.command()
def resubmission(
    tenant: Annotated[str, typer.Argument(help="Tenant id")],
    at: AtOption = None,
    previous: Annotated[Optional[str], typer.Option("--previous", help="Previous submission instant (ISO 8601)")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Show how a detected lead resubmission would be handled.
    """
    try:
        runtime = _load_runtime(config_file, data_file)
        execution_rules = runtime.rules.get(tenant)
        context = ComplianceContext(
            candidate=runtime.instant(at),
            previous_submission_at=runtime.instant(previous) if previous else None,
        )
        outcome = runtime.compliance.resolve_resubmission(execution_rules, context)
    except (FileNotFoundError, SlotGuardError, ValueError) as e:
        _fail(e)

    _print_outcome(runtime, "Resubmission handling", outcome, runtime.config.timezone)


@app.command()
def slots(
    tenant: Annotated[str, typer.Argument(help="Tenant id")],
    event_type: Annotated[str, typer.Argument(help="Event type id")],
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End date, inclusive (YYYY-MM-DD)")] = None,
    user: Annotated[Optional[str], typer.Option("--user", "-u", help="Assigned user id")] = None,
    timezone: TimezoneOption = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    List bookable slots for an event type.

    Examples:

        slotguard slots acme demo --start 2024-11-25 --end 2024-11-29

        slotguard slots acme demo --user alice --timezone Europe/Berlin
    """
    try:
        runtime = _load_runtime(config_file, data_file)
        zone = _checked_timezone(timezone) or runtime.config.timezone

        if start:
            range_start = pendulum.from_format(start, "YYYY-MM-DD", tz=zone).start_of("day")
        else:
            range_start = pendulum.now(zone).start_of("day")
        if end:
            range_end = pendulum.from_format(end, "YYYY-MM-DD", tz=zone).add(days=1).start_of("day")
        else:
            range_end = range_start.add(days=7)

        found = runtime.availability.generate_slots(
            tenant,
            event_type,
            range_start.in_timezone("UTC"),
            range_end.in_timezone("UTC"),
            assigned_to_user_id=user,
            request_timezone=timezone,
        )
    except (FileNotFoundError, SlotGuardError, ValueError) as e:
        _fail(e)

    console.print()
    if not found:
        console.print(
            "[yellow]⚠ No bookable slots found.[/yellow]\n"
            "Try a longer range or check the event type's availability."
        )
        console.print()
        return

    table = Table(
        title=f"{len(found)} slot(s) for {event_type}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Day", style="bold yellow")
    table.add_column(f"Local ({zone})")
    table.add_column("UTC", style="dim")

    for slot in found:
        local = slot.in_timezone(zone)
        table.add_row(local.format("dddd, YYYY-MM-DD"), local.format("HH:mm"), slot.to_iso8601_string())

    console.print(table)
    console.print()


@app.command()
def timezones():
    """
    List commonly used timezones.
    """
    table = Table(title="Common timezones", show_header=True, header_style="bold cyan")
    table.add_column("Zone", style="bold yellow")
    table.add_column("Label", style="dim")
    for value, label in COMMON_TIMEZONES:
        table.add_row(value, label)

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotguard[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
