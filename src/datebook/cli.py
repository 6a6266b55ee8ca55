"""CLI for datebook — query and edit a local calendar."""

from __future__ import annotations

import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any, NoReturn

import click

from datebook.config import ConfigError, DatebookConfig, load_config
from datebook.coordinator import MutationCoordinator
from datebook.core.logging import configure_logging
from datebook.dates import format_date, format_time, parse_date
from datebook.errors import ConflictError, DatebookError
from datebook.models import EditScope, Event, RecurrenceType
from datebook.storage import LocalStateStore, MemoryStateStore
from datebook.store import EventStore, filter_events

logger = logging.getLogger(__name__)

_SCOPES = click.Choice([scope.value for scope in EditScope])
_REPEATS = click.Choice([kind.value for kind in RecurrenceType])


def build_coordinator(config: DatebookConfig) -> MutationCoordinator:
    """Create a loaded store and coordinator from *config*."""
    state = (
        LocalStateStore(config.storage.path)
        if config.storage.path is not None
        else MemoryStateStore()
    )
    store = EventStore(
        state,
        categories=config.categories,
        weekly_interval=config.recurrence.weekly_interval,
    )
    count = store.load()
    logger.debug("Opened calendar %s with %d events", config.name, count)
    return MutationCoordinator(
        store,
        default_duration=config.conflicts.default_duration,
        horizon_days=config.conflicts.horizon_days,
        check_on_move=config.conflicts.check_on_move,
    )


def _describe(event: Event) -> str:
    if event.time is None:
        when = "all day"
    else:
        when = format_time(event.time)
        if event.end_time is not None:
            when = f"{when}-{format_time(event.end_time)}"
    return f"{format_date(event.date)}  {when:<11}  {event.title}  [{event.category}]  {event.id}"


def _echo_events(events: list[Event], as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps([event.to_record() for event in events], indent=2))
        return
    if not events:
        click.echo("No events.")
        return
    for event in events:
        click.echo(_describe(event))


def _fail(exc: Exception) -> NoReturn:
    if isinstance(exc, ConflictError):
        click.echo("Conflict detected with:")
        for event in exc.conflicts:
            click.echo(f"  {_describe(event)}")
    else:
        click.echo(f"Error: {exc}")
    sys.exit(1)


def _date_param(
    ctx: click.Context,  # noqa: ARG001
    param: click.Parameter,  # noqa: ARG001
    value: str | None,
) -> date | None:
    if value is None:
        return None
    try:
        return parse_date(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from None


def _parse_days(value: str | None) -> list[int] | None:
    if value is None:
        return None
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError:
        raise click.BadParameter("expected comma-separated weekday numbers (0=Sunday)") from None


def _recurrence(
    repeat: str | None, interval: int | None, days: str | None, until: str | None
) -> dict[str, Any] | None:
    if repeat is None:
        return None
    rule: dict[str, Any] = {"type": repeat}
    if interval is not None:
        rule["interval"] = interval
    parsed_days = _parse_days(days)
    if parsed_days is not None:
        rule["daysOfWeek"] = parsed_days
    if until is not None:
        rule["endDate"] = until
    return rule


@click.group()
@click.version_option(version="0.1.0")
@click.option(
    "--config",
    "config_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    help="Directory containing datebook.toml",
)
@click.pass_context
def cli(ctx: click.Context, config_dir: Path) -> None:
    """Datebook — personal calendar with recurrence and conflict checks."""
    try:
        config = load_config(config_dir)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    configure_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_root=Path(config.logging.log_root) if config.logging.log_root else None,
        calendar_name=config.name,
    )
    ctx.obj = build_coordinator(config)


@cli.command()
@click.option(
    "--date", "on_date", callback=_date_param, help="Single day (YYYY-MM-DD); defaults to today"
)
@click.option("--from", "start", callback=_date_param, help="Range start (YYYY-MM-DD)")
@click.option("--to", "end", callback=_date_param, help="Range end (YYYY-MM-DD)")
@click.option("--search", help="Case-insensitive title/description filter")
@click.option("--category", "categories", multiple=True, help="Category id filter (repeatable)")
@click.option("--json", "as_json", is_flag=True, help="Print JSON records")
@click.pass_obj
def events(
    calendar: MutationCoordinator,
    on_date: date | None,
    start: date | None,
    end: date | None,
    search: str | None,
    categories: tuple[str, ...],
    as_json: bool,
) -> None:
    """List events and recurring instances for a day or a date range."""
    if (start is None) != (end is None):
        raise click.UsageError("--from and --to must be given together")
    if start is not None and end is not None:
        found = calendar.get_events_for_date_range(start, end)
    else:
        found = calendar.get_events_for_date(on_date or date.today())
    _echo_events(filter_events(found, search=search, categories=categories), as_json)


@cli.command()
@click.argument("year", type=int)
@click.argument("month", type=click.IntRange(1, 12))
@click.option("--json", "as_json", is_flag=True, help="Print JSON records")
@click.pass_obj
def month(calendar: MutationCoordinator, year: int, month: int, as_json: bool) -> None:
    """List events for the weeks covering a month."""
    _echo_events(calendar.get_events_for_month(year, month), as_json)


@cli.command()
@click.option("--title", required=True)
@click.option("--date", "on_date", required=True, help="YYYY-MM-DD")
@click.option("--time", "at", help="HH:mm; omit for an all-day event")
@click.option("--end-time", help="HH:mm")
@click.option("--description", default="")
@click.option("--category", default="other", show_default=True)
@click.option("--color", default="", help="Hex colour; defaults to the category colour")
@click.option("--repeat", type=_REPEATS, help="Recurrence type")
@click.option("--interval", type=click.IntRange(min=1), help="Recurrence interval")
@click.option("--days", help="Weekdays for weekly rules, e.g. 1,3 (0=Sunday)")
@click.option("--until", help="Recurrence end date (YYYY-MM-DD, inclusive)")
@click.pass_obj
def add(
    calendar: MutationCoordinator,
    title: str,
    on_date: str,
    at: str | None,
    end_time: str | None,
    description: str,
    category: str,
    color: str,
    repeat: str | None,
    interval: int | None,
    days: str | None,
    until: str | None,
) -> None:
    """Create an event after checking it for conflicts."""
    data: dict[str, Any] = {
        "title": title,
        "date": on_date,
        "time": at,
        "endTime": end_time,
        "description": description,
        "category": category,
        "color": color,
        "recurrence": _recurrence(repeat, interval, days, until),
    }
    try:
        event = calendar.add_event(data)
    except (DatebookError, ValueError) as exc:
        _fail(exc)
    click.echo(f"Created {event.id}")


@cli.command()
@click.argument("event_id")
@click.option("--title")
@click.option("--date", "on_date", help="YYYY-MM-DD")
@click.option("--time", "at", help="HH:mm")
@click.option("--end-time", help="HH:mm")
@click.option("--description")
@click.option("--category")
@click.option("--color")
@click.option("--scope", type=_SCOPES, default=EditScope.all.value, show_default=True)
@click.pass_obj
def update(
    calendar: MutationCoordinator,
    event_id: str,
    title: str | None,
    on_date: str | None,
    at: str | None,
    end_time: str | None,
    description: str | None,
    category: str | None,
    color: str | None,
    scope: str,
) -> None:
    """Update an event, a whole series, or a single occurrence."""
    provided = {
        "title": title,
        "date": on_date,
        "time": at,
        "endTime": end_time,
        "description": description,
        "category": category,
        "color": color,
    }
    changes = {key: value for key, value in provided.items() if value is not None}
    if not changes:
        raise click.UsageError("Nothing to update")
    try:
        event = calendar.update_event(event_id, changes, scope)
    except (DatebookError, ValueError) as exc:
        _fail(exc)
    click.echo(f"Updated {event.id}")


@cli.command()
@click.argument("event_id")
@click.option("--scope", type=_SCOPES, default=EditScope.all.value, show_default=True)
@click.pass_obj
def delete(calendar: MutationCoordinator, event_id: str, scope: str) -> None:
    """Delete an event or series, or suppress a single occurrence."""
    try:
        calendar.delete_event(event_id, scope)
    except DatebookError as exc:
        _fail(exc)
    click.echo(f"Deleted {event_id}")


@cli.command()
@click.argument("event_id")
@click.argument("new_date", callback=_date_param)
@click.pass_obj
def move(calendar: MutationCoordinator, event_id: str, new_date: date) -> None:
    """Move an event (or one occurrence) to another date."""
    try:
        event = calendar.move_event(event_id, new_date)
    except (DatebookError, ValueError) as exc:
        _fail(exc)
    click.echo(f"Moved {event.id} to {format_date(event.date)}")


@cli.command()
@click.argument("event_id")
@click.option(
    "--date",
    "on_date",
    callback=_date_param,
    help="Date for the copy (YYYY-MM-DD); defaults to today",
)
@click.pass_obj
def duplicate(calendar: MutationCoordinator, event_id: str, on_date: date | None) -> None:
    """Copy an event as a new standalone event."""
    try:
        event = calendar.duplicate_event(event_id, on_date)
    except (DatebookError, ValueError) as exc:
        _fail(exc)
    click.echo(f"Created {event.id}")


@cli.command()
@click.option("--date", "on_date", required=True, callback=_date_param, help="YYYY-MM-DD")
@click.option("--time", "at", help="HH:mm; omit to check the whole day")
@click.option("--end-time", help="HH:mm")
@click.pass_obj
def check(
    calendar: MutationCoordinator, on_date: date, at: str | None, end_time: str | None
) -> None:
    """Report events that would conflict with a proposed time slot."""
    try:
        conflicts = calendar.check_conflicts(
            {"title": "(proposed)", "date": on_date, "time": at, "endTime": end_time}
        )
    except ValueError as exc:
        _fail(exc)
    if not conflicts:
        click.echo("No conflicts.")
        return
    click.echo("Conflict detected with:")
    for event in conflicts:
        click.echo(f"  {_describe(event)}")
    sys.exit(1)


@cli.command("categories")
@click.pass_obj
def categories_cmd(calendar: MutationCoordinator) -> None:
    """List configured categories."""
    for category in calendar.store.categories:
        click.echo(f"{category.id:<14} {category.color}  {category.name}")


def main() -> None:
    cli()
