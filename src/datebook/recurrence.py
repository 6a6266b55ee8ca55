"""Recurrence expansion — derive dated instances of a master event.

Instances are never stored. Each one gets a deterministic id of the form
``{master_id}#{YYYY-MM-DD}`` so a clicked occurrence can be mapped back to its
master with :func:`parse_instance_id`.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from datetime import date
from enum import StrEnum

from datebook.dates import (
    add_days,
    add_months,
    add_weeks,
    format_date,
    start_of_week,
    weekday_index,
)
from datebook.errors import MalformedRecurrenceError
from datebook.models import Event, EventInstance, RecurrenceRule, RecurrenceType

logger = logging.getLogger(__name__)

INSTANCE_ID_SEPARATOR = "#"
_INSTANCE_ID_PATTERN = re.compile(r"^(?P<master>.+)#(?P<date>\d{4}-\d{2}-\d{2})$")


class WeeklyIntervalPolicy(StrEnum):
    """How ``interval`` applies to weekly rules that list ``daysOfWeek``."""

    # Every listed weekday of every week; interval is not applied.
    ignore = "ignore"
    # Listed weekdays only in every Nth week, counted from the anchor's week.
    nth_week = "nth_week"


def instance_id(master_id: str, occurrence: date) -> str:
    return f"{master_id}{INSTANCE_ID_SEPARATOR}{format_date(occurrence)}"


def parse_instance_id(event_id: str) -> tuple[str, date] | None:
    """Split an instance id into ``(master_id, occurrence_date)``.

    Returns ``None`` when *event_id* is not an instance id.
    """
    match = _INSTANCE_ID_PATTERN.match(event_id)
    if match is None:
        return None
    try:
        occurrence = date.fromisoformat(match.group("date"))
    except ValueError:
        return None
    return match.group("master"), occurrence


def validate_rule(rule: RecurrenceRule | None) -> None:
    """Raise :class:`MalformedRecurrenceError` if *rule* has an unknown type."""
    if rule is not None and rule.kind is None:
        raise MalformedRecurrenceError(rule.type)


def make_instance(master: Event, occurrence: date) -> EventInstance:
    data = master.model_dump()
    data.update(
        id=instance_id(master.id, occurrence),
        date=occurrence,
        parent_id=master.id,
        original_date=master.date,
    )
    return EventInstance.model_validate(data)


def _week_number(anchor: date, value: date) -> int:
    return (start_of_week(value) - start_of_week(anchor)).days // 7


def _next_weekly_day(
    cursor: date,
    anchor: date,
    rule: RecurrenceRule,
    policy: WeeklyIntervalPolicy,
) -> date:
    days = set(rule.days_of_week)
    candidate = add_days(cursor, 1)
    while True:
        if weekday_index(candidate) in days:
            if policy is WeeklyIntervalPolicy.ignore:
                return candidate
            if _week_number(anchor, candidate) % rule.interval == 0:
                return candidate
        candidate = add_days(candidate, 1)


def expand(
    master: Event,
    window_start: date,
    window_end: date,
    *,
    weekly_interval: WeeklyIntervalPolicy = WeeklyIntervalPolicy.ignore,
    strict: bool = False,
) -> Iterator[EventInstance]:
    """Yield the instances of *master* whose dates fall in ``[window_start, window_end]``.

    Generation is additionally bounded by the rule's inclusive ``end_date``
    and skips any date recorded in ``master.exceptions``. Non-recurring events
    yield nothing.

    An unrecognized rule type stops generation after what was already
    emitted; with ``strict=True`` it raises :class:`MalformedRecurrenceError`
    instead.
    """
    rule = master.recurrence
    if rule is None or not rule.is_recurring:
        return

    effective_end = window_end
    if rule.end_date is not None and rule.end_date < effective_end:
        effective_end = rule.end_date

    anchor = master.date
    cursor = anchor
    step = 0
    while cursor <= effective_end:
        if cursor >= window_start and cursor not in master.exceptions:
            yield make_instance(master, cursor)

        kind = rule.kind
        if kind in (RecurrenceType.daily, RecurrenceType.custom):
            cursor = add_days(cursor, rule.interval)
        elif kind is RecurrenceType.weekly:
            if rule.days_of_week:
                cursor = _next_weekly_day(cursor, anchor, rule, weekly_interval)
            else:
                cursor = add_weeks(cursor, rule.interval)
        elif kind is RecurrenceType.monthly:
            # Offsets are taken from the anchor so short months do not shift the day.
            step += 1
            cursor = add_months(anchor, step * rule.interval)
        else:
            if strict:
                raise MalformedRecurrenceError(rule.type)
            logger.warning(
                "Unrecognized recurrence type %r on event %s; stopping expansion",
                rule.type,
                master.id,
            )
            return
