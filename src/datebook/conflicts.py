"""Time-overlap conflict detection between events on the same calendar date."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Collection, Iterable
from datetime import date, datetime, time, timedelta

from datebook.dates import combine
from datebook.models import Event

DEFAULT_EVENT_DURATION = timedelta(hours=1)

Interval = tuple[datetime, datetime]


def event_interval(event: Event, default_duration: timedelta = DEFAULT_EVENT_DURATION) -> Interval:
    """Resolve the half-open ``[start, end)`` interval an event occupies.

    Events without a start time occupy the whole day. A missing end time, or
    one that is not after the start, falls back to *default_duration*.
    """
    if event.time is None:
        start = combine(event.date, time.min)
        return start, start + timedelta(days=1)
    start = combine(event.date, event.time)
    if event.end_time is not None:
        end = combine(event.date, event.end_time)
        if end > start:
            return start, end
    return start, start + default_duration


def intervals_overlap(first: Interval, second: Interval) -> bool:
    return first[0] < second[1] and first[1] > second[0]


def events_conflict(
    first: Event,
    second: Event,
    default_duration: timedelta = DEFAULT_EVENT_DURATION,
) -> bool:
    """True when both events share a date and their intervals overlap."""
    if first.date != second.date:
        return False
    return intervals_overlap(
        event_interval(first, default_duration),
        event_interval(second, default_duration),
    )


def _is_excluded(event: Event, exclude_ids: Collection[str]) -> bool:
    if event.id in exclude_ids:
        return True
    parent_id = getattr(event, "parent_id", None)
    return parent_id is not None and parent_id in exclude_ids


def check_conflicts(
    candidate: Event,
    others: Iterable[Event],
    *,
    default_duration: timedelta = DEFAULT_EVENT_DURATION,
    exclude_ids: Collection[str] = (),
) -> list[Event]:
    """Return the events in *others* that conflict with *candidate*.

    The candidate never matches itself (by id). Events whose id, or whose
    parent master id, is in *exclude_ids* are skipped. Results keep the
    encounter order of *others*.
    """
    candidate_interval = event_interval(candidate, default_duration)
    conflicts: list[Event] = []
    for other in others:
        if other.id == candidate.id or _is_excluded(other, exclude_ids):
            continue
        if other.date != candidate.date:
            continue
        if intervals_overlap(candidate_interval, event_interval(other, default_duration)):
            conflicts.append(other)
    return conflicts


def find_series_conflicts(
    occurrences: Iterable[Event],
    existing: Iterable[Event],
    *,
    default_duration: timedelta = DEFAULT_EVENT_DURATION,
    exclude_ids: Collection[str] = (),
) -> list[Event]:
    """Check every occurrence of a candidate series against *existing* events.

    *existing* is grouped by date once, so each occurrence is only compared
    with events on its own day. Conflicts are de-duplicated by id.
    """
    by_date: dict[date, list[Event]] = defaultdict(list)
    for event in existing:
        by_date[event.date].append(event)

    seen: set[str] = set()
    conflicts: list[Event] = []
    for occurrence in occurrences:
        same_day = by_date.get(occurrence.date)
        if not same_day:
            continue
        for hit in check_conflicts(
            occurrence,
            same_day,
            default_duration=default_duration,
            exclude_ids=exclude_ids,
        ):
            if hit.id not in seen:
                seen.add(hit.id)
                conflicts.append(hit)
    return conflicts
