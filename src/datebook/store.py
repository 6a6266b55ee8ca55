"""In-memory event store with load/save against a key/value state store.

The store owns master and standalone events only. Recurring instances are
materialised on every query and never stored.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from datetime import date
from typing import Any

from pydantic import ValidationError

from datebook.dates import month_grid_window
from datebook.errors import NotFoundError, PersistenceError
from datebook.models import DEFAULT_CATEGORIES, Category, Event, EventInstance
from datebook.recurrence import WeeklyIntervalPolicy, expand
from datebook.storage import MemoryStateStore, StateStore

logger = logging.getLogger(__name__)

STANDALONE_EVENTS_KEY = "calendar-events"
RECURRING_EVENTS_KEY = "calendar-recurring-events"


class EventStore:
    """Mapping of event id to master/standalone :class:`Event` records."""

    def __init__(
        self,
        state: StateStore | None = None,
        *,
        categories: Iterable[Category] = DEFAULT_CATEGORIES,
        weekly_interval: WeeklyIntervalPolicy = WeeklyIntervalPolicy.ignore,
    ) -> None:
        self._state: StateStore = state if state is not None else MemoryStateStore()
        self._events: dict[str, Event] = {}
        self._categories: dict[str, Category] = {category.id: category for category in categories}
        self.weekly_interval = weekly_interval

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    @property
    def categories(self) -> list[Category]:
        return list(self._categories.values())

    def category(self, category_id: str) -> Category | None:
        return self._categories.get(category_id)

    # ------------------------------------------------------------------
    # Record access
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._events

    def __iter__(self) -> Iterator[Event]:
        return iter(list(self._events.values()))

    def get(self, event_id: str) -> Event | None:
        return self._events.get(event_id)

    def require(self, event_id: str) -> Event:
        event = self._events.get(event_id)
        if event is None:
            raise NotFoundError(event_id)
        return event

    def put(self, event: Event) -> None:
        """Insert or replace a record. Replacing keeps its original position."""
        self._events[event.id] = event

    def remove(self, event_id: str) -> Event:
        try:
            return self._events.pop(event_id)
        except KeyError:
            raise NotFoundError(event_id) from None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def expand(self, master: Event, start: date, end: date) -> list[EventInstance]:
        return list(expand(master, start, end, weekly_interval=self.weekly_interval))

    def events_for_range(self, start: date, end: date) -> list[Event]:
        """Return standalone events and recurring instances dated within ``[start, end]``.

        Results follow store insertion order; a master's instances appear
        together in date order. Iteration runs over a copy of the records, so
        a concurrent writer is never observed mid-update.
        """
        if start > end:
            return []
        results: list[Event] = []
        for event in list(self._events.values()):
            if event.is_recurring:
                results.extend(self.expand(event, start, end))
            elif start <= event.date <= end:
                results.append(event)
        return results

    def events_for_date(self, day: date) -> list[Event]:
        return self.events_for_range(day, day)

    def events_for_month(self, year: int, month: int) -> list[Event]:
        """Return events for the Sunday-start grid that covers *month*."""
        start, end = month_grid_window(year, month)
        return self.events_for_range(start, end)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, list[dict[str, Any]]]:
        """Return the persisted form: standalone and recurring collections."""
        standalone: list[dict[str, Any]] = []
        recurring: list[dict[str, Any]] = []
        for event in list(self._events.values()):
            target = recurring if event.is_recurring else standalone
            target.append(event.to_record())
        return {STANDALONE_EVENTS_KEY: standalone, RECURRING_EVENTS_KEY: recurring}

    def save(self) -> None:
        """Write the full store to the state backend.

        Raises:
            PersistenceError: If a collection cannot be written. The in-memory
                store is left untouched.
        """
        for key, records in self.snapshot().items():
            try:
                self._state.set(key, records)
            except (OSError, TypeError, ValueError) as exc:
                logger.error("Failed to persist %s (%d records): %s", key, len(records), exc)
                raise PersistenceError(key, str(exc)) from exc
        logger.debug("Saved %d events", len(self._events))

    def load(self) -> int:
        """Replace the in-memory records with the persisted collections.

        Unreadable collections and invalid records are logged and skipped.
        Returns the number of records loaded.
        """
        loaded: dict[str, Event] = {}
        for key in (STANDALONE_EVENTS_KEY, RECURRING_EVENTS_KEY):
            for record in self._read_collection(key):
                try:
                    event = Event.from_record(record)
                except ValidationError as exc:
                    logger.warning(
                        "Skipping invalid event record in %s (id=%s): %d validation error(s)",
                        key,
                        record.get("id") if isinstance(record, dict) else None,
                        exc.error_count(),
                    )
                    continue
                loaded[event.id] = event
        self._events = loaded
        logger.info("Loaded %d events", len(loaded))
        return len(loaded)

    def _read_collection(self, key: str) -> list[Any]:
        try:
            raw = self._state.get(key)
        except ValueError as exc:
            logger.error("Failed to parse saved events under %s: %s", key, exc)
            return []
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.error("Saved events under %s must be a list, got %s", key, type(raw).__name__)
            return []
        return raw


def filter_events(
    events: Iterable[Event],
    *,
    search: str | None = None,
    categories: Iterable[str] | None = None,
) -> list[Event]:
    """Filter events by a case-insensitive search term and category ids.

    The term matches title or description. An empty category selection
    keeps every category.
    """
    term = (search or "").strip().lower()
    selected = set(categories or ())
    results: list[Event] = []
    for event in events:
        if term and term not in event.title.lower() and term not in event.description.lower():
            continue
        if selected and event.category not in selected:
            continue
        results.append(event)
    return results
