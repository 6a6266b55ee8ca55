"""Mutation coordinator — conflict-checked create/update/delete/move.

Every mutation runs under one re-entrant lock so that checking for
conflicts and committing happen atomically with respect to other writers.
Memory is always updated before the store is persisted; a persistence
failure is raised to the caller with memory already reflecting the change.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Collection, Mapping
from datetime import date, timedelta
from typing import Any

from datebook.conflicts import DEFAULT_EVENT_DURATION, check_conflicts, find_series_conflicts
from datebook.dates import parse_date
from datebook.errors import ConflictError, NotFoundError
from datebook.models import EXCEPTION_DELETED, EditScope, Event
from datebook.recurrence import expand, instance_id, parse_instance_id, validate_rule
from datebook.store import EventStore

logger = logging.getLogger(__name__)

DEFAULT_CONFLICT_HORIZON_DAYS = 365
NEW_EVENT_ID = "new"
_INSTANCE_KEYS = ("parentId", "originalDate", "isRecurringInstance")


def _new_event_id() -> str:
    return uuid.uuid4().hex


class MutationCoordinator:
    """Applies validated writes to an :class:`EventStore`.

    Args:
        store: The event store to query and mutate.
        default_duration: Implied length of events without an end time.
        horizon_days: How far past its anchor a recurring candidate is
            checked for conflicts when it has no earlier end date.
        check_on_move: Whether :meth:`move_event` runs the conflict check.
        autosave: Persist the full store after every successful mutation.
            When ``False`` the caller is responsible for ``store.save()``.
        id_factory: Produces ids for new events.
    """

    def __init__(
        self,
        store: EventStore,
        *,
        default_duration: timedelta = DEFAULT_EVENT_DURATION,
        horizon_days: int = DEFAULT_CONFLICT_HORIZON_DAYS,
        check_on_move: bool = True,
        autosave: bool = True,
        id_factory: Callable[[], str] = _new_event_id,
    ) -> None:
        self.store = store
        self.default_duration = default_duration
        self.horizon_days = horizon_days
        self.check_on_move = check_on_move
        self.autosave = autosave
        self._id_factory = id_factory
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_events_for_date(self, day: date) -> list[Event]:
        return self.store.events_for_date(day)

    def get_events_for_date_range(self, start: date, end: date) -> list[Event]:
        return self.store.events_for_range(start, end)

    def get_events_for_month(self, year: int, month: int) -> list[Event]:
        return self.store.events_for_month(year, month)

    def check_conflicts(self, candidate: Event | Mapping[str, Any]) -> list[Event]:
        """Return events/instances on the candidate's date that overlap it.

        A mapping without an ``id`` is checked as a not-yet-created event. A
        stored master never conflicts with its own instances.
        """
        if not isinstance(candidate, Event):
            data = Event.normalize_fields(candidate)
            data.setdefault("id", NEW_EVENT_ID)
            candidate = Event.model_validate(data)
        return check_conflicts(
            candidate,
            self.store.events_for_date(candidate.date),
            default_duration=self.default_duration,
            exclude_ids={candidate.id},
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_event(self, data: Mapping[str, Any]) -> Event:
        """Create a standalone or master event.

        Raises:
            ConflictError: If the event (or any occurrence inside the
                conflict horizon) overlaps an existing event.
            MalformedRecurrenceError: If the recurrence type is unknown.
            NotFoundError: If the category id is not configured.
        """
        with self._lock:
            fields = Event.normalize_fields(data)
            fields.pop("id", None)
            event = self._prepare(Event.model_validate({**fields, "id": self._id_factory()}))
            self._raise_on_conflicts(event)
            self.store.put(event)
            self._commit("Created", event)
            return event

    def update_event(
        self,
        event_id: str,
        changes: Mapping[str, Any],
        scope: EditScope | str = EditScope.all,
    ) -> Event:
        """Update an event, a whole series, or detach one occurrence.

        *event_id* may be a standalone id, a master id, or an instance id.
        With ``scope="single"`` on a recurring series the occurrence is
        detached into a new standalone event (returned) and the master
        records an exception for that date. Otherwise the stored record is
        replaced and returned.

        Raises:
            NotFoundError: If *event_id* does not resolve to a stored event.
            ConflictError: If the result overlaps another event. Nothing is
                written in that case.
        """
        with self._lock:
            return self._update(event_id, changes, EditScope(scope), check=True)

    def delete_event(self, event_id: str, scope: EditScope | str = EditScope.all) -> None:
        """Delete an event or series, or suppress a single occurrence.

        Raises:
            NotFoundError: If *event_id* does not resolve to a stored event.
        """
        scope = EditScope(scope)
        with self._lock:
            record, occurrence = self._resolve(event_id)
            if record.is_recurring and scope is EditScope.single:
                day = self._single_occurrence(record, occurrence)
                suppressed = record.model_copy(
                    update={"exceptions": {**record.exceptions, day: EXCEPTION_DELETED}}
                )
                self.store.put(suppressed)
                logger.info("Suppressed occurrence %s of series %s", day, record.id)
                self._commit("Updated", suppressed)
                return

            self.store.remove(record.id)
            self._release_replaced_occurrences(record.id)
            self._commit("Deleted", record)

    def move_event(self, event_id: str, new_date: date | str) -> Event:
        """Reschedule an event to *new_date*, keeping its times.

        Moving an instance detaches that occurrence; moving a master shifts
        the whole series. Conflicts are checked unless ``check_on_move`` is off.
        """
        with self._lock:
            _, occurrence = self._resolve(event_id)
            scope = EditScope.single if occurrence is not None else EditScope.all
            return self._update(
                event_id,
                {"date": parse_date(new_date)},
                scope,
                check=self.check_on_move,
            )

    def duplicate_event(self, event_id: str, on_date: date | str | None = None) -> Event:
        """Copy an event as a new standalone ``"<title> (Copy)"`` on *on_date* (default today)."""
        with self._lock:
            source = self._lookup(event_id)
            copy = source.to_record()
            for key in ("id", "recurrence", "exceptions", *_INSTANCE_KEYS):
                copy.pop(key, None)
            copy["title"] = f"{source.title} (Copy)"
            copy["date"] = parse_date(on_date) if on_date is not None else date.today()
            return self.add_event(copy)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _update(
        self,
        event_id: str,
        changes: Mapping[str, Any],
        scope: EditScope,
        *,
        check: bool,
    ) -> Event:
        record, occurrence = self._resolve(event_id)
        if record.is_recurring and scope is EditScope.single:
            day = self._single_occurrence(record, occurrence)
            return self._detach(record, day, changes, check=check)

        updates = Event.normalize_fields(changes)
        if occurrence is not None and "date" in updates:
            # Shift the anchor by however far the occurrence moved.
            delta = parse_date(updates["date"]) - occurrence
            updates["date"] = record.date + delta

        updated = self._prepare(record.merged(updates))
        if check:
            self._raise_on_conflicts(updated, exclude_ids={record.id})
        self.store.put(updated)
        self._commit("Updated", updated)
        return updated

    def _detach(
        self,
        master: Event,
        occurrence: date,
        changes: Mapping[str, Any],
        *,
        check: bool,
    ) -> Event:
        updates = Event.normalize_fields(changes)
        updates.pop("id", None)
        data = master.model_dump()
        data["date"] = occurrence
        data.update(updates)
        data.update(id=self._id_factory(), recurrence=None, exceptions={})
        replacement = self._prepare(Event.model_validate(data))
        if check:
            self._raise_on_conflicts(
                replacement,
                exclude_ids={instance_id(master.id, occurrence)},
            )

        updated_master = master.model_copy(
            update={"exceptions": {**master.exceptions, occurrence: replacement.id}}
        )
        self.store.put(updated_master)
        self.store.put(replacement)
        logger.info(
            "Detached occurrence %s of series %s as %s", occurrence, master.id, replacement.id
        )
        self._commit("Created", replacement)
        return replacement

    def _release_replaced_occurrences(self, replacement_id: str) -> None:
        for event in self.store:
            if not event.is_recurring:
                continue
            hits = [day for day, value in event.exceptions.items() if value == replacement_id]
            if not hits:
                continue
            exceptions = dict(event.exceptions)
            for day in hits:
                exceptions[day] = EXCEPTION_DELETED
            self.store.put(event.model_copy(update={"exceptions": exceptions}))

    def _resolve(self, event_id: str) -> tuple[Event, date | None]:
        """Map *event_id* to its stored record and, for instance ids, the occurrence date."""
        record = self.store.get(event_id)
        if record is not None:
            return record, None
        parsed = parse_instance_id(event_id)
        if parsed is None:
            raise NotFoundError(event_id)
        master_id, occurrence = parsed
        master = self.store.get(master_id)
        if master is None or not master.is_recurring:
            raise NotFoundError(event_id)
        if not self.store.expand(master, occurrence, occurrence):
            raise NotFoundError(event_id)
        return master, occurrence

    def _single_occurrence(self, master: Event, occurrence: date | None) -> date:
        """The occurrence a single-scope edit targets; a master id means its anchor.

        An anchor already suppressed or replaced is no longer an occurrence of
        the series, so it resolves like any other missing instance id.
        """
        if occurrence is not None:
            return occurrence
        if master.date in master.exceptions:
            raise NotFoundError(instance_id(master.id, master.date))
        return master.date

    def _lookup(self, event_id: str) -> Event:
        record, occurrence = self._resolve(event_id)
        if occurrence is None:
            return record
        return self.store.expand(record, occurrence, occurrence)[0]

    def _prepare(self, event: Event) -> Event:
        validate_rule(event.recurrence)
        categories = self.store.categories
        if not categories:
            return event
        category = self.store.category(event.category)
        if category is None:
            raise NotFoundError(event.category, kind="category")
        if not event.color:
            return event.model_copy(update={"color": category.color})
        return event

    def _find_conflicts(self, candidate: Event, exclude_ids: Collection[str] = ()) -> list[Event]:
        excluded = {candidate.id, *exclude_ids}
        if not candidate.is_recurring:
            return check_conflicts(
                candidate,
                self.store.events_for_date(candidate.date),
                default_duration=self.default_duration,
                exclude_ids=excluded,
            )

        horizon_end = candidate.date + timedelta(days=self.horizon_days)
        end_date = candidate.recurrence.end_date if candidate.recurrence else None
        if end_date is not None and end_date < horizon_end:
            horizon_end = end_date
        occurrences = expand(
            candidate,
            candidate.date,
            horizon_end,
            weekly_interval=self.store.weekly_interval,
        )
        return find_series_conflicts(
            occurrences,
            self.store.events_for_range(candidate.date, horizon_end),
            default_duration=self.default_duration,
            exclude_ids=excluded,
        )

    def _raise_on_conflicts(self, candidate: Event, exclude_ids: Collection[str] = ()) -> None:
        conflicts = self._find_conflicts(candidate, exclude_ids)
        if conflicts:
            logger.info(
                "Rejected %s: conflicts with %s",
                candidate.id,
                ", ".join(event.id for event in conflicts),
            )
            raise ConflictError(conflicts)

    def _commit(self, action: str, event: Event) -> None:
        logger.info("%s event %s (%s on %s)", action, event.id, event.title, event.date)
        if self.autosave:
            self.store.save()
