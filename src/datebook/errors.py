"""Exception hierarchy surfaced by the recurrence and conflict engine."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datebook.models import Event


class DatebookError(Exception):
    """Base class for all engine errors."""


class ConflictError(DatebookError):
    """Raised when a candidate event overlaps one or more existing events.

    Attributes:
        conflicts: The conflicting events/instances, in encounter order.
    """

    def __init__(self, conflicts: Sequence[Event]) -> None:
        self.conflicts = list(conflicts)
        titles = ", ".join(event.title for event in self.conflicts)
        super().__init__(f"Conflict detected with: {titles}")


class NotFoundError(DatebookError, KeyError):
    """Raised when an update/delete references an id absent from the store."""

    def __init__(self, identifier: str, kind: str = "event") -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} not found: {identifier}")

    def __str__(self) -> str:
        return self.args[0]


class MalformedRecurrenceError(DatebookError, ValueError):
    """Raised when a recurrence rule carries an unrecognized type."""

    def __init__(self, rule_type: str) -> None:
        self.rule_type = rule_type
        super().__init__(f"Unrecognized recurrence type: {rule_type!r}")


class PersistenceError(DatebookError):
    """Raised when the persistence collaborator fails to write the store.

    The in-memory store has already been updated when this is raised.
    """

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Failed to persist {key!r}: {reason}")
