"""Data model for calendar events, recurrence rules, and categories.

Records round-trip through the persisted JSON contract (camelCase keys,
``YYYY-MM-DD`` dates, ``HH:mm`` times) via :meth:`Event.to_record` and
:meth:`Event.from_record`. Python code uses the snake_case field names.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from datebook.dates import format_time, parse_time


class RecurrenceType(StrEnum):
    """Recurrence rule kinds understood by the expander."""

    none = "none"
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    custom = "custom"


class EditScope(StrEnum):
    """Whether an edit/delete targets one occurrence or the whole series."""

    single = "single"
    all = "all"


# Exception-table value marking a suppressed occurrence.
EXCEPTION_DELETED = "deleted"


class Category(BaseModel):
    """Static category reference data."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1)
    name: str
    color: str


DEFAULT_CATEGORIES: tuple[Category, ...] = (
    Category(id="work", name="Work", color="#3B82F6"),
    Category(id="personal", name="Personal", color="#10B981"),
    Category(id="meeting", name="Meeting", color="#8B5CF6"),
    Category(id="appointment", name="Appointment", color="#F59E0B"),
    Category(id="social", name="Social", color="#EF4444"),
    Category(id="other", name="Other", color="#6B7280"),
)


class RecurrenceRule(BaseModel):
    """Recurrence attached to a master event.

    ``type`` is kept as a plain string so records carrying an unknown kind
    still load; the expander decides what to do with them.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str = RecurrenceType.none.value
    interval: int = Field(default=1, ge=1)
    days_of_week: list[int] = Field(default_factory=list, alias="daysOfWeek")
    end_date: dt.date | None = Field(default=None, alias="endDate")

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        if value is None:
            return RecurrenceType.none.value
        if isinstance(value, str):
            return value.strip().lower() or RecurrenceType.none.value
        return value

    @field_validator("interval", mode="before")
    @classmethod
    def _default_interval(cls, value: Any) -> Any:
        return 1 if value is None else value

    @field_validator("days_of_week", mode="before")
    @classmethod
    def _default_days(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("days_of_week")
    @classmethod
    def _normalize_days(cls, value: list[int]) -> list[int]:
        for day in value:
            if not 0 <= day <= 6:
                raise ValueError(f"daysOfWeek values must be within 0..6, got {day}")
        return sorted(set(value))

    @field_validator("end_date", mode="before")
    @classmethod
    def _blank_end_date(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def kind(self) -> RecurrenceType | None:
        """The parsed rule type, or ``None`` when the type is unrecognized."""
        try:
            return RecurrenceType(self.type)
        except ValueError:
            return None

    @property
    def is_recurring(self) -> bool:
        return self.type != RecurrenceType.none


class Event(BaseModel):
    """A stored event: either standalone or the master of a recurring series."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(min_length=1)
    title: str
    description: str = ""
    date: dt.date
    time: dt.time | None = None
    end_time: dt.time | None = Field(default=None, alias="endTime")
    category: str = "other"
    color: str = ""
    recurrence: RecurrenceRule | None = None
    # occurrence date -> EXCEPTION_DELETED or the id of a replacement event
    exceptions: dict[dt.date, str] = Field(default_factory=dict)

    @field_validator("time", "end_time", mode="before")
    @classmethod
    def _parse_clock(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, str):
            if not value.strip():
                return None
            return parse_time(value)
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _default_description(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("recurrence")
    @classmethod
    def _drop_none_rule(cls, value: RecurrenceRule | None) -> RecurrenceRule | None:
        if value is not None and not value.is_recurring:
            return None
        return value

    @field_serializer("time", "end_time")
    def _serialize_clock(self, value: dt.time | None) -> str | None:
        return format_time(value) if value is not None else None

    @property
    def is_recurring(self) -> bool:
        """True when this record is the master of a recurring series."""
        return self.recurrence is not None and self.recurrence.is_recurring

    @classmethod
    def normalize_fields(cls, data: Mapping[str, Any]) -> dict[str, Any]:
        """Map camelCase record keys onto field names, leaving unknown keys as-is."""
        aliases = {
            info.alias: name for name, info in cls.model_fields.items() if info.alias is not None
        }
        return {aliases.get(key, key): value for key, value in data.items()}

    def merged(self, changes: Mapping[str, Any]) -> Event:
        """Return a new, validated :class:`Event` with *changes* applied.

        ``id`` cannot be changed through a merge.
        """
        updates = Event.normalize_fields(changes)
        updates.pop("id", None)
        data = self.model_dump()
        data.update(updates)
        return Event.model_validate(data)

    def to_record(self) -> dict[str, Any]:
        """Serialize to the persisted JSON record shape."""
        record = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        if not record.get("exceptions"):
            record.pop("exceptions", None)
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Event:
        return cls.model_validate(record)


class EventInstance(Event):
    """A derived, never-persisted occurrence of a master event on one date."""

    parent_id: str = Field(alias="parentId")
    original_date: dt.date = Field(alias="originalDate")
    is_recurring_instance: bool = Field(default=True, alias="isRecurringInstance")
