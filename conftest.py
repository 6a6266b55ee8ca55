"""Root conftest — shared fixtures for the datebook test suite.

Fixtures defined here are visible to every test under ``tests/``. The plain
helpers (``make_event``, ``sequential_ids``) are imported directly with
``from conftest import ...``.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Iterator
from datetime import date
from typing import Any

import pytest

from datebook.coordinator import MutationCoordinator
from datebook.core.logging import _calendar_context
from datebook.models import Event
from datebook.storage import MemoryStateStore
from datebook.store import EventStore


def make_event(**overrides: Any) -> Event:
    """Build an :class:`Event` with sensible defaults for tests."""
    data: dict[str, Any] = {
        "id": "evt",
        "title": "Event",
        "date": date(2024, 1, 1),
        "time": "09:00",
        "category": "work",
        "color": "#3B82F6",
    }
    data.update(overrides)
    return Event.model_validate(data)


def sequential_ids(prefix: str = "evt") -> Callable[[], str]:
    """Return an id factory producing ``evt-1``, ``evt-2``, ..."""
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Restore the root logger and calendar context after each test."""
    token = _calendar_context.set(None)
    yield
    _calendar_context.reset(token)
    root = logging.getLogger()
    for handler in list(root.handlers):
        if type(handler).__module__.startswith("_pytest"):
            continue
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.WARNING)


@pytest.fixture
def state_store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture
def store(state_store: MemoryStateStore) -> EventStore:
    return EventStore(state_store)


@pytest.fixture
def calendar(store: EventStore) -> MutationCoordinator:
    return MutationCoordinator(store, id_factory=sequential_ids())
