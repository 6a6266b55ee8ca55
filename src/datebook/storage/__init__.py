"""Key/value state storage used to persist the event collections."""

from datebook.storage.state import (
    LocalStateStore,
    MemoryStateStore,
    StateNotFoundError,
    StateStore,
)

__all__ = ["LocalStateStore", "MemoryStateStore", "StateNotFoundError", "StateStore"]
