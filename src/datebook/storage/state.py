"""Key/value state storage with local filesystem and in-memory backends.

Values are any JSON-serialisable structure. Each key is written as a whole;
there are no partial updates.
"""

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Protocol

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class StateStore(Protocol):
    """Protocol for state storage backends."""

    def get(self, key: str) -> Any | None:
        """Return the stored value for *key*, or ``None`` if absent.

        Raises:
            ValueError: If the stored payload is not valid JSON
        """
        ...

    def set(self, key: str, value: Any) -> None:
        """Store *value* under *key*, replacing any previous value.

        Raises:
            OSError: If the backend cannot write the value
        """
        ...

    def delete(self, key: str) -> None:
        """Delete *key*.

        Raises:
            StateNotFoundError: If the key does not exist
        """
        ...

    def exists(self, key: str) -> bool:
        """Check if *key* has a stored value."""
        ...


class StateNotFoundError(Exception):
    """Raised when a state key cannot be found in storage."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"State key not found: {key}")


def _validate_key(key: str) -> str:
    if not _KEY_PATTERN.match(key):
        msg = f"Invalid state key: {key!r}"
        raise ValueError(msg)
    return key


class MemoryStateStore:
    """Process-local store. Values are kept JSON-encoded so callers never share references."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Any | None:
        raw = self._data.get(_validate_key(key))
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._data[_validate_key(key)] = json.dumps(value)

    def delete(self, key: str) -> None:
        if key not in self._data:
            raise StateNotFoundError(key)
        del self._data[key]

    def exists(self, key: str) -> bool:
        return key in self._data


class LocalStateStore:
    """Filesystem-backed store: one ``{key}.json`` file per key under *base_dir*.

    Writes go to a temporary file in the same directory and are moved into
    place with :func:`os.replace`, so a reader never sees a half-written file.

    Args:
        base_dir: Root directory for state files
    """

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir).resolve()

    def _key_to_path(self, key: str) -> Path:
        """Convert *key* to its file path.

        Raises:
            ValueError: If the key is malformed or escapes base_dir
        """
        resolved_path = (self.base_dir / f"{_validate_key(key)}.json").resolve()
        try:
            resolved_path.relative_to(self.base_dir)
        except ValueError as e:
            msg = f"Path traversal attempt detected: {key}"
            raise ValueError(msg) from e
        return resolved_path

    def get(self, key: str) -> Any | None:
        file_path = self._key_to_path(key)
        if not file_path.exists():
            return None
        return json.loads(file_path.read_text(encoding="utf-8"))

    def set(self, key: str, value: Any) -> None:
        file_path = self._key_to_path(key)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(value, indent=2)

        fd, tmp_name = tempfile.mkstemp(dir=file_path.parent, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, file_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        file_path = self._key_to_path(key)
        if not file_path.exists():
            raise StateNotFoundError(key)
        file_path.unlink()

    def exists(self, key: str) -> bool:
        try:
            return self._key_to_path(key).exists()
        except ValueError:
            return False
