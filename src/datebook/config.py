"""Calendar configuration loading and validation.

Reads datebook.toml from a config directory, parses all sections, and returns
a validated DatebookConfig dataclass.
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from datebook.coordinator import DEFAULT_CONFLICT_HORIZON_DAYS
from datebook.models import DEFAULT_CATEGORIES, Category
from datebook.recurrence import WeeklyIntervalPolicy

CONFIG_FILENAME = "datebook.toml"
DEFAULT_CALENDAR_NAME = "datebook"
DEFAULT_DURATION_MINUTES = 60

# Pattern matching ${VAR_NAME} — supports alphanumeric + underscore variable names.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class ConfigError(Exception):
    """Raised when calendar configuration is missing, malformed, or invalid."""


@dataclass
class LoggingConfig:
    """Logging configuration from [datebook.logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_root: str | None = None


@dataclass
class StorageConfig:
    """Persistence configuration from [datebook.storage] section.

    ``path`` is the directory holding the JSON state files; when unset the
    calendar lives in memory only.
    """

    path: Path | None = None


@dataclass
class ConflictConfig:
    """Conflict detection settings from [datebook.conflicts] section."""

    default_duration_minutes: int = DEFAULT_DURATION_MINUTES
    horizon_days: int = DEFAULT_CONFLICT_HORIZON_DAYS
    check_on_move: bool = True

    @property
    def default_duration(self) -> timedelta:
        return timedelta(minutes=self.default_duration_minutes)


@dataclass
class RecurrenceConfig:
    """Recurrence settings from [datebook.recurrence] section."""

    weekly_interval: WeeklyIntervalPolicy = WeeklyIntervalPolicy.ignore


@dataclass
class DatebookConfig:
    """Fully parsed datebook.toml."""

    name: str = DEFAULT_CALENDAR_NAME
    storage: StorageConfig = field(default_factory=StorageConfig)
    conflicts: ConflictConfig = field(default_factory=ConflictConfig)
    recurrence: RecurrenceConfig = field(default_factory=RecurrenceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    categories: list[Category] = field(default_factory=lambda: list(DEFAULT_CATEGORIES))


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings.  Non-string leaf values (int, bool,
    float, None) are returned unchanged.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    """Replace all ``${VAR_NAME}`` occurrences in *s* with env var values.

    Collects all missing variable names and reports them in a single error.
    """
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {vars_str} (original: {s!r})"
        )

    return result


def _positive_int(section: dict, key: str, default: int, prefix: str) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"{prefix}.{key} must be a positive integer, got {value!r}")
    return value


def _parse_storage(section: dict, config_dir: Path) -> StorageConfig:
    raw_path = section.get("path")
    if raw_path is None:
        return StorageConfig()
    if not isinstance(raw_path, str) or not raw_path.strip():
        raise ConfigError("datebook.storage.path must be a non-empty string when set")
    path = Path(raw_path.strip()).expanduser()
    if not path.is_absolute():
        path = config_dir / path
    return StorageConfig(path=path)


def _parse_conflicts(section: dict) -> ConflictConfig:
    check_on_move = section.get("check_on_move", True)
    if not isinstance(check_on_move, bool):
        raise ConfigError("datebook.conflicts.check_on_move must be a boolean")
    return ConflictConfig(
        default_duration_minutes=_positive_int(
            section, "default_duration_minutes", DEFAULT_DURATION_MINUTES, "datebook.conflicts"
        ),
        horizon_days=_positive_int(
            section, "horizon_days", DEFAULT_CONFLICT_HORIZON_DAYS, "datebook.conflicts"
        ),
        check_on_move=check_on_move,
    )


def _parse_recurrence(section: dict) -> RecurrenceConfig:
    raw = str(section.get("weekly_interval", WeeklyIntervalPolicy.ignore.value)).strip().lower()
    try:
        policy = WeeklyIntervalPolicy(raw)
    except ValueError:
        choices = ", ".join(repr(p.value) for p in WeeklyIntervalPolicy)
        raise ConfigError(
            f"Invalid datebook.recurrence.weekly_interval: {raw!r}. Expected one of {choices}."
        ) from None
    return RecurrenceConfig(weekly_interval=policy)


def _parse_logging(section: dict) -> LoggingConfig:
    log_level = str(section.get("level", "INFO")).upper()
    log_format = str(section.get("format", "text")).lower()
    if log_format not in ("text", "json"):
        raise ConfigError(
            f"Invalid datebook.logging.format: {log_format!r}. Expected 'text' or 'json'."
        )
    return LoggingConfig(level=log_level, format=log_format, log_root=section.get("log_root"))


def _parse_categories(raw: Any) -> list[Category]:
    if raw is None:
        return list(DEFAULT_CATEGORIES)
    if not isinstance(raw, list) or not raw:
        raise ConfigError("[[datebook.categories]] must be a non-empty array of tables")
    categories: list[Category] = []
    seen: set[str] = set()
    for index, entry in enumerate(raw):
        try:
            category = Category.model_validate(entry)
        except ValidationError as exc:
            raise ConfigError(f"Invalid category at index {index}: {exc}") from exc
        if category.id in seen:
            raise ConfigError(f"Duplicate category id: {category.id!r}")
        seen.add(category.id)
        categories.append(category)
    return categories


def load_config(config_dir: Path) -> DatebookConfig:
    """Load and validate a datebook.toml from *config_dir*.

    A missing file yields the defaults (in-memory storage, default categories).

    Raises
    ------
    ConfigError
        If the file contains invalid TOML or invalid values.
    """
    config_dir = Path(config_dir)
    toml_path = config_dir / CONFIG_FILENAME

    if not toml_path.exists():
        return DatebookConfig()

    try:
        data = tomllib.loads(toml_path.read_bytes().decode())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {toml_path}: {exc}") from exc

    data = resolve_env_vars(data)

    section = data.get("datebook", {})
    if not isinstance(section, dict):
        raise ConfigError("[datebook] must be a table")

    name = str(section.get("name", DEFAULT_CALENDAR_NAME)).strip()
    if not name:
        raise ConfigError("datebook.name must be a non-empty string")

    return DatebookConfig(
        name=name,
        storage=_parse_storage(section.get("storage", {}), config_dir),
        conflicts=_parse_conflicts(section.get("conflicts", {})),
        recurrence=_parse_recurrence(section.get("recurrence", {})),
        logging=_parse_logging(section.get("logging", {})),
        categories=_parse_categories(section.get("categories")),
    )
