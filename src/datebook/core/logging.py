"""Logging setup for the datebook CLI and library.

Modules log through ``logging.getLogger(__name__)``; :func:`configure_logging`
routes those records through structlog so each line carries a timestamp, the
logger name and the active calendar. Console output is either a readable
``text`` rendering or one JSON object per line. With a ``log_root`` the same
records are also appended as JSON to ``{log_root}/datebook/{calendar}.log``.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path

import structlog

_calendar_context: ContextVar[str | None] = ContextVar("calendar_name", default=None)

_LOG_SUBDIR = "datebook"
_DEFAULT_LOG_NAME = "datebook"


def set_calendar_context(name: str) -> None:
    _calendar_context.set(name)


def get_calendar_context() -> str | None:
    return _calendar_context.get()


def add_calendar_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Tag every record with the calendar it was written for."""
    event_dict["calendar"] = _calendar_context.get()
    return event_dict


def _pre_chain(time_fmt: str) -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt=time_fmt),
        add_calendar_context,
        structlog.stdlib.ExtraAdder(),
    ]


def _formatter(
    renderer: structlog.types.Processor, pre_chain: list[structlog.types.Processor]
) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=pre_chain,
    )


def _calendar_file_handler(log_root: Path, calendar_name: str | None) -> logging.FileHandler:
    log_dir = Path(log_root) / _LOG_SUBDIR
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_dir / f"{calendar_name or _DEFAULT_LOG_NAME}.log")
    handler.setFormatter(
        _formatter(structlog.processors.JSONRenderer(), _pre_chain(time_fmt="iso"))
    )
    handler.setLevel(logging.DEBUG)
    return handler


def configure_logging(
    level: str = "INFO",
    fmt: str = "text",
    log_root: Path | None = None,
    calendar_name: str | None = None,
) -> None:
    """Install datebook's handlers on the root logger.

    Safe to call more than once: earlier handlers are replaced, not stacked.
    An unknown *level* name falls back to INFO. *fmt* selects the console
    rendering (``"text"`` or ``"json"``); the optional log file is always JSON.
    """
    if calendar_name:
        set_calendar_context(calendar_name)

    if fmt == "json":
        pre_chain = _pre_chain(time_fmt="iso")
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        pre_chain = _pre_chain(time_fmt="%H:%M:%S")
        renderer = structlog.dev.ConsoleRenderer()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_formatter(renderer, pre_chain))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if log_root is not None:
        root.addHandler(_calendar_file_handler(log_root, calendar_name))

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
