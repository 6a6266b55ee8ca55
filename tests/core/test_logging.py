"""Tests for structured logging module."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
import structlog

from datebook.core.logging import (
    add_calendar_context,
    configure_logging,
    get_calendar_context,
    set_calendar_context,
)

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# ContextVar accessors
# ---------------------------------------------------------------------------


class TestCalendarContext:
    def test_set_and_get(self):
        set_calendar_context("family")
        assert get_calendar_context() == "family"

    def test_default_is_none(self):
        assert get_calendar_context() is None


# ---------------------------------------------------------------------------
# add_calendar_context processor
# ---------------------------------------------------------------------------


class TestAddCalendarContext:
    def test_injects_calendar_name(self):
        set_calendar_context("work")
        result = add_calendar_context(None, "info", {"event": "test"})
        assert result["calendar"] == "work"

    def test_handles_unset_context(self):
        """ContextVar not set — calendar=None, no crash."""
        result = add_calendar_context(None, "info", {"event": "test"})
        assert result["calendar"] is None


# ---------------------------------------------------------------------------
# configure_logging()
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_text_format_installs_console_renderer(self):
        configure_logging(fmt="text")
        formatter = logging.getLogger().handlers[0].formatter
        assert isinstance(formatter, structlog.stdlib.ProcessorFormatter)
        assert isinstance(formatter.processors[-1], structlog.dev.ConsoleRenderer)

    def test_json_format_installs_json_renderer(self):
        configure_logging(fmt="json")
        formatter = logging.getLogger().handlers[0].formatter
        assert isinstance(formatter, structlog.stdlib.ProcessorFormatter)
        assert isinstance(formatter.processors[-1], structlog.processors.JSONRenderer)

    def test_sets_calendar_context(self):
        configure_logging(calendar_name="family")
        assert get_calendar_context() == "family"

    def test_log_level_applied(self):
        configure_logging(level="DEBUG")
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        configure_logging(level="chatty")
        assert logging.getLogger().level == logging.INFO

    def test_reconfigure_does_not_duplicate_handlers(self):
        configure_logging()
        configure_logging()
        assert len(logging.getLogger().handlers) == 1


# ---------------------------------------------------------------------------
# Log files
# ---------------------------------------------------------------------------


class TestLogFiles:
    def test_no_file_handler_without_log_root(self):
        configure_logging()
        root = logging.getLogger()
        assert not [h for h in root.handlers if isinstance(h, logging.FileHandler)]

    def test_calendar_log_file_created(self, tmp_path: Path):
        """Calendar log lands in datebook/ subdir."""
        configure_logging(log_root=tmp_path, calendar_name="family")
        root = logging.getLogger()
        file_handlers = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1
        assert str(file_handlers[0].baseFilename).endswith("datebook/family.log")

    def test_unnamed_calendar_uses_default_file(self, tmp_path: Path):
        configure_logging(log_root=tmp_path)
        assert (tmp_path / "datebook").is_dir()
        root = logging.getLogger()
        file_handlers = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
        assert str(file_handlers[0].baseFilename).endswith("datebook/datebook.log")

    def test_file_handler_always_json(self, tmp_path: Path):
        """File handler uses JSON renderer regardless of console format."""
        configure_logging(fmt="text", log_root=tmp_path, calendar_name="family")
        root = logging.getLogger()
        file_handlers = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
        formatter = file_handlers[0].formatter
        assert isinstance(formatter.processors[-1], structlog.processors.JSONRenderer)

    def test_nested_log_root_created(self, tmp_path: Path):
        log_dir = tmp_path / "deep" / "nested"
        configure_logging(log_root=log_dir, calendar_name="family")
        assert (log_dir / "datebook").is_dir()

    def test_json_output_is_valid_json(self, tmp_path: Path):
        """Calendar log file writes parseable JSON carrying the calendar name."""
        configure_logging(fmt="json", log_root=tmp_path, calendar_name="jsontest")
        logging.getLogger("datebook.test").info("hello structured world")

        log_file = tmp_path / "datebook" / "jsontest.log"
        data = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert data["event"] == "hello structured world"
        assert data["calendar"] == "jsontest"
        assert data["level"] == "info"
