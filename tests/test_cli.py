"""Tests for the CLI commands."""

import json

import pytest
from click.testing import CliRunner

from datebook.cli import cli

pytestmark = pytest.mark.unit


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_dir(tmp_path):
    """Create a calendar config directory with on-disk storage."""
    (tmp_path / "datebook.toml").write_text(
        '[datebook]\nname = "test"\n\n'
        '[datebook.storage]\npath = "state"\n\n'
        '[datebook.logging]\nlevel = "WARNING"\n'
    )
    return tmp_path


@pytest.fixture
def invoke(runner, config_dir):
    def _invoke(*args: str):
        return runner.invoke(cli, ["--config", str(config_dir), *args])

    return _invoke


def _created_id(result) -> str:
    assert result.exit_code == 0, result.output
    line = [ln for ln in result.output.splitlines() if ln.startswith("Created ")][-1]
    return line.split()[-1]


def _add(invoke, *extra: str) -> str:
    return _created_id(invoke("add", *extra))


class TestVersion:
    def test_version_flag(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestConfig:
    def test_invalid_config_is_reported(self, runner, tmp_path):
        (tmp_path / "datebook.toml").write_text("[datebook\n")
        result = runner.invoke(cli, ["--config", str(tmp_path), "categories"])
        assert result.exit_code == 1
        assert "Invalid TOML" in result.output

    def test_categories(self, invoke):
        result = invoke("categories")
        assert result.exit_code == 0
        assert "work" in result.output
        assert "#3B82F6" in result.output


class TestAddAndList:
    def test_add_persists_between_invocations(self, invoke, config_dir):
        event_id = _add(
            invoke,
            "--title", "Dentist",
            "--date", "2024-02-01",
            "--time", "10:00",
            "--end-time", "11:00",
            "--category", "appointment",
        )
        assert (config_dir / "state" / "calendar-events.json").exists()

        result = invoke("events", "--date", "2024-02-01")
        assert result.exit_code == 0
        assert "Dentist" in result.output
        assert "10:00-11:00" in result.output
        assert "[appointment]" in result.output
        assert event_id in result.output

    def test_json_output(self, invoke):
        _add(invoke, "--title", "Dentist", "--date", "2024-02-01", "--time", "10:00")
        result = invoke("events", "--date", "2024-02-01", "--json")
        assert result.exit_code == 0
        records = json.loads(result.output)
        assert records[0]["title"] == "Dentist"
        assert records[0]["time"] == "10:00"
        assert records[0]["color"] == "#6B7280"

    def test_conflicting_add_fails(self, invoke):
        _add(invoke, "--title", "Dentist", "--date", "2024-02-01", "--time", "10:00")
        result = invoke("add", "--title", "Call", "--date", "2024-02-01", "--time", "10:30")
        assert result.exit_code == 1
        assert "Conflict detected with:" in result.output
        assert "Dentist" in result.output

    def test_unknown_category_fails(self, invoke):
        result = invoke("add", "--title", "X", "--date", "2024-02-01", "--category", "nope")
        assert result.exit_code == 1
        assert "Error: Category not found: nope" in result.output

    def test_invalid_time_fails(self, invoke):
        result = invoke("add", "--title", "X", "--date", "2024-02-01", "--time", "9am")
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_recurring_add_lists_instances(self, invoke):
        master_id = _add(
            invoke,
            "--title", "Gym",
            "--date", "2024-01-01",
            "--time", "07:00",
            "--repeat", "weekly",
            "--days", "1,3",
        )
        result = invoke("events", "--from", "2024-01-01", "--to", "2024-01-10")
        assert result.exit_code == 0
        for day in ("2024-01-01", "2024-01-03", "2024-01-08", "2024-01-10"):
            assert f"{master_id}#{day}" in result.output

    def test_search_and_category_filters(self, invoke):
        _add(invoke, "--title", "Dentist", "--date", "2024-02-01", "--time", "08:00")
        _add(invoke, "--title", "Lunch", "--date", "2024-02-01", "--time", "12:00",
             "--category", "social")
        result = invoke("events", "--date", "2024-02-01", "--search", "dent")
        assert "Dentist" in result.output and "Lunch" not in result.output
        result = invoke("events", "--date", "2024-02-01", "--category", "social")
        assert "Lunch" in result.output and "Dentist" not in result.output

    def test_empty_day(self, invoke):
        result = invoke("events", "--date", "2024-02-01")
        assert result.exit_code == 0
        assert "No events." in result.output

    def test_range_requires_both_ends(self, invoke):
        result = invoke("events", "--from", "2024-02-01")
        assert result.exit_code == 2
        assert "--from and --to" in result.output

    def test_bad_date_is_usage_error(self, invoke):
        result = invoke("events", "--date", "01/02/2024")
        assert result.exit_code == 2
        assert "Invalid date" in result.output

    def test_month(self, invoke):
        _add(invoke, "--title", "Leading", "--date", "2024-01-28")
        _add(invoke, "--title", "Outside", "--date", "2024-03-03")
        result = invoke("month", "2024", "2")
        assert result.exit_code == 0
        assert "Leading" in result.output
        assert "all day" in result.output
        assert "Outside" not in result.output


class TestMutations:
    def test_update(self, invoke):
        event_id = _add(invoke, "--title", "Dentist", "--date", "2024-02-01", "--time", "10:00")
        result = invoke("update", event_id, "--title", "Orthodontist")
        assert result.exit_code == 0
        assert f"Updated {event_id}" in result.output
        assert "Orthodontist" in invoke("events", "--date", "2024-02-01").output

    def test_update_requires_changes(self, invoke):
        event_id = _add(invoke, "--title", "Dentist", "--date", "2024-02-01")
        result = invoke("update", event_id)
        assert result.exit_code == 2
        assert "Nothing to update" in result.output

    def test_update_single_occurrence(self, invoke):
        master_id = _add(
            invoke, "--title", "Gym", "--date", "2024-01-01", "--time", "07:00", "--repeat", "daily"
        )
        result = invoke("update", f"{master_id}#2024-01-03", "--time", "18:00", "--scope", "single")
        assert result.exit_code == 0
        listing = invoke("events", "--date", "2024-01-03").output
        assert "18:00" in listing
        assert f"{master_id}#2024-01-03" not in listing

    def test_delete(self, invoke):
        event_id = _add(invoke, "--title", "Dentist", "--date", "2024-02-01")
        result = invoke("delete", event_id)
        assert result.exit_code == 0
        assert f"Deleted {event_id}" in result.output
        assert "No events." in invoke("events", "--date", "2024-02-01").output

    def test_delete_missing(self, invoke):
        result = invoke("delete", "ghost")
        assert result.exit_code == 1
        assert "Error: Event not found: ghost" in result.output

    def test_delete_single_occurrence(self, invoke):
        master_id = _add(invoke, "--title", "Gym", "--date", "2024-01-01", "--repeat", "daily")
        result = invoke("delete", f"{master_id}#2024-01-02", "--scope", "single")
        assert result.exit_code == 0
        listing = invoke("events", "--from", "2024-01-01", "--to", "2024-01-03").output
        assert f"{master_id}#2024-01-01" in listing
        assert f"{master_id}#2024-01-02" not in listing
        assert f"{master_id}#2024-01-03" in listing

    def test_move(self, invoke):
        event_id = _add(invoke, "--title", "Dentist", "--date", "2024-02-01", "--time", "10:00")
        result = invoke("move", event_id, "2024-02-05")
        assert result.exit_code == 0
        assert f"Moved {event_id} to 2024-02-05" in result.output

    def test_move_into_conflict(self, invoke):
        _add(invoke, "--title", "Dentist", "--date", "2024-02-01", "--time", "10:00")
        other = _add(invoke, "--title", "Call", "--date", "2024-02-02", "--time", "10:00")
        result = invoke("move", other, "2024-02-01")
        assert result.exit_code == 1
        assert "Conflict detected with:" in result.output

    def test_duplicate(self, invoke):
        event_id = _add(invoke, "--title", "Dentist", "--date", "2024-02-01", "--time", "10:00")
        copy_id = _created_id(invoke("duplicate", event_id, "--date", "2024-02-08"))
        listing = invoke("events", "--date", "2024-02-08").output
        assert "Dentist (Copy)" in listing
        assert copy_id in listing


class TestCheck:
    def test_free_slot(self, invoke):
        result = invoke("check", "--date", "2024-02-01", "--time", "10:00")
        assert result.exit_code == 0
        assert "No conflicts." in result.output

    def test_busy_slot(self, invoke):
        _add(invoke, "--title", "Dentist", "--date", "2024-02-01", "--time", "10:00")
        result = invoke("check", "--date", "2024-02-01", "--time", "10:30")
        assert result.exit_code == 1
        assert "Dentist" in result.output
