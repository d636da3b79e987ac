"""Tests for the click command line."""

import pytest
from click.testing import CliRunner

from coach_sync.cli import main
from coach_sync.config import settings


@pytest.fixture
def runner(temp_db_path, monkeypatch):
    monkeypatch.setattr(settings, "db_path", str(temp_db_path))
    return CliRunner()


class TestCli:
    """End-to-end command runs against a temporary database."""

    def test_requires_init(self, runner):
        result = runner.invoke(main, ["athletes", "list"])
        assert result.exit_code == 1
        assert "coach-sync init" in result.output

    def test_plan_and_summary(self, runner):
        assert runner.invoke(main, ["init"]).exit_code == 0

        added = runner.invoke(main, ["athletes", "add", "Sam", "--timezone", "Australia/Brisbane"])
        assert added.exit_code == 0
        assert "ID: 1" in added.output

        planned = runner.invoke(
            main,
            ["plan", "add", "1", "2026-02-05", "-d", "run", "--start", "06:00", "--minutes", "40", "--title", "Easy"],
        )
        assert planned.exit_code == 0

        completed = runner.invoke(main, ["plan", "complete", "1", "--minutes", "42"])
        assert completed.exit_code == 0

        shown = runner.invoke(main, ["plan", "show", "1", "--from", "2026-02-02", "--to", "2026-02-08"])
        assert "COMPLETED_MANUAL" in shown.output
        assert "Easy" in shown.output

        summary = runner.invoke(main, ["plan", "summary", "1", "--from", "2026-02-02", "--to", "2026-02-08"])
        assert summary.exit_code == 0
        assert "Workouts: 1/1 completed" in summary.output

    def test_rejects_unknown_timezone(self, runner):
        runner.invoke(main, ["init"])
        result = runner.invoke(main, ["athletes", "add", "Sam", "--timezone", "Mars/Olympus"])
        assert result.exit_code == 1
        assert "Unknown timezone" in result.output

    def test_completing_twice_is_an_error(self, runner):
        runner.invoke(main, ["init"])
        runner.invoke(main, ["athletes", "add", "Sam"])
        runner.invoke(main, ["plan", "add", "1", "2026-02-05", "--minutes", "30"])
        assert runner.invoke(main, ["plan", "complete", "1"]).exit_code == 0

        again = runner.invoke(main, ["plan", "complete", "1"])
        assert again.exit_code == 1
        assert "already" in again.output
