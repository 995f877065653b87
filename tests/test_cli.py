"""Tests for the command-line interface."""

import pytest
from click.testing import CliRunner

from adaptive_training import cli as cli_module
from adaptive_training.cli import cli, format_duration


@pytest.fixture
def runner(engine, monkeypatch):
    monkeypatch.setattr(cli_module, "get_engine", lambda: engine)
    return CliRunner()


class TestCommands:
    """Test commands against an in-memory engine."""

    def test_add_user_and_onboard(self, runner, store):
        result = runner.invoke(cli, ["add-user", "cli-user", "--name", "Cli User"])
        assert result.exit_code == 0
        assert "User cli-user created" in result.output

        result = runner.invoke(cli, [
            "onboard", "cli-user", "--css", "103", "--ftp", "250", "--threshold-pace", "483",
            "--max-hr", "190", "--resting-hr", "50", "--tier", "2", "--weeks", "4",
        ])
        assert result.exit_code == 0, result.output
        assert "Onboarding complete" in result.output
        with store.read() as repo:
            assert repo.get_active_plan("cli-user").total_weeks == 4

    def test_show_plan(self, runner, manual_plan):
        result = runner.invoke(cli, ["show-plan", "athlete"])
        assert result.exit_code == 0, result.output
        assert "Week 1/12" in result.output
        assert "BASE" in result.output

    def test_complete_with_feedback(self, runner, manual_plan, store):
        with store.read() as repo:
            workout = repo.workouts_for_plan(manual_plan.id)[0]
        result = runner.invoke(cli, ["complete", workout.id, "--duration", "1800", "--rating", "harder"])
        assert result.exit_code == 0, result.output
        assert "Workout completed" in result.output
        assert "Fatigue strike" in result.output

    def test_unknown_workout_fails(self, runner, manual_plan):
        result = runner.invoke(cli, ["complete", "nope", "--duration", "1800"])
        assert result.exit_code == 1
        assert "Unknown workout" in result.output

    def test_calibrate(self, runner, calibration_plan):
        result = runner.invoke(cli, ["calibrate", "rookie", "swim_400m", "400"])
        assert result.exit_code == 0, result.output
        assert "CSS = 1:43/100m" in result.output

    def test_fatigue(self, runner, manual_plan):
        result = runner.invoke(cli, ["fatigue", "athlete"])
        assert result.exit_code == 0, result.output
        assert "Strikes" in result.output

    def test_sweep(self, runner, manual_plan):
        result = runner.invoke(cli, ["sweep", "--as-of", "2025-03-12"])
        assert result.exit_code == 0, result.output
        assert "Daily sweep 2025-03-12" in result.output

    def test_bad_date(self, runner):
        result = runner.invoke(cli, ["sweep", "--as-of", "12/03/2025"])
        assert result.exit_code == 2


class TestFormatting:
    def test_format_duration(self):
        assert format_duration(2700) == "45min"
        assert format_duration(8400) == "2h20"
