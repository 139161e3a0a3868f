"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json
from datetime import datetime, timedelta

import pytest
from typer.testing import CliRunner

from learning_analytics.adaptive.analytics_data import LearningAnalyticsData
from learning_analytics.cli.main import app
from learning_analytics.core.sessions import LearningSession
from learning_analytics.study.retention_engine import RetentionRecord
from learning_analytics.study.streak_engine import StreakRecord

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

NOW = datetime(2024, 3, 13, 15, 30)

runner = CliRunner()


def write_document(tmp_path, data: LearningAnalyticsData):
    path = tmp_path / "analytics.json"
    path.write_text(json.dumps(data.to_dict()), encoding="utf-8")
    return path


def session(correct: int, wrong: int) -> LearningSession:
    return LearningSession(
        id="s",
        start_time=NOW - timedelta(minutes=15),
        end_time=NOW,
        questions_attempted=correct + wrong,
        correct_answers=correct,
        wrong_answers=wrong,
        skipped_questions=0,
    )


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        """Main help should list every command."""
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0, result.output
        for command in ("mastery", "retention", "curve", "schedule", "streak", "recommend"):
            assert command in result.output

    def test_verbose_flag(self):
        result = runner.invoke(app, ["--verbose", "curve", "--days", "1"])
        assert result.exit_code == 0, result.output


class TestMasteryCommand:
    """Test the mastery command."""

    def test_correct_attempt(self):
        result = runner.invoke(app, ["mastery", "0.6", "--correct", "--attempts", "5"])

        assert result.exit_code == 0, result.output
        assert "0.7200" in result.output
        assert "Advanced" in result.output

    def test_incorrect_attempt(self):
        result = runner.invoke(app, ["mastery", "0.6", "--incorrect", "--attempts", "5"])

        assert result.exit_code == 0, result.output
        assert "0.4200" in result.output
        assert "Intermediate" in result.output

    def test_timed_attempt(self):
        result = runner.invoke(
            app,
            ["mastery", "0.5", "--attempts", "4", "--time-taken", "90", "--expected-time", "60"],
        )

        assert result.exit_code == 0, result.output
        assert "0.6050" in result.output

    def test_timing_options_required_together(self):
        result = runner.invoke(app, ["mastery", "0.5", "--time-taken", "90"])

        assert result.exit_code == 1
        assert "must be given together" in result.output


class TestCurveAndSchedule:
    """Test curve and schedule commands."""

    def test_curve(self):
        result = runner.invoke(app, ["curve", "--stability", "1", "--days", "3"])

        assert result.exit_code == 0, result.output
        assert "100.0%" in result.output
        assert "36.8%" in result.output

    def test_curve_rejects_zero_stability(self):
        result = runner.invoke(app, ["curve", "--stability", "0"])

        assert result.exit_code == 1
        assert "Stability must be positive" in result.output

    def test_schedule(self):
        result = runner.invoke(
            app,
            ["schedule", "--stability", "1", "--reviews", "3", "--start", "2024-03-01T08:00:00"],
        )

        assert result.exit_code == 0, result.output
        assert "2024-03-01 11:00" in result.output
        assert "1.88d" in result.output

    def test_schedule_invalid_target(self):
        result = runner.invoke(app, ["schedule", "--target", "1.5"])

        assert result.exit_code == 1
        assert "Threshold" in result.output

    def test_schedule_invalid_start(self):
        result = runner.invoke(app, ["schedule", "--start", "yesterday"])

        assert result.exit_code == 1
        assert "Invalid timestamp" in result.output


class TestFileCommands:
    """Test commands that read a learning analytics document."""

    def test_retention(self, tmp_path):
        path = write_document(
            tmp_path,
            LearningAnalyticsData(
                retention_items=(
                    RetentionRecord("osi-layers", NOW - timedelta(days=2), stability=1.0),
                    RetentionRecord("vlan-tags", NOW - timedelta(hours=2), stability=8.0),
                )
            ),
        )
        result = runner.invoke(app, ["retention", str(path), "--now", NOW.isoformat()])

        assert result.exit_code == 0, result.output
        assert "Retention Summary" in result.output
        assert "osi-layers" in result.output
        assert "13.5%" in result.output

    def test_retention_without_items(self, tmp_path):
        path = write_document(tmp_path, LearningAnalyticsData())
        result = runner.invoke(app, ["retention", str(path)])

        assert result.exit_code == 0, result.output
        assert "No retention items found" in result.output

    def test_streak(self, tmp_path):
        path = write_document(
            tmp_path,
            LearningAnalyticsData(
                streak=StreakRecord(
                    current_streak=4,
                    longest_streak=9,
                    last_activity_date=datetime(2024, 3, 12, 18, 0),
                )
            ),
        )
        result = runner.invoke(app, ["streak", str(path), "--now", NOW.isoformat()])

        assert result.exit_code == 0, result.output
        assert "Current streak" in result.output
        assert "8h 30m" in result.output

    def test_streak_from_activity_map(self, tmp_path):
        path = write_document(
            tmp_path,
            LearningAnalyticsData(
                activity_map={(NOW - timedelta(days=d)).date(): 2 for d in range(3)}
            ),
        )
        result = runner.invoke(app, ["streak", str(path), "--now", NOW.isoformat()])

        assert result.exit_code == 0, result.output
        assert "3 days" in result.output

    def test_recommend(self, tmp_path):
        path = write_document(
            tmp_path, LearningAnalyticsData(sessions=(session(3, 7),) * 3)
        )
        result = runner.invoke(app, ["recommend", str(path), "--now", NOW.isoformat()])

        assert result.exit_code == 0, result.output
        assert "accuracy" in result.output
        assert "high" in result.output

    def test_recommend_not_enough_data(self, tmp_path):
        path = write_document(tmp_path, LearningAnalyticsData())
        result = runner.invoke(app, ["recommend", str(path)])

        assert result.exit_code == 0, result.output
        assert "encouragement" in result.output


class TestFileErrors:
    """Test that bad input files exit with code 1."""

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["recommend", str(tmp_path / "missing.json")])

        assert result.exit_code == 1
        assert "Cannot read" in result.output

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        result = runner.invoke(app, ["retention", str(path)])

        assert result.exit_code == 1
        assert "Invalid JSON" in result.output

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[]", encoding="utf-8")
        result = runner.invoke(app, ["streak", str(path)])

        assert result.exit_code == 1
        assert "Expected a JSON object" in result.output

    def test_missing_field(self, tmp_path):
        path = tmp_path / "partial.json"
        path.write_text(json.dumps({"retentionItems": [{"itemId": "x"}]}), encoding="utf-8")
        result = runner.invoke(app, ["retention", str(path)])

        assert result.exit_code == 1
        assert "Missing required field" in result.output
