"""
Tests for the Valya CLI.

============================================================
PURPOSE
============================================================
1. Argument validation
2. Event stream for mount / update sequences
3. Exit codes

============================================================
"""

import json
import pytest
from unittest.mock import patch

from valya.cli import EXIT_INVALID, EXIT_USAGE, EXIT_VALID, create_parser, main


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def pipeline(tmp_path):
    """A pipeline file with a single required check."""
    path = tmp_path / "pipeline.yaml"
    path.write_text(
        "validators:\n"
        "  - check: required\n"
        "    message: Field is required\n"
    )
    return str(path)


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep the CLI from reconfiguring the root logger during tests."""
    with patch("valya.cli.setup_logging") as mock_setup:
        yield mock_setup


def read_events(capsys):
    out = capsys.readouterr().out
    return [json.loads(line) for line in out.splitlines() if line.strip()]


# ============================================================
# PARSER TESTS
# ============================================================

class TestParser:
    """Tests for argument parsing."""

    def test_pipeline_required(self):
        """Test that --pipeline is mandatory."""
        with pytest.raises(SystemExit):
            create_parser().parse_args(["hello"])

    def test_negative_interval(self, pipeline, capsys):
        """Test that a negative interval is a usage error."""
        code = main(["--pipeline", pipeline, "--interval", "-1", "hello"])

        assert code == EXIT_USAGE
        assert "--interval" in capsys.readouterr().err


# ============================================================
# RUN TESTS
# ============================================================

class TestMain:
    """Tests for main()."""

    def test_initial_validation_valid(self, pipeline, capsys, quiet_logging):
        """Test a single value validated on mount."""
        code = main(["--pipeline", pipeline, "--initial", "hello"])

        events = read_events(capsys)
        assert code == EXIT_VALID
        assert [e["event"] for e in events] == ["start", "end", "final"]
        assert events[0]["value"] == "hello"
        assert events[1]["is_valid"] is True
        quiet_logging.assert_called_once_with("WARNING", "text")

    def test_mount_without_initial_does_nothing(self, pipeline, capsys):
        """Test that without --initial the first value is not validated."""
        code = main(["--pipeline", pipeline, ""])

        events = read_events(capsys)
        assert code == EXIT_VALID
        assert [e["event"] for e in events] == ["final"]

    def test_sequential_updates(self, pipeline, capsys):
        """Test that each update settles before the next by default."""
        code = main(["--pipeline", pipeline, "a", "", "b"])

        events = read_events(capsys)
        assert code == EXIT_VALID
        assert [e["event"] for e in events] == ["start", "end", "start", "end", "final"]
        assert events[1]["validation_message"] == "Field is required"
        assert events[3]["is_valid"] is True

    def test_superseding_updates(self, pipeline, capsys):
        """Test that rapid updates report only the newest run."""
        code = main(["--pipeline", pipeline, "--initial", "--interval", "0", "hello", ""])

        events = read_events(capsys)
        assert code == EXIT_INVALID
        assert [e["event"] for e in events] == ["start", "start", "end", "final"]
        assert events[2]["generation"] == 2
        assert events[2]["validation_message"] == "Field is required"

    def test_bad_pipeline(self, tmp_path, capsys):
        """Test that pipeline errors become a usage exit code."""
        path = tmp_path / "pipeline.yaml"
        path.write_text("validators:\n  - check: nope\n")

        code = main(["--pipeline", str(path), "x"])

        assert code == EXIT_USAGE
        assert "Unknown check" in capsys.readouterr().err

    def test_settings_file(self, pipeline, tmp_path, capsys):
        """Test that --settings is honoured."""
        settings = tmp_path / "settings.yaml"
        settings.write_text("history_size: 0\n")

        code = main(["--pipeline", pipeline, "--settings", str(settings), "--initial", "x"])

        assert code == EXIT_VALID

    def test_bad_settings_file(self, pipeline, tmp_path, capsys):
        """Test that malformed settings become a usage exit code."""
        settings = tmp_path / "settings.yaml"
        settings.write_text("history_size: lots\n")

        code = main(["--pipeline", pipeline, "--settings", str(settings), "x"])

        assert code == EXIT_USAGE
        assert "Invalid numeric setting" in capsys.readouterr().err
