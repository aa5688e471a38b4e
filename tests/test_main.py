"""
Tests for the cadence command line.
"""

import pytest

from cadence.config import CadenceConfig
from cadence.main import parse_args, run


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    return CadenceConfig(database={"driver": "sqlite", "path": str(tmp_path / "cli.db")})


class TestParseArgs:
    """Tests for argument parsing."""

    def test_capture(self):
        args = parse_args(["capture", "call", "dentist", "today", "--focus", "--user", "ana"])
        assert args.command == "capture"
        assert args.text == ["call", "dentist", "today"]
        assert args.focus is True
        assert args.user == "ana"

    def test_defaults(self):
        args = parse_args(["focus"])
        assert args.user == "local"
        assert args.debug is False
        assert args.choose is False

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_args([])


class TestRun:
    """Tests for running commands against a temporary database."""

    def test_capture_then_focus(self, config, capsys):
        assert run(parse_args(["capture", "Call dentist today"]), config) == 0
        out = capsys.readouterr().out
        assert "today:" in out
        assert "[MUST tiny] Call dentist today" in out

        assert run(parse_args(["focus", "--choose"]), config) == 0
        out = capsys.readouterr().out
        assert "Call dentist today" in out
        assert "Focus set: Call dentist today" in out

    def test_complete_unknown_task(self, config, capsys):
        assert run(parse_args(["complete", "nope"]), config) == 1
        assert "No task with id nope" in capsys.readouterr().err

    def test_clusters_empty(self, config, capsys):
        assert run(parse_args(["clusters"]), config) == 0
        assert "No clusters today." in capsys.readouterr().out

    def test_domino_unknown_task(self, config, capsys):
        assert run(parse_args(["domino", "nope"]), config) == 0
        assert "Error analyzing dependencies" in capsys.readouterr().out
