"""Unit tests for smart_extract.cli - argument parsing, version, commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock, patch

from typer.testing import CliRunner

from smart_extract import __version__
from smart_extract.cli import app
from smart_extract.exceptions import LLMAuthError
from smart_extract.models import (
    BatchSummary,
    ExtractionResult,
    ResearchLink,
    TaskAnalysis,
    TaskOutcome,
)
from smart_extract.tasks import parse_task_line

if TYPE_CHECKING:
    from pathlib import Path

    import pytest

runner = CliRunner()

NOTE = """# Inbox
- Pick a logging library #python
- Buy milk
- Read [uv docs](https://docs.astral.sh/uv/) #python
"""


def _note(tmp_path: Path) -> Path:
    path = tmp_path / "inbox.md"
    path.write_text(NOTE, encoding="utf-8")
    return path


def _mock_analyzer(summary: BatchSummary | None = None, error: Exception | None = None) -> MagicMock:
    instance = MagicMock()
    instance.__aenter__ = AsyncMock(return_value=instance)
    instance.__aexit__ = AsyncMock(return_value=None)
    instance.analyze_batch = AsyncMock(return_value=summary, side_effect=error)
    return MagicMock(return_value=instance)


def _summary() -> BatchSummary:
    ok_task = parse_task_line("Pick a logging library #python", "", 2)
    failed_task = parse_task_line("Read the uv docs #python", "", 4)
    return BatchSummary(
        total_tasks=2,
        estimated_cost_usd=0.00014,
        outcomes=[
            TaskOutcome(
                task=ok_task,
                analysis=TaskAnalysis(
                    context="Choosing a logger",
                    description="structlog fits JSON services.",
                    next_steps=["Install structlog"],
                ),
                links=[
                    ResearchLink(
                        url="https://www.google.com/search?q=structlog",
                        title="Google Search: structlog",
                        kind="search",
                    )
                ],
            ),
            TaskOutcome(task=failed_task, error="Rate limit exceeded."),
        ],
    )


# ---- Version and help -------------------------------------------------------


class TestVersionAndHelp:
    """Version flag and help text output."""

    def test_version_flag(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_short_version_flag(self) -> None:
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_no_args_shows_help(self) -> None:
        result = runner.invoke(app, [])
        # Typer returns exit code 2 for no_args_is_help
        assert result.exit_code in (0, 2)
        assert "Usage" in result.output

    def test_help_lists_commands(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("parse", "fetch", "analyze", "check"):
            assert command in result.output

    def test_analyze_help(self) -> None:
        result = runner.invoke(app, ["analyze", "--help"])
        assert result.exit_code == 0
        assert "--config" in result.output
        assert "--limit" in result.output
        assert "--json" in result.output


# ---- parse -------------------------------------------------------------------


class TestParseCommand:
    """parse lists tasks without calling the LLM."""

    def test_hashtag_tasks_only(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["parse", str(_note(tmp_path))])
        assert result.exit_code == 0
        assert "Pick a logging library" in result.output
        assert "Buy milk" not in result.output

    def test_all_tasks(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["parse", str(_note(tmp_path)), "--all"])
        assert result.exit_code == 0
        assert "Buy milk" in result.output

    def test_no_tasks(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.md"
        path.write_text("Just prose.\n", encoding="utf-8")
        result = runner.invoke(app, ["parse", str(path)])
        assert result.exit_code == 0
        assert "No tasks found." in result.output

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["parse", str(tmp_path / "nope.md")])
        assert result.exit_code == 1
        assert "File not found" in result.output


# ---- analyze -----------------------------------------------------------------


class TestAnalyzeCommand:
    """analyze runs the batch and renders outcomes."""

    def test_renders_outcomes_and_errors(self, tmp_path: Path) -> None:
        analyzer_cls = _mock_analyzer(_summary())
        with patch("smart_extract.cli.TaskAnalyzer", analyzer_cls):
            result = runner.invoke(app, ["analyze", str(_note(tmp_path))])

        assert result.exit_code == 0
        assert "Choosing a logger" in result.output
        assert "Install structlog" in result.output
        assert "Rate limit exceeded." in result.output
        assert "1/2 tasks analyzed" in result.output

    def test_options_forwarded(self, tmp_path: Path) -> None:
        analyzer_cls = _mock_analyzer(_summary())
        with patch("smart_extract.cli.TaskAnalyzer", analyzer_cls):
            runner.invoke(app, ["analyze", str(_note(tmp_path)), "--all", "--limit", "1"])

        call = analyzer_cls.return_value.analyze_batch.await_args
        tasks = call.args[0]
        assert len(tasks) == 3
        assert call.kwargs == {"hashtags_only": False, "limit": 1}

    def test_json_output(self, tmp_path: Path) -> None:
        with patch("smart_extract.cli.TaskAnalyzer", _mock_analyzer(_summary())):
            result = runner.invoke(app, ["analyze", str(_note(tmp_path)), "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["total_tasks"] == 2
        assert data["outcomes"][1]["error"] == "Rate limit exceeded."

    def test_nothing_to_analyze(self, tmp_path: Path) -> None:
        with patch("smart_extract.cli.TaskAnalyzer", _mock_analyzer(BatchSummary())):
            result = runner.invoke(app, ["analyze", str(_note(tmp_path))])
        assert result.exit_code == 0
        assert "No tasks to analyze." in result.output

    def test_auth_error_exits(self, tmp_path: Path) -> None:
        analyzer_cls = _mock_analyzer(error=LLMAuthError("OpenAI API key not configured"))
        with patch("smart_extract.cli.TaskAnalyzer", analyzer_cls):
            result = runner.invoke(app, ["analyze", str(_note(tmp_path))])
        assert result.exit_code == 1
        assert "OpenAI API key not configured" in result.output

    def test_limit_must_be_positive(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["analyze", str(_note(tmp_path)), "--limit", "0"])
        assert result.exit_code == 2

    def test_missing_config_file(self, tmp_path: Path) -> None:
        result = runner.invoke(
            app, ["analyze", str(_note(tmp_path)), "--config", str(tmp_path / "x.yaml")]
        )
        assert result.exit_code == 1
        assert "Config file not found" in result.output

    def test_invalid_config_value(self, tmp_path: Path) -> None:
        config = tmp_path / "config.yaml"
        config.write_text("llm:\n  temperature: 9\n", encoding="utf-8")
        result = runner.invoke(app, ["analyze", str(_note(tmp_path)), "--config", str(config)])
        assert result.exit_code == 1
        assert "Configuration Error" in result.output


# ---- fetch -------------------------------------------------------------------


class TestFetchCommand:
    """fetch runs the cascade without summarizing."""

    def test_found(self) -> None:
        orchestrator = MagicMock()
        orchestrator.__aenter__ = AsyncMock(return_value=orchestrator)
        orchestrator.__aexit__ = AsyncMock(return_value=None)
        orchestrator.extract = AsyncMock(
            return_value=ExtractionResult.hit("Body text here", "readability", title="A page")
        )
        with patch("smart_extract.cli.ExtractionOrchestrator", return_value=orchestrator):
            result = runner.invoke(app, ["fetch", "https://example.com"])
        assert result.exit_code == 0
        assert "readability" in result.output
        assert "A page" in result.output
        assert "Body text here" in result.output

    def test_not_found_exits(self) -> None:
        orchestrator = MagicMock()
        orchestrator.__aenter__ = AsyncMock(return_value=orchestrator)
        orchestrator.__aexit__ = AsyncMock(return_value=None)
        orchestrator.extract = AsyncMock(
            return_value=ExtractionResult.failed("http_fetch", "HTTP 404")
        )
        with patch("smart_extract.cli.ExtractionOrchestrator", return_value=orchestrator):
            result = runner.invoke(app, ["fetch", "https://example.com/missing"])
        assert result.exit_code == 1
        assert "HTTP 404" in result.output


# ---- check -------------------------------------------------------------------


class TestCheckCommand:
    """check validates configuration and the API key."""

    def test_missing_key(self) -> None:
        result = runner.invoke(app, ["check"])
        assert result.exit_code == 1
        assert "not set" in result.output
        assert "OpenAI API key not configured" in result.output

    def test_valid_key_masked(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test-1234567890abcdef")
        result = runner.invoke(app, ["check"])
        assert result.exit_code == 0
        assert "sk-t...cdef" in result.output
        assert "sk-test-1234567890abcdef" not in result.output
        assert "Configuration OK." in result.output

    def test_ping_passes(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test-1234567890abcdef")
        with patch(
            "smart_extract.cli.LLMClient.test_connection",
            new_callable=AsyncMock,
            return_value=True,
        ):
            result = runner.invoke(app, ["check", "--ping"])
        assert result.exit_code == 0
        assert "Connection test passed." in result.output

    def test_ping_fails(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test-1234567890abcdef")
        with patch(
            "smart_extract.cli.LLMClient.test_connection",
            new_callable=AsyncMock,
            return_value=False,
        ):
            result = runner.invoke(app, ["check", "--ping"])
        assert result.exit_code == 1
        assert "Connection test failed." in result.output
