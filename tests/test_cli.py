"""Tests for the issue-solver CLI via CliRunner."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from issuesolver import __version__
from issuesolver.cli import app
from issuesolver.schemas.report import PipelineResult
from issuesolver.schemas.solution import ActionKind, ExecutionRecord, RecordAction

# NO_COLOR=1 keeps Rich from injecting ANSI codes; COLUMNS=200 prevents wrapping
runner = CliRunner(env={"NO_COLOR": "1", "COLUMNS": "200"})


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path, monkeypatch):
    """Keep a developer's .env out of the tests."""
    monkeypatch.chdir(tmp_path)


def _write_solution(path, files):
    path.write_text(json.dumps({"type": "fix", "files": files}))
    return path


class TestVersionAndHelp:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("run", "apply", "validate", "config"):
            assert command in result.output


class TestValidateCommand:
    def test_valid(self, tmp_path):
        solution = _write_solution(tmp_path / "s.json", [
            {"path": "a.py", "action": "create", "content": "x = 1\n"},
        ])
        result = runner.invoke(app, ["validate", str(solution), "-C", str(tmp_path)])
        assert result.exit_code == 0
        assert "Valid: 1 file operation(s)" in result.output

    def test_schema_errors(self, tmp_path):
        solution = _write_solution(tmp_path / "s.json", [
            {"path": "a.py", "action": "modify", "content": "whole body"},
        ])
        result = runner.invoke(app, ["validate", str(solution)])
        assert result.exit_code == 1
        assert "Schema errors" in result.output

    def test_rejected_path(self, tmp_path):
        solution = _write_solution(tmp_path / "s.json", [
            {"path": "../outside.py", "action": "create", "content": "x"},
        ])
        result = runner.invoke(app, ["validate", str(solution), "-C", str(tmp_path)])
        assert result.exit_code == 1
        assert "fail" in result.output

    def test_not_json(self, tmp_path):
        bad = tmp_path / "s.json"
        bad.write_text("{nope")
        result = runner.invoke(app, ["validate", str(bad)])
        assert result.exit_code == 1
        assert "not valid JSON" in result.output


class TestApplyCommand:
    def test_applies_changes(self, tmp_path):
        repo = tmp_path / "repo"
        repo.mkdir()
        (repo / "app.py").write_text("x = 1")
        solution = _write_solution(tmp_path / "s.json", [
            {"path": "app.py", "action": "modify", "content": {"type": "append", "content": "y = 2"}},
            {"path": "pkg/new.py", "action": "create", "content": "z = 3\n"},
        ])
        result = runner.invoke(app, ["apply", str(solution), "-C", str(repo)])
        assert result.exit_code == 0, result.output
        assert (repo / "app.py").read_text() == "x = 1\ny = 2"
        assert (repo / "pkg" / "new.py").read_text() == "z = 3\n"
        assert "Applied Files" in result.output

    def test_dry_run(self, tmp_path):
        solution = _write_solution(tmp_path / "s.json", [
            {"path": "new.py", "action": "create", "content": "z = 3\n"},
        ])
        result = runner.invoke(app, ["apply", str(solution), "-C", str(tmp_path), "--dry-run"])
        assert result.exit_code == 0
        assert "Dry Run" in result.output
        assert not (tmp_path / "new.py").exists()

    def test_rejected_writes_nothing(self, tmp_path):
        solution = _write_solution(tmp_path / "s.json", [
            {"path": "ok.py", "action": "create", "content": "a = 1\n"},
            {"path": ".env", "action": "create", "content": "SECRET=1"},
        ])
        result = runner.invoke(app, ["apply", str(solution), "-C", str(tmp_path)])
        assert result.exit_code == 1
        assert "nothing was written" in result.output
        assert not (tmp_path / "ok.py").exists()

    def test_invalid_solution(self, tmp_path):
        solution = _write_solution(tmp_path / "s.json", [{"action": "create", "content": "x"}])
        result = runner.invoke(app, ["apply", str(solution)])
        assert result.exit_code == 1
        assert "path is required" in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["apply", str(tmp_path / "missing.json")])
        assert result.exit_code == 1
        assert "Cannot read" in result.output


class TestConfigShow:
    def test_masks_secrets(self):
        env = {
            "ISSUE_NUMBER": "12",
            "GITHUB_REPOSITORY": "acme/widgets",
            "AI_PROVIDER": "gemini",
            "GEMINI_API_KEY": "gm-secret-key-9876",
            "SAFETY_MODE": "safe",
        }
        result = runner.invoke(app, ["config", "show"], env=env)
        assert result.exit_code == 0
        assert "acme/widgets" in result.output
        assert "gemini/gemini-2.5-pro" in result.output
        assert "9876" in result.output
        assert "gm-secret-key-9876" not in result.output
        assert "safe" in result.output

    def test_invalid_configuration(self):
        result = runner.invoke(app, ["config", "show"], env={"ISSUE_NUMBER": "abc"})
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output


class TestRunCommand:
    def test_missing_api_key(self, tmp_path):
        env = {"ISSUE_NUMBER": "3", "AI_PROVIDER": "gemini", "GEMINI_API_KEY": "", "GITHUB_TOKEN": ""}
        result = runner.invoke(app, ["run"], env=env)
        assert result.exit_code == 1
        assert "GEMINI_API_KEY is required" in result.output
        assert (tmp_path / "error_report_3.json").exists()

    def test_missing_issue_number(self):
        result = runner.invoke(app, ["run"], env={"ISSUE_NUMBER": "", "GEMINI_API_KEY": "k"})
        assert result.exit_code == 1
        assert "ISSUE_NUMBER is required" in result.output

    def test_key_check_deferred_to_pipeline(self, tmp_path):
        env = {
            "ISSUE_NUMBER": "3",
            "AI_PROVIDER": "",
            "GEMINI_API_KEY": "",
            "OPENAI_API_KEY": "sk-test",
            "GITHUB_TOKEN": "",
            "ISSUE_BODY": "Please fix this",
            "COMMENT_BODY": "",
        }
        with patch("issuesolver.cli.IssueSolverPipeline") as mock_pipeline:
            mock_pipeline.return_value.run.return_value = PipelineResult(issue_number=3)
            with patch("issuesolver.cli.asyncio.run", side_effect=lambda coro: coro):
                result = runner.invoke(app, ["run", "-C", str(tmp_path)], env=env)
        assert result.exit_code == 0, result.output
        assert "GEMINI_API_KEY is required" not in result.output
        mock_pipeline.return_value.run.assert_called_once()

    def test_displays_result(self, tmp_path):
        env = {"ISSUE_NUMBER": "3", "AI_PROVIDER": "gemini", "GEMINI_API_KEY": "k", "GITHUB_TOKEN": ""}
        result_model = PipelineResult(
            issue_number=3,
            records=[
                ExecutionRecord(action=RecordAction.CREATED, path="a.py", requested=ActionKind.CREATE),
            ],
            test_passed=True,
            test_attempts=1,
        )
        with patch("issuesolver.cli.IssueSolverPipeline") as mock_pipeline:
            mock_pipeline.return_value.run.return_value = result_model
            with patch("issuesolver.cli.asyncio.run", side_effect=lambda coro: coro):
                result = runner.invoke(app, ["run", "-C", str(tmp_path), "--dry-run"], env=env)
        assert result.exit_code == 0, result.output
        assert "a.py" in result.output
        assert "Tests: PASSED" in result.output
        config = mock_pipeline.call_args.args[0]
        assert config.dry_run is True
        assert mock_pipeline.call_args.kwargs["client"] is None
