"""Tests for issuesolver.solver.solver."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from issuesolver.apply.errors import ResponseParseError, SchemaError, SolveError
from issuesolver.apply.schema import LEGACY_IMPLEMENTATION_PATH, STRING_MODIFY_MESSAGE
from issuesolver.schemas.issue import IssueComment, IssueContext
from issuesolver.schemas.solution import ActionKind, AppendDirective
from issuesolver.solver.solver import (
    JSON_RETRY_NOTE,
    MAX_CONTEXT_CHARS,
    RATE_RETRY_NOTE,
    SIMPLE_MODE_NOTE,
    STRING_MODIFY_RETRY_NOTE,
    SYSTEM_PROMPT,
    TIMEOUT_RETRY_NOTE,
    IssueSolver,
    adjust_prompt,
)

_SLEEP = "issuesolver.solver.solver.asyncio.sleep"

_VALID = {
    "type": "bug_fix",
    "confidence": "high",
    "description": "Fix the greeting",
    "files": [
        {"path": "app.py", "action": "modify", "content": {"type": "append", "content": "print('hi')"}},
    ],
}


# ── Helpers ───────────────────────────────────────────────────


def _provider(*responses) -> MagicMock:
    """Provider whose complete() yields the given texts or raises the given errors."""
    provider = MagicMock()
    provider.model_id = "gemini/test-model"
    provider.complete = AsyncMock(side_effect=list(responses))
    return provider


def _issue(**overrides) -> IssueContext:
    defaults = {"number": 12, "title": "Greeting is missing", "body": "app.py should greet"}
    defaults.update(overrides)
    return IssueContext(**defaults)


def _prompts(provider: MagicMock) -> list[str]:
    return [c.args[0] for c in provider.complete.call_args_list]


# ── adjust_prompt ─────────────────────────────────────────────


class TestAdjustPrompt:
    def test_parse_error(self):
        prompt = adjust_prompt("BASE", ResponseParseError("JSON parse failed"), 1)
        assert prompt.startswith("BASE")
        assert JSON_RETRY_NOTE in prompt
        assert SIMPLE_MODE_NOTE not in prompt

    def test_string_modify(self):
        prompt = adjust_prompt("BASE", SchemaError([f"files[0]: {STRING_MODIFY_MESSAGE}"]), 1)
        assert STRING_MODIFY_RETRY_NOTE in prompt

    def test_other_schema_errors_listed(self):
        prompt = adjust_prompt("BASE", SchemaError(["files[0]: path is required"]), 1)
        assert "- files[0]: path is required" in prompt

    def test_timeout(self):
        prompt = adjust_prompt("BASE", TimeoutError("Model call timed out"), 1)
        assert TIMEOUT_RETRY_NOTE in prompt

    def test_rate_limit(self):
        prompt = adjust_prompt("BASE", RuntimeError("failed (rate limit)"), 1)
        assert RATE_RETRY_NOTE in prompt

    def test_simple_mode_from_second_attempt(self):
        prompt = adjust_prompt("BASE", RuntimeError("boom"), 2)
        assert SIMPLE_MODE_NOTE in prompt

    def test_unrecognized_first_attempt_unchanged(self):
        assert adjust_prompt("BASE", RuntimeError("boom"), 1) == "BASE"

    def test_notes_do_not_accumulate(self):
        first = adjust_prompt("BASE", ResponseParseError("bad"), 1)
        second = adjust_prompt("BASE", ResponseParseError("bad"), 2)
        assert second.count(JSON_RETRY_NOTE) == 1
        assert first != second


# ── Prompt building ───────────────────────────────────────────


class TestBuildPrompt:
    def test_contains_issue(self):
        solver = IssueSolver(_provider())
        prompt = solver.build_prompt(_issue(labels=["bug"]))
        assert "## Issue #12: Greeting is missing" in prompt
        assert "app.py should greet" in prompt
        assert "Labels: bug" in prompt
        assert "Previous attempt failed" not in prompt

    def test_latest_request(self):
        comment = IssueComment(id=1, author="dev", body="@issue-solver please add tests")
        issue = _issue(comments=[comment], trigger_comments=[comment])
        prompt = IssueSolver(_provider()).build_prompt(issue)
        assert '"@issue-solver please add tests"' in prompt

    def test_discussion_thread(self):
        comments = [
            IssueComment(id=1, author="bob", body="Also on Linux"),
            IssueComment(id=2, body="Same here"),
        ]
        prompt = IssueSolver(_provider()).build_prompt(_issue(comments=comments))
        assert "## Discussion" in prompt
        assert "--- bob:\nAlso on Linux" in prompt
        assert "--- unknown:\nSame here" in prompt
        assert "## Latest request" not in prompt

    def test_file_contents_truncated(self):
        body = "a" * (MAX_CONTEXT_CHARS + 10)
        prompt = IssueSolver(_provider()).build_prompt(_issue(), file_contents={"big.py": body})
        assert "=== big.py ===" in prompt
        assert "... (truncated)" in prompt
        assert "a" * (MAX_CONTEXT_CHARS + 1) not in prompt

    def test_error_hints_merged(self):
        issue = _issue(error_hints=["TypeError: x"])
        prompt = IssueSolver(_provider()).build_prompt(
            issue, error_hints=["TypeError: x", "KeyError: y"],
        )
        assert prompt.count("- TypeError: x") == 1
        assert "- KeyError: y" in prompt

    def test_test_output(self):
        prompt = IssueSolver(_provider()).build_prompt(
            _issue(), test_output="1 failed", test_command="pytest -q",
        )
        assert "`pytest -q`" in prompt
        assert "1 failed" in prompt


# ── solve ─────────────────────────────────────────────────────


class TestSolve:
    @pytest.mark.asyncio()
    async def test_first_attempt(self):
        provider = _provider(json.dumps(_VALID))
        solution = await IssueSolver(provider).solve(_issue())
        assert solution.confidence == "high"
        assert isinstance(solution.files[0].content, AppendDirective)
        assert provider.complete.await_count == 1
        assert provider.complete.call_args.kwargs["system"] == SYSTEM_PROMPT

    @pytest.mark.asyncio()
    async def test_fenced_response(self):
        provider = _provider("Here you go:\n```json\n" + json.dumps(_VALID) + "\n```")
        solution = await IssueSolver(provider).solve(_issue())
        assert solution.type == "bug_fix"

    @pytest.mark.asyncio()
    async def test_parse_retry_adds_note(self):
        provider = _provider("not json at all", json.dumps(_VALID))
        solution = await IssueSolver(provider).solve(_issue())
        assert solution.description == "Fix the greeting"
        first, second = _prompts(provider)
        assert JSON_RETRY_NOTE not in first
        assert JSON_RETRY_NOTE in second

    @pytest.mark.asyncio()
    async def test_fallback_after_last_parse_failure(self):
        provider = _provider("nope", "```python\nprint('fixed')\n```")
        solution = await IssueSolver(provider, max_retries=2).solve(_issue())
        assert solution.degraded is True
        assert solution.files[0].path == "main.py"
        assert solution.files[0].action == ActionKind.CREATE

    @pytest.mark.asyncio()
    async def test_string_modify_retry(self):
        bad = {"files": [{"path": "app.py", "action": "modify", "content": "whole body"}]}
        provider = _provider(json.dumps(bad), json.dumps(_VALID))
        solution = await IssueSolver(provider).solve(_issue())
        assert len(solution.files) == 1
        assert STRING_MODIFY_RETRY_NOTE in _prompts(provider)[1]

    @pytest.mark.asyncio()
    async def test_schema_error_on_last_attempt(self):
        bad = {"files": [{"path": "app.py", "action": "create"}]}
        provider = _provider(json.dumps(bad), json.dumps(bad))
        with pytest.raises(SchemaError):
            await IssueSolver(provider, max_retries=2).solve(_issue())

    @pytest.mark.asyncio()
    async def test_provider_failures_exhausted(self):
        provider = _provider(RuntimeError("down"), TimeoutError("slow"), RuntimeError("down"))
        with patch(_SLEEP, new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(SolveError, match="after 3 attempts"):
                await IssueSolver(provider, retry_delay=5.0).solve(_issue())
        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(5.0)

    @pytest.mark.asyncio()
    async def test_timeout_then_success(self):
        provider = _provider(TimeoutError("Model call timed out"), json.dumps(_VALID))
        with patch(_SLEEP, new_callable=AsyncMock):
            await IssueSolver(provider).solve(_issue())
        assert TIMEOUT_RETRY_NOTE in _prompts(provider)[1]

    @pytest.mark.asyncio()
    async def test_legacy_implementation(self):
        raw = {"description": "notes only", "implementation": "Step one, then step two, " * 3}
        provider = _provider(json.dumps(raw))
        solution = await IssueSolver(provider).solve(_issue())
        assert [f.path for f in solution.files] == [LEGACY_IMPLEMENTATION_PATH]
        assert solution.implementation == ""

    @pytest.mark.asyncio()
    async def test_implementation_ignored_when_files_present(self):
        raw = dict(_VALID, implementation="extra notes")
        provider = _provider(json.dumps(raw))
        solution = await IssueSolver(provider).solve(_issue())
        assert [f.path for f in solution.files] == ["app.py"]
        assert solution.implementation == "extra notes"
