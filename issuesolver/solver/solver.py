"""Prompt -> LLM -> parse -> schema-check loop.

Each failed attempt rebuilds the prompt from the base prompt plus a
correction matched to what went wrong. From the second retry on, the
prompt also asks for the smallest viable solution.
"""

from __future__ import annotations

import asyncio
import logging

from issuesolver.apply.errors import ResponseParseError, SchemaError, SolveError
from issuesolver.apply.schema import (
    STRING_MODIFY_MESSAGE,
    SolutionSchemaValidator,
    transform_legacy_solution,
)
from issuesolver.prompts import render_prompt
from issuesolver.providers.base import SolutionProvider
from issuesolver.schemas.issue import IssueContext
from issuesolver.schemas.solution import Solution
from issuesolver.solver.parsing import extract_json, fallback_solution

logger = logging.getLogger(__name__)

# Characters of each context file included in the prompt
MAX_CONTEXT_CHARS = 4000

SYSTEM_PROMPT = (
    "You resolve GitHub issues by proposing concrete file changes. "
    "Always answer with a single JSON object."
)

JSON_RETRY_NOTE = (
    "IMPORTANT: The previous attempt failed because the response was not valid JSON. "
    "Respond with a single JSON object only. Start with { and end with }."
)
TIMEOUT_RETRY_NOTE = (
    "IMPORTANT: The previous attempt timed out. Give a more concise response "
    "with only the essential information."
)
RATE_RETRY_NOTE = "IMPORTANT: An API rate limit was hit. Keep the request and response small."
STRING_MODIFY_RETRY_NOTE = """CRITICAL: The previous response used plain-string content for a modify action, which is rejected.

For modify actions always use an object:
- Append: {"type": "append", "content": "text to add"}
- Prepend: {"type": "prepend", "content": "text to add at the start"}
- Replace: {"type": "replace", "from": "text to find", "to": "replacement text"}
- Full replace: {"type": "full-replace", "content": "complete new body"}

Plain-string content is only allowed for create actions."""
SIMPLE_MODE_NOTE = (
    "FORCE SIMPLE MODE: Provide only the most essential solution with a minimal "
    "files array. Focus on the core change only."
)


def adjust_prompt(base_prompt: str, error: Exception, attempt: int) -> str:
    """Append a correction for the failure of the given attempt."""
    message = str(error).lower()
    notes: list[str] = []

    if isinstance(error, SchemaError):
        if any(STRING_MODIFY_MESSAGE in e for e in error.errors):
            notes.append(STRING_MODIFY_RETRY_NOTE)
        else:
            listed = "\n".join(f"- {e}" for e in error.errors)
            notes.append(f"IMPORTANT: The previous response failed validation:\n{listed}")
    elif isinstance(error, ResponseParseError) or "json" in message or "parse" in message:
        notes.append(JSON_RETRY_NOTE)
    elif isinstance(error, TimeoutError) or "timeout" in message or "timed out" in message:
        notes.append(TIMEOUT_RETRY_NOTE)
    elif "quota" in message or "rate" in message:
        notes.append(RATE_RETRY_NOTE)

    if attempt >= 2:
        notes.append(SIMPLE_MODE_NOTE)

    if not notes:
        return base_prompt
    return base_prompt + "\n\n" + "\n\n".join(notes) + "\n"


class IssueSolver:
    """Generates a validated Solution for an issue via a SolutionProvider."""

    def __init__(
        self,
        provider: SolutionProvider,
        *,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        timeout: float = 3600.0,
        schema_validator: SolutionSchemaValidator | None = None,
    ) -> None:
        self._provider = provider
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay
        self._timeout = timeout
        self._schema = schema_validator or SolutionSchemaValidator()

    def build_prompt(
        self,
        issue: IssueContext,
        *,
        file_contents: dict[str, str] | None = None,
        error_hints: list[str] | None = None,
        test_output: str = "",
        test_command: str = "",
    ) -> str:
        contents = {
            path: _truncate(text) for path, text in (file_contents or {}).items()
        }
        hints = list(issue.error_hints)
        for hint in error_hints or []:
            if hint not in hints:
                hints.append(hint)
        return render_prompt(
            "solution",
            issue=issue,
            file_contents=contents,
            error_hints=hints,
            test_output=test_output,
            test_command=test_command,
        )

    async def solve(
        self,
        issue: IssueContext,
        *,
        file_contents: dict[str, str] | None = None,
        error_hints: list[str] | None = None,
        test_output: str = "",
        test_command: str = "",
    ) -> Solution:
        """Ask the provider for a Solution, retrying with corrections.

        After the last attempt, an unparseable response yields a degraded
        fallback Solution.

        Raises:
            SchemaError: If the last response parsed but failed validation.
            SolveError: If every provider call failed.
        """
        base_prompt = self.build_prompt(
            issue,
            file_contents=file_contents,
            error_hints=error_hints,
            test_output=test_output,
            test_command=test_command,
        )
        prompt = base_prompt
        last_error: Exception | None = None

        for attempt in range(1, self._max_retries + 1):
            final = attempt == self._max_retries
            logger.info(
                "Requesting solution from %s (attempt %d/%d)",
                self._provider.model_id, attempt, self._max_retries,
            )
            try:
                text = await self._provider.complete(
                    prompt, system=SYSTEM_PROMPT, timeout=self._timeout,
                )
            except (TimeoutError, RuntimeError) as e:
                last_error = e
                logger.warning("Provider error (attempt %d/%d): %s", attempt, self._max_retries, e)
                if not final:
                    prompt = adjust_prompt(base_prompt, e, attempt)
                    await asyncio.sleep(self._retry_delay)
                continue

            try:
                raw = extract_json(text)
            except ResponseParseError as e:
                last_error = e
                logger.warning("%s (attempt %d/%d)", e, attempt, self._max_retries)
                if not final:
                    prompt = adjust_prompt(base_prompt, e, attempt)
                    continue
                logger.debug("Raw response: %s", text[:500])
                return self._schema.to_solution(fallback_solution(text))

            if not raw.get("files") and raw.get("implementation"):
                raw = transform_legacy_solution(raw)

            try:
                solution = self._schema.to_solution(raw)
            except SchemaError as e:
                last_error = e
                logger.error("Solution failed validation: %s", "; ".join(e.errors))
                if final:
                    raise
                prompt = adjust_prompt(base_prompt, e, attempt)
                continue

            logger.info(
                "Solution ready: type=%s confidence=%s files=%d",
                solution.type, solution.confidence, len(solution.files),
            )
            return solution

        raise SolveError(
            f"Solution generation failed after {self._max_retries} attempts: {last_error}"
        ) from last_error


def _truncate(text: str) -> str:
    if len(text) <= MAX_CONTEXT_CHARS:
        return text
    return text[:MAX_CONTEXT_CHARS] + "\n... (truncated)"
