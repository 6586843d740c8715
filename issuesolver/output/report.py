"""Run reports, commit messages, and pull request bodies."""

from __future__ import annotations

import logging
import traceback
from pathlib import Path

from issuesolver.apply.errors import ExecutionError
from issuesolver.schemas.issue import IssueContext
from issuesolver.schemas.report import ErrorReport, SolutionReport
from issuesolver.schemas.solution import ActionKind, FileAction, Solution

logger = logging.getLogger(__name__)

REPORT_FILENAME = "issue_solution_report.json"
TITLE_CHARS = 50


def write_report(report: SolutionReport, output_dir: Path) -> Path:
    """Write issue_solution_report.json and return its path."""
    path = Path(output_dir) / REPORT_FILENAME
    path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
    logger.info("Report written: %s", path)
    return path


def build_error_report(issue_number: int, issue_title: str, error: BaseException) -> ErrorReport:
    rollback_failures = error.rollback_failures if isinstance(error, ExecutionError) else []
    return ErrorReport(
        issue_number=issue_number,
        issue_title=issue_title,
        error=str(error),
        error_type=type(error).__name__,
        traceback="".join(traceback.format_exception(error)),
        rollback_failures=list(rollback_failures),
    )


def write_error_report(report: ErrorReport, output_dir: Path) -> Path:
    """Write error_report_<issue>.json and return its path."""
    path = Path(output_dir) / f"error_report_{report.issue_number}.json"
    path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
    logger.info("Error report written: %s", path)
    return path


def documentation_path(issue_number: int) -> str:
    return f"ISSUE_{issue_number}_SOLUTION.md"


def solution_documentation(solution: Solution, issue: IssueContext) -> FileAction:
    """Create action for ISSUE_<n>_SOLUTION.md summarising a file-less solution.

    Used in detailed mode so an analysis-only answer still lands in the
    pull request.
    """
    lines = [
        f"# Issue #{issue.number} Solution",
        "",
        f"**Title:** {issue.title}  ",
        f"**Type:** {solution.type}  ",
        f"**Confidence:** {solution.confidence}",
        "",
        "## Analysis",
        solution.analysis or solution.description or "_No analysis provided._",
    ]
    if solution.planning:
        lines += ["", "## Plan"]
        lines.extend(f"{i}. {step}" for i, step in enumerate(solution.planning, start=1))
    if solution.description and solution.analysis:
        lines += ["", "## Description", solution.description]
    if solution.tests:
        lines += ["", "## Testing", solution.tests]
    if solution.report:
        lines += ["", "## Report", solution.report]
    return FileAction(
        path=documentation_path(issue.number),
        action=ActionKind.CREATE,
        content="\n".join(lines) + "\n",
        changes="Solution documentation",
    )


def commit_prefix(solution_type: str) -> str:
    """Conventional-commit prefix for a solution category."""
    kind = solution_type.lower()
    if "feat" in kind:
        return "feat"
    if "doc" in kind:
        return "docs"
    if "test" in kind:
        return "test"
    if "refactor" in kind or "enhance" in kind:
        return "refactor"
    return "fix"


def commit_message(solution: Solution, issue: IssueContext) -> str:
    title = issue.title[:TITLE_CHARS] or "issue update"
    return f"{commit_prefix(solution.type)}: resolve issue #{issue.number} - {title}"


def pull_request_title(issue: IssueContext) -> str:
    return f"Fix #{issue.number}: {issue.title[:TITLE_CHARS]}".rstrip(": ")


def pull_request_body(
    solution: Solution,
    issue: IssueContext,
    *,
    model: str = "",
    test_passed: bool | None = None,
) -> str:
    lines = [
        f"Resolves #{issue.number}",
        "",
        "## Summary",
        f"**Type:** {solution.type}  ",
        f"**Confidence:** {solution.confidence}",
    ]
    if solution.degraded:
        lines.append("")
        lines.append("> **Note:** the model response was not valid JSON; this change was "
                     "reconstructed by the fallback parser and needs careful review.")

    lines += ["", "## Analysis", solution.analysis or solution.description or "_No analysis provided._"]

    if solution.planning:
        lines += ["", "## Plan"]
        lines.extend(f"{i}. {step}" for i, step in enumerate(solution.planning, start=1))

    lines += ["", "## Changes"]
    if solution.files:
        for action in solution.files:
            note = f" - {action.changes}" if action.changes else ""
            lines.append(f"- {action.action}: `{action.path}`{note}")
    else:
        lines.append("_No file changes._")

    lines += ["", "## Testing", solution.tests or "Manual verification recommended."]
    if test_passed is not None:
        lines.append("")
        lines.append("Test command passed." if test_passed else "Test command did not pass.")

    if solution.report:
        lines += ["", "## Report", solution.report]

    if model:
        lines += ["", f"_Generated with `{model}`._"]
    return "\n".join(lines) + "\n"
