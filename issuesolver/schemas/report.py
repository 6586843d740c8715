"""Report schemas written at the end of a run."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from issuesolver.schemas.issue import IssueContext
from issuesolver.schemas.solution import DryRunEntry, ExecutionRecord, RecordAction, Solution


def _now() -> str:
    return datetime.now(UTC).isoformat()


class SolutionReport(BaseModel):
    """Summary of a solved issue, written to issue_solution_report.json."""

    issue_number: int = Field(description="Issue number")
    issue_title: str = Field(default="", description="Issue title")
    issue: IssueContext | None = Field(default=None, description="Issue context used for solving")
    solution: Solution | None = Field(default=None, description="Applied solution")
    records: list[ExecutionRecord] = Field(default_factory=list, description="Execution records")
    dry_run: list[DryRunEntry] = Field(default_factory=list, description="Dry-run plan, if any")
    test_passed: bool | None = Field(default=None, description="Result of the last test run")
    test_attempts: int = Field(default=0, ge=0, description="Number of test runs")
    model: str = Field(default="", description="LiteLLM model identifier")
    timestamp: str = Field(default_factory=_now, description="UTC timestamp")


class ErrorReport(BaseModel):
    """Failure details, written to error_report_<issue>.json."""

    issue_number: int = Field(description="Issue number")
    issue_title: str = Field(default="", description="Issue title")
    error: str = Field(description="Error message")
    error_type: str = Field(default="", description="Exception class name")
    traceback: str = Field(default="", description="Formatted traceback")
    rollback_failures: list[str] = Field(
        default_factory=list, description="Paths that could not be restored"
    )
    timestamp: str = Field(default_factory=_now, description="UTC timestamp")


class PipelineResult(BaseModel):
    """Outcome of one end-to-end solve run."""

    issue_number: int = Field(description="Issue number")
    solution: Solution | None = Field(default=None, description="Last applied solution")
    records: list[ExecutionRecord] = Field(default_factory=list, description="Records across attempts")
    dry_run: list[DryRunEntry] = Field(default_factory=list, description="Dry-run plan, if any")
    test_passed: bool | None = Field(default=None, description="Result of the last test run")
    test_attempts: int = Field(default=0, ge=0, description="Number of test runs")
    branch: str = Field(default="", description="Branch the fix was pushed to")
    commit_sha: str = Field(default="", description="Commit SHA")
    pr_url: str = Field(default="", description="Pull request URL")
    report_path: str = Field(default="", description="Path of the written report")

    @property
    def touched_paths(self) -> list[str]:
        """Paths actually changed, in first-touched order."""
        seen: list[str] = []
        for record in self.records:
            if record.action != RecordAction.SKIPPED and record.path not in seen:
                seen.append(record.path)
        return seen
