"""Error taxonomy for the file-mutation pipeline.

Per-operation validation and schema checks return structured results;
these exceptions are raised by the transaction coordinator and the
solver so the orchestration layer can report them.
"""

from __future__ import annotations


class IssueSolverError(Exception):
    """Base class for all solver errors."""


class TransactionValidationError(IssueSolverError):
    """One or more operations were rejected before anything was written.

    Attributes:
        failures: (path, reason) for every rejected operation.
    """

    def __init__(self, failures: list[tuple[str, str]]) -> None:
        self.failures = failures
        detail = ", ".join(f"{path}: {reason}" for path, reason in failures)
        super().__init__(f"File operation validation failed: {detail}")


class ExecutionError(IssueSolverError):
    """A single file operation failed mid-apply.

    Attributes:
        path: Repository-relative path of the failing operation.
        reason: What went wrong.
        rollback_failures: Paths that could not be restored afterwards.
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        self.rollback_failures: list[str] = []
        super().__init__(f"Operation failed ({path}): {reason}")


class SchemaError(IssueSolverError):
    """The Solution document is malformed.

    Attributes:
        errors: Individual schema violations.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("Invalid solution format: " + ", ".join(errors))


class BackupError(IssueSolverError):
    """A backup could not be created or restored."""


class ResponseParseError(IssueSolverError):
    """An LLM response could not be decoded as a JSON object."""


class SolveError(IssueSolverError):
    """The solver gave up after exhausting its attempts."""


class GitHubError(IssueSolverError):
    """A GitHub REST call failed.

    Attributes:
        status: HTTP status code, or None for transport errors.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class VerificationError(IssueSolverError):
    """The test command kept failing after every solve attempt.

    Attributes:
        attempts: Number of test runs.
        output: Output of the last run.
    """

    def __init__(self, attempts: int, output: str) -> None:
        self.attempts = attempts
        self.output = output
        super().__init__(f"Tests failed after {attempts} attempt(s)")
