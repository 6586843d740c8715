"""Live status updates posted as a single issue comment.

The comment carries a hidden marker so a rerun reuses it instead of
adding another. Status updates are best-effort: failures are logged,
never raised.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import StrEnum

from issuesolver.apply.errors import GitHubError
from issuesolver.github.client import GitHubClient

logger = logging.getLogger(__name__)

STATUS_MARKER = "<!-- issue-solver-status -->"


class StatusPhase(StrEnum):
    """Workflow phase shown in the status comment."""

    STARTING = "starting"
    ANALYZING = "analyzing"
    PLANNING = "planning"
    IMPLEMENTING = "implementing"
    TESTING = "testing"
    RETRYING = "retrying"
    REPORTING = "reporting"
    COMPLETED = "completed"
    ERROR = "error"


_STEPS = ["Issue analysis", "Solution planning", "Implementation", "Testing", "Report"]

# (heading, default message, index of the step in progress)
_PHASES: dict[StatusPhase, tuple[str, str, int]] = {
    StatusPhase.STARTING: ("Issue solver started", "Preparing to analyze the issue...", -1),
    StatusPhase.ANALYZING: ("Analyzing issue", "Reading the issue and its comments...", 0),
    StatusPhase.PLANNING: ("Planning solution", "Asking the model for a solution...", 1),
    StatusPhase.IMPLEMENTING: ("Implementing", "Applying file changes...", 2),
    StatusPhase.TESTING: ("Testing", "Running the test command...", 3),
    StatusPhase.RETRYING: ("Retrying", "Tests failed; generating a new solution...", 1),
    StatusPhase.REPORTING: ("Reporting", "Writing the report...", 4),
    StatusPhase.COMPLETED: ("Completed", "Done.", len(_STEPS)),
    StatusPhase.ERROR: ("Failed", "An error occurred.", -1),
}


def render_status(
    phase: StatusPhase,
    message: str = "",
    details: dict[str, str] | None = None,
    *,
    when: datetime | None = None,
) -> str:
    """Markdown body of the status comment for one phase."""
    heading, default_message, current = _PHASES[phase]
    lines = [
        STATUS_MARKER,
        f"**{heading}**",
        "",
        f"**Status:** {message or default_message}",
    ]

    if phase != StatusPhase.ERROR:
        lines += ["", "**Progress:**"]
        for index, step in enumerate(_STEPS):
            if index < current:
                lines.append(f"- [x] {step}")
            elif index == current:
                lines.append(f"- [ ] {step} (in progress)")
            else:
                lines.append(f"- [ ] {step}")

    if details:
        lines.append("")
        lines.extend(f"**{key}:** {value}" for key, value in details.items())

    stamp = (when or datetime.now(UTC)).strftime("%Y-%m-%d %H:%M:%S UTC")
    lines += ["", f"*Last updated: {stamp}*"]
    return "\n".join(lines)


class StatusCommentManager:
    """Creates, reuses, and updates the status comment on one issue."""

    def __init__(self, client: GitHubClient | None, issue_number: int) -> None:
        self._client = client
        self._issue_number = issue_number
        self._comment_id: int | None = None
        self._looked_up = False

    @property
    def comment_id(self) -> int | None:
        return self._comment_id

    async def update(
        self,
        phase: StatusPhase,
        message: str = "",
        details: dict[str, str] | None = None,
    ) -> None:
        """Show a phase in the status comment."""
        logger.info("Status: %s%s", phase, f" ({message})" if message else "")
        if self._client is None:
            return

        body = render_status(phase, message, details)
        if self._comment_id is None and not self._looked_up:
            self._comment_id = await self._find_existing()
            self._looked_up = True

        if self._comment_id is None:
            await self._create(body)
            return

        try:
            await self._client.update_comment(self._comment_id, body)
        except GitHubError as e:
            logger.warning("Status comment update failed: %s", e)
            await self._create(
                body + f"\n\n*Previous status comment could not be updated: {e}*",
            )

    async def _find_existing(self) -> int | None:
        try:
            comments = await self._client.list_comments(self._issue_number)
        except GitHubError as e:
            logger.warning("Could not list comments to find the status comment: %s", e)
            return None
        for comment in reversed(comments):
            if STATUS_MARKER in (comment.get("body") or ""):
                return comment.get("id")
        return None

    async def _create(self, body: str) -> None:
        try:
            created = await self._client.create_comment(self._issue_number, body)
        except GitHubError as e:
            logger.error("Could not create status comment: %s", e)
            return
        self._comment_id = (created or {}).get("id")
        logger.debug("Created status comment %s", self._comment_id)
