"""Issue fetching and flattening.

Produces the IssueContext the solver consumes: the issue, every comment,
the comments that mention the solver, and error lines worth highlighting.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from issuesolver.apply.errors import GitHubError
from issuesolver.github.client import GitHubClient
from issuesolver.schemas.config import SolverConfig
from issuesolver.schemas.issue import IssueComment, IssueContext

logger = logging.getLogger(__name__)

TRIGGER_PATTERNS = [
    re.compile(r"@gemini", re.IGNORECASE),
    re.compile(r"@gpt", re.IGNORECASE),
    re.compile(r"@ai\b", re.IGNORECASE),
    re.compile(r"solve this", re.IGNORECASE),
    re.compile(r"fix this", re.IGNORECASE),
    re.compile(r"help with this", re.IGNORECASE),
]

# First match per line wins
ERROR_PATTERNS = [
    re.compile(r"\b\w*(?:Error|Exception): .+"),
    re.compile(r"\bFailed to .+", re.IGNORECASE),
    re.compile(r"\bCannot .+"),
]


def is_trigger(text: str) -> bool:
    """Whether a comment asks the solver to act."""
    return bool(text) and any(p.search(text) for p in TRIGGER_PATTERNS)


def extract_error_hints(texts: list[str]) -> list[str]:
    """Error-looking lines across texts, de-duplicated in first-seen order."""
    hints: list[str] = []
    for text in texts:
        for line in (text or "").splitlines():
            for pattern in ERROR_PATTERNS:
                match = pattern.search(line)
                if match:
                    hint = match.group(0).strip()
                    if hint not in hints:
                        hints.append(hint)
                    break
    return hints


def _comment_from_api(data: dict[str, Any]) -> IssueComment:
    user = data.get("user") or {}
    return IssueComment(
        id=data.get("id", 0),
        author=user.get("login", ""),
        body=data.get("body") or "",
        created_at=data.get("created_at", ""),
        html_url=data.get("html_url", ""),
    )


def build_context(
    number: int,
    title: str,
    body: str,
    labels: list[str],
    comments: list[IssueComment],
) -> IssueContext:
    return IssueContext(
        number=number,
        title=title,
        body=body,
        labels=labels,
        comments=comments,
        trigger_comments=[c for c in comments if is_trigger(c.body)],
        error_hints=extract_error_hints([body, *(c.body for c in comments)]),
    )


class IssueFetcher:
    """Builds an IssueContext from the GitHub API or the environment."""

    def __init__(self, config: SolverConfig, client: GitHubClient | None = None) -> None:
        self._config = config
        self._client = client

    async def fetch(self, number: int | None = None) -> IssueContext:
        """Fetch the issue and all of its comments.

        Falls back to the ISSUE_* environment values when there is no
        client or the API call fails.
        """
        number = number or self._config.issue_number
        if self._client is None:
            logger.info("No GitHub client configured; using issue data from the environment")
            return self.from_env(number)

        try:
            issue = await self._client.get_issue(number)
            raw_comments = await self._client.list_comments(number)
        except GitHubError as e:
            logger.warning("Could not fetch issue #%d (%s); using environment data", number, e)
            return self.from_env(number)

        labels = [
            label["name"] if isinstance(label, dict) else str(label)
            for label in issue.get("labels") or []
        ]
        context = build_context(
            number=number,
            title=issue.get("title") or "",
            body=issue.get("body") or "",
            labels=labels,
            comments=[_comment_from_api(c) for c in raw_comments],
        )
        logger.info(
            "Issue #%d: %d comments, %d trigger comments, %d error hints",
            number, len(context.comments), len(context.trigger_comments), len(context.error_hints),
        )
        return context

    def from_env(self, number: int | None = None) -> IssueContext:
        config = self._config
        comments: list[IssueComment] = []
        if config.comment_body:
            comments.append(IssueComment(id=0, author="", body=config.comment_body))
        return build_context(
            number=number or config.issue_number,
            title=config.issue_title,
            body=config.issue_body,
            labels=list(config.issue_labels),
            comments=comments,
        )
