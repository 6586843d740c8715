"""GitHub integration: REST client, issue fetching, and status comments."""

from issuesolver.github.client import GitHubClient
from issuesolver.github.issue import IssueFetcher
from issuesolver.github.status import StatusCommentManager, StatusPhase

__all__ = ["GitHubClient", "IssueFetcher", "StatusCommentManager", "StatusPhase"]
