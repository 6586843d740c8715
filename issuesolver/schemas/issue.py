"""Issue schemas consumed by the solver.

The core only needs a flattened view of the issue; IssueContext is that
view, regardless of how it was fetched or paginated.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class IssueComment(BaseModel):
    """A single issue comment."""

    id: int = Field(description="Comment ID")
    author: str = Field(default="", description="Login of the comment author")
    body: str = Field(default="", description="Comment Markdown body")
    created_at: str = Field(default="", description="ISO-8601 creation timestamp")
    html_url: str = Field(default="", description="Link to the comment")


class IssueContext(BaseModel):
    """Flattened issue view handed to prompt building."""

    number: int = Field(description="Issue number")
    title: str = Field(default="", description="Issue title")
    body: str = Field(default="", description="Issue body")
    labels: list[str] = Field(default_factory=list, description="Label names")
    comments: list[IssueComment] = Field(default_factory=list, description="All comments, oldest first")
    trigger_comments: list[IssueComment] = Field(
        default_factory=list, description="Comments that mention the solver"
    )
    error_hints: list[str] = Field(
        default_factory=list, description="Error lines found in the body and comments"
    )

    @property
    def latest_request(self) -> str:
        """The most recent trigger comment, or the issue body."""
        if self.trigger_comments:
            return self.trigger_comments[-1].body
        return self.body
