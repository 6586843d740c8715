"""Solution schemas for LLM-authored file edits.

Defines the Solution document returned by the LLM, the per-file
FileAction instructions it carries, the ModifyDirective sum type used
for in-place edits, and the records produced when a transaction runs.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ActionKind(StrEnum):
    """File-level action requested by a Solution."""

    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"


class RecordAction(StrEnum):
    """What actually happened to a file during execution."""

    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"
    SKIPPED = "skipped"


class Confidence(StrEnum):
    """Self-reported confidence of the LLM in its solution."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# ── Modify directives ─────────────────────────────────────────────


class AppendDirective(BaseModel):
    """Add text after the existing body, separated by a newline."""

    type: Literal["append"] = "append"
    content: str = Field(description="Text to add at the end of the file")

    def apply(self, current: str) -> str:
        return current + "\n" + self.content

    def payload(self) -> list[str]:
        return [self.content]


class PrependDirective(BaseModel):
    """Add text before the existing body, separated by a newline."""

    type: Literal["prepend"] = "prepend"
    content: str = Field(description="Text to add at the start of the file")

    def apply(self, current: str) -> str:
        return self.content + "\n" + current

    def payload(self) -> list[str]:
        return [self.content]


class ReplaceDirective(BaseModel):
    """Literal substring replacement of the first occurrence only.

    No match leaves the body unchanged; that is not an error.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["replace"] = "replace"
    from_: str = Field(alias="from", description="Literal text to find")
    to: str = Field(description="Replacement text")

    def apply(self, current: str) -> str:
        return current.replace(self.from_, self.to, 1)

    def payload(self) -> list[str]:
        return [self.to]


class FullReplaceDirective(BaseModel):
    """Explicit whole-file overwrite. Never inferred from a bare string."""

    type: Literal["full-replace", "full_replace"] = "full-replace"
    content: str = Field(description="New body for the whole file")

    def apply(self, current: str) -> str:
        return self.content

    def payload(self) -> list[str]:
        return [self.content]


ModifyDirective = Annotated[
    AppendDirective | PrependDirective | ReplaceDirective | FullReplaceDirective,
    Field(discriminator="type"),
]

MODIFY_DIRECTIVE_TYPES = ("append", "prepend", "replace", "full-replace", "full_replace")


def initial_body(directive: ModifyDirective) -> str:
    """Body used when a modify of a missing file is coerced into a create."""
    if isinstance(directive, ReplaceDirective):
        return directive.to
    return directive.content


# ── Solution document ─────────────────────────────────────────────


class FileAction(BaseModel):
    """One file-level create/modify/delete instruction."""

    path: str = Field(description="Repository-relative target path")
    action: ActionKind = Field(description="Requested action")
    content: str | ModifyDirective | None = Field(
        default=None,
        description="Full body for create, a ModifyDirective for modify, ignored for delete",
    )
    changes: str = Field(default="", description="Human-readable description (audit only)")


class Solution(BaseModel):
    """Structured proposal returned by the LLM for resolving an issue."""

    type: str = Field(default="fix", description="Category tag (bug_fix, feature, test, ...)")
    confidence: Confidence = Field(default=Confidence.MEDIUM, description="Self-reported confidence")
    analysis: str = Field(default="", description="Problem analysis")
    planning: list[str] = Field(default_factory=list, description="Ordered plan steps")
    description: str = Field(default="", description="Solution description")
    files: list[FileAction] = Field(default_factory=list, description="File actions to apply")
    implementation: str = Field(default="", description="Deprecated free-text implementation")
    tests: str = Field(default="", description="Testing recommendations")
    report: str = Field(default="", description="Implementation report")
    degraded: bool = Field(
        default=False,
        description="True when reconstructed by the fallback parser instead of parsed as JSON",
    )

    @field_validator("confidence", mode="before")
    @classmethod
    def _normalize_confidence(cls, value: object) -> object:
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in {c.value for c in Confidence}:
                return lowered
            return Confidence.MEDIUM
        return value

    @field_validator("planning", mode="before")
    @classmethod
    def _coerce_planning(cls, value: object) -> object:
        if isinstance(value, str):
            return [value] if value.strip() else []
        return value

    @field_validator("analysis", "description", "implementation", "tests", "report", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> object:
        if value is None:
            return ""
        if isinstance(value, list):
            return "\n".join(str(item) for item in value)
        return value


# ── Execution results ─────────────────────────────────────────────


class ExecutionRecord(BaseModel):
    """Audit record of what the executor did to one file."""

    action: RecordAction = Field(description="Action actually performed")
    path: str = Field(description="Repository-relative path")
    requested: ActionKind = Field(description="Action declared by the Solution")
    coerced: bool = Field(default=False, description="Whether create/modify coercion occurred")


class DryRunEntry(BaseModel):
    """What a transaction would do for one operation, without touching disk."""

    path: str = Field(description="Repository-relative path")
    requested: ActionKind = Field(description="Action declared by the Solution")
    would_apply: ActionKind = Field(description="Action after coercion")
    valid: bool = Field(description="Whether the operation passes validation")
    reason: str = Field(default="", description="Rejection reason when invalid")
    current_size: int | None = Field(
        default=None, description="Current size in bytes if the target exists"
    )
