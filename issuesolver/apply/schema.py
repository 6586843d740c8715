"""Structural gate for raw Solution documents.

validate() works on the decoded JSON before it becomes a typed Solution,
so it can report every problem at once with a message the LLM can act
on. It is advisory to the solver (which retries on failure) but is the
hard gate in front of the transaction coordinator.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from issuesolver.apply.errors import SchemaError
from issuesolver.schemas.solution import MODIFY_DIRECTIVE_TYPES, ActionKind, Solution

logger = logging.getLogger(__name__)

IMPLEMENTATION_WARN_LENGTH = 50
LEGACY_IMPLEMENTATION_PATH = "implementation.md"

STRING_MODIFY_MESSAGE = (
    "modify content must not be a plain string; use an object of the form "
    '{"type": "append|prepend|replace|full-replace", ...}'
)

_ACTIONS = {a.value for a in ActionKind}


@dataclass
class SchemaReport:
    """Outcome of validating one raw Solution document."""

    valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class SolutionSchemaValidator:
    """Checks the shape of LLM-produced Solution documents."""

    def validate(self, raw: Any) -> SchemaReport:
        """Collect every schema violation in a raw document."""
        if not isinstance(raw, dict):
            return SchemaReport(valid=False, errors=["Solution must be a JSON object"])

        errors: list[str] = []
        warnings: list[str] = []

        files = raw.get("files")
        if files is not None:
            if not isinstance(files, list):
                errors.append("files must be a list")
            else:
                for index, entry in enumerate(files):
                    errors.extend(self.validate_file_action(entry, index))

        implementation = raw.get("implementation")
        if isinstance(implementation, str) and len(implementation) > IMPLEMENTATION_WARN_LENGTH:
            warnings.append(
                "implementation is deprecated; describe concrete file operations in files[] instead"
            )

        return SchemaReport(valid=not errors, errors=errors, warnings=warnings)

    def validate_file_action(self, entry: Any, index: int) -> list[str]:
        prefix = f"files[{index}]"
        if not isinstance(entry, dict):
            return [f"{prefix}: must be an object"]

        errors: list[str] = []
        path = entry.get("path")
        if not isinstance(path, str) or not path.strip():
            errors.append(f"{prefix}: path is required")

        action = entry.get("action")
        if not action:
            errors.append(f"{prefix}: action is required")
        elif not isinstance(action, str) or action not in _ACTIONS:
            errors.append(f"{prefix}: action must be one of create/modify/delete")

        content = entry.get("content")
        if action == ActionKind.CREATE:
            if not content:
                errors.append(f"{prefix}: create requires content")
            elif not isinstance(content, str):
                errors.append(f"{prefix}: create content must be a string")
        elif action == ActionKind.MODIFY:
            if content is None and not entry.get("changes"):
                errors.append(f"{prefix}: modify requires content or changes")
            if content is not None:
                problem = self.validate_modify_content(content)
                if problem:
                    errors.append(f"{prefix}: {problem}")

        return errors

    def validate_modify_content(self, content: Any) -> str | None:
        """Return a problem description, or None for a well-formed directive."""
        if isinstance(content, str):
            return STRING_MODIFY_MESSAGE
        if not isinstance(content, dict):
            return "modify content must be a directive object"

        kind = content.get("type")
        if not kind:
            return "content.type is required (append/prepend/replace/full-replace)"
        if not isinstance(kind, str) or kind not in MODIFY_DIRECTIVE_TYPES:
            return "content.type must be one of append/prepend/replace/full-replace"

        if kind == "replace":
            if not isinstance(content.get("from"), str) or not isinstance(content.get("to"), str):
                return "replace requires string content.from and content.to"
        elif not isinstance(content.get("content"), str):
            return f"{kind} requires string content.content"
        return None

    def to_solution(self, raw: Any) -> Solution:
        """Validate and parse a raw document into a typed Solution.

        Raises:
            SchemaError: If the document fails validation or parsing.
        """
        report = self.validate(raw)
        for warning in report.warnings:
            logger.warning(warning)
        if not report.valid:
            raise SchemaError(report.errors)
        try:
            return Solution.model_validate(_without_delete_content(raw))
        except ValidationError as e:
            raise SchemaError([_format_error(err) for err in e.errors()]) from e


def transform_legacy_solution(raw: dict[str, Any]) -> dict[str, Any]:
    """Move a legacy implementation string into a create of implementation.md.

    Returns a new document; the input is not modified.
    """
    implementation = raw.get("implementation")
    if not isinstance(implementation, str) or not implementation:
        return raw

    logger.warning("Legacy implementation field found, converting to a files[] entry")
    transformed = copy.deepcopy(raw)
    files = transformed.get("files")
    if not isinstance(files, list):
        files = []
    files.append({
        "path": LEGACY_IMPLEMENTATION_PATH,
        "action": "create",
        "changes": "Saved implementation notes",
        "content": implementation,
    })
    transformed["files"] = files
    del transformed["implementation"]
    return transformed


def _without_delete_content(raw: dict[str, Any]) -> dict[str, Any]:
    """Shallow copy of raw with the ignored content of delete entries dropped."""
    files = raw.get("files")
    if not isinstance(files, list):
        return raw
    cleaned = [
        {key: value for key, value in entry.items() if key != "content"}
        if entry.get("action") == ActionKind.DELETE
        else entry
        for entry in files
    ]
    return {**raw, "files": cleaned}


def _format_error(error: dict[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error.get('msg', 'invalid')}" if location else error.get("msg", "invalid")
