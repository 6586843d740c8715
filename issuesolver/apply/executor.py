"""Mutation executor: applies one validated FileAction to disk.

Before dispatch, every operation passes through resolve_action(), which
applies the create/modify coercion rule. The upstream LLM frequently
mispredicts whether a file exists, so a create of an existing path is
treated as an explicit full replace and a modify of a missing path as a
create. This leniency is intentional and can be turned off by policy.

File bodies are read and written as UTF-8 bytes so line endings are
preserved exactly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath

from issuesolver.apply.errors import ExecutionError
from issuesolver.schemas.solution import (
    ActionKind,
    ExecutionRecord,
    FileAction,
    FullReplaceDirective,
    RecordAction,
    initial_body,
)

logger = logging.getLogger(__name__)

# (prefix, suffix) of a single-line comment per extension
_COMMENT_STYLES: dict[str, tuple[str, str]] = {
    ".js": ("// ", ""), ".jsx": ("// ", ""), ".ts": ("// ", ""), ".tsx": ("// ", ""),
    ".java": ("// ", ""), ".c": ("// ", ""), ".cpp": ("// ", ""), ".h": ("// ", ""),
    ".hpp": ("// ", ""), ".go": ("// ", ""), ".rs": ("// ", ""), ".scss": ("// ", ""),
    ".py": ("# ", ""), ".rb": ("# ", ""), ".yml": ("# ", ""), ".yaml": ("# ", ""),
    ".toml": ("# ", ""), ".ini": ("# ", ""), ".cfg": ("# ", ""),
    ".css": ("/* ", " */"),
    ".md": ("<!-- ", " -->"), ".html": ("<!-- ", " -->"), ".xml": ("<!-- ", " -->"),
    ".rst": (".. ", ""),
    ".txt": ("", ""),
}


@dataclass(frozen=True)
class ResolvedAction:
    """An operation after create/modify coercion."""

    kind: ActionKind
    requested: ActionKind
    content: object
    coerced: bool = False


def resolve_action(operation: FileAction, exists: bool, *, coerce: bool = True) -> ResolvedAction:
    """Normalize the requested action against the target's existence.

    create + existing file  -> modify with an explicit full-replace
    modify + missing file   -> create with the directive's text as body
    """
    if coerce and operation.action == ActionKind.CREATE and exists:
        content = operation.content if isinstance(operation.content, str) else ""
        return ResolvedAction(
            kind=ActionKind.MODIFY,
            requested=ActionKind.CREATE,
            content=FullReplaceDirective(content=content),
            coerced=True,
        )
    if (
        coerce
        and operation.action == ActionKind.MODIFY
        and not exists
        and operation.content is not None
        and not isinstance(operation.content, str)
    ):
        return ResolvedAction(
            kind=ActionKind.CREATE,
            requested=ActionKind.MODIFY,
            content=initial_body(operation.content),
            coerced=True,
        )
    return ResolvedAction(
        kind=operation.action,
        requested=operation.action,
        content=operation.content,
    )


def timestamp_marker(path: Path, when: datetime | None = None) -> str | None:
    """Build an 'Updated:' comment line in the file's comment syntax.

    Returns None for formats without comments (e.g. JSON).
    """
    style = _COMMENT_STYLES.get(path.suffix.lower())
    if style is None:
        return None
    stamp = (when or datetime.now(UTC)).isoformat()
    prefix, suffix = style
    return f"{prefix}Updated: {stamp}{suffix}\n"


def force_change(path: Path, body: str) -> str:
    """Return body altered just enough to produce a non-empty diff."""
    marker = timestamp_marker(path)
    if marker is None:
        return body + "\n"
    # Keep shebangs and XML declarations on the first line
    if body.startswith(("#!", "<?xml")):
        first, sep, rest = body.partition("\n")
        return first + (sep or "\n") + marker + rest
    return marker + body


class MutationExecutor:
    """Applies single file operations under a project root."""

    def __init__(self, root: Path, *, coerce_actions: bool = True) -> None:
        self._root = Path(root).resolve()
        self._coerce = coerce_actions

    def target(self, path: str) -> Path:
        """Absolute filesystem path for a repository-relative path."""
        return self._root / PurePosixPath(path.replace("\\", "/"))

    def resolve(self, operation: FileAction) -> ResolvedAction:
        return resolve_action(operation, self.target(operation.path).exists(), coerce=self._coerce)

    def apply(self, operation: FileAction) -> ExecutionRecord:
        """Apply one operation and describe what actually happened.

        Raises:
            ExecutionError: If the operation is malformed or the disk
                operation fails.
        """
        if operation.action == ActionKind.MODIFY and isinstance(operation.content, str):
            raise ExecutionError(
                operation.path,
                "Refusing plain-string modify content; a directive object is required",
            )

        target = self.target(operation.path)
        resolved = self.resolve(operation)
        if resolved.coerced:
            logger.info(
                "Coerced %s -> %s for %s (target %s)",
                resolved.requested, resolved.kind, operation.path,
                "exists" if resolved.kind == ActionKind.MODIFY else "is missing",
            )
        logger.info("%s: %s", resolved.kind, operation.path)

        try:
            if resolved.kind == ActionKind.CREATE:
                action = self._create(target, resolved)
            elif resolved.kind == ActionKind.MODIFY:
                action = self._modify(target, resolved, operation.path)
            elif resolved.kind == ActionKind.DELETE:
                action = self._delete(target, operation.path)
            else:
                raise ExecutionError(operation.path, f"Unknown action: {resolved.kind}")
        except (OSError, UnicodeDecodeError) as e:
            raise ExecutionError(operation.path, str(e)) from e

        return ExecutionRecord(
            action=action,
            path=operation.path,
            requested=operation.action,
            coerced=resolved.coerced,
        )

    def _create(self, target: Path, resolved: ResolvedAction) -> RecordAction:
        content = resolved.content if isinstance(resolved.content, str) else ""
        target.parent.mkdir(parents=True, exist_ok=True)

        if target.exists() and _read(target) == content:
            content = force_change(target, content)
            logger.info("Content identical, added timestamp marker: %s", target)

        _write(target, content)
        return RecordAction.CREATED

    def _modify(self, target: Path, resolved: ResolvedAction, rel_path: str) -> RecordAction:
        directive = resolved.content
        if directive is None or isinstance(directive, str) or not hasattr(directive, "apply"):
            raise ExecutionError(rel_path, "modify requires a directive object")

        current = _read(target)
        new_content = directive.apply(current)

        if (
            resolved.coerced
            and isinstance(directive, FullReplaceDirective)
            and new_content == current
        ):
            new_content = force_change(target, new_content)
            logger.info("Content identical, added timestamp marker: %s", target)

        _write(target, new_content)
        return RecordAction.MODIFIED

    def _delete(self, target: Path, rel_path: str) -> RecordAction:
        if not target.exists():
            logger.warning("File not found, skipping delete: %s", rel_path)
            return RecordAction.SKIPPED
        if not target.is_file():
            raise ExecutionError(rel_path, "Not a regular file")
        target.unlink()
        return RecordAction.DELETED


def _read(path: Path) -> str:
    return path.read_bytes().decode("utf-8")


def _write(path: Path, content: str) -> None:
    path.write_bytes(content.encode("utf-8"))
