"""Path and content validation for proposed file operations.

Decides whether a single FileAction may touch the working tree. Pure:
never reads file contents, never writes. Expected-invalid input yields a
ValidationResult; only programmer errors raise.
"""

from __future__ import annotations

import ast
import json
import tomllib
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path, PurePosixPath, PureWindowsPath

import esprima
import yaml
from esprima.error_handler import Error as EsprimaError

from issuesolver.apply.safety import ContentScanner
from issuesolver.schemas.config import SafetyPolicy
from issuesolver.schemas.solution import ActionKind, FileAction

BACKUP_DIR_NAME = ".issue-solver-backups"

ALLOWED_EXTENSIONS = frozenset({
    ".js", ".jsx", ".ts", ".tsx",
    ".json", ".md", ".txt", ".yml", ".yaml",
    ".css", ".scss", ".html", ".xml",
    ".py", ".rb", ".go", ".java", ".cpp", ".c", ".h", ".hpp", ".rs",
    ".toml", ".rst", ".ini", ".cfg",
})

PROTECTED_DIRS = frozenset({".git", "node_modules", ".venv", "venv", "__pycache__", BACKUP_DIR_NAME})

PROTECTED_FILES = frozenset({
    "package-lock.json", "yarn.lock", "pnpm-lock.yaml",
    "poetry.lock", "pipfile.lock", "uv.lock",
    ".gitignore", ".npmrc",
})

CRITICAL_FILES = frozenset({"package.json", "pyproject.toml", "README.md", "LICENSE"})


@dataclass
class ValidationResult:
    """Outcome of validating one operation."""

    valid: bool = True
    reason: str = ""


def _ok() -> ValidationResult:
    return ValidationResult()


def _reject(reason: str) -> ValidationResult:
    return ValidationResult(valid=False, reason=reason)


# ── Syntax checkers ───────────────────────────────────────────────


def _check_python(content: str) -> None:
    ast.parse(content)


def _check_json(content: str) -> None:
    json.loads(content)


def _check_toml(content: str) -> None:
    tomllib.loads(content)


def _check_yaml(content: str) -> None:
    list(yaml.safe_load_all(content))


def _check_javascript(content: str) -> None:
    # Scripts first, then ES modules; only reject what neither goal accepts
    try:
        esprima.parseScript(content, {"jsx": True})
    except EsprimaError as script_error:
        try:
            esprima.parseModule(content, {"jsx": True})
        except EsprimaError:
            raise script_error from None


SYNTAX_CHECKERS: dict[str, tuple[str, Callable[[str], None]]] = {
    ".py": ("Python", _check_python),
    ".json": ("JSON", _check_json),
    ".toml": ("TOML", _check_toml),
    ".yml": ("YAML", _check_yaml),
    ".yaml": ("YAML", _check_yaml),
    ".js": ("JavaScript", _check_javascript),
    ".jsx": ("JavaScript", _check_javascript),
}


class FileValidator:
    """Validates FileActions against a project root and a safety policy.

    Checks, first failure wins:
    1. Path containment and protected locations
    2. Extension allow-list
    3. Critical-file delete guard
    4. Modify must carry a directive
    5. Dangerous-content heuristics (best-effort)
    6. Syntax of plain-string content by file type
    """

    def __init__(
        self,
        root: Path,
        policy: SafetyPolicy | None = None,
        scanner: ContentScanner | None = None,
    ) -> None:
        self._root = Path(root).resolve()
        self._policy = policy or SafetyPolicy()
        self._scanner = scanner or ContentScanner()

    @property
    def root(self) -> Path:
        return self._root

    def validate(self, operation: FileAction) -> ValidationResult:
        """Validate a single operation.

        Raises:
            TypeError: If operation is None.
        """
        if operation is None:
            raise TypeError("operation must be a FileAction, got None")

        for check in (self.check_path, self.check_file_type):
            result = check(operation.path)
            if not result.valid:
                return result

        if operation.action == ActionKind.DELETE:
            name = PurePosixPath(_posix(operation.path)).name
            if name in CRITICAL_FILES:
                return _reject(f"Cannot delete critical file: {name}")
            return _ok()

        if operation.action == ActionKind.MODIFY:
            if operation.content is None:
                return _reject("modify requires a content directive (append/prepend/replace/full-replace)")
            if isinstance(operation.content, str):
                return _reject(
                    "modify content must be a directive object, not a plain string; "
                    'use {"type": "append|prepend|replace|full-replace", ...}'
                )
            if self._policy.scan_directives:
                for text in operation.content.payload():
                    result = self.check_content_safety(text)
                    if not result.valid:
                        return result
            return _ok()

        if isinstance(operation.content, str) and operation.content:
            result = self.check_content_safety(operation.content)
            if not result.valid:
                return result
            if self._policy.check_syntax:
                return self.check_syntax(operation.content, operation.path)
        elif operation.content is not None and not isinstance(operation.content, str):
            return _reject("create content must be a plain string")

        return _ok()

    def check_path(self, path: str) -> ValidationResult:
        """Reject paths that escape the root or reach protected locations."""
        if not path or not path.strip():
            return _reject("Path is empty")
        if "\x00" in path:
            return _reject("Path contains a NUL byte")

        posix = PurePosixPath(_posix(path))
        if ".." in posix.parts:
            return _reject("Path contains parent directory reference")
        if posix.is_absolute() or PureWindowsPath(path).drive:
            return _reject("Path must be relative to the project root")

        try:
            resolved = (self._root / posix).resolve()
        except (OSError, RuntimeError) as e:
            return _reject(f"Path validation error: {e}")

        if resolved == self._root or not resolved.is_relative_to(self._root):
            return _reject("Path is outside project directory")

        # Check both the literal path and the symlink-resolved one
        for parts in (posix.parts, resolved.relative_to(self._root).parts):
            reason = _protected_reason(parts)
            if reason:
                return _reject(reason)

        return _ok()

    def check_file_type(self, path: str) -> ValidationResult:
        """Reject files without an allow-listed extension."""
        suffix = PurePosixPath(_posix(path)).suffix.lower()
        if not suffix:
            return _reject("File must have an extension")
        if suffix not in ALLOWED_EXTENSIONS:
            return _reject(f"File type {suffix} is not allowed")
        return _ok()

    def check_content_safety(self, content: str) -> ValidationResult:
        """Run the dangerous-content heuristics."""
        match = self._scanner.scan(content)
        if match:
            return _reject(f"Dangerous pattern detected: {match}")
        return _ok()

    def check_syntax(self, content: str, path: str) -> ValidationResult:
        """Parse content according to the file's extension."""
        suffix = PurePosixPath(_posix(path)).suffix.lower()
        checker = SYNTAX_CHECKERS.get(suffix)
        if checker is None:
            return _ok()
        language, parse = checker
        try:
            parse(content)
        except (SyntaxError, ValueError, yaml.YAMLError, EsprimaError) as e:
            return _reject(f"{language} syntax error: {_first_line(e)}")
        return _ok()


def _posix(path: str) -> str:
    return path.replace("\\", "/")


def _protected_reason(parts: tuple[str, ...]) -> str:
    lowered = [p.lower() for p in parts]
    for part in lowered[:-1]:
        if part in PROTECTED_DIRS:
            return f"Access to protected path: {part}"
    name = lowered[-1] if lowered else ""
    if name in PROTECTED_DIRS or name in PROTECTED_FILES:
        return f"Access to protected path: {name}"
    if name == ".env" or name.startswith(".env."):
        return f"Access to protected path: {name}"
    if lowered[:2] == [".github", "workflows"] and name.endswith((".yml", ".yaml")):
        return "GitHub Actions workflow files require the 'workflows' permission"
    return ""


def _first_line(error: Exception) -> str:
    text = str(error).strip()
    return text.splitlines()[0] if text else type(error).__name__
