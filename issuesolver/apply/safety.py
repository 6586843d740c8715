"""Dangerous-content heuristics for proposed file bodies.

A best-effort, defense-in-depth filter over LLM-authored text. It is
trivially bypassed by a determined author (string concatenation, aliasing,
encodings) and is NOT a security boundary; the real boundary is the
permission scope of the process running the transaction.

Rules are (name, predicate) pairs evaluated in order. Add a heuristic
with register_rule() rather than editing the control flow.
"""

from __future__ import annotations

import re
from collections.abc import Callable

ContentRule = tuple[str, Callable[[str], bool]]


def _pattern(regex: str, flags: int = 0) -> Callable[[str], bool]:
    compiled = re.compile(regex, flags)
    return lambda text: compiled.search(text) is not None


DEFAULT_RULES: list[ContentRule] = [
    (
        "environment variable reassignment",
        _pattern(r"process\.env\.[\w]+\s*=(?!=)|os\.environ\[[^\]]+\]\s*=(?!=)"),
    ),
    (
        "process spawning",
        _pattern(
            r"require\(\s*['\"]child_process['\"]\s*\)"
            r"|\bsubprocess\.(?:Popen|run|call|check_call|check_output)\s*\("
            r"|\bos\.(?:system|popen)\s*\("
        ),
    ),
    (
        "filesystem write outside the project",
        _pattern(r"fs\.\w+Sync\(\s*['\"]/|\bopen\(\s*['\"]/(?:etc|usr|bin|boot|root|var)/"),
    ),
    ("dynamic eval", _pattern(r"(?<![\w.])eval\s*\(|(?<![\w.])exec\s*\(")),
    ("function constructor", _pattern(r"new\s+Function\s*\(")),
    (
        "directory traversal concatenation",
        _pattern(r"__dirname\s*\+\s*['\"]\.\.|os\.path\.join\([^)]*['\"]\.\.['\"]"),
    ),
]


class ContentScanner:
    """Evaluates content rules in order and reports the first match."""

    def __init__(self, rules: list[ContentRule] | None = None) -> None:
        self._rules: list[ContentRule] = list(DEFAULT_RULES if rules is None else rules)

    @property
    def rule_names(self) -> list[str]:
        return [name for name, _ in self._rules]

    def register_rule(self, name: str, predicate: Callable[[str], bool]) -> None:
        self._rules.append((name, predicate))

    def scan(self, content: str) -> str | None:
        """Return the name of the first matching rule, or None if clean."""
        for name, predicate in self._rules:
            if predicate(content):
                return name
        return None
