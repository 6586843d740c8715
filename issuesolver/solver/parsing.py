"""Turn raw LLM response text into a Solution document.

Parsing cascade:
1. Direct JSON parse of the whole response
2. First ```json fenced block, then the first brace-delimited span
3. Degraded fallback rebuilt from fenced code blocks (see fallback_solution)
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from issuesolver.apply.errors import ResponseParseError

logger = logging.getLogger(__name__)

_FENCED_JSON_RE = re.compile(r"```json\s*(.*?)\s*```", re.DOTALL)
_BRACE_SPAN_RE = re.compile(r"\{.*\}", re.DOTALL)

# Regex for extracting fenced code blocks from markdown
_CODE_BLOCK_RE = re.compile(
    r"```([\w+-]+)?[ \t]*\n"  # opening fence with optional language
    r"(.*?)"                  # code content (non-greedy)
    r"\n?```",                # closing fence
    re.DOTALL,
)

# Filepath hints like: # file: path/to/file.py  or  // filepath: src/main.ts
_FILEPATH_RE = re.compile(r"(?:#|//)\s*(?:file(?:path)?|File(?:path)?)\s*:\s*(\S+)")

# Where a hint-less code block lands in the fallback, by fence language
FALLBACK_PATHS: dict[str, str] = {
    "python": "main.py",
    "py": "main.py",
    "typescript": "index.ts",
    "ts": "index.ts",
    "javascript": "index.js",
    "js": "index.js",
}

FALLBACK_DESCRIPTION_CHARS = 200


@dataclass
class CodeBlock:
    """A fenced code block found in free text."""

    language: str
    content: str
    filepath: str = ""


def extract_json(text: str) -> dict[str, Any]:
    """Decode the first JSON object found in a response.

    Raises:
        ResponseParseError: If no candidate decodes to a JSON object.
    """
    if not text or not text.strip():
        raise ResponseParseError("Empty response; expected a JSON object")

    candidates = [text.strip()]
    fenced = _FENCED_JSON_RE.search(text)
    if fenced:
        candidates.append(fenced.group(1))
    span = _BRACE_SPAN_RE.search(text)
    if span:
        candidates.append(span.group(0))

    last_error = "no JSON object found"
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as e:
            last_error = str(e)
            continue
        if isinstance(data, dict):
            return data
        last_error = f"expected a JSON object, got {type(data).__name__}"

    raise ResponseParseError(f"JSON parse failed: {last_error}")


def extract_code_blocks(text: str) -> list[CodeBlock]:
    """Find fenced code blocks and any filepath hints attached to them.

    A hint is taken from a comment on the line just before the fence or
    on the first line inside it; an inner hint line is stripped from the
    content.
    """
    if not text:
        return []

    blocks: list[CodeBlock] = []
    for match in _CODE_BLOCK_RE.finditer(text):
        language = (match.group(1) or "").lower()
        content = match.group(2)
        filepath = ""

        preceding = text[:match.start()].rstrip().split("\n")
        if preceding:
            hint = _FILEPATH_RE.search(preceding[-1].strip())
            if hint:
                filepath = hint.group(1)

        if not filepath and content.strip():
            first, _, rest = content.strip().partition("\n")
            hint = _FILEPATH_RE.search(first)
            if hint:
                filepath = hint.group(1)
                content = rest

        blocks.append(CodeBlock(language=language, content=content.strip(), filepath=filepath))
    return blocks


def fallback_solution(text: str, solution_type: str = "fix") -> dict[str, Any]:
    """Best-effort Solution document for a response that is not JSON.

    At most one create is produced, from the first non-empty code block
    that has a filepath hint or a language with a default path. The
    result is flagged degraded.
    """
    text = text or ""
    blocks = [b for b in extract_code_blocks(text) if b.content and b.language != "json"]

    files: list[dict[str, str]] = []
    for block in blocks:
        path = block.filepath or FALLBACK_PATHS.get(block.language, "")
        if path:
            files.append({
                "path": path,
                "action": "create",
                "changes": "Created from a code block in a non-JSON response",
                "content": block.content + "\n",
            })
            break

    description = text[:FALLBACK_DESCRIPTION_CHARS]
    if len(text) > FALLBACK_DESCRIPTION_CHARS:
        description += "..."

    logger.warning(
        "Response was not valid JSON; using degraded fallback with %d file(s)", len(files),
    )
    return {
        "type": solution_type,
        "confidence": "medium",
        "analysis": "Response could not be parsed as JSON; key information was extracted instead.",
        "planning": ["Analyze the response", "Identify the required implementation", "Apply code"],
        "description": description,
        "files": files,
        "tests": "Run the test suite after applying.",
        "report": "Degraded fallback solution built from a non-JSON response.",
        "degraded": True,
    }
