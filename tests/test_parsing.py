"""Tests for issuesolver.solver.parsing."""

from __future__ import annotations

import pytest

from issuesolver.apply.errors import ResponseParseError
from issuesolver.solver.parsing import extract_code_blocks, extract_json, fallback_solution


class TestExtractJson:
    def test_plain_object(self):
        assert extract_json('{"type": "fix", "files": []}') == {"type": "fix", "files": []}

    def test_fenced_block(self):
        text = 'Here is the fix:\n```json\n{"type": "feature"}\n```\nDone.'
        assert extract_json(text) == {"type": "feature"}

    def test_brace_span_in_prose(self):
        text = 'Sure. {"type": "fix", "confidence": "high"} Hope this helps.'
        assert extract_json(text)["confidence"] == "high"

    def test_empty(self):
        with pytest.raises(ResponseParseError, match="Empty response"):
            extract_json("   ")

    def test_invalid(self):
        with pytest.raises(ResponseParseError, match="JSON parse failed"):
            extract_json("no json here {broken")

    def test_array_rejected(self):
        with pytest.raises(ResponseParseError, match="expected a JSON object"):
            extract_json("[1, 2, 3]")


class TestExtractCodeBlocks:
    def test_language_and_content(self):
        blocks = extract_code_blocks("text\n```python\nprint('hi')\n```\n")
        assert len(blocks) == 1
        assert blocks[0].language == "python"
        assert blocks[0].content == "print('hi')"
        assert blocks[0].filepath == ""

    def test_hint_before_fence(self):
        text = "# file: src/app.py\n```python\nx = 1\n```"
        assert extract_code_blocks(text)[0].filepath == "src/app.py"

    def test_hint_inside_fence_is_stripped(self):
        text = "```ts\n// filepath: src/index.ts\nexport const a = 1;\n```"
        block = extract_code_blocks(text)[0]
        assert block.filepath == "src/index.ts"
        assert block.content == "export const a = 1;"

    def test_no_blocks(self):
        assert extract_code_blocks("") == []
        assert extract_code_blocks("just prose") == []


class TestFallbackSolution:
    def test_python_block_becomes_main_py(self):
        raw = fallback_solution("Fix it like this:\n```python\nprint('fixed')\n```")
        assert raw["degraded"] is True
        assert raw["confidence"] == "medium"
        assert raw["files"] == [
            {
                "path": "main.py",
                "action": "create",
                "changes": "Created from a code block in a non-JSON response",
                "content": "print('fixed')\n",
            }
        ]

    def test_filepath_hint_wins(self):
        raw = fallback_solution("# file: lib/util.py\n```python\nX = 1\n```")
        assert raw["files"][0]["path"] == "lib/util.py"

    def test_at_most_one_file(self):
        text = "```js\nconst a = 1;\n```\n```python\nb = 2\n```"
        raw = fallback_solution(text)
        assert len(raw["files"]) == 1
        assert raw["files"][0]["path"] == "index.js"

    def test_unknown_language_without_hint(self):
        raw = fallback_solution("```rust\nfn main() {}\n```")
        assert raw["files"] == []

    def test_prose_only(self):
        raw = fallback_solution("I could not find a fix.")
        assert raw["files"] == []
        assert raw["description"] == "I could not find a fix."

    def test_description_truncated(self):
        raw = fallback_solution("x" * 300)
        assert raw["description"] == "x" * 200 + "..."

    def test_solution_type(self):
        assert fallback_solution("", solution_type="feature")["type"] == "feature"
