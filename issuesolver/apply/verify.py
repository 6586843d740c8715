"""Post-apply verification.

Runs the project's test command after a solution has been applied.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# Keep the tail of the output; failures usually print their summary last
MAX_OUTPUT_CHARS = 8000


@dataclass
class TestRun:
    """Result of one test command invocation."""

    __test__ = False

    passed: bool
    output: str
    returncode: int | None = None
    timed_out: bool = False


class TestRunner:
    """Runs a test command via subprocess with a timeout."""

    __test__ = False

    def __init__(self, cwd: Path, test_command: str, *, timeout: int = 300) -> None:
        self._cwd = cwd
        self._test_command = test_command
        self._timeout = timeout

    def run(self) -> TestRun:
        """Run the configured test command. An empty command passes."""
        if not self._test_command.strip():
            return TestRun(passed=True, output="")

        try:
            args = shlex.split(self._test_command)
            result = subprocess.run(
                args,
                cwd=str(self._cwd),
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning("Test command timed out after %ds", self._timeout)
            return TestRun(
                passed=False,
                output=f"Test command timed out after {self._timeout} seconds",
                timed_out=True,
            )
        except (FileNotFoundError, PermissionError) as e:
            msg = f"Test command could not be started ({self._test_command}): {e}"
            logger.error(msg)
            return TestRun(passed=False, output=msg)

        output = (result.stdout + result.stderr)[-MAX_OUTPUT_CHARS:]
        passed = result.returncode == 0
        if passed:
            logger.info("Tests passed")
        else:
            logger.warning("Tests failed (exit code %d)", result.returncode)
        return TestRun(passed=passed, output=output, returncode=result.returncode)
