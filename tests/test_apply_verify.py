"""Tests for the post-apply test runner."""

from __future__ import annotations

import shlex
import sys

from issuesolver.apply.verify import MAX_OUTPUT_CHARS, TestRunner

PYTHON = shlex.quote(sys.executable)


class TestTestRunner:
    def test_no_test_command(self, tmp_path):
        run = TestRunner(tmp_path, "").run()
        assert run.passed is True
        assert run.output == ""
        assert run.returncode is None

    def test_passing_command(self, tmp_path):
        run = TestRunner(tmp_path, f"{PYTHON} -c \"print('ok')\"").run()
        assert run.passed is True
        assert run.returncode == 0
        assert "ok" in run.output

    def test_failing_command(self, tmp_path):
        run = TestRunner(tmp_path, f"{PYTHON} -c \"import sys; print('boom'); sys.exit(3)\"").run()
        assert run.passed is False
        assert run.returncode == 3
        assert "boom" in run.output

    def test_runs_in_working_directory(self, tmp_path):
        (tmp_path / "marker.txt").write_text("here")
        run = TestRunner(tmp_path, f"{PYTHON} -c \"print(open('marker.txt').read())\"").run()
        assert run.passed is True
        assert "here" in run.output

    def test_command_not_found(self, tmp_path):
        run = TestRunner(tmp_path, "nonexistent_command_xyz").run()
        assert run.passed is False
        assert "could not be started" in run.output

    def test_timeout(self, tmp_path):
        run = TestRunner(
            tmp_path, f"{PYTHON} -c \"import time; time.sleep(5)\"", timeout=1,
        ).run()
        assert run.passed is False
        assert run.timed_out is True
        assert "timed out" in run.output

    def test_output_keeps_tail(self, tmp_path):
        command = f"{PYTHON} -c \"print('a' * 9000 + 'END')\""
        run = TestRunner(tmp_path, command).run()
        assert len(run.output) == MAX_OUTPUT_CHARS
        assert run.output.rstrip().endswith("END")
