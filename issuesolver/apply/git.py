"""Git operations for publishing an applied solution.

Creates the fix branch, commits the touched paths, and pushes. Uses
subprocess directly to avoid a dependency on GitPython.
"""

from __future__ import annotations

import logging
import subprocess
import time
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_USER_NAME = "GitHub Action"
DEFAULT_USER_EMAIL = "action@github.com"


def branch_name(issue_number: int, prefix: str = "issue-solver") -> str:
    """Unique branch name for one solve attempt."""
    return f"{prefix}/issue-{issue_number}-{int(time.time() * 1000)}"


class GitPublisher:
    """Branch, commit, and push operations under a working tree."""

    def __init__(self, repo_dir: Path, *, timeout: int = 60) -> None:
        self._cwd = str(repo_dir)
        self._timeout = timeout

    def _run(self, *args: str, check: bool = True) -> subprocess.CompletedProcess:
        """Run a git command and return the result."""
        cmd = ["git", *args]
        return subprocess.run(
            cmd,
            cwd=self._cwd,
            capture_output=True,
            text=True,
            check=check,
            timeout=self._timeout,
        )

    def is_repo(self) -> bool:
        result = self._run("rev-parse", "--is-inside-work-tree", check=False)
        return result.returncode == 0

    def changed_paths(self) -> list[str]:
        """Paths reported by `git status --porcelain`."""
        result = self._run("status", "--porcelain", check=False)
        paths: list[str] = []
        for line in result.stdout.splitlines():
            entry = line[3:].strip()
            if " -> " in entry:
                entry = entry.split(" -> ", 1)[1]
            if entry:
                paths.append(entry.strip('"'))
        return paths

    def has_changes(self) -> bool:
        return bool(self.changed_paths())

    def ensure_identity(self) -> None:
        """Configure a committer identity when none is set."""
        for key, default in (("user.name", DEFAULT_USER_NAME), ("user.email", DEFAULT_USER_EMAIL)):
            current = self._run("config", key, check=False)
            if current.returncode != 0 or not current.stdout.strip():
                self._run("config", key, default)
                logger.info("Set git %s to %s", key, default)

    def create_branch(self, name: str) -> str:
        """Create and checkout a new branch.

        Raises:
            RuntimeError: If branch creation fails.
        """
        try:
            self._run("checkout", "-b", name)
            logger.info("Created branch: %s", name)
            return name
        except subprocess.CalledProcessError as e:
            raise RuntimeError(f"Failed to create branch '{name}': {e.stderr}") from e

    def commit_paths(self, paths: list[str], message: str) -> str:
        """Stage the given paths (including deletions) and commit.

        Returns:
            The commit SHA.

        Raises:
            RuntimeError: If staging or committing fails.
        """
        if not paths:
            raise RuntimeError("Nothing to commit: no paths given")
        try:
            self._run("add", "-A", "--", *paths)
            self._run("commit", "-m", message)
            result = self._run("rev-parse", "HEAD")
            sha = result.stdout.strip()
            logger.info("Committed %d files: %s", len(paths), sha[:12])
            return sha
        except subprocess.CalledProcessError as e:
            raise RuntimeError(f"Failed to commit: {e.stderr}") from e

    def push(self, branch: str, remote: str = "origin") -> None:
        """Push a branch and set its upstream.

        Raises:
            RuntimeError: If the push fails.
        """
        try:
            self._run("push", "-u", remote, branch)
            logger.info("Pushed %s to %s", branch, remote)
        except subprocess.CalledProcessError as e:
            raise RuntimeError(f"Failed to push '{branch}': {e.stderr}") from e
