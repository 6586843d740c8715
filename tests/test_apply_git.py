"""Tests for git publishing."""

from __future__ import annotations

import re
import subprocess

import pytest

from issuesolver.apply.git import GitPublisher, branch_name


@pytest.fixture
def git_dir(tmp_path):
    """Create a temporary git repository."""
    subprocess.run(
        ["git", "init"], cwd=str(tmp_path),
        capture_output=True, check=True,
    )
    subprocess.run(
        ["git", "config", "user.email", "test@test.com"],
        cwd=str(tmp_path), capture_output=True, check=True,
    )
    subprocess.run(
        ["git", "config", "user.name", "Test"],
        cwd=str(tmp_path), capture_output=True, check=True,
    )
    (tmp_path / "README.md").write_text("# test\n")
    subprocess.run(
        ["git", "add", "README.md"],
        cwd=str(tmp_path), capture_output=True, check=True,
    )
    subprocess.run(
        ["git", "commit", "-m", "init"],
        cwd=str(tmp_path), capture_output=True, check=True,
    )
    return tmp_path


def _git(cwd, *args):
    return subprocess.run(
        ["git", *args], cwd=str(cwd), capture_output=True, text=True, check=True,
    ).stdout.strip()


class TestBranchName:
    def test_format(self):
        assert re.fullmatch(r"issue-solver/issue-42-\d+", branch_name(42))

    def test_custom_prefix(self):
        assert branch_name(7, prefix="bot").startswith("bot/issue-7-")


class TestGitPublisher:
    def test_is_repo(self, git_dir, tmp_path_factory):
        assert GitPublisher(git_dir).is_repo() is True
        assert GitPublisher(tmp_path_factory.mktemp("plain")).is_repo() is False

    def test_clean_tree_has_no_changes(self, git_dir):
        publisher = GitPublisher(git_dir)
        assert publisher.changed_paths() == []
        assert publisher.has_changes() is False

    def test_changed_paths(self, git_dir):
        (git_dir / "README.md").write_text("# changed\n")
        (git_dir / "new.py").write_text("x = 1\n")
        paths = GitPublisher(git_dir).changed_paths()
        assert sorted(paths) == ["README.md", "new.py"]

    def test_create_branch(self, git_dir):
        publisher = GitPublisher(git_dir)
        assert publisher.create_branch("issue-solver/issue-1") == "issue-solver/issue-1"
        assert _git(git_dir, "rev-parse", "--abbrev-ref", "HEAD") == "issue-solver/issue-1"

    def test_create_existing_branch_fails(self, git_dir):
        publisher = GitPublisher(git_dir)
        publisher.create_branch("dup")
        with pytest.raises(RuntimeError, match="Failed to create branch"):
            publisher.create_branch("dup")

    def test_commit_paths_includes_deletions(self, git_dir):
        (git_dir / "README.md").unlink()
        (git_dir / "new.py").write_text("x = 1\n")
        (git_dir / "untouched.txt").write_text("leave me")
        publisher = GitPublisher(git_dir)
        sha = publisher.commit_paths(["README.md", "new.py"], "fix: thing")
        assert sha == _git(git_dir, "rev-parse", "HEAD")
        files = _git(git_dir, "show", "--name-only", "--format=", "HEAD").splitlines()
        assert sorted(files) == ["README.md", "new.py"]
        assert publisher.changed_paths() == ["untouched.txt"]

    def test_commit_without_paths(self, git_dir):
        with pytest.raises(RuntimeError, match="Nothing to commit"):
            GitPublisher(git_dir).commit_paths([], "msg")

    def test_commit_with_nothing_staged_fails(self, git_dir):
        with pytest.raises(RuntimeError, match="Failed to commit"):
            GitPublisher(git_dir).commit_paths(["README.md"], "msg")

    def test_ensure_identity_keeps_existing(self, git_dir):
        GitPublisher(git_dir).ensure_identity()
        assert _git(git_dir, "config", "user.name") == "Test"

    def test_push_without_remote_fails(self, git_dir):
        with pytest.raises(RuntimeError, match="Failed to push"):
            GitPublisher(git_dir).push("main")
