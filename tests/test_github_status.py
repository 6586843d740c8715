"""Tests for issuesolver.github.status."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from issuesolver.apply.errors import GitHubError
from issuesolver.github.status import (
    STATUS_MARKER,
    StatusCommentManager,
    StatusPhase,
    render_status,
)

_WHEN = datetime(2024, 5, 1, 12, 30, 0, tzinfo=UTC)


def _client(comments=None) -> MagicMock:
    client = MagicMock()
    client.list_comments = AsyncMock(return_value=comments or [])
    client.create_comment = AsyncMock(return_value={"id": 77})
    client.update_comment = AsyncMock(return_value={"id": 77})
    return client


class TestRenderStatus:
    def test_marker_and_timestamp(self):
        body = render_status(StatusPhase.STARTING, when=_WHEN)
        assert body.startswith(STATUS_MARKER)
        assert "*Last updated: 2024-05-01 12:30:00 UTC*" in body
        assert "Preparing to analyze the issue..." in body

    def test_progress(self):
        body = render_status(StatusPhase.IMPLEMENTING, when=_WHEN)
        assert "- [x] Issue analysis" in body
        assert "- [x] Solution planning" in body
        assert "- [ ] Implementation (in progress)" in body
        assert "- [ ] Testing\n" in body

    def test_completed_checks_everything(self):
        body = render_status(StatusPhase.COMPLETED, when=_WHEN)
        assert body.count("- [x]") == 5
        assert "in progress" not in body

    def test_error_has_no_progress(self):
        body = render_status(StatusPhase.ERROR, "boom", {"Error": "ValueError"}, when=_WHEN)
        assert "**Status:** boom" in body
        assert "**Progress:**" not in body
        assert "**Error:** ValueError" in body


class TestStatusCommentManager:
    @pytest.mark.asyncio()
    async def test_creates_then_updates(self):
        client = _client()
        manager = StatusCommentManager(client, 3)
        await manager.update(StatusPhase.STARTING)
        await manager.update(StatusPhase.ANALYZING)

        client.create_comment.assert_awaited_once()
        assert client.create_comment.await_args.args[0] == 3
        client.update_comment.assert_awaited_once()
        assert client.update_comment.await_args.args[0] == 77
        assert client.list_comments.await_count == 1
        assert manager.comment_id == 77

    @pytest.mark.asyncio()
    async def test_reuses_existing_comment(self):
        comments = [
            {"id": 10, "body": f"{STATUS_MARKER}\nold"},
            {"id": 11, "body": "unrelated"},
            {"id": 12, "body": f"{STATUS_MARKER}\nnewer"},
        ]
        client = _client(comments)
        manager = StatusCommentManager(client, 3)
        await manager.update(StatusPhase.PLANNING, "Calling model")

        client.create_comment.assert_not_awaited()
        assert client.update_comment.await_args.args[0] == 12
        assert "Calling model" in client.update_comment.await_args.args[1]

    @pytest.mark.asyncio()
    async def test_update_failure_creates_new_comment(self):
        client = _client([{"id": 10, "body": STATUS_MARKER}])
        client.update_comment = AsyncMock(side_effect=GitHubError("gone", status=404))
        manager = StatusCommentManager(client, 3)
        await manager.update(StatusPhase.TESTING)

        client.create_comment.assert_awaited_once()
        assert "could not be updated" in client.create_comment.await_args.args[1]
        assert manager.comment_id == 77

    @pytest.mark.asyncio()
    async def test_failures_never_raise(self):
        client = _client()
        client.list_comments = AsyncMock(side_effect=GitHubError("down"))
        client.create_comment = AsyncMock(side_effect=GitHubError("down"))
        manager = StatusCommentManager(client, 3)
        await manager.update(StatusPhase.ERROR, "failed")
        assert manager.comment_id is None

    @pytest.mark.asyncio()
    async def test_without_client(self):
        manager = StatusCommentManager(None, 3)
        await manager.update(StatusPhase.COMPLETED)
        assert manager.comment_id is None
