"""Minimal GitHub REST client.

Uses only urllib; blocking calls run in the default executor so the
event loop is never blocked.
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from issuesolver.apply.errors import GitHubError

logger = logging.getLogger(__name__)

_PER_PAGE = 100  # GitHub's maximum
_TIMEOUT_S = 30
_API_VERSION = "2022-11-28"


class GitHubClient:
    """Issue, comment, and pull request calls for one repository."""

    def __init__(self, token: str, repository: str, api_url: str = "https://api.github.com") -> None:
        owner, _, repo = repository.partition("/")
        if not owner or not repo:
            raise ValueError(f"Repository must be in owner/repo form, got {repository!r}")
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._owner = owner
        self._repo = repo

    @property
    def repository(self) -> str:
        return f"{self._owner}/{self._repo}"

    # ── Issues ────────────────────────────────────────────────

    async def get_issue(self, number: int) -> dict[str, Any]:
        return await self._call("GET", f"issues/{number}")

    async def list_comments(self, number: int) -> list[dict[str, Any]]:
        """All comments on an issue, oldest first, across every page."""
        comments: list[dict[str, Any]] = []
        page = 1
        while True:
            batch = await self._call(
                "GET",
                f"issues/{number}/comments",
                params={"per_page": _PER_PAGE, "page": page, "sort": "created", "direction": "asc"},
            )
            if not batch:
                break
            comments.extend(batch)
            if len(batch) < _PER_PAGE:
                break
            page += 1
        logger.debug("Fetched %d comments for #%d", len(comments), number)
        return comments

    async def create_comment(self, number: int, body: str) -> dict[str, Any]:
        return await self._call("POST", f"issues/{number}/comments", payload={"body": body})

    async def update_comment(self, comment_id: int, body: str) -> dict[str, Any]:
        return await self._call("PATCH", f"issues/comments/{comment_id}", payload={"body": body})

    # ── Pull requests ─────────────────────────────────────────

    async def create_pull_request(self, title: str, head: str, base: str, body: str) -> dict[str, Any]:
        return await self._call(
            "POST", "pulls", payload={"title": title, "head": head, "base": base, "body": body},
        )

    # ── Transport ─────────────────────────────────────────────

    def _build_request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> urllib.request.Request:
        url = f"{self._api_url}/repos/{self._owner}/{self._repo}/{path}"
        if params:
            url += "?" + urllib.parse.urlencode(params)
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": _API_VERSION,
            "User-Agent": "issue-solver",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"
        return urllib.request.Request(url, data=data, headers=headers, method=method)

    async def _call(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        req = self._build_request(method, path, payload, params)
        # Run blocking HTTP call in thread pool to avoid blocking the loop
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._send_request, req)

    @staticmethod
    def _send_request(req: urllib.request.Request) -> Any:
        """Synchronous HTTP send (runs in executor)."""
        try:
            with urllib.request.urlopen(req, timeout=_TIMEOUT_S) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as e:
            detail = e.read().decode("utf-8", errors="replace")[:200]
            raise GitHubError(
                f"{req.get_method()} {req.full_url} failed with {e.code}: {detail}", status=e.code,
            ) from e
        except (urllib.error.URLError, OSError, TimeoutError) as e:
            raise GitHubError(f"{req.get_method()} {req.full_url} failed: {e}") from e
        if not raw:
            return None
        return json.loads(raw.decode("utf-8"))
