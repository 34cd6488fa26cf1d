"""GitHub pull request comment sink.

Each comment carries a hidden purpose marker.  Posting again with the same
purpose edits the earlier comment rather than adding a new one.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"


class ReportingError(RuntimeError):
    """Raised when a comment cannot be delivered."""


def purpose_marker(purpose: str) -> str:
    return f"<!-- groundskeeper-purpose: {purpose} -->"


class GitHubCommentSink:
    """Posts comments on a GitHub pull request.

    Parameters
    ----------
    repo_slug:
        ``owner/name`` of the repository.
    pull_number:
        Number of the pull request to comment on.
    token:
        Token with permission to comment on the repository.
    api_url:
        Base URL of the GitHub REST API.
    client:
        Pre-built ``httpx.Client``, mainly for tests.  A client passed in
        is left open by ``close()``.
    """

    def __init__(
        self,
        repo_slug: str,
        pull_number: int,
        token: str,
        *,
        api_url: str = DEFAULT_API_URL,
        client: httpx.Client | None = None,
    ) -> None:
        self._repo_slug = repo_slug
        self._pull_number = pull_number
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client(timeout=30.0)
        self._api_url = api_url.rstrip("/")
        self._headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {token}",
        }

    @property
    def sink_name(self) -> str:
        return "github"

    def close(self) -> None:
        """Close the HTTP client if this sink created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> GitHubCommentSink:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def post(self, body: str, *, purpose: str) -> str | None:
        marker = purpose_marker(purpose)
        text = f"{body}\n\n{marker}"
        try:
            existing = self._find_comment(marker)
            if existing is not None:
                response = self._client.patch(
                    f"{self._api_url}/repos/{self._repo_slug}/issues/comments/{existing}",
                    json={"body": text},
                    headers=self._headers,
                )
            else:
                response = self._client.post(
                    f"{self._api_url}/repos/{self._repo_slug}/issues/"
                    f"{self._pull_number}/comments",
                    json={"body": text},
                    headers=self._headers,
                )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ReportingError(
                f"failed to comment on {self._repo_slug}#{self._pull_number}: {exc}"
            ) from exc

        url = response.json().get("html_url")
        logger.info(
            "%s comment on %s#%s",
            "Updated" if existing is not None else "Posted",
            self._repo_slug,
            self._pull_number,
        )
        return url

    def _find_comment(self, marker: str) -> int | None:
        url: str | None = (
            f"{self._api_url}/repos/{self._repo_slug}/issues/"
            f"{self._pull_number}/comments"
        )
        params: dict[str, Any] | None = {"per_page": 100}
        while url:
            response = self._client.get(url, params=params, headers=self._headers)
            response.raise_for_status()
            for comment in response.json():
                if marker in (comment.get("body") or ""):
                    return int(comment["id"])
            url = response.links.get("next", {}).get("url")
            params = None
        return None
