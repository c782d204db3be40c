"""Thin GitHub REST client for the two calls the change detector needs.

Both calls are paginated: each yields one page at a time, following the
``rel="next"`` Link header until the API stops returning one.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator
from urllib.parse import quote

import requests

from tag_changes import __version__
from tag_changes.models import ChangeRecord, Tag

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
PER_PAGE = 100


class GithubApiError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": str(self),
            "status": self.status_code,
            "details": self.details,
        }


class GithubClient:
    def __init__(
        self,
        token: str,
        api_url: str = DEFAULT_API_URL,
        timeout_seconds: int = 30,
        session: requests.Session | None = None,
    ):
        if not token:
            raise ValueError("GitHub token is required")

        self.api_url = (api_url or DEFAULT_API_URL).rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": f"tag-changes/{__version__}",
            }
        )

    def _get(self, url: str, params: dict[str, Any] | None = None) -> requests.Response:
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            raise GithubApiError(f"Request to {url} failed: {exc}") from exc

        if resp.status_code >= 400:
            try:
                body: Any = resp.json()
            except ValueError:
                body = (resp.text or "")[:500]
            raise GithubApiError(
                f"GitHub API returned HTTP {resp.status_code} for {url}",
                status_code=resp.status_code,
                details=body,
            )
        return resp

    def paginate(self, path: str) -> Iterator[Any]:
        """Yield the decoded JSON body of every page, in arrival order."""
        url: str | None = f"{self.api_url}{path}"
        params: dict[str, Any] | None = {"per_page": PER_PAGE}
        page = 0
        while url:
            resp = self._get(url, params=params)
            page += 1
            try:
                data = resp.json()
            except ValueError as exc:
                raise GithubApiError(
                    f"GitHub API returned a non-JSON body for {url}",
                    status_code=resp.status_code,
                ) from exc
            logger.debug("Fetched page %d of %s", page, path)
            yield data

            url = (resp.links.get("next") or {}).get("url")
            # the next link already carries the query string
            params = None

    def list_tags(self, owner: str, repo: str) -> Iterator[list[Tag]]:
        for data in self.paginate(f"/repos/{quote(owner)}/{quote(repo)}/tags"):
            if not isinstance(data, list):
                raise GithubApiError("Unexpected tag listing payload", details=data)
            try:
                tags = [
                    Tag(name=item["name"], commit_sha=(item.get("commit") or {}).get("sha"))
                    for item in data
                ]
            except (KeyError, TypeError, AttributeError) as exc:
                raise GithubApiError(f"Malformed tag entry: {exc}", details=data) from exc
            yield tags

    def compare_refs(self, owner: str, repo: str, base: str, head: str) -> Iterator[list[ChangeRecord]]:
        basehead = f"{quote(base, safe='')}...{quote(head, safe='')}"
        for data in self.paginate(f"/repos/{quote(owner)}/{quote(repo)}/compare/{basehead}"):
            if not isinstance(data, dict):
                raise GithubApiError("Unexpected comparison payload", details=data)
            try:
                records = [
                    ChangeRecord(
                        path=item["filename"],
                        status=item["status"],
                        previous_path=item.get("previous_filename"),
                    )
                    for item in data.get("files") or []
                ]
            except (KeyError, TypeError, AttributeError) as exc:
                raise GithubApiError(f"Malformed file entry: {exc}", details=data) from exc
            yield records
