from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Protocol, Iterator

from tag_changes.errors import NotFoundError, TransportError
from tag_changes.github_client import GithubApiError
from tag_changes.models import Tag

logger = logging.getLogger(__name__)


class TagSource(Protocol):
    def list_tags(self, owner: str, repo: str) -> Iterator[list[Tag]]: ...


@dataclass(frozen=True)
class TagResolution:
    current_tag: str
    previous_tag: str | None

    @property
    def is_first_tag(self) -> bool:
        return self.previous_tag is None


def fetch_tags(client: TagSource, owner: str, repo: str) -> list[Tag]:
    """Return every tag of the repository, newest first, across all pages."""
    tags: list[Tag] = []
    try:
        for page in client.list_tags(owner, repo):
            tags.extend(page)
    except GithubApiError as exc:
        raise TransportError(f"Unable to get tags from {owner}/{repo}", cause=exc) from exc
    return tags


def find_previous_tag(tags: Iterable[Tag], target: str) -> TagResolution:
    # Tags arrive newest first, so the entry after the target is the one
    # released before it. The order is trusted as-is.
    names = [t.name for t in tags]
    try:
        index = names.index(target)
    except ValueError:
        raise NotFoundError(f'Unable to find "{target}" in "{",".join(names)}"') from None

    previous = names[index + 1] if index + 1 < len(names) else None
    if previous is None:
        logger.info("%s is the first tag", target)
    else:
        logger.info("Comparing %s...%s", previous, target)
    return TagResolution(current_tag=target, previous_tag=previous)


def resolve_previous_tag(client: TagSource, owner: str, repo: str, target: str) -> TagResolution:
    tags = fetch_tags(client, owner, repo)
    logger.debug("Found %d tag(s) in %s/%s", len(tags), owner, repo)
    return find_previous_tag(tags, target)
