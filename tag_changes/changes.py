from __future__ import annotations

import logging
from typing import Iterator, Protocol

from tag_changes.errors import DataIntegrityError, TransportError
from tag_changes.github_client import GithubApiError
from tag_changes.globs import matches_any
from tag_changes.models import ChangeRecord, ChangeStatus, ClassifiedResult, PatternSet

logger = logging.getLogger(__name__)


class CompareSource(Protocol):
    def compare_refs(self, owner: str, repo: str, base: str, head: str) -> Iterator[list[ChangeRecord]]: ...


def fetch_changed_files(
    client: CompareSource,
    owner: str,
    repo: str,
    previous_tag: str | None,
    current_tag: str,
) -> list[ChangeRecord]:
    if previous_tag is None:
        return []

    records: list[ChangeRecord] = []
    try:
        for page in client.compare_refs(owner, repo, previous_tag, current_tag):
            records.extend(page)
    except GithubApiError as exc:
        raise TransportError(
            f"There was an error comparing {previous_tag}...{current_tag} for {owner}/{repo}",
            cause=exc,
        ) from exc

    logger.info("Found %d changed files", len(records))
    return records


def filter_changes(records: list[ChangeRecord], pattern_set: PatternSet) -> tuple[list[ChangeRecord], int]:
    """Keep records whose path matches at least one pattern.

    Returns the retained records in their original order and the number of
    records dropped.
    """
    kept = [r for r in records if matches_any(r.path, pattern_set)]
    removed = len(records) - len(kept)
    logger.debug("Filtered out %d file(s) using given glob", removed)
    logger.debug("There are %d files remaining", len(kept))
    return kept, removed


def classify_changes(records: list[ChangeRecord]) -> ClassifiedResult:
    buckets: dict[ChangeStatus, list[str]] = {status: [] for status in ChangeStatus}
    for record in records:
        status = ChangeStatus.parse(record.status)
        if status is None:
            raise DataIntegrityError(
                f'Unknown file modification status: "{record.status}" from "{record.path}"'
            )
        buckets[status].append(record.path)

    return ClassifiedResult(
        added=tuple(buckets[ChangeStatus.ADDED]),
        removed=tuple(buckets[ChangeStatus.REMOVED]),
        renamed=tuple(buckets[ChangeStatus.RENAMED]),
        modified=tuple(buckets[ChangeStatus.MODIFIED]),
    )
