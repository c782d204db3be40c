from __future__ import annotations

from dataclasses import dataclass, asdict, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ChangeStatus(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    RENAMED = "renamed"
    MODIFIED = "modified"

    @classmethod
    def parse(cls, value: str) -> "ChangeStatus | None":
        try:
            return cls(value)
        except ValueError:
            return None


# Category order used for the combined file list and every output.
CATEGORY_ORDER: tuple[ChangeStatus, ...] = (
    ChangeStatus.ADDED,
    ChangeStatus.REMOVED,
    ChangeStatus.RENAMED,
    ChangeStatus.MODIFIED,
)


@dataclass(frozen=True)
class Tag:
    name: str
    commit_sha: str | None = None


@dataclass(frozen=True)
class ChangeRecord:
    path: str
    status: str
    previous_path: str | None = None


@dataclass(frozen=True)
class MatchOptions:
    dot: bool = False
    nobrace: bool = False
    noglobstar: bool = False
    nocase: bool = False
    nonull: bool = False
    match_base: bool = False
    nocomment: bool = False
    nonegate: bool = False

    @classmethod
    def names(cls) -> list[str]:
        return [f.name for f in fields(cls)]


@dataclass(frozen=True)
class PatternSet:
    patterns: tuple[str, ...]
    options: MatchOptions = field(default_factory=MatchOptions)


@dataclass(frozen=True)
class ClassifiedResult:
    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    renamed: tuple[str, ...] = ()
    modified: tuple[str, ...] = ()

    def paths(self, status: ChangeStatus) -> tuple[str, ...]:
        return getattr(self, status.value)

    def all_paths(self) -> list[str]:
        out: list[str] = []
        for status in CATEGORY_ORDER:
            out.extend(self.paths(status))
        return out


def _flag(value: bool) -> str:
    return "true" if value else "false"


@dataclass(frozen=True)
class ChangeReport:
    added: list[str]
    removed: list[str]
    renamed: list[str]
    modified: list[str]
    files: list[str]
    any_changed: bool
    first_tag: bool
    current_tag: str | None = None
    previous_tag: str | None = None

    def summary(self) -> dict[str, int]:
        counts = {status.value: len(getattr(self, status.value)) for status in CATEGORY_ORDER}
        counts["total"] = len(self.files)
        return counts

    def to_outputs(self) -> dict[str, str]:
        """Flatten the report into the string-typed step outputs."""
        out = {status.value: ", ".join(getattr(self, status.value)) for status in CATEGORY_ORDER}
        out["files"] = ", ".join(self.files)
        out["any_changed"] = _flag(self.any_changed)
        out["first_tag"] = _flag(self.first_tag)
        return out

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["generated_at"] = datetime.now(timezone.utc).isoformat()
        out["summary"] = self.summary()
        return out
