from __future__ import annotations

import json
import uuid
from pathlib import Path

from tag_changes.models import CATEGORY_ORDER, ChangeReport, ClassifiedResult


def build_report(
    classified: ClassifiedResult,
    first_tag: bool,
    current_tag: str | None = None,
    previous_tag: str | None = None,
) -> ChangeReport:
    files = classified.all_paths()
    return ChangeReport(
        added=list(classified.added),
        removed=list(classified.removed),
        renamed=list(classified.renamed),
        modified=list(classified.modified),
        files=files,
        any_changed=any(classified.paths(status) for status in CATEGORY_ORDER),
        first_tag=first_tag,
        current_tag=current_tag,
        previous_tag=previous_tag,
    )


def write_json_report(report: ChangeReport, path: Path) -> None:
    path.write_text(json.dumps(report.to_dict(), indent=2))


def build_markdown_report(report: ChangeReport) -> str:
    s = report.summary()
    if report.first_tag:
        compared = f"`{report.current_tag}` is the first tag"
    else:
        compared = f"`{report.previous_tag}...{report.current_tag}`"
    lines = [
        "# Changes since last tag",
        "",
        f"- **Compared:** {compared}",
        f"- **Any Changed:** {'yes' if report.any_changed else 'no'}",
        f"- **Added/Removed/Renamed/Modified:** {s['added']}/{s['removed']}/{s['renamed']}/{s['modified']}",
        "",
    ]

    for status in CATEGORY_ORDER:
        paths = getattr(report, status.value)
        if not paths:
            continue
        lines.extend([f"## {status.value.capitalize()}", ""])
        lines.extend(f"- `{p}`" for p in paths)
        lines.append("")

    if not report.any_changed:
        lines.append("No matching files changed.")

    return "\n".join(lines)


def append_markdown_summary(report: ChangeReport, path: Path) -> None:
    with path.open("a", encoding="utf-8") as fh:
        fh.write(build_markdown_report(report) + "\n")


def format_output_lines(outputs: dict[str, str]) -> list[str]:
    """Render outputs in the GITHUB_OUTPUT file format."""
    lines: list[str] = []
    for key, value in outputs.items():
        if "\n" in value:
            delimiter = f"ghadelimiter_{uuid.uuid4()}"
            lines.extend([f"{key}<<{delimiter}", value, delimiter])
        else:
            lines.append(f"{key}={value}")
    return lines


def write_github_output(outputs: dict[str, str], path: Path) -> None:
    with path.open("a", encoding="utf-8") as fh:
        for line in format_output_lines(outputs):
            fh.write(line + "\n")


def format_set_output_commands(outputs: dict[str, str]) -> list[str]:
    return [f"::set-output name={key}::{value}" for key, value in outputs.items()]
