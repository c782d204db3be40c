from __future__ import annotations

from functools import partial
from pathlib import Path
import logging
import os

import typer

from tag_changes.config import load_env_file, load_inputs
from tag_changes.errors import ConfigurationError
from tag_changes.pipeline import detect_changes, format_failure
from tag_changes.reporters import (
    append_markdown_summary,
    format_set_output_commands,
    write_github_output,
    write_json_report,
)

app = typer.Typer(help="tag-changes: list files changed since the previous release tag")


def configure_logging(verbose: bool) -> None:
    debug = verbose or os.getenv("RUNNER_DEBUG") == "1"
    logging.basicConfig(format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(logging.DEBUG if debug else logging.INFO)


@app.callback()
def main() -> None:
    """tag-changes command group."""


@app.command()
def detect(
    tag: str | None = typer.Option(None, help="Tag to inspect; defaults to the tag in GITHUB_REF"),
    glob: str | None = typer.Option(None, help="Comma-separated glob patterns (default: **)"),
    owner: str | None = typer.Option(None, help="Repository owner; defaults to GITHUB_REPOSITORY"),
    repo: str | None = typer.Option(None, help="Repository name; defaults to GITHUB_REPOSITORY"),
    token: str | None = typer.Option(None, help="GitHub token; defaults to GITHUB_TOKEN"),
    config: str | None = typer.Option(None, help="Optional YAML file with defaults"),
    dot: bool | None = typer.Option(None, "--dot/--no-dot", help="Let wildcards match dotfiles"),
    nobrace: bool | None = typer.Option(None, "--nobrace/--brace", help="Disable {a,b} expansion"),
    noglobstar: bool | None = typer.Option(None, "--noglobstar/--globstar", help="Treat ** like *"),
    nocase: bool | None = typer.Option(None, "--nocase/--case", help="Case-insensitive matching"),
    nonull: bool | None = typer.Option(None, "--nonull/--no-nonull", help="Return the pattern when nothing matches"),
    match_base: bool | None = typer.Option(None, "--matchbase/--no-matchbase", help="Match slash-less patterns against basenames"),
    nocomment: bool | None = typer.Option(None, "--nocomment/--comment", help="Treat leading # literally"),
    nonegate: bool | None = typer.Option(None, "--nonegate/--negate", help="Treat leading ! literally"),
    json_out: str | None = typer.Option(None, help="Optional JSON report output path"),
    summary: bool = typer.Option(True, help="Append a Markdown summary to GITHUB_STEP_SUMMARY when set"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose)
    load_env_file(Path.cwd() / ".env")

    overrides = {
        "dot": dot,
        "nobrace": nobrace,
        "noglobstar": noglobstar,
        "nocase": nocase,
        "nonull": nonull,
        "match_base": match_base,
        "nocomment": nocomment,
        "nonegate": nonegate,
    }
    loader = partial(
        load_inputs,
        tag=tag,
        glob=glob,
        owner=owner,
        repo=repo,
        token=token,
        option_overrides={k: v for k, v in overrides.items() if v is not None},
        config_path=config,
    )

    outcome = detect_changes(loader)
    if not outcome.ok:
        typer.secho(f"::error::{format_failure(outcome.error)}", fg=typer.colors.RED)
        raise typer.Exit(code=2 if isinstance(outcome.error, ConfigurationError) else 1)

    report = outcome.context.report
    outputs = report.to_outputs()

    output_file = os.getenv("GITHUB_OUTPUT")
    if output_file:
        write_github_output(outputs, Path(output_file))
    else:
        for line in format_set_output_commands(outputs):
            typer.echo(line)

    if json_out:
        write_json_report(report, Path(json_out))
        typer.echo(f"Wrote: {json_out}")

    summary_file = os.getenv("GITHUB_STEP_SUMMARY")
    if summary and summary_file:
        append_markdown_summary(report, Path(summary_file))

    counts = report.summary()
    typer.echo(
        f"Changes total={counts['total']} added={counts['added']} removed={counts['removed']} renamed={counts['renamed']} modified={counts['modified']} first_tag={outputs['first_tag']}"
    )


if __name__ == "__main__":
    app()
