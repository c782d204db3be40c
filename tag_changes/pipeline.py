"""Run the change detection stages in order over an accumulating context.

Every stage takes the current ``RunContext`` and returns a new one with extra
fields set, or raises a ``TagChangesError``. ``run_pipeline`` stops at the
first failure and returns it as a ``Failure`` together with the context built
so far; nothing after the failing stage runs.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields, replace
from functools import partial
from typing import Any, Callable, Sequence, Union

from tag_changes.changes import classify_changes, fetch_changed_files, filter_changes
from tag_changes.config import Inputs
from tag_changes.errors import ConfigurationError, TagChangesError
from tag_changes.github_client import GithubClient
from tag_changes.models import ChangeRecord, ChangeReport, ClassifiedResult
from tag_changes.reporters import build_report
from tag_changes.tags import resolve_previous_tag

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunContext:
    inputs: Inputs | None = None
    client: Any = None
    current_tag: str | None = None
    previous_tag: str | None = None
    is_first_tag: bool | None = None
    changed_files: list[ChangeRecord] | None = None
    filtered_files: list[ChangeRecord] | None = None
    filtered_out: int | None = None
    classified: ClassifiedResult | None = None
    report: ChangeReport | None = None
    assigned: frozenset[str] = field(default_factory=frozenset)

    def with_updates(self, **kwargs: Any) -> "RunContext":
        known = {f.name for f in fields(self)} - {"assigned"}
        for name in kwargs:
            if name not in known:
                raise ValueError(f"Unknown context field: {name}")
            if name in self.assigned:
                raise ValueError(f"Context field already set: {name}")
        return replace(self, assigned=self.assigned | frozenset(kwargs), **kwargs)


@dataclass(frozen=True)
class Success:
    context: RunContext
    ok: bool = True


@dataclass(frozen=True)
class Failure:
    error: TagChangesError
    context: RunContext
    stage: str
    ok: bool = False


Outcome = Union[Success, Failure]
Stage = Callable[[RunContext], RunContext]
ClientFactory = Callable[[Inputs], Any]


def default_client_factory(inputs: Inputs) -> GithubClient:
    return GithubClient(
        inputs.github_token,
        api_url=inputs.api_url,
        timeout_seconds=inputs.timeout_seconds,
    )


def resolve_inputs(ctx: RunContext, loader: Callable[[], Inputs]) -> RunContext:
    inputs = loader()
    logger.info('Looking for changes in "%s"', ",".join(inputs.pattern_set.patterns))
    return ctx.with_updates(inputs=inputs)


def init_client(ctx: RunContext, factory: ClientFactory = default_client_factory) -> RunContext:
    try:
        client = factory(ctx.inputs)
    except (ValueError, TypeError) as exc:
        raise ConfigurationError("There was an error creating GitHub client.", cause=exc) from exc
    return ctx.with_updates(client=client)


def resolve_tags(ctx: RunContext) -> RunContext:
    inputs = ctx.inputs
    resolution = resolve_previous_tag(ctx.client, inputs.owner, inputs.repo, inputs.tag)
    return ctx.with_updates(
        current_tag=resolution.current_tag,
        previous_tag=resolution.previous_tag,
        is_first_tag=resolution.is_first_tag,
    )


def fetch_changes(ctx: RunContext) -> RunContext:
    records = fetch_changed_files(
        ctx.client,
        ctx.inputs.owner,
        ctx.inputs.repo,
        ctx.previous_tag,
        ctx.current_tag,
    )
    return ctx.with_updates(changed_files=records)


def filter_stage(ctx: RunContext) -> RunContext:
    kept, removed = filter_changes(ctx.changed_files, ctx.inputs.pattern_set)
    return ctx.with_updates(filtered_files=kept, filtered_out=removed)


def classify_stage(ctx: RunContext) -> RunContext:
    return ctx.with_updates(classified=classify_changes(ctx.filtered_files))


def report_stage(ctx: RunContext) -> RunContext:
    report = build_report(
        ctx.classified,
        first_tag=bool(ctx.is_first_tag),
        current_tag=ctx.current_tag,
        previous_tag=ctx.previous_tag,
    )
    return ctx.with_updates(report=report)


def _stage_name(stage: Stage) -> str:
    func = stage.func if isinstance(stage, partial) else stage
    return getattr(func, "__name__", repr(func))


def run_pipeline(stages: Sequence[Stage], ctx: RunContext | None = None) -> Outcome:
    ctx = ctx or RunContext()
    for stage in stages:
        name = _stage_name(stage)
        try:
            ctx = stage(ctx)
        except TagChangesError as exc:
            logger.debug("Stage %s failed: %s", name, exc.message)
            return Failure(error=exc, context=ctx, stage=name)
    return Success(context=ctx)


def build_stages(
    loader: Callable[[], Inputs],
    client_factory: ClientFactory = default_client_factory,
) -> list[Stage]:
    return [
        partial(resolve_inputs, loader=loader),
        partial(init_client, factory=client_factory),
        resolve_tags,
        fetch_changes,
        filter_stage,
        classify_stage,
        report_stage,
    ]


def detect_changes(
    loader: Callable[[], Inputs],
    client_factory: ClientFactory = default_client_factory,
) -> Outcome:
    return run_pipeline(build_stages(loader, client_factory))


def _cause_payload(cause: Any) -> Any:
    to_dict = getattr(cause, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return cause


def format_failure(error: TagChangesError) -> str:
    """Render a failure as its message plus the serialized cause, when possible."""
    if error.cause is None:
        return error.message

    try:
        serialized = json.dumps(_cause_payload(error.cause))
    except (TypeError, ValueError):
        logger.warning("Unable to serialize error cause: %r", error.cause)
        return error.message
    return f"{error.message} ({serialized})"
