import logging

import pytest

from tag_changes.config import Inputs, load_inputs
from tag_changes.errors import ConfigurationError, DataIntegrityError, NotFoundError, TransportError
from tag_changes.models import MatchOptions, PatternSet
from tag_changes.pipeline import (
    Failure,
    RunContext,
    Success,
    detect_changes,
    format_failure,
    run_pipeline,
)

from tests.fakes import FakeClient, api_error


def _inputs(tag, globs=("**",), options=None) -> Inputs:
    return Inputs(
        github_token="t0ken",
        tag=tag,
        owner="jsmith",
        repo="changes-since-last-tag-test-repo",
        pattern_set=PatternSet(patterns=tuple(globs), options=options or MatchOptions()),
    )


def _run(client, tag, globs=("**",), options=None):
    return detect_changes(lambda: _inputs(tag, globs, options), client_factory=lambda _: client)


def _outputs(outcome):
    assert isinstance(outcome, Success), getattr(outcome, "error", None)
    return outcome.context.report.to_outputs()


def test_first_tag_reports_nothing():
    client = FakeClient(tag_pages=[["v0.1.0"]])
    out = _outputs(_run(client, "v0.1.0"))
    assert out["first_tag"] == "true"
    assert out["any_changed"] == "false"
    assert out["files"] == out["added"] == out["removed"] == out["renamed"] == out["modified"] == ""
    assert [c[0] for c in client.calls] == ["list_tags"]


def test_single_added_file():
    client = FakeClient(tag_pages=[["v0.2.0", "v0.1.0"]], compare_pages=[[("src/b.txt", "added")]])
    out = _outputs(_run(client, "v0.2.0"))
    assert out["added"] == "src/b.txt"
    assert out["files"] == "src/b.txt"
    assert out["any_changed"] == "true"
    assert out["first_tag"] == "false"
    assert out["removed"] == out["renamed"] == out["modified"] == ""
    assert client.calls[-1] == ("compare_refs", "jsmith", "changes-since-last-tag-test-repo", "v0.1.0", "v0.2.0")


def test_second_pattern_still_matches():
    client = FakeClient(tag_pages=[["v0.2.0", "v0.1.0"]], compare_pages=[[("src/b.txt", "added")]])
    out = _outputs(_run(client, "v0.2.0", globs=("other/**", "src/**")))
    assert out["added"] == "src/b.txt"
    assert out["any_changed"] == "true"


def test_filtered_out_file_is_not_reported():
    client = FakeClient(tag_pages=[["v0.3.0", "v0.2.0"]], compare_pages=[[("a.txt", "modified")]])
    outcome = _run(client, "v0.3.0", globs=("src/**",))
    out = _outputs(outcome)
    assert out["modified"] == ""
    assert out["any_changed"] == "false"
    assert outcome.context.filtered_out == 1


@pytest.mark.parametrize("dot,expected", [(False, ""), (True, ".hide/me.txt")])
def test_dotfile_option(dot, expected):
    client = FakeClient(tag_pages=[["v2", "v1"]], compare_pages=[[(".hide/me.txt", "added")]])
    out = _outputs(_run(client, "v2", options=MatchOptions(dot=dot)))
    assert out["added"] == expected


def test_unknown_status_fails_without_report():
    client = FakeClient(tag_pages=[["v2", "v1"]], compare_pages=[[("a.txt", "added"), ("b.txt", "copied")]])
    outcome = _run(client, "v2")
    assert isinstance(outcome, Failure)
    assert isinstance(outcome.error, DataIntegrityError)
    assert outcome.stage == "classify_stage"
    assert '"copied"' in outcome.error.message and "b.txt" in outcome.error.message
    assert outcome.context.report is None
    assert outcome.context.classified is None


def test_missing_tag_stops_before_compare():
    client = FakeClient(tag_pages=[["v2", "v1"]])
    outcome = _run(client, "v3")
    assert isinstance(outcome.error, NotFoundError)
    assert "v2,v1" in outcome.error.message
    assert [c[0] for c in client.calls] == ["list_tags"]


def test_transport_error_is_failure():
    client = FakeClient(tag_pages=[["v2", "v1"]], compare_error=api_error())
    outcome = _run(client, "v2")
    assert isinstance(outcome.error, TransportError)
    assert outcome.context.previous_tag == "v1"


def test_loader_failure_skips_everything():
    def loader():
        raise ConfigurationError("No GitHub token found in process.env.GITHUB_TOKEN.")

    client = FakeClient()
    outcome = detect_changes(loader, client_factory=lambda _: client)
    assert isinstance(outcome.error, ConfigurationError)
    assert outcome.stage == "resolve_inputs"
    assert client.calls == []


def test_client_factory_error_is_configuration_error():
    def factory(_):
        raise ValueError("GitHub token is required")

    outcome = detect_changes(lambda: _inputs("v1"), client_factory=factory)
    assert isinstance(outcome.error, ConfigurationError)
    assert "GitHub client" in outcome.error.message


def test_context_fields_cannot_be_overwritten():
    ctx = RunContext().with_updates(previous_tag=None)
    assert "previous_tag" in ctx.assigned
    with pytest.raises(ValueError):
        ctx.with_updates(previous_tag="v1")
    with pytest.raises(ValueError):
        ctx.with_updates(nonsense=1)


def test_run_pipeline_stops_at_first_failure():
    seen = []

    def ok(ctx):
        seen.append("ok")
        return ctx.with_updates(current_tag="v1")

    def bad(ctx):
        raise NotFoundError("missing")

    def never(ctx):
        seen.append("never")
        return ctx

    outcome = run_pipeline([ok, bad, never])
    assert isinstance(outcome, Failure)
    assert outcome.stage == "bad"
    assert outcome.context.current_tag == "v1"
    assert seen == ["ok"]


def test_format_failure_with_serializable_cause():
    err = TransportError("There was an error comparing v1...v2", cause=api_error("Server Error"))
    text = format_failure(err)
    assert text.startswith("There was an error comparing v1...v2 (")
    assert '"status": 500' in text


def test_format_failure_without_cause():
    assert format_failure(NotFoundError("missing")) == "missing"


def test_format_failure_unserializable_cause_logs_note(caplog):
    err = ConfigurationError("bad client", cause=object())
    with caplog.at_level(logging.WARNING):
        assert format_failure(err) == "bad client"
    assert "Unable to serialize" in caplog.text


def test_numeric_yaml_tag_resolves_against_tag_list(tmp_path):
    cfg = tmp_path / "tag-changes.yml"
    cfg.write_text("tag: 1.0\nrepo: 2024\n")
    env = {"GITHUB_TOKEN": "t0ken", "GITHUB_REPOSITORY": "acme/widgets"}
    client = FakeClient(tag_pages=[["1.0", "0.9"]], compare_pages=[[("a.txt", "added")]])

    outcome = detect_changes(
        lambda: load_inputs(config_path=str(cfg), environ=env),
        client_factory=lambda _: client,
    )
    out = _outputs(outcome)
    assert out["added"] == "a.txt"
    assert client.calls[-1] == ("compare_refs", "acme", "2024", "0.9", "1.0")
