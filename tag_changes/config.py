from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
import os
import re

import yaml

from tag_changes.errors import ConfigurationError
from tag_changes.github_client import DEFAULT_API_URL
from tag_changes.models import MatchOptions, PatternSet


DEFAULT_GLOB = "**"
TAG_REF_RE = re.compile(r"^refs/tags/(.+)$")

TRUE_VALUES = {"true", "True", "TRUE"}
FALSE_VALUES = {"false", "False", "FALSE"}

# MatchOptions field -> action input name
OPTION_INPUTS = {
    "dot": "dot",
    "nobrace": "nobrace",
    "noglobstar": "noglobstar",
    "nocase": "nocase",
    "nonull": "nonull",
    "match_base": "matchbase",
    "nocomment": "nocomment",
    "nonegate": "nonegate",
}


@dataclass
class Inputs:
    github_token: str
    tag: str
    owner: str
    repo: str
    pattern_set: PatternSet
    api_url: str = DEFAULT_API_URL
    timeout_seconds: int = 30

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


def load_env_file(path: Path) -> None:
    """Load simple KEY=VALUE pairs from a .env file without overriding existing env."""
    if not path.exists() or not path.is_file():
        return

    for raw in path.read_text(errors="ignore").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def load_config_file(path: str | None) -> dict[str, Any]:
    if not path:
        return {}

    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        data = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid config file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def file_value(cfg: Mapping[str, Any], key: str) -> str | None:
    """Read a scalar from the config file as text; YAML may hand back numbers."""
    value = cfg.get(key)
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        raise ConfigurationError(f"Config key '{key}' must be a scalar, got {type(value).__name__}")
    return str(value).strip()


def file_globs(cfg: Mapping[str, Any]) -> str | list[str] | None:
    value = cfg.get("glob")
    if value is None or isinstance(value, list):
        if value and any(isinstance(item, (dict, list)) for item in value):
            raise ConfigurationError("Config key 'glob' must be a string or a list of strings")
        return value
    return file_value(cfg, "glob")


def file_match_options(cfg: Mapping[str, Any]) -> Mapping[str, Any]:
    value = cfg.get("options")
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"Config key 'options' must be a mapping, got {type(value).__name__}")
    return value


def get_input(name: str, environ: Mapping[str, str]) -> str:
    """Read an action input the way the runner exposes it (INPUT_<NAME>)."""
    key = f"INPUT_{name.replace(' ', '_').upper()}"
    return (environ.get(key) or "").strip()


def parse_bool(name: str, value: Any) -> bool:
    if value is None or value == "":
        return False
    if isinstance(value, bool):
        return value
    text = str(value).strip()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ConfigurationError(
        f'Input "{name}" does not meet YAML 1.2 "Core Schema" specification: {value!r}. '
        "Support boolean input list: `true | True | TRUE | false | False | FALSE`"
    )


def split_globs(value: str | list[str] | None) -> list[str]:
    if value is None or value == "":
        value = DEFAULT_GLOB
    items = value if isinstance(value, list) else str(value).split(",")
    return [str(item).strip() for item in items if str(item).strip()]


def resolve_tag(explicit: str | None, environ: Mapping[str, str]) -> str:
    if explicit:
        return explicit

    ref = environ.get("GITHUB_REF", "")
    match = TAG_REF_RE.match(ref)
    if match is None:
        raise ConfigurationError(
            f'Unable to match tag version number in "{ref}". Are you sure this is a tag event?'
        )
    return match.group(1)


def resolve_repository(
    owner: str | None,
    repo: str | None,
    environ: Mapping[str, str],
) -> tuple[str, str]:
    ctx_owner, _, ctx_repo = (environ.get("GITHUB_REPOSITORY") or "").partition("/")
    owner = owner or ctx_owner
    repo = repo or ctx_repo
    if not owner or not repo:
        raise ConfigurationError(
            "Unable to determine repository; pass --owner/--repo or set GITHUB_REPOSITORY=owner/repo."
        )
    return owner, repo


def load_match_options(
    overrides: Mapping[str, Any] | None,
    file_options: Mapping[str, Any] | None,
    environ: Mapping[str, str],
) -> MatchOptions:
    values: dict[str, bool] = {}
    overrides = overrides or {}
    file_options = file_options or {}
    for attr, input_name in OPTION_INPUTS.items():
        raw = overrides.get(attr)
        if raw is None or raw == "":
            raw = get_input(input_name, environ)
        if raw is None or raw == "":
            raw = file_options.get(attr, file_options.get(input_name))
        values[attr] = parse_bool(input_name, raw)
    return MatchOptions(**values)


def load_inputs(
    tag: str | None = None,
    glob: str | None = None,
    owner: str | None = None,
    repo: str | None = None,
    token: str | None = None,
    option_overrides: Mapping[str, Any] | None = None,
    config_path: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> Inputs:
    env = os.environ if environ is None else environ

    github_token = token or env.get("GITHUB_TOKEN")
    if not github_token:
        raise ConfigurationError("No GitHub token found in process.env.GITHUB_TOKEN.")

    file_cfg = load_config_file(config_path)

    resolved_tag = resolve_tag(tag or get_input("tag", env) or file_value(file_cfg, "tag"), env)

    raw_glob = glob or get_input("glob", env) or file_globs(file_cfg)
    globs = split_globs(raw_glob)

    resolved_owner, resolved_repo = resolve_repository(
        owner or get_input("owner", env) or file_value(file_cfg, "owner"),
        repo or get_input("repo", env) or file_value(file_cfg, "repo"),
        env,
    )

    options = load_match_options(option_overrides, file_match_options(file_cfg), env)

    raw_timeout = env.get("TAG_CHANGES_TIMEOUT_SECONDS") or file_value(file_cfg, "timeout_seconds") or 30
    try:
        timeout_seconds = int(raw_timeout)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid timeout: {raw_timeout!r}") from exc
    if timeout_seconds <= 0:
        raise ConfigurationError(f"Timeout must be a positive number of seconds, got {timeout_seconds}")

    return Inputs(
        github_token=github_token,
        tag=resolved_tag,
        owner=resolved_owner,
        repo=resolved_repo,
        pattern_set=PatternSet(patterns=tuple(globs), options=options),
        api_url=env.get("GITHUB_API_URL") or DEFAULT_API_URL,
        timeout_seconds=timeout_seconds,
    )
