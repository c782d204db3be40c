"""Glob matching for changed file paths.

Patterns follow the shell-style conventions used by most CI tooling: ``*``,
``?`` and ``[...]`` match within a single path segment, ``**`` as a whole
segment spans any number of directories, and ``{a,b}`` / ``{1..3}`` expand
into alternatives. Each behaviour can be switched through ``MatchOptions``.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Iterable

from tag_changes.models import MatchOptions, PatternSet

logger = logging.getLogger(__name__)

GLOBSTAR = object()

_RANGE_RE = re.compile(r"^(-?\d+)\.\.(-?\d+)$|^([A-Za-z])\.\.([A-Za-z])$")
_PADDED_RE = re.compile(r"^-?0\d")


def _find_brace_group(pattern: str) -> tuple[int, int, list[str]] | None:
    """Locate the first top-level ``{...}`` group and split its alternatives."""
    depth = 0
    start = -1
    parts: list[str] = []
    last = 0
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "{":
            if depth == 0:
                start = i
                last = i + 1
                parts = []
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                parts.append(pattern[last:i])
                return start, i, parts
        elif ch == "," and depth == 1:
            parts.append(pattern[last:i])
            last = i + 1
        i += 1
    return None


def _expand_range(body: str) -> list[str] | None:
    m = _RANGE_RE.match(body)
    if not m:
        return None
    if m.group(1) is not None:
        lo_s, hi_s = m.group(1), m.group(2)
        lo, hi = int(lo_s), int(hi_s)
        # "{01..10}" keeps its zero padding, width includes any sign
        width = max(len(lo_s), len(hi_s)) if any(_PADDED_RE.match(s) for s in (lo_s, hi_s)) else 0
        step = 1 if hi >= lo else -1
        return [_pad(n, width) for n in range(lo, hi + step, step)]
    lo_c, hi_c = ord(m.group(3)), ord(m.group(4))
    step = 1 if hi_c >= lo_c else -1
    return [chr(c) for c in range(lo_c, hi_c + step, step)]


def _pad(n: int, width: int) -> str:
    sign = "-" if n < 0 else ""
    return sign + str(abs(n)).zfill(width - len(sign))


def expand_braces(pattern: str) -> list[str]:
    group = _find_brace_group(pattern)
    if group is None:
        return [pattern]

    start, end, parts = group
    prefix, suffix = pattern[:start], pattern[end + 1:]

    if len(parts) == 1:
        alternatives = _expand_range(parts[0])
        if alternatives is None:
            # "{x}" is not an alternation, the braces stay literal
            return [
                prefix + "{" + inner + "}" + rest
                for inner in expand_braces(parts[0])
                for rest in expand_braces(suffix)
            ]
    else:
        alternatives = []
        for part in parts:
            alternatives.extend(expand_braces(part))

    out: list[str] = []
    for alt in alternatives:
        out.extend(expand_braces(prefix + alt + suffix))
    return out


def _translate_segment(segment: str, options: MatchOptions) -> str:
    """Translate one path segment of a glob into a regular expression."""
    out: list[str] = []
    has_magic = False
    i = 0
    n = len(segment)
    while i < n:
        ch = segment[i]
        if ch == "\\" and i + 1 < n:
            out.append(re.escape(segment[i + 1]))
            i += 2
            continue
        if ch == "*":
            has_magic = True
            while i + 1 < n and segment[i + 1] == "*":
                i += 1
            out.append("[^/]*")
        elif ch == "?":
            has_magic = True
            out.append("[^/]")
        elif ch == "[":
            j = i + 1
            if j < n and segment[j] in "!^":
                j += 1
            if j < n and segment[j] == "]":
                j += 1
            while j < n and segment[j] != "]":
                j += 1
            if j >= n:
                out.append(re.escape(ch))
            else:
                body = segment[i + 1:j]
                negate = body[:1] in ("!", "^")
                if negate:
                    body = body[1:]
                body = body.replace("\\", "\\\\")
                has_magic = True
                out.append(f"[{'^/' if negate else ''}{body}]")
                i = j
        else:
            out.append(re.escape(ch))
        i += 1

    regex = "".join(out)
    if has_magic and segment[0] in "*?[":
        if options.dot:
            regex = r"(?!\.{1,2}$)" + regex
        else:
            regex = r"(?!\.)" + regex
    if has_magic and segment.strip("*") == "":
        # a bare star needs at least one character
        regex = r"(?=.)" + regex
    return regex


class Pattern:
    """A single compiled glob, possibly negated, possibly a comment."""

    def __init__(self, raw: str, options: MatchOptions | None = None):
        self.raw = raw
        self.options = options or MatchOptions()
        self.negated = False
        self.comment = False
        self._alternatives: list[list[object]] = []
        self._compile()

    def _compile(self) -> None:
        pattern = self.raw
        if not self.options.nocomment and pattern.startswith("#"):
            self.comment = True
            return

        if not self.options.nonegate:
            bangs = len(pattern) - len(pattern.lstrip("!"))
            self.negated = bangs % 2 == 1
            pattern = pattern[bangs:]

        expanded = [pattern] if self.options.nobrace else expand_braces(pattern)
        flags = re.IGNORECASE if self.options.nocase else 0
        for alt in expanded:
            segments: list[object] = []
            for part in alt.split("/"):
                if part == "**" and not self.options.noglobstar:
                    # consecutive globstars are equivalent to one
                    if segments and segments[-1] is GLOBSTAR:
                        continue
                    segments.append(GLOBSTAR)
                else:
                    segments.append(re.compile(_translate_segment(part, self.options) + r"\Z", flags))
            self._alternatives.append(segments)

    @property
    def has_slash(self) -> bool:
        return "/" in self.raw

    def _segment_ok_for_globstar(self, part: str) -> bool:
        if part in (".", ".."):
            return False
        return self.options.dot or not part.startswith(".")

    def _match_parts(self, parts: list[str], segments: list[object]) -> bool:
        if not segments:
            return not parts
        head = segments[0]
        if head is GLOBSTAR:
            rest = segments[1:]
            for consumed in range(len(parts) + 1):
                if consumed and not self._segment_ok_for_globstar(parts[consumed - 1]):
                    return False
                if self._match_parts(parts[consumed:], rest):
                    return True
            return False
        if not parts:
            return False
        if not head.match(parts[0]):  # type: ignore[union-attr]
            return False
        return self._match_parts(parts[1:], segments[1:])

    def match(self, path: str) -> bool:
        if self.comment:
            return False
        if self.raw == "":
            return path == ""

        target = path.replace("\\", "/")
        if self.options.match_base and not self.has_slash:
            target = target.rsplit("/", 1)[-1]

        parts = target.split("/")
        hit = any(self._match_parts(parts, segments) for segments in self._alternatives)
        return hit != self.negated

    def __repr__(self) -> str:
        return f"Pattern({self.raw!r})"


@lru_cache(maxsize=256)
def compile_pattern(raw: str, options: MatchOptions) -> Pattern:
    return Pattern(raw, options)


def glob_match(path: str, pattern: str, options: MatchOptions | None = None) -> bool:
    return compile_pattern(pattern, options or MatchOptions()).match(path)


def match_list(paths: Iterable[str], pattern: str, options: MatchOptions | None = None) -> list[str]:
    """Return the paths matching ``pattern``; with ``nonull`` an empty result
    yields the pattern itself."""
    opts = options or MatchOptions()
    compiled = compile_pattern(pattern, opts)
    out = [p for p in paths if compiled.match(p)]
    if not out and opts.nonull:
        return [pattern]
    return out


def matches_any(path: str, pattern_set: PatternSet) -> bool:
    for raw in pattern_set.patterns:
        if glob_match(path, raw, pattern_set.options):
            logger.debug("Matched %r with %r", path, raw)
            return True
    return False
