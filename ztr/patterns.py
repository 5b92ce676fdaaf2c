"""
Gitignore-style pattern compiler.

Each non-blank, non-comment rule line becomes one immutable ``Pattern``:

- ``!`` prefix      negation (re-include)
- ``/`` suffix      directory-only
- any other ``/``   anchored to the rule root (a leading ``/`` is dropped)
- ``*`` ``?`` ``[...]`` glob tokens within a segment; ``*`` and ``?`` never cross ``/``
- ``[[:alpha:]]`` and the other POSIX classes inside brackets
- a ``**`` segment  zero or more whole segments
- ``\\`` escapes the next character (``\\#``, ``\\!``, ``\\ `` for a trailing space)

Matching is case-sensitive.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from .errors import InvalidPatternError


# ``None`` in Pattern.segments stands for a ``**`` segment.
Segment = Optional[re.Pattern]


@dataclass(frozen=True)
class Pattern:
    raw: str
    is_negation: bool
    is_directory_only: bool
    is_anchored: bool
    segments: Tuple[Segment, ...]

    def matches(self, parts: Sequence[str], is_dir: bool) -> bool:
        """Return True if this rule matches the path given as root-relative segments."""
        if self.is_directory_only and not is_dir:
            return False
        if not parts:
            return False
        if not self.is_anchored:
            # Slash-free rules match the last segment, i.e. at any depth.
            return _match_segments(self.segments, parts[-1:], 0, 0)
        return _match_segments(self.segments, parts, 0, 0)


def _match_segments(segs: Sequence[Segment], parts: Sequence[str], i: int, j: int) -> bool:
    while i < len(segs):
        seg = segs[i]
        if seg is None:
            if i + 1 == len(segs):
                # Trailing ``**`` matches everything below, not the directory itself.
                return j < len(parts)
            for k in range(j, len(parts) + 1):
                if _match_segments(segs, parts, i + 1, k):
                    return True
            return False
        if j >= len(parts) or seg.fullmatch(parts[j]) is None:
            return False
        i += 1
        j += 1
    return j == len(parts)


# POSIX bracket expressions usable inside [...]
_POSIX_CLASSES = {
    "alnum": "a-zA-Z0-9",
    "alpha": "a-zA-Z",
    "blank": r" \t",
    "cntrl": r"\x00-\x1f\x7f",
    "digit": "0-9",
    "graph": "!-~",
    "lower": "a-z",
    "print": " -~",
    "punct": r"!-/:-@\[-`{-~",
    "space": r" \t\n\r\f\v",
    "upper": "A-Z",
    "xdigit": "0-9A-Fa-f",
}


def _strip_trailing(line: str) -> str:
    line = line.rstrip("\r\n")
    stripped = line.rstrip()
    if stripped.endswith("\\") and len(stripped) < len(line):
        return stripped + " "
    return stripped


def _class_body(body: str, raw: str) -> str:
    out = []
    i = 0
    while i < len(body):
        c = body[i]
        if body.startswith("[:", i):
            end = body.find(":]", i + 2)
            if end != -1:
                name = body[i + 2:end]
                if name not in _POSIX_CLASSES:
                    raise InvalidPatternError(raw, f"unknown character class [:{name}:]")
                out.append(_POSIX_CLASSES[name])
                i = end + 2
                continue
        if c == "\\" and i + 1 < len(body):
            out.append(re.escape(body[i + 1]))
            i += 2
            continue
        if c == "-":
            out.append("-")
        elif c in "\\]^[":
            out.append("\\" + c)
        else:
            out.append(c)
        i += 1
    return "".join(out)


def _translate_segment(glob: str, raw: str) -> re.Pattern:
    out: List[str] = []
    i = 0
    n = len(glob)
    while i < n:
        c = glob[i]
        i += 1
        if c == "*":
            while i < n and glob[i] == "*":
                i += 1
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "\\":
            if i >= n:
                raise InvalidPatternError(raw, "trailing backslash")
            out.append(re.escape(glob[i]))
            i += 1
        elif c == "[":
            j = i
            if j < n and glob[j] in "!^":
                j += 1
            if j < n and glob[j] == "]":
                j += 1
            while j < n and glob[j] != "]":
                if glob[j] == "\\":
                    j += 1
                elif glob.startswith("[:", j):
                    end = glob.find(":]", j + 2)
                    if end != -1:
                        j = end + 1
                j += 1
            if j >= n:
                raise InvalidPatternError(raw, "unterminated character class")
            body = glob[i:j]
            i = j + 1
            negated = body[:1] in ("!", "^")
            if negated:
                body = body[1:]
            out.append("[" + ("^" if negated else "") + _class_body(body, raw) + "]")
        else:
            out.append(re.escape(c))
    try:
        return re.compile("".join(out))
    except re.error as exc:
        raise InvalidPatternError(raw, str(exc)) from exc


def compile_pattern(line: str) -> Optional[Pattern]:
    """Compile one rule line; returns None for blank lines, comments and empty rules."""
    raw = _strip_trailing(line)
    if not raw or raw.startswith("#"):
        return None
    text = raw
    negation = False
    if text.startswith("!"):
        negation = True
        text = text[1:]
    elif text.startswith(("\\#", "\\!")):
        text = text[1:]

    dir_only = text.endswith("/")
    if dir_only:
        text = text[:-1]
    anchored = text.startswith("/")
    if anchored:
        text = text[1:]
    anchored = anchored or "/" in text

    globs = [g for g in text.split("/") if g]
    if not globs:
        return None

    segments: List[Segment] = []
    for g in globs:
        if g == "**":
            if segments and segments[-1] is None:
                continue
            segments.append(None)
        else:
            segments.append(_translate_segment(g, raw))

    return Pattern(
        raw=raw,
        is_negation=negation,
        is_directory_only=dir_only,
        is_anchored=anchored,
        segments=tuple(segments),
    )


def compile_patterns(raw_lines: Iterable[str]) -> List[Pattern]:
    """Compile rule lines in order, dropping blanks and comments.

    Raises:
        InvalidPatternError: If any line has malformed glob syntax.
    """
    patterns: List[Pattern] = []
    for line in raw_lines:
        p = compile_pattern(line)
        if p is not None:
            patterns.append(p)
    return patterns
