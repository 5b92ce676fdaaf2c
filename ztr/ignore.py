from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, TypeVar, Union

from .pathutil import split_segments
from .patterns import Pattern, compile_patterns


PathLikeT = TypeVar("PathLikeT", str, os.PathLike)


@dataclass(frozen=True)
class PathDecision:
    path: str
    included: bool


class IgnoreEngine:
    """Apply compiled ignore rules to paths below ``root`` with gitignore precedence.

    The last matching rule decides (negation re-includes, anything else
    excludes); no match keeps the path. An excluded directory excludes its
    whole subtree, and a negation cannot re-include a path whose parent
    directory is excluded. Matching is case-sensitive.
    """

    def __init__(self, patterns: Sequence[Pattern], root: Union[str, os.PathLike]):
        self.patterns: List[Pattern] = list(patterns)
        self.root = Path(root)
        self._root_abs = os.path.abspath(os.fspath(root))
        # Directory decisions, keyed by root-relative path (includes the ancestor cascade).
        self._dir_cache: Dict[Tuple[str, ...], bool] = {}

    @classmethod
    def from_lines(cls, lines: Iterable[str], root: Union[str, os.PathLike]) -> "IgnoreEngine":
        return cls(compile_patterns(lines), root)

    def _last_match_excludes(self, parts: Tuple[str, ...], is_dir: bool) -> bool:
        excluded = False
        for p in self.patterns:
            if p.matches(parts, is_dir):
                excluded = not p.is_negation
        return excluded

    def _dir_excluded(self, parts: Tuple[str, ...]) -> bool:
        hit = self._dir_cache.get(parts)
        if hit is None:
            hit = (len(parts) > 1 and self._dir_excluded(parts[:-1])) or self._last_match_excludes(parts, True)
            self._dir_cache[parts] = hit
        return hit

    def is_ignored(self, rel_path: str, is_dir: bool) -> bool:
        if not self.patterns:
            return False
        parts = tuple(split_segments(rel_path))
        if not parts:
            return False
        if is_dir:
            return self._dir_excluded(parts)
        if len(parts) > 1 and self._dir_excluded(parts[:-1]):
            return True
        return self._last_match_excludes(parts, False)

    def decide(self, rel_path: str, is_dir: bool) -> PathDecision:
        return PathDecision(path=rel_path, included=not self.is_ignored(rel_path, is_dir))

    def is_excluded_dir(self, path: Union[str, os.PathLike]) -> bool:
        rel = self._relative(path)
        return rel is not None and self.is_ignored(rel, True)

    def _relative(self, candidate: Union[str, os.PathLike]) -> Optional[str]:
        raw = os.fsdecode(os.fspath(candidate))
        if os.path.isabs(raw):
            rel = os.path.relpath(raw, self._root_abs)
            if rel == os.pardir or rel.startswith(os.pardir + os.sep):
                return None
        else:
            rel = raw
        return rel.replace(os.sep, "/")

    def _classify(self, candidate: Union[str, os.PathLike]) -> Tuple[Optional[str], bool]:
        rel = self._relative(candidate)
        if rel is None:
            return None, False
        if isinstance(candidate, str) and candidate.endswith(("/", os.sep)):
            return rel, True
        return rel, os.path.isdir(os.path.join(self._root_abs, rel))

    def filter_files(self, candidates: Iterable[PathLikeT]) -> Iterator[PathLikeT]:
        """Yield the included candidates in input order.

        Candidates are root-relative or absolute paths under ``root``; a ``str``
        ending in ``/`` is taken as a directory, otherwise the filesystem is asked.
        Paths outside ``root`` are never filtered.
        """
        for candidate in candidates:
            rel, is_dir = self._classify(candidate)
            if rel is None or not self.is_ignored(rel, is_dir):
                yield candidate
