from __future__ import annotations

import os

from .errors import WriteError

# Host separators other than "/" (the backslash on Windows). On POSIX a
# backslash is an ordinary filename character.
_HOST_SEPARATORS = tuple(s for s in (os.sep, os.altsep) if s and s != "/")


def split_segments(rel_path: str) -> list[str]:
    """Split a root-relative path into its segments.

    Only ``/`` and the host's own separators split; empty and ``.`` segments
    are dropped, so a trailing slash does not produce an extra segment.
    """
    for sep in _HOST_SEPARATORS:
        rel_path = rel_path.replace(sep, "/")
    return [q for q in rel_path.split("/") if q not in ("", ".")]


def norm_path(p: str) -> str:
    """Return the forward-slash name an entry is stored under in the archive.

    Raises:
        WriteError: The path is empty or climbs out of the root with ``..``.
    """
    parts = split_segments(p)
    if ".." in parts:
        raise WriteError(f"Archive path may not contain '..': {p}")
    if not parts:
        raise WriteError(f"Empty archive path: {p!r}")
    return "/".join(parts)
