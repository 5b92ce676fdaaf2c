from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Iterator, Optional, Union

logger = logging.getLogger(__name__)


def _readable_file(full: str) -> bool:
    try:
        st = os.stat(full)  # follows symlinks; dangling links fail here
    except OSError as exc:
        logger.warning("Skipping unreadable entry %s: %s", full, exc)
        return False
    if not os.access(full, os.R_OK):
        logger.warning("Skipping unreadable file %s: permission denied", full)
        return False
    if not os.path.isfile(full):
        logger.info("Skipping special file %s (mode %o)", full, st.st_mode)
        return False
    return True


def iter_tree(
    root: Union[str, os.PathLike],
    prune: Optional[Callable[[Path], bool]] = None,
) -> Iterator[Path]:
    """Yield every directory and file below ``root``, lazily.

    Order is pre-order (a directory before its contents), sorted by name at
    each level, so repeated runs over an unchanged tree agree. ``root`` itself
    is not yielded.

    Entries that cannot be read are skipped with a warning rather than
    aborting the walk: directories whose listing fails, files without read
    permission and dangling symlinks. Symlinked directories are not followed.

    Args:
        root: Directory to walk.
        prune: Optional predicate; when it returns True for a directory, that
            directory and its subtree are left out.
    """
    root_str = os.fspath(root)

    def _on_error(error: OSError) -> None:
        logger.warning("Skipping unreadable directory %s: %s", error.filename, error.strerror or error)

    for dirpath, dirnames, filenames in os.walk(root_str, topdown=True, followlinks=False, onerror=_on_error):
        kept = []
        for d in sorted(dirnames):
            full = os.path.join(dirpath, d)
            if os.path.islink(full):
                logger.info("Skipping symlinked directory %s", full)
                continue
            if prune is not None and prune(Path(full)):
                continue
            kept.append(d)
        # os.walk only descends into what is left in dirnames
        dirnames[:] = kept

        if dirpath != root_str:
            yield Path(dirpath)

        for f in sorted(filenames):
            full = os.path.join(dirpath, f)
            if _readable_file(full):
                yield Path(full)
