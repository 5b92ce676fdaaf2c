from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from .config import Configuration
from .constants import PARTIAL_SUFFIX
from .errors import ArchiveIOError, ConfigError
from .ignore import IgnoreEngine
from .patterns import compile_patterns
from .walk import iter_tree
from .writer import ArchiveEntry, ArchiveWriter, open_writer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    entries_written: int
    bytes_written: int
    current_path: str


ProgressSink = Callable[[ProgressEvent], None]


def _write_path(writer: ArchiveWriter, path: Path, rel: str) -> None:
    """Stream one filesystem entry into the writer."""
    try:
        st = os.stat(path)
        if stat.S_ISDIR(st.st_mode):
            writer.write_entry(ArchiveEntry(rel + "/", mode=stat.S_IMODE(st.st_mode), mtime=st.st_mtime))
            return
        fh = open(path, "rb")
    except OSError as exc:
        raise ArchiveIOError(path, "Failed to read") from exc
    with fh:
        size = os.fstat(fh.fileno()).st_size
        writer.write_entry(
            ArchiveEntry(rel, content=fh, size_hint=size, mode=stat.S_IMODE(st.st_mode), mtime=st.st_mtime)
        )


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove incomplete archive %s: %s", path, exc)


def compress_directory(
    config: Configuration,
    root: Union[str, os.PathLike],
    *,
    output_dir: Optional[Union[str, os.PathLike]] = None,
    progress: Optional[ProgressSink] = None,
) -> Path:
    """Archive ``root`` according to ``config`` and return the output path.

    Ignore rules are compiled before anything is enumerated. Surviving
    entries are streamed one at a time into ``<output>.partial``, which is
    renamed onto the output path only after the writer finalized cleanly. On
    any failure (or interruption) the writer is finalized best-effort, the
    staging file is removed and the error propagates.

    Args:
        config: Resolved configuration.
        root: Directory to archive.
        output_dir: Where to place the archive; defaults to ``root``.
        progress: Called with a ProgressEvent after each written entry.

    Raises:
        ConfigError: ``root`` is not a directory, or the ignore file is unusable.
        InvalidPatternError: An ignore rule is malformed.
        ArchiveIOError: Reading a source file or writing the archive failed.
        WriteError: The archive format rejected an entry.
    """
    root = Path(root).resolve()
    if not root.is_dir():
        raise ConfigError(f"Not a directory: {root}")

    patterns = compile_patterns(config.resolve_ignore_rules(root))
    engine = IgnoreEngine(patterns, root)

    out_dir = Path(output_dir).resolve() if output_dir is not None else root
    output_path = out_dir / config.output_filename(root)
    staging = output_path.with_name(output_path.name + PARTIAL_SUFFIX)
    own_files = {output_path, staging}

    logger.info("Compressing directory: %s", root)
    logger.info("Output file: %s (format %s, %d ignore rule(s))", output_path, config.format.value, len(patterns))

    candidates = (p for p in iter_tree(root, prune=engine.is_excluded_dir) if p not in own_files)
    survivors = engine.filter_files(candidates)

    try:
        writer = open_writer(config.format, staging)
        with writer:
            for path in survivors:
                rel = path.relative_to(root).as_posix()
                _write_path(writer, path, rel)
                if progress is not None:
                    progress(ProgressEvent(writer.entries_written, writer.bytes_written, rel))
    except BaseException:
        _discard(staging)
        raise

    try:
        os.replace(staging, output_path)
    except OSError as exc:
        _discard(staging)
        raise ArchiveIOError(output_path, "Failed to move archive into place") from exc

    logger.info("Wrote %d entries (%d bytes of content) to %s", writer.entries_written, writer.bytes_written, output_path)
    return output_path
