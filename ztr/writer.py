from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union

from .config import ArchiveFormat
from .constants import DEFAULT_CHUNK_SIZE, PARTIAL_SUFFIX
from .errors import ArchiveIOError, WriteError, ZtrError
from .pathutil import norm_path

logger = logging.getLogger(__name__)


@dataclass
class ArchiveEntry:
    """One file or directory to store.

    ``relative_path`` is root-relative with forward slashes; a trailing ``/``
    marks a directory, which carries no content.
    """
    relative_path: str
    content: Optional[BinaryIO] = None
    size_hint: Optional[int] = None
    mode: Optional[int] = None
    mtime: Optional[float] = None

    @property
    def is_dir(self) -> bool:
        return self.relative_path.endswith("/")


class ArchiveWriter:
    """Streaming writer for one archive file.

    Subclasses implement ``_start``, ``_write_dir``, ``_write_file`` and
    ``_finish``. Entries are written strictly in call order; a writer is not
    safe to share between threads. Used as a context manager, ``finalize``
    always runs on exit, including after a failed ``write_entry``.
    """

    format: ArchiveFormat

    def __init__(self, out_path: Union[str, os.PathLike], chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.out_path = Path(out_path)
        self.chunk_size = chunk_size
        self.f: Optional[BinaryIO] = None
        self.entries_written = 0
        self.bytes_written = 0
        self._finalized = False

    @property
    def archive_name(self) -> str:
        """Final file name (without the staging suffix)."""
        name = self.out_path.name
        if name.endswith(PARTIAL_SUFFIX):
            name = name[: -len(PARTIAL_SUFFIX)]
        return name

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.finalize()
            return
        # Keep the original error; the container is closed as far as possible.
        try:
            self.finalize()
        except (ZtrError, OSError) as fin_exc:
            logger.warning("Finalize after failure also failed for %s: %s", self.out_path, fin_exc)

    def open(self):
        if self.f is not None:
            return
        try:
            self.f = open(self.out_path, "wb")
        except OSError as exc:
            raise ArchiveIOError(self.out_path, "Cannot create archive") from exc
        try:
            self._start()
        except OSError as exc:
            self._close_file()
            raise ArchiveIOError(self.out_path, "Cannot initialize archive") from exc

    def write_entry(self, entry: ArchiveEntry) -> int:
        """Store one entry and return the number of content bytes written."""
        if self.f is None:
            raise WriteError("Archive not open")
        if self._finalized:
            raise WriteError("Archive already finalized")
        name = norm_path(entry.relative_path)
        try:
            if entry.is_dir:
                self._write_dir(name, entry)
                written = 0
            else:
                if entry.content is None:
                    raise WriteError(f"File entry has no content: {name}")
                written = self._write_file(name, entry)
        except OSError as exc:
            raise ArchiveIOError(name, "Failed to archive entry") from exc
        except UnicodeError as exc:
            raise WriteError(f"Entry name cannot be encoded for {self.format.value}: {name!r}") from exc
        self.entries_written += 1
        self.bytes_written += written
        return written

    def finalize(self):
        """Flush the container trailer and close the file. Runs once; later calls are no-ops."""
        if self._finalized:
            return
        if self.f is None:
            raise WriteError("Archive not open")
        self._finalized = True
        try:
            self._finish()
            self.f.flush()
            os.fsync(self.f.fileno())
        except OSError as exc:
            raise ArchiveIOError(self.out_path, "Failed to finalize archive") from exc
        finally:
            self._close_file()

    # internals
    def _close_file(self):
        if self.f is not None:
            self.f.close()
            self.f = None

    def _iter_chunks(self, stream: BinaryIO) -> Iterator[bytes]:
        while True:
            chunk = stream.read(self.chunk_size)
            if not chunk:
                return
            yield chunk

    def _start(self):
        pass

    def _write_dir(self, name: str, entry: ArchiveEntry):
        raise NotImplementedError

    def _write_file(self, name: str, entry: ArchiveEntry) -> int:
        raise NotImplementedError

    def _finish(self):
        pass


def writer_class(fmt: Union[ArchiveFormat, str]) -> type:
    from .tarwriter import PlainContainerWriter, CompressedTarWriter
    from .zipwriter import DictionaryContainerWriter

    writers = {
        ArchiveFormat.TAR: PlainContainerWriter,
        ArchiveFormat.TAR_GZ: CompressedTarWriter,
        ArchiveFormat.ZIP: DictionaryContainerWriter,
    }
    return writers[ArchiveFormat.parse(fmt)]


def open_writer(fmt: Union[ArchiveFormat, str], out_path: Union[str, os.PathLike], **kwargs) -> ArchiveWriter:
    """Create and open the writer for ``fmt`` at ``out_path``.

    Raises:
        ConfigError: Unknown format.
        ArchiveIOError: The output file cannot be created.
    """
    writer = writer_class(fmt)(out_path, **kwargs)
    writer.open()
    return writer
