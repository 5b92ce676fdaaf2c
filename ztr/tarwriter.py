from __future__ import annotations

import shutil
import tarfile
import tempfile
import time

from .config import ArchiveFormat
from .constants import DEFAULT_DIR_MODE, DEFAULT_FILE_MODE, SPOOL_MAX_MEMORY
from .writer import ArchiveEntry, ArchiveWriter


class _TarWriter(ArchiveWriter):
    tar_mode = "w"

    def _start(self):
        self.tar = tarfile.open(
            name=self.archive_name,
            mode=self.tar_mode,
            fileobj=self.f,
            format=tarfile.PAX_FORMAT,
        )

    def _info(self, name: str, entry: ArchiveEntry, kind: bytes, default_mode: int) -> tarfile.TarInfo:
        info = tarfile.TarInfo(name)
        info.type = kind
        info.mode = entry.mode if entry.mode is not None else default_mode
        info.mtime = int(entry.mtime if entry.mtime is not None else time.time())
        return info

    def _write_dir(self, name: str, entry: ArchiveEntry):
        self.tar.addfile(self._info(name, entry, tarfile.DIRTYPE, DEFAULT_DIR_MODE))

    def _write_file(self, name: str, entry: ArchiveEntry) -> int:
        stream = entry.content
        size = entry.size_hint
        spool = None
        if size is None:
            # Tar headers carry the size up front; learn it without holding the body in memory.
            spool = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_MEMORY)
            shutil.copyfileobj(stream, spool, self.chunk_size)
            size = spool.tell()
            spool.seek(0)
            stream = spool
        try:
            info = self._info(name, entry, tarfile.REGTYPE, DEFAULT_FILE_MODE)
            info.size = size
            # Copies exactly ``size`` bytes; a short source raises OSError
            self.tar.addfile(info, stream)
        finally:
            if spool is not None:
                spool.close()
        return size

    def _finish(self):
        # End-of-archive blocks (and the gzip trailer for stream mode)
        self.tar.close()


class PlainContainerWriter(_TarWriter):
    """Uncompressed POSIX (pax) tar: header per entry, then the raw bytes."""
    format = ArchiveFormat.TAR
    tar_mode = "w"


class CompressedTarWriter(_TarWriter):
    """Tar stream through a single continuous gzip stream.

    The compressor state spans entries, so entries must be written in order
    from one producer.
    """
    format = ArchiveFormat.TAR_GZ
    tar_mode = "w|gz"
