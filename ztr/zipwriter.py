from __future__ import annotations

import os
import stat
from typing import List, Optional

from .codec import Codec
from .config import ArchiveFormat
from .constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_DIR_MODE,
    DEFAULT_FILE_MODE,
    ZIP_FLAG_DATA_DESCRIPTOR,
    ZIP_FLAG_UTF8,
    ZIP_MAX_ENTRIES,
    ZIP_MAX_NAME,
    ZIP_MAX_SIZE,
    ZIP_METHOD_DEFLATED,
    ZIP_METHOD_STORED,
)
from .errors import WriteError
from .records import (
    ZipRecord,
    dos_datetime,
    external_attr,
    pack_central_header,
    pack_data_descriptor,
    pack_end_record,
    pack_local_header,
)
from .writer import ArchiveEntry, ArchiveWriter


def _encode_name(name: str) -> tuple[bytes, int]:
    """Return the stored name bytes and the general purpose flag they need."""
    try:
        return name.encode("utf-8"), ZIP_FLAG_UTF8
    except UnicodeEncodeError:
        # Host names that are not valid UTF-8 keep their raw bytes, unflagged
        return os.fsencode(name), 0


class DictionaryContainerWriter(ArchiveWriter):
    """Zip container: independently deflated bodies, central directory at the end.

    Each file is streamed as local header, raw deflate data, then a data
    descriptor (CRC-32 and sizes are only known afterwards). Per-entry
    metadata is buffered in ``records`` until ``finalize``, which appends the
    central directory and the end record pointing at it. Classic zip limits
    apply; zip64 is not produced.
    """

    format = ArchiveFormat.ZIP

    def __init__(self, out_path, chunk_size: int = DEFAULT_CHUNK_SIZE, level: Optional[int] = None):
        super().__init__(out_path, chunk_size=chunk_size)
        self.level = level
        self.records: List[ZipRecord] = []

    def _begin(self, name: str, entry: ArchiveEntry, is_dir: bool, method: int, flags: int) -> ZipRecord:
        name_b, name_flag = _encode_name(name + "/" if is_dir else name)
        if len(self.records) >= ZIP_MAX_ENTRIES:
            raise WriteError(f"zip entry limit reached ({ZIP_MAX_ENTRIES}); zip64 is not supported")
        if len(name_b) > ZIP_MAX_NAME:
            raise WriteError(f"zip entry name too long: {name[:64]}...")
        offset = self.f.tell()
        if offset >= ZIP_MAX_SIZE:
            raise WriteError("zip archive exceeds 4 GiB; zip64 is not supported")
        if entry.mode is not None:
            mode = entry.mode
        else:
            mode = DEFAULT_DIR_MODE if is_dir else DEFAULT_FILE_MODE
        mode |= stat.S_IFDIR if is_dir else stat.S_IFREG
        dtime, ddate = dos_datetime(entry.mtime)
        return ZipRecord(
            name=name_b,
            flags=flags | name_flag,
            method=method,
            dos_time=dtime,
            dos_date=ddate,
            offset=offset,
            external_attr=external_attr(mode, is_dir),
        )

    def _write_dir(self, name: str, entry: ArchiveEntry):
        rec = self._begin(name, entry, True, ZIP_METHOD_STORED, 0)
        self.f.write(pack_local_header(rec))
        self.records.append(rec)

    def _write_file(self, name: str, entry: ArchiveEntry) -> int:
        rec = self._begin(name, entry, False, ZIP_METHOD_DEFLATED, ZIP_FLAG_DATA_DESCRIPTOR)
        self.f.write(pack_local_header(rec))
        codec = Codec(ZIP_METHOD_DEFLATED, self.level)
        for chunk in self._iter_chunks(entry.content):
            out = codec.compress(chunk)
            if out:
                self.f.write(out)
            self._check_size(name, codec)
        self.f.write(codec.flush())
        self._check_size(name, codec)
        rec.crc = codec.crc
        rec.compressed_size = codec.compressed_size
        rec.uncompressed_size = codec.raw_size
        self.f.write(pack_data_descriptor(rec))
        # Only completed entries reach the central directory
        self.records.append(rec)
        return codec.raw_size

    def _check_size(self, name: str, codec: Codec):
        if codec.raw_size >= ZIP_MAX_SIZE or codec.compressed_size >= ZIP_MAX_SIZE:
            raise WriteError(f"zip entry exceeds 4 GiB (zip64 is not supported): {name}")

    def _finish(self):
        cd_offset = self.f.tell()
        if cd_offset >= ZIP_MAX_SIZE:
            raise WriteError("zip central directory offset exceeds 4 GiB; zip64 is not supported")
        for rec in self.records:
            self.f.write(pack_central_header(rec))
        cd_size = self.f.tell() - cd_offset
        self.f.write(pack_end_record(len(self.records), cd_size, cd_offset))
