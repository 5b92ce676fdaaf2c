from __future__ import annotations

import struct
import time
from dataclasses import dataclass
from typing import Optional

from .constants import (
    ZIP_LOCAL_MAGIC,
    ZIP_DESCRIPTOR_MAGIC,
    ZIP_CENTRAL_MAGIC,
    ZIP_END_MAGIC,
    ZIP_VERSION,
    ZIP_MADE_BY_UNIX,
    ZIP_ATTR_DIRECTORY,
)


# Local file header (30 bytes + name)
# struct: <4s H H H H H I I I H H
#  - signature "PK\x03\x04"
#  - version needed, flags, method, mod time, mod date
#  - crc32, compressed size, uncompressed size (zero when a data descriptor follows)
#  - name length, extra length
_LOCAL_STRUCT = struct.Struct("<4sHHHHHIIIHH")
# Data descriptor: signature, crc32, compressed size, uncompressed size
_DESCRIPTOR_STRUCT = struct.Struct("<4sIII")
# Central directory header (46 bytes + name)
_CENTRAL_STRUCT = struct.Struct("<4sHHHHHHIIIHHHHHII")
# End of central directory (22 bytes): the index locator
_END_STRUCT = struct.Struct("<4sHHHHIIH")


def dos_datetime(mtime: Optional[float]) -> tuple[int, int]:
    """Pack a POSIX timestamp into MS-DOS (time, date) words.

    Dates before 1980 (the DOS epoch) are clamped to 1980-01-01 00:00.
    """
    if mtime is None:
        mtime = time.time()
    t = time.localtime(mtime)
    if t.tm_year < 1980:
        return 0, (1 << 5) | 1
    dtime = (t.tm_hour << 11) | (t.tm_min << 5) | (t.tm_sec // 2)
    ddate = ((min(t.tm_year, 2107) - 1980) << 9) | (t.tm_mon << 5) | t.tm_mday
    return dtime, ddate


@dataclass
class ZipRecord:
    """Central directory metadata buffered per entry until finalize."""
    name: bytes
    flags: int
    method: int
    dos_time: int
    dos_date: int
    crc: int = 0
    compressed_size: int = 0
    uncompressed_size: int = 0
    offset: int = 0
    external_attr: int = 0


def external_attr(mode: int, is_dir: bool) -> int:
    attr = (mode & 0xFFFF) << 16
    if is_dir:
        attr |= ZIP_ATTR_DIRECTORY
    return attr


def pack_local_header(rec: ZipRecord) -> bytes:
    return _LOCAL_STRUCT.pack(
        ZIP_LOCAL_MAGIC,
        ZIP_VERSION,
        rec.flags,
        rec.method,
        rec.dos_time,
        rec.dos_date,
        rec.crc,
        rec.compressed_size,
        rec.uncompressed_size,
        len(rec.name),
        0,  # extra length
    ) + rec.name


def pack_data_descriptor(rec: ZipRecord) -> bytes:
    return _DESCRIPTOR_STRUCT.pack(ZIP_DESCRIPTOR_MAGIC, rec.crc, rec.compressed_size, rec.uncompressed_size)


def pack_central_header(rec: ZipRecord) -> bytes:
    return _CENTRAL_STRUCT.pack(
        ZIP_CENTRAL_MAGIC,
        (ZIP_MADE_BY_UNIX << 8) | ZIP_VERSION,
        ZIP_VERSION,
        rec.flags,
        rec.method,
        rec.dos_time,
        rec.dos_date,
        rec.crc,
        rec.compressed_size,
        rec.uncompressed_size,
        len(rec.name),
        0,  # extra length
        0,  # comment length
        0,  # disk number start
        0,  # internal attributes
        rec.external_attr,
        rec.offset,
    ) + rec.name


def pack_end_record(entry_count: int, cd_size: int, cd_offset: int) -> bytes:
    return _END_STRUCT.pack(ZIP_END_MAGIC, 0, 0, entry_count, entry_count, cd_size, cd_offset, 0)
