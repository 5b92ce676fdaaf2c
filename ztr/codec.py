from __future__ import annotations

import zlib
from typing import Optional

from .constants import DEFAULT_COMPRESS_LEVEL, ZIP_METHOD_DEFLATED, ZIP_METHOD_STORED


class Codec:
    """Incremental per-entry compressor tracking CRC-32 and both sizes.

    ``method`` is a zip compression method id: stored (0) or raw deflate (8).
    """

    def __init__(self, method: int = ZIP_METHOD_DEFLATED, level: Optional[int] = None):
        if method == ZIP_METHOD_DEFLATED:
            lvl = level if level is not None else DEFAULT_COMPRESS_LEVEL
            # Negative wbits: raw deflate without zlib header/trailer
            self._cobj = zlib.compressobj(lvl, zlib.DEFLATED, -zlib.MAX_WBITS)
        elif method == ZIP_METHOD_STORED:
            self._cobj = None
        else:
            # Unknown/unsupported method: fail fast
            raise RuntimeError(f"unsupported compression method: {method}")
        self.method = method
        self.crc = 0
        self.raw_size = 0
        self.compressed_size = 0

    def compress(self, data: bytes) -> bytes:
        self.crc = zlib.crc32(data, self.crc)
        self.raw_size += len(data)
        out = self._cobj.compress(data) if self._cobj is not None else data
        self.compressed_size += len(out)
        return out

    def flush(self) -> bytes:
        if self._cobj is None:
            return b""
        out = self._cobj.flush(zlib.Z_FINISH)
        self.compressed_size += len(out)
        return out
