from __future__ import annotations

import gzip
import io
import os
import struct
import tarfile
import tempfile
import unittest
import zipfile
from pathlib import Path
from unittest import mock

from ztr.config import ArchiveFormat
from ztr.errors import ArchiveIOError, ConfigError, WriteError
from ztr.writer import ArchiveEntry, open_writer, writer_class


def _sample_entries():
    return {
        "docs/a.txt": b"hello world\n" * 50,
        "docs/b.bin": os.urandom(4096),
        "notes.md": b"# Title\n",
        "empty.txt": b"",
    }


def _write_sample(fmt, path: Path, files, **kwargs):
    with open_writer(fmt, path, **kwargs) as w:
        w.write_entry(ArchiveEntry("docs/", mode=0o755))
        for name, data in files.items():
            w.write_entry(ArchiveEntry(name, content=io.BytesIO(data), size_hint=len(data), mode=0o600))
    return w


def _read_archive(fmt, path: Path):
    """Return ({file name: bytes}, set of directory names) using the stdlib readers."""
    files, dirs = {}, set()
    if fmt is ArchiveFormat.ZIP:
        with zipfile.ZipFile(path) as zf:
            assert zf.testzip() is None
            for info in zf.infolist():
                if info.is_dir():
                    dirs.add(info.filename.rstrip("/"))
                else:
                    files[info.filename] = zf.read(info)
    else:
        with tarfile.open(path, "r:*") as tf:
            for member in tf.getmembers():
                if member.isdir():
                    dirs.add(member.name)
                else:
                    files[member.name] = tf.extractfile(member).read()
    return files, dirs


class _FailingStream(io.RawIOBase):
    def __init__(self):
        self.calls = 0

    def readable(self):
        return True

    def read(self, n=-1):
        self.calls += 1
        if self.calls > 1:
            raise OSError("device went away")
        return b"abcd"


class WriterTests(unittest.TestCase):
    def run_with_tmpdir(self, func):
        with tempfile.TemporaryDirectory() as tmp:
            func(Path(tmp))

    def test_roundtrip_all_formats(self):
        def scenario(tmp_path: Path):
            files = _sample_entries()
            for fmt in ArchiveFormat:
                out = tmp_path / f"sample{fmt.extension}"
                w = _write_sample(fmt, out, files)
                self.assertEqual(w.entries_written, len(files) + 1)
                self.assertEqual(w.bytes_written, sum(len(d) for d in files.values()))
                got_files, got_dirs = _read_archive(fmt, out)
                self.assertEqual(got_files, files, fmt)
                self.assertEqual(got_dirs, {"docs"}, fmt)

        self.run_with_tmpdir(scenario)

    def test_empty_archive_is_valid(self):
        def scenario(tmp_path: Path):
            for fmt in ArchiveFormat:
                out = tmp_path / f"empty{fmt.extension}"
                with open_writer(fmt, out) as w:
                    pass
                self.assertEqual(w.entries_written, 0)
                self.assertGreater(out.stat().st_size, 0)
                self.assertEqual(_read_archive(fmt, out), ({}, set()))

        self.run_with_tmpdir(scenario)

    def test_tar_gz_is_one_gzip_stream(self):
        def scenario(tmp_path: Path):
            out = tmp_path / "s.tar.gz"
            _write_sample(ArchiveFormat.TAR_GZ, out, {"a.txt": b"abc" * 1000})
            self.assertEqual(out.read_bytes()[:2], b"\x1f\x8b")
            with gzip.open(out, "rb") as gz:
                raw = gz.read()
            with tarfile.open(fileobj=io.BytesIO(raw), mode="r:") as tf:
                self.assertEqual(tf.getnames(), ["docs", "a.txt"])

        self.run_with_tmpdir(scenario)

    def test_zip_layout(self):
        def scenario(tmp_path: Path):
            out = tmp_path / "s.zip"
            _write_sample(ArchiveFormat.ZIP, out, {"a.txt": b"abc" * 1000})
            data = out.read_bytes()
            self.assertEqual(data[:4], b"PK\x03\x04")
            end = data[-22:]
            self.assertEqual(end[:4], b"PK\x05\x06")
            _, _, _, count, total, cd_size, cd_offset, _ = struct.unpack("<4sHHHHIIH", end)
            self.assertEqual((count, total), (2, 2))
            self.assertEqual(data[cd_offset:cd_offset + 4], b"PK\x01\x02")
            self.assertEqual(cd_offset + cd_size, len(data) - 22)
            with zipfile.ZipFile(out) as zf:
                kinds = {i.filename: i.compress_type for i in zf.infolist()}
                modes = {i.filename: (i.external_attr >> 16) & 0o777 for i in zf.infolist()}
            self.assertEqual(kinds, {"docs/": zipfile.ZIP_STORED, "a.txt": zipfile.ZIP_DEFLATED})
            self.assertEqual(modes["a.txt"], 0o600)
            self.assertEqual(modes["docs/"], 0o755)

        self.run_with_tmpdir(scenario)

    def test_tar_preserves_mode_and_mtime(self):
        def scenario(tmp_path: Path):
            out = tmp_path / "m.tar"
            with open_writer("tar", out) as w:
                w.write_entry(ArchiveEntry("x.txt", content=io.BytesIO(b"x"), size_hint=1, mode=0o640, mtime=1_600_000_000))
            with tarfile.open(out) as tf:
                member = tf.getmember("x.txt")
            self.assertEqual(member.mode, 0o640)
            self.assertEqual(member.mtime, 1_600_000_000)

        self.run_with_tmpdir(scenario)

    def test_unknown_size_is_spooled(self):
        def scenario(tmp_path: Path):
            payload = os.urandom(10_000)
            for fmt in ArchiveFormat:
                out = tmp_path / f"spool{fmt.extension}"
                with open_writer(fmt, out, chunk_size=1024) as w:
                    written = w.write_entry(ArchiveEntry("blob.bin", content=io.BytesIO(payload)))
                self.assertEqual(written, len(payload))
                self.assertEqual(_read_archive(fmt, out)[0], {"blob.bin": payload})

        self.run_with_tmpdir(scenario)

    def test_paths_are_normalized(self):
        def scenario(tmp_path: Path):
            out = tmp_path / "n.zip"
            with open_writer("zip", out) as w:
                w.write_entry(ArchiveEntry("/lead/file.txt", content=io.BytesIO(b"1")))
                w.write_entry(ArchiveEntry("./other//x.txt", content=io.BytesIO(b"2")))
                w.write_entry(ArchiveEntry(os.path.join("host", "sep.txt"), content=io.BytesIO(b"3")))
                with self.assertRaises(WriteError):
                    w.write_entry(ArchiveEntry("../evil.txt", content=io.BytesIO(b"4")))
                with self.assertRaises(WriteError):
                    w.write_entry(ArchiveEntry("./", content=None))
            with zipfile.ZipFile(out) as zf:
                self.assertEqual(zf.namelist(), ["lead/file.txt", "other/x.txt", "host/sep.txt"])

        self.run_with_tmpdir(scenario)

    @unittest.skipUnless(os.sep == "/", "backslash is a separator on this host")
    def test_backslash_kept_in_posix_names(self):
        def scenario(tmp_path: Path):
            out = tmp_path / "b.zip"
            with open_writer("zip", out) as w:
                w.write_entry(ArchiveEntry("dir\\file.txt", content=io.BytesIO(b"1")))
            with zipfile.ZipFile(out) as zf:
                self.assertEqual(zf.namelist(), ["dir\\file.txt"])

        self.run_with_tmpdir(scenario)

    def test_unencodable_name_raises_write_error(self):
        def scenario(tmp_path: Path):
            # A lone high surrogate has no byte form in any codec
            bad = "bad\ud800.txt"
            for fmt in ArchiveFormat:
                out = tmp_path / f"enc{fmt.extension}"
                with open_writer(fmt, out) as w:
                    with self.assertRaises(WriteError) as cm:
                        w.write_entry(ArchiveEntry(bad, content=io.BytesIO(b"x")))
                    self.assertIn("bad", str(cm.exception))
                    w.write_entry(ArchiveEntry("ok.txt", content=io.BytesIO(b"ok")))
                self.assertEqual(w.entries_written, 1)
                self.assertEqual(_read_archive(fmt, out)[0], {"ok.txt": b"ok"})

        self.run_with_tmpdir(scenario)

    def test_zip_offset_at_marker_value_is_rejected(self):
        def scenario(tmp_path: Path):
            out = tmp_path / "edge.zip"
            with open_writer("zip", out) as w:
                w.write_entry(ArchiveEntry("a.txt", content=io.BytesIO(b"a")))
                with mock.patch("ztr.zipwriter.ZIP_MAX_SIZE", w.f.tell()):
                    with self.assertRaises(WriteError):
                        w.write_entry(ArchiveEntry("b.txt", content=io.BytesIO(b"b")))
            with zipfile.ZipFile(out) as zf:
                self.assertEqual(zf.namelist(), ["a.txt"])

            w = open_writer("zip", tmp_path / "edge2.zip")
            w.write_entry(ArchiveEntry("a.txt", content=io.BytesIO(b"a")))
            with mock.patch("ztr.zipwriter.ZIP_MAX_SIZE", w.f.tell()):
                with self.assertRaises(WriteError):
                    w.finalize()
            self.assertIsNone(w.f)

        self.run_with_tmpdir(scenario)

    def test_misuse_raises_write_error(self):
        def scenario(tmp_path: Path):
            w = open_writer("tar", tmp_path / "f.tar")
            with self.assertRaises(WriteError):
                w.write_entry(ArchiveEntry("nocontent.txt"))
            w.finalize()
            w.finalize()  # second call is a no-op
            with self.assertRaises(WriteError):
                w.write_entry(ArchiveEntry("late.txt", content=io.BytesIO(b"x")))
            self.assertEqual(w.entries_written, 0)

        self.run_with_tmpdir(scenario)

    def test_zip_entry_limit(self):
        def scenario(tmp_path: Path):
            out = tmp_path / "limit.zip"
            with mock.patch("ztr.zipwriter.ZIP_MAX_ENTRIES", 2):
                with open_writer("zip", out) as w:
                    w.write_entry(ArchiveEntry("a.txt", content=io.BytesIO(b"a")))
                    w.write_entry(ArchiveEntry("b.txt", content=io.BytesIO(b"b")))
                    with self.assertRaises(WriteError):
                        w.write_entry(ArchiveEntry("c.txt", content=io.BytesIO(b"c")))
            with zipfile.ZipFile(out) as zf:
                self.assertEqual(zf.namelist(), ["a.txt", "b.txt"])

        self.run_with_tmpdir(scenario)

    def test_failed_entry_leaves_readable_zip(self):
        def scenario(tmp_path: Path):
            out = tmp_path / "partial.zip"
            with self.assertRaises(ArchiveIOError):
                with open_writer("zip", out, chunk_size=4) as w:
                    w.write_entry(ArchiveEntry("good.txt", content=io.BytesIO(b"fine")))
                    w.write_entry(ArchiveEntry("bad.txt", content=_FailingStream()))
            self.assertEqual(w.entries_written, 1)
            with zipfile.ZipFile(out) as zf:
                self.assertEqual(zf.namelist(), ["good.txt"])
                self.assertEqual(zf.read("good.txt"), b"fine")

        self.run_with_tmpdir(scenario)

    def test_open_failure_and_unknown_format(self):
        def scenario(tmp_path: Path):
            with self.assertRaises(ArchiveIOError):
                open_writer("zip", tmp_path / "missing" / "x.zip")
            with self.assertRaises(ConfigError):
                writer_class("7z")

        self.run_with_tmpdir(scenario)

    def test_staging_suffix_not_in_tar_name(self):
        def scenario(tmp_path: Path):
            w = writer_class("tar.gz")(tmp_path / "out.tar.gz.partial")
            self.assertEqual(w.archive_name, "out.tar.gz")

        self.run_with_tmpdir(scenario)


if __name__ == "__main__":
    unittest.main()
