from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from pathlib import Path
from typing import List, Optional

from ztr.compressor import ProgressEvent, compress_directory
from ztr.config import ArchiveFormat, Configuration, load_config
from ztr.constants import DEFAULT_CONFIG_NAME
from ztr.errors import ZtrError


def _format_size(size: int) -> str:
    """Render a byte count the way the summary line shows it."""
    if size > 1024 * 1024:
        return f"{size / (1024.0 * 1024.0):.2f} MB"
    if size > 1024:
        return f"{size / 1024.0:.2f} KB"
    return f"{size} bytes"


def _printable(text) -> str:
    """Undecodable filename bytes (surrogate escapes) shown as backslash escapes."""
    return str(text).encode("utf-8", "backslashreplace").decode("utf-8")


def _resolve_config(config_path: Optional[str], root: Path) -> Configuration:
    """Load ``config_path``; without one, use ``<root>/ztr.toml`` or the built-in defaults."""
    if config_path is not None:
        return load_config(config_path)
    candidate = root / DEFAULT_CONFIG_NAME
    if candidate.is_file():
        return load_config(candidate)
    print(f" No {DEFAULT_CONFIG_NAME} found in {root}; using defaults (tar.gz)")
    return Configuration.default()


def cmd_compress(
    *,
    config_path: Optional[str] = None,
    root: str = ".",
    output_dir: Optional[str] = None,
    quiet: bool = False,
) -> Path:
    """Compress a directory according to its configuration.

    Args:
        config_path: TOML config path. Defaults to ``ztr.toml`` inside ``root``.
        root: Directory to archive.
        output_dir: Directory for the archive (defaults to ``root``).
        quiet: Only print the summary.

    Returns:
        Path of the written archive.
    """
    root_path = Path(root).resolve()
    config = _resolve_config(config_path, root_path)

    print(f" Compressing directory: {_printable(root_path)}")
    print(f" Format: {config.format.value}")

    t0 = time.time()
    counter = {"entries": 0, "bytes": 0}

    def _sink(ev: ProgressEvent) -> None:
        counter["entries"] = ev.entries_written
        counter["bytes"] = ev.bytes_written
        if not quiet:
            print(f" {ev.entries_written:>6} adding: {_printable(ev.current_path)}")

    out = compress_directory(config, root_path, output_dir=output_dir, progress=_sink)

    dt = max(0.000001, time.time() - t0)
    mib = counter["bytes"] / (1024.0 * 1024.0)
    if counter["entries"] == 0:
        print(" No files to compress; wrote an empty archive.")
    print(
        f"Done: {counter['entries']} entries, {mib:.2f} MiB in {dt:.1f}s; "
        f"{_printable(out)} ({_format_size(os.path.getsize(out))})"
    )
    return out


def cmd_show() -> bool:
    """List supported archive formats."""
    print("Supported formats:")
    for fmt in ArchiveFormat:
        print(f"  {fmt.value:<7} - {fmt.description} ({fmt.extension})")
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="ztr",
        description="Configuration-driven directory archiver",
        epilog="Ignore rules use gitignore syntax and are matched case-sensitively.",
    )
    ap.add_argument("--verbose", "-v", action="store_true", help="Log skipped entries and run details")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_compress = sub.add_parser("compress", help="Compress a directory")
    ap_compress.add_argument("--config", "-c", help=f"Config file (default: {DEFAULT_CONFIG_NAME} in the root)")
    ap_compress.add_argument("--root", default=".", help="Directory to compress (default: current directory)")
    ap_compress.add_argument("--output-dir", help="Directory for the archive (default: the root)")
    ap_compress.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    sub.add_parser("show", help="Show supported formats")

    args = ap.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        if args.cmd == "compress":
            cmd_compress(config_path=args.config, root=args.root, output_dir=args.output_dir, quiet=args.quiet)
        elif args.cmd == "show":
            cmd_show()
        else:
            raise RuntimeError("Unknown command")
    except ZtrError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except RuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
