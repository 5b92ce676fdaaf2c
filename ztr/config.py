from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple

from .constants import DEFAULT_ARCHIVE_STEM
from .errors import ConfigError


class ArchiveFormat(str, Enum):
    TAR = "tar"
    TAR_GZ = "tar.gz"
    ZIP = "zip"

    @property
    def extension(self) -> str:
        return "." + self.value

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @classmethod
    def parse(cls, value: Any) -> "ArchiveFormat":
        try:
            return cls(value)
        except ValueError:
            supported = ", ".join(f.value for f in cls)
            raise ConfigError(f"Unsupported format: {value!r} (supported: {supported})") from None


_DESCRIPTIONS = {
    ArchiveFormat.TAR: "plain tar container, no compression",
    ArchiveFormat.TAR_GZ: "tar stream through one gzip stream (common on Linux)",
    ArchiveFormat.ZIP: "per-entry deflate with a central directory (widely compatible)",
}


# Defaults of a freshly scaffolded ztr.toml
DEFAULT_IGNORE_RULES: Tuple[str, ...] = (
    "target/",
    "*.tmp",
    "*.log",
    ".DS_Store",
    "Thumbs.db",
    "*.swp",
    "*.swo",
    "*~",
    ".git/",
    ".svn/",
    ".hg/",
    "node_modules/",
    "__pycache__/",
    ".pytest_cache/",
    ".venv/",
    "venv/",
    "env/",
    "*.pyc",
    "*.pyo",
    "*.pyd",
    ".idea/",
    ".vscode/",
    "*.iml",
)

_KNOWN_KEYS = {"format", "output_name", "ignore", "ignore_file"}


@dataclass(frozen=True)
class Configuration:
    format: ArchiveFormat
    output_name: Optional[str] = None
    ignore_rules: Tuple[str, ...] = ()
    ignore_file: Optional[str] = None

    @classmethod
    def default(cls) -> "Configuration":
        return cls(format=ArchiveFormat.TAR_GZ, ignore_rules=DEFAULT_IGNORE_RULES)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], base_dir: Optional[Path] = None) -> "Configuration":
        """Validate a parsed config table.

        Args:
            data: Mapping with keys ``format``, ``output_name``, ``ignore``, ``ignore_file``.
            base_dir: Directory a relative ``ignore_file`` is resolved against. When None,
                the path is kept as given and resolved against the archive root later.

        Raises:
            ConfigError: On a missing/invalid field or an unknown key.
        """
        unknown = sorted(set(data) - _KNOWN_KEYS)
        if unknown:
            raise ConfigError(f"Unknown config key(s): {', '.join(unknown)}")
        if "format" not in data:
            raise ConfigError("Missing required field: format")
        fmt = ArchiveFormat.parse(data["format"])

        output_name = data.get("output_name")
        if output_name is not None:
            if not isinstance(output_name, str) or not output_name.strip():
                raise ConfigError("output_name must be a non-empty string")
            if "/" in output_name or "\\" in output_name:
                raise ConfigError(f"output_name may not contain path separators: {output_name!r}")

        rules = data.get("ignore") or []
        if not isinstance(rules, (list, tuple)) or not all(isinstance(r, str) for r in rules):
            raise ConfigError("ignore must be a list of strings")

        ignore_file = data.get("ignore_file")
        if ignore_file is not None:
            if not isinstance(ignore_file, str) or not ignore_file:
                raise ConfigError("ignore_file must be a non-empty string")
            if base_dir is not None and not os.path.isabs(ignore_file):
                ignore_file = str(Path(base_dir) / ignore_file)

        return cls(format=fmt, output_name=output_name, ignore_rules=tuple(rules), ignore_file=ignore_file)

    def resolve_ignore_rules(self, root: Path) -> List[str]:
        """Return the raw rule lines in effect.

        Non-empty ``ignore_rules`` win; otherwise ``ignore_file`` is read (relative
        paths against ``root``); otherwise there is no filtering.
        """
        if self.ignore_rules:
            return list(self.ignore_rules)
        if self.ignore_file is None:
            return []
        path = Path(self.ignore_file)
        if not path.is_absolute():
            path = Path(root) / path
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ConfigError(f"ignore_file not found: {path}") from None
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigError(f"Failed to read ignore_file {path}: {exc}") from exc
        return text.splitlines()

    def output_filename(self, root: Path) -> str:
        stem = self.output_name or Path(root).resolve().name or DEFAULT_ARCHIVE_STEM
        ext = self.format.extension
        if stem.endswith(ext):
            return stem
        return stem + ext


def load_config(path: os.PathLike | str) -> Configuration:
    """Load and validate a TOML configuration file."""
    path = Path(path)
    try:
        with open(path, "rb") as fh:
            data = tomllib.load(fh)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}") from None
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    return Configuration.from_mapping(data, base_dir=path.resolve().parent)
