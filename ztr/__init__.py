"""
ztr: configuration-driven directory archiver.

Features:

- gitignore-style ignore rules (wildcards, character classes, ``**``, anchoring,
  directory-only rules, negation with last-match-wins precedence)
- three output formats behind one streaming writer interface:
  ``tar`` (plain), ``tar.gz`` (single gzip stream) and ``zip`` (per-entry
  deflate with a central directory)
- progress events per written entry; incomplete archives are never left
  under the final name

Configuration is read from ``ztr.toml`` (see ztr.config).
"""

__version__ = "0.1"

__all__ = [
    "config",
    "patterns",
    "ignore",
    "walk",
    "writer",
    "compressor",
]

# Programmatic API: ztr.compressor.compress_directory(config, root) with a
# Configuration from ztr.config.load_config or Configuration.from_mapping.
