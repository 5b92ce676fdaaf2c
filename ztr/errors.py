class ZtrError(Exception):
    """Base class for ztr-specific errors."""


# Configuration and rules
class ConfigError(ZtrError):
    pass


class InvalidPatternError(ZtrError):
    def __init__(self, pattern: str, reason: str):
        super().__init__(f"invalid ignore pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


# Archive output
class ArchiveIOError(ZtrError):
    """Filesystem read/write failure; chained from the underlying OSError."""

    def __init__(self, path, message: str):
        super().__init__(f"{message}: {path}")
        self.path = path


class WriteError(ZtrError):
    """Archive-format-level failure (limits exceeded, bad entry names, misuse)."""
