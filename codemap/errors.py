"""Errors raised by codemap.

Every failure carries the input that caused it so the CLI can report
something actionable.
"""

from __future__ import annotations

from pathlib import Path


class CodemapError(Exception):
    """Base class for all codemap errors."""


class InvalidRootError(CodemapError):
    """The discovery root does not exist or is not a directory."""

    def __init__(self, root: str | Path):
        self.root = str(root)
        super().__init__(f"Repository root is not a directory: {self.root}")


class InvalidPatternError(CodemapError):
    """A glob pattern could not be compiled."""

    def __init__(self, pattern: str, reason: str = ""):
        self.pattern = pattern
        self.reason = reason
        message = f"Invalid glob pattern {pattern!r}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class StorageUnavailableError(CodemapError):
    """The cache database could not be opened, read or written."""

    def __init__(self, path: str | Path, reason: str = ""):
        self.path = str(path)
        self.reason = reason
        message = f"Cache storage unavailable at {self.path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ConfigError(CodemapError):
    """The .codemap.yml file is malformed."""

    def __init__(self, path: str | Path, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Invalid config {self.path}: {reason}")


class UnreadablePathError(CodemapError):
    """A directory or ignore file under the root could not be read."""

    def __init__(self, path: str | Path, reason: str = ""):
        self.path = str(path)
        self.reason = reason
        message = f"Cannot read {self.path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)

    @classmethod
    def from_os_error(cls, error: OSError) -> "UnreadablePathError":
        return cls(error.filename or "", error.strerror or str(error))
