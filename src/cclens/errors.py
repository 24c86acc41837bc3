"""Exceptions raised by cclens."""

from __future__ import annotations

from pathlib import Path


class CclensError(Exception):
    """Base class for cclens errors."""


class TranscriptDecodeError(CclensError, ValueError):
    """A transcript line could not be decoded into a record."""


class TranscriptReadError(CclensError):
    """A transcript file could not be opened or read."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Failed to read transcript '{path}': {reason}")
        self.path = path
        self.reason = reason


class WatchError(CclensError):
    """Filesystem change notifications could not be set up or were lost."""
