"""Error taxonomy for semantic-fs.

Every failure raised by the path guard or the patch engine is an
``SfsError`` subclass scoped to a single request. Tool functions convert
them to ``"Error: ..."`` text; nothing here is fatal to the server.
"""

from __future__ import annotations

__all__ = [
    "AccessDenied",
    "ArgumentInvalid",
    "MatchNotFound",
    "NotFound",
    "SfsError",
]


class SfsError(Exception):
    """Base class for all semantic-fs request errors."""


class AccessDenied(SfsError):
    """Path, its real path, or its parent's real path is outside every allowed root."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class NotFound(SfsError):
    """Neither the target nor its parent directory exists."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class MatchNotFound(SfsError):
    """An edit's old text could not be located in the current document."""

    def __init__(self, old_text: str, index: int) -> None:
        super().__init__(f"Could not find exact match for edit #{index + 1}:\n{old_text}")
        self.old_text = old_text
        self.index = index


class ArgumentInvalid(SfsError):
    """Malformed input supplied to the guard or the engine."""
