"""Exception hierarchy for align-agents.

Single-unit operations (store CRUD, ``sync_one_*``) raise these; fleet
operations convert them into ``error`` results instead.
"""

from __future__ import annotations

from typing import Any


class AlignAgentsError(Exception):
    """Base exception for all align-agents errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary representation."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ValidationError(AlignAgentsError):
    """Missing or invalid input: source id, target path, scope, strategy."""


class NotFoundError(AlignAgentsError):
    """Unknown tool, rule, set, definition or snapshot."""


class FormatError(AlignAgentsError):
    """Content that cannot be parsed as its declared JSON/TOML format."""


class ConflictError(AlignAgentsError):
    """Operation that would break the single-active-set invariant."""
