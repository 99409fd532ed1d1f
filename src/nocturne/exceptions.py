"""Error taxonomy for nocturne sessions."""

from __future__ import annotations

from typing import Optional


class NocturneError(Exception):
    """Base class for every error raised by nocturne."""


class DriverError(NocturneError):
    """A driver call (session/page creation, navigation, evaluation, upload) failed."""

    def __init__(self, message: str, *, operation: Optional[str] = None) -> None:
        super().__init__(message)
        self.operation = operation

    def __str__(self) -> str:
        message = super().__str__()
        if self.operation:
            return f"{self.operation}: {message}"
        return message


class PredicateEvaluationError(NocturneError):
    """An in-page check used by a poll failed to execute."""
