from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    """Base exception for business rule violations.

    ``context`` carries the identifiers a caller needs to render a message
    (entity id, expected vs actual state).
    """

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "context": {k: _plain(v) for k, v in self.context.items()},
        }


def _plain(value: Any) -> Any:
    if hasattr(value, "value"):
        return value.value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_plain(v) for v in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class InvalidPunchSequence(ValidationError):
    """Two consecutive punches of the same kind without a correction flag."""


class NotFoundError(DomainError):
    """Raised when a run, record, config or employee does not exist."""


class ForbiddenError(DomainError):
    """Raised when the caller may not perform the action (role, self-approval, non-DRAFT edit)."""


# Role failures were historically reported as authorization errors.
AuthorizationError = ForbiddenError


class InvalidTransition(DomainError):
    """Raised when a payroll run event is not allowed from its current state."""

    def __init__(self, message: str, *, run_id: Optional[str] = None, status: Any = None, event: Any = None, **context: Any):
        super().__init__(message, run_id=run_id, status=status, event=event, **context)


class ConcurrentModification(DomainError):
    """Raised when an entity changed since it was read. Callers may retry with a fresh read."""


class IncompleteAttendanceData(DomainError):
    """Raised when a period still has unresolved attendance exceptions."""


class MissingPayGrade(DomainError):
    """Raised when an employee has no approved pay grade."""
