"""Error taxonomy for the lease-termination workflow."""

from __future__ import annotations

from typing import Optional


class LeaseTermError(Exception):
    """Base class for all workflow errors."""


class ValidationError(LeaseTermError):
    """A local field check failed; blocks only the triggering action."""

    def __init__(self, field: str, message: Optional[str] = None) -> None:
        self.field = field
        self.message = message or f"{field} is invalid"
        super().__init__(self.message)


class CheckpointNotFound(LeaseTermError):
    """No progress has been recorded for a subject yet."""

    def __init__(self, subject_id: str) -> None:
        self.subject_id = subject_id
        super().__init__(f"No checkpoint for subject {subject_id}")


class TransientIOError(LeaseTermError):
    """A collaborator call failed in a way the user can retry."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.status_code is None or self.status_code >= 500


class AuthError(LeaseTermError):
    """The session is missing or was rejected by the backend."""


class IllegalTransition(LeaseTermError):
    """A navigation operation is not legal from the current stage."""

    def __init__(self, operation: str, index: int, reason: str = "") -> None:
        self.operation = operation
        self.index = index
        detail = f": {reason}" if reason else ""
        super().__init__(f"{operation} is not permitted at stage {index}{detail}")


class WorkflowBusy(LeaseTermError):
    """Another operation is still in flight on the same workflow."""


__all__ = [
    "LeaseTermError",
    "ValidationError",
    "CheckpointNotFound",
    "TransientIOError",
    "AuthError",
    "IllegalTransition",
    "WorkflowBusy",
]
