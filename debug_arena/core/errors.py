"""Exceptions raised by the Debug Arena core.

The API layer translates these into HTTP responses; everything below it
only raises them.
"""

from __future__ import annotations


class ArenaError(Exception):
    """Base class for all Debug Arena errors."""


class AssignmentNotFoundError(ArenaError):
    """The assignment does not exist or does not belong to the caller."""

    def __init__(self, assignment_id: str) -> None:
        super().__init__(f"Assignment '{assignment_id}' not found")
        self.assignment_id = assignment_id


class AuthorizationError(ArenaError):
    """The caller lacks the role required for an operation."""


class QuizValidationError(ArenaError):
    """Administrator-authored content failed validation."""


class QuestionOrderPersistError(ArenaError):
    """The randomized question order could not be stored, so the load was aborted."""


class SessionStateError(ArenaError):
    """The operation is not valid in the session's current state."""


class SubmissionInProgressError(SessionStateError):
    """Another submission for the current question is still in flight."""


class SubmissionNotSavedError(ArenaError):
    """Storage rejected the submission; the session stays on the same question."""


class StorageError(ArenaError):
    """Generic failure reported by the hosted storage layer."""


class RecordNotFoundError(StorageError):
    """A single-row read matched nothing (or access control hid it)."""


class DuplicateRecordError(StorageError):
    """A uniqueness constraint rejected the write."""


class ExecutionError(ArenaError):
    """The remote execution service could not produce a run result."""
