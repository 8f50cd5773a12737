"""
errors.py

Exception taxonomy for todo commands. Every error here is recoverable: the
interactive loop reports the message and goes back to reading input.
"""

from typing import Any, List, Optional


class TodoError(Exception):
    """Base class for every error a todo command can report."""


# ── Reference resolution ──────────────────────────────────────────────────────

class ResolutionError(TodoError):
    """A reference could not be turned into exactly one todo."""


class NotFound(ResolutionError):
    def __init__(self, short_id: str):
        self.short_id = short_id
        super().__init__(f"No todo found with short id '{short_id}'")


class AmbiguousShortId(ResolutionError):
    def __init__(self, short_id: str, count: int):
        self.short_id = short_id
        self.count = count
        super().__init__(
            f"Short id '{short_id}' matches {count} todos; use a longer id"
        )


class OutOfRange(ResolutionError):
    def __init__(self, index: int, length: int):
        self.index = index
        self.length = length
        if length == 0:
            detail = "the list is empty"
        else:
            detail = f"valid range is 1-{length}"
        super().__init__(f"Todo number {index} not found ({detail})")


class MissingReference(ResolutionError):
    def __init__(self):
        super().__init__("No todo identifier provided (short id or todo number required)")


class ContentMismatch(ResolutionError):
    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f'Title mismatch: expected "{expected}", found "{actual}"')


# ── Validation / batches ──────────────────────────────────────────────────────

class CommandValidationError(TodoError):
    """A command was rejected before anything was mutated."""


class BatchStepError(TodoError):
    """
    A step of a command sequence failed. Steps before it stay applied,
    steps after it were never attempted.
    """

    def __init__(self, step: int, total: int, command: Any, cause: Exception,
                 completed: Optional[List[Any]] = None):
        self.step = step
        self.total = total
        self.command = command
        self.cause = cause
        self.completed = completed or []
        skipped = total - step
        super().__init__(
            f"Step {step}/{total} failed: {cause}. "
            f"{step - 1} step(s) applied, {skipped} remaining step(s) not attempted."
        )


# ── Collaborators ─────────────────────────────────────────────────────────────

class CollaboratorError(TodoError):
    """The LLM call failed or returned something unusable."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class PersistenceError(TodoError):
    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Failed to {operation}: {cause}")
