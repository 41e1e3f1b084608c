"""Exception hierarchy for the grading engine."""

from typing import Any, Optional


class GradingError(Exception):
    """Base class for all grading errors."""


class ValidationError(GradingError):
    """Malformed or incomplete payload. Raised before anything is written."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        if field:
            message = f"{field}: {message}"
        super().__init__(message)


class NotFoundError(GradingError):
    """Unknown assignment, submission or question reference."""

    def __init__(self, kind: str, identifier: Any):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier!r} not found")


class InvalidStateError(GradingError):
    """Operation not allowed in the submission's current state."""


class UnansweredQuestionError(NotFoundError, InvalidStateError):
    """The question exists on the assignment but the submission has no answer for it."""

    def __init__(self, submission_id: Any, question_number: int):
        self.submission_id = submission_id
        NotFoundError.__init__(self, "answer", question_number)
        self.args = (f"submission {submission_id!r} has no answer for question {question_number}",)


class ExternalFailure(GradingError):
    """The feedback generator failed or timed out. Safe to retry."""

    retryable = True

    def __init__(self, message: str, question_number: Optional[int] = None):
        self.question_number = question_number
        super().__init__(message)
