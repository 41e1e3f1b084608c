"""Grading engine: auto-grading, manual overrides, AI feedback and finalization."""

from .auto_grader import auto_grade
from .manual_grader import manual_grade
from .finalizer import finalize, reopen, letter_grade
from .feedback import AgentFeedbackGenerator, FeedbackOrchestrator, FeedbackRunResult, FeedbackOutcome
from .batch_grader import BatchGrader, SubmissionOutcome
from .models import Assignment, Question, QuestionType, Submission, SubmissionStatus, Answer
from .store import SubmissionStore, InMemoryStore, YamlStore
from .service import GradingService, create_service
from .exceptions import (
    GradingError,
    ValidationError,
    NotFoundError,
    InvalidStateError,
    UnansweredQuestionError,
    ExternalFailure,
)

__all__ = [
    'auto_grade',
    'manual_grade',
    'finalize',
    'reopen',
    'letter_grade',
    'AgentFeedbackGenerator',
    'FeedbackOrchestrator',
    'FeedbackRunResult',
    'FeedbackOutcome',
    'BatchGrader',
    'SubmissionOutcome',
    'Assignment',
    'Question',
    'QuestionType',
    'Submission',
    'SubmissionStatus',
    'Answer',
    'SubmissionStore',
    'InMemoryStore',
    'YamlStore',
    'GradingService',
    'create_service',
    'GradingError',
    'ValidationError',
    'NotFoundError',
    'InvalidStateError',
    'UnansweredQuestionError',
    'ExternalFailure',
]
