"""Grading operations exposed to the HTTP API and the CLI."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pydantic

from quizmark.libs.config_loader import ConfigType, get_config
from .auto_grader import auto_grade
from .batch_grader import BatchGrader, SubmissionOutcome
from .exceptions import ValidationError
from .feedback import AgentFeedbackGenerator, FeedbackGenerator, FeedbackOrchestrator, FeedbackRunResult
from .finalizer import ensure_open, finalize, reopen
from .manual_grader import manual_grade
from .models import (
    Answer,
    Assignment,
    Submission,
    SubmissionInput,
    SubmissionStatus,
)
from .store import SubmissionStore, YamlStore

LOG = logging.getLogger(__name__)

PERCENT_SCALE = 100


def _format_loc(loc) -> str:
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path


def validation_error_from(error: pydantic.ValidationError) -> ValidationError:
    """Convert the first pydantic error into a ValidationError naming the field."""
    first = error.errors()[0]
    message = first['msg']
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return ValidationError(message, field=_format_loc(first['loc']) or None)


class GradingService:
    """Implements the assignment, submission and grading operations over a store."""

    def __init__(self, store: SubmissionStore, configs: Optional[ConfigType] = None,
                 feedback_generator: Optional[FeedbackGenerator] = None):
        """
        Initialize the service.

        Args:
            store: Store for assignments and submissions
            configs: Configuration dictionary
            feedback_generator: Generator used for AI feedback (created lazily from
                configs when omitted)
        """
        self.store = store
        self.configs = configs or {}
        self.lock_graded = bool(get_config("grading.lock_graded", self.configs, default=False))
        self._feedback_generator = feedback_generator

    @property
    def feedback_generator(self) -> FeedbackGenerator:
        if self._feedback_generator is None:
            self._feedback_generator = AgentFeedbackGenerator(self.configs)
        return self._feedback_generator

    def _orchestrator(self) -> FeedbackOrchestrator:
        return FeedbackOrchestrator.from_config(self.store, self.feedback_generator, self.configs)

    def _batch_grader(self) -> BatchGrader:
        return BatchGrader(self.store, self.configs, lock_graded=self.lock_graded)

    # Assignments

    def create_assignment(self, payload: Dict[str, Any]) -> Assignment:
        """Validate and persist a new assignment. Nothing is written on failure."""
        if not isinstance(payload, dict):
            raise ValidationError("must be an object")
        try:
            assignment = Assignment.model_validate({**payload, 'id': None})
        except pydantic.ValidationError as e:
            raise validation_error_from(e) from e
        return self.store.add_assignment(assignment)

    def _counts(self, assignment_id: int) -> Dict[str, int]:
        submissions = self.store.list_submissions(assignment_id=assignment_id)
        graded = sum(1 for s in submissions if s.status is SubmissionStatus.GRADED)
        return {
            'totalSubmissions': len(submissions),
            'gradedCount': graded,
            'pendingCount': len(submissions) - graded,
        }

    def list_assignments_for_teacher(self) -> List[Dict[str, Any]]:
        return [
            {**a.to_dict(), **self._counts(a.id)}
            for a in self.store.list_assignments()
        ]

    def list_assignments_for_student(self) -> List[Dict[str, Any]]:
        return [a.to_student_dict() for a in self.store.list_assignments()]

    def get_assignment(self, assignment_id: int, redacted: bool = False) -> Dict[str, Any]:
        assignment = self.store.get_assignment(assignment_id)
        return assignment.to_student_dict() if redacted else assignment.to_dict()

    # Submissions

    def _build_answer(self, assignment: Assignment, index: int, item) -> Answer:
        field = f"answers[{index}]"
        question = assignment.question(item.question_number)
        if question is None:
            raise ValidationError(f"no question {item.question_number} in assignment",
                                  field=f"{field}.questionNumber")
        text = item.text_answer.strip() if item.text_answer is not None else None
        if question.type.is_selectable:
            if text:
                raise ValidationError("text answers are only accepted for short answer questions",
                                      field=f"{field}.textAnswer")
            for option in item.selected_options:
                if option < 0 or option >= len(question.options):
                    raise ValidationError(
                        f"option {option} is out of range for {len(question.options)} options",
                        field=f"{field}.selectedOptions")
            return Answer(question_number=item.question_number,
                          selected_options=item.selected_options)
        if item.selected_options:
            raise ValidationError("short answer questions take no selected options",
                                  field=f"{field}.selectedOptions")
        return Answer(question_number=item.question_number, text_answer=text)

    def submit_answers(self, assignment_id: int, payload: Dict[str, Any]) -> Submission:
        """Create a submission in the submitted state with all answers ungraded."""
        assignment = self.store.get_assignment(assignment_id)
        try:
            data = SubmissionInput.model_validate(payload)
        except pydantic.ValidationError as e:
            raise validation_error_from(e) from e

        answers = []
        seen = set()
        for index, item in enumerate(data.answers):
            if item.question_number in seen:
                raise ValidationError(f"duplicate answer for question {item.question_number}",
                                      field=f"answers[{index}].questionNumber")
            seen.add(item.question_number)
            answers.append(self._build_answer(assignment, index, item))

        submission = Submission(
            assignment_id=assignment.id,
            student_name=data.student_name,
            answers=answers,
        )
        return self.store.add_submission(submission)

    def list_submissions_for_assignment(self, assignment_id: int) -> List[Submission]:
        self.store.get_assignment(assignment_id)
        return self.store.list_submissions(assignment_id=assignment_id)

    def list_submissions_by_student(self, student_name: str) -> List[Dict[str, Any]]:
        if not student_name or not student_name.strip():
            raise ValidationError("must not be empty", field="studentName")
        titles = {a.id: a.title for a in self.store.list_assignments()}
        return [
            {**s.to_dict(exclude={'answers'}), 'assignmentTitle': titles.get(s.assignment_id)}
            for s in self.store.list_submissions(student_name=student_name)
        ]

    def get_submission_detail(self, submission_id: int) -> Dict[str, Any]:
        submission = self.store.get_submission(submission_id)
        assignment = self.store.get_assignment(submission.assignment_id)
        return {**submission.to_dict(), 'assignment': assignment.to_dict()}

    # Grading

    def auto_grade_submission(self, submission_id: int) -> Submission:
        submission = self.store.get_submission(submission_id)
        assignment = self.store.get_assignment(submission.assignment_id)

        def grade(current: Submission) -> Submission:
            ensure_open(current, self.lock_graded)
            return auto_grade(assignment, current)

        return self.store.update_submission(submission_id, grade)

    def auto_grade_assignment(self, assignment_id: int) -> List[SubmissionOutcome]:
        """Auto-grade every submission of an assignment; failures are collected, not raised."""
        return self._batch_grader().auto_grade_all(assignment_id)

    def manual_grade_answer(self, submission_id: int, question_number: int, is_correct: bool,
                            marks: Optional[float] = None) -> Submission:
        submission = self.store.get_submission(submission_id)
        assignment = self.store.get_assignment(submission.assignment_id)

        def grade(current: Submission) -> Submission:
            ensure_open(current, self.lock_graded)
            return manual_grade(assignment, current, question_number, is_correct, marks)

        return self.store.update_submission(submission_id, grade)

    def generate_feedback(self, submission_id: int) -> FeedbackRunResult:
        return asyncio.run(self.generate_feedback_async(submission_id))

    async def generate_feedback_async(self, submission_id: int) -> FeedbackRunResult:
        submission = self.store.get_submission(submission_id)
        assignment = self.store.get_assignment(submission.assignment_id)
        return await self._orchestrator().generate_feedback_async(submission, assignment)

    def generate_feedback_for_assignment(self, assignment_id: int) -> List[SubmissionOutcome]:
        return self._batch_grader().generate_feedback_all(assignment_id, self._orchestrator())

    def finalize_submission(self, submission_id: int, final_score: Optional[float] = None,
                            final_grade: Optional[str] = None) -> Submission:
        submission = self.store.get_submission(submission_id)
        assignment = self.store.get_assignment(submission.assignment_id)
        if final_grade is None and assignment.total_marks != PERCENT_SCALE:
            LOG.warning(f"Assignment {assignment.id} is worth {assignment.total_marks} marks; "
                        f"letter grade bands assume a 0-{PERCENT_SCALE} scale and are applied "
                        f"to the raw score")

        def close(current: Submission) -> Submission:
            ensure_open(current, self.lock_graded)
            return finalize(current, final_score, final_grade)

        return self.store.update_submission(submission_id, close)

    def reopen_submission(self, submission_id: int) -> Submission:
        return self.store.update_submission(submission_id, reopen)

    def grading_status(self, assignment_id: int) -> Dict[str, Any]:
        """Pull-based progress for an assignment's grading."""
        assignment = self.store.get_assignment(assignment_id)
        submissions = self.store.list_submissions(assignment_id=assignment_id)
        answers = [a for s in submissions for a in s.answers]
        graded = [a for a in answers if a.is_graded]
        return {
            'assignmentId': assignment.id,
            **self._counts(assignment.id),
            'answersTotal': len(answers),
            'answersGraded': len(graded),
            'answersUngraded': len(answers) - len(graded),
            'answersWithFeedback': sum(1 for a in answers if a.ai_feedback is not None),
            'submissions': [
                {
                    'id': s.id,
                    'studentName': s.student_name,
                    'status': s.status.value,
                    'aiScore': s.ai_score,
                    'answersGraded': len(s.graded_answers),
                    'answersTotal': len(s.answers),
                }
                for s in submissions
            ],
        }


def create_service(configs: ConfigType, store: Optional[SubmissionStore] = None,
                   feedback_generator: Optional[FeedbackGenerator] = None) -> GradingService:
    """Build a service from configs, defaulting to the YAML store at grading.store_path."""
    if store is None:
        store = YamlStore(Path(get_config("grading.store_path", configs, default="data/gradebook.yaml")))
    return GradingService(store, configs, feedback_generator)

