"""Teacher-issued correctness overrides for a single question."""

import logging
from typing import Optional

from .exceptions import NotFoundError, UnansweredQuestionError, ValidationError
from .models import Assignment, Submission

LOG = logging.getLogger(__name__)


def manual_grade(assignment: Assignment,
                 submission: Submission,
                 question_number: int,
                 is_correct: bool,
                 marks_if_correct: Optional[float] = None) -> Submission:
    """
    Overwrite the verdict on one answer. The last grading action applied to a
    question wins, whether it came from the auto-grader or from a teacher.

    Args:
        assignment: Owning assignment
        submission: Submission to update (not modified)
        question_number: Question to grade
        is_correct: Verdict to apply
        marks_if_correct: Score awarded when correct (defaults to the question's marks)

    Returns:
        A new Submission with the answer re-graded and aiScore recomputed

    Raises:
        NotFoundError: If the question is not part of the assignment
        UnansweredQuestionError: If the submission has no answer for the question
        ValidationError: If marks_if_correct is outside [0, marks]
    """
    question = assignment.question(question_number)
    if question is None:
        raise NotFoundError("question", question_number)

    target = submission.answer(question_number)
    if target is None:
        raise UnansweredQuestionError(submission.id, question_number)

    if marks_if_correct is None:
        marks_if_correct = question.marks
    if marks_if_correct < 0 or marks_if_correct > question.marks:
        raise ValidationError(
            f"must be between 0 and {question.marks}, got {marks_if_correct}",
            field="marks",
        )

    score = marks_if_correct if is_correct else 0
    answers = [
        a.graded(is_correct, score) if a.question_number == question_number else a
        for a in submission.answers
    ]
    LOG.info(f"Manual grade on submission {submission.id} question {question_number}: "
             f"isCorrect={is_correct} score={score}")
    return submission.with_answers(answers)
