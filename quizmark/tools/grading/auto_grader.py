"""Deterministic auto-grading of selectable questions."""

import logging

from .exceptions import ValidationError
from .models import Answer, Assignment, Question, Submission

LOG = logging.getLogger(__name__)


def is_exact_match(question: Question, answer: Answer) -> bool:
    """True when the selected options are exactly the answer key (no partial credit)."""
    return set(answer.selected_options) == set(question.correct_options)


def auto_grade(assignment: Assignment, submission: Submission) -> Submission:
    """
    Grade every selectable answer of a submission against the answer key.

    Short-answer questions and answers that do not resolve to a question are left
    untouched. aiScore is recomputed over all graded answers. Status, final score,
    final grade and feedback are not modified.

    Args:
        assignment: The assignment the submission belongs to
        submission: Submission to grade (not modified)

    Returns:
        A new Submission with graded answers

    Raises:
        ValidationError: If the submission belongs to a different assignment
    """
    if submission.assignment_id != assignment.id:
        raise ValidationError(
            f"submission belongs to assignment {submission.assignment_id}, not {assignment.id}",
            field="assignmentId",
        )

    answers = []
    graded = 0
    for answer in submission.answers:
        question = assignment.question(answer.question_number)
        if question is None:
            LOG.debug(f"Submission {submission.id}: no question {answer.question_number}, leaving ungraded")
            answers.append(answer)
        elif not question.type.is_selectable:
            answers.append(answer)
        elif is_exact_match(question, answer):
            answers.append(answer.graded(True, question.marks))
            graded += 1
        else:
            answers.append(answer.graded(False, 0))
            graded += 1

    result = submission.with_answers(answers)
    LOG.debug(f"Auto-graded submission {submission.id}: {graded} answers, aiScore={result.ai_score}")
    return result
