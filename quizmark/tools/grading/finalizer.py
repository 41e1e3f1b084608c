"""Final grade computation and the submission state transitions around it."""

import logging
from typing import Optional

from .exceptions import InvalidStateError, ValidationError
from .models import Submission, SubmissionStatus

LOG = logging.getLogger(__name__)

# Checked top to bottom, first match wins.
# NOTE: bands assume a 0-100 scale but are applied to the raw mark sum.
GRADE_BANDS = [
    (90, "A+"),
    (80, "A"),
    (70, "B"),
    (60, "C"),
    (50, "D"),
]
FAILING_GRADE = "F"


def letter_grade(score: float) -> str:
    """Map a score to a letter grade using GRADE_BANDS."""
    for threshold, grade in GRADE_BANDS:
        if score >= threshold:
            return grade
    return FAILING_GRADE


def ensure_open(submission: Submission, lock_graded: bool) -> None:
    """Raise if grading is locked and the submission has already been finalized."""
    if lock_graded and submission.status is SubmissionStatus.GRADED:
        raise InvalidStateError(
            f"submission {submission.id} is graded and locked; reopen it before changing grades"
        )


def finalize(submission: Submission,
             final_score: Optional[float] = None,
             final_grade: Optional[str] = None) -> Submission:
    """
    Commit the authoritative outcome of a submission.

    Args:
        submission: Submission to finalize (not modified)
        final_score: Override for the final score (defaults to aiScore)
        final_grade: Override for the letter grade (defaults to the band for final_score)

    Returns:
        A new Submission with status graded

    Raises:
        InvalidStateError: If there is no aiScore and no final_score override
        ValidationError: If the overrides are malformed
    """
    if final_score is None:
        if submission.ai_score is None:
            raise InvalidStateError(
                f"submission {submission.id} has no aiScore; grade it or pass finalScore"
            )
        final_score = submission.ai_score
    elif final_score < 0:
        raise ValidationError(f"must be non-negative, got {final_score}", field="finalScore")

    if final_grade is None:
        final_grade = letter_grade(final_score)
    else:
        final_grade = final_grade.strip()
        if not final_grade:
            raise ValidationError("must not be blank", field="finalGrade")

    LOG.info(f"Finalized submission {submission.id}: {final_score} ({final_grade})")
    return submission.model_copy(update={
        "final_score": float(final_score),
        "final_grade": final_grade,
        "status": SubmissionStatus.GRADED,
    })


def reopen(submission: Submission) -> Submission:
    """Move a graded submission back to submitted, clearing the final outcome."""
    if submission.status is not SubmissionStatus.GRADED:
        raise InvalidStateError(f"submission {submission.id} is not graded")
    LOG.info(f"Reopened submission {submission.id}")
    return submission.model_copy(update={
        "final_score": None,
        "final_grade": None,
        "status": SubmissionStatus.SUBMITTED,
    })
