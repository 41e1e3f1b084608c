"""Tests for final grades and the submission lifecycle."""

import pytest

from quizmark.tools.grading.auto_grader import auto_grade
from quizmark.tools.grading.exceptions import InvalidStateError, ValidationError
from quizmark.tools.grading.finalizer import ensure_open, finalize, letter_grade, reopen
from quizmark.tools.grading.models import SubmissionStatus


@pytest.mark.parametrize("score,grade", [
    (100, "A+"),
    (90, "A+"),
    (89.99, "A"),
    (85, "A"),
    (80, "A"),
    (70, "B"),
    (60, "C"),
    (59.5, "D"),
    (50, "D"),
    (49.9, "F"),
    (15, "F"),
    (0, "F"),
    (150, "A+"),
])
def test_letter_grade_bands(score, grade):
    assert letter_grade(score) == grade


class TestFinalize:
    """Test the grade finalizer."""

    def test_defaults_to_ai_score(self, assignment, make_submission):
        graded = auto_grade(assignment, make_submission())
        final = finalize(graded)
        assert final.final_score == graded.ai_score == 15
        assert final.final_grade == "F"
        assert final.status is SubmissionStatus.GRADED

    @pytest.mark.parametrize("score,grade", [(85, "A"), (50, "D"), (49.9, "F")])
    def test_explicit_score(self, make_submission, score, grade):
        final = finalize(make_submission(), final_score=score)
        assert final.final_score == score
        assert final.final_grade == grade

    def test_explicit_grade(self, assignment, make_submission):
        graded = auto_grade(assignment, make_submission())
        final = finalize(graded, final_grade=" B ")
        assert final.final_score == 15
        assert final.final_grade == "B"

    def test_ungraded_without_override(self, make_submission):
        with pytest.raises(InvalidStateError, match="no aiScore"):
            finalize(make_submission())

    def test_negative_score(self, make_submission):
        with pytest.raises(ValidationError) as exc_info:
            finalize(make_submission(), final_score=-1)
        assert exc_info.value.field == 'finalScore'

    def test_blank_grade(self, make_submission):
        with pytest.raises(ValidationError) as exc_info:
            finalize(make_submission(), final_score=70, final_grade='  ')
        assert exc_info.value.field == 'finalGrade'

    def test_refinalize_overwrites(self, make_submission):
        first = finalize(make_submission(), final_score=70)
        second = finalize(first, final_score=95)
        assert second.final_grade == "A+"
        assert second.status is SubmissionStatus.GRADED

    def test_does_not_modify_answers(self, assignment, make_submission):
        graded = auto_grade(assignment, make_submission())
        final = finalize(graded)
        assert final.answers == graded.answers
        assert final.ai_score == graded.ai_score


class TestLifecycle:
    """Test reopen and the graded lock."""

    def test_reopen_clears_final_outcome(self, make_submission):
        final = finalize(make_submission(), final_score=88)
        reopened = reopen(final)
        assert reopened.status is SubmissionStatus.SUBMITTED
        assert reopened.final_score is None
        assert reopened.final_grade is None

    def test_reopen_requires_graded(self, make_submission):
        with pytest.raises(InvalidStateError):
            reopen(make_submission())

    def test_ensure_open(self, make_submission):
        submitted = make_submission()
        graded = finalize(submitted, final_score=60)

        ensure_open(submitted, lock_graded=True)
        ensure_open(graded, lock_graded=False)
        with pytest.raises(InvalidStateError, match="locked"):
            ensure_open(graded, lock_graded=True)
