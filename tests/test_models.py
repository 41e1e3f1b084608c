"""Tests for the grading data model."""

import pydantic
import pytest

from quizmark.tools.grading.models import (
    Answer,
    Assignment,
    Question,
    QuestionType,
    Submission,
    SubmissionStatus,
    compute_ai_score,
)


def question_data(**overrides):
    data = {
        'questionNumber': 1,
        'questionText': 'Pick the primes',
        'options': ['2', '4', '5'],
        'correctOptions': [0, 2],
        'rubric': '2 and 5 are prime',
        'marks': 4,
    }
    data.update(overrides)
    return data


class TestQuestion:
    """Test Question validation."""

    def test_defaults_to_multi_select(self):
        question = Question.model_validate(question_data())
        assert question.type is QuestionType.MULTI_SELECT
        assert question.correct_options == [0, 2]

    @pytest.mark.parametrize("spelling", ["multi-select", "Multi_Select", "MULTI-SELECT"])
    def test_type_spellings(self, spelling):
        question = Question.model_validate(question_data(type=spelling))
        assert question.type is QuestionType.MULTI_SELECT

    def test_true_false_default_options(self):
        question = Question.model_validate(question_data(type='true/false', options=[], correctOptions=[1]))
        assert question.type is QuestionType.TRUE_FALSE
        assert question.options == ['True', 'False']

    def test_blank_text_rejected(self):
        with pytest.raises(pydantic.ValidationError) as exc_info:
            Question.model_validate(question_data(questionText='   '))
        assert exc_info.value.errors()[0]['loc'] == ('questionText',)

    def test_missing_rubric_rejected(self):
        data = question_data()
        del data['rubric']
        with pytest.raises(pydantic.ValidationError) as exc_info:
            Question.model_validate(data)
        assert exc_info.value.errors()[0]['loc'] == ('rubric',)

    def test_selectable_needs_correct_option(self):
        with pytest.raises(pydantic.ValidationError, match="correctOptions"):
            Question.model_validate(question_data(correctOptions=[]))

    def test_correct_option_out_of_range(self):
        with pytest.raises(pydantic.ValidationError, match="out of range"):
            Question.model_validate(question_data(correctOptions=[3]))

    def test_negative_marks_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            Question.model_validate(question_data(marks=-1))

    def test_short_answer_takes_no_key(self):
        question = Question.model_validate(
            question_data(type='short_answer', options=[], correctOptions=[])
        )
        assert not question.type.is_selectable

        with pytest.raises(pydantic.ValidationError, match="short answer"):
            Question.model_validate(question_data(type='short_answer'))


class TestAssignment:
    """Test Assignment validation and helpers."""

    def test_duplicate_question_numbers(self):
        with pytest.raises(pydantic.ValidationError, match="duplicate questionNumber"):
            Assignment.model_validate({
                'title': 'Quiz',
                'questions': [question_data(), question_data(questionText='Again')],
            })

    def test_needs_questions(self):
        with pytest.raises(pydantic.ValidationError):
            Assignment.model_validate({'title': 'Quiz', 'questions': []})

    def test_non_contiguous_numbers(self, assignment_payload):
        assignment_payload['questions'][1]['questionNumber'] = 7
        assignment = Assignment.model_validate(assignment_payload)
        assert assignment.question(7).question_text == 'The Nile flows north.'
        assert assignment.question(2) is None

    def test_total_marks(self, assignment_payload):
        assert Assignment.model_validate(assignment_payload).total_marks == 20

    def test_student_dict_is_redacted(self, assignment_payload):
        data = Assignment.model_validate(assignment_payload).to_student_dict()
        for question in data['questions']:
            assert 'correctOptions' not in question
            assert 'rubric' not in question
            assert 'questionText' in question
        assert data['title'] == 'Geography Quiz'

    def test_camel_case_round_trip(self, assignment_payload):
        assignment = Assignment.model_validate(assignment_payload)
        data = assignment.to_dict()
        assert data['questions'][0]['correctOptions'] == [0, 2]
        assert data['dueDate'].startswith('2025-03-01')
        assert Assignment.model_validate(data) == assignment


class TestAnswer:
    """Test Answer grading-state invariants."""

    def test_ungraded_by_default(self):
        answer = Answer(question_number=1, selected_options=[2, 0, 2])
        assert not answer.is_graded
        assert answer.selected_options == [0, 2]

    def test_score_requires_verdict(self):
        with pytest.raises(pydantic.ValidationError, match="set together"):
            Answer(question_number=1, score=3)
        with pytest.raises(pydantic.ValidationError, match="set together"):
            Answer(question_number=1, is_correct=True)

    def test_feedback_requires_grade(self):
        with pytest.raises(pydantic.ValidationError, match="graded answer"):
            Answer(question_number=1, ai_feedback="Nice")

    def test_graded_copy(self):
        answer = Answer(question_number=1)
        graded = answer.graded(True, 4)
        assert graded.is_correct is True
        assert graded.score == 4.0
        assert answer.is_correct is None


class TestSubmission:
    """Test Submission invariants."""

    def test_one_answer_per_question(self):
        with pytest.raises(pydantic.ValidationError, match="at most one answer"):
            Submission(assignment_id=1, student_name='Alice',
                       answers=[Answer(question_number=1), Answer(question_number=1)])

    def test_blank_student_name(self):
        with pytest.raises(pydantic.ValidationError):
            Submission(assignment_id=1, student_name='  ')

    def test_final_score_requires_graded_status(self):
        with pytest.raises(pydantic.ValidationError, match="status graded"):
            Submission(assignment_id=1, student_name='Alice', final_score=10, final_grade='F')

    def test_graded_status_requires_final_outcome(self):
        with pytest.raises(pydantic.ValidationError, match="finalScore"):
            Submission(assignment_id=1, student_name='Alice', status=SubmissionStatus.GRADED)

    def test_with_answers_recomputes_ai_score(self):
        submission = Submission(assignment_id=1, student_name='Alice',
                                answers=[Answer(question_number=1), Answer(question_number=2)])
        assert submission.ai_score is None

        updated = submission.with_answers([
            Answer(question_number=1).graded(True, 4),
            Answer(question_number=2),
        ])
        assert updated.ai_score == 4
        assert submission.ai_score is None


def test_compute_ai_score_ignores_ungraded():
    answers = [
        Answer(question_number=1).graded(True, 10),
        Answer(question_number=2).graded(False, 0),
        Answer(question_number=3),
    ]
    assert compute_ai_score(answers) == 10
    assert compute_ai_score([Answer(question_number=1)]) is None
    assert compute_ai_score([]) is None
