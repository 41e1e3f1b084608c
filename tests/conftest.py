"""Shared fixtures for grading tests."""

import pytest

from quizmark.tools.grading.models import Answer, Assignment, Submission
from quizmark.tools.grading.store import InMemoryStore


class FakeGenerator:
    """Feedback generator that records calls and fails on request."""

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.calls = []

    async def generate(self, question_text, rubric, student_answer, is_correct):
        self.calls.append((question_text, rubric, student_answer, is_correct))
        if question_text in self.fail_on:
            raise RuntimeError("model unavailable")
        verdict = "Well done" if is_correct else "Not quite"
        return f"{verdict}: {question_text}"


@pytest.fixture
def sample_config():
    """Configuration with small limits and no progress bars."""
    return {
        'grading': {'lock_graded': False},
        'feedback': {'timeout_seconds': 5, 'max_concurrent_requests': 2},
        'tools': {'max_threads': 2, 'show_progress': False},
        'openai': {'api_key': 'test-key', 'model': 'gpt-4o-mini'},
    }


@pytest.fixture
def assignment_payload():
    """Assignment with a multi-select, a true/false and a short answer question."""
    return {
        'title': 'Geography Quiz',
        'description': 'Capitals and rivers',
        'dueDate': '2025-03-01T09:00:00',
        'questions': [
            {
                'questionNumber': 1,
                'questionText': 'Which of these are European capitals?',
                'type': 'multi_select',
                'options': ['Paris', 'Sydney', 'Rome', 'Toronto'],
                'correctOptions': [0, 2],
                'rubric': 'Paris and Rome are capitals; Sydney and Toronto are not.',
                'marks': 10,
            },
            {
                'questionNumber': 2,
                'questionText': 'The Nile flows north.',
                'type': 'true_false',
                'correctOptions': [0],
                'rubric': 'The Nile flows from south to north into the Mediterranean.',
                'marks': 5,
            },
            {
                'questionNumber': 3,
                'questionText': 'Name the longest river in South America.',
                'type': 'short_answer',
                'rubric': 'The Amazon.',
                'marks': 5,
            },
        ],
    }


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def assignment(store, assignment_payload):
    return store.add_assignment(Assignment.model_validate(assignment_payload))


@pytest.fixture
def make_submission(store, assignment):
    """Factory storing a submission with the given answers."""
    def _make(student_name='Alice', q1=(0, 2), q2=(0,), q3='The Amazon'):
        answers = []
        if q1 is not None:
            answers.append(Answer(question_number=1, selected_options=list(q1)))
        if q2 is not None:
            answers.append(Answer(question_number=2, selected_options=list(q2)))
        if q3 is not None:
            answers.append(Answer(question_number=3, text_answer=q3))
        return store.add_submission(
            Submission(assignment_id=assignment.id, student_name=student_name, answers=answers)
        )
    return _make


@pytest.fixture
def fake_generator_cls():
    return FakeGenerator
