"""Pydantic models for assignments, questions, submissions and answers."""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator, model_validator
from pydantic.alias_generators import to_camel

NonBlankStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

TRUE_FALSE_OPTIONS = ["True", "False"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self, **kwargs) -> Dict[str, Any]:
        """Dump to a JSON/YAML friendly dict using the wire field names."""
        return self.model_dump(mode="json", by_alias=True, **kwargs)


class QuestionType(str, Enum):
    MULTI_SELECT = "multi_select"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"

    @property
    def is_selectable(self) -> bool:
        return self is not QuestionType.SHORT_ANSWER


class SubmissionStatus(str, Enum):
    SUBMITTED = "submitted"
    GRADED = "graded"


class Question(CamelModel):
    """A single question with its answer key and rubric."""
    question_number: int = Field(description="Number of the question, unique within the assignment")
    question_text: NonBlankStr = Field(description="Question prompt shown to students")
    type: QuestionType = Field(default=QuestionType.MULTI_SELECT, description="Kind of question")
    options: List[str] = Field(default_factory=list, description="Option texts for selectable questions")
    correct_options: List[int] = Field(default_factory=list, description="Indices of the correct options")
    rubric: NonBlankStr = Field(description="Guidance for feedback generation and human grading")
    marks: float = Field(default=1, ge=0, description="Full value of the question")

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        # Accept "multi-select", "True/False" and similar spellings
        if isinstance(value, str):
            return value.strip().lower().replace("-", "_").replace("/", "_")
        return value

    @model_validator(mode="after")
    def _check_answer_key(self) -> "Question":
        if not self.type.is_selectable:
            if self.options or self.correct_options:
                raise ValueError("short answer questions take no options or correctOptions")
            return self

        if self.type is QuestionType.TRUE_FALSE and not self.options:
            self.options = list(TRUE_FALSE_OPTIONS)
        if not self.options:
            raise ValueError("options: at least one option is required")
        if not self.correct_options:
            raise ValueError("correctOptions: at least one correct option is required")
        if len(set(self.correct_options)) != len(self.correct_options):
            raise ValueError("correctOptions: duplicate option index")
        for index in self.correct_options:
            if index < 0 or index >= len(self.options):
                raise ValueError(f"correctOptions: index {index} is out of range for {len(self.options)} options")
        return self


class Assignment(CamelModel):
    """An assignment and its ordered questions."""
    id: Optional[int] = None
    title: NonBlankStr
    description: str = ""
    due_date: Optional[datetime] = None
    questions: List[Question] = Field(min_length=1)
    created_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _check_unique_numbers(self) -> "Assignment":
        seen = set()
        for question in self.questions:
            if question.question_number in seen:
                raise ValueError(f"questions: duplicate questionNumber {question.question_number}")
            seen.add(question.question_number)
        return self

    def question(self, question_number: int) -> Optional[Question]:
        for question in self.questions:
            if question.question_number == question_number:
                return question
        return None

    @property
    def total_marks(self) -> float:
        return sum(q.marks for q in self.questions)

    def to_student_dict(self) -> Dict[str, Any]:
        """Assignment without the answer key or rubrics."""
        return self.to_dict(exclude={"questions": {"__all__": {"correct_options", "rubric"}}})


class AnswerInput(CamelModel):
    """An answer as sent by a student."""
    question_number: int
    selected_options: List[int] = Field(default_factory=list)
    text_answer: Optional[str] = None


class SubmissionInput(CamelModel):
    """Payload of a student submit."""
    student_name: NonBlankStr
    answers: List[AnswerInput] = Field(default_factory=list)


class Answer(CamelModel):
    """A student's answer to one question, plus its grading state."""
    question_number: int
    selected_options: List[int] = Field(default_factory=list)
    text_answer: Optional[str] = None
    is_correct: Optional[bool] = None
    score: Optional[float] = Field(default=None, ge=0)
    ai_feedback: Optional[str] = None

    @field_validator("selected_options")
    @classmethod
    def _as_set(cls, value: List[int]) -> List[int]:
        if any(index < 0 for index in value):
            raise ValueError("option indices must be non-negative")
        return sorted(set(value))

    @model_validator(mode="after")
    def _check_grading_state(self) -> "Answer":
        if (self.is_correct is None) != (self.score is None):
            raise ValueError("isCorrect and score must be set together")
        if self.ai_feedback is not None and self.is_correct is None:
            raise ValueError("aiFeedback requires a graded answer")
        return self

    @property
    def is_graded(self) -> bool:
        return self.is_correct is not None

    def graded(self, is_correct: bool, score: float) -> "Answer":
        """Copy of this answer carrying the given verdict."""
        return self.model_copy(update={"is_correct": is_correct, "score": float(score)})


class Submission(CamelModel):
    """A student's submission for an assignment."""
    id: Optional[int] = None
    assignment_id: int
    student_name: NonBlankStr
    status: SubmissionStatus = SubmissionStatus.SUBMITTED
    ai_score: Optional[float] = None
    final_score: Optional[float] = None
    final_grade: Optional[str] = None
    submitted_at: datetime = Field(default_factory=_utcnow)
    answers: List[Answer] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_invariants(self) -> "Submission":
        numbers = [a.question_number for a in self.answers]
        if len(set(numbers)) != len(numbers):
            raise ValueError("answers: at most one answer per questionNumber")
        finalized = self.final_score is not None or self.final_grade is not None
        if finalized and self.status is not SubmissionStatus.GRADED:
            raise ValueError("finalScore/finalGrade require status graded")
        if self.status is SubmissionStatus.GRADED and (self.final_score is None or self.final_grade is None):
            raise ValueError("graded submissions need finalScore and finalGrade")
        return self

    def answer(self, question_number: int) -> Optional[Answer]:
        for answer in self.answers:
            if answer.question_number == question_number:
                return answer
        return None

    @property
    def graded_answers(self) -> List[Answer]:
        return [a for a in self.answers if a.is_graded]

    def with_answers(self, answers: List[Answer]) -> "Submission":
        """Copy with the given answers and aiScore recomputed from them."""
        return self.model_copy(update={"answers": answers, "ai_score": compute_ai_score(answers)})


def compute_ai_score(answers: List[Answer]) -> Optional[float]:
    """Sum of scores over graded answers, or None when nothing is graded."""
    scores = [a.score for a in answers if a.is_graded]
    if not scores:
        return None
    return float(sum(scores))
