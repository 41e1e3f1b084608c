"""Per-question AI feedback generation for graded answers."""

import asyncio
import logging
import string
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Union

from pydantic_ai.models import Model

from quizmark.libs.config_loader import ConfigType, get_config
from quizmark.libs.llm import create_agent
from .exceptions import ExternalFailure
from .models import Answer, Assignment, Question, Submission
from .store import SubmissionStore

LOG = logging.getLogger(__name__)

FEEDBACK_SYSTEM_PROMPT = (
    "You are an encouraging tutor writing short feedback on a student's answer to a "
    "single quiz question. Use the teacher's rubric to explain why the answer is right "
    "or what the student missed. Keep it to two or three sentences, speak directly to "
    "the student, and never contradict the verdict you are given."
)


class FeedbackGenerator(Protocol):
    """External capability that writes feedback for one answer."""

    async def generate(self, question_text: str, rubric: str,
                       student_answer: str, is_correct: bool) -> str:
        ...


def create_feedback_agent(configs: ConfigType,
                          model: Optional[Union[str, Model]] = None,
                          settings_dict: Optional[Dict[str, Any]] = None) -> Any:
    """Create a pydantic-ai Agent with the feedback system prompt."""
    return create_agent(
        configs=configs,
        model=model,
        settings_dict=settings_dict,
        system_prompt=FEEDBACK_SYSTEM_PROMPT,
    )


class AgentFeedbackGenerator:
    """FeedbackGenerator backed by a pydantic-ai Agent."""

    def __init__(self, configs: Optional[ConfigType] = None, model: Optional[Union[str, Model]] = None,
                 settings: Optional[Dict[str, Any]] = None, agent: Any = None):
        """
        Initialize the generator.

        Args:
            configs: Configuration dictionary (required unless agent is given)
            model: Model to use (overrides config value)
            settings: Pydantic AI settings dict (overrides config values)
            agent: Pre-built agent to use instead of creating one from configs
        """
        if agent is None:
            if configs is None:
                raise ValueError("configs are required when no agent is given")
            agent = create_feedback_agent(configs, model=model, settings_dict=settings)
        self.agent = agent

    def _build_prompt(self, question_text: str, rubric: str,
                      student_answer: str, is_correct: bool) -> str:
        verdict = "CORRECT" if is_correct else "INCORRECT"
        return f"""Write feedback for this student answer.

QUESTION:
{question_text}

RUBRIC:
{rubric}

STUDENT ANSWER:
{student_answer}

VERDICT: {verdict}

Reply with the feedback text only."""

    async def generate(self, question_text: str, rubric: str,
                       student_answer: str, is_correct: bool) -> str:
        prompt = self._build_prompt(question_text, rubric, student_answer, is_correct)
        result = await self.agent.run(prompt)
        text = str(result.output).strip()
        if not text:
            raise ExternalFailure("feedback generator returned empty text")
        return text


def option_label(index: int) -> str:
    if index < len(string.ascii_uppercase):
        return string.ascii_uppercase[index]
    return str(index + 1)


def describe_answer(question: Question, answer: Answer) -> str:
    """Render a student's answer as plain text for the generator."""
    if not question.type.is_selectable:
        text = (answer.text_answer or "").strip()
        return text or "No answer provided"

    if not answer.selected_options:
        return "No option selected"
    lines = []
    for index in answer.selected_options:
        if index < len(question.options):
            lines.append(f"{option_label(index)}) {question.options[index]}")
        else:
            lines.append(f"option {index} (not a valid option)")
    return "\n".join(lines)


class FeedbackOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class AnswerFailure:
    """A generator failure for one answer."""
    question_number: int
    error: str
    retryable: bool = True


@dataclass
class FeedbackRunResult:
    """Result of one feedback run over a submission."""
    submission: Submission
    attempted: List[int] = field(default_factory=list)
    generated: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    failures: List[AnswerFailure] = field(default_factory=list)

    @property
    def outcome(self) -> FeedbackOutcome:
        if not self.failures:
            return FeedbackOutcome.SUCCEEDED
        if not self.generated:
            return FeedbackOutcome.FAILED
        return FeedbackOutcome.PARTIAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            'submissionId': self.submission.id,
            'outcome': self.outcome.value,
            'attempted': self.attempted,
            'generated': self.generated,
            'skipped': self.skipped,
            'failures': [
                {'questionNumber': f.question_number, 'error': f.error, 'retryable': f.retryable}
                for f in self.failures
            ],
        }


class FeedbackOrchestrator:
    """Fill in aiFeedback for graded answers that have none."""

    def __init__(self, store: SubmissionStore, generator: FeedbackGenerator,
                 timeout_seconds: Optional[float] = 60, max_concurrent: int = 4):
        self.store = store
        self.generator = generator
        self.timeout_seconds = timeout_seconds
        self.max_concurrent = max_concurrent

    @classmethod
    def from_config(cls, store: SubmissionStore, generator: FeedbackGenerator,
                    configs: ConfigType) -> "FeedbackOrchestrator":
        return cls(
            store,
            generator,
            timeout_seconds=get_config("feedback.timeout_seconds", configs, default=60),
            max_concurrent=get_config("feedback.max_concurrent_requests", configs, default=4),
        )

    async def generate_feedback_async(self, submission: Submission,
                                      assignment: Assignment) -> FeedbackRunResult:
        """
        Generate feedback for every eligible answer of a submission.

        An answer is eligible when it is graded and has no feedback yet, so running
        this again only fills the gaps left by earlier failures. A failure on one
        answer never stops the others.

        Args:
            submission: Submission snapshot to work from
            assignment: Owning assignment

        Returns:
            FeedbackRunResult with the latest stored submission
        """
        result = FeedbackRunResult(submission=submission)
        eligible = []
        for answer in submission.answers:
            question = assignment.question(answer.question_number)
            if question is None or not answer.is_graded or answer.ai_feedback is not None:
                result.skipped.append(answer.question_number)
                continue
            eligible.append((question, answer))

        if not eligible:
            LOG.info(f"Submission {submission.id}: no answers need feedback")
            result.submission = self.store.get_submission(submission.id)
            return result

        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def run_one(question: Question, answer: Answer) -> None:
            async with semaphore:
                result.attempted.append(answer.question_number)
                try:
                    text = await self._call_generator(question, answer)
                except ExternalFailure as e:
                    LOG.warning(f"Feedback failed for submission {submission.id} "
                                f"question {answer.question_number}: {e}")
                    result.failures.append(AnswerFailure(answer.question_number, str(e)))
                    return
                if self._write_back(submission.id, answer, text):
                    result.generated.append(answer.question_number)
                else:
                    result.skipped.append(answer.question_number)

        await asyncio.gather(*(run_one(q, a) for q, a in eligible))

        result.attempted.sort()
        result.generated.sort()
        result.skipped.sort()
        result.failures.sort(key=lambda f: f.question_number)
        result.submission = self.store.get_submission(submission.id)
        LOG.info(f"Feedback for submission {submission.id}: {result.outcome.value} "
                 f"({len(result.generated)} generated, {len(result.failures)} failed)")
        return result

    def generate_feedback(self, submission: Submission, assignment: Assignment) -> FeedbackRunResult:
        """Synchronous wrapper for generate_feedback_async."""
        return asyncio.run(self.generate_feedback_async(submission, assignment))

    async def _call_generator(self, question: Question, answer: Answer) -> str:
        call = self.generator.generate(
            question.question_text,
            question.rubric,
            describe_answer(question, answer),
            answer.is_correct,
        )
        try:
            if self.timeout_seconds:
                return await asyncio.wait_for(call, timeout=self.timeout_seconds)
            return await call
        except ExternalFailure:
            raise
        except asyncio.TimeoutError as e:
            raise ExternalFailure(
                f"timed out after {self.timeout_seconds}s", answer.question_number
            ) from e
        except Exception as e:  # pylint: disable=broad-except
            raise ExternalFailure(f"{type(e).__name__}: {e}", answer.question_number) from e

    def _write_back(self, submission_id: int, original: Answer, text: str) -> bool:
        """Store feedback unless the answer changed while the generator was running."""
        written = False

        def attach(current: Submission) -> Submission:
            nonlocal written
            answers = []
            for answer in current.answers:
                if (answer.question_number == original.question_number
                        and answer.ai_feedback is None
                        and answer.is_correct == original.is_correct):
                    answer = answer.model_copy(update={"ai_feedback": text})
                    written = True
                answers.append(answer)
            return current.model_copy(update={"answers": answers})

        self.store.update_submission(submission_id, attach)
        if not written:
            LOG.info(f"Discarded feedback for submission {submission_id} question "
                     f"{original.question_number}: answer changed during generation")
        return written
