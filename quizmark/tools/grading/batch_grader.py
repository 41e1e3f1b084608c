"""Batch operations over all submissions of an assignment using async/await."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

import yaml
from tqdm.asyncio import tqdm

from quizmark.libs.config_loader import ConfigType, get_config
from .auto_grader import auto_grade
from .exceptions import InvalidStateError
from .feedback import FeedbackOrchestrator, FeedbackOutcome
from .finalizer import ensure_open
from .models import Assignment, Submission
from .store import SubmissionStore

LOG = logging.getLogger(__name__)

SUCCEEDED = "succeeded"
PARTIAL = "partial"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass
class SubmissionOutcome:
    """Result of a batch operation on one submission."""
    submission_id: int
    student_name: str
    status: str
    ai_score: Optional[float] = None
    error_message: Optional[str] = None
    detail: Optional[Dict[str, Any]] = None
    timestamp: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now().isoformat()

    @property
    def success(self) -> bool:
        return self.status == SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON/YAML serialization."""
        data = {
            'submissionId': self.submission_id,
            'studentName': self.student_name,
            'status': self.status,
            'aiScore': self.ai_score,
            'timestamp': self.timestamp,
        }
        if self.error_message:
            data['error'] = self.error_message
        if self.detail:
            data['detail'] = self.detail
        return data


class BatchGrader:
    """Run per-submission operations over an assignment in parallel."""

    def __init__(self, store: SubmissionStore, configs: Optional[ConfigType] = None,
                 max_concurrent: Optional[int] = None, lock_graded: Optional[bool] = None,
                 show_progress: Optional[bool] = None):
        """
        Initialize the batch grader.

        Args:
            store: Store holding the assignment and its submissions
            configs: Configuration dictionary
            max_concurrent: Maximum number of concurrent tasks (overrides config)
            lock_graded: Whether graded submissions are locked (overrides config)
            show_progress: Whether to show a progress bar (overrides config)
        """
        configs = configs or {}
        self.store = store
        if max_concurrent is not None:
            self.max_concurrent = max_concurrent
        else:
            self.max_concurrent = get_config("tools.max_threads", configs, default=4)
        if lock_graded is not None:
            self.lock_graded = lock_graded
        else:
            self.lock_graded = bool(get_config("grading.lock_graded", configs, default=False))
        if show_progress is not None:
            self.show_progress = show_progress
        else:
            self.show_progress = bool(get_config("tools.show_progress", configs, default=True))

        LOG.info(f"BatchGrader initialized with max_concurrent={self.max_concurrent}")

    def _auto_grade_one(self, assignment: Assignment, submission: Submission) -> SubmissionOutcome:
        def grade(current: Submission) -> Submission:
            ensure_open(current, self.lock_graded)
            return auto_grade(assignment, current)

        try:
            updated = self.store.update_submission(submission.id, grade)
        except InvalidStateError as e:
            LOG.debug(f"Skipping submission {submission.id}: {e}")
            return SubmissionOutcome(submission.id, submission.student_name, SKIPPED,
                                     ai_score=submission.ai_score, error_message=str(e))
        except Exception as e:  # pylint: disable=broad-except
            LOG.error(f"Error auto-grading submission {submission.id}: {e}")
            return SubmissionOutcome(submission.id, submission.student_name, FAILED,
                                     ai_score=submission.ai_score, error_message=str(e))
        return SubmissionOutcome(submission.id, updated.student_name, SUCCEEDED,
                                 ai_score=updated.ai_score)

    async def _feedback_one(self, orchestrator: FeedbackOrchestrator, assignment: Assignment,
                            submission: Submission) -> SubmissionOutcome:
        try:
            run = await orchestrator.generate_feedback_async(submission, assignment)
        except Exception as e:  # pylint: disable=broad-except
            LOG.error(f"Error generating feedback for submission {submission.id}: {e}")
            return SubmissionOutcome(submission.id, submission.student_name, FAILED,
                                     ai_score=submission.ai_score, error_message=str(e))
        status = {
            FeedbackOutcome.SUCCEEDED: SUCCEEDED,
            FeedbackOutcome.PARTIAL: PARTIAL,
            FeedbackOutcome.FAILED: FAILED,
        }[run.outcome]
        error = "; ".join(f"question {f.question_number}: {f.error}" for f in run.failures) or None
        return SubmissionOutcome(submission.id, submission.student_name, status,
                                 ai_score=run.submission.ai_score, error_message=error,
                                 detail=run.to_dict())

    async def _run_all(self, submissions: List[Submission],
                       task: Callable[[Submission], Awaitable[SubmissionOutcome]],
                       desc: str) -> List[SubmissionOutcome]:
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def with_semaphore(submission: Submission) -> SubmissionOutcome:
            async with semaphore:
                return await task(submission)

        tasks = [with_semaphore(s) for s in submissions]
        results = []
        for coro in tqdm.as_completed(tasks, total=len(tasks), desc=desc,
                                      disable=not self.show_progress):
            outcome = await coro
            results.append(outcome)
            if outcome.status in (FAILED, PARTIAL):
                LOG.warning(f"{desc}: submission {outcome.submission_id} {outcome.status}: "
                            f"{outcome.error_message}")

        results.sort(key=lambda r: r.submission_id)
        return results

    async def auto_grade_all_async(self, assignment_id: int) -> List[SubmissionOutcome]:
        """
        Auto-grade every submission of an assignment.

        Each submission is graded independently in a worker thread; a failure on one
        is reported in its outcome and does not affect the others.

        Args:
            assignment_id: Assignment whose submissions to grade

        Returns:
            List of SubmissionOutcome ordered by submission id
        """
        assignment = self.store.get_assignment(assignment_id)
        submissions = self.store.list_submissions(assignment_id=assignment_id)
        LOG.info(f"Auto-grading {len(submissions)} submissions for assignment {assignment_id}")

        async def grade(submission: Submission) -> SubmissionOutcome:
            return await asyncio.to_thread(self._auto_grade_one, assignment, submission)

        return await self._run_all(submissions, grade, "Auto-grading submissions")

    def auto_grade_all(self, assignment_id: int) -> List[SubmissionOutcome]:
        """Synchronous wrapper for auto_grade_all_async."""
        return asyncio.run(self.auto_grade_all_async(assignment_id))

    async def generate_feedback_all_async(self, assignment_id: int,
                                          orchestrator: FeedbackOrchestrator) -> List[SubmissionOutcome]:
        """Generate feedback for every submission of an assignment."""
        assignment = self.store.get_assignment(assignment_id)
        submissions = self.store.list_submissions(assignment_id=assignment_id)
        LOG.info(f"Generating feedback for {len(submissions)} submissions of assignment {assignment_id}")

        async def feedback(submission: Submission) -> SubmissionOutcome:
            return await self._feedback_one(orchestrator, assignment, submission)

        return await self._run_all(submissions, feedback, "Generating feedback")

    def generate_feedback_all(self, assignment_id: int,
                              orchestrator: FeedbackOrchestrator) -> List[SubmissionOutcome]:
        """Synchronous wrapper for generate_feedback_all_async."""
        return asyncio.run(self.generate_feedback_all_async(assignment_id, orchestrator))

    def save_summary(self, results: List[SubmissionOutcome], output_path: Path):
        """
        Save a batch summary to a YAML file.

        Args:
            results: Outcomes of a batch run
            output_path: Path to save summary file
        """
        counts = {status: 0 for status in (SUCCEEDED, PARTIAL, SKIPPED, FAILED)}
        for result in results:
            counts[result.status] += 1
        scored = [r.ai_score for r in results if r.ai_score is not None]

        summary = {
            'batch_summary': {
                'timestamp': datetime.now().isoformat(),
                'total_submissions': len(results),
                **counts,
                'average_ai_score': sum(scored) / len(scored) if scored else None,
            },
            'submissions': [r.to_dict() for r in results]
        }

        with open(output_path, 'w') as f:
            yaml.safe_dump(summary, f, default_flow_style=False, sort_keys=False)

        LOG.info(f"Summary saved to {output_path}")
