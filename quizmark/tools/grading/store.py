"""Storage abstraction for assignments and submissions."""

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml

from .exceptions import NotFoundError
from .models import Assignment, Submission

LOG = logging.getLogger(__name__)

SubmissionListener = Callable[[Submission], None]


class SubmissionStore(ABC):
    """
    Holds assignments and submissions.

    Implementations hand out copies, so callers never share mutable state with the
    store. update_submission is the only way to change a stored submission and must
    be atomic: readers see either the old record or the new one.
    """

    def __init__(self):
        self._listeners: List[SubmissionListener] = []

    @abstractmethod
    def add_assignment(self, assignment: Assignment) -> Assignment:
        """Persist a new assignment and return it with its id."""

    @abstractmethod
    def get_assignment(self, assignment_id: int) -> Assignment:
        """Raises NotFoundError for unknown ids."""

    @abstractmethod
    def list_assignments(self) -> List[Assignment]:
        pass

    @abstractmethod
    def add_submission(self, submission: Submission) -> Submission:
        """Persist a new submission and return it with its id."""

    @abstractmethod
    def get_submission(self, submission_id: int) -> Submission:
        """Raises NotFoundError for unknown ids."""

    @abstractmethod
    def put_submission(self, submission: Submission) -> Submission:
        """Replace a stored submission (last writer wins)."""

    @abstractmethod
    def list_submissions(self, assignment_id: Optional[int] = None,
                         student_name: Optional[str] = None) -> List[Submission]:
        pass

    @abstractmethod
    def update_submission(self, submission_id: int,
                          mutate: Callable[[Submission], Submission]) -> Submission:
        """Atomically read, transform and write back one submission."""

    def subscribe(self, listener: SubmissionListener) -> None:
        """Register a callback invoked with every committed submission write."""
        self._listeners.append(listener)

    def _notify(self, submission: Submission) -> None:
        for listener in self._listeners:
            try:
                listener(submission.model_copy(deep=True))
            except Exception:  # pylint: disable=broad-except
                LOG.exception(f"Submission listener {listener!r} failed")


class InMemoryStore(SubmissionStore):
    """Thread-safe in-process store."""

    def __init__(self):
        super().__init__()
        self._lock = threading.RLock()
        self._assignments: Dict[int, Assignment] = {}
        self._submissions: Dict[int, Submission] = {}

    def _next_id(self, records: Dict[int, object]) -> int:
        return max(records, default=0) + 1

    def _commit(self) -> None:
        """Hook called under the lock after every write."""

    def _write(self, records: Dict[int, Any], key: int, value: Any) -> None:
        """Set records[key] and commit, restoring the previous entry if the commit fails."""
        previous = records.get(key)
        records[key] = value
        try:
            self._commit()
        except Exception:
            if previous is None:
                del records[key]
            else:
                records[key] = previous
            raise

    def add_assignment(self, assignment: Assignment) -> Assignment:
        with self._lock:
            stored = assignment.model_copy(deep=True, update={"id": self._next_id(self._assignments)})
            self._write(self._assignments, stored.id, stored)
        LOG.info(f"Created assignment {stored.id}: {stored.title!r}")
        return stored.model_copy(deep=True)

    def get_assignment(self, assignment_id: int) -> Assignment:
        with self._lock:
            assignment = self._assignments.get(assignment_id)
            if assignment is None:
                raise NotFoundError("assignment", assignment_id)
            return assignment.model_copy(deep=True)

    def list_assignments(self) -> List[Assignment]:
        with self._lock:
            return [a.model_copy(deep=True) for _, a in sorted(self._assignments.items())]

    def add_submission(self, submission: Submission) -> Submission:
        with self._lock:
            if submission.assignment_id not in self._assignments:
                raise NotFoundError("assignment", submission.assignment_id)
            stored = submission.model_copy(deep=True, update={"id": self._next_id(self._submissions)})
            self._write(self._submissions, stored.id, stored)
        LOG.info(f"Created submission {stored.id} for assignment {stored.assignment_id}")
        self._notify(stored)
        return stored.model_copy(deep=True)

    def get_submission(self, submission_id: int) -> Submission:
        with self._lock:
            submission = self._submissions.get(submission_id)
            if submission is None:
                raise NotFoundError("submission", submission_id)
            return submission.model_copy(deep=True)

    def put_submission(self, submission: Submission) -> Submission:
        with self._lock:
            if submission.id not in self._submissions:
                raise NotFoundError("submission", submission.id)
            stored = submission.model_copy(deep=True)
            self._write(self._submissions, stored.id, stored)
        self._notify(stored)
        return stored.model_copy(deep=True)

    def list_submissions(self, assignment_id: Optional[int] = None,
                         student_name: Optional[str] = None) -> List[Submission]:
        with self._lock:
            results = []
            for _, submission in sorted(self._submissions.items()):
                if assignment_id is not None and submission.assignment_id != assignment_id:
                    continue
                if student_name is not None and submission.student_name != student_name.strip():
                    continue
                results.append(submission.model_copy(deep=True))
            return results

    def update_submission(self, submission_id: int,
                          mutate: Callable[[Submission], Submission]) -> Submission:
        with self._lock:
            current = self._submissions.get(submission_id)
            if current is None:
                raise NotFoundError("submission", submission_id)
            updated = mutate(current.model_copy(deep=True))
            # mutate may return an unvalidated model_copy
            stored = Submission.model_validate(updated.model_dump())
            if stored.id != submission_id:
                raise ValueError(f"update changed submission id {submission_id} -> {stored.id}")
            self._write(self._submissions, submission_id, stored)
        self._notify(stored)
        return stored.model_copy(deep=True)


class YamlStore(InMemoryStore):
    """In-memory store mirrored to a YAML file after every write."""

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            LOG.info(f"Gradebook {self.path} does not exist yet, starting empty")
            return
        with open(self.path, 'r') as f:
            data = yaml.safe_load(f) or {}
        for item in data.get('assignments', []):
            assignment = Assignment.model_validate(item)
            self._assignments[assignment.id] = assignment
        for item in data.get('submissions', []):
            submission = Submission.model_validate(item)
            self._submissions[submission.id] = submission
        LOG.info(f"Loaded {len(self._assignments)} assignments and "
                 f"{len(self._submissions)} submissions from {self.path}")

    def _commit(self) -> None:
        data = {
            'assignments': [a.to_dict() for _, a in sorted(self._assignments.items())],
            'submissions': [s.to_dict() for _, s in sorted(self._submissions.items())],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        try:
            with open(tmp_path, 'w') as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
            tmp_path.replace(self.path)
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise
