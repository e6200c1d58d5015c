"""
Job Tracker - Asynchronous Job Records and State Machine

Tracks raw intake jobs and orchestrator (RUNE) jobs. Each job moves through

    queued -> processing -> complete
    queued | processing -> error

Terminal jobs (complete, error) are frozen: no field changes after the
terminal transition, so repeated status reads are identical.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Final, Optional

from rune.errors import JobStateError, NotFoundError

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

INITIAL_PROGRESS: Final[int] = 5
PROCESSING_PROGRESS: Final[int] = 25
MAX_ESTIMATED_PROGRESS: Final[int] = 95
QUEUED_ESTIMATE_CAP: Final[int] = 25


# =============================================================================
# Enums
# =============================================================================


class JobState(Enum):
    """State of an asynchronous job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETE, JobState.ERROR)


class JobKind(Enum):
    """Kind of work a job tracks."""

    INTAKE = "intake"
    RUNE = "rune"


_ALLOWED_TRANSITIONS: Final[dict[JobState, frozenset[JobState]]] = {
    JobState.QUEUED: frozenset({JobState.PROCESSING, JobState.ERROR}),
    JobState.PROCESSING: frozenset({JobState.COMPLETE, JobState.ERROR}),
    JobState.COMPLETE: frozenset(),
    JobState.ERROR: frozenset(),
}


# =============================================================================
# Job Record
# =============================================================================


@dataclass(frozen=True)
class JobEvent:
    """One entry of a job's append-only event log."""

    job_id: str
    kind: JobKind
    message: str
    at: datetime

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "kind": self.kind.value,
            "message": self.message,
            "at": self.at.isoformat(),
        }


@dataclass
class Job:
    """A unit of asynchronous work, tracked by id."""

    job_id: str
    kind: JobKind
    state: JobState = JobState.QUEUED
    progress: int = INITIAL_PROGRESS
    doc_id: Optional[str] = None
    deal_id: Optional[str] = None
    score: Optional[int] = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)
    events: list[JobEvent] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def to_status_dict(self) -> dict:
        """
        Status payload for raw intake jobs.

        ``doc_id`` is only exposed once the job is complete.
        """
        payload: dict = {"state": self.state.value, "progress": self.progress}
        if self.state == JobState.COMPLETE and self.doc_id:
            payload["doc_id"] = self.doc_id
        if self.error:
            payload["error"] = self.error
        return payload

    def to_rune_dict(self) -> dict:
        """Status payload for orchestrator jobs; only set fields are included."""
        payload: dict = {"state": self.state.value, "progress": self.progress}
        if self.doc_id:
            payload["docId"] = self.doc_id
        if self.deal_id:
            payload["dealId"] = self.deal_id
        if self.score is not None:
            payload["dqi"] = self.score
        if self.error:
            payload["error"] = self.error
        return payload


def generate_job_id() -> str:
    """Generate a unique job id."""
    return uuid.uuid4().hex[:10]


# =============================================================================
# Tracker
# =============================================================================


class JobTracker:
    """
    Creates and mutates job records; lookups by id.

    Storage is injected so a durable backend can replace the in-memory dict.
    """

    def __init__(self, storage: Optional[dict[str, Job]] = None):
        self._jobs: dict[str, Job] = storage if storage is not None else {}

    # =========================================================================
    # Creation & Lookup
    # =========================================================================

    def create_job(self, kind: JobKind = JobKind.INTAKE, doc_id: Optional[str] = None) -> Job:
        """
        Allocate a new job in the queued state.

        Args:
            kind: Intake or RUNE job
            doc_id: Pre-allocated document id (intake jobs); exposed on completion

        Returns:
            The new Job
        """
        job_id = generate_job_id()
        while job_id in self._jobs:
            job_id = generate_job_id()

        job = Job(job_id=job_id, kind=kind, doc_id=doc_id)
        self._jobs[job_id] = job
        self._record(job, f"{kind.value} job {job_id} created")
        return job

    def get(self, job_id: str) -> Job:
        """
        Get a job by id.

        Raises:
            NotFoundError: If no job has this id
        """
        job = self._jobs.get(job_id)
        if job is None:
            raise NotFoundError("job", job_id)
        return job

    def find(self, job_id: str) -> Optional[Job]:
        """Get a job by id, or None."""
        return self._jobs.get(job_id)

    def find_by_doc_id(self, doc_id: str, kind: JobKind = JobKind.INTAKE) -> Optional[Job]:
        """The job of the given kind that allocated or linked doc_id, or None."""
        for job in self._jobs.values():
            if job.kind == kind and job.doc_id == doc_id:
                return job
        return None

    def get_status(self, job_id: str) -> Job:
        """Alias of :meth:`get` matching the status-poll vocabulary."""
        return self.get(job_id)

    # =========================================================================
    # Transitions
    # =========================================================================

    def advance(
        self,
        job_id: str,
        doc_id: Optional[str] = None,
        deal_id: Optional[str] = None,
        score: Optional[int] = None,
    ) -> Job:
        """
        Move a job one step along the happy path.

        queued -> processing raises progress to at least 25.
        processing -> complete sets progress 100 and links the given ids.

        Raises:
            JobStateError: If the job is terminal
        """
        job = self.get(job_id)
        if job.state == JobState.QUEUED:
            self._transition(job, JobState.PROCESSING)
            job.progress = max(job.progress, PROCESSING_PROGRESS)
            self._record(job, f"{job.kind.value} job {job_id} processing")
        elif job.state == JobState.PROCESSING:
            self._transition(job, JobState.COMPLETE)
            job.progress = 100
            if doc_id is not None:
                job.doc_id = doc_id
            if deal_id is not None:
                job.deal_id = deal_id
            if score is not None:
                job.score = score
            self._record(job, f"{job.kind.value} job {job_id} complete")
        else:
            raise JobStateError(f"Job {job_id} is already {job.state.value}")
        return job

    def complete(
        self,
        job_id: str,
        doc_id: Optional[str] = None,
        deal_id: Optional[str] = None,
        score: Optional[int] = None,
    ) -> Job:
        """Advance a job all the way to complete, via processing if still queued."""
        job = self.get(job_id)
        if job.state == JobState.QUEUED:
            self.advance(job_id)
        return self.advance(job_id, doc_id=doc_id, deal_id=deal_id, score=score)

    def fail(self, job_id: str, message: str) -> Job:
        """
        Move a non-terminal job to error with progress 100.

        Linked document/deal ids are dropped: a failed job links nothing.

        Raises:
            JobStateError: If the job is already terminal
        """
        job = self.get(job_id)
        self._transition(job, JobState.ERROR)
        job.progress = 100
        job.error = message
        job.doc_id = None
        job.deal_id = None
        job.score = None
        self._record(job, f"{job.kind.value} job {job_id} failed: {message}")
        logger.warning("Job %s failed: %s", job_id, message)
        return job

    def report_progress(self, job_id: str, progress: int) -> bool:
        """
        Record observed progress for a running job.

        Progress never decreases and stays below 100 until completion.
        A queued job moves to processing. Terminal jobs are left untouched.

        Returns:
            True if the job was updated
        """
        job = self.get(job_id)
        if job.is_terminal:
            return False

        if job.state == JobState.QUEUED:
            self._transition(job, JobState.PROCESSING)
            self._record(job, f"{job.kind.value} job {job_id} processing")

        capped = max(0, min(int(progress), 99))
        if capped > job.progress:
            job.progress = capped
            job.updated_at = datetime.utcnow()
        return True

    def nudge_progress(self, job_id: str) -> Job:
        """
        Bump the progress estimate of a non-terminal job on a status poll.

        queued: +5 up to 25. processing: +20 up to 95. Terminal: unchanged.
        """
        job = self.get(job_id)
        if job.state == JobState.QUEUED:
            job.progress = max(job.progress, min(QUEUED_ESTIMATE_CAP, job.progress + 5))
        elif job.state == JobState.PROCESSING and job.progress < MAX_ESTIMATED_PROGRESS:
            job.progress = min(MAX_ESTIMATED_PROGRESS, job.progress + 20)
        return job

    # =========================================================================
    # Queries
    # =========================================================================

    def list_jobs(self, kind: Optional[JobKind] = None) -> list[Job]:
        """All jobs, oldest first, optionally filtered by kind."""
        jobs = sorted(self._jobs.values(), key=lambda j: j.created_at)
        if kind is None:
            return jobs
        return [j for j in jobs if j.kind == kind]

    def count(self, kind: Optional[JobKind] = None) -> int:
        return len(self.list_jobs(kind))

    def count_by_state(self, kind: Optional[JobKind] = None) -> dict[str, int]:
        """Count of jobs per state value."""
        counts = {state.value: 0 for state in JobState}
        for job in self.list_jobs(kind):
            counts[job.state.value] += 1
        return counts

    def recent_events(self, limit: int = 10) -> list[JobEvent]:
        """Most recent events across all jobs, newest first."""
        events = [event for job in self._jobs.values() for event in job.events]
        events.sort(key=lambda e: e.at, reverse=True)
        return events[:limit]

    # =========================================================================
    # Internals
    # =========================================================================

    def _transition(self, job: Job, new_state: JobState) -> None:
        if new_state not in _ALLOWED_TRANSITIONS[job.state]:
            raise JobStateError(
                f"Cannot move job {job.job_id} from {job.state.value} to {new_state.value}"
            )
        job.state = new_state
        job.updated_at = datetime.utcnow()

    def _record(self, job: Job, message: str) -> None:
        job.events.append(
            JobEvent(job_id=job.job_id, kind=job.kind, message=message, at=datetime.utcnow())
        )
        logger.info(message)
