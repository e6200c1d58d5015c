"""
Tests for the Job Tracker

Tests cover:
- Job creation defaults and unique ids
- State machine transitions and illegal moves
- Progress monotonicity and estimates
- Frozen terminal jobs
"""

import pytest

from rune.errors import JobStateError, NotFoundError
from rune.jobs import JobKind, JobState, JobTracker


@pytest.fixture
def tracker():
    return JobTracker()


# =============================================================================
# Creation & Lookup
# =============================================================================


class TestCreateJob:

    def test_new_job_is_queued_at_five(self, tracker):
        job = tracker.create_job()
        assert job.state == JobState.QUEUED
        assert job.progress == 5
        assert job.kind == JobKind.INTAKE

    def test_ids_are_unique(self, tracker):
        ids = {tracker.create_job().job_id for _ in range(200)}
        assert len(ids) == 200

    def test_doc_id_hidden_until_complete(self, tracker):
        job = tracker.create_job(doc_id="doc_abc123")
        assert "doc_id" not in job.to_status_dict()

    def test_unknown_job_raises(self, tracker):
        with pytest.raises(NotFoundError) as exc_info:
            tracker.get("missing")
        assert exc_info.value.resource == "job"
        assert tracker.find("missing") is None

    def test_creation_is_logged_as_event(self, tracker):
        job = tracker.create_job(JobKind.RUNE)
        assert len(job.events) == 1
        assert "created" in job.events[0].message


# =============================================================================
# Transitions
# =============================================================================


class TestTransitions:

    def test_happy_path(self, tracker):
        job = tracker.create_job(doc_id="doc_abc123")
        tracker.advance(job.job_id)
        assert job.state == JobState.PROCESSING
        assert job.progress >= 25

        tracker.advance(job.job_id, doc_id="doc_abc123")
        assert job.state == JobState.COMPLETE
        assert job.progress == 100
        assert job.to_status_dict() == {
            "state": "complete",
            "progress": 100,
            "doc_id": "doc_abc123",
        }

    def test_complete_links_rune_results(self, tracker):
        job = tracker.create_job(JobKind.RUNE)
        tracker.complete(job.job_id, doc_id="doc_1", deal_id="deal_1", score=78)
        assert job.to_rune_dict() == {
            "state": "complete",
            "progress": 100,
            "docId": "doc_1",
            "dealId": "deal_1",
            "dqi": 78,
        }

    def test_advance_terminal_raises(self, tracker):
        job = tracker.create_job()
        tracker.complete(job.job_id)
        with pytest.raises(JobStateError):
            tracker.advance(job.job_id)

    def test_fail_from_queued(self, tracker):
        job = tracker.create_job(doc_id="doc_x")
        tracker.fail(job.job_id, "boom")
        assert job.state == JobState.ERROR
        assert job.progress == 100
        assert job.to_status_dict() == {"state": "error", "progress": 100, "error": "boom"}

    def test_fail_clears_links(self, tracker):
        job = tracker.create_job(JobKind.RUNE)
        tracker.advance(job.job_id)
        tracker.fail(job.job_id, "timed out")
        payload = job.to_rune_dict()
        assert "docId" not in payload
        assert "dealId" not in payload
        assert "dqi" not in payload

    def test_fail_terminal_raises(self, tracker):
        job = tracker.create_job()
        tracker.fail(job.job_id, "first")
        with pytest.raises(JobStateError):
            tracker.fail(job.job_id, "second")
        assert job.error == "first"


# =============================================================================
# Progress
# =============================================================================


class TestProgress:

    def test_report_progress_moves_to_processing(self, tracker):
        job = tracker.create_job()
        assert tracker.report_progress(job.job_id, 25)
        assert job.state == JobState.PROCESSING
        assert job.progress == 25

    def test_progress_never_decreases(self, tracker):
        job = tracker.create_job()
        tracker.report_progress(job.job_id, 60)
        tracker.report_progress(job.job_id, 30)
        assert job.progress == 60

    def test_progress_capped_below_hundred_until_complete(self, tracker):
        job = tracker.create_job()
        tracker.report_progress(job.job_id, 150)
        assert job.progress == 99
        assert job.state == JobState.PROCESSING

    def test_report_progress_ignores_terminal(self, tracker):
        job = tracker.create_job()
        tracker.fail(job.job_id, "gone")
        assert not tracker.report_progress(job.job_id, 50)
        assert job.progress == 100

    def test_nudge_queued_caps_at_25(self, tracker):
        job = tracker.create_job()
        for _ in range(10):
            tracker.nudge_progress(job.job_id)
        assert job.progress == 25
        assert job.state == JobState.QUEUED

    def test_nudge_processing_caps_at_95(self, tracker):
        job = tracker.create_job()
        tracker.advance(job.job_id)
        progress = []
        for _ in range(6):
            progress.append(tracker.nudge_progress(job.job_id).progress)
        assert progress == [45, 65, 85, 95, 95, 95]

    def test_terminal_reads_are_identical(self, tracker):
        job = tracker.create_job(doc_id="doc_done")
        tracker.complete(job.job_id, doc_id="doc_done")
        first = tracker.nudge_progress(job.job_id).to_status_dict()
        second = tracker.nudge_progress(job.job_id).to_status_dict()
        assert first == second == {"state": "complete", "progress": 100, "doc_id": "doc_done"}


# =============================================================================
# Queries
# =============================================================================


class TestQueries:

    def test_list_and_count_by_kind(self, tracker):
        tracker.create_job(JobKind.INTAKE)
        rune = tracker.create_job(JobKind.RUNE)
        tracker.fail(rune.job_id, "x")

        assert tracker.count() == 2
        assert tracker.count(JobKind.RUNE) == 1
        assert tracker.count_by_state(JobKind.RUNE) == {
            "queued": 0,
            "processing": 0,
            "complete": 0,
            "error": 1,
        }

    def test_find_by_doc_id(self, tracker):
        job = tracker.create_job(doc_id="doc_find")
        assert tracker.find_by_doc_id("doc_find") is job
        assert tracker.find_by_doc_id("doc_find", kind=JobKind.RUNE) is None

    def test_recent_events_newest_first(self, tracker):
        job = tracker.create_job()
        tracker.advance(job.job_id)
        events = tracker.recent_events(limit=1)
        assert len(events) == 1
        assert "processing" in events[0].message

    def test_injected_storage_is_used(self):
        storage = {}
        tracker = JobTracker(storage)
        job = tracker.create_job()
        assert storage[job.job_id] is job
