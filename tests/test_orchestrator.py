"""
Tests for the RUNE Orchestrator

Tests cover:
- End-to-end run: upload -> extraction -> DQI -> Draft deal
- Progress mirroring from the intake job
- Bounded wait: timeout and early stop on intake failure
- Failures folded into the RUNE job, never raised
- Independent concurrent runs
"""

import asyncio
import time

import pytest

from rune.errors import ValidationError
from rune.intake import IntakeService, JsonExtractor, SampleExtractor, UploadedDocument
from rune.intake.extractors import BaseExtractor
from rune.jobs import JobKind, JobState, JobTracker
from rune.models import DEFAULT_DEAL_NAME, DealStage
from rune.orchestrator import RunePipeline
from rune.scoring import DQIScorer
from rune.stores import DealStore, ExtractionStore


# =============================================================================
# Fixtures
# =============================================================================


class StalledExtractor(BaseExtractor):
    name = "stalled"

    async def extract(self, doc_id, document):
        await asyncio.Event().wait()


class GatedExtractor(SampleExtractor):
    """Sample extraction that waits for the test to open the gate."""

    def __init__(self, today):
        super().__init__(today=today)
        self.gate = None

    async def extract(self, doc_id, document):
        await self.gate.wait()
        return self.build(doc_id, document)


class BrokenScorer(DQIScorer):
    def score(self, extraction):
        raise RuntimeError("scoring backend offline")


def build_pipeline(extractor, poll_attempts=200, poll_interval=0.01, scorer=None):
    jobs = JobTracker()
    extractions = ExtractionStore()
    deals = DealStore()
    intake = IntakeService(jobs, extractions, extractor=extractor, start_delay=0.0, complete_delay=0.0)
    pipeline = RunePipeline(
        jobs,
        extractions,
        deals,
        intake,
        poll_attempts=poll_attempts,
        poll_interval=poll_interval,
        scorer=scorer,
    )
    return pipeline, jobs, extractions, deals


def run_pipeline(pipeline, document, deal_name=None):
    async def go():
        job = pipeline.start(document, deal_name)
        deal = await pipeline.run(job.job_id, document, deal_name)
        return job, deal

    return asyncio.run(go())


# =============================================================================
# End to End
# =============================================================================


class TestEndToEnd:

    def test_sample_run_creates_draft_deal(self, fixed_today, pdf_upload):
        pipeline, jobs, extractions, deals = build_pipeline(SampleExtractor(today=fixed_today))

        job, deal = run_pipeline(pipeline, pdf_upload, "Main St Retail")

        assert job.state == JobState.COMPLETE
        assert job.progress == 100
        assert job.deal_id == deal.id
        assert job.score == deal.dqi == 55
        assert deals.get(deal.id) is deal
        assert extractions.contains(job.doc_id)
        assert deal.doc_id == job.doc_id
        assert deal.name == "Main St Retail"
        assert deal.stage == DealStage.DRAFT
        assert deal.progress == 0
        assert deal.target == 2400000
        assert deal.source_job_id == job.job_id

    def test_rune_status_payload(self, fixed_today, pdf_upload):
        pipeline, _, _, _ = build_pipeline(SampleExtractor(today=fixed_today))
        job, deal = run_pipeline(pipeline, pdf_upload)
        assert job.to_rune_dict() == {
            "state": "complete",
            "progress": 100,
            "docId": deal.doc_id,
            "dealId": deal.id,
            "dqi": 55,
        }

    def test_json_upload_scores_strong(self, json_upload):
        pipeline, _, _, _ = build_pipeline(JsonExtractor())
        job, deal = run_pipeline(pipeline, json_upload)
        assert deal.dqi == 78
        assert deal.target == 11200000
        assert deal.mapped.dscr == 1.4

    def test_default_deal_name(self, fixed_today, pdf_upload):
        pipeline, _, _, _ = build_pipeline(SampleExtractor(today=fixed_today))
        _, deal = run_pipeline(pipeline, pdf_upload, "   ")
        assert deal.name == DEFAULT_DEAL_NAME

    def test_analysis_attached(self, fixed_today, pdf_upload):
        pipeline, _, _, _ = build_pipeline(SampleExtractor(today=fixed_today))
        _, deal = run_pipeline(pipeline, pdf_upload)
        assert "Requires significant due diligence" in deal.analysis["recommendations"]
        assert len(deal.analysis["pillarScores"]) == 7

    def test_terminal_reads_are_idempotent(self, fixed_today, pdf_upload):
        pipeline, jobs, _, _ = build_pipeline(SampleExtractor(today=fixed_today))
        job, _ = run_pipeline(pipeline, pdf_upload)
        assert jobs.get(job.job_id).to_rune_dict() == jobs.get(job.job_id).to_rune_dict()

    def test_start_rejects_invalid_upload(self, fixed_today):
        pipeline, jobs, _, _ = build_pipeline(SampleExtractor(today=fixed_today))
        with pytest.raises(ValidationError):
            pipeline.start(UploadedDocument("t12.pdf", b""))
        assert jobs.count() == 0

    def test_submit_schedules_run(self, fixed_today, pdf_upload):
        pipeline, jobs, _, deals = build_pipeline(SampleExtractor(today=fixed_today))

        async def go():
            job_id = pipeline.submit(pdf_upload)
            for _ in range(200):
                if jobs.get(job_id).is_terminal:
                    break
                await asyncio.sleep(0.01)
            return jobs.get(job_id)

        job = asyncio.run(go())
        assert job.state == JobState.COMPLETE
        assert deals.count() == 1


# =============================================================================
# Progress Mirroring
# =============================================================================


class TestProgressMirroring:

    def test_processing_as_soon_as_intake_reports(self, fixed_today, pdf_upload):
        extractor = GatedExtractor(fixed_today)
        pipeline, jobs, _, _ = build_pipeline(extractor)

        async def go():
            extractor.gate = asyncio.Event()
            job = pipeline.start(pdf_upload)
            task = asyncio.create_task(pipeline.run(job.job_id, pdf_upload))
            for _ in range(100):
                await asyncio.sleep(0.005)
                if job.state == JobState.PROCESSING:
                    break
            snapshot = (job.state, job.progress)
            extractor.gate.set()
            await task
            return job, snapshot

        job, (state, progress) = asyncio.run(go())
        assert state == JobState.PROCESSING
        assert progress == 25
        assert job.state == JobState.COMPLETE


# =============================================================================
# Bounded Wait
# =============================================================================


class TestBoundedWait:

    def test_timeout_fails_job_within_window(self, pdf_upload):
        pipeline, jobs, _, deals = build_pipeline(
            StalledExtractor(), poll_attempts=5, poll_interval=0.01
        )

        started = time.monotonic()
        job, deal = run_pipeline(pipeline, pdf_upload)
        elapsed = time.monotonic() - started

        assert deal is None
        assert elapsed < 2.0
        assert job.state == JobState.ERROR
        assert job.progress == 100
        assert "not available after 5 attempts" in job.error
        assert job.to_rune_dict() == {"state": "error", "progress": 100, "error": job.error}
        assert deals.count() == 0

    def test_timeout_cancels_intake_job(self, pdf_upload):
        pipeline, jobs, _, _ = build_pipeline(
            StalledExtractor(), poll_attempts=3, poll_interval=0.01
        )
        run_pipeline(pipeline, pdf_upload)

        intake_jobs = jobs.list_jobs(JobKind.INTAKE)
        assert len(intake_jobs) == 1
        assert intake_jobs[0].state == JobState.ERROR

    def test_intake_failure_stops_early(self, pdf_upload):
        # A PDF is not a JSON extraction: the intake job fails immediately
        pipeline, _, _, _ = build_pipeline(JsonExtractor(), poll_attempts=100, poll_interval=0.05)

        started = time.monotonic()
        job, deal = run_pipeline(pipeline, pdf_upload)
        elapsed = time.monotonic() - started

        assert deal is None
        assert elapsed < 2.0
        assert job.state == JobState.ERROR
        assert job.error.startswith("Intake failed:")


# =============================================================================
# Failure Folding & Isolation
# =============================================================================


class TestFailures:

    def test_unexpected_error_folded_into_job(self, fixed_today, pdf_upload):
        pipeline, jobs, _, deals = build_pipeline(
            SampleExtractor(today=fixed_today), scorer=BrokenScorer()
        )

        job, deal = run_pipeline(pipeline, pdf_upload)

        assert deal is None
        assert job.state == JobState.ERROR
        assert job.error == "Pipeline failed: scoring backend offline"
        assert deals.count() == 0

    def test_cancelled_run_fails_job_and_propagates(self, pdf_upload):
        pipeline, jobs, _, deals = build_pipeline(
            StalledExtractor(), poll_attempts=1000, poll_interval=0.01
        )

        async def run_and_cancel():
            job = pipeline.start(pdf_upload)
            task = asyncio.create_task(pipeline.run(job.job_id, pdf_upload))
            await asyncio.sleep(0.05)
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                return job, True
            return job, False

        job, propagated = asyncio.run(run_and_cancel())

        assert propagated
        assert job.state == JobState.ERROR
        assert job.progress == 100
        assert "cancelled" in job.error
        assert deals.count() == 0

        intake_jobs = jobs.list_jobs(JobKind.INTAKE)
        assert len(intake_jobs) == 1
        assert intake_jobs[0].state == JobState.ERROR

    def test_concurrent_runs_are_independent(self, fixed_today, pdf_upload):
        extractor = SampleExtractor(today=fixed_today)
        pipeline, jobs, extractions, deals = build_pipeline(extractor)

        async def go():
            first = pipeline.start(pdf_upload, "First")
            second = pipeline.start(pdf_upload, "Second")
            return first, second, await asyncio.gather(
                pipeline.run(first.job_id, pdf_upload, "First"),
                pipeline.run(second.job_id, pdf_upload, "Second"),
            )

        first, second, (deal_a, deal_b) = asyncio.run(go())

        assert first.state == second.state == JobState.COMPLETE
        assert deal_a.id != deal_b.id
        assert deal_a.doc_id != deal_b.doc_id
        assert {deal_a.name, deal_b.name} == {"First", "Second"}
        assert extractions.count() == 2
        assert deals.count() == 2
