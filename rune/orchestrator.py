"""
RUNE Orchestrator - Upload to Scored Deal as One Pollable Job

Flow:
1. Create an intake job and run it as a child task
2. Mirror intake progress into the RUNE job (capped at 95)
3. Poll the extraction store within a bounded window
4. Map, score and analyse the extraction
5. Create a Draft deal and complete the RUNE job with its links

Every failure is folded into the RUNE job as an error state. Independent
runs share nothing besides the id-keyed stores.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from rune.analysis import analyze_deal
from rune.errors import ExtractionTimeoutError
from rune.intake.service import IntakeService
from rune.intake.validation import UploadedDocument
from rune.jobs import MAX_ESTIMATED_PROGRESS, Job, JobKind, JobState, JobTracker
from rune.mapper import map_extraction
from rune.models import (
    DEFAULT_DEAL_NAME,
    Deal,
    DealStage,
    Extraction,
    MappedSummary,
    generate_deal_id,
)
from rune.scoring import DQIScorer
from rune.stores import DealStore, ExtractionStore

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class RunePipeline:
    """
    Chains intake, mapping, scoring and deal creation.

    Usage:
        pipeline = RunePipeline(jobs, extractions, deals, intake)
        job = pipeline.start(document, deal_name="Main St Retail")
        await pipeline.run(job.job_id, document, deal_name="Main St Retail")
        deal = deals.get(jobs.get(job.job_id).deal_id)
    """

    def __init__(
        self,
        jobs: JobTracker,
        extractions: ExtractionStore,
        deals: DealStore,
        intake: IntakeService,
        poll_attempts: int = 20,
        poll_interval: float = 0.25,
        cap_rate_multiple: float = 10,
        scorer: Optional[DQIScorer] = None,
        sleep: Optional[SleepFunc] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            jobs: Tracker shared by RUNE and intake jobs
            extractions: Store the intake service writes to
            deals: Store receiving created deals
            intake: Intake service used for the child job
            poll_attempts: Number of extraction store checks
            poll_interval: Seconds between checks
            cap_rate_multiple: Target raise as a multiple of NOI
            scorer: DQI scorer (defaults to DQIScorer())
            sleep: Awaitable sleep, injectable for tests
            clock: Reference time for WALT (defaults to now)
        """
        self._jobs = jobs
        self._extractions = extractions
        self._deals = deals
        self._intake = intake
        self._poll_attempts = poll_attempts
        self._poll_interval = poll_interval
        self._cap_rate_multiple = cap_rate_multiple
        self._scorer = scorer or DQIScorer()
        self._sleep = sleep or asyncio.sleep
        self._clock = clock
        self._tasks: set[asyncio.Task] = set()

    # =========================================================================
    # Entry Points
    # =========================================================================

    def start(self, document: Optional[UploadedDocument], deal_name: Optional[str] = None) -> Job:
        """
        Validate an upload and create its RUNE job.

        Raises:
            ValidationError: Before any job is created
        """
        self._intake.validate(document)
        job = self._jobs.create_job(JobKind.RUNE)
        logger.info(
            "RUNE job %s created for %s (deal name: %s)",
            job.job_id,
            document.filename,
            deal_name or DEFAULT_DEAL_NAME,
        )
        return job

    def submit(self, document: Optional[UploadedDocument], deal_name: Optional[str] = None) -> str:
        """Start a RUNE job and schedule its run on the running loop."""
        job = self.start(document, deal_name)
        task = asyncio.get_running_loop().create_task(self.run(job.job_id, document, deal_name))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job.job_id

    async def run(
        self,
        rune_job_id: str,
        document: UploadedDocument,
        deal_name: Optional[str] = None,
    ) -> Optional[Deal]:
        """
        Run the pipeline for a started RUNE job.

        Failures end the RUNE job in the error state and are not raised.
        Cancellation also fails the job, then propagates.

        Returns:
            The created Deal, or None if the run failed
        """
        try:
            return await self._run(rune_job_id, document, deal_name)
        except asyncio.CancelledError:
            logger.warning("RUNE job %s cancelled", rune_job_id)
            self._fail(rune_job_id, "Pipeline cancelled before completion")
            raise
        except Exception as e:
            logger.exception("RUNE job %s failed", rune_job_id)
            self._fail(rune_job_id, f"Pipeline failed: {e}")
            return None

    # =========================================================================
    # Pipeline Steps
    # =========================================================================

    async def _run(
        self,
        rune_job_id: str,
        document: UploadedDocument,
        deal_name: Optional[str],
    ) -> Optional[Deal]:
        intake_job = self._intake.submit(document)
        doc_id = intake_job.doc_id
        logger.info("RUNE job %s waiting on intake job %s", rune_job_id, intake_job.job_id)

        intake_task = asyncio.create_task(
            self._intake.process(
                intake_job.job_id,
                document,
                on_progress=lambda progress: self._mirror_progress(rune_job_id, progress),
            )
        )

        try:
            extraction = await self._wait_for_extraction(doc_id, intake_job.job_id)
        except asyncio.CancelledError:
            intake_task.cancel()
            raise

        if extraction is None:
            intake_state = self._jobs.get(intake_job.job_id)
            if intake_state.state == JobState.ERROR:
                message = f"Intake failed: {intake_state.error}"
            else:
                message = str(
                    ExtractionTimeoutError(doc_id, self._poll_attempts, self._poll_interval)
                )
            await self._cancel(intake_task)
            self._fail(rune_job_id, message)
            return None

        deal = self._create_deal(rune_job_id, extraction, deal_name)
        self._jobs.complete(rune_job_id, doc_id=doc_id, deal_id=deal.id, score=deal.dqi)
        logger.info(
            "RUNE job %s complete: deal %s from %s, DQI %d",
            rune_job_id,
            deal.id,
            doc_id,
            deal.dqi,
        )
        return deal

    async def _wait_for_extraction(self, doc_id: str, intake_job_id: str) -> Optional[Extraction]:
        """Poll the store; stop early if the intake job has failed."""
        for _ in range(self._poll_attempts):
            extraction = self._extractions.find(doc_id)
            if extraction is not None:
                return extraction
            if self._jobs.get(intake_job_id).state == JobState.ERROR:
                return None
            await self._sleep(self._poll_interval)

        extraction = self._extractions.find(doc_id)
        if extraction is None:
            logger.warning(
                "No extraction for %s after %d polls at %.2fs",
                doc_id,
                self._poll_attempts,
                self._poll_interval,
            )
        return extraction

    def _create_deal(
        self,
        rune_job_id: str,
        extraction: Extraction,
        deal_name: Optional[str],
    ) -> Deal:
        as_of = self._clock() if self._clock else None
        mapped = map_extraction(extraction, as_of=as_of)
        breakdown = self._scorer.score(extraction)
        analysis = analyze_deal(extraction, mapped, breakdown.score)

        deal_id = generate_deal_id()
        while self._deals.find(deal_id) is not None:
            deal_id = generate_deal_id()

        deal = Deal(
            id=deal_id,
            name=(deal_name or "").strip() or DEFAULT_DEAL_NAME,
            stage=DealStage.DRAFT,
            dqi=breakdown.score,
            target=self.target_raise(mapped),
            progress=0,
            doc_id=extraction.doc_id,
            mapped=mapped,
            analysis=analysis.to_dict(),
            source_job_id=rune_job_id,
        )
        return self._deals.put(deal)

    def target_raise(self, mapped: MappedSummary) -> float:
        """NOI times the cap-rate multiple, 0 when NOI is unknown."""
        if mapped.noi is None:
            return 0.0
        return float(mapped.noi * self._cap_rate_multiple)

    # =========================================================================
    # Internals
    # =========================================================================

    def _mirror_progress(self, rune_job_id: str, progress: int) -> None:
        self._jobs.report_progress(rune_job_id, min(MAX_ESTIMATED_PROGRESS, progress))

    def _fail(self, rune_job_id: str, message: str) -> None:
        job = self._jobs.find(rune_job_id)
        if job is not None and not job.is_terminal:
            self._jobs.fail(rune_job_id, message)

    @staticmethod
    async def _cancel(task: asyncio.Task) -> None:
        if task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
