"""
Intake Service - Document Upload to Stored Extraction

Accepts an upload, allocates an intake job with a pre-generated document id,
and runs extraction on the event loop. On success the extraction is stored
under the document id and the job completes exposing that id.

Failures are scoped to the job: an extractor error moves the job to error
and is never raised to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from rune.errors import ExtractionError
from rune.intake.extractors import BaseExtractor, SampleExtractor
from rune.intake.validation import DEFAULT_MAX_UPLOAD_BYTES, UploadedDocument, validate_upload
from rune.jobs import PROCESSING_PROGRESS, Job, JobKind, JobTracker
from rune.models import Extraction, generate_doc_id
from rune.stores import ExtractionStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]
SleepFunc = Callable[[float], Awaitable[None]]


class IntakeService:
    """
    Turns uploaded documents into stored extractions.

    Usage:
        service = IntakeService(jobs, extractions)
        job = service.submit(document)
        await service.process(job.job_id, document)
    """

    def __init__(
        self,
        jobs: JobTracker,
        extractions: ExtractionStore,
        extractor: Optional[BaseExtractor] = None,
        start_delay: float = 0.5,
        complete_delay: float = 2.2,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        sleep: Optional[SleepFunc] = None,
    ):
        """
        Args:
            jobs: Job tracker for intake jobs
            extractions: Store that receives finished extractions
            extractor: Extraction backend (defaults to SampleExtractor)
            start_delay: Seconds before a queued job starts processing
            complete_delay: Seconds from submission until extraction runs
            max_upload_bytes: Upload size limit
            sleep: Awaitable sleep, injectable for tests
        """
        self._jobs = jobs
        self._extractions = extractions
        self._extractor = extractor or SampleExtractor()
        self._start_delay = start_delay
        self._complete_delay = max(complete_delay, start_delay)
        self._max_upload_bytes = max_upload_bytes
        self._sleep = sleep or asyncio.sleep
        self._tasks: set[asyncio.Task] = set()

    @property
    def extractor(self) -> BaseExtractor:
        return self._extractor

    def validate(self, document: Optional[UploadedDocument]) -> UploadedDocument:
        """Check an upload against the configured limits without allocating a job."""
        return validate_upload(document, self._max_upload_bytes)

    def submit(self, document: Optional[UploadedDocument]) -> Job:
        """
        Validate an upload and allocate its intake job.

        Raises:
            ValidationError: Before any job is created
        """
        self.validate(document)
        doc_id = generate_doc_id()
        while self._extractions.contains(doc_id):
            doc_id = generate_doc_id()

        job = self._jobs.create_job(JobKind.INTAKE, doc_id=doc_id)
        logger.info(
            "Intake job %s accepted %s (%d bytes) as %s",
            job.job_id,
            document.filename,
            document.size,
            doc_id,
        )
        return job

    def intake(self, document: Optional[UploadedDocument]) -> str:
        """
        Submit a document and schedule its processing on the running loop.

        Returns:
            The intake job id to poll
        """
        job = self.submit(document)
        task = asyncio.get_running_loop().create_task(self.process(job.job_id, document))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job.job_id

    async def process(
        self,
        job_id: str,
        document: UploadedDocument,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[Extraction]:
        """
        Run extraction for a submitted job.

        Args:
            job_id: Intake job from :meth:`submit`
            document: The uploaded document
            on_progress: Called with 25 when processing starts and 100 on completion

        Returns:
            The stored Extraction, or None if the job failed
        """
        job = self._jobs.get(job_id)
        doc_id = job.doc_id

        try:
            await self._sleep(self._start_delay)
            self._jobs.advance(job_id)
            _notify(on_progress, PROCESSING_PROGRESS)

            await self._sleep(self._complete_delay - self._start_delay)
            extraction = await self._extractor.extract(doc_id, document)
            self._extractions.put(doc_id, extraction)
        except asyncio.CancelledError:
            self._fail_quietly(job_id, "Intake cancelled before extraction completed")
            raise
        except ExtractionError as e:
            logger.warning("Intake job %s rejected by %s: %s", job_id, self._extractor.name, e)
            self._fail_quietly(job_id, str(e))
            return None
        except Exception as e:
            logger.exception("Extractor %s failed for job %s", self._extractor.name, job_id)
            self._fail_quietly(job_id, f"Extraction failed: {e}")
            return None

        self._jobs.advance(job_id, doc_id=doc_id)
        _notify(on_progress, 100)
        logger.info("Intake job %s complete, document %s ready", job_id, doc_id)
        return extraction

    def _fail_quietly(self, job_id: str, message: str) -> None:
        job = self._jobs.find(job_id)
        if job is not None and not job.is_terminal:
            self._jobs.fail(job_id, message)


def _notify(callback: Optional[ProgressCallback], progress: int) -> None:
    if callback is not None:
        callback(progress)
