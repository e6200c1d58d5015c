"""
Service container.

One instance per application holds the stores and the components wired to
them, so nothing in the pipeline path reaches for module globals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from rune.intake.extractors import BaseExtractor, get_extractor
from rune.intake.service import IntakeService
from rune.jobs import JobTracker
from rune.orchestrator import RunePipeline
from rune.stores import CorrectionLog, DealStore, ExtractionStore
from utils.config import Config

logger = logging.getLogger(__name__)


@dataclass
class RuneServices:
    """Stores and pipeline components sharing one process lifetime."""

    config: Config
    jobs: JobTracker
    extractions: ExtractionStore
    deals: DealStore
    corrections: CorrectionLog
    intake: IntakeService
    pipeline: RunePipeline


def build_services(
    config: Optional[Config] = None,
    extractor: Optional[BaseExtractor] = None,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> RuneServices:
    """
    Wire a fresh set of stores and services from configuration.

    Args:
        config: Configuration (loaded from the environment if None)
        extractor: Overrides the configured extractor
        sleep: Awaitable sleep shared by intake and orchestrator

    Returns:
        RuneServices
    """
    config = config or Config.load()
    extractor = extractor or get_extractor(config.extractor)

    jobs = JobTracker()
    extractions = ExtractionStore()
    deals = DealStore()

    intake = IntakeService(
        jobs,
        extractions,
        extractor=extractor,
        start_delay=config.intake_start_delay,
        complete_delay=config.intake_complete_delay,
        max_upload_bytes=config.max_upload_bytes,
        sleep=sleep,
    )
    pipeline = RunePipeline(
        jobs,
        extractions,
        deals,
        intake,
        poll_attempts=config.poll_attempts,
        poll_interval=config.poll_interval,
        cap_rate_multiple=config.cap_rate_multiple,
        sleep=sleep,
    )

    logger.info(
        "RUNE services ready (extractor=%s, poll window %.2fs)",
        extractor.name,
        config.poll_window_seconds,
    )
    return RuneServices(
        config=config,
        jobs=jobs,
        extractions=extractions,
        deals=deals,
        corrections=CorrectionLog(),
        intake=intake,
        pipeline=pipeline,
    )
