"""
RUNE deal pipeline: document intake, extraction mapping, DQI scoring and
deal creation.
"""

from rune.errors import (
    ExtractionError,
    ExtractionTimeoutError,
    JobStateError,
    NotFoundError,
    RuneError,
    ValidationError,
)
from rune.jobs import Job, JobKind, JobState, JobTracker
from rune.mapper import estimate_walt, map_extraction
from rune.models import Deal, DealStage, Extraction, MappedSummary
from rune.orchestrator import RunePipeline
from rune.scoring import DQIBreakdown, DQIScorer, compute_dqi
from rune.services import RuneServices, build_services
from rune.stores import CorrectionLog, DealStore, ExtractionStore

__all__ = [
    "ExtractionError",
    "ExtractionTimeoutError",
    "JobStateError",
    "NotFoundError",
    "RuneError",
    "ValidationError",
    "Job",
    "JobKind",
    "JobState",
    "JobTracker",
    "estimate_walt",
    "map_extraction",
    "Deal",
    "DealStage",
    "Extraction",
    "MappedSummary",
    "RunePipeline",
    "DQIBreakdown",
    "DQIScorer",
    "compute_dqi",
    "RuneServices",
    "build_services",
    "CorrectionLog",
    "DealStore",
    "ExtractionStore",
]
