"""
RUNE pipeline exceptions.

Every failure is scoped to the job that produced it. Only the intake service
and the orchestrator raise the recoverable errors below; the mapper and the
scorer never raise for well-formed input.
"""

from __future__ import annotations


class RuneError(Exception):
    """Base class for pipeline errors."""


class NotFoundError(RuneError):
    """Requested job, document or deal id does not exist in its store."""

    def __init__(self, resource: str, key: str):
        self.resource = resource
        self.key = key
        super().__init__(f"{resource.capitalize()} not found: {key}")


class ValidationError(RuneError, ValueError):
    """Upload was rejected before any job was created."""


class ExtractionError(RuneError):
    """Extractor could not turn the uploaded payload into an extraction."""


class ExtractionTimeoutError(RuneError):
    """Bounded poll window ran out without an extraction appearing."""

    def __init__(self, doc_id: str, attempts: int, interval: float):
        self.doc_id = doc_id
        self.attempts = attempts
        self.interval = interval
        super().__init__(
            f"Extraction for {doc_id} not available after {attempts} attempts "
            f"({attempts * interval:.2f}s)"
        )


class JobStateError(RuneError):
    """Illegal job state transition."""
