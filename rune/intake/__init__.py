"""
Document intake: upload validation, extraction backends and the intake job runner.
"""

from rune.intake.extractors import (
    EXTRACTORS,
    BaseExtractor,
    JsonExtractor,
    SampleExtractor,
    get_extractor,
)
from rune.intake.service import IntakeService
from rune.intake.validation import (
    ALLOWED_EXTENSIONS,
    ALLOWED_MIME_TYPES,
    DEFAULT_MAX_UPLOAD_BYTES,
    UploadedDocument,
    check_upload,
    validate_upload,
)

__all__ = [
    "EXTRACTORS",
    "BaseExtractor",
    "JsonExtractor",
    "SampleExtractor",
    "get_extractor",
    "IntakeService",
    "ALLOWED_EXTENSIONS",
    "ALLOWED_MIME_TYPES",
    "DEFAULT_MAX_UPLOAD_BYTES",
    "UploadedDocument",
    "check_upload",
    "validate_upload",
]
