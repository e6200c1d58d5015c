"""
Upload Validation - Intake Gate for Source Documents

Uploads are checked before any job is created. A rejected upload never
allocates a job id.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Final, Optional

from rune.errors import ValidationError
from rune.models import DEFAULT_DOCUMENT_TYPE


# =============================================================================
# Constants
# =============================================================================

# Financial statements, rent rolls and scanned pages
ALLOWED_MIME_TYPES: Final[frozenset[str]] = frozenset({
    "application/pdf",
    "application/json",
    "text/csv",
    "text/plain",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "image/png",
    "image/jpeg",
    "image/tiff",
})

ALLOWED_EXTENSIONS: Final[tuple[str, ...]] = (
    ".pdf",
    ".json",
    ".csv",
    ".txt",
    ".xls",
    ".xlsx",
    ".png",
    ".jpg",
    ".jpeg",
    ".tif",
    ".tiff",
)

DEFAULT_MAX_UPLOAD_BYTES: Final[int] = 25 * 1024 * 1024


# =============================================================================
# Uploaded Document
# =============================================================================


@dataclass(frozen=True)
class UploadedDocument:
    """An uploaded source document: opaque bytes plus declared type."""

    filename: str
    content: bytes
    content_type: Optional[str] = None
    document_type: str = DEFAULT_DOCUMENT_TYPE

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        if "." not in self.filename:
            return ""
        return "." + self.filename.rsplit(".", 1)[-1].lower()

    @property
    def file_hash(self) -> str:
        """SHA-256 of the content."""
        return hashlib.sha256(self.content).hexdigest()


# =============================================================================
# Validation
# =============================================================================


def check_upload(
    document: Optional[UploadedDocument],
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> tuple[bool, Optional[str]]:
    """
    Validate an upload.

    Args:
        document: The upload, or None if no file was sent
        max_bytes: Size limit

    Returns:
        Tuple of (is_valid, error_message)
    """
    if document is None or not document.filename:
        return False, "No file uploaded"

    if document.size == 0:
        return False, "File is empty"

    if document.size > max_bytes:
        max_mb = max_bytes / (1024 * 1024)
        return False, f"File too large. Maximum size: {max_mb:g}MB"

    content_type = (document.content_type or "").split(";")[0].strip().lower()
    if content_type not in ALLOWED_MIME_TYPES and document.extension not in ALLOWED_EXTENSIONS:
        return False, (
            f"Unsupported file type: {content_type or document.extension or 'unknown'}. "
            f"Allowed: {', '.join(ALLOWED_EXTENSIONS)}"
        )

    if not document.document_type or not document.document_type.strip():
        return False, "document_type cannot be empty"

    return True, None


def validate_upload(
    document: Optional[UploadedDocument],
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> UploadedDocument:
    """
    Validate an upload or raise.

    Raises:
        ValidationError: If the upload is missing, empty, too large or of an
            unsupported type
    """
    is_valid, error = check_upload(document, max_bytes)
    if not is_valid:
        raise ValidationError(error)
    return document
