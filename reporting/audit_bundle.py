"""
Audit Bundle - Zip Archive of Everything Behind a Document's Score

Members:
- extraction.json: the stored extraction (wire format)
- mapped.json: mapper output
- dqi.json: DQI breakdown
- corrections.json: reviewer corrections
- proof.pdf: extraction proof report
- manifest.json: SHA-256 of every member above

JSON members use deterministic serialization and zip entries carry a fixed
timestamp, so identical inputs produce an identical archive.
"""

from __future__ import annotations

import hashlib
import json
import zipfile
from io import BytesIO
from typing import Any, Final, Iterable, Optional

from rune.models import Extraction, MappedSummary
from rune.scoring import DQIBreakdown
from rune.stores import CorrectionRecord

BUNDLE_VERSION: Final[str] = "1.0"

# Earliest timestamp a zip entry can carry
_FIXED_ZIP_TIME: Final[tuple[int, ...]] = (1980, 1, 1, 0, 0, 0)


def _serialize(data: Any) -> bytes:
    return json.dumps(data, sort_keys=True, indent=2, default=str).encode("utf-8")


def build_audit_bundle(
    extraction: Extraction,
    mapped: MappedSummary,
    breakdown: DQIBreakdown,
    proof_pdf: bytes,
    corrections: Optional[Iterable[CorrectionRecord]] = None,
) -> bytes:
    """
    Build the audit zip for one document.

    Args:
        extraction: Stored extraction
        mapped: Mapper output for the extraction
        breakdown: DQI breakdown for the extraction
        proof_pdf: Rendered proof report
        corrections: Reviewer corrections recorded for the document

    Returns:
        Zip archive bytes
    """
    members = {
        "extraction.json": _serialize(extraction.to_dict()),
        "mapped.json": _serialize(mapped.to_dict()),
        "dqi.json": _serialize(breakdown.to_dict()),
        "corrections.json": _serialize([c.to_dict() for c in corrections or []]),
        "proof.pdf": proof_pdf,
    }
    manifest = {
        "bundle_version": BUNDLE_VERSION,
        "doc_id": extraction.doc_id,
        "files": {
            name: hashlib.sha256(content).hexdigest() for name, content in members.items()
        },
    }
    members["manifest.json"] = _serialize(manifest)

    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in members.items():
            info = zipfile.ZipInfo(f"{extraction.doc_id}/{name}", date_time=_FIXED_ZIP_TIME)
            info.compress_type = zipfile.ZIP_DEFLATED
            zf.writestr(info, content)

    return buffer.getvalue()
