"""
Extraction, Deal and Correction Stores - In-Memory Keyed Storage

Process-lifetime storage for pipeline artifacts. Storage dicts are injected
so a durable backend can be swapped in; nothing is persisted across restarts
and nothing is evicted.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from rune.errors import NotFoundError
from rune.models import Deal, Extraction


# =============================================================================
# Extraction Store
# =============================================================================


class ExtractionStore:
    """
    Write-once store of extractions keyed by document id.

    Corrections never edit a stored extraction in place.
    """

    def __init__(self, storage: Optional[dict[str, Extraction]] = None):
        self._extractions: dict[str, Extraction] = storage if storage is not None else {}

    def put(self, doc_id: str, extraction: Extraction) -> Extraction:
        """
        Store an extraction.

        Raises:
            ValueError: If an extraction already exists for doc_id
        """
        if doc_id in self._extractions:
            raise ValueError(f"Extraction for {doc_id} already exists")
        self._extractions[doc_id] = extraction
        return extraction

    def get(self, doc_id: str) -> Extraction:
        """
        Get an extraction by document id.

        Raises:
            NotFoundError: If not present
        """
        extraction = self._extractions.get(doc_id)
        if extraction is None:
            raise NotFoundError("document", doc_id)
        return extraction

    def find(self, doc_id: str) -> Optional[Extraction]:
        return self._extractions.get(doc_id)

    def contains(self, doc_id: str) -> bool:
        return doc_id in self._extractions

    def list_all(self) -> list[Extraction]:
        """All extractions in insertion order."""
        return list(self._extractions.values())

    def count(self) -> int:
        return len(self._extractions)


# =============================================================================
# Deal Store
# =============================================================================


class DealStore:
    """Store of deals keyed by deal id; put inserts or overwrites."""

    def __init__(self, storage: Optional[dict[str, Deal]] = None):
        self._deals: dict[str, Deal] = storage if storage is not None else {}

    def put(self, deal: Deal) -> Deal:
        self._deals[deal.id] = deal
        return deal

    def get(self, deal_id: str) -> Deal:
        """
        Get a deal by id.

        Raises:
            NotFoundError: If not present
        """
        deal = self._deals.get(deal_id)
        if deal is None:
            raise NotFoundError("deal", deal_id)
        return deal

    def find(self, deal_id: str) -> Optional[Deal]:
        return self._deals.get(deal_id)

    def list_all(self) -> list[Deal]:
        """All deals in creation order."""
        return list(self._deals.values())

    def count(self) -> int:
        return len(self._deals)


# =============================================================================
# Correction Log
# =============================================================================


@dataclass(frozen=True)
class CorrectionRecord:
    """A reviewer's field correction submitted against an extraction."""

    correction_id: str
    doc_id: str
    path: str
    value: Any
    note: Optional[str] = None
    submitted_by: Optional[str] = None
    submitted_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "correction_id": self.correction_id,
            "doc_id": self.doc_id,
            "path": self.path,
            "value": self.value,
            "note": self.note,
            "submitted_by": self.submitted_by,
            "submitted_at": self.submitted_at.isoformat(),
        }


class CorrectionLog:
    """Append-only log of corrections per document."""

    def __init__(self, storage: Optional[dict[str, list[CorrectionRecord]]] = None):
        self._corrections: dict[str, list[CorrectionRecord]] = (
            storage if storage is not None else {}
        )

    def add(
        self,
        doc_id: str,
        path: str,
        value: Any,
        note: Optional[str] = None,
        submitted_by: Optional[str] = None,
    ) -> CorrectionRecord:
        record = CorrectionRecord(
            correction_id=f"corr_{uuid.uuid4().hex[:8]}",
            doc_id=doc_id,
            path=path,
            value=value,
            note=note,
            submitted_by=submitted_by,
        )
        self._corrections.setdefault(doc_id, []).append(record)
        return record

    def list_for(self, doc_id: str) -> list[CorrectionRecord]:
        return list(self._corrections.get(doc_id, []))

    def count(self) -> int:
        return sum(len(records) for records in self._corrections.values())
