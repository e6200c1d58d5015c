"""
Document extractors.

An extractor turns an uploaded document into an Extraction. Available
extractors:
- SampleExtractor: simulated T-12 extraction for demos and development
- JsonExtractor: parses an uploaded JSON extraction payload
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import date, timedelta
from typing import Callable, Optional

from rune.errors import ExtractionError
from rune.intake.validation import UploadedDocument
from rune.models import (
    Assumption,
    Confidences,
    Covenant,
    DebtTerms,
    DocumentInfo,
    Extraction,
    Lease,
    LineItem,
    Totals,
    ValidationCheck,
    round_half_up,
)


class BaseExtractor(ABC):
    """Abstract base class for document extractors."""

    name: str = "base"

    @abstractmethod
    async def extract(self, doc_id: str, document: UploadedDocument) -> Extraction:
        """
        Extract financial data from a document.

        Args:
            doc_id: Document id the extraction will be stored under.
            document: The uploaded document.

        Returns:
            Extraction keyed by doc_id.

        Raises:
            ExtractionError: If the document cannot be parsed.
        """
        pass


class SampleExtractor(BaseExtractor):
    """
    Simulated extraction of a trailing-twelve-month operating statement.

    Stands in for the external extraction engine. Dates are relative to the
    processing day so lease terms stay meaningful.
    """

    name = "sample"

    MONTHLY_BASE_RENT = 120000
    MONTHLY_UTILITIES = -30000
    GROSS_POTENTIAL_RENT = 1600000
    ANNUAL_DEBT_SERVICE = 860000

    def __init__(self, today: Optional[Callable[[], date]] = None):
        self._today = today or date.today

    async def extract(self, doc_id: str, document: UploadedDocument) -> Extraction:
        return self.build(doc_id, document)

    def build(self, doc_id: str, document: Optional[UploadedDocument] = None) -> Extraction:
        """Build the sample extraction synchronously (also used for placeholders)."""
        today = self._today()
        months = _trailing_months(today, 12)

        lines = tuple(
            LineItem(
                month=month,
                category="Income" if i % 3 == 0 else "Expense",
                subcategory="Base Rent" if i % 3 == 0 else "Utilities",
                amount=float(self.MONTHLY_BASE_RENT if i % 3 == 0 else self.MONTHLY_UTILITIES),
            )
            for i, month in enumerate(months)
        )
        egi = sum(line.amount for line in lines if line.amount > 0)
        opex = -sum(line.amount for line in lines if line.amount < 0)
        noi = egi - opex

        return Extraction(
            document=DocumentInfo(
                id=doc_id,
                type=document.document_type if document else "T12",
                file_hash=document.file_hash if document else "demo",
                pages=24,
                filename=document.filename if document else None,
            ),
            totals=Totals(
                gpr=float(self.GROSS_POTENTIAL_RENT),
                egi=egi,
                opex=opex,
                noi=noi,
                annual_debt_service=float(self.ANNUAL_DEBT_SERVICE),
                dscr=round_half_up(noi / self.ANNUAL_DEBT_SERVICE, 2),
            ),
            t12_lines=lines,
            rent_roll=(
                Lease("101", "Acme Corp", 1200, _iso(today, -820), _iso(today, 270), 3500),
                Lease("102", "BlueMart", 980, _iso(today, -580), _iso(today, 500), 2900),
                Lease("103", "Cafe Uno", 650, _iso(today, -1050), _iso(today, 75), 2100),
            ),
            debt_terms=DebtTerms(
                lender="Sample Bank",
                principal=4800000,
                rate_type="Floating",
                index="SOFR",
                spread_bps=275,
                all_in_rate=0.071,
                amortization_months=300,
                io_months=12,
                maturity_date=_iso(today, 5 * 365),
                rate_cap=f"3.50% cap thru {today.year + 2}",
            ),
            covenants=(
                Covenant("DSCR", ">= 1.20x", "Quarterly"),
                Covenant("LTV", "<= 65%", "Quarterly"),
            ),
            assumptions=(
                Assumption(
                    "Vacancy normalized to 5% per sponsor note (p.18)",
                    source_refs=({"page": 18},),
                ),
            ),
            checks=(
                ValidationCheck("t12-months", "T-12 has 12 months", "pass"),
                ValidationCheck(
                    "noi-positive", "NOI is positive", "pass" if noi > 0 else "fail"
                ),
            ),
            confidences=Confidences(t12=0.97, rent_roll=0.94),
        )


class JsonExtractor(BaseExtractor):
    """
    Parses an uploaded JSON extraction payload.

    Totals are reconciled on parse, so derived NOI/DSCR hold for the stored
    record. The document id is always the one allocated by intake.
    """

    name = "json"

    async def extract(self, doc_id: str, document: UploadedDocument) -> Extraction:
        try:
            payload = json.loads(document.content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ExtractionError(f"{document.filename} is not a JSON extraction: {e}") from e

        if isinstance(payload, dict) and "document" not in payload:
            payload = {**payload, "document": {}}

        try:
            extraction = Extraction.from_dict(payload, doc_id=doc_id)
        except (ValueError, TypeError) as e:
            raise ExtractionError(f"Invalid extraction payload in {document.filename}: {e}") from e

        document_info = DocumentInfo(
            id=doc_id,
            type=payload["document"].get("type") or document.document_type,
            file_hash=document.file_hash,
            pages=extraction.document.pages,
            filename=document.filename,
        )
        return replace(extraction, document=document_info)


EXTRACTORS: dict[str, type[BaseExtractor]] = {
    SampleExtractor.name: SampleExtractor,
    JsonExtractor.name: JsonExtractor,
}


def get_extractor(name: str) -> BaseExtractor:
    """
    Instantiate an extractor by configured name.

    Raises:
        ValueError: If the name is unknown
    """
    try:
        return EXTRACTORS[name.lower()]()
    except KeyError:
        raise ValueError(
            f"Unknown extractor: {name}. Available: {', '.join(sorted(EXTRACTORS))}"
        ) from None


def _trailing_months(today: date, count: int) -> list[str]:
    """The `count` calendar months before today's month, oldest first."""
    year, month = today.year, today.month
    months = []
    for _ in range(count):
        month -= 1
        if month == 0:
            year, month = year - 1, 12
        months.append(f"{year:04d}-{month:02d}")
    return list(reversed(months))


def _iso(today: date, offset_days: int) -> str:
    return (today + timedelta(days=offset_days)).isoformat()
