"""
Data models for the RUNE deal pipeline.

Extraction records are immutable snapshots of one parsed source document.
Deals are the terminal artifact of a pipeline run.

JSON keys follow the existing front end (``rentRoll``, ``debtTerms``,
``t12Lines``); attributes are snake_case.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Final, Optional


# =============================================================================
# Constants
# =============================================================================

DEFAULT_DOCUMENT_TYPE: Final[str] = "T12"

DEFAULT_DEAL_NAME: Final[str] = "RUNE Auto-Generated Deal"

CHECK_STATUSES: Final[tuple[str, ...]] = ("pass", "warn", "fail")


# =============================================================================
# Helpers
# =============================================================================


def round_half_up(value: float, places: int = 2) -> float:
    """Round half away from zero to a fixed number of decimal places."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def is_number(value: Any) -> bool:
    """True for int/float values, excluding bools."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _opt_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    if is_number(value):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.replace(",", ""))
        except ValueError:
            return None
    return None


def _opt_int(value: Any) -> Optional[int]:
    number = _opt_float(value)
    return int(number) if number is not None else None


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    text = str(value).strip()
    return text or None


def _pick(data: dict, *keys: str) -> Any:
    """Return the first present key (wire keys and snake_case both accepted)."""
    for key in keys:
        if key in data:
            return data[key]
    return None


def generate_doc_id() -> str:
    """Generate a document id."""
    return f"doc_{uuid.uuid4().hex[:6]}"


def generate_deal_id() -> str:
    """Generate a deal id."""
    return f"deal_{uuid.uuid4().hex[:6]}"


# =============================================================================
# Extraction Components
# =============================================================================


@dataclass(frozen=True)
class DocumentInfo:
    """Identity of the source document an extraction came from."""

    id: str
    type: str = DEFAULT_DOCUMENT_TYPE
    file_hash: Optional[str] = None
    pages: Optional[int] = None
    filename: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "file_hash": self.file_hash,
            "pages": self.pages,
            "filename": self.filename,
        }


@dataclass(frozen=True)
class LineItem:
    """One monthly line of a trailing-twelve-month operating statement."""

    month: str
    category: str
    subcategory: str
    amount: float  # Signed: income positive, expense negative

    @classmethod
    def from_dict(cls, data: dict) -> "LineItem":
        return cls(
            month=str(data.get("month", "")),
            category=str(data.get("category", "")),
            subcategory=str(data.get("subcategory", "")),
            amount=_opt_float(data.get("amount")) or 0.0,
        )

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "category": self.category,
            "subcategory": self.subcategory,
            "amount": self.amount,
        }


@dataclass(frozen=True)
class Totals:
    """Aggregate financials; every figure is optional."""

    gpr: Optional[float] = None
    egi: Optional[float] = None
    opex: Optional[float] = None
    noi: Optional[float] = None
    annual_debt_service: Optional[float] = None
    dscr: Optional[float] = None

    def reconciled(self) -> "Totals":
        """
        Fill derivable figures that were not independently supplied.

        noi = egi - opex, dscr = noi / annual_debt_service (unrounded).
        Supplied values are never overwritten.
        """
        noi = self.noi
        if noi is None and self.egi is not None and self.opex is not None:
            noi = self.egi - self.opex

        dscr = self.dscr
        if dscr is None and noi is not None and self.annual_debt_service:
            dscr = noi / self.annual_debt_service

        return replace(self, noi=noi, dscr=dscr)

    @classmethod
    def from_dict(cls, data: dict) -> "Totals":
        return cls(
            gpr=_opt_float(data.get("gpr")),
            egi=_opt_float(data.get("egi")),
            opex=_opt_float(data.get("opex")),
            noi=_opt_float(data.get("noi")),
            annual_debt_service=_opt_float(
                _pick(data, "annual_debt_service", "annualDebtService")
            ),
            dscr=_opt_float(data.get("dscr")),
        )

    def to_dict(self) -> dict:
        return {
            "gpr": self.gpr,
            "egi": self.egi,
            "opex": self.opex,
            "noi": self.noi,
            "annual_debt_service": self.annual_debt_service,
            "dscr": self.dscr,
        }


@dataclass(frozen=True)
class Lease:
    """A rent roll record."""

    unit_id: Optional[str] = None
    tenant_name: Optional[str] = None
    sqft: Optional[float] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    base_rent: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Lease":
        return cls(
            unit_id=_opt_str(_pick(data, "unit_id", "unitId")),
            tenant_name=_opt_str(_pick(data, "tenant_name", "tenantName", "tenant")),
            sqft=_opt_float(data.get("sqft")),
            start_date=_opt_str(_pick(data, "start_date", "startDate")),
            end_date=_opt_str(_pick(data, "end_date", "endDate")),
            base_rent=_opt_float(_pick(data, "base_rent", "baseRent")),
        )

    def to_dict(self) -> dict:
        return {
            "unit_id": self.unit_id,
            "tenant_name": self.tenant_name,
            "sqft": self.sqft,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "base_rent": self.base_rent,
        }


@dataclass(frozen=True)
class DebtTerms:
    """Loan terms; passed through to the mapped summary unchanged."""

    lender: Optional[str] = None
    principal: Optional[float] = None
    rate_type: Optional[str] = None
    index: Optional[str] = None
    spread_bps: Optional[float] = None
    all_in_rate: Optional[float] = None
    amortization_months: Optional[int] = None
    io_months: Optional[int] = None
    maturity_date: Optional[str] = None
    rate_cap: Optional[str] = None

    @property
    def is_floating(self) -> bool:
        return (self.rate_type or "").strip().lower() == "floating"

    @property
    def has_rate_cap(self) -> bool:
        return bool((self.rate_cap or "").strip())

    @classmethod
    def from_dict(cls, data: dict) -> "DebtTerms":
        return cls(
            lender=_opt_str(data.get("lender")),
            principal=_opt_float(data.get("principal")),
            rate_type=_opt_str(data.get("rate_type")),
            index=_opt_str(data.get("index")),
            spread_bps=_opt_float(data.get("spread_bps")),
            all_in_rate=_opt_float(data.get("all_in_rate")),
            amortization_months=_opt_int(data.get("amortization_months")),
            io_months=_opt_int(data.get("io_months")),
            maturity_date=_opt_str(data.get("maturity_date")),
            rate_cap=_opt_str(data.get("rate_cap")),
        )

    def to_dict(self) -> dict:
        return {
            "lender": self.lender,
            "principal": self.principal,
            "rate_type": self.rate_type,
            "index": self.index,
            "spread_bps": self.spread_bps,
            "all_in_rate": self.all_in_rate,
            "amortization_months": self.amortization_months,
            "io_months": self.io_months,
            "maturity_date": self.maturity_date,
            "rate_cap": self.rate_cap,
        }


@dataclass(frozen=True)
class Covenant:
    """Loan covenant."""

    type: str
    threshold: str
    frequency: Optional[str] = None

    def to_dict(self) -> dict:
        return {"type": self.type, "threshold": self.threshold, "frequency": self.frequency}


@dataclass(frozen=True)
class Assumption:
    """Underwriting assumption note with its source references."""

    text: str
    source_refs: tuple[dict, ...] = ()

    def to_dict(self) -> dict:
        return {"text": self.text, "source_refs": [dict(ref) for ref in self.source_refs]}


@dataclass(frozen=True)
class ValidationCheck:
    """Outcome of one extraction validation check."""

    id: str
    label: str
    status: str  # pass, warn, fail

    def __post_init__(self):
        if self.status not in CHECK_STATUSES:
            raise ValueError(f"Invalid check status: {self.status}")

    def to_dict(self) -> dict:
        return {"id": self.id, "label": self.label, "status": self.status}


@dataclass(frozen=True)
class Confidences:
    """Per-section extraction confidence in [0, 1]."""

    t12: Optional[float] = None
    rent_roll: Optional[float] = None

    def __post_init__(self):
        for name in ("t12", "rent_roll"):
            value = getattr(self, name)
            if value is not None and not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} confidence must be between 0 and 1")

    @classmethod
    def from_dict(cls, data: dict) -> "Confidences":
        t12 = data.get("t12")
        rent_roll = _pick(data, "rentRoll", "rent_roll")
        return cls(
            t12=float(t12) if is_number(t12) else None,
            rent_roll=float(rent_roll) if is_number(rent_roll) else None,
        )

    def to_dict(self) -> dict:
        return {"t12": self.t12, "rentRoll": self.rent_roll}


# =============================================================================
# Extraction
# =============================================================================


@dataclass(frozen=True)
class Extraction:
    """
    Parsed financial data for one uploaded source document.

    Created once by the intake service; immutable thereafter.
    """

    document: DocumentInfo
    totals: Totals = field(default_factory=Totals)
    t12_lines: tuple[LineItem, ...] = ()
    rent_roll: tuple[Lease, ...] = ()
    debt_terms: DebtTerms = field(default_factory=DebtTerms)
    covenants: tuple[Covenant, ...] = ()
    assumptions: tuple[Assumption, ...] = ()
    checks: tuple[ValidationCheck, ...] = ()
    confidences: Confidences = field(default_factory=Confidences)

    @property
    def doc_id(self) -> str:
        return self.document.id

    @property
    def is_low_confidence(self) -> bool:
        """True if any section confidence is below 0.95."""
        values = (self.confidences.t12, self.confidences.rent_roll)
        return any(v is not None and v < 0.95 for v in values)

    def checks_with_status(self, status: str) -> list[ValidationCheck]:
        return [c for c in self.checks if c.status == status]

    @classmethod
    def from_dict(cls, data: dict, doc_id: Optional[str] = None) -> "Extraction":
        """
        Build an extraction from a JSON payload.

        Totals are reconciled so derived NOI/DSCR invariants hold.

        Args:
            data: Payload using wire keys (``rentRoll``) or snake_case keys
            doc_id: Overrides the payload document id when given

        Raises:
            ValueError: If the payload is malformed
        """
        if not isinstance(data, dict):
            raise ValueError("Extraction payload must be a JSON object")

        document_data = data.get("document") or {}
        if not isinstance(document_data, dict):
            raise ValueError("document must be an object")
        resolved_id = doc_id or _opt_str(document_data.get("id"))
        if not resolved_id:
            raise ValueError("document id is required")

        document = DocumentInfo(
            id=resolved_id,
            type=_opt_str(document_data.get("type")) or DEFAULT_DOCUMENT_TYPE,
            file_hash=_opt_str(document_data.get("file_hash")),
            pages=_opt_int(document_data.get("pages")),
            filename=_opt_str(document_data.get("filename")),
        )

        covenants = tuple(
            Covenant(
                type=str(c.get("type", "")),
                threshold=str(c.get("threshold", "")),
                frequency=_opt_str(c.get("frequency")),
            )
            for c in _list_of_dicts(data, "covenants")
        )
        assumptions = tuple(
            Assumption(
                text=str(a.get("text", "")),
                source_refs=tuple(
                    ref for ref in (a.get("source_refs") or []) if isinstance(ref, dict)
                ),
            )
            for a in _list_of_dicts(data, "assumptions")
        )
        checks = tuple(
            ValidationCheck(
                id=str(c.get("id", "")),
                label=str(c.get("label", "")),
                status=str(c.get("status", "pass")).lower(),
            )
            for c in _list_of_dicts(data, "checks")
        )

        return cls(
            document=document,
            totals=Totals.from_dict(data.get("totals") or {}).reconciled(),
            t12_lines=tuple(
                LineItem.from_dict(item) for item in _list_of_dicts(data, "t12Lines", "t12_lines")
            ),
            rent_roll=tuple(
                Lease.from_dict(item) for item in _list_of_dicts(data, "rentRoll", "rent_roll")
            ),
            debt_terms=DebtTerms.from_dict(_pick(data, "debtTerms", "debt_terms") or {}),
            covenants=covenants,
            assumptions=assumptions,
            checks=checks,
            confidences=Confidences.from_dict(data.get("confidences") or {}),
        )

    def to_dict(self) -> dict:
        """Convert to the wire format served by the entities endpoint."""
        return {
            "document": self.document.to_dict(),
            "totals": self.totals.to_dict(),
            "t12Lines": [item.to_dict() for item in self.t12_lines],
            "rentRoll": [lease.to_dict() for lease in self.rent_roll],
            "debtTerms": self.debt_terms.to_dict(),
            "covenants": [c.to_dict() for c in self.covenants],
            "assumptions": [a.to_dict() for a in self.assumptions],
            "checks": [c.to_dict() for c in self.checks],
            "confidences": self.confidences.to_dict(),
        }


def _list_of_dicts(data: dict, *keys: str) -> list[dict]:
    value = _pick(data, *keys)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{keys[0]} must be a list")
    return [item for item in value if isinstance(item, dict)]


# =============================================================================
# Mapped Summary
# =============================================================================


@dataclass(frozen=True)
class MappedSummary:
    """Normalized financial summary produced by the mapper."""

    egi: Optional[float]
    opex: Optional[float]
    noi: Optional[float]
    annual_debt_service: Optional[float]
    dscr: Optional[float]
    walt_years: Optional[float]
    debt: DebtTerms

    def to_dict(self) -> dict:
        return {
            "egi": self.egi,
            "opex": self.opex,
            "noi": self.noi,
            "annual_debt_service": self.annual_debt_service,
            "dscr": self.dscr,
            "walt_years": self.walt_years,
            "debt": self.debt.to_dict(),
        }


# =============================================================================
# Deal
# =============================================================================


class DealStage(Enum):
    """Deal lifecycle stage. Only DRAFT is set by the pipeline."""

    DRAFT = "Draft"
    REVIEW = "Review"
    LIVE = "Live"
    FUNDED = "Funded"


@dataclass
class Deal:
    """
    Terminal artifact of a pipeline run.

    Mutable: downstream stages move the stage and funding progress.
    """

    id: str
    name: str
    stage: DealStage
    dqi: int
    target: float
    progress: int
    doc_id: str
    mapped: MappedSummary
    analysis: dict = field(default_factory=dict)
    source_job_id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "stage": self.stage.value,
            "dqi": self.dqi,
            "target": self.target,
            "progress": self.progress,
            "docId": self.doc_id,
            "mapped": self.mapped.to_dict(),
            "runeAnalysis": self.analysis,
            "sourceJobId": self.source_job_id,
            "createdAt": self.created_at.isoformat(),
        }
