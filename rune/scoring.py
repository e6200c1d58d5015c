"""
Deal Quality Index (DQI) scoring logic.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .mapper import dscr_ratio
from .models import Extraction, is_number


@dataclass(frozen=True)
class Adjustment:
    """One rule that moved the score away from the base."""

    rule: str
    points: int
    note: str

    def to_dict(self) -> dict:
        return {"rule": self.rule, "points": self.points, "note": self.note}


@dataclass(frozen=True)
class DQIBreakdown:
    """Final score plus the adjustments that produced it."""

    score: int
    base: int
    adjustments: List[Adjustment] = field(default_factory=list)

    @property
    def raw_score(self) -> int:
        """Score before clamping."""
        return self.base + sum(a.points for a in self.adjustments)

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "base": self.base,
            "raw_score": self.raw_score,
            "adjustments": [a.to_dict() for a in self.adjustments],
        }


class DQIScorer:
    """
    Calculates the Deal Quality Index for an extraction.

    Scoring methodology (additive from a base of 70):
    - DSCR tier: >= 1.40 +8, >= 1.20 +4, >= 1.10 +1, otherwise -8
    - Floating-rate debt without a rate cap: -5
    - Largest tenant above 40% of base rent: -5
    - Rent roll confidence below 0.95: -2
    - T-12 confidence below 0.95: -1

    The result is clamped to [0, 100].
    """

    BASE_SCORE = 70

    # DSCR tiers
    DSCR_STRONG = 1.40
    DSCR_ADEQUATE = 1.20
    DSCR_THIN = 1.10

    POINTS_DSCR_STRONG = 8
    POINTS_DSCR_ADEQUATE = 4
    POINTS_DSCR_THIN = 1
    POINTS_DSCR_WEAK = -8

    POINTS_UNCAPPED_FLOATING = -5

    # Tenant concentration
    MAX_TENANT_SHARE = 0.40
    POINTS_CONCENTRATION = -5

    # Data confidence
    MIN_CONFIDENCE = 0.95
    POINTS_LOW_RENT_ROLL_CONFIDENCE = -2
    POINTS_LOW_T12_CONFIDENCE = -1

    def score(self, extraction: Extraction) -> DQIBreakdown:
        """
        Score a single extraction.

        Args:
            extraction: Raw extraction (totals, rent roll, debt, confidences)

        Returns:
            DQIBreakdown with the clamped integer score
        """
        adjustments = [self._dscr_adjustment(dscr_ratio(extraction.totals))]

        for adjustment in (
            self._rate_cap_adjustment(extraction),
            self._concentration_adjustment(extraction),
            self._rent_roll_confidence_adjustment(extraction),
            self._t12_confidence_adjustment(extraction),
        ):
            if adjustment is not None:
                adjustments.append(adjustment)

        raw = self.BASE_SCORE + sum(a.points for a in adjustments)
        return DQIBreakdown(
            score=int(max(0, min(100, round(raw)))),
            base=self.BASE_SCORE,
            adjustments=adjustments,
        )

    def _dscr_adjustment(self, dscr: Optional[float]) -> Adjustment:
        """DSCR tier; a missing or zero DSCR falls in the weakest tier."""
        value = dscr or 0.0

        if value >= self.DSCR_STRONG:
            return Adjustment("dscr", self.POINTS_DSCR_STRONG, f"Strong DSCR {value:.2f}x")
        elif value >= self.DSCR_ADEQUATE:
            return Adjustment("dscr", self.POINTS_DSCR_ADEQUATE, f"Adequate DSCR {value:.2f}x")
        elif value >= self.DSCR_THIN:
            return Adjustment("dscr", self.POINTS_DSCR_THIN, f"Thin DSCR {value:.2f}x")
        elif dscr is None:
            return Adjustment("dscr", self.POINTS_DSCR_WEAK, "DSCR unavailable")
        else:
            return Adjustment("dscr", self.POINTS_DSCR_WEAK, f"Weak DSCR {value:.2f}x")

    def _rate_cap_adjustment(self, extraction: Extraction) -> Optional[Adjustment]:
        debt = extraction.debt_terms
        if debt.is_floating and not debt.has_rate_cap:
            return Adjustment(
                "rate_cap", self.POINTS_UNCAPPED_FLOATING, "Floating-rate debt without a rate cap"
            )
        return None

    def _concentration_adjustment(self, extraction: Extraction) -> Optional[Adjustment]:
        share = max_tenant_share(extraction)
        if share is not None and share > self.MAX_TENANT_SHARE:
            return Adjustment(
                "tenant_concentration",
                self.POINTS_CONCENTRATION,
                f"Largest tenant is {share * 100:.1f}% of base rent",
            )
        return None

    def _rent_roll_confidence_adjustment(self, extraction: Extraction) -> Optional[Adjustment]:
        confidence = extraction.confidences.rent_roll
        if is_number(confidence) and confidence < self.MIN_CONFIDENCE:
            return Adjustment(
                "rent_roll_confidence",
                self.POINTS_LOW_RENT_ROLL_CONFIDENCE,
                f"Rent roll confidence {confidence:.2f}",
            )
        return None

    def _t12_confidence_adjustment(self, extraction: Extraction) -> Optional[Adjustment]:
        confidence = extraction.confidences.t12
        if is_number(confidence) and confidence < self.MIN_CONFIDENCE:
            return Adjustment(
                "t12_confidence",
                self.POINTS_LOW_T12_CONFIDENCE,
                f"T-12 confidence {confidence:.2f}",
            )
        return None


def max_tenant_share(extraction: Extraction) -> Optional[float]:
    """
    Largest single tenant's share of total base rent.

    Rows are grouped by tenant name; unnamed rows count on their own.
    None for an empty rent roll, 0.0 when total rent is zero.
    """
    if not extraction.rent_roll:
        return None

    rent_by_tenant: dict[str, float] = {}
    for index, lease in enumerate(extraction.rent_roll):
        key = (lease.tenant_name or "").strip().lower() or f"#unit-{lease.unit_id or index}"
        rent_by_tenant[key] = rent_by_tenant.get(key, 0.0) + max(lease.base_rent or 0.0, 0.0)

    total = sum(rent_by_tenant.values())
    if total <= 0:
        return 0.0
    return max(rent_by_tenant.values()) / total


_default_scorer = DQIScorer()


def compute_dqi(extraction: Extraction) -> int:
    """Deal Quality Index in [0, 100] for an extraction."""
    return _default_scorer.score(extraction).score
