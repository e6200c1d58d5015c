"""
RUNE deal analysis.

Qualitative read-out attached to every deal the pipeline creates: strengths,
risks, recommendations and per-pillar scores.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from rune.models import Extraction, MappedSummary
from rune.scoring import DQIScorer, max_tenant_share
from utils.formatting import format_currency, format_ratio, format_years

PILLARS = (
    "Leverage & Coverage",
    "Cash-Flow Quality",
    "Lease & Tenant Risk",
    "Sponsor Quality",
    "Market Strength",
    "Structure & Legal",
    "Data Confidence",
)

# Pillars with no input in an extraction get a neutral default
DEFAULT_PILLAR_SCORES = {
    "Sponsor Quality": 75,
    "Market Strength": 70,
    "Structure & Legal": 75,
}


@dataclass
class RuneAnalysis:
    """Strengths, risks and recommendations for one deal."""

    strengths: list[str] = field(default_factory=list)
    risks: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    pillar_scores: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "strengths": list(self.strengths),
            "risks": list(self.risks),
            "recommendations": list(self.recommendations),
            "pillarScores": dict(self.pillar_scores),
        }


def analyze_deal(extraction: Extraction, mapped: MappedSummary, dqi: int) -> RuneAnalysis:
    """
    Build the RUNE analysis for a scored extraction.

    Args:
        extraction: Raw extraction (rent roll, confidences)
        mapped: Mapper output (NOI, DSCR, WALT, debt)
        dqi: Deal Quality Index

    Returns:
        RuneAnalysis
    """
    analysis = RuneAnalysis()
    dscr = mapped.dscr
    tenant_count = len(extraction.rent_roll)

    # Strengths
    if dscr is not None and dscr >= 1.30:
        analysis.strengths.append(f"Strong debt service coverage ratio ({format_ratio(dscr)})")
    if mapped.noi is not None and mapped.noi > 400000:
        analysis.strengths.append(f"Solid net operating income ({format_currency(mapped.noi)})")
    if mapped.walt_years is not None and mapped.walt_years >= 5:
        analysis.strengths.append(f"Long weighted lease term ({format_years(mapped.walt_years)})")

    # Risks
    if mapped.debt.is_floating:
        if mapped.debt.has_rate_cap:
            analysis.risks.append(f"Variable rate debt exposure (capped: {mapped.debt.rate_cap})")
        else:
            analysis.risks.append("Variable rate debt exposure with no rate cap")
    if tenant_count <= 2:
        analysis.risks.append("Limited tenant diversification")
    share = max_tenant_share(extraction)
    if share is not None and share > DQIScorer.MAX_TENANT_SHARE:
        analysis.risks.append(f"Tenant concentration: largest tenant {share * 100:.0f}% of rent")
    if mapped.walt_years is not None and mapped.walt_years < 2:
        analysis.risks.append(f"Near-term rollover risk ({format_years(mapped.walt_years)} WALT)")
    failed = extraction.checks_with_status("fail")
    if failed:
        analysis.risks.append(f"{len(failed)} validation check(s) failed")

    # Recommendations
    if dqi >= 80:
        analysis.recommendations.append("Excellent investment opportunity")
    elif dqi >= 70:
        analysis.recommendations.append("Solid investment with minor improvements needed")
    else:
        analysis.recommendations.append("Requires significant due diligence")
    if extraction.is_low_confidence:
        analysis.recommendations.append("Review low-confidence extraction sections before listing")

    analysis.pillar_scores = pillar_scores(extraction, dscr, dqi)
    return analysis


def pillar_scores(extraction: Extraction, dscr: Optional[float], dqi: int) -> dict[str, int]:
    """Per-pillar 0-100 scores, in PILLARS order."""
    rent_roll_confidence = extraction.confidences.rent_roll
    scores = {
        "Leverage & Coverage": round(max(0.0, min(100.0, (dscr or 1.0) * 60))),
        "Cash-Flow Quality": 85 if dqi > 75 else 65,
        "Lease & Tenant Risk": 80 if len(extraction.rent_roll) > 3 else 60,
        "Data Confidence": round(
            (rent_roll_confidence if rent_roll_confidence is not None else 0.9) * 100
        ),
    }
    scores.update(DEFAULT_PILLAR_SCORES)
    return {pillar: int(scores[pillar]) for pillar in PILLARS}
