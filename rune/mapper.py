"""
Extraction mapper.

Pure transform from a raw extraction to the normalized financial summary a
deal carries. No I/O; the same extraction and ``as_of`` always produce the
same summary.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Iterable, Optional

from rune.models import Extraction, Lease, MappedSummary, Totals, round_half_up

DAYS_PER_YEAR = 365.25


def derive_noi(totals: Totals) -> Optional[float]:
    """Supplied NOI, else EGI - OpEx when both are known."""
    if totals.noi is not None:
        return totals.noi
    if totals.egi is not None and totals.opex is not None:
        return totals.egi - totals.opex
    return None


def dscr_ratio(totals: Totals) -> Optional[float]:
    """Supplied DSCR, else the exact NOI / annual debt service ratio."""
    if totals.dscr is not None:
        return totals.dscr
    noi = derive_noi(totals)
    if noi is None or not totals.annual_debt_service:
        return None
    return noi / totals.annual_debt_service


def derive_dscr(totals: Totals) -> Optional[float]:
    """DSCR for display, rounded to 2 decimals. Scoring uses :func:`dscr_ratio`."""
    ratio = dscr_ratio(totals)
    if ratio is None:
        return None
    return round_half_up(ratio, 2)


def parse_lease_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO date or datetime string; None if missing or malformed."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return _naive_utc(parsed)


def estimate_walt(rent_roll: Iterable[Lease], as_of: Optional[datetime] = None) -> Optional[float]:
    """
    Rent-weighted average remaining lease term in years.

    Only leases with a parseable end date and positive base rent count.
    Expired leases contribute zero years. Returns None if nothing counts.
    """
    now = _as_datetime(as_of) if as_of is not None else datetime.utcnow()

    weighted_years = 0.0
    total_rent = 0.0
    for lease in rent_roll:
        end = parse_lease_date(lease.end_date)
        rent = lease.base_rent
        if end is None or rent is None or rent <= 0:
            continue
        years = max(0.0, (end - now).total_seconds() / (DAYS_PER_YEAR * 86400))
        weighted_years += years * rent
        total_rent += rent

    if total_rent <= 0:
        return None
    return round_half_up(weighted_years / total_rent, 2)


def map_extraction(extraction: Extraction, as_of: Optional[datetime] = None) -> MappedSummary:
    """
    Normalize an extraction.

    Args:
        extraction: Raw extraction
        as_of: Reference time for WALT; defaults to now

    Returns:
        MappedSummary with NOI, DSCR, WALT and debt terms
    """
    totals = extraction.totals
    return MappedSummary(
        egi=totals.egi,
        opex=totals.opex,
        noi=derive_noi(totals),
        annual_debt_service=totals.annual_debt_service,
        dscr=derive_dscr(totals),
        walt_years=estimate_walt(extraction.rent_roll, as_of),
        debt=extraction.debt_terms,
    )


def _naive_utc(value: datetime) -> datetime:
    # Everything is compared as naive UTC
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _as_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return _naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    raise TypeError(f"as_of must be a date or datetime, got {type(value).__name__}")
