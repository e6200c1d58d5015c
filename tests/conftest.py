"""
Shared fixtures for the RUNE pipeline tests.
"""

import json
from datetime import date

import pytest

from rune.intake.validation import UploadedDocument
from rune.models import (
    Confidences,
    DebtTerms,
    DocumentInfo,
    Extraction,
    Lease,
    Totals,
    ValidationCheck,
)
from utils.config import Config


def make_extraction(
    doc_id="doc_test01",
    totals=None,
    rent_roll=(),
    debt_terms=None,
    confidences=None,
    checks=(),
):
    """Build an Extraction with neutral defaults for the fields under test."""
    return Extraction(
        document=DocumentInfo(id=doc_id),
        totals=totals or Totals(),
        rent_roll=tuple(rent_roll),
        debt_terms=debt_terms or DebtTerms(rate_type="Fixed"),
        confidences=confidences or Confidences(t12=1.0, rent_roll=1.0),
        checks=tuple(checks),
    )


def even_rent_roll(tenants=4, rent=1000.0, end_date="2030-01-01"):
    """Rent roll with equal rent per tenant (max share 1/tenants)."""
    return [
        Lease(unit_id=str(100 + i), tenant_name=f"Tenant {i}", end_date=end_date, base_rent=rent)
        for i in range(tenants)
    ]


async def no_sleep(_seconds):
    """Awaitable sleep that returns immediately."""
    return None


@pytest.fixture
def strong_extraction():
    """DSCR 1.50, fixed rate, max tenant share 0.30, full confidence: DQI 78."""
    rent_roll = [
        Lease(unit_id="1", tenant_name="Anchor", end_date="2030-01-01", base_rent=3000),
        Lease(unit_id="2", tenant_name="Second", end_date="2030-01-01", base_rent=2500),
        Lease(unit_id="3", tenant_name="Third", end_date="2030-01-01", base_rent=2500),
        Lease(unit_id="4", tenant_name="Fourth", end_date="2030-01-01", base_rent=2000),
    ]
    return make_extraction(
        totals=Totals(noi=1500000, annual_debt_service=1000000, dscr=1.5),
        rent_roll=rent_roll,
        debt_terms=DebtTerms(rate_type="Fixed"),
        confidences=Confidences(t12=1.0, rent_roll=1.0),
        checks=[ValidationCheck("noi-positive", "NOI is positive", "pass")],
    )


@pytest.fixture
def pdf_upload():
    return UploadedDocument(
        filename="t12.pdf",
        content=b"%PDF-1.4 sample statement",
        content_type="application/pdf",
    )


@pytest.fixture
def json_payload():
    """Extraction payload as a JSON upload would carry it (NOI and DSCR derived)."""
    return {
        "document": {"type": "T12", "pages": 3},
        "totals": {"gpr": 2000000, "egi": 1600000, "opex": 480000, "annualDebtService": 800000},
        "rentRoll": [
            {"unit_id": "A", "tenant_name": "Anchor Foods", "end_date": "2031-06-30", "base_rent": 4000},
            {"unit_id": "B", "tenant_name": "Bright Dental", "end_date": "2030-03-31", "base_rent": 3000},
            {"unit_id": "C", "tenant_name": "Corner Cafe", "end_date": "2029-12-31", "base_rent": 2500},
            {"unit_id": "D", "tenant_name": "Dash Fitness", "end_date": "2032-01-31", "base_rent": 3500},
        ],
        "debtTerms": {"lender": "First Bank", "rate_type": "Fixed", "all_in_rate": 0.061},
        "checks": [{"id": "t12-months", "label": "T-12 has 12 months", "status": "pass"}],
        "confidences": {"t12": 0.99, "rentRoll": 0.98},
    }


@pytest.fixture
def json_upload(json_payload):
    return UploadedDocument(
        filename="extraction.json",
        content=json.dumps(json_payload).encode("utf-8"),
        content_type="application/json",
    )


@pytest.fixture
def fast_config():
    """Configuration with zero intake delays and a short poll window."""
    return Config(
        intake_start_delay=0.0,
        intake_complete_delay=0.0,
        poll_attempts=20,
        poll_interval=0.01,
        allowed_origins=[],
    )


@pytest.fixture
def fixed_today():
    return lambda: date(2025, 1, 1)
