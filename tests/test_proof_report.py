"""
Tests for the Extraction Proof PDF and Audit Bundle
"""

import io
import json
import zipfile

import pytest

from reporting import BUNDLE_VERSION, ProofReportGenerator, build_audit_bundle
from rune.intake import SampleExtractor
from rune.mapper import map_extraction
from rune.scoring import DQIScorer
from rune.stores import CorrectionLog


@pytest.fixture
def extraction(fixed_today):
    return SampleExtractor(today=fixed_today).build("doc_proof1")


@pytest.fixture
def report_inputs(extraction):
    return extraction, map_extraction(extraction), DQIScorer().score(extraction)


@pytest.fixture
def corrections():
    log = CorrectionLog()
    log.add("doc_proof1", "totals.noi", 250000, note="Per lender package <p.4>")
    return log.list_for("doc_proof1")


class TestProofReport:

    def test_generates_pdf_bytes(self, report_inputs):
        pdf_bytes = ProofReportGenerator().generate_to_buffer(*report_inputs)
        assert pdf_bytes.startswith(b"%PDF")
        assert len(pdf_bytes) > 1000

    def test_with_corrections(self, report_inputs, corrections):
        pdf_bytes = ProofReportGenerator().generate_to_buffer(*report_inputs, corrections)
        assert pdf_bytes.startswith(b"%PDF")

    def test_strong_extraction(self, strong_extraction):
        breakdown = DQIScorer().score(strong_extraction)
        pdf_bytes = ProofReportGenerator().generate_to_buffer(
            strong_extraction, map_extraction(strong_extraction), breakdown
        )
        assert pdf_bytes.startswith(b"%PDF")


class TestAuditBundle:

    def test_members_and_manifest(self, report_inputs, corrections):
        extraction, mapped, breakdown = report_inputs
        bundle = build_audit_bundle(extraction, mapped, breakdown, b"%PDF-stub", corrections)

        with zipfile.ZipFile(io.BytesIO(bundle)) as zf:
            names = sorted(zf.namelist())
            manifest = json.loads(zf.read("doc_proof1/manifest.json"))
            saved = json.loads(zf.read("doc_proof1/extraction.json"))
            dqi = json.loads(zf.read("doc_proof1/dqi.json"))
            saved_corrections = json.loads(zf.read("doc_proof1/corrections.json"))

        assert names == [
            "doc_proof1/corrections.json",
            "doc_proof1/dqi.json",
            "doc_proof1/extraction.json",
            "doc_proof1/manifest.json",
            "doc_proof1/mapped.json",
            "doc_proof1/proof.pdf",
        ]
        assert manifest["bundle_version"] == BUNDLE_VERSION
        assert set(manifest["files"]) == {
            "extraction.json", "mapped.json", "dqi.json", "corrections.json", "proof.pdf",
        }
        assert saved["document"]["id"] == "doc_proof1"
        assert dqi["score"] == 55
        assert saved_corrections[0]["path"] == "totals.noi"

    def test_identical_inputs_identical_archive(self, report_inputs):
        first = build_audit_bundle(*report_inputs, b"%PDF-stub")
        second = build_audit_bundle(*report_inputs, b"%PDF-stub")
        assert first == second
