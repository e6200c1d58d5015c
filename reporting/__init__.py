"""
Reporting module for the RUNE deal pipeline.

Renders extraction proof PDFs and audit bundles for uploaded documents.

Usage:
    from reporting import ProofReportGenerator, build_audit_bundle

    pdf_bytes = ProofReportGenerator().generate_to_buffer(extraction, mapped, breakdown)
    zip_bytes = build_audit_bundle(extraction, mapped, breakdown, pdf_bytes)
"""

from .audit_bundle import BUNDLE_VERSION, build_audit_bundle
from .proof_pdf import Palette, ProofReportGenerator, get_proof_styles

__all__ = [
    "BUNDLE_VERSION",
    "build_audit_bundle",
    "Palette",
    "ProofReportGenerator",
    "get_proof_styles",
]
