"""
Extraction Proof Report

One-to-two page PDF evidencing what was extracted from a source document
and how it scored. Generated with ReportLab so the same inputs always
produce the same layout.

Sections:
1. Document details
2. Extracted totals
3. Mapped metrics
4. Deal Quality Index breakdown
5. Validation checks and confidences
6. Reviewer corrections (if any)
"""

from io import BytesIO
from typing import Iterable, List, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_LEFT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from rune.models import Extraction, MappedSummary
from rune.scoring import DQIBreakdown
from rune.stores import CorrectionRecord
from utils.formatting import format_currency, format_percent, format_ratio, format_years


# =============================================================================
# Color Palette
# =============================================================================

class Palette:
    """Print-friendly palette: charcoal text, navy accent, muted status colors."""
    CHARCOAL = colors.Color(0.2, 0.2, 0.22)
    SLATE = colors.Color(0.35, 0.38, 0.42)
    GRAY = colors.Color(0.5, 0.5, 0.5)
    LIGHT_GRAY = colors.Color(0.85, 0.85, 0.85)
    PALE_GRAY = colors.Color(0.95, 0.95, 0.95)
    WHITE = colors.white

    ACCENT = colors.Color(0.15, 0.25, 0.4)

    PASS = colors.Color(0.15, 0.4, 0.25)
    WARN = colors.Color(0.5, 0.4, 0.15)
    FAIL = colors.Color(0.55, 0.15, 0.15)


STATUS_COLORS = {
    "pass": Palette.PASS,
    "warn": Palette.WARN,
    "fail": Palette.FAIL,
}


# =============================================================================
# Styles
# =============================================================================

def get_proof_styles():
    """Paragraph styles for the proof report."""
    styles = getSampleStyleSheet()

    styles.add(ParagraphStyle(
        name='ProofTitle',
        parent=styles['Normal'],
        fontSize=18,
        leading=22,
        textColor=Palette.CHARCOAL,
        alignment=TA_LEFT,
        fontName='Helvetica-Bold',
        spaceAfter=3*mm,
    ))

    styles.add(ParagraphStyle(
        name='ProofSubtitle',
        parent=styles['Normal'],
        fontSize=9,
        leading=12,
        textColor=Palette.SLATE,
        fontName='Helvetica',
        spaceAfter=6*mm,
    ))

    styles.add(ParagraphStyle(
        name='ProofSection',
        parent=styles['Normal'],
        fontSize=12,
        leading=15,
        textColor=Palette.ACCENT,
        fontName='Helvetica-Bold',
        spaceBefore=14,
        spaceAfter=8,
    ))

    styles.add(ParagraphStyle(
        name='ProofBody',
        parent=styles['Normal'],
        fontSize=9,
        leading=13,
        textColor=Palette.CHARCOAL,
        fontName='Helvetica',
    ))

    styles.add(ParagraphStyle(
        name='ProofNote',
        parent=styles['Normal'],
        fontSize=8,
        leading=11,
        textColor=Palette.GRAY,
        fontName='Helvetica-Oblique',
    ))

    return styles


# =============================================================================
# Generator
# =============================================================================

class ProofReportGenerator:
    """
    Renders the extraction proof report.

    Usage:
        generator = ProofReportGenerator()
        pdf_bytes = generator.generate_to_buffer(extraction, mapped, breakdown)
    """

    PAGE_WIDTH, PAGE_HEIGHT = A4
    MARGIN = 18*mm
    CONTENT_WIDTH = PAGE_WIDTH - 2 * MARGIN

    def __init__(self):
        self.styles = get_proof_styles()

    def generate_to_buffer(
        self,
        extraction: Extraction,
        mapped: MappedSummary,
        breakdown: DQIBreakdown,
        corrections: Optional[Iterable[CorrectionRecord]] = None,
    ) -> bytes:
        """Render the report and return the PDF bytes."""
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=self.MARGIN,
            rightMargin=self.MARGIN,
            topMargin=self.MARGIN,
            bottomMargin=self.MARGIN + 4*mm,
            title=f"Extraction Proof - {extraction.doc_id}",
            author="RUNE Deal Pipeline",
            subject="Document extraction proof",
        )

        story = []
        story.extend(self._build_header(extraction))
        story.extend(self._build_totals(extraction))
        story.extend(self._build_mapped(mapped))
        story.extend(self._build_dqi(breakdown))
        story.extend(self._build_checks(extraction))
        story.extend(self._build_corrections(list(corrections or [])))

        doc.build(story, onFirstPage=self._draw_footer, onLaterPages=self._draw_footer)
        return buffer.getvalue()

    # =========================================================================
    # Page Drawing
    # =========================================================================

    def _draw_footer(self, canvas_obj: canvas.Canvas, doc):
        canvas_obj.saveState()
        canvas_obj.setFont('Helvetica', 7)
        canvas_obj.setFillColor(Palette.GRAY)
        canvas_obj.drawString(self.MARGIN, self.MARGIN - 6*mm, "RUNE EXTRACTION PROOF")
        canvas_obj.drawRightString(self.PAGE_WIDTH - self.MARGIN, self.MARGIN - 6*mm, f"{doc.page}")
        canvas_obj.restoreState()

    # =========================================================================
    # Sections
    # =========================================================================

    def _build_header(self, extraction: Extraction) -> list:
        document = extraction.document
        elements = [
            Paragraph("Extraction Proof", self.styles['ProofTitle']),
            Paragraph(
                f"Document {escape(document.id)} &middot; {escape(document.type)}",
                self.styles['ProofSubtitle'],
            ),
        ]
        rows = [
            ["Field", "Value"],
            ["Document ID", document.id],
            ["Type", document.type],
            ["Filename", document.filename or "—"],
            ["File hash", _short_hash(document.file_hash)],
            ["Pages", str(document.pages) if document.pages is not None else "—"],
            ["T-12 lines", str(len(extraction.t12_lines))],
            ["Rent roll entries", str(len(extraction.rent_roll))],
        ]
        elements.append(self._table(rows, [50*mm, self.CONTENT_WIDTH - 50*mm]))
        return elements

    def _build_totals(self, extraction: Extraction) -> list:
        totals = extraction.totals
        rows = [
            ["Total", "Amount"],
            ["Gross Potential Rent", format_currency(totals.gpr)],
            ["Effective Gross Income", format_currency(totals.egi)],
            ["Operating Expenses", format_currency(totals.opex)],
            ["Net Operating Income", format_currency(totals.noi)],
            ["Annual Debt Service", format_currency(totals.annual_debt_service)],
            ["DSCR", format_ratio(totals.dscr)],
        ]
        return [
            Paragraph("Extracted Totals", self.styles['ProofSection']),
            self._table(rows, [70*mm, self.CONTENT_WIDTH - 70*mm]),
        ]

    def _build_mapped(self, mapped: MappedSummary) -> list:
        debt = mapped.debt
        rows = [
            ["Metric", "Value"],
            ["NOI", format_currency(mapped.noi)],
            ["DSCR", format_ratio(mapped.dscr)],
            ["WALT", format_years(mapped.walt_years)],
            ["Lender", debt.lender or "—"],
            ["Rate type", debt.rate_type or "—"],
            ["All-in rate", _fraction_percent(debt.all_in_rate, 2)],
            ["Rate cap", debt.rate_cap or "—"],
            ["Maturity", debt.maturity_date or "—"],
        ]
        return [
            Paragraph("Mapped Metrics", self.styles['ProofSection']),
            self._table(rows, [70*mm, self.CONTENT_WIDTH - 70*mm]),
        ]

    def _build_dqi(self, breakdown: DQIBreakdown) -> list:
        rows = [["Rule", "Points", "Note"], ["base", f"{breakdown.base}", "Base score"]]
        for adjustment in breakdown.adjustments:
            rows.append([adjustment.rule, f"{adjustment.points:+d}", adjustment.note])
        rows.append(["score", f"{breakdown.score}", "Clamped to 0-100"])

        table = self._table(rows, [45*mm, 20*mm, self.CONTENT_WIDTH - 65*mm])
        table.setStyle(TableStyle([
            ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
            ('BACKGROUND', (0, -1), (-1, -1), Palette.PALE_GRAY),
        ]))
        return [
            Paragraph(f"Deal Quality Index: {breakdown.score}", self.styles['ProofSection']),
            table,
        ]

    def _build_checks(self, extraction: Extraction) -> list:
        elements = [Paragraph("Validation & Confidence", self.styles['ProofSection'])]

        if extraction.checks:
            rows = [["Check", "Status"]]
            rows.extend([check.label or check.id, check.status.upper()] for check in extraction.checks)
            table = self._table(rows, [self.CONTENT_WIDTH - 30*mm, 30*mm])
            table.setStyle(TableStyle([
                ('TEXTCOLOR', (1, i), (1, i), STATUS_COLORS[check.status])
                for i, check in enumerate(extraction.checks, start=1)
            ] + [('FONTNAME', (1, 1), (1, -1), 'Helvetica-Bold')]))
            elements.append(table)
        else:
            elements.append(Paragraph("No validation checks recorded.", self.styles['ProofBody']))

        confidences = extraction.confidences
        elements.append(Spacer(1, 8))
        elements.append(Paragraph(
            f"T-12 confidence: {_fraction_percent(confidences.t12)} &middot; "
            f"Rent roll confidence: {_fraction_percent(confidences.rent_roll)}",
            self.styles['ProofBody'],
        ))
        if extraction.is_low_confidence:
            elements.append(Paragraph(
                "One or more sections fall below the 95% confidence threshold and need review.",
                self.styles['ProofNote'],
            ))
        return elements

    def _build_corrections(self, corrections: List[CorrectionRecord]) -> list:
        if not corrections:
            return []
        rows = [["Field", "Value", "Note"]]
        for record in corrections:
            rows.append([record.path, str(record.value), record.note or ""])
        return [
            Paragraph(f"Reviewer Corrections ({len(corrections)})", self.styles['ProofSection']),
            self._table(rows, [55*mm, 45*mm, self.CONTENT_WIDTH - 100*mm]),
            Spacer(1, 6),
            Paragraph(
                "Corrections are recorded against the document; extracted values above are unchanged.",
                self.styles['ProofNote'],
            ),
        ]

    # =========================================================================
    # Helpers
    # =========================================================================

    def _table(self, rows: list, col_widths: list) -> Table:
        """Header-row table in the report's house style."""
        table = Table(rows, colWidths=col_widths, repeatRows=1)
        table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTNAME', (0, 1), (-1, -1), 'Helvetica'),
            ('FONTSIZE', (0, 0), (-1, -1), 8.5),
            ('BACKGROUND', (0, 0), (-1, 0), Palette.CHARCOAL),
            ('TEXTCOLOR', (0, 0), (-1, 0), Palette.WHITE),
            ('TEXTCOLOR', (0, 1), (-1, -1), Palette.CHARCOAL),
            ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('GRID', (0, 0), (-1, -1), 0.5, Palette.LIGHT_GRAY),
            ('TOPPADDING', (0, 0), (-1, -1), 2.5*mm),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 2.5*mm),
            ('LEFTPADDING', (0, 0), (-1, -1), 3*mm),
        ]))
        return table


def _short_hash(file_hash: Optional[str]) -> str:
    if not file_hash:
        return "—"
    return file_hash if len(file_hash) <= 16 else f"{file_hash[:16]}…"


def _fraction_percent(value: Optional[float], decimals: int = 1) -> str:
    return format_percent(value * 100 if value is not None else None, decimals)
