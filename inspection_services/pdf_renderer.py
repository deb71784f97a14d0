"""
inspection_services.pdf_renderer -- Inspection report rendering.

Contract:
    ``render(document) -> bytes`` lays out an ``InspectionPdfDocument``.
    The document is fully assembled beforehand; renderers fetch nothing.
"""

from __future__ import annotations

import io
from abc import ABC, abstractmethod
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from inspection_kernel.domain.projections import InspectionPdfDocument


class PdfRenderer(ABC):
    @abstractmethod
    def render(self, document: InspectionPdfDocument) -> bytes:
        """Return the PDF bytes for ``document``."""


_TABLE_STYLE = TableStyle([
    ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#E0E0E0")),
    ("BACKGROUND", (0, 0), (0, -1), colors.HexColor("#F5F5F5")),
    ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ("FONTSIZE", (0, 0), (-1, -1), 9),
])


class ReportLabPdfRenderer(PdfRenderer):
    def __init__(self, pagesize=A4):
        self.pagesize = pagesize
        self.styles = getSampleStyleSheet()

    def _section(self, title: str, rows: list[tuple[str, str]]) -> list:
        return [
            Paragraph(escape(title), self.styles["Heading2"]),
            Table(
                [[escape(k), Paragraph(escape(v), self.styles["BodyText"])] for k, v in rows],
                colWidths=[50 * mm, 120 * mm],
                style=_TABLE_STYLE,
            ),
            Spacer(1, 6 * mm),
        ]

    def render(self, document: InspectionPdfDocument) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=self.pagesize,
            title=document.title,
            leftMargin=18 * mm,
            rightMargin=18 * mm,
        )
        story: list = [
            Paragraph(escape(document.title), self.styles["Title"]),
            Paragraph(f"Status: {escape(document.status_label)}", self.styles["Normal"]),
            Spacer(1, 6 * mm),
        ]
        story += self._section("General Information", [
            ("Inspection", document.inspection_id),
            ("Date", f"{document.created_at:%Y-%m-%d %H:%M}"),
            ("Mileage", f"{document.mileage:,} km"),
            ("Status", document.status_label),
        ])
        story += self._section("Vehicle", [
            ("Model", document.vehicle_model),
            ("Plate", document.vehicle_plate),
            ("Vehicle status", document.vehicle_status),
        ])
        story += self._section("Inspector", [
            ("Name", document.inspector_name),
            ("Email", document.inspector_email),
        ])

        passed, total = document.checklist_score
        story += self._section(
            f"Checklist ({passed}/{total})",
            [
                (f"{row.group}: {row.label}", "OK" if row.passed else "Not OK")
                for row in document.checklist
            ],
        )
        if document.photos:
            story += self._section(
                "Photos", [(photo.label, photo.url) for photo in document.photos],
            )
        if document.signature_url:
            signed = f"{document.signed_at:%Y-%m-%d %H:%M}" if document.signed_at else "-"
            story += self._section("Signature", [
                ("Signed by", document.inspector_name),
                ("Signed at", signed),
                ("Image", document.signature_url),
            ])
        if document.observations:
            story += self._section("Observations", [("Notes", document.observations)])
        if document.approval is not None:
            approval = document.approval
            story += self._section("Approval", [
                ("Decision", approval.decision.value.capitalize()),
                ("Reviewer", approval.reviewer_name),
                ("Date", f"{approval.decided_at:%Y-%m-%d %H:%M}"),
                ("Comments", approval.comment or "-"),
            ])

        doc.build(story)
        return buffer.getvalue()
