from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import Sequence
from xml.sax.saxutils import escape

from PIL import Image as PILImage
from PIL import UnidentifiedImageError
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import (
    Image,
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from app.pipelines.models import AnalysisResult, Defect, DefectDistributionEntry, KpiSummary
from app.services.data_uri import parse_data_uri
from app.services.kpi import KpiCalculator
from app.services.report_parser import parse_report_blocks

_HEADER_TABLE_STYLE = [
    ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#1f2937")),
    ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
    ("ALIGN", (0, 0), (-1, -1), "LEFT"),
    ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.HexColor("#f9fafb"), colors.white]),
    ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
    ("LEFTPADDING", (0, 0), (-1, -1), 6),
    ("RIGHTPADDING", (0, 0), (-1, -1), 6),
]


@dataclass(slots=True)
class ReportArtifact:
    content: bytes
    checksum_sha256: str
    filename: str


class ReportBuilder:
    """Render an analysis result as a printable PDF."""

    MAX_IMAGE_WIDTH = 17 * cm
    MAX_IMAGE_HEIGHT = 12 * cm

    def __init__(self, title: str = "Steel Sheet Quality Report") -> None:
        self.title = title
        self.kpi_calculator = KpiCalculator()

        self.title_style = ParagraphStyle(
            name="Title",
            fontName="Helvetica-Bold",
            fontSize=16,
            leading=20,
            spaceAfter=12,
        )
        self.section_title_style = ParagraphStyle(
            name="SectionTitle",
            fontName="Helvetica-Bold",
            fontSize=13,
            leading=17,
            spaceBefore=8,
            spaceAfter=6,
        )
        self.subsection_style = ParagraphStyle(
            name="Subsection",
            fontName="Helvetica-Bold",
            fontSize=11,
            leading=14,
            spaceBefore=6,
            spaceAfter=4,
        )
        self.body_style = ParagraphStyle(
            name="Body",
            fontName="Helvetica",
            fontSize=10,
            leading=14,
            spaceAfter=6,
        )
        self.cover_title_style = ParagraphStyle(
            name="CoverTitle",
            fontName="Helvetica-Bold",
            fontSize=24,
            leading=28,
            alignment=TA_CENTER,
            spaceAfter=18,
        )
        self.badge_style = ParagraphStyle(
            name="Badge",
            fontName="Helvetica-Bold",
            fontSize=11,
            leading=14,
            alignment=TA_CENTER,
            textColor=colors.HexColor("#1d4ed8"),
            spaceAfter=6,
        )
        self.disclaimer_style = ParagraphStyle(
            name="Disclaimer",
            fontName="Helvetica-Oblique",
            fontSize=8,
            leading=10,
            textColor=colors.HexColor("#4b5563"),
            spaceBefore=6,
        )

    def build(self, result: AnalysisResult, *, generated_at: datetime | None = None) -> ReportArtifact:
        generated_at = generated_at or datetime.now()
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=2 * cm,
            rightMargin=2 * cm,
            topMargin=2 * cm,
            bottomMargin=2 * cm,
            title=self.title,
        )

        story: list = []
        story.extend(self._build_cover(result.kpis, generated_at))
        story.extend(self._build_image_section(result.annotated_image))
        story.append(PageBreak())
        story.extend(self._build_report_section(result.report))
        story.append(PageBreak())
        story.extend(self._build_detections_section(result.detections))
        doc.build(story)

        content = buffer.getvalue()
        return ReportArtifact(
            content=content,
            checksum_sha256=hashlib.sha256(content).hexdigest(),
            filename=f"steel-report-{generated_at.strftime('%Y%m%d-%H%M%S')}.pdf",
        )

    def _build_cover(self, kpis: KpiSummary, generated_at: datetime) -> list:
        elements: list = [
            Paragraph("KADD-AI", self.badge_style),
            Paragraph(escape(self.title), self.cover_title_style),
            Paragraph(f"Generated {generated_at.strftime('%Y-%m-%d %H:%M')}", self.badge_style),
            Spacer(1, 12),
            Paragraph("Key Performance Indicators", self.section_title_style),
        ]
        rows = [
            ["Total defects", str(kpis.total_defects)],
            ["Defect density (per pixel)", f"{kpis.defect_density:.3e}"],
            ["Most common defect", kpis.most_common_defect_type or "-"],
            ["Severity score", f"{kpis.severity_score:.2f}"],
        ]
        table = Table(rows, colWidths=[7 * cm, 9 * cm])
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (0, -1), colors.HexColor("#e0e7ff")),
                    ("TEXTCOLOR", (0, 0), (0, -1), colors.HexColor("#1e3a8a")),
                    ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
                    ("FONTSIZE", (0, 0), (-1, -1), 10),
                    ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                    ("BOX", (0, 0), (-1, -1), 0.5, colors.HexColor("#c7d2fe")),
                    ("INNERGRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#c7d2fe")),
                    ("LEFTPADDING", (0, 0), (-1, -1), 6),
                    ("TOPPADDING", (0, 0), (-1, -1), 4),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
                ]
            )
        )
        elements.append(table)
        elements.append(Spacer(1, 18))
        return elements

    def _build_image_section(self, annotated_image: str) -> list:
        elements: list = [Paragraph("Annotated Image", self.section_title_style)]
        flowable = self._image_flowable(annotated_image)
        if flowable is None:
            elements.append(Paragraph("Annotated image could not be embedded.", self.body_style))
        else:
            flowable.hAlign = "CENTER"
            elements.append(flowable)
        return elements

    def _image_flowable(self, annotated_image: str) -> Image | None:
        try:
            decoded = parse_data_uri(annotated_image)
            with PILImage.open(BytesIO(decoded.data)) as picture:
                width, height = picture.size
        except (ValueError, UnidentifiedImageError, OSError):
            return None
        if not width or not height:
            return None
        scale = min(self.MAX_IMAGE_WIDTH / width, self.MAX_IMAGE_HEIGHT / height)
        return Image(BytesIO(decoded.data), width=width * scale, height=height * scale)

    def _build_report_section(self, report: str) -> list:
        elements: list = [Paragraph("AI-Generated Report", self.title_style)]
        blocks = parse_report_blocks(report)
        if not blocks:
            elements.append(Paragraph("No report text was generated.", self.body_style))
        styles = {
            "heading": self.section_title_style,
            "subheading": self.subsection_style,
            "paragraph": self.body_style,
        }
        for block in blocks:
            text = escape(block.text).replace("\n", "<br/>")
            elements.append(Paragraph(text, styles.get(block.kind, self.body_style)))
        return elements

    def _build_detections_section(self, detections: Sequence[Defect]) -> list:
        elements: list = [Paragraph("Detections", self.title_style)]
        if not detections:
            elements.append(Paragraph("No defects were detected.", self.body_style))
            return elements

        elements.append(Paragraph("Defect Distribution", self.section_title_style))
        elements.append(self._build_distribution_table(self.kpi_calculator.defect_distribution(detections)))
        elements.append(Spacer(1, 12))
        elements.append(Paragraph("Bounding Boxes", self.section_title_style))
        elements.append(self._build_detection_table(detections))
        elements.append(Spacer(1, 18))
        elements.append(
            Paragraph(
                "Detections are produced by a simulated detector and must be confirmed by a quality "
                "inspector before any disposition decision.",
                self.disclaimer_style,
            )
        )
        return elements

    def _build_distribution_table(self, distribution: Sequence[DefectDistributionEntry]) -> Table:
        rows = [["Defect type", "Occurrences"]]
        rows.extend([entry.label, str(entry.count)] for entry in distribution)
        table = Table(rows, hAlign="LEFT", colWidths=[7 * cm, 4 * cm])
        table.setStyle(TableStyle(_HEADER_TABLE_STYLE))
        return table

    def _build_detection_table(self, detections: Sequence[Defect]) -> Table:
        rows = [["#", "Label", "Confidence", "x min", "y min", "x max", "y max"]]
        for index, defect in enumerate(detections, start=1):
            rows.append(
                [
                    str(index),
                    defect.label,
                    f"{defect.confidence:.2f}",
                    f"{defect.x_min:.0f}",
                    f"{defect.y_min:.0f}",
                    f"{defect.x_max:.0f}",
                    f"{defect.y_max:.0f}",
                ]
            )
        table = Table(rows, hAlign="LEFT")
        table.setStyle(TableStyle(_HEADER_TABLE_STYLE))
        return table
