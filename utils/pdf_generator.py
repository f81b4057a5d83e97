"""PDF rendering for issued Fire No-Objection Certificates."""

from io import BytesIO
from typing import Dict, List
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle


PAGE_MARGIN = 20 * mm
CONTENT_WIDTH = A4[0] - (PAGE_MARGIN * 2)


styles = getSampleStyleSheet()

TITLE_STYLE = ParagraphStyle(
    name="CertificateTitle",
    parent=styles["Title"],
    fontName="Helvetica-Bold",
    fontSize=18,
    leading=22,
    alignment=1,
    spaceAfter=6,
    textColor=colors.HexColor("#b91c1c"),
)

SUBTITLE_STYLE = ParagraphStyle(
    name="CertificateSubtitle",
    fontName="Helvetica",
    fontSize=10,
    leading=13,
    alignment=1,
    textColor=colors.black,
)

HEADING_STYLE = ParagraphStyle(
    name="SectionHeading",
    fontName="Helvetica-Bold",
    fontSize=11,
    leading=14,
    textColor=colors.black,
    spaceBefore=4,
    spaceAfter=6,
    keepWithNext=True,
)

BODY_STYLE = ParagraphStyle(
    name="BodyText",
    fontName="Helvetica",
    fontSize=9,
    leading=12,
    textColor=colors.black,
    wordWrap="CJK",
    splitLongWords=True,
)

LABEL_STYLE = ParagraphStyle(
    name="LabelText",
    parent=BODY_STYLE,
    fontName="Helvetica-Bold",
)

STAMP_STYLE = ParagraphStyle(
    name="RevokedStamp",
    parent=HEADING_STYLE,
    fontSize=14,
    alignment=1,
    textColor=colors.HexColor("#b91c1c"),
)


def _para(value, style: ParagraphStyle = BODY_STYLE) -> Paragraph:
    text = escape(str(value or "").strip()).replace("\n", "<br/>")
    return Paragraph(text or "N/A", style)


def _kv_table(rows: List[List[str]]) -> Table:
    table = Table(
        [[_para(label, LABEL_STYLE), _para(value)] for label, value in rows],
        colWidths=[55 * mm, CONTENT_WIDTH - (55 * mm)],
        hAlign="LEFT",
    )
    table.setStyle(
        TableStyle(
            [
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ("BACKGROUND", (0, 0), (0, -1), colors.whitesmoke),
                ("LEFTPADDING", (0, 0), (-1, -1), 4),
                ("RIGHTPADDING", (0, 0), (-1, -1), 4),
                ("TOPPADDING", (0, 0), (-1, -1), 4),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
            ]
        )
    )
    return table


def generate_certificate_pdf(payload: Dict) -> bytes:
    """Render a certificate from ``NOC.payload()`` plus ``building`` and ``applicationNumber``."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=PAGE_MARGIN,
        rightMargin=PAGE_MARGIN,
        topMargin=PAGE_MARGIN,
        bottomMargin=PAGE_MARGIN,
        title=f"Fire NOC {payload.get('nocNumber', '')}",
    )

    story: List = [
        Paragraph("Fire Safety No-Objection Certificate", TITLE_STYLE),
        Paragraph(f"Certificate No. {escape(str(payload.get('nocNumber', '')))}", SUBTITLE_STYLE),
        Spacer(1, 12),
    ]
    if payload.get("status") == "revoked":
        story.append(Paragraph("REVOKED", STAMP_STYLE))
        story.append(_para(f"Reason: {payload.get('revocationReason', '')}"))
        story.append(Spacer(1, 8))

    story.append(Paragraph("Certificate Details", HEADING_STYLE))
    story.append(
        _kv_table(
            [
                ["Issued To", payload.get("issuedTo", "")],
                ["Application Number", payload.get("applicationNumber", "")],
                ["Issue Date", payload.get("issueDate", "")],
                ["Valid From", payload.get("validFrom", "")],
                ["Valid Until", payload.get("validUntil", "")],
                ["Status", str(payload.get("status", "")).title()],
            ]
        )
    )
    story.append(Spacer(1, 10))

    building = payload.get("building") or {}
    story.append(Paragraph("Premises", HEADING_STYLE))
    story.append(
        _kv_table(
            [
                ["Building", building.get("name", "")],
                ["Category", str(building.get("category") or "").replace("_", " ").title()],
                ["Address", building.get("address", "")],
                ["City", building.get("city", "")],
                ["Floors", building.get("floors", "")],
                ["Built-up Area (sq ft)", building.get("areaSqft", "")],
            ]
        )
    )
    story.append(Spacer(1, 10))

    conditions = payload.get("conditions") or []
    if conditions:
        story.append(Paragraph("Conditions", HEADING_STYLE))
        for index, condition in enumerate(conditions, start=1):
            story.append(_para(f"{index}. {condition}"))
        story.append(Spacer(1, 10))

    story.append(Paragraph("Verification", HEADING_STYLE))
    story.append(
        _para(
            "The validity of this certificate can be confirmed on the public verification service using the "
            "certificate number. The digest below identifies the certificate record.",
        )
    )
    story.append(Spacer(1, 4))
    story.append(_kv_table([["Verification Hash (sha256)", payload.get("verificationHash", "")]]))

    doc.build(story)
    return buffer.getvalue()
