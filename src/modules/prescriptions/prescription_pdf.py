# src/modules/prescriptions/prescription_pdf.py
"""
Printable prescription document.

The content is assembled by build_document_sections so it can be checked
without parsing PDF bytes; render_prescription_pdf lays it out with reportlab.
"""

import io
from typing import Any, Dict, List, Optional, Tuple
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from src.common.utils.pagination import as_utc
from src.models.models import Prescription, PrescriptionStatus

PLACEHOLDER = "-"
ITEM_HEADERS = ["Medication", "Dosage", "Qty.", "Instructions"]

STATUS_LABELS = {
    PrescriptionStatus.PENDING: ("PENDING", colors.HexColor("#B45309"), colors.HexColor("#FEF3C7")),
    PrescriptionStatus.CONSUMED: ("CONSUMED", colors.HexColor("#047857"), colors.HexColor("#D1FAE5")),
}


def document_filename(code: str) -> str:
    return f"prescripcion-{code}.pdf"


def display(value: Any) -> str:
    """Render a possibly missing value, using the placeholder for gaps."""
    if value is None:
        return PLACEHOLDER
    text = str(value).strip()
    return text or PLACEHOLDER


def item_rows(prescription: Prescription) -> List[List[str]]:
    rows = []
    for item in prescription.items:
        rows.append([
            display(item.name),
            display(item.dosage),
            display(item.quantity),
            display(item.instructions),
        ])
    return rows


def build_document_sections(prescription: Prescription) -> Dict[str, Any]:
    """Collect everything the document shows, already formatted as text."""
    author = prescription.author
    patient = prescription.patient
    issued = as_utc(prescription.created_at)
    birth_date = patient.birth_date.isoformat() if patient and patient.birth_date else None

    doctor_lines: List[Tuple[str, str]] = [
        ("Name", display(author.user.name if author else None)),
        ("Specialty", display(author.specialty if author else None)),
        ("Email", display(author.user.email if author else None)),
    ]
    patient_lines: List[Tuple[str, str]] = [
        ("Name", display(patient.user.name if patient else None)),
        ("Email", display(patient.user.email if patient else None)),
        ("Birth date", display(birth_date)),
    ]

    notes: Optional[str] = prescription.notes.strip() if prescription.notes and prescription.notes.strip() else None

    return {
        "code": prescription.code,
        "issued": issued.strftime("%Y-%m-%d %H:%M UTC") if issued else PLACEHOLDER,
        "status": STATUS_LABELS[prescription.status][0],
        "consumed_at": as_utc(prescription.consumed_at).strftime("%Y-%m-%d %H:%M UTC") if prescription.consumed_at else None,
        "doctor": doctor_lines,
        "patient": patient_lines,
        "items": item_rows(prescription),
        "notes": notes,
    }


def _card(title: str, lines: List[Tuple[str, str]], styles) -> Table:
    body = [[Paragraph(f"<b>{escape(title)}</b>", styles["Heading4"])]]
    for label, value in lines:
        body.append([Paragraph(f"<font color='#6B7280'>{escape(label)}:</font> {escape(value)}", styles["BodyText"])])
    card = Table(body, colWidths=[85 * mm])
    card.setStyle(TableStyle([
        ("BOX", (0, 0), (-1, -1), 0.5, colors.HexColor("#E5E7EB")),
        ("BACKGROUND", (0, 0), (-1, -1), colors.HexColor("#F9FAFB")),
        ("LEFTPADDING", (0, 0), (-1, -1), 8),
        ("TOPPADDING", (0, 0), (-1, -1), 2),
    ]))
    return card


def render_prescription_pdf(prescription: Prescription) -> bytes:
    """Render the prescription (with items, author and patient loaded) to PDF bytes."""
    sections = build_document_sections(prescription)
    styles = getSampleStyleSheet()
    cell = ParagraphStyle("cell", parent=styles["BodyText"], fontSize=9, leading=11)

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=18 * mm,
        rightMargin=18 * mm,
        topMargin=16 * mm,
        bottomMargin=16 * mm,
        title=f"Prescription {sections['code']}",
    )

    story = [
        Paragraph("Medical prescription", styles["Title"]),
        Paragraph(f"Code: <b>{escape(sections['code'])}</b>", styles["Normal"]),
        Paragraph(f"Issued: {escape(sections['issued'])}", styles["Normal"]),
        Spacer(1, 4 * mm),
    ]

    label, fg, bg = STATUS_LABELS[prescription.status]
    badge = Table([[label]], colWidths=[30 * mm])
    badge.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, -1), bg),
        ("TEXTCOLOR", (0, 0), (-1, -1), fg),
        ("FONTNAME", (0, 0), (-1, -1), "Helvetica-Bold"),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
    ]))
    badge.hAlign = "LEFT"
    story.append(badge)
    if sections["consumed_at"]:
        story.append(Paragraph(f"Consumed: {escape(sections['consumed_at'])}", styles["Normal"]))
    story.append(Spacer(1, 6 * mm))

    cards = Table(
        [[_card("Doctor", sections["doctor"], styles), _card("Patient", sections["patient"], styles)]],
        colWidths=[88 * mm, 88 * mm],
    )
    cards.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
    story.extend([cards, Spacer(1, 6 * mm), Paragraph("Prescribed items", styles["Heading3"])])

    rows = [ITEM_HEADERS] + [[Paragraph(escape(value), cell) for value in row] for row in sections["items"]]
    items_table = Table(rows, colWidths=[50 * mm, 30 * mm, 15 * mm, 79 * mm], repeatRows=1)
    items_table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#111827")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F3F4F6")]),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#D1D5DB")),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]))
    story.append(items_table)

    if sections["notes"]:
        story.extend([
            Spacer(1, 6 * mm),
            Paragraph("Notes", styles["Heading3"]),
            Paragraph(escape(sections["notes"]).replace("\n", "<br/>"), styles["BodyText"]),
        ])

    doc.build(story)
    return buffer.getvalue()
