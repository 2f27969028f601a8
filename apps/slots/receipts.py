"""PDF receipts for confirmed slots."""

from __future__ import annotations

from io import BytesIO
from uuid import UUID

from django.utils import timezone  # type: ignore
from reportlab.lib import colors  # type: ignore
from reportlab.lib.pagesizes import A4  # type: ignore
from reportlab.lib.styles import getSampleStyleSheet  # type: ignore
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle  # type: ignore

from apps.slots.domain.entities import Slot


def receipt_reference(slot_id: UUID) -> str:
    """Short human readable reference printed on the receipt and in e-mails."""
    return f"SLOT-{UUID(str(slot_id)).hex[:8].upper()}"


def receipt_filename(slot: Slot) -> str:
    return f"receipt-{slot.id}.pdf"


def render_receipt(slot: Slot, reference: str | None = None) -> bytes:
    """Render a one page A4 receipt.

    Only the date, time range, price and reference string are printed.
    """
    reference = reference or receipt_reference(slot.id)
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=50,
        rightMargin=50,
        topMargin=50,
        bottomMargin=50,
        title=f"Receipt {reference}",
    )
    styles = getSampleStyleSheet()

    time_range = slot.time_range
    rows = [
        ["Receipt #", reference],
        ["Issue date", timezone.localdate().isoformat()],
        ["Appointment date", time_range.day.isoformat()],
        ["Time", f"{time_range.start:%H:%M} - {time_range.end:%H:%M}"],
        ["Duration", f"{time_range.minutes} min"],
        ["Amount paid", str(slot.price)],
    ]
    table = Table(rows, colWidths=[150, 300])
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (0, -1), colors.HexColor("#f3f4f6")),
                ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
                ("TOPPADDING", (0, 0), (-1, -1), 8),
            ]
        )
    )

    story = [
        Paragraph("Booking Receipt", styles["Title"]),
        Spacer(1, 20),
        table,
        Spacer(1, 30),
        Paragraph("Thank you for your booking.", styles["Normal"]),
    ]
    doc.build(story)
    return buffer.getvalue()
