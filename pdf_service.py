# pdf_service.py
from __future__ import annotations

import math
import re
from datetime import datetime

from reportlab.pdfgen import canvas
from reportlab.lib.pagesizes import LETTER
from reportlab.lib import colors

# Layout is written in top-down page units (y grows downwards from the top
# edge) and flipped to PDF coordinates when drawing.
PAGE_W, PAGE_H = LETTER
MARGIN = 50
RULE_RIGHT = 560
PAGE_LIMIT = 700
ROW_H = 25

COL_SNO, COL_DATE, COL_SERVICE, COL_DESC, COL_TIME, COL_AMOUNT = 50, 90, 170, 280, 390, 480
PAY_COL_DATE, PAY_COL_AMOUNT, PAY_COL_REMARK = 50, 170, 280

REMARK_CHARS = 25
PAYMENT_REMARK_CHARS = 30


def _safe_filename(name: str, fallback: str = "farmer") -> str:
    # strip characters not allowed on Windows/mac paths
    return re.sub(r'[\\/*?:"<>|]', "", (name or "")).strip() or fallback


def _amount(x) -> str:
    return f"{float(x):.2f}"


def _rupees(x) -> str:
    return f"Rs {float(x):.2f}"


def format_date(dt: datetime) -> str:
    """Day-first, no zero padding: 5/1/2025."""
    return f"{dt.day}/{dt.month}/{dt.year}"


def hours_to_hhmm(hours) -> str:
    """
    2.5 -> "2:30". Minutes are rounded half-up and never carried into the
    hour, so 1.999 renders as "1:60".
    """
    value = float(hours or 0.0)
    whole = math.floor(value)
    minutes = math.floor((value - whole) * 60 + 0.5)
    return f"{whole}:{minutes:02d}"


def invoice_filename(farmer_name: str, generated_at: datetime) -> str:
    millis = int(generated_at.timestamp() * 1000)
    return f"invoice_{_safe_filename(farmer_name)}_{millis}.pdf"


class _PageCursor:
    """
    Vertical position on the current page. Starts a new page once the
    cursor is past PAGE_LIMIT, or when a block of `need` points would not
    fit above it.
    """

    def __init__(self, pdf, y: float):
        self.pdf = pdf
        self.y = y
        self.pages = 1

    def ensure_room(self, need: float = 0) -> float:
        if self.y > PAGE_LIMIT or self.y + need > PAGE_LIMIT:
            self.pdf.showPage()
            self.pages += 1
            self.y = MARGIN
        return self.y


def render_invoice_pdf(
    summary,
    out,
    *,
    org_name: str,
    footer_text: str = "Thank you",
    generated_at: datetime | None = None,
) -> int:
    """
    Draws the invoice for an InvoiceSummary into the binary stream `out`.

    Returns the number of pages written.
    """
    generated_at = generated_at or datetime.now()

    pdf = canvas.Canvas(out, pagesize=LETTER)
    pdf.setTitle(f"Invoice - {summary.farmer_name}")
    pdf.setAuthor(org_name)

    def text(x, y, value, font="Helvetica", size=10):
        pdf.setFont(font, size)
        pdf.drawString(x, PAGE_H - y - size, str(value))

    def centered(y, value, font="Helvetica", size=10):
        pdf.setFont(font, size)
        pdf.drawCentredString(PAGE_W / 2, PAGE_H - y - size, str(value))

    def rule(y, x1=MARGIN, x2=RULE_RIGHT, width=1):
        pdf.setLineWidth(width)
        pdf.line(x1, PAGE_H - y, x2, PAGE_H - y)

    # Header
    y = MARGIN
    centered(y, org_name, "Helvetica-Bold", 24)
    y += 34
    centered(y, f"Date: {format_date(generated_at)}", "Helvetica", 12)
    y += 36

    # Farmer
    text(MARGIN, y, f"Farmer Name: {summary.farmer_name}", "Helvetica-Bold", 14)
    y += 20
    if summary.farmer_contact:
        text(MARGIN, y, f"Contact: {summary.farmer_contact}", "Helvetica", 12)
        y += 20
    y += 10

    # Service table
    for x, label in (
        (COL_SNO, "S.No"),
        (COL_DATE, "Date"),
        (COL_SERVICE, "Service Type"),
        (COL_DESC, "Description"),
        (COL_TIME, "Time (H:MM)"),
        (COL_AMOUNT, "Amount (Rs)"),
    ):
        text(x, y, label, "Helvetica-Bold", 10)
    rule(y + 15)

    cursor = _PageCursor(pdf, y + 25)
    for index, entry in enumerate(summary.entries, start=1):
        row_y = cursor.ensure_room()
        text(COL_SNO, row_y, index)
        text(COL_DATE, row_y, format_date(entry.entry_date))
        text(COL_SERVICE, row_y, entry.service_type)
        text(COL_DESC, row_y, (entry.remark or "-")[:REMARK_CHARS])
        text(COL_TIME, row_y, hours_to_hhmm(entry.hours))
        text(COL_AMOUNT, row_y, _amount(entry.cost))
        cursor.y += ROW_H

    y = cursor.ensure_room()
    rule(y)
    y += 10
    text(COL_DESC, y, "Service Total:", "Helvetica-Bold", 12)
    text(COL_AMOUNT, y, _rupees(summary.total_cost), "Helvetica-Bold", 12)
    cursor.y = y + 30

    # Payments
    if summary.payments:
        # heading, column headers and the first row stay together
        y = cursor.ensure_room(25 + ROW_H)
        text(MARGIN, y, "Payments Received", "Helvetica-Bold", 12)
        y += 25
        text(PAY_COL_DATE, y, "Date", "Helvetica-Bold", 10)
        text(PAY_COL_AMOUNT, y, "Amount (Rs)", "Helvetica-Bold", 10)
        text(PAY_COL_REMARK, y, "Remark", "Helvetica-Bold", 10)
        rule(y + 15)
        cursor.y = y + 25

        for payment in summary.payments:
            row_y = cursor.ensure_room()
            text(PAY_COL_DATE, row_y, format_date(payment.payment_date))
            text(PAY_COL_AMOUNT, row_y, _amount(payment.amount))
            text(PAY_COL_REMARK, row_y, (payment.remark or "-")[:PAYMENT_REMARK_CHARS])
            cursor.y += ROW_H

        y = cursor.ensure_room()
        rule(y)
        y += 10
        text(COL_DESC, y, "Total Paid:", "Helvetica-Bold", 12)
        text(COL_AMOUNT, y, _rupees(summary.total_paid), "Helvetica-Bold", 12)
        cursor.y = y + 30

    # Balance
    y = cursor.ensure_room()
    text(COL_DESC, y, "Balance Due:", "Helvetica-Bold", 13)
    text(COL_AMOUNT, y, _rupees(summary.balance), "Helvetica-Bold", 13)
    rule(y + 16, COL_DESC, RULE_RIGHT, width=1.5)
    cursor.y = y + 30

    # Footer
    pdf.setFillColor(colors.grey)
    centered(PAGE_H - MARGIN, footer_text, "Helvetica", 10)
    pdf.setFillColor(colors.black)

    pdf.save()
    return cursor.pages
