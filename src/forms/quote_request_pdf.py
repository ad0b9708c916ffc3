"""
Quote Request PDF
=================
One-to-three page summary of a submitted quote request, attached to the
admin notification email.

Layout (A4, millimetres):
  - dark header band with the product name and "Service Quote Request"
  - italic "Submitted: <date>" line
  - Contact Information / Project Details / Requested Services sections,
    each a blue header bar followed by bold label + wrapped value rows
  - Additional Information only when the message is not blank
  - "Page X of Y | Generated by OneShopCentrale System" footer on every page
"""

import io
import os
import base64
import logging
from datetime import datetime

from reportlab.lib.pagesizes import A4
from reportlab.lib.colors import Color
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from src.core.catalog import BUDGET_OPTIONS, TIMELINE_OPTIONS, option_label

log = logging.getLogger("intake.pdf")

PRODUCT_NAME = "OneShopCentrale"

# ═══════════════════════════════════════════════════════════════════════════════
# COLORS + GEOMETRY
# ═══════════════════════════════════════════════════════════════════════════════
HEADER_BG = Color(31 / 255, 41 / 255, 55 / 255)     # #1F2937
SECTION_BG = Color(59 / 255, 130 / 255, 246 / 255)  # #3B82F6
WHITE = Color(1, 1, 1)
BLACK = Color(0, 0, 0)
GRAY = Color(0.5, 0.5, 0.5)

PAGE_W, PAGE_H = A4
MARGIN = 20 * mm
CONTENT_W = PAGE_W - 2 * MARGIN
LABEL_W = 60 * mm
LINE_H = 8 * mm
VALUE_LINE_H = 5 * mm
SECTION_SPACING = 15 * mm
PAGE_BREAK_SPACE = 30 * mm
BOTTOM_LIMIT = 20 * mm


class NumberedCanvas(canvas.Canvas):
    """Canvas that defers footers until the page count is known."""

    def __init__(self, *args, **kwargs):
        canvas.Canvas.__init__(self, *args, **kwargs)
        self._saved_page_states = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_footer(total)
            canvas.Canvas.showPage(self)
        canvas.Canvas.save(self)

    def _draw_footer(self, total: int):
        self.setFont("Helvetica", 8)
        self.setFillColor(GRAY)
        self.drawString(MARGIN, 10 * mm,
                        f"Page {self._pageNumber} of {total} | Generated by {PRODUCT_NAME} System")


def format_submitted(timestamp) -> str:
    """'October 18, 2026 at 02:05 PM' from an ISO timestamp; raw text if unparseable."""
    if isinstance(timestamp, datetime):
        dt = timestamp
    else:
        try:
            dt = datetime.fromisoformat(str(timestamp).replace("Z", "+00:00"))
        except ValueError:
            return str(timestamp or "")
    return dt.strftime("%B %d, %Y at %I:%M %p")


def pdf_filename(payload: dict) -> str:
    """quote-request-<company or name, spaces to dashes>.pdf"""
    who = (payload.get("company") or "").strip() or (payload.get("name") or "").strip()
    return f"quote-request-{'-'.join(who.split())}.pdf"


# ═══════════════════════════════════════════════════════════════════════════════
# GENERATOR
# ═══════════════════════════════════════════════════════════════════════════════

def generate_quote_request_pdf(payload: dict, output_path: str = None) -> dict:
    """
    Render the quote request summary.

    payload keys:
        name, company, email, phone, budget, timeline, message,
        selected_services: [title], timestamp (ISO), request_number?

    Returns {"ok", "pdf_bytes", "pdf_base64", "filename", "pages", "path"}.
    """
    buf = io.BytesIO()
    c = NumberedCanvas(buf, pagesize=A4)
    c.setTitle(f"{PRODUCT_NAME} Quote Request {payload.get('request_number') or ''}".strip())
    c.setAuthor(PRODUCT_NAME)

    # y runs top-down like a document; reportlab origin is bottom-left
    def Y(top_y):
        return PAGE_H - top_y

    y = 0.0

    def check_page(required=PAGE_BREAK_SPACE):
        nonlocal y
        if y + required > PAGE_H - BOTTOM_LIMIT:
            c.showPage()
            y = 20 * mm

    def section(title):
        nonlocal y
        check_page()
        c.setFillColor(SECTION_BG)
        c.rect(MARGIN, Y(y + 7 * mm), CONTENT_W, 12 * mm, fill=1, stroke=0)
        c.setFillColor(WHITE)
        c.setFont("Helvetica-Bold", 12)
        c.drawString(MARGIN + 5 * mm, Y(y + 3 * mm), title)
        c.setFillColor(BLACK)
        y += 20 * mm

    def field(label, value):
        nonlocal y
        text = "" if value is None else str(value)
        if not text.strip():
            return
        lines = []
        for para in text.splitlines() or [text]:
            lines.extend(simpleSplit(para, "Helvetica", 10, CONTENT_W - LABEL_W) or [""])
        check_page(min(PAGE_BREAK_SPACE, len(lines) * VALUE_LINE_H + LINE_H))
        c.setFillColor(BLACK)
        c.setFont("Helvetica-Bold", 10)
        c.drawString(MARGIN, Y(y), f"{label}:")
        c.setFont("Helvetica", 10)
        for i, line in enumerate(lines):
            if i and y + VALUE_LINE_H > PAGE_H - BOTTOM_LIMIT:
                c.showPage()
                y = 20 * mm
                c.setFillColor(BLACK)
                c.setFont("Helvetica", 10)
            elif i:
                y += VALUE_LINE_H
            c.drawString(MARGIN + LABEL_W, Y(y), line)
        y += LINE_H

    # ── Header band ───────────────────────────────────────────────────────────
    c.setFillColor(HEADER_BG)
    c.rect(0, Y(35 * mm), PAGE_W, 35 * mm, fill=1, stroke=0)
    c.setFillColor(WHITE)
    c.setFont("Helvetica-Bold", 18)
    c.drawString(MARGIN, Y(20 * mm), PRODUCT_NAME)
    c.setFont("Helvetica", 12)
    c.drawString(MARGIN, Y(28 * mm), "Service Quote Request")

    y = 50 * mm
    c.setFillColor(BLACK)
    c.setFont("Helvetica-Oblique", 10)
    c.drawString(MARGIN, Y(y), f"Submitted: {format_submitted(payload.get('timestamp'))}")
    y += LINE_H + SECTION_SPACING

    # ── Contact ───────────────────────────────────────────────────────────────
    section("Contact Information")
    field("Name", payload.get("name"))
    field("Company", payload.get("company") or "Not provided")
    field("Email", payload.get("email"))
    field("Phone", payload.get("phone") or "Not provided")
    y += SECTION_SPACING

    # ── Project ───────────────────────────────────────────────────────────────
    section("Project Details")
    field("Budget Range", option_label(BUDGET_OPTIONS, payload.get("budget") or "") or "Not specified")
    field("Timeline", option_label(TIMELINE_OPTIONS, payload.get("timeline") or "") or "Not specified")
    y += SECTION_SPACING

    # ── Services ──────────────────────────────────────────────────────────────
    section("Requested Services")
    services = payload.get("selected_services") or []
    if services:
        for i, title in enumerate(services, 1):
            field(f"Service {i}", title)
    else:
        field("Services", "No services selected")
    y += SECTION_SPACING

    # ── Message ───────────────────────────────────────────────────────────────
    message = payload.get("message") or ""
    if message.strip():
        section("Additional Information")
        field("Message", message)

    c.showPage()
    pages = len(c._saved_page_states)
    c.save()

    pdf_bytes = buf.getvalue()
    filename = pdf_filename(payload)
    if output_path:
        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
        with open(output_path, "wb") as f:
            f.write(pdf_bytes)

    log.info("Quote request PDF %s: %d page(s), %d bytes", filename, pages, len(pdf_bytes),
             extra={"request_number": payload.get("request_number", "")})
    return {
        "ok": True,
        "pdf_bytes": pdf_bytes,
        "pdf_base64": base64.b64encode(pdf_bytes).decode("ascii"),
        "filename": filename,
        "pages": pages,
        "path": output_path or "",
    }
