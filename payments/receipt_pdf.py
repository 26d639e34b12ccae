# payments/receipt_pdf.py

from __future__ import annotations

import logging
from io import BytesIO
from pathlib import Path
from xml.sax.saxutils import escape

import requests
from django.conf import settings
from PIL import Image as PILImage

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_LEFT, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.platypus import (
    Image,
    KeepInFrame,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from .money import format_amount, format_receipt_date
from .receipts import ReceiptData

logger = logging.getLogger(__name__)

TEAL = colors.HexColor("#0D9488")
INK = colors.HexColor("#1F2937")
MUTED = colors.HexColor("#6B7280")
FAINT = colors.HexColor("#9CA3AF")
RULE = colors.HexColor("#E5E7EB")

PAGE_MARGIN = 18 * mm
FRAME_PADDING = 6  # SimpleDocTemplate frame padding, each side
CONTENT_WIDTH = A4[0] - 2 * PAGE_MARGIN - 2 * FRAME_PADDING
LOGO_MAX_WIDTH = 24 * mm
LOGO_MAX_HEIGHT = 24 * mm
MESSAGE_LIMIT = 400


# -----------------------------
# Logo
# -----------------------------

def _local_logo_path(reference: str) -> Path | None:
    """Find a site-relative logo ("/logo.png") under the configured dirs."""
    relative = reference.lstrip("/")
    if not relative:
        return None
    for base in getattr(settings, "ORGANIZATION_LOGO_DIRS", []):
        base = Path(base).resolve()
        candidate = (base / relative).resolve()
        try:
            candidate.relative_to(base)
        except ValueError:
            continue
        if candidate.is_file():
            return candidate
    return None


def _is_image(data: bytes) -> bool:
    try:
        with PILImage.open(BytesIO(data)) as im:
            im.verify()
        # verify() only checks structure; decode the pixels too
        with PILImage.open(BytesIO(data)) as im:
            im.load()
        return True
    except (OSError, SyntaxError, ValueError, PILImage.DecompressionBombError):
        return False


def load_logo(reference: str) -> bytes | None:
    """Logo bytes ready to embed, or None when it cannot be used."""
    if not reference:
        return None

    if reference.startswith(("http://", "https://")):
        try:
            response = requests.get(reference, timeout=settings.LOGO_FETCH_TIMEOUT)
            response.raise_for_status()
            data = response.content
        except requests.RequestException as exc:
            logger.warning("Receipt logo %s unavailable: %s", reference, exc)
            return None
    else:
        path = _local_logo_path(reference)
        if path is None:
            logger.warning("Receipt logo %s not found, omitting it", reference)
            return None
        data = path.read_bytes()

    if not _is_image(data):
        logger.warning("Receipt logo %s is not a readable image, omitting it", reference)
        return None
    return data


def _logo_flowable(data: bytes):
    width, height = ImageReader(BytesIO(data)).getSize()
    scale = min(LOGO_MAX_WIDTH / width, LOGO_MAX_HEIGHT / height)
    return Image(BytesIO(data), width=width * scale, height=height * scale)


# -----------------------------
# Helpers
# -----------------------------

def _styles():
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(
        name="OrgName", parent=styles["Normal"], fontName="Helvetica-Bold",
        fontSize=16, leading=19, textColor=TEAL,
    ))
    styles.add(ParagraphStyle(
        name="OrgDetails", parent=styles["Normal"], fontName="Helvetica",
        fontSize=8, leading=11, textColor=MUTED,
    ))
    styles.add(ParagraphStyle(
        name="ReceiptBlock", parent=styles["Normal"], fontName="Helvetica",
        fontSize=9, leading=13, textColor=MUTED, alignment=TA_RIGHT,
    ))
    styles.add(ParagraphStyle(
        name="SectionTitle", parent=styles["Normal"], fontName="Helvetica-Bold",
        fontSize=11, leading=14, textColor=colors.HexColor("#374151"),
        spaceBefore=6, spaceAfter=6,
    ))
    styles.add(ParagraphStyle(
        name="Cell", parent=styles["Normal"], fontName="Helvetica",
        fontSize=10, leading=13, textColor=INK, alignment=TA_LEFT,
    ))
    styles.add(ParagraphStyle(
        name="Amount", parent=styles["Normal"], fontName="Helvetica",
        fontSize=10, leading=36, textColor=MUTED, alignment=TA_CENTER,
    ))
    styles.add(ParagraphStyle(
        name="Message", parent=styles["Normal"], fontName="Helvetica-Oblique",
        fontSize=10, leading=15, textColor=colors.HexColor("#374151"),
    ))
    styles.add(ParagraphStyle(
        name="Notice", parent=styles["Normal"], fontName="Helvetica",
        fontSize=9, leading=13, textColor=colors.HexColor("#92400E"),
    ))
    return styles


def _t(value) -> str:
    """Escape free text for Paragraph markup."""
    return escape(str(value)) if value not in (None, "") else "-"


def _field(label: str, value, style):
    return Paragraph(
        f"<font size='7' color='#6B7280'>{_t(label.upper())}</font><br/><b>{_t(value)}</b>",
        style,
    )


def _grid(items, style):
    """Two-column label/value grid."""
    cells = [_field(label, value, style) for label, value in items]
    if len(cells) % 2:
        cells.append("")
    rows = [cells[i:i + 2] for i in range(0, len(cells), 2)]
    tbl = Table(rows, colWidths=[CONTENT_WIDTH / 2] * 2)
    tbl.setStyle(TableStyle([
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
    ]))
    return tbl


def _boxed(flowables, background, border=None):
    tbl = Table([[flowables]], colWidths=[CONTENT_WIDTH])
    commands = [
        ("BACKGROUND", (0, 0), (-1, -1), background),
        ("LEFTPADDING", (0, 0), (-1, -1), 12),
        ("RIGHTPADDING", (0, 0), (-1, -1), 12),
        ("TOPPADDING", (0, 0), (-1, -1), 10),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 10),
    ]
    if border is not None:
        commands.append(("LINEBEFORE", (0, 0), (0, -1), 3, border))
    tbl.setStyle(TableStyle(commands))
    return tbl


# -----------------------------
# Sections
# -----------------------------

def _build_header(story, data: ReceiptData, styles, logo):
    org = data.organization
    org_block = [Paragraph(_t(org.name), styles["OrgName"])]
    if org.tagline:
        org_block.append(Paragraph(_t(org.tagline), styles["OrgDetails"]))
    details = [escape(line) for line in org.address]
    if org.phone:
        details.append(f"Tel: {escape(org.phone)}")
    if org.email:
        details.append(f"Email: {escape(org.email)}")
    org_block.append(Paragraph("<br/>".join(details), styles["OrgDetails"]))

    receipt_block = Paragraph(
        "<font name='Helvetica-Bold' size='22' color='#1F2937'>RECEIPT</font><br/><br/>"
        f"<font name='Helvetica-Bold' size='12' color='#0D9488'>{_t(data.receipt_number)}</font><br/>"
        f"{_t(format_receipt_date(data.completed_at))}",
        styles["ReceiptBlock"],
    )

    receipt_width = 60 * mm
    if logo:
        logo_width = LOGO_MAX_WIDTH + 4 * mm
        row = [_logo_flowable(logo), org_block, receipt_block]
        widths = [logo_width, CONTENT_WIDTH - logo_width - receipt_width, receipt_width]
    else:
        row = [org_block, receipt_block]
        widths = [CONTENT_WIDTH - receipt_width, receipt_width]
    header = Table([row], colWidths=widths)
    header.setStyle(TableStyle([
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
        ("RIGHTPADDING", (0, 0), (-1, -1), 0),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 12),
        ("LINEBELOW", (0, 0), (-1, 0), 2, TEAL),
    ]))
    story.append(header)
    story.append(Spacer(1, 8 * mm))


def _build_donor(story, data: ReceiptData, styles):
    items = [("Name", data.donor_name), ("Email", data.donor_email)]
    if data.donor_phone:
        items.append(("Phone", data.donor_phone))
    story.append(Paragraph("DONOR INFORMATION", styles["SectionTitle"]))
    story.append(_grid(items, styles["Cell"]))


def _build_amount(story, data: ReceiptData, styles):
    amount = Paragraph(
        "DONATION AMOUNT<br/>"
        f"<font name='Helvetica-Bold' size='30' color='#0D9488'>{_t(format_amount(data.amount, data.currency))}</font>",
        styles["Amount"],
    )
    story.append(Spacer(1, 4 * mm))
    story.append(_boxed(amount, colors.HexColor("#F0FDFA")))
    story.append(Spacer(1, 6 * mm))


def _build_payment(story, data: ReceiptData, styles):
    items = [
        ("Reference Number", data.payment_reference),
        ("Payment Method", data.payment_method.upper()),
    ]
    if data.transaction_id:
        items.append(("Transaction ID", data.transaction_id))
    if data.project_title:
        items.append(("Project/Purpose", data.project_title))
    else:
        items.append(("Purpose", "General Fund"))
    story.append(Paragraph("PAYMENT DETAILS", styles["SectionTitle"]))
    story.append(_grid(items, styles["Cell"]))


def _build_message(story, data: ReceiptData, styles):
    if not data.message:
        return
    message = data.message
    if len(message) > MESSAGE_LIMIT:
        message = message[:MESSAGE_LIMIT].rstrip() + "..."
    body = [
        Paragraph("<font size='7' color='#6B7280'>YOUR MESSAGE</font>", styles["Cell"]),
        Paragraph(f"“{escape(message)}”", styles["Message"]),
    ]
    story.append(_boxed(body, colors.HexColor("#F9FAFB")))
    story.append(Spacer(1, 6 * mm))


def _build_tax_notice(story, data: ReceiptData, styles):
    org = data.organization
    if not org.tax_exemption_ref:
        return
    text = (
        "<b>Tax Deduction Notice</b><br/>"
        f"{_t(org.name)} is a registered charitable organization "
        f"(Registration No: {_t(org.registration_number)}).<br/><br/>"
        "Your donation may be eligible for tax deduction under Section 44(6) of the "
        f"Income Tax Act 1967. Tax Exemption Reference: {_t(org.tax_exemption_ref)}<br/><br/>"
        "Please retain this receipt for your tax records."
    )
    story.append(_boxed(Paragraph(text, styles["Notice"]), colors.HexColor("#FEF3C7"),
                        border=colors.HexColor("#F59E0B")))


def _page_decorations(data: ReceiptData):
    org = data.organization

    def draw(canvas, doc):
        canvas.saveState()

        # Watermark
        canvas.setFillColor(colors.HexColor("#F3F4F6"))
        canvas.setFont("Helvetica-Bold", 60)
        canvas.translate(A4[0] / 2, A4[1] / 2)
        canvas.rotate(30)
        canvas.drawCentredString(0, 0, "OFFICIAL RECEIPT")
        canvas.rotate(-30)
        canvas.translate(-A4[0] / 2, -A4[1] / 2)

        # Footer
        top = 30 * mm
        canvas.setStrokeColor(RULE)
        canvas.setLineWidth(1)
        canvas.line(PAGE_MARGIN, top, A4[0] - PAGE_MARGIN, top)
        canvas.setFont("Helvetica", 8)
        canvas.setFillColor(MUTED)
        left = [org.name, f"Registration No: {org.registration_number}", f"Website: {org.website}"]
        right = ["Thank you for your generous donation.", "Together, we make a difference."]
        for i, line in enumerate(left):
            canvas.drawString(PAGE_MARGIN, top - 5 * mm - i * 3.5 * mm, line)
        for i, line in enumerate(right):
            canvas.drawRightString(A4[0] - PAGE_MARGIN, top - 5 * mm - i * 3.5 * mm, line)
        canvas.setFont("Helvetica", 7)
        canvas.setFillColor(FAINT)
        canvas.drawCentredString(
            A4[0] / 2, 12 * mm,
            f"This is an electronically generated receipt. For verification, please contact {org.email}",
        )
        canvas.restoreState()

    return draw


def _build_pdf(data: ReceiptData, logo: bytes | None) -> bytes:
    buffer = BytesIO()
    org = data.organization

    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=PAGE_MARGIN,
        rightMargin=PAGE_MARGIN,
        topMargin=PAGE_MARGIN,
        bottomMargin=36 * mm,
        title=f"Donation Receipt {data.receipt_number}",
        author=org.name,
        invariant=1,
    )
    styles = _styles()

    story = []
    _build_header(story, data, styles, logo)
    _build_donor(story, data, styles)
    _build_amount(story, data, styles)
    _build_payment(story, data, styles)
    _build_message(story, data, styles)
    _build_tax_notice(story, data, styles)

    # One frame, one page: oversized content is scaled down, never split
    decorate = _page_decorations(data)
    doc.build([KeepInFrame(0, 0, story, mode="shrink")], onFirstPage=decorate, onLaterPages=decorate)

    pdf_bytes = buffer.getvalue()
    buffer.close()
    return pdf_bytes


def render_receipt_pdf(data: ReceiptData) -> bytes:
    """Single-page A4 receipt. Same data, same bytes (invariant mode)."""
    logo = load_logo(data.organization.logo_url)
    if logo:
        try:
            return _build_pdf(data, logo)
        except (OSError, ValueError) as exc:
            logger.warning("Receipt logo could not be embedded (%s), rendering without it", exc)
    return _build_pdf(data, None)
