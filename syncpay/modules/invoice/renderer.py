from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

import fitz

from syncpay.utils.generators import format_invoice_number

PAGE_WIDTH_MM = 210
PAGE_HEIGHT_MM = 297
MARGIN_MM = 20
TABLE_TOP_MM = 115

BRAND_COLOR = (59 / 255, 130 / 255, 246 / 255)
MUTED = (100 / 255, 100 / 255, 100 / 255)
FAINT = (150 / 255, 150 / 255, 150 / 255)
RULE = (200 / 255, 200 / 255, 200 / 255)
TABLE_HEADER_FILL = (248 / 255, 250 / 255, 252 / 255)
BLACK = (0, 0, 0)


def mm(value: float) -> float:
    return value * 72 / 25.4


@dataclass(frozen=True)
class InvoiceDocument:
    """Everything printed on an invoice, already formatted."""
    invoice_number: str
    issued_on: str
    status: str
    bill_to_name: str
    bill_to_address: Optional[str]
    bill_to_tax_id: Optional[str]
    line_description: str
    quantity: int
    line_amount: str
    total: str
    payment_reference: Optional[str]
    brand_name: str
    support_email: str
    created_at: datetime


def format_money(amount) -> str:
    return f"{Decimal(amount).quantize(Decimal('0.01'))}"


def build_invoice_document(
    *,
    invoice_sequence: int,
    created_at: datetime,
    status: str,
    amount,
    currency: str,
    billing_cycle: Optional[str],
    gateway_payment_id: Optional[str],
    plan_name: Optional[str],
    company_name: Optional[str],
    billing_details: Optional[dict],
    brand_name: str,
    support_email: str,
) -> InvoiceDocument:
    details = billing_details if isinstance(billing_details, dict) else {}
    money = format_money(amount)
    return InvoiceDocument(
        invoice_number=format_invoice_number(invoice_sequence),
        issued_on=created_at.strftime("%d/%m/%Y"),
        status=status.upper(),
        bill_to_name=company_name or "Customer",
        bill_to_address=details.get("address") or None,
        bill_to_tax_id=details.get("taxId") or None,
        line_description=f"{plan_name or 'Subscription'} Plan ({billing_cycle or 'monthly'})",
        quantity=1,
        line_amount=f"{currency} {money}",
        total=f"{money} {currency}",
        payment_reference=gateway_payment_id or None,
        brand_name=brand_name,
        support_email=support_email,
        created_at=created_at,
    )


def _text(page, x_mm, y_mm, text, *, size=11, font="helv", color=BLACK, align="left"):
    x = mm(x_mm)
    if align == "right":
        x -= fitz.get_text_length(text, fontname=font, fontsize=size)
    elif align == "center":
        x -= fitz.get_text_length(text, fontname=font, fontsize=size) / 2
    page.insert_text(fitz.Point(x, mm(y_mm)), text, fontsize=size, fontname=font, color=color)


def render_invoice_pdf(document: InvoiceDocument) -> bytes:
    """Draws the fixed single-page invoice layout and returns the PDF bytes."""
    doc = fitz.open()
    try:
        page = doc.new_page(width=mm(PAGE_WIDTH_MM), height=mm(PAGE_HEIGHT_MM))
        right = PAGE_WIDTH_MM - MARGIN_MM

        # Header
        _text(page, MARGIN_MM, 25, document.brand_name, size=24, font="hebo", color=BRAND_COLOR)
        _text(page, right, 25, "Invoice", size=10, color=MUTED, align="right")

        # Invoice details
        _text(page, MARGIN_MM, 45, f"Invoice #: {document.invoice_number}", size=12)
        _text(page, MARGIN_MM, 52, f"Date: {document.issued_on}", size=12)
        _text(page, MARGIN_MM, 59, f"Status: {document.status}", size=12)

        # Bill to
        _text(page, MARGIN_MM, 75, "BILL TO:", size=10, color=MUTED)
        _text(page, MARGIN_MM, 82, document.bill_to_name, size=11)
        if document.bill_to_address:
            _text(page, MARGIN_MM, 89, document.bill_to_address, size=9)
        if document.bill_to_tax_id:
            _text(page, MARGIN_MM, 96, f"GSTIN: {document.bill_to_tax_id}", size=9)

        # Line items
        top = TABLE_TOP_MM
        page.draw_rect(
            fitz.Rect(mm(MARGIN_MM), mm(top), mm(right), mm(top + 10)),
            color=None,
            fill=TABLE_HEADER_FILL,
        )
        _text(page, 25, top + 7, "Description", size=10, color=MUTED)
        _text(page, 120, top + 7, "Qty", size=10, color=MUTED)
        _text(page, right - 5, top + 7, "Amount", size=10, color=MUTED, align="right")

        _text(page, 25, top + 20, document.line_description, size=11)
        _text(page, 120, top + 20, str(document.quantity), size=11)
        _text(page, right - 5, top + 20, document.line_amount, size=11, align="right")

        # Total
        page.draw_line(fitz.Point(mm(MARGIN_MM), mm(top + 30)), fitz.Point(mm(right), mm(top + 30)), color=RULE)
        _text(page, 25, top + 40, "Total", size=12, font="hebo")
        _text(page, right - 5, top + 40, document.total, size=12, font="hebo", align="right")

        if document.payment_reference:
            _text(page, MARGIN_MM, top + 60, f"Payment ID: {document.payment_reference}", size=9, color=MUTED)

        # Footer
        _text(page, PAGE_WIDTH_MM / 2, 270, "Thank you for your business!", size=8, color=FAINT, align="center")
        _text(page, PAGE_WIDTH_MM / 2, 276, f"Questions? Contact {document.support_email}", size=8, color=FAINT, align="center")

        stamp = f"D:{document.created_at:%Y%m%d%H%M%S}"
        doc.set_metadata({
            "title": document.invoice_number,
            "author": document.brand_name,
            "creator": document.brand_name,
            "producer": document.brand_name,
            "creationDate": stamp,
            "modDate": stamp,
        })
        return doc.tobytes(garbage=3, deflate=True, no_new_id=True)
    finally:
        doc.close()
