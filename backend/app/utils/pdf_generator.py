"""
PDF Generator utilities using ReportLab
"""
from io import BytesIO
from typing import Any, Mapping, Optional, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, Spacer, Table, TableStyle

from app.schemas.fatturazione.invoice import STATUS_LABELS
from app.services.fatturazione.calcoli import format_amount, item_value, to_decimal
from app.services.fatturazione.invoice_service import as_date
from app.utils.pdf_layout import build_pdf, create_document


def _euro(value: Any) -> str:
    return f"€ {format_amount(value)}"


def _date_it(value: Any) -> str:
    parsed = as_date(value)
    return parsed.strftime("%d/%m/%Y") if parsed else "-"


def _quantity(value: Any) -> str:
    text = f"{to_decimal(value):.3f}".rstrip("0").rstrip(".")
    return text or "0"


def invoice_pdf_file_name(invoice: Mapping[str, Any]) -> str:
    return f"fattura-{invoice['invoice_number']}.pdf"


def generate_invoice_pdf(
    invoice: Mapping[str, Any],
    customer: Optional[Mapping[str, Any]],
    items: Sequence[Any],
    branding: Optional[dict] = None,
) -> BytesIO:
    """
    Genera il PDF di cortesia della fattura.

    Args:
        invoice: testata (dict dello store)
        customer: cliente della fattura, se disponibile
        items: righe in ordine di posizione
        branding: intestazione (vedi pdf_layout.branding_from_issuer)

    Returns:
        BytesIO object con il PDF
    """
    buffer = BytesIO()
    doc, branding_config = create_document(buffer, branding=branding)

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "InvoiceTitle",
        parent=styles["Heading1"],
        fontSize=20,
        textColor=branding_config["primary_color"],
        spaceAfter=2,
    )
    normal_style = ParagraphStyle("InvoiceNormal", parent=styles["Normal"], fontSize=9, leading=12)
    label_style = ParagraphStyle(
        "InvoiceLabel",
        parent=styles["Normal"],
        fontName="Helvetica-Bold",
        fontSize=10,
        textColor=colors.HexColor("#374151"),
        spaceAfter=2,
    )
    right_style = ParagraphStyle("InvoiceRight", parent=normal_style, alignment=TA_RIGHT)

    story = [Paragraph("FATTURA", title_style), Spacer(1, 4 * mm)]

    # Cliente a sinistra, estremi documento a destra
    customer = customer or {}
    customer_lines = ["<b>FATTURATO A:</b>", f"<b>{escape(customer.get('name') or 'Cliente')}</b>"]
    if customer.get("address"):
        customer_lines.append(escape(customer["address"]))
    if customer.get("email"):
        customer_lines.append(f"Email: {escape(customer['email'])}")
    if customer.get("phone"):
        customer_lines.append(f"Tel: {escape(customer['phone'])}")
    if customer.get("tax_code"):
        customer_lines.append(f"C.F.: {escape(customer['tax_code'])}")
    if customer.get("vat_number"):
        customer_lines.append(f"P.IVA: {escape(customer['vat_number'])}")

    document_lines = [
        "<b>NUMERO FATTURA</b>",
        f"<font size='12'><b>{escape(invoice['invoice_number'])}</b></font>",
        f"Data: {_date_it(invoice.get('issue_date'))}",
    ]
    if invoice.get("due_date"):
        document_lines.append(f"Scadenza: {_date_it(invoice['due_date'])}")

    head_table = Table(
        [[Paragraph("<br/>".join(customer_lines), normal_style),
          Paragraph("<br/>".join(document_lines), normal_style)]],
        colWidths=[doc.width * 0.6, doc.width * 0.4],
    )
    head_table.setStyle(TableStyle([
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
        ("RIGHTPADDING", (0, 0), (-1, -1), 0),
    ]))
    story.extend([head_table, Spacer(1, 8 * mm)])

    rows = [["DESCRIZIONE", "Q.TÀ", "PREZZO", "IVA", "TOTALE"]]
    for item in items:
        rows.append([
            Paragraph(escape(item_value(item, "description") or ""), normal_style),
            _quantity(item_value(item, "quantity")),
            _euro(item_value(item, "unit_price")),
            f"{format_amount(item_value(item, 'tax_rate'))}%",
            _euro(item_value(item, "total")),
        ])
    items_table = Table(
        rows,
        colWidths=[doc.width * 0.46, doc.width * 0.1, doc.width * 0.16, doc.width * 0.1, doc.width * 0.18],
        repeatRows=1,
    )
    items_table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), branding_config["primary_color"]),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("ALIGN", (1, 1), (-1, -1), "RIGHT"),
        ("ALIGN", (3, 1), (3, -1), "CENTER"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F3F4F6")]),
        ("LINEBELOW", (0, 0), (-1, -1), 0.25, colors.HexColor("#D1D5DB")),
    ]))
    story.extend([items_table, Spacer(1, 6 * mm)])

    totals_table = Table(
        [
            ["Subtotale:", _euro(invoice.get("subtotal"))],
            ["IVA:", _euro(invoice.get("tax_amount"))],
            ["TOTALE:", _euro(invoice.get("total"))],
        ],
        colWidths=[doc.width * 0.2, doc.width * 0.2],
        hAlign="RIGHT",
    )
    totals_table.setStyle(TableStyle([
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("FONTSIZE", (0, 0), (-1, 1), 10),
        ("FONTNAME", (0, 2), (-1, 2), "Helvetica-Bold"),
        ("FONTSIZE", (0, 2), (-1, 2), 12),
        ("LINEABOVE", (0, 2), (-1, 2), 0.8, branding_config["primary_color"]),
    ]))
    story.append(totals_table)

    if invoice.get("notes"):
        story.extend([
            Spacer(1, 8 * mm),
            Paragraph("NOTE:", label_style),
            Paragraph(escape(invoice["notes"]).replace("\n", "<br/>"), normal_style),
        ])

    story.extend([Spacer(1, 10 * mm), Paragraph(f"Stato: {STATUS_LABELS.get(invoice.get('status'), invoice.get('status') or '-')}", right_style)])

    build_pdf(doc, story, branding_config)
    buffer.seek(0)
    return buffer
