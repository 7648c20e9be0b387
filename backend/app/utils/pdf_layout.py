"""
Shared PDF layout utilities for ReportLab documents.
Provides the issuer header, the footer with page number and branding helpers.
"""
import logging
from copy import deepcopy
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.platypus import SimpleDocTemplate

from app.core.config import IssuerConfig

logger = logging.getLogger(__name__)

# backend/ (2 livelli sopra app/utils/pdf_layout.py)
BACKEND_ROOT = Path(__file__).resolve().parents[2]

DEFAULT_DOC_KWARGS = {
    "pagesize": A4,
    "leftMargin": 20 * mm,
    "rightMargin": 20 * mm,
}

DEFAULT_BRANDING: Dict[str, Any] = {
    "app_name": "Fatturazione Pro",
    "footer_text": "Documento generato con Fatturazione Pro",
    "primary_color": colors.HexColor("#1E3A8A"),
    "text_color": colors.HexColor("#1F2937"),
    "muted_text_color": colors.HexColor("#6B7280"),
    "header_bar_color": colors.HexColor("#E5E7EB"),
    "company_name": "",
    "company_address": "",
    "company_data": "",
    "company_logo_path": None,
    "company_logo_max_width": 45 * mm,
    "company_logo_max_height": 20 * mm,
    "header_height": 30 * mm,
    "footer_height": 14 * mm,
    "show_page_number": True,
    "generated_at": None,
}


def _load_logo_reader(path_value: Optional[str]) -> Optional[ImageReader]:
    """Logo da file locale (assoluto o relativo a backend/); None se assente."""
    if not path_value:
        return None
    for candidate in (Path(path_value).expanduser(), BACKEND_ROOT / path_value, BACKEND_ROOT / "static" / path_value):
        if candidate.is_file():
            try:
                return ImageReader(str(candidate))
            except Exception as exc:
                logger.warning("Errore caricamento logo da path %s: %s", candidate, exc)
    return None


def _scale_image(image_reader: ImageReader, max_width: float, max_height: float) -> Tuple[float, float]:
    width, height = image_reader.getSize()
    ratio = min(max_width / width, max_height / height)
    return width * ratio, height * ratio


def branding_from_issuer(issuer: IssuerConfig, logo_path: Optional[str] = None) -> Dict[str, Any]:
    """Intestazione a partire dai dati del cedente/prestatore."""
    address = ", ".join(
        part for part in (
            issuer.address,
            f"{issuer.postal_code} {issuer.city}".strip(),
            f"({issuer.province})" if issuer.province else "",
        ) if part
    )
    return {
        "company_name": issuer.company_name,
        "company_address": address,
        "company_data": f"P.IVA {issuer.country_code}{issuer.vat_number}" if issuer.vat_number else "",
        "company_logo_path": logo_path,
    }


def prepare_branding(user_branding: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    branding = deepcopy(DEFAULT_BRANDING)
    if user_branding:
        for key, value in user_branding.items():
            if value is not None:
                branding[key] = value

    branding["generated_at"] = branding.get("generated_at") or datetime.now()
    branding["company_logo"] = _load_logo_reader(branding.get("company_logo_path"))
    return branding


def create_document(buffer: BytesIO, branding: Optional[Dict[str, Any]] = None, doc_kwargs: Optional[Dict[str, Any]] = None):
    branding_cfg = prepare_branding(branding)
    merged_kwargs = {**DEFAULT_DOC_KWARGS}
    if doc_kwargs:
        merged_kwargs.update(doc_kwargs)

    merged_kwargs.setdefault("topMargin", branding_cfg["header_height"] + 8 * mm)
    merged_kwargs.setdefault("bottomMargin", branding_cfg["footer_height"] + 8 * mm)

    doc = SimpleDocTemplate(buffer, **merged_kwargs)
    return doc, branding_cfg


def _wrap_text(text: str, max_width: float, canvas_obj, font_name: str, font_size: float) -> List[str]:
    """Spezza il testo a parole sulla larghezza reale del font."""
    words = (text or "").split()
    if not words:
        return []
    lines: List[str] = []
    current = words[0]
    for word in words[1:]:
        candidate = f"{current} {word}"
        if canvas_obj.stringWidth(candidate, font_name, font_size) <= max_width:
            current = candidate
        else:
            lines.append(current)
            current = word
    lines.append(current)
    return lines


def _draw_header(canvas_obj, doc, branding: Dict[str, Any]):
    width, height = doc.pagesize
    header_bottom = height - branding["header_height"]
    left = doc.leftMargin
    right = width - doc.rightMargin

    canvas_obj.saveState()
    canvas_obj.setFillColor(branding["header_bar_color"])
    canvas_obj.rect(left, header_bottom, right - left, 1.0, stroke=0, fill=1)

    text_left = left
    top = height - 12 * mm
    logo = branding.get("company_logo")
    if logo is not None:
        logo_w, logo_h = _scale_image(
            logo, branding["company_logo_max_width"], branding["company_logo_max_height"]
        )
        canvas_obj.drawImage(logo, left, height - 8 * mm - logo_h, width=logo_w, height=logo_h, mask="auto")
        text_left = left + logo_w + 5 * mm

    info_width = right - text_left
    company_name = branding.get("company_name") or branding["app_name"]
    canvas_obj.setFillColor(branding["text_color"])
    canvas_obj.setFont("Helvetica-Bold", 13)
    for line in _wrap_text(company_name, info_width, canvas_obj, "Helvetica-Bold", 13):
        canvas_obj.drawString(text_left, top, line)
        top -= 14

    canvas_obj.setFont("Helvetica", 9)
    canvas_obj.setFillColor(branding["muted_text_color"])
    for info in (branding.get("company_address"), branding.get("company_data")):
        for line in _wrap_text(info, info_width, canvas_obj, "Helvetica", 9):
            canvas_obj.drawString(text_left, top, line)
            top -= 10

    canvas_obj.restoreState()


def _draw_footer(canvas_obj, doc, branding: Dict[str, Any]):
    width, _ = doc.pagesize
    footer_height = branding["footer_height"]
    canvas_obj.saveState()

    canvas_obj.setStrokeColor(branding["primary_color"])
    canvas_obj.setLineWidth(0.8)
    canvas_obj.line(doc.leftMargin, footer_height, width - doc.rightMargin, footer_height)

    text_y = footer_height - 5 * mm
    canvas_obj.setFillColor(branding["muted_text_color"])
    canvas_obj.setFont("Helvetica", 8)
    timestamp = branding["generated_at"].strftime("%d/%m/%Y %H:%M")
    canvas_obj.drawString(doc.leftMargin, text_y, f"{branding['footer_text']} - {timestamp}")

    if branding.get("show_page_number", True):
        canvas_obj.setFont("Helvetica-Bold", 8)
        canvas_obj.drawRightString(width - doc.rightMargin, text_y, f"Pagina {canvas_obj.getPageNumber()}")

    canvas_obj.restoreState()


def build_pdf(doc, story, branding: Dict[str, Any]):
    def _on_page(canvas_obj, doc_obj):
        _draw_header(canvas_obj, doc_obj, branding)
        _draw_footer(canvas_obj, doc_obj, branding)

    doc.build(
        story,
        onFirstPage=_on_page,
        onLaterPages=_on_page,
    )
