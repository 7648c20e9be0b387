"""
Fatture endpoints - CRUD, stato, duplicazione ed export XML/PDF
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.core.config import settings
from app.schemas.fatturazione.invoice import (
    InvoiceCreate,
    InvoiceItemsReplace,
    InvoiceNumberResponse,
    InvoiceResponse,
    InvoiceStatus,
    InvoiceStatusUpdate,
    InvoiceUpdate,
    InvoiceValidationReport,
)
from app.services.fatturazione.invoice_service import (
    InvoiceService,
    available_years,
    filter_invoices,
)

from .common import get_invoice_service

router = APIRouter(prefix="/invoices", tags=["fatturazione-fatture"])


def _get_or_404(service: InvoiceService, invoice_id: str):
    invoice = service.get_invoice(invoice_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Fattura non trovata")
    return invoice


@router.get("", response_model=List[InvoiceResponse])
def list_invoices(
    search: Optional[str] = Query(None, description="Cerca su numero fattura e nome cliente"),
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
    customer_id: Optional[str] = None,
    year: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    refresh: bool = False,
    service: InvoiceService = Depends(get_invoice_service),
):
    invoices = service.list_invoices(refresh=refresh)
    return filter_invoices(
        invoices,
        search=search,
        status=status_filter.value if status_filter else None,
        customer_id=customer_id,
        year=year,
        date_from=date_from,
        date_to=date_to,
    )


@router.get("/years", response_model=List[int])
def list_invoice_years(service: InvoiceService = Depends(get_invoice_service)):
    return available_years(service.list_invoices())


@router.get("/next-number", response_model=InvoiceNumberResponse)
def get_next_invoice_number(
    year: Optional[int] = None,
    service: InvoiceService = Depends(get_invoice_service),
):
    return InvoiceNumberResponse(invoice_number=service.next_invoice_number(year))


@router.get("/{invoice_id}", response_model=InvoiceResponse)
def get_invoice(invoice_id: str, service: InvoiceService = Depends(get_invoice_service)):
    return _get_or_404(service, invoice_id)


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
def create_invoice(data: InvoiceCreate, service: InvoiceService = Depends(get_invoice_service)):
    """
    Crea testata e righe.

    Se l'inserimento delle righe fallisce la testata resta salvata: la risposta
    502 riporta invoice_id e il passo da ripetere (POST /{invoice_id}/items).
    """
    return service.create_invoice(data)


@router.put("/{invoice_id}", response_model=InvoiceResponse)
def update_invoice(
    invoice_id: str,
    update: InvoiceUpdate,
    service: InvoiceService = Depends(get_invoice_service),
):
    invoice = service.update_invoice(invoice_id, update)
    if not invoice:
        raise HTTPException(status_code=404, detail="Fattura non trovata")
    return invoice


@router.put("/{invoice_id}/items", response_model=InvoiceResponse)
def replace_invoice_items(
    invoice_id: str,
    data: InvoiceItemsReplace,
    service: InvoiceService = Depends(get_invoice_service),
):
    """Ripete cancellazione e inserimento delle righe dopo un aggiornamento interrotto"""
    invoice = service.replace_invoice_items(invoice_id, data.items)
    if not invoice:
        raise HTTPException(status_code=404, detail="Fattura non trovata")
    return invoice


@router.post("/{invoice_id}/items", response_model=InvoiceResponse)
def insert_invoice_items(
    invoice_id: str,
    data: InvoiceItemsReplace,
    service: InvoiceService = Depends(get_invoice_service),
):
    invoice = service.insert_invoice_items(invoice_id, data.items)
    if not invoice:
        raise HTTPException(status_code=404, detail="Fattura non trovata")
    return invoice


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(invoice_id: str, service: InvoiceService = Depends(get_invoice_service)):
    if not service.delete_invoice(invoice_id):
        raise HTTPException(status_code=404, detail="Fattura non trovata")
    return None


@router.patch("/{invoice_id}/status", response_model=InvoiceResponse)
def update_invoice_status(
    invoice_id: str,
    data: InvoiceStatusUpdate,
    service: InvoiceService = Depends(get_invoice_service),
):
    invoice = service.update_invoice_status(invoice_id, data.status)
    if not invoice:
        raise HTTPException(status_code=404, detail="Fattura non trovata")
    return invoice


@router.post("/{invoice_id}/duplicate", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
def duplicate_invoice(
    invoice_id: str,
    issue_date: Optional[date] = None,
    service: InvoiceService = Depends(get_invoice_service),
):
    invoice = service.duplicate_invoice(invoice_id, issue_date=issue_date)
    if not invoice:
        raise HTTPException(status_code=404, detail="Fattura non trovata")
    return invoice


@router.get("/{invoice_id}/validate", response_model=InvoiceValidationReport)
def validate_invoice(invoice_id: str, service: InvoiceService = Depends(get_invoice_service)):
    messages = service.validate(invoice_id)
    if messages is None:
        raise HTTPException(status_code=404, detail="Fattura non trovata")
    return InvoiceValidationReport(valid=not messages, messages=messages)


@router.get("/{invoice_id}/xml")
def export_invoice_xml(invoice_id: str, service: InvoiceService = Depends(get_invoice_service)):
    """Esporta la fattura nel tracciato FatturaPA (FPR12)"""
    from app.services.fatturazione.fattura_xml import (
        XML_MIME_TYPE,
        generate_invoice_xml,
        xml_file_name,
    )

    invoice = _get_or_404(service, invoice_id)
    content = generate_invoice_xml(
        invoice, invoice.get("customer"), invoice["items"], settings.issuer_config()
    )
    filename = xml_file_name(invoice, invoice.get("customer"))
    return Response(
        content=content.encode("utf-8"),
        media_type=XML_MIME_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{invoice_id}/pdf")
def export_invoice_pdf(invoice_id: str, service: InvoiceService = Depends(get_invoice_service)):
    """Genera il PDF di cortesia della fattura"""
    from app.utils.pdf_generator import generate_invoice_pdf, invoice_pdf_file_name
    from app.utils.pdf_layout import branding_from_issuer

    invoice = _get_or_404(service, invoice_id)
    pdf_buffer = generate_invoice_pdf(
        invoice,
        invoice.get("customer"),
        invoice["items"],
        branding=branding_from_issuer(settings.issuer_config()),
    )
    return Response(
        content=pdf_buffer.getvalue(),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{invoice_pdf_file_name(invoice)}"'},
    )
