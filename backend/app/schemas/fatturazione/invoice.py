"""Schemi Pydantic per Invoice e righe fattura"""
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, List, Literal, Mapping, Optional, Union

from pydantic import AfterValidator, BaseModel, Field, field_validator

from app.utils.validators import INVOICE_NUMBER_PATTERN

from .customer import CustomerResponse


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"


STATUS_LABELS = {
    "draft": "Bozza",
    "sent": "Inviata",
    "paid": "Pagata",
    "overdue": "Scaduta",
}


def _check_invoice_number(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not INVOICE_NUMBER_PATTERN.match(value):
        raise ValueError("Numero fattura non valido (formato INV-AAAA-NNNNNN)")
    return value


InvoiceNumber = Annotated[Optional[str], AfterValidator(_check_invoice_number)]


class InvoiceItemInput(BaseModel):
    """Riga in ingresso: product_id assente = riga libera"""
    product_id: Optional[str] = Field(None, description="Prodotto di catalogo di origine")
    description: str = Field(..., min_length=1, description="Descrizione della riga")
    quantity: Decimal = Field(..., gt=0, description="Quantità")
    unit_price: Decimal = Field(..., ge=0, description="Prezzo unitario IVA esclusa")
    tax_rate: Decimal = Field(Decimal("22"), ge=0, le=100, description="Aliquota IVA %")
    unit: Optional[str] = Field(None, max_length=20, description="Unità di misura")

    @field_validator("description")
    @classmethod
    def _description(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("La descrizione della riga è obbligatoria")
        return value


class ProductSnapshot(BaseModel):
    """Dati del prodotto al momento della lettura della riga"""
    id: str
    name: str
    category: Optional[str] = None
    unit_price: Optional[Decimal] = None
    tax_rate: Optional[Decimal] = None
    unit: Optional[str] = None


class _InvoiceItemFields(BaseModel):
    id: Optional[str] = None
    invoice_id: Optional[str] = None
    position: int = 1
    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal
    unit: Optional[str] = None
    total: Decimal

    class Config:
        from_attributes = True


class ProductInvoiceItem(_InvoiceItemFields):
    source: Literal["product"] = "product"
    product_id: str
    product: Optional[ProductSnapshot] = None


class CustomInvoiceItem(_InvoiceItemFields):
    source: Literal["custom"] = "custom"

    @property
    def product_id(self) -> None:
        return None


# Variante etichettata dal campo "source"
InvoiceItem = Union[ProductInvoiceItem, CustomInvoiceItem]


def is_product_based(row: Mapping[str, Any]) -> bool:
    return row.get("product_id") is not None


def item_from_row(
    row: Mapping[str, Any], product: Optional[Mapping[str, Any]] = None
) -> Union[ProductInvoiceItem, CustomInvoiceItem]:
    """Costruisce la variante corretta della riga a partire dalla riga dello store."""
    data = {k: v for k, v in row.items() if k in _InvoiceItemFields.model_fields}
    if is_product_based(row):
        snapshot = ProductSnapshot.model_validate(product) if product else None
        return ProductInvoiceItem(**data, product_id=row["product_id"], product=snapshot)
    return CustomInvoiceItem(**data)


class InvoiceCreate(BaseModel):
    invoice_number: InvoiceNumber = Field(
        None, description="Numero fattura (generato automaticamente se non fornito)"
    )
    customer_id: str = Field(..., description="ID cliente")
    issue_date: date = Field(..., description="Data emissione")
    due_date: Optional[date] = Field(None, description="Data scadenza")
    status: InvoiceStatus = InvoiceStatus.DRAFT
    notes: Optional[str] = None
    items: List[InvoiceItemInput] = Field(default_factory=list)


class InvoiceUpdate(BaseModel):
    """Modifica completa: la testata è aggiornata e le righe sostituite in blocco"""
    invoice_number: InvoiceNumber = None
    customer_id: Optional[str] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    status: Optional[InvoiceStatus] = None
    notes: Optional[str] = None
    items: List[InvoiceItemInput] = Field(default_factory=list)


class InvoiceItemsReplace(BaseModel):
    items: List[InvoiceItemInput] = Field(default_factory=list)


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus


class InvoiceResponse(BaseModel):
    id: str
    invoice_number: str
    customer_id: str
    customer: Optional[CustomerResponse] = None
    issue_date: date
    due_date: Optional[date] = None
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    status: InvoiceStatus
    notes: Optional[str] = None
    items: List[InvoiceItem] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InvoiceValidationReport(BaseModel):
    valid: bool
    messages: List[str] = Field(default_factory=list)


class InvoiceNumberResponse(BaseModel):
    invoice_number: str
