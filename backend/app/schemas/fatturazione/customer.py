"""Schemi Pydantic per Customer"""
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, Field, field_validator

from app.utils.validators import (
    clean_string,
    is_valid_email,
    is_valid_tax_code,
    is_valid_vat_number,
    normalize_tax_code,
)


def _check_tax_code(value: Optional[str]) -> Optional[str]:
    value = clean_string(value)
    if value is None:
        return None
    if not is_valid_tax_code(value):
        raise ValueError("Codice fiscale non valido")
    return normalize_tax_code(value)


def _check_vat_number(value: Optional[str]) -> Optional[str]:
    value = clean_string(value)
    if value is None:
        return None
    value = value.replace(" ", "")
    if not is_valid_vat_number(value):
        raise ValueError("Partita IVA non valida")
    return value


def _check_email(value: Optional[str]) -> Optional[str]:
    value = clean_string(value)
    if value is not None and not is_valid_email(value):
        raise ValueError("Indirizzo email non valido")
    return value


TaxCode = Annotated[Optional[str], AfterValidator(_check_tax_code)]
VatNumber = Annotated[Optional[str], AfterValidator(_check_vat_number)]
Email = Annotated[Optional[str], AfterValidator(_check_email)]


class CustomerBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, description="Ragione sociale o nome")
    email: Email = Field(None, max_length=150)
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=500)
    tax_code: TaxCode = Field(None, description="Codice fiscale (16 caratteri)")
    vat_number: VatNumber = Field(None, description="Partita IVA (11 cifre)")
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Il nome è obbligatorio")
        return value


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Email = Field(None, max_length=150)
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=500)
    tax_code: TaxCode = None
    vat_number: VatNumber = None
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("Il nome è obbligatorio")
        return value


class CustomerDeactivate(BaseModel):
    reason: Optional[str] = Field(None, description="Motivo della disattivazione")


class CustomerResponse(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    tax_code: Optional[str] = None
    vat_number: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool = True
    deactivation_reason: Optional[str] = None
    deactivated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CustomerStats(BaseModel):
    total_invoices: int = 0
    total_amount: Decimal = Decimal("0")
    last_invoice_date: Optional[date] = None
