"""Schemi Pydantic per Product"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.utils.validators import clean_string


class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=120)
    unit_price: Decimal = Field(..., ge=0, description="Prezzo unitario IVA esclusa")
    tax_rate: Decimal = Field(Decimal("22"), ge=0, le=100, description="Aliquota IVA %")
    unit: str = Field("pz", max_length=20, description="Unità di misura")
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Il nome è obbligatorio")
        return value

    @field_validator("description", "category")
    @classmethod
    def _optional_text(cls, value: Optional[str]) -> Optional[str]:
        return clean_string(value)

    @field_validator("unit", mode="before")
    @classmethod
    def _unit(cls, value: Optional[str]) -> str:
        return clean_string(value) or "pz"


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=120)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    unit: Optional[str] = Field(None, max_length=20)
    is_active: Optional[bool] = None

    @field_validator("name", "description", "category", "unit")
    @classmethod
    def _trim(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() if isinstance(value, str) else value


class ProductResponse(ProductBase):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProductCategory(BaseModel):
    name: str
    count: int


class ProductUsageStats(BaseModel):
    total_lines: int = Field(0, description="Righe fattura che usano il prodotto")
    total_quantity: Decimal = Decimal("0")
    total_revenue: Decimal = Decimal("0")
    last_used: Optional[datetime] = None
