"""Schemi Pydantic per dashboard e report"""
from datetime import date
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

ReportRange = Literal[
    "thisMonth", "lastMonth", "last3Months", "last6Months", "thisYear", "lastYear", "custom"
]


class RecentInvoice(BaseModel):
    id: str
    invoice_number: str
    customer_name: Optional[str] = None
    issue_date: date
    total: Decimal
    status: str


class DashboardStats(BaseModel):
    total_invoices: int = 0
    total_revenue: Decimal = Decimal("0.00")
    pending_invoices: int = Field(0, description="Fatture inviate in attesa di pagamento")
    overdue_invoices: int = Field(0, description="Fatture inviate con scadenza superata")
    total_customers: int = 0
    this_month_revenue: Decimal = Decimal("0.00")
    recent_invoices: List[RecentInvoice] = Field(default_factory=list)


class ReportPeriod(BaseModel):
    date_from: date
    date_to: date
    prev_from: date
    prev_to: date
    label: str


class TopCustomer(BaseModel):
    customer_id: str
    name: str
    revenue: Decimal
    invoices: int


class StatusShare(BaseModel):
    status: str
    label: str
    count: int
    percentage: float


class MonthlyTrendPoint(BaseModel):
    month: str = Field(..., description="Mese in formato AAAA-MM")
    revenue: Decimal
    invoices: int


class ReportMetrics(BaseModel):
    period: Optional[ReportPeriod] = None
    total_revenue: Decimal = Decimal("0.00")
    prev_period_revenue: Decimal = Decimal("0.00")
    revenue_growth: float = 0.0
    total_invoices: int = 0
    prev_period_invoices: int = 0
    invoice_growth: float = 0.0
    average_invoice_value: Decimal = Decimal("0.00")
    active_customers: int = 0
    top_customers: List[TopCustomer] = Field(default_factory=list)
    status_distribution: List[StatusShare] = Field(default_factory=list)
    monthly_trend: List[MonthlyTrendPoint] = Field(default_factory=list)
