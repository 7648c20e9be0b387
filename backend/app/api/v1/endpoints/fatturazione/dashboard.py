"""
Dashboard e report endpoints
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from app.schemas.fatturazione.dashboard import DashboardStats, ReportMetrics, ReportRange
from app.services.fatturazione.customer_service import CustomerService
from app.services.fatturazione.dashboard_service import (
    dashboard_stats,
    in_period,
    report_metrics,
    report_period,
)
from app.services.fatturazione.invoice_service import InvoiceService

from .common import get_customer_service, get_invoice_service

router = APIRouter(tags=["fatturazione-dashboard"])


@router.get("/dashboard/stats", response_model=DashboardStats)
def get_dashboard_stats(
    invoice_service: InvoiceService = Depends(get_invoice_service),
    customer_service: CustomerService = Depends(get_customer_service),
):
    return dashboard_stats(
        invoice_service.list_invoices(),
        total_customers=customer_service.active_customer_count(),
    )


@router.get("/reports", response_model=ReportMetrics)
def get_report(
    range_key: ReportRange = "thisMonth",
    custom_from: Optional[date] = None,
    custom_to: Optional[date] = None,
    invoice_service: InvoiceService = Depends(get_invoice_service),
    customer_service: CustomerService = Depends(get_customer_service),
):
    """Metriche del periodo confrontate con il periodo precedente di pari ampiezza"""
    period = report_period(range_key, custom_from=custom_from, custom_to=custom_to)
    invoices = invoice_service.list_invoices()
    current = in_period(invoices, period.date_from, period.date_to)
    previous = in_period(invoices, period.prev_from, period.prev_to)
    return report_metrics(
        current,
        previous,
        active_customers=len({inv["customer_id"] for inv in current}),
        period=period,
    )
