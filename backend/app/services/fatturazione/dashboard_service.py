"""
Indicatori per dashboard e report, calcolati sulla lista fatture già caricata.

Sono funzioni pure: nessun accesso allo store.
"""
import calendar
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from app.schemas.fatturazione.dashboard import (
    DashboardStats,
    MonthlyTrendPoint,
    RecentInvoice,
    ReportMetrics,
    ReportPeriod,
    StatusShare,
    TopCustomer,
)
from app.schemas.fatturazione.invoice import STATUS_LABELS, InvoiceStatus

from .calcoli import round2, to_decimal
from .invoice_service import as_date, effective_status

REVENUE_STATUSES = (InvoiceStatus.PAID.value, InvoiceStatus.SENT.value)
AWAITING_PAYMENT = (InvoiceStatus.SENT.value, InvoiceStatus.OVERDUE.value)

RANGE_LABELS = {
    "thisMonth": "Questo Mese",
    "lastMonth": "Mese Scorso",
    "last3Months": "Ultimi 3 Mesi",
    "last6Months": "Ultimi 6 Mesi",
    "thisYear": "Quest'Anno",
    "lastYear": "Anno Scorso",
    "custom": "Personalizzato",
}


def _sum_totals(invoices: Iterable[Mapping[str, Any]]) -> Decimal:
    return sum((to_decimal(inv.get("total")) for inv in invoices), Decimal("0"))


def _revenue(invoices: Iterable[Mapping[str, Any]]) -> Decimal:
    return _sum_totals(inv for inv in invoices if inv.get("status") in REVENUE_STATUSES)


def _growth(current, previous) -> float:
    if not previous:
        return 0.0
    return round(float((current - previous) / previous * 100), 1)


def dashboard_stats(
    invoices: List[Mapping[str, Any]],
    total_customers: int,
    today: Optional[date] = None,
) -> DashboardStats:
    """Riepilogo della home: la lista è attesa in ordine di creazione decrescente."""
    today = today or date.today()
    # in attesa di pagamento: inviate, scadute o no
    pending = [inv for inv in invoices if inv.get("status") in AWAITING_PAYMENT]
    overdue = [inv for inv in invoices if effective_status(inv, today) == InvoiceStatus.OVERDUE.value]
    this_month = in_period(invoices, _month_start(today), _month_end(today))
    recent = [
        RecentInvoice(
            id=inv["id"],
            invoice_number=inv["invoice_number"],
            customer_name=(inv.get("customer") or {}).get("name"),
            issue_date=as_date(inv["issue_date"]),
            total=round2(inv.get("total")),
            status=effective_status(inv, today),
        )
        for inv in invoices[:5]
    ]
    return DashboardStats(
        total_invoices=len(invoices),
        total_revenue=round2(_sum_totals(invoices)),
        pending_invoices=len(pending),
        overdue_invoices=len(overdue),
        total_customers=total_customers,
        this_month_revenue=round2(_sum_totals(this_month)),
        recent_invoices=recent,
    )


def _month_start(day: date, months_back: int = 0) -> date:
    month_index = day.year * 12 + (day.month - 1) - months_back
    return date(month_index // 12, month_index % 12 + 1, 1)


def _month_end(day: date) -> date:
    return date(day.year, day.month, calendar.monthrange(day.year, day.month)[1])


def report_period(
    range_key: str = "thisMonth",
    today: Optional[date] = None,
    custom_from: Optional[date] = None,
    custom_to: Optional[date] = None,
) -> ReportPeriod:
    """Intervallo del report e intervallo precedente di pari ampiezza."""
    today = today or date.today()
    if range_key == "custom" and custom_from and custom_to:
        span = (custom_to - custom_from).days
        return ReportPeriod(
            date_from=custom_from,
            date_to=custom_to,
            prev_from=custom_from - timedelta(days=span),
            prev_to=custom_from,
            label=RANGE_LABELS["custom"],
        )

    if range_key == "lastMonth":
        bounds = (1, 1, 2, 2)
    elif range_key == "last3Months":
        bounds = (2, 0, 5, 3)
    elif range_key == "last6Months":
        bounds = (5, 0, 11, 6)
    elif range_key in ("thisYear", "lastYear"):
        year = today.year if range_key == "thisYear" else today.year - 1
        return ReportPeriod(
            date_from=date(year, 1, 1),
            date_to=date(year, 12, 31),
            prev_from=date(year - 1, 1, 1),
            prev_to=date(year - 1, 12, 31),
            label=RANGE_LABELS[range_key],
        )
    else:
        # thisMonth, anche come ripiego per un intervallo personalizzato incompleto
        range_key = "thisMonth"
        bounds = (0, 0, 1, 1)

    from_back, to_back, prev_from_back, prev_to_back = bounds
    return ReportPeriod(
        date_from=_month_start(today, from_back),
        date_to=_month_end(_month_start(today, to_back)),
        prev_from=_month_start(today, prev_from_back),
        prev_to=_month_end(_month_start(today, prev_to_back)),
        label=RANGE_LABELS[range_key],
    )


def in_period(invoices: Iterable[Mapping[str, Any]], date_from: date, date_to: date):
    result = []
    for inv in invoices:
        issue_date = as_date(inv.get("issue_date"))
        if issue_date and date_from <= issue_date <= date_to:
            result.append(inv)
    return result


def monthly_trend(invoices: Iterable[Mapping[str, Any]], date_from: date, date_to: date) -> List[MonthlyTrendPoint]:
    """Un punto per ogni mese dell'intervallo, anche se vuoto."""
    invoices = list(invoices)
    points = []
    current = _month_start(date_from)
    while current <= date_to:
        month_invoices = in_period(invoices, current, _month_end(current))
        points.append(
            MonthlyTrendPoint(
                month=current.strftime("%Y-%m"),
                revenue=round2(_revenue(month_invoices)),
                invoices=len(month_invoices),
            )
        )
        current = _month_start(_month_end(current) + timedelta(days=1))
    return points


def top_customers(invoices: Iterable[Mapping[str, Any]], limit: int = 5) -> List[TopCustomer]:
    totals: Dict[str, Dict[str, Any]] = {}
    for inv in invoices:
        if inv.get("status") not in REVENUE_STATUSES:
            continue
        entry = totals.setdefault(
            inv["customer_id"],
            {
                "name": (inv.get("customer") or {}).get("name") or "Cliente sconosciuto",
                "revenue": Decimal("0"),
                "invoices": 0,
            },
        )
        entry["revenue"] += to_decimal(inv.get("total"))
        entry["invoices"] += 1
    ranked = sorted(totals.items(), key=lambda kv: kv[1]["revenue"], reverse=True)[:limit]
    return [
        TopCustomer(customer_id=cid, name=e["name"], revenue=round2(e["revenue"]), invoices=e["invoices"])
        for cid, e in ranked
    ]


def report_metrics(
    current: List[Mapping[str, Any]],
    previous: List[Mapping[str, Any]],
    active_customers: int = 0,
    period: Optional[ReportPeriod] = None,
    today: Optional[date] = None,
) -> ReportMetrics:
    """
    Metriche di periodo: il fatturato conta le fatture inviate e pagate, la
    distribuzione per stato usa lo stato effettivo (inviate scadute = scadute).
    """
    today = today or date.today()
    revenue = _revenue(current)
    prev_revenue = _revenue(previous)
    total_invoices = len(current)

    counts: Dict[str, int] = {}
    for inv in current:
        status = effective_status(inv, today)
        counts[status] = counts.get(status, 0) + 1
    distribution = [
        StatusShare(
            status=status,
            label=STATUS_LABELS.get(status, status),
            count=count,
            percentage=round(count / total_invoices * 100, 1) if total_invoices else 0.0,
        )
        for status, count in counts.items()
    ]

    return ReportMetrics(
        period=period,
        total_revenue=round2(revenue),
        prev_period_revenue=round2(prev_revenue),
        revenue_growth=_growth(revenue, prev_revenue),
        total_invoices=total_invoices,
        prev_period_invoices=len(previous),
        invoice_growth=_growth(Decimal(total_invoices), Decimal(len(previous))),
        average_invoice_value=round2(revenue / total_invoices) if total_invoices else Decimal("0.00"),
        active_customers=active_customers,
        top_customers=top_customers(current),
        status_distribution=distribution,
        monthly_trend=monthly_trend(current, period.date_from, period.date_to) if period else [],
    )
