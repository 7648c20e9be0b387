"""
Servizio clienti.

La cancellazione è a due fasi: se il cliente ha fatture viene solo
disattivato (is_active = false), altrimenti la riga viene rimossa.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from app.schemas.fatturazione.common import DeleteResult
from app.schemas.fatturazione.customer import CustomerCreate, CustomerStats, CustomerUpdate
from app.services.store import Store, fetch_one

from .cache import ListCache
from .calcoli import round2, to_decimal
from .invoice_service import as_date

logger = logging.getLogger(__name__)

CUSTOMERS = "customers"
INVOICES = "invoices"

_SEARCH_FIELDS = ("name", "email", "phone", "tax_code", "vat_number", "address")


def is_active_customer(customer: Mapping[str, Any]) -> bool:
    # null conta come attivo
    return customer.get("is_active") is not False


def filter_customers(
    customers: Iterable[Mapping[str, Any]],
    search: Optional[str] = None,
    include_inactive: bool = False,
    only_inactive: bool = False,
    customer_id: Optional[str] = None,
) -> List[Mapping[str, Any]]:
    query = (search or "").strip().lower()
    result = []
    for customer in customers:
        active = is_active_customer(customer)
        if only_inactive and active:
            continue
        if not include_inactive and not only_inactive and not active:
            continue
        if customer_id and customer.get("id") != customer_id:
            continue
        if query and not any(query in (customer.get(f) or "").lower() for f in _SEARCH_FIELDS):
            continue
        result.append(customer)
    return result


def customer_overview(customers: Iterable[Mapping[str, Any]]) -> Dict[str, int]:
    customers = list(customers)
    active = sum(1 for c in customers if is_active_customer(c))
    return {
        "total": len(customers),
        "active": active,
        "inactive": len(customers) - active,
        "with_email": sum(1 for c in customers if c.get("email")),
        "with_vat_number": sum(1 for c in customers if c.get("vat_number")),
        "with_tax_code": sum(1 for c in customers if c.get("tax_code")),
    }


class CustomerService:
    def __init__(self, store: Store):
        self.store = store
        self.cache: ListCache[Dict[str, Any]] = ListCache(self._load, name=CUSTOMERS)

    def _load(self) -> List[Dict[str, Any]]:
        return self.store.select(CUSTOMERS, order=[("name", False)])

    def list_customers(self, include_inactive: bool = False, search: Optional[str] = None):
        return filter_customers(self.cache.get(), search=search, include_inactive=include_inactive)

    def get_customer(self, customer_id: str) -> Optional[Dict[str, Any]]:
        return fetch_one(self.store, CUSTOMERS, {"id": customer_id})

    def active_customer_count(self) -> int:
        return sum(1 for c in self.cache.get() if is_active_customer(c))

    def create_customer(self, data: CustomerCreate) -> Dict[str, Any]:
        row = self.store.insert(CUSTOMERS, {**data.model_dump(), "is_active": True})
        logger.info("Cliente creato: %s (%s)", row["name"], row["id"])
        self.cache.refresh()
        return row

    def update_customer(self, customer_id: str, data: CustomerUpdate) -> Optional[Dict[str, Any]]:
        if self.get_customer(customer_id) is None:
            return None
        patch = data.model_dump(exclude_unset=True)
        patch["updated_at"] = datetime.now(timezone.utc)
        row = self.store.update(CUSTOMERS, patch, {"id": customer_id})
        self.cache.refresh()
        return row

    def count_invoices(self, customer_id: str) -> int:
        return self.store.count(INVOICES, {"customer_id": customer_id})

    def has_invoices(self, customer_id: str) -> bool:
        return self.count_invoices(customer_id) > 0

    def customer_stats(self, customer_id: str) -> CustomerStats:
        rows = self.store.select(
            INVOICES,
            {"customer_id": customer_id},
            order=[("issue_date", True)],
            columns="total, issue_date",
        )
        total_amount = sum((to_decimal(r.get("total")) for r in rows), Decimal("0"))
        return CustomerStats(
            total_invoices=len(rows),
            total_amount=round2(total_amount),
            last_invoice_date=as_date(rows[0]["issue_date"]) if rows else None,
        )

    def delete_customer(self, customer_id: str, reason: Optional[str] = None) -> Optional[DeleteResult]:
        """Disattiva il cliente se ha fatture, altrimenti lo elimina."""
        if self.get_customer(customer_id) is None:
            return None
        dependents = self.count_invoices(customer_id)
        if dependents:
            self.store.update(
                CUSTOMERS,
                {
                    "is_active": False,
                    "deactivation_reason": reason or "Cliente con fatture associate",
                    "deactivated_at": datetime.now(timezone.utc),
                    "updated_at": datetime.now(timezone.utc),
                },
                {"id": customer_id},
            )
            kind = "soft"
        else:
            self.store.delete(CUSTOMERS, {"id": customer_id})
            kind = "hard"
        logger.info("Cliente %s eliminato (%s, %d fatture)", customer_id, kind, dependents)
        self.cache.refresh()
        return DeleteResult(entity_id=customer_id, kind=kind, dependents=dependents)

    def reactivate_customer(self, customer_id: str) -> Optional[Dict[str, Any]]:
        if self.get_customer(customer_id) is None:
            return None
        row = self.store.update(
            CUSTOMERS,
            {
                "is_active": True,
                "deactivation_reason": None,
                "deactivated_at": None,
                "updated_at": datetime.now(timezone.utc),
            },
            {"id": customer_id},
        )
        self.cache.refresh()
        return row
