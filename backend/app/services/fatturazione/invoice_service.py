"""
Servizio fatture: letture con cliente e righe, numerazione e sequenza di
persistenza testata/righe.

Lo store non offre transazioni tra tabelle. Ogni operazione di scrittura è
quindi una sequenza fissa di passi; un passo fallito interrompe la sequenza
senza compensare i passi già eseguiti e l'errore riporta il passo, così il
chiamante può ripetere solo la parte mancante (replace_invoice_items o
insert_invoice_items).
"""
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from app.schemas.fatturazione.invoice import (
    InvoiceCreate,
    InvoiceItemInput,
    InvoiceStatus,
    InvoiceUpdate,
    item_from_row,
)
from app.services.store import Store, StoreError, fetch_one
from app.utils.validators import INVOICE_NUMBER_PATTERN

from .cache import ListCache
from .calcoli import compute_totals, item_value, line_total, validate_invoice
from .errors import (
    InvalidStatusTransition,
    InvoicePipelineError,
    InvoiceValidationError,
    PipelineStep,
)

logger = logging.getLogger(__name__)

INVOICES = "invoices"
INVOICE_ITEMS = "invoice_items"
CUSTOMERS = "customers"
PRODUCTS = "products"

ALLOWED_TRANSITIONS = {
    InvoiceStatus.DRAFT.value: {InvoiceStatus.SENT.value, InvoiceStatus.PAID.value},
    InvoiceStatus.SENT.value: {InvoiceStatus.PAID.value, InvoiceStatus.OVERDUE.value},
    InvoiceStatus.OVERDUE.value: {InvoiceStatus.PAID.value},
    InvoiceStatus.PAID.value: set(),
}


def check_transition(current: Optional[str], target: str) -> None:
    current = current or InvoiceStatus.DRAFT.value
    if target != current and target not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidStatusTransition(current, target)


def as_date(value: Any) -> Optional[date]:
    """Le date arrivano come date (SQL) o stringhe ISO (PostgREST)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _now() -> datetime:
    return datetime.now(timezone.utc)


def format_invoice_number(year: int, progressive: int) -> str:
    return f"INV-{year}-{progressive:06d}"


def effective_status(invoice: Mapping[str, Any], today: Optional[date] = None) -> str:
    """Una fattura inviata con scadenza passata è considerata scaduta."""
    status = item_value(invoice, "status") or InvoiceStatus.DRAFT.value
    if isinstance(status, InvoiceStatus):
        status = status.value
    if status != InvoiceStatus.SENT.value:
        return status
    due_date = as_date(item_value(invoice, "due_date"))
    if due_date and due_date < (today or date.today()):
        return InvoiceStatus.OVERDUE.value
    return status


def filter_invoices(
    invoices: Iterable[Mapping[str, Any]],
    search: Optional[str] = None,
    status: Optional[str] = None,
    customer_id: Optional[str] = None,
    year: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> List[Mapping[str, Any]]:
    """Filtro in memoria sulla lista già caricata."""
    query = (search or "").strip().lower()
    result = []
    for invoice in invoices:
        if query:
            number = (invoice.get("invoice_number") or "").lower()
            customer_name = ((invoice.get("customer") or {}).get("name") or "").lower()
            if query not in number and query not in customer_name:
                continue
        if status and invoice.get("status") != status:
            continue
        if customer_id and invoice.get("customer_id") != customer_id:
            continue
        issue_date = as_date(invoice.get("issue_date"))
        if year and (issue_date is None or issue_date.year != year):
            continue
        if date_from and (issue_date is None or issue_date < date_from):
            continue
        if date_to and (issue_date is None or issue_date > date_to):
            continue
        result.append(invoice)
    return result


def available_years(invoices: Iterable[Mapping[str, Any]]) -> List[int]:
    years = {as_date(inv.get("issue_date")).year for inv in invoices if inv.get("issue_date")}
    return sorted(years, reverse=True)


class InvoiceService:
    def __init__(self, store: Store):
        self.store = store
        self.cache: ListCache[Dict[str, Any]] = ListCache(self._load_invoices, name=INVOICES)

    # ------------------------------------------------------------------
    # Letture
    # ------------------------------------------------------------------

    def _load_invoices(self) -> List[Dict[str, Any]]:
        headers = self.store.select(INVOICES, order=[("created_at", True)])
        return self._assemble(headers)

    def _assemble(self, headers: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Unisce a ogni testata il cliente e le righe (con il prodotto, se presente)."""
        if not headers:
            return []
        invoice_ids = [h["id"] for h in headers]
        customer_ids = sorted({h["customer_id"] for h in headers if h.get("customer_id")})

        customers = {}
        if customer_ids:
            customers = {c["id"]: c for c in self.store.select(CUSTOMERS, {"id": customer_ids})}

        item_rows = self.store.select(
            INVOICE_ITEMS, {"invoice_id": invoice_ids}, order=[("position", False)]
        )
        product_ids = sorted({r["product_id"] for r in item_rows if r.get("product_id")})
        products = {}
        if product_ids:
            products = {p["id"]: p for p in self.store.select(PRODUCTS, {"id": product_ids})}

        items_by_invoice: Dict[str, list] = {}
        for row in item_rows:
            item = item_from_row(row, products.get(row.get("product_id")))
            items_by_invoice.setdefault(row["invoice_id"], []).append(item)

        invoices = []
        for header in headers:
            invoice = dict(header)
            invoice["customer"] = customers.get(header.get("customer_id"))
            invoice["items"] = items_by_invoice.get(header["id"], [])
            invoices.append(invoice)
        return invoices

    def list_invoices(self, refresh: bool = False) -> List[Dict[str, Any]]:
        return self.cache.refresh() if refresh else self.cache.get()

    def get_invoice(self, invoice_id: str) -> Optional[Dict[str, Any]]:
        header = fetch_one(self.store, INVOICES, {"id": invoice_id})
        if header is None:
            return None
        return self._assemble([header])[0]

    def get_invoices_by_date_range(self, date_from: date, date_to: date) -> List[Dict[str, Any]]:
        return filter_invoices(self.list_invoices(), date_from=date_from, date_to=date_to)

    def next_invoice_number(self, year: Optional[int] = None) -> str:
        """Prossimo numero libero dell'anno: massimo progressivo esistente + 1."""
        if year is None:
            year = date.today().year
        rows = self.store.select(INVOICES, columns="invoice_number")
        max_progressive = 0
        for row in rows:
            match = INVOICE_NUMBER_PATTERN.match(row.get("invoice_number") or "")
            if match and int(match.group(1)) == year:
                max_progressive = max(max_progressive, int(match.group(2)))
        return format_invoice_number(year, max_progressive + 1)

    # ------------------------------------------------------------------
    # Preparazione righe
    # ------------------------------------------------------------------

    @staticmethod
    def _item_rows(invoice_id: str, items: Sequence[InvoiceItemInput]) -> List[Dict[str, Any]]:
        rows = []
        for position, item in enumerate(items, start=1):
            rows.append({
                "invoice_id": invoice_id,
                # None per le righe libere
                "product_id": item.product_id or None,
                "position": position,
                "description": item.description,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "tax_rate": item.tax_rate,
                "unit": item.unit,
                "total": line_total(item.quantity, item.unit_price, item.tax_rate),
            })
        return rows

    def _check_invoice(self, customer_id: Optional[str], items: Sequence[InvoiceItemInput]) -> Dict[str, Any]:
        """Verifica cliente e righe, restituisce i totali da scrivere in testata."""
        totals = compute_totals(items).as_dict()
        messages = validate_invoice({"customer_id": customer_id, "items": items, **totals})
        if customer_id and fetch_one(self.store, CUSTOMERS, {"id": customer_id}) is None:
            messages.append(f"Cliente {customer_id} non trovato")
        if messages:
            raise InvoiceValidationError(messages)
        return totals

    def _run_step(self, step: PipelineStep, invoice_id: Optional[str], action):
        logger.info("Fattura %s: passo %s", invoice_id or "(nuova)", step.value)
        try:
            return action()
        except StoreError as exc:
            logger.error("Fattura %s: passo %s fallito: %s", invoice_id or "(nuova)", step.value, exc)
            self.cache.invalidate()
            raise InvoicePipelineError(step, invoice_id, exc) from exc

    def _finish(self, invoice_id: str) -> Dict[str, Any]:
        self.cache.refresh()
        return self.get_invoice(invoice_id)

    # ------------------------------------------------------------------
    # Scritture
    # ------------------------------------------------------------------

    def create_invoice(self, data: InvoiceCreate) -> Dict[str, Any]:
        """Inserimento testata, poi inserimento righe."""
        totals = self._check_invoice(data.customer_id, data.items)
        header = {
            "invoice_number": data.invoice_number or self.next_invoice_number(data.issue_date.year),
            "customer_id": data.customer_id,
            "issue_date": data.issue_date,
            "due_date": data.due_date,
            "status": data.status.value,
            "notes": data.notes,
            **totals,
        }
        created = self._run_step(
            PipelineStep.INSERT_HEADER, None, lambda: self.store.insert(INVOICES, header)
        )
        invoice_id = created["id"]
        rows = self._item_rows(invoice_id, data.items)
        self._run_step(
            PipelineStep.INSERT_ITEMS, invoice_id, lambda: self.store.insert(INVOICE_ITEMS, rows)
        )
        logger.info("Fattura %s creata (%s)", header["invoice_number"], invoice_id)
        return self._finish(invoice_id)

    def update_invoice(self, invoice_id: str, data: InvoiceUpdate) -> Optional[Dict[str, Any]]:
        """Aggiornamento testata, cancellazione righe vecchie, inserimento righe nuove."""
        existing = fetch_one(self.store, INVOICES, {"id": invoice_id})
        if existing is None:
            return None

        customer_id = data.customer_id or existing["customer_id"]
        totals = self._check_invoice(customer_id, data.items)
        patch = data.model_dump(exclude_unset=True, exclude={"items"})
        if patch.get("status") is not None:
            patch["status"] = InvoiceStatus(patch["status"]).value
            check_transition(existing.get("status"), patch["status"])
        patch = {k: v for k, v in patch.items() if v is not None or k in ("due_date", "notes")}
        patch.update(totals)
        patch["customer_id"] = customer_id
        patch["updated_at"] = _now()

        self._run_step(
            PipelineStep.UPDATE_HEADER,
            invoice_id,
            lambda: self.store.update(INVOICES, patch, {"id": invoice_id}),
        )
        self._run_step(
            PipelineStep.DELETE_OLD_ITEMS,
            invoice_id,
            lambda: self.store.delete(INVOICE_ITEMS, {"invoice_id": invoice_id}),
        )
        rows = self._item_rows(invoice_id, data.items)
        self._run_step(
            PipelineStep.INSERT_NEW_ITEMS,
            invoice_id,
            lambda: self.store.insert(INVOICE_ITEMS, rows),
        )
        logger.info("Fattura %s aggiornata (%d righe)", invoice_id, len(rows))
        return self._finish(invoice_id)

    def _check_against_header(self, header: Mapping[str, Any], items: Sequence[InvoiceItemInput]):
        messages = validate_invoice({**header, "items": items})
        if messages:
            raise InvoiceValidationError(messages)

    def replace_invoice_items(
        self, invoice_id: str, items: Sequence[InvoiceItemInput]
    ) -> Optional[Dict[str, Any]]:
        """
        Ripete cancellazione e inserimento righe senza riscrivere la testata.

        Le righe devono corrispondere ai totali già salvati in testata.
        """
        header = fetch_one(self.store, INVOICES, {"id": invoice_id})
        if header is None:
            return None
        self._check_against_header(header, items)
        self._run_step(
            PipelineStep.DELETE_OLD_ITEMS,
            invoice_id,
            lambda: self.store.delete(INVOICE_ITEMS, {"invoice_id": invoice_id}),
        )
        rows = self._item_rows(invoice_id, items)
        self._run_step(
            PipelineStep.INSERT_NEW_ITEMS,
            invoice_id,
            lambda: self.store.insert(INVOICE_ITEMS, rows),
        )
        return self._finish(invoice_id)

    def insert_invoice_items(
        self, invoice_id: str, items: Sequence[InvoiceItemInput]
    ) -> Optional[Dict[str, Any]]:
        """Completa una fattura rimasta senza righe dopo un inserimento fallito."""
        header = fetch_one(self.store, INVOICES, {"id": invoice_id})
        if header is None:
            return None
        if self.store.count(INVOICE_ITEMS, {"invoice_id": invoice_id}):
            raise InvoiceValidationError(
                ["La fattura ha già delle righe: usare la sostituzione completa"]
            )
        self._check_against_header(header, items)
        rows = self._item_rows(invoice_id, items)
        self._run_step(
            PipelineStep.INSERT_NEW_ITEMS,
            invoice_id,
            lambda: self.store.insert(INVOICE_ITEMS, rows),
        )
        return self._finish(invoice_id)

    def delete_invoice(self, invoice_id: str) -> bool:
        """Righe prima della testata: lo store non applica cascade."""
        if fetch_one(self.store, INVOICES, {"id": invoice_id}) is None:
            return False
        self._run_step(
            PipelineStep.DELETE_ITEMS,
            invoice_id,
            lambda: self.store.delete(INVOICE_ITEMS, {"invoice_id": invoice_id}),
        )
        self._run_step(
            PipelineStep.DELETE_HEADER,
            invoice_id,
            lambda: self.store.delete(INVOICES, {"id": invoice_id}),
        )
        logger.info("Fattura %s eliminata", invoice_id)
        self.cache.refresh()
        return True

    def update_invoice_status(self, invoice_id: str, status: InvoiceStatus) -> Optional[Dict[str, Any]]:
        existing = fetch_one(self.store, INVOICES, {"id": invoice_id})
        if existing is None:
            return None
        current = existing.get("status") or InvoiceStatus.DRAFT.value
        target = InvoiceStatus(status).value
        if target == current:
            return self.get_invoice(invoice_id)
        check_transition(current, target)
        self.store.update(
            INVOICES, {"status": target, "updated_at": _now()}, {"id": invoice_id}
        )
        logger.info("Fattura %s: stato %s -> %s", invoice_id, current, target)
        return self._finish(invoice_id)

    def duplicate_invoice(self, invoice_id: str, issue_date: Optional[date] = None) -> Optional[Dict[str, Any]]:
        """Copia testata e righe in una nuova bozza con nuovo numero."""
        source = self.get_invoice(invoice_id)
        if source is None:
            return None
        issue_date = issue_date or date.today()
        items = [
            InvoiceItemInput(
                product_id=item_value(item, "product_id"),
                description=item_value(item, "description"),
                quantity=item_value(item, "quantity"),
                unit_price=item_value(item, "unit_price"),
                tax_rate=item_value(item, "tax_rate"),
                unit=item_value(item, "unit"),
            )
            for item in source["items"]
        ]
        due_date = as_date(source.get("due_date"))
        if due_date is not None:
            # mantiene la stessa dilazione di pagamento
            due_date = issue_date + (due_date - as_date(source["issue_date"]))
        return self.create_invoice(
            InvoiceCreate(
                customer_id=source["customer_id"],
                issue_date=issue_date,
                due_date=due_date,
                status=InvoiceStatus.DRAFT,
                notes=source.get("notes"),
                items=items,
            )
        )

    def validate(self, invoice_id: str) -> Optional[List[str]]:
        invoice = self.get_invoice(invoice_id)
        if invoice is None:
            return None
        return validate_invoice(invoice)
