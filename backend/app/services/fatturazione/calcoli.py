"""
Calcoli di riga e di fattura: imponibile, imposta, totale e riepilogo per aliquota.

Tutti i valori monetari sono Decimal; gli arrotondamenti sono a due decimali
con metà lontano dallo zero, come round(x * 100) / 100 sui centesimi.
"""
from collections import OrderedDict
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

CENT = Decimal("0.01")
TOLERANCE = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    """Converte numeri e stringhe in Decimal; None vale zero."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # passa dalla stringa per non portarsi dietro l'errore binario
        return Decimal(repr(value))
    return Decimal(str(value))


def round2(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_subtotal(quantity: Any, unit_price: Any) -> Decimal:
    return to_decimal(quantity) * to_decimal(unit_price)


def line_tax(quantity: Any, unit_price: Any, tax_rate: Any) -> Decimal:
    return line_subtotal(quantity, unit_price) * (to_decimal(tax_rate) / HUNDRED)


def line_total(quantity: Any, unit_price: Any, tax_rate: Any) -> Decimal:
    """Totale di riga IVA inclusa, arrotondato al centesimo."""
    return round2(line_subtotal(quantity, unit_price) + line_tax(quantity, unit_price, tax_rate))


def item_value(item: Any, name: str, default: Any = None) -> Any:
    """Legge un campo da una riga dello store (dict) o da un modello."""
    if isinstance(item, Mapping):
        return item.get(name, default)
    return getattr(item, name, default)


@dataclass
class TaxBucket:
    """Riepilogo di un'aliquota"""

    rate: Decimal
    taxable_base: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")


def _rate_key(rate: Any) -> Decimal:
    # 22, 22.0 e "22.00" sono la stessa aliquota
    return to_decimal(rate).normalize()


def aggregate_by_tax_rate(items: Iterable[Any]) -> "OrderedDict[Decimal, TaxBucket]":
    """
    Raggruppa le righe per aliquota esatta.

    L'ordine è quello della prima comparsa di ciascuna aliquota. Le somme non
    sono arrotondate: l'arrotondamento avviene in fase di presentazione.
    """
    buckets: "OrderedDict[Decimal, TaxBucket]" = OrderedDict()
    for item in items:
        quantity = item_value(item, "quantity")
        unit_price = item_value(item, "unit_price")
        rate = item_value(item, "tax_rate")
        key = _rate_key(rate)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = TaxBucket(rate=to_decimal(rate))
        bucket.taxable_base += line_subtotal(quantity, unit_price)
        bucket.tax_amount += line_tax(quantity, unit_price, rate)
    return buckets


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal

    def as_dict(self) -> Dict[str, Decimal]:
        return {"subtotal": self.subtotal, "tax_amount": self.tax_amount, "total": self.total}


def compute_totals(items: Iterable[Any]) -> InvoiceTotals:
    """
    Totali di testata dalle somme non arrotondate del riepilogo per aliquota.

    Il totale non è la somma dei totali di riga già arrotondati: con molte
    righe le due cifre possono differire di qualche centesimo.
    """
    buckets = aggregate_by_tax_rate(items).values()
    subtotal = sum((b.taxable_base for b in buckets), Decimal("0"))
    tax_amount = sum((b.tax_amount for b in buckets), Decimal("0"))
    return InvoiceTotals(
        subtotal=round2(subtotal),
        tax_amount=round2(tax_amount),
        total=round2(subtotal + tax_amount),
    )


def _differs(stored: Any, computed: Decimal) -> bool:
    return abs(to_decimal(stored) - computed) > TOLERANCE


def validate_invoice(invoice: Any) -> List[str]:
    """
    Confronta i totali memorizzati con quelli ricalcolati dalle righe.

    Restituisce un messaggio per ogni campo discordante più i messaggi per
    cliente mancante e fattura senza righe. Non modifica la fattura.
    """
    messages: List[str] = []
    if not item_value(invoice, "customer_id") and not item_value(invoice, "customer"):
        messages.append("Cliente mancante")

    items = list(item_value(invoice, "items") or [])
    if not items:
        messages.append("La fattura non contiene righe")

    computed = compute_totals(items)
    checks = (
        ("Imponibile", item_value(invoice, "subtotal"), computed.subtotal),
        ("Imposta IVA", item_value(invoice, "tax_amount"), computed.tax_amount),
        ("Totale", item_value(invoice, "total"), computed.total),
    )
    for label, stored, expected in checks:
        if _differs(stored, expected):
            messages.append(
                f"{label} non coerente: memorizzato {round2(stored)}, calcolato {expected}"
            )
    return messages


def format_amount(value: Optional[Any]) -> str:
    """Importo a due decimali con il punto, indipendente dalla locale."""
    return f"{round2(value):.2f}"
