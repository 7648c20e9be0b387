"""
Servizio prodotti di catalogo.

Un prodotto referenziato da righe fattura viene solo disattivato; senza
riferimenti la riga viene rimossa.
"""
import logging
import unicodedata
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from app.schemas.fatturazione.common import DeleteResult
from app.schemas.fatturazione.product import (
    ProductCategory,
    ProductCreate,
    ProductUpdate,
    ProductUsageStats,
)
from app.services.store import Store, fetch_one

from .cache import ListCache
from .calcoli import round2, to_decimal

logger = logging.getLogger(__name__)

PRODUCTS = "products"
INVOICE_ITEMS = "invoice_items"


def _fold(text: Optional[str]) -> str:
    """Minuscolo e senza accenti, per la ricerca."""
    decomposed = unicodedata.normalize("NFKD", text or "")
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower()


def search_products(
    products: Iterable[Mapping[str, Any]], term: Optional[str], active_only: bool = True
) -> List[Mapping[str, Any]]:
    query = _fold(term).strip()
    result = []
    for product in products:
        if active_only and product.get("is_active") is False:
            continue
        if query and not any(
            query in _fold(product.get(f)) for f in ("name", "description", "category")
        ):
            continue
        result.append(product)
    return result


def product_categories(products: Iterable[Mapping[str, Any]]) -> List[ProductCategory]:
    """Categorie dei prodotti attivi con il numero di prodotti, in ordine alfabetico."""
    counts: Dict[str, int] = {}
    for product in products:
        category = product.get("category")
        if category and product.get("is_active") is not False:
            counts[category] = counts.get(category, 0) + 1
    return [ProductCategory(name=name, count=counts[name]) for name in sorted(counts, key=str.lower)]


class ProductService:
    def __init__(self, store: Store):
        self.store = store
        self.cache: ListCache[Dict[str, Any]] = ListCache(self._load, name=PRODUCTS)

    def _load(self) -> List[Dict[str, Any]]:
        return self.store.select(PRODUCTS, order=[("name", False)])

    def list_products(self, include_inactive: bool = False) -> List[Dict[str, Any]]:
        products = self.cache.get()
        if include_inactive:
            return products
        return [p for p in products if p.get("is_active") is not False]

    def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        return fetch_one(self.store, PRODUCTS, {"id": product_id})

    def products_by_category(self, category: str, active_only: bool = True) -> List[Dict[str, Any]]:
        return [
            p for p in self.list_products(include_inactive=not active_only)
            if p.get("category") == category
        ]

    def create_product(self, data: ProductCreate) -> Dict[str, Any]:
        row = self.store.insert(PRODUCTS, data.model_dump())
        logger.info("Prodotto creato: %s (%s)", row["name"], row["id"])
        self.cache.refresh()
        return row

    def update_product(self, product_id: str, data: ProductUpdate) -> Optional[Dict[str, Any]]:
        if self.get_product(product_id) is None:
            return None
        patch = data.model_dump(exclude_unset=True)
        patch["updated_at"] = datetime.now(timezone.utc)
        row = self.store.update(PRODUCTS, patch, {"id": product_id})
        self.cache.refresh()
        return row

    def count_usages(self, product_id: str) -> int:
        return self.store.count(INVOICE_ITEMS, {"product_id": product_id})

    def is_used_in_invoices(self, product_id: str) -> bool:
        return self.count_usages(product_id) > 0

    def usage_stats(self, product_id: str) -> ProductUsageStats:
        rows = self.store.select(
            INVOICE_ITEMS,
            {"product_id": product_id},
            order=[("created_at", True)],
            columns="quantity, total, created_at",
        )
        return ProductUsageStats(
            total_lines=len(rows),
            total_quantity=sum((to_decimal(r.get("quantity")) for r in rows), Decimal("0")),
            total_revenue=round2(sum((to_decimal(r.get("total")) for r in rows), Decimal("0"))),
            last_used=rows[0].get("created_at") if rows else None,
        )

    def delete_product(self, product_id: str) -> Optional[DeleteResult]:
        """Disattiva il prodotto se usato in fatture, altrimenti lo elimina."""
        if self.get_product(product_id) is None:
            return None
        dependents = self.count_usages(product_id)
        if dependents:
            self.store.update(
                PRODUCTS,
                {"is_active": False, "updated_at": datetime.now(timezone.utc)},
                {"id": product_id},
            )
            kind = "soft"
        else:
            self.store.delete(PRODUCTS, {"id": product_id})
            kind = "hard"
        logger.info("Prodotto %s eliminato (%s, %d righe)", product_id, kind, dependents)
        self.cache.refresh()
        return DeleteResult(entity_id=product_id, kind=kind, dependents=dependents)

    def restore_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        if self.get_product(product_id) is None:
            return None
        row = self.store.update(
            PRODUCTS,
            {"is_active": True, "updated_at": datetime.now(timezone.utc)},
            {"id": product_id},
        )
        self.cache.refresh()
        return row
