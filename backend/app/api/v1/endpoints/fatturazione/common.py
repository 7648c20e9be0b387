"""
Dipendenze condivise del modulo Fatturazione.

I servizi sono uno per store: la cache dell'ultima lista sopravvive tra
una richiesta e l'altra.
"""
from functools import lru_cache

from fastapi import Depends

from app.services.fatturazione.customer_service import CustomerService
from app.services.fatturazione.help_service import HelpService
from app.services.fatturazione.invoice_service import InvoiceService
from app.services.fatturazione.product_service import ProductService
from app.services.store import Store, get_store


@lru_cache(maxsize=None)
def _invoice_service(store: Store) -> InvoiceService:
    return InvoiceService(store)


@lru_cache(maxsize=None)
def _customer_service(store: Store) -> CustomerService:
    return CustomerService(store)


@lru_cache(maxsize=None)
def _product_service(store: Store) -> ProductService:
    return ProductService(store)


@lru_cache(maxsize=None)
def _help_service(store: Store) -> HelpService:
    return HelpService(store)


def get_invoice_service(store: Store = Depends(get_store)) -> InvoiceService:
    return _invoice_service(store)


def get_customer_service(store: Store = Depends(get_store)) -> CustomerService:
    return _customer_service(store)


def get_product_service(store: Store = Depends(get_store)) -> ProductService:
    return _product_service(store)


def get_help_service(store: Store = Depends(get_store)) -> HelpService:
    return _help_service(store)
