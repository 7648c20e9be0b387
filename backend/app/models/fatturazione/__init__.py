"""
Fatturazione models package
"""
from .customer import Customer
from .product import Product
from .invoice import Invoice
from .invoice_item import InvoiceItem
from .help_article import HelpArticle

__all__ = [
    "Customer",
    "Product",
    "Invoice",
    "InvoiceItem",
    "HelpArticle",
]
