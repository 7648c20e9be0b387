"""
Test configuration and fixtures for pytest.

I servizi girano su SqlStore con un database SQLite in memoria: stesse righe
(dict) e stessi errori (StoreError) dello store Supabase.
"""
import base64
import json
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from app.core.database import Base
from app.schemas.fatturazione.customer import CustomerCreate
from app.schemas.fatturazione.invoice import InvoiceCreate, InvoiceItemInput
from app.schemas.fatturazione.product import ProductCreate
from app.services.fatturazione.customer_service import CustomerService
from app.services.fatturazione.help_service import HelpService
from app.services.fatturazione.invoice_service import InvoiceService
from app.services.fatturazione.product_service import ProductService
from app.services.store import Store, StoreError, get_store
from app.services.store.sql_store import SqlStore

TEST_USER_ID = "8c3f2a5e-1d4b-4f6a-9e2c-7b1a0d9e8f11"


class FailingStore(Store):
    """Inoltra a un altro store, fallendo sulle coppie (operazione, tabella) indicate."""

    def __init__(self, inner: Store):
        self.inner = inner
        self.failures = set()
        self.calls = []

    def fail(self, op: str, table: str):
        self.failures.add((op, table))

    def heal(self):
        self.failures.clear()

    def _check(self, op: str, table: str):
        self.calls.append((op, table))
        if (op, table) in self.failures:
            raise StoreError(f"{op} non riuscito", code="08006", table=table)

    def select(self, table, filters=None, order=None, *, columns="*", single=False, limit=None):
        self._check("select", table)
        return self.inner.select(table, filters, order, columns=columns, single=single, limit=limit)

    def insert(self, table, rows):
        self._check("insert", table)
        return self.inner.insert(table, rows)

    def update(self, table, patch, filters):
        self._check("update", table)
        return self.inner.update(table, patch, filters)

    def delete(self, table, filters):
        self._check("delete", table)
        return self.inner.delete(table, filters)

    def count(self, table, filters=None):
        self._check("count", table)
        return self.inner.count(table, filters)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return FailingStore(SqlStore(engine))


@pytest.fixture
def customer_service(store):
    return CustomerService(store)


@pytest.fixture
def product_service(store):
    return ProductService(store)


@pytest.fixture
def invoice_service(store):
    return InvoiceService(store)


@pytest.fixture
def help_service(store):
    return HelpService(store)


@pytest.fixture
def customer(customer_service):
    return customer_service.create_customer(
        CustomerCreate(
            name="Rossi & Figli S.r.l.",
            email="amministrazione@rossi.it",
            address="Via Verdi 10, Torino",
            vat_number="12345678903",
        )
    )


@pytest.fixture
def product(product_service):
    return product_service.create_product(
        ProductCreate(
            name="Consulenza oraria",
            category="Servizi",
            unit_price=Decimal("80.00"),
            tax_rate=Decimal("22"),
            unit="h",
        )
    )


def make_items(product_id=None):
    """Due righe: 2 x 10.00 al 22% (da catalogo se product_id) e 1 x 5.00 al 10%."""
    return [
        InvoiceItemInput(
            product_id=product_id,
            description="Servizio A",
            quantity=Decimal("2"),
            unit_price=Decimal("10.00"),
            tax_rate=Decimal("22"),
        ),
        InvoiceItemInput(
            description="Servizio B",
            quantity=Decimal("1"),
            unit_price=Decimal("5.00"),
            tax_rate=Decimal("10"),
        ),
    ]


@pytest.fixture
def invoice(invoice_service, customer, product):
    return invoice_service.create_invoice(
        InvoiceCreate(
            customer_id=customer["id"],
            issue_date=date(2026, 3, 15),
            due_date=date(2026, 4, 14),
            items=make_items(product["id"]),
        )
    )


def fake_token(sub: str = TEST_USER_ID) -> str:
    """JWT non firmato: il backend legge solo il claim sub."""
    def _segment(data: dict) -> str:
        raw = json.dumps(data).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")

    return f"{_segment({'alg': 'HS256', 'typ': 'JWT'})}.{_segment({'sub': sub})}.firma"


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {fake_token()}"}


@pytest.fixture
def client(store, auth_headers):
    """TestClient sull'app con lo store di test"""
    from app.main import app

    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as test_client:
        test_client.headers.update(auth_headers)
        yield test_client
    app.dependency_overrides.clear()
