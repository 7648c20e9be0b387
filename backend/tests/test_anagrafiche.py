"""
Test clienti e prodotti: cancellazione a due fasi, filtri e statistiche.
"""
from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.schemas.fatturazione.customer import CustomerCreate, CustomerUpdate
from app.schemas.fatturazione.invoice import InvoiceCreate, InvoiceItemInput
from app.schemas.fatturazione.product import ProductCreate, ProductUpdate
from app.services.fatturazione.customer_service import customer_overview, filter_customers
from app.services.fatturazione.product_service import product_categories, search_products
from app.services.store import fetch_one


class TestCancellazioneClienti:
    """Disattivazione se ci sono fatture, eliminazione altrimenti"""

    def test_customer_with_invoices_is_deactivated(self, customer_service, invoice, customer, store):
        result = customer_service.delete_customer(customer["id"])
        assert result.kind == "soft"
        assert result.is_soft
        assert result.dependents == 1
        row = fetch_one(store, "customers", {"id": customer["id"]})
        assert row is not None
        assert row["is_active"] is False
        assert row["deactivation_reason"] == "Cliente con fatture associate"
        assert row["deactivated_at"] is not None

    def test_custom_reason(self, customer_service, invoice, customer):
        customer_service.delete_customer(customer["id"], reason="Cessata attività")
        assert customer_service.get_customer(customer["id"])["deactivation_reason"] == "Cessata attività"

    def test_customer_without_invoices_is_removed(self, customer_service, customer, store):
        result = customer_service.delete_customer(customer["id"])
        assert result.kind == "hard"
        assert result.dependents == 0
        assert fetch_one(store, "customers", {"id": customer["id"]}) is None

    def test_delete_missing_customer(self, customer_service):
        assert customer_service.delete_customer("non-esiste") is None

    def test_reactivate(self, customer_service, invoice, customer):
        customer_service.delete_customer(customer["id"])
        assert customer_service.list_customers() == []
        row = customer_service.reactivate_customer(customer["id"])
        assert row["is_active"] is True
        assert row["deactivation_reason"] is None
        assert [c["id"] for c in customer_service.list_customers()] == [customer["id"]]


class TestClienti:
    def test_create_and_update(self, customer_service, customer):
        assert customer["is_active"] is True
        updated = customer_service.update_customer(customer["id"], CustomerUpdate(phone="011 123456"))
        assert updated["phone"] == "011 123456"
        assert updated["name"] == customer["name"]
        assert updated["updated_at"] is not None

    def test_update_missing(self, customer_service):
        assert customer_service.update_customer("non-esiste", CustomerUpdate(phone="1")) is None

    def test_list_ordered_by_name(self, customer_service, customer):
        customer_service.create_customer(CustomerCreate(name="Alfa Servizi"))
        assert [c["name"] for c in customer_service.list_customers()] == ["Alfa Servizi", customer["name"]]

    def test_stats(self, customer_service, invoice_service, invoice, customer):
        invoice_service.create_invoice(
            InvoiceCreate(
                customer_id=customer["id"],
                issue_date=date(2026, 5, 2),
                items=[InvoiceItemInput(description="Extra", quantity=1, unit_price=Decimal("100"), tax_rate=0)],
            )
        )
        stats = customer_service.customer_stats(customer["id"])
        assert stats.total_invoices == 2
        assert stats.total_amount == Decimal("129.90")
        assert stats.last_invoice_date == date(2026, 5, 2)
        assert customer_service.has_invoices(customer["id"])

    def test_filter_customers(self):
        customers = [
            {"id": "1", "name": "Rossi Srl", "email": "info@rossi.it", "is_active": True},
            {"id": "2", "name": "Bianchi", "vat_number": "12345678903", "is_active": False},
            {"id": "3", "name": "Verdi", "phone": "333 1234567", "is_active": None},
        ]
        assert [c["id"] for c in filter_customers(customers)] == ["1", "3"]
        assert [c["id"] for c in filter_customers(customers, include_inactive=True)] == ["1", "2", "3"]
        assert [c["id"] for c in filter_customers(customers, only_inactive=True)] == ["2"]
        assert [c["id"] for c in filter_customers(customers, search="ROSSI.IT")] == ["1"]
        assert [c["id"] for c in filter_customers(customers, search="3456789", include_inactive=True)] == ["2"]
        assert [c["id"] for c in filter_customers(customers, customer_id="3")] == ["3"]

    def test_overview(self):
        overview = customer_overview([
            {"name": "A", "email": "a@a.it", "is_active": True},
            {"name": "B", "vat_number": "12345678903", "is_active": False},
        ])
        assert overview == {
            "total": 2, "active": 1, "inactive": 1,
            "with_email": 1, "with_vat_number": 1, "with_tax_code": 0,
        }


class TestValidazioneAnagrafica:
    """Codice fiscale, partita IVA ed email nei dati in ingresso"""

    def test_valid_identifiers_are_normalized(self):
        data = CustomerCreate(
            name="  Mario Rossi  ",
            tax_code="rssmra85t10a562s",
            vat_number="123 4567 8903",
            email=" mario@rossi.it ",
        )
        assert data.name == "Mario Rossi"
        assert data.tax_code == "RSSMRA85T10A562S"
        assert data.vat_number == "12345678903"
        assert data.email == "mario@rossi.it"

    @pytest.mark.parametrize(
        "field, value",
        [
            ("tax_code", "RSSMRA85T10A56"),
            ("vat_number", "12345678901"),
            ("vat_number", "ABCDEFGHIJK"),
            ("email", "non-una-email"),
            ("name", "   "),
        ],
    )
    def test_invalid_values(self, field, value):
        data = {"name": "Cliente"}
        data[field] = value
        with pytest.raises(ValidationError):
            CustomerCreate(**data)

    def test_blank_optional_fields_become_none(self):
        data = CustomerCreate(name="Cliente", tax_code="", vat_number="  ", email="")
        assert data.tax_code is None
        assert data.vat_number is None
        assert data.email is None


class TestCancellazioneProdotti:
    def test_product_in_use_is_deactivated(self, product_service, invoice, product, store):
        result = product_service.delete_product(product["id"])
        assert result.kind == "soft"
        assert result.dependents == 1
        assert fetch_one(store, "products", {"id": product["id"]})["is_active"] is False
        assert product_service.list_products() == []
        assert len(product_service.list_products(include_inactive=True)) == 1

    def test_unused_product_is_removed(self, product_service, product, store):
        result = product_service.delete_product(product["id"])
        assert result.kind == "hard"
        assert fetch_one(store, "products", {"id": product["id"]}) is None

    def test_restore(self, product_service, invoice, product):
        product_service.delete_product(product["id"])
        assert product_service.restore_product(product["id"])["is_active"] is True
        assert len(product_service.list_products()) == 1

    def test_missing_product(self, product_service):
        assert product_service.delete_product("non-esiste") is None
        assert product_service.restore_product("non-esiste") is None


class TestProdotti:
    def test_defaults_and_trimming(self, product_service):
        row = product_service.create_product(
            ProductCreate(name="  Licenza  ", description="  ", unit_price=Decimal("99.90"), unit="")
        )
        assert row["name"] == "Licenza"
        assert row["description"] is None
        assert row["unit"] == "pz"
        assert row["tax_rate"] == Decimal("22")

    def test_update(self, product_service, product):
        row = product_service.update_product(product["id"], ProductUpdate(unit_price=Decimal("90")))
        assert row["unit_price"] == Decimal("90.00")
        assert product_service.update_product("non-esiste", ProductUpdate(name="X")) is None

    def test_usage_stats(self, product_service, invoice, product):
        stats = product_service.usage_stats(product["id"])
        assert stats.total_lines == 1
        assert stats.total_quantity == Decimal("2")
        assert stats.total_revenue == Decimal("24.40")
        assert product_service.is_used_in_invoices(product["id"])

    def test_by_category(self, product_service, product):
        product_service.create_product(ProductCreate(name="Hosting", category="Cloud", unit_price=10))
        assert [p["name"] for p in product_service.products_by_category("Servizi")] == ["Consulenza oraria"]

    def test_search_ignores_case_and_accents(self):
        products = [
            {"name": "Attività di consulenza", "category": "Servizi", "is_active": True},
            {"name": "Licenza", "description": "Software gestionale", "is_active": True},
            {"name": "Vecchio servizio", "is_active": False},
        ]
        assert [p["name"] for p in search_products(products, "ATTIVITA")] == ["Attività di consulenza"]
        assert [p["name"] for p in search_products(products, "gestionale")] == ["Licenza"]
        assert len(search_products(products, "servizi")) == 1
        assert len(search_products(products, "servizi", active_only=False)) == 2
        assert len(search_products(products, "")) == 2

    def test_categories(self):
        products = [
            {"category": "servizi", "is_active": True},
            {"category": "Hardware", "is_active": True},
            {"category": "servizi", "is_active": True},
            {"category": "Hardware", "is_active": False},
            {"category": None, "is_active": True},
        ]
        categories = product_categories(products)
        assert [(c.name, c.count) for c in categories] == [("Hardware", 1), ("servizi", 2)]
