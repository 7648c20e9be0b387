"""
Test store (SQL e Supabase, codice PGRST116), migrazioni, cache delle liste e guida in linea.
"""
from datetime import date
from decimal import Decimal
from pathlib import Path
from types import SimpleNamespace

import pytest
from alembic import command
from alembic.config import Config
from postgrest.exceptions import APIError
from sqlalchemy import create_engine, inspect
from sqlalchemy.pool import StaticPool

from app.core.database import Base
from app.schemas.fatturazione.help_article import HelpArticleCreate, HelpArticleUpdate
from app.services.fatturazione.cache import ListCache
from app.services.fatturazione.help_service import group_by_category
from app.services.store import NOT_FOUND_CODE, StoreError, fetch_one
from app.services.store.supabase_store import SupabaseStore

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "app" / "migrations"


class TestStore:
    def test_single_select_without_rows_is_pgrst116(self, store):
        with pytest.raises(StoreError) as exc_info:
            store.select("customers", {"id": "non-esiste"}, single=True)
        assert exc_info.value.code == NOT_FOUND_CODE
        assert exc_info.value.is_not_found

    def test_fetch_one_maps_not_found_to_none(self, store):
        assert fetch_one(store, "customers", {"id": "non-esiste"}) is None

    def test_fetch_one_propagates_other_errors(self, store):
        store.fail("select", "customers")
        with pytest.raises(StoreError) as exc_info:
            fetch_one(store, "customers", {"id": "x"})
        assert not exc_info.value.is_not_found

    def test_unknown_table(self, store):
        with pytest.raises(StoreError):
            store.select("fornitori")

    def test_insert_many_and_filter_in(self, store):
        rows = store.insert("customers", [{"name": "A"}, {"name": "B"}, {"name": "C"}])
        assert [r["name"] for r in rows] == ["A", "B", "C"]
        ids = [rows[0]["id"], rows[2]["id"]]
        selected = store.select("customers", {"id": ids}, order=[("name", True)])
        assert [r["name"] for r in selected] == ["C", "A"]
        assert store.count("customers") == 3

    def test_update_missing_row(self, store):
        with pytest.raises(StoreError) as exc_info:
            store.update("customers", {"name": "X"}, {"id": "non-esiste"})
        assert exc_info.value.is_not_found

    def test_error_message(self):
        error = StoreError("connessione chiusa", code="08006", table="invoices")
        assert str(error) == "[08006] connessione chiusa (invoices)"


class FakeQuery:
    """Catena di query PostgREST: registra le chiamate e risponde con i dati del client."""

    def __init__(self, client, table):
        self.client = client
        self.table = table

    def _record(self, name, *args, **kwargs):
        self.client.calls.append((self.table, name, args, kwargs))
        return self

    def select(self, *args, **kwargs):
        return self._record("select", *args, **kwargs)

    def insert(self, *args, **kwargs):
        return self._record("insert", *args, **kwargs)

    def update(self, *args, **kwargs):
        return self._record("update", *args, **kwargs)

    def delete(self, *args, **kwargs):
        return self._record("delete", *args, **kwargs)

    def eq(self, *args, **kwargs):
        return self._record("eq", *args, **kwargs)

    def in_(self, *args, **kwargs):
        return self._record("in_", *args, **kwargs)

    def is_(self, *args, **kwargs):
        return self._record("is_", *args, **kwargs)

    def order(self, *args, **kwargs):
        return self._record("order", *args, **kwargs)

    def limit(self, *args, **kwargs):
        return self._record("limit", *args, **kwargs)

    def single(self):
        return self._record("single")

    def execute(self):
        self._record("execute")
        if self.client.error is not None:
            raise APIError(self.client.error)
        return SimpleNamespace(data=self.client.data, count=self.client.count)


class FakeSupabaseClient:
    def __init__(self, data=None, error=None, count=None):
        self.data = data
        self.error = error
        self.count = count
        self.calls = []

    def table(self, name):
        return FakeQuery(self, name)

    def called(self, name):
        return [(args, kwargs) for _, call, args, kwargs in self.calls if call == name]


class TestSupabaseStore:
    def test_filters_and_ordering(self):
        client = FakeSupabaseClient(data=[{"id": "a"}])
        store = SupabaseStore(client)
        rows = store.select(
            "invoices",
            {"id": ["a", "b"], "status": "sent", "due_date": None, "total": Decimal("1.50")},
            order=[("created_at", True)],
            limit=10,
        )
        assert rows == [{"id": "a"}]
        assert client.called("in_") == [(("id", ["a", "b"]), {})]
        assert client.called("eq") == [(("status", "sent"), {}), (("total", "1.50"), {})]
        assert client.called("is_") == [(("due_date", "null"), {})]
        assert client.called("order") == [(("created_at",), {"desc": True})]
        assert client.called("limit") == [((10,), {})]

    def test_single_not_found_error_becomes_none(self):
        client = FakeSupabaseClient(error={"code": "PGRST116", "message": "JSON object requested, multiple (or no) rows returned"})
        store = SupabaseStore(client)
        with pytest.raises(StoreError) as exc_info:
            store.select("customers", {"id": "x"}, single=True)
        assert exc_info.value.code == NOT_FOUND_CODE
        assert isinstance(exc_info.value.__cause__, APIError)
        assert fetch_one(store, "customers", {"id": "x"}) is None
        assert client.called("single") == [((), {}), ((), {})]

    def test_single_without_data_becomes_none(self):
        store = SupabaseStore(FakeSupabaseClient(data=None))
        assert fetch_one(store, "customers", {"id": "x"}) is None

    def test_other_errors_keep_code(self):
        client = FakeSupabaseClient(error={"code": "23505", "message": "duplicate key value violates unique constraint"})
        store = SupabaseStore(client)
        with pytest.raises(StoreError) as exc_info:
            store.insert("invoices", {"invoice_number": "INV-2026-000001"})
        assert exc_info.value.code == "23505"
        assert exc_info.value.table == "invoices"
        assert "duplicate key" in str(exc_info.value)
        with pytest.raises(StoreError) as exc_info:
            fetch_one(store, "invoices", {"id": "x"})
        assert exc_info.value.code == "23505"

    def test_insert_serializes_values(self):
        client = FakeSupabaseClient(data=[{"id": "n1"}])
        store = SupabaseStore(client)
        row = store.insert("invoices", {"total": Decimal("12.20"), "issue_date": date(2026, 3, 15)})
        assert row == {"id": "n1"}
        assert client.called("insert") == [(({"total": "12.20", "issue_date": "2026-03-15"},), {})]

    def test_insert_many_returns_list(self):
        client = FakeSupabaseClient(data=[{"id": "r1"}, {"id": "r2"}])
        rows = SupabaseStore(client).insert("invoice_items", [{"position": 1}, {"position": 2}])
        assert rows == [{"id": "r1"}, {"id": "r2"}]

    def test_update_without_rows_is_not_found(self):
        store = SupabaseStore(FakeSupabaseClient(data=[]))
        with pytest.raises(StoreError) as exc_info:
            store.update("customers", {"name": "X"}, {"id": "x"})
        assert exc_info.value.is_not_found

    def test_count(self):
        client = FakeSupabaseClient(data=[{"id": "a"}], count=7)
        assert SupabaseStore(client).count("customers", {"is_active": True}) == 7
        assert client.called("select") == [(("id",), {"count": "exact"})]
        assert client.called("eq") == [(("is_active", True), {})]


class TestMigrazioni:
    def test_upgrade_matches_models(self):
        engine = create_engine(
            "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
        config = Config()
        config.set_main_option("script_location", str(MIGRATIONS_DIR))
        with engine.begin() as connection:
            config.attributes["connection"] = connection
            command.upgrade(config, "head")

        inspector = inspect(engine)
        for name, table in Base.metadata.tables.items():
            columns = {c["name"] for c in inspector.get_columns(name)}
            assert columns == set(table.columns.keys()), name
        assert "alembic_version" in inspector.get_table_names()


class TestListCache:
    def test_loads_once(self):
        calls = []

        def loader():
            calls.append(1)
            return [1, 2, 3]

        cache = ListCache(loader, name="numeri")
        assert not cache.is_loaded
        assert cache.get() == [1, 2, 3]
        assert cache.get() == [1, 2, 3]
        assert len(calls) == 1
        assert cache.is_loaded

    def test_refresh_overwrites(self):
        source = [["a"]]
        cache = ListCache(lambda: source[0])
        assert cache.get() == ["a"]
        source[0] = ["b", "c"]
        assert cache.get() == ["a"]
        assert cache.refresh() == ["b", "c"]
        assert cache.get() == ["b", "c"]

    def test_invalidate_reloads_on_next_get(self):
        calls = []
        cache = ListCache(lambda: calls.append(1) or list(calls))
        cache.get()
        cache.invalidate()
        assert not cache.is_loaded
        assert cache.get() == [1, 1]

    def test_returns_copies(self):
        cache = ListCache(lambda: [1])
        cache.get().append(2)
        assert cache.get() == [1]


class TestGuida:
    def _article(self, help_service, title, category=None, order_index=0, content="Testo"):
        return help_service.create_article(
            HelpArticleCreate(title=title, content=content, category=category, order_index=order_index)
        )

    def test_list_ordered_by_category_and_index(self, help_service):
        self._article(help_service, "Fatture 2", "Fatture", 2)
        self._article(help_service, "Clienti", "Clienti", 0)
        self._article(help_service, "Fatture 1", "Fatture", 1)
        assert [a["title"] for a in help_service.list_articles()] == ["Clienti", "Fatture 1", "Fatture 2"]
        assert [a["title"] for a in help_service.articles_by_category("Fatture")] == ["Fatture 1", "Fatture 2"]

    def test_categories_with_default(self, help_service):
        self._article(help_service, "Benvenuto")
        self._article(help_service, "Export XML", "Fatture")
        categories = {c.category: c.count for c in help_service.categories()}
        assert categories == {"Generale": 1, "Fatture": 1}

    def test_search(self, help_service):
        self._article(help_service, "Esportare l'XML", content="Formato FatturaPA")
        self._article(help_service, "Clienti", content="Anagrafica")
        assert [a["title"] for a in help_service.search_articles("fatturapa")] == ["Esportare l'XML"]
        assert len(help_service.search_articles("  ")) == 2

    def test_unpublish(self, help_service):
        article = self._article(help_service, "Da ritirare")
        assert help_service.get_article(article["id"])["title"] == "Da ritirare"
        assert help_service.delete_article(article["id"]) is True
        assert help_service.get_article(article["id"]) is None
        assert help_service.list_articles() == []
        assert help_service.delete_article("non-esiste") is False

    def test_update(self, help_service):
        article = self._article(help_service, "Titolo")
        updated = help_service.update_article(article["id"], HelpArticleUpdate(title="Nuovo titolo"))
        assert updated["title"] == "Nuovo titolo"
        assert help_service.update_article("non-esiste", HelpArticleUpdate(title="X")) is None

    def test_group_by_category_keeps_order(self):
        groups = group_by_category([
            {"id": "1", "title": "a", "content": "x", "category": "B"},
            {"id": "2", "title": "b", "content": "x", "category": None},
            {"id": "3", "title": "c", "content": "x", "category": "B"},
        ])
        assert [(g.category, g.count) for g in groups] == [("B", 2), ("Generale", 1)]
