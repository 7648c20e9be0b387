"""Store su database SQL tramite SQLAlchemy Core, sulle tabelle dei modelli di fatturazione"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Union

from sqlalchemy import Table, delete, func, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.core.database import Base
import app.models.fatturazione  # noqa: F401  registra le tabelle nei metadata

from .base import Filters, Ordering, Row, Store, StoreError, not_found

logger = logging.getLogger(__name__)


class SqlStore(Store):
    """
    Ogni chiamata gira in una propria transazione: come per PostgREST, la
    singola operazione è atomica ma non esistono transazioni tra chiamate.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def _table(self, name: str) -> Table:
        try:
            return Base.metadata.tables[name]
        except KeyError as exc:
            raise StoreError(f"Tabella sconosciuta: {name}", code="42P01", table=name) from exc

    @staticmethod
    def _where(table: Table, filters: Optional[Filters]):
        clauses = []
        for column, value in (filters or {}).items():
            col = table.c[column]
            if isinstance(value, (list, tuple, set)):
                clauses.append(col.in_(list(value)))
            elif value is None:
                clauses.append(col.is_(None))
            else:
                clauses.append(col == value)
        return clauses

    def _error(self, exc: SQLAlchemyError, table: str) -> StoreError:
        orig = getattr(exc, "orig", None)
        code = getattr(orig, "pgcode", None) or getattr(orig, "sqlite_errorname", None)
        return StoreError(str(orig or exc), code=code, table=table)

    def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order: Optional[Ordering] = None,
        *,
        columns: str = "*",
        single: bool = False,
        limit: Optional[int] = None,
    ) -> Union[List[Row], Row]:
        tbl = self._table(table)
        if columns.strip() == "*":
            stmt = select(tbl)
        else:
            stmt = select(*[tbl.c[c.strip()] for c in columns.split(",")])
        stmt = stmt.where(*self._where(tbl, filters))
        for column, descending in order or ():
            stmt = stmt.order_by(tbl.c[column].desc() if descending else tbl.c[column].asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            with self.engine.connect() as conn:
                rows = [dict(r._mapping) for r in conn.execute(stmt)]
        except SQLAlchemyError as exc:
            raise self._error(exc, table) from exc
        if single:
            if len(rows) != 1:
                raise not_found(table) if not rows else StoreError(
                    "La lettura singola ha restituito più righe", code="PGRST116", table=table
                )
            return rows[0]
        return rows

    def insert(self, table: str, rows: Union[Row, Iterable[Row]]) -> Union[Row, List[Row]]:
        tbl = self._table(table)
        many = not isinstance(rows, dict)
        batch = list(rows) if many else [rows]  # type: ignore[list-item]
        ids = []
        try:
            with self.engine.begin() as conn:
                for row in batch:
                    result = conn.execute(insert(tbl).values(**row))
                    ids.append(result.inserted_primary_key[0])
                inserted = {
                    r._mapping["id"]: dict(r._mapping)
                    for r in conn.execute(select(tbl).where(tbl.c.id.in_(ids)))
                }
        except SQLAlchemyError as exc:
            raise self._error(exc, table) from exc
        out = [inserted[i] for i in ids]
        return out if many else out[0]

    def update(self, table: str, patch: Row, filters: Filters) -> Row:
        tbl = self._table(table)
        where = self._where(tbl, filters)
        try:
            with self.engine.begin() as conn:
                conn.execute(update(tbl).where(*where).values(**patch))
                rows = [dict(r._mapping) for r in conn.execute(select(tbl).where(*where))]
        except SQLAlchemyError as exc:
            raise self._error(exc, table) from exc
        if not rows:
            raise not_found(table)
        return rows[0]

    def delete(self, table: str, filters: Filters) -> None:
        tbl = self._table(table)
        try:
            with self.engine.begin() as conn:
                conn.execute(delete(tbl).where(*self._where(tbl, filters)))
        except SQLAlchemyError as exc:
            raise self._error(exc, table) from exc

    def count(self, table: str, filters: Optional[Filters] = None) -> int:
        tbl = self._table(table)
        stmt = select(func.count()).select_from(tbl).where(*self._where(tbl, filters))
        try:
            with self.engine.connect() as conn:
                return int(conn.execute(stmt).scalar() or 0)
        except SQLAlchemyError as exc:
            raise self._error(exc, table) from exc
