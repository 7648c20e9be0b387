"""Store su Supabase (PostgREST) tramite supabase-py"""
from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Union

from postgrest.exceptions import APIError
from supabase import Client

from .base import Filters, Ordering, Row, Store, StoreError, not_found

logger = logging.getLogger(__name__)


def _to_json(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _serialize(row: Row) -> Row:
    return {key: _to_json(value) for key, value in row.items()}


def _apply_filters(query, filters: Optional[Filters]):
    for column, value in (filters or {}).items():
        if isinstance(value, (list, tuple, set)):
            query = query.in_(column, [_to_json(v) for v in value])
        elif value is None:
            query = query.is_(column, "null")
        else:
            query = query.eq(column, _to_json(value))
    return query


def _store_error(exc: APIError, table: str) -> StoreError:
    return StoreError(exc.message or str(exc), code=exc.code, table=table)


class SupabaseStore(Store):
    def __init__(self, client: Client):
        self.client = client

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
        query = _apply_filters(self.client.table(table).select(columns), filters)
        for column, descending in order or ():
            query = query.order(column, desc=descending)
        if limit is not None:
            query = query.limit(limit)
        if single:
            query = query.single()
        try:
            response = query.execute()
        except APIError as exc:
            raise _store_error(exc, table) from exc
        if single and not response.data:
            raise not_found(table)
        return response.data if single else list(response.data or [])

    def insert(self, table: str, rows: Union[Row, Iterable[Row]]) -> Union[Row, List[Row]]:
        many = not isinstance(rows, dict)
        payload = [_serialize(r) for r in rows] if many else _serialize(rows)  # type: ignore[union-attr]
        try:
            response = self.client.table(table).insert(payload).execute()
        except APIError as exc:
            raise _store_error(exc, table) from exc
        data = list(response.data or [])
        if many:
            return data
        if not data:
            raise StoreError("Inserimento senza righe restituite", table=table)
        return data[0]

    def update(self, table: str, patch: Row, filters: Filters) -> Row:
        query = _apply_filters(self.client.table(table).update(_serialize(patch)), filters)
        try:
            response = query.execute()
        except APIError as exc:
            raise _store_error(exc, table) from exc
        if not response.data:
            raise not_found(table)
        return response.data[0]

    def delete(self, table: str, filters: Filters) -> None:
        query = _apply_filters(self.client.table(table).delete(), filters)
        try:
            query.execute()
        except APIError as exc:
            raise _store_error(exc, table) from exc

    def count(self, table: str, filters: Optional[Filters] = None) -> int:
        query = _apply_filters(self.client.table(table).select("id", count="exact"), filters)
        try:
            response = query.limit(1).execute()
        except APIError as exc:
            raise _store_error(exc, table) from exc
        return response.count or 0
