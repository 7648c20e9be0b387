"""Contratto minimo dello store relazionale usato dai servizi di fatturazione"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

# Codice PostgREST per "nessuna riga" su una lettura .single()
NOT_FOUND_CODE = "PGRST116"

Row = Dict[str, Any]
Filters = Mapping[str, Any]
Ordering = Sequence[Tuple[str, bool]]  # (colonna, discendente)


class StoreError(RuntimeError):
    """Errore restituito dallo store, con il codice originale quando disponibile."""

    def __init__(self, message: str, code: Optional[str] = None, table: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.table = table

    @property
    def is_not_found(self) -> bool:
        return self.code == NOT_FOUND_CODE

    def __str__(self) -> str:
        prefix = f"[{self.code}] " if self.code else ""
        where = f" ({self.table})" if self.table else ""
        return f"{prefix}{self.message}{where}"


def not_found(table: str) -> StoreError:
    return StoreError("Nessuna riga trovata", code=NOT_FOUND_CODE, table=table)


class Store(ABC):
    """
    Operazioni per tabella indipendenti: nessuna transazione multi-tabella.

    I filtri sono uguaglianze colonna/valore; un valore lista o tupla indica
    appartenenza (IN). L'ordinamento è una sequenza di (colonna, discendente).
    """

    @abstractmethod
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
        ...

    @abstractmethod
    def insert(self, table: str, rows: Union[Row, Iterable[Row]]) -> Union[Row, List[Row]]:
        ...

    @abstractmethod
    def update(self, table: str, patch: Row, filters: Filters) -> Row:
        ...

    @abstractmethod
    def delete(self, table: str, filters: Filters) -> None:
        ...

    @abstractmethod
    def count(self, table: str, filters: Optional[Filters] = None) -> int:
        ...


def fetch_one(store: Store, table: str, filters: Filters) -> Optional[Row]:
    """Lettura di una singola riga: "nessuna riga" diventa None, ogni altro errore risale."""
    try:
        return store.select(table, filters, single=True)  # type: ignore[return-value]
    except StoreError as exc:
        if exc.is_not_found:
            return None
        raise
