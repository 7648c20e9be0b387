"""Cache read-through dell'ultima lista caricata, una per servizio"""
import logging
import threading
from typing import Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ListCache(Generic[T]):
    """
    Conserva l'ultima lista letta dallo store.

    Nessuna fusione o rilevamento di conflitti: ogni ricarica sovrascrive
    la precedente (vince l'ultima scrittura).
    """

    def __init__(self, loader: Callable[[], List[T]], name: str = "lista"):
        self._loader = loader
        self._items: Optional[List[T]] = None
        self._lock = threading.Lock()
        self.name = name

    @property
    def is_loaded(self) -> bool:
        return self._items is not None

    def get(self) -> List[T]:
        """Restituisce la lista in cache, caricandola se assente."""
        items = self._items
        if items is None:
            items = self.refresh()
        return list(items)

    def refresh(self) -> List[T]:
        items = list(self._loader())
        with self._lock:
            self._items = items
        logger.debug("Cache %s ricaricata (%d elementi)", self.name, len(items))
        return list(items)

    def invalidate(self) -> None:
        with self._lock:
            self._items = None
