"""Servizio articoli della guida in linea"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from app.schemas.fatturazione.help_article import HelpArticleCreate, HelpArticleUpdate, HelpCategory
from app.services.store import Store, fetch_one

from .cache import ListCache

logger = logging.getLogger(__name__)

HELP_ARTICLES = "help_articles"
DEFAULT_CATEGORY = "Generale"


def group_by_category(articles: Iterable[Mapping[str, Any]]) -> List[HelpCategory]:
    """Raggruppa mantenendo l'ordine di arrivo; senza categoria finisce in "Generale"."""
    groups: Dict[str, List[Mapping[str, Any]]] = {}
    for article in articles:
        groups.setdefault(article.get("category") or DEFAULT_CATEGORY, []).append(article)
    return [
        HelpCategory(category=name, count=len(items), articles=items)
        for name, items in groups.items()
    ]


class HelpService:
    def __init__(self, store: Store):
        self.store = store
        self.cache: ListCache[Dict[str, Any]] = ListCache(self._load, name=HELP_ARTICLES)

    def _load(self) -> List[Dict[str, Any]]:
        return self.store.select(
            HELP_ARTICLES,
            {"is_published": True},
            order=[("category", False), ("order_index", False)],
        )

    def list_articles(self) -> List[Dict[str, Any]]:
        return self.cache.get()

    def articles_by_category(self, category: str) -> List[Dict[str, Any]]:
        return [
            a for a in self.cache.get()
            if (a.get("category") or DEFAULT_CATEGORY) == category
        ]

    def get_article(self, article_id: str) -> Optional[Dict[str, Any]]:
        return fetch_one(self.store, HELP_ARTICLES, {"id": article_id, "is_published": True})

    def search_articles(self, term: str) -> List[Dict[str, Any]]:
        query = (term or "").strip().lower()
        if not query:
            return self.cache.get()
        return [
            a for a in self.cache.get()
            if query in (a.get("title") or "").lower() or query in (a.get("content") or "").lower()
        ]

    def categories(self) -> List[HelpCategory]:
        return group_by_category(self.cache.get())

    def create_article(self, data: HelpArticleCreate) -> Dict[str, Any]:
        row = self.store.insert(HELP_ARTICLES, data.model_dump())
        self.cache.refresh()
        return row

    def update_article(self, article_id: str, data: HelpArticleUpdate) -> Optional[Dict[str, Any]]:
        if fetch_one(self.store, HELP_ARTICLES, {"id": article_id}) is None:
            return None
        patch = data.model_dump(exclude_unset=True)
        patch["updated_at"] = datetime.now(timezone.utc)
        row = self.store.update(HELP_ARTICLES, patch, {"id": article_id})
        self.cache.refresh()
        return row

    def delete_article(self, article_id: str) -> bool:
        """Ritira l'articolo dalla pubblicazione, la riga resta."""
        if fetch_one(self.store, HELP_ARTICLES, {"id": article_id}) is None:
            return False
        self.store.update(
            HELP_ARTICLES,
            {"is_published": False, "updated_at": datetime.now(timezone.utc)},
            {"id": article_id},
        )
        logger.info("Articolo guida %s ritirato", article_id)
        self.cache.refresh()
        return True
