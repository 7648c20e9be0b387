"""
Guida in linea endpoints
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from app.schemas.fatturazione.help_article import (
    HelpArticleCreate,
    HelpArticleResponse,
    HelpArticleUpdate,
    HelpCategory,
)
from app.services.fatturazione.help_service import HelpService

from .common import get_help_service

router = APIRouter(prefix="/help", tags=["fatturazione-guida"])


@router.get("/articles", response_model=List[HelpArticleResponse])
def list_articles(
    search: Optional[str] = None,
    category: Optional[str] = None,
    service: HelpService = Depends(get_help_service),
):
    if category:
        return service.articles_by_category(category)
    if search:
        return service.search_articles(search)
    return service.list_articles()


@router.get("/categories", response_model=List[HelpCategory])
def list_categories(service: HelpService = Depends(get_help_service)):
    return service.categories()


@router.get("/articles/{article_id}", response_model=HelpArticleResponse)
def get_article(article_id: str, service: HelpService = Depends(get_help_service)):
    article = service.get_article(article_id)
    if not article:
        raise HTTPException(status_code=404, detail="Articolo non trovato")
    return article


@router.post("/articles", response_model=HelpArticleResponse, status_code=status.HTTP_201_CREATED)
def create_article(data: HelpArticleCreate, service: HelpService = Depends(get_help_service)):
    return service.create_article(data)


@router.put("/articles/{article_id}", response_model=HelpArticleResponse)
def update_article(
    article_id: str,
    update: HelpArticleUpdate,
    service: HelpService = Depends(get_help_service),
):
    article = service.update_article(article_id, update)
    if not article:
        raise HTTPException(status_code=404, detail="Articolo non trovato")
    return article


@router.delete("/articles/{article_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_article(article_id: str, service: HelpService = Depends(get_help_service)):
    if not service.delete_article(article_id):
        raise HTTPException(status_code=404, detail="Articolo non trovato")
    return None
