"""Schemi Pydantic per HelpArticle"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class HelpArticleBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    category: Optional[str] = Field(None, max_length=120)
    order_index: int = 0
    is_published: bool = True


class HelpArticleCreate(HelpArticleBase):
    pass


class HelpArticleUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, max_length=120)
    order_index: Optional[int] = None
    is_published: Optional[bool] = None


class HelpArticleResponse(HelpArticleBase):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class HelpCategory(BaseModel):
    category: str
    count: int
    articles: List[HelpArticleResponse] = Field(default_factory=list)
