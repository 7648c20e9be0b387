"""
HelpArticle model - contenuti della guida in linea
"""
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func, true

from app.core.database import Base
from ._ids import new_id


class HelpArticle(Base):
    __tablename__ = "help_articles"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    category = Column(String(120), index=True)
    order_index = Column(Integer, nullable=False, default=0)
    is_published = Column(Boolean, nullable=False, default=True, server_default=true(), index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<HelpArticle(id={self.id}, title='{self.title}')>"
