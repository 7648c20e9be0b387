"""
Customer model - anagrafica clienti
"""
from sqlalchemy import Boolean, Column, DateTime, String, Text
from sqlalchemy.sql import func, true

from app.core.database import Base
from ._ids import new_id


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False, index=True)
    email = Column(String(150))
    phone = Column(String(50))
    address = Column(String(500))
    tax_code = Column(String(16))  # Codice fiscale
    vat_number = Column(String(11))  # Partita IVA
    notes = Column(Text)

    # Soft delete: i clienti con fatture vengono disattivati, non eliminati
    is_active = Column(Boolean, nullable=False, default=True, server_default=true(), index=True)
    deactivation_reason = Column(Text)
    deactivated_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.name}')>"
