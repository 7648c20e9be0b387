"""
Invoice model - testata fattura
"""
from sqlalchemy import Column, Date, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.sql import func

from app.core.database import Base
from ._ids import new_id


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(String(36), primary_key=True, default=new_id)
    invoice_number = Column(String(30), nullable=False, unique=True, index=True)  # INV-YYYY-NNNNNN
    # Nessun cascade: la cancellazione dei clienti è protetta a livello applicativo
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=False, index=True)
    issue_date = Column(Date, nullable=False, index=True)
    due_date = Column(Date)

    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)

    status = Column(String(20), nullable=False, default="draft", index=True)  # draft, sent, paid, overdue
    notes = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Invoice(id={self.id}, invoice_number='{self.invoice_number}')>"
