# models/invoice_payment.py
"""
InvoicePayment model - append-only, hash-chained record of money received.

Each record stores a SHA-256 hash of
(invoice_id + client_company_id + amount + method + paid_on + timestamp)
and the previous record's hash, forming a chain. An invoice settled in
several partial payments has several records. Records are never updated or
deleted by the application.
"""
from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import relationship
from .base import Base


class InvoicePayment(Base):
     """Immutable ledger entry created by InvoiceService.record_payment."""
     __tablename__ = "invoice_payments"

     id = Column(Integer, primary_key=True, autoincrement=True)
     invoice_id = Column(
          Integer,
          ForeignKey("invoices.id", ondelete="RESTRICT"),  # Prevent delete if ledger exists
          nullable=False,
          index=True
     )
     amount = Column(Numeric(12, 2), nullable=False)
     method = Column(String(50), nullable=False)
     paid_on = Column(Date, nullable=False)
     reference = Column(String(255), nullable=True)
     transaction_hash = Column(String(64), nullable=False, unique=True, index=True)  # SHA-256 hex length
     previous_hash = Column(String(64), nullable=False, index=True)  # "0" for genesis
     timestamp = Column(DateTime, server_default=func.now(), nullable=False)

     # Relationships
     invoice = relationship("Invoice", back_populates="ledger_entries")

     def __repr__(self):
          return f"<InvoicePayment(id={self.id}, invoice_id={self.invoice_id}, hash={self.transaction_hash[:16]}...)>"
