# models/invoice.py
import enum
from sqlalchemy import CheckConstraint, Column, Integer, String, Text, Numeric, Date, Enum, ForeignKey
from sqlalchemy.orm import relationship
from .base import Base, TimestampMixin


class InvoiceStatus(str, enum.Enum):
     """Enumeration for invoice payment status."""
     PENDING = "PENDING"
     PAID = "PAID"
     OVERDUE = "OVERDUE"
     CANCELLED = "CANCELLED"


class Invoice(TimestampMixin, Base):
     """
     Invoice model - billing documents issued to client companies.

     Usually derived from a scheduled rental payment or a completed service
     request. Issued invoices are never edited or deleted: corrections are
     new invoices pointing back through corrects_invoice_id.
     """
     __tablename__ = "invoices"
     __table_args__ = (
          CheckConstraint("paid_amount <= total_amount", name="ck_invoices_paid_within_total"),
     )

     id = Column(Integer, primary_key=True, autoincrement=True)
     invoice_number = Column(String(40), nullable=False, unique=True)

     # Foreign keys
     client_company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
     provider_company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
     rental_id = Column(Integer, ForeignKey("rentals.id"), nullable=True, index=True)
     service_request_id = Column(Integer, nullable=True)
     corrects_invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=True, index=True)

     # Invoice details
     issue_date = Column(Date, nullable=False)
     due_date = Column(Date, nullable=False, index=True)
     subtotal = Column(Numeric(12, 2), nullable=False)
     tax_amount = Column(Numeric(12, 2), default=0, nullable=False)
     total_amount = Column(Numeric(12, 2), nullable=False)
     status = Column(
          Enum(InvoiceStatus, name="invoice_status", create_constraint=True),
          default=InvoiceStatus.PENDING,
          nullable=False,
          index=True
     )
     description = Column(Text, nullable=True)
     notes = Column(Text, nullable=True)

     # Payment metadata
     paid_amount = Column(Numeric(12, 2), default=0, nullable=False)
     payment_method = Column(String(50), nullable=True)
     payment_date = Column(Date, nullable=True)
     payment_reference = Column(String(255), nullable=True)

     # Relationships
     ledger_entries = relationship(
          "InvoicePayment",
          back_populates="invoice",
          order_by="InvoicePayment.id"
     )

     def __repr__(self):
          return (
               f"<Invoice(id={self.id}, number='{self.invoice_number}', total={self.total_amount}, "
               f"status='{self.status.value}', due_date={self.due_date})>"
          )
