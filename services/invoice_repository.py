# services/invoice_repository.py
"""
Invoice/Payment Repository - persistence boundary for billing documents.

Invoices are inserted once and afterwards only touched through the explicit
commands below (payment metadata, status). Nothing here deletes rows.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from models import Invoice, InvoiceStatus, Payment, PaymentStatus

CORRECTION_MARKER = "-C"


def format_invoice_number(prefix: str, year: int, sequence: int) -> str:
     return f"{prefix}-{year}-{sequence:06d}"


class InvoiceRepository:
     """Queries and commands on the invoices table and the payment links to it."""

     @staticmethod
     def get(db: Session, invoice_id: int, lock: bool = False) -> Optional[Invoice]:
          query = db.query(Invoice).filter(Invoice.id == invoice_id)
          if lock:
               query = query.with_for_update().populate_existing()
          return query.first()

     @staticmethod
     def next_invoice_number(db: Session, prefix: str, year: int) -> str:
          """
          Next sequential number for the year: PREFIX-YYYY-NNNNNN.

          Correction numbers (original number plus -Cn) do not consume the
          sequence. A concurrent issuer racing for the same number is stopped
          by the unique constraint and surfaces as a retryable PersistenceError.
          """
          token = f"{prefix}-{year}-"
          rows = db.query(Invoice.invoice_number).filter(Invoice.invoice_number.like(f"{token}%")).all()

          max_suffix = 0
          for row in rows:
               number = (row[0] or "").strip()
               suffix = number[len(token):]
               if not suffix.isdigit():
                    continue
               max_suffix = max(max_suffix, int(suffix))
          return format_invoice_number(prefix, year, max_suffix + 1)

     @staticmethod
     def list_correction_ids(db: Session, original_id: int) -> list[int]:
          rows = (
               db.query(Invoice.id)
               .filter(Invoice.corrects_invoice_id == original_id)
               .order_by(Invoice.id)
               .all()
          )
          return [row[0] for row in rows]

     @staticmethod
     def is_superseded(db: Session, invoice: Invoice) -> bool:
          """
          True when a newer document replaces this one: a correction of it, or
          a later correction of the same original.
          """
          condition = Invoice.corrects_invoice_id == invoice.id
          if invoice.corrects_invoice_id is not None:
               condition = or_(
                    condition,
                    and_(Invoice.corrects_invoice_id == invoice.corrects_invoice_id, Invoice.id > invoice.id),
               )
          return db.query(Invoice.id).filter(condition).first() is not None

     @staticmethod
     def create(
          db: Session,
          invoice_number: str,
          client_company_id: int,
          provider_company_id: int,
          issue_date: date,
          due_date: date,
          subtotal: Decimal,
          tax_amount: Decimal,
          rental_id: Optional[int] = None,
          service_request_id: Optional[int] = None,
          corrects_invoice_id: Optional[int] = None,
          description: Optional[str] = None,
          notes: Optional[str] = None,
     ) -> Invoice:
          invoice = Invoice(
               invoice_number=invoice_number,
               client_company_id=client_company_id,
               provider_company_id=provider_company_id,
               rental_id=rental_id,
               service_request_id=service_request_id,
               corrects_invoice_id=corrects_invoice_id,
               issue_date=issue_date,
               due_date=due_date,
               subtotal=subtotal,
               tax_amount=tax_amount,
               total_amount=subtotal + tax_amount,
               paid_amount=Decimal("0.00"),
               status=InvoiceStatus.PENDING,
               description=description,
               notes=notes,
          )
          db.add(invoice)
          db.flush()  # Flush to get the ID without committing
          return invoice

     @staticmethod
     def apply_payment(
          db: Session,
          invoice: Invoice,
          paid_amount: Decimal,
          method: str,
          paid_on: date,
          reference: Optional[str],
          status: InvoiceStatus,
     ) -> None:
          invoice.paid_amount = paid_amount
          invoice.payment_method = method
          invoice.payment_date = paid_on
          invoice.payment_reference = reference
          invoice.status = status
          db.flush()

     @staticmethod
     def set_status(db: Session, invoice: Invoice, status: InvoiceStatus) -> None:
          invoice.status = status
          db.flush()

     @staticmethod
     def append_note(db: Session, invoice: Invoice, note: str) -> None:
          invoice.notes = (invoice.notes + "\n" if invoice.notes else "") + note
          db.flush()

     @staticmethod
     def list_overdue_ids(db: Session, today: date) -> list[int]:
          """Ids of PENDING invoices whose due date has passed."""
          rows = (
               db.query(Invoice.id)
               .filter(Invoice.status == InvoiceStatus.PENDING, Invoice.due_date < today)
               .order_by(Invoice.id)
               .all()
          )
          return [row[0] for row in rows]

     @staticmethod
     def list_for_client(db: Session, client_company_id: int, status: Optional[InvoiceStatus] = None) -> list[Invoice]:
          query = db.query(Invoice).filter(Invoice.client_company_id == client_company_id)
          if status is not None:
               query = query.filter(Invoice.status == status)
          return query.order_by(Invoice.due_date.desc(), Invoice.id.desc()).all()

     # ------------------------------------------------------------------
     # Scheduled rental payments
     # ------------------------------------------------------------------

     @staticmethod
     def get_payment(db: Session, payment_id: int, lock: bool = False) -> Optional[Payment]:
          query = db.query(Payment).filter(Payment.id == payment_id)
          if lock:
               query = query.with_for_update().populate_existing()
          return query.first()

     @staticmethod
     def list_billable_payment_ids(db: Session, due_on_or_before: date) -> list[int]:
          """PENDING scheduled payments (deposits included) due by the given date that no invoice bills yet."""
          rows = (
               db.query(Payment.id)
               .filter(
                    Payment.status == PaymentStatus.PENDING,
                    Payment.invoice_id.is_(None),
                    Payment.due_date <= due_on_or_before,
               )
               .order_by(Payment.due_date, Payment.id)
               .all()
          )
          return [row[0] for row in rows]

     @staticmethod
     def link_payment(db: Session, payment: Payment, invoice_id: int) -> None:
          payment.invoice_id = invoice_id
          db.flush()

     @staticmethod
     def move_linked_payments(db: Session, from_invoice_ids: list[int], to_invoice_id: int) -> int:
          """Re-point still-pending scheduled payments from superseded invoices to their correction."""
          payments = (
               db.query(Payment)
               .filter(Payment.invoice_id.in_(from_invoice_ids), Payment.status == PaymentStatus.PENDING)
               .all()
          )
          for payment in payments:
               payment.invoice_id = to_invoice_id
          db.flush()
          return len(payments)

     @staticmethod
     def release_linked_payments(db: Session, invoice_id: int) -> int:
          """Detach still-pending scheduled payments from a cancelled invoice so they can be billed again."""
          payments = (
               db.query(Payment)
               .filter(Payment.invoice_id == invoice_id, Payment.status == PaymentStatus.PENDING)
               .all()
          )
          for payment in payments:
               payment.invoice_id = None
          db.flush()
          return len(payments)

     @staticmethod
     def settle_linked_payments(db: Session, invoice_id: int, at: datetime) -> int:
          """Mark the scheduled payments billed by a settled invoice as PAID."""
          payments = (
               db.query(Payment)
               .filter(Payment.invoice_id == invoice_id, Payment.status == PaymentStatus.PENDING)
               .all()
          )
          for payment in payments:
               payment.status = PaymentStatus.PAID
               payment.paid_at = at
          db.flush()
          return len(payments)
