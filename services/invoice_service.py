# services/invoice_service.py
"""
Invoice Service - Business logic layer for invoice operations.

This service handles invoice issuing, payment recording, overdue marking,
cancellation and corrections.

State machine: PENDING -> PAID, PENDING -> OVERDUE -> PAID,
PENDING -> CANCELLED. OVERDUE is set by a time-based check, never by the
client. Issued invoices are never edited or deleted; a correction is a new
invoice pointing at the original.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.orm import Session, sessionmaker

import config
from database import SessionLocal, session_scope
from exceptions import ConflictError, NotFoundError, ValidationError
from models import CompanyType, Invoice, InvoiceStatus, PaymentStatus, PaymentType
from schemas.invoice import (
     ClientBalance,
     InvoiceCorrection,
     InvoiceCreate,
     InvoiceList,
     InvoicePaymentRecord,
     InvoiceRecord,
     PaymentReceipt,
)
from services.directory import Clock, CompanyDirectory, SqlCompanyDirectory, SystemClock
from services.invoice_repository import CORRECTION_MARKER, InvoiceRepository
from services.ledger_service import append_payment_record, verify_full_chain, verify_ledger_entry
from services.rental_repository import RentalRepository
from services.schedule import to_money

logger = logging.getLogger(__name__)

PAYABLE_STATUSES = (InvoiceStatus.PENDING, InvoiceStatus.OVERDUE)

PAYMENT_DESCRIPTIONS = {
     PaymentType.DEPOSIT: "Security deposit",
     PaymentType.RENTAL: "Equipment rental",
     PaymentType.RENTAL_EXTENSION: "Equipment rental extension",
}


def superseded_ids(invoices: list[InvoiceRecord]) -> set[int]:
     """Ids of invoices replaced by a correction among `invoices`."""
     replaced = set()
     latest = {}
     for inv in invoices:
          if inv.corrects_invoice_id is None:
               continue
          replaced.add(inv.corrects_invoice_id)
          previous = latest.get(inv.corrects_invoice_id)
          if previous is not None:
               replaced.add(min(previous, inv.id))
          latest[inv.corrects_invoice_id] = max(previous or 0, inv.id)
     return replaced


class InvoiceService:
     """Service class for invoice-related business logic."""

     def __init__(
          self,
          session_factory: Optional[sessionmaker] = None,
          clock: Optional[Clock] = None,
          company_directory: Optional[CompanyDirectory] = None,
          tax_rate: Optional[Decimal] = None,
          due_days: Optional[int] = None,
          number_prefix: Optional[str] = None,
     ) -> None:
          self.session_factory = session_factory or SessionLocal
          self.clock = clock or SystemClock()
          self.companies = company_directory or SqlCompanyDirectory()
          self.tax_rate = Decimal(str(config.INVOICE_TAX_RATE if tax_rate is None else tax_rate))
          self.due_days = config.INVOICE_DUE_DAYS if due_days is None else due_days
          self.number_prefix = number_prefix or config.INVOICE_NUMBER_PREFIX

     # ------------------------------------------------------------------
     # Issuing
     # ------------------------------------------------------------------

     def create_invoice(self, data: InvoiceCreate) -> InvoiceRecord:
          """
          Issue an invoice with the next number of the issue year.

          Raises:
               NotFoundError: client, provider or rental does not exist
               ValidationError: due date before issue date, or rental belongs to another pair
          """
          with session_scope(self.session_factory) as db:
               invoice = self._issue(db, data)
               result = InvoiceRecord.model_validate(invoice)

          logger.info("Invoice %s issued: client=%s total=%s", result.invoice_number, result.client_company_id, result.total_amount)
          return result

     def issue_for_payment(self, payment_id: int) -> InvoiceRecord:
          """
          Bill one scheduled rental payment.

          The invoice is due on the payment's due date (or issue date +
          INVOICE_DUE_DAYS if that is later) and taxed at the configured rate.
          """
          with session_scope(self.session_factory) as db:
               invoice = self._issue_for_payment(db, payment_id)
               result = InvoiceRecord.model_validate(invoice)

          logger.info("Invoice %s issued for payment %s", result.invoice_number, payment_id)
          return result

     def issue_due_invoices(self, horizon_days: int = 0) -> list[InvoiceRecord]:
          """
          Bill every PENDING scheduled payment due within horizon_days that
          has no invoice yet. Each payment is billed in its own transaction.
          """
          cutoff = self.clock.today() + timedelta(days=horizon_days)
          with session_scope(self.session_factory) as db:
               payment_ids = InvoiceRepository.list_billable_payment_ids(db, cutoff)

          issued = []
          for payment_id in payment_ids:
               try:
                    issued.append(self.issue_for_payment(payment_id))
               except ConflictError as exc:
                    logger.info("Skipping payment %s: %s", payment_id, exc)
          return issued

     # ------------------------------------------------------------------
     # Transitions
     # ------------------------------------------------------------------

     def record_payment(
          self,
          invoice_id: int,
          amount,
          method: str,
          paid_on=None,
          reference: Optional[str] = None,
     ) -> PaymentReceipt:
          """
          Record money received against an invoice.

          Allowed while PENDING or OVERDUE. Partial payments keep the status;
          once the paid amount reaches the total the invoice becomes PAID and
          the scheduled payments it bills are settled.

          Raises:
               ValidationError: amount <= 0, above the remaining balance, or missing method
               NotFoundError: unknown invoice
               ConflictError: invoice is PAID or CANCELLED, or replaced by a correction
          """
          amount = to_money(amount)
          if amount <= 0:
               raise ValidationError("Error: payment amount must be greater than zero")
          method = (method or "").strip()
          if not method:
               raise ValidationError("Error: payment method is required")
          paid_on = paid_on or self.clock.today()
          if isinstance(paid_on, datetime):
               paid_on = paid_on.date()

          with session_scope(self.session_factory) as db:
               invoice = self._get(db, invoice_id, lock=True)
               if invoice.status not in PAYABLE_STATUSES:
                    logger.warning("Rejected payment on invoice %s in status %s", invoice_id, invoice.status.value)
                    raise ConflictError(f"Error: invoice {invoice.invoice_number} is {invoice.status.value}")

               if InvoiceRepository.is_superseded(db, invoice):
                    logger.warning("Rejected payment on superseded invoice %s", invoice_id)
                    raise ConflictError(f"Error: invoice {invoice.invoice_number} has been replaced by a correction")

               remaining = invoice.total_amount - invoice.paid_amount
               if amount > remaining:
                    raise ValidationError(
                         f"Error: payment {amount} exceeds remaining balance {remaining} "
                         f"of invoice {invoice.invoice_number}"
                    )

               paid_amount = invoice.paid_amount + amount
               status = InvoiceStatus.PAID if paid_amount >= invoice.total_amount else invoice.status
               InvoiceRepository.apply_payment(db, invoice, paid_amount, method, paid_on, reference, status)
               entry = append_payment_record(
                    db,
                    invoice,
                    amount=amount,
                    method=method,
                    paid_on=paid_on,
                    reference=reference,
                    timestamp=self.clock.now(),
               )
               if status is InvoiceStatus.PAID:
                    InvoiceRepository.settle_linked_payments(db, invoice.id, self.clock.now())
               result = PaymentReceipt(
                    invoice=InvoiceRecord.model_validate(invoice),
                    entry=InvoicePaymentRecord.model_validate(entry),
               )

          logger.info(
               "Payment of %s recorded on invoice %s (%s): paid=%s status=%s",
               amount, result.invoice.invoice_number, method, result.invoice.paid_amount, result.invoice.status.value,
          )
          return result

     def mark_overdue(self, invoice_id: int) -> InvoiceRecord:
          """
          Move a PENDING invoice past its due date to OVERDUE.

          Idempotent: any other status, a due date not yet passed, or an
          invoice replaced by a correction leaves it untouched.
          """
          with session_scope(self.session_factory) as db:
               invoice = self._get(db, invoice_id, lock=True)
               changed = self._mark_overdue(db, invoice)
               result = InvoiceRecord.model_validate(invoice)

          if changed:
               logger.info("Invoice %s marked OVERDUE", result.invoice_number)
          return result

     def mark_overdue_invoices(self) -> int:
          """
          Mark all pending invoices past their due date as OVERDUE.

          This should be called by a scheduled job daily.

          Returns:
               Number of invoices marked as overdue
          """
          with session_scope(self.session_factory) as db:
               candidate_ids = InvoiceRepository.list_overdue_ids(db, self.clock.today())

          count = 0
          for invoice_id in candidate_ids:
               with session_scope(self.session_factory) as db:
                    invoice = self._get(db, invoice_id, lock=True)
                    if self._mark_overdue(db, invoice):
                         count += 1

          logger.info("Overdue sweep: %d invoices marked OVERDUE", count)
          return count

     def cancel(self, invoice_id: int, reason: Optional[str] = None) -> InvoiceRecord:
          """
          Cancel an invoice. Only permitted while PENDING and nothing has been paid.

          The scheduled payments it billed are released so they can be invoiced again.
          """
          with session_scope(self.session_factory) as db:
               invoice = self._get(db, invoice_id, lock=True)
               if invoice.status is not InvoiceStatus.PENDING or invoice.paid_amount > 0:
                    logger.warning("Rejected cancellation of invoice %s in status %s", invoice_id, invoice.status.value)
                    raise ConflictError(
                         f"Error: invoice {invoice.invoice_number} cannot be cancelled "
                         f"(status {invoice.status.value}, paid {invoice.paid_amount})"
                    )
               InvoiceRepository.set_status(db, invoice, InvoiceStatus.CANCELLED)
               InvoiceRepository.release_linked_payments(db, invoice.id)
               if reason:
                    InvoiceRepository.append_note(db, invoice, f"Cancelled: {reason}")
               result = InvoiceRecord.model_validate(invoice)

          logger.info("Invoice %s cancelled", result.invoice_number)
          return result

     def create_correction(self, original_invoice_id: int, correction: InvoiceCorrection) -> InvoiceRecord:
          """
          Issue a correction invoice for an existing one.

          The new invoice copies the original's parties and links, takes the
          corrected amounts, is numbered <original>-C<n> and points back via
          corrects_invoice_id. The original is left exactly as it was but is
          superseded: scheduled payments still billed by it (or by an earlier
          correction) move to the new invoice. Superseded invoices cannot be
          paid and are skipped by the overdue check and the client balance.
          """
          with session_scope(self.session_factory) as db:
               original = self._get(db, original_invoice_id)
               earlier_ids = InvoiceRepository.list_correction_ids(db, original.id)
               sequence = len(earlier_ids) + 1
               subtotal = to_money(correction.subtotal if correction.subtotal is not None else original.subtotal)
               if correction.tax_amount is not None:
                    tax_amount = to_money(correction.tax_amount)
               elif correction.subtotal is not None:
                    tax_amount = self._tax_for(subtotal, original)
               else:
                    tax_amount = to_money(original.tax_amount)
               issue_date = self.clock.today()
               due_date = correction.due_date or max(original.due_date, issue_date)

               invoice = InvoiceRepository.create(
                    db,
                    invoice_number=f"{original.invoice_number}{CORRECTION_MARKER}{sequence}",
                    client_company_id=original.client_company_id,
                    provider_company_id=original.provider_company_id,
                    rental_id=original.rental_id,
                    service_request_id=original.service_request_id,
                    corrects_invoice_id=original.id,
                    issue_date=issue_date,
                    due_date=due_date,
                    subtotal=subtotal,
                    tax_amount=tax_amount,
                    description=correction.description or original.description,
                    notes=f"Correction of {original.invoice_number}: {correction.reason}",
               )
               InvoiceRepository.move_linked_payments(db, [original.id] + earlier_ids, invoice.id)
               result = InvoiceRecord.model_validate(invoice)

          logger.info("Invoice %s issued as correction of %s", result.invoice_number, original_invoice_id)
          return result

     # ------------------------------------------------------------------
     # Queries
     # ------------------------------------------------------------------

     def get_invoice(self, invoice_id: int) -> InvoiceRecord:
          with session_scope(self.session_factory) as db:
               return InvoiceRecord.model_validate(self._get(db, invoice_id))

     def list_client_invoices(self, client_company_id: int, status: Optional[InvoiceStatus] = None) -> InvoiceList:
          with session_scope(self.session_factory) as db:
               invoices = InvoiceRepository.list_for_client(db, client_company_id, status)
               return InvoiceList(
                    invoices=[InvoiceRecord.model_validate(inv) for inv in invoices],
                    total=len(invoices),
               )

     def calculate_client_balance(self, client_company_id: int) -> ClientBalance:
          """
          Calculate the total balance owed by a client company.

          Partially paid invoices count for their remaining amount; invoices
          replaced by a correction are not owed.
          """
          invoices = self.list_client_invoices(client_company_id).invoices
          superseded = superseded_ids(invoices)

          owed = [inv for inv in invoices if inv.id not in superseded]
          pending = [inv for inv in owed if inv.status is InvoiceStatus.PENDING]
          overdue = [inv for inv in owed if inv.status is InvoiceStatus.OVERDUE]
          paid = [inv for inv in invoices if inv.status is InvoiceStatus.PAID]
          zero = Decimal("0.00")

          pending_amount = sum((inv.remaining_amount for inv in pending), zero)
          overdue_amount = sum((inv.remaining_amount for inv in overdue), zero)
          return ClientBalance(
               client_company_id=client_company_id,
               total_owed=pending_amount + overdue_amount,
               pending_amount=pending_amount,
               overdue_amount=overdue_amount,
               paid_amount=sum((inv.paid_amount for inv in invoices), zero),
               total_invoices=len(invoices),
               pending_count=len(pending),
               overdue_count=len(overdue),
               paid_count=len(paid),
          )

     def verify_ledger_entry(self, ledger_id: int) -> Tuple[bool, str]:
          with session_scope(self.session_factory) as db:
               return verify_ledger_entry(db, ledger_id)

     def verify_ledger(self) -> Tuple[bool, str, int]:
          """Walk every invoice's payment chain; logs an error if any link is broken."""
          with session_scope(self.session_factory) as db:
               valid, message, checked = verify_full_chain(db)
          if not valid:
               logger.error("Ledger verification failed after %d entries: %s", checked, message)
          return valid, message, checked

     # ------------------------------------------------------------------
     # Helpers
     # ------------------------------------------------------------------

     @staticmethod
     def _get(db: Session, invoice_id: int, lock: bool = False) -> Invoice:
          invoice = InvoiceRepository.get(db, invoice_id, lock=lock)
          if invoice is None:
               raise NotFoundError(f"Error: invoice {invoice_id} not found")
          return invoice

     def _mark_overdue(self, db: Session, invoice: Invoice) -> bool:
          if invoice.status is not InvoiceStatus.PENDING or invoice.due_date >= self.clock.today():
               return False
          if InvoiceRepository.is_superseded(db, invoice):
               return False
          InvoiceRepository.set_status(db, invoice, InvoiceStatus.OVERDUE)
          return True

     def _tax_for(self, subtotal: Decimal, original: Invoice) -> Decimal:
          """Tax at the original invoice's effective rate, or the configured rate if it had none."""
          if original.subtotal and original.tax_amount:
               return to_money(subtotal * original.tax_amount / original.subtotal)
          return to_money(subtotal * self.tax_rate)

     def _require_company(self, db: Session, company_id: int, company_type: CompanyType) -> None:
          company = self.companies.get_by_id(db, company_id)
          label = company_type.value.lower()
          if company is None:
               raise NotFoundError(f"Error: {label} company {company_id} not found")
          if company.company_type is not company_type:
               raise ValidationError(f"Error: company {company_id} is not a {label} company")

     def _issue(self, db: Session, data: InvoiceCreate) -> Invoice:
          self._require_company(db, data.client_company_id, CompanyType.CLIENT)
          self._require_company(db, data.provider_company_id, CompanyType.PROVIDER)
          if data.rental_id is not None:
               rental = RentalRepository.get(db, data.rental_id)
               if rental is None:
                    raise NotFoundError(f"Error: rental {data.rental_id} not found")
               if (rental.client_company_id, rental.provider_company_id) != (
                    data.client_company_id, data.provider_company_id
               ):
                    raise ValidationError(f"Error: rental {data.rental_id} does not belong to this client and provider")

          issue_date = data.issue_date or self.clock.today()
          due_date = data.due_date or issue_date + timedelta(days=self.due_days)
          if due_date < issue_date:
               raise ValidationError("Error: due date cannot be before issue date")

          return InvoiceRepository.create(
               db,
               invoice_number=InvoiceRepository.next_invoice_number(db, self.number_prefix, issue_date.year),
               client_company_id=data.client_company_id,
               provider_company_id=data.provider_company_id,
               rental_id=data.rental_id,
               service_request_id=data.service_request_id,
               issue_date=issue_date,
               due_date=due_date,
               subtotal=to_money(data.subtotal),
               tax_amount=to_money(data.tax_amount),
               description=data.description,
               notes=data.notes,
          )

     def _issue_for_payment(self, db: Session, payment_id: int) -> Invoice:
          payment = InvoiceRepository.get_payment(db, payment_id, lock=True)
          if payment is None:
               raise NotFoundError(f"Error: payment {payment_id} not found")
          if payment.status is not PaymentStatus.PENDING:
               raise ConflictError(f"Error: payment {payment_id} is {payment.status.value}")
          if payment.invoice_id is not None:
               raise ConflictError(f"Error: payment {payment_id} is already billed by invoice {payment.invoice_id}")

          rental = payment.rental
          issue_date = self.clock.today()
          due_date = max(payment.due_date, issue_date + timedelta(days=self.due_days))
          # deposits are not taxed
          tax_amount = Decimal("0.00") if payment.payment_type is PaymentType.DEPOSIT else to_money(payment.amount * self.tax_rate)
          description = PAYMENT_DESCRIPTIONS[payment.payment_type]
          if payment.period_start is not None:
               description = f"{description} {payment.period_start.isoformat()} to {payment.period_end.isoformat()}"

          invoice = self._issue(db, InvoiceCreate(
               client_company_id=rental.client_company_id,
               provider_company_id=rental.provider_company_id,
               rental_id=rental.id,
               subtotal=payment.amount,
               tax_amount=tax_amount,
               issue_date=issue_date,
               due_date=due_date,
               description=description,
          ))
          InvoiceRepository.link_payment(db, payment, invoice.id)
          return invoice
