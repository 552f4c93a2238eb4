# services/rental_service.py
"""
Rental Lifecycle Service - business logic for rental contracts.

Orchestrates validation, the overlap check, rental persistence, payment
schedule generation and the equipment status flip. Each operation is one
transaction: it either commits everything or leaves no trace.

State machine: ACTIVE -> COMPLETED, ACTIVE -> CANCELLED (both terminal).
"""
import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session, sessionmaker

import config
from database import SessionLocal, session_scope
from exceptions import ConflictError, NotFoundError, ValidationError
from models import (
     BillingFrequency,
     Company,
     CompanyType,
     EquipmentStatus,
     InvoiceStatus,
     Rental,
     RentalStatus,
)
from schemas.rental import PaymentRecord, RentalRecord, RentalTerms, RentalWithPayments
from services.directory import (
     Clock,
     CompanyDirectory,
     EquipmentStore,
     SqlCompanyDirectory,
     SqlEquipmentStore,
     SystemClock,
)
from services.invoice_repository import InvoiceRepository
from services.rental_repository import RentalRepository
from services.schedule import (
     deposit_total,
     extension_schedule,
     generate_schedule,
     parse_frequency,
     parse_policy,
     rental_total,
     to_money,
)

logger = logging.getLogger(__name__)

UNRENTABLE_STATUSES = (EquipmentStatus.MAINTENANCE, EquipmentStatus.OUT_OF_SERVICE)


def _as_date(value, field: str) -> date:
     """Coerce a date, datetime or 'YYYY-MM-DD' string to a date."""
     if isinstance(value, datetime):
          return value.date()
     if isinstance(value, date):
          return value
     if isinstance(value, str):
          try:
               return date.fromisoformat(value.split("T", 1)[0].strip())
          except ValueError:
               pass
     raise ValidationError(f"Error: invalid {field} {value!r} (expected YYYY-MM-DD)")


def _snapshot(rental: Rental, payments) -> RentalWithPayments:
     return RentalWithPayments(
          rental=RentalRecord.model_validate(rental),
          payments=[PaymentRecord.model_validate(p) for p in payments],
     )


class RentalService:
     """
     Service class for rental contract operations.

     Collaborators are injected so the service can run against another
     equipment store, company directory or clock.
     """

     def __init__(
          self,
          session_factory: Optional[sessionmaker] = None,
          clock: Optional[Clock] = None,
          equipment_store: Optional[EquipmentStore] = None,
          company_directory: Optional[CompanyDirectory] = None,
          partial_period_policy=None,
     ) -> None:
          self.session_factory = session_factory or SessionLocal
          self.clock = clock or SystemClock()
          self.equipment = equipment_store or SqlEquipmentStore()
          self.companies = company_directory or SqlCompanyDirectory()
          self.partial_period_policy = parse_policy(
               partial_period_policy or config.BILLING_PARTIAL_PERIOD_POLICY
          )

     # ------------------------------------------------------------------
     # Commands
     # ------------------------------------------------------------------

     def create(
          self,
          equipment_id: int,
          client_id: int,
          provider_id: int,
          start_date,
          end_date,
          monthly_rate,
          deposit_amount=0,
          frequency=BillingFrequency.MONTHLY,
          payment_terms: Optional[str] = None,
          contract_terms: Optional[str] = None,
          notes: Optional[str] = None,
     ) -> RentalWithPayments:
          """
          Allocate an equipment unit to a client and schedule its payments.

          Raises:
               ValidationError: bad dates, rate, deposit or frequency
               NotFoundError: unknown equipment (or not owned by the provider),
                    provider or client
               ConflictError: equipment unavailable or already rented in the interval
          """
          start = _as_date(start_date, "start date")
          end = _as_date(end_date, "end date")
          if end <= start:
               raise ValidationError("Error: end date must be after start date")
          rate = to_money(monthly_rate)
          if rate <= 0:
               raise ValidationError("Error: monthly rate must be greater than zero")
          deposit = to_money(deposit_amount or 0)
          if deposit < 0:
               raise ValidationError("Error: deposit amount cannot be negative")
          frequency = parse_frequency(frequency)
          policy = self.partial_period_policy

          schedule = generate_schedule(
               RentalTerms(start_date=start, end_date=end, monthly_rate=rate),
               frequency,
               deposit,
               policy,
          )
          total = rental_total(schedule)

          with session_scope(self.session_factory) as db:
               # serialization point: held until commit
               equipment = self.equipment.get_by_id(db, equipment_id, lock=True)
               if equipment is None or equipment.owner_company_id != provider_id:
                    raise NotFoundError(f"Error: equipment {equipment_id} not found for provider {provider_id}")
               self._require_company(db, provider_id, CompanyType.PROVIDER)
               self._require_company(db, client_id, CompanyType.CLIENT)
               if equipment.status in UNRENTABLE_STATUSES:
                    logger.warning("Rejected rental of equipment %s in status %s", equipment_id, equipment.status.value)
                    raise ConflictError(f"Error: equipment {equipment_id} is {equipment.status.value}")

               rental = RentalRepository.create(
                    db,
                    equipment_id=equipment_id,
                    client_company_id=client_id,
                    provider_company_id=provider_id,
                    start_date=start,
                    end_date=end,
                    monthly_rate=rate,
                    total_amount=total,
                    deposit_amount=deposit,
                    billing_frequency=frequency,
                    partial_period_policy=policy,
                    payment_terms=payment_terms,
                    contract_terms=contract_terms,
                    notes=notes,
               )
               payments = RentalRepository.add_payments(db, rental.id, schedule)
               self._sync_equipment(db, equipment_id)
               result = _snapshot(rental, payments)

          logger.info(
               "Rental %s created: equipment=%s client=%s %s..%s total=%s deposit=%s payments=%d",
               result.rental.id, equipment_id, client_id, start, end, total, deposit, len(result.payments),
          )
          return result

     def extend(self, rental_id: int, new_end_date) -> RentalWithPayments:
          """
          Push the end date out and bill the added tail at the same cadence.

          Raises:
               ValidationError: new end date not after the current one
               NotFoundError: unknown rental
               ConflictError: rental not ACTIVE, or the tail collides with another rental
          """
          new_end = _as_date(new_end_date, "end date")

          with session_scope(self.session_factory) as db:
               rental = self._lock_rental(db, rental_id)
               if new_end <= rental.end_date:
                    raise ValidationError(
                         f"Error: new end date {new_end} must be after current end date {rental.end_date}"
                    )
               self._require_active(rental, "extend")

               old_end = rental.end_date
               existing = RentalRepository.list_payments(db, rental.id)
               extension = extension_schedule(
                    rental,
                    existing,
                    new_end,
                    rental.billing_frequency,
                    rental.partial_period_policy,
               )
               new_total = to_money(rental.total_amount + rental_total(extension))
               RentalRepository.extend(db, rental, new_end, new_total)
               RentalRepository.add_payments(db, rental.id, extension)
               RentalRepository.append_note(
                    db, rental, f"Extended from {old_end.isoformat()} to {new_end.isoformat()}", self.clock.now()
               )
               result = _snapshot(rental, RentalRepository.list_payments(db, rental.id))

          logger.info(
               "Rental %s extended: %s -> %s, %d payments added, total=%s",
               rental_id, old_end, new_end, len(extension), result.rental.total_amount,
          )
          return result

     def cancel(self, rental_id: int, reason: Optional[str] = None) -> RentalWithPayments:
          """
          Terminate an ACTIVE rental early.

          PENDING payments due after today are cancelled; payments already due
          stay owed. Invoices already issued for the cancelled payments are
          cancelled with them. total_amount and deposit_amount are
          recalculated from the surviving payments. The equipment is released
          when no other ACTIVE rental holds it.

          Raises:
               ConflictError: rental not ACTIVE, or one of those invoices has
                    already received money
          """
          with session_scope(self.session_factory) as db:
               rental = self._lock_rental(db, rental_id)
               self._require_active(rental, "cancel")

               today = self.clock.today()
               self._cancel_billed_invoices(db, rental, today)
               cancelled = RentalRepository.cancel_pending_payments(db, rental.id, due_after=today)
               payments = RentalRepository.list_payments(db, rental.id)
               RentalRepository.set_amounts(db, rental, rental_total(payments), deposit_total(payments))
               RentalRepository.set_status(db, rental, RentalStatus.CANCELLED)
               note = f"Cancelled: {reason}" if reason else "Cancelled"
               RentalRepository.append_note(
                    db, rental, f"{note} ({cancelled} pending payments cancelled)", self.clock.now()
               )
               self._sync_equipment(db, rental.equipment_id)
               result = _snapshot(rental, payments)

          logger.info("Rental %s cancelled: %d pending payments cancelled", rental_id, cancelled)
          return result

     terminate = cancel

     def complete(self, rental_id: int) -> RentalWithPayments:
          """Close an ACTIVE rental whose end date has passed and release the equipment."""
          with session_scope(self.session_factory) as db:
               rental = self._lock_rental(db, rental_id)
               self._require_active(rental, "complete")
               today = self.clock.today()
               if rental.end_date >= today:
                    raise ConflictError(f"Error: rental {rental_id} runs until {rental.end_date}; it cannot be completed yet")

               RentalRepository.set_status(db, rental, RentalStatus.COMPLETED)
               RentalRepository.append_note(db, rental, "Completed", self.clock.now())
               self._sync_equipment(db, rental.equipment_id)
               result = _snapshot(rental, RentalRepository.list_payments(db, rental.id))

          logger.info("Rental %s completed", rental_id)
          return result

     def complete_expired(self) -> list[int]:
          """
          Complete every ACTIVE rental whose end date has passed.

          Meant for a periodic job. Each rental is closed in its own
          transaction; one that changed state in the meantime is skipped.
          """
          with session_scope(self.session_factory) as db:
               expired_ids = RentalRepository.find_expired_ids(db, self.clock.today())

          completed = []
          for rental_id in expired_ids:
               try:
                    self.complete(rental_id)
               except ConflictError as exc:
                    logger.info("Skipping rental %s: %s", rental_id, exc)
                    continue
               completed.append(rental_id)
          return completed

     # ------------------------------------------------------------------
     # Queries
     # ------------------------------------------------------------------

     def get_rental(self, rental_id: int) -> RentalWithPayments:
          with session_scope(self.session_factory) as db:
               rental = RentalRepository.get(db, rental_id)
               if rental is None:
                    raise NotFoundError(f"Error: rental {rental_id} not found")
               return _snapshot(rental, RentalRepository.list_payments(db, rental.id))

     def list_payments(self, rental_id: int) -> list[PaymentRecord]:
          return self.get_rental(rental_id).payments

     def list_rentals_for_equipment(self, equipment_id: int) -> list[RentalRecord]:
          with session_scope(self.session_factory) as db:
               return [RentalRecord.model_validate(r) for r in RentalRepository.list_for_equipment(db, equipment_id)]

     def is_rented_by(self, equipment_id: int, client_id: int, on: Optional[date] = None) -> bool:
          """Whether the client holds the ACTIVE rental covering the given day (default today)."""
          with session_scope(self.session_factory) as db:
               rental = RentalRepository.find_covering(db, equipment_id, on or self.clock.today())
               return rental is not None and rental.client_company_id == client_id

     def find_expiring(self, provider_id: int, days_ahead: int = 30) -> list[RentalRecord]:
          with session_scope(self.session_factory) as db:
               rentals = RentalRepository.find_expiring(db, provider_id, self.clock.today(), days_ahead)
               return [RentalRecord.model_validate(r) for r in rentals]

     # ------------------------------------------------------------------
     # Helpers
     # ------------------------------------------------------------------

     def _require_company(self, db: Session, company_id: int, company_type: CompanyType) -> Company:
          company = self.companies.get_by_id(db, company_id)
          label = company_type.value.lower()
          if company is None or not company.is_active:
               raise NotFoundError(f"Error: {label} company {company_id} not found")
          if company.company_type is not company_type:
               raise ValidationError(f"Error: company {company_id} is not a {label} company")
          return company

     def _lock_rental(self, db: Session, rental_id: int) -> Rental:
          """Lock the rental's equipment row, then the rental row (always in that order)."""
          rental = RentalRepository.get(db, rental_id)
          if rental is None:
               raise NotFoundError(f"Error: rental {rental_id} not found")
          self.equipment.get_by_id(db, rental.equipment_id, lock=True)
          return RentalRepository.get(db, rental_id, lock=True)

     @staticmethod
     def _cancel_billed_invoices(db: Session, rental: Rental, due_after: date) -> None:
          # invoice rows are locked after the equipment and rental rows
          for invoice_id in RentalRepository.list_billed_invoice_ids(db, rental.id, due_after):
               invoice = InvoiceRepository.get(db, invoice_id, lock=True)
               if invoice.status is not InvoiceStatus.PENDING or invoice.paid_amount > 0:
                    logger.warning(
                         "Rejected cancellation of rental %s: invoice %s is %s with %s paid",
                         rental.id, invoice.invoice_number, invoice.status.value, invoice.paid_amount,
                    )
                    raise ConflictError(
                         f"Error: invoice {invoice.invoice_number} for rental {rental.id} has already "
                         f"received payments; settle or correct it before cancelling the rental"
                    )
               InvoiceRepository.set_status(db, invoice, InvoiceStatus.CANCELLED)
               InvoiceRepository.append_note(db, invoice, f"Cancelled with rental {rental.id}")
               logger.info("Invoice %s cancelled with rental %s", invoice.invoice_number, rental.id)

     @staticmethod
     def _require_active(rental: Rental, action: str) -> None:
          if rental.status is not RentalStatus.ACTIVE:
               logger.warning("Rejected %s of rental %s in status %s", action, rental.id, rental.status.value)
               raise ConflictError(f"Error: cannot {action} a rental that is {rental.status.value}")

     def _sync_equipment(self, db: Session, equipment_id: int) -> None:
          """
          Align equipment status with its ACTIVE rentals: RENTED to the client
          of the rental covering today (or the next one) while any remain,
          AVAILABLE once none do. MAINTENANCE/OUT_OF_SERVICE are left alone.
          """
          equipment = self.equipment.get_by_id(db, equipment_id)
          if equipment.status in UNRENTABLE_STATUSES:
               return
          occupying = RentalRepository.list_occupying(db, equipment_id)
          if not occupying:
               if equipment.status is EquipmentStatus.RENTED:
                    self.equipment.set_status(db, equipment_id, EquipmentStatus.AVAILABLE)
               return
          today = self.clock.today()
          current = next((r for r in occupying if r.start_date <= today <= r.end_date), occupying[0])
          self.equipment.set_status(
               db, equipment_id, EquipmentStatus.RENTED, current_client_id=current.client_company_id
          )
