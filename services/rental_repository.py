# services/rental_repository.py
"""
Rental Repository - persistence boundary for rentals and their payments.

Every method works on the caller's session and only flushes; the caller
owns the transaction. Updates are explicit per field set.
"""
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from exceptions import ConflictError
from models import (
     BillingFrequency,
     PartialPeriodPolicy,
     Payment,
     PaymentStatus,
     Rental,
     RentalStatus,
)
from schemas.rental import ScheduledPayment
from services.overlap import Interval, find_conflicts

logger = logging.getLogger(__name__)

# Statuses whose intervals occupy the equipment
OCCUPYING_STATUSES = (RentalStatus.ACTIVE,)


class RentalRepository:
     """Queries and commands on the rentals and payments tables."""

     @staticmethod
     def get(db: Session, rental_id: int, lock: bool = False) -> Optional[Rental]:
          query = db.query(Rental).filter(Rental.id == rental_id)
          if lock:
               query = query.with_for_update().populate_existing()
          return query.first()

     @staticmethod
     def list_occupying(
          db: Session,
          equipment_id: int,
          exclude_rental_id: Optional[int] = None,
     ) -> list[Rental]:
          """ACTIVE rentals of one equipment unit, oldest start first."""
          query = db.query(Rental).filter(
               Rental.equipment_id == equipment_id,
               Rental.status.in_(OCCUPYING_STATUSES),
          )
          if exclude_rental_id is not None:
               query = query.filter(Rental.id != exclude_rental_id)
          return query.order_by(Rental.start_date, Rental.id).all()

     @staticmethod
     def list_for_equipment(db: Session, equipment_id: int) -> list[Rental]:
          return (
               db.query(Rental)
               .filter(Rental.equipment_id == equipment_id)
               .order_by(Rental.start_date, Rental.id)
               .all()
          )

     @staticmethod
     def ensure_free(
          db: Session,
          equipment_id: int,
          candidate: Interval,
          exclude_rental_id: Optional[int] = None,
     ) -> None:
          """
          Raise ConflictError if the candidate interval overlaps an ACTIVE
          rental of the equipment. Must run while the equipment row is locked.
          """
          occupying = RentalRepository.list_occupying(db, equipment_id, exclude_rental_id)
          conflicts = find_conflicts(
               [Interval(r.start_date, r.end_date) for r in occupying],
               candidate,
          )
          if conflicts:
               first = conflicts[0]
               logger.warning(
                    "Allocation conflict on equipment %s: %s..%s overlaps %s..%s",
                    equipment_id, candidate.start, candidate.end, first.start, first.end,
               )
               raise ConflictError(
                    f"Error: equipment {equipment_id} is already rented from "
                    f"{first.start.isoformat()} to {first.end.isoformat()}"
               )

     @staticmethod
     def create(
          db: Session,
          equipment_id: int,
          client_company_id: int,
          provider_company_id: int,
          start_date: date,
          end_date: date,
          monthly_rate: Decimal,
          total_amount: Decimal,
          deposit_amount: Decimal,
          billing_frequency: BillingFrequency,
          partial_period_policy: PartialPeriodPolicy,
          payment_terms: Optional[str] = None,
          contract_terms: Optional[str] = None,
          notes: Optional[str] = None,
     ) -> Rental:
          """Insert an ACTIVE rental after checking the equipment is free for its interval."""
          RentalRepository.ensure_free(db, equipment_id, Interval(start_date, end_date))
          rental = Rental(
               equipment_id=equipment_id,
               client_company_id=client_company_id,
               provider_company_id=provider_company_id,
               start_date=start_date,
               end_date=end_date,
               monthly_rate=monthly_rate,
               total_amount=total_amount,
               deposit_amount=deposit_amount,
               billing_frequency=billing_frequency,
               partial_period_policy=partial_period_policy,
               status=RentalStatus.ACTIVE,
               payment_terms=payment_terms,
               contract_terms=contract_terms,
               notes=notes,
          )
          db.add(rental)
          db.flush()  # Flush to get the ID without committing
          return rental

     @staticmethod
     def extend(db: Session, rental: Rental, new_end_date: date, total_amount: Decimal) -> Rental:
          """
          Move the end date after checking the added tail
          [current end, new end] against the other ACTIVE rentals of the unit.
          """
          RentalRepository.ensure_free(
               db,
               rental.equipment_id,
               Interval(rental.end_date, new_end_date),
               exclude_rental_id=rental.id,
          )
          rental.end_date = new_end_date
          rental.total_amount = total_amount
          db.flush()
          return rental

     @staticmethod
     def set_status(db: Session, rental: Rental, status: RentalStatus) -> None:
          rental.status = status
          db.flush()

     @staticmethod
     def set_amounts(db: Session, rental: Rental, total_amount: Decimal, deposit_amount: Decimal) -> None:
          rental.total_amount = total_amount
          rental.deposit_amount = deposit_amount
          db.flush()

     @staticmethod
     def append_note(db: Session, rental: Rental, note: str, at: datetime) -> None:
          line = f"[{at.isoformat(timespec='seconds')}] {note}"
          rental.notes = (rental.notes + "\n" if rental.notes else "") + line
          db.flush()

     # ------------------------------------------------------------------
     # Payments
     # ------------------------------------------------------------------

     @staticmethod
     def add_payments(db: Session, rental_id: int, schedule: Iterable[ScheduledPayment]) -> list[Payment]:
          payments = [
               Payment(
                    rental_id=rental_id,
                    payment_type=item.payment_type,
                    status=PaymentStatus.PENDING,
                    due_date=item.due_date,
                    amount=item.amount,
                    period_start=item.period_start,
                    period_end=item.period_end,
               )
               for item in schedule
          ]
          db.add_all(payments)
          db.flush()
          return payments

     @staticmethod
     def list_payments(db: Session, rental_id: int) -> list[Payment]:
          return (
               db.query(Payment)
               .filter(Payment.rental_id == rental_id)
               .order_by(Payment.due_date, Payment.id)
               .all()
          )

     @staticmethod
     def list_billed_invoice_ids(db: Session, rental_id: int, due_after: date) -> list[int]:
          """Invoices billing PENDING payments due strictly after `due_after`."""
          rows = (
               db.query(Payment.invoice_id)
               .filter(
                    Payment.rental_id == rental_id,
                    Payment.status == PaymentStatus.PENDING,
                    Payment.due_date > due_after,
                    Payment.invoice_id.is_not(None),
               )
               .distinct()
               .order_by(Payment.invoice_id)
               .all()
          )
          return [row[0] for row in rows]

     @staticmethod
     def cancel_pending_payments(db: Session, rental_id: int, due_after: date) -> int:
          """Cancel PENDING payments due strictly after `due_after`; returns how many."""
          pending = (
               db.query(Payment)
               .filter(
                    Payment.rental_id == rental_id,
                    Payment.status == PaymentStatus.PENDING,
                    Payment.due_date > due_after,
               )
               .all()
          )
          for payment in pending:
               payment.status = PaymentStatus.CANCELLED
          db.flush()
          return len(pending)

     # ------------------------------------------------------------------
     # Read model
     # ------------------------------------------------------------------

     @staticmethod
     def find_covering(db: Session, equipment_id: int, on: date) -> Optional[Rental]:
          """The ACTIVE rental whose interval contains `on`, if any."""
          return (
               db.query(Rental)
               .filter(
                    Rental.equipment_id == equipment_id,
                    Rental.status.in_(OCCUPYING_STATUSES),
                    Rental.start_date <= on,
                    Rental.end_date >= on,
               )
               .first()
          )

     @staticmethod
     def find_expiring(db: Session, provider_company_id: int, today: date, days_ahead: int = 30) -> list[Rental]:
          return (
               db.query(Rental)
               .filter(
                    Rental.provider_company_id == provider_company_id,
                    Rental.status == RentalStatus.ACTIVE,
                    Rental.end_date >= today,
                    Rental.end_date <= today + timedelta(days=days_ahead),
               )
               .order_by(Rental.end_date)
               .all()
          )

     @staticmethod
     def find_expired_ids(db: Session, today: date) -> list[int]:
          rows = (
               db.query(Rental.id)
               .filter(Rental.status == RentalStatus.ACTIVE, Rental.end_date < today)
               .order_by(Rental.id)
               .all()
          )
          return [row[0] for row in rows]
