# schemas/rental.py
"""
Immutable value records for rentals and their payment schedule.

Services never hand ORM objects to callers; they return these frozen
snapshots built with model_validate(orm_obj).
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models.payment import PaymentStatus, PaymentType
from models.rental import BillingFrequency, PartialPeriodPolicy, RentalStatus


class RentalTerms(BaseModel):
     """The part of a rental the schedule generator needs."""
     start_date: date
     end_date: date
     monthly_rate: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)

     model_config = ConfigDict(frozen=True, from_attributes=True)


class ScheduledPayment(BaseModel):
     """A payment obligation produced by the schedule generator, not yet persisted."""
     payment_type: PaymentType
     due_date: date
     amount: Decimal
     period_start: Optional[date] = None
     period_end: Optional[date] = None

     model_config = ConfigDict(frozen=True, from_attributes=True)


class PaymentRecord(BaseModel):
     """Snapshot of a persisted payment."""
     id: int
     rental_id: int
     invoice_id: Optional[int] = None
     payment_type: PaymentType
     status: PaymentStatus
     due_date: date
     amount: Decimal
     period_start: Optional[date] = None
     period_end: Optional[date] = None
     paid_at: Optional[datetime] = None

     model_config = ConfigDict(frozen=True, from_attributes=True)


class RentalRecord(BaseModel):
     """Snapshot of a rental contract."""
     id: int
     equipment_id: int
     client_company_id: int
     provider_company_id: int
     start_date: date
     end_date: date
     monthly_rate: Decimal
     total_amount: Decimal
     deposit_amount: Decimal
     billing_frequency: BillingFrequency
     partial_period_policy: PartialPeriodPolicy
     status: RentalStatus
     payment_terms: Optional[str] = None
     contract_terms: Optional[str] = None
     notes: Optional[str] = None

     model_config = ConfigDict(
          frozen=True,
          from_attributes=True,
          json_schema_extra={
               "example": {
                    "id": 1,
                    "equipment_id": 7,
                    "client_company_id": 3,
                    "provider_company_id": 1,
                    "start_date": "2024-01-01",
                    "end_date": "2024-06-01",
                    "monthly_rate": 1000.00,
                    "total_amount": 6000.00,
                    "deposit_amount": 0.00,
                    "billing_frequency": "MONTHLY",
                    "partial_period_policy": "PRORATED",
                    "status": "ACTIVE"
               }
          }
     )


class RentalWithPayments(BaseModel):
     """Result of create/extend/cancel: the rental plus its current schedule."""
     rental: RentalRecord
     payments: list[PaymentRecord]

     model_config = ConfigDict(frozen=True)

     @property
     def outstanding_total(self) -> Decimal:
          """Sum of the non-cancelled payments (total_amount + deposit_amount)."""
          return sum(
               (p.amount for p in self.payments if p.status != PaymentStatus.CANCELLED),
               Decimal("0.00"),
          )
