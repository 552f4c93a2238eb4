# models/rental.py
import enum
from sqlalchemy import CheckConstraint, Column, Date, Enum, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from .base import Base, TimestampMixin


class RentalStatus(str, enum.Enum):
     """Rental contract state. COMPLETED and CANCELLED are terminal."""
     ACTIVE = "ACTIVE"
     COMPLETED = "COMPLETED"
     CANCELLED = "CANCELLED"


class BillingFrequency(str, enum.Enum):
     """Billing cadence of the rental payment schedule."""
     MONTHLY = "MONTHLY"
     QUARTERLY = "QUARTERLY"
     SEMIANNUAL = "SEMIANNUAL"
     ANNUAL = "ANNUAL"

     @property
     def months(self) -> int:
          return _FREQUENCY_MONTHS[self]


_FREQUENCY_MONTHS = {
     BillingFrequency.MONTHLY: 1,
     BillingFrequency.QUARTERLY: 3,
     BillingFrequency.SEMIANNUAL: 6,
     BillingFrequency.ANNUAL: 12,
}


class PartialPeriodPolicy(str, enum.Enum):
     """How the last, shorter-than-cadence billing period is charged."""
     PRORATED = "PRORATED"
     FULL_PERIOD = "FULL_PERIOD"


class Rental(TimestampMixin, Base):
     """
     Rental model - exclusive allocation of one equipment unit to one client.

     start_date and end_date are calendar days; end_date is the last day of
     the rental. Rentals are never deleted, only moved to a terminal status,
     and notes are append-only.
     """
     __tablename__ = "rentals"
     __table_args__ = (
          Index("ix_rentals_equipment_status", "equipment_id", "status"),
          CheckConstraint("end_date > start_date", name="ck_rentals_dates"),
          CheckConstraint("monthly_rate > 0", name="ck_rentals_monthly_rate_positive"),
     )

     id = Column(Integer, primary_key=True, autoincrement=True)

     # Foreign keys
     equipment_id = Column(Integer, ForeignKey("equipment.id", ondelete="RESTRICT"), nullable=False)
     client_company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
     provider_company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)

     # Rental period
     start_date = Column(Date, nullable=False)
     end_date = Column(Date, nullable=False, index=True)

     # Pricing
     monthly_rate = Column(Numeric(12, 2), nullable=False)
     total_amount = Column(Numeric(12, 2), nullable=False)
     deposit_amount = Column(Numeric(12, 2), default=0, nullable=False)
     billing_frequency = Column(
          Enum(BillingFrequency, name="billing_frequency", create_constraint=True),
          default=BillingFrequency.MONTHLY,
          nullable=False
     )
     partial_period_policy = Column(
          Enum(PartialPeriodPolicy, name="partial_period_policy", create_constraint=True),
          default=PartialPeriodPolicy.PRORATED,
          nullable=False
     )

     status = Column(
          Enum(RentalStatus, name="rental_status", create_constraint=True),
          default=RentalStatus.ACTIVE,
          nullable=False
     )

     # Terms
     payment_terms = Column(String(255), nullable=True)
     contract_terms = Column(Text, nullable=True)
     notes = Column(Text, nullable=True)

     # Relationships
     equipment = relationship("Equipment", back_populates="rentals")
     payments = relationship("Payment", back_populates="rental", order_by="Payment.due_date")

     def __repr__(self):
          return (
               f"<Rental(id={self.id}, equipment_id={self.equipment_id}, "
               f"{self.start_date}..{self.end_date}, status='{self.status.value}')>"
          )
