# models/payment.py
import enum
from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, Integer, Numeric
from sqlalchemy.orm import relationship
from .base import Base, TimestampMixin


class PaymentType(str, enum.Enum):
     DEPOSIT = "DEPOSIT"
     RENTAL = "RENTAL"
     RENTAL_EXTENSION = "RENTAL_EXTENSION"


class PaymentStatus(str, enum.Enum):
     PENDING = "PENDING"
     PAID = "PAID"
     CANCELLED = "CANCELLED"


class Payment(TimestampMixin, Base):
     """
     Payment model - one scheduled obligation of a rental.

     period_start/period_end record the billed span for rental payments
     (both NULL for deposits) so an extension can tell which periods are
     already billed.
     """
     __tablename__ = "payments"

     id = Column(Integer, primary_key=True, autoincrement=True)
     rental_id = Column(
          Integer,
          ForeignKey("rentals.id", ondelete="RESTRICT"),
          nullable=False,
          index=True
     )
     invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=True, index=True)

     payment_type = Column(
          Enum(PaymentType, name="payment_type", create_constraint=True),
          nullable=False
     )
     status = Column(
          Enum(PaymentStatus, name="payment_status", create_constraint=True),
          default=PaymentStatus.PENDING,
          nullable=False,
          index=True
     )
     due_date = Column(Date, nullable=False, index=True)
     amount = Column(Numeric(12, 2), nullable=False)
     period_start = Column(Date, nullable=True)
     period_end = Column(Date, nullable=True)
     paid_at = Column(DateTime, nullable=True)

     # Relationships
     rental = relationship("Rental", back_populates="payments")

     def __repr__(self):
          return (
               f"<Payment(id={self.id}, rental_id={self.rental_id}, type='{self.payment_type.value}', "
               f"amount={self.amount}, due_date={self.due_date}, status='{self.status.value}')>"
          )
