# models/__init__.py
from .base import Base
from .company import Company, CompanyType
from .equipment import Equipment, EquipmentStatus
from .rental import Rental, RentalStatus, BillingFrequency, PartialPeriodPolicy
from .payment import Payment, PaymentStatus, PaymentType
from .invoice import Invoice, InvoiceStatus
from .invoice_payment import InvoicePayment

__all__ = [
     "Base",
     "Company",
     "CompanyType",
     "Equipment",
     "EquipmentStatus",
     "Rental",
     "RentalStatus",
     "BillingFrequency",
     "PartialPeriodPolicy",
     "Payment",
     "PaymentStatus",
     "PaymentType",
     "Invoice",
     "InvoiceStatus",
     "InvoicePayment",
]
