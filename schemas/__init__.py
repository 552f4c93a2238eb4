# schemas/__init__.py
from .rental import (
     RentalTerms,
     ScheduledPayment,
     PaymentRecord,
     RentalRecord,
     RentalWithPayments,
)
from .invoice import (
     InvoiceCreate,
     InvoiceCorrection,
     InvoiceRecord,
     InvoicePaymentRecord,
     PaymentReceipt,
     ClientBalance,
     InvoiceList,
)

__all__ = [
     "RentalTerms",
     "ScheduledPayment",
     "PaymentRecord",
     "RentalRecord",
     "RentalWithPayments",
     "InvoiceCreate",
     "InvoiceCorrection",
     "InvoiceRecord",
     "InvoicePaymentRecord",
     "PaymentReceipt",
     "ClientBalance",
     "InvoiceList",
]
