# services/__init__.py
from .directory import FixedClock, SqlCompanyDirectory, SqlEquipmentStore, SystemClock
from .overlap import Interval, find_conflicts, has_conflict, overlaps
from .schedule import add_months, billable_months, extension_schedule, generate_schedule
from .rental_repository import RentalRepository
from .invoice_repository import InvoiceRepository
from .rental_service import RentalService
from .invoice_service import InvoiceService
from .ledger_service import (
     compute_transaction_hash,
     get_previous_hash,
     append_payment_record,
     verify_ledger_entry,
     verify_full_chain,
     GENESIS_HASH,
)

__all__ = [
     "FixedClock",
     "SqlCompanyDirectory",
     "SqlEquipmentStore",
     "SystemClock",
     "Interval",
     "find_conflicts",
     "has_conflict",
     "overlaps",
     "add_months",
     "billable_months",
     "extension_schedule",
     "generate_schedule",
     "RentalRepository",
     "InvoiceRepository",
     "RentalService",
     "InvoiceService",
     "compute_transaction_hash",
     "get_previous_hash",
     "append_payment_record",
     "verify_ledger_entry",
     "verify_full_chain",
     "GENESIS_HASH",
]
