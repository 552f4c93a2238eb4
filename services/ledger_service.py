# services/ledger_service.py
"""
Payment Ledger Service - hash-chained, append-only record of money received.

When a payment is recorded against an invoice:
1. Compute SHA-256 over invoice_id + client_company_id + amount + method +
   paid_on + timestamp + previous_hash
2. Store the record with a reference to the previous record's hash for the
   same invoice (one chain per invoice, so the invoice row lock taken by
   InvoiceService.record_payment is enough to keep the chain linear)
3. Ledger records are append-only; no update/delete

Verification: recompute each hash and walk every invoice chain.
"""
import hashlib
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy import desc
from sqlalchemy.orm import Session

from models import Invoice, InvoicePayment


# Genesis block: no previous record
GENESIS_HASH = "0"


def _normalize_amount(amount: Decimal) -> str:
     """Normalize amount to canonical string for hashing (2 decimal places)."""
     return f"{Decimal(amount):.2f}"


def _normalize_timestamp(ts: datetime) -> str:
     """Normalize timestamp to ISO format for deterministic hashing."""
     return ts.replace(microsecond=0).isoformat()


def compute_transaction_hash(
     invoice_id: int,
     client_company_id: int,
     amount: Decimal,
     method: str,
     paid_on: date,
     timestamp: datetime,
     previous_hash: str,
) -> str:
     """
     Compute SHA-256 hash for a payment record.

     Input string: invoice_id|client|amount|method|paid_on|timestamp|previous_hash.
     Returns 64-char hex string.
     """
     payload = "|".join([
          str(invoice_id),
          str(client_company_id),
          _normalize_amount(amount),
          method,
          paid_on.isoformat(),
          _normalize_timestamp(timestamp),
          previous_hash,
     ])
     return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def get_previous_hash(db: Session, invoice_id: int) -> str:
     """transaction_hash of the invoice's latest ledger entry, or GENESIS_HASH if none."""
     last = (
          db.query(InvoicePayment)
          .filter(InvoicePayment.invoice_id == invoice_id)
          .order_by(desc(InvoicePayment.id))
          .limit(1)
          .first()
     )
     if last is None:
          return GENESIS_HASH
     return last.transaction_hash


def append_payment_record(
     db: Session,
     invoice: Invoice,
     amount: Decimal,
     method: str,
     paid_on: date,
     reference: Optional[str] = None,
     timestamp: Optional[datetime] = None,
) -> InvoicePayment:
     """
     Append an immutable payment record to the invoice's chain.

     Does NOT update or delete existing records (immutability). The caller
     must hold the invoice row lock.
     """
     if timestamp is None:
          timestamp = datetime.now(timezone.utc).replace(tzinfo=None)
     timestamp = timestamp.replace(microsecond=0)

     previous_hash = get_previous_hash(db, invoice.id)
     transaction_hash = compute_transaction_hash(
          invoice.id,
          invoice.client_company_id,
          amount,
          method,
          paid_on,
          timestamp,
          previous_hash,
     )

     entry = InvoicePayment(
          invoice_id=invoice.id,
          amount=amount,
          method=method,
          paid_on=paid_on,
          reference=reference,
          transaction_hash=transaction_hash,
          previous_hash=previous_hash,
          timestamp=timestamp,
     )
     db.add(entry)
     db.flush()
     return entry


def _recompute(entry: InvoicePayment, invoice: Invoice) -> str:
     return compute_transaction_hash(
          entry.invoice_id,
          invoice.client_company_id,
          entry.amount,
          entry.method,
          entry.paid_on,
          entry.timestamp,
          entry.previous_hash,
     )


def verify_ledger_entry(db: Session, ledger_id: int) -> Tuple[bool, str]:
     """
     Verify a ledger entry by recomputing the hash and checking its link.

     Returns:
          (success: bool, message: str)
     """
     entry = db.get(InvoicePayment, ledger_id)
     if entry is None:
          return False, "Ledger entry not found"

     invoice = db.get(Invoice, entry.invoice_id)
     if invoice is None:
          return False, "Invoice not found"

     computed = _recompute(entry, invoice)
     if computed != entry.transaction_hash:
          return False, f"Hash mismatch: stored={entry.transaction_hash[:16]}..., computed={computed[:16]}..."

     prev_entry = (
          db.query(InvoicePayment)
          .filter(InvoicePayment.invoice_id == entry.invoice_id, InvoicePayment.id < entry.id)
          .order_by(desc(InvoicePayment.id))
          .limit(1)
          .first()
     )
     expected_previous = prev_entry.transaction_hash if prev_entry else GENESIS_HASH
     if entry.previous_hash != expected_previous:
          return False, "Chain broken: previous_hash does not match previous record"

     return True, "Verification passed"


def verify_full_chain(db: Session) -> Tuple[bool, str, int]:
     """
     Verify every invoice chain from first to last entry.

     Returns:
          (all_valid: bool, message: str, entries_checked: int)
     """
     entries = db.query(InvoicePayment).order_by(InvoicePayment.invoice_id, InvoicePayment.id).all()
     if not entries:
          return True, "Chain is empty (no entries)", 0

     checked = 0
     current_invoice_id = None
     prev_hash = GENESIS_HASH
     invoice = None

     for entry in entries:
          if entry.invoice_id != current_invoice_id:
               current_invoice_id = entry.invoice_id
               prev_hash = GENESIS_HASH
               invoice = db.get(Invoice, entry.invoice_id)
               if invoice is None:
                    return False, f"Invoice not found for ledger id={entry.id}", checked
          if entry.previous_hash != prev_hash:
               return False, f"Chain broken at id={entry.id}: previous_hash mismatch", checked
          if _recompute(entry, invoice) != entry.transaction_hash:
               return False, f"Hash mismatch at ledger id={entry.id}", checked
          prev_hash = entry.transaction_hash
          checked += 1

     return True, "Full chain verification passed", checked
