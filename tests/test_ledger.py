"""
Hash-chained payment ledger: one chain per invoice, verifiable and
tamper-evident.
"""
from datetime import date, datetime
from decimal import Decimal

from database import session_scope
from models import InvoicePayment
from schemas.invoice import InvoiceCreate
from services.ledger_service import GENESIS_HASH, compute_transaction_hash


def issue(service, seed, subtotal="1000.00"):
    return service.create_invoice(InvoiceCreate(
        client_company_id=seed.client_id,
        provider_company_id=seed.provider_id,
        subtotal=Decimal(subtotal),
    ))


def test_hash_is_deterministic_sha256():
    args = (1, 3, Decimal("100"), "CASH", date(2024, 1, 5), datetime(2024, 1, 5, 10, 0, 0, 123456), GENESIS_HASH)

    digest = compute_transaction_hash(*args)

    assert len(digest) == 64
    assert digest == compute_transaction_hash(1, 3, Decimal("100.00"), "CASH", date(2024, 1, 5),
                                              datetime(2024, 1, 5, 10, 0, 0), GENESIS_HASH)
    assert digest != compute_transaction_hash(1, 3, Decimal("100.01"), *args[3:])


def test_partial_payments_form_a_chain(invoice_service, seed):
    invoice = issue(invoice_service, seed)

    first = invoice_service.record_payment(invoice.id, "300", "CASH").entry
    second = invoice_service.record_payment(invoice.id, "700", "TRANSFER", reference="TRX-9").entry

    assert first.previous_hash == GENESIS_HASH
    assert second.previous_hash == first.transaction_hash
    assert second.reference == "TRX-9"
    assert invoice_service.verify_ledger_entry(first.id) == (True, "Verification passed")
    assert invoice_service.verify_ledger_entry(second.id)[0]
    assert invoice_service.verify_ledger() == (True, "Full chain verification passed", 2)


def test_each_invoice_starts_its_own_chain(invoice_service, seed):
    a = issue(invoice_service, seed)
    b = issue(invoice_service, seed)

    entry_a = invoice_service.record_payment(a.id, "100", "CASH").entry
    entry_b = invoice_service.record_payment(b.id, "100", "CASH").entry

    assert entry_a.previous_hash == GENESIS_HASH
    assert entry_b.previous_hash == GENESIS_HASH
    assert entry_a.transaction_hash != entry_b.transaction_hash
    assert invoice_service.verify_ledger()[0]


def test_tampering_is_detected(invoice_service, seed, session_factory):
    invoice = issue(invoice_service, seed)
    entry = invoice_service.record_payment(invoice.id, "250", "CASH").entry
    invoice_service.record_payment(invoice.id, "250", "CASH")

    with session_scope(session_factory) as db:
        db.get(InvoicePayment, entry.id).amount = Decimal("25.00")

    valid, message = invoice_service.verify_ledger_entry(entry.id)
    assert not valid
    assert message.startswith("Hash mismatch")

    valid, message, checked = invoice_service.verify_ledger()
    assert not valid
    assert checked == 0


def test_empty_and_missing(invoice_service, seed):
    assert invoice_service.verify_ledger() == (True, "Chain is empty (no entries)", 0)
    assert invoice_service.verify_ledger_entry(42) == (False, "Ledger entry not found")
