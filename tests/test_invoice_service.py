"""
Invoice lifecycle: numbering, payments (full and partial), overdue marking,
cancellation, corrections and billing of scheduled rental payments.
"""
from datetime import date, datetime
from decimal import Decimal

import pytest

from database import session_scope
from exceptions import ConflictError, NotFoundError, ValidationError
from models import InvoiceStatus, Payment, PaymentStatus, PaymentType, RentalStatus
from schemas.invoice import InvoiceCorrection, InvoiceCreate


def issue(service, seed, subtotal="1000.00", tax="190.00", **kwargs):
    return service.create_invoice(InvoiceCreate(
        client_company_id=kwargs.pop("client_company_id", seed.client_id),
        provider_company_id=seed.provider_id,
        subtotal=Decimal(subtotal),
        tax_amount=Decimal(tax),
        **kwargs,
    ))


class TestCreateInvoice:
    def test_numbers_are_sequential_per_year(self, invoice_service, seed):
        first = issue(invoice_service, seed)
        second = issue(invoice_service, seed)
        last_year = issue(invoice_service, seed, issue_date=date(2023, 12, 20))

        assert first.invoice_number == "FAC-2024-000001"
        assert second.invoice_number == "FAC-2024-000002"
        assert last_year.invoice_number == "FAC-2023-000001"

    def test_defaults(self, invoice_service, seed):
        invoice = issue(invoice_service, seed)

        assert invoice.status is InvoiceStatus.PENDING
        assert invoice.issue_date == date(2024, 1, 1)
        assert invoice.due_date == date(2024, 1, 31)
        assert invoice.total_amount == Decimal("1190.00")
        assert invoice.paid_amount == Decimal("0.00")
        assert invoice.remaining_amount == Decimal("1190.00")

    def test_unknown_client(self, invoice_service, seed):
        with pytest.raises(NotFoundError):
            issue(invoice_service, seed, client_company_id=999)

    def test_due_date_before_issue_date(self, invoice_service, seed):
        with pytest.raises(ValidationError):
            issue(invoice_service, seed, issue_date=date(2024, 2, 1), due_date=date(2024, 1, 15))

    def test_rental_must_belong_to_the_parties(self, invoice_service, rental_service, seed):
        rental = rental_service.create(
            seed.equipment_id, seed.client_2_id, seed.provider_id, date(2024, 1, 1), date(2024, 6, 1), "1000",
        ).rental

        with pytest.raises(ValidationError):
            issue(invoice_service, seed, rental_id=rental.id)
        with pytest.raises(NotFoundError):
            issue(invoice_service, seed, rental_id=777)


class TestRecordPayment:
    def test_overdue_then_paid_then_closed(self, invoice_service, seed):
        invoice = issue(
            invoice_service, seed, subtotal="500.00", tax="0.00",
            issue_date=date(2023, 12, 1), due_date=date(2023, 12, 31),
        )

        overdue = invoice_service.mark_overdue(invoice.id)
        assert overdue.status is InvoiceStatus.OVERDUE
        assert invoice_service.mark_overdue(invoice.id) == overdue

        receipt = invoice_service.record_payment(invoice.id, "500", "TRANSFER", reference="TRX-1")
        assert receipt.invoice.status is InvoiceStatus.PAID
        assert receipt.invoice.payment_method == "TRANSFER"
        assert receipt.invoice.payment_date == date(2024, 1, 1)
        assert receipt.invoice.remaining_amount == Decimal("0.00")
        assert receipt.entry.amount == Decimal("500.00")

        with pytest.raises(ConflictError):
            invoice_service.record_payment(invoice.id, "1", "TRANSFER")
        assert invoice_service.mark_overdue(invoice.id).status is InvoiceStatus.PAID

    def test_partial_payments(self, invoice_service, seed):
        invoice = issue(invoice_service, seed)

        first = invoice_service.record_payment(invoice.id, "400", "CASH", paid_on=date(2024, 1, 5))
        assert first.invoice.status is InvoiceStatus.PENDING
        assert first.invoice.paid_amount == Decimal("400.00")
        assert first.invoice.remaining_amount == Decimal("790.00")

        with pytest.raises(ValidationError):
            invoice_service.record_payment(invoice.id, "800", "CASH")

        final = invoice_service.record_payment(invoice.id, "790", "CASH", paid_on=datetime(2024, 1, 9, 15, 30))
        assert final.invoice.status is InvoiceStatus.PAID
        assert final.invoice.paid_amount == Decimal("1190.00")
        assert final.invoice.payment_date == date(2024, 1, 9)

    @pytest.mark.parametrize("amount, method", [("0", "CASH"), ("-5", "CASH"), ("10", "  ")])
    def test_rejects_bad_payment_input(self, invoice_service, seed, amount, method):
        invoice = issue(invoice_service, seed)
        with pytest.raises(ValidationError):
            invoice_service.record_payment(invoice.id, amount, method)
        assert invoice_service.get_invoice(invoice.id).paid_amount == Decimal("0.00")

    def test_unknown_invoice(self, invoice_service, seed):
        with pytest.raises(NotFoundError):
            invoice_service.record_payment(321, "10", "CASH")

    def test_partially_paid_overdue_invoice_stays_overdue(self, invoice_service, seed, clock):
        invoice = issue(invoice_service, seed)
        clock.at = datetime(2024, 2, 15, 8, 0, 0)
        invoice_service.mark_overdue(invoice.id)

        receipt = invoice_service.record_payment(invoice.id, "100", "CASH")
        assert receipt.invoice.status is InvoiceStatus.OVERDUE


class TestOverdue:
    def test_not_yet_due_is_left_pending(self, invoice_service, seed):
        invoice = issue(invoice_service, seed)
        assert invoice_service.mark_overdue(invoice.id).status is InvoiceStatus.PENDING

    def test_sweep_marks_only_past_due_pending(self, invoice_service, seed, clock):
        due_early = issue(invoice_service, seed, due_date=date(2024, 1, 10))
        due_mid = issue(invoice_service, seed, due_date=date(2024, 1, 20))
        due_late = issue(invoice_service, seed, due_date=date(2024, 3, 1))
        paid = issue(invoice_service, seed, due_date=date(2024, 1, 5))
        invoice_service.record_payment(paid.id, paid.total_amount, "CASH")
        clock.at = datetime(2024, 1, 25, 0, 0, 0)

        assert invoice_service.mark_overdue_invoices() == 2
        assert invoice_service.get_invoice(due_early.id).status is InvoiceStatus.OVERDUE
        assert invoice_service.get_invoice(due_mid.id).status is InvoiceStatus.OVERDUE
        assert invoice_service.get_invoice(due_late.id).status is InvoiceStatus.PENDING
        assert invoice_service.get_invoice(paid.id).status is InvoiceStatus.PAID
        assert invoice_service.mark_overdue_invoices() == 0


class TestCancel:
    def test_cancel_pending_unpaid(self, invoice_service, seed):
        invoice = issue(invoice_service, seed)

        cancelled = invoice_service.cancel(invoice.id, reason="wrong client")

        assert cancelled.status is InvoiceStatus.CANCELLED
        assert "wrong client" in cancelled.notes
        with pytest.raises(ConflictError):
            invoice_service.record_payment(invoice.id, "10", "CASH")
        with pytest.raises(ConflictError):
            invoice_service.cancel(invoice.id)

    def test_cannot_cancel_after_a_payment(self, invoice_service, seed):
        invoice = issue(invoice_service, seed)
        invoice_service.record_payment(invoice.id, "10", "CASH")

        with pytest.raises(ConflictError):
            invoice_service.cancel(invoice.id)

    def test_cannot_cancel_overdue(self, invoice_service, seed, clock):
        invoice = issue(invoice_service, seed)
        clock.at = datetime(2024, 3, 1, 0, 0, 0)
        invoice_service.mark_overdue(invoice.id)

        with pytest.raises(ConflictError):
            invoice_service.cancel(invoice.id)


class TestCorrection:
    def test_correction_is_a_new_linked_invoice(self, invoice_service, seed):
        original = issue(invoice_service, seed)

        first = invoice_service.create_correction(
            original.id, InvoiceCorrection(subtotal=Decimal("900.00"), reason="three days out of service"),
        )
        second = invoice_service.create_correction(
            original.id, InvoiceCorrection(reason="billing address"),
        )
        regular = issue(invoice_service, seed)

        assert first.invoice_number == "FAC-2024-000001-C1"
        assert first.corrects_invoice_id == original.id
        assert first.subtotal == Decimal("900.00")
        assert first.tax_amount == Decimal("171.00")
        assert first.total_amount == Decimal("1071.00")
        assert "three days out of service" in first.notes

        assert second.invoice_number == "FAC-2024-000001-C2"
        assert second.total_amount == original.total_amount

        assert regular.invoice_number == "FAC-2024-000002"
        assert invoice_service.get_invoice(original.id) == original

    def test_correction_of_unknown_invoice(self, invoice_service, seed):
        with pytest.raises(NotFoundError):
            invoice_service.create_correction(55, InvoiceCorrection(reason="typo"))

    def test_later_correction_replaces_the_earlier_one(self, invoice_service, seed, clock):
        original = issue(invoice_service, seed, due_date=date(2024, 1, 20))
        first = invoice_service.create_correction(original.id, InvoiceCorrection(reason="wrong rate"))
        second = invoice_service.create_correction(
            original.id, InvoiceCorrection(subtotal=Decimal("900.00"), reason="wrong rate again"),
        )

        for replaced in (original, first):
            with pytest.raises(ConflictError):
                invoice_service.record_payment(replaced.id, "100", "CASH")

        balance = invoice_service.calculate_client_balance(seed.client_id)
        assert balance.total_owed == second.total_amount == Decimal("1071.00")
        assert (balance.total_invoices, balance.pending_count) == (3, 1)

        clock.at = datetime(2024, 2, 15, 0, 0, 0)
        assert invoice_service.mark_overdue_invoices() == 1
        assert invoice_service.get_invoice(original.id).status is InvoiceStatus.PENDING
        assert invoice_service.get_invoice(first.id).status is InvoiceStatus.PENDING
        assert invoice_service.get_invoice(second.id).status is InvoiceStatus.OVERDUE


class TestScheduledPayments:
    def make_rental(self, rental_service, seed):
        return rental_service.create(
            seed.equipment_id, seed.client_id, seed.provider_id,
            date(2024, 1, 1), date(2024, 3, 31), "1000", deposit_amount="500",
        )

    def test_due_payments_are_billed_once(self, invoice_service, rental_service, seed):
        rental = self.make_rental(rental_service, seed)

        issued = invoice_service.issue_due_invoices()

        assert len(issued) == 2
        deposit_invoice, rent_invoice = issued
        assert deposit_invoice.subtotal == Decimal("500.00")
        assert deposit_invoice.tax_amount == Decimal("0.00")
        assert deposit_invoice.description == "Security deposit"
        assert rent_invoice.subtotal == Decimal("1000.00")
        assert rent_invoice.tax_amount == Decimal("190.00")
        assert rent_invoice.due_date == date(2024, 1, 31)
        assert rent_invoice.rental_id == rental.rental.id
        assert rent_invoice.description == "Equipment rental 2024-01-01 to 2024-01-31"

        assert invoice_service.issue_due_invoices() == []
        assert len(invoice_service.issue_due_invoices(horizon_days=45)) == 1

    def test_settled_invoice_marks_the_payment_paid(self, invoice_service, rental_service, seed):
        rental = self.make_rental(rental_service, seed)
        january = next(p for p in rental.payments if p.payment_type is PaymentType.RENTAL)
        invoice = invoice_service.issue_for_payment(january.id)

        with pytest.raises(ConflictError):
            invoice_service.issue_for_payment(january.id)

        invoice_service.record_payment(invoice.id, "500", "TRANSFER")
        assert rental_service.list_payments(rental.rental.id)[1].status is PaymentStatus.PENDING

        invoice_service.record_payment(invoice.id, "690", "TRANSFER")
        settled = next(p for p in rental_service.list_payments(rental.rental.id) if p.id == january.id)
        assert settled.status is PaymentStatus.PAID
        assert settled.invoice_id == invoice.id
        assert settled.paid_at == datetime(2024, 1, 1, 9, 0, 0)

    def test_cancelled_invoice_releases_the_payment(self, invoice_service, rental_service, seed, session_factory):
        rental = self.make_rental(rental_service, seed)
        deposit = rental.payments[0]
        invoice = invoice_service.issue_for_payment(deposit.id)

        invoice_service.cancel(invoice.id)

        with session_scope(session_factory) as db:
            assert db.get(Payment, deposit.id).invoice_id is None
        again = invoice_service.issue_for_payment(deposit.id)
        assert again.invoice_number == "FAC-2024-000002"

    def test_cancelled_rental_payments_are_not_billed(self, invoice_service, rental_service, seed):
        rental = self.make_rental(rental_service, seed)
        rental_service.cancel(rental.rental.id)

        issued = invoice_service.issue_due_invoices(horizon_days=365)

        assert len(issued) == 2
        future = next(p for p in rental_service.list_payments(rental.rental.id) if p.due_date == date(2024, 3, 1))
        with pytest.raises(ConflictError):
            invoice_service.issue_for_payment(future.id)

    def test_paying_the_correction_settles_the_payment(self, invoice_service, rental_service, seed, clock):
        rental = self.make_rental(rental_service, seed)
        january = next(p for p in rental.payments if p.payment_type is PaymentType.RENTAL)
        original = invoice_service.issue_for_payment(january.id)
        correction = invoice_service.create_correction(
            original.id, InvoiceCorrection(subtotal=Decimal("900.00"), reason="two days out of service"),
        )

        moved = next(p for p in rental_service.list_payments(rental.rental.id) if p.id == january.id)
        assert moved.invoice_id == correction.id

        invoice_service.record_payment(correction.id, "1071.00", "TRANSFER")

        settled = next(p for p in rental_service.list_payments(rental.rental.id) if p.id == january.id)
        assert settled.status is PaymentStatus.PAID
        assert settled.invoice_id == correction.id
        with pytest.raises(ConflictError):
            invoice_service.record_payment(original.id, "1190.00", "TRANSFER")

        clock.at = datetime(2024, 3, 15, 0, 0, 0)
        assert invoice_service.mark_overdue_invoices() == 0
        assert invoice_service.get_invoice(original.id).status is InvoiceStatus.PENDING
        assert invoice_service.calculate_client_balance(seed.client_id).total_owed == Decimal("0.00")

    def test_cancelled_rental_cancels_its_future_invoices(self, invoice_service, rental_service, seed):
        rental = rental_service.create(
            seed.equipment_id, seed.client_id, seed.provider_id,
            date(2024, 1, 1), date(2024, 6, 1), "1000",
        )
        issued = invoice_service.issue_due_invoices(horizon_days=45)
        january, february = issued
        assert february.description == "Equipment rental 2024-02-01 to 2024-02-29"

        rental_service.cancel(rental.rental.id)

        assert invoice_service.get_invoice(february.id).status is InvoiceStatus.CANCELLED
        assert invoice_service.get_invoice(january.id).status is InvoiceStatus.PENDING
        with pytest.raises(ConflictError):
            invoice_service.record_payment(february.id, "1190.00", "TRANSFER")
        payment = next(p for p in rental_service.list_payments(rental.rental.id) if p.due_date == date(2024, 2, 1))
        assert payment.status is PaymentStatus.CANCELLED
        assert rental_service.get_rental(rental.rental.id).rental.total_amount == Decimal("1000.00")
        assert invoice_service.calculate_client_balance(seed.client_id).total_owed == january.total_amount

    def test_rental_with_a_partly_paid_future_invoice_cannot_be_cancelled(
        self, invoice_service, rental_service, seed
    ):
        rental = rental_service.create(
            seed.equipment_id, seed.client_id, seed.provider_id,
            date(2024, 1, 1), date(2024, 6, 1), "1000",
        )
        february = invoice_service.issue_due_invoices(horizon_days=45)[-1]
        invoice_service.record_payment(february.id, "100", "CASH")

        with pytest.raises(ConflictError):
            rental_service.cancel(rental.rental.id)

        assert rental_service.get_rental(rental.rental.id).rental.status is RentalStatus.ACTIVE
        assert all(p.status is PaymentStatus.PENDING for p in rental_service.list_payments(rental.rental.id))
        assert invoice_service.get_invoice(february.id).status is InvoiceStatus.PENDING

    def test_unknown_payment(self, invoice_service, seed):
        with pytest.raises(NotFoundError):
            invoice_service.issue_for_payment(999)


def test_client_balance(invoice_service, seed, clock):
    partly_paid = issue(invoice_service, seed)
    overdue = issue(invoice_service, seed, subtotal="500.00", tax="0.00", due_date=date(2024, 1, 10))
    paid = issue(invoice_service, seed, subtotal="300.00", tax="0.00")
    cancelled = issue(invoice_service, seed, subtotal="50.00", tax="0.00")
    issue(invoice_service, seed, client_company_id=seed.client_2_id)

    invoice_service.record_payment(partly_paid.id, "190", "CASH")
    invoice_service.record_payment(paid.id, "300", "CASH")
    invoice_service.cancel(cancelled.id)
    clock.at = datetime(2024, 1, 15, 0, 0, 0)
    invoice_service.mark_overdue(overdue.id)

    balance = invoice_service.calculate_client_balance(seed.client_id)

    assert balance.total_owed == Decimal("1500.00")
    assert balance.pending_amount == Decimal("1000.00")
    assert balance.overdue_amount == Decimal("500.00")
    assert balance.paid_amount == Decimal("490.00")
    assert (balance.total_invoices, balance.pending_count, balance.overdue_count, balance.paid_count) == (4, 1, 1, 1)

    listed = invoice_service.list_client_invoices(seed.client_id, InvoiceStatus.CANCELLED)
    assert [inv.id for inv in listed.invoices] == [cancelled.id]
